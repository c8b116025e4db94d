"""Dashboard charts: trade accuracy, revenue, client acquisition, active clients by plan."""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.analysis.dashboard import (
    ExitedTrade, OnboardedLead, SeriesResult,
    onboarding_series, plan_distribution, revenue_series, trade_accuracy,
)
from advisorhub.api.v1.deps import get_current_advisor
from advisorhub.config import get_settings
from advisorhub.db.session import get_db
from advisorhub.models.advisor import Advisor
from advisorhub.models.client import Client
from advisorhub.models.lead import Lead
from advisorhub.models.trade import TradeRecommendation
from advisorhub.schemas.dashboard import PlanDistributionResponse, SeriesResponse, TradeAccuracyResponse
from advisorhub.services.trade_service import to_record

router = APIRouter()


async def _exited_trades(db: AsyncSession, advisor: Advisor) -> list[TradeRecommendation]:
    result = await db.execute(
        select(TradeRecommendation).where(
            TradeRecommendation.advisor_id == advisor.id,
            TradeRecommendation.status == "EXITED",
        )
    )
    return list(result.scalars().all())


def _series_response(series: SeriesResult) -> SeriesResponse:
    return SeriesResponse(
        points=[{"date": p.date, "value": p.value} for p in series.points],
        total=series.total,
        percentage_change=series.percentage_change,
    )


@router.get("/trade-accuracy", response_model=TradeAccuracyResponse)
async def get_trade_accuracy(
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    baseline = get_settings().accuracy_baseline
    trades = await _exited_trades(db, advisor)
    result = trade_accuracy([to_record(t) for t in trades], baseline=baseline)
    return TradeAccuracyResponse(**vars(result), baseline=baseline)


@router.get("/revenue", response_model=SeriesResponse)
async def get_revenue(
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Daily sum of signed returns on exited trades."""
    trades = await _exited_trades(db, advisor)
    series = revenue_series(
        [ExitedTrade(record=to_record(t), exit_date=t.exit_date) for t in trades],
        tz=get_settings().display_timezone,
    )
    return _series_response(series)


@router.get("/client-acquisition", response_model=SeriesResponse)
async def get_client_acquisition(
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Leads onboarded (paid) per day."""
    result = await db.execute(
        select(Lead.stage, Lead.updated_at).where(Lead.advisor_id == advisor.id, Lead.stage == "paid")
    )
    leads = [OnboardedLead(stage=stage, updated_at=updated_at) for stage, updated_at in result.all()]
    return _series_response(onboarding_series(leads, tz=get_settings().display_timezone))


@router.get("/active-clients", response_model=PlanDistributionResponse)
async def get_active_clients(
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    result = await db.execute(
        select(Client.plan).where(Client.advisor_id == advisor.id, Client.status == "active")
    )
    return plan_distribution(list(result.scalars().all()))

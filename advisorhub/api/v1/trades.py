"""Trade recommendation endpoints: create, broadcast advice, edit, exit, timeline."""

import uuid
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.api.v1.clients import get_owned_client
from advisorhub.api.v1.deps import get_current_advisor
from advisorhub.db.session import get_db
from advisorhub.models.advisor import Advisor
from advisorhub.models.trade import TradeRecommendation
from advisorhub.schemas.trade import (
    AdviceBroadcastRequest, AdviceBroadcastResponse, AdviceRecipientResponse,
    TimelineEntry, TradeCreate, TradeExit, TradeExitResponse, TradeResponse, TradeUpdate,
)
from advisorhub.services import trade_service, whatsapp
from advisorhub.services.trade_service import TradeStateError, TradeValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_owned_trade(db: AsyncSession, advisor: Advisor, trade_id: uuid.UUID) -> TradeRecommendation:
    result = await db.execute(
        select(TradeRecommendation).where(
            TradeRecommendation.id == trade_id,
            TradeRecommendation.advisor_id == advisor.id,
        )
    )
    trade = result.scalar_one_or_none()
    if not trade:
        raise HTTPException(status_code=404, detail="Trade not found")
    return trade


@router.post("", response_model=TradeResponse, status_code=status.HTTP_201_CREATED)
async def create_trade(
    req: TradeCreate,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    client = await get_owned_client(db, advisor, req.client_id)
    try:
        return await trade_service.create_trade(
            db, advisor.id, client.id, **req.model_dump(exclude={"client_id"}),
        )
    except TradeValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("", response_model=list[TradeResponse])
async def list_trades(
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
    client_id: uuid.UUID | None = None,
    segment: str | None = None,
    trade_status: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, le=500),
    offset: int = Query(default=0, ge=0),
):
    """Trades newest first, optionally for one client, segment or status."""
    query = select(TradeRecommendation).where(TradeRecommendation.advisor_id == advisor.id)
    if client_id:
        query = query.where(TradeRecommendation.client_id == client_id)
    if segment:
        query = query.where(TradeRecommendation.segment == segment)
    if trade_status:
        query = query.where(TradeRecommendation.status == trade_status.upper())
    query = query.order_by(TradeRecommendation.created_at.desc()).offset(offset).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.post("/advice", response_model=AdviceBroadcastResponse, status_code=status.HTTP_201_CREATED)
async def broadcast_advice(
    req: AdviceBroadcastRequest,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Post one recommendation to a client or to every client on a plan."""
    fields = req.model_dump(exclude={"client_id", "plan", "group_name", "signature"})
    try:
        result = await trade_service.broadcast_advice(
            db, advisor.id, fields,
            client_id=req.client_id,
            plan=req.plan,
            group_name=req.group_name,
            signature=req.signature or advisor.display_name,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TradeValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return AdviceBroadcastResponse(
        trades=[TradeResponse.model_validate(t) for t in result.trades],
        recipients=[AdviceRecipientResponse(**vars(r)) for r in result.recipients],
        group_message=result.group_message,
        group_link=result.group_link,
    )


@router.get("/{trade_id}", response_model=TradeResponse)
async def get_trade(
    trade_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    return await get_owned_trade(db, advisor, trade_id)


@router.patch("/{trade_id}", response_model=TradeResponse)
async def update_trade(
    trade_id: uuid.UUID,
    req: TradeUpdate,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    trade = await get_owned_trade(db, advisor, trade_id)
    try:
        return await trade_service.update_trade(db, trade, advisor.id, req.model_dump(exclude_unset=True))
    except TradeStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except TradeValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/{trade_id}/exit", response_model=TradeExitResponse)
async def exit_trade(
    trade_id: uuid.UUID,
    req: TradeExit,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Close the trade and return the exit update for the client."""
    trade = await get_owned_trade(db, advisor, trade_id)
    try:
        await trade_service.exit_trade(db, trade, advisor.id, **req.model_dump())
    except TradeStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except TradeValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    client = await get_owned_client(db, advisor, trade.client_id)
    message = whatsapp.exit_message(client.name, trade, advisor.display_name)
    return TradeExitResponse(
        trade=TradeResponse.model_validate(trade),
        whatsapp_message=message,
        whatsapp_link=whatsapp.whatsapp_link(client.whatsapp, message),
    )


@router.get("/{trade_id}/timeline", response_model=list[TimelineEntry])
async def trade_timeline(
    trade_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    trade = await get_owned_trade(db, advisor, trade_id)
    events = await trade_service.load_events(db, trade.id)
    return trade_service.build_timeline(events)

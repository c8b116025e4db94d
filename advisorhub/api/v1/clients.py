"""Client endpoints: list/search, CRUD, CSV import, plans and performance."""

import uuid
import logging
from typing import Literal

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.analysis.returns import aggregate_returns
from advisorhub.api.v1.deps import get_current_advisor
from advisorhub.config import get_settings
from advisorhub.core.audit import AuditAction, AuditEntry, audit_client_event, log_audit
from advisorhub.db.session import get_db
from advisorhub.models.advisor import Advisor
from advisorhub.models.client import Client
from advisorhub.models.trade import TradeRecommendation
from advisorhub.schemas.client import (
    ClientCreate,
    ClientImportResponse,
    ClientListResponse,
    ClientResponse,
    ClientUpdate,
)
from advisorhub.schemas.performance import PerformanceResponse
from advisorhub.services import client_import, client_service
from advisorhub.services.client_import import ClientImportError
from advisorhub.services.client_service import ClientExistsError, ClientValidationError
from advisorhub.services.trade_service import to_record

logger = logging.getLogger(__name__)

router = APIRouter()


def client_response(client: Client) -> ClientResponse:
    return ClientResponse(
        id=client.id,
        name=client.name,
        email=client.email,
        whatsapp=client.whatsapp,
        assigned_rm=client.assigned_rm,
        risk_profile=client.risk_profile,
        kyc_status=client.kyc_status,
        kyc_verified_at=client.kyc_verified_at,
        plan=client.plan,
        status=client.status,
        last_active_at=client.last_active_at,
        renewal_date=client.renewal_date,
        days_to_renewal=client.days_to_renewal(),
        created_at=client.created_at,
    )


async def get_owned_client(db: AsyncSession, advisor: Advisor, client_id: uuid.UUID) -> Client:
    result = await db.execute(
        select(Client).where(Client.id == client_id, Client.advisor_id == advisor.id)
    )
    client = result.scalar_one_or_none()
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get("", response_model=ClientListResponse)
async def list_clients(
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
    q: str | None = Query(default=None, description="Search name, email, RM, risk profile or plan"),
    plan: str | None = None,
    sort: str | None = None,
    order: Literal["asc", "desc"] = "asc",
    limit: int = Query(default=100, le=500),
    offset: int = Query(default=0, ge=0),
):
    """List the advisor's clients."""
    query = select(Client).where(Client.advisor_id == advisor.id)
    if plan:
        query = query.where(Client.plan == plan)
    if q:
        query = query.where(client_service.search_condition(q)).limit(client_service.SEARCH_LIMIT)
    else:
        query = query.order_by(Client.created_at.desc()).offset(offset).limit(limit)

    result = await db.execute(query)
    clients = list(result.scalars().all())

    try:
        clients = client_service.sort_clients(clients, sort, descending=order == "desc")
    except ClientValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return ClientListResponse(clients=[client_response(c) for c in clients], total=len(clients))


@router.get("/plans", response_model=list[str])
async def list_plans(
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Distinct plans across the advisor's clients."""
    result = await db.execute(
        select(Client.plan)
        .where(Client.advisor_id == advisor.id, Client.plan.is_not(None))
        .distinct()
        .order_by(Client.plan)
    )
    return [p for p in result.scalars().all() if p]


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    req: ClientCreate,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    try:
        client = await client_service.create_client(db, advisor.id, **req.model_dump())
    except ClientExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ClientValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    audit_client_event(AuditAction.CLIENT_CREATED, str(advisor.id), str(client.id), client.email)
    return client_response(client)


@router.post("/import", response_model=ClientImportResponse)
async def import_clients(
    file: UploadFile = File(...),
    dry_run: bool = Query(default=False, description="Validate only"),
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Bulk-create clients from a CSV or TSV file. Nothing is inserted if any row is invalid."""
    content = await file.read()
    try:
        result = client_import.prepare_import(content, file.filename)
    except ClientImportError as e:
        raise HTTPException(status_code=422, detail=str(e))

    await client_import.check_existing(db, advisor.id, result)
    if result.valid and not dry_run:
        await client_import.import_clients(db, advisor.id, result, get_settings().client_import_batch_size)
        log_audit(AuditEntry(
            action=AuditAction.CLIENTS_IMPORTED,
            advisor_id=str(advisor.id),
            details={"inserted": result.inserted, "filename": file.filename},
        ))

    return ClientImportResponse(
        valid=result.valid,
        dry_run=dry_run,
        valid_rows=len(result.rows),
        inserted=result.inserted,
        errors=result.errors,
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    return client_response(await get_owned_client(db, advisor, client_id))


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: uuid.UUID,
    req: ClientUpdate,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    client = await get_owned_client(db, advisor, client_id)
    try:
        await client_service.update_client(db, client, req.model_dump(exclude_unset=True))
    except ClientValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    audit_client_event(AuditAction.CLIENT_UPDATED, str(advisor.id), str(client.id))
    return client_response(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    client = await get_owned_client(db, advisor, client_id)
    await db.delete(client)
    await db.flush()
    audit_client_event(AuditAction.CLIENT_DELETED, str(advisor.id), str(client_id), client.email)


@router.get("/{client_id}/performance", response_model=PerformanceResponse)
async def client_performance(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Equity curves and return metrics over the client's exited trades."""
    client = await get_owned_client(db, advisor, client_id)
    result = await db.execute(
        select(TradeRecommendation).where(
            TradeRecommendation.client_id == client.id,
            TradeRecommendation.advisor_id == advisor.id,
        )
    )
    trades = [to_record(t) for t in result.scalars().all()]

    settings = get_settings()
    report = aggregate_returns(
        trades,
        baseline=settings.performance_baseline,
        tz=settings.display_timezone,
    )
    return PerformanceResponse(
        client_id=client.id,
        overall=[{"date": p.date, "value": p.value} for p in report.overall],
        last_ten_trades=[{"date": p.date, "value": p.value} for p in report.last_ten_trades],
        this_year=[{"date": p.date, "value": p.value} for p in report.this_year],
        metrics=vars(report.metrics),
        trade_count=report.trade_count,
    )

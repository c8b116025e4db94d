"""Lead endpoints: pipeline, CRUD, stage transitions, CSV import."""

import uuid
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.api.v1.deps import get_current_advisor
from advisorhub.config import get_settings
from advisorhub.core.audit import AuditAction, AuditEntry, log_audit
from advisorhub.db.session import get_db
from advisorhub.models.advisor import Advisor
from advisorhub.models.lead import Lead, LeadStatusHistory
from advisorhub.schemas.lead import (
    ContactedRequest, LeadCreate, LeadHistoryResponse, LeadImportResponse,
    LeadResponse, LeadUpdate, PipelineResponse, StageChangeResponse, StageNoteRequest,
)
from advisorhub.services import lead_import, lead_service
from advisorhub.services.client_service import ClientExistsError
from advisorhub.services.lead_import import LeadImportError
from advisorhub.services.lead_service import LeadDocumentsIncomplete, LeadTransitionError

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_owned_lead(db: AsyncSession, advisor: Advisor, lead_id: uuid.UUID) -> Lead:
    result = await db.execute(
        select(Lead).where(Lead.id == lead_id, Lead.advisor_id == advisor.id)
    )
    lead = result.scalar_one_or_none()
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


@router.get("", response_model=list[LeadResponse])
async def list_leads(
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
    source: str | None = None,
    plan: str | None = None,
    disposition: str | None = None,
    stage: str | None = None,
    q: str | None = Query(default=None, description="Case-insensitive name search"),
    limit: int = Query(default=100, le=500),
    offset: int = Query(default=0, ge=0),
):
    query = select(Lead).where(Lead.advisor_id == advisor.id)
    if source:
        query = query.where(Lead.source == source)
    if plan:
        query = query.where(Lead.plan == plan)
    if disposition:
        query = query.where(Lead.disposition == disposition.lower())
    if stage:
        query = query.where(Lead.stage == stage)
    if q:
        query = query.where(Lead.name.ilike(f"%{q}%"))
    query = query.order_by(Lead.created_at.desc()).offset(offset).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/pipeline", response_model=PipelineResponse)
async def pipeline(
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Leads grouped by stage."""
    result = await db.execute(
        select(Lead).where(Lead.advisor_id == advisor.id).order_by(Lead.updated_at.desc())
    )
    board = lead_service.group_by_stage(list(result.scalars().all()))
    return PipelineResponse(
        stages={stage: [LeadResponse.model_validate(lead) for lead in leads] for stage, leads in board.items()},
        counts={stage: len(leads) for stage, leads in board.items()},
    )


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    req: LeadCreate,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    lead = Lead(
        id=uuid.uuid4(),
        advisor_id=advisor.id,
        stage="lead",
        verification_doc_uploaded=False,
        contract_uploaded=False,
        **req.model_dump(),
    )
    db.add(lead)
    await db.flush()
    return lead


@router.post("/import", response_model=LeadImportResponse)
async def import_leads(
    file: UploadFile = File(...),
    dry_run: bool = Query(default=False, description="Validate only"),
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Bulk-create leads from a CSV or TSV file. Nothing is inserted if any row is invalid."""
    content = await file.read()
    try:
        result = lead_import.prepare_import(content, file.filename)
    except LeadImportError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if result.valid and not dry_run:
        await lead_import.import_leads(db, advisor.id, result, get_settings().lead_import_batch_size)
        log_audit(AuditEntry(
            action=AuditAction.LEADS_IMPORTED,
            advisor_id=str(advisor.id),
            details={"inserted": result.inserted, "filename": file.filename},
        ))

    return LeadImportResponse(
        valid=result.valid,
        dry_run=dry_run,
        valid_rows=len(result.rows),
        inserted=result.inserted,
        errors=result.errors,
    )


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    return await get_owned_lead(db, advisor, lead_id)


@router.patch("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: uuid.UUID,
    req: LeadUpdate,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Edit lead details and onboarding document flags. Stage changes go through the stage endpoints."""
    lead = await get_owned_lead(db, advisor, lead_id)
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(lead, field, value)
    await db.flush()
    return lead


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(
    lead_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    lead = await get_owned_lead(db, advisor, lead_id)
    await db.delete(lead)
    await db.flush()


# ── Stage transitions ──

def _stage_response(lead: Lead, entry: LeadStatusHistory | None = None,
                    client_id: uuid.UUID | None = None) -> StageChangeResponse:
    return StageChangeResponse(
        lead=LeadResponse.model_validate(lead),
        history=LeadHistoryResponse.model_validate(entry) if entry else None,
        client_id=client_id,
    )


@router.post("/{lead_id}/contacted", response_model=StageChangeResponse)
async def mark_contacted(
    lead_id: uuid.UUID,
    req: ContactedRequest,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    lead = await get_owned_lead(db, advisor, lead_id)
    try:
        entry = await lead_service.mark_contacted(
            db, lead, advisor.id, disposition=req.disposition, plan=req.plan, note=req.note,
        )
    except LeadTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _stage_response(lead, entry)


@router.post("/{lead_id}/documented", response_model=StageChangeResponse)
async def mark_documented(
    lead_id: uuid.UUID,
    req: StageNoteRequest,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    lead = await get_owned_lead(db, advisor, lead_id)
    try:
        entry = await lead_service.mark_documented(db, lead, advisor.id, note=req.note)
    except LeadTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LeadDocumentsIncomplete as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _stage_response(lead, entry)


@router.post("/{lead_id}/paid", response_model=StageChangeResponse)
async def mark_paid(
    lead_id: uuid.UUID,
    req: StageNoteRequest,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Onboard the lead: mark it paid and create the client record."""
    lead = await get_owned_lead(db, advisor, lead_id)
    try:
        client = await lead_service.mark_paid(db, lead, advisor.id, note=req.note)
    except (LeadTransitionError, ClientExistsError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LeadDocumentsIncomplete as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _stage_response(lead, client_id=client.id)


@router.get("/{lead_id}/history", response_model=list[LeadHistoryResponse])
async def lead_history(
    lead_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    lead = await get_owned_lead(db, advisor, lead_id)
    result = await db.execute(
        select(LeadStatusHistory)
        .where(LeadStatusHistory.lead_id == lead.id)
        .order_by(LeadStatusHistory.changed_at)
    )
    return result.scalars().all()

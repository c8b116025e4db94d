"""Lead pipeline: lead → contacted → documented → paid.

Each transition is validated against the current stage, appended to the
lead's status history, counted and audited. Marking a lead as paid
onboards it as a client.
"""

import uuid
import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.core.audit import AuditAction, AuditEntry, audit_lead_stage, log_audit
from advisorhub.core.metrics import LEAD_TRANSITIONS
from advisorhub.models.client import Client
from advisorhub.models.lead import Lead, LeadStatusHistory
from advisorhub.services.client_service import ClientExistsError, find_by_email

logger = logging.getLogger(__name__)

STAGES = ("lead", "contacted", "documented", "paid")
NEXT_STAGE = {"lead": "contacted", "contacted": "documented", "documented": "paid"}
DISPOSITIONS = ("hot", "warm", "cold")
DEFAULT_PLAN = "standard"
DEFAULT_RISK_PROFILE = "Moderate"


class LeadTransitionError(Exception):
    """Raised when a lead is moved to a stage that does not follow its current one."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot mark as {target} from current status: {current}")


class LeadDocumentsIncomplete(Exception):
    """Raised when onboarding documents are missing."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Please upload all required documents first (missing: {', '.join(missing)})")


def missing_documents(lead: Lead) -> list[str]:
    missing = []
    if not lead.verification_doc_uploaded:
        missing.append("verification_doc")
    if not lead.risk_profile:
        missing.append("risk_profile")
    if not lead.contract_uploaded:
        missing.append("contract")
    return missing


def check_transition(lead: Lead, target: str) -> None:
    if NEXT_STAGE.get(lead.stage) != target:
        raise LeadTransitionError(lead.stage, target)


def group_by_stage(leads: list[Lead]) -> dict[str, list[Lead]]:
    """Pipeline board: leads bucketed by stage, every stage present."""
    board: dict[str, list[Lead]] = {stage: [] for stage in STAGES}
    for lead in leads:
        board.setdefault(lead.stage, []).append(lead)
    return board


async def _record_transition(
    db: AsyncSession,
    lead: Lead,
    advisor_id: uuid.UUID,
    old_stage: str,
    new_stage: str,
    note: str | None = None,
) -> LeadStatusHistory:
    entry = LeadStatusHistory(
        id=uuid.uuid4(),
        lead_id=lead.id,
        old_status=old_stage,
        new_status=new_stage,
        changed_at=datetime.now(timezone.utc),
        note=note,
    )
    db.add(entry)
    LEAD_TRANSITIONS.labels(from_stage=old_stage, to_stage=new_stage).inc()
    audit_lead_stage(str(advisor_id), str(lead.id), old_stage, new_stage)
    logger.info("Lead %s moved %s → %s", lead.id, old_stage, new_stage)
    return entry


async def mark_contacted(
    db: AsyncSession,
    lead: Lead,
    advisor_id: uuid.UUID,
    disposition: str | None = None,
    plan: str | None = None,
    note: str | None = None,
) -> LeadStatusHistory:
    check_transition(lead, "contacted")
    if disposition is not None and disposition.lower() not in DISPOSITIONS:
        raise ValueError(f"disposition must be one of: {', '.join(DISPOSITIONS)}")

    old = lead.stage
    lead.disposition = disposition.lower() if disposition else lead.disposition
    lead.plan = plan or lead.plan or DEFAULT_PLAN
    lead.stage = "contacted"

    entry = await _record_transition(db, lead, advisor_id, old, "contacted", note)
    await db.flush()
    return entry


async def mark_documented(
    db: AsyncSession,
    lead: Lead,
    advisor_id: uuid.UUID,
    note: str | None = None,
) -> LeadStatusHistory:
    check_transition(lead, "documented")
    missing = missing_documents(lead)
    if missing:
        raise LeadDocumentsIncomplete(missing)

    old = lead.stage
    lead.stage = "documented"
    entry = await _record_transition(db, lead, advisor_id, old, "documented", note)
    await db.flush()
    return entry


def client_from_lead(lead: Lead, advisor_id: uuid.UUID) -> Client:
    verified = bool(lead.verification_doc_uploaded)
    return Client(
        id=uuid.uuid4(),
        advisor_id=advisor_id,
        name=lead.name,
        email=lead.email,
        whatsapp=lead.phone or lead.whatsapp or "",
        assigned_rm=lead.assigned_rm or "unassigned",
        risk_profile=lead.risk_profile or DEFAULT_RISK_PROFILE,
        kyc_status="verified" if verified else "pending",
        kyc_verified_at=datetime.now(timezone.utc) if verified else None,
        plan=lead.plan or DEFAULT_PLAN,
        status="active",
    )


async def mark_paid(
    db: AsyncSession,
    lead: Lead,
    advisor_id: uuid.UUID,
    note: str | None = None,
) -> Client:
    """Complete onboarding: move the lead to paid and create its client record."""
    check_transition(lead, "paid")
    if not lead.email:
        raise LeadDocumentsIncomplete(["email"])
    if await find_by_email(db, advisor_id, lead.email):
        raise ClientExistsError(lead.email)

    client = client_from_lead(lead, advisor_id)
    db.add(client)

    old = lead.stage
    lead.stage = "paid"
    lead.client_id = client.id
    await _record_transition(db, lead, advisor_id, old, "paid", note)
    await db.flush()

    log_audit(AuditEntry(
        action=AuditAction.LEAD_ONBOARDED,
        advisor_id=str(advisor_id),
        email=lead.email,
        details={"lead_id": str(lead.id), "client_id": str(client.id)},
    ))
    return client

"""Client records: duplicate checks, contact validation, search and sorting."""

import re
import uuid
import logging
from datetime import date, datetime, timezone

from sqlalchemy import select, or_, func
from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.models.client import Client

logger = logging.getLogger(__name__)

WHATSAPP_PATTERN = re.compile(r"^\+?[\d\s-]{10,}$")
KYC_STATUSES = ("verified", "pending", "rejected")
CLIENT_STATUSES = ("active", "inactive")
SORT_FIELDS = ("name", "days_to_renewal", "assigned_rm", "risk_profile", "plan")
SEARCH_LIMIT = 40
NOT_NULL_FIELDS = ("name", "risk_profile", "kyc_status", "status")


class ClientExistsError(Exception):
    """Raised when the advisor already has a client with this email."""

    def __init__(self, email: str):
        self.email = email
        super().__init__("Email already exists!")


class ClientValidationError(Exception):
    pass


def validate_whatsapp(number: str | None) -> None:
    if number and not WHATSAPP_PATTERN.match(number):
        raise ClientValidationError("Valid phone number is required")


def validate_kyc_status(status: str | None) -> None:
    if status is not None and status not in KYC_STATUSES:
        raise ClientValidationError(f"kyc_status must be one of: {', '.join(KYC_STATUSES)}")


async def find_by_email(db: AsyncSession, advisor_id: uuid.UUID, email: str) -> Client | None:
    result = await db.execute(
        select(Client).where(
            Client.advisor_id == advisor_id,
            func.lower(Client.email) == email.lower(),
        )
    )
    return result.scalar_one_or_none()


async def create_client(db: AsyncSession, advisor_id: uuid.UUID, **fields) -> Client:
    """Insert a client after the duplicate-email and contact checks."""
    validate_whatsapp(fields.get("whatsapp"))
    validate_kyc_status(fields.get("kyc_status"))

    if await find_by_email(db, advisor_id, fields["email"]):
        raise ClientExistsError(fields["email"])

    fields.setdefault("kyc_status", "pending")
    fields.setdefault("risk_profile", "Moderate")
    fields.setdefault("status", "active")
    if fields["kyc_status"] == "verified" and not fields.get("kyc_verified_at"):
        fields["kyc_verified_at"] = datetime.now(timezone.utc)

    client = Client(id=uuid.uuid4(), advisor_id=advisor_id, **fields)
    db.add(client)
    await db.flush()
    logger.info("Client %s created for advisor %s", client.id, advisor_id)
    return client


async def update_client(db: AsyncSession, client: Client, changes: dict) -> Client:
    """Apply a partial update; required columns cannot be cleared."""
    cleared = [f for f in NOT_NULL_FIELDS if f in changes and changes[f] is None]
    if cleared:
        raise ClientValidationError(f"Fields cannot be null: {', '.join(cleared)}")
    validate_whatsapp(changes.get("whatsapp"))
    validate_kyc_status(changes.get("kyc_status"))

    if changes.get("kyc_status") == "verified" and client.kyc_status != "verified":
        client.kyc_verified_at = datetime.now(timezone.utc)
    for name, value in changes.items():
        setattr(client, name, value)
    await db.flush()
    return client


def search_condition(query: str):
    """Case-insensitive match on name, email, RM, risk profile or plan."""
    pattern = f"%{query}%"
    return or_(
        Client.name.ilike(pattern),
        Client.email.ilike(pattern),
        Client.assigned_rm.ilike(pattern),
        Client.risk_profile.ilike(pattern),
        Client.plan.ilike(pattern),
    )


def sort_clients(clients: list[Client], field: str | None, descending: bool = False,
                 today: date | None = None) -> list[Client]:
    """Sort in memory; clients with no value for the field go last."""
    if not field:
        return list(clients)
    if field not in SORT_FIELDS:
        raise ClientValidationError(f"sort must be one of: {', '.join(SORT_FIELDS)}")

    def key(c: Client):
        if field == "days_to_renewal":
            return c.days_to_renewal(today)
        value = getattr(c, field)
        return value.lower() if isinstance(value, str) else value

    present = [c for c in clients if key(c) is not None]
    missing = [c for c in clients if key(c) is None]
    return sorted(present, key=key, reverse=descending) + missing

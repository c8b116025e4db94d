"""Bulk client import from CSV/TSV spreadsheets.

Shares the pandas parsing of the lead import. Rows are checked for the
required contact fields and the risk/plan/eKYC vocabularies, then against
emails the advisor already has on file. Nothing is inserted unless every
row passes.
"""

import uuid
import logging
from datetime import datetime, timezone

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.core.metrics import CLIENTS_IMPORTED
from advisorhub.models.client import Client
from advisorhub.services.client_service import WHATSAPP_PATTERN
from advisorhub.services.lead_import import ImportResult, LeadImportError, read_table

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["name", "email", "whatsapp", "assigned_rn", "risk", "ekyc_status", "plan"]
VALID_RISKS = ["Aggressive", "Moderate", "Conservative", "High"]
VALID_PLANS = ["Elite", "Premium", "Standard"]
VALID_KYC = ["verified", "pending", "rejected"]

_email = TypeAdapter(EmailStr)


class ClientImportError(Exception):
    """The file cannot be imported at all."""


def check_columns(columns: list[str]) -> None:
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if missing:
        raise ClientImportError(f"Missing required columns: {', '.join(missing)}")


def _choice(value: str, allowed: list[str]) -> str | None:
    """Case-insensitive lookup returning the canonical spelling."""
    for option in allowed:
        if option.lower() == value.lower():
            return option
    return None


def validate_row(row: dict, row_number: int) -> list[str]:
    errors = []
    if not row.get("name"):
        errors.append(f'Row {row_number}: Missing required field "name"')

    email = row.get("email")
    if not email:
        errors.append(f'Row {row_number}: Missing required field "email"')
    else:
        try:
            _email.validate_python(email)
        except ValidationError:
            errors.append(f'Row {row_number}: Invalid email "{email}"')

    whatsapp = row.get("whatsapp")
    if whatsapp and not WHATSAPP_PATTERN.match(whatsapp):
        errors.append(f'Row {row_number}: Invalid whatsapp value "{whatsapp}"')

    risk = row.get("risk")
    if risk and not _choice(risk, VALID_RISKS):
        errors.append(f'Row {row_number}: Invalid Risk value "{risk}". Must be one of: {", ".join(VALID_RISKS)}')

    plan = row.get("plan")
    if plan and not _choice(plan, VALID_PLANS):
        errors.append(f'Row {row_number}: Invalid Plan value "{plan}". Must be one of: {", ".join(VALID_PLANS)}')

    kyc = row.get("ekyc_status")
    if kyc and kyc.lower() not in VALID_KYC:
        errors.append(f'Row {row_number}: Invalid eKYC value "{kyc}". Must be one of: {", ".join(VALID_KYC)}')

    return errors


def to_client_fields(row: dict) -> dict:
    """Map a validated spreadsheet row onto Client columns."""
    kyc_status = (row.get("ekyc_status") or "pending").lower()
    return {
        "name": row["name"],
        "email": row["email"].lower(),
        "whatsapp": row.get("whatsapp") or None,
        "assigned_rm": row.get("assigned_rn") or None,
        "risk_profile": _choice(row["risk"], VALID_RISKS) if row.get("risk") else "Moderate",
        "kyc_status": kyc_status,
        "kyc_verified_at": datetime.now(timezone.utc) if kyc_status == "verified" else None,
        "plan": (row.get("plan") or "standard").lower(),
        "status": "active",
    }


def prepare_import(content: bytes | str, filename: str | None = None) -> ImportResult:
    """Validate a spreadsheet and map its rows to client fields."""
    try:
        df = read_table(content, filename)
    except LeadImportError as e:
        raise ClientImportError(str(e)) from e
    check_columns(list(df.columns))

    result = ImportResult()
    seen: dict[str, int] = {}
    for index, row in enumerate(df.to_dict(orient="records")):
        if not any(row.values()):
            continue
        row_number = index + 2
        row_errors = validate_row(row, row_number)
        email = (row.get("email") or "").lower()
        if email and email in seen:
            row_errors.append(f'Row {row_number}: Duplicate email "{email}" (first seen in row {seen[email]})')
        elif email:
            seen[email] = row_number

        if row_errors:
            result.errors.extend(row_errors)
        else:
            result.rows.append(to_client_fields(row))
    return result


async def check_existing(db: AsyncSession, advisor_id: uuid.UUID, result: ImportResult) -> None:
    """Report rows whose email already belongs to one of the advisor's clients."""
    emails = [r["email"] for r in result.rows]
    if not emails:
        return
    existing = await db.execute(
        select(func.lower(Client.email)).where(
            Client.advisor_id == advisor_id,
            func.lower(Client.email).in_(emails),
        )
    )
    taken = set(existing.scalars().all())
    for email in emails:
        if email in taken:
            result.errors.append(f'Email already exists: "{email}"')


async def import_clients(
    db: AsyncSession,
    advisor_id: uuid.UUID,
    result: ImportResult,
    batch_size: int = 100,
) -> int:
    """Insert validated rows as new clients, flushing every batch."""
    if not result.valid:
        raise ClientImportError("CSV has invalid values")

    for start in range(0, len(result.rows), batch_size):
        batch = [
            Client(id=uuid.uuid4(), advisor_id=advisor_id, **fields)
            for fields in result.rows[start:start + batch_size]
        ]
        db.add_all(batch)
        await db.flush()
        result.inserted += len(batch)

    CLIENTS_IMPORTED.inc(result.inserted)
    logger.info("Imported %d clients for advisor %s", result.inserted, advisor_id)
    return result.inserted

"""Bulk lead import from CSV/TSV spreadsheets.

The whole file is validated before anything is written: a structural
problem (empty file, missing or unknown columns) raises LeadImportError,
row-level problems are collected as "Row N: ..." messages where N is the
spreadsheet row number (the header is row 1).
"""

import io
import json
import uuid
import logging
from dataclasses import dataclass, field

import pandas as pd
from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.core.metrics import LEADS_IMPORTED
from advisorhub.models.lead import Lead

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["name"]
ALLOWED_COLUMNS = [
    "name", "email", "phone", "whatsapp", "source", "disposition", "plan",
    "is_elite", "rating", "relationship_manager", "notes", "metadata",
]
VALID_SOURCES = ["Website", "Google Ads", "Meta Ads", "Email Campaign"]
VALID_DISPOSITIONS = ["hot", "warm", "cold"]
VALID_PLANS = ["Free", "Basic", "Premium", "Enterprise"]
BOOLEAN_VALUES = {"TRUE": True, "true": True, "1": True, "FALSE": False, "false": False, "0": False}


class LeadImportError(Exception):
    """The file cannot be imported at all."""


@dataclass
class ImportResult:
    rows: list[dict] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    inserted: int = 0

    @property
    def valid(self) -> bool:
        return not self.errors


def read_table(content: bytes | str, filename: str | None = None) -> pd.DataFrame:
    """Parse CSV (or TSV, by extension) into a frame of stripped strings."""
    text = content.decode("utf-8-sig") if isinstance(content, bytes) else content
    if not text.strip():
        raise LeadImportError("The file appears to be empty")

    sep = "\t" if filename and filename.lower().endswith(".tsv") else ","
    try:
        df = pd.read_csv(io.StringIO(text), sep=sep, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        raise LeadImportError("The file appears to be empty")
    except pd.errors.ParserError as e:
        raise LeadImportError(f"Error parsing the CSV file: {e}")

    df.columns = [str(c).strip() for c in df.columns]
    if df.empty:
        raise LeadImportError("The file appears to be empty")
    return df.apply(lambda col: col.str.strip())


def check_columns(columns: list[str]) -> None:
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if missing:
        raise LeadImportError(f"Missing required column: {', '.join(missing)}")
    unknown = [c for c in columns if c not in ALLOWED_COLUMNS]
    if unknown:
        raise LeadImportError(f"Unknown columns detected: {', '.join(unknown)}")


def validate_row(row: dict, row_number: int) -> list[str]:
    errors = []
    if not row.get("name"):
        errors.append(f'Row {row_number}: Missing required field "name"')

    rating = row.get("rating")
    if rating:
        try:
            value = float(rating)
        except ValueError:
            value = None
        if value is None or not 1 <= value <= 5:
            errors.append(f'Row {row_number}: "rating" must be a number between 1 and 5')

    is_elite = row.get("is_elite")
    if is_elite and is_elite not in BOOLEAN_VALUES:
        errors.append(f'Row {row_number}: "is_elite" must be TRUE or FALSE')

    source = row.get("source")
    if source and source not in VALID_SOURCES:
        errors.append(f'Row {row_number}: "source" must be one of: {", ".join(VALID_SOURCES)}')

    disposition = row.get("disposition")
    if disposition and disposition.lower() not in VALID_DISPOSITIONS:
        errors.append(f'Row {row_number}: "disposition" must be one of: {", ".join(VALID_DISPOSITIONS)}')

    plan = row.get("plan")
    if plan and plan not in VALID_PLANS:
        errors.append(f'Row {row_number}: "plan" must be one of: {", ".join(VALID_PLANS)}')

    return errors


def _metadata(raw: str | None) -> dict | None:
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {"metadata": raw}
    return parsed if isinstance(parsed, dict) else {"metadata": parsed}


def to_lead_fields(row: dict) -> dict:
    """Map a validated spreadsheet row onto Lead columns."""
    rating = row.get("rating")
    return {
        "name": row["name"],
        "email": row.get("email") or None,
        "phone": row.get("phone") or None,
        "whatsapp": row.get("whatsapp") or None,
        "source": row.get("source") or None,
        "disposition": row["disposition"].lower() if row.get("disposition") else None,
        "plan": row.get("plan") or None,
        "is_elite": BOOLEAN_VALUES.get(row.get("is_elite") or "", False),
        "rating": int(float(rating)) if rating else None,
        "assigned_rm": row.get("relationship_manager") or None,
        "notes": row.get("notes") or None,
        "extra_data": _metadata(row.get("metadata")),
    }


def prepare_import(content: bytes | str, filename: str | None = None) -> ImportResult:
    """Validate a spreadsheet and map its rows to lead fields."""
    df = read_table(content, filename)
    check_columns(list(df.columns))

    result = ImportResult()
    for index, row in enumerate(df.to_dict(orient="records")):
        row_errors = validate_row(row, index + 2)
        if row_errors:
            result.errors.extend(row_errors)
        else:
            result.rows.append(to_lead_fields(row))
    return result


async def import_leads(
    db: AsyncSession,
    advisor_id: uuid.UUID,
    result: ImportResult,
    batch_size: int = 50,
) -> int:
    """Insert validated rows as new leads, flushing every batch."""
    if not result.valid:
        raise LeadImportError("CSV has invalid values")

    for start in range(0, len(result.rows), batch_size):
        batch = [
            Lead(id=uuid.uuid4(), advisor_id=advisor_id, stage="lead", **fields)
            for fields in result.rows[start:start + batch_size]
        ]
        db.add_all(batch)
        await db.flush()
        result.inserted += len(batch)

    LEADS_IMPORTED.inc(result.inserted)
    logger.info("Imported %d leads for advisor %s", result.inserted, advisor_id)
    return result.inserted

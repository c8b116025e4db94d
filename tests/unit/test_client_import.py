"""Tests for CSV/TSV client import: required columns, row checks, duplicates, batching."""

import uuid
import pytest
from unittest.mock import AsyncMock, MagicMock

from advisorhub.models.client import Client
from advisorhub.services.client_import import (
    ClientImportError,
    check_columns,
    check_existing,
    import_clients,
    prepare_import,
    to_client_fields,
    validate_row,
)
from advisorhub.services.lead_import import ImportResult

HEADER = "name,email,whatsapp,assigned_rn,risk,ekyc_status,plan\n"


def _row(**kw):
    row = {
        "name": "Asha Rao", "email": "asha@example.com", "whatsapp": "",
        "assigned_rn": "", "risk": "", "ekyc_status": "", "plan": "",
    }
    row.update(kw)
    return row


# ── File structure ──


class TestColumns:
    def test_all_required_present(self):
        check_columns(["name", "email", "whatsapp", "assigned_rn", "risk", "ekyc_status", "plan", "role"])

    def test_missing(self):
        with pytest.raises(ClientImportError, match="Missing required columns: risk, plan"):
            check_columns(["name", "email", "whatsapp", "assigned_rn", "ekyc_status"])

    def test_empty_file(self):
        with pytest.raises(ClientImportError, match="empty"):
            prepare_import(b"")


# ── Rows ──


class TestValidateRow:
    def test_minimal_row(self):
        assert validate_row(_row(), 2) == []

    def test_missing_name_and_email(self):
        errors = validate_row(_row(name="", email=""), 4)
        assert errors == [
            'Row 4: Missing required field "name"',
            'Row 4: Missing required field "email"',
        ]

    def test_bad_email(self):
        assert validate_row(_row(email="not-an-email"), 2) == ['Row 2: Invalid email "not-an-email"']

    def test_bad_whatsapp(self):
        assert validate_row(_row(whatsapp="123"), 2) == ['Row 2: Invalid whatsapp value "123"']

    def test_vocabularies_case_insensitive(self):
        assert validate_row(_row(risk="aggressive", plan="ELITE", ekyc_status="Verified"), 2) == []

    def test_bad_risk(self):
        errors = validate_row(_row(risk="Hard"), 3)
        assert errors == ['Row 3: Invalid Risk value "Hard". Must be one of: Aggressive, Moderate, Conservative, High']

    def test_bad_kyc(self):
        errors = validate_row(_row(ekyc_status="approved"), 2)
        assert errors[0].startswith('Row 2: Invalid eKYC value "approved"')


class TestToClientFields:
    def test_defaults(self):
        fields = to_client_fields(_row(email="Asha@Example.com"))
        assert fields["email"] == "asha@example.com"
        assert fields["risk_profile"] == "Moderate"
        assert fields["kyc_status"] == "pending"
        assert fields["kyc_verified_at"] is None
        assert fields["plan"] == "standard"
        assert fields["whatsapp"] is None

    def test_normalises_values(self):
        fields = to_client_fields(_row(risk="conservative", plan="Premium", ekyc_status="VERIFIED", assigned_rn="Vikram"))
        assert fields["risk_profile"] == "Conservative"
        assert fields["plan"] == "premium"
        assert fields["kyc_status"] == "verified"
        assert fields["kyc_verified_at"] is not None
        assert fields["assigned_rm"] == "Vikram"


class TestPrepareImport:
    def test_valid_file(self):
        result = prepare_import(HEADER + "Asha Rao,asha@example.com,,,,,\nRavi,ravi@example.com,,,,,\n")
        assert result.valid
        assert [r["name"] for r in result.rows] == ["Asha Rao", "Ravi"]

    def test_blank_rows_skipped(self):
        result = prepare_import(HEADER + ",,,,,,\nAsha Rao,asha@example.com,,,,,\n")
        assert result.valid
        assert len(result.rows) == 1

    def test_duplicate_within_file(self):
        result = prepare_import(HEADER + "Asha,asha@example.com,,,,,\nAsha R,ASHA@example.com,,,,,\n")
        assert result.errors == ['Row 3: Duplicate email "asha@example.com" (first seen in row 2)']
        assert len(result.rows) == 1

    def test_tsv(self):
        content = HEADER.replace(",", "\t") + "Asha\tasha@example.com\t\t\t\t\t\n"
        result = prepare_import(content, filename="clients.tsv")
        assert result.valid


# ── Database ──


class TestCheckExisting:
    @pytest.mark.asyncio
    async def test_reports_taken_emails(self):
        existing = MagicMock()
        existing.scalars.return_value.all.return_value = ["asha@example.com"]
        db = AsyncMock()
        db.execute = AsyncMock(return_value=existing)
        result = ImportResult(rows=[{"email": "asha@example.com"}, {"email": "ravi@example.com"}])

        await check_existing(db, uuid.uuid4(), result)
        assert result.errors == ['Email already exists: "asha@example.com"']

    @pytest.mark.asyncio
    async def test_no_rows_no_query(self):
        db = AsyncMock()
        await check_existing(db, uuid.uuid4(), ImportResult())
        db.execute.assert_not_called()


class TestImportClients:
    @pytest.mark.asyncio
    async def test_batches(self):
        db = AsyncMock()
        db.add_all = MagicMock()
        advisor_id = uuid.uuid4()
        rows = [to_client_fields(_row(name=f"Client {i}", email=f"c{i}@example.com")) for i in range(5)]
        result = ImportResult(rows=rows)

        inserted = await import_clients(db, advisor_id, result, batch_size=2)

        assert inserted == 5
        assert db.add_all.call_count == 3
        assert db.flush.await_count == 3
        first_batch = db.add_all.call_args_list[0].args[0]
        assert all(isinstance(c, Client) for c in first_batch)
        assert first_batch[0].advisor_id == advisor_id
        assert first_batch[0].status == "active"

    @pytest.mark.asyncio
    async def test_refuses_invalid_result(self):
        db = AsyncMock()
        result = ImportResult(rows=[{"name": "A"}], errors=["Row 2: bad"])
        with pytest.raises(ClientImportError, match="CSV has invalid values"):
            await import_clients(db, uuid.uuid4(), result)
        db.flush.assert_not_called()

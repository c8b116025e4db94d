"""Tests for CSV/TSV lead import: structure checks, row validation, batching."""

import uuid
import pytest
from unittest.mock import AsyncMock, MagicMock

from advisorhub.models.lead import Lead
from advisorhub.services.lead_import import (
    ImportResult,
    LeadImportError,
    check_columns,
    import_leads,
    prepare_import,
    read_table,
    to_lead_fields,
    validate_row,
)


# ── File structure ──


class TestReadTable:
    def test_csv(self):
        df = read_table(b"name,email\nAsha , asha@example.com \n")
        assert list(df.columns) == ["name", "email"]
        assert df.iloc[0]["name"] == "Asha"
        assert df.iloc[0]["email"] == "asha@example.com"

    def test_tsv_by_extension(self):
        df = read_table(b"name\temail\nAsha\ta@x.com\n", filename="leads.TSV")
        assert list(df.columns) == ["name", "email"]

    def test_strips_bom(self):
        df = read_table("﻿name\nAsha\n".encode("utf-8"))
        assert list(df.columns) == ["name"]

    @pytest.mark.parametrize("content", [b"", b"   \n", b"name,email\n"])
    def test_empty(self, content):
        with pytest.raises(LeadImportError, match="empty"):
            read_table(content)

    def test_blank_cells_stay_strings(self):
        df = read_table(b"name,rating\nAsha,\n")
        assert df.iloc[0]["rating"] == ""


class TestCheckColumns:
    def test_missing_required(self):
        with pytest.raises(LeadImportError, match="Missing required column: name"):
            check_columns(["email", "phone"])

    def test_unknown(self):
        with pytest.raises(LeadImportError, match="Unknown columns detected: age, city"):
            check_columns(["name", "age", "city"])

    def test_ok(self):
        check_columns(["name", "email", "relationship_manager", "metadata"])


# ── Row validation ──


class TestValidateRow:
    def test_valid(self):
        row = {"name": "Asha", "rating": "4", "is_elite": "TRUE", "source": "Website",
               "disposition": "Hot", "plan": "Premium"}
        assert validate_row(row, 2) == []

    def test_missing_name(self):
        assert validate_row({"name": ""}, 3) == ['Row 3: Missing required field "name"']

    @pytest.mark.parametrize("rating", ["0", "6", "abc", "nan"])
    def test_bad_rating(self, rating):
        errors = validate_row({"name": "A", "rating": rating}, 2)
        assert errors == ['Row 2: "rating" must be a number between 1 and 5']

    def test_bad_boolean(self):
        errors = validate_row({"name": "A", "is_elite": "yes"}, 2)
        assert errors == ['Row 2: "is_elite" must be TRUE or FALSE']

    def test_bad_enums(self):
        errors = validate_row({"name": "A", "source": "Referral", "disposition": "lukewarm", "plan": "Gold"}, 5)
        assert len(errors) == 3
        assert errors[0].startswith('Row 5: "source" must be one of: Website')
        assert errors[1] == 'Row 5: "disposition" must be one of: hot, warm, cold'
        assert errors[2].startswith('Row 5: "plan" must be one of: Free')


class TestToLeadFields:
    def test_mapping(self):
        fields = to_lead_fields({
            "name": "Asha", "email": "", "disposition": "WARM", "is_elite": "1",
            "rating": "4.0", "relationship_manager": "Vikram", "metadata": '{"campaign": "diwali"}',
        })
        assert fields["email"] is None
        assert fields["disposition"] == "warm"
        assert fields["is_elite"] is True
        assert fields["rating"] == 4
        assert fields["assigned_rm"] == "Vikram"
        assert fields["extra_data"] == {"campaign": "diwali"}

    def test_plain_text_metadata(self):
        fields = to_lead_fields({"name": "Asha", "metadata": "met at expo"})
        assert fields["extra_data"] == {"metadata": "met at expo"}
        assert fields["is_elite"] is False
        assert fields["rating"] is None


class TestPrepareImport:
    def test_row_numbers_follow_spreadsheet(self):
        content = b"name,rating\nAsha,3\n,2\nRavi,9\n"
        result = prepare_import(content)
        assert not result.valid
        assert len(result.rows) == 1
        assert result.errors == [
            'Row 3: Missing required field "name"',
            'Row 4: "rating" must be a number between 1 and 5',
        ]

    def test_valid_file(self):
        result = prepare_import(b"name,phone\nAsha,+91 98765 43210\nRavi,\n")
        assert result.valid
        assert [r["name"] for r in result.rows] == ["Asha", "Ravi"]
        assert result.rows[1]["phone"] is None


# ── Insert ──


class TestImportLeads:
    @pytest.mark.asyncio
    async def test_batches(self):
        db = AsyncMock()
        db.add_all = MagicMock()
        advisor_id = uuid.uuid4()
        result = ImportResult(rows=[{"name": f"Lead {i}"} for i in range(5)])

        inserted = await import_leads(db, advisor_id, result, batch_size=2)

        assert inserted == 5
        assert result.inserted == 5
        assert db.add_all.call_count == 3
        assert db.flush.await_count == 3
        first_batch = db.add_all.call_args_list[0].args[0]
        assert all(isinstance(lead, Lead) for lead in first_batch)
        assert first_batch[0].stage == "lead"
        assert first_batch[0].advisor_id == advisor_id

    @pytest.mark.asyncio
    async def test_refuses_invalid_result(self):
        db = AsyncMock()
        result = ImportResult(rows=[{"name": "A"}], errors=["Row 3: bad"])
        with pytest.raises(LeadImportError, match="CSV has invalid values"):
            await import_leads(db, uuid.uuid4(), result)
        db.flush.assert_not_called()

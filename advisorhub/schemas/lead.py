import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field


class LeadCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    whatsapp: str | None = None
    source: str | None = None
    disposition: Literal["hot", "warm", "cold"] | None = None
    plan: str | None = None
    is_elite: bool = False
    rating: int | None = Field(default=None, ge=1, le=5)
    assigned_rm: str | None = None
    notes: str | None = None


class LeadUpdate(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    whatsapp: str | None = None
    source: str | None = None
    plan: str | None = None
    is_elite: bool | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    assigned_rm: str | None = None
    notes: str | None = None
    # Onboarding documents
    verification_doc_uploaded: bool | None = None
    contract_uploaded: bool | None = None
    risk_profile: str | None = None


class LeadResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str | None
    phone: str | None
    whatsapp: str | None
    source: str | None
    stage: str
    disposition: str | None
    plan: str | None
    is_elite: bool | None
    rating: int | None
    assigned_rm: str | None
    notes: str | None
    extra_data: dict | None
    verification_doc_uploaded: bool | None
    contract_uploaded: bool | None
    risk_profile: str | None
    client_id: uuid.UUID | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ContactedRequest(BaseModel):
    disposition: Literal["hot", "warm", "cold"] | None = None
    plan: str | None = None
    note: str | None = None


class StageNoteRequest(BaseModel):
    note: str | None = None


class LeadHistoryResponse(BaseModel):
    id: uuid.UUID
    old_status: str
    new_status: str
    changed_at: datetime
    note: str | None

    model_config = {"from_attributes": True}


class StageChangeResponse(BaseModel):
    lead: LeadResponse
    history: LeadHistoryResponse | None = None
    client_id: uuid.UUID | None = None


class PipelineResponse(BaseModel):
    stages: dict[str, list[LeadResponse]]
    counts: dict[str, int]


class LeadImportResponse(BaseModel):
    valid: bool
    dry_run: bool
    valid_rows: int
    inserted: int
    errors: list[str]

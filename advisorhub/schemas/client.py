import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, EmailStr


class ClientCreate(BaseModel):
    name: str
    email: EmailStr
    whatsapp: str | None = None
    assigned_rm: str | None = None
    risk_profile: str = "Moderate"  # Aggressive | Moderate | Conservative | High
    kyc_status: Literal["verified", "pending", "rejected"] = "pending"
    plan: str | None = None
    status: Literal["active", "inactive"] = "active"
    renewal_date: date | None = None


class ClientUpdate(BaseModel):
    name: str | None = None
    whatsapp: str | None = None
    assigned_rm: str | None = None
    risk_profile: str | None = None
    kyc_status: Literal["verified", "pending", "rejected"] | None = None
    plan: str | None = None
    status: Literal["active", "inactive"] | None = None
    renewal_date: date | None = None
    last_active_at: datetime | None = None


class ClientResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    whatsapp: str | None
    assigned_rm: str | None
    risk_profile: str | None
    kyc_status: str | None
    kyc_verified_at: datetime | None
    plan: str | None
    status: str | None
    last_active_at: datetime | None
    renewal_date: date | None
    days_to_renewal: int | None = None
    created_at: datetime | None = None


class ClientListResponse(BaseModel):
    clients: list[ClientResponse]
    total: int


class ClientImportResponse(BaseModel):
    valid: bool
    dry_run: bool
    valid_rows: int
    inserted: int
    errors: list[str]

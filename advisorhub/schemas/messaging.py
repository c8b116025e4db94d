import uuid
from typing import Literal

from pydantic import BaseModel, EmailStr


class EmailRecipientIn(BaseModel):
    email: EmailStr
    name: str | None = None


class EmailSendRequest(BaseModel):
    recipients: list[EmailRecipientIn]
    subject: str | None = None
    html_content: str | None = None
    # Render a trade template instead of sending html_content
    trade_id: uuid.UUID | None = None
    template: Literal["trade_advice", "trade_exit"] = "trade_advice"
    trade_details: dict | None = None


class EmailResult(BaseModel):
    email: str
    success: bool
    message_id: str | None = None


class EmailSendResponse(BaseModel):
    success: bool
    message: str
    results: list[EmailResult]


class WhatsAppSendRequest(BaseModel):
    to: str
    body: str


class WhatsAppSendResponse(BaseModel):
    to: str
    success: bool
    error: str | None = None


class WhatsAppLinkRequest(BaseModel):
    phone: str | None = None
    message: str = ""


class WhatsAppLinkResponse(BaseModel):
    link: str

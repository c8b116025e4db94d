"""Outbound messaging endpoints: trade emails and WhatsApp."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.api.v1.deps import get_current_advisor
from advisorhub.api.v1.trades import get_owned_trade
from advisorhub.core.audit import AuditAction, audit_messaging
from advisorhub.db.session import get_db
from advisorhub.models.advisor import Advisor
from advisorhub.schemas.messaging import (
    EmailResult, EmailSendRequest, EmailSendResponse,
    WhatsAppLinkRequest, WhatsAppLinkResponse, WhatsAppSendRequest, WhatsAppSendResponse,
)
from advisorhub.services import email_service, whatsapp
from advisorhub.services.trade_service import snapshot

logger = logging.getLogger(__name__)

router = APIRouter()

_TEMPLATES = {
    "trade_advice": email_service.template_trade_advice,
    "trade_exit": email_service.template_trade_exit,
}


@router.post("/email", response_model=EmailSendResponse)
async def send_email(
    req: EmailSendRequest,
    db: AsyncSession = Depends(get_db),
    advisor: Advisor = Depends(get_current_advisor),
):
    """Email a trade (rendered from a template) or custom HTML to each recipient."""
    trade_details = req.trade_details
    content_type = "custom"
    if req.trade_id:
        trade = await get_owned_trade(db, advisor, req.trade_id)
        subject, html = _TEMPLATES[req.template](trade, advisor=advisor.display_name)
        subject = req.subject or subject
        trade_details = trade_details or {"trade_id": str(trade.id), "stock": trade.stock, **snapshot(trade)}
        content_type = req.template
    elif req.subject and req.html_content:
        subject, html = req.subject, req.html_content
    else:
        raise HTTPException(status_code=422, detail="Provide trade_id, or subject and html_content")

    message, results = await email_service.send_bulk(
        db, advisor.id,
        [email_service.Recipient(email=r.email, name=r.name) for r in req.recipients],
        subject, html,
        trade_details=trade_details,
        content_type=content_type,
        from_name=advisor.display_name,
        reply_to=advisor.email,
    )
    return EmailSendResponse(
        success=True,
        message=message,
        results=[EmailResult(**vars(r)) for r in results],
    )


@router.post("/whatsapp", response_model=WhatsAppSendResponse)
async def send_whatsapp(
    req: WhatsAppSendRequest,
    advisor: Advisor = Depends(get_current_advisor),
):
    """Deliver a message through the WhatsApp gateway."""
    result = await whatsapp.send_message(req.to, req.body)
    audit_messaging(
        AuditAction.WHATSAPP_SENT, str(advisor.id),
        sent=int(result.success), failed=int(not result.success),
    )
    return WhatsAppSendResponse(to=result.to, success=result.success, error=result.error)


@router.post("/whatsapp/link", response_model=WhatsAppLinkResponse)
async def whatsapp_link(
    req: WhatsAppLinkRequest,
    advisor: Advisor = Depends(get_current_advisor),
):
    return WhatsAppLinkResponse(link=whatsapp.whatsapp_link(req.phone, req.message))

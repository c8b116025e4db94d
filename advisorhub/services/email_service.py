"""Trade emails: HTML templates, SMTP delivery and bulk sends with an email log.

SMTP is blocking; async callers go through send_bulk, which runs each
delivery in a worker thread.
"""

import asyncio
import uuid
import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr, make_msgid

from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.config import get_settings
from advisorhub.core.audit import AuditAction, audit_messaging
from advisorhub.core.circuit_breaker import CircuitBreakerOpen, smtp_breaker
from advisorhub.core.metrics import EMAILS_SENT
from advisorhub.models.email_log import EmailLog

logger = logging.getLogger(__name__)


# ── HTML Templates ──

_BASE_TEMPLATE = """
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"></head>
<body style="margin:0; padding:0; font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif; background:#f8fafc; color:#0f172a;">
<div style="max-width:600px; margin:0 auto; padding:32px 24px;">
  <div style="background:#ffffff; border-radius:12px; padding:24px; border:1px solid #e2e8f0;">
    {content}
  </div>
  <div style="text-align:center; margin-top:24px;">
    <p style="color:#64748b; font-size:11px; margin:0;">
      Sent by {advisor} via {app_name}.<br>
      Investments in securities are subject to market risks. Read all related documents carefully.
    </p>
  </div>
</div>
</body>
</html>
"""

_ROW = (
    '<tr><td style="padding:6px 0; color:#64748b; font-size:13px;">{label}</td>'
    '<td style="padding:6px 0; text-align:right; font-weight:600;">{value}</td></tr>'
)


def _render_template(content_html: str, advisor: str | None = None) -> str:
    """Render email content into the base template."""
    return _BASE_TEMPLATE.format(
        content=content_html,
        advisor=advisor or "your advisor",
        app_name=get_settings().app_name,
    )


def _badge(text: str, color: str) -> str:
    return (
        f'<span style="background:{color}20; color:{color}; padding:4px 12px; '
        f'border-radius:6px; font-size:13px; font-weight:600;">{text}</span>'
    )


def _table(rows: list[tuple[str, str]]) -> str:
    body = "".join(_ROW.format(label=label, value=value) for label, value in rows if value)
    return f'<table style="width:100%; margin-top:16px; border-collapse:collapse;">{body}</table>'


def _greeting(name: str | None) -> str:
    return f"<p style='margin:0 0 12px;'>Hi {name},</p>" if name else ""


# ── Template builders ──

def template_trade_advice(trade, client_name: str | None = None, advisor: str | None = None) -> tuple[str, str]:
    """Returns (subject, html_body) for a new trade recommendation."""
    color = "#16a34a" if trade.trade_type == "BUY" else "#dc2626"
    entry = f"{trade.entry} - {trade.entry_max}" if trade.range_entry and trade.entry_max else trade.entry
    stoploss = f"{trade.stoploss} (Trailing)" if trade.trailing_sl else trade.stoploss
    targets = ", ".join(trade.targets or [])
    if trade.range_target and trade.target_max:
        targets = f"{targets} - {trade.target_max}"

    badge = _badge(f"{trade.trade_type} RECOMMENDATION", color)
    details = _table([
        ("Segment", trade.segment),
        ("Time Horizon", trade.time_horizon),
        ("Entry", entry),
        ("Stop Loss", stoploss),
        ("Targets", targets),
    ])
    rationale = ""
    if trade.rationale:
        rationale = f'<p style="margin-top:16px; font-size:13px; line-height:1.6;">{trade.rationale}</p>'

    content = f"""
    {_greeting(client_name)}
    <div style="margin-bottom:12px;">{badge}</div>
    <h2 style="margin:8px 0 4px; font-size:22px;">{trade.stock}</h2>
    {details}
    {rationale}
    """
    subject = f"Trade Advice: {trade.trade_type} {trade.stock}"
    return subject, _render_template(content, advisor)


def template_trade_exit(trade, client_name: str | None = None, advisor: str | None = None) -> tuple[str, str]:
    """Returns (subject, html_body) for a trade exit update."""
    if trade.exit_price_max:
        exit_text = f"₹{trade.exit_price} - ₹{trade.exit_price_max}"
    else:
        exit_text = f"₹{trade.exit_price}"
    badge = _badge("TRADE EXIT", "#2563eb")
    details = _table([
        ("Trade", trade.trade_type),
        ("Entry", trade.entry),
        ("Exit", exit_text),
        ("P&L", trade.pnl),
        ("Reason", trade.exit_reason),
    ])
    content = f"""
    {_greeting(client_name)}
    <div style="margin-bottom:12px;">{badge}</div>
    <h2 style="margin:8px 0 4px; font-size:22px;">{trade.stock}</h2>
    {details}
    """
    subject = f"Trade Exit: {trade.stock}"
    return subject, _render_template(content, advisor)


# ── Sending ──

def send_email(
    to_address: str,
    subject: str,
    html_body: str,
    reply_to: str | None = None,
    from_name: str | None = None,
    message_id: str | None = None,
) -> bool:
    """Send an email via SMTP. Returns True on success.

    This is synchronous; async code should use send_bulk.
    """
    settings = get_settings()

    if not settings.smtp_host:
        logger.debug("SMTP not configured, skipping email to %s", to_address)
        return False
    try:
        smtp_breaker.before_call()
    except CircuitBreakerOpen:
        logger.warning("SMTP circuit open, skipping email to %s", to_address)
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = formataddr((from_name, settings.smtp_from)) if from_name else settings.smtp_from
    msg["To"] = to_address
    msg["Message-ID"] = message_id or make_msgid()
    if reply_to or settings.email_reply_to:
        msg["Reply-To"] = reply_to or settings.email_reply_to
    msg.attach(MIMEText(html_body, "html"))

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_user and settings.smtp_password:
                server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        smtp_breaker.record_failure()
        logger.error("Failed to send email to %s: %s", to_address, e)
        return False

    smtp_breaker.record_success()
    logger.info("Email sent to %s: %s", to_address, subject)
    return True


@dataclass
class Recipient:
    email: str
    name: str | None = None


@dataclass
class SendResult:
    email: str
    success: bool
    message_id: str | None = None


def summary_message(sent: int, failed: int) -> str:
    message = f"Successfully sent {sent} emails"
    if failed:
        message += f", {failed} failed"
    return message


async def send_bulk(
    db: AsyncSession,
    advisor_id: uuid.UUID,
    recipients: list[Recipient],
    subject: str,
    html_body: str,
    trade_details: dict | None = None,
    from_name: str | None = None,
    reply_to: str | None = None,
    content_type: str = "trade_advice",
) -> tuple[str, list[SendResult]]:
    """Send one email to each recipient and log every attempt.

    content_type tags the log rows with the template that was rendered
    ("custom" for caller-supplied HTML). Returns the summary line and
    per-recipient results. Recipients without an address are skipped.
    """
    results: list[SendResult] = []
    for recipient in recipients:
        if not recipient.email:
            continue
        message_id = make_msgid()
        ok = await asyncio.to_thread(
            send_email, recipient.email, subject, html_body,
            reply_to=reply_to, from_name=from_name, message_id=message_id,
        )
        status = "sent" if ok else "failed"
        EMAILS_SENT.labels(status=status).inc()
        db.add(EmailLog(
            id=uuid.uuid4(),
            advisor_id=advisor_id,
            recipient_email=recipient.email,
            recipient_name=recipient.name,
            subject=subject,
            content_type=content_type,
            trade_details=trade_details,
            status=status,
            message_id=message_id if ok else None,
            error=None if ok else "delivery failed",
            sent_at=datetime.now(timezone.utc) if ok else None,
        ))
        results.append(SendResult(email=recipient.email, success=ok, message_id=message_id if ok else None))

    await db.flush()
    sent = sum(1 for r in results if r.success)
    failed = len(results) - sent
    audit_messaging(AuditAction.EMAIL_SENT, str(advisor_id), sent=sent, failed=failed)
    return summary_message(sent, failed), results

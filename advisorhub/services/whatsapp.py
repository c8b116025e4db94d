"""WhatsApp messaging: click-to-chat links, advice message text, gateway delivery.

The gateway is a small HTTP bridge that accepts ``POST /send-message`` with
``{"to": ..., "body": ...}``.
"""

import re
import time
import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from advisorhub.config import get_settings
from advisorhub.core.circuit_breaker import CircuitBreakerOpen, whatsapp_breaker
from advisorhub.core.metrics import WHATSAPP_LATENCY, WHATSAPP_MESSAGES

logger = logging.getLogger(__name__)

DEFAULT_SIGNATURE = "Your Advisor"


@dataclass
class DeliveryResult:
    to: str
    success: bool
    error: str | None = None


def clean_phone(phone: str) -> str:
    """Digits only, without leading zeros."""
    return re.sub(r"\D", "", phone or "").lstrip("0")


def whatsapp_link(phone: str | None, message: str = "") -> str:
    """wa.me click-to-chat link; without a phone the link opens the contact picker."""
    text = quote(message, safe="")
    if not phone:
        return f"https://wa.me/?text={text}"
    return f"https://wa.me/{clean_phone(phone)}?text={text}"


def _targets_text(targets: list[str]) -> str:
    return ", ".join(t.strip() for t in targets if t and t.strip())


def client_advice_message(client_name: str, trade, signature: str | None = None) -> str:
    return (
        f"Hi {client_name},\n\nHere's your trade advice for {trade.stock}:\n\n"
        f"Trade: {trade.trade_type}\n"
        f"Entry: {trade.entry}\n"
        f"Stop Loss: {trade.stoploss}\n"
        f"Targets: {_targets_text(trade.targets or [])}\n\n"
        f"Regards,\n{signature or DEFAULT_SIGNATURE}"
    )


def group_advice_message(trade, plan: str | None = None, group_name: str | None = None,
                         signature: str | None = None) -> str:
    if plan:
        title = f"{plan.upper()} Plan"
    elif group_name:
        title = f"{group_name} Group"
    else:
        title = "Group"
    return (
        f"Hi {title},\n\nHere's trade advice for {trade.stock}:\n\n"
        f"Trade: {trade.trade_type}\n"
        f"Segment: {trade.segment}\n"
        f"Time Horizon: {trade.time_horizon}\n"
        f"Entry: {trade.entry}{' (Range)' if trade.range_entry else ''}\n"
        f"Stop Loss: {trade.stoploss}{' (Trailing)' if trade.trailing_sl else ''}\n"
        f"Targets: {_targets_text(trade.targets or [])}{' (Range)' if trade.range_target else ''}\n\n"
        f"Regards,\n{signature or DEFAULT_SIGNATURE}"
    )


def exit_message(client_name: str, trade, signature: str | None = None) -> str:
    if trade.exit_price_max:
        price_line = f"Exit Range: ₹{trade.exit_price} - ₹{trade.exit_price_max}"
    else:
        price_line = f"Exit Price: ₹{trade.exit_price}"
    return (
        f"Hi {client_name},\n\nTrade exit update for {trade.stock}:\n\n"
        f"Trade: {trade.trade_type}\n"
        f"Stock: {trade.stock}\n"
        f"{price_line}\n"
        f"Segment: {trade.segment}\n"
        f"Time Horizon: {trade.time_horizon}\n\n"
        f"Regards,\n{signature or DEFAULT_SIGNATURE}"
    )


async def send_message(to: str, body: str) -> DeliveryResult:
    """Deliver one message through the gateway. Failures are reported, not raised."""
    settings = get_settings()
    try:
        whatsapp_breaker.before_call()
    except CircuitBreakerOpen as e:
        WHATSAPP_MESSAGES.labels(status="blocked").inc()
        logger.warning("WhatsApp to %s skipped: %s", to, e)
        return DeliveryResult(to=to, success=False, error=str(e))

    start = time.monotonic()
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{settings.whatsapp_gateway_url.rstrip('/')}/send-message",
                json={"to": to, "body": body},
                timeout=settings.whatsapp_timeout,
            )
            resp.raise_for_status()
    except httpx.HTTPError as e:
        whatsapp_breaker.record_failure()
        WHATSAPP_MESSAGES.labels(status="failed").inc()
        logger.error("WhatsApp gateway error for %s: %s", to, e)
        return DeliveryResult(to=to, success=False, error=str(e))
    finally:
        WHATSAPP_LATENCY.observe(time.monotonic() - start)

    whatsapp_breaker.record_success()
    WHATSAPP_MESSAGES.labels(status="sent").inc()
    logger.info("WhatsApp message sent to %s", to)
    return DeliveryResult(to=to, success=True)

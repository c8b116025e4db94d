"""Audit logger for advisor actions on client-facing records.

Writes client, lead, trade and messaging events to a dedicated 'audit'
logger for compliance review.
"""

import logging
from datetime import datetime, timezone
from dataclasses import dataclass
from enum import Enum

# Dedicated audit logger; configure a separate handler in production
audit_logger = logging.getLogger("audit")


class AuditAction(str, Enum):
    # Auth events
    ADVISOR_PROVISIONED = "advisor_provisioned"
    TOKEN_REJECTED = "token_rejected"

    # Client events
    CLIENT_CREATED = "client_created"
    CLIENT_UPDATED = "client_updated"
    CLIENT_DELETED = "client_deleted"
    CLIENTS_IMPORTED = "clients_imported"

    # Lead events
    LEAD_STAGE_CHANGED = "lead_stage_changed"
    LEAD_ONBOARDED = "lead_onboarded"
    LEADS_IMPORTED = "leads_imported"

    # Trade events
    TRADE_CREATED = "trade_created"
    TRADE_UPDATED = "trade_updated"
    TRADE_EXITED = "trade_exited"
    ADVICE_BROADCAST = "advice_broadcast"

    # Messaging events
    EMAIL_SENT = "email_sent"
    WHATSAPP_SENT = "whatsapp_sent"


@dataclass
class AuditEntry:
    action: AuditAction
    advisor_id: str | None = None
    email: str | None = None
    ip_address: str | None = None
    details: dict | None = None
    timestamp: str | None = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc).isoformat()


def log_audit(entry: AuditEntry) -> None:
    """Write an audit log entry."""
    record = {
        "type": "audit",
        "action": entry.action.value,
        "ts": entry.timestamp,
        "advisor_id": entry.advisor_id,
        "email": entry.email,
        "ip": entry.ip_address,
    }
    if entry.details:
        record["details"] = entry.details

    audit_logger.info(
        f"AUDIT {entry.action.value} advisor={entry.advisor_id or 'anon'} "
        f"ip={entry.ip_address or 'unknown'}",
        extra={"audit_data": record},
    )


def audit_advisor_provisioned(advisor_id: str, external_id: str, email: str | None) -> None:
    log_audit(AuditEntry(
        action=AuditAction.ADVISOR_PROVISIONED,
        advisor_id=advisor_id, email=email,
        details={"external_id": external_id},
    ))


def audit_token_rejected(ip: str, reason: str) -> None:
    log_audit(AuditEntry(
        action=AuditAction.TOKEN_REJECTED,
        ip_address=ip,
        details={"reason": reason},
    ))


def audit_client_event(action: AuditAction, advisor_id: str, client_id: str, email: str | None = None) -> None:
    log_audit(AuditEntry(
        action=action,
        advisor_id=advisor_id, email=email,
        details={"client_id": client_id},
    ))


def audit_lead_stage(advisor_id: str, lead_id: str, old_stage: str, new_stage: str) -> None:
    log_audit(AuditEntry(
        action=AuditAction.LEAD_STAGE_CHANGED,
        advisor_id=advisor_id,
        details={"lead_id": lead_id, "old_stage": old_stage, "new_stage": new_stage},
    ))


def audit_trade_event(action: AuditAction, advisor_id: str, trade_id: str, stock: str) -> None:
    log_audit(AuditEntry(
        action=action,
        advisor_id=advisor_id,
        details={"trade_id": trade_id, "stock": stock},
    ))


def audit_messaging(action: AuditAction, advisor_id: str, sent: int, failed: int) -> None:
    log_audit(AuditEntry(
        action=action,
        advisor_id=advisor_id,
        details={"sent": sent, "failed": failed},
    ))

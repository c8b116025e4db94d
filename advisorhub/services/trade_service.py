"""Trade recommendation lifecycle: create, broadcast, edit, exit, timeline.

A trade is a single row updated in place; every change is journaled as a
TradeEvent carrying a snapshot of the price fields and the fields changed.
"""

import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.analysis.returns import TradeRecord, calculate_trade_return, parse_price
from advisorhub.core.audit import AuditAction, audit_trade_event, audit_messaging
from advisorhub.core.metrics import TRADES_CREATED, TRADES_EXITED
from advisorhub.models.client import Client
from advisorhub.models.trade import TradeEvent, TradeRecommendation
from advisorhub.services import whatsapp

logger = logging.getLogger(__name__)

TRADE_TYPES = ("BUY", "SELL")
SEGMENTS = ("EQUITY", "F&O", "COMMODITIES")
TIME_HORIZONS = ("INTRADAY", "SWING", "LONGTERM")
BROADCAST_LIMIT = 100

PRICE_FIELDS = (
    "entry", "entry_max", "stoploss", "targets", "target_max",
    "range_entry", "range_target", "trailing_sl",
    "exit_price", "exit_price_max", "exit_reason", "pnl", "status",
)
EDITABLE_FIELDS = (
    "entry", "entry_max", "stoploss", "targets", "target_max",
    "range_entry", "range_target", "trailing_sl", "rationale", "time_horizon",
)
NOT_NULL_FIELDS = (
    "entry", "stoploss", "targets", "range_entry", "range_target", "trailing_sl", "time_horizon",
)


class TradeStateError(Exception):
    """The trade is not in a state that allows the operation."""


class TradeValidationError(Exception):
    pass


@dataclass
class AdviceRecipient:
    client_id: uuid.UUID
    name: str
    whatsapp: str | None
    message: str
    link: str


@dataclass
class BroadcastResult:
    trades: list[TradeRecommendation] = field(default_factory=list)
    recipients: list[AdviceRecipient] = field(default_factory=list)
    group_message: str | None = None
    group_link: str | None = None


def clean_targets(targets: list[str] | None) -> list[str]:
    return [t.strip() for t in (targets or []) if t and t.strip()]


def snapshot(trade: TradeRecommendation) -> dict:
    data = {name: getattr(trade, name) for name in PRICE_FIELDS}
    data["targets"] = list(trade.targets or [])
    return data


def diff(before: dict, after: dict) -> dict:
    """{field: [old, new]} for every field whose value changed."""
    return {
        key: [before.get(key), value]
        for key, value in after.items()
        if before.get(key) != value
    }


def to_record(trade: TradeRecommendation) -> TradeRecord:
    return TradeRecord(
        entry=trade.entry,
        exit_price=trade.exit_price,
        trade_type=trade.trade_type,
        status=trade.status,
        created_at=trade.created_at,
    )


def validate_trade_fields(fields: dict) -> None:
    if fields.get("trade_type") not in TRADE_TYPES:
        raise TradeValidationError(f"trade_type must be one of: {', '.join(TRADE_TYPES)}")
    if fields.get("segment", "EQUITY") not in SEGMENTS:
        raise TradeValidationError(f"segment must be one of: {', '.join(SEGMENTS)}")
    if fields.get("time_horizon", "INTRADAY") not in TIME_HORIZONS:
        raise TradeValidationError(f"time_horizon must be one of: {', '.join(TIME_HORIZONS)}")
    if not str(fields.get("stock") or "").strip():
        raise TradeValidationError("stock is required")
    if not str(fields.get("entry") or "").strip():
        raise TradeValidationError("entry is required")


def _event(trade: TradeRecommendation, event_type: str, changes: dict | None = None) -> TradeEvent:
    return TradeEvent(
        id=uuid.uuid4(),
        trade_id=trade.id,
        event_type=event_type,
        snapshot=snapshot(trade),
        changes=changes,
        created_at=datetime.now(timezone.utc),
    )


def _new_trade(advisor_id: uuid.UUID, client_id: uuid.UUID, fields: dict) -> TradeRecommendation:
    data = dict(fields)
    data["stock"] = data["stock"].strip().upper()
    data["targets"] = clean_targets(data.get("targets"))
    data.setdefault("segment", "EQUITY")
    data.setdefault("time_horizon", "INTRADAY")
    for flag in ("range_entry", "range_target", "trailing_sl"):
        data.setdefault(flag, False)
    return TradeRecommendation(
        id=uuid.uuid4(),
        advisor_id=advisor_id,
        client_id=client_id,
        status="ACTIVE",
        created_at=datetime.now(timezone.utc),
        **data,
    )


async def create_trade(
    db: AsyncSession,
    advisor_id: uuid.UUID,
    client_id: uuid.UUID,
    **fields,
) -> TradeRecommendation:
    """Create an ACTIVE recommendation for one client."""
    validate_trade_fields(fields)
    trade = _new_trade(advisor_id, client_id, fields)
    db.add(trade)
    db.add(_event(trade, "created"))
    await db.flush()

    TRADES_CREATED.labels(segment=trade.segment, trade_type=trade.trade_type).inc()
    audit_trade_event(AuditAction.TRADE_CREATED, str(advisor_id), str(trade.id), trade.stock)
    logger.info("Trade %s created: %s %s for client %s", trade.id, trade.trade_type, trade.stock, client_id)
    return trade


async def update_trade(
    db: AsyncSession,
    trade: TradeRecommendation,
    advisor_id: uuid.UUID,
    changes: dict,
) -> TradeRecommendation:
    """Edit price fields of an ACTIVE trade and journal what changed."""
    if trade.status != "ACTIVE":
        raise TradeStateError("Only active trades can be edited")

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise TradeValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    cleared = [f for f in NOT_NULL_FIELDS if f in changes and changes[f] is None]
    if cleared:
        raise TradeValidationError(f"Fields cannot be null: {', '.join(cleared)}")
    if "time_horizon" in changes and changes["time_horizon"] not in TIME_HORIZONS:
        raise TradeValidationError(f"time_horizon must be one of: {', '.join(TIME_HORIZONS)}")
    if "targets" in changes:
        changes = {**changes, "targets": clean_targets(changes["targets"])}

    before = snapshot(trade)
    before["rationale"] = trade.rationale
    before["time_horizon"] = trade.time_horizon
    for name, value in changes.items():
        setattr(trade, name, value)

    changed = diff(before, changes)
    if not changed:
        return trade

    db.add(_event(trade, "updated", changed))
    await db.flush()
    audit_trade_event(AuditAction.TRADE_UPDATED, str(advisor_id), str(trade.id), trade.stock)
    logger.info("Trade %s updated: %s", trade.id, ", ".join(changed))
    return trade


def compute_pnl(trade: TradeRecommendation, exit_price: str) -> str | None:
    """Signed points gained per unit, or None when the prices are not numeric."""
    if parse_price(trade.entry) is None or parse_price(exit_price) is None:
        return None
    record = TradeRecord(
        entry=trade.entry,
        exit_price=exit_price,
        trade_type=trade.trade_type,
        status="EXITED",
        created_at=trade.created_at or datetime.now(timezone.utc),
    )
    return f"{calculate_trade_return(record):.2f}"


def _outcome(trade: TradeRecommendation) -> str:
    value = calculate_trade_return(to_record(trade))
    if value > 0:
        return "profit"
    if value < 0:
        return "loss"
    return "flat"


async def exit_trade(
    db: AsyncSession,
    trade: TradeRecommendation,
    advisor_id: uuid.UUID,
    exit_price: str,
    exit_price_max: str | None = None,
    exit_reason: str | None = None,
    pnl: str | None = None,
    exit_date: datetime | None = None,
) -> TradeRecommendation:
    """Close a trade at a price (or a min/max range)."""
    if trade.status == "EXITED":
        raise TradeStateError("Trade has already been exited")
    if not str(exit_price or "").strip():
        raise TradeValidationError("exit_price is required")
    if exit_price_max:
        low, high = parse_price(exit_price), parse_price(exit_price_max)
        if low is None or high is None or low >= high:
            raise TradeValidationError("Exit min price should be less than max price.")

    before = snapshot(trade)
    trade.status = "EXITED"
    trade.exit_price = exit_price.strip()
    trade.exit_price_max = exit_price_max or None
    trade.exit_reason = exit_reason
    trade.pnl = pnl if pnl else compute_pnl(trade, trade.exit_price)
    trade.exit_date = exit_date or datetime.now(timezone.utc)

    db.add(_event(trade, "exited", diff(before, snapshot(trade))))
    await db.flush()

    TRADES_EXITED.labels(segment=trade.segment, outcome=_outcome(trade)).inc()
    audit_trade_event(AuditAction.TRADE_EXITED, str(advisor_id), str(trade.id), trade.stock)
    logger.info("Trade %s exited at %s", trade.id, trade.exit_price)
    return trade


async def broadcast_advice(
    db: AsyncSession,
    advisor_id: uuid.UUID,
    fields: dict,
    client_id: uuid.UUID | None = None,
    plan: str | None = None,
    group_name: str | None = None,
    signature: str | None = None,
) -> BroadcastResult:
    """Record one recommendation for a single client or for every client on a plan."""
    validate_trade_fields(fields)
    if (client_id is None) == (plan is None):
        raise TradeValidationError("Provide exactly one of client_id or plan")

    query = select(Client).where(Client.advisor_id == advisor_id)
    if client_id is not None:
        query = query.where(Client.id == client_id)
    else:
        query = query.where(Client.plan == plan).order_by(Client.name).limit(BROADCAST_LIMIT)
    clients = list((await db.execute(query)).scalars().all())
    if client_id is not None and not clients:
        raise LookupError("Client not found")

    result = BroadcastResult()
    for client in clients:
        trade = _new_trade(advisor_id, client.id, fields)
        db.add(trade)
        db.add(_event(trade, "created"))
        result.trades.append(trade)

        message = whatsapp.client_advice_message(client.name, trade, signature)
        result.recipients.append(AdviceRecipient(
            client_id=client.id,
            name=client.name,
            whatsapp=client.whatsapp,
            message=message,
            link=whatsapp.whatsapp_link(client.whatsapp, message),
        ))
        TRADES_CREATED.labels(segment=trade.segment, trade_type=trade.trade_type).inc()
    await db.flush()

    if plan is not None or group_name:
        sample = result.trades[0] if result.trades else _new_trade(advisor_id, None, fields)
        result.group_message = whatsapp.group_advice_message(sample, plan, group_name, signature)
        result.group_link = whatsapp.whatsapp_link(None, result.group_message)

    audit_messaging(AuditAction.ADVICE_BROADCAST, str(advisor_id), sent=len(result.trades), failed=0)
    logger.info("Advice on %s broadcast to %d clients", fields["stock"], len(result.trades))
    return result


async def load_events(db: AsyncSession, trade_id: uuid.UUID) -> list[TradeEvent]:
    result = await db.execute(
        select(TradeEvent).where(TradeEvent.trade_id == trade_id).order_by(TradeEvent.created_at)
    )
    return list(result.scalars().all())


def build_timeline(events: list[TradeEvent]) -> list[dict]:
    """Trade history, oldest first, each entry with the fields it changed."""
    ordered = sorted(events, key=lambda e: e.created_at)
    return [
        {
            "id": str(e.id),
            "event_type": e.event_type,
            "timestamp": e.created_at.isoformat(),
            "snapshot": e.snapshot or {},
            "changes": e.changes or {},
        }
        for e in ordered
    ]

"""Tests for trade recommendations: create, edit, exit, broadcast, timeline."""

import uuid
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from advisorhub.models.client import Client
from advisorhub.models.trade import TradeEvent, TradeRecommendation
from advisorhub.services.trade_service import (
    TradeStateError,
    TradeValidationError,
    broadcast_advice,
    build_timeline,
    clean_targets,
    compute_pnl,
    create_trade,
    diff,
    exit_trade,
    update_trade,
    validate_trade_fields,
)

ADVISOR_ID = uuid.uuid4()
CLIENT_ID = uuid.uuid4()

FIELDS = {
    "stock": " infy ",
    "trade_type": "BUY",
    "entry": "1500",
    "stoploss": "1450",
    "targets": ["1550", " ", "1600 "],
}


def _db():
    db = AsyncMock()
    db.add = MagicMock()
    return db


def _active_trade(**kw):
    data = dict(
        id=uuid.uuid4(), advisor_id=ADVISOR_ID, client_id=CLIENT_ID,
        stock="INFY", trade_type="BUY", segment="EQUITY", time_horizon="SWING",
        entry="1500", stoploss="1450", targets=["1550"], status="ACTIVE",
        range_entry=False, range_target=False, trailing_sl=False,
        created_at=datetime(2025, 5, 1, tzinfo=timezone.utc),
    )
    data.update(kw)
    return TradeRecommendation(**data)


def _added(db, cls):
    return [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], cls)]


# ── Helpers ──


class TestHelpers:
    def test_clean_targets(self):
        assert clean_targets([" 10 ", "", None, "12"]) == ["10", "12"]
        assert clean_targets(None) == []

    def test_diff(self):
        assert diff({"a": 1, "b": 2}, {"a": 1, "b": 3, "c": 4}) == {"b": [2, 3], "c": [None, 4]}

    @pytest.mark.parametrize("override,message", [
        ({"trade_type": "HOLD"}, "trade_type"),
        ({"segment": "FOREX"}, "segment"),
        ({"time_horizon": "DECADE"}, "time_horizon"),
        ({"stock": "  "}, "stock"),
        ({"entry": ""}, "entry"),
    ])
    def test_validate_trade_fields(self, override, message):
        with pytest.raises(TradeValidationError, match=message):
            validate_trade_fields({**FIELDS, **override})

    def test_compute_pnl(self):
        assert compute_pnl(_active_trade(), "1580") == "80.00"
        assert compute_pnl(_active_trade(trade_type="SELL"), "1580") == "-80.00"
        assert compute_pnl(_active_trade(), "n/a") is None


# ── Create / update ──


class TestCreateTrade:
    @pytest.mark.asyncio
    async def test_create(self):
        db = _db()
        trade = await create_trade(db, ADVISOR_ID, CLIENT_ID, **FIELDS)

        assert trade.stock == "INFY"
        assert trade.targets == ["1550", "1600"]
        assert trade.status == "ACTIVE"
        assert trade.segment == "EQUITY"
        assert trade.time_horizon == "INTRADAY"
        assert trade.trailing_sl is False
        events = _added(db, TradeEvent)
        assert len(events) == 1
        assert events[0].event_type == "created"
        assert events[0].snapshot["entry"] == "1500"
        db.flush.assert_awaited_once()


class TestUpdateTrade:
    @pytest.mark.asyncio
    async def test_records_changes(self):
        db = _db()
        trade = _active_trade()
        await update_trade(db, trade, ADVISOR_ID, {"stoploss": "1470", "targets": ["1560 ", "1620"]})

        assert trade.stoploss == "1470"
        assert trade.targets == ["1560", "1620"]
        event = _added(db, TradeEvent)[0]
        assert event.event_type == "updated"
        assert event.changes == {"stoploss": ["1450", "1470"], "targets": [["1550"], ["1560", "1620"]]}

    @pytest.mark.asyncio
    async def test_no_change_no_event(self):
        db = _db()
        await update_trade(db, _active_trade(), ADVISOR_ID, {"entry": "1500"})
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_exited_trade_is_locked(self):
        with pytest.raises(TradeStateError, match="Only active trades can be edited"):
            await update_trade(_db(), _active_trade(status="EXITED"), ADVISOR_ID, {"entry": "1"})

    @pytest.mark.asyncio
    async def test_rejects_non_editable_fields(self):
        with pytest.raises(TradeValidationError, match="stock"):
            await update_trade(_db(), _active_trade(), ADVISOR_ID, {"stock": "TCS"})

    @pytest.mark.asyncio
    async def test_rejects_clearing_required_prices(self):
        db = _db()
        trade = _active_trade()
        with pytest.raises(TradeValidationError, match="entry, stoploss"):
            await update_trade(db, trade, ADVISOR_ID, {"entry": None, "stoploss": None})
        assert trade.entry is not None
        assert trade.stoploss == "1450"
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_optional_prices_can_be_cleared(self):
        trade = _active_trade(entry_max="1520")
        await update_trade(_db(), trade, ADVISOR_ID, {"entry_max": None})
        assert trade.entry_max is None


# ── Exit ──


class TestExitTrade:
    @pytest.mark.asyncio
    async def test_exit_computes_pnl(self):
        db = _db()
        trade = _active_trade()
        when = datetime(2025, 5, 10, tzinfo=timezone.utc)
        await exit_trade(db, trade, ADVISOR_ID, " 1540 ", exit_reason="Target hit", exit_date=when)

        assert trade.status == "EXITED"
        assert trade.exit_price == "1540"
        assert trade.pnl == "40.00"
        assert trade.exit_date == when
        event = _added(db, TradeEvent)[0]
        assert event.event_type == "exited"
        assert event.changes["status"] == ["ACTIVE", "EXITED"]

    @pytest.mark.asyncio
    async def test_explicit_pnl_kept(self):
        trade = _active_trade()
        await exit_trade(_db(), trade, ADVISOR_ID, "1540", pnl="4000")
        assert trade.pnl == "4000"

    @pytest.mark.asyncio
    async def test_exit_range(self):
        trade = _active_trade()
        await exit_trade(_db(), trade, ADVISOR_ID, "1530", exit_price_max="1545")
        assert trade.exit_price_max == "1545"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("low,high", [("1545", "1530"), ("1540", "1540"), ("x", "1540")])
    async def test_bad_range(self, low, high):
        trade = _active_trade()
        with pytest.raises(TradeValidationError, match="Exit min price should be less than max price."):
            await exit_trade(_db(), trade, ADVISOR_ID, low, exit_price_max=high)
        assert trade.status == "ACTIVE"

    @pytest.mark.asyncio
    async def test_already_exited(self):
        with pytest.raises(TradeStateError, match="already been exited"):
            await exit_trade(_db(), _active_trade(status="EXITED"), ADVISOR_ID, "1540")

    @pytest.mark.asyncio
    async def test_exit_price_required(self):
        with pytest.raises(TradeValidationError):
            await exit_trade(_db(), _active_trade(), ADVISOR_ID, "  ")


# ── Broadcast ──


def _clients_result(clients):
    result = MagicMock()
    result.scalars.return_value.all.return_value = clients
    return result


class TestBroadcastAdvice:
    def _client(self, name, phone="+91 98765 43210"):
        return Client(id=uuid.uuid4(), advisor_id=ADVISOR_ID, name=name, email=f"{name}@x.com",
                      whatsapp=phone, plan="elite")

    @pytest.mark.asyncio
    async def test_plan_broadcast(self):
        db = _db()
        clients = [self._client("Asha"), self._client("Ravi", phone=None)]
        db.execute = AsyncMock(return_value=_clients_result(clients))

        result = await broadcast_advice(db, ADVISOR_ID, dict(FIELDS), plan="elite", signature="Team Alpha")

        assert len(result.trades) == 2
        assert {t.client_id for t in result.trades} == {c.id for c in clients}
        assert len(_added(db, TradeEvent)) == 2
        asha = result.recipients[0]
        assert asha.message.startswith("Hi Asha,\n\nHere's your trade advice for INFY:")
        assert asha.message.endswith("Regards,\nTeam Alpha")
        assert asha.link.startswith("https://wa.me/919876543210?text=")
        assert result.recipients[1].link.startswith("https://wa.me/?text=")
        assert result.group_message.startswith("Hi ELITE Plan,")
        assert result.group_link.startswith("https://wa.me/?text=")

    @pytest.mark.asyncio
    async def test_single_client(self):
        db = _db()
        client = self._client("Asha")
        db.execute = AsyncMock(return_value=_clients_result([client]))

        result = await broadcast_advice(db, ADVISOR_ID, dict(FIELDS), client_id=client.id)

        assert len(result.trades) == 1
        assert result.group_message is None
        assert "Regards,\nYour Advisor" in result.recipients[0].message

    @pytest.mark.asyncio
    async def test_unknown_client(self):
        db = _db()
        db.execute = AsyncMock(return_value=_clients_result([]))
        with pytest.raises(LookupError, match="Client not found"):
            await broadcast_advice(db, ADVISOR_ID, dict(FIELDS), client_id=uuid.uuid4())

    @pytest.mark.asyncio
    async def test_empty_plan_still_builds_group_message(self):
        db = _db()
        db.execute = AsyncMock(return_value=_clients_result([]))
        result = await broadcast_advice(db, ADVISOR_ID, dict(FIELDS), plan="premium")
        assert result.trades == []
        assert result.group_message.startswith("Hi PREMIUM Plan,")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [{}, {"client_id": CLIENT_ID, "plan": "elite"}])
    async def test_requires_exactly_one_target(self, kwargs):
        with pytest.raises(TradeValidationError, match="exactly one"):
            await broadcast_advice(_db(), ADVISOR_ID, dict(FIELDS), **kwargs)


# ── Timeline ──


class TestBuildTimeline:
    def test_sorted_oldest_first(self):
        t0 = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)
        trade_id = uuid.uuid4()
        events = [
            TradeEvent(id=uuid.uuid4(), trade_id=trade_id, event_type="exited",
                       snapshot={"status": "EXITED"}, changes={"status": ["ACTIVE", "EXITED"]},
                       created_at=t0 + timedelta(days=2)),
            TradeEvent(id=uuid.uuid4(), trade_id=trade_id, event_type="created",
                       snapshot={"status": "ACTIVE"}, changes=None, created_at=t0),
        ]
        timeline = build_timeline(events)
        assert [e["event_type"] for e in timeline] == ["created", "exited"]
        assert timeline[0]["changes"] == {}
        assert timeline[0]["timestamp"] == "2025-05-01T09:00:00+00:00"
        assert timeline[1]["changes"]["status"] == ["ACTIVE", "EXITED"]

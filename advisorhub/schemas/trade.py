import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

TradeType = Literal["BUY", "SELL"]
Segment = Literal["EQUITY", "F&O", "COMMODITIES"]
TimeHorizon = Literal["INTRADAY", "SWING", "LONGTERM"]


class TradeFields(BaseModel):
    stock: str
    trade_type: TradeType
    segment: Segment = "EQUITY"
    time_horizon: TimeHorizon = "INTRADAY"
    entry: str
    entry_max: str | None = None
    stoploss: str
    targets: list[str] = []
    target_max: str | None = None
    range_entry: bool = False
    range_target: bool = False
    trailing_sl: bool = False
    rationale: str | None = None


class TradeCreate(TradeFields):
    client_id: uuid.UUID


class TradeUpdate(BaseModel):
    entry: str | None = None
    entry_max: str | None = None
    stoploss: str | None = None
    targets: list[str] | None = None
    target_max: str | None = None
    range_entry: bool | None = None
    range_target: bool | None = None
    trailing_sl: bool | None = None
    time_horizon: TimeHorizon | None = None
    rationale: str | None = None


class TradeExit(BaseModel):
    exit_price: str
    exit_price_max: str | None = None  # upper bound when exiting over a range
    exit_reason: str | None = None
    pnl: str | None = None
    exit_date: datetime | None = None


class TradeResponse(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    stock: str
    trade_type: str
    segment: str
    time_horizon: str
    entry: str
    entry_max: str | None
    stoploss: str
    targets: list[str] | None
    target_max: str | None
    range_entry: bool | None
    range_target: bool | None
    trailing_sl: bool | None
    status: str
    exit_price: str | None
    exit_price_max: str | None
    exit_date: datetime | None
    exit_reason: str | None
    pnl: str | None
    rationale: str | None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class TimelineEntry(BaseModel):
    id: str
    event_type: str
    timestamp: str
    snapshot: dict
    changes: dict


class AdviceBroadcastRequest(TradeFields):
    client_id: uuid.UUID | None = None
    plan: str | None = None
    group_name: str | None = None
    signature: str | None = None


class AdviceRecipientResponse(BaseModel):
    client_id: uuid.UUID
    name: str
    whatsapp: str | None
    message: str
    link: str


class AdviceBroadcastResponse(BaseModel):
    trades: list[TradeResponse]
    recipients: list[AdviceRecipientResponse]
    group_message: str | None = None
    group_link: str | None = None


class TradeExitResponse(BaseModel):
    trade: TradeResponse
    whatsapp_message: str
    whatsapp_link: str

import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, Text, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from advisorhub.models.base import Base, UUIDMixin, TimestampMixin


class TradeRecommendation(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "trades"

    advisor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("advisors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stock: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    trade_type: Mapped[str] = mapped_column(String(4), nullable=False)  # BUY | SELL
    segment: Mapped[str] = mapped_column(String(20), nullable=False, default="EQUITY")
    time_horizon: Mapped[str] = mapped_column(String(20), nullable=False, default="INTRADAY")

    # Prices are kept as entered by the advisor
    entry: Mapped[str] = mapped_column(String(30), nullable=False)
    entry_max: Mapped[str | None] = mapped_column(String(30))
    stoploss: Mapped[str] = mapped_column(String(30), nullable=False)
    targets: Mapped[list] = mapped_column(JSONB, default=list)
    target_max: Mapped[str | None] = mapped_column(String(30))
    range_entry: Mapped[bool] = mapped_column(Boolean, default=False)
    range_target: Mapped[bool] = mapped_column(Boolean, default=False)
    trailing_sl: Mapped[bool] = mapped_column(Boolean, default=False)

    status: Mapped[str] = mapped_column(String(10), default="ACTIVE", index=True)  # ACTIVE | EXITED
    exit_price: Mapped[str | None] = mapped_column(String(30))
    exit_price_max: Mapped[str | None] = mapped_column(String(30))
    exit_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    exit_reason: Mapped[str | None] = mapped_column(Text)
    pnl: Mapped[str | None] = mapped_column(String(30))
    rationale: Mapped[str | None] = mapped_column(Text)

    client = relationship("Client", back_populates="trades")
    events = relationship(
        "TradeEvent", back_populates="trade",
        cascade="all, delete-orphan", order_by="TradeEvent.created_at",
    )


class TradeEvent(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "trade_events"

    trade_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("trades.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)  # created | updated | exited
    snapshot: Mapped[dict] = mapped_column(JSONB, default=dict)
    changes: Mapped[dict | None] = mapped_column(JSONB)

    trade = relationship("TradeRecommendation", back_populates="events")

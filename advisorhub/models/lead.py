import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, Integer, Text, DateTime, ForeignKey, func
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from advisorhub.models.base import Base, UUIDMixin, TimestampMixin


class Lead(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "leads"

    advisor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("advisors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(30))
    whatsapp: Mapped[str | None] = mapped_column(String(30))
    source: Mapped[str | None] = mapped_column(String(50), index=True)
    # lead → contacted → documented → paid
    stage: Mapped[str] = mapped_column(String(20), default="lead", index=True)
    disposition: Mapped[str | None] = mapped_column(String(20))  # hot | warm | cold
    plan: Mapped[str | None] = mapped_column(String(30))
    is_elite: Mapped[bool] = mapped_column(Boolean, default=False)
    rating: Mapped[int | None] = mapped_column(Integer)
    assigned_rm: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(Text)
    extra_data: Mapped[dict | None] = mapped_column(JSONB)

    # Onboarding documents
    verification_doc_uploaded: Mapped[bool] = mapped_column(Boolean, default=False)
    contract_uploaded: Mapped[bool] = mapped_column(Boolean, default=False)
    risk_profile: Mapped[str | None] = mapped_column(String(30))

    client_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clients.id", ondelete="SET NULL")
    )

    advisor = relationship("Advisor", back_populates="leads")
    history = relationship(
        "LeadStatusHistory", back_populates="lead",
        cascade="all, delete-orphan", order_by="LeadStatusHistory.changed_at",
    )


class LeadStatusHistory(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "lead_status_history"

    lead_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    old_status: Mapped[str] = mapped_column(String(20), nullable=False)
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    note: Mapped[str | None] = mapped_column(Text)

    lead = relationship("Lead", back_populates="history")

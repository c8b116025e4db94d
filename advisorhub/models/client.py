import uuid
from datetime import date, datetime
from sqlalchemy import String, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from advisorhub.models.base import Base, UUIDMixin, TimestampMixin


class Client(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "clients"
    __table_args__ = (
        UniqueConstraint("advisor_id", "email", name="uq_client_advisor_email"),
    )

    advisor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("advisors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    whatsapp: Mapped[str | None] = mapped_column(String(30))
    assigned_rm: Mapped[str | None] = mapped_column(String(100))
    risk_profile: Mapped[str] = mapped_column(String(30), default="Moderate")
    # verified | pending | rejected
    kyc_status: Mapped[str] = mapped_column(String(20), default="pending")
    kyc_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # standard | premium | elite
    plan: Mapped[str | None] = mapped_column(String(30), index=True)
    status: Mapped[str] = mapped_column(String(20), default="active")
    last_active_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    renewal_date: Mapped[date | None] = mapped_column(Date)

    advisor = relationship("Advisor", back_populates="clients")
    trades = relationship("TradeRecommendation", back_populates="client", cascade="all, delete-orphan")

    def days_to_renewal(self, today: date | None = None) -> int | None:
        if self.renewal_date is None:
            return None
        return (self.renewal_date - (today or date.today())).days

from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from advisorhub.models.base import Base, UUIDMixin, TimestampMixin


class Advisor(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "advisors"

    # Subject claim of the auth provider's token
    external_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255))
    display_name: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    clients = relationship("Client", back_populates="advisor", cascade="all, delete-orphan")
    leads = relationship("Lead", back_populates="advisor", cascade="all, delete-orphan")

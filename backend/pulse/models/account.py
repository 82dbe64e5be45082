"""Account (client practice) and location models."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pulse.database import Base


class Account(Base):
    """A client practice whose websites are managed."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    account_name: Mapped[str] = mapped_column(String(255))
    website_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # Business identity used as defaults for schema generation
    provider_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    legal_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    business_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    default_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    default_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    locations: Mapped[list["Location"]] = relationship(
        "Location", back_populates="account", cascade="all, delete-orphan"
    )
    sites: Mapped[list["Site"]] = relationship("Site", back_populates="account")


class Location(Base):
    """A physical practice location belonging to an account."""

    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    account_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        index=True,
    )
    location_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    postal: Mapped[str | None] = mapped_column(String(20), nullable=True)
    country: Mapped[str | None] = mapped_column(String(10), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    # [{"days": ["Monday", ...], "open": "09:00", "close": "17:00"}]
    hours: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    areas_served: Mapped[list | None] = mapped_column(JSONB, nullable=True)

    url: Mapped[str | None] = mapped_column(String(2048), nullable=True)  # Path of the location page
    gbp_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    business_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    page_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("page_index.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    account: Mapped["Account"] = relationship("Account", back_populates="locations")


# Forward reference
from pulse.models.site import Site  # noqa: E402

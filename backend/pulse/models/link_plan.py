"""Link plan model for monthly backlink placements."""

from datetime import date, datetime, timezone
from uuid import uuid4

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from pulse.database import Base


class LinkPlan(Base):
    """A planned backlink placement for an account."""

    __tablename__ = "link_plan"

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
    target_month: Mapped[date] = mapped_column(Date, index=True)  # First day of the month
    link_type: Mapped[str | None] = mapped_column(String(50), nullable=True)  # guest_post, citation, pr, ...
    publisher: Mapped[str | None] = mapped_column(String(255), nullable=True)
    publisher_da: Mapped[int | None] = mapped_column(Integer, nullable=True)
    destination_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    destination_page_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("page_index.id", ondelete="SET NULL"),
        nullable=True,
    )
    anchor_text: Mapped[str | None] = mapped_column(String(500), nullable=True)
    live_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="planned", index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

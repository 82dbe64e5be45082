"""Site model for crawled client websites."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pulse.database import Base


class Site(Base):
    """A website crawled for classification and schema generation."""

    __tablename__ = "site_index"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    account_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    url: Mapped[str] = mapped_column(String(2048))
    domain: Mapped[str] = mapped_column(String(255), unique=True)

    # Crawl configuration
    page_limit: Mapped[int] = mapped_column(Integer, default=200)
    exclude_paths: Mapped[list[str] | None] = mapped_column(ARRAY(String(500)), nullable=True)

    # Crawl state
    crawl_status: Mapped[str] = mapped_column(String(50), default="pending")
    pages_crawled: Mapped[int] = mapped_column(Integer, default=0)
    current_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    celery_task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Business profile overrides and classifier site analysis
    site_profile: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    site_analysis: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    crawl_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    crawl_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    account: Mapped["Account | None"] = relationship("Account", back_populates="sites")
    pages: Mapped[list["Page"]] = relationship(
        "Page", back_populates="site", cascade="all, delete-orphan"
    )

    def start_crawl(self) -> None:
        """Mark the crawl as started."""
        self.crawl_status = "in_progress"
        self.pages_crawled = 0
        self.current_url = None
        self.error_message = None
        self.crawl_started_at = datetime.now(timezone.utc)
        self.crawl_completed_at = None

    def complete_crawl(self) -> None:
        """Mark the crawl (and classification) as complete."""
        self.crawl_status = "complete"
        self.current_url = None
        self.crawl_completed_at = datetime.now(timezone.utc)

    def fail_crawl(self, error: str) -> None:
        """Mark the crawl as failed with an error message."""
        self.crawl_status = "error"
        self.error_message = error[:2000]
        self.crawl_completed_at = datetime.now(timezone.utc)


# Forward references
from pulse.models.account import Account  # noqa: E402
from pulse.models.page import Page  # noqa: E402

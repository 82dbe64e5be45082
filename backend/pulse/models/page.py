"""Page model for crawled website pages."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pulse.database import Base


class Page(Base):
    """A crawled page from a client website."""

    __tablename__ = "page_index"
    __table_args__ = (UniqueConstraint("site_id", "url", name="uq_page_index_site_url"),)

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    site_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("site_index.id", ondelete="CASCADE"),
        index=True,
    )

    # Page data
    url: Mapped[str] = mapped_column(String(2048))
    path: Mapped[str] = mapped_column(String(2048), default="/")
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    canonical_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    html_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    cleaned_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    main_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    headings: Mapped[dict | None] = mapped_column(JSONB, nullable=True)  # {"h1": [...], "h2": [...], "h3": [...]}
    meta_tags: Mapped[dict | None] = mapped_column(JSONB, nullable=True)  # og:*, article:*, twitter:*
    structured_content: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    links: Mapped[dict | None] = mapped_column(JSONB, nullable=True)  # {"internal": [...], "external": [...]}

    # Classification
    page_type: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    classification_method: Mapped[str | None] = mapped_column(String(20), nullable=True)  # heuristic, llm, manual

    # Schema generation
    schema_status: Mapped[str] = mapped_column(String(50), default="pending", index=True)
    schema_errors: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    recommended_schema: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    schema_generated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    crawled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    site: Mapped["Site"] = relationship("Site", back_populates="pages")
    schemas: Mapped[list["PageSchema"]] = relationship(
        "PageSchema", back_populates="page", cascade="all, delete-orphan"
    )

    def to_context(self) -> dict:
        """Convert to the dict shape used by the classifier and schema builders."""
        return {
            "id": self.id,
            "url": self.url,
            "path": self.path,
            "title": self.title,
            "meta_description": self.meta_description,
            "main_content": self.main_content,
            "cleaned_html": self.cleaned_html,
            "html_content": self.html_content,
            "headings": self.headings or {},
            "meta_tags": self.meta_tags or {},
            "links": self.links or {},
            "page_type": self.page_type,
        }


# Forward references
from pulse.models.schema import PageSchema  # noqa: E402
from pulse.models.site import Site  # noqa: E402

"""Schema template (tiering) and generated page schema models."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pulse.database import Base


class SchemaTemplate(Base):
    """Schema.org type definition, its tier and the data sources it needs."""

    __tablename__ = "schema_templates"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    schema_type: Mapped[str] = mapped_column(String(100), unique=True)
    page_type: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    tier: Mapped[str] = mapped_column(String(10), default="LOW")
    tier_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    required_fields: Mapped[list[str] | None] = mapped_column(ARRAY(String(100)), nullable=True)
    optional_fields: Mapped[list[str] | None] = mapped_column(ARRAY(String(100)), nullable=True)

    # {"field": {"source": "page", "field": "title", "required": true, ...}}
    data_sources: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class PageSchema(Base):
    """One generated JSON-LD entity attached to a page."""

    __tablename__ = "page_schemas"
    __table_args__ = (UniqueConstraint("page_id", "schema_type", name="uq_page_schemas_page_type"),)

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    page_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("page_index.id", ondelete="CASCADE"),
        index=True,
    )
    schema_type: Mapped[str] = mapped_column(String(100))
    schema_json: Mapped[dict] = mapped_column(JSONB)
    generation_method: Mapped[str] = mapped_column(String(20), default="template")  # template, llm, manual
    is_valid: Mapped[bool] = mapped_column(Boolean, default=True)
    validation_errors: Mapped[list | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    page: Mapped["Page"] = relationship("Page", back_populates="schemas")


# Forward reference
from pulse.models.page import Page  # noqa: E402

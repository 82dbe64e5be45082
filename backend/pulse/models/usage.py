"""AI usage log model for token and cost tracking."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from pulse.database import Base


class AIUsageLog(Base):
    """One LLM call with its token counts and cost."""

    __tablename__ = "ai_usage_logs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    action: Mapped[str] = mapped_column(String(100), index=True)
    page_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True, index=True)
    page_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    provider: Mapped[str] = mapped_column(String(20))
    model: Mapped[str] = mapped_column(String(100))
    input_tokens: Mapped[int] = mapped_column(Integer, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, default=0)
    input_cost_cents: Mapped[float] = mapped_column(Float, default=0)
    output_cost_cents: Mapped[float] = mapped_column(Float, default=0)
    request_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, default=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    @property
    def total_cost_cents(self) -> float:
        return (self.input_cost_cents or 0) + (self.output_cost_cents or 0)

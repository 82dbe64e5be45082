"""Token pricing and AI usage logging."""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from pulse.models import AIUsageLog

logger = logging.getLogger(__name__)


# Cents per 1M tokens: (input, output)
MODEL_PRICING: dict[str, tuple[float, float]] = {
    # OpenAI
    "gpt-4o": (250, 1000),
    "gpt-4o-mini": (15, 60),
    "gpt-4-turbo": (1000, 3000),
    "gpt-3.5-turbo": (50, 150),
    "o1": (1500, 6000),
    "o3-mini": (110, 440),
    # Anthropic
    "claude-opus-4-5": (500, 2500),
    "claude-sonnet-4-5": (300, 1500),
    "claude-haiku-4-5": (100, 500),
    # Gemini
    "gemini-2.5-pro": (125, 1000),
    "gemini-2.5-flash": (15, 60),
    "gemini-2.5-flash-lite": (7.5, 30),
}


def get_model_pricing(model: str) -> tuple[float, float] | None:
    """Look up pricing, tolerating dated model suffixes like ``-20250929``."""
    if model in MODEL_PRICING:
        return MODEL_PRICING[model]
    # Longest prefix wins so gpt-4o-mini doesn't match gpt-4o
    for known in sorted(MODEL_PRICING, key=len, reverse=True):
        if model.startswith(known):
            return MODEL_PRICING[known]
    return None


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> tuple[int, int]:
    """Return (input_cost_cents, output_cost_cents), rounded to whole cents."""
    pricing = get_model_pricing(model)
    if pricing is None:
        logger.warning(f"No pricing for model {model}, logging zero cost")
        return 0, 0
    input_price, output_price = pricing
    return (
        round(input_tokens / 1_000_000 * input_price),
        round(output_tokens / 1_000_000 * output_price),
    )


@dataclass
class UsageRecord:
    """One LLM call, ready to be persisted."""
    action: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: int | None = None
    success: bool = True
    error_message: str | None = None
    page_id: str | None = None
    page_url: str | None = None

    def to_model(self) -> AIUsageLog:
        input_cost, output_cost = calculate_cost(self.model, self.input_tokens, self.output_tokens)
        return AIUsageLog(
            action=self.action,
            page_id=self.page_id,
            page_url=self.page_url,
            provider=self.provider,
            model=self.model,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            input_cost_cents=input_cost,
            output_cost_cents=output_cost,
            request_duration_ms=self.duration_ms,
            success=self.success,
            error_message=self.error_message,
        )


class UsageLogger:
    """Writes usage records into ai_usage_logs through a sync session."""

    def __init__(self, session: Session):
        self.session = session

    def __call__(self, record: UsageRecord) -> None:
        self.log(record)

    def log(self, record: UsageRecord) -> None:
        # Committed together with the batch that made the call
        self.session.add(record.to_model())


class UsageCollector:
    """Buffers usage records so async callers can persist them afterwards."""

    def __init__(self):
        self.records: list[UsageRecord] = []

    def __call__(self, record: UsageRecord) -> None:
        self.records.append(record)

    def to_models(self) -> list[AIUsageLog]:
        return [record.to_model() for record in self.records]

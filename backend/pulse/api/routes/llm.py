"""LLM proxy routes so the dashboard never holds provider keys."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from pulse.api.auth import AuthContext
from pulse.api.deps import AppSettings, DbSession, require_permission
from pulse.repositories import PostgresUsageLogRepository
from pulse.services.llm_client import (
    SUPPORTED_MODELS,
    LLMClient,
    LLMError,
    ProviderNotConfiguredError,
    is_supported_model,
)
from pulse.services.usage import UsageCollector

logger = logging.getLogger(__name__)

router = APIRouter()


class CompletionRequest(BaseModel):
    prompt: str = Field(min_length=1)
    system: str | None = None
    model: str | None = None
    max_tokens: int = Field(default=1024, ge=1, le=8000)
    temperature: float = Field(default=0.3, ge=0, le=2)
    json_mode: bool = False
    action: str = "proxy_completion"
    page_id: str | None = None
    page_url: str | None = None


class CompletionResponse(BaseModel):
    content: str
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    duration_ms: int


class ModelInfo(BaseModel):
    model: str
    provider: str
    configured: bool


@router.get("/models", response_model=list[ModelInfo])
async def list_models(
    settings: AppSettings,
    auth: Annotated[AuthContext, Depends(require_permission("llm.use"))],
) -> list[ModelInfo]:
    available = LLMClient(settings).available_providers()
    return [
        ModelInfo(model=model, provider=provider, configured=available.get(provider, False))
        for provider, models in SUPPORTED_MODELS.items()
        for model in models
    ]


@router.post("/complete", response_model=CompletionResponse)
async def complete(
    request: CompletionRequest,
    db: DbSession,
    settings: AppSettings,
    auth: Annotated[AuthContext, Depends(require_permission("llm.use"))],
) -> CompletionResponse:
    """Run one completion against OpenAI, Anthropic or Gemini."""
    model = request.model or settings.llm_model
    if not is_supported_model(model):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unsupported model: {model}")

    collector = UsageCollector()
    client = LLMClient(settings, on_usage=collector)
    try:
        response = await run_in_threadpool(
            lambda: client.complete(
                request.prompt,
                system=request.system,
                model=model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                json_mode=request.json_mode,
                action=request.action,
                page_id=request.page_id,
                page_url=request.page_url,
            )
        )
    except ProviderNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LLMError as e:
        logger.error(f"Proxy completion with {model} failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    finally:
        await PostgresUsageLogRepository(db).save_many(collector.to_models())
        await db.commit()

    return CompletionResponse(
        content=response.content,
        provider=response.provider,
        model=response.model,
        input_tokens=response.input_tokens,
        output_tokens=response.output_tokens,
        duration_ms=response.duration_ms,
    )

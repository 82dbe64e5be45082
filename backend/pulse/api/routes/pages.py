"""Page detail, review queue and per-page generation routes."""

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from pulse.api.auth import AuthContext
from pulse.api.deps import AppSettings, DbSession, require_permission
from pulse.api.routes.sites import PageListResponse, PageSummaryResponse
from pulse.config import Settings
from pulse.database import SyncSessionLocal
from pulse.models import Page
from pulse.page_types import PageType, SchemaStatus
from pulse.prompts import RECOMMENDATIONS_PROMPT_NAME
from pulse.repositories import (
    PostgresPageRepository,
    PostgresPageSchemaRepository,
    PostgresSiteRepository,
    PostgresUsageLogRepository,
)
from pulse.services.llm_client import LLMClient, LLMError, ProviderNotConfiguredError, is_supported_model
from pulse.services.prompt_store import get_prompt_async
from pulse.services.recommendations import RecommendationService
from pulse.services.schema_generator import GenerationResult, generate_page_schema
from pulse.services.usage import UsageCollector

logger = logging.getLogger(__name__)

router = APIRouter()

PagesReader = Annotated[AuthContext, Depends(require_permission("pages.read"))]


class PageDetailResponse(BaseModel):
    id: str
    site_id: str
    url: str
    path: str
    title: str | None = None
    meta_description: str | None = None
    canonical_url: str | None = None
    status_code: int | None = None
    headings: dict | None = None
    meta_tags: dict | None = None
    links: dict | None = None
    main_content: str | None = None
    page_type: str | None = None
    classification_method: str | None = None
    schema_status: str
    schema_errors: list | None = None
    recommended_schema: dict | None = None
    schema_generated_at: datetime | None = None
    crawled_at: datetime

    class Config:
        from_attributes = True


class UpdatePageTypeRequest(BaseModel):
    page_type: str


class GenerateSchemaRequest(BaseModel):
    model: str | None = None


class GenerationResponse(BaseModel):
    page_type: str | None = None
    status: str
    method: str
    json_ld: dict[str, Any] | None = Field(default=None, serialization_alias="schema")
    errors: list[dict[str, Any]] = []
    reason: str | None = None

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerationResponse":
        return cls(
            page_type=result.page_type,
            status=result.status,
            method=result.method,
            json_ld=result.graph,
            errors=result.errors,
            reason=result.reason,
        )


class RecommendationRequest(BaseModel):
    model: str | None = None


class PageSchemaResponse(BaseModel):
    id: str
    schema_type: str
    schema_json: dict
    generation_method: str
    is_valid: bool
    validation_errors: list | None = None
    updated_at: datetime

    class Config:
        from_attributes = True


async def get_page_or_404(db: DbSession, page_id: str, auth: AuthContext) -> Page:
    page = await PostgresPageRepository(db).get_by_id(page_id)
    if not page:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")
    site = await PostgresSiteRepository(db).get_by_id(page.site_id)
    auth.require_account(site.account_id if site else None)
    return page


def _generate_in_thread(page_id: str, settings: Settings, method: str, model: str | None) -> GenerationResult:
    session = SyncSessionLocal()
    try:
        return generate_page_schema(session, page_id, settings, method=method, model=model)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def _run_generation(page_id: str, settings: Settings, method: str, model: str | None) -> GenerationResponse:
    try:
        result = await run_in_threadpool(_generate_in_thread, page_id, settings, method, model)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ProviderNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LLMError as e:
        logger.error(f"Schema generation failed for page {page_id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return GenerationResponse.from_result(result)


@router.get("/review-queue", response_model=PageListResponse)
async def get_review_queue(
    db: DbSession,
    auth: PagesReader,
    site_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> PageListResponse:
    """Pages whose generated schema needs a human look."""
    if site_id:
        site = await PostgresSiteRepository(db).get_by_id(site_id)
        if not site:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
        auth.require_account(site.account_id)
    elif not auth.is_admin:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="site_id is required")

    pages, total = await PostgresPageRepository(db).find(
        site_id=site_id,
        schema_status=[SchemaStatus.NEEDS_REVIEW, SchemaStatus.PREFLIGHT_FAILED],
        limit=limit,
        offset=offset,
    )
    return PageListResponse(pages=[PageSummaryResponse.model_validate(p) for p in pages], total=total)


@router.get("/{page_id}", response_model=PageDetailResponse)
async def get_page(page_id: str, db: DbSession, auth: PagesReader) -> PageDetailResponse:
    return PageDetailResponse.model_validate(await get_page_or_404(db, page_id, auth))


@router.patch("/{page_id}/type", response_model=PageDetailResponse)
async def update_page_type(
    page_id: str,
    request: UpdatePageTypeRequest,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("pages.write"))],
) -> PageDetailResponse:
    """Manually reclassify a page; its schema is regenerated on the next batch."""
    page_type = PageType.parse(request.page_type)
    if page_type is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid page type: {request.page_type}")

    page = await get_page_or_404(db, page_id, auth)
    page.page_type = page_type.value
    page.classification_method = "manual"
    page.schema_status = SchemaStatus.PENDING
    await PostgresPageRepository(db).save(page)
    return PageDetailResponse.model_validate(page)


@router.post("/{page_id}/schema", response_model=GenerationResponse)
async def generate_schema(
    page_id: str,
    db: DbSession,
    settings: AppSettings,
    auth: Annotated[AuthContext, Depends(require_permission("meta.write"))],
) -> GenerationResponse:
    """Generate template schema for one page (MEDIUM tier included)."""
    await get_page_or_404(db, page_id, auth)
    return await _run_generation(page_id, settings, "template", None)


@router.post("/{page_id}/schema/llm", response_model=GenerationResponse)
async def generate_schema_with_llm(
    page_id: str,
    request: GenerateSchemaRequest,
    db: DbSession,
    settings: AppSettings,
    auth: Annotated[AuthContext, Depends(require_permission("meta.write"))],
) -> GenerationResponse:
    """Generate the full JSON-LD graph for one page with an LLM."""
    if request.model and not is_supported_model(request.model):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unsupported model: {request.model}")
    await get_page_or_404(db, page_id, auth)
    return await _run_generation(page_id, settings, "llm", request.model)


@router.get("/{page_id}/schemas", response_model=list[PageSchemaResponse])
async def get_page_schemas(page_id: str, db: DbSession, auth: PagesReader) -> list[PageSchemaResponse]:
    await get_page_or_404(db, page_id, auth)
    schemas = await PostgresPageSchemaRepository(db).get_by_page(page_id)
    return [PageSchemaResponse.model_validate(s) for s in schemas]


@router.post("/{page_id}/recommendations")
async def get_recommendations(
    page_id: str,
    request: RecommendationRequest,
    db: DbSession,
    settings: AppSettings,
    auth: Annotated[AuthContext, Depends(require_permission("meta.read"))],
) -> dict[str, Any]:
    """Ask an LLM for title, description and schema recommendations."""
    if request.model and not is_supported_model(request.model):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unsupported model: {request.model}")

    page = await get_page_or_404(db, page_id, auth)
    context = page.to_context()
    context["recommended_schema"] = page.recommended_schema

    prompt = await get_prompt_async(db, RECOMMENDATIONS_PROMPT_NAME)
    collector = UsageCollector()
    service = RecommendationService(LLMClient(settings, on_usage=collector), prompt)

    try:
        recommendations = await run_in_threadpool(service.generate, context, request.model)
    except ProviderNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LLMError as e:
        logger.error(f"Recommendations failed for {page.url}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    finally:
        # Failed calls are logged too
        await PostgresUsageLogRepository(db).save_many(collector.to_models())
        await db.commit()

    return recommendations

"""Site management routes: crawl, classify and schema batches."""

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from pulse.api.auth import AuthContext
from pulse.api.deps import DbSession, require_permission
from pulse.models import Page, Site
from pulse.page_types import CrawlStatus, SchemaStatus
from pulse.repositories import PostgresAccountRepository, PostgresPageRepository, PostgresSiteRepository
from pulse.services.progress import get_progress_service
from pulse.services.url_validator import URLValidator
from pulse.workers.tasks import classify_site, crawl_site, generate_site_schemas

logger = logging.getLogger(__name__)

router = APIRouter()

SitesReader = Annotated[AuthContext, Depends(require_permission("sites.read"))]
SitesWriter = Annotated[AuthContext, Depends(require_permission("sites.write"))]


class CreateSiteRequest(BaseModel):
    """Request to add a site (or re-crawl an existing one)."""

    url: str
    account_id: str | None = None
    page_limit: int | None = Field(default=None, ge=1, le=5000)
    exclude_paths: list[str] | None = None
    run_classifier: bool = True


class UpdateSiteRequest(BaseModel):
    account_id: str | None = None
    page_limit: int | None = Field(default=None, ge=1, le=5000)
    exclude_paths: list[str] | None = None
    site_profile: dict[str, Any] | None = None


class SiteResponse(BaseModel):
    """Site information response."""

    id: str
    account_id: str | None = None
    url: str
    domain: str
    page_limit: int
    exclude_paths: list[str] | None = None
    crawl_status: str
    pages_crawled: int
    current_url: str | None = None
    error_message: str | None = None
    site_profile: dict[str, Any] | None = None
    created_at: datetime
    crawl_started_at: datetime | None = None
    crawl_completed_at: datetime | None = None

    class Config:
        from_attributes = True


class SiteStatusResponse(BaseModel):
    crawl_status: str
    pages_crawled: int
    page_limit: int
    percent_complete: float
    current_url: str | None = None
    error_message: str | None = None


class CrawlProgressResponse(BaseModel):
    """Real-time progress response."""

    stage: str  # CRAWL, CLASSIFY, SCHEMAS
    current: int
    total: int
    percent: float
    elapsed_seconds: float
    eta_seconds: float | None = None
    current_url: str | None = None
    extra: str | None = None
    updated_at: str | None = None


class TaskResponse(BaseModel):
    task_id: str
    status: str = "queued"


class ClassifyRequest(BaseModel):
    reclassify: bool = False


class SchemaBatchRequest(BaseModel):
    include_medium: bool = False
    retry: bool = False
    path: str | None = None


class PageSummaryResponse(BaseModel):
    id: str
    url: str
    path: str
    title: str | None = None
    page_type: str | None = None
    classification_method: str | None = None
    schema_status: str
    status_code: int | None = None
    crawled_at: datetime

    class Config:
        from_attributes = True


class PageListResponse(BaseModel):
    pages: list[PageSummaryResponse]
    total: int


def percent_complete(site: Site) -> float:
    """Crawl progress against the page limit; 100 once classification starts."""
    if site.crawl_status in (CrawlStatus.CLASSIFYING, CrawlStatus.COMPLETE):
        return 100.0
    if site.crawl_status == CrawlStatus.PENDING or not site.page_limit:
        return 0.0
    return round(min(site.pages_crawled / site.page_limit * 100, 99.0), 1)


async def get_site_or_404(db: DbSession, site_id: str, auth: AuthContext) -> Site:
    site = await PostgresSiteRepository(db).get_by_id(site_id)
    if not site:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Site not found")
    auth.require_account(site.account_id)
    return site


@router.get("", response_model=list[SiteResponse])
async def list_sites(
    db: DbSession,
    auth: SitesReader,
    account_id: str | None = None,
    crawl_status: Annotated[str | None, Query(alias="status")] = None,
) -> list[SiteResponse]:
    """List sites visible to the caller."""
    if account_id:
        auth.require_account(account_id)
    sites = await PostgresSiteRepository(db).get_all(account_id=account_id, crawl_status=crawl_status)
    return [SiteResponse.model_validate(s) for s in sites if auth.can_access_account(s.account_id)]


@router.post("", response_model=SiteResponse, status_code=status.HTTP_201_CREATED)
async def create_site(
    request: CreateSiteRequest,
    db: DbSession,
    auth: SitesWriter,
    response: Response,
) -> SiteResponse:
    """Add a site and start crawling it.

    An existing domain is re-crawled instead (200 rather than 201).
    """
    site_repo = PostgresSiteRepository(db)

    validation = await URLValidator().validate(request.url)
    if not validation.is_valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=validation.error_message)

    if request.account_id:
        auth.require_account(request.account_id)
        if not await PostgresAccountRepository(db).get_by_id(request.account_id):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account not found")

    site = await site_repo.get_by_domain(validation.domain)
    if site:
        auth.require_account(site.account_id)
        if site.crawl_status in (CrawlStatus.IN_PROGRESS, CrawlStatus.CLASSIFYING):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A crawl is already running for this site")
        site.url = validation.url
        response.status_code = status.HTTP_200_OK
    else:
        site = Site(url=validation.url, domain=validation.domain)

    if request.account_id:
        site.account_id = request.account_id
    if request.page_limit:
        site.page_limit = request.page_limit
    if request.exclude_paths is not None:
        site.exclude_paths = request.exclude_paths
    site.crawl_status = CrawlStatus.PENDING
    site.error_message = None
    await site_repo.save(site)

    # Commit before dispatching so the worker sees the row
    await db.commit()

    task = crawl_site.delay(site.id, request.run_classifier)
    site.celery_task_id = task.id
    await site_repo.save(site)

    logger.info(f"Queued crawl of {site.url} ({task.id})")
    return SiteResponse.model_validate(site)


@router.get("/{site_id}", response_model=SiteResponse)
async def get_site(site_id: str, db: DbSession, auth: SitesReader) -> SiteResponse:
    return SiteResponse.model_validate(await get_site_or_404(db, site_id, auth))


@router.patch("/{site_id}", response_model=SiteResponse)
async def update_site(
    site_id: str,
    request: UpdateSiteRequest,
    db: DbSession,
    auth: SitesWriter,
) -> SiteResponse:
    site = await get_site_or_404(db, site_id, auth)
    updates = request.model_dump(exclude_unset=True)
    if updates.get("account_id"):
        auth.require_account(updates["account_id"])
    for name, value in updates.items():
        setattr(site, name, value)
    await PostgresSiteRepository(db).save(site)
    return SiteResponse.model_validate(site)


@router.delete("/{site_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_site(site_id: str, db: DbSession, auth: SitesWriter) -> None:
    """Delete a site with its pages and schemas."""
    await get_site_or_404(db, site_id, auth)
    await PostgresSiteRepository(db).delete(site_id)


@router.get("/{site_id}/status", response_model=SiteStatusResponse)
async def get_site_status(site_id: str, db: DbSession, auth: SitesReader) -> SiteStatusResponse:
    site = await get_site_or_404(db, site_id, auth)
    return SiteStatusResponse(
        crawl_status=site.crawl_status,
        pages_crawled=site.pages_crawled,
        page_limit=site.page_limit,
        percent_complete=percent_complete(site),
        current_url=site.current_url,
        error_message=site.error_message,
    )


@router.get("/{site_id}/progress", response_model=CrawlProgressResponse | None)
async def get_site_progress(site_id: str, db: DbSession, auth: SitesReader) -> CrawlProgressResponse | None:
    """Latest progress snapshot of a running crawl, classification or schema batch."""
    await get_site_or_404(db, site_id, auth)
    progress = get_progress_service().get(site_id)
    if not progress:
        return None
    return CrawlProgressResponse(**progress)


@router.post("/{site_id}/classify", response_model=TaskResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_classification(
    site_id: str,
    request: ClassifyRequest,
    db: DbSession,
    auth: SitesWriter,
) -> TaskResponse:
    site = await get_site_or_404(db, site_id, auth)
    if site.crawl_status in (CrawlStatus.IN_PROGRESS, CrawlStatus.CLASSIFYING):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Site is still being crawled or classified")
    task = classify_site.delay(site_id, request.reclassify)
    return TaskResponse(task_id=task.id)


@router.post("/{site_id}/schemas", response_model=TaskResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_schema_batch(
    site_id: str,
    request: SchemaBatchRequest,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("meta.write"))],
) -> TaskResponse:
    await get_site_or_404(db, site_id, auth)
    task = generate_site_schemas.delay(site_id, request.include_medium, request.retry, request.path)
    return TaskResponse(task_id=task.id)


@router.get("/{site_id}/classification")
async def get_classification_summary(site_id: str, db: DbSession, auth: SitesReader) -> dict:
    """Page counts per type plus the number still unclassified."""
    await get_site_or_404(db, site_id, auth)
    counts = await PostgresPageRepository(db).count_by(site_id, Page.page_type)
    by_type = {k: v for k, v in counts.items() if k is not None}
    return {
        "total": sum(counts.values()),
        "unclassified": counts.get(None, 0),
        "by_type": dict(sorted(by_type.items(), key=lambda item: item[1], reverse=True)),
    }


@router.get("/{site_id}/schema-summary")
async def get_schema_summary(site_id: str, db: DbSession, auth: SitesReader) -> dict:
    """Page counts per schema status."""
    await get_site_or_404(db, site_id, auth)
    counts = await PostgresPageRepository(db).count_by(site_id, Page.schema_status)
    summary = {status_value: counts.get(status_value, 0) for status_value in SchemaStatus.ALL}
    summary["total"] = sum(counts.values())
    return summary


@router.get("/{site_id}/pages", response_model=PageListResponse)
async def list_site_pages(
    site_id: str,
    db: DbSession,
    auth: Annotated[AuthContext, Depends(require_permission("pages.read"))],
    page_type: str | None = None,
    schema_status: str | None = None,
    search: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> PageListResponse:
    await get_site_or_404(db, site_id, auth)
    pages, total = await PostgresPageRepository(db).find(
        site_id=site_id,
        page_type=page_type,
        schema_status=schema_status,
        search=search,
        limit=limit,
        offset=offset,
    )
    return PageListResponse(pages=[PageSummaryResponse.model_validate(p) for p in pages], total=total)

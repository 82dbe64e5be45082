"""Crawl a site into page_index rows (shared by the worker and the CLI)."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.orm import Session

from pulse.config import Settings
from pulse.models import Page, Site
from pulse.page_types import SchemaStatus
from pulse.services.crawler import CrawlerService, CrawlResult

logger = logging.getLogger(__name__)

PAGE_FIELDS = (
    "path", "status_code", "title", "meta_description", "canonical_url", "meta_tags",
    "headings", "structured_content", "links", "main_content", "html_content", "cleaned_html",
)


def store_page(session: Session, site_id: str, record: dict[str, Any]) -> Page:
    """Insert or refresh the page row for (site_id, url)."""
    page = session.query(Page).filter(Page.site_id == site_id, Page.url == record["url"]).first()
    if page is None:
        page = Page(site_id=site_id, url=record["url"])
        session.add(page)
    elif page.html_content != record["html_content"]:
        # Content changed, so the stored schema is stale
        page.schema_status = SchemaStatus.PENDING

    for name in PAGE_FIELDS:
        setattr(page, name, record[name])
    page.crawled_at = datetime.now(timezone.utc)
    return page


def crawl_and_store(
    session: Session,
    site: Site,
    settings: Settings,
    on_progress: Callable[[int, int, str], None] | None = None,
) -> CrawlResult:
    """Crawl ``site`` and commit each page as it arrives.

    ``on_progress`` gets (crawled, expected_total, url).
    """
    crawl_start = time.time()
    page_limit = site.page_limit or settings.default_page_limit
    logger.info(f"=== Starting crawl for {site.url} ===")

    def on_page(record: dict[str, Any]) -> None:
        store_page(session, site.id, record)
        site.pages_crawled += 1
        site.current_url = record["url"]
        session.commit()

    def report(crawled: int, queued: int, url: str) -> None:
        if on_progress:
            on_progress(crawled, min(page_limit, crawled + queued), url)

    crawler = CrawlerService(settings, on_page=on_page, on_progress=report)
    result = crawler.crawl(site.url, page_limit=page_limit, exclude_paths=site.exclude_paths)

    logger.info(
        f"=== Crawl complete: {result.pages_crawled} pages in {time.time() - crawl_start:.1f}s "
        f"({result.pages_skipped} skipped, {len(result.failed_urls)} failed) ==="
    )
    return result

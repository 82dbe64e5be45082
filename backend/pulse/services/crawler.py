"""Web crawler service for fetching practice websites page by page."""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from pulse.config import Settings
from pulse.services.browser import BrowserService
from pulse.services.page_parser import clean_html, parse_page
from pulse.services.url_queue import UrlQueue

logger = logging.getLogger(__name__)


# Paths that never hold crawlable HTML
SKIP_EXTENSIONS = (
    ".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico",
    ".css", ".js", ".xml", ".json", ".zip", ".mp3", ".mp4", ".mov",
    ".doc", ".docx", ".xls", ".xlsx", ".woff", ".woff2", ".ttf",
)


@dataclass
class FetchResult:
    """Raw result of fetching one URL."""
    url: str
    final_url: str
    status_code: int
    html: str | None = None
    error: str | None = None

    @property
    def is_html(self) -> bool:
        return self.html is not None


@dataclass
class CrawlResult:
    """Summary of a finished crawl."""
    pages_crawled: int = 0
    pages_skipped: int = 0
    failed_urls: list[str] = field(default_factory=list)


class CrawlerService:
    """Sequential breadth-first crawler restricted to a single domain."""

    def __init__(
        self,
        settings: Settings,
        on_page: Callable[[dict[str, Any]], None] | None = None,
        on_progress: Callable[[int, int, str], None] | None = None,
        browser: BrowserService | None = None,
    ):
        self.settings = settings
        self.timeout = settings.crawl_timeout_seconds
        self.delay = settings.crawl_delay_seconds
        self.max_retries = settings.crawl_max_retries
        self.user_agent = settings.user_agent
        self.on_page = on_page  # Called with each parsed page, used to persist rows
        self.on_progress = on_progress
        self._browser = browser

    @property
    def browser(self) -> BrowserService:
        if self._browser is None:
            self._browser = BrowserService(self.settings)
        return self._browser

    def _report_progress(self, crawled: int, queued: int, url: str) -> None:
        if self.on_progress:
            self.on_progress(crawled, queued, url)

    def crawl(
        self,
        start_url: str,
        page_limit: int | None = None,
        exclude_paths: list[str] | None = None,
    ) -> CrawlResult:
        """Crawl a site breadth-first from ``start_url``.

        Stops when ``page_limit`` pages have been stored or the queue is empty.
        """
        limit = page_limit or self.settings.default_page_limit
        queue = UrlQueue(start_url, exclude_paths)
        result = CrawlResult()

        with httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
        ) as client:
            while queue.has_more() and result.pages_crawled < limit:
                url = queue.next()
                self._report_progress(result.pages_crawled, queue.size, url)

                if urlparse(url).path.lower().endswith(SKIP_EXTENSIONS):
                    result.pages_skipped += 1
                    continue

                fetched = self.fetch(client, url)
                if not fetched.is_html:
                    if fetched.error:
                        result.failed_urls.append(url)
                    logger.info(f"Skipped {url} (not HTML or error: {fetched.error})")
                    result.pages_skipped += 1
                    time.sleep(self.delay)
                    continue

                parsed = parse_page(fetched.html, fetched.final_url)

                if self._canonical_points_elsewhere(parsed.get("canonical_url"), fetched.final_url):
                    logger.info(f"Skipped {url} (canonical points to {parsed['canonical_url']})")
                    result.pages_skipped += 1
                    time.sleep(self.delay)
                    continue

                page = self._build_page_record(fetched, parsed)
                if self.on_page:
                    self.on_page(page)

                added = sum(1 for link in parsed["internal_links"] if queue.add(link))
                result.pages_crawled += 1
                logger.info(
                    f"[{result.pages_crawled}/{limit}] {fetched.final_url} "
                    f"(status {fetched.status_code}, {added} new links)"
                )
                self._report_progress(result.pages_crawled, queue.size, url)

                # Polite delay between requests
                time.sleep(self.delay)

        return result

    def fetch(self, client: httpx.Client, url: str) -> FetchResult:
        """Fetch a URL with retries, falling back to Playwright for JS pages."""
        response = None
        last_error = None

        for attempt in range(self.max_retries + 1):
            try:
                response = client.get(url)
                break
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                last_error = str(e)
                if attempt < self.max_retries:
                    backoff = 2 ** attempt  # 1s, 2s
                    logger.warning(f"Retry {attempt + 1}/{self.max_retries} for {url} after {backoff}s: {e}")
                    time.sleep(backoff)
            except httpx.HTTPError as e:
                last_error = str(e)
                break

        if response is None:
            return FetchResult(url=url, final_url=url, status_code=0, error=last_error)

        final_url = str(response.url)
        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type and "xhtml" not in content_type:
            return FetchResult(url=url, final_url=final_url, status_code=response.status_code)

        html_content = response.text
        status_code = response.status_code

        if self.settings.js_render_fallback and self._needs_javascript_rendering(html_content):
            try:
                html_content, rendered_status = self.browser.render_page_sync(final_url)
                status_code = rendered_status or status_code
            except Exception as e:
                logger.warning(f"Playwright rendering failed for {final_url}: {e}, using original HTML")

        return FetchResult(url=url, final_url=final_url, status_code=status_code, html=html_content)

    def _needs_javascript_rendering(self, html_content: str) -> bool:
        """Detect pages whose body is empty until JavaScript runs."""
        soup = BeautifulSoup(html_content, "lxml")
        body = soup.find("body")
        if not body:
            return True

        if len(body.get_text(strip=True)) < 100:
            return True

        for marker_id in ("root", "app", "__next", "__nuxt", "___gatsby"):
            element = soup.find("div", id=marker_id)
            if element and len(element.get_text(strip=True)) < 50:
                logger.info(f"Found empty SPA marker #{marker_id}, needs JS rendering")
                return True

        return False

    @staticmethod
    def _canonical_points_elsewhere(canonical_url: str | None, page_url: str) -> bool:
        if not canonical_url:
            return False
        canonical = urljoin(page_url, canonical_url)
        return canonical.rstrip("/") != page_url.rstrip("/")

    @staticmethod
    def _build_page_record(fetched: FetchResult, parsed: dict[str, Any]) -> dict[str, Any]:
        """Shape a fetched page into the page_index row fields."""
        url = UrlQueue.normalize(fetched.final_url) or fetched.final_url
        return {
            "url": url,
            "path": urlparse(url).path or "/",
            "status_code": fetched.status_code,
            "title": parsed["title"],
            "meta_description": parsed["meta_description"],
            "canonical_url": parsed["canonical_url"],
            "meta_tags": parsed["meta_tags"],
            "headings": parsed["headings"],
            "structured_content": parsed["structured_content"],
            "links": {
                "internal": parsed["internal_links"],
                "external": parsed["external_links"],
            },
            "main_content": parsed["main_content"],
            "html_content": fetched.html,
            "cleaned_html": clean_html(fetched.html),
        }

"""Tests for the crawler, using httpx's mock transport instead of the network."""

import httpx
import pytest

from pulse.services import crawler as crawler_module
from pulse.services.crawler import CrawlerService, FetchResult

BODY_TEXT = "<p>" + "Glow Aesthetics offers injectables, lasers and skin care in Austin. " * 3 + "</p>"

PAGES = {
    "/": f"""<html><head><title>Home | Glow</title></head><body><main>{BODY_TEXT}
        <a href="/botox">Botox</a>
        <a href="/about">About</a>
        <a href="/brochure.pdf">Brochure</a>
        <a href="/blog/post">Blog post</a>
        <a href="https://other.com/x">Elsewhere</a>
        </main></body></html>""",
    "/botox": f"<html><head><title>Botox | Glow</title></head><body><main><h1>Botox</h1>{BODY_TEXT}</main></body></html>",
    "/about": f"""<html><head><link rel="canonical" href="https://example.com/"></head>
        <body><main>{BODY_TEXT}</main></body></html>""",
}


def site_handler(request: httpx.Request) -> httpx.Response:
    html = PAGES.get(request.url.path)
    if html is None:
        return httpx.Response(404, html="<html><body>Not found</body></html>")
    return httpx.Response(200, html=html)


@pytest.fixture
def mock_transport(monkeypatch):
    """Route the crawler's httpx.Client through a handler; returns a setter."""
    real_client = httpx.Client
    monkeypatch.setattr(crawler_module.time, "sleep", lambda seconds: None)

    def use(handler):
        transport = httpx.MockTransport(handler)
        monkeypatch.setattr(crawler_module.httpx, "Client", lambda **kwargs: real_client(transport=transport, **kwargs))

    return use


class TestCrawl:
    """Breadth-first crawl over a mocked site."""

    def test_crawls_same_domain_pages(self, settings, mock_transport):
        mock_transport(site_handler)
        stored = []
        crawler = CrawlerService(settings, on_page=stored.append)

        result = crawler.crawl("https://example.com/", page_limit=10, exclude_paths=["/blog/*"])

        assert [page["url"] for page in stored] == ["https://example.com/", "https://example.com/botox"]
        assert result.pages_crawled == 2
        # /about canonicalizes to the homepage and the PDF is never fetched
        assert result.pages_skipped == 2
        assert result.failed_urls == []

    def test_page_record_shape(self, settings, mock_transport):
        mock_transport(site_handler)
        stored = []
        CrawlerService(settings, on_page=stored.append).crawl("https://example.com/", page_limit=10)

        botox = next(page for page in stored if page["path"] == "/botox")
        assert botox["status_code"] == 200
        assert botox["title"] == "Botox | Glow"
        assert botox["headings"]["h1"] == ["Botox"]
        assert "https://example.com/" not in botox["links"]["external"]
        assert botox["cleaned_html"].startswith("<h1>Botox</h1>")
        assert "<html>" in botox["html_content"]

    def test_page_limit(self, settings, mock_transport):
        mock_transport(site_handler)
        stored = []
        result = CrawlerService(settings, on_page=stored.append).crawl("https://example.com/", page_limit=1)
        assert result.pages_crawled == 1
        assert len(stored) == 1

    def test_progress_reported(self, settings, mock_transport):
        mock_transport(site_handler)
        calls = []
        CrawlerService(settings, on_progress=lambda *args: calls.append(args)).crawl(
            "https://example.com/", page_limit=1
        )
        assert calls[0] == (0, 0, "https://example.com/")
        assert calls[-1][0] == 1

    def test_network_errors_recorded(self, settings, mock_transport):
        attempts = []

        def handler(request):
            attempts.append(request.url.path)
            raise httpx.ConnectError("connection refused", request=request)

        mock_transport(handler)
        result = CrawlerService(settings).crawl("https://example.com/", page_limit=5)

        assert result.pages_crawled == 0
        assert result.failed_urls == ["https://example.com/"]
        # One try plus crawl_max_retries
        assert len(attempts) == 2

    def test_non_html_skipped(self, settings, mock_transport):
        mock_transport(lambda request: httpx.Response(200, json={"ok": True}))
        result = CrawlerService(settings).crawl("https://example.com/", page_limit=5)
        assert result.pages_crawled == 0
        assert result.pages_skipped == 1
        assert result.failed_urls == []

    def test_redirect_final_url_stored(self, settings, mock_transport):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://example.com/botox"})
            return site_handler(request)

        mock_transport(handler)
        stored = []
        CrawlerService(settings, on_page=stored.append).crawl("https://example.com/old", page_limit=1)
        assert stored[0]["url"] == "https://example.com/botox"


class TestDetection:
    def test_spa_shell_needs_rendering(self, settings):
        crawler = CrawlerService(settings)
        assert crawler._needs_javascript_rendering('<html><body><div id="root"></div></body></html>')
        assert not crawler._needs_javascript_rendering(f"<html><body>{BODY_TEXT}</body></html>")

    def test_canonical_points_elsewhere(self):
        assert not CrawlerService._canonical_points_elsewhere(None, "https://example.com/a")
        assert not CrawlerService._canonical_points_elsewhere("/a/", "https://example.com/a")
        assert CrawlerService._canonical_points_elsewhere("https://example.com/b", "https://example.com/a")

    def test_fetch_result_is_html(self):
        assert FetchResult(url="u", final_url="u", status_code=200, html="<p>").is_html
        assert not FetchResult(url="u", final_url="u", status_code=0, error="timeout").is_html

"""Route tests with the database and caller swapped out via dependency overrides."""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from pulse.api.auth import AuthContext
from pulse.api.deps import get_current_user
from pulse.api.routes.admin import date_range
from pulse.api.routes.link_plans import month_start, quarter_bounds
from pulse.api.routes.sites import percent_complete
from pulse.config import get_settings
from pulse.database import get_db
from pulse.main import app
from pulse.models import AIUsageLog, Site
from pulse.repositories import PostgresSiteRepository, PostgresUsageLogRepository
from pulse.services.llm_client import LLMClient, LLMResponse
from pulse.services.url_validator import URLValidator, ValidationResult
from pulse.workers.tasks import crawl_site

BOOTSTRAP_TOKEN = "bootstrap-secret"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def api_settings(settings):
    settings.admin_bootstrap_token = BOOTSTRAP_TOKEN
    return settings


@pytest.fixture
def client(mock_db, api_settings):
    """TestClient backed by a mock session; callers authenticate for real."""

    async def override_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_settings] = lambda: api_settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {BOOTSTRAP_TOKEN}"}


@pytest.fixture
def as_user(client):
    """Replace the caller with a non-admin holding the given permissions."""

    def use(*permissions, account_ids=("acct-1",)):
        auth = AuthContext(user=None, permissions=set(permissions), account_ids=set(account_ids))
        app.dependency_overrides[get_current_user] = lambda: auth
        return client

    return use


# =============================================================================
# Health and authentication
# =============================================================================

class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert set(body["providers"]) == {"openai", "anthropic", "gemini"}

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get("/api/sites")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_unknown_token(self, client, mock_db):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_db.execute.return_value = result

        response = client.get("/api/sites", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or revoked token"

    def test_bootstrap_token_is_admin(self, client, admin_headers):
        response = client.get("/api/llm/models", headers=admin_headers)
        assert response.status_code == 200
        assert {"model": "gpt-4o", "provider": "openai", "configured": True} in response.json()
        assert {"model": "claude-sonnet-4-5", "provider": "anthropic", "configured": False} in response.json()

    def test_missing_permission(self, as_user):
        response = as_user("sites.read").get("/api/llm/models")
        assert response.status_code == 403
        assert response.json()["detail"] == "Missing permission: llm.use"


# =============================================================================
# Sites and pages
# =============================================================================

class TestSites:
    def test_invalid_url_rejected(self, client, admin_headers):
        response = client.post("/api/sites", json={"url": "not a url at all"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid domain name"

    def test_existing_domain_recrawled_with_new_url(self, client, admin_headers):
        existing = Site(
            id="site-1",
            url="http://example.com",
            domain="example.com",
            crawl_status="complete",
            page_limit=200,
            pages_crawled=40,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        validation = ValidationResult(is_valid=True, url="https://www.example.com", domain="example.com")

        with patch.object(URLValidator, "validate", AsyncMock(return_value=validation)), \
                patch.object(PostgresSiteRepository, "get_by_domain", AsyncMock(return_value=existing)), \
                patch.object(crawl_site, "delay", return_value=MagicMock(id="task-1")) as delay:
            response = client.post("/api/sites", json={"url": "www.example.com"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["url"] == "https://www.example.com"
        assert existing.url == "https://www.example.com"
        assert existing.crawl_status == "pending"
        delay.assert_called_once_with("site-1", True)

    def test_create_requires_write(self, as_user):
        response = as_user("sites.read").post("/api/sites", json={"url": "example.com"})
        assert response.status_code == 403

    @pytest.mark.parametrize(
        "status,crawled,expected",
        [
            ("pending", 0, 0.0),
            ("in_progress", 50, 25.0),
            ("in_progress", 400, 99.0),
            ("classifying", 10, 100.0),
            ("complete", 10, 100.0),
        ],
    )
    def test_percent_complete(self, status, crawled, expected):
        site = Site(url="https://a.com", domain="a.com", crawl_status=status, pages_crawled=crawled, page_limit=200)
        assert percent_complete(site) == expected


class TestPages:
    def test_review_queue_needs_site_for_non_admin(self, as_user):
        response = as_user("pages.read").get("/api/pages/review-queue")
        assert response.status_code == 400
        assert response.json()["detail"] == "site_id is required"


# =============================================================================
# Link plans
# =============================================================================

class TestLinkPlans:
    def test_quarter_bounds(self):
        assert quarter_bounds(2025, 1) == (date(2025, 1, 1), date(2025, 4, 1))
        assert quarter_bounds(2025, 4) == (date(2025, 10, 1), date(2026, 1, 1))
        with pytest.raises(ValueError):
            quarter_bounds(2025, 5)

    def test_month_start(self):
        assert month_start(date(2025, 7, 19)) == date(2025, 7, 1)

    def test_quarter_requires_year(self, as_user):
        response = as_user("links.read").get("/api/link-plans", params={"quarter": 2})
        assert response.status_code == 400
        assert response.json()["detail"] == "quarter requires year"

    def test_bad_quarter(self, as_user):
        response = as_user("links.read").get("/api/link-plans", params={"quarter": 7, "year": 2025})
        assert response.status_code == 400

    def test_other_account_forbidden(self, as_user):
        response = as_user("links.read").get("/api/link-plans", params={"account_id": "acct-2"})
        assert response.status_code == 403


# =============================================================================
# Usage reporting
# =============================================================================

class TestUsage:
    def test_date_range_is_inclusive(self):
        start, end = date_range(date(2025, 1, 1), date(2025, 1, 31))
        assert start == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert end == datetime(2025, 2, 1, tzinfo=timezone.utc)
        assert date_range(None, None) == (None, None)

    def test_date_range_rejects_reversed(self):
        with pytest.raises(HTTPException) as exc_info:
            date_range(date(2025, 2, 1), date(2025, 1, 1))
        assert exc_info.value.status_code == 400

    def test_export_csv(self, client, admin_headers):
        log = AIUsageLog(
            action="page_classification",
            provider="openai",
            model="gpt-4o-mini",
            input_tokens=1200,
            output_tokens=5,
            input_cost_cents=0.02,
            output_cost_cents=0.0,
            request_duration_ms=640,
            success=True,
            page_url="https://example.com/botox",
            created_at=datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc),
        )
        with patch.object(PostgresUsageLogRepository, "find", AsyncMock(return_value=[log])):
            response = client.get("/api/admin/usage/export", headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        lines = response.text.strip().splitlines()
        assert len(lines) == 2
        assert "page_classification,openai,gpt-4o-mini,1200,5" in lines[1]

    def test_usage_requires_permission(self, as_user):
        assert as_user("sites.read").get("/api/admin/usage").status_code == 403


# =============================================================================
# LLM proxy
# =============================================================================

class TestLLMProxy:
    def test_unsupported_model(self, client, admin_headers):
        response = client.post("/api/llm/complete", json={"prompt": "hi", "model": "gpt-9"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Unsupported model: gpt-9"

    def test_unconfigured_provider_logged(self, client, admin_headers, mock_db):
        response = client.post(
            "/api/llm/complete", json={"prompt": "hi", "model": "claude-haiku-4-5"}, headers=admin_headers
        )
        assert response.status_code == 400
        logged = mock_db.add_all.call_args.args[0]
        assert len(logged) == 1
        assert logged[0].success is False
        assert logged[0].provider == "anthropic"

    def test_completion(self, client, admin_headers):
        reply = LLMResponse(content="Hello", provider="openai", model="gpt-4o", input_tokens=3, output_tokens=1, duration_ms=42)
        with patch.object(LLMClient, "complete", return_value=reply) as complete:
            response = client.post(
                "/api/llm/complete",
                json={"prompt": "Say hello", "model": "gpt-4o", "max_tokens": 10},
                headers=admin_headers,
            )

        assert response.status_code == 200
        assert response.json()["content"] == "Hello"
        assert complete.call_args.kwargs["max_tokens"] == 10
        assert complete.call_args.kwargs["action"] == "proxy_completion"

"""Shared fixtures for the Pulse SEO test suite."""

from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from pulse.config import Settings
from pulse.services.llm_client import LLMClient, LLMResponse
from pulse.services.prompt_store import PromptStore
from pulse.services.site_profile import SiteContext


# =============================================================================
# Sample content
# =============================================================================

SAMPLE_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Botox Injections | Glow Aesthetics</title>
  <meta name="description" content="Smooth fine lines and wrinkles with Botox injections at Glow Aesthetics in Austin.">
  <meta property="og:image" content="https://example.com/img/botox.jpg">
  <link rel="canonical" href="https://example.com/botox">
  <script>window.dataLayer = [];</script>
</head>
<body>
  <nav>
    <h2>Menu</h2>
    <a href="/contact">Contact</a>
    <a href="https://www.example.com/fillers">Fillers</a>
    <a href="tel:+15125550100">Call</a>
  </nav>
  <main>
    <h1>Botox Injections</h1>
    <p>Botox temporarily relaxes the muscles that cause expression lines on the forehead and around the eyes.</p>
    <p>The treatment is performed in our office with a series of small injections and takes about fifteen minutes.</p>
    <h2>Frequently Asked Questions</h2>
    <div class="faq-section">
      <div class="accordion-item">
        <h3 class="accordion-header">How long does Botox last?</h3>
        <div class="accordion-body">Most patients see results for three to four months before a follow-up treatment is needed.</div>
      </div>
      <div class="accordion-item">
        <h3 class="accordion-header">Does the treatment hurt?</h3>
        <div class="accordion-body">Most patients describe a brief pinch, and we can apply a topical numbing cream beforehand.</div>
      </div>
    </div>
  </main>
  <footer>
    <a href="https://instagram.com/glow">Instagram</a>
    <p>Copyright Glow Aesthetics. All rights reserved.</p>
  </footer>
</body>
</html>
"""


@pytest.fixture
def sample_html():
    """A procedure page with navigation, an accordion FAQ and a footer."""
    return SAMPLE_HTML


@pytest.fixture
def settings():
    """Settings that ignore any local .env file."""
    return Settings(
        _env_file=None,
        openai_api_key="test-openai-key",
        anthropic_api_key=None,
        gemini_api_key=None,
        crawl_delay_seconds=0,
        crawl_max_retries=1,
        js_render_fallback=False,
    )


@pytest.fixture(autouse=True)
def clear_prompt_cache():
    """Prompts are cached per process, so start every test cold."""
    PromptStore.clear_cache()
    yield
    PromptStore.clear_cache()


# =============================================================================
# Pages and sites
# =============================================================================

@pytest.fixture
def make_page():
    """Factory for page context dicts as produced by Page.to_context()."""

    def _make(**overrides):
        page = {
            "id": "page-1",
            "url": "https://example.com/botox",
            "path": "/botox",
            "title": "Botox Injections | Glow Aesthetics",
            "meta_description": "Smooth fine lines and wrinkles with Botox injections in Austin.",
            "main_content": "Botox temporarily relaxes the muscles that cause expression lines.",
            "cleaned_html": "<h1>Botox Injections</h1>",
            "html_content": None,
            "headings": {"h1": ["Botox Injections"], "h2": [], "h3": []},
            "meta_tags": {"og:image": "https://example.com/img/botox.jpg"},
            "links": {"internal": [], "external": []},
            "page_type": "PROCEDURE",
        }
        page.update(overrides)
        return page

    return _make


@pytest.fixture
def primary_location():
    return {
        "id": "loc-1",
        "name": "Glow Aesthetics Austin",
        "address": {"street": "100 Congress Ave", "city": "Austin", "state": "TX", "zip": "78701", "country": "US"},
        "phone": "(512) 555-0100",
        "hours": [{"days": ["Monday", "Tuesday"], "open": "09:00", "close": "17:00"}],
        "geo": {"lat": 30.2672, "lng": -97.7431},
        "path": "/locations/austin",
        "page_id": "page-austin",
        "gbp_url": "https://maps.google.com/?cid=1",
        "is_primary": True,
        "areas_served": [{"city": "Austin", "state": "TX"}],
        "description": None,
    }


@pytest.fixture
def site_context(primary_location):
    """Single-location practice."""
    return SiteContext(
        site_id="site-1",
        url="https://example.com",
        domain="example.com",
        profile={
            "business_name": "Glow Aesthetics",
            "business_type": "MedicalSpa",
            "phone": "(512) 555-0100",
            "address": primary_location["address"],
            "owner": {"name": "Dr. Jane Smith", "url": "/team/jane-smith"},
            "locations": [primary_location],
        },
    )


@pytest.fixture
def multi_location_context(site_context, primary_location):
    second = dict(
        primary_location,
        id="loc-2",
        name="Glow Aesthetics Dallas",
        address={"street": "200 Main St", "city": "Dallas", "state": "TX", "zip": "75201"},
        phone="(214) 555-0100",
        path="/locations/dallas",
        page_id="page-dallas",
        is_primary=False,
    )
    profile = dict(site_context.profile, locations=[primary_location, second])
    return SiteContext(site_id="site-1", url="https://example.com", domain="example.com", profile=profile)


# =============================================================================
# LLM
# =============================================================================

@pytest.fixture
def mock_llm():
    """LLMClient double returning an empty completion by default."""
    llm = Mock(spec=LLMClient)
    llm.complete.return_value = LLMResponse(content="", provider="openai", model="gpt-4o-mini")
    return llm


@pytest.fixture
def reply():
    """Build the LLMResponse a mocked provider call returns."""

    def _reply(content: str, model: str = "gpt-4o-mini"):
        return LLMResponse(content=content, provider="openai", model=model)

    return _reply


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def mock_db():
    """AsyncSession double for route tests."""
    db = MagicMock()
    db.commit = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock()
    db.get = AsyncMock(return_value=None)
    db.delete = AsyncMock()
    return db

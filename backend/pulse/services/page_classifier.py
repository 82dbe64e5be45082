"""Page type classification: URL heuristics first, then a two-pass LLM."""

import logging
from typing import Any

from pulse.page_types import PageType
from pulse.prompts import PAGE_TYPE_PROMPT_NAME, SITE_ANALYSIS_PROMPT_NAME
from pulse.services.llm_client import LLMClient, LLMError, parse_json
from pulse.services.prompt_store import PromptStore

logger = logging.getLogger(__name__)

HTML_PREVIEW_CHARS = 12000
FAILED_ANALYSIS = {"patterns": [], "locations": [], "notes": "Analysis failed"}


class PageTypeClassifier:
    """Assign a PageType to crawled pages."""

    # Universal utility pages (no schema, still indexed)
    UTILITY_SIGNALS = [
        "cart", "checkout", "account", "login", "signin", "sign-in",
        "register", "signup", "sign-up", "search", "wishlist", "favorites",
        "privacy", "terms", "policy",
    ]
    CONTACT_SIGNALS = ["contact", "appointment", "book-now", "schedule"]
    ABOUT_PATHS = ["/about", "/about-us", "/about/"]
    TEAM_SIGNALS = ["/team", "/staff", "/providers", "/our-team"]
    GALLERY_SIGNALS = ["gallery", "before-after", "results", "portfolio"]
    MEMBERSHIP_SIGNALS = ["membership", "pricing", "specials", "financing"]
    BLOG_POST_SIGNALS = ["/blog/", "/news/", "/article/", "/post/"]
    BLOG_INDEX_SIGNALS = ["/category/", "/tag/", "/tagged/", "/archive/"]

    def __init__(self, llm: LLMClient, prompts: PromptStore | None = None, model: str | None = None):
        self.llm = llm
        self.prompts = prompts or PromptStore()
        self.model = model

    @classmethod
    def quick_heuristic_classify(cls, path: str) -> PageType | None:
        """Classify obvious pages from the URL path alone.

        Rules are checked in order; returns None when the LLM must decide.
        """
        path = (path or "/").lower()
        if path == "/":
            return PageType.HOMEPAGE
        if any(s in path for s in cls.UTILITY_SIGNALS):
            return PageType.UTILITY
        if any(s in path for s in cls.CONTACT_SIGNALS):
            return PageType.CONTACT
        if path in cls.ABOUT_PATHS:
            return PageType.ABOUT
        if any(s in path for s in cls.TEAM_SIGNALS):
            return PageType.ABOUT
        if any(s in path for s in cls.GALLERY_SIGNALS):
            return PageType.GALLERY
        if any(s in path for s in cls.MEMBERSHIP_SIGNALS):
            return PageType.MEMBERSHIP
        if any(s in path for s in cls.BLOG_POST_SIGNALS):
            return PageType.RESOURCE
        if any(s in path for s in cls.BLOG_INDEX_SIGNALS):
            return PageType.RESOURCE_INDEX
        return None

    @staticmethod
    def summarize_page(page: dict[str, Any]) -> str:
        """One-line summary used in the site analysis prompt."""
        content = " ".join((page.get("main_content") or "")[:150].split())
        title = (page.get("title") or "No title")[:40]
        return f"{page.get('path') or '/'} | {title} | {content}..."

    def analyze_site_structure(self, pages: list[dict[str, Any]], domain: str = "") -> dict[str, Any]:
        """Pass 1: ask the LLM for URL patterns, locations and blog path."""
        prompt_config = self.prompts.get(SITE_ANALYSIS_PROMPT_NAME)
        prompt = prompt_config.render(
            domain=domain,
            page_count=len(pages),
            page_summaries="\n".join(self.summarize_page(p) for p in pages),
        )

        try:
            response = self.llm.complete(
                prompt,
                system=prompt_config.system_prompt,
                model=self.model or prompt_config.default_model,
                max_tokens=800,
                temperature=0,
                json_mode=True,
                action="page_classification_site_analysis",
            )
            context = parse_json(response.content)
            if not isinstance(context, dict):
                raise ValueError("Site analysis did not return an object")
        except (LLMError, ValueError) as e:
            logger.error(f"Site analysis failed: {e}")
            return dict(FAILED_ANALYSIS)

        context.setdefault("patterns", [])
        context.setdefault("locations", [])
        logger.info(f"Site analysis identified {len(context['patterns'])} URL patterns")
        return context

    @staticmethod
    def format_site_context(site_context: dict[str, Any] | None) -> str:
        if not site_context:
            return ""
        patterns = "\n".join(
            f'  - "{p.get("pattern")}" -> {p.get("likely_type")} ({p.get("reason", "")})'
            for p in site_context.get("patterns") or []
            if isinstance(p, dict)
        ) or "  (none identified)"
        locations = ", ".join(str(loc) for loc in site_context.get("locations") or []) or "not detected"
        lines = [
            "SITE CONTEXT (from site-wide analysis):",
            "URL Patterns identified on this site:",
            patterns,
            f"Locations: {locations}",
        ]
        if site_context.get("notes"):
            lines.append(f"Notes: {site_context['notes']}")
        lines.append("")
        lines.append("Use these patterns to help classify this page.")
        return "\n".join(lines)

    def llm_classify_page(self, page: dict[str, Any], site_context: dict[str, Any] | None) -> PageType:
        """Pass 2: ask the LLM for the type of one page. Never raises."""
        cleaned_html = page.get("cleaned_html") or ""
        html_preview = cleaned_html
        if len(cleaned_html) > HTML_PREVIEW_CHARS:
            html_preview = cleaned_html[:HTML_PREVIEW_CHARS] + "<!-- truncated -->"

        prompt_config = self.prompts.get(PAGE_TYPE_PROMPT_NAME)
        prompt = prompt_config.render(
            site_context=self.format_site_context(site_context),
            page_path=page.get("path") or "/",
            page_title=page.get("title") or "",
            meta_description=page.get("meta_description") or "",
            content_length=len(page.get("main_content") or ""),
            html_preview=html_preview,
        )

        try:
            response = self.llm.complete(
                prompt,
                system=prompt_config.system_prompt,
                model=self.model or prompt_config.default_model,
                max_tokens=20,
                temperature=0,
                action="page_classification",
                page_id=page.get("id"),
                page_url=page.get("url"),
            )
        except LLMError as e:
            logger.error(f"Classification failed for {page.get('path')}: {e}")
            return PageType.GENERIC

        page_type = PageType.parse(response.content.strip().strip('"'))
        if page_type is None:
            logger.warning(f"Unexpected page type '{response.content}' for {page.get('path')}, using GENERIC")
            return PageType.GENERIC
        return page_type

    def classify_page(self, page: dict[str, Any], site_context: dict[str, Any] | None = None) -> tuple[PageType, str]:
        """Classify a page, returning (page_type, method)."""
        quick = self.quick_heuristic_classify(page.get("path") or "/")
        if quick is not None:
            return quick, "heuristic"
        return self.llm_classify_page(page, site_context), "llm"

"""Meta tag and schema recommendations for a single page."""

import json
import logging
from typing import Any

from pulse.services.llm_client import LLMClient, LLMError, parse_json
from pulse.services.prompt_store import PromptConfig

logger = logging.getLogger(__name__)

CONTENT_SUMMARY_CHARS = 2000


def format_headings(headings: dict[str, list[str]] | None) -> str:
    headings = headings or {}
    lines = [f"H1: {h}" for h in headings.get("h1") or []]
    lines += [f"H2: {h}" for h in headings.get("h2") or []]
    lines += [f"H3: {h}" for h in (headings.get("h3") or [])[:5]]
    return "\n".join(lines) or "No headings found"


class RecommendationService:
    """Asks the chosen model for a better title, description and schema types."""

    def __init__(self, llm: LLMClient, prompt: PromptConfig):
        self.llm = llm
        self.prompt = prompt

    def build_prompt(self, page: dict[str, Any]) -> str:
        meta_tags = page.get("meta_tags") or {}
        current_schema = page.get("recommended_schema")
        content = " ".join((page.get("main_content") or "")[:CONTENT_SUMMARY_CHARS].split())
        return self.prompt.render(
            url=page.get("url") or "",
            page_type=page.get("page_type") or "Unknown",
            current_title=meta_tags.get("title") or page.get("title") or "None",
            current_description=meta_tags.get("description") or page.get("meta_description") or "None",
            current_schema=json.dumps(current_schema, indent=2) if current_schema else "None found",
            content_summary=content or "No content extracted",
            headings=format_headings(page.get("headings")),
        )

    def generate(self, page: dict[str, Any], model: str | None = None) -> dict[str, Any]:
        """Return the parsed recommendation object.

        Raises:
            LLMError: if the call fails or the reply is not a JSON object.
        """
        response = self.llm.complete(
            self.build_prompt(page),
            system=self.prompt.system_prompt,
            model=model or self.prompt.default_model,
            max_tokens=4000,
            temperature=0.3,
            json_mode=True,
            action="generate_recommendations",
            page_id=page.get("id"),
            page_url=page.get("url"),
        )
        try:
            recommendations = parse_json(response.content)
        except ValueError as e:
            raise LLMError(f"Recommendations were not valid JSON: {e}") from e
        if not isinstance(recommendations, dict):
            raise LLMError("Recommendations were not a JSON object")

        logger.info(f"Generated recommendations for {page.get('url')} with {response.model}")
        recommendations["usage"] = {
            "provider": response.provider,
            "model": response.model,
            "input_tokens": response.input_tokens,
            "output_tokens": response.output_tokens,
            "duration_ms": response.duration_ms,
        }
        return recommendations

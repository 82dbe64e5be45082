"""Tests for per-page meta and schema recommendations."""

import json

import pytest

from pulse.prompts.recommendations import RECOMMENDATIONS_PROMPT_NAME
from pulse.services.llm_client import LLMError
from pulse.services.prompt_store import FALLBACK_PROMPTS
from pulse.services.recommendations import RecommendationService, format_headings

PAGE = {
    "id": "page-1",
    "url": "https://example.com/botox",
    "page_type": "PROCEDURE",
    "title": "Botox",
    "meta_description": None,
    "meta_tags": {"title": "Botox Injections | Glow"},
    "headings": {"h1": ["Botox Injections"], "h2": ["FAQ"], "h3": ["a", "b", "c", "d", "e", "f"]},
    "main_content": "Botox   smooths\nwrinkles.",
    "recommended_schema": None,
}


@pytest.fixture
def service(mock_llm):
    return RecommendationService(mock_llm, FALLBACK_PROMPTS[RECOMMENDATIONS_PROMPT_NAME])


class TestFormatHeadings:
    def test_limits_h3(self):
        lines = format_headings(PAGE["headings"]).splitlines()
        assert lines[:2] == ["H1: Botox Injections", "H2: FAQ"]
        assert len([line for line in lines if line.startswith("H3")]) == 5

    def test_empty(self):
        assert format_headings(None) == "No headings found"


class TestRecommendationService:
    def test_prompt_uses_page_fields(self, service):
        prompt = service.build_prompt(PAGE)
        assert "Current title: Botox Injections | Glow" in prompt
        assert "Current meta description: None" in prompt
        assert "Current schema markup: None found" in prompt
        assert "Botox smooths wrinkles." in prompt

    def test_generate(self, service, mock_llm, reply):
        body = {"meta": {"title": {"recommended": "Botox in Austin"}}, "schemas": []}
        mock_llm.complete.return_value = reply(f"```json\n{json.dumps(body)}\n```", model="gpt-4o")

        result = service.generate(PAGE)

        assert result["meta"] == body["meta"]
        assert result["usage"]["model"] == "gpt-4o"
        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["action"] == "generate_recommendations"
        assert kwargs["page_id"] == "page-1"

    def test_explicit_model(self, service, mock_llm, reply):
        mock_llm.complete.return_value = reply("{}")
        service.generate(PAGE, model="claude-sonnet-4-5")
        assert mock_llm.complete.call_args.kwargs["model"] == "claude-sonnet-4-5"

    @pytest.mark.parametrize("content", ["not json", "[1, 2]"])
    def test_bad_reply(self, service, mock_llm, reply, content):
        mock_llm.complete.return_value = reply(content)
        with pytest.raises(LLMError):
            service.generate(PAGE)

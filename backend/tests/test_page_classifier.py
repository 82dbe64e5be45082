"""Tests for URL heuristics and the two-pass LLM page classifier."""

import json

import pytest

from pulse.page_types import PageType
from pulse.services.llm_client import LLMError
from pulse.services.page_classifier import FAILED_ANALYSIS, HTML_PREVIEW_CHARS, PageTypeClassifier


class TestQuickHeuristics:
    """Path rules that skip the LLM entirely."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/", PageType.HOMEPAGE),
            ("/cart", PageType.UTILITY),
            ("/privacy-policy", PageType.UTILITY),
            ("/my-account/orders", PageType.UTILITY),
            ("/contact-us", PageType.CONTACT),
            ("/book-now", PageType.CONTACT),
            ("/about", PageType.ABOUT),
            ("/our-team/dr-smith", PageType.ABOUT),
            ("/before-after-photos", PageType.GALLERY),
            ("/membership", PageType.MEMBERSHIP),
            ("/blog/botox-tips", PageType.RESOURCE),
            ("/category/skincare", PageType.RESOURCE_INDEX),
        ],
    )
    def test_obvious_paths(self, path, expected):
        """Known signals map straight to a page type."""
        assert PageTypeClassifier.quick_heuristic_classify(path) == expected

    def test_case_insensitive(self):
        assert PageTypeClassifier.quick_heuristic_classify("/Contact") == PageType.CONTACT

    def test_utility_checked_before_contact(self):
        """Rules run in order, so utility signals win."""
        assert PageTypeClassifier.quick_heuristic_classify("/contact/privacy") == PageType.UTILITY

    def test_ambiguous_paths_need_llm(self):
        assert PageTypeClassifier.quick_heuristic_classify("/botox") is None
        assert PageTypeClassifier.quick_heuristic_classify("/services") is None

    def test_empty_path_is_homepage(self):
        assert PageTypeClassifier.quick_heuristic_classify("") == PageType.HOMEPAGE


class TestSiteAnalysis:
    """Pass 1: site-wide pattern analysis."""

    def test_returns_llm_context(self, mock_llm, reply, make_page):
        """Missing keys are filled with empty lists."""
        mock_llm.complete.return_value = reply(json.dumps({
            "patterns": [{"pattern": "/treatments/*", "likely_type": "PROCEDURE", "reason": "treatment pages"}],
            "notes": "Single location",
        }))
        classifier = PageTypeClassifier(mock_llm)

        context = classifier.analyze_site_structure([make_page()], domain="example.com")

        assert context["patterns"][0]["likely_type"] == "PROCEDURE"
        assert context["locations"] == []
        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["json_mode"] is True
        assert kwargs["action"] == "page_classification_site_analysis"
        assert "example.com" in mock_llm.complete.call_args.args[0]

    def test_invalid_json_falls_back(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply("not json at all")
        context = PageTypeClassifier(mock_llm).analyze_site_structure([make_page()])
        assert context == FAILED_ANALYSIS

    def test_non_object_falls_back(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply("[1, 2, 3]")
        context = PageTypeClassifier(mock_llm).analyze_site_structure([make_page()])
        assert context["notes"] == "Analysis failed"

    def test_llm_error_falls_back(self, mock_llm, make_page):
        mock_llm.complete.side_effect = LLMError("rate limited")
        context = PageTypeClassifier(mock_llm).analyze_site_structure([make_page()])
        assert context == FAILED_ANALYSIS

    def test_fallback_is_a_copy(self, mock_llm, make_page):
        mock_llm.complete.side_effect = LLMError("down")
        context = PageTypeClassifier(mock_llm).analyze_site_structure([make_page()])
        context["notes"] = "changed"
        assert FAILED_ANALYSIS["notes"] == "Analysis failed"

    def test_summarize_page(self, make_page):
        summary = PageTypeClassifier.summarize_page(make_page(title="A" * 60))
        assert summary.startswith("/botox | " + "A" * 40 + " | Botox")
        assert summary.endswith("...")


class TestFormatSiteContext:
    def test_empty(self):
        assert PageTypeClassifier.format_site_context(None) == ""
        assert PageTypeClassifier.format_site_context({}) == ""

    def test_lists_patterns_and_locations(self):
        text = PageTypeClassifier.format_site_context({
            "patterns": [{"pattern": "/treatments/*", "likely_type": "PROCEDURE", "reason": "services"}],
            "locations": ["Austin", "Dallas"],
            "notes": "Blog at /journal",
        })
        assert '"/treatments/*" -> PROCEDURE (services)' in text
        assert "Locations: Austin, Dallas" in text
        assert "Notes: Blog at /journal" in text

    def test_no_patterns(self):
        text = PageTypeClassifier.format_site_context({"patterns": [], "locations": []})
        assert "(none identified)" in text
        assert "Locations: not detected" in text


class TestClassifyPage:
    """Pass 2: per-page classification."""

    def test_heuristic_skips_llm(self, mock_llm, make_page):
        page_type, method = PageTypeClassifier(mock_llm).classify_page(make_page(path="/contact"))
        assert (page_type, method) == (PageType.CONTACT, "heuristic")
        mock_llm.complete.assert_not_called()

    def test_llm_answer_parsed(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply("PROCEDURE")
        page_type, method = PageTypeClassifier(mock_llm).classify_page(make_page(), {"patterns": []})
        assert (page_type, method) == (PageType.PROCEDURE, "llm")
        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["page_id"] == "page-1"
        assert kwargs["action"] == "page_classification"

    def test_quoted_lowercase_answer(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply('"condition"\n')
        page_type, _ = PageTypeClassifier(mock_llm).classify_page(make_page())
        assert page_type == PageType.CONDITION

    def test_unknown_answer_is_generic(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply("LANDING_PAGE")
        page_type, method = PageTypeClassifier(mock_llm).classify_page(make_page())
        assert (page_type, method) == (PageType.GENERIC, "llm")

    def test_llm_error_is_generic(self, mock_llm, make_page):
        mock_llm.complete.side_effect = LLMError("timeout")
        page_type, _ = PageTypeClassifier(mock_llm).classify_page(make_page())
        assert page_type == PageType.GENERIC

    def test_long_html_truncated(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply("PROCEDURE")
        page = make_page(cleaned_html="x" * (HTML_PREVIEW_CHARS + 500))
        PageTypeClassifier(mock_llm).classify_page(page)
        prompt = mock_llm.complete.call_args.args[0]
        assert "<!-- truncated -->" in prompt
        assert "x" * (HTML_PREVIEW_CHARS + 1) not in prompt

    def test_site_context_in_prompt(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply("PROCEDURE")
        context = {"patterns": [{"pattern": "/botox", "likely_type": "PROCEDURE"}], "locations": ["Austin"]}
        PageTypeClassifier(mock_llm).classify_page(make_page(), context)
        prompt = mock_llm.complete.call_args.args[0]
        assert "SITE CONTEXT" in prompt
        assert "URL Path: /botox" in prompt

    def test_explicit_model_used(self, mock_llm, reply, make_page):
        mock_llm.complete.return_value = reply("PROCEDURE")
        PageTypeClassifier(mock_llm, model="claude-haiku-4-5").classify_page(make_page())
        assert mock_llm.complete.call_args.kwargs["model"] == "claude-haiku-4-5"


class TestPageTypeParse:
    def test_parse(self):
        assert PageType.parse(" procedure ") == PageType.PROCEDURE
        assert PageType.parse("nope") is None
        assert PageType.parse(None) is None

"""Tests for data source resolution and pre-flight checks."""

import pytest

from pulse.services.preflight import (
    get_nested_value,
    is_placeholder,
    preflight_check,
    resolve_all_data_sources,
    resolve_data_source,
    resolve_template,
)


@pytest.fixture
def context(make_page, primary_location):
    return {
        "site": {
            "url": "https://glowaesthetics.com",
            "domain": "glowaesthetics.com",
            "site_profile": {
                "business_name": "Glow Aesthetics",
                "phone": "(512) 555-0199",
                "owner": {"name": "Dr. Jane Smith"},
                "address": {"street": "9 Fallback Rd"},
            },
        },
        "page": make_page(),
        "location": primary_location,
    }


class TestNestedValues:
    def test_dot_path(self):
        assert get_nested_value({"owner": {"name": "Jane"}}, "owner.name") == "Jane"

    def test_missing(self):
        assert get_nested_value({"owner": {}}, "owner.name") is None
        assert get_nested_value(None, "owner") is None
        assert get_nested_value({"a": 1}, "") is None

    def test_attributes(self):
        class Row:
            title = "Botox"

        assert get_nested_value({"row": Row()}, "row.title") == "Botox"

    def test_resolve_template(self):
        filled = resolve_template("{{siteUrl}}{{page.path}}", {"siteUrl": "https://a.com", "page": {"path": "/x"}})
        assert filled == "https://a.com/x"
        assert resolve_template("{{missing}}/y", {}) == "/y"
        assert resolve_template(None, {}) is None


class TestPlaceholders:
    @pytest.mark.parametrize(
        "value",
        ["[Business Name]", "{{phone}}", "Your name here", "TODO", "123-456-7890", "info@example.com", "Lorem ipsum"],
    )
    def test_detected(self, value):
        assert is_placeholder(value)

    def test_real_values(self):
        assert not is_placeholder("Glow Aesthetics")
        assert not is_placeholder("(512) 555-0100")
        assert not is_placeholder(42)


class TestResolveDataSource:
    def test_page_and_profile(self, context):
        assert resolve_data_source({"source": "page", "field": "title"}, context).startswith("Botox")
        assert resolve_data_source({"source": "site_profile", "field": "owner.name"}, context) == "Dr. Jane Smith"
        assert resolve_data_source({"source": "site_index", "field": "domain"}, context) == "glowaesthetics.com"

    def test_locations_prefer_primary(self, context):
        config = {"source": "locations", "field": "phone", "fallback": "phone"}
        assert resolve_data_source(config, context) == "(512) 555-0100"

    def test_locations_fallback_to_profile(self, context):
        context["location"] = None
        config = {"source": "locations", "field": "phone", "fallback": "phone"}
        assert resolve_data_source(config, context) == "(512) 555-0199"
        assert resolve_data_source({"source": "locations", "field": "phone"}, context) is None

    def test_computed(self, context):
        config = {"source": "computed", "template": "{{siteUrl}}{{page.path}}"}
        assert resolve_data_source(config, context) == "https://glowaesthetics.com/botox"

    def test_deferred(self, context):
        assert resolve_data_source({"source": "llm_extract"}, context) == "[LLM_EXTRACT]"
        assert resolve_data_source({"source": "dom_extract"}, context) == "[DOM_EXTRACT]"

    def test_unknown_source(self, context):
        assert resolve_data_source({"source": "spreadsheet"}, context) is None


class TestPreflightCheck:
    def test_no_sources_passes(self, context):
        assert preflight_check(None, context).passed
        assert preflight_check({}, context).passed

    def test_missing_required(self, context):
        result = preflight_check({"awards": {"source": "site_profile", "field": "awards", "required": True}}, context)
        assert not result.passed
        assert result.errors[0]["field"] == "awards"
        assert result.messages == ["Missing required field: awards"]

    def test_optional_fields_ignored(self, context):
        assert preflight_check({"awards": {"source": "site_profile", "field": "awards"}}, context).passed

    def test_placeholder_value_fails(self, context):
        context["site"]["site_profile"]["business_name"] = "[Business Name]"
        result = preflight_check(
            {"name": {"source": "site_profile", "field": "business_name", "required": True}}, context
        )
        assert not result.passed
        assert "placeholder" in result.messages[0]

    def test_deferred_sources_skipped(self, context):
        sources = {"howPerformed": {"source": "llm_extract", "required": True}}
        assert preflight_check(sources, context).passed


class TestResolveAll:
    def test_fallback_and_default(self, context):
        context["location"] = {"phone": None, "address": {}}
        values = resolve_all_data_sources(
            {
                "telephone": {"source": "locations", "field": "phone", "fallback": "phone"},
                "street": {"source": "locations", "field": "address.street", "fallback": "address.street"},
                "country": {"source": "site_profile", "field": "country", "default": "US"},
                "name": {"source": "page", "field": "title", "transform": "before_pipe"},
            },
            context,
        )
        assert values["telephone"] == "(512) 555-0199"
        assert values["street"] == "9 Fallback Rd"
        assert values["country"] == "US"
        assert values["name__transform"] == "before_pipe"

"""Pre-flight data checks for template-driven schema generation.

A schema template's ``data_sources`` maps each output field to where its
value comes from::

    {"telephone": {"source": "locations", "field": "phone",
                   "fallback": "phone", "required": true}}

Sources: ``page``, ``site_profile``, ``site_index``, ``locations`` (primary
location, falling back to a site_profile path), ``computed`` (a
``{{siteUrl}}{{page.path}}`` style template), and the deferred
``llm_extract`` / ``dom_extract`` sources that are only resolved during
generation.
"""

import re
from dataclasses import dataclass, field
from typing import Any

DEFERRED_SOURCES = {"llm_extract": "[LLM_EXTRACT]", "dom_extract": "[DOM_EXTRACT]"}

PLACEHOLDER_PATTERNS = [
    re.compile(r"\[.*?\]"),
    re.compile(r"\{\{.*?\}\}"),
    re.compile(r"your.*here", re.IGNORECASE),
    re.compile(r"enter.*here", re.IGNORECASE),
    re.compile(r"todo", re.IGNORECASE),
    re.compile(r"xxx", re.IGNORECASE),
    re.compile(r"123-456-7890"),
    re.compile(r"example\.com", re.IGNORECASE),
    re.compile(r"lorem ipsum", re.IGNORECASE),
]

_TEMPLATE_VAR = re.compile(r"\{\{(\w+(?:\.\w+)*)\}\}")


@dataclass
class PreflightResult:
    """Outcome of checking a template's required fields."""
    passed: bool
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def messages(self) -> list[str]:
        return [e["error"] for e in self.errors]


def get_nested_value(obj: Any, path: str | None) -> Any:
    """Read a dot-separated path (``owner.name``) from nested dicts."""
    if obj is None or not path:
        return None
    current = obj
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key)
        else:
            current = getattr(current, key, None)
        if current is None:
            return None
    return current


def resolve_template(template: str | None, context: dict[str, Any]) -> str | None:
    """Fill ``{{path.to.value}}`` variables from ``context``; missing ones become empty."""
    if not template:
        return None

    def replace(match: re.Match) -> str:
        value = get_nested_value(context, match.group(1))
        return str(value) if value else ""

    return _TEMPLATE_VAR.sub(replace, template)


def is_placeholder(value: Any) -> bool:
    """Check whether a string looks like unfilled template text."""
    if not isinstance(value, str):
        return False
    return any(pattern.search(value) for pattern in PLACEHOLDER_PATTERNS)


def resolve_data_source(config: dict[str, Any], context: dict[str, Any]) -> Any:
    """Resolve a single data source against ``{"site", "page", "location"}``."""
    site = context.get("site") or {}
    page = context.get("page") or {}
    location = context.get("location")
    site_profile = site.get("site_profile") or {}
    source = config.get("source")

    if source == "page":
        return get_nested_value(page, config.get("field"))
    if source == "site_profile":
        return get_nested_value(site_profile, config.get("field"))
    if source == "site_index":
        return get_nested_value(site, config.get("field"))
    if source == "locations":
        if not location:
            return get_nested_value(site_profile, config.get("fallback")) if config.get("fallback") else None
        return get_nested_value(location, config.get("field"))
    if source == "computed":
        return resolve_template(config.get("template"), {"siteUrl": site.get("url"), "page": page})
    if source in DEFERRED_SOURCES:
        return DEFERRED_SOURCES[source]
    return None


def preflight_check(data_sources: dict[str, dict] | None, context: dict[str, Any]) -> PreflightResult:
    """Confirm every required field resolves to a real, non-placeholder value.

    Deferred (LLM/DOM) sources cannot be checked before generation and are
    skipped.
    """
    errors: list[dict[str, Any]] = []

    for field_name, config in (data_sources or {}).items():
        if not config.get("required") or config.get("source") in DEFERRED_SOURCES:
            continue

        value = resolve_data_source(config, context)
        if not value:
            errors.append({
                "field": field_name,
                "source": config.get("source"),
                "error": f"Missing required field: {field_name}",
            })
        elif is_placeholder(value):
            errors.append({
                "field": field_name,
                "source": config.get("source"),
                "error": f'Field contains placeholder: {field_name} = "{value}"',
            })

    return PreflightResult(passed=not errors, errors=errors)


def resolve_all_data_sources(data_sources: dict[str, dict] | None, context: dict[str, Any]) -> dict[str, Any]:
    """Resolve every field, applying ``fallback`` (site_profile path) then ``default``."""
    site_profile = (context.get("site") or {}).get("site_profile") or {}
    values: dict[str, Any] = {}

    for field_name, config in (data_sources or {}).items():
        value = resolve_data_source(config, context)
        if value is None and config.get("fallback"):
            value = get_nested_value(site_profile, config["fallback"])
        if value is None and config.get("default") is not None:
            value = config["default"]
        values[field_name] = value
        if config.get("transform"):
            values[f"{field_name}__transform"] = config["transform"]

    return values

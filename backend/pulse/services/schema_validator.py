"""Post-generation checks on JSON-LD graphs."""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from pulse.page_types import SchemaStatus

TEMPLATE_PLACEHOLDERS = [re.compile(r"\[Extract", re.I), re.compile(r"\[TODO", re.I), re.compile(r"\[PLACEHOLDER", re.I)]
LLM_PLACEHOLDERS = re.compile(r"\[EXTRACT|\[TODO|\[PHONE|\[ADDRESS|\[NAME", re.I)
EMPTY_VALUES = ("", "N/A", "Unknown")
BUSINESS_PAGE_TYPES = ("HOMEPAGE", "LOCATION", "CONTACT")

MIN_DESCRIPTION_CHARS = 30
MIN_FAQ_ANSWER_CHARS = 50


@dataclass
class ValidationResult:
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def status(self) -> str:
        return SchemaStatus.VALIDATED if self.valid else SchemaStatus.NEEDS_REVIEW

    def add(self, error_type: str, message: str) -> None:
        self.errors.append({"type": error_type, "message": message})


def graph_entities(schema: Any) -> list[dict[str, Any]]:
    """Entities of a ``@graph`` document, a bare list, or a single entity."""
    if isinstance(schema, dict) and "@graph" in schema:
        return [e for e in schema["@graph"] or [] if isinstance(e, dict)]
    if isinstance(schema, list):
        return [e for e in schema if isinstance(e, dict)]
    return [schema] if isinstance(schema, dict) else []


def entity_type(entity: dict[str, Any]) -> str:
    value = entity.get("@type") or "Thing"
    return value[0] if isinstance(value, list) and value else str(value)


def _check_faq_answers(entity: dict[str, Any], result: ValidationResult) -> None:
    for i, question in enumerate(entity.get("mainEntity") or []):
        answer = ((question or {}).get("acceptedAnswer") or {}).get("text") or ""
        if len(answer) < MIN_FAQ_ANSWER_CHARS:
            result.add("short_faq", f"FAQ {i + 1} answer too short ({len(answer)} chars)")


def validate_schema(schema: Any) -> ValidationResult:
    """Checks applied to template output before it is marked validated."""
    result = ValidationResult()
    serialized = json.dumps(schema)

    for pattern in TEMPLATE_PLACEHOLDERS:
        if pattern.search(serialized):
            result.add("placeholder", "Contains placeholder text")

    for entity in graph_entities(schema):
        schema_type = entity_type(entity)
        if schema_type != "FAQPage" and not entity.get("name") and not entity.get("headline"):
            result.add("missing_field", f"{schema_type} missing name/headline")

        description = entity.get("description")
        if isinstance(description, str) and description and len(description) < MIN_DESCRIPTION_CHARS:
            result.add("short_description", f"{schema_type} description too short")

        if schema_type == "FAQPage":
            _check_faq_answers(entity, result)

    return result


def validate_llm_schema(schema: Any, page_type: str | None) -> ValidationResult:
    """Stricter checks for graphs written entirely by an LLM."""
    result = ValidationResult()

    if not isinstance(schema, dict) or not isinstance(schema.get("@graph"), list):
        result.add("structure", "Invalid schema structure - missing @graph")
        return result

    if LLM_PLACEHOLDERS.search(json.dumps(schema)):
        result.add("placeholder", "Schema contains placeholder text - should be omitted or filled")

    for entity in graph_entities(schema):
        schema_type = entity_type(entity)

        for key, value in entity.items():
            if isinstance(value, str) and value.strip() in EMPTY_VALUES:
                result.add("empty_value", f"{schema_type}: Empty or placeholder value for '{key}'")

        if schema_type == "FAQPage":
            _check_faq_answers(entity, result)

        if schema_type == "MedicalProcedure":
            for required in ("name", "url"):
                if not entity.get(required):
                    result.add("missing_field", f'MedicalProcedure: missing required field "{required}"')
            if not entity.get("description") and not entity.get("howPerformed"):
                result.add("missing_field", "MedicalProcedure: should have description or howPerformed")

        if "Business" in schema_type and page_type not in BUSINESS_PAGE_TYPES:
            result.add(
                "misplaced_type",
                f"{schema_type} schema should only be on HOMEPAGE/LOCATION/CONTACT pages, not {page_type}",
            )

        if schema_type in ("BlogPosting", "Article"):
            for required in ("headline", "datePublished", "author"):
                if not entity.get(required):
                    result.add("missing_field", f'{schema_type}: missing required field "{required}"')

    return result

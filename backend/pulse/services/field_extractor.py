"""LLM extraction of the free-text fields templates cannot fill from page rows."""

import logging
from typing import Any

from pulse.services.llm_client import LLMClient, LLMError, parse_json
from pulse.services.prompt_store import (
    PROCEDURE_FIELDS_PROMPT_NAME,
    TEAM_MEMBER_FIELDS_PROMPT_NAME,
    PromptStore,
)

logger = logging.getLogger(__name__)

PROCEDURE_FIELDS = ["bodyLocation", "procedureType", "howPerformed", "preparation", "followup"]
TEAM_MEMBER_FIELDS = ["name", "jobTitle", "credentials", "isPhysician", "specialties", "education"]


def normalize_value(value: Any) -> Any:
    """Map the ways models say "nothing" to None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "" or value.lower() in ("null", "none", "n/a", "unknown"):
            return None
    if isinstance(value, list):
        value = [v for v in (normalize_value(item) for item in value) if v is not None]
        return value or None
    return value


class FieldExtractor:
    """Asks the LLM for procedure and team member details.

    Failures are logged and yield empty fields so the template still renders
    from row data.
    """

    def __init__(self, llm: LLMClient, prompts: PromptStore | None = None, model: str | None = None):
        self.llm = llm
        self.prompts = prompts or PromptStore()
        self.model = model

    def _extract(
        self,
        prompt_name: str,
        page: dict[str, Any],
        fields: list[str],
        content_chars: int,
        max_tokens: int,
        action: str,
    ) -> dict[str, Any]:
        prompt_config = self.prompts.get(prompt_name)
        prompt = prompt_config.render(
            title=page.get("title") or "",
            url=page.get("url") or page.get("path") or "",
            content=(page.get("main_content") or "")[:content_chars],
        )

        try:
            response = self.llm.complete(
                prompt,
                system=prompt_config.system_prompt,
                model=self.model or prompt_config.default_model,
                max_tokens=max_tokens,
                temperature=0.1,
                json_mode=True,
                action=action,
                page_id=page.get("id"),
                page_url=page.get("url"),
            )
            data = parse_json(response.content)
        except (LLMError, ValueError) as e:
            logger.error(f"Field extraction failed for {page.get('path')}: {e}")
            return {name: None for name in fields}

        if not isinstance(data, dict):
            logger.warning(f"Field extraction for {page.get('path')} returned {type(data).__name__}, ignoring")
            return {name: None for name in fields}
        return {name: normalize_value(data.get(name)) for name in fields}

    def extract_procedure_fields(self, page: dict[str, Any]) -> dict[str, Any]:
        return self._extract(
            PROCEDURE_FIELDS_PROMPT_NAME, page, PROCEDURE_FIELDS,
            content_chars=3000, max_tokens=350, action="schema_procedure_fields",
        )

    def extract_team_member_fields(self, page: dict[str, Any]) -> dict[str, Any]:
        fields = self._extract(
            TEAM_MEMBER_FIELDS_PROMPT_NAME, page, TEAM_MEMBER_FIELDS,
            content_chars=2000, max_tokens=300, action="schema_team_member_fields",
        )
        fields["isPhysician"] = fields.get("isPhysician") is True
        return fields

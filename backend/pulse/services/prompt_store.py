"""Loads admin-editable prompts from the database with built-in fallbacks."""

import logging
import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from pulse.models import Prompt
from pulse.prompts import (
    FULL_SCHEMA_PROMPT,
    FULL_SCHEMA_PROMPT_NAME,
    FULL_SCHEMA_SYSTEM_PROMPT,
    PAGE_TYPE_PROMPT,
    PAGE_TYPE_PROMPT_NAME,
    PAGE_TYPE_SYSTEM_PROMPT,
    PROCEDURE_FIELDS_PROMPT,
    RECOMMENDATIONS_PROMPT,
    RECOMMENDATIONS_PROMPT_NAME,
    RECOMMENDATIONS_SYSTEM_PROMPT,
    SITE_ANALYSIS_PROMPT,
    SITE_ANALYSIS_PROMPT_NAME,
    SITE_ANALYSIS_SYSTEM_PROMPT,
    TEAM_MEMBER_FIELDS_PROMPT,
)

logger = logging.getLogger(__name__)

PROCEDURE_FIELDS_PROMPT_NAME = "Schema: Procedure Fields"
TEAM_MEMBER_FIELDS_PROMPT_NAME = "Schema: Team Member Fields"

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


@dataclass
class PromptConfig:
    """A prompt ready to be rendered."""
    name: str
    user_prompt_template: str
    system_prompt: str | None = None
    default_model: str | None = None

    def render(self, **variables: Any) -> str:
        return render_prompt(self.user_prompt_template, **variables)


FALLBACK_PROMPTS: dict[str, PromptConfig] = {
    SITE_ANALYSIS_PROMPT_NAME: PromptConfig(
        SITE_ANALYSIS_PROMPT_NAME, SITE_ANALYSIS_PROMPT, SITE_ANALYSIS_SYSTEM_PROMPT, "gpt-4o-mini"
    ),
    PAGE_TYPE_PROMPT_NAME: PromptConfig(
        PAGE_TYPE_PROMPT_NAME, PAGE_TYPE_PROMPT, PAGE_TYPE_SYSTEM_PROMPT, "gpt-4o-mini"
    ),
    RECOMMENDATIONS_PROMPT_NAME: PromptConfig(
        RECOMMENDATIONS_PROMPT_NAME, RECOMMENDATIONS_PROMPT, RECOMMENDATIONS_SYSTEM_PROMPT, "gpt-4o"
    ),
    FULL_SCHEMA_PROMPT_NAME: PromptConfig(
        FULL_SCHEMA_PROMPT_NAME, FULL_SCHEMA_PROMPT, FULL_SCHEMA_SYSTEM_PROMPT, "gpt-4o"
    ),
    PROCEDURE_FIELDS_PROMPT_NAME: PromptConfig(
        PROCEDURE_FIELDS_PROMPT_NAME, PROCEDURE_FIELDS_PROMPT, None, "gpt-4o-mini"
    ),
    TEAM_MEMBER_FIELDS_PROMPT_NAME: PromptConfig(
        TEAM_MEMBER_FIELDS_PROMPT_NAME, TEAM_MEMBER_FIELDS_PROMPT, None, "gpt-4o-mini"
    ),
}


def render_prompt(template: str, **variables: Any) -> str:
    """Fill ``{{name}}`` placeholders; unknown placeholders are left in place."""

    def replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        value = variables[key]
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(replace, template)


def _from_row(row: Prompt) -> PromptConfig:
    fallback = FALLBACK_PROMPTS.get(row.name)
    return PromptConfig(
        name=row.name,
        user_prompt_template=row.user_prompt_template,
        system_prompt=row.system_prompt if row.system_prompt is not None else (fallback.system_prompt if fallback else None),
        default_model=row.default_model or (fallback.default_model if fallback else None),
    )


def _fallback(name: str) -> PromptConfig:
    if name not in FALLBACK_PROMPTS:
        raise KeyError(f"Unknown prompt: {name}")
    logger.info(f"Prompt '{name}' not in database, using built-in default")
    return FALLBACK_PROMPTS[name]


class PromptStore:
    """Per-process cache of prompts read through a sync session."""

    _cache: dict[str, PromptConfig] = {}

    def __init__(self, session: Session | None = None):
        self.session = session

    def get(self, name: str) -> PromptConfig:
        if name in self._cache:
            return self._cache[name]

        prompt = None
        if self.session is not None:
            row = self.session.query(Prompt).filter(Prompt.name == name).first()
            if row:
                prompt = _from_row(row)

        prompt = prompt or _fallback(name)
        self._cache[name] = prompt
        return prompt

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()


async def get_prompt_async(session: AsyncSession, name: str) -> PromptConfig:
    """Load a prompt for an API request (uncached so edits apply immediately)."""
    result = await session.execute(select(Prompt).where(Prompt.name == name))
    row = result.scalar_one_or_none()
    return _from_row(row) if row else _fallback(name)

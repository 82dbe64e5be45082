"""Tests for prompt rendering, database overrides and fallbacks."""

from unittest.mock import MagicMock

import pytest

from pulse.models import Prompt
from pulse.prompts import PAGE_TYPE_PROMPT_NAME, PAGE_TYPE_SYSTEM_PROMPT
from pulse.services.prompt_store import FALLBACK_PROMPTS, PromptStore, get_prompt_async, render_prompt


def session_returning(row):
    session = MagicMock()
    session.query.return_value.filter.return_value.first.return_value = row
    return session


class TestRenderPrompt:
    def test_fills_variables(self):
        assert render_prompt("Page {{ path }} on {{domain}}", path="/botox", domain="example.com") == (
            "Page /botox on example.com"
        )

    def test_none_becomes_empty(self):
        assert render_prompt("Title: {{title}}", title=None) == "Title: "

    def test_unknown_left_in_place(self):
        assert render_prompt("{{known}} {{unknown}}", known=1) == "1 {{unknown}}"


class TestPromptStore:
    def test_fallback_without_session(self):
        prompt = PromptStore().get(PAGE_TYPE_PROMPT_NAME)
        assert prompt is FALLBACK_PROMPTS[PAGE_TYPE_PROMPT_NAME]

    def test_unknown_prompt(self):
        with pytest.raises(KeyError):
            PromptStore().get("Nonexistent")

    def test_database_row_wins(self):
        row = Prompt(name=PAGE_TYPE_PROMPT_NAME, user_prompt_template="Custom {{page_path}}", system_prompt=None, default_model=None)
        prompt = PromptStore(session_returning(row)).get(PAGE_TYPE_PROMPT_NAME)

        assert prompt.render(page_path="/x") == "Custom /x"
        # Blank columns inherit the built-in values
        assert prompt.system_prompt == PAGE_TYPE_SYSTEM_PROMPT
        assert prompt.default_model == "gpt-4o-mini"

    def test_cached_per_process(self):
        session = session_returning(None)
        PromptStore(session).get(PAGE_TYPE_PROMPT_NAME)
        PromptStore(session).get(PAGE_TYPE_PROMPT_NAME)
        assert session.query.call_count == 1

        PromptStore.clear_cache()
        PromptStore(session).get(PAGE_TYPE_PROMPT_NAME)
        assert session.query.call_count == 2


class TestGetPromptAsync:
    async def test_uncached_row(self, mock_db):
        row = Prompt(name="Custom", user_prompt_template="Hi {{name}}", system_prompt="sys", default_model="gpt-4o")
        result = MagicMock()
        result.scalar_one_or_none.return_value = row
        mock_db.execute.return_value = result

        prompt = await get_prompt_async(mock_db, "Custom")

        assert prompt.render(name="Jane") == "Hi Jane"
        assert prompt.default_model == "gpt-4o"

    async def test_fallback(self, mock_db):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_db.execute.return_value = result
        prompt = await get_prompt_async(mock_db, PAGE_TYPE_PROMPT_NAME)
        assert prompt.name == PAGE_TYPE_PROMPT_NAME

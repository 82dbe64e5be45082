"""LLM prompts for various tasks."""

from pulse.prompts.field_extraction import PROCEDURE_FIELDS_PROMPT, TEAM_MEMBER_FIELDS_PROMPT
from pulse.prompts.full_schema import (
    FULL_SCHEMA_PROMPT,
    FULL_SCHEMA_PROMPT_NAME,
    FULL_SCHEMA_SYSTEM_PROMPT,
)
from pulse.prompts.page_type import (
    PAGE_TYPE_PROMPT,
    PAGE_TYPE_PROMPT_NAME,
    PAGE_TYPE_SYSTEM_PROMPT,
)
from pulse.prompts.recommendations import (
    RECOMMENDATIONS_PROMPT,
    RECOMMENDATIONS_PROMPT_NAME,
    RECOMMENDATIONS_SYSTEM_PROMPT,
)
from pulse.prompts.site_analysis import (
    SITE_ANALYSIS_PROMPT,
    SITE_ANALYSIS_PROMPT_NAME,
    SITE_ANALYSIS_SYSTEM_PROMPT,
)

__all__ = [
    "FULL_SCHEMA_PROMPT",
    "FULL_SCHEMA_PROMPT_NAME",
    "FULL_SCHEMA_SYSTEM_PROMPT",
    "PAGE_TYPE_PROMPT",
    "PAGE_TYPE_PROMPT_NAME",
    "PAGE_TYPE_SYSTEM_PROMPT",
    "PROCEDURE_FIELDS_PROMPT",
    "RECOMMENDATIONS_PROMPT",
    "RECOMMENDATIONS_PROMPT_NAME",
    "RECOMMENDATIONS_SYSTEM_PROMPT",
    "SITE_ANALYSIS_PROMPT",
    "SITE_ANALYSIS_PROMPT_NAME",
    "SITE_ANALYSIS_SYSTEM_PROMPT",
    "TEAM_MEMBER_FIELDS_PROMPT",
]

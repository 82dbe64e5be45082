"""Prompt for the whole-site structure analysis (classifier pass 1)."""

SITE_ANALYSIS_PROMPT_NAME = "Page Classifier - Site Analysis"

SITE_ANALYSIS_SYSTEM_PROMPT = """You analyze the structure of medical and aesthetic practice websites.
Given a list of pages, identify URL patterns that map to page types, the practice locations
mentioned, and where the blog lives. Respond with JSON only."""

SITE_ANALYSIS_PROMPT = """Here are the pages crawled from {{domain}} ({{page_count}} pages).
Each line is: path | title | content preview

{{page_summaries}}

## Page Types

HOMEPAGE, PROCEDURE, SERVICE_INDEX, BODY_AREA, CONDITION, RESOURCE, RESOURCE_INDEX,
TEAM_MEMBER, ABOUT, GALLERY, CONTACT, LOCATION, PRODUCT, PRODUCT_COLLECTION, UTILITY,
MEMBERSHIP, GENERIC

## Output Format

Return ONLY a valid JSON object:
{
  "patterns": [
    {"pattern": "/treatments/*", "likely_type": "PROCEDURE", "reason": "Individual treatment pages"}
  ],
  "locations": ["City names or addresses the practice serves"],
  "blog_path": "/blog",
  "notes": "Anything unusual about how this site is organized"
}"""

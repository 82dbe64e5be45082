"""Prompt for generating a complete JSON-LD @graph with an LLM."""

FULL_SCHEMA_PROMPT_NAME = "Schema: Full JSON-LD Generation"

FULL_SCHEMA_SYSTEM_PROMPT = """You write schema.org JSON-LD for medical and aesthetic practice websites.
Only use facts present in the provided data. Omit properties you cannot fill; never write
placeholders such as "N/A", "Unknown" or bracketed instructions."""

FULL_SCHEMA_PROMPT = """Generate JSON-LD for this page.

Page type: {{page_type}}
URL: {{url}}
Title: {{title}}
Meta description: {{meta_description}}

Business profile:
{{site_profile}}

Content:
{{content}}

Rules:
- Wrap entities in {"@context": "https://schema.org", "@graph": [...]}
- Use "{{site_url}}/#organization" as the @id of the practice
- Only use LocalBusiness/MedicalBusiness entities on HOMEPAGE, LOCATION or CONTACT pages
- A BlogPosting needs headline, datePublished and author

Return ONLY the JSON object."""

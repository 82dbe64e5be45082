"""Prompt for classifying a single page (classifier pass 2)."""

PAGE_TYPE_PROMPT_NAME = "Page Classifier - Page Type"

PAGE_TYPE_SYSTEM_PROMPT = """You classify pages of a medical/aesthetic practice website so the right
schema.org markup can be generated. Judge from the HTML structure and metadata.

CONTENT PAGES
- PROCEDURE: one treatment or service described in depth
- CONDITION: a medical or aesthetic concern that treatments address
- BODY_AREA: an anatomical region (Face, Body) grouping treatments
- RESOURCE: one blog post, article or news item
- TEAM_MEMBER: one staff member profile
- PRODUCT: one item for sale

INDEX PAGES
- SERVICE_INDEX: lists multiple services, mostly links
- RESOURCE_INDEX: blog archive, category or tag listing
- PRODUCT_COLLECTION: lists multiple products

OTHER
- HOMEPAGE, ABOUT, GALLERY, CONTACT, LOCATION, MEMBERSHIP, UTILITY, GENERIC"""

PAGE_TYPE_PROMPT = """{{site_context}}

PAGE METADATA:
URL Path: {{page_path}}
Title: {{page_title}}
Meta Description: {{meta_description}}
Content Length: {{content_length}} characters

PAGE HTML STRUCTURE:
{{html_preview}}

Respond with ONLY the page type (e.g. "PROCEDURE"), nothing else."""

"""Prompt for meta tag and schema recommendations on a single page."""

RECOMMENDATIONS_PROMPT_NAME = "Meta & Schema Recommendations"

RECOMMENDATIONS_SYSTEM_PROMPT = """You are an SEO specialist for medical and aesthetic practices.
Write accurate, compliant copy. Never invent prices, results or credentials."""

RECOMMENDATIONS_PROMPT = """Analyze this page and recommend improvements.

URL: {{url}}
Page type: {{page_type}}
Current title: {{current_title}}
Current meta description: {{current_description}}
Current schema markup: {{current_schema}}

Content summary:
{{content_summary}}

Headings:
{{headings}}

Return ONLY a valid JSON object:
{
  "meta": {
    "title": {"recommended": "50-60 characters", "reasoning": "Why it is better"},
    "description": {"recommended": "150-160 characters", "reasoning": "Why it is better"}
  },
  "schemas": [
    {"type": "MedicalProcedure", "priority": "high|medium|low", "reasoning": "Why it fits", "json_ld": {}}
  ],
  "overall_reasoning": "Summary of the SEO strategy for this page"
}

Only include schema types that are genuinely relevant to the page content."""

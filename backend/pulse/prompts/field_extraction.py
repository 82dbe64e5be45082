"""Prompts for extracting free-text schema fields from page content."""

PROCEDURE_FIELDS_PROMPT = """Extract details about the medical/aesthetic procedure described on this page.

Page title: {{title}}
Page URL: {{url}}

Content:
{{content}}

Return ONLY a valid JSON object. Use null for anything the page does not state:
{
  "bodyLocation": "Body area treated, e.g. Face",
  "procedureType": "NoninvasiveProcedure, PercutaneousProcedure or SurgicalProcedure",
  "howPerformed": "One or two sentences on how it is performed",
  "preparation": "How patients prepare",
  "followup": "Aftercare or recovery"
}"""

TEAM_MEMBER_FIELDS_PROMPT = """Extract the profile of the person this staff page is about.

Page title: {{title}}
Page URL: {{url}}

Content:
{{content}}

Return ONLY a valid JSON object. Use null for anything the page does not state:
{
  "name": "Full name without credentials",
  "jobTitle": "Job title",
  "credentials": "Credentials such as MD, RN, NP",
  "isPhysician": true,
  "specialties": ["Specialty"],
  "education": ["School or training program"]
}"""

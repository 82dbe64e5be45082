"""Seed schema templates, prompts, roles and permissions.

Revision ID: 002
Revises: 001
"""
from datetime import datetime, timezone
from typing import Sequence, Union
from uuid import uuid4

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

from pulse.services.prompt_store import FALLBACK_PROMPTS

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PAGE_URL = {"source": "computed", "template": "{{siteUrl}}{{page.path}}"}

# (schema_type, page_type, tier, tier_reason, required, optional, data_sources)
SCHEMA_TEMPLATES = [
    (
        "MedicalProcedure", "PROCEDURE", "HIGH",
        "Core service pages, procedure rich results, FAQs",
        ["name", "url", "provider"],
        ["description", "image", "bodyLocation", "procedureType", "howPerformed", "preparation", "followup"],
        {
            "name": {"source": "page", "field": "title", "transform": "extractTitle", "required": True},
            "description": {"source": "page", "field": "meta_tags.description"},
            "url": {**PAGE_URL, "required": True},
            "image": {"source": "page", "field": "meta_tags.og:image", "fallback": "image_url"},
            "provider.name": {"source": "site_profile", "field": "business_name", "required": True},
            "provider.telephone": {"source": "locations", "field": "phone", "fallback": "phone"},
            "provider.address": {"source": "locations", "field": "address", "transform": "buildPostalAddress"},
            "performedBy.name": {"source": "site_profile", "field": "owner.name"},
            "howPerformed": {"source": "llm_extract", "field": "howPerformed"},
        },
    ),
    (
        "BlogPosting", "RESOURCE", "HIGH",
        "Article rich results, freshness signals, author credibility",
        ["headline", "url", "datePublished", "author"],
        ["description", "image", "dateModified", "publisher"],
        {
            "headline": {"source": "page", "field": "title", "required": True},
            "description": {"source": "page", "field": "meta_tags.description"},
            "url": {**PAGE_URL, "required": True},
            "datePublished": {"source": "page", "field": "meta_tags.article:published_time"},
            "dateModified": {"source": "page", "field": "meta_tags.article:modified_time"},
            "image": {"source": "page", "field": "meta_tags.og:image"},
            "author.name": {"source": "site_profile", "field": "owner.name", "fallback": "business_name"},
            "publisher.name": {"source": "site_profile", "field": "business_name", "required": True},
            "publisher.logo": {"source": "site_profile", "field": "logo_url"},
        },
    ),
    (
        "Physician", "TEAM_MEMBER", "HIGH",
        "E-E-A-T signals, medical expertise, trust",
        ["name", "url"],
        ["image", "jobTitle", "honorificSuffix", "knowsAbout", "worksFor"],
        {
            "name": {"source": "llm_extract", "field": "name", "required": True},
            "url": PAGE_URL,
            "image": {"source": "page", "field": "meta_tags.og:image"},
            "jobTitle": {"source": "llm_extract", "field": "jobTitle"},
            "honorificSuffix": {"source": "llm_extract", "field": "credentials"},
            "knowsAbout": {"source": "llm_extract", "field": "specialties"},
            "worksFor.name": {"source": "site_profile", "field": "business_name", "required": True},
            "worksFor.telephone": {"source": "site_profile", "field": "phone"},
        },
    ),
    (
        "ImageGallery", "GALLERY", "HIGH",
        "Image search visibility, social proof",
        ["name", "url"],
        ["description"],
        {
            "name": {"source": "page", "field": "title", "required": True},
            "description": {"source": "page", "field": "meta_tags.description"},
            "url": PAGE_URL,
        },
    ),
    (
        "MedicalBusiness", "HOMEPAGE", "HIGH",
        "Foundation NAP schema, reviews, hours",
        ["name", "url", "telephone", "address"],
        ["email", "geo", "openingHoursSpecification", "priceRange", "image", "logo", "aggregateRating"],
        {
            "name": {"source": "site_profile", "field": "business_name", "required": True},
            "url": {"source": "site_index", "field": "url"},
            "telephone": {"source": "locations", "field": "phone", "fallback": "phone", "required": True},
            "email": {"source": "site_profile", "field": "email"},
            "address": {"source": "locations", "field": "address.street", "fallback": "address.street", "required": True},
            "geo": {"source": "locations", "field": "geo", "transform": "buildGeoCoordinates"},
            "openingHoursSpecification": {"source": "locations", "field": "hours", "transform": "buildHoursSpec"},
            "priceRange": {"source": "site_profile", "field": "price_range"},
            "image": {"source": "site_profile", "field": "image_url"},
            "logo": {"source": "site_profile", "field": "logo_url"},
            "aggregateRating": {"source": "site_profile", "field": "rating", "transform": "buildAggregateRating"},
        },
    ),
    (
        "ContactPage", "CONTACT", "HIGH",
        "NAP consistency, contact information rich results",
        ["name", "url", "telephone"],
        ["address", "email"],
        {
            "name": {"source": "site_profile", "field": "business_name", "required": True},
            "url": PAGE_URL,
            "telephone": {"source": "locations", "field": "phone", "fallback": "phone", "required": True},
            "email": {"source": "site_profile", "field": "email"},
        },
    ),
    (
        "LocalBusiness", "LOCATION", "HIGH",
        "Local SEO, NAP for each location, Google Business Profile alignment",
        ["name", "url", "telephone", "address"],
        ["geo", "openingHoursSpecification", "areaServed", "hasMap"],
        {
            "name": {"source": "site_profile", "field": "business_name", "required": True},
            "url": PAGE_URL,
            "telephone": {"source": "locations", "field": "phone", "fallback": "phone"},
            "geo": {"source": "locations", "field": "geo", "transform": "buildGeoCoordinates"},
            "openingHoursSpecification": {"source": "locations", "field": "hours", "transform": "buildHoursSpec"},
        },
    ),
    (
        "MedicalCondition", "CONDITION", "MEDIUM",
        "Health queries, but limited Google rich result support",
        ["name", "url"],
        ["description", "possibleTreatment"],
        {
            "name": {"source": "page", "field": "title", "transform": "extractTitle", "required": True},
            "description": {"source": "page", "field": "meta_tags.description"},
            "url": PAGE_URL,
        },
    ),
    (
        "Product", "PRODUCT", "MEDIUM",
        "E-commerce rich results, but complex pricing/availability",
        ["name", "url"],
        ["description", "image", "brand", "offers"],
        {
            "name": {"source": "page", "field": "title", "transform": "extractTitle", "required": True},
            "description": {"source": "page", "field": "meta_tags.description"},
            "image": {"source": "page", "field": "meta_tags.og:image"},
            "url": PAGE_URL,
            "offers.price": {"source": "page", "field": "meta_tags.product:price:amount"},
        },
    ),
    (
        "ItemList", "PRODUCT_COLLECTION", "MEDIUM",
        "Collection pages, products have individual schema",
        ["name", "itemListElement"],
        ["url"],
        {
            "name": {"source": "page", "field": "title", "required": True},
            "url": PAGE_URL,
        },
    ),
    ("SKIP_SERVICE_INDEX", "SERVICE_INDEX", "LOW", "Listing page, individual procedures have the value", None, None, {}),
    ("SKIP_BODY_AREA", "BODY_AREA", "LOW", "Grouping page, link to procedures/conditions instead", None, None, {}),
    ("SKIP_RESOURCE_INDEX", "RESOURCE_INDEX", "LOW", "Blog archive/tags, no unique content to schema", None, None, {}),
    ("SKIP_UTILITY", "UTILITY", "LOW", "Cart, account, search - no content value", None, None, {}),
    ("SKIP_MEMBERSHIP", "MEMBERSHIP", "LOW", "Pricing pages too variable for schema", None, None, {}),
    ("SKIP_ABOUT", "ABOUT", "LOW", "AboutPage schema has minimal SEO value", None, None, {}),
    ("SKIP_GENERIC", "GENERIC", "LOW", "Catch-all, no predictable schema type", None, None, {}),
    # Sub-entities embedded in the schemas above
    (
        "FAQPage", None, "HIGH",
        "FAQ rich results on any page with a question-and-answer section",
        ["mainEntity"],
        None,
        {"mainEntity": {"source": "dom_extract", "selector": "faq", "transform": "buildFAQItems", "required": True}},
    ),
    (
        "PostalAddress", None, "HIGH",
        "Embedded in business and location schema",
        ["streetAddress", "addressLocality", "addressRegion"],
        ["postalCode", "addressCountry"],
        {
            "streetAddress": {"source": "locations", "field": "address.street", "required": True},
            "addressLocality": {"source": "locations", "field": "address.city", "required": True},
            "addressRegion": {"source": "locations", "field": "address.state", "required": True},
            "postalCode": {"source": "locations", "field": "address.zip"},
            "addressCountry": {"source": "locations", "field": "address.country", "default": "US"},
        },
    ),
    (
        "GeoCoordinates", None, "HIGH",
        "Embedded in business and location schema",
        ["latitude", "longitude"],
        None,
        {
            "latitude": {"source": "locations", "field": "geo.lat", "required": True},
            "longitude": {"source": "locations", "field": "geo.lng", "required": True},
        },
    ),
]

# (key, category, description)
PERMISSIONS = [
    ("dashboard.read", "dashboard", "View the dashboard"),
    ("sites.read", "sites", "View sites and crawl status"),
    ("sites.write", "sites", "Add, re-crawl, classify and delete sites"),
    ("pages.read", "pages", "View crawled pages and the review queue"),
    ("pages.write", "pages", "Change page types"),
    ("meta.read", "meta", "View schema, schema tiers and recommendations"),
    ("meta.write", "meta", "Generate schema and edit schema tiers"),
    ("accounts.read", "accounts", "View accounts and locations"),
    ("accounts.write", "accounts", "Edit accounts and locations"),
    ("links.read", "links", "View link plans"),
    ("links.write", "links", "Edit link plans"),
    ("prompts.read", "prompts", "View prompts"),
    ("prompts.write", "prompts", "Edit prompts"),
    ("roles.read", "roles", "View roles and permissions"),
    ("roles.write", "roles", "Edit role permissions"),
    ("users.read", "users", "View users"),
    ("users.write", "users", "Create, edit and delete users"),
    ("usage.read", "usage", "View AI usage and costs"),
    ("llm.use", "llm", "Run completions through the LLM proxy"),
]

ROLES = {
    "admin": ("Full access", None),
    "editor": (
        "Manage sites, pages, schema, accounts and link plans",
        [
            "dashboard.read", "sites.read", "sites.write", "pages.read", "pages.write",
            "meta.read", "meta.write", "accounts.read", "accounts.write",
            "links.read", "links.write", "prompts.read", "llm.use",
        ],
    ),
    "viewer": (
        "Read-only access",
        ["dashboard.read", "sites.read", "pages.read", "meta.read", "accounts.read", "links.read"],
    ),
}


def upgrade() -> None:
    now = datetime.now(timezone.utc)
    uuid = postgresql.UUID(as_uuid=False)

    schema_templates = sa.table(
        "schema_templates",
        sa.column("id", uuid),
        sa.column("schema_type", sa.String),
        sa.column("page_type", sa.String),
        sa.column("tier", sa.String),
        sa.column("tier_reason", sa.Text),
        sa.column("required_fields", ARRAY(sa.String)),
        sa.column("optional_fields", ARRAY(sa.String)),
        sa.column("data_sources", JSONB),
        sa.column("updated_at", sa.DateTime(timezone=True)),
    )
    op.bulk_insert(schema_templates, [
        {
            "id": str(uuid4()),
            "schema_type": schema_type,
            "page_type": page_type,
            "tier": tier,
            "tier_reason": reason,
            "required_fields": required,
            "optional_fields": optional,
            "data_sources": data_sources,
            "updated_at": now,
        }
        for schema_type, page_type, tier, reason, required, optional, data_sources in SCHEMA_TEMPLATES
    ])

    prompts = sa.table(
        "prompts",
        sa.column("id", uuid),
        sa.column("name", sa.String),
        sa.column("system_prompt", sa.Text),
        sa.column("user_prompt_template", sa.Text),
        sa.column("default_model", sa.String),
        sa.column("created_at", sa.DateTime(timezone=True)),
        sa.column("updated_at", sa.DateTime(timezone=True)),
    )
    op.bulk_insert(prompts, [
        {
            "id": str(uuid4()),
            "name": prompt.name,
            "system_prompt": prompt.system_prompt,
            "user_prompt_template": prompt.user_prompt_template,
            "default_model": prompt.default_model,
            "created_at": now,
            "updated_at": now,
        }
        for prompt in FALLBACK_PROMPTS.values()
    ])

    permissions = sa.table(
        "permissions",
        sa.column("id", uuid),
        sa.column("key", sa.String),
        sa.column("category", sa.String),
        sa.column("description", sa.Text),
    )
    permission_ids = {key: str(uuid4()) for key, _, _ in PERMISSIONS}
    op.bulk_insert(permissions, [
        {"id": permission_ids[key], "key": key, "category": category, "description": description}
        for key, category, description in PERMISSIONS
    ])

    roles = sa.table(
        "roles",
        sa.column("id", uuid),
        sa.column("name", sa.String),
        sa.column("description", sa.Text),
    )
    role_permissions = sa.table(
        "role_permissions",
        sa.column("role_id", uuid),
        sa.column("permission_id", uuid),
    )
    role_rows = []
    grants = []
    for name, (description, keys) in ROLES.items():
        role_id = str(uuid4())
        role_rows.append({"id": role_id, "name": name, "description": description})
        # Admin bypasses permission checks but still lists every permission
        for key in keys if keys is not None else permission_ids:
            grants.append({"role_id": role_id, "permission_id": permission_ids[key]})
    op.bulk_insert(roles, role_rows)
    op.bulk_insert(role_permissions, grants)


def downgrade() -> None:
    op.execute("DELETE FROM role_permissions")
    op.execute("DELETE FROM roles")
    op.execute("DELETE FROM permissions")
    op.execute("DELETE FROM prompts")
    op.execute("DELETE FROM schema_templates")

"""Page type to schema tier mapping, read from schema_templates."""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from pulse.models import SchemaTemplate
from pulse.page_types import SchemaTier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierInfo:
    """Tier of one page type and the template that governs it."""
    page_type: str
    tier: SchemaTier
    schema_type: str | None = None
    reason: str | None = None
    data_sources: dict[str, Any] = field(default_factory=dict)


UNKNOWN_TIER_REASON = "Unknown page type"

# Used when schema_templates has no row for a page type
DEFAULT_TIERS: dict[str, TierInfo] = {
    info.page_type: info
    for info in [
        TierInfo("PROCEDURE", SchemaTier.HIGH, "MedicalProcedure", "Core service pages, procedure rich results, FAQs"),
        TierInfo("RESOURCE", SchemaTier.HIGH, "BlogPosting", "Article rich results, freshness signals, author credibility"),
        TierInfo("TEAM_MEMBER", SchemaTier.HIGH, "Physician", "E-E-A-T signals, medical expertise, trust"),
        TierInfo("GALLERY", SchemaTier.HIGH, "ImageGallery", "Image search visibility, social proof"),
        TierInfo("HOMEPAGE", SchemaTier.HIGH, "MedicalBusiness", "Foundation NAP schema, reviews, hours"),
        TierInfo("CONTACT", SchemaTier.HIGH, "ContactPage", "NAP consistency, contact information rich results"),
        TierInfo("LOCATION", SchemaTier.HIGH, "LocalBusiness", "Local SEO, NAP for each location, Google Business Profile alignment"),
        TierInfo("CONDITION", SchemaTier.MEDIUM, "MedicalCondition", "Health queries, but limited Google rich result support"),
        TierInfo("PRODUCT", SchemaTier.MEDIUM, "Product", "E-commerce rich results, but complex pricing/availability"),
        TierInfo("PRODUCT_COLLECTION", SchemaTier.MEDIUM, "ItemList", "Collection pages, products have individual schema"),
        TierInfo("SERVICE_INDEX", SchemaTier.LOW, None, "Listing page, individual procedures have the value"),
        TierInfo("BODY_AREA", SchemaTier.LOW, None, "Grouping page, link to procedures/conditions instead"),
        TierInfo("RESOURCE_INDEX", SchemaTier.LOW, None, "Blog archive/tags, no unique content to schema"),
        TierInfo("UTILITY", SchemaTier.LOW, None, "Cart, account, search - no content value"),
        TierInfo("MEMBERSHIP", SchemaTier.LOW, None, "Pricing pages too variable for schema"),
        TierInfo("ABOUT", SchemaTier.LOW, None, "AboutPage schema has minimal SEO value"),
        TierInfo("GENERIC", SchemaTier.LOW, None, "Catch-all, no predictable schema type"),
    ]
}


def _from_template(template: SchemaTemplate) -> TierInfo:
    try:
        tier = SchemaTier(template.tier or "LOW")
    except ValueError:
        logger.warning(f"Template {template.schema_type} has invalid tier '{template.tier}', treating as LOW")
        tier = SchemaTier.LOW
    return TierInfo(
        page_type=template.page_type,
        tier=tier,
        schema_type=None if template.schema_type.startswith("SKIP_") else template.schema_type,
        reason=template.tier_reason,
        data_sources=template.data_sources or {},
    )


def build_tier_map(templates: list[SchemaTemplate]) -> dict[str, TierInfo]:
    tiers = dict(DEFAULT_TIERS)
    for template in templates:
        if template.page_type:
            tiers[template.page_type] = _from_template(template)
    return tiers


def load_tiers(session: Session) -> dict[str, TierInfo]:
    templates = session.query(SchemaTemplate).filter(SchemaTemplate.page_type.isnot(None)).all()
    return build_tier_map(templates)


async def load_tiers_async(session: AsyncSession) -> dict[str, TierInfo]:
    result = await session.execute(select(SchemaTemplate).where(SchemaTemplate.page_type.isnot(None)))
    return build_tier_map(list(result.scalars().all()))


def tier_for(tiers: dict[str, TierInfo], page_type: str | None) -> TierInfo:
    """Tier info for a page type; unknown types are LOW."""
    if page_type and page_type in tiers:
        return tiers[page_type]
    return TierInfo(page_type or "UNCLASSIFIED", SchemaTier.LOW, None, UNKNOWN_TIER_REASON)

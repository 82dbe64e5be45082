"""Business profile assembly for schema generation.

The profile merges three sources, most specific first: the ``site_profile``
JSON stored on the site row, the owning account's defaults, and the
account's locations (which replace any ``locations`` list in the JSON).
"""

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from pulse.models import Account, Location, Site


def _location_path(url: str | None) -> str | None:
    """Path of a location's page; None when unset or the site root."""
    if not url:
        return None
    if url.startswith(("http://", "https://")):
        path = urlparse(url).path
    else:
        path = url if url.startswith("/") else f"/{url}"
    return path if path and path != "/" else None


def _areas_served(value: Any) -> list[dict[str, Any]]:
    if not value:
        return []
    if isinstance(value, str):
        return [{"city": city.strip()} for city in value.split(",") if city.strip()]
    return [area if isinstance(area, dict) else {"city": str(area)} for area in value]


def location_to_dict(location: Location) -> dict[str, Any]:
    """Shape a location row the way the schema builders read it."""
    geo = None
    if location.latitude is not None and location.longitude is not None:
        geo = {"lat": location.latitude, "lng": location.longitude}
    return {
        "id": location.id,
        "name": location.location_name,
        "address": {
            "street": location.street,
            "city": location.city,
            "state": location.state,
            "zip": location.postal,
            "country": location.country or "US",
        },
        "phone": location.phone_number,
        "hours": location.hours,
        "geo": geo,
        "path": _location_path(location.url),
        "page_id": location.page_id,
        "gbp_url": location.gbp_url,
        "is_primary": bool(location.is_primary),
        "areas_served": _areas_served(location.areas_served),
        "description": location.business_description,
    }


def build_site_profile(
    site_profile: dict[str, Any] | None,
    account: Account | None = None,
    locations: list[Location] | None = None,
) -> dict[str, Any]:
    profile = dict(site_profile or {})

    if account is not None:
        defaults = {
            "business_name": account.provider_name or account.account_name,
            "legal_name": account.legal_name,
            "business_type": account.business_type,
            "phone": account.default_phone,
            "email": account.default_email,
            "logo_url": account.logo_url,
        }
        for key, value in defaults.items():
            if value and not profile.get(key):
                profile[key] = value

    if locations:
        ordered = sorted(locations, key=lambda loc: (not loc.is_primary, loc.location_name or ""))
        profile["locations"] = [location_to_dict(loc) for loc in ordered]
        if len(ordered) == 1 and profile.get("rating"):
            profile["locations"][0]["rating"] = profile["rating"]

    return profile


@dataclass
class SiteContext:
    """Everything the generator needs to know about the site."""
    site_id: str
    url: str
    domain: str
    profile: dict[str, Any] = field(default_factory=dict)

    @property
    def primary_location(self) -> dict[str, Any] | None:
        return next((loc for loc in self.profile.get("locations") or [] if loc.get("is_primary")), None)

    def preflight_context(self, page: dict[str, Any]) -> dict[str, Any]:
        return {
            "site": {"url": self.url, "domain": self.domain, "site_profile": self.profile},
            "page": page,
            "location": self.primary_location,
        }


def _context(site: Site, account: Account | None, locations: list[Location]) -> SiteContext:
    return SiteContext(
        site_id=site.id,
        url=site.url.rstrip("/"),
        domain=site.domain,
        profile=build_site_profile(site.site_profile, account, locations),
    )


def load_site_context(session: Session, site: Site) -> SiteContext:
    account = None
    locations: list[Location] = []
    if site.account_id:
        account = session.query(Account).filter(Account.id == site.account_id).first()
        locations = session.query(Location).filter(Location.account_id == site.account_id).all()
    return _context(site, account, locations)


async def load_site_context_async(session: AsyncSession, site: Site) -> SiteContext:
    account = None
    locations: list[Location] = []
    if site.account_id:
        account = await session.get(Account, site.account_id)
        result = await session.execute(select(Location).where(Location.account_id == site.account_id))
        locations = list(result.scalars().all())
    return _context(site, account, locations)

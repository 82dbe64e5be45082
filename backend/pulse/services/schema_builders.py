"""Template builders that turn page rows and the site profile into JSON-LD entities.

Builders are pure: any LLM-extracted fields are passed in by the caller.
Keys whose value is None are dropped from every entity.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

INLINE_LOCATION_THRESHOLD = 10
DEFAULT_BUSINESS_TYPE = "MedicalBusiness"
PROCEDURE_KEYWORDS = ["inject", "performed", "procedure", "treatment", "takes", "minutes"]


class LocationDataError(ValueError):
    """Raised when a location lacks the fields LocalBusiness markup needs."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required fields: {', '.join(missing)}")


def compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None, an empty string or an empty list."""
    return {k: v for k, v in data.items() if v is not None and v != "" and v != []}


def organization_id(site_url: str) -> str:
    return f"{site_url}/#organization"


def physician_id(site_url: str) -> str:
    return f"{site_url}/#physician"


def page_url_for(page: dict[str, Any], site_url: str) -> str:
    path = page.get("path") or "/"
    return f"{site_url}{path}" if path != "/" else f"{site_url}/"


def title_before_pipe(title: str | None) -> str:
    return (title or "").split("|")[0].strip()


def short_title(title: str | None) -> str:
    """Title before any ``|`` and ``-`` separators."""
    return title_before_pipe(title).split("-")[0].strip()


def page_description(page: dict[str, Any]) -> str | None:
    meta_tags = page.get("meta_tags") or {}
    return page.get("meta_description") or meta_tags.get("description") or meta_tags.get("og:description")


def page_image(page: dict[str, Any]) -> str | None:
    return (page.get("meta_tags") or {}).get("og:image")


def postal_address(address: dict[str, Any] | None) -> dict[str, Any] | None:
    if not address:
        return None
    return compact({
        "@type": "PostalAddress",
        "streetAddress": address.get("street"),
        "addressLocality": address.get("city"),
        "addressRegion": address.get("state"),
        "postalCode": address.get("zip"),
        "addressCountry": address.get("country") or "US",
    })


def extract_how_performed(text: str | None) -> str | None:
    """First sentence that reads like a description of the procedure itself."""
    for sentence in re.split(r"[.!?]+", text or ""):
        lowered = sentence.lower()
        if len(sentence) > 50 and any(keyword in lowered for keyword in PROCEDURE_KEYWORDS):
            return " ".join(sentence.split()) + "."
    return None


# ---------------------------------------------------------------------------
# Content pages
# ---------------------------------------------------------------------------

def build_procedure_schema(
    page: dict[str, Any],
    profile: dict[str, Any],
    site_url: str,
    extracted: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """MedicalProcedure with inline provider and performing physician."""
    title = page.get("title") or ""
    name = title.split("|")[0].strip() or title.split(" - ")[0].strip() or "Treatment"
    page_url = page_url_for(page, site_url)
    extracted = extracted or {}
    owner = profile.get("owner") or {}

    physician = compact({
        "@type": "Physician",
        "@id": physician_id(site_url),
        "name": owner.get("name"),
        "url": f"{site_url}{owner['url']}" if owner.get("url") else None,
        "image": owner.get("image"),
        "knowsAbout": owner.get("knowsAbout"),
        "memberOf": [
            compact({"@type": "Organization", "name": org.get("name"), "url": org.get("url")})
            for org in owner.get("memberOf") or []
        ],
        "sameAs": profile.get("social_media"),
    })

    provider = compact({
        "@type": profile.get("business_type") or DEFAULT_BUSINESS_TYPE,
        "@id": organization_id(site_url),
        "name": profile.get("business_name"),
        "url": site_url,
        "telephone": profile.get("phone"),
        "address": postal_address(profile.get("address")),
    })

    how_performed = extracted.get("howPerformed") or extract_how_performed(page.get("main_content"))

    schema = compact({
        "@type": "MedicalProcedure",
        "@id": f"{page_url}#procedure",
        "name": name,
        "url": page_url,
        "mainEntityOfPage": page_url,
        "description": page_description(page),
        "image": page_image(page) or profile.get("image_url"),
        "provider": provider,
        "performedBy": physician if owner.get("name") else None,
        "procedureType": extracted.get("procedureType"),
        "bodyLocation": extracted.get("bodyLocation"),
        "preparation": extracted.get("preparation"),
        "howPerformed": how_performed,
        "followup": extracted.get("followup"),
    })

    if profile.get("relevantSpecialty"):
        schema["relevantSpecialty"] = {"@type": "MedicalSpecialty", "name": profile["relevantSpecialty"]}

    return schema


def build_blog_schema(page: dict[str, Any], profile: dict[str, Any], site_url: str) -> dict[str, Any]:
    meta_tags = page.get("meta_tags") or {}
    now = datetime.now(timezone.utc).isoformat()
    owner = profile.get("owner") or {}

    return compact({
        "@type": "BlogPosting",
        "@id": f"{page_url_for(page, site_url)}#article",
        "headline": title_before_pipe(page.get("title")),
        "description": page_description(page),
        "url": page_url_for(page, site_url),
        "image": page_image(page),
        "datePublished": meta_tags.get("article:published_time") or meta_tags.get("article:modified_time") or now,
        "dateModified": meta_tags.get("article:modified_time") or now,
        "author": compact({
            "@type": "Physician",
            "@id": physician_id(site_url),
            "name": owner.get("name"),
        }),
        "publisher": {"@type": "Organization", "@id": organization_id(site_url)},
    })


def build_gallery_schema(page: dict[str, Any], site_url: str) -> dict[str, Any]:
    title = short_title(page.get("title")) or "Gallery"
    return {
        "@type": "ImageGallery",
        "@id": f"{page_url_for(page, site_url)}#gallery",
        "name": f"{title} Before & After Gallery",
        "description": f"Before and after photos for {title}.",
        "url": page_url_for(page, site_url),
    }


def build_team_member_schema(
    page: dict[str, Any],
    profile: dict[str, Any],
    site_url: str,
    extracted: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Physician (or Person for non-physician staff) profile."""
    extracted = extracted or {}
    page_url = page_url_for(page, site_url)

    education = extracted.get("education")
    if isinstance(education, str):
        education = [education]
    alumni_of = [{"@type": "EducationalOrganization", "name": school} for school in education or [] if school]

    return compact({
        "@type": "Physician" if extracted.get("isPhysician") else "Person",
        "@id": f"{page_url}#person",
        "name": extracted.get("name") or short_title(page.get("title")),
        "url": page_url,
        "description": page_description(page),
        "image": page_image(page),
        "jobTitle": extracted.get("jobTitle"),
        "honorificSuffix": extracted.get("credentials"),
        "knowsAbout": [s for s in extracted.get("specialties") or [] if s],
        "alumniOf": alumni_of[0] if len(alumni_of) == 1 else alumni_of,
        "worksFor": compact({
            "@type": profile.get("business_type") or DEFAULT_BUSINESS_TYPE,
            "@id": organization_id(site_url),
            "name": profile.get("business_name"),
        }),
    })


def build_condition_schema(page: dict[str, Any], site_url: str) -> dict[str, Any]:
    page_url = page_url_for(page, site_url)
    return compact({
        "@type": "MedicalCondition",
        "@id": f"{page_url}#condition",
        "name": title_before_pipe(page.get("title")) or None,
        "description": page_description(page),
        "url": page_url,
        "image": page_image(page),
    })


def build_product_schema(page: dict[str, Any], profile: dict[str, Any], site_url: str) -> dict[str, Any]:
    """Product from og/product meta tags; offers only when a price is published."""
    meta_tags = page.get("meta_tags") or {}
    page_url = page_url_for(page, site_url)
    price = meta_tags.get("product:price:amount") or meta_tags.get("og:price:amount")
    currency = meta_tags.get("product:price:currency") or meta_tags.get("og:price:currency") or "USD"

    offers = None
    if price:
        offers = {
            "@type": "Offer",
            "price": price,
            "priceCurrency": currency,
            "url": page_url,
            "availability": "https://schema.org/InStock",
        }

    return compact({
        "@type": "Product",
        "@id": f"{page_url}#product",
        "name": title_before_pipe(page.get("title")) or None,
        "description": page_description(page),
        "url": page_url,
        "image": page_image(page),
        "brand": compact({"@type": "Brand", "name": meta_tags.get("product:brand")}) if meta_tags.get("product:brand") else None,
        "seller": {"@id": organization_id(site_url)},
        "offers": offers,
    })


def build_item_list_schema(page: dict[str, Any], site_url: str, max_items: int = 50) -> dict[str, Any] | None:
    """ItemList of the collection's child pages, or None if it links to none."""
    page_path = (page.get("path") or "/").rstrip("/")
    items: list[str] = []
    for link in (page.get("links") or {}).get("internal") or []:
        path = urlparse(link).path.rstrip("/")
        if path.startswith(f"{page_path}/") and link not in items:
            items.append(link)

    if not items:
        return None

    page_url = page_url_for(page, site_url)
    return {
        "@type": "ItemList",
        "@id": f"{page_url}#itemlist",
        "name": title_before_pipe(page.get("title")) or "Products",
        "url": page_url,
        "numberOfItems": len(items[:max_items]),
        "itemListElement": [
            {"@type": "ListItem", "position": i + 1, "url": url}
            for i, url in enumerate(items[:max_items])
        ],
    }


# ---------------------------------------------------------------------------
# Business pages (homepage, location, contact)
# ---------------------------------------------------------------------------

def is_multi_location(profile: dict[str, Any]) -> bool:
    return len(profile.get("locations") or []) > 1


def get_location_data(profile: dict[str, Any], page_id: str | None = None, page_path: str | None = None) -> dict[str, Any]:
    """Pick the location a page describes.

    Explicit page_id linkage wins, then legacy path matching, then the primary
    location, then the first. Without any locations the flat profile is used.
    """
    locations = profile.get("locations") or []
    if locations:
        if page_id:
            for location in locations:
                if location.get("page_id") == page_id:
                    return location
        if page_path:
            for location in locations:
                loc_path = location.get("path")
                if loc_path and loc_path != "/" and loc_path in page_path:
                    logger.warning(f"Using legacy path matching for {page_path}, link the location to its page instead")
                    return location
        return next((loc for loc in locations if loc.get("is_primary")), locations[0])

    return {
        "name": profile.get("business_name"),
        "address": profile.get("address"),
        "phone": profile.get("phone"),
        "hours": profile.get("hours"),
        "geo": profile.get("geo"),
        "areas_served": profile.get("areas_served"),
        "rating": profile.get("rating"),
    }


def validate_location_data(location: dict[str, Any] | None) -> list[str]:
    """Return the human-readable names of missing required fields."""
    location = location or {}
    address = location.get("address") or {}
    missing = []
    if not location.get("name") and not location.get("business_name"):
        missing.append("Location name")
    if not location.get("phone"):
        missing.append("Phone number")
    if not address.get("street") or not address.get("city"):
        missing.append("Address (street, city, state, zip)")
    return missing


def _geo(location: dict[str, Any]) -> dict[str, Any] | None:
    geo = location.get("geo") or {}
    if geo.get("lat") in (None, "") or geo.get("lng") in (None, ""):
        return None
    try:
        return {"@type": "GeoCoordinates", "latitude": float(geo["lat"]), "longitude": float(geo["lng"])}
    except (TypeError, ValueError):
        return None


def _opening_hours(location: dict[str, Any]) -> list[dict[str, Any]] | None:
    hours = location.get("hours")
    if not isinstance(hours, list) or not hours:
        return None
    return [
        compact({
            "@type": "OpeningHoursSpecification",
            "dayOfWeek": h.get("days"),
            "opens": h.get("open"),
            "closes": h.get("close"),
        })
        for h in hours
        if isinstance(h, dict)
    ] or None


def _areas_served(location: dict[str, Any], with_state: bool = True) -> list[dict[str, Any]] | None:
    areas = location.get("areas_served") or []
    result = []
    for area in areas:
        if isinstance(area, dict):
            entry = {"@type": "City", "name": area.get("city")}
            if with_state and area.get("state"):
                entry["containedInPlace"] = {"@type": "State", "name": area["state"]}
        else:
            entry = {"@type": "City", "name": str(area)}
        if entry["name"]:
            result.append(entry)
    return result or None


def location_business_id(site_url: str, path: str | None) -> str:
    return f"{site_url}{path}#localbusiness" if path and path != "/" else f"{site_url}/#localbusiness"


def build_location_business_schema(
    location: dict[str, Any],
    profile: dict[str, Any],
    site_url: str,
    location_path: str | None = None,
) -> dict[str, Any]:
    """LocalBusiness for one location.

    Raises:
        LocationDataError: if name, phone or street address are missing.
    """
    missing = validate_location_data(location)
    if missing:
        raise LocationDataError(missing)

    schema: dict[str, Any] = {
        "@type": profile.get("business_type") or DEFAULT_BUSINESS_TYPE,
        "@id": location_business_id(site_url, location_path),
        "name": location.get("name") or profile.get("business_name"),
        "url": f"{site_url}{location_path}" if location_path and location_path != "/" else f"{site_url}/",
        "telephone": location.get("phone"),
        "address": postal_address(location.get("address")),
        "description": location.get("description"),
    }

    if is_multi_location(profile):
        schema["parentOrganization"] = {"@id": organization_id(site_url)}

    schema["geo"] = _geo(location)
    schema["openingHoursSpecification"] = _opening_hours(location)

    rating = location.get("rating") or {}
    if rating.get("value") and rating.get("count"):
        schema["aggregateRating"] = {
            "@type": "AggregateRating",
            "ratingValue": rating["value"],
            "reviewCount": rating["count"],
            "bestRating": 5,
        }

    schema["areaServed"] = _areas_served(location)
    if location.get("gbp_url"):
        schema["hasMap"] = location["gbp_url"]
    if profile.get("relevantSpecialty"):
        schema["medicalSpecialty"] = f"https://schema.org/{profile['relevantSpecialty']}"
    schema["logo"] = profile.get("logo_url")
    schema["image"] = profile.get("image_url")

    return compact(schema)


def build_organization_schema(
    profile: dict[str, Any],
    site_url: str,
    inline_threshold: int = INLINE_LOCATION_THRESHOLD,
) -> dict[str, Any]:
    """Organization for a multi-location practice homepage.

    Up to ``inline_threshold`` locations are embedded as full LocalBusiness
    entries under ``hasPart``; above it only ``@id`` references are emitted.
    """
    business_type = profile.get("business_type") or DEFAULT_BUSINESS_TYPE
    owner = profile.get("owner") or {}

    schema: dict[str, Any] = {
        "@type": "Organization",
        "@id": organization_id(site_url),
        "name": profile.get("business_name"),
        "legalName": profile.get("legal_name"),
        "url": f"{site_url}/",
        "description": profile.get("description"),
        "logo": profile.get("logo_url"),
        "image": profile.get("image_url"),
        "sameAs": profile.get("social_media"),
    }

    if owner.get("name"):
        schema["founder"] = compact({
            "@type": "Person",
            "@id": f"{site_url}{owner['url']}#person" if owner.get("url") else None,
            "name": owner["name"],
            "jobTitle": owner.get("title") or "Medical Director",
        })

    locations = profile.get("locations") or []
    if 0 < len(locations) <= inline_threshold:
        parts = []
        for i, location in enumerate(locations):
            path = location.get("path") or f"/location-{i + 1}"
            address = location.get("address") or {}
            parts.append(compact({
                "@type": business_type,
                "@id": f"{site_url}{path}#localbusiness",
                "name": location.get("name") or profile.get("business_name"),
                "url": f"{site_url}{location['path']}" if location.get("path") else f"{site_url}/",
                "telephone": location.get("phone"),
                "parentOrganization": {"@id": organization_id(site_url)},
                "address": postal_address(address) if address.get("street") and address.get("city") else None,
                "geo": _geo(location),
                "openingHoursSpecification": _opening_hours(location),
                "areaServed": _areas_served(location, with_state=False),
            }))
        schema["hasPart"] = parts
    elif len(locations) > inline_threshold:
        schema["hasPart"] = [
            compact({
                "@type": business_type,
                "@id": f"{site_url}{location.get('path') or f'/location-{i + 1}'}#localbusiness",
                "name": location.get("name"),
            })
            for i, location in enumerate(locations)
        ]

    return compact(schema)


def build_local_business_schema(
    profile: dict[str, Any],
    site_url: str,
    page_type: str,
    page_id: str | None = None,
    page_path: str | None = None,
    inline_threshold: int = INLINE_LOCATION_THRESHOLD,
) -> dict[str, Any]:
    """Business markup for HOMEPAGE, LOCATION and CONTACT pages.

    Raises:
        LocationDataError: if the chosen location is incomplete.
    """
    if page_type == "HOMEPAGE":
        if is_multi_location(profile):
            return build_organization_schema(profile, site_url, inline_threshold)
        return build_location_business_schema(get_location_data(profile), profile, site_url, None)

    if page_type == "LOCATION":
        location = get_location_data(profile, page_id, page_path)
        return build_location_business_schema(location, profile, site_url, page_path)

    # CONTACT: the primary location, identified by the contact page itself
    return build_location_business_schema(get_location_data(profile), profile, site_url, page_path or "/contact")

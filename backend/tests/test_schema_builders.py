"""Tests for the JSON-LD template builders."""

import pytest

from pulse.services import schema_builders as builders

SITE_URL = "https://example.com"


class TestHelpers:
    def test_compact(self):
        assert builders.compact({"a": None, "b": "", "c": [], "d": 0, "e": "x"}) == {"d": 0, "e": "x"}

    def test_page_url(self):
        assert builders.page_url_for({"path": "/"}, SITE_URL) == "https://example.com/"
        assert builders.page_url_for({"path": "/botox"}, SITE_URL) == "https://example.com/botox"

    def test_titles(self):
        assert builders.title_before_pipe("Botox | Glow") == "Botox"
        assert builders.short_title("Dr. Jane Smith - Medical Director | Glow") == "Dr. Jane Smith"

    def test_postal_address_default_country(self):
        address = builders.postal_address({"street": "1 Main", "city": "Austin"})
        assert address == {
            "@type": "PostalAddress",
            "streetAddress": "1 Main",
            "addressLocality": "Austin",
            "addressCountry": "US",
        }
        assert builders.postal_address(None) is None

    def test_extract_how_performed(self):
        text = "Welcome. The treatment is performed with a fine needle in a series of quick injections! Call us."
        assert builders.extract_how_performed(text) == (
            "The treatment is performed with a fine needle in a series of quick injections."
        )
        assert builders.extract_how_performed("Short. Text.") is None


class TestContentBuilders:
    def test_procedure(self, make_page, site_context):
        schema = builders.build_procedure_schema(
            make_page(),
            site_context.profile,
            SITE_URL,
            extracted={"bodyLocation": "Face", "howPerformed": "Small injections into targeted muscles."},
        )
        assert schema["@type"] == "MedicalProcedure"
        assert schema["@id"] == "https://example.com/botox#procedure"
        assert schema["name"] == "Botox Injections"
        assert schema["bodyLocation"] == "Face"
        assert schema["howPerformed"] == "Small injections into targeted muscles."
        assert schema["provider"]["@type"] == "MedicalSpa"
        assert schema["provider"]["@id"] == "https://example.com/#organization"
        assert schema["performedBy"]["name"] == "Dr. Jane Smith"
        assert schema["performedBy"]["url"] == "https://example.com/team/jane-smith"
        assert "procedureType" not in schema

    def test_procedure_without_owner(self, make_page):
        schema = builders.build_procedure_schema(make_page(), {"business_name": "Glow"}, SITE_URL)
        assert "performedBy" not in schema
        assert schema["provider"]["@type"] == builders.DEFAULT_BUSINESS_TYPE

    def test_blog_dates_from_meta(self, make_page, site_context):
        page = make_page(
            path="/blog/botox-myths",
            title="Five Botox Myths | Glow Blog",
            meta_tags={"article:published_time": "2024-03-01T10:00:00Z"},
        )
        schema = builders.build_blog_schema(page, site_context.profile, SITE_URL)
        assert schema["headline"] == "Five Botox Myths"
        assert schema["datePublished"] == "2024-03-01T10:00:00Z"
        assert schema["author"]["name"] == "Dr. Jane Smith"
        assert schema["publisher"] == {"@type": "Organization", "@id": "https://example.com/#organization"}

    def test_gallery(self, make_page):
        schema = builders.build_gallery_schema(make_page(path="/gallery/botox", title="Botox - Photos | Glow"), SITE_URL)
        assert schema["name"] == "Botox Before & After Gallery"
        assert schema["@id"] == "https://example.com/gallery/botox#gallery"

    def test_team_member_physician(self, make_page, site_context):
        schema = builders.build_team_member_schema(
            make_page(path="/team/jane-smith", title="Dr. Jane Smith | Glow"),
            site_context.profile,
            SITE_URL,
            extracted={"isPhysician": True, "credentials": "MD", "education": "UT Southwestern", "specialties": ["Botox", None]},
        )
        assert schema["@type"] == "Physician"
        assert schema["name"] == "Dr. Jane Smith"
        assert schema["honorificSuffix"] == "MD"
        assert schema["alumniOf"] == {"@type": "EducationalOrganization", "name": "UT Southwestern"}
        assert schema["knowsAbout"] == ["Botox"]
        assert schema["worksFor"]["@id"] == "https://example.com/#organization"

    def test_team_member_person(self, make_page, site_context):
        schema = builders.build_team_member_schema(make_page(title="Amy Lee - Nurse"), site_context.profile, SITE_URL)
        assert schema["@type"] == "Person"
        assert schema["name"] == "Amy Lee"

    def test_product_offer_only_with_price(self, make_page, site_context):
        page = make_page(path="/shop/serum", title="Serum | Shop", meta_tags={"product:price:amount": "89.00"})
        schema = builders.build_product_schema(page, site_context.profile, SITE_URL)
        assert schema["offers"]["price"] == "89.00"
        assert schema["offers"]["priceCurrency"] == "USD"

        no_price = builders.build_product_schema(make_page(meta_tags={}), site_context.profile, SITE_URL)
        assert "offers" not in no_price

    def test_item_list_children_only(self, make_page):
        page = make_page(
            path="/shop",
            title="Shop | Glow",
            links={"internal": [
                "https://example.com/shop/serum",
                "https://example.com/shop/cleanser",
                "https://example.com/shop/serum",
                "https://example.com/about",
            ]},
        )
        schema = builders.build_item_list_schema(page, SITE_URL)
        assert schema["numberOfItems"] == 2
        assert schema["itemListElement"][1] == {"@type": "ListItem", "position": 2, "url": "https://example.com/shop/cleanser"}

    def test_item_list_without_children(self, make_page):
        assert builders.build_item_list_schema(make_page(path="/shop"), SITE_URL) is None


class TestLocationSelection:
    def test_page_id_link_wins(self, multi_location_context):
        location = builders.get_location_data(multi_location_context.profile, page_id="page-dallas", page_path="/locations/austin")
        assert location["name"] == "Glow Aesthetics Dallas"

    def test_path_match(self, multi_location_context):
        location = builders.get_location_data(multi_location_context.profile, page_path="/locations/dallas")
        assert location["name"] == "Glow Aesthetics Dallas"

    def test_root_path_never_matches(self, multi_location_context):
        profile = dict(multi_location_context.profile)
        root = {**profile["locations"][1], "path": "/", "page_id": None, "name": "Glow Root"}
        profile["locations"] = [profile["locations"][0], root]
        location = builders.get_location_data(profile, page_path="/locations/houston")
        assert location["name"] == "Glow Aesthetics Austin"

    def test_primary_default(self, multi_location_context):
        assert builders.get_location_data(multi_location_context.profile)["name"] == "Glow Aesthetics Austin"

    def test_flat_profile(self):
        location = builders.get_location_data({"business_name": "Glow", "phone": "1"})
        assert location["name"] == "Glow"
        assert location["phone"] == "1"

    def test_validate_location_data(self):
        missing = builders.validate_location_data({"name": "Glow", "address": {"street": "1 Main"}})
        assert missing == ["Phone number", "Address (street, city, state, zip)"]


class TestBusinessBuilders:
    def test_single_location_homepage(self, site_context):
        schema = builders.build_local_business_schema(site_context.profile, SITE_URL, "HOMEPAGE")
        assert schema["@type"] == "MedicalSpa"
        assert schema["@id"] == "https://example.com/#localbusiness"
        assert schema["telephone"] == "(512) 555-0100"
        assert schema["geo"] == {"@type": "GeoCoordinates", "latitude": 30.2672, "longitude": -97.7431}
        assert schema["openingHoursSpecification"][0]["opens"] == "09:00"
        assert schema["areaServed"][0]["containedInPlace"] == {"@type": "State", "name": "TX"}
        assert schema["hasMap"] == "https://maps.google.com/?cid=1"
        assert "parentOrganization" not in schema

    def test_multi_location_homepage_is_organization(self, multi_location_context):
        schema = builders.build_local_business_schema(multi_location_context.profile, SITE_URL, "HOMEPAGE")
        assert schema["@type"] == "Organization"
        assert schema["@id"] == "https://example.com/#organization"
        assert schema["founder"]["name"] == "Dr. Jane Smith"
        ids = [part["@id"] for part in schema["hasPart"]]
        assert ids == [
            "https://example.com/locations/austin#localbusiness",
            "https://example.com/locations/dallas#localbusiness",
        ]
        assert schema["hasPart"][0]["telephone"] == "(512) 555-0100"

    def test_references_resolve_to_homepage_organization(self, make_page, multi_location_context):
        profile = multi_location_context.profile
        organization = builders.build_local_business_schema(profile, SITE_URL, "HOMEPAGE")
        procedure = builders.build_procedure_schema(make_page(), profile, SITE_URL)
        location = builders.build_local_business_schema(
            profile, SITE_URL, "LOCATION", page_id="page-dallas", page_path="/locations/dallas"
        )
        assert procedure["provider"]["@id"] == organization["@id"]
        assert location["parentOrganization"]["@id"] == organization["@id"]

    def test_organization_references_above_threshold(self, multi_location_context):
        schema = builders.build_organization_schema(multi_location_context.profile, SITE_URL, inline_threshold=1)
        assert schema["hasPart"][0] == {
            "@type": "MedicalSpa",
            "@id": "https://example.com/locations/austin#localbusiness",
            "name": "Glow Aesthetics Austin",
        }

    def test_location_page(self, multi_location_context):
        schema = builders.build_local_business_schema(
            multi_location_context.profile, SITE_URL, "LOCATION", page_id="page-dallas", page_path="/locations/dallas"
        )
        assert schema["name"] == "Glow Aesthetics Dallas"
        assert schema["@id"] == "https://example.com/locations/dallas#localbusiness"
        assert schema["parentOrganization"] == {"@id": "https://example.com/#organization"}

    def test_contact_page_uses_primary(self, multi_location_context):
        schema = builders.build_local_business_schema(multi_location_context.profile, SITE_URL, "CONTACT")
        assert schema["name"] == "Glow Aesthetics Austin"
        assert schema["url"] == "https://example.com/contact"

    def test_incomplete_location_raises(self, site_context):
        site_context.profile["locations"][0]["phone"] = None
        with pytest.raises(builders.LocationDataError) as exc_info:
            builders.build_local_business_schema(site_context.profile, SITE_URL, "LOCATION", page_path="/locations/austin")
        assert exc_info.value.missing == ["Phone number"]

    def test_rating_needs_value_and_count(self, site_context):
        location = dict(site_context.profile["locations"][0], rating={"value": 4.9, "count": 120})
        schema = builders.build_location_business_schema(location, site_context.profile, SITE_URL)
        assert schema["aggregateRating"]["reviewCount"] == 120

        location["rating"] = {"value": 4.9}
        assert "aggregateRating" not in builders.build_location_business_schema(location, site_context.profile, SITE_URL)

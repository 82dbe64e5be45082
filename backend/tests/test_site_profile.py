"""Tests for business profile assembly."""

from pulse.models import Account, Location
from pulse.services.site_profile import SiteContext, build_site_profile, location_to_dict


def make_location(**overrides):
    values = {
        "id": "loc-1",
        "account_id": "acct-1",
        "location_name": "Glow Austin",
        "street": "100 Congress Ave",
        "city": "Austin",
        "state": "TX",
        "postal": "78701",
        "country": None,
        "phone_number": "(512) 555-0100",
        "latitude": 30.2672,
        "longitude": -97.7431,
        "url": "https://glow.com/locations/austin/",
        "is_primary": True,
        "areas_served": "Austin, Round Rock, ",
    }
    values.update(overrides)
    return Location(**values)


class TestLocationToDict:
    def test_shape(self):
        data = location_to_dict(make_location())
        assert data["name"] == "Glow Austin"
        assert data["address"] == {"street": "100 Congress Ave", "city": "Austin", "state": "TX", "zip": "78701", "country": "US"}
        assert data["geo"] == {"lat": 30.2672, "lng": -97.7431}
        assert data["path"] == "/locations/austin/"
        assert data["areas_served"] == [{"city": "Austin"}, {"city": "Round Rock"}]

    def test_relative_url_and_missing_geo(self):
        data = location_to_dict(make_location(url="dallas", latitude=None, areas_served=None))
        assert data["path"] == "/dallas"
        assert data["geo"] is None
        assert data["areas_served"] == []

    def test_site_root_has_no_path(self):
        assert location_to_dict(make_location(url="https://glow.com/"))["path"] is None
        assert location_to_dict(make_location(url="/"))["path"] is None


class TestBuildSiteProfile:
    def test_account_fills_gaps_only(self):
        account = Account(account_name="Glow LLC", provider_name="Glow Aesthetics", default_phone="(512) 555-0000")
        profile = build_site_profile({"phone": "(512) 555-9999"}, account)
        assert profile["business_name"] == "Glow Aesthetics"
        assert profile["phone"] == "(512) 555-9999"

    def test_account_name_fallback(self):
        profile = build_site_profile(None, Account(account_name="Glow LLC"))
        assert profile["business_name"] == "Glow LLC"

    def test_locations_replace_json_and_primary_first(self):
        locations = [
            make_location(id="loc-2", location_name="Glow Dallas", is_primary=False),
            make_location(),
        ]
        profile = build_site_profile({"locations": [{"name": "stale"}]}, None, locations)
        assert [loc["name"] for loc in profile["locations"]] == ["Glow Austin", "Glow Dallas"]

    def test_single_location_inherits_rating(self):
        profile = build_site_profile({"rating": {"value": 4.8, "count": 210}}, None, [make_location()])
        assert profile["locations"][0]["rating"] == {"value": 4.8, "count": 210}


class TestSiteContext:
    def test_primary_location_and_preflight_context(self):
        profile = build_site_profile(None, None, [make_location()])
        context = SiteContext(site_id="s1", url="https://glow.com", domain="glow.com", profile=profile)
        assert context.primary_location["id"] == "loc-1"

        preflight = context.preflight_context({"path": "/"})
        assert preflight["site"]["site_profile"] is profile
        assert preflight["location"]["name"] == "Glow Austin"

    def test_no_locations(self):
        context = SiteContext(site_id="s1", url="https://glow.com", domain="glow.com")
        assert context.primary_location is None

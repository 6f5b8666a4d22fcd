"""
Unit tests for the GeoNames client, parsers and country data stores.

Upstream responses come from a fake requests session; no network access.
"""
import threading
import time

import pytest
import requests

from ipapi.geonames import (
    CountryDataStore,
    GeoNamesClient,
    Neighbour,
    UpstreamError,
    UpstreamPayloadError,
    UpstreamServiceError,
    UpstreamStatusError,
    country_codes,
    languages_store,
    neighbours_store,
    parse_language_field,
    parse_languages,
    parse_neighbours,
)


# =============================================================================
# Fake Upstream
# =============================================================================

class FakeResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """
    Stand-in for requests.Session keyed by (endpoint, country).

    A value may be a FakeResponse or an exception to raise. Unknown keys
    answer with an empty geonames list.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.closed = False
        self.on_call = None

    def get(self, url, params=None, timeout=None):
        endpoint = url.rsplit("/", 1)[-1]
        country = params["country"]
        self.calls.append({
            "endpoint": endpoint,
            "country": country,
            "username": params["username"],
            "timeout": timeout,
            "at": time.monotonic(),
        })
        if self.on_call is not None:
            self.on_call(endpoint, country)

        result = self.responses.get((endpoint, country), FakeResponse(payload={"geonames": []}))
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


def neighbours_payload(*pairs):
    return {"geonames": [{"countryCode": code, "countryName": name} for code, name in pairs]}


def languages_payload(languages):
    return {"geonames": [{"countryCode": "XX", "languages": languages}]}


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(session):
    return GeoNamesClient(username="demo", timeout=8.0, session=session)


# =============================================================================
# Parsers
# =============================================================================

class TestParsers:
    """Tests for response parsing rules."""

    def test_neighbours_keep_complete_items_only(self):
        payload = {"geonames": [
            {"countryCode": "NL", "countryName": "Netherlands"},
            {"countryCode": "", "countryName": "Nowhere"},
            {"countryName": "Germany"},
            {"countryCode": "FR"},
            {"countryCode": "LU", "countryName": "Luxembourg", "geonameId": 2960313},
        ]}
        assert parse_neighbours(payload) == [
            Neighbour("NL", "Netherlands"),
            Neighbour("LU", "Luxembourg"),
        ]

    def test_neighbours_tolerate_missing_list(self):
        assert parse_neighbours({}) == []
        assert parse_neighbours({"geonames": None}) == []
        assert parse_neighbours({"geonames": ["junk", 3]}) == []

    def test_neighbour_to_dict(self):
        assert Neighbour("NL", "Netherlands").to_dict() == {
            "countryCode": "NL",
            "countryName": "Netherlands",
        }

    def test_language_field_trim_dedup_keep_order(self):
        assert parse_language_field(" fr-BE, nl,,de-BE ,nl,fr, FR ") == [
            "fr-BE", "nl", "de-BE", "fr", "FR",
        ]

    def test_language_field_empty(self):
        assert parse_language_field("") == []
        assert parse_language_field(" , ,") == []
        assert parse_language_field(None) == []

    def test_languages_use_first_item(self):
        payload = {"geonames": [
            {"languages": "pt-BR,es,en"},
            {"languages": "xx"},
        ]}
        assert parse_languages(payload) == ["pt-BR", "es", "en"]

    def test_languages_empty_payload(self):
        assert parse_languages({"geonames": []}) == []


# =============================================================================
# Client
# =============================================================================

class TestClient:
    """Tests for request building and error mapping."""

    def test_fetch_passes_country_username_and_timeout(self, client, session):
        session.responses[("neighboursJSON", "BE")] = FakeResponse(payload=neighbours_payload(("NL", "Netherlands")))
        payload = client.fetch("neighboursJSON", "BE")

        assert payload["geonames"][0]["countryCode"] == "NL"
        call = session.calls[0]
        assert call["country"] == "BE"
        assert call["username"] == "demo"
        assert call["timeout"] == 8.0

    def test_enabled_requires_username(self, session):
        assert not GeoNamesClient(username=None, session=session).enabled
        assert not GeoNamesClient(username="", session=session).enabled
        assert GeoNamesClient(username="demo", session=session).enabled

    def test_non_success_status(self, client, session):
        session.responses[("neighboursJSON", "FR")] = FakeResponse(status_code=500)
        with pytest.raises(UpstreamStatusError) as exc_info:
            client.fetch("neighboursJSON", "FR")
        assert exc_info.value.status_code == 500
        assert exc_info.value.country == "FR"

    def test_invalid_json(self, client, session):
        session.responses[("neighboursJSON", "FR")] = FakeResponse(invalid_json=True)
        with pytest.raises(UpstreamPayloadError):
            client.fetch("neighboursJSON", "FR")

    def test_non_object_json(self, client, session):
        session.responses[("neighboursJSON", "FR")] = FakeResponse(payload=["not", "an", "object"])
        with pytest.raises(UpstreamPayloadError):
            client.fetch("neighboursJSON", "FR")

    def test_service_error_inside_200(self, client, session):
        session.responses[("countryInfoJSON", "FR")] = FakeResponse(payload={
            "status": {"message": "the hourly limit of 1000 credits for demo has been exceeded", "value": 19},
        })
        with pytest.raises(UpstreamServiceError) as exc_info:
            client.fetch("countryInfoJSON", "FR")
        assert exc_info.value.code == 19

    def test_network_error(self, client, session):
        session.responses[("neighboursJSON", "FR")] = requests.ConnectionError("connection refused")
        with pytest.raises(UpstreamError):
            client.fetch("neighboursJSON", "FR")

    def test_timeout(self, client, session):
        session.responses[("neighboursJSON", "FR")] = requests.Timeout("read timed out")
        with pytest.raises(UpstreamError):
            client.fetch("neighboursJSON", "FR")

    def test_close_leaves_injected_session_open(self, client, session):
        client.close()
        assert not session.closed


# =============================================================================
# Country Data Store
# =============================================================================

class TestCountryDataStore:
    """Tests for bulk refresh semantics."""

    def test_countries_are_deduplicated_and_sorted(self, client):
        store = neighbours_store(client, ["fr", "BE", "FR", " de ", ""], request_delay=0)
        assert store.countries == ["BE", "DE", "FR"]

    def test_default_country_list(self):
        codes = country_codes()
        assert codes == sorted(set(codes))
        assert {"BE", "FR", "US", "JP"} <= set(codes)

    def test_refresh_in_sorted_order(self, client, session):
        store = neighbours_store(client, ["FR", "BE", "DE"], request_delay=0)
        store.refresh_all_once()
        assert [c["country"] for c in session.calls] == ["BE", "DE", "FR"]
        assert all(c["endpoint"] == "neighboursJSON" for c in session.calls)

    def test_example_scenario_partial_failure_with_delay(self, client, session):
        session.responses[("neighboursJSON", "BE")] = FakeResponse(payload=neighbours_payload(("NL", "Netherlands")))
        session.responses[("neighboursJSON", "FR")] = FakeResponse(status_code=500)
        store = neighbours_store(client, ["BE", "FR"], request_delay=1.1)

        started = time.monotonic()
        report = store.refresh_all_once()
        elapsed = time.monotonic() - started

        assert store.get("BE") == [Neighbour("NL", "Netherlands")]
        assert store.get("FR") == []
        assert elapsed >= 1.1
        assert len(session.calls) == 2
        # The delay separates consecutive requests
        assert session.calls[1]["at"] - session.calls[0]["at"] >= 1.0
        assert report.updated == ["BE"]
        assert report.failed == ["FR"]

    def test_failure_keeps_previous_entry(self, client, session):
        session.responses[("neighboursJSON", "XX")] = FakeResponse(payload=neighbours_payload(("AA", "Old A")))
        session.responses[("neighboursJSON", "YY")] = FakeResponse(payload=neighbours_payload(("BB", "Old B")))
        store = neighbours_store(client, ["XX", "YY"], request_delay=0)
        store.refresh_all_once()

        session.responses[("neighboursJSON", "XX")] = requests.ConnectionError("boom")
        session.responses[("neighboursJSON", "YY")] = FakeResponse(payload=neighbours_payload(("CC", "New C")))
        report = store.refresh_all_once()

        assert store.get("XX") == [Neighbour("AA", "Old A")]
        assert store.get("YY") == [Neighbour("CC", "New C")]
        assert report.failed == ["XX"]
        assert report.updated == ["YY"]

    def test_every_failure_kind_is_contained(self, client, session):
        session.responses[("countryInfoJSON", "AA")] = FakeResponse(status_code=503)
        session.responses[("countryInfoJSON", "BB")] = FakeResponse(invalid_json=True)
        session.responses[("countryInfoJSON", "CC")] = requests.Timeout("slow")
        session.responses[("countryInfoJSON", "DD")] = FakeResponse(payload={"status": {"message": "invalid user", "value": 10}})
        session.responses[("countryInfoJSON", "EE")] = FakeResponse(payload=languages_payload("et,ru"))
        store = languages_store(client, ["AA", "BB", "CC", "DD", "EE"], request_delay=0)

        report = store.refresh_all_once()

        assert report.failed == ["AA", "BB", "CC", "DD"]
        assert store.get("EE") == ["et", "ru"]
        assert len(store) == 1

    def test_unexpected_error_does_not_abort_cycle(self, client, session):
        session.responses[("countryInfoJSON", "AA")] = RuntimeError("bug in transport")
        session.responses[("countryInfoJSON", "BB")] = FakeResponse(payload=languages_payload("en"))
        store = languages_store(client, ["AA", "BB"], request_delay=0)

        report = store.refresh_all_once()

        assert report.failed == ["AA"]
        assert store.get("BB") == ["en"]

    def test_empty_languages_keep_previous_entry(self, client, session):
        session.responses[("countryInfoJSON", "ZZ")] = FakeResponse(payload=languages_payload("en-ZZ,fr"))
        store = languages_store(client, ["ZZ"], request_delay=0)
        store.refresh_all_once()

        session.responses[("countryInfoJSON", "ZZ")] = FakeResponse(payload=languages_payload(" , "))
        report = store.refresh_all_once()

        assert store.get("ZZ") == ["en-ZZ", "fr"]
        assert report.unchanged == ["ZZ"]
        assert report.failed == []

    def test_empty_neighbours_never_create_entry(self, client, session):
        store = neighbours_store(client, ["IS"], request_delay=0)
        store.refresh_all_once()
        assert store.get("IS") == []
        assert "IS" not in store.snapshot()

    def test_no_username_is_noop(self, session):
        store = neighbours_store(GeoNamesClient(username=None, session=session), ["BE"], request_delay=0)
        report = store.refresh_all_once()
        assert report.skipped
        assert session.calls == []
        assert not store.enabled

    def test_get_is_case_insensitive_and_returns_copy(self, client, session):
        session.responses[("countryInfoJSON", "BE")] = FakeResponse(payload=languages_payload("nl-BE,fr-BE,de-BE"))
        store = languages_store(client, ["BE"], request_delay=0)
        store.refresh_all_once()

        langs = store.get("be")
        langs.append("xx")
        assert store.get("BE") == ["nl-BE", "fr-BE", "de-BE"]
        assert store.get("") == []
        assert store.get("ZZ") == []

    def test_cancel_stops_cycle_between_countries(self, client, session):
        cancel = threading.Event()
        session.on_call = lambda endpoint, country: cancel.set()
        store = neighbours_store(client, ["AA", "BB", "CC"], request_delay=30)

        started = time.monotonic()
        report = store.refresh_all_once(cancel)

        assert time.monotonic() - started < 5
        assert [c["country"] for c in session.calls] == ["AA"]
        assert report.cancelled

    def test_already_cancelled_makes_no_calls(self, client, session):
        cancel = threading.Event()
        cancel.set()
        store = neighbours_store(client, ["AA", "BB"], request_delay=0)
        report = store.refresh_all_once(cancel)
        assert session.calls == []
        assert report.cancelled

    def test_reads_during_refresh_see_previous_or_new_data(self, client, session):
        session.responses[("neighboursJSON", "BE")] = FakeResponse(payload=neighbours_payload(("NL", "Netherlands")))
        store = neighbours_store(client, ["BE"], request_delay=0)
        store.refresh_all_once()

        seen = []
        session.responses[("neighboursJSON", "BE")] = FakeResponse(payload=neighbours_payload(("NL", "Netherlands"), ("FR", "France")))
        session.on_call = lambda endpoint, country: seen.append(store.get("BE"))
        store.refresh_all_once()

        assert seen == [[Neighbour("NL", "Netherlands")]]
        assert store.get("BE") == [Neighbour("NL", "Netherlands"), Neighbour("FR", "France")]

    def test_generic_store_with_custom_parser(self, client, session):
        session.responses[("timezoneJSON", "BE")] = FakeResponse(payload={"gmtOffset": 1})
        store = CountryDataStore(
            name="offsets",
            endpoint="timezoneJSON",
            parser=lambda payload: [payload["gmtOffset"]] if "gmtOffset" in payload else [],
            client=client,
            countries=["BE"],
            request_delay=0,
        )
        store.refresh_all_once()
        assert store.get("BE") == [1]

    def test_stats_after_refresh(self, client, session):
        session.responses[("neighboursJSON", "BE")] = FakeResponse(payload=neighbours_payload(("NL", "Netherlands")))
        store = neighbours_store(client, ["BE", "FR"], request_delay=0)
        store.refresh_all_once()

        stats = store.get_stats()
        assert stats["entries"] == 1
        assert stats["countries"] == 2
        assert stats["last_refresh"]["updated"] == 1
        assert stats["last_refresh"]["unchanged"] == 1

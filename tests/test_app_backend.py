from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from library_backend import app_backend
from library_backend.config import Settings
from library_backend.errors import (
    MissingApiKey,
    NoGamesFound,
    UpstreamMalformed,
    UpstreamRejected,
    UpstreamRequestFailed,
)
from library_backend.steam_client import parse_owned_games

OWNED = {"response": {"game_count": 1, "games": [{"appid": 440, "name": "TF2", "playtime_forever": 3}]}}


class FakeFetcher:
    def __init__(self, payload=None, error=None, vanity=None):
        self.payload = payload
        self.error = error
        self.vanity = vanity or {}
        self.fetched: list[str] = []

    def fetch_owned_games(self, steamid):
        self.fetched.append(steamid)
        if self.error is not None:
            raise self.error
        return self.payload, parse_owned_games(steamid, self.payload)

    def resolve_vanity(self, slug):
        if slug not in self.vanity:
            raise NoGamesFound("No Steam profile matches that custom URL.")
        return self.vanity[slug]

    def fetch_player_summary(self, steamid):
        return None


def make_client(fetcher=None, settings=None, policy=None, lookup=None):
    app = app_backend.create_app()
    app.dependency_overrides[app_backend.get_settings] = lambda: settings or Settings(steam_api_key="k")
    if fetcher is not None:
        app.dependency_overrides[app_backend.get_fetcher] = lambda: fetcher
    if policy is not None:
        app.dependency_overrides[app_backend.get_policy] = lambda: policy
    if lookup is not None:
        app.dependency_overrides[app_backend.get_price_lookup] = lambda: lookup
    return TestClient(app)


def test_owned_games_are_proxied_verbatim():
    fetcher = FakeFetcher(payload=OWNED)
    r = make_client(fetcher).post("/api/steam", json={"steamId": "76561198012345678"})
    assert r.status_code == 200
    assert r.json() == OWNED
    assert fetcher.fetched == ["76561198012345678"]


def test_profile_url_is_resolved_through_vanity_lookup():
    fetcher = FakeFetcher(payload=OWNED, vanity={"examplename": "76561198000000001"})
    r = make_client(fetcher).post(
        "/api/steam", json={"steamId": "https://steamcommunity.com/id/examplename/"}
    )
    assert r.status_code == 200
    assert fetcher.fetched == ["76561198000000001"]
    assert r.headers["X-Steam-Id"] == "76561198000000001"


def test_vanity_lookup_can_be_disabled():
    fetcher = FakeFetcher(payload=OWNED)
    client = make_client(fetcher, settings=Settings(steam_api_key="k", resolve_vanity=False))
    r = client.post("/api/steam", json={"steamId": "steamcommunity.com/id/examplename"})
    assert r.status_code == 200
    assert fetcher.fetched == ["examplename"]


def test_invalid_input_never_reaches_steam():
    fetcher = FakeFetcher(payload=OWNED)
    r = make_client(fetcher).post("/api/steam", json={"steamId": "not a steam id"})
    assert r.status_code == 400
    assert r.json()["kind"] == "input_invalid"
    assert "error" in r.json()
    assert fetcher.fetched == []


def test_missing_body_field_is_reported_as_error_json():
    r = make_client(FakeFetcher(payload=OWNED)).post("/api/steam", json={})
    assert r.status_code == 400
    assert "error" in r.json()


@pytest.mark.parametrize(
    "error, status, kind",
    [
        (NoGamesFound(), 404, "no_games"),
        (UpstreamRequestFailed("down"), 503, "request_failed"),
        (UpstreamRejected(401, data={"detail": "bad key"}), 502, "rejected"),
        (UpstreamMalformed("bad"), 502, "malformed"),
        (MissingApiKey(), 500, "config_missing"),
    ],
)
def test_fetch_failures_map_to_distinct_error_payloads(error, status, kind):
    r = make_client(FakeFetcher(error=error)).post("/api/steam", json={"steamId": "76561198012345678"})
    assert r.status_code == status
    body = r.json()
    assert body["kind"] == kind
    assert body["error"]


def test_rejected_payload_carries_upstream_status_and_data():
    error = UpstreamRejected(401, data={"detail": "bad key"})
    r = make_client(FakeFetcher(error=error)).post("/api/steam", json={"steamId": "76561198012345678"})
    assert r.json()["status"] == 401
    assert r.json()["data"] == {"detail": "bad key"}


def test_missing_api_key_through_real_fetcher():
    client = make_client(settings=Settings(steam_api_key=None))
    r = client.post("/api/steam", json={"steamId": "76561198012345678"})
    assert r.status_code == 500
    assert r.json()["kind"] == "config_missing"


def test_recommend_uses_configured_local_policy():
    client = make_client(settings=Settings(recommendation_limit=2))
    games = [
        {"appid": 1, "playtime_forever": 0},
        {"appid": 2, "playtime_forever": 120},
        {"appid": 3},
        {"appid": 4, "playtime_forever": 5},
    ]
    r = client.post("/api/recommend", json={"games": games})
    assert r.status_code == 200
    assert [rec["appid"] for rec in r.json()["recommendations"]] == [1, 3]


def test_recommend_delegated_without_url_is_enrichment_failure():
    client = make_client(settings=Settings(recommendation_policy="delegated"))
    r = client.post("/api/recommend", json={"games": [{"appid": 1}]})
    assert r.status_code == 502
    assert r.json()["kind"] == "enrichment_failed"


def test_price_endpoint():
    class Lookup:
        def get_price(self, appid, cc):
            return {10: 9.99, 20: 0.0}.get(appid)

    client = make_client(lookup=Lookup())
    assert client.get("/price", params={"appid": 10, "cc": "US"}).json() == {"appid": 10, "cc": "US", "price": 9.99}
    assert client.get("/price", params={"appid": 20}).json()["price"] == 0.0
    assert client.get("/price", params={"appid": 30}).json()["price"] is None


def test_player_not_found_is_404():
    r = make_client(FakeFetcher(payload=OWNED)).get("/api/player", params={"steamId": "76561198012345678"})
    assert r.status_code == 404


def test_health_reports_policy():
    r = make_client(settings=Settings(recommendation_policy="local")).get("/health")
    assert r.json() == {"status": "ok", "policy": "local"}


def test_invalid_configuration_is_error_json(monkeypatch):
    monkeypatch.setenv("RECOMMENDATION_POLICY", "magic")
    r = TestClient(app_backend.create_app()).get("/health")
    assert r.status_code == 500
    assert r.json()["kind"] == "config_invalid"
    assert "error" in r.json()
    assert "magic" in r.json()["details"]


def test_error_shape_is_published_in_openapi():
    schema = make_client().get("/openapi.json").json()
    assert "ErrorResponse" in schema["components"]["schemas"]
    steam_responses = schema["paths"]["/api/steam"]["post"]["responses"]
    for status in ("400", "404", "500", "502", "503"):
        assert steam_responses[status]["content"]["application/json"]["schema"] == {
            "$ref": "#/components/schemas/ErrorResponse"
        }

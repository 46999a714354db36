from __future__ import annotations

from fastapi.testclient import TestClient

from library_backend import app_backend
from library_backend.config import Settings
from library_backend.errors import NoGamesFound
from library_backend.schemas import PlayerSummary
from library_backend.steam_client import parse_owned_games
from library_gui.backend_client import BackendClient
from library_gui.view_state import Phase, SubmissionController

OWNED = {"response": {"game_count": 2, "games": [
    {"appid": 440, "name": "TF2", "playtime_forever": 3},
    {"appid": 570, "name": "Dota 2", "playtime_forever": 900},
]}}
STEAMID = "76561198000000001"


class SteamStub:
    def __init__(self):
        self.vanity = {"examplename": STEAMID}
        self.fetched: list[str] = []
        self.summaries: list[str] = []

    def fetch_owned_games(self, steamid):
        self.fetched.append(steamid)
        return OWNED, parse_owned_games(steamid, OWNED)

    def resolve_vanity(self, slug):
        if slug not in self.vanity:
            raise NoGamesFound("No Steam profile matches that custom URL.")
        return self.vanity[slug]

    def fetch_player_summary(self, steamid):
        self.summaries.append(steamid)
        return PlayerSummary(steamid=steamid, personaname="Example", avatarfull="https://img/a.jpg")


class FreePrices:
    def get_price(self, appid, cc="US"):
        return 0.0


def backend_client(steam, settings=None):
    app = app_backend.create_app()
    app.dependency_overrides[app_backend.get_settings] = lambda: settings or Settings(steam_api_key="k")
    app.dependency_overrides[app_backend.get_fetcher] = lambda: steam
    app.dependency_overrides[app_backend.get_price_lookup] = lambda: FreePrices()
    http = TestClient(app)
    return BackendClient("http://testserver", price_url="http://testserver/price", session=http)


def test_custom_profile_url_reaches_ready_with_resolved_steamid():
    steam = SteamStub()
    controller = SubmissionController(backend_client(steam))

    state = controller.submit("https://steamcommunity.com/id/examplename/")

    assert state.phase == Phase.READY, state.message
    assert state.steamid == STEAMID
    assert state.persona_name == "Example"
    assert [g.appid for g in state.top_games()] == [570, 440]
    assert [r.appid for r in state.recommendations] == [440]
    assert state.prices == {440: 0.0}
    assert steam.fetched == [STEAMID]
    assert steam.summaries == [STEAMID]


def test_numeric_profile_url_skips_vanity_lookup():
    steam = SteamStub()
    steam.vanity = {}
    state = SubmissionController(backend_client(steam)).submit(f"https://steamcommunity.com/profiles/{STEAMID}/")

    assert state.phase == Phase.READY, state.message
    assert state.steamid == STEAMID
    assert steam.fetched == [STEAMID]


def test_unknown_custom_url_fails_with_no_games_message():
    steam = SteamStub()
    state = SubmissionController(backend_client(steam)).submit("https://steamcommunity.com/id/nobody/")

    assert state.phase == Phase.FAILED
    assert state.error_kind == "no_games"
    assert steam.fetched == []

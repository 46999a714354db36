import logging
from typing import Any, Dict, Optional, Tuple

import requests
from pydantic import ValidationError

from library_backend.config import DEFAULT_TIMEOUT_S, STEAM_API_BASE
from library_backend.errors import (
    MissingApiKey,
    NoGamesFound,
    ProfileNotFound,
    UpstreamMalformed,
    UpstreamRejected,
    UpstreamRequestFailed,
)
from library_backend.schemas import OwnedGame, OwnedLibrary, PlayerSummary

logger = logging.getLogger(__name__)

OWNED_GAMES_PATH = "/IPlayerService/GetOwnedGames/v1/"
RESOLVE_VANITY_PATH = "/ISteamUser/ResolveVanityURL/v1/"
PLAYER_SUMMARIES_PATH = "/ISteamUser/GetPlayerSummaries/v2/"


class SteamLibraryFetcher:
    """
    Thin client over the Steam Web API calls the backend needs.

    Every public method issues exactly one request and never retries; callers
    decide what to show when it fails.
    """

    def __init__(
        self,
        api_key: Optional[str],
        session: Optional[requests.Session] = None,
        base_url: str = STEAM_API_BASE,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    # ---------- HTTP ----------
    def _get_json(self, path: str, params: Dict[str, Any], context: str) -> Any:
        if not self.api_key:
            raise MissingApiKey()
        url = f"{self.base_url}{path}"
        query = {"key": self.api_key, "format": "json", **params}
        try:
            response = self.session.get(url, params=query, timeout=self.timeout_s)
        except requests.Timeout as e:
            logger.warning("Timeout calling Steam %s", context)
            raise UpstreamRequestFailed("Steam did not answer in time.", details=str(e)) from e
        except requests.RequestException as e:
            logger.warning("Request to Steam %s failed: %s", context, e)
            raise UpstreamRequestFailed("Could not fetch data from Steam.", details=str(e)) from e

        if not 200 <= response.status_code < 300:
            logger.info("Steam %s answered %s", context, response.status_code)
            raise UpstreamRejected(response.status_code, data=_safe_json(response))

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamMalformed("Steam returned a response that is not JSON.", details=str(e)) from e

    # ---------- Owned games ----------
    def fetch_owned_games(self, steamid: str) -> Tuple[Dict[str, Any], OwnedLibrary]:
        """
        Returns the raw GetOwnedGames payload (for verbatim proxying) together
        with the validated library.
        """
        data = self._get_json(
            OWNED_GAMES_PATH,
            {
                "steamid": steamid,
                "include_appinfo": "true",
                "include_played_free_games": "true",
            },
            context=f"GetOwnedGames steamid={steamid}",
        )
        return data, parse_owned_games(steamid, data)

    # ---------- Identity ----------
    def resolve_vanity(self, slug: str) -> str:
        data = self._get_json(RESOLVE_VANITY_PATH, {"vanityurl": slug}, context=f"ResolveVanityURL {slug}")
        body = data.get("response") if isinstance(data, dict) else None
        if not isinstance(body, dict):
            raise UpstreamMalformed("ResolveVanityURL response has no 'response' object.")
        if body.get("success") != 1 or not body.get("steamid"):
            raise ProfileNotFound(details=body.get("message"))
        return str(body["steamid"])

    def fetch_player_summary(self, steamid: str) -> Optional[PlayerSummary]:
        data = self._get_json(
            PLAYER_SUMMARIES_PATH, {"steamids": steamid}, context=f"GetPlayerSummaries steamid={steamid}"
        )
        body = data.get("response") if isinstance(data, dict) else None
        players = body.get("players") if isinstance(body, dict) else None
        if not isinstance(players, list):
            raise UpstreamMalformed("GetPlayerSummaries response has no 'players' list.")
        if not players:
            return None
        try:
            return PlayerSummary.model_validate(players[0])
        except ValidationError as e:
            raise UpstreamMalformed("Player summary has an unexpected shape.", details=str(e)) from e


def parse_owned_games(steamid: str, data: Any) -> OwnedLibrary:
    if not isinstance(data, dict) or not isinstance(data.get("response"), dict):
        raise UpstreamMalformed("GetOwnedGames response has no 'response' object.")
    body = data["response"]

    games_raw = body.get("games")
    if games_raw is None:
        raise NoGamesFound()
    if not isinstance(games_raw, list):
        raise UpstreamMalformed("GetOwnedGames 'games' field is not a list.")

    try:
        games = [OwnedGame.model_validate(g) for g in games_raw]
    except ValidationError as e:
        raise UpstreamMalformed("GetOwnedGames returned a game entry with an unexpected shape.",
                                details=str(e)) from e
    if not games:
        raise NoGamesFound()

    # Some deployments merge a player summary into the same payload.
    persona_name = None
    avatar_url = None
    players = body.get("players")
    if isinstance(players, list) and players and isinstance(players[0], dict):
        persona_name = players[0].get("personaname")
        avatar_url = players[0].get("avatarfull")

    game_count = body.get("game_count")
    if not isinstance(game_count, int):
        game_count = len(games)

    return OwnedLibrary(
        steamid=steamid,
        game_count=game_count,
        games=games,
        persona_name=persona_name,
        avatar_url=avatar_url,
    )


def _safe_json(response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None

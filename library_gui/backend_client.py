import logging
import os
from typing import Any, List, Optional

import requests
from pydantic import ValidationError

from library_backend.errors import (
    EnrichmentFailed,
    InputInvalid,
    NoGamesFound,
    UpstreamMalformed,
    UpstreamRejected,
    UpstreamRequestFailed,
)
from library_backend.schemas import OwnedGame, OwnedLibrary, PlayerSummary, Recommendation, RecommendResponse
from library_backend.steam_client import parse_owned_games

logger = logging.getLogger(__name__)

# ---------------- CONFIG ----------------
BACKEND_BASE = os.environ.get("LIBRARY_BACKEND", "http://127.0.0.1:8000")
PRICE_API = os.environ.get("PRICE_API", f"{BACKEND_BASE}/price")
STEAMID_HEADER = "X-Steam-Id"
# ----------------------------------------


class BackendClient:
    """HTTP client the desktop app uses to talk to the library backend."""

    def __init__(
        self,
        base_url: str = BACKEND_BASE,
        price_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout_s: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.price_url = price_url or PRICE_API
        self.session = session or requests.Session()
        self.timeout_s = timeout_s

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=self.timeout_s, **kwargs)
        except requests.RequestException as e:
            raise UpstreamRequestFailed("Could not fetch data from Steam.", details=str(e)) from e

    def lookup_library(self, query: str) -> OwnedLibrary:
        """Looks up the library for a SteamID64 or profile URL; the backend resolves custom URLs."""
        r = self._request("POST", f"{self.base_url}/api/steam", json={"steamId": query})
        data = _json_or_none(r)
        if r.status_code != 200:
            raise _error_from_response(r.status_code, data)
        if data is None:
            raise UpstreamMalformed("Backend returned a response that is not JSON.")
        return parse_owned_games(r.headers.get(STEAMID_HEADER) or query, data)

    def fetch_player(self, query: str) -> Optional[PlayerSummary]:
        r = self._request("GET", f"{self.base_url}/api/player", params={"steamId": query})
        if r.status_code == 404:
            return None
        data = _json_or_none(r)
        if r.status_code != 200:
            raise _error_from_response(r.status_code, data)
        try:
            return PlayerSummary.model_validate(data)
        except ValidationError as e:
            raise UpstreamMalformed("Player summary has an unexpected shape.", details=str(e)) from e

    def fetch_recommendations(self, games: List[OwnedGame]) -> List[Recommendation]:
        payload = {"games": [g.model_dump(exclude_none=True) for g in games]}
        try:
            r = self._request("POST", f"{self.base_url}/api/recommend", json=payload)
        except UpstreamRequestFailed as e:
            raise EnrichmentFailed(details=e.details) from e
        if r.status_code != 200:
            raise EnrichmentFailed(details=f"status {r.status_code}")
        try:
            return RecommendResponse.model_validate(r.json()).recommendations
        except (ValueError, ValidationError) as e:
            raise EnrichmentFailed("Recommendation service returned an unexpected response.",
                                   details=str(e)) from e

    def fetch_price(self, appid: int, cc: str = "US") -> Optional[float]:
        """Returns the price, or None when the store has none. Raises when the lookup itself fails."""
        r = self._request("GET", self.price_url, params={"appid": appid, "cc": cc})
        data = _json_or_none(r)
        if r.status_code != 200:
            raise _error_from_response(r.status_code, data)
        if not isinstance(data, dict):
            raise UpstreamMalformed("Price API returned a response that is not an object.")
        price = data.get("price")
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            return None
        return float(price)


def _json_or_none(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_from_response(status: int, data: Any):
    kind = data.get("kind") if isinstance(data, dict) else None
    message = data.get("error") if isinstance(data, dict) else None
    details = data.get("details") if isinstance(data, dict) else None
    if kind == InputInvalid.kind or status == 400:
        return InputInvalid(message, details=details)
    if status == 404:
        return NoGamesFound(message, details=details)
    if status == 503 or kind == UpstreamRequestFailed.kind:
        return UpstreamRequestFailed(message, details=details)
    if kind == UpstreamMalformed.kind:
        return UpstreamMalformed(message, details=details)
    return UpstreamRejected(status, data=data, message=message, details=details)

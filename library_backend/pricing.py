import logging
from typing import Any, Optional

import requests

from library_backend.config import DEFAULT_CURRENCY, DEFAULT_TIMEOUT_S, STEAM_STORE_BASE
from library_backend.errors import UpstreamMalformed, UpstreamRejected, UpstreamRequestFailed

logger = logging.getLogger(__name__)

APPDETAILS_PATH = "/api/appdetails"


class StorePriceLookup:
    """
    Looks up the current store price of one app through the Steam Store
    appdetails endpoint.

    Returns the final price in major currency units (9.99), 0.0 for free apps
    and None when the store has no price for that app/region.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = STEAM_STORE_BASE,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def get_price(self, appid: int, cc: str = DEFAULT_CURRENCY) -> Optional[float]:
        params = {"appids": appid, "cc": cc, "filters": "price_overview,basic"}
        try:
            r = self.session.get(f"{self.base_url}{APPDETAILS_PATH}", params=params, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise UpstreamRequestFailed("Could not reach the Steam store.", details=str(e)) from e
        if r.status_code != 200:
            raise UpstreamRejected(r.status_code)
        try:
            data = r.json()
        except ValueError as e:
            raise UpstreamMalformed("Steam store returned a response that is not JSON.", details=str(e)) from e
        return parse_price(appid, data)


def parse_price(appid: int, data: Any) -> Optional[float]:
    if not isinstance(data, dict):
        raise UpstreamMalformed("appdetails response is not an object.")
    entry = data.get(str(appid))
    if not isinstance(entry, dict):
        raise UpstreamMalformed(f"appdetails response has no entry for {appid}.")
    if not entry.get("success"):
        return None

    # filters=price_overview returns [] instead of {} when nothing matched.
    payload = entry.get("data")
    if not isinstance(payload, dict):
        return None
    if payload.get("is_free"):
        return 0.0

    overview = payload.get("price_overview")
    if not isinstance(overview, dict):
        return None
    final = overview.get("final")
    if not isinstance(final, int):
        logger.debug("appid=%s has a price_overview without an integer 'final': %r", appid, overview)
        return None
    return final / 100

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Optional

import requests
from pydantic import ValidationError

from library_backend.config import (
    DEFAULT_RECOMMENDATION_LIMIT,
    DEFAULT_TIMEOUT_S,
    DEFAULT_UNPLAYED_THRESHOLD_MINUTES,
    POLICY_DELEGATED,
    POLICY_LOCAL,
    Settings,
)
from library_backend.errors import EnrichmentFailed
from library_backend.schemas import OwnedGame, Recommendation, RecommendResponse

logger = logging.getLogger(__name__)

PriceMap = Dict[int, Optional[float]]

# Upper bound on simultaneous price requests for one recommendation set.
MAX_PRICE_WORKERS = 16


# ---------- Policies ----------
class LocalHeuristicPolicy:
    """Suggests owned games that were barely touched, in library order."""

    name = POLICY_LOCAL

    def __init__(
        self,
        threshold_minutes: int = DEFAULT_UNPLAYED_THRESHOLD_MINUTES,
        limit: int = DEFAULT_RECOMMENDATION_LIMIT,
    ):
        self.threshold_minutes = threshold_minutes
        self.limit = limit

    def recommend(self, games: Iterable[OwnedGame]) -> List[Recommendation]:
        picked = []
        for game in games:
            if len(picked) >= self.limit:
                break
            if (game.playtime_forever or 0) < self.threshold_minutes:
                picked.append(Recommendation(appid=game.appid, name=game.name))
        return picked


class DelegatedPolicy:
    """
    Sends the whole library to an external scoring service and trusts the
    ranked list it returns.
    """

    name = POLICY_DELEGATED

    def __init__(
        self,
        url: str,
        session: Optional[requests.Session] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self.url = url
        self.session = session or requests.Session()
        self.timeout_s = timeout_s

    def recommend(self, games: Iterable[OwnedGame]) -> List[Recommendation]:
        payload = {"games": [g.model_dump(exclude_none=True) for g in games]}
        try:
            r = self.session.post(self.url, json=payload, timeout=self.timeout_s)
        except requests.RequestException as e:
            logger.warning("Recommendation service unreachable: %s", e)
            raise EnrichmentFailed(details=str(e)) from e
        if not 200 <= r.status_code < 300:
            logger.warning("Recommendation service answered %s", r.status_code)
            raise EnrichmentFailed(details=f"status {r.status_code}")
        try:
            return RecommendResponse.model_validate(r.json()).recommendations
        except (ValueError, ValidationError) as e:
            raise EnrichmentFailed("Recommendation service returned an unexpected response.",
                                   details=str(e)) from e


def build_policy(settings: Settings, session: Optional[requests.Session] = None):
    if settings.recommendation_policy == POLICY_DELEGATED:
        if not settings.recommender_url:
            raise EnrichmentFailed("RECOMMENDER_URL is required by the delegated recommendation policy.")
        return DelegatedPolicy(settings.recommender_url, session=session, timeout_s=settings.request_timeout_s)
    return LocalHeuristicPolicy(
        threshold_minutes=settings.unplayed_threshold_minutes,
        limit=settings.recommendation_limit,
    )


# ---------- Prices ----------
def fetch_prices(
    appids: Iterable[int],
    lookup: Callable[[int], Optional[float]],
    max_workers: Optional[int] = None,
) -> PriceMap:
    """
    Runs one lookup per appid, all in flight at once, and returns only after
    every lookup has settled. A failing lookup maps its appid to None and
    leaves the others untouched.
    """
    unique_ids = list(dict.fromkeys(appids))
    if not unique_ids:
        return {}

    workers = max_workers or min(len(unique_ids), MAX_PRICE_WORKERS)
    prices: PriceMap = {}
    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        futures = {executor.submit(lookup, appid): appid for appid in unique_ids}
        for future in as_completed(futures):
            appid = futures[future]
            try:
                price = future.result()
            except Exception as e:
                logger.warning("Price lookup for appid=%s failed: %s", appid, e)
                price = None
            prices[appid] = float(price) if isinstance(price, (int, float)) else None
    return prices

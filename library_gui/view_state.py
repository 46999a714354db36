import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from library_backend.enrich import PriceMap, fetch_prices
from library_backend.errors import (
    EnrichmentFailed,
    InputInvalid,
    NoGamesFound,
    PipelineError,
    UpstreamRequestFailed,
)
from library_backend.identifier import resolve_identifier
from library_backend.schemas import OwnedGame, Recommendation

logger = logging.getLogger(__name__)

STORE_URL = "https://store.steampowered.com/app/{appid}"

UNPLAYED_LIMIT = 5

MESSAGE_INVALID_INPUT = InputInvalid.message
MESSAGE_NO_GAMES = "No games found for this profile. It may be private."
MESSAGE_UNREACHABLE = "Could not reach Steam. Try again in a moment."
MESSAGE_FETCH_FAILED = "Could not fetch data from Steam."


class Phase(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    ENRICHING = "enriching"
    READY = "ready"
    FAILED = "failed"


class SortMode(Enum):
    SIMILARITY = "similarity"
    OWNERS = "owners"
    PRICE = "price"


# ---------- Display transforms (never mutate their inputs) ----------
def sort_owned_games(games: Iterable[OwnedGame]) -> List[OwnedGame]:
    return sorted(games, key=lambda g: g.playtime_forever or 0, reverse=True)


def sort_recommendations(
    recommendations: Iterable[Recommendation],
    mode: SortMode,
    prices: Optional[Dict[int, Optional[float]]] = None,
) -> List[Recommendation]:
    prices = prices or {}
    if mode == SortMode.OWNERS:
        return sorted(recommendations, key=lambda r: r.owners or 0, reverse=True)
    if mode == SortMode.PRICE:
        def price_key(r: Recommendation):
            price = prices.get(r.appid)
            return (price is None, price or 0.0)
        return sorted(recommendations, key=price_key)
    # Missing scores sink to the bottom.
    return sorted(recommendations, key=lambda r: (r.score is not None, r.score or 0.0), reverse=True)


def unplayed_games(games: Iterable[OwnedGame], limit: int = UNPLAYED_LIMIT) -> List[OwnedGame]:
    return [g for g in games if (g.playtime_forever or 0) < 1][:limit]


def format_playtime(minutes: Optional[int]) -> str:
    if not minutes:
        return "Never"
    return f"{minutes / 60:.1f} h"


def format_price(prices: Dict[int, Optional[float]], appid: int) -> Optional[str]:
    """None while the price has not been fetched yet."""
    if appid not in prices:
        return None
    price = prices[appid]
    if price is None:
        return "N/A"
    if price == 0:
        return "Free"
    return f"${price:.2f}"


def format_owners(owners: Optional[int]) -> Optional[str]:
    if not owners:
        return None
    return f"{owners:,}"


def store_url(appid: int) -> str:
    return STORE_URL.format(appid=appid)


def message_for(error: PipelineError) -> str:
    if isinstance(error, InputInvalid):
        return MESSAGE_INVALID_INPUT
    if isinstance(error, NoGamesFound):
        return MESSAGE_NO_GAMES
    if isinstance(error, UpstreamRequestFailed):
        return MESSAGE_UNREACHABLE
    if isinstance(error, EnrichmentFailed):
        return error.message
    return MESSAGE_FETCH_FAILED


# ---------- State ----------
@dataclass(frozen=True)
class ViewState:
    generation: int = 0
    phase: Phase = Phase.IDLE
    query: str = ""
    steamid: Optional[str] = None
    persona_name: Optional[str] = None
    avatar_url: Optional[str] = None
    games: Tuple[OwnedGame, ...] = ()
    recommendations: Tuple[Recommendation, ...] = ()
    prices: PriceMap = field(default_factory=dict)
    prices_complete: bool = False
    message: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.phase in (Phase.RESOLVING, Phase.FETCHING, Phase.ENRICHING)

    def top_games(self) -> List[OwnedGame]:
        return sort_owned_games(self.games)

    def sorted_recommendations(self, mode: SortMode) -> List[Recommendation]:
        return sort_recommendations(self.recommendations, mode, self.prices)

    def unplayed(self, limit: int = UNPLAYED_LIMIT) -> List[OwnedGame]:
        return unplayed_games(self.games, limit)


class SubmissionController:
    """
    Drives one submission through resolve -> fetch -> enrich and keeps the
    view state.

    Each submission gets a generation number. Results are committed only if
    their generation is still the newest one, so a slow earlier submission can
    never overwrite a newer one. The listener is called with every committed
    snapshot while the controller lock is held, so it has to return quickly
    (the Qt window only emits a signal).
    """

    def __init__(
        self,
        client,
        recommender: Optional[Callable[[List[OwnedGame]], List[Recommendation]]] = None,
        currency: str = "US",
        fetch_player: bool = True,
        listener: Optional[Callable[[ViewState], None]] = None,
    ):
        self.client = client
        self.recommender = recommender or client.fetch_recommendations
        self.currency = currency
        self.fetch_player = fetch_player
        self.listener = listener
        self._lock = threading.RLock()
        self._generation = 0
        self._state = ViewState()

    @property
    def state(self) -> ViewState:
        with self._lock:
            return self._state

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def begin(self, text: str) -> int:
        """Starts a new cycle and throws away everything from the previous one."""
        with self._lock:
            self._generation += 1
            self._state = ViewState(generation=self._generation, phase=Phase.RESOLVING, query=text)
            self._notify()
            return self._generation

    def submit(self, text: str) -> ViewState:
        return self.run(self.begin(text), text)

    def _commit(self, generation: int, **changes) -> bool:
        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping late result of submission %s (current is %s)",
                             generation, self._generation)
                return False
            self._state = replace(self._state, **changes)
            self._notify()
            return True

    def _fail(self, generation: int, error: PipelineError, **changes) -> bool:
        return self._commit(
            generation, phase=Phase.FAILED, message=message_for(error), error_kind=error.kind, **changes
        )

    def _notify(self) -> None:
        if self.listener is not None:
            self.listener(self._state)

    def run(self, generation: int, text: str) -> ViewState:
        identifier = resolve_identifier(text)
        if identifier is None:
            self._fail(generation, InputInvalid())
            return self.state
        if not self._commit(generation, phase=Phase.FETCHING, steamid=identifier.value):
            return self.state

        try:
            library = self.client.lookup_library(identifier.as_query())
        except PipelineError as e:
            logger.info("Library lookup for %s failed: %s", identifier.value, e.kind)
            self._fail(generation, e, games=(), recommendations=())
            return self.state

        persona_name = library.persona_name
        avatar_url = library.avatar_url
        if self.fetch_player and persona_name is None and self.is_current(generation):
            try:
                player = self.client.fetch_player(library.steamid)
            except PipelineError as e:
                logger.info("Player summary for %s unavailable: %s", library.steamid, e.kind)
                player = None
            if player is not None:
                persona_name, avatar_url = player.personaname, player.avatarfull

        if not self._commit(
            generation,
            phase=Phase.ENRICHING,
            steamid=library.steamid,
            games=tuple(library.games),
            persona_name=persona_name or "Unknown",
            avatar_url=avatar_url,
        ):
            return self.state

        try:
            recommendations = self.recommender(list(library.games))
        except PipelineError as e:
            logger.info("Recommendations failed: %s", e.kind)
            if not isinstance(e, EnrichmentFailed):
                e = EnrichmentFailed(details=e.message)
            self._fail(generation, e)
            return self.state

        if not self._commit(generation, recommendations=tuple(recommendations), prices={},
                            prices_complete=False):
            return self.state

        prices = fetch_prices(
            [r.appid for r in recommendations],
            lambda appid: self.client.fetch_price(appid, self.currency),
        )
        self._commit(generation, phase=Phase.READY, prices=prices, prices_complete=True)
        return self.state

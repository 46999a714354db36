import os
from dataclasses import dataclass
from typing import Optional

# ---------- Defaults ----------
STEAM_API_BASE = "https://api.steampowered.com"
STEAM_STORE_BASE = "https://store.steampowered.com"

POLICY_LOCAL = "local"
POLICY_DELEGATED = "delegated"
POLICIES = (POLICY_LOCAL, POLICY_DELEGATED)

# Under one hour counts as "not really played" for the local heuristic.
DEFAULT_UNPLAYED_THRESHOLD_MINUTES = 60
DEFAULT_RECOMMENDATION_LIMIT = 3
DEFAULT_CURRENCY = "US"
DEFAULT_TIMEOUT_S = 10.0
# ------------------------------


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Expected an integer, got {value!r}")


def _env_float(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Expected a number, got {value!r}")


@dataclass(frozen=True)
class Settings:
    steam_api_key: Optional[str] = None
    steam_api_base: str = STEAM_API_BASE
    steam_store_base: str = STEAM_STORE_BASE
    recommendation_policy: str = POLICY_LOCAL
    recommender_url: Optional[str] = None
    unplayed_threshold_minutes: int = DEFAULT_UNPLAYED_THRESHOLD_MINUTES
    recommendation_limit: int = DEFAULT_RECOMMENDATION_LIMIT
    price_currency: str = DEFAULT_CURRENCY
    request_timeout_s: float = DEFAULT_TIMEOUT_S
    resolve_vanity: bool = True
    log_level: str = "INFO"

    def __post_init__(self):
        if self.recommendation_policy not in POLICIES:
            raise ValueError(
                f"RECOMMENDATION_POLICY must be one of {POLICIES}, got {self.recommendation_policy!r}"
            )


def load_settings(environ=None) -> Settings:
    """
    Reads the process configuration. Called per request by the backend so a
    key rotated in the environment is picked up without a restart.
    """
    env = os.environ if environ is None else environ
    return Settings(
        steam_api_key=env.get("STEAM_API_KEY") or None,
        steam_api_base=env.get("STEAM_API_BASE", STEAM_API_BASE).rstrip("/"),
        steam_store_base=env.get("STEAM_STORE_BASE", STEAM_STORE_BASE).rstrip("/"),
        recommendation_policy=env.get("RECOMMENDATION_POLICY", POLICY_LOCAL).strip().lower(),
        recommender_url=env.get("RECOMMENDER_URL") or None,
        unplayed_threshold_minutes=_env_int(
            env.get("UNPLAYED_THRESHOLD_MINUTES"), DEFAULT_UNPLAYED_THRESHOLD_MINUTES
        ),
        recommendation_limit=_env_int(env.get("RECOMMENDATION_LIMIT"), DEFAULT_RECOMMENDATION_LIMIT),
        price_currency=env.get("PRICE_CURRENCY", DEFAULT_CURRENCY),
        request_timeout_s=_env_float(env.get("REQUEST_TIMEOUT_S"), DEFAULT_TIMEOUT_S),
        resolve_vanity=_env_bool(env.get("RESOLVE_VANITY"), True),
        log_level=env.get("LOG_LEVEL", "INFO"),
    )

import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------- Steam payloads ----------
class OwnedGame(BaseModel):
    # Steam sends many more fields (rtime_last_played, playtime_windows_forever, ...).
    model_config = ConfigDict(extra="ignore")

    appid: int
    name: Optional[str] = None
    playtime_forever: Optional[int] = Field(default=None, ge=0)
    playtime_2weeks: Optional[int] = Field(default=None, ge=0)
    img_icon_url: Optional[str] = None


class OwnedLibrary(BaseModel):
    steamid: str
    game_count: int = 0
    games: List[OwnedGame] = []
    persona_name: Optional[str] = None
    avatar_url: Optional[str] = None


class PlayerSummary(BaseModel):
    model_config = ConfigDict(extra="ignore")

    steamid: str
    personaname: Optional[str] = None
    avatarfull: Optional[str] = None


# ---------- Recommendations ----------
_OWNERS_RANGE_RE = re.compile(r"^\s*([\d,\s]+?)\s*\.\.")


class Recommendation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    appid: int
    name: Optional[str] = None
    score: Optional[float] = None
    owners: Optional[int] = None
    genres: Optional[str] = None

    @field_validator("owners", mode="before")
    @classmethod
    def _parse_owners(cls, value: Any) -> Any:
        """
        SteamSpy style ranges ("1,000,000 .. 2,000,000") keep their lower bound.
        """
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            match = _OWNERS_RANGE_RE.match(text)
            if match:
                text = match.group(1)
            return int(text.replace(",", "").replace(" ", ""))
        return value

    @field_validator("genres", mode="before")
    @classmethod
    def _join_genres(cls, value: Any) -> Any:
        if isinstance(value, list):
            return ", ".join(str(v) for v in value if v)
        return value


# ---------- Request/Response models ----------
class SteamLookupRequest(BaseModel):
    steamId: str


class RecommendRequest(BaseModel):
    games: List[OwnedGame]


class RecommendResponse(BaseModel):
    recommendations: List[Recommendation]


class PriceResponse(BaseModel):
    appid: int
    cc: str
    price: Optional[float] = None


class ErrorResponse(BaseModel):
    error: str
    kind: Optional[str] = None
    status: Optional[int] = None
    data: Optional[Any] = None
    details: Optional[str] = None

import re
from dataclasses import dataclass
from typing import Optional

STEAMID = "steamid"
VANITY = "vanity"

DIRECT_ID_RE = re.compile(r"^[0-9]{17}$")
VANITY_URL = "https://steamcommunity.com/id/{slug}/"
PROFILE_URL_RE = re.compile(r"steamcommunity\.com/(id|profiles)/([a-zA-Z0-9_-]+)", re.IGNORECASE)


@dataclass(frozen=True)
class ResolvedIdentifier:
    kind: str
    value: str

    @property
    def is_steamid(self) -> bool:
        return self.kind == STEAMID

    def as_query(self) -> str:
        """Text that resolves back to this identifier; a bare slug would not."""
        if self.is_steamid:
            return self.value
        return VANITY_URL.format(slug=self.value)


def resolve_identifier(text: Optional[str]) -> Optional[ResolvedIdentifier]:
    """
    Turns what the user typed into a Steam account reference.

    Accepts a bare 17-digit SteamID64 or any text containing
    steamcommunity.com/id/<slug> or steamcommunity.com/profiles/<id>.
    Returns None when nothing usable is found. Never touches the network.
    """
    if text is None:
        return None
    text = text.strip()
    if not text:
        return None

    if DIRECT_ID_RE.match(text):
        return ResolvedIdentifier(STEAMID, text)

    match = PROFILE_URL_RE.search(text)
    if match:
        token = match.group(2)
        if DIRECT_ID_RE.match(token):
            return ResolvedIdentifier(STEAMID, token)
        return ResolvedIdentifier(VANITY, token)

    return None


def extract_steam_id(text: Optional[str]) -> Optional[str]:
    resolved = resolve_identifier(text)
    return resolved.value if resolved else None

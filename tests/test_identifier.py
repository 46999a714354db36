from __future__ import annotations

import pytest


def test_bare_steamid64_is_returned_unchanged():
    from library_backend.identifier import STEAMID, extract_steam_id, resolve_identifier

    assert extract_steam_id("76561198012345678") == "76561198012345678"
    resolved = resolve_identifier("  76561198012345678\n")
    assert resolved is not None
    assert resolved.kind == STEAMID
    assert resolved.value == "76561198012345678"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("https://steamcommunity.com/id/examplename/", "examplename"),
        ("steamcommunity.com/id/examplename", "examplename"),
        ("http://STEAMCOMMUNITY.COM/id/Example_Name-2/games/?tab=all", "Example_Name-2"),
        ("check out https://steamcommunity.com/id/gaben?l=english please", "gaben"),
        ("https://steamcommunity.com/profiles/76561197960287930/", "76561197960287930"),
    ],
)
def test_profile_urls_resolve_to_captured_token(text, expected):
    from library_backend.identifier import extract_steam_id

    assert extract_steam_id(text) == expected


def test_profiles_url_with_numeric_id_is_a_steamid_and_custom_url_is_vanity():
    from library_backend.identifier import STEAMID, VANITY, resolve_identifier

    assert resolve_identifier("steamcommunity.com/profiles/76561197960287930").kind == STEAMID
    assert resolve_identifier("steamcommunity.com/id/examplename").kind == VANITY


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        None,
        "not a steam id",
        "7656119801234567",  # 16 digits
        "765611980123456789",  # 18 digits
        "76561198012345678x",
        "https://steamcommunity.com/id/",
        "https://example.com/id/examplename",
        "steamcommunity.com/groups/examplegroup",
    ],
)
def test_everything_else_is_unresolved(text):
    from library_backend.identifier import extract_steam_id, resolve_identifier

    assert resolve_identifier(text) is None
    assert extract_steam_id(text) is None


def test_as_query_keeps_custom_urls_resolvable():
    from library_backend.identifier import resolve_identifier

    vanity = resolve_identifier("steamcommunity.com/id/examplename")
    assert vanity.as_query() == "https://steamcommunity.com/id/examplename/"
    assert resolve_identifier(vanity.as_query()) == vanity

    steamid = resolve_identifier("https://steamcommunity.com/profiles/76561197960287930/")
    assert steamid.as_query() == "76561197960287930"

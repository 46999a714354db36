import logging

import uvicorn
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from library_backend.config import Settings, load_settings
from library_backend.enrich import build_policy
from library_backend.errors import (
    EnrichmentFailed,
    InputInvalid,
    InvalidConfiguration,
    MissingApiKey,
    NoGamesFound,
    PipelineError,
    UpstreamMalformed,
    UpstreamRejected,
    UpstreamRequestFailed,
)
from library_backend.identifier import resolve_identifier
from library_backend.logging_setup import configure_logging
from library_backend.pricing import StorePriceLookup
from library_backend.schemas import (
    ErrorResponse,
    PlayerSummary,
    PriceResponse,
    RecommendRequest,
    RecommendResponse,
    SteamLookupRequest,
)
from library_backend.steam_client import SteamLibraryFetcher

logger = logging.getLogger(__name__)

# GetOwnedGames carries no steamid, so the resolved one travels in a header.
STEAMID_HEADER = "X-Steam-Id"

# Order matters: subclasses before their parents.
STATUS_BY_ERROR = (
    (InputInvalid, 400),
    (NoGamesFound, 404),
    (MissingApiKey, 500),
    (InvalidConfiguration, 500),
    (UpstreamRequestFailed, 503),
    (UpstreamRejected, 502),
    (UpstreamMalformed, 502),
    (EnrichmentFailed, 502),
)

ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in sorted({status for _, status in STATUS_BY_ERROR})
}


def status_for(error: PipelineError) -> int:
    for cls, status in STATUS_BY_ERROR:
        if isinstance(error, cls):
            return status
    return 500


# ---------- Dependencies ----------
def get_settings() -> Settings:
    try:
        return load_settings()
    except ValueError as e:
        raise InvalidConfiguration(details=str(e)) from e


def get_fetcher(settings: Settings = Depends(get_settings)) -> SteamLibraryFetcher:
    return SteamLibraryFetcher(
        settings.steam_api_key,
        base_url=settings.steam_api_base,
        timeout_s=settings.request_timeout_s,
    )


def get_policy(settings: Settings = Depends(get_settings)):
    return build_policy(settings)


def get_price_lookup(settings: Settings = Depends(get_settings)) -> StorePriceLookup:
    return StorePriceLookup(base_url=settings.steam_store_base, timeout_s=settings.request_timeout_s)


def resolve_steamid(raw: str, fetcher: SteamLibraryFetcher, settings: Settings) -> str:
    identifier = resolve_identifier(raw)
    if identifier is None:
        raise InputInvalid()
    if identifier.is_steamid or not settings.resolve_vanity:
        return identifier.value
    return fetcher.resolve_vanity(identifier.value)


# ---------- App ----------
def create_app() -> FastAPI:
    app = FastAPI(title="Steam Library Recommender API")

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError):
        status = status_for(exc)
        logger.info("%s %s -> %s (%s)", request.method, request.url.path, status, exc.kind)
        return JSONResponse(status_code=status, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body.", "kind": InputInvalid.kind, "details": str(exc.errors())},
        )

    @app.post("/api/steam", responses=ERROR_RESPONSES)
    def owned_games(
        body: SteamLookupRequest,
        settings: Settings = Depends(get_settings),
        fetcher: SteamLibraryFetcher = Depends(get_fetcher),
    ):
        steamid = resolve_steamid(body.steamId, fetcher, settings)
        logger.info("Fetching owned games for steamid=%s", steamid)
        data, library = fetcher.fetch_owned_games(steamid)
        logger.info("steamid=%s owns %d games", steamid, len(library.games))
        # Proxied verbatim; the client validates it again on its side.
        return JSONResponse(content=data, headers={STEAMID_HEADER: steamid})

    @app.get("/api/player", response_model=PlayerSummary, responses=ERROR_RESPONSES)
    def player(
        steamId: str = Query(...),
        settings: Settings = Depends(get_settings),
        fetcher: SteamLibraryFetcher = Depends(get_fetcher),
    ):
        steamid = resolve_steamid(steamId, fetcher, settings)
        summary = fetcher.fetch_player_summary(steamid)
        if summary is None:
            return JSONResponse(status_code=404, content={"error": "Player not found.", "kind": "not_found"})
        return summary

    @app.post("/api/recommend", response_model=RecommendResponse, responses=ERROR_RESPONSES)
    def recommend(body: RecommendRequest, policy=Depends(get_policy)):
        recommendations = policy.recommend(body.games)
        logger.info("policy=%s returned %d recommendations for %d games",
                    policy.name, len(recommendations), len(body.games))
        return RecommendResponse(recommendations=recommendations)

    @app.get("/price", response_model=PriceResponse, responses=ERROR_RESPONSES)
    def price(
        appid: int = Query(...),
        cc: str = Query("US", min_length=2, max_length=2),
        lookup: StorePriceLookup = Depends(get_price_lookup),
    ):
        return PriceResponse(appid=appid, cc=cc, price=lookup.get_price(appid, cc))

    @app.get("/health", responses=ERROR_RESPONSES)
    def health(settings: Settings = Depends(get_settings)):
        return {"status": "ok", "policy": settings.recommendation_policy}

    return app


app = create_app()

# ---------- Run (python -m library_backend.app_backend) ----------
def main():
    configure_logging(load_settings())
    uvicorn.run("library_backend.app_backend:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()

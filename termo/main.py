# FastAPI server implementing the Termo Musical API.
# Provides:
# - GET  /api/artists?type=random|daily: catalog artist
# - GET  /api/songs?artist=...: random top track of an artist
# - POST /api/songs: number of tracks found for an artist
# - GET  /api/spotify/login, POST /api/spotify/token, POST /api/spotify/refresh
# - GET  /api/spotify/debug: which Spotify settings are present
# - GET  /api/spotify/artists: the player's own artists (Bearer token)
# - POST /api/rounds: start a round
# - POST /api/guess: submit a guess
# - GET  /api/rounds/{round_id}?token=...: round state
# - GET  /api/rounds/{round_id}/share?token=...: emoji grid for sharing
# - GET  /api/stats, POST /api/stats/clear: round outcome aggregates
#
# Run: uvicorn termo.main:app --host 0.0.0.0 --port 8000

from __future__ import annotations
import logging
from typing import Optional
from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from .config import CORS_ORIGINS, configure_logging
from .models import (
    Artist, GuessRequest, GuessResponse, RefreshRequest, RoundStateResponse, ShareResponse,
    Song, SongsCountRequest, StartRoundRequest, StartRoundResponse, StatsResponse, TokenRequest,
)
from .game import ROUNDS, Round, create_round, round_public_state, share_text, verify_token
from .providers import DeezerCatalog, ProviderConfigError, ProviderError, SpotifyListening, TokenExpiredError
from .db import init_db, record_result, result_stats, clear_results

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Termo Musical", version="1.0.0")

# CORS for dev convenience
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

catalog = DeezerCatalog()
listening = SpotifyListening()

# Initialize database on startup
@app.on_event("startup")
def startup():
    init_db()


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def _provider_failure(e: ProviderError, default_status: int = 500) -> HTTPException:
    if isinstance(e, TokenExpiredError):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, ProviderConfigError):
        return HTTPException(status_code=500, detail=str(e))
    if e.status == 404:
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=default_status, detail=str(e))


def _get_round(round_id: str, token: str) -> Round:
    if not verify_token(token, round_id):
        raise HTTPException(status_code=401, detail="Invalid token")
    rnd = ROUNDS.get(round_id)
    if not rnd:
        raise HTTPException(status_code=404, detail="Round not found")
    return rnd


# --- catalog ---

@app.get("/api/artists", response_model=Artist)
def api_artists(type: str = "random"):
    try:
        if type == "daily":
            return catalog.daily_artist()
        return catalog.random_artist()
    except ProviderError as e:
        logger.error(f"Error in artists route: {e}")
        raise _provider_failure(e)


@app.get("/api/songs", response_model=Song)
def api_songs(artist: Optional[str] = None):
    if not artist or not artist.strip():
        raise HTTPException(status_code=400, detail="Artist name is required")
    song = catalog.random_song(artist.strip())
    if song is None:
        raise HTTPException(status_code=404, detail="No songs found for this artist")
    return song


@app.post("/api/songs")
def api_songs_count(req: SongsCountRequest):
    if not req.artist or not req.artist.strip():
        raise HTTPException(status_code=400, detail="Artist name is required")
    found = len(catalog.artist_songs(req.artist.strip()))
    if not found:
        raise HTTPException(status_code=404, detail="No songs found for this artist")
    return {
        "artist": req.artist,
        "songs_found": found,
        "message": f"Encontradas {found} músicas de {req.artist}",
    }


# --- spotify ---

@app.get("/api/spotify/login")
def api_spotify_login():
    try:
        url, state = listening.authorize_url()
    except ProviderError as e:
        raise _provider_failure(e)
    return {"url": url, "state": state}


@app.post("/api/spotify/token")
def api_spotify_token(req: TokenRequest):
    if not req.code or not req.redirect_uri:
        raise HTTPException(status_code=400, detail="Code and redirect URI are required")
    try:
        token = listening.exchange_code(req.code, req.redirect_uri)
    except ProviderConfigError as e:
        raise _provider_failure(e)
    except ProviderError as e:
        raise HTTPException(status_code=e.status or 502, detail={
            "error": str(e), "details": e.details, "status": e.status,
        })
    return token.model_dump(exclude_none=True)


@app.post("/api/spotify/refresh")
def api_spotify_refresh(req: RefreshRequest):
    if not req.refresh_token:
        raise HTTPException(status_code=400, detail="Refresh token is required")
    try:
        token = listening.refresh(req.refresh_token)
    except ProviderConfigError as e:
        raise _provider_failure(e)
    except ProviderError as e:
        raise HTTPException(status_code=e.status or 502, detail={
            "error": str(e), "details": e.details, "status": e.status,
        })
    return token.model_dump(exclude_none=True)


@app.get("/api/spotify/debug")
def api_spotify_debug():
    return listening.debug_info()


@app.get("/api/spotify/artists")
def api_spotify_artists(authorization: Optional[str] = Header(None)):
    try:
        artists = listening.all_artists(_bearer(authorization))
    except ProviderError as e:
        raise _provider_failure(e, default_status=502)
    return {"artists": [listening.to_artist(a).model_dump() for a in artists]}


# --- rounds ---

@app.post("/api/rounds", response_model=StartRoundResponse)
def api_start_round(req: StartRoundRequest):
    song_id = None
    try:
        if req.mode == "song":
            if not req.artist:
                raise HTTPException(status_code=400, detail="Artist name is required for song rounds")
            song = catalog.random_song(req.artist, exclude=req.exclude)
            if song is None:
                raise HTTPException(status_code=404, detail="No songs found for this artist")
            target, artist_name, song_id = song.title, song.artist, song.id
            details = dict(hints=song.hints, image=song.album_cover, preview=song.preview)
        else:
            if req.source == "spotify":
                artist = listening.random_artist(req.access_token)
            elif req.source == "daily":
                artist = catalog.daily_artist()
            else:
                artist = catalog.random_artist()
            target, artist_name = artist.name, None
            details = dict(hints=artist.hints, image=artist.photo)
    except ProviderError as e:
        logger.error(f"Could not pick a target for a {req.mode} round: {e}")
        raise _provider_failure(e)

    try:
        rnd, token = create_round(
            target, max_attempts=req.max_attempts, mode=req.mode, source=req.source,
            artist=artist_name, **details
        )
    except ValueError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return StartRoundResponse(
        round_id=rnd.round_id,
        token=token,
        mode=rnd.mode,
        source=rnd.source,
        max_attempts=rnd.max_attempts,
        target_length=len(rnd.target),
        hints=rnd.hints,
        image=rnd.image,
        preview=rnd.preview,
        artist=rnd.artist,
        song_id=song_id,
    )


@app.post("/api/guess", response_model=GuessResponse)
def api_guess(req: GuessRequest):
    rnd = _get_round(req.round_id, req.token)

    try:
        attempt = rnd.submit_guess(req.guess)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if rnd.over:
        record_result(
            round_id=rnd.round_id,
            mode=rnd.mode,
            source=rnd.source,
            target=rnd.target,
            outcome=rnd.status,
            attempts_used=rnd.attempts_used,
            max_attempts=rnd.max_attempts,
        )

    return GuessResponse(
        attempt=attempt,
        status=rnd.status,
        attempts_used=rnd.attempts_used,
        max_attempts=rnd.max_attempts,
        answer=rnd.target if rnd.over else None,
    )


@app.get("/api/rounds/{round_id}", response_model=RoundStateResponse)
def api_round_state(round_id: str, token: str):
    return round_public_state(_get_round(round_id, token))


@app.get("/api/rounds/{round_id}/share", response_model=ShareResponse)
def api_round_share(round_id: str, token: str):
    rnd = _get_round(round_id, token)
    if not rnd.over:
        raise HTTPException(status_code=400, detail="Round not over yet")
    return ShareResponse(text=share_text(rnd))


# --- stats ---

@app.get("/api/stats", response_model=StatsResponse)
def api_stats():
    return result_stats()


@app.post("/api/stats/clear")
def api_stats_clear():
    # Note: in production, protect with auth
    clear_results()
    return {"ok": True}

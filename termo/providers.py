"""
Music providers

Supplies round targets from third-party APIs:
- DeezerCatalog: public catalog (popular artists, an artist's top tracks)
- SpotifyListening: the player's own listening history (OAuth token exchange,
  top artists/tracks, recently played)

Raw provider payloads are parsed into the DTOs of `termo.models` here; the
game core only ever sees the target strings.
"""

from __future__ import annotations

import base64
import logging
import random
import secrets
import time
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlencode

import requests
from pydantic import ValidationError

from .cache import TTLCache
from .config import (
    ARTISTS_CACHE_TTL, DEEZER_API_URL, HTTP_TIMEOUT, SONGS_CACHE_TTL,
    SPOTIFY_ACCOUNTS_URL, SPOTIFY_API_URL, SPOTIFY_CLIENT_ID,
    SPOTIFY_CLIENT_SECRET, SPOTIFY_REDIRECT_URI, SPOTIFY_SCOPES,
)
from .models import (
    Artist, DeezerArtist, DeezerTrack, Song, SpotifyArtist, SpotifyToken, SpotifyTrack,
)

logger = logging.getLogger(__name__)

# Searched one by one so the catalog always holds well-known names.
POPULAR_ARTISTS = [
    'taylor swift', 'bts', 'adele', 'drake', 'ariana grande',
    'billie eilish', 'justin bieber', 'dua lipa', 'the weeknd', 'bruno mars',
    'coldplay', 'imagine dragons', 'maroon 5', 'blackpink', 'eminem',
    'rihanna', 'beyonce', 'lady gaga', 'katy perry', 'post malone',
    'shawn mendes', 'harry styles', 'olivia rodrigo', 'doja cat', 'bad bunny',
    'twice', 'stray kids', 'newjeans', 'seventeen', 'ive',
    'michael jackson', 'queen', 'the beatles', 'elvis presley', 'madonna',
    'ed sheeran', 'sam smith', 'john legend', 'alicia keys', 'usher',
]
SEARCHED_ARTISTS = 20
CATALOG_SIZE = 30


class ProviderError(Exception):
    """Raised when a music provider cannot supply what was asked for"""
    def __init__(self, message: str, status: Optional[int] = None, details: Optional[str] = None):
        self.status = status
        self.details = details
        super().__init__(message)


class ProviderConfigError(ProviderError):
    """Raised when provider credentials are missing from the environment"""


class TokenExpiredError(ProviderError):
    """Raised when the player's Spotify access token is missing or rejected"""


def _first(*values: Optional[str]) -> Optional[str]:
    return next((v for v in values if v), None)


class DeezerCatalog:
    """
    Public catalog provider backed by the Deezer API (no authentication).
    """

    def __init__(self, session: Optional[requests.Session] = None, base_url: str = DEEZER_API_URL,
                 clock: Callable[[], float] = time.monotonic, rng: Optional[random.Random] = None):
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip('/')
        self.rng = rng or random.Random()
        self._artists_cache = TTLCache(ARTISTS_CACHE_TTL, clock=clock)
        self._songs_cache = TTLCache(SONGS_CACHE_TTL, clock=clock)

    def _get_json(self, path: str, params: Optional[dict] = None) -> dict:
        response = self.session.get(f"{self.base_url}{path}", params=params, timeout=HTTP_TIMEOUT)
        if not response.ok:
            raise ProviderError(f"Deezer API error: {response.status_code}", response.status_code)
        return response.json()

    # ------------------------------------------------------------------
    # Artists
    # ------------------------------------------------------------------

    def popular_artists(self) -> List[DeezerArtist]:
        """
        Popular artists, most fans first. Cached for ARTISTS_CACHE_TTL.

        Raises:
            ProviderError: if no search returned anything usable
        """
        cached = self._artists_cache.get('popular')
        if cached:
            return cached

        found: List[DeezerArtist] = []
        for name in POPULAR_ARTISTS[:SEARCHED_ARTISTS]:
            try:
                data = self._get_json('/search/artist', {'q': name, 'limit': 3})
                results = data.get('data')
                if not isinstance(results, list) or not results:
                    continue
                first = DeezerArtist.model_validate(results[0])
            except (requests.RequestException, ProviderError, ValidationError, ValueError) as e:
                logger.warning(f"Error searching Deezer for {name}: {e}")
                continue
            if not any(a.id == first.id for a in found):
                found.append(first)

        if not found:
            raise ProviderError("Unable to fetch artists from Deezer API")

        found.sort(key=lambda a: a.nb_fan or 0, reverse=True)
        artists = found[:CATALOG_SIZE]
        self._artists_cache.set('popular', artists)
        logger.info(f"Loaded {len(artists)} popular artists from Deezer")
        return artists

    def random_artist(self) -> Artist:
        return self.to_artist(self.rng.choice(self.popular_artists()))

    def daily_artist(self, today: Optional[date] = None) -> Artist:
        """Same artist for everybody on a given calendar day."""
        today = today or date.today()
        artists = self.popular_artists()
        return self.to_artist(artists[today.timetuple().tm_yday % len(artists)])

    @staticmethod
    def to_artist(artist: DeezerArtist) -> Artist:
        fans = f"{artist.nb_fan:,}" if artist.nb_fan else "muitos"
        return Artist(
            id=f"deezer-{artist.id}",
            name=artist.name.upper(),
            hints=["Artista popular internacionalmente", f"Tem {fans} fãs no Deezer"],
            photo=_first(artist.picture_medium, artist.picture_small, artist.picture),
        )

    # ------------------------------------------------------------------
    # Songs
    # ------------------------------------------------------------------

    def artist_songs(self, artist_name: str) -> List[DeezerTrack]:
        """
        Top tracks of the artist best matching `artist_name`.

        Cached per lowercased name for SONGS_CACHE_TTL. Lookup failures are
        logged and give an empty list.
        """
        key = artist_name.lower()
        cached = self._songs_cache.get(key)
        if cached is not None:
            return cached

        try:
            data = self._get_json('/search/artist', {'q': artist_name, 'limit': 5})
            results = data.get('data')
            if not isinstance(results, list) or not results:
                raise ProviderError(f"Artist not found: {artist_name}", 404)

            target = next(
                (a for a in results if a['name'].lower() in key or key in a['name'].lower()),
                results[0],
            )

            data = self._get_json(f"/artist/{target['id']}/top", {'limit': 50})
            tracks = data.get('data')
            if not isinstance(tracks, list):
                raise ProviderError("Invalid response format from Deezer API")

            songs = [
                DeezerTrack.model_validate(t) for t in tracks
                if (t.get('artist') or {}).get('id') == target['id']
            ]
        except (requests.RequestException, ProviderError, ValidationError, ValueError, KeyError) as e:
            logger.error(f"Error fetching songs from Deezer for {artist_name}: {e}")
            return []

        self._songs_cache.set(key, songs)
        logger.debug(f"Found {len(songs)} Deezer tracks for {artist_name}")
        return songs

    def random_song(self, artist_name: str, exclude: Iterable[str] = ()) -> Optional[Song]:
        """A random top track, avoiding song ids in `exclude` while any remain."""
        songs = [self.to_song(t) for t in self.artist_songs(artist_name)]
        if not songs:
            return None
        excluded = set(exclude)
        fresh = [s for s in songs if s.id not in excluded]
        return self.rng.choice(fresh or songs)

    @staticmethod
    def to_song(track: DeezerTrack) -> Song:
        minutes, seconds = divmod(track.duration, 60)
        hints = [
            f'Música do álbum "{track.album.title}"',
            f"Duração: {minutes}:{seconds:02d}",
        ]
        if track.album.title and track.album.title != track.title:
            hints.append("Álbum diferente do título da música")

        return Song(
            id=f"deezer-track-{track.id}",
            title=track.title.upper(),
            artist=track.artist.name,
            album=track.album.title,
            album_cover=_first(track.album.cover_medium, track.album.cover, track.album.cover_small),
            preview=track.preview or None,
            hints=hints,
        )


class SpotifyListening:
    """
    Personal listening provider backed by the Spotify Web API.

    The server holds the application credentials and performs the OAuth code
    and refresh exchanges; the player's access token travels with each call.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 client_id: str = SPOTIFY_CLIENT_ID, client_secret: str = SPOTIFY_CLIENT_SECRET,
                 redirect_uri: str = SPOTIFY_REDIRECT_URI, rng: Optional[random.Random] = None):
        self.session = session or requests.Session()
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.rng = rng or random.Random()

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def debug_info(self) -> dict:
        return {
            'has_client_id': bool(self.client_id),
            'has_client_secret': bool(self.client_secret),
            'has_redirect_uri': bool(self.redirect_uri),
            'client_id_length': len(self.client_id),
            'client_secret_length': len(self.client_secret),
            'redirect_uri': self.redirect_uri or 'not set',
        }

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def authorize_url(self, state: Optional[str] = None) -> Tuple[str, str]:
        if not self.client_id or not self.redirect_uri:
            raise ProviderConfigError("Spotify credentials are not configured", 500)
        state = state or secrets.token_urlsafe(16)
        params = {
            'response_type': 'code',
            'client_id': self.client_id,
            'scope': ' '.join(SPOTIFY_SCOPES),
            'redirect_uri': self.redirect_uri,
            'state': state,
        }
        return f"{SPOTIFY_ACCOUNTS_URL}/authorize?{urlencode(params)}", state

    def _token_request(self, data: dict) -> SpotifyToken:
        if not self.configured:
            logger.error("Spotify credentials not found in environment variables")
            raise ProviderConfigError("Spotify credentials are not configured on the server", 500)

        credentials = f"{self.client_id}:{self.client_secret}"
        credentials_b64 = base64.b64encode(credentials.encode()).decode()

        response = self.session.post(
            f"{SPOTIFY_ACCOUNTS_URL}/api/token",
            headers={
                'Authorization': f'Basic {credentials_b64}',
                'Content-Type': 'application/x-www-form-urlencoded'
            },
            data=data,
            timeout=HTTP_TIMEOUT
        )

        if not response.ok:
            try:
                error = response.json()
            except ValueError:
                error = {}
            details = error.get('error_description') or error.get('error') or 'Unknown error'
            logger.error(f"Spotify token request failed ({response.status_code}): {details}")
            raise ProviderError("Spotify token request failed", response.status_code, details)

        return SpotifyToken.model_validate(response.json())

    def exchange_code(self, code: str, redirect_uri: str) -> SpotifyToken:
        return self._token_request({
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': redirect_uri,
        })

    def refresh(self, refresh_token: str) -> SpotifyToken:
        return self._token_request({
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
        })

    # ------------------------------------------------------------------
    # Web API
    # ------------------------------------------------------------------

    def _api_get(self, access_token: Optional[str], endpoint: str, params: Optional[dict] = None) -> dict:
        if not access_token:
            raise TokenExpiredError("Spotify access token not available", 401)

        response = self.session.get(
            f"{SPOTIFY_API_URL}{endpoint}",
            headers={'Authorization': f'Bearer {access_token}'},
            params=params,
            timeout=HTTP_TIMEOUT
        )
        if response.status_code == 401:
            raise TokenExpiredError("Spotify token expired - log in again", 401)
        if not response.ok:
            raise ProviderError(f"Spotify API error: {response.status_code}", response.status_code)
        return response.json()

    def profile(self, access_token: str) -> Optional[dict]:
        try:
            return self._api_get(access_token, '/me')
        except (ProviderError, requests.RequestException) as e:
            logger.warning(f"Error fetching Spotify profile: {e}")
            return None

    def top_artists(self, access_token: str, time_range: str = 'medium_term', limit: int = 50) -> List[SpotifyArtist]:
        data = self._api_get(access_token, '/me/top/artists', {'time_range': time_range, 'limit': limit})
        return [SpotifyArtist.model_validate(a) for a in data.get('items', [])]

    def top_tracks(self, access_token: str, time_range: str = 'medium_term', limit: int = 50) -> List[SpotifyTrack]:
        data = self._api_get(access_token, '/me/top/tracks', {'time_range': time_range, 'limit': limit})
        return [SpotifyTrack.model_validate(t) for t in data.get('items', [])]

    @staticmethod
    def _artists_of(tracks: Iterable[SpotifyTrack]) -> List[SpotifyArtist]:
        seen: Dict[str, SpotifyArtist] = {}
        for track in tracks:
            for artist in track.artists:
                seen.setdefault(artist.id, artist)
        return list(seen.values())

    def artists_from_tracks(self, access_token: str) -> List[SpotifyArtist]:
        return self._artists_of(self.top_tracks(access_token, 'medium_term', 50))

    def recently_played_artists(self, access_token: str, limit: int = 50) -> List[SpotifyArtist]:
        try:
            data = self._api_get(access_token, '/me/player/recently-played', {'limit': limit})
            tracks = [SpotifyTrack.model_validate(item['track']) for item in data.get('items', [])]
        except (ProviderError, requests.RequestException, ValidationError, KeyError) as e:
            logger.warning(f"Error fetching recently played artists: {e}")
            return []
        return self._artists_of(tracks)

    def all_artists(self, access_token: str) -> List[SpotifyArtist]:
        """Top, top-track and recently played artists, deduplicated, most popular first."""
        merged: Dict[str, SpotifyArtist] = {}
        for artist in (self.top_artists(access_token)
                       + self.artists_from_tracks(access_token)
                       + self.recently_played_artists(access_token)):
            merged[artist.id] = artist
        return sorted(merged.values(), key=lambda a: a.popularity or 0, reverse=True)

    def random_artist(self, access_token: str) -> Artist:
        artists = self.all_artists(access_token)
        if not artists:
            raise ProviderError("No artists found in your Spotify history", 404)
        return self.to_artist(self.rng.choice(artists))

    @staticmethod
    def to_artist(artist: SpotifyArtist) -> Artist:
        hints = []
        if artist.genres:
            hints.append(f"Gêneros: {', '.join(artist.genres[:3])}")
        if artist.popularity is not None:
            hints.append(f"Popularidade no Spotify: {artist.popularity}/100")
        return Artist(
            id=f"spotify-{artist.id}",
            name=artist.name.upper(),
            hints=hints,
            photo=artist.images[0].url if artist.images else None,
        )

# Configuration module for server-side constants and defaults.
# Every value can be overridden through the environment.

import logging
import os
from pathlib import Path

# Default maximum number of attempts per round.
DEFAULT_MAX_ATTEMPTS = int(os.environ.get("TERMO_MAX_ATTEMPTS", "6"))

# Guesses longer than this are rejected outright.
MAX_GUESS_LENGTH = 60

# Secret key for signing round tokens (not auth, just round ownership).
SECRET_KEY = os.environ.get("TERMO_SECRET_KEY", "change-me-in-prod-please")

# Round tokens stay valid for 8 hours.
TOKEN_MAX_AGE = 60 * 60 * 8

# SQLite DB file path for round results.
DB_PATH = Path(os.environ.get("TERMO_DB_PATH", Path(__file__).parent / "termo.db"))

# CORS origins (comma separated in the environment).
CORS_ORIGINS = os.environ.get("TERMO_CORS_ORIGINS", "*").split(",")

# Outbound HTTP
HTTP_TIMEOUT = float(os.environ.get("TERMO_HTTP_TIMEOUT", "10"))
DEEZER_API_URL = "https://api.deezer.com"
SPOTIFY_API_URL = "https://api.spotify.com/v1"
SPOTIFY_ACCOUNTS_URL = "https://accounts.spotify.com"

# Provider caches (seconds)
ARTISTS_CACHE_TTL = 60 * 60
SONGS_CACHE_TTL = 60 * 30

# Spotify OAuth application credentials.
SPOTIFY_CLIENT_ID = os.environ.get("SPOTIFY_CLIENT_ID", "")
SPOTIFY_CLIENT_SECRET = os.environ.get("SPOTIFY_CLIENT_SECRET", "")
SPOTIFY_REDIRECT_URI = os.environ.get("SPOTIFY_REDIRECT_URI", "")
SPOTIFY_SCOPES = ["user-top-read", "user-read-recently-played", "user-library-read"]


def configure_logging(level=logging.INFO):
    """
    Configure application logging with standard format

    Returns:
        Logger instance for the config module
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return logging.getLogger(__name__)

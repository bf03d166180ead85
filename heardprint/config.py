"""
Configuration module for heardprint.

All environment variables and tuning constants are defined here.
"""

import os
from pathlib import Path
from typing import Optional

# Try to load .env file if python-dotenv is available
try:
    from dotenv import load_dotenv
    DOTENV_AVAILABLE = True
except ImportError:
    DOTENV_AVAILABLE = False


# Project root: heardprint/config.py -> heardprint -> PROJECT_ROOT
PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_DIR.parent

# Load .env file early so environment variables are available
if DOTENV_AVAILABLE:
    env_path = PROJECT_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)


# ============================================================================
# ENV HELPERS
# ============================================================================

def parse_bool_env(name: str, default: bool) -> bool:
    """Read a boolean flag ("1", "true", "yes", "on") from the environment."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def parse_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def parse_float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def parse_str_env(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def get_env_or_none(name: str) -> Optional[str]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip()


# ============================================================================
# UPSTREAM API
# ============================================================================

API_BASE_URL = parse_str_env("SPOTIFY_API_BASE", "https://api.spotify.com/v1")
HTTP_TIMEOUT = parse_float_env("SPOTIFY_HTTP_TIMEOUT", 15.0)

# Dev-tier search returns at most 10 items per page
SEARCH_LIMIT_MAX = 10

# ============================================================================
# RATE LIMITING
# ============================================================================
# Empirically tuned against the dev-tier quota, not guaranteed contracts.

REQUEST_DELAY = parse_float_env("SPOTIFY_API_DELAY", 1.5)
MAX_RETRIES = parse_int_env("SPOTIFY_MAX_RETRIES", 3)
DEFAULT_RETRY_AFTER = parse_int_env("SPOTIFY_DEFAULT_RETRY_AFTER", 5)
MAX_RETRY_WAIT = parse_int_env("SPOTIFY_MAX_RETRY_WAIT", 30)
BACKOFF_FACTOR = parse_float_env("SPOTIFY_BACKOFF_FACTOR", 1.0)

# ============================================================================
# PHASE BUDGETS
# ============================================================================

# Fits under a 60s execution cap of the hosting environment
PHASE_TIME_BUDGET = parse_float_env("PHASE_TIME_BUDGET", 50.0)
PHASE_SAFETY_MARGIN = parse_float_env("PHASE_SAFETY_MARGIN", 5.0)

TOP_ITEMS_LIMIT = 50
RECENTLY_PLAYED_LIMIT = 50
FOLLOWED_ARTISTS_LIMIT = 50
CONCURRENT_BASICS = parse_bool_env("HEARDPRINT_CONCURRENT_BASICS", False)

LIBRARY_PAGE_SIZE = 50
LIBRARY_MAX_PAGES = parse_int_env("LIBRARY_MAX_PAGES", 20)

PLAYLIST_PAGE_SIZE = 50

GENRE_LOOKUP_ARTISTS = parse_int_env("GENRE_LOOKUP_ARTISTS", 5)
GENRE_PROBE_LIMIT = parse_int_env("GENRE_PROBE_LIMIT", 30)

DISCOGRAPHY_ARTISTS = parse_int_env("DISCOGRAPHY_ARTISTS", 5)
DISCOGRAPHY_ALBUMS_PER_ARTIST = parse_int_env("DISCOGRAPHY_ALBUMS_PER_ARTIST", 5)
DISCOGRAPHY_ALBUM_FETCH = 10

MAINSTREAM_GENRES = parse_int_env("MAINSTREAM_GENRES", 8)
MAINSTREAM_TRACKS_PER_GENRE = parse_int_env("MAINSTREAM_TRACKS_PER_GENRE", 10)
MAINSTREAM_EXAMPLES = 3

# ============================================================================
# ANALYSIS
# ============================================================================

RADAR_SIZE = 10
RADAR_SAMPLE_ARTISTS = 5
GENRE_ARTIST_SAMPLE = 10
MAX_BLIND_SPOTS = 12
EXPLORER_BREADTH_CAP = 30

# ============================================================================
# CREDENTIALS / SERVER
# ============================================================================

SERVER_PORT = parse_int_env("HEARDPRINT_SERVER_PORT", 5001)
VERBOSE = parse_bool_env("HEARDPRINT_VERBOSE", False)


def get_access_token() -> str:
    """Resolve a bearer token for command-line runs.

    Uses SPOTIFY_ACCESS_TOKEN when set, otherwise exchanges
    SPOTIPY_REFRESH_TOKEN through spotipy's OAuth helper.
    """
    token = get_env_or_none("SPOTIFY_ACCESS_TOKEN")
    if token:
        return token

    client_id = get_env_or_none("SPOTIPY_CLIENT_ID")
    client_secret = get_env_or_none("SPOTIPY_CLIENT_SECRET")
    refresh_token = get_env_or_none("SPOTIPY_REFRESH_TOKEN")
    redirect_uri = parse_str_env("SPOTIPY_REDIRECT_URI", "http://127.0.0.1:8888/callback")

    if not (client_id and client_secret and refresh_token):
        raise RuntimeError(
            "Set SPOTIFY_ACCESS_TOKEN, or SPOTIPY_CLIENT_ID, SPOTIPY_CLIENT_SECRET "
            "and SPOTIPY_REFRESH_TOKEN"
        )

    from spotipy.oauth2 import SpotifyOAuth

    auth = SpotifyOAuth(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        scope=SPOTIFY_SCOPES,
        open_browser=False,
    )
    token_info = auth.refresh_access_token(refresh_token)
    return token_info["access_token"]


SPOTIFY_SCOPES = (
    "user-read-recently-played user-top-read user-library-read "
    "user-follow-read playlist-read-private playlist-read-collaborative"
)

"""
heardprint - listening fingerprint builder for the Spotify Web API.

Aggregates everything a user is known to have heard into a HeardProfile,
then analyzes it: genre radar, decade timeline, explorer score, blind spots.

Usage:
    from heardprint import SpotifyClient, ProfileRun

    run = ProfileRun(SpotifyClient(token))
    summary = run.run_all()
    print(run.analysis_result.explorer_label)
"""

from .client import SpotifyClient, TIME_RANGES
from .ratelimit import RequestPacer
from .errors import (
    UpstreamError,
    AuthError,
    RetryExhausted,
    LongCooldown,
    parse_long_cooldown,
)
from .profile import HeardProfile
from .phases import (
    PhaseContext,
    PhaseResult,
    build_basics,
    build_library,
    build_playlists,
)
from .genre_inference import build_genres
from .gaps import (
    build_discography,
    build_mainstream,
    mainstream_label,
)
from .genres import (
    GENRE_CATALOG,
    GENRE_ADJACENCY,
    PROBE_GENRES,
)
from .analysis import (
    ProfileAnalysis,
    analyze_profile,
    genre_table,
    timeline_table,
)
from .orchestrator import (
    ProfileRun,
    PHASES,
    run_phase,
    analyze_payload,
    error_payload,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "SpotifyClient",
    "TIME_RANGES",
    "RequestPacer",
    # Errors
    "UpstreamError",
    "AuthError",
    "RetryExhausted",
    "LongCooldown",
    "parse_long_cooldown",
    # Aggregate model
    "HeardProfile",
    # Phases
    "PhaseContext",
    "PhaseResult",
    "build_basics",
    "build_library",
    "build_playlists",
    "build_genres",
    "build_discography",
    "build_mainstream",
    "mainstream_label",
    # Reference data
    "GENRE_CATALOG",
    "GENRE_ADJACENCY",
    "PROBE_GENRES",
    # Analysis
    "ProfileAnalysis",
    "analyze_profile",
    "genre_table",
    "timeline_table",
    # Orchestration
    "ProfileRun",
    "PHASES",
    "run_phase",
    "analyze_payload",
    "error_payload",
]

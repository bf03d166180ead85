"""
Orchestration: stitch phases together and expose them to callers.

Two ways in:
- `run_phase(name, client, params)`: one stateless phase invocation driven by
  plain parameters (offset, artist ids, known track ids, genres), returning a
  JSON-serializable dict. This is what the HTTP boundary calls.
- `ProfileRun`: drives every phase for one user, threads the library cursor
  until the scan is exhausted, merges fragments and analyzes the result.
"""

from __future__ import annotations

import random
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import config
from .analysis import ProfileAnalysis, analyze_profile
from .client import SpotifyClient
from .errors import AuthError, LongCooldown, RetryExhausted, UpstreamError
from .gaps import DiscographyResult, MainstreamResult, build_discography, build_mainstream
from .genre_inference import build_genres
from .phases import PhaseResult, build_basics, build_library, build_playlists
from .profile import HeardProfile
from .utils import log, timed_step


# ============================================================================
# ERROR MAPPING
# ============================================================================

def error_payload(exc: BaseException) -> Tuple[Dict[str, Any], int]:
    """Map an exception to a (json_body, http_status) pair.

    The long-cooldown body carries the verbatim "rate_limit_long:<seconds>"
    signal so callers can show a countdown instead of a generic failure.
    """
    if isinstance(exc, AuthError):
        return {"error": "auth_failed", "message": str(exc)}, 401
    if isinstance(exc, LongCooldown):
        return {"error": str(exc), "retryAfter": exc.seconds}, 429
    if isinstance(exc, RetryExhausted):
        return {"error": "rate_limited", "message": str(exc)}, 429
    if isinstance(exc, UpstreamError):
        return {"error": "upstream_error", "status": exc.status, "message": str(exc)}, 502
    return {"error": "internal_error", "message": str(exc)}, 500


# ============================================================================
# STATELESS PHASE INVOCATION
# ============================================================================

class BadParams(ValueError):
    """A caller-supplied phase parameter is malformed (HTTP 400)."""


def _int_param(params: Dict[str, Any], key: str, default: int) -> int:
    raw = params.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise BadParams(f"'{key}' must be an integer, got {raw!r}")


def _list_param(params: Dict[str, Any], key: str) -> List[str]:
    raw = params.get(key)
    if raw is None:
        return []
    if isinstance(raw, str):
        return [x for x in raw.split(",") if x]
    if not isinstance(raw, (list, tuple)):
        raise BadParams(f"'{key}' must be a list or a comma-separated string, got {raw!r}")
    return [x for x in raw if x]


def _phase_basics(client: SpotifyClient, params: Dict[str, Any]) -> Dict[str, Any]:
    return build_basics(client).to_dict()


def _phase_library(client: SpotifyClient, params: Dict[str, Any]) -> Dict[str, Any]:
    offset = _int_param(params, "offset", 0)
    max_pages = _int_param(params, "maxPages", config.LIBRARY_MAX_PAGES)
    return build_library(client, start_offset=offset, max_pages=max_pages).to_dict()


def _phase_playlists(client: SpotifyClient, params: Dict[str, Any]) -> Dict[str, Any]:
    return build_playlists(client, user_id=params.get("userId")).to_dict()


def _phase_genres(client: SpotifyClient, params: Dict[str, Any]) -> Dict[str, Any]:
    return build_genres(
        client,
        _list_param(params, "artistIds"),
        preloaded_artist_genres=params.get("preloadedArtistGenres") or params.get("artistGenres") or None,
        artist_names=params.get("artistNames") or None,
    ).to_dict()


def _phase_discography(client: SpotifyClient, params: Dict[str, Any]) -> Dict[str, Any]:
    return build_discography(
        client,
        _list_param(params, "artistIds"),
        _list_param(params, "trackIds"),
        artist_names=params.get("artistNames") or None,
    ).to_dict()


def _phase_mainstream(client: SpotifyClient, params: Dict[str, Any]) -> Dict[str, Any]:
    return build_mainstream(
        client,
        _list_param(params, "genres"),
        _list_param(params, "trackIds"),
        _list_param(params, "artistIds"),
    ).to_dict()


PHASES: Dict[str, Callable[[SpotifyClient, Dict[str, Any]], Dict[str, Any]]] = {
    "basics": _phase_basics,
    "library": _phase_library,
    "playlists": _phase_playlists,
    "genres": _phase_genres,
    "discography": _phase_discography,
    "mainstream": _phase_mainstream,
}


def run_phase(name: str, client: SpotifyClient, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Invoke one phase by name. Raises KeyError for an unknown phase."""
    if name not in PHASES:
        raise KeyError(f"Unknown phase: {name}")
    return PHASES[name](client, params or {})


def analyze_payload(profile_data: Optional[Dict[str, Any]], rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Analyze a serialized profile (HeardProfile.to_dict() output)."""
    return analyze_profile(HeardProfile.from_dict(profile_data), rng=rng).to_dict()


# ============================================================================
# FULL RUN
# ============================================================================

class ProfileRun:
    """All phases for one user against one merged HeardProfile.

    Usage:
        run = ProfileRun(SpotifyClient(token))
        summary = run.run_all()
        run.profile, run.analysis_result
    """

    def __init__(
        self,
        client: SpotifyClient,
        profile: Optional[HeardProfile] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        progress: bool = False,
    ):
        self.client = client
        self.profile = profile or HeardProfile()
        self.rng = rng or random.Random()
        self.clock = clock
        self.progress = progress
        self.user: Optional[Dict[str, Any]] = None
        self.warnings: Dict[str, List[str]] = {}
        self.library_offset: Optional[int] = 0
        self.discography_result: Optional[DiscographyResult] = None
        self.mainstream_result: Optional[MainstreamResult] = None
        self.analysis_result: Optional[ProfileAnalysis] = None

    def _absorb(self, result: PhaseResult) -> PhaseResult:
        self.profile.merge(result.profile)
        if result.warnings:
            self.warnings.setdefault(result.phase, []).extend(result.warnings)
        return result

    # -------------------------
    # Phases
    # -------------------------
    def basics(self) -> PhaseResult:
        result = self._absorb(build_basics(self.client, clock=self.clock))
        self.user = result.extra.get("user") or self.user
        return result

    def library(self, offset: Optional[int] = None, max_pages: int = config.LIBRARY_MAX_PAGES) -> PhaseResult:
        """One bounded library invocation, resuming from the stored cursor by default."""
        start = self.library_offset if offset is None else offset
        result = self._absorb(build_library(
            self.client, start_offset=start or 0, max_pages=max_pages,
            clock=self.clock, progress=self.progress,
        ))
        self.library_offset = result.next_offset
        return result

    def library_all(self, max_pages: int = config.LIBRARY_MAX_PAGES) -> List[PhaseResult]:
        """Repeat library invocations until the cursor is exhausted or stops advancing."""
        results = []
        if self.library_offset is None:
            self.library_offset = 0
        while True:
            before = self.library_offset
            result = self.library(max_pages=max_pages)
            results.append(result)
            if result.done:
                break
            if result.next_offset == before:
                log(f"⚠️  Library scan stalled at offset {before}; resume later")
                break
        return results

    def playlists(self) -> PhaseResult:
        user_id = (self.user or {}).get("id")
        return self._absorb(build_playlists(
            self.client, user_id=user_id, clock=self.clock, progress=self.progress,
        ))

    def genres(self) -> PhaseResult:
        p = self.profile
        # Top artists first, then everyone else in a stable order
        rest = sorted(p.artist_ids - set(p.top_artist_ids))
        preloaded = {aid: sorted(g) for aid, g in p.artist_genres.items() if g}
        return self._absorb(build_genres(
            self.client, p.top_artist_ids + rest,
            preloaded_artist_genres=preloaded,
            artist_names=p.artist_names,
            clock=self.clock,
        ))

    def discography(self) -> DiscographyResult:
        p = self.profile
        result = build_discography(
            self.client, p.top_artist_ids, p.track_ids,
            artist_names=p.artist_names, rng=self.rng, clock=self.clock,
        )
        if result.warnings:
            self.warnings.setdefault("discography", []).extend(result.warnings)
        self.discography_result = result
        return result

    def mainstream(self) -> MainstreamResult:
        p = self.profile
        result = build_mainstream(
            self.client, p.top_genres(config.MAINSTREAM_GENRES), p.track_ids, p.artist_ids,
            clock=self.clock,
        )
        if result.warnings:
            self.warnings.setdefault("mainstream", []).extend(result.warnings)
        self.mainstream_result = result
        return result

    def analysis(self) -> ProfileAnalysis:
        self.analysis_result = analyze_profile(self.profile, rng=self.rng)
        return self.analysis_result

    # -------------------------
    # Everything
    # -------------------------
    def run_all(self, include_gaps: bool = True) -> Dict[str, Any]:
        """Run every phase in order and return a JSON-serializable summary.

        AuthError and LongCooldown abort the run; everything else ends up in
        `warnings`.
        """
        with timed_step("Basics"):
            self.basics()
        with timed_step("Library"):
            self.library_all()
        with timed_step("Playlists"):
            self.playlists()
        with timed_step("Genres"):
            self.genres()
        if include_gaps:
            with timed_step("Discography gaps"):
                self.discography()
            with timed_step("Mainstream overlap"):
                self.mainstream()
        self.analysis()
        return self.summary()

    def summary(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "profile": self.profile.to_dict(),
            "analysis": self.analysis_result.to_dict() if self.analysis_result else None,
            "discography": self.discography_result.to_dict() if self.discography_result else None,
            "mainstream": self.mainstream_result.to_dict() if self.mainstream_result else None,
            "libraryNextOffset": self.library_offset,
            "warnings": {k: list(v) for k, v in self.warnings.items()},
            "requestCount": getattr(self.client, "request_count", None),
        }

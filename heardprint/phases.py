"""
Profile phases: basics, library, playlists.

Each phase builds its own HeardProfile fragment and returns it inside a
PhaseResult; the caller merges fragments with HeardProfile.merge(). Failures
of a single sub-resource become warnings. Only AuthError and LongCooldown
escape a phase.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests
from tqdm import tqdm

from . import config
from .client import TIME_RANGES, SpotifyClient
from .errors import AuthError, LongCooldown, UpstreamError
from .profile import HeardProfile
from .utils import dedupe, log, verbose_log

RANGE_SOURCE_SUFFIX = {"short_term": "Short", "medium_term": "Medium", "long_term": "Long"}


# ============================================================================
# SHARED PHASE MACHINERY
# ============================================================================

class PhaseContext:
    """Per-invocation state shared by a phase's calls: warnings and time budget."""

    def __init__(
        self,
        phase: str,
        time_budget: float = config.PHASE_TIME_BUDGET,
        safety_margin: float = config.PHASE_SAFETY_MARGIN,
        clock: Callable[[], float] = time.monotonic,
        progress: bool = False,
    ):
        self.phase = phase
        self.time_budget = time_budget
        self.safety_margin = safety_margin
        self._clock = clock
        self.started = clock()
        self.progress = progress
        self.warnings: List[str] = []
        self.stopped_early = False

    def elapsed(self) -> float:
        return self._clock() - self.started

    def remaining(self) -> float:
        return self.time_budget - self.elapsed()

    def out_of_time(self) -> bool:
        """True once the remaining budget is below the safety margin."""
        if self.remaining() < self.safety_margin:
            if not self.stopped_early:
                self.warn(f"time budget reached after {self.elapsed():.1f}s, returning partial results")
            self.stopped_early = True
            return True
        return False

    def warn(self, msg: str) -> None:
        log(f"⚠️  [{self.phase}] {msg}")
        self.warnings.append(msg)

    def call(self, label: str, fn: Callable, *args, **kwargs) -> Any:
        """Run one upstream call in isolation.

        Returns None (and records a warning) on any recoverable failure.
        AuthError and LongCooldown propagate.
        """
        try:
            return fn(*args, **kwargs)
        except (AuthError, LongCooldown):
            raise
        except UpstreamError as e:
            self.warn(f"{label} failed: {e}")
        except requests.exceptions.RequestException as e:
            self.warn(f"{label} failed: {e}")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            self.warn(f"{label} returned an unexpected response: {e}")
        return None

    def build_time_ms(self) -> int:
        return int(round(self.elapsed() * 1000))


@dataclass
class PhaseResult:
    """Output of one phase invocation."""

    phase: str
    profile: HeardProfile
    warnings: List[str] = field(default_factory=list)
    build_time: int = 0
    next_offset: Optional[int] = None
    chunked: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def done(self) -> bool:
        return self.next_offset is None

    def to_dict(self) -> Dict[str, Any]:
        out = {"phase": self.phase, **self.profile.to_dict(), **self.extra}
        out["warnings"] = list(self.warnings)
        out["buildTime"] = self.build_time
        if self.chunked:
            out["nextOffset"] = self.next_offset
        return out


def finish_phase(ctx: PhaseContext, fragment: HeardProfile, **kwargs) -> PhaseResult:
    result = PhaseResult(
        phase=ctx.phase,
        profile=fragment,
        warnings=list(ctx.warnings),
        build_time=ctx.build_time_ms(),
        **kwargs,
    )
    log(f"[{ctx.phase}] {len(fragment.track_ids)} tracks, {len(fragment.artist_ids)} artists, "
        f"{len(fragment.known_genres)} genres in {result.build_time}ms")
    return result


# ============================================================================
# PHASE 1: BASICS
# ============================================================================

def build_basics(
    client: SpotifyClient,
    concurrent: bool = config.CONCURRENT_BASICS,
    clock: Callable[[], float] = time.monotonic,
) -> PhaseResult:
    """Top tracks/artists for every time range, recent plays, followed artists.

    Auth failure on the user lookup is fatal; every other call that fails
    is recorded as a warning and the phase carries on.
    """
    ctx = PhaseContext("basics", clock=clock)
    fragment = HeardProfile()

    # Token validation doubles as the user summary
    user = None
    me = ctx.call("current user", client.get_me)
    if isinstance(me, dict):
        images = me.get("images") or []
        user = {
            "id": me.get("id"),
            "name": me.get("display_name") or me.get("id"),
            "image": (images[0] or {}).get("url", "") if images else "",
        }
    elif me is not None:
        ctx.warn("current user returned an unexpected response")

    range_calls = [("tracks", tr) for tr in TIME_RANGES] + [("artists", tr) for tr in TIME_RANGES]

    def fetch(kind_range):
        kind, time_range = kind_range
        fn = client.get_top_tracks if kind == "tracks" else client.get_top_artists
        return ctx.call(f"top {kind} ({time_range})", fn, time_range)

    if concurrent:
        # Independent reads; the client's pacer still spaces request starts
        with ThreadPoolExecutor(max_workers=len(range_calls)) as pool:
            fetched = list(pool.map(fetch, range_calls))
    else:
        fetched = [fetch(kr) for kr in range_calls]
    by_key = dict(zip(range_calls, fetched))

    for time_range in TIME_RANGES:
        tracks = by_key[("tracks", time_range)]
        if tracks is None:
            continue
        for track in tracks:
            fragment.add_track(track)
        fragment.set_source(f"topTracks{RANGE_SOURCE_SUFFIX[time_range]}", len(tracks))

    recent = ctx.call("recently played", client.get_recently_played)
    if recent is not None:
        for track in recent:
            fragment.add_track(track)
        fragment.set_source("recentlyPlayed", len(recent))

    # Long-term favourites first: the range lists overlap heavily
    top_artist_ids: List[str] = []
    for time_range in reversed(TIME_RANGES):
        artists = by_key[("artists", time_range)]
        if artists is None:
            continue
        for artist in artists:
            fragment.add_artist(artist)
            top_artist_ids.append(artist.get("id"))
        fragment.set_source(f"topArtists{RANGE_SOURCE_SUFFIX[time_range]}", len(artists))
    fragment.add_top_artists(dedupe(top_artist_ids))

    followed = ctx.call("followed artists", client.get_followed_artists)
    if followed is not None:
        for artist in followed:
            fragment.add_artist(artist)
        fragment.set_source("followedArtists", len(followed))

    return finish_phase(ctx, fragment, extra={"user": user})


# ============================================================================
# PHASE 2: LIBRARY (chunked)
# ============================================================================

def build_library(
    client: SpotifyClient,
    start_offset: int = 0,
    max_pages: int = config.LIBRARY_MAX_PAGES,
    page_size: int = config.LIBRARY_PAGE_SIZE,
    clock: Callable[[], float] = time.monotonic,
    progress: bool = False,
) -> PhaseResult:
    """Scan saved tracks from `start_offset`, at most `max_pages` pages.

    `next_offset` is the cursor for the next invocation, or None once the
    library is exhausted.
    """
    ctx = PhaseContext("library", clock=clock, progress=progress)
    fragment = HeardProfile()

    offset = max(0, int(start_offset or 0))
    next_offset: Optional[int] = offset
    pages = 0
    pbar = tqdm(total=max_pages, desc="Saved tracks", unit="page") if progress else None

    while True:
        if pages >= max_pages:
            next_offset = offset
            break
        if ctx.out_of_time():
            next_offset = offset
            break
        page = ctx.call(f"saved tracks @ offset {offset}", client.get_saved_tracks, page_size, offset)
        if page is None:
            # Resume from the same page next time
            next_offset = offset
            break

        tracks = page.get("tracks") or []
        total = int(page.get("total") or 0)
        if total:
            fragment.set_source("savedTotal", total)
        for track in tracks:
            fragment.add_track(track)
        pages += 1
        if pbar:
            pbar.update(1)
        verbose_log(f"saved tracks page {pages}: {len(tracks)} items (offset {offset}/{total})")

        offset += page_size
        # Without a total, only a short page marks the end
        exhausted = offset >= total if total else len(tracks) < page_size
        if not tracks or exhausted:
            next_offset = None
            break

    if pbar:
        pbar.close()
    return finish_phase(ctx, fragment, next_offset=next_offset, chunked=True, extra={"pages": pages})


# ============================================================================
# PHASE 3: PLAYLISTS
# ============================================================================

def build_playlists(
    client: SpotifyClient,
    user_id: Optional[str] = None,
    page_size: int = config.PLAYLIST_PAGE_SIZE,
    clock: Callable[[], float] = time.monotonic,
    progress: bool = False,
) -> PhaseResult:
    """Tracks from every playlist the user owns (followed playlists are skipped)."""
    ctx = PhaseContext("playlists", clock=clock, progress=progress)
    fragment = HeardProfile()

    if not user_id:
        me = ctx.call("current user", client.get_me)
        user_id = (me or {}).get("id")
        if not user_id:
            ctx.warn("could not determine the current user; no playlists scanned")
            return finish_phase(ctx, fragment)

    # Enumerate playlists
    playlists: List[dict] = []
    offset = 0
    while not ctx.out_of_time():
        page = ctx.call(f"playlists @ offset {offset}", client.get_my_playlists, page_size, offset)
        if page is None:
            break
        items = page.get("items") or []
        playlists.extend(items)
        offset += page_size
        if not items or offset >= int(page.get("total") or 0):
            break

    owned = [p for p in playlists if (p.get("owner") or {}).get("id") == user_id and p.get("id")]
    fragment.set_source("ownedPlaylists", len(owned))
    log(f"📂 Scanning {len(owned)} owned playlists (skipping {len(playlists) - len(owned)} followed)")

    iterator = tqdm(owned, desc="Playlist tracks", unit="pl") if progress else owned
    item_count = 0
    for playlist in iterator:
        if ctx.out_of_time():
            break
        item_count += _scan_playlist(client, ctx, fragment, playlist, page_size)

    fragment.set_source("playlistTracks", item_count)
    return finish_phase(ctx, fragment, extra={"playlistsScanned": len(owned)})


def _scan_playlist(
    client: SpotifyClient,
    ctx: PhaseContext,
    fragment: HeardProfile,
    playlist: dict,
    page_size: int,
) -> int:
    pid = playlist["id"]
    name = playlist.get("name") or pid
    expected = int((playlist.get("tracks") or {}).get("total") or 0)
    offset = 0
    seen = 0

    while offset == 0 or offset < expected:
        if ctx.out_of_time():
            break
        page = ctx.call(f"playlist '{name}' @ offset {offset}", client.get_playlist_tracks, pid, page_size, offset)
        if page is None:
            break
        items = page.get("items") or []
        if not items:
            if offset < expected:
                # Upstream stopped serving this playlist; do not loop forever
                ctx.warn(f"playlist '{name}' returned an empty page at {offset}/{expected}, stopping early")
            break
        for item in items:
            track = (item or {}).get("track")
            if track and track.get("id"):
                fragment.add_track(track)
                seen += 1
        if expected == 0:
            expected = int(page.get("total") or 0)
        offset += page_size
    return seen

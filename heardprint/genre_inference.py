"""
Genre inference for known artists.

Artist objects from the dev-tier API frequently come back without genre tags.
Genres are reconstructed using multiple methods, cheapest first:
1. Genre tags already seen on artist objects during the basics phase
2. Direct lookups of a handful of artists (only if nothing was found yet)
3. Search probing: for each candidate label still unseen, search
   `genre:"<label>"` and credit the label to any known artist in the results

Method 3 is statistical. It misses artists whose genre never surfaces in a
single page of results, and artist ids make false positives rare. Probe count
and wall-clock time are both bounded.
"""

import time
from typing import Callable, Dict, Iterable, List, Optional

from . import config
from .client import SpotifyClient, track_artists
from .genres import PROBE_GENRES, normalize_genre
from .phases import PhaseContext, PhaseResult, finish_phase
from .profile import HeardProfile
from .utils import dedupe, log, verbose_log


def apply_preloaded_genres(
    fragment: HeardProfile,
    artist_ids: Iterable[str],
    preloaded_artist_genres: Optional[Dict[str, List[str]]],
    artist_names: Optional[Dict[str, str]] = None,
) -> int:
    """Credit genre tags observed earlier. Returns the number of new (artist, genre) pairs."""
    if not preloaded_artist_genres:
        return 0
    wanted = set(artist_ids)
    names = artist_names or {}
    credited = 0
    for aid, genres in preloaded_artist_genres.items():
        if wanted and aid not in wanted:
            continue
        for genre in genres or []:
            if fragment.credit_genre(aid, genre, names.get(aid)):
                credited += 1
    return credited


def probe_genre(
    client: SpotifyClient,
    ctx: PhaseContext,
    fragment: HeardProfile,
    genre: str,
    known_artist_ids: set,
    artist_names: Dict[str, str],
) -> Optional[int]:
    """Search one genre label and credit it to known artists in the results.

    Returns the number of artists credited, or None if the search failed.
    """
    tracks = ctx.call(f'genre probe "{genre}"', client.search, f'genre:"{genre}"', config.SEARCH_LIMIT_MAX)
    if tracks is None:
        return None
    credited = 0
    for track in tracks:
        for artist in track_artists(track):
            aid = artist["id"]
            if aid not in known_artist_ids:
                continue
            name = artist_names.get(aid) or artist.get("name")
            if fragment.credit_genre(aid, genre, name):
                credited += 1
    return credited


def build_genres(
    client: SpotifyClient,
    artist_ids: List[str],
    preloaded_artist_genres: Optional[Dict[str, List[str]]] = None,
    artist_names: Optional[Dict[str, str]] = None,
    lookup_limit: int = config.GENRE_LOOKUP_ARTISTS,
    probe_limit: int = config.GENRE_PROBE_LIMIT,
    probe_genres: Optional[List[str]] = None,
    clock: Callable[[], float] = time.monotonic,
    time_budget: float = config.PHASE_TIME_BUDGET,
    safety_margin: float = config.PHASE_SAFETY_MARGIN,
) -> PhaseResult:
    """Infer genres for `artist_ids` (ordered by priority)."""
    ctx = PhaseContext("genres", time_budget=time_budget, safety_margin=safety_margin, clock=clock)
    fragment = HeardProfile()
    artist_ids = dedupe(list(artist_ids or []))
    known = set(artist_ids)
    names = dict(artist_names or {})

    # 1. Free: tags already on artist objects
    reused = apply_preloaded_genres(fragment, artist_ids, preloaded_artist_genres, names)
    verbose_log(f"reused {reused} artist/genre pairs from earlier phases")

    # 2. Direct lookups, only when nothing at all is known yet
    lookups = 0
    if not fragment.known_genres:
        for aid in artist_ids[:lookup_limit]:
            if ctx.out_of_time():
                break
            artist = ctx.call(f"artist {aid} lookup", client.get_artist, aid)
            lookups += 1
            if artist:
                fragment.add_artist(artist)
                if artist.get("name"):
                    names.setdefault(aid, artist["name"])

    # 3. Search probing for labels still unseen
    seen = {normalize_genre(g) for g in fragment.known_genres}
    candidates = [g for g in (probe_genres if probe_genres is not None else PROBE_GENRES)
                  if normalize_genre(g) not in seen][:probe_limit]
    probes = 0
    hits = 0
    for genre in candidates:
        if ctx.out_of_time():
            break
        credited = probe_genre(client, ctx, fragment, genre, known, names)
        probes += 1
        if credited:
            hits += 1
            verbose_log(f'probe "{genre}" matched {credited} known artists')

    log(f"🎼 Genre inference: {reused} reused, {lookups} lookups, {hits}/{probes} probes matched")
    return finish_phase(ctx, fragment, extra={
        "probesIssued": probes,
        "probeHits": hits,
        "artistLookups": lookups,
        "reusedGenrePairs": reused,
    })

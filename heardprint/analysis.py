"""
Profile analysis engine.

Pure transformations of a HeardProfile into presentation-ready summaries:
- Genre radar (top genres, weighted against the most frequent one)
- Decade timeline (when was the music made?)
- Explorer score (how evenly and widely does the user listen?)
- Blind spots (adjacent genres first, then random untouched ones)
- Summary stats, including the free enrichment fields

Nothing here calls the network.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from . import config
from .genres import GENRE_ADJACENCY, GENRE_CATALOG, adjacent_genres, normalize_genre, unknown_genres
from .profile import HeardProfile
from .utils import round_half_up

EXPLORER_TIERS = [
    (80, "Sonic Nomad"),
    (65, "Adventurous Ear"),
    (45, "Curious Listener"),
    (25, "Comfort Cruiser"),
]
EXPLORER_FLOOR_LABEL = "Deep Specialist"
NO_DATA_LABEL = "No data yet"
SINGLE_GENRE_LABEL = "Laser-Focused"
SINGLE_GENRE_SCORE = 5


@dataclass
class ProfileAnalysis:
    """Read-only snapshot of an analyzed profile."""

    genre_radar: List[Dict[str, Any]] = field(default_factory=list)
    all_genres: List[Dict[str, Any]] = field(default_factory=list)
    timeline: List[Dict[str, Any]] = field(default_factory=list)
    explorer_score: int = 0
    explorer_label: str = NO_DATA_LABEL
    blind_spots: List[Dict[str, Any]] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "genreRadar": [dict(p) for p in self.genre_radar],
            "allGenres": [dict(g) for g in self.all_genres],
            "timeline": [dict(b) for b in self.timeline],
            "explorerScore": self.explorer_score,
            "explorerLabel": self.explorer_label,
            "blindSpots": [dict(s) for s in self.blind_spots],
            "stats": dict(self.stats),
        }


def analyze_profile(
    profile: HeardProfile,
    rng: Optional[random.Random] = None,
    adjacency: Optional[Dict[str, List[str]]] = None,
    catalog: Optional[List[str]] = None,
    radar_size: int = config.RADAR_SIZE,
    max_blind_spots: int = config.MAX_BLIND_SPOTS,
) -> ProfileAnalysis:
    """Compute the full analysis of a profile."""
    timeline = compute_timeline(profile)
    score, label = compute_explorer_score(profile)
    return ProfileAnalysis(
        genre_radar=compute_genre_radar(profile, radar_size),
        all_genres=compute_all_genres(profile),
        timeline=timeline,
        explorer_score=score,
        explorer_label=label,
        blind_spots=compute_blind_spots(profile, rng, adjacency, catalog, max_blind_spots),
        stats=compute_stats(profile, timeline),
    )


def _ranked_genres(profile: HeardProfile) -> List[Tuple[str, int]]:
    return sorted(profile.genre_frequency.items(), key=lambda kv: (-kv[1], kv[0]))


def compute_genre_radar(profile: HeardProfile, limit: int = config.RADAR_SIZE) -> List[Dict[str, Any]]:
    entries = _ranked_genres(profile)[:limit]
    if not entries:
        return []
    max_count = entries[0][1]
    samples = profile.genre_artists
    return [
        {
            "genre": genre,
            "weight": count / max_count,
            "rawCount": count,
            "artists": samples.get(genre, [])[:config.RADAR_SAMPLE_ARTISTS],
        }
        for genre, count in entries
    ]


def compute_all_genres(profile: HeardProfile) -> List[Dict[str, Any]]:
    return [{"genre": g, "count": c} for g, c in _ranked_genres(profile)]


def compute_timeline(profile: HeardProfile) -> List[Dict[str, Any]]:
    """Decade buckets in chronological order with their share of dated tracks."""
    total = len(profile.release_years)
    if total == 0:
        return []
    return [
        {"decade": decade, "count": count, "percentage": round_half_up(count / total * 100)}
        for decade, count in sorted(profile.decade_distribution.items())
    ]


def explorer_label(score: int) -> str:
    for threshold, label in EXPLORER_TIERS:
        if score >= threshold:
            return label
    return EXPLORER_FLOOR_LABEL


def compute_explorer_score(profile: HeardProfile) -> Tuple[int, str]:
    """Shannon evenness of the genre distribution blended with genre breadth.

    score = round(100 * clamp(0.6 * evenness + 0.4 * min(genres / 30, 1)))
    """
    counts = np.array(list(profile.genre_frequency.values()), dtype=float)
    total = counts.sum() if counts.size else 0.0
    if total <= 0:
        return 0, NO_DATA_LABEL

    genre_count = int(counts.size)
    if genre_count == 1:
        # Entropy is zero and evenness undefined
        return SINGLE_GENRE_SCORE, SINGLE_GENRE_LABEL

    p = counts[counts > 0] / total
    entropy = float(-(p * np.log2(p)).sum())
    evenness = entropy / np.log2(genre_count)
    breadth = min(genre_count / config.EXPLORER_BREADTH_CAP, 1.0)

    raw = 0.6 * evenness + 0.4 * breadth
    score = round_half_up(100 * min(1.0, max(0.0, raw)))
    return score, explorer_label(score)


def compute_blind_spots(
    profile: HeardProfile,
    rng: Optional[random.Random] = None,
    adjacency: Optional[Dict[str, List[str]]] = None,
    catalog: Optional[List[str]] = None,
    max_spots: int = config.MAX_BLIND_SPOTS,
) -> List[Dict[str, Any]]:
    """Genres the user has not touched.

    Adjacent suggestions (neighbors of a known genre) always come first;
    remaining slots are filled with random untouched catalog genres.
    """
    rng = rng or random.Random()
    graph = GENRE_ADJACENCY if adjacency is None else adjacency
    catalog = GENRE_CATALOG if catalog is None else catalog
    catalog_set = set(catalog)
    known = {normalize_genre(g) for g in profile.known_genres}

    spots: List[Dict[str, Any]] = []
    suggested = set()
    # Most-listened genres get their neighbors suggested first
    for genre, _ in _ranked_genres(profile):
        for adj in adjacent_genres(genre, graph):
            if adj in known or adj in suggested or adj not in catalog_set:
                continue
            suggested.add(adj)
            spots.append({"genre": adj, "reason": "adjacent", "adjacentTo": genre})

    spots = spots[:max_spots]
    pool = [g for g in unknown_genres(known, catalog) if g not in suggested]
    slots = max(0, max_spots - len(spots))
    for genre in rng.sample(pool, min(slots, len(pool))):
        spots.append({"genre": genre, "reason": "untouched"})
    return spots


def _listening_by_hour(played_times) -> List[int]:
    hours = [0] * 24
    if not played_times:
        return hours
    stamps = pd.to_datetime(
        pd.Series(sorted(played_times)), utc=True, errors="coerce", format="ISO8601",
    ).dropna()
    for hour, count in stamps.dt.hour.value_counts().items():
        hours[int(hour)] = int(count)
    return hours


def compute_stats(profile: HeardProfile, timeline: List[Dict[str, Any]]) -> Dict[str, Any]:
    years = profile.release_years
    median_year = years[len(years) // 2] if years else None
    # max() keeps the earliest decade on ties
    peak = max(timeline, key=lambda b: b["count"])["decade"] if timeline else None

    durations = list(profile.track_durations.values())
    processed = profile.total_processed
    return {
        "totalTracks": profile.total_tracks_analyzed,
        "totalArtists": len(profile.artist_ids),
        "totalGenres": len(profile.known_genres),
        "oldestDecade": timeline[0]["decade"] if timeline else None,
        "newestDecade": timeline[-1]["decade"] if timeline else None,
        "peakDecade": peak,
        "medianYear": median_year,
        "followedArtists": profile.sources.get("followedArtists", 0),
        "avgDurationMs": round_half_up(float(np.mean(durations))) if durations else None,
        "totalPlaytimeMs": int(sum(durations)),
        "explicitCount": profile.explicit_count,
        "totalProcessed": processed,
        "explicitPercent": round_half_up(100 * profile.explicit_count / processed) if processed else None,
        "earliestSavedAt": profile.earliest_saved_at,
        "latestSavedAt": profile.latest_saved_at,
        "listeningByHour": _listening_by_hour(profile.recent_played_times),
    }


# ============================================================================
# TABLES
# ============================================================================

def genre_table(profile: HeardProfile) -> pd.DataFrame:
    """One row per genre: artist count, share of all (artist, genre) pairs, sample artists."""
    ranked = _ranked_genres(profile)
    columns = ["genre", "artists", "share", "sample_artists"]
    if not ranked:
        return pd.DataFrame(columns=columns)
    samples = profile.genre_artists
    df = pd.DataFrame(ranked, columns=["genre", "artists"])
    df["share"] = (df["artists"] / df["artists"].sum()).round(4)
    df["sample_artists"] = df["genre"].map(lambda g: ", ".join(samples.get(g, [])))
    return df[columns]


def timeline_table(analysis: ProfileAnalysis) -> pd.DataFrame:
    return pd.DataFrame(analysis.timeline, columns=["decade", "count", "percentage"])

"""
The "Heard Profile": everything a user is known to have listened to.

Identifier sets give O(1) "have they heard this?" lookups. Per-track and
per-artist facts are keyed by id, so merging the same fragment twice adds
nothing the second time: sets union, and decade buckets and genre counts are
derived from the keyed facts rather than incremented blindly.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

import pandas as pd

from . import config
from .client import track_artists
from .utils import decade_label, parse_release_year

SOURCE_KEYS = (
    "topTracksShort", "topTracksMedium", "topTracksLong", "recentlyPlayed",
    "topArtistsShort", "topArtistsMedium", "topArtistsLong", "followedArtists",
    "savedTotal", "ownedPlaylists", "playlistTracks",
)


@dataclass
class HeardProfile:
    """Accumulating listening fingerprint. Only ever grows."""

    track_ids: Set[str] = field(default_factory=set)
    isrcs: Set[str] = field(default_factory=set)
    artist_ids: Set[str] = field(default_factory=set)
    artist_names: Dict[str, str] = field(default_factory=dict)
    # artist id -> genre labels credited to that artist
    artist_genres: Dict[str, Set[str]] = field(default_factory=dict)
    # track id -> sane release year (None when missing or implausible)
    track_years: Dict[str, Optional[int]] = field(default_factory=dict)
    track_durations: Dict[str, int] = field(default_factory=dict)
    explicit_track_ids: Set[str] = field(default_factory=set)
    # tracks whose explicit flag was present at all
    processed_track_ids: Set[str] = field(default_factory=set)
    recent_played_times: Set[str] = field(default_factory=set)
    saved_at: Dict[str, str] = field(default_factory=dict)
    sources: Dict[str, int] = field(default_factory=dict)
    top_artist_ids: List[str] = field(default_factory=list)

    # -------------------------
    # Accumulation
    # -------------------------
    def add_track(self, track: Optional[dict]) -> bool:
        """Record a track object. Returns True if its id was new.

        Enrichment (year, duration, explicit flag) is taken from the first
        sighting only.
        """
        if not track or not track.get("id"):
            return False
        tid = track["id"]
        is_new = tid not in self.track_ids
        self.track_ids.add(tid)

        isrc = (track.get("external_ids") or {}).get("isrc")
        if isrc:
            self.isrcs.add(isrc)

        for artist in track_artists(track):
            self.artist_ids.add(artist["id"])
            if artist.get("name"):
                self.artist_names[artist["id"]] = artist["name"]

        if is_new:
            album = track.get("album") or {}
            self.track_years[tid] = parse_release_year(album.get("release_date"))
            duration = track.get("duration_ms")
            if isinstance(duration, (int, float)) and duration > 0:
                self.track_durations[tid] = int(duration)
            if "explicit" in track and track.get("explicit") is not None:
                self.processed_track_ids.add(tid)
                if track.get("explicit"):
                    self.explicit_track_ids.add(tid)

        if track.get("played_at"):
            self.recent_played_times.add(track["played_at"])
        if track.get("added_at"):
            prev = self.saved_at.get(tid)
            if prev is None or track["added_at"] < prev:
                self.saved_at[tid] = track["added_at"]
        return is_new

    def add_artist(self, artist: Optional[dict]) -> bool:
        """Record a full artist object including its genre tags.

        Returns True when the artist's genres were applied for the first time.
        """
        if not artist or not artist.get("id"):
            return False
        aid = artist["id"]
        self.artist_ids.add(aid)
        if artist.get("name"):
            self.artist_names[aid] = artist["name"]
        genres = [g for g in (artist.get("genres") or []) if g]
        first = aid not in self.artist_genres
        if genres or first:
            self.artist_genres.setdefault(aid, set()).update(genres)
        return first

    def credit_genre(self, artist_id: str, genre: str, artist_name: Optional[str] = None) -> bool:
        """Credit one genre to one artist. Returns False if already credited."""
        if not artist_id or not genre:
            return False
        self.artist_ids.add(artist_id)
        if artist_name:
            self.artist_names[artist_id] = artist_name
        genres = self.artist_genres.setdefault(artist_id, set())
        if genre in genres:
            return False
        genres.add(genre)
        return True

    def set_source(self, key: str, count: int) -> None:
        self.sources[key] = int(count)

    def add_top_artists(self, artist_ids: Iterable[str]) -> None:
        for aid in artist_ids:
            if aid and aid not in self.top_artist_ids:
                self.top_artist_ids.append(aid)

    # -------------------------
    # Merge
    # -------------------------
    def merge(self, other: "HeardProfile") -> "HeardProfile":
        """Fold another profile (usually a phase fragment) into this one, in place."""
        self.track_ids |= other.track_ids
        self.isrcs |= other.isrcs
        self.artist_ids |= other.artist_ids
        self.artist_names.update(other.artist_names)
        for aid, genres in other.artist_genres.items():
            self.artist_genres.setdefault(aid, set()).update(genres)
        for tid, year in other.track_years.items():
            if self.track_years.get(tid) is None:
                self.track_years[tid] = year
        for tid, duration in other.track_durations.items():
            self.track_durations.setdefault(tid, duration)
        self.explicit_track_ids |= other.explicit_track_ids
        self.processed_track_ids |= other.processed_track_ids
        self.recent_played_times |= other.recent_played_times
        for tid, added_at in other.saved_at.items():
            prev = self.saved_at.get(tid)
            if prev is None or added_at < prev:
                self.saved_at[tid] = added_at
        self.sources.update(other.sources)
        self.add_top_artists(other.top_artist_ids)
        return self

    # -------------------------
    # Derived views
    # -------------------------
    @property
    def genre_frequency(self) -> Counter:
        """genre -> number of artists carrying it (one per artist/genre pair)."""
        freq: Counter = Counter()
        for genres in self.artist_genres.values():
            freq.update(genres)
        return freq

    @property
    def known_genres(self) -> Set[str]:
        return set(self.genre_frequency)

    @property
    def genre_artists(self) -> Dict[str, List[str]]:
        """genre -> bounded sample of artist names (display only)."""
        sample: Dict[str, List[str]] = {}
        for aid in sorted(self.artist_genres):
            name = self.artist_names.get(aid)
            if not name:
                continue
            for genre in self.artist_genres[aid]:
                names = sample.setdefault(genre, [])
                if len(names) < config.GENRE_ARTIST_SAMPLE and name not in names:
                    names.append(name)
        return sample

    @property
    def release_years(self) -> List[int]:
        return sorted(y for y in self.track_years.values() if y is not None)

    @property
    def decade_distribution(self) -> Dict[str, int]:
        return dict(Counter(decade_label(y) for y in self.release_years))

    @property
    def total_tracks_analyzed(self) -> int:
        return len(self.track_ids)

    @property
    def explicit_count(self) -> int:
        return len(self.explicit_track_ids)

    @property
    def total_processed(self) -> int:
        return len(self.processed_track_ids)

    @property
    def earliest_saved_at(self) -> Optional[str]:
        return min(self.saved_at.values()) if self.saved_at else None

    @property
    def latest_saved_at(self) -> Optional[str]:
        return max(self.saved_at.values()) if self.saved_at else None

    # -------------------------
    # Queries
    # -------------------------
    def is_track_heard(self, track: dict, strict: bool = True) -> bool:
        """Heard by id, or (strict mode) by ISRC to catch alternate releases."""
        if track.get("id") in self.track_ids:
            return True
        if strict:
            isrc = (track.get("external_ids") or {}).get("isrc")
            if isrc and isrc in self.isrcs:
                return True
        return False

    def is_artist_known(self, artist_id: str) -> bool:
        return artist_id in self.artist_ids

    def filter_unheard(self, tracks: Iterable[dict], strict: bool = True) -> List[dict]:
        return [t for t in tracks if t and not self.is_track_heard(t, strict)]

    def top_genres(self, limit: int = 10) -> List[str]:
        ranked = sorted(self.genre_frequency.items(), key=lambda kv: (-kv[1], kv[0]))
        return [g for g, _ in ranked[:limit]]

    # -------------------------
    # Serialization
    # -------------------------
    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable form; derived views are included for consumers."""
        return {
            "trackIds": sorted(self.track_ids),
            "isrcs": sorted(self.isrcs),
            "artistIds": sorted(self.artist_ids),
            "artistNames": dict(self.artist_names),
            "artistGenres": {aid: sorted(g) for aid, g in self.artist_genres.items()},
            "trackYears": dict(self.track_years),
            "trackDurations": dict(self.track_durations),
            "explicitTrackIds": sorted(self.explicit_track_ids),
            "processedTrackIds": sorted(self.processed_track_ids),
            "recentPlayedTimes": sorted(self.recent_played_times),
            "savedAt": dict(self.saved_at),
            "sources": dict(self.sources),
            "topArtistIds": list(self.top_artist_ids),
            "genreFrequency": dict(self.genre_frequency),
            "genreArtists": self.genre_artists,
            "decadeDistribution": self.decade_distribution,
            "releaseYears": self.release_years,
            "explicitCount": self.explicit_count,
            "totalProcessed": self.total_processed,
            "earliestSavedAt": self.earliest_saved_at,
            "latestSavedAt": self.latest_saved_at,
            "totalTracksAnalyzed": self.total_tracks_analyzed,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "HeardProfile":
        """Restore a profile from `to_dict()` output; unknown or missing keys are tolerated."""
        data = data or {}
        years = {}
        for tid, year in (data.get("trackYears") or {}).items():
            years[tid] = int(year) if year is not None else None
        return cls(
            track_ids=set(data.get("trackIds") or []),
            isrcs=set(data.get("isrcs") or []),
            artist_ids=set(data.get("artistIds") or []),
            artist_names=dict(data.get("artistNames") or {}),
            artist_genres={aid: set(g or []) for aid, g in (data.get("artistGenres") or {}).items()},
            track_years=years,
            track_durations={k: int(v) for k, v in (data.get("trackDurations") or {}).items()},
            explicit_track_ids=set(data.get("explicitTrackIds") or []),
            processed_track_ids=set(data.get("processedTrackIds") or []),
            recent_played_times=set(data.get("recentPlayedTimes") or []),
            saved_at=dict(data.get("savedAt") or {}),
            sources={k: int(v) for k, v in (data.get("sources") or {}).items()},
            top_artist_ids=list(data.get("topArtistIds") or []),
        )

    def tracks_frame(self) -> pd.DataFrame:
        """One row per known track with its enrichment columns."""
        rows = []
        for tid in sorted(self.track_ids):
            year = self.track_years.get(tid)
            rows.append({
                "track_id": tid,
                "release_year": year,
                "decade": decade_label(year) if year else None,
                "duration_ms": self.track_durations.get(tid),
                "explicit": tid in self.explicit_track_ids if tid in self.processed_track_ids else None,
                "saved_at": self.saved_at.get(tid),
            })
        return pd.DataFrame(rows, columns=["track_id", "release_year", "decade", "duration_ms", "explicit", "saved_at"])

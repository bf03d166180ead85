"""
Catalog gap scans.

- Discography gaps: studio albums by the user's top artists that contain
  tracks the user has never heard.
- Mainstream overlap: how much of each genre's top search results the user
  already knows.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from . import config
from .client import SpotifyClient, track_artists
from .phases import PhaseContext
from .utils import log, round_half_up

MAINSTREAM_TIERS = [
    (70, "Chart Chaser"),
    (55, "Crowd Favorite"),
    (40, "Balanced"),
    (25, "Crate Digger"),
]
MAINSTREAM_FLOOR_LABEL = "Deep Underground"


# ============================================================================
# DISCOGRAPHY GAPS
# ============================================================================

@dataclass
class DiscographyAlbum:
    artist: str
    artist_id: str
    album: str
    album_id: str
    total_tracks: int
    unheard_count: int
    album_image: Optional[str] = None
    release_date: Optional[str] = None
    spotify_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "artist": self.artist,
            "artistId": self.artist_id,
            "album": self.album,
            "albumId": self.album_id,
            "albumImage": self.album_image,
            "releaseDate": self.release_date,
            "totalTracks": self.total_tracks,
            "unheardCount": self.unheard_count,
            "spotifyUrl": self.spotify_url,
        }


@dataclass
class DiscographyResult:
    albums: List[DiscographyAlbum] = field(default_factory=list)
    artists_scanned: int = 0
    warnings: List[str] = field(default_factory=list)
    build_time: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": "discography",
            "albums": [a.to_dict() for a in self.albums],
            "artistsScanned": self.artists_scanned,
            "warnings": list(self.warnings),
            "buildTime": self.build_time,
        }


def build_discography(
    client: SpotifyClient,
    top_artist_ids: List[str],
    heard_track_ids: Iterable[str],
    artist_names: Optional[Dict[str, str]] = None,
    max_artists: int = config.DISCOGRAPHY_ARTISTS,
    albums_per_artist: int = config.DISCOGRAPHY_ALBUMS_PER_ARTIST,
    rng: Optional[random.Random] = None,
    clock: Callable[[], float] = time.monotonic,
) -> DiscographyResult:
    """Albums by top artists with unheard tracks, most unheard first."""
    ctx = PhaseContext("discography", clock=clock)
    rng = rng or random.Random()
    heard = set(heard_track_ids or [])
    names = artist_names or {}
    albums: List[DiscographyAlbum] = []
    scanned = 0

    for artist_id in list(top_artist_ids or [])[:max_artists]:
        if ctx.out_of_time():
            break
        page = ctx.call(f"albums for artist {artist_id}", client.get_artist_albums, artist_id, "album")
        scanned += 1
        if page is None:
            continue
        studio = [a for a in page.get("items") or [] if a.get("id") and a.get("album_type", "album") == "album"]
        rng.shuffle(studio)

        for album in studio[:albums_per_artist]:
            if ctx.out_of_time():
                break
            tracks_page = ctx.call(f"tracks for album '{album.get('name')}'", client.get_album_tracks, album["id"])
            if tracks_page is None:
                continue
            tracks = [t for t in tracks_page.get("items") or [] if t.get("id")]
            unheard = sum(1 for t in tracks if t["id"] not in heard)
            if unheard == 0:
                continue
            album_artists = album.get("artists") or []
            artist_name = names.get(artist_id) or (album_artists[0].get("name") if album_artists else artist_id)
            images = album.get("images") or []
            albums.append(DiscographyAlbum(
                artist=artist_name,
                artist_id=artist_id,
                album=album.get("name") or album["id"],
                album_id=album["id"],
                total_tracks=int(album.get("total_tracks") or len(tracks)),
                unheard_count=unheard,
                album_image=(images[0] or {}).get("url") if images else None,
                release_date=album.get("release_date"),
                spotify_url=(album.get("external_urls") or {}).get("spotify"),
            ))

    albums.sort(key=lambda a: a.unheard_count, reverse=True)
    log(f"💿 Discography: {len(albums)} albums with unheard tracks across {scanned} artists")
    return DiscographyResult(
        albums=albums,
        artists_scanned=scanned,
        warnings=list(ctx.warnings),
        build_time=ctx.build_time_ms(),
    )


# ============================================================================
# MAINSTREAM OVERLAP
# ============================================================================

@dataclass
class GenreOverlap:
    genre: str
    searched_tracks: int
    heard_tracks: int
    known_artist_tracks: int
    overlap_percent: int
    unheard_examples: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "genre": self.genre,
            "searchedTracks": self.searched_tracks,
            "heardTracks": self.heard_tracks,
            "knownArtistTracks": self.known_artist_tracks,
            "overlapPercent": self.overlap_percent,
            "unheardExamples": [dict(e) for e in self.unheard_examples],
        }


@dataclass
class MainstreamResult:
    overall_score: int = 0
    label: str = MAINSTREAM_FLOOR_LABEL
    genres: List[GenreOverlap] = field(default_factory=list)
    total_searched: int = 0
    total_overlap: int = 0
    warnings: List[str] = field(default_factory=list)
    build_time: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": "mainstream",
            "overallScore": self.overall_score,
            "label": self.label,
            "genres": [g.to_dict() for g in self.genres],
            "totalSearched": self.total_searched,
            "totalOverlap": self.total_overlap,
            "warnings": list(self.warnings),
            "buildTime": self.build_time,
        }


def mainstream_label(score: float) -> str:
    for threshold, label in MAINSTREAM_TIERS:
        if score >= threshold:
            return label
    return MAINSTREAM_FLOOR_LABEL


def overlap_percent(heard: int, known_artist: int, searched: int) -> int:
    """Heard tracks count fully, tracks by a known artist count half."""
    if searched <= 0:
        return 0
    return round_half_up(100 * (heard + 0.5 * known_artist) / searched)


def score_genre_overlap(
    genre: str,
    tracks: List[dict],
    heard_track_ids: set,
    heard_artist_ids: set,
    max_examples: int = config.MAINSTREAM_EXAMPLES,
) -> GenreOverlap:
    """Classify each search result as heard, known-artist, or unheard."""
    heard = 0
    known_artist = 0
    examples: List[Dict[str, str]] = []
    for track in tracks:
        artists = track_artists(track)
        if track.get("id") in heard_track_ids:
            heard += 1
        elif any(a["id"] in heard_artist_ids for a in artists):
            known_artist += 1
        elif len(examples) < max_examples:
            examples.append({
                "name": track.get("name") or "",
                "artist": artists[0].get("name", "") if artists else "",
                "url": (track.get("external_urls") or {}).get("spotify", ""),
                "trackId": track.get("id") or "",
            })
    return GenreOverlap(
        genre=genre,
        searched_tracks=len(tracks),
        heard_tracks=heard,
        known_artist_tracks=known_artist,
        overlap_percent=overlap_percent(heard, known_artist, len(tracks)),
        unheard_examples=examples,
    )


def build_mainstream(
    client: SpotifyClient,
    genres: List[str],
    heard_track_ids: Iterable[str],
    heard_artist_ids: Optional[Iterable[str]] = None,
    max_genres: int = config.MAINSTREAM_GENRES,
    tracks_per_genre: int = config.MAINSTREAM_TRACKS_PER_GENRE,
    clock: Callable[[], float] = time.monotonic,
) -> MainstreamResult:
    """Search each top genre's most popular tracks and measure what the user already knows.

    The overall score is the per-genre overlap weighted by how many tracks
    each genre search returned.
    """
    ctx = PhaseContext("mainstream", clock=clock)
    heard_tracks = set(heard_track_ids or [])
    heard_artists = set(heard_artist_ids or [])
    results: List[GenreOverlap] = []

    for genre in list(genres or [])[:max_genres]:
        if ctx.out_of_time():
            break
        tracks = ctx.call(f'search "{genre}"', client.search_paginated, f'genre:"{genre}"', tracks_per_genre)
        if not tracks:
            continue
        results.append(score_genre_overlap(genre, tracks, heard_tracks, heard_artists))

    total_searched = sum(g.searched_tracks for g in results)
    weighted = sum(g.overlap_percent * g.searched_tracks for g in results)
    overall = round_half_up(weighted / total_searched) if total_searched else 0

    result = MainstreamResult(
        overall_score=overall,
        label=mainstream_label(overall),
        genres=results,
        total_searched=total_searched,
        total_overlap=sum(g.heard_tracks for g in results),
        warnings=list(ctx.warnings),
        build_time=ctx.build_time_ms(),
    )
    log(f"📈 Mainstream: {overall} ({result.label}) over {len(results)} genres")
    return result

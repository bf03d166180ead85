"""
heardprint client - rate-limited interface to the Spotify Web API.

Dev-tier limits this client works within:
    - search returns at most 10 items per page (paginate with offset)
    - batch /artists may be unavailable (fall back to single lookups)
    - track external_ids (ISRCs) are often missing
    - playlist tracks are only readable for playlists the user owns
"""

from __future__ import annotations

import random
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from . import config
from .errors import AuthError, LongCooldown, RetryExhausted, UpstreamError
from .ratelimit import RequestPacer
from .utils import chunks, log, verbose_log

TIME_RANGES = ("short_term", "medium_term", "long_term")


def _parse_retry_after(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return max(0, int(float(str(value).strip())))
    except ValueError:
        return default


class SpotifyClient:
    """Bearer-authenticated Spotify client with capped retry on throttling.

    A 429 whose Retry-After exceeds `max_wait` raises LongCooldown at once;
    shorter waits are slept and retried up to `max_retries` times before
    RetryExhausted. 401 raises AuthError; any other failure status raises
    UpstreamError without retrying.
    """

    def __init__(
        self,
        access_token: str,
        session: Optional[requests.Session] = None,
        base_url: str = config.API_BASE_URL,
        request_delay: float = config.REQUEST_DELAY,
        max_retries: int = config.MAX_RETRIES,
        default_retry_after: int = config.DEFAULT_RETRY_AFTER,
        max_wait: int = config.MAX_RETRY_WAIT,
        backoff_factor: float = config.BACKOFF_FACTOR,
        timeout: float = config.HTTP_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        pacer: Optional[RequestPacer] = None,
    ):
        self.access_token = access_token
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.default_retry_after = default_retry_after
        self.max_wait = max_wait
        self.backoff_factor = backoff_factor
        self.timeout = timeout
        self._sleep = sleep
        self.pacer = pacer or RequestPacer(request_delay, clock=clock, sleep=sleep)
        self.request_count = 0

    # -------------------------
    # Core request loop
    # -------------------------
    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        """Execute one logical request and return the decoded JSON body."""
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self.access_token}"}

        self.pacer.wait()
        verbose_log(f"API call: {method} {path} {params or ''}")

        for attempt in range(self.max_retries + 1):
            self.request_count += 1
            try:
                response = self.session.request(
                    method, url, params=params, json=json, headers=headers, timeout=self.timeout,
                )
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                if attempt >= self.max_retries:
                    raise RetryExhausted(path, attempt + 1) from e
                wait = self.backoff_factor * (2 ** attempt) + random.uniform(0, 1)
                log(f"Transient error on {path}: {e} - retrying in {wait:.1f}s "
                    f"(attempt {attempt + 1}/{self.max_retries})")
                self._sleep(wait)
                continue

            status = response.status_code

            if status == 429:
                retry_after = _parse_retry_after(
                    response.headers.get("Retry-After"), self.default_retry_after
                )
                if retry_after > self.max_wait:
                    log(f"429 on {path}, Retry-After={retry_after}s exceeds {self.max_wait}s ceiling")
                    raise LongCooldown(retry_after, path)
                if attempt < self.max_retries:
                    log(f"429 on {path}, Retry-After={retry_after}s "
                        f"(attempt {attempt + 1}/{self.max_retries})")
                    self._sleep(retry_after)
                    continue
                raise RetryExhausted(path, attempt + 1)

            if status == 401:
                raise AuthError(status, response.text, path=path)

            if status < 200 or status >= 300:
                raise UpstreamError(status, response.text, path=path)

            if status == 204 or not response.content:
                return {}
            return response.json()

        # Only reached with max_retries < 0
        raise RetryExhausted(path, 0)

    def get(self, path: str, **params) -> Any:
        clean = {k: v for k, v in params.items() if v is not None}
        return self.request("GET", path, params=clean or None)

    # -------------------------
    # Profile / listening history
    # -------------------------
    def get_me(self) -> dict:
        return self.get("/me")

    def get_top_tracks(self, time_range: str = "medium_term", limit: int = config.TOP_ITEMS_LIMIT) -> List[dict]:
        data = self.get("/me/top/tracks", time_range=time_range, limit=limit)
        return [t for t in (data.get("items") or []) if t]

    def get_top_artists(self, time_range: str = "medium_term", limit: int = config.TOP_ITEMS_LIMIT) -> List[dict]:
        data = self.get("/me/top/artists", time_range=time_range, limit=limit)
        return [a for a in (data.get("items") or []) if a]

    def get_recently_played(self, limit: int = config.RECENTLY_PLAYED_LIMIT) -> List[dict]:
        """Recently played tracks, each with its `played_at` timestamp attached."""
        data = self.get("/me/player/recently-played", limit=limit)
        tracks = []
        for item in data.get("items") or []:
            track = item.get("track")
            if not track:
                continue
            tracks.append({**track, "played_at": item.get("played_at")})
        return tracks

    def get_saved_tracks(self, limit: int = config.LIBRARY_PAGE_SIZE, offset: int = 0) -> dict:
        """One page of saved tracks: {"tracks": [...with added_at], "total": int}."""
        data = self.get("/me/tracks", limit=limit, offset=offset)
        tracks = []
        for item in data.get("items") or []:
            track = item.get("track")
            if not track:
                continue
            tracks.append({**track, "added_at": item.get("added_at")})
        return {"tracks": tracks, "total": data.get("total") or 0}

    def get_followed_artists(self, limit: int = config.FOLLOWED_ARTISTS_LIMIT) -> List[dict]:
        data = self.get("/me/following", type="artist", limit=limit)
        return [a for a in ((data.get("artists") or {}).get("items") or []) if a]

    # -------------------------
    # Playlists
    # -------------------------
    def get_my_playlists(self, limit: int = config.PLAYLIST_PAGE_SIZE, offset: int = 0) -> dict:
        """One page of the user's playlists.

        Normalizes the track count into `tracks.total` whether the response
        uses the older `tracks` or the newer `items` field.
        """
        data = self.get("/me/playlists", limit=limit, offset=offset)
        items = []
        for p in data.get("items") or []:
            if not p:
                continue
            count = p.get("tracks") or p.get("items") or {"total": 0}
            items.append({**p, "tracks": count})
        return {"items": items, "total": data.get("total") or 0}

    def get_playlist_tracks(self, playlist_id: str, limit: int = config.PLAYLIST_PAGE_SIZE, offset: int = 0) -> dict:
        data = self.get(
            f"/playlists/{playlist_id}/tracks",
            limit=limit,
            offset=offset,
            fields="items(track(id,name,duration_ms,explicit,artists(id,name),"
                   "album(id,name,images,release_date),external_ids,external_urls)),total",
        )
        return {"items": data.get("items") or [], "total": data.get("total") or 0}

    # -------------------------
    # Catalog
    # -------------------------
    def get_artist(self, artist_id: str) -> dict:
        return self.get(f"/artists/{artist_id}")

    def get_artists(self, artist_ids: List[str]) -> List[dict]:
        """Batch artist lookup, falling back to single lookups when the batch endpoint is refused."""
        results = []
        for chunk in chunks(artist_ids, 50):
            try:
                data = self.get("/artists", ids=",".join(chunk))
                results.extend(a for a in (data.get("artists") or []) if a)
            except UpstreamError as e:
                if isinstance(e, (AuthError, LongCooldown)) or e.status not in (403, 404):
                    raise
                verbose_log(f"Batch /artists refused ({e.status}), using single lookups")
                for artist_id in chunk:
                    try:
                        results.append(self.get_artist(artist_id))
                    except (AuthError, LongCooldown):
                        raise
                    except UpstreamError as inner:
                        log(f"⚠️  Artist {artist_id} lookup failed: {inner}")
        return results

    def get_artist_albums(
        self,
        artist_id: str,
        include_groups: str = "album",
        limit: int = config.DISCOGRAPHY_ALBUM_FETCH,
        offset: int = 0,
        market: Optional[str] = "US",
    ) -> dict:
        data = self.get(
            f"/artists/{artist_id}/albums",
            include_groups=include_groups, limit=limit, offset=offset, market=market,
        )
        return {"items": [a for a in (data.get("items") or []) if a], "total": data.get("total") or 0}

    def get_album_tracks(self, album_id: str, limit: int = 50, offset: int = 0) -> dict:
        data = self.get(f"/albums/{album_id}/tracks", limit=limit, offset=offset)
        return {"items": [t for t in (data.get("items") or []) if t], "total": data.get("total") or 0}

    def get_tracks(self, track_ids: List[str]) -> List[dict]:
        """Batch track lookup, 50 ids per call."""
        results = []
        for chunk in chunks(track_ids, 50):
            data = self.get("/tracks", ids=",".join(chunk))
            results.extend(t for t in (data.get("tracks") or []) if t)
        return results

    # -------------------------
    # Search
    # -------------------------
    def search(self, query: str, limit: int = config.SEARCH_LIMIT_MAX, offset: int = 0) -> List[dict]:
        """Track search. `genre:"<label>"` is understood by the upstream index."""
        data = self.get(
            "/search", q=query, type="track",
            limit=min(limit, config.SEARCH_LIMIT_MAX), offset=offset,
        )
        return [t for t in ((data.get("tracks") or {}).get("items") or []) if t]

    def search_paginated(self, query: str, total_desired: int = 30) -> List[dict]:
        """Fetch several search pages until `total_desired` tracks or an empty page."""
        found: List[dict] = []
        offset = 0
        while len(found) < total_desired:
            page = self.search(query, limit=config.SEARCH_LIMIT_MAX, offset=offset)
            if not page:
                break
            found.extend(page)
            offset += config.SEARCH_LIMIT_MAX
        return found[:total_desired]


def track_artists(track: Dict[str, Any]) -> List[dict]:
    """Artist stubs on a track object, tolerating missing fields."""
    return [a for a in (track.get("artists") or []) if a and a.get("id")]

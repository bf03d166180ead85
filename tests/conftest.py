"""Shared fakes: an in-memory upstream API and a simulated clock."""

import json

import pytest

from heardprint.client import SpotifyClient

BASE_URL = "https://api.test/v1"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self._raw = text is not None
        if self._raw:
            self.text = text
        else:
            self.text = "" if payload is None else json.dumps(payload)
        self.content = self.text.encode()

    def json(self):
        if self._raw:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    """Routes requests by path.

    A route value may be a FakeResponse, an exception instance, a callable
    taking the query params, or a list of those consumed in order (the last
    entry repeats).
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        path = url[len(BASE_URL):] if url.startswith(BASE_URL) else url
        params = dict(params or {})
        self.calls.append({"method": method, "path": path, "params": params, "headers": headers})

        handler = self.routes.get(path)
        if handler is None:
            return FakeResponse(404, {"error": {"status": 404, "message": "not found"}})
        if isinstance(handler, list):
            handler = handler.pop(0) if len(handler) > 1 else handler[0]
        if callable(handler):
            handler = handler(params)
        if isinstance(handler, BaseException):
            raise handler
        return handler

    def paths(self):
        return [c["path"] for c in self.calls]


class FakeClock:
    """Monotonic clock whose sleep() advances simulated time."""

    def __init__(self, start=0.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    @property
    def slept(self):
        return sum(self.sleeps)


def ok(payload=None, **headers):
    return FakeResponse(200, payload if payload is not None else {}, headers)


def make_track(tid, name=None, artists=(("a1", "Artist One"),), release_date="2001-01-01",
               duration_ms=200000, explicit=False, isrc=None):
    track = {
        "id": tid,
        "name": name or f"Track {tid}",
        "artists": [{"id": aid, "name": aname} for aid, aname in artists],
        "album": {"id": f"alb-{tid}", "name": "Album", "release_date": release_date},
        "duration_ms": duration_ms,
        "explicit": explicit,
        "external_urls": {"spotify": f"https://open.spotify.com/track/{tid}"},
    }
    if isrc:
        track["external_ids"] = {"isrc": isrc}
    return track


def make_artist(aid, name=None, genres=()):
    return {"id": aid, "name": name or f"Artist {aid}", "genres": list(genres)}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_client(clock):
    """Factory: make_client(routes, request_delay=0) -> (client, session)."""

    def factory(routes=None, request_delay=0.0, **kwargs):
        session = FakeSession(routes)
        client = SpotifyClient(
            "test-token",
            session=session,
            base_url=BASE_URL,
            request_delay=request_delay,
            sleep=clock.sleep,
            clock=clock,
            **kwargs,
        )
        return client, session

    return factory


@pytest.fixture
def upstream_routes():
    """A small but complete upstream account for end-to-end runs."""
    saved = [make_track(f"s{i}", artists=(("a2", "Artist Two"),), release_date="2012-01-01") for i in range(3)]

    def saved_tracks(params):
        offset, limit = params["offset"], params["limit"]
        page = saved[offset:offset + limit]
        return ok({"items": [{"added_at": "2021-03-01T00:00:00Z", "track": t} for t in page],
                   "total": len(saved)})

    return {
        "/me": ok({"id": "u1", "display_name": "User One", "images": []}),
        "/me/top/tracks": ok({"items": [
            make_track("t1", release_date="1994-03-01"),
            make_track("t2", artists=(("a2", "Artist Two"),), release_date="1850-01-01"),
        ]}),
        "/me/top/artists": ok({"items": [make_artist("a1", "Artist One", ["rock"]), make_artist("a2", "Artist Two")]}),
        "/me/player/recently-played": ok({"items": [
            {"played_at": "2024-05-01T21:00:00Z", "track": make_track("t3", release_date="2005")},
        ]}),
        "/me/following": ok({"artists": {"items": [make_artist("a3", "Artist Three", ["jazz"])]}}),
        "/me/tracks": saved_tracks,
        "/me/playlists": ok({"items": [{"id": "pl1", "name": "Mine", "owner": {"id": "u1"},
                                        "tracks": {"total": 1}}], "total": 1}),
        "/playlists/pl1/tracks": ok({"items": [{"track": make_track("t5")}], "total": 1}),
        "/search": ok({"tracks": {"items": []}}),
        "/artists/a1/albums": ok({"items": [{"id": "alb1", "name": "Debut", "album_type": "album",
                                             "total_tracks": 2}], "total": 1}),
        "/albums/alb1/tracks": ok({"items": [{"id": "t1"}, {"id": "n1"}], "total": 2}),
    }

"""Tests for the rate-limited client: throttling, cooldown, error mapping, pacing."""

import pytest
import requests

from heardprint.errors import AuthError, LongCooldown, RetryExhausted, UpstreamError, parse_long_cooldown
from heardprint.ratelimit import RequestPacer

from conftest import FakeClock, FakeResponse, make_artist, ok


def throttled(seconds=None):
    headers = {"Retry-After": str(seconds)} if seconds is not None else {}
    return FakeResponse(429, {"error": {"status": 429}}, headers)


# ---------------------------------------------------------------------------
# Throttling
# ---------------------------------------------------------------------------

class TestThrottling:
    def test_short_retry_after_is_absorbed(self, make_client, clock):
        client, session = make_client({"/me": [throttled(5), throttled(5), ok({"id": "u1"})]})
        assert client.get_me() == {"id": "u1"}
        assert len(session.calls) == 3
        assert clock.slept >= 10

    def test_long_retry_after_raises_immediately(self, make_client, clock):
        client, session = make_client({"/me": [throttled(45), ok({"id": "u1"})]})
        with pytest.raises(LongCooldown) as exc_info:
            client.get_me()
        assert exc_info.value.seconds == 45
        assert str(exc_info.value) == "rate_limit_long:45"
        assert len(session.calls) == 1
        assert clock.slept == 0

    def test_missing_retry_after_uses_default(self, make_client, clock):
        client, _ = make_client({"/me": [throttled(), ok({"id": "u1"})]})
        client.get_me()
        assert clock.sleeps == [5]

    def test_retry_budget_exhausted(self, make_client, clock):
        client, session = make_client({"/me": throttled(2)})
        with pytest.raises(RetryExhausted) as exc_info:
            client.get_me()
        assert exc_info.value.attempts == 4
        assert len(session.calls) == 4
        assert clock.sleeps == [2, 2, 2]

    def test_ceiling_is_inclusive(self, make_client):
        client, _ = make_client({"/me": [throttled(30), ok({"id": "u1"})]})
        assert client.get_me()["id"] == "u1"


# ---------------------------------------------------------------------------
# Error statuses
# ---------------------------------------------------------------------------

class TestErrors:
    def test_401_is_auth_error(self, make_client):
        client, session = make_client({"/me": FakeResponse(401, {"error": "bad token"})})
        with pytest.raises(AuthError):
            client.get_me()
        assert len(session.calls) == 1

    def test_500_is_not_retried(self, make_client):
        client, session = make_client({"/me": FakeResponse(500, {"error": "boom"})})
        with pytest.raises(UpstreamError) as exc_info:
            client.get_me()
        assert exc_info.value.status == 500
        assert "boom" in exc_info.value.body
        assert len(session.calls) == 1

    def test_errors_are_spotipy_exceptions(self):
        from spotipy.exceptions import SpotifyException
        assert issubclass(LongCooldown, SpotifyException)
        assert LongCooldown(60).http_status == 429

    def test_transient_network_error_is_retried(self, make_client):
        client, session = make_client({
            "/me": [requests.exceptions.ConnectionError("reset"), ok({"id": "u1"})],
        })
        assert client.get_me()["id"] == "u1"
        assert len(session.calls) == 2

    def test_no_content(self, make_client):
        client, _ = make_client({"/me": FakeResponse(204)})
        assert client.get_me() == {}

    def test_parse_long_cooldown(self):
        assert parse_long_cooldown("rate_limit_long:120") == 120
        assert parse_long_cooldown("Spotify 500: boom") is None


# ---------------------------------------------------------------------------
# Endpoint wrappers
# ---------------------------------------------------------------------------

class TestEndpoints:
    def test_bearer_header(self, make_client):
        client, session = make_client({"/me": ok({"id": "u1"})})
        client.get_me()
        assert session.calls[0]["headers"]["Authorization"] == "Bearer test-token"

    def test_search_limit_is_clamped(self, make_client):
        client, session = make_client({"/search": ok({"tracks": {"items": []}})})
        client.search('genre:"rock"', limit=50)
        assert session.calls[0]["params"]["limit"] == 10

    def test_saved_tracks_carry_added_at(self, make_client):
        client, _ = make_client({"/me/tracks": ok({
            "items": [{"added_at": "2020-01-01T00:00:00Z", "track": {"id": "t1"}}, {"track": None}],
            "total": 1,
        })})
        page = client.get_saved_tracks()
        assert page["total"] == 1
        assert page["tracks"] == [{"id": "t1", "added_at": "2020-01-01T00:00:00Z"}]

    def test_batch_artists_falls_back_to_single_lookups(self, make_client):
        client, session = make_client({
            "/artists": FakeResponse(403, {"error": "forbidden"}),
            "/artists/a1": ok(make_artist("a1")),
            "/artists/a2": ok(make_artist("a2")),
        })
        artists = client.get_artists(["a1", "a2"])
        assert [a["id"] for a in artists] == ["a1", "a2"]
        assert session.paths() == ["/artists", "/artists/a1", "/artists/a2"]

    def test_search_paginated_stops_on_empty_page(self, make_client):
        def search(params):
            if params["offset"] == 0:
                return ok({"tracks": {"items": [{"id": f"t{i}"} for i in range(10)]}})
            return ok({"tracks": {"items": []}})

        client, session = make_client({"/search": search})
        assert len(client.search_paginated("q", total_desired=30)) == 10
        assert len(session.calls) == 2


# ---------------------------------------------------------------------------
# Pacing
# ---------------------------------------------------------------------------

class TestPacing:
    def test_requests_are_spaced(self, make_client, clock):
        client, _ = make_client({"/me": ok({"id": "u1"})}, request_delay=1.5)
        client.get_me()
        client.get_me()
        client.get_me()
        assert clock.sleeps == [1.5, 1.5]

    def test_elapsed_time_counts_toward_interval(self):
        clock = FakeClock()
        pacer = RequestPacer(2.0, clock=clock, sleep=clock.sleep)
        pacer.wait()
        clock.now += 1.5
        assert pacer.wait() == pytest.approx(0.5)
        clock.now += 5
        assert pacer.wait() == 0

    def test_reset_forgets_last_start(self):
        clock = FakeClock()
        pacer = RequestPacer(2.0, clock=clock, sleep=clock.sleep)
        pacer.wait()
        pacer.reset()
        assert pacer.wait() == 0

"""Tests for the Flask boundary."""

import pytest

from server.server import create_app

from conftest import FakeResponse, make_artist


@pytest.fixture
def app_client(make_client, upstream_routes):
    tokens = []

    def factory(token):
        tokens.append(token)
        return make_client(upstream_routes)[0]

    app = create_app(client_factory=factory)
    app.config["TESTING"] = True
    client = app.test_client()
    client.tokens = tokens
    return client


AUTH = {"Authorization": "Bearer abc123"}


class TestServer:
    def test_health(self, app_client):
        resp = app_client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_missing_token(self, app_client):
        resp = app_client.get("/profile/basics")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "missing_token"

    def test_basics(self, app_client):
        resp = app_client.get("/profile/basics", headers=AUTH)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["id"] == "u1"
        assert "buildTime" in body
        assert app_client.tokens == ["abc123"]

    def test_library_offset(self, app_client):
        resp = app_client.get("/profile/library?offset=1", headers=AUTH)
        body = resp.get_json()
        assert body["trackIds"] == ["s1", "s2"]
        assert body["nextOffset"] is None

    def test_bad_offset(self, app_client):
        resp = app_client.get("/profile/library?offset=xyz", headers=AUTH)
        assert resp.status_code == 400

    def test_discography_post(self, app_client):
        resp = app_client.post("/profile/discography", headers=AUTH,
                               json={"artistIds": ["a1"], "trackIds": ["t1"]})
        assert resp.status_code == 200
        assert resp.get_json()["albums"][0]["unheardCount"] == 1

    def test_analyze(self, app_client):
        resp = app_client.post("/profile/analyze", json={"profile": {"artistGenres": {"a1": ["rock"]}}})
        assert resp.status_code == 200
        assert resp.get_json()["explorerLabel"] == "Laser-Focused"

    def test_analyze_rejects_non_object(self, app_client):
        resp = app_client.post("/profile/analyze", json=[1, 2])
        assert resp.status_code == 400


class TestServerErrors:
    def _app(self, make_client, routes):
        app = create_app(client_factory=lambda token: make_client(routes)[0])
        return app.test_client()

    def test_long_cooldown(self, make_client):
        client = self._app(make_client, {"/me/tracks": FakeResponse(429, {}, {"Retry-After": "120"})})
        resp = client.get("/profile/library", headers=AUTH)
        assert resp.status_code == 429
        assert resp.get_json() == {"error": "rate_limit_long:120", "retryAfter": 120}

    def test_auth_failure(self, make_client):
        client = self._app(make_client, {"/me": FakeResponse(401, {})})
        resp = client.get("/profile/basics", headers=AUTH)
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "auth_failed"

    def test_malformed_upstream_body_degrades_to_warning(self, make_client):
        client = self._app(make_client, {"/me/tracks": FakeResponse(200, text="<html>")})
        resp = client.get("/profile/library?offset=0", headers=AUTH)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["nextOffset"] == 0
        assert "unexpected response" in body["warnings"][0]

    def test_unreadable_user_is_a_warning(self, make_client):
        client = self._app(make_client, {"/me": FakeResponse(200, text="<html>")})
        resp = client.get("/profile/basics", headers=AUTH)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"] is None
        assert body["warnings"][0].startswith("current user")

    def test_bad_list_param(self, make_client):
        client = self._app(make_client, {})
        resp = client.post("/profile/mainstream", headers=AUTH, json={"genres": 7})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "bad_request"

    def test_partial_failure_is_still_200(self, make_client):
        client = self._app(make_client, {
            "/me": FakeResponse(200, {"id": "u1"}),
            "/me/following": FakeResponse(200, {"artists": {"items": [make_artist("f1")]}}),
        })
        resp = client.get("/profile/basics", headers=AUTH)
        assert resp.status_code == 200
        assert len(resp.get_json()["warnings"]) == 7

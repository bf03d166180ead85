"""Tests for genre inference: reuse, direct lookups, and bounded search probing."""

from heardprint.genre_inference import build_genres
from heardprint.genres import PROBE_GENRES

from conftest import FakeResponse, make_artist, make_track, ok


def probe_routes(hits):
    """Search route returning a track by `hits[genre]` artist id for matching probes."""

    def search(params):
        for genre, aid in hits.items():
            if params["q"] == f'genre:"{genre}"':
                return ok({"tracks": {"items": [make_track(f"{genre}-t", artists=((aid, f"Name {aid}"),))]}})
        return ok({"tracks": {"items": [make_track("other", artists=(("stranger", "Stranger"),))]}})

    return {"/search": search}


class TestReuse:
    def test_preloaded_genres_are_reused(self, make_client):
        client, session = make_client(probe_routes({}))
        result = build_genres(
            client, ["a1"], preloaded_artist_genres={"a1": ["rock", "indie"]}, probe_genres=[],
        )
        assert result.profile.artist_genres["a1"] == {"rock", "indie"}
        assert result.extra["reusedGenrePairs"] == 2
        assert result.extra["artistLookups"] == 0
        assert session.calls == []

    def test_lookups_only_when_nothing_known(self, make_client):
        client, session = make_client({"/artists/a1": ok(make_artist("a1", "A", ["jazz"]))})
        result = build_genres(client, ["a1"], probe_genres=[])
        assert result.profile.artist_genres["a1"] == {"jazz"}
        assert result.extra["artistLookups"] == 1
        assert session.paths() == ["/artists/a1"]

    def test_lookup_count_is_bounded(self, make_client):
        client, session = make_client({})
        result = build_genres(client, [f"a{i}" for i in range(20)], lookup_limit=3, probe_genres=[])
        assert result.extra["artistLookups"] == 3
        assert len(result.warnings) == 3


class TestProbing:
    def test_probe_credits_known_artist_only(self, make_client):
        client, _ = make_client(probe_routes({"jazz": "a1"}))
        result = build_genres(
            client, ["a1"], preloaded_artist_genres={"a1": ["rock"]},
            probe_genres=["rock", "jazz", "blues"],
        )
        p = result.profile
        assert p.artist_genres["a1"] == {"rock", "jazz"}
        assert "stranger" not in p.artist_ids
        # "rock" is already known, so only two probes go out
        assert result.extra["probesIssued"] == 2
        assert result.extra["probeHits"] == 1

    def test_probe_limit_is_respected(self, make_client):
        client, session = make_client(probe_routes({}))
        result = build_genres(client, ["a1"], preloaded_artist_genres={"a1": ["x"]}, probe_limit=4)
        assert result.extra["probesIssued"] == 4
        assert session.paths().count("/search") == 4

    def test_failed_probe_is_a_warning(self, make_client):
        client, _ = make_client({"/search": FakeResponse(500, {})})
        result = build_genres(client, ["a1"], preloaded_artist_genres={"a1": ["x"]}, probe_genres=["pop"])
        assert result.extra["probesIssued"] == 1
        assert result.extra["probeHits"] == 0
        assert len(result.warnings) == 1

    def test_time_budget_stops_probing(self, make_client, clock):
        client, _ = make_client(probe_routes({}), request_delay=2)
        result = build_genres(
            client, ["a1"], preloaded_artist_genres={"a1": ["x"]}, clock=clock,
        )
        assert 0 < result.extra["probesIssued"] < len(PROBE_GENRES)
        assert any("time budget" in w for w in result.warnings)
        assert clock.now <= 50

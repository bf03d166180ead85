"""Tests for the HeardProfile aggregate: bucketing, genre counting, merging."""

import pytest

from heardprint.profile import HeardProfile
from heardprint.utils import parse_release_year

from conftest import make_artist, make_track


@pytest.fixture
def fragment():
    p = HeardProfile()
    p.add_track(make_track("t1", release_date="1994-03-01", isrc="USABC9400001"))
    p.add_track(make_track("t2", artists=(("a2", "Second"),), release_date="2010"))
    p.add_artist(make_artist("a1", "Artist One", ["rock", "grunge", "alt-rock"]))
    p.set_source("topTracksShort", 2)
    p.add_top_artists(["a1", "a2"])
    return p


class TestDecadeBucketing:
    def test_sane_year_is_bucketed(self):
        p = HeardProfile()
        p.add_track(make_track("t1", release_date="1994-03-01"))
        assert p.decade_distribution == {"1990s": 1}
        assert p.release_years == [1994]

    def test_implausible_year_is_excluded_but_counted(self):
        p = HeardProfile()
        p.add_track(make_track("t1", release_date="1994-03-01"))
        p.add_track(make_track("t2", release_date="1850-01-01"))
        assert p.decade_distribution == {"1990s": 1}
        assert p.release_years == [1994]
        assert p.total_tracks_analyzed == 2

    def test_parse_release_year(self):
        assert parse_release_year("1994") == 1994
        assert parse_release_year("1900-12-31") is None
        assert parse_release_year("") is None
        assert parse_release_year("abcd") is None
        assert parse_release_year("9999-01-01") is None

    def test_repeat_sighting_does_not_double_count(self):
        p = HeardProfile()
        assert p.add_track(make_track("t1", release_date="1994")) is True
        assert p.add_track(make_track("t1", release_date="1994")) is False
        assert p.decade_distribution == {"1990s": 1}


class TestGenres:
    def test_one_count_per_artist_genre_pair(self):
        p = HeardProfile()
        p.add_artist(make_artist("a1", genres=["rock", "grunge", "alt-rock"]))
        p.add_artist(make_artist("a2", genres=["rock"]))
        assert p.genre_frequency == {"rock": 2, "grunge": 1, "alt-rock": 1}

    def test_same_artist_twice_is_not_recounted(self):
        p = HeardProfile()
        p.add_artist(make_artist("a1", genres=["rock"]))
        p.add_artist(make_artist("a1", genres=["rock"]))
        assert p.genre_frequency["rock"] == 1

    def test_credit_genre(self):
        p = HeardProfile()
        assert p.credit_genre("a1", "jazz", "Miles") is True
        assert p.credit_genre("a1", "jazz", "Miles") is False
        assert p.genre_artists == {"jazz": ["Miles"]}

    def test_top_genres_order(self):
        p = HeardProfile()
        p.add_artist(make_artist("a1", genres=["pop", "rock"]))
        p.add_artist(make_artist("a2", genres=["rock"]))
        assert p.top_genres(2) == ["rock", "pop"]


class TestMerge:
    def test_merge_is_idempotent(self, fragment):
        once = HeardProfile().merge(fragment)
        twice = HeardProfile().merge(fragment).merge(fragment)
        assert twice.track_ids == once.track_ids
        assert twice.artist_ids == once.artist_ids
        assert twice.genre_frequency == once.genre_frequency
        assert twice.decade_distribution == once.decade_distribution
        assert twice.top_artist_ids == ["a1", "a2"]

    def test_merge_only_grows(self, fragment):
        base = HeardProfile()
        base.add_track(make_track("t9"))
        base.merge(fragment)
        assert base.track_ids == {"t1", "t2", "t9"}

    def test_earliest_save_wins(self):
        a = HeardProfile()
        a.add_track({**make_track("t1"), "added_at": "2021-05-01T00:00:00Z"})
        b = HeardProfile()
        b.add_track({**make_track("t1"), "added_at": "2019-01-01T00:00:00Z"})
        a.merge(b)
        assert a.earliest_saved_at == "2019-01-01T00:00:00Z"


class TestQueries:
    def test_heard_by_isrc(self, fragment):
        reissue = make_track("t-remaster", isrc="USABC9400001")
        assert fragment.is_track_heard(reissue) is True
        assert fragment.is_track_heard(reissue, strict=False) is False

    def test_filter_unheard(self, fragment):
        tracks = [make_track("t1"), make_track("t3"), None]
        assert [t["id"] for t in fragment.filter_unheard(tracks)] == ["t3"]

    def test_enrichment_fields(self):
        p = HeardProfile()
        p.add_track(make_track("t1", explicit=True, duration_ms=180000))
        p.add_track({**make_track("t2"), "played_at": "2024-05-01T14:03:00Z"})
        assert p.explicit_count == 1
        assert p.total_processed == 2
        assert p.track_durations["t1"] == 180000
        assert p.recent_played_times == {"2024-05-01T14:03:00Z"}

    def test_from_dict_restores_partial_state(self, fragment):
        restored = HeardProfile.from_dict(fragment.to_dict())
        assert restored.track_ids == fragment.track_ids
        assert restored.artist_genres == fragment.artist_genres
        assert restored.decade_distribution == fragment.decade_distribution

    def test_tracks_frame(self, fragment):
        df = fragment.tracks_frame()
        assert list(df["track_id"]) == ["t1", "t2"]
        assert df.loc[df["track_id"] == "t1", "decade"].iloc[0] == "1990s"

"""Tests for lfm.cache.keys -- cache key derivation."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone

import pytest

from lfm.cache import keys
from lfm.cache.keys import make_key

HEX64 = re.compile(r"^[0-9a-f]{64}$")


class TestMakeKey:
    def test_deterministic(self) -> None:
        """Identical inputs always produce the identical key."""
        assert make_key("user.getTopArtists", "rj", "7day", 10, 1) == make_key(
            "user.getTopArtists", "rj", "7day", 10, 1
        )

    def test_is_filesystem_safe_hex(self) -> None:
        assert HEX64.match(make_key("artist.getSimilar", "Björk", 5, True))

    def test_each_parameter_changes_the_key(self) -> None:
        base = make_key("user.getTopArtists", "rj", "7day", 10, 1)
        assert make_key("user.getTopArtists", "other", "7day", 10, 1) != base
        assert make_key("user.getTopArtists", "rj", "1month", 10, 1) != base
        assert make_key("user.getTopArtists", "rj", "7day", 20, 1) != base
        assert make_key("user.getTopArtists", "rj", "7day", 10, 2) != base
        assert make_key("user.getTopTracks", "rj", "7day", 10, 1) != base

    def test_separator_in_values_cannot_collide(self) -> None:
        """Values containing a separator are not confused with split values."""
        assert make_key("op", "a|b", "c") != make_key("op", "a", "b|c")
        assert make_key("op", "a,b") != make_key("op", "a", "b")

    def test_strings_are_case_and_whitespace_insensitive(self) -> None:
        assert make_key("op", "  RJ ") == make_key("op", "rj")
        assert make_key("User.GetTopArtists", "rj") == make_key("user.gettopartists", "rj")

    def test_int_and_string_are_distinct(self) -> None:
        assert make_key("op", 10) != make_key("op", "10")

    def test_bool_and_int_are_distinct(self) -> None:
        assert make_key("op", True) != make_key("op", 1)

    def test_datetimes_normalised_to_utc(self) -> None:
        utc = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        cet = datetime(2024, 1, 1, 13, 0, tzinfo=timezone(timedelta(hours=1)))
        naive = datetime(2024, 1, 1, 12, 0)
        assert make_key("op", utc) == make_key("op", cet) == make_key("op", naive)

    def test_dates_are_supported(self) -> None:
        assert make_key("op", date(2024, 1, 1)) != make_key("op", date(2024, 1, 2))

    @pytest.mark.parametrize("operation", ["", "   "])
    def test_empty_operation_rejected(self, operation: str) -> None:
        with pytest.raises(ValueError):
            make_key(operation, "rj")

    def test_none_parameter_rejected(self) -> None:
        with pytest.raises(ValueError):
            make_key("op", "rj", None)

    def test_unsupported_parameter_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unsupported"):
            make_key("op", 1.5)


class TestBuilders:
    def test_top_lists_use_distinct_operations(self) -> None:
        args = ("rj", "7day", 10, 1)
        built = {
            keys.top_artists_key(*args),
            keys.top_tracks_key(*args),
            keys.top_albums_key(*args),
        }
        assert len(built) == 3

    def test_page_defaults_to_one(self) -> None:
        assert keys.top_artists_key("rj", "7day", 10) == keys.top_artists_key("rj", "7day", 10, 1)

    def test_artist_lookups_are_case_insensitive(self) -> None:
        assert keys.similar_artists_key("Radiohead", 5) == keys.similar_artists_key("radiohead ", 5)
        assert keys.artist_top_tracks_key("Radiohead", 5) != keys.artist_top_albums_key("Radiohead", 5)

    def test_recent_tracks_key_depends_on_exact_range(self) -> None:
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        end = datetime(2024, 1, 31, tzinfo=timezone.utc)
        later_end = end + timedelta(hours=6)
        assert keys.recent_tracks_key("rj", start, end, 200) != keys.recent_tracks_key(
            "rj", start, later_end, 200
        )

    @pytest.mark.parametrize("user", ["", "  "])
    def test_empty_user_rejected(self, user: str) -> None:
        with pytest.raises(ValueError, match="user"):
            keys.top_tracks_key(user, "7day", 10)

    def test_empty_period_rejected(self) -> None:
        with pytest.raises(ValueError, match="period"):
            keys.top_albums_key("rj", "", 10)

    def test_empty_artist_rejected(self) -> None:
        with pytest.raises(ValueError, match="artist"):
            keys.similar_artists_key("", 10)

    def test_info_lookups_are_per_user(self) -> None:
        assert keys.artist_info_key("Low", "rj") != keys.artist_info_key("Low", "someone")
        assert keys.artist_info_key("Low", "RJ") == keys.artist_info_key("low", "rj")
        assert keys.track_info_key("Low", "Words", "rj") != keys.track_info_key(
            "Low", "Lullaby", "rj"
        )

    def test_empty_track_rejected(self) -> None:
        with pytest.raises(ValueError, match="track"):
            keys.track_info_key("Low", " ", "rj")

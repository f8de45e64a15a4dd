"""Tests for the SQLite geocode cache."""

import pytest

from wineclimate.services.geocode_cache import GeocodeCache, GeocodeResult


@pytest.fixture
def cache(tmp_path):
    """Cache backed by a temp database."""
    cache = GeocodeCache(str(tmp_path / "cache" / "geocode.db"))
    yield cache
    cache.close()


class TestGeocodeCache:
    def test_miss_returns_none(self, cache):
        assert cache.get("Bordeaux") is None

    def test_found_round_trip(self, cache):
        cache.set("Bordeaux", GeocodeResult("Bordeaux", 44.84, -0.58, "Bordeaux, France"), "nominatim")

        cached = cache.get("Bordeaux")

        assert cached is not None
        assert cached.result.latitude == 44.84
        assert cached.result.longitude == -0.58
        assert cached.result.display_name == "Bordeaux, France"
        assert cached.provider == "nominatim"

    def test_no_match_is_cached(self, cache):
        """A permanent no-match is a cache hit with no result."""
        cache.set("Atlantis", None, "nominatim")

        cached = cache.get("Atlantis")

        assert cached is not None
        assert cached.result is None

    def test_key_normalization(self, cache):
        cache.set("Napa  Valley", GeocodeResult("Napa Valley", 38.3, -122.3), "nominatim")
        assert cache.get(" napa valley ") is not None

    def test_upsert_replaces(self, cache):
        cache.set("Mendoza", None, "nominatim")
        cache.set("Mendoza", GeocodeResult("Mendoza", -33.0, -68.0), "nominatim")

        assert cache.get("Mendoza").result.latitude == -33.0
        assert cache.get_stats()["total_entries"] == 1

    def test_stats(self, cache):
        cache.set("Bordeaux", GeocodeResult("Bordeaux", 44.84, -0.58), "nominatim")
        cache.set("Atlantis", None, "nominatim")
        cache.get("Bordeaux")
        cache.get("Bordeaux")

        stats = cache.get_stats()

        assert stats == {"total_entries": 2, "found": 1, "no_match": 1, "total_hits": 2}

    def test_clear(self, cache):
        cache.set("Bordeaux", GeocodeResult("Bordeaux", 44.84, -0.58), "nominatim")
        assert cache.clear() == 1
        assert cache.get("Bordeaux") is None

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "geocode.db")
        first = GeocodeCache(path)
        first.set("Bordeaux", GeocodeResult("Bordeaux", 44.84, -0.58), "nominatim")
        first.close()

        second = GeocodeCache(path)
        assert second.get("Bordeaux").result.longitude == -0.58
        second.close()

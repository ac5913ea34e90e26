"""Unit tests for eventmap.geocoding.cache."""

import pytest

from eventmap.calendar.models import Coordinates
from eventmap.geocoding.cache import GeocodeCache, normalize_address

pytestmark = pytest.mark.unit


class TestNormalizeAddress:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("  Zo House,  San Francisco. ", "zo house, san francisco"),
            ("KORAMANGALA\tBengaluru", "koramangala bengaluru"),
            ("--Main Hall--", "main hall"),
            ("", ""),
            (None, ""),
            ("   ", ""),
        ],
    )
    def test_normalize_address_when_variants_then_canonical_form(self, raw, expected):
        assert normalize_address(raw) == expected


class TestGeocodeCache:
    """Tests for the address cache."""

    def setup_method(self):
        self.cache = GeocodeCache()
        self.coords = Coordinates(lat=12.93, lng=77.62)

    def test_get_when_variant_spelling_then_same_entry_returned(self):
        """Lookups match on normalized text."""
        self.cache.put("Koramangala, Bengaluru", self.coords)

        assert self.cache.get("  koramangala,   BENGALURU. ") == self.coords
        assert "KORAMANGALA, Bengaluru" in self.cache

    def test_get_when_missing_then_none_and_miss_counted(self):
        assert self.cache.get("Unknown Place") is None
        self.cache.put("Known", self.coords)
        self.cache.get("known")

        assert self.cache.stats() == {"entries": 1, "hits": 1, "misses": 1}

    def test_put_when_address_blank_then_ignored(self):
        self.cache.put("  ...  ", self.coords)

        assert len(self.cache) == 0

    def test_contains_when_not_string_then_false(self):
        assert 42 not in self.cache

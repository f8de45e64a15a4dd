"""Tests for vintage year extraction from titles."""

from wineclimate.ingestion.vintage import extract_vintage, year_tokens


class TestYearTokens:
    def test_finds_all_four_digit_tokens(self):
        assert year_tokens("Bodega 1887 2012 Reserva Malbec") == [1887, 2012]

    def test_ignores_longer_digit_runs(self):
        assert year_tokens("Lot 123456 Red") == []

    def test_empty_title(self):
        assert year_tokens(None) == []
        assert year_tokens("") == []


class TestExtractVintage:
    def test_plain_title(self):
        assert extract_vintage("Nicosia 2013 Vulkà Bianco  (Etna)") == 2013

    def test_skips_founding_year(self):
        """A winery founding year before the range is not the vintage."""
        assert extract_vintage("Bodega 1887 2012 Reserva Malbec (Mendoza)") == 2012

    def test_range_bounds_inclusive(self):
        assert extract_vintage("Wine 1985 Red") == 1985
        assert extract_vintage("Wine 2017 Red") == 2017

    def test_out_of_range_token_is_missing(self):
        assert extract_vintage("Wine 1984 Red") is None
        assert extract_vintage("Cuvée 2050 Brut") is None

    def test_no_token(self):
        assert extract_vintage("Château Sans Année Red (Bordeaux)") is None

    def test_first_in_range_token_wins(self):
        assert extract_vintage("Estate 2009 Reserve 2011") == 2009

    def test_custom_bounds(self):
        assert extract_vintage("Wine 2020 Red", max_year=2023) == 2020

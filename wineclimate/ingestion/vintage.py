"""
Vintage year extraction from free-text wine titles.

Titles embed the vintage as a 4-digit token, e.g.
"Nicosia 2013 Vulkà Bianco  (Etna)". The same digit pattern also matches
founding years ("Bodega 1887 Malbec") and cuvée numbers, so only tokens
inside the plausible vintage range are accepted.
"""

import re
from typing import Optional

from ..config import Config

_YEAR_TOKEN = re.compile(r'\b(\d{4})\b')


def year_tokens(title: Optional[str]) -> list[int]:
    """All 4-digit tokens in a title, in order of appearance."""
    if not title:
        return []
    return [int(token) for token in _YEAR_TOKEN.findall(title)]


def extract_vintage(
    title: Optional[str],
    min_year: int = Config.VINTAGE_MIN,
    max_year: int = Config.VINTAGE_MAX,
) -> Optional[int]:
    """
    Extract the vintage year from a title.

    Args:
        title: Free-text product title
        min_year: Earliest accepted vintage (inclusive)
        max_year: Latest accepted vintage (inclusive)

    Returns:
        First token within [min_year, max_year], or None if no token qualifies
    """
    for year in year_tokens(title):
        if min_year <= year <= max_year:
            return year
    return None

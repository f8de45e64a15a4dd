"""
Centralized configuration for the wine climate enrichment job.

All constants are defined here to avoid scattered magic numbers
and enable easy configuration management.
"""

import os
from pathlib import Path
from typing import Optional


PACKAGE_DIR = Path(__file__).parent


class Config:
    """Pipeline configuration constants."""

    # === Vintage Extraction ===
    # Tokens outside this range (founding years, cuvée numbers) are not vintages
    VINTAGE_MIN = 1985
    VINTAGE_MAX = 2017

    # === Harvest Windows ===
    # (month, day) bounds, inclusive, in the vintage year
    NORTH_HARVEST_START = (8, 1)
    NORTH_HARVEST_END = (10, 31)
    SOUTH_HARVEST_START = (2, 1)
    SOUTH_HARVEST_END = (4, 30)

    # === Output ===
    # Legacy placeholder for "no climate data" in the enriched CSV
    MISSING_CLIMATE_SENTINEL = 999
    COORDINATE_PRECISION = 6
    CLIMATE_PRECISION = 2

    # === Stations ===
    EARTH_RADIUS_KM = 6371.0
    GHCN_MISSING_VALUE = -9999
    GHCN_ELEMENTS = ("TAVG", "PRCP")

    # === Varieties ===
    DEFAULT_TOP_VARIETIES = 10

    # === Pipeline ===
    PROGRESS_LOG_EVERY = 10000
    MAX_RECORDED_ERRORS = 200

    # === Environment ===
    @staticmethod
    def log_level() -> str:
        """Log level (DEBUG, INFO, WARNING, ERROR)."""
        return os.getenv("LOG_LEVEL", "INFO").upper()

    @staticmethod
    def geocode_cache_path() -> str:
        """Path to the SQLite geocode cache.
        Default: data/geocode-cache.db under the working directory.
        """
        return os.getenv("GEOCODE_CACHE_PATH", str(Path.cwd() / "data" / "geocode-cache.db"))

    @staticmethod
    def geocoder_user_agent() -> str:
        """User-Agent sent to Nominatim (required by its usage policy)."""
        return os.getenv("GEOCODER_USER_AGENT", "wineclimate/0.1 (wine vintage research)")

    @staticmethod
    def geocoder_domain() -> Optional[str]:
        """Alternative Nominatim host (self-hosted instance). Default: public OSM."""
        return os.getenv("GEOCODER_DOMAIN") or None

    @staticmethod
    def geocoder_min_delay() -> float:
        """Minimum seconds between provider calls, shared across workers."""
        try:
            return float(os.getenv("GEOCODER_MIN_DELAY", "1.1"))
        except ValueError:
            return 1.1

    @staticmethod
    def geocoder_timeout() -> float:
        """Timeout in seconds for a single geocoding request."""
        try:
            return float(os.getenv("GEOCODER_TIMEOUT", "15.0"))
        except ValueError:
            return 15.0

    @staticmethod
    def lookup_max_retries() -> int:
        """Attempts per lookup for transient provider errors."""
        try:
            return int(os.getenv("LOOKUP_MAX_RETRIES", "3"))
        except ValueError:
            return 3

    @staticmethod
    def lookup_backoff_seconds() -> float:
        """Base delay for exponential backoff between retries."""
        try:
            return float(os.getenv("LOOKUP_BACKOFF_SECONDS", "2.0"))
        except ValueError:
            return 2.0

    @staticmethod
    def geocode_workers() -> int:
        """Worker threads for geocoding. The min-delay throttle still applies."""
        try:
            return max(1, int(os.getenv("GEOCODE_WORKERS", "2")))
        except ValueError:
            return 2

    @staticmethod
    def readings_workers() -> int:
        """Worker threads for loading/downloading station readings."""
        try:
            return max(1, int(os.getenv("READINGS_WORKERS", "4")))
        except ValueError:
            return 4

    @staticmethod
    def ghcn_by_station_url() -> str:
        """URL template for GHCN-Daily by-station files."""
        return os.getenv(
            "GHCN_BY_STATION_URL",
            "https://www.ncei.noaa.gov/pub/data/ghcn/daily/by_station/{station_id}.csv.gz",
        )

    @staticmethod
    def country_match_cutoff() -> float:
        """Minimum rapidfuzz score (0-100) for fuzzy country name matches."""
        try:
            return float(os.getenv("COUNTRY_MATCH_CUTOFF", "90"))
        except ValueError:
            return 90.0

    @staticmethod
    def country_aliases_path() -> str:
        """YAML table mapping dataset country names to ISO3 codes."""
        default = str(PACKAGE_DIR / "data" / "country_aliases.yaml")
        return os.getenv("COUNTRY_ALIASES_PATH", default)

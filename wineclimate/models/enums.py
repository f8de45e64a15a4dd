"""
Enums for type-safe string constants in the enrichment pipeline.
"""

from enum import Enum


class ResolutionLevel(str, Enum):
    """Granularity at which a record's coordinate was accepted."""
    REGION = "region"
    PROVINCE = "province"
    NONE = "none"  # No consistent coordinate at any level


class Hemisphere(str, Enum):
    """Hemisphere selected by the sign of latitude."""
    NORTH = "north"
    SOUTH = "south"

    @classmethod
    def from_latitude(cls, latitude: float) -> "Hemisphere":
        """Latitude 0 counts as northern."""
        return cls.NORTH if latitude >= 0 else cls.SOUTH

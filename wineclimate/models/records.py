"""
Domain records for the enrichment pipeline.

Records are frozen: every pipeline stage returns new instances
(via dataclasses.replace) instead of mutating the previous stage's output.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from .enums import Hemisphere, ResolutionLevel


@dataclass(frozen=True)
class Coordinate:
    """A geocoded point plus the country code it reverse-geocodes to."""
    latitude: float
    longitude: float
    country_code: str = ""  # ISO3, "" when outside every boundary

    @property
    def hemisphere(self) -> Hemisphere:
        return Hemisphere.from_latitude(self.latitude)


@dataclass(frozen=True)
class WeatherStation:
    """A weather station from the registry (read-only reference data)."""
    station_id: str
    latitude: float
    longitude: float
    name: Optional[str] = None
    elevation: Optional[float] = None


@dataclass(frozen=True)
class HarvestWindow:
    """Inclusive date range used to aggregate climate readings."""
    start: date
    end: date
    hemisphere: Hemisphere

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class HarvestAverages:
    """
    Harvest-season climate averages for one record.

    None means no qualifying readings; the writer turns it into the
    legacy sentinel.
    """
    temperature_c: Optional[float] = None
    precipitation_mm: Optional[float] = None
    reading_days: int = 0

    @property
    def is_empty(self) -> bool:
        return self.temperature_c is None and self.precipitation_mm is None


@dataclass(frozen=True)
class WineRecord:
    """
    One wine review row, enriched stage by stage.

    The source columns are kept verbatim so the enriched output can
    reproduce them; the trailing fields are filled by the pipeline.
    """
    row_id: str
    title: str
    country: Optional[str] = None
    designation: Optional[str] = None
    province: Optional[str] = None
    region_1: Optional[str] = None
    region_2: Optional[str] = None
    price: Optional[float] = None
    taster_name: Optional[str] = None
    variety: Optional[str] = None
    winery: Optional[str] = None
    points: Optional[float] = None  # Expert score

    # Pipeline enrichment
    vintage: Optional[int] = None
    coordinate: Optional[Coordinate] = None
    resolution_level: ResolutionLevel = ResolutionLevel.NONE
    station_id: Optional[str] = None
    harvest: Optional[HarvestAverages] = None

    # For tracking
    row_number: Optional[int] = None

from .enums import (
    Hemisphere,
    ResolutionLevel,
)
from .records import (
    Coordinate,
    HarvestAverages,
    HarvestWindow,
    WeatherStation,
    WineRecord,
)
from .report import (
    CoverageReport,
    StageCoverage,
)

__all__ = [
    "Hemisphere",
    "ResolutionLevel",
    "Coordinate",
    "HarvestAverages",
    "HarvestWindow",
    "WeatherStation",
    "WineRecord",
    "CoverageReport",
    "StageCoverage",
]

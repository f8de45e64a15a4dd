from .geocode_cache import GeocodeCache, GeocodeResult
from .geocoder import BatchGeocoder, LookupFailure, NominatimGeocoder
from .countries import CountryBoundaries, CountryCodeResolver, CountryValidator
from .resolver import FallbackResolver, PlaceNameStrategy, province_strategy, region_strategy
from .stations import StationRegistry
from .readings import StationReadings
from .harvest import HarvestAggregator, harvest_window

__all__ = [
    "GeocodeCache",
    "GeocodeResult",
    "BatchGeocoder",
    "LookupFailure",
    "NominatimGeocoder",
    "CountryBoundaries",
    "CountryCodeResolver",
    "CountryValidator",
    "FallbackResolver",
    "PlaceNameStrategy",
    "province_strategy",
    "region_strategy",
    "StationRegistry",
    "StationReadings",
    "HarvestAggregator",
    "harvest_window",
]

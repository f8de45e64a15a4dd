"""
Country-consistency validation.

Geocoding by free-text name is unreliable: the same place name exists in
several countries ("Mendoza", "Victoria", "Columbia Valley"). The declared
country of each review is treated as ground truth, and a geocoded point
is accepted only if it falls inside that country's boundary.

Uses:
- shapely point-in-polygon with an STRtree index for reverse geocoding
- a YAML alias table plus rapidfuzz to map declared names to ISO3 codes
"""

import json
import logging
from pathlib import Path
from typing import Optional

import yaml
from rapidfuzz import fuzz, process
from shapely.geometry import Point, shape
from shapely.strtree import STRtree

from ..config import Config
from ..models.records import Coordinate, WineRecord

logger = logging.getLogger(__name__)

# Natural Earth style property names, in order of preference
CODE_PROPERTIES = ("ISO_A3", "ADM0_A3", "iso_a3", "ISO3", "id")
NAME_PROPERTIES = ("ADMIN", "NAME", "NAME_LONG", "name", "FORMAL_EN", "SOVEREIGNT")
INVALID_CODES = {"", "-99", "-1"}


def _feature_code(properties: dict, code_property: Optional[str]) -> str:
    candidates = (code_property,) + CODE_PROPERTIES if code_property else CODE_PROPERTIES
    for prop in candidates:
        value = properties.get(prop)
        if value is not None and str(value).strip() not in INVALID_CODES:
            return str(value).strip().upper()
    return ""


class CountryBoundaries:
    """
    Reverse geocoder over a country-boundary polygon set.

    A point maps to the code of the polygon containing it. Points outside
    every polygon, or on a border shared by different countries, map to ""
    rather than raising.
    """

    def __init__(self, features: list[dict], code_property: Optional[str] = None):
        """
        Initialize from GeoJSON features.

        Args:
            features: GeoJSON Feature dicts with Polygon/MultiPolygon geometry
            code_property: Property holding the ISO3 code (defaults to Natural Earth names)
        """
        self._geoms = []
        self._codes: list[str] = []
        self.names: dict[str, str] = {}  # country name -> code

        for feature in features:
            properties = feature.get("properties") or {}
            geometry = feature.get("geometry")
            code = _feature_code(properties, code_property)
            if not code or not geometry:
                continue

            self._geoms.append(shape(geometry))
            self._codes.append(code)
            for prop in NAME_PROPERTIES:
                name = properties.get(prop)
                if isinstance(name, str) and name.strip():
                    self.names.setdefault(name.strip(), code)

        if not self._geoms:
            raise ValueError("Boundary set contains no usable country polygons")

        self._tree = STRtree(self._geoms)
        logger.info(f"Loaded {len(self._geoms)} country boundaries")

    @classmethod
    def from_geojson(cls, path: str, code_property: Optional[str] = None) -> "CountryBoundaries":
        """Load a GeoJSON FeatureCollection."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Country boundary file not found: {path}")
        with open(path, 'r', encoding='utf-8') as f:
            collection = json.load(f)
        return cls(collection.get("features", []), code_property=code_property)

    @property
    def codes(self) -> set[str]:
        return set(self._codes)

    def country_code(self, latitude: float, longitude: float) -> str:
        """
        Reverse geocode a point to an ISO3 code.

        Returns:
            Code of the enclosing country, or "" for no match / ambiguous match
        """
        point = Point(longitude, latitude)
        indices = self._tree.query(point, predicate="intersects")
        codes = {self._codes[int(i)] for i in indices}
        if len(codes) == 1:
            return codes.pop()
        if len(codes) > 1:
            logger.debug(f"Point ({latitude}, {longitude}) on border of {sorted(codes)}")
        return ""


class CountryCodeResolver:
    """
    Maps declared country names to ISO3 codes.

    Resolution order:
    1. Alias table (dataset spellings like "US", "England")
    2. Exact (case-insensitive) boundary name or ISO3 code
    3. Fuzzy match on boundary names (rapidfuzz WRatio)
    """

    def __init__(
        self,
        names: dict[str, str],
        aliases: Optional[dict[str, str]] = None,
        cutoff: Optional[float] = None,
    ):
        self._names = {name.lower(): code for name, code in names.items()}
        self._codes = set(names.values())
        self._aliases = {name.lower(): code.upper() for name, code in (aliases or {}).items()}
        self.cutoff = cutoff if cutoff is not None else Config.country_match_cutoff()
        self._memo: dict[str, str] = {}

    @staticmethod
    def load_aliases(path: Optional[str] = None) -> dict[str, str]:
        """Read the alias YAML (`aliases: {name: ISO3}`)."""
        path = Path(path or Config.country_aliases_path())
        if not path.exists():
            logger.warning(f"Country alias file not found: {path}")
            return {}
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        return {str(k): str(v) for k, v in (data.get("aliases") or {}).items()}

    def iso3(self, declared: Optional[str]) -> str:
        """
        ISO3 code for a declared country name.

        Returns:
            Code, or "" when the name cannot be resolved
        """
        if not declared or not declared.strip():
            return ""
        key = declared.strip().lower()
        if key not in self._memo:
            self._memo[key] = self._resolve(key)
        return self._memo[key]

    def _resolve(self, key: str) -> str:
        if key in self._aliases:
            return self._aliases[key]
        if key in self._names:
            return self._names[key]
        if key.upper() in self._codes:
            return key.upper()

        match = process.extractOne(
            key, list(self._names.keys()), scorer=fuzz.WRatio, score_cutoff=self.cutoff
        )
        if match is not None:
            name, score, _ = match
            logger.debug(f"Country {key!r} fuzzy-matched to {name!r} (score {score:.0f})")
            return self._names[name]

        logger.warning(f"Unresolved country name: {key!r}")
        return ""


class CountryValidator:
    """Reverse geocodes coordinates and gates them on the declared country."""

    def __init__(self, boundaries: CountryBoundaries, resolver: CountryCodeResolver):
        self.boundaries = boundaries
        self.resolver = resolver

    @classmethod
    def from_files(
        cls,
        boundaries_path: str,
        aliases_path: Optional[str] = None,
        code_property: Optional[str] = None,
    ) -> "CountryValidator":
        boundaries = CountryBoundaries.from_geojson(boundaries_path, code_property=code_property)
        resolver = CountryCodeResolver(
            boundaries.names, aliases=CountryCodeResolver.load_aliases(aliases_path)
        )
        return cls(boundaries, resolver)

    def locate(self, latitude: float, longitude: float) -> Coordinate:
        """Build a Coordinate tagged with its reverse-geocoded country code."""
        return Coordinate(
            latitude=latitude,
            longitude=longitude,
            country_code=self.boundaries.country_code(latitude, longitude),
        )

    def declared_code(self, record: WineRecord) -> str:
        return self.resolver.iso3(record.country)

    def is_consistent(self, record: WineRecord, coordinate: Coordinate) -> bool:
        """True when the coordinate lies in the record's declared country."""
        declared = self.declared_code(record)
        return bool(declared) and coordinate.country_code == declared

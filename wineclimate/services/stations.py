"""
Weather station registry and nearest-station lookup.

Reads the GHCN-Daily station list (fixed-width `ghcnd-stations.txt`) or a
plain CSV, and maps coordinates to the single closest station by
great-circle distance. Only the closest station is kept: if its readings
later turn out to be incomplete, that is handled by the harvest
aggregator, not by trying the next station.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from ..config import Config
from ..models.records import WeatherStation

logger = logging.getLogger(__name__)

# ghcnd-stations.txt: ID, LATITUDE, LONGITUDE, ELEVATION, STATE, NAME
STATION_COLSPECS = [(0, 11), (12, 20), (21, 30), (31, 37), (38, 40), (41, 71)]
STATION_COLUMNS = ["station_id", "latitude", "longitude", "elevation", "state", "name"]

# ghcnd-inventory.txt: ID, LATITUDE, LONGITUDE, ELEMENT, FIRSTYEAR, LASTYEAR
INVENTORY_COLSPECS = [(0, 11), (12, 20), (21, 30), (31, 35), (36, 40), (41, 45)]
INVENTORY_COLUMNS = ["station_id", "latitude", "longitude", "element", "first_year", "last_year"]


def haversine_km(lat: float, lon: float, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Great-circle distance from one point to many, in kilometres."""
    lat1, lon1 = np.radians(lat), np.radians(lon)
    lat2, lon2 = np.radians(lats), np.radians(lons)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    return 2 * Config.EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


@dataclass(frozen=True)
class StationMatch:
    """Closest station to a coordinate."""
    station: WeatherStation
    distance_km: float


class StationRegistry:
    """Read-only set of weather stations with vectorized nearest lookup."""

    def __init__(self, frame: pd.DataFrame):
        """
        Initialize from a frame with station_id, latitude, longitude
        (name and elevation optional).
        """
        missing = {"station_id", "latitude", "longitude"} - set(frame.columns)
        if missing:
            raise ValueError(f"Station registry missing columns: {sorted(missing)}")

        frame = frame.copy()
        frame["station_id"] = frame["station_id"].astype(str).str.strip()
        frame["latitude"] = pd.to_numeric(frame["latitude"], errors="coerce")
        frame["longitude"] = pd.to_numeric(frame["longitude"], errors="coerce")
        frame = frame.dropna(subset=["latitude", "longitude"])
        # Ties in distance resolve to the lowest station id
        self.frame = (
            frame.drop_duplicates(subset="station_id")
            .sort_values("station_id", kind="mergesort")
            .reset_index(drop=True)
        )
        self._lats = self.frame["latitude"].to_numpy(dtype=float)
        self._lons = self.frame["longitude"].to_numpy(dtype=float)

    def __len__(self) -> int:
        return len(self.frame)

    @classmethod
    def load(cls, path: str) -> "StationRegistry":
        """
        Load a station registry.

        Args:
            path: ghcnd-stations.txt (fixed width) or a CSV with
                  station_id/id, latitude, longitude[, name, elevation]
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Station registry not found: {path}")

        if path.suffix.lower() == ".csv":
            frame = pd.read_csv(path, dtype=str)
            if "station_id" not in frame.columns and "id" in frame.columns:
                frame = frame.rename(columns={"id": "station_id"})
        else:
            frame = pd.read_fwf(
                path,
                colspecs=STATION_COLSPECS,
                names=STATION_COLUMNS,
                header=None,
                dtype={"station_id": str, "state": str, "name": str},
            )

        registry = cls(frame)
        logger.info(f"Loaded {len(registry):,} stations from {path.name}")
        return registry

    def restrict_to_inventory(
        self,
        inventory_path: str,
        elements: Iterable[str] = Config.GHCN_ELEMENTS,
        first_year: int = Config.VINTAGE_MIN,
        last_year: int = Config.VINTAGE_MAX,
    ) -> "StationRegistry":
        """
        Keep stations that report at least one of `elements` over the whole year range.

        A station need not carry every element; gaps in the others are left
        to the aggregator.

        Args:
            inventory_path: ghcnd-inventory.txt
            elements: GHCN element codes (e.g. TAVG, PRCP)
            first_year: Station must have data from this year or earlier
            last_year: Station must have data up to this year or later
        """
        path = Path(inventory_path)
        if not path.exists():
            raise FileNotFoundError(f"Station inventory not found: {path}")

        inventory = pd.read_fwf(
            path,
            colspecs=INVENTORY_COLSPECS,
            names=INVENTORY_COLUMNS,
            header=None,
            dtype={"station_id": str, "element": str},
        )
        covered = inventory[
            inventory["element"].isin(list(elements))
            & (inventory["first_year"] <= first_year)
            & (inventory["last_year"] >= last_year)
        ]
        keep = set(covered["station_id"].astype(str).str.strip())
        restricted = StationRegistry(self.frame[self.frame["station_id"].isin(keep)])
        logger.info(
            f"Inventory filter kept {len(restricted):,}/{len(self):,} stations "
            f"reporting {list(elements)} over {first_year}-{last_year}"
        )
        return restricted

    def station_at(self, index: int) -> WeatherStation:
        row = self.frame.iloc[index]
        elevation = row.get("elevation")
        name = row.get("name")
        return WeatherStation(
            station_id=row["station_id"],
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            name=name.strip() if isinstance(name, str) else None,
            elevation=float(elevation) if elevation is not None and pd.notna(elevation) else None,
        )

    def nearest(self, latitude: float, longitude: float) -> Optional[StationMatch]:
        """
        Closest station to a point (limit = 1).

        Returns:
            StationMatch, or None for an empty registry
        """
        if len(self) == 0:
            return None
        distances = haversine_km(latitude, longitude, self._lats, self._lons)
        index = int(np.argmin(distances))
        return StationMatch(station=self.station_at(index), distance_km=float(distances[index]))

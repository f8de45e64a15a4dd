"""
Harvest-window climate aggregation.

The harvest window depends only on vintage year and hemisphere:
- northern hemisphere (latitude >= 0): Aug 1 - Oct 31 of the vintage year
- southern hemisphere: Feb 1 - Apr 30 of the vintage year

Daily readings inside the window (inclusive) are averaged per field.
Missing days are left out of the average rather than counted as zero.
A field with no qualifying readings stays None.
"""

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from typing import Iterable, Optional

import pandas as pd

from ..config import Config
from ..models.enums import Hemisphere
from ..models.records import HarvestAverages, HarvestWindow
from .readings import StationReadings

logger = logging.getLogger(__name__)

WindowKey = tuple[str, int, Hemisphere]  # (station_id, vintage, hemisphere)


def harvest_window(vintage: int, latitude: float) -> HarvestWindow:
    """Harvest window for a vintage at a latitude."""
    hemisphere = Hemisphere.from_latitude(latitude)
    if hemisphere is Hemisphere.NORTH:
        start, end = Config.NORTH_HARVEST_START, Config.NORTH_HARVEST_END
    else:
        start, end = Config.SOUTH_HARVEST_START, Config.SOUTH_HARVEST_END
    return HarvestWindow(
        start=date(vintage, *start),
        end=date(vintage, *end),
        hemisphere=hemisphere,
    )


def window_for(vintage: int, hemisphere: Hemisphere) -> HarvestWindow:
    """Harvest window for an explicit hemisphere."""
    return harvest_window(vintage, 1.0 if hemisphere is Hemisphere.NORTH else -1.0)


def _mean(values: pd.Series) -> Optional[float]:
    values = values.dropna()
    if values.empty:
        return None
    return float(values.mean())


def average_window(readings: pd.DataFrame, window: HarvestWindow) -> HarvestAverages:
    """Average daily tavg/prcp whose date falls inside the window."""
    if readings.empty:
        return HarvestAverages()
    dates = readings["date"].dt.date
    inside = readings[(dates >= window.start) & (dates <= window.end)]
    return HarvestAverages(
        temperature_c=_mean(inside["tavg"]),
        precipitation_mm=_mean(inside["prcp"]),
        reading_days=int(len(inside)),
    )


class HarvestAggregator:
    """
    Computes harvest averages for (station, vintage, hemisphere) keys.

    Each station's readings are loaded once, however many records share
    it. Stations are loaded on a bounded worker pool; results are keyed,
    so completion order does not matter.
    """

    def __init__(
        self,
        readings: StationReadings,
        max_workers: Optional[int] = None,
        parallel: bool = True,
    ):
        self.readings = readings
        self.max_workers = max_workers or Config.readings_workers()
        self.parallel = parallel and self.max_workers > 1

    def aggregate(self, station_id: str, vintage: int, latitude: float) -> HarvestAverages:
        """Harvest averages for one station/vintage at a latitude."""
        window = harvest_window(vintage, latitude)
        return average_window(self.readings.load(station_id), window)

    def aggregate_many(self, keys: Iterable[WindowKey]) -> dict[WindowKey, HarvestAverages]:
        """
        Harvest averages for many keys.

        Args:
            keys: (station_id, vintage, hemisphere) tuples, duplicates allowed

        Returns:
            Dict keyed by the distinct input keys
        """
        by_station: dict[str, set[tuple[int, Hemisphere]]] = defaultdict(set)
        for station_id, vintage, hemisphere in keys:
            by_station[station_id].add((vintage, hemisphere))

        results: dict[WindowKey, HarvestAverages] = {}
        stations = sorted(by_station)
        if not stations:
            return results
        logger.info(f"Aggregating harvest windows for {len(stations):,} stations")

        if self.parallel and len(stations) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    executor.submit(self._station_windows, station_id, by_station[station_id]): station_id
                    for station_id in stations
                }
                for future in as_completed(futures):
                    station_id = futures[future]
                    try:
                        results.update(future.result())
                    except Exception as e:
                        results.update(self._failed(station_id, by_station[station_id], e))
        else:
            for station_id in stations:
                try:
                    results.update(self._station_windows(station_id, by_station[station_id]))
                except Exception as e:
                    results.update(self._failed(station_id, by_station[station_id], e))

        return results

    def _station_windows(
        self,
        station_id: str,
        windows: set[tuple[int, Hemisphere]],
    ) -> dict[WindowKey, HarvestAverages]:
        frame = self.readings.load(station_id)
        return {
            (station_id, vintage, hemisphere): average_window(frame, window_for(vintage, hemisphere))
            for vintage, hemisphere in windows
        }

    @staticmethod
    def _failed(
        station_id: str,
        windows: set[tuple[int, Hemisphere]],
        error: Exception,
    ) -> dict[WindowKey, HarvestAverages]:
        # One unreadable station only loses its own windows
        logger.error(f"Aggregation for station {station_id} failed: {error}", exc_info=error)
        return {(station_id, vintage, hemisphere): HarvestAverages() for vintage, hemisphere in windows}

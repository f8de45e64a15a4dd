"""
Daily station readings (GHCN-Daily by-station files).

Each station file is a headerless CSV:
    ID,YYYYMMDD,ELEMENT,VALUE,MFLAG,QFLAG,SFLAG,OBSTIME

TAVG is in tenths of °C and PRCP in tenths of mm; both are converted to
whole units on load. Files are read from a local directory; when a file
is missing and downloading is enabled it is fetched from NOAA once and
kept in the directory for later runs.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

import pandas as pd
import requests

from ..config import Config

logger = logging.getLogger(__name__)

BY_STATION_COLUMNS = [
    "station_id", "date", "element", "value", "m_flag", "q_flag", "s_flag", "obs_time",
]
READING_COLUMNS = ["date", "tavg", "prcp"]


def empty_readings() -> pd.DataFrame:
    """Readings frame with no rows."""
    return pd.DataFrame({
        "date": pd.Series(dtype="datetime64[ns]"),
        "tavg": pd.Series(dtype=float),
        "prcp": pd.Series(dtype=float),
    })


def parse_by_station(path: Path) -> pd.DataFrame:
    """
    Parse a GHCN by-station file into daily tavg/prcp in whole units.

    Missing values (-9999) become NaN; days without either element are dropped.
    """
    raw = pd.read_csv(
        path,
        header=None,
        names=BY_STATION_COLUMNS,
        usecols=range(len(BY_STATION_COLUMNS)),
        dtype={"station_id": str, "date": str, "element": str, "q_flag": str},
    )
    raw = raw[raw["element"].isin(Config.GHCN_ELEMENTS)]
    if raw.empty:
        return empty_readings()

    raw = raw.assign(
        value=pd.to_numeric(raw["value"], errors="coerce").where(
            lambda v: v != Config.GHCN_MISSING_VALUE
        )
    )
    daily = raw.pivot_table(index="date", columns="element", values="value", aggfunc="first")
    daily = daily.reindex(columns=list(Config.GHCN_ELEMENTS))

    readings = pd.DataFrame({
        "date": pd.to_datetime(daily.index, format="%Y%m%d", errors="coerce"),
        "tavg": daily["TAVG"].to_numpy(dtype=float) / 10.0,
        "prcp": daily["PRCP"].to_numpy(dtype=float) / 10.0,
    })
    readings = readings.dropna(subset=["date"])
    readings = readings.dropna(subset=["tavg", "prcp"], how="all")
    return readings.sort_values("date").reset_index(drop=True)


class StationReadings:
    """
    Source of daily readings per station.

    Provides:
    - Local by-station files (.csv or .csv.gz)
    - Optional one-time download with bounded retry
    """

    def __init__(
        self,
        directory: str,
        download: bool = False,
        url_template: Optional[str] = None,
        session: Optional[requests.Session] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        timeout: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize readings source.

        Args:
            directory: Directory holding <station_id>.csv[.gz] files
            download: Fetch missing files from NOAA
            url_template: URL with a {station_id} placeholder
            session: requests session (created if None)
            max_retries: Attempts for transient HTTP errors
            backoff_seconds: Base delay for exponential backoff
            timeout: Per-request timeout in seconds
            sleep: Sleep function (injectable for tests)
        """
        self.directory = Path(directory)
        self.download = download
        self.url_template = url_template or Config.ghcn_by_station_url()
        self.session = session or requests.Session()
        self.max_retries = max(1, max_retries if max_retries is not None else Config.lookup_max_retries())
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else Config.lookup_backoff_seconds()
        )
        self.timeout = timeout
        self._sleep = sleep

    def local_path(self, station_id: str) -> Optional[Path]:
        for suffix in (".csv", ".csv.gz"):
            path = self.directory / f"{station_id}{suffix}"
            if path.exists():
                return path
        return None

    def load(self, station_id: str) -> pd.DataFrame:
        """
        Daily readings for a station.

        Returns:
            Frame with date, tavg (°C), prcp (mm); empty when unavailable
        """
        path = self.local_path(station_id)
        if path is None and self.download:
            path = self._download(station_id)
        if path is None:
            logger.debug(f"No readings file for station {station_id}")
            return empty_readings()

        try:
            return parse_by_station(path)
        except (ValueError, pd.errors.ParserError, OSError) as e:
            logger.warning(f"Unreadable readings file {path.name}: {e}")
            return empty_readings()

    def _download(self, station_id: str) -> Optional[Path]:
        """
        Fetch a by-station file with retry logic.

        Returns:
            Path of the stored file, or None on failure
        """
        url = self.url_template.format(station_id=station_id)
        target = self.directory / f"{station_id}.csv.gz"

        for attempt in range(self.max_retries):
            try:
                response = self.session.get(url, timeout=self.timeout)
            except requests.RequestException as e:
                logger.info(f"Download of {station_id} failed: {e}")
                self._backoff(attempt)
                continue

            if response.status_code == 200:
                self.directory.mkdir(parents=True, exist_ok=True)
                # Only complete downloads reach the final path
                partial = target.with_suffix(".part")
                partial.write_bytes(response.content)
                partial.replace(target)
                logger.debug(f"Downloaded readings for {station_id} ({len(response.content)} bytes)")
                return target
            if response.status_code == 404:
                logger.warning(f"No readings published for station {station_id}")
                return None

            logger.info(f"HTTP {response.status_code} for {station_id}")
            self._backoff(attempt)

        logger.warning(f"Giving up on readings for {station_id} after {self.max_retries} attempts")
        return None

    def _backoff(self, attempt: int) -> None:
        if attempt + 1 < self.max_retries:
            self._sleep(self.backoff_seconds * (2 ** attempt))

"""
Enriched CSV output.

Writes the source columns followed by the enrichment columns. Missing
climate averages are written as the legacy sentinel (999) so downstream
analysis must filter on it explicitly; missing coordinates and stations
are written as empty cells.

Output is deterministic: input row order, fixed float precision and
"\\n" line endings, so identical inputs produce byte-identical files.
"""

import csv
import logging
from pathlib import Path
from typing import Iterable, Optional

from ..config import Config
from ..models.records import WineRecord

logger = logging.getLogger(__name__)

SOURCE_COLUMNS = [
    "id", "country", "designation", "province", "region_1", "region_2", "price",
    "taster_name", "title", "variety", "winery", "points",
]
ENRICHED_COLUMNS = [
    "vintage", "longitude", "latitude", "country_code", "geocode_level",
    "station_id", "harvest_tavg", "harvest_prcp",
]
OUTPUT_COLUMNS = SOURCE_COLUMNS + ENRICHED_COLUMNS


def format_number(value: Optional[float], precision: Optional[int] = None) -> str:
    """Empty for None; integral values without decimals unless precision is given."""
    if value is None:
        return ""
    if precision is None:
        if float(value).is_integer():
            return str(int(value))
        return repr(float(value))
    return f"{value:.{precision}f}"


def format_climate(value: Optional[float]) -> str:
    """Climate average, or the sentinel when unavailable."""
    if value is None:
        return str(Config.MISSING_CLIMATE_SENTINEL)
    return format_number(value, Config.CLIMATE_PRECISION)


def record_to_row(record: WineRecord) -> dict:
    """Flatten a record into output columns."""
    coordinate = record.coordinate
    harvest = record.harvest
    return {
        "id": record.row_id,
        "country": record.country or "",
        "designation": record.designation or "",
        "province": record.province or "",
        "region_1": record.region_1 or "",
        "region_2": record.region_2 or "",
        "price": format_number(record.price),
        "taster_name": record.taster_name or "",
        "title": record.title,
        "variety": record.variety or "",
        "winery": record.winery or "",
        "points": format_number(record.points),
        "vintage": "" if record.vintage is None else str(record.vintage),
        "longitude": format_number(coordinate.longitude, Config.COORDINATE_PRECISION) if coordinate else "",
        "latitude": format_number(coordinate.latitude, Config.COORDINATE_PRECISION) if coordinate else "",
        "country_code": coordinate.country_code if coordinate else "",
        "geocode_level": record.resolution_level.value,
        "station_id": record.station_id or "",
        "harvest_tavg": format_climate(harvest.temperature_c if harvest else None),
        "harvest_prcp": format_climate(harvest.precipitation_mm if harvest else None),
    }


def write_enriched_csv(records: Iterable[WineRecord], path: str) -> int:
    """
    Write enriched records to CSV.

    Args:
        records: Records in output order
        path: Destination file (parent directories are created)

    Returns:
        Number of rows written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(path, 'w', encoding='utf-8', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=OUTPUT_COLUMNS, lineterminator="\n")
        writer.writeheader()
        for record in records:
            writer.writerow(record_to_row(record))
            count += 1

    logger.info(f"Wrote {count:,} enriched records to {path}")
    return count

#!/usr/bin/env python3
"""
Wine climate enrichment CLI tool.

Usage:
    python scripts/enrich.py --source winemag_130k       # Enrich a configured source
    python scripts/enrich.py --preview winemag_130k      # Preview first 10 records with vintages
    python scripts/enrich.py --cache-stats               # Show geocode cache statistics
    python scripts/enrich.py --clear-cache               # Delete the geocode cache

Reference data (defaults under raw-data/):
    ne_110m_admin_0_countries.geojson   Natural Earth country boundaries
    ghcnd-stations.txt                  GHCN-Daily station list
    ghcnd-inventory.txt                 GHCN-Daily inventory (optional filter)
    ghcnd_by_station/                   <station_id>.csv[.gz] daily readings
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
project_path = Path(__file__).parent.parent
sys.path.insert(0, str(project_path))

from wineclimate.config import Config
from wineclimate.feature_flags import get_pipeline_flags
from wineclimate.ingestion.adapters import CONFIGS_DIR, ConfigDrivenCSVAdapter
from wineclimate.ingestion.pipeline import EnrichmentPipeline, preview_records
from wineclimate.ingestion.writer import write_enriched_csv
from wineclimate.services.countries import CountryValidator
from wineclimate.services.geocode_cache import GeocodeCache
from wineclimate.services.readings import StationReadings
from wineclimate.services.stations import StationRegistry

load_dotenv()

logging.basicConfig(
    level=getattr(logging, Config.log_level(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Available data sources: one YAML config per source
SOURCES = {path.stem: path for path in sorted(CONFIGS_DIR.glob("*.yaml"))}

RAW_DATA = project_path / "raw-data"
DEFAULT_BOUNDARIES = RAW_DATA / "ne_110m_admin_0_countries.geojson"
DEFAULT_STATIONS = RAW_DATA / "ghcnd-stations.txt"
DEFAULT_INVENTORY = RAW_DATA / "ghcnd-inventory.txt"
DEFAULT_READINGS = RAW_DATA / "ghcnd_by_station"
DEFAULT_OUTPUT = project_path / "output" / "winemag-climate.csv"


def get_adapter(source_name: str) -> ConfigDrivenCSVAdapter:
    """Get adapter for a data source."""
    if source_name not in SOURCES:
        available = ", ".join(SOURCES.keys())
        raise ValueError(f"Unknown source: {source_name}. Available: {available}")
    return ConfigDrivenCSVAdapter(str(SOURCES[source_name]), base_path=str(project_path))


def validate_reference_files(args) -> list[str]:
    """
    Validate that required reference files exist.

    Returns list of missing file paths (empty if all exist).
    """
    missing = []
    for path in (Path(args.boundaries), Path(args.stations)):
        if not path.exists():
            missing.append(str(path))
    return missing


def load_stations(args) -> StationRegistry:
    """Load the station registry, narrowed by the inventory when available."""
    registry = StationRegistry.load(args.stations)
    inventory = Path(args.inventory)
    if inventory.exists():
        registry = registry.restrict_to_inventory(str(inventory))
    else:
        logger.info(f"No inventory at {inventory}, using every station")
    return registry


def enrich_source(args) -> dict:
    """Run the enrichment pipeline for one source."""
    print(f"\n{'='*60}")
    print(f"Enriching: {args.source}")
    print(f"{'='*60}")

    missing = validate_reference_files(args)
    if missing:
        print("\nError: Required reference files not found:")
        for path in missing:
            print(f"  - {path}")
        raise FileNotFoundError("Missing reference data")

    flags = get_pipeline_flags()
    adapter = get_adapter(args.source)
    cache = GeocodeCache(args.cache) if args.cache else GeocodeCache()
    pipeline = EnrichmentPipeline.build(
        validator=CountryValidator.from_files(args.boundaries),
        stations=load_stations(args),
        readings=StationReadings(args.readings_dir, download=flags.feature_station_download),
        cache=cache,
        flags=flags,
    )

    start_time = time.time()
    try:
        result = pipeline.enrich(adapter)
    finally:
        cache.close()
    written = write_enriched_csv(result.records, args.output)
    elapsed = time.time() - start_time

    stats = result.stats
    print(f"\nCompleted in {elapsed:.1f}s")
    print(f"  Records read: {stats.records_read:,}")
    print(f"  Rows skipped: {stats.records_skipped:,}")
    print(f"  With vintage: {stats.with_vintage:,}")
    print(f"  Geocoded (region): {stats.geocoded_region:,}")
    print(f"  Geocoded (province): {stats.geocoded_province:,}")
    print(f"  Rejected by country check: {stats.consistency_rejections:,}")
    print(f"  Target records: {stats.targets:,}")
    print(f"  With climate: {stats.with_climate:,}")
    print(f"  Missing climate ({Config.MISSING_CLIMATE_SENTINEL}): {stats.missing_climate:,}")
    print(f"  Rows written: {written:,} → {args.output}")

    if stats.errors:
        print(f"  Errors: {len(stats.errors)}")
        for err in stats.errors[:5]:
            print(f"    - {err}")
        if len(stats.errors) > 5:
            print(f"    ... and {len(stats.errors) - 5} more")

    report_path = Path(args.report) if args.report else Path(args.output).with_suffix(".report.json")
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(result.report().model_dump_json(indent=2), encoding="utf-8")
    print(f"  Coverage report: {report_path}")

    return stats.to_dict()


def preview_source(source_name: str, limit: int = 10):
    """Preview records from a data source."""
    print(f"\nPreview: {source_name} (first {limit} records)")
    print("="*60)

    adapter = get_adapter(source_name)
    for i, record in enumerate(preview_records(adapter, limit=limit), 1):
        print(f"\n{i}. {record['title']}")
        print(f"   Vintage: {record['vintage'] or 'N/A'}")
        print(f"   Region: {record.get('region_1') or 'N/A'}, Province: {record.get('province') or 'N/A'}")
        print(f"   Country: {record.get('country') or 'N/A'}")
        print(f"   Variety: {record.get('variety') or 'N/A'}")


def show_cache_stats(cache_path: str = None):
    """Show geocode cache statistics."""
    print("\n" + "="*60)
    print("Geocode Cache Statistics")
    print("="*60)

    cache = GeocodeCache(cache_path) if cache_path else GeocodeCache()
    stats = cache.get_stats()
    print(f"\nDatabase: {cache.db_path}")
    print(f"Cached names: {stats['total_entries']:,}")
    print(f"  Found: {stats['found']:,}")
    print(f"  No match: {stats['no_match']:,}")
    print(f"Total cache hits: {stats['total_hits']:,}")
    cache.close()


def clear_cache(cache_path: str = None):
    """Delete every cached lookup."""
    print("\nClearing geocode cache...")
    cache = GeocodeCache(cache_path) if cache_path else GeocodeCache()
    removed = cache.clear()
    cache.close()
    print(f"Removed {removed:,} entries.")


def main():
    parser = argparse.ArgumentParser(
        description="Wine climate enrichment CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        "--source", "-s",
        choices=list(SOURCES.keys()),
        help="Data source to enrich"
    )
    parser.add_argument(
        "--preview", "-p",
        choices=list(SOURCES.keys()),
        help="Preview records from a source"
    )
    parser.add_argument(
        "--cache-stats",
        action="store_true",
        help="Show geocode cache statistics"
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Delete all cached geocoding lookups"
    )
    parser.add_argument("--boundaries", default=str(DEFAULT_BOUNDARIES), help="Country boundary GeoJSON")
    parser.add_argument("--stations", default=str(DEFAULT_STATIONS), help="Station list (ghcnd-stations.txt or CSV)")
    parser.add_argument("--inventory", default=str(DEFAULT_INVENTORY), help="Station inventory (ghcnd-inventory.txt)")
    parser.add_argument("--readings-dir", default=str(DEFAULT_READINGS), help="Directory of by-station files")
    parser.add_argument("--cache", default=None, help="Geocode cache database (default: GEOCODE_CACHE_PATH)")
    parser.add_argument("--output", "-o", default=str(DEFAULT_OUTPUT), help="Enriched CSV path")
    parser.add_argument("--report", default=None, help="Coverage report JSON path")

    args = parser.parse_args()

    if args.clear_cache:
        response = input("This will delete all cached geocoding results. Continue? [y/N]: ").strip().lower()
        if response == 'y':
            clear_cache(args.cache)
        else:
            print("Aborted.")
        return

    if args.preview:
        preview_source(args.preview)
        return

    if args.cache_stats:
        show_cache_stats(args.cache)
        return

    if args.source:
        try:
            enrich_source(args)
        except FileNotFoundError as e:
            logger.error(str(e))
            sys.exit(1)
        return

    # Default: show help
    parser.print_help()


if __name__ == "__main__":
    main()

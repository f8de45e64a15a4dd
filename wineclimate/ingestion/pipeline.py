"""
Wine climate enrichment pipeline.

Orchestrates the flow:
extract year → resolve coordinates (region, then province fallback)
→ select target varieties → nearest station → harvest averages
→ merge back onto the full record set

Each stage is a method taking the previous stage's output and returning
new values; no stage mutates its input.
"""

import logging
import time
from collections import Counter
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence

from ..config import Config
from ..feature_flags import PipelineFlags, get_pipeline_flags
from ..models.enums import Hemisphere, ResolutionLevel
from ..models.records import HarvestAverages, WineRecord
from ..models.report import CoverageReport, coverage
from ..services.countries import CountryValidator
from ..services.geocode_cache import GeocodeCache
from ..services.geocoder import BatchGeocoder, Geocoder, NominatimGeocoder
from ..services.harvest import HarvestAggregator
from ..services.readings import StationReadings
from ..services.resolver import FallbackResolver, ResolutionOutcome, province_strategy, region_strategy
from ..services.stations import StationMatch, StationRegistry
from .protocols import DataSourceAdapter, EnrichmentStats
from .vintage import extract_vintage

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentResult:
    """Enriched records plus run statistics."""
    records: list[WineRecord]
    stats: EnrichmentStats
    elapsed_seconds: Optional[float] = None

    def report(self) -> CoverageReport:
        """Coverage report for this run."""
        stats = self.stats
        total = len(self.records)
        return CoverageReport(
            source_name=stats.source_name,
            records_total=total,
            vintage=coverage(stats.with_vintage, total),
            geocoded=coverage(stats.geocoded, total),
            geocoded_region=stats.geocoded_region,
            geocoded_province=stats.geocoded_province,
            consistency_rejections=stats.consistency_rejections,
            lookup_failures=stats.lookup_failures,
            targets=stats.targets,
            with_station=stats.with_station,
            climate=coverage(stats.with_climate, total),
            missing_climate=stats.missing_climate,
            elapsed_seconds=round(self.elapsed_seconds, 2) if self.elapsed_seconds is not None else None,
            errors=stats.errors,
        )


def top_varieties(records: Iterable[WineRecord], n: int) -> list[str]:
    """The n most frequent varieties, ties broken by name."""
    counts = Counter(record.variety for record in records if record.variety)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [variety for variety, _ in ranked[:n]]


class EnrichmentPipeline:
    """
    Main enrichment pipeline for wine records.

    Coordinates:
    1. Vintage extraction from titles
    2. Coordinate resolution with country-consistency fallback
    3. Restriction to the target variety subset
    4. Nearest-station lookup
    5. Harvest-window climate aggregation
    6. Merge back onto every input record
    """

    def __init__(
        self,
        resolver: FallbackResolver,
        stations: StationRegistry,
        aggregator: HarvestAggregator,
        target_varieties: Optional[Sequence[str]] = None,
        top_n_varieties: Optional[int] = None,
    ):
        """
        Initialize pipeline.

        Args:
            resolver: Coordinate resolver (region → province)
            stations: Weather station registry
            aggregator: Harvest-window aggregator
            target_varieties: Varieties to join climate for (None = most frequent)
            top_n_varieties: How many frequent varieties to use when no list is given
                (None = source config, then Config.DEFAULT_TOP_VARIETIES)
        """
        self.resolver = resolver
        self.stations = stations
        self.aggregator = aggregator
        self.target_varieties = list(target_varieties) if target_varieties else None
        self.top_n_varieties = top_n_varieties

    @classmethod
    def build(
        cls,
        validator: CountryValidator,
        stations: StationRegistry,
        readings: StationReadings,
        geocoder: Optional[Geocoder] = None,
        cache: Optional[GeocodeCache] = None,
        flags: Optional[PipelineFlags] = None,
        target_varieties: Optional[Sequence[str]] = None,
        top_n_varieties: Optional[int] = None,
    ) -> "EnrichmentPipeline":
        """
        Wire a pipeline from reference data.

        Args:
            validator: Country-consistency validator
            stations: Weather station registry
            readings: Daily readings source
            geocoder: Place-name geocoder (creates NominatimGeocoder if None)
            cache: Geocode cache (None disables caching)
            flags: Feature flags (defaults to environment)
            target_varieties: Explicit variety subset
            top_n_varieties: Frequent-variety fallback size
        """
        flags = flags or get_pipeline_flags()
        batch = BatchGeocoder(
            geocoder or NominatimGeocoder(),
            cache=cache,
            parallel=flags.feature_parallel_lookups,
        )

        strategies = [region_strategy(batch, validator)]
        if flags.feature_province_fallback:
            strategies.append(province_strategy(batch, validator))

        return cls(
            resolver=FallbackResolver(strategies, validator),
            stations=stations,
            aggregator=HarvestAggregator(readings, parallel=flags.feature_parallel_lookups),
            target_varieties=target_varieties,
            top_n_varieties=top_n_varieties,
        )

    def enrich(self, adapter: DataSourceAdapter) -> EnrichmentResult:
        """
        Enrich every record from an adapter.

        Args:
            adapter: Data source adapter

        Returns:
            EnrichmentResult with records in source order
        """
        records = []
        for record in adapter.iter_records():
            records.append(record)
            if len(records) % Config.PROGRESS_LOG_EVERY == 0:
                logger.info(f"Read {len(records):,} records...")

        stats = EnrichmentStats(source_name=adapter.get_source_name())
        stats.records_skipped = getattr(adapter, "rows_rejected", 0)
        # Pipeline settings win over the source config; neither is stored back
        varieties = self.target_varieties or adapter.get_target_varieties()
        top_n = self.top_n_varieties or getattr(adapter, "get_top_varieties", lambda: None)()
        return self.run(
            records,
            stats,
            target_varieties=varieties,
            top_n_varieties=int(top_n) if top_n else None,
        )

    def run(
        self,
        records: Sequence[WineRecord],
        stats: Optional[EnrichmentStats] = None,
        target_varieties: Optional[Sequence[str]] = None,
        top_n_varieties: Optional[int] = None,
    ) -> EnrichmentResult:
        """
        Run every stage in order.

        Args:
            records: Source records (not modified)
            stats: Stats to fill (a fresh one is created if None)
            target_varieties: Variety subset for this run (None = pipeline setting)
            top_n_varieties: Frequent-variety fallback size for this run

        Returns:
            EnrichmentResult with one output record per input record
        """
        stats = stats or EnrichmentStats(source_name="records")
        start = time.perf_counter()
        stats.records_read = len(records)

        dated = self.extract_years(records)
        stats.with_vintage = sum(1 for r in dated if r.vintage is not None)
        logger.info(f"Vintage found for {stats.with_vintage:,}/{len(dated):,} records")

        outcome = self.resolve_coordinates(dated)
        located = outcome.records
        stats.geocoded_region = outcome.accepted.get(ResolutionLevel.REGION, 0)
        stats.geocoded_province = outcome.accepted.get(ResolutionLevel.PROVINCE, 0)
        stats.consistency_rejections = sum(outcome.rejected.values())
        stats.lookup_failures = outcome.lookup_failures
        for message in outcome.failure_messages:
            stats.add_error(message, limit=Config.MAX_RECORDED_ERRORS)
        logger.info(
            f"Coordinates for {stats.geocoded:,}/{len(located):,} records "
            f"(coverage loss {outcome.unresolved:,})"
        )

        targets = self.select_targets(located, target_varieties, top_n_varieties)
        stats.targets = len(targets)

        matches = self.locate_stations(located, targets)
        stats.with_station = len(matches)

        climate = self.aggregate_climate(located, matches)
        stats.with_climate = sum(1 for averages in climate.values() if not averages.is_empty)
        stats.missing_climate = stats.targets - stats.with_climate
        if stats.targets:
            logger.info(
                f"Climate data for {stats.with_climate:,}/{stats.targets:,} target records "
                f"({stats.missing_climate:,} written as {Config.MISSING_CLIMATE_SENTINEL})"
            )

        merged = self.merge(located, matches, climate)
        elapsed = time.perf_counter() - start
        logger.info(f"Enrichment completed in {elapsed:.1f}s")
        return EnrichmentResult(records=merged, stats=stats, elapsed_seconds=elapsed)

    # Stages ----------------------------------------------------------------

    @staticmethod
    def extract_years(records: Sequence[WineRecord]) -> list[WineRecord]:
        """Attach the vintage year parsed from each title."""
        return [replace(record, vintage=extract_vintage(record.title)) for record in records]

    def resolve_coordinates(self, records: Sequence[WineRecord]) -> ResolutionOutcome:
        """Attach a country-consistent coordinate where one can be found."""
        return self.resolver.resolve(records)

    def select_targets(
        self,
        records: Sequence[WineRecord],
        target_varieties: Optional[Sequence[str]] = None,
        top_n_varieties: Optional[int] = None,
    ) -> list[int]:
        """
        Positions of records eligible for the climate join.

        A target has a variety in the subset, a vintage and a coordinate.
        Without an explicit subset the most frequent varieties are used.
        """
        wanted = target_varieties or self.target_varieties
        n = top_n_varieties or self.top_n_varieties or Config.DEFAULT_TOP_VARIETIES
        varieties = set(wanted or top_varieties(records, n))
        logger.info(f"Target varieties: {sorted(varieties)}")
        return [
            idx for idx, record in enumerate(records)
            if record.variety in varieties
            and record.vintage is not None
            and record.coordinate is not None
        ]

    def locate_stations(
        self,
        records: Sequence[WineRecord],
        targets: Sequence[int],
    ) -> dict[int, StationMatch]:
        """Nearest station per target position; shared coordinates are looked up once."""
        by_point: dict[tuple[float, float], Optional[StationMatch]] = {}
        matches: dict[int, StationMatch] = {}
        for idx in targets:
            coordinate = records[idx].coordinate
            point = (coordinate.latitude, coordinate.longitude)
            if point not in by_point:
                by_point[point] = self.stations.nearest(*point)
            if by_point[point] is not None:
                matches[idx] = by_point[point]
        logger.info(f"Nearest station for {len(by_point):,} distinct coordinates")
        return matches

    def aggregate_climate(
        self,
        records: Sequence[WineRecord],
        matches: dict[int, StationMatch],
    ) -> dict[int, HarvestAverages]:
        """Harvest averages per target position."""
        keys = {}
        for idx, match in matches.items():
            record = records[idx]
            hemisphere = Hemisphere.from_latitude(record.coordinate.latitude)
            keys[idx] = (match.station.station_id, record.vintage, hemisphere)

        windows = self.aggregator.aggregate_many(keys.values())
        return {idx: windows[key] for idx, key in keys.items()}

    @staticmethod
    def merge(
        records: Sequence[WineRecord],
        matches: dict[int, StationMatch],
        climate: dict[int, HarvestAverages],
    ) -> list[WineRecord]:
        """Attach station ids and averages back onto every record."""
        merged = []
        for idx, record in enumerate(records):
            match = matches.get(idx)
            merged.append(replace(
                record,
                station_id=match.station.station_id if match else None,
                harvest=climate.get(idx),
            ))
        return merged


def preview_records(adapter: DataSourceAdapter, limit: int = 10) -> list[dict]:
    """First `limit` records with their extracted vintage."""
    results = []
    for i, record in enumerate(adapter.iter_records()):
        if i >= limit:
            break
        results.append({
            "row_id": record.row_id,
            "title": record.title,
            "vintage": extract_vintage(record.title),
            "country": record.country,
            "province": record.province,
            "region_1": record.region_1,
            "variety": record.variety,
            "points": record.points,
        })
    return results

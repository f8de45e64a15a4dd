"""
Coordinate resolution with ranked fallback.

Each record walks an ordered list of strategies (region first, then
province). A strategy's coordinate is kept only if it passes the
country-consistency check; otherwise the record moves on to the next
strategy. After the last strategy a record either holds a validated
coordinate or has none at all, which is expected coverage loss rather
than an error.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Protocol, Sequence

from ..models.enums import ResolutionLevel
from ..models.records import Coordinate, WineRecord
from .countries import CountryValidator
from .geocoder import BatchGeocoder, GeocodeBatch

logger = logging.getLogger(__name__)


class ResolutionStrategy(Protocol):
    """One way of attaching a coordinate to a record."""

    level: ResolutionLevel

    def prepare(self, records: Sequence[WineRecord]) -> None:
        """Resolve whatever the strategy needs for these records, in bulk."""
        ...

    def attempt(self, record: WineRecord) -> Optional[Coordinate]:
        """Candidate coordinate for a record, or None."""
        ...


class PlaceNameStrategy:
    """
    Geocodes one place-name field of the record.

    `prepare` geocodes the distinct names of the given records in one
    batch; `attempt` is then a table lookup plus reverse geocoding.
    """

    def __init__(
        self,
        level: ResolutionLevel,
        field_name: str,
        geocoder: BatchGeocoder,
        validator: CountryValidator,
    ):
        self.level = level
        self.field_name = field_name
        self.geocoder = geocoder
        self.validator = validator
        self.batch = GeocodeBatch()

    def place_name(self, record: WineRecord) -> Optional[str]:
        return getattr(record, self.field_name)

    def prepare(self, records: Sequence[WineRecord]) -> None:
        names = [self.place_name(record) for record in records]
        self.batch = self.geocoder.geocode_all(names)
        found = sum(1 for result in self.batch.results.values() if result is not None)
        logger.info(
            f"{self.level.value}: {found}/{len(self.batch.results)} distinct names geocoded "
            f"({len(self.batch.failures)} lookup failures)"
        )

    def attempt(self, record: WineRecord) -> Optional[Coordinate]:
        result = self.batch.get(self.place_name(record))
        if result is None:
            return None
        return self.validator.locate(result.latitude, result.longitude)


def region_strategy(geocoder: BatchGeocoder, validator: CountryValidator) -> PlaceNameStrategy:
    return PlaceNameStrategy(ResolutionLevel.REGION, "region_1", geocoder, validator)


def province_strategy(geocoder: BatchGeocoder, validator: CountryValidator) -> PlaceNameStrategy:
    return PlaceNameStrategy(ResolutionLevel.PROVINCE, "province", geocoder, validator)


@dataclass
class ResolutionOutcome:
    """Records with coordinates attached plus per-level counters."""
    records: list[WineRecord]
    accepted: dict[ResolutionLevel, int] = field(default_factory=dict)
    rejected: dict[ResolutionLevel, int] = field(default_factory=dict)
    lookup_failures: int = 0
    failure_messages: list[str] = field(default_factory=list)

    @property
    def unresolved(self) -> int:
        return sum(1 for r in self.records if r.coordinate is None)


class FallbackResolver:
    """Runs resolution strategies in order until one yields a consistent coordinate."""

    def __init__(self, strategies: Sequence[ResolutionStrategy], validator: CountryValidator):
        self.strategies = list(strategies)
        self.validator = validator

    def resolve(self, records: Sequence[WineRecord]) -> ResolutionOutcome:
        """
        Attach the best consistent coordinate to every record.

        Args:
            records: Records from the previous stage (not modified)

        Returns:
            ResolutionOutcome with new records in the same order
        """
        # Keyed by position so duplicate row ids cannot collide
        resolved: dict[int, tuple[Coordinate, ResolutionLevel]] = {}
        outcome = ResolutionOutcome(records=[])
        pending = list(enumerate(records))

        for strategy in self.strategies:
            if not pending:
                break
            strategy.prepare([record for _, record in pending])
            failures = getattr(getattr(strategy, "batch", None), "failures", {})
            outcome.lookup_failures += len(failures)
            outcome.failure_messages.extend(
                f"{strategy.level.value} lookup failed for {name!r}: {reason}"
                for name, reason in sorted(failures.items())
            )

            still_pending = []
            accepted = rejected = 0
            for idx, record in pending:
                coordinate = strategy.attempt(record)
                if coordinate is not None and self.validator.is_consistent(record, coordinate):
                    resolved[idx] = (coordinate, strategy.level)
                    accepted += 1
                    continue
                if coordinate is not None:
                    rejected += 1
                still_pending.append((idx, record))

            outcome.accepted[strategy.level] = accepted
            outcome.rejected[strategy.level] = rejected
            logger.info(
                f"{strategy.level.value}: accepted {accepted:,}, "
                f"rejected by country check {rejected:,}, pending {len(still_pending):,}"
            )
            pending = still_pending

        for idx, record in enumerate(records):
            if idx in resolved:
                coordinate, level = resolved[idx]
                outcome.records.append(
                    replace(record, coordinate=coordinate, resolution_level=level)
                )
            else:
                outcome.records.append(
                    replace(record, coordinate=None, resolution_level=ResolutionLevel.NONE)
                )
        return outcome

"""
Protocols and data classes for wine record ingestion.

Defines the interface that data source adapters must implement.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional, Protocol

from ..models.records import WineRecord


class DataSourceAdapter(Protocol):
    """
    Protocol for data source adapters.

    Each adapter reads from a specific data source format (CSV, API, etc.)
    and yields WineRecord objects with only the source columns populated.
    """

    def iter_records(self) -> Iterator[WineRecord]:
        """
        Iterate over wine records from the source.

        Yields:
            WineRecord for each valid row in the source
        """
        ...

    def get_source_name(self) -> str:
        """
        Get the unique identifier for this source.

        Returns:
            Source name (e.g., 'winemag_130k')
        """
        ...

    def get_file_hash(self) -> Optional[str]:
        """
        Get hash of the source file.

        Returns:
            SHA256 hash of source file, or None if not file-based
        """
        ...

    def get_target_varieties(self) -> Optional[list[str]]:
        """
        Varieties the climate join is restricted to.

        Returns:
            Explicit variety list, or None to use the most frequent ones
        """
        ...


@dataclass
class EnrichmentStats:
    """Statistics from an enrichment run."""
    source_name: str
    records_read: int = 0
    records_skipped: int = 0
    with_vintage: int = 0
    geocoded_region: int = 0
    geocoded_province: int = 0
    consistency_rejections: int = 0
    lookup_failures: int = 0
    targets: int = 0
    with_station: int = 0
    with_climate: int = 0
    missing_climate: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def geocoded(self) -> int:
        return self.geocoded_region + self.geocoded_province

    def add_error(self, message: str, limit: int = 200) -> None:
        """Record an error message, keeping at most `limit` of them."""
        if len(self.errors) < limit:
            self.errors.append(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/storage."""
        return {
            "source_name": self.source_name,
            "records_read": self.records_read,
            "records_skipped": self.records_skipped,
            "with_vintage": self.with_vintage,
            "geocoded": self.geocoded,
            "geocoded_region": self.geocoded_region,
            "geocoded_province": self.geocoded_province,
            "consistency_rejections": self.consistency_rejections,
            "lookup_failures": self.lookup_failures,
            "targets": self.targets,
            "with_station": self.with_station,
            "with_climate": self.with_climate,
            "missing_climate": self.missing_climate,
            "error_count": len(self.errors),
        }

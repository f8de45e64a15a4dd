"""
Wine record ingestion and enrichment package.

Provides a staged pipeline that reads wine review records from a source,
attaches vintage, coordinates and harvest climate, and writes the
enriched table.
"""

from .protocols import DataSourceAdapter, EnrichmentStats
from .vintage import extract_vintage
from .pipeline import EnrichmentPipeline, EnrichmentResult, preview_records
from .writer import write_enriched_csv

__all__ = [
    "DataSourceAdapter",
    "EnrichmentStats",
    "extract_vintage",
    "EnrichmentPipeline",
    "EnrichmentResult",
    "preview_records",
    "write_enriched_csv",
]

"""
Pydantic model for the JSON coverage report written after a run.

The report documents coverage loss at each stage (records without a
vintage, without a consistent coordinate, without climate data).
"""

from typing import Optional

from pydantic import BaseModel, Field


class StageCoverage(BaseModel):
    """Count and share of records that made it through a stage."""
    count: int = Field(..., ge=0, description="Records with the field populated")
    share: float = Field(..., ge=0, le=1, description="count / records_total")


class CoverageReport(BaseModel):
    """Summary of one enrichment run."""
    source_name: str
    records_total: int = Field(..., ge=0)
    vintage: StageCoverage
    geocoded: StageCoverage
    geocoded_region: int = Field(0, ge=0, description="Accepted at region level")
    geocoded_province: int = Field(0, ge=0, description="Accepted at province fallback")
    consistency_rejections: int = Field(0, ge=0, description="Coordinates rejected by country check")
    lookup_failures: int = Field(0, ge=0, description="Provider errors after retries")
    targets: int = Field(0, ge=0, description="Records in the target variety subset")
    with_station: int = Field(0, ge=0)
    climate: StageCoverage
    missing_climate: int = Field(0, ge=0, description="Targets serialized with the sentinel")
    elapsed_seconds: Optional[float] = None
    errors: list[str] = Field(default_factory=list)


def coverage(count: int, total: int) -> StageCoverage:
    """Build a StageCoverage, guarding against an empty input."""
    share = round(count / total, 4) if total else 0.0
    return StageCoverage(count=count, share=share)

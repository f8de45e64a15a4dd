"""
Feature flags for the enrichment pipeline.

Uses pydantic-settings for typed, validated,
environment-variable-backed feature flags.

Toggle via env vars: FEATURE_PROVINCE_FALLBACK=false
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class PipelineFlags(BaseSettings):
    """Feature flags backed by environment variables."""

    feature_province_fallback: bool = True
    feature_station_download: bool = False
    feature_parallel_lookups: bool = True

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
    }


@lru_cache()
def get_pipeline_flags() -> PipelineFlags:
    """Cached singleton."""
    return PipelineFlags()

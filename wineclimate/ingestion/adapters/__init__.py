"""
Data source adapters for wine records.

Each adapter reads from a specific format and yields WineRecord objects.
"""

from pathlib import Path

from .config_adapter import ConfigDrivenCSVAdapter

CONFIGS_DIR = Path(__file__).parent / "configs"

__all__ = ["ConfigDrivenCSVAdapter", "CONFIGS_DIR"]

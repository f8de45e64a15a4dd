"""
Config-driven CSV adapter for wine review data.

Uses YAML configuration to map CSV columns to WineRecord fields.
"""

import csv
import hashlib
import logging
import re
from pathlib import Path
from typing import Iterator, Optional

import yaml

from ..protocols import DataSourceAdapter
from ...models.records import WineRecord

logger = logging.getLogger(__name__)


class ConfigDrivenCSVAdapter(DataSourceAdapter):
    """
    CSV adapter configured via YAML.

    Config structure:
    ```yaml
    source_name: winemag_130k
    file_path: raw-data/winemag-data-130k-v2.csv
    encoding: utf-8

    column_mapping:
      row_id: ""          # unnamed index column
      title: title
      country: country
      province: province
      region_1: region_1
      variety: variety
      points: points

    transformations:
      region_1:
        - strip_whitespace
        - collapse_whitespace

    target_varieties:
      - Pinot Noir
      - Chardonnay
    ```
    """

    # Available transformations
    TRANSFORMATIONS = {
        "strip_whitespace": lambda x: x.strip() if x else x,
        "collapse_whitespace": lambda x: re.sub(r'\s+', ' ', x) if x else x,
        "title_case": lambda x: x.title() if x else x,
        "lowercase": lambda x: x.lower() if x else x,
    }

    TEXT_FIELDS = (
        "title", "country", "designation", "province", "region_1",
        "region_2", "taster_name", "variety", "winery",
    )
    NUMERIC_FIELDS = ("price", "points")

    def __init__(self, config_path: str, base_path: Optional[str] = None):
        """
        Initialize adapter from YAML config.

        Args:
            config_path: Path to YAML config file
            base_path: Base path for resolving relative file paths (defaults to cwd)
        """
        self.config_path = Path(config_path)
        self.base_path = Path(base_path) if base_path else Path.cwd()

        with open(config_path, 'r') as f:
            self.config = yaml.safe_load(f)

        self._validate_config()
        self._file_hash: Optional[str] = None
        self.rows_rejected = 0

    def _validate_config(self):
        """Validate required config fields."""
        required = ["source_name", "file_path", "column_mapping"]
        for field in required:
            if field not in self.config:
                raise ValueError(f"Missing required config field: {field}")

        if "title" not in self.config["column_mapping"]:
            raise ValueError("Missing required column mapping: title")

    def get_source_name(self) -> str:
        """Get source name from config."""
        return self.config["source_name"]

    def get_target_varieties(self) -> Optional[list[str]]:
        """Explicit target varieties, or None when the config leaves it open."""
        varieties = self.config.get("target_varieties")
        return list(varieties) if varieties else None

    def get_top_varieties(self) -> Optional[int]:
        """Number of most frequent varieties to use when no list is configured."""
        return self.config.get("top_varieties")

    def get_file_path(self) -> Path:
        return self._resolve_path(self.config["file_path"])

    def get_file_hash(self) -> Optional[str]:
        """Calculate SHA256 hash of CSV file."""
        if self._file_hash:
            return self._file_hash

        file_path = self.get_file_path()
        if not file_path.exists():
            return None

        sha256 = hashlib.sha256()
        with open(file_path, 'rb') as f:
            for chunk in iter(lambda: f.read(8192), b''):
                sha256.update(chunk)

        self._file_hash = sha256.hexdigest()
        return self._file_hash

    def iter_records(self) -> Iterator[WineRecord]:
        """Iterate over wine records from CSV."""
        file_path = self.get_file_path()
        if not file_path.exists():
            raise FileNotFoundError(f"Source file not found: {file_path}")

        encoding = self.config.get("encoding", "utf-8")
        column_map = self.config["column_mapping"]
        transformations = self.config.get("transformations", {})
        self.rows_rejected = 0

        with open(file_path, 'r', encoding=encoding, errors='replace', newline='') as f:
            reader = csv.DictReader(f)

            for row_num, row in enumerate(reader, start=2):  # Start at 2 (header is row 1)
                record = self._row_to_record(row, row_num, column_map, transformations)
                if record is None:
                    self.rows_rejected += 1
                    logger.debug(f"Row {row_num}: no usable columns, skipped")
                    continue
                yield record

    def _row_to_record(
        self,
        row: dict,
        row_num: int,
        column_map: dict,
        transformations: dict,
    ) -> Optional[WineRecord]:
        """Convert a CSV row to WineRecord."""
        values = {}
        for field in self.TEXT_FIELDS:
            value = self._get_value(row, column_map.get(field))
            if value:
                value = self._apply_transforms(
                    value, transformations.get(field, ["strip_whitespace"])
                )
            values[field] = value or None

        if not any(values.values()):
            return None

        for field in self.NUMERIC_FIELDS:
            values[field] = self._parse_number(self._get_value(row, column_map.get(field)))

        # Fall back to the data row index when no id column is mapped
        row_id = self._get_value(row, column_map.get("row_id"))
        if not row_id:
            row_id = str(row_num - 2)

        title = values.pop("title") or ""
        return WineRecord(row_id=row_id, title=title, row_number=row_num, **values)

    def _get_value(self, row: dict, column_spec: Optional[str]) -> Optional[str]:
        """
        Get value from row by column spec.

        Supports:
        - Simple column name: "region_1" ("" addresses an unnamed index column)
        - Fallback: "region_1|region_2" (tries first, falls back to second)
        """
        if column_spec is None:
            return None

        # Handle fallback (pipe separated)
        if '|' in column_spec:
            for spec in column_spec.split('|'):
                value = self._get_value(row, spec.strip())
                if value:
                    return value
            return None

        value = row.get(column_spec)
        if value and isinstance(value, str):
            value = value.strip()
            return value if value else None
        return None

    @staticmethod
    def _parse_number(value: Optional[str]) -> Optional[float]:
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    def _apply_transforms(self, value: str, transforms: list[str]) -> str:
        """Apply a list of transformations to a value."""
        for transform_name in transforms:
            if transform_name not in self.TRANSFORMATIONS:
                raise ValueError(f"Unknown transformation: {transform_name}")
            value = self.TRANSFORMATIONS[transform_name](value)
        return value

    def _resolve_path(self, path_str: str) -> Path:
        """Resolve path relative to base_path."""
        path = Path(path_str)
        if path.is_absolute():
            return path
        return self.base_path / path

"""Tests for the YAML-configured CSV adapter."""

import pytest

from wineclimate.ingestion.adapters import CONFIGS_DIR, ConfigDrivenCSVAdapter


class TestConfigValidation:
    def test_missing_required_field(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("source_name: x\ncolumn_mapping:\n  title: title\n")
        with pytest.raises(ValueError, match="file_path"):
            ConfigDrivenCSVAdapter(str(path))

    def test_missing_title_mapping(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("source_name: x\nfile_path: a.csv\ncolumn_mapping:\n  country: country\n")
        with pytest.raises(ValueError, match="title"):
            ConfigDrivenCSVAdapter(str(path))

    def test_packaged_config_loads(self):
        """The shipped winemag config is valid and names its varieties."""
        adapter = ConfigDrivenCSVAdapter(str(CONFIGS_DIR / "winemag_130k.yaml"))
        assert adapter.get_source_name() == "winemag_130k"
        assert "Pinot Noir" in adapter.get_target_varieties()
        assert adapter.get_top_varieties() == 10


class TestIterRecords:
    def test_reads_all_rows(self, source_config):
        adapter = ConfigDrivenCSVAdapter(str(source_config), base_path=str(source_config.parent))
        records = list(adapter.iter_records())

        assert len(records) == 5
        assert [r.row_id for r in records] == ["0", "1", "2", "3", "4"]

    def test_maps_columns(self, source_config):
        adapter = ConfigDrivenCSVAdapter(str(source_config), base_path=str(source_config.parent))
        first = next(adapter.iter_records())

        assert first.title == "Château Test 2010 Grand Vin Red (Bordeaux)"
        assert first.country == "France"
        assert first.region_1 == "Bordeaux"
        assert first.region_2 is None
        assert first.points == 92.0
        assert first.price == 45.0
        assert first.row_number == 2
        assert first.vintage is None  # filled by the pipeline, not the adapter

    def test_missing_file(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("source_name: x\nfile_path: missing.csv\ncolumn_mapping:\n  title: title\n")
        adapter = ConfigDrivenCSVAdapter(str(path), base_path=str(tmp_path))
        with pytest.raises(FileNotFoundError):
            list(adapter.iter_records())

    def test_empty_rows_rejected(self, tmp_path):
        (tmp_path / "data.csv").write_text("title,country\nA 2010 Red,France\n,\n")
        path = tmp_path / "cfg.yaml"
        path.write_text("source_name: x\nfile_path: data.csv\ncolumn_mapping:\n  title: title\n  country: country\n")
        adapter = ConfigDrivenCSVAdapter(str(path), base_path=str(tmp_path))

        records = list(adapter.iter_records())

        assert len(records) == 1
        assert adapter.rows_rejected == 1
        assert records[0].row_id == "0"  # no id column: data row index

    def test_fallback_column_and_transforms(self, tmp_path):
        (tmp_path / "data.csv").write_text("title,region_1,region_2\nA 2010 Red,,  north   coast \n")
        path = tmp_path / "cfg.yaml"
        path.write_text(
            "source_name: x\nfile_path: data.csv\n"
            "column_mapping:\n  title: title\n  region_1: region_1|region_2\n"
            "transformations:\n  region_1:\n    - collapse_whitespace\n    - title_case\n"
        )
        adapter = ConfigDrivenCSVAdapter(str(path), base_path=str(tmp_path))

        record = next(adapter.iter_records())

        assert record.region_1 == "North Coast"

    def test_unknown_transformation(self, tmp_path):
        (tmp_path / "data.csv").write_text("title\nA 2010 Red\n")
        path = tmp_path / "cfg.yaml"
        path.write_text(
            "source_name: x\nfile_path: data.csv\ncolumn_mapping:\n  title: title\n"
            "transformations:\n  title:\n    - shout\n"
        )
        adapter = ConfigDrivenCSVAdapter(str(path), base_path=str(tmp_path))
        with pytest.raises(ValueError, match="shout"):
            list(adapter.iter_records())

    def test_file_hash_stable(self, source_config):
        adapter = ConfigDrivenCSVAdapter(str(source_config), base_path=str(source_config.parent))
        first = adapter.get_file_hash()
        assert first is not None and len(first) == 64
        assert ConfigDrivenCSVAdapter(
            str(source_config), base_path=str(source_config.parent)
        ).get_file_hash() == first

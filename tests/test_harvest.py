"""Tests for harvest windows and climate aggregation."""

from datetime import date

import pandas as pd
import pytest

from wineclimate.models.enums import Hemisphere
from wineclimate.services.harvest import HarvestAggregator, average_window, harvest_window, window_for
from wineclimate.services.readings import StationReadings, empty_readings


class TestHarvestWindow:
    def test_northern(self):
        window = harvest_window(2010, 45.0)
        assert (window.start, window.end) == (date(2010, 8, 1), date(2010, 10, 31))
        assert window.hemisphere is Hemisphere.NORTH

    def test_southern(self):
        window = harvest_window(2010, -34.0)
        assert (window.start, window.end) == (date(2010, 2, 1), date(2010, 4, 30))
        assert window.hemisphere is Hemisphere.SOUTH

    def test_equator_is_northern(self):
        assert harvest_window(2010, 0.0).hemisphere is Hemisphere.NORTH

    def test_bounds_inclusive(self):
        window = window_for(2012, Hemisphere.SOUTH)
        assert window.contains(date(2012, 2, 1))
        assert window.contains(date(2012, 4, 30))
        assert not window.contains(date(2012, 5, 1))


class TestAverageWindow:
    def test_missing_days_excluded(self):
        readings = pd.DataFrame({
            "date": pd.to_datetime(["2010-08-01", "2010-08-02", "2010-08-03"]),
            "tavg": [20.0, float("nan"), 22.0],
            "prcp": [1.0, 3.0, float("nan")],
        })

        averages = average_window(readings, harvest_window(2010, 45.0))

        assert averages.temperature_c == pytest.approx(21.0)
        assert averages.precipitation_mm == pytest.approx(2.0)
        assert averages.reading_days == 3

    def test_no_readings_in_window(self):
        readings = pd.DataFrame({
            "date": pd.to_datetime(["2010-07-31"]),
            "tavg": [30.0],
            "prcp": [0.0],
        })

        averages = average_window(readings, harvest_window(2010, 45.0))

        assert averages.is_empty
        assert averages.reading_days == 0

    def test_empty_frame(self):
        assert average_window(empty_readings(), harvest_window(2010, 45.0)).is_empty


class TestHarvestAggregator:
    def test_northern_station(self, readings_dir):
        aggregator = HarvestAggregator(StationReadings(str(readings_dir)), parallel=False)

        averages = aggregator.aggregate("FR000007510", 2010, 45.0)

        assert averages.temperature_c == pytest.approx(19.75)
        assert averages.precipitation_mm == pytest.approx(2.0)

    def test_southern_station(self, readings_dir):
        aggregator = HarvestAggregator(StationReadings(str(readings_dir)), parallel=False)

        averages = aggregator.aggregate("AR000087418", 2012, -33.0)

        assert averages.temperature_c == pytest.approx(20.0)
        assert averages.precipitation_mm == pytest.approx(4.0)

    def test_station_without_data(self, readings_dir):
        aggregator = HarvestAggregator(StationReadings(str(readings_dir)), parallel=False)
        assert aggregator.aggregate("USW00023155", 2010, 38.3).is_empty

    def test_many_keys_loads_each_station_once(self, readings_dir):
        readings = StationReadings(str(readings_dir))
        loads = []
        original = readings.load
        readings.load = lambda station_id: loads.append(station_id) or original(station_id)
        keys = [
            ("FR000007510", 2010, Hemisphere.NORTH),
            ("FR000007510", 2010, Hemisphere.NORTH),
            ("FR000007510", 2011, Hemisphere.NORTH),
            ("AR000087418", 2012, Hemisphere.SOUTH),
            ("USW00023155", 2010, Hemisphere.NORTH),
        ]

        results = HarvestAggregator(readings, max_workers=3, parallel=True).aggregate_many(keys)

        assert sorted(loads) == ["AR000087418", "FR000007510", "USW00023155"]
        assert len(results) == 4
        assert results[("FR000007510", 2010, Hemisphere.NORTH)].temperature_c == pytest.approx(19.75)
        assert results[("FR000007510", 2011, Hemisphere.NORTH)].is_empty
        assert results[("USW00023155", 2010, Hemisphere.NORTH)].is_empty

    def test_failed_station_gets_empty_averages(self, readings_dir):
        readings = StationReadings(str(readings_dir))
        original = readings.load

        def flaky(station_id):
            if station_id == "FR000007510":
                raise RuntimeError("disk error")
            return original(station_id)

        readings.load = flaky
        keys = [("FR000007510", 2010, Hemisphere.NORTH), ("AR000087418", 2012, Hemisphere.SOUTH)]

        results = HarvestAggregator(readings, max_workers=2, parallel=True).aggregate_many(keys)

        assert results[("FR000007510", 2010, Hemisphere.NORTH)].is_empty
        assert results[("AR000087418", 2012, Hemisphere.SOUTH)].temperature_c == pytest.approx(20.0)

    def test_no_keys(self, readings_dir):
        assert HarvestAggregator(StationReadings(str(readings_dir))).aggregate_many([]) == {}

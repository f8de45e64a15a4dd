"""
Pytest configuration for the wine climate enrichment tests.

Reference data (country polygons, station list, daily readings, review
CSV) is written into tmp_path by fixtures so tests never touch the
network or the real datasets.
"""

import json
from types import SimpleNamespace

import pytest
from geopy.exc import GeocoderUnavailable

from wineclimate.services.countries import CountryValidator
from wineclimate.services.geocoder import NominatimGeocoder


def square(lon_min, lat_min, lon_max, lat_max) -> dict:
    """GeoJSON polygon for a lon/lat box."""
    return {
        "type": "Polygon",
        "coordinates": [[
            [lon_min, lat_min], [lon_max, lat_min], [lon_max, lat_max],
            [lon_min, lat_max], [lon_min, lat_min],
        ]],
    }


COUNTRY_FEATURES = [
    {"properties": {"ISO_A3": "FRA", "ADMIN": "France"}, "geometry": square(0, 44, 5, 48)},
    {"properties": {"ISO_A3": "USA", "ADMIN": "United States of America"},
     "geometry": square(-124, 34, -117, 42)},
    {"properties": {"ISO_A3": "ARG", "ADMIN": "Argentina"}, "geometry": square(-70, -36, -65, -30)},
    {"properties": {"ISO_A3": "CHL", "ADMIN": "Chile"}, "geometry": square(-75, -36, -70, -30)},
    # Natural Earth marks some ISO_A3 codes as -99; ADM0_A3 holds the real one
    {"properties": {"ISO_A3": "-99", "ADM0_A3": "NOR", "ADMIN": "Norway"},
     "geometry": square(6, 58, 10, 62)},
]

# Place name -> (lat, lon) answered by the fake provider
PLACES = {
    "Bordeaux": (45.0, 0.5),
    "Napa Valley": (38.3, -122.3),
    "California": (36.5, -119.5),
    "Mendoza": (-33.0, -68.0),
    "Luján de Cuyo": (-33.0, -72.0),  # wrong match, lands in Chile
    "Maipo Valley": (-33.5, -71.0),
}

# Place names whose lookups always fail with a transient provider error
UNAVAILABLE = {"Sonoma"}

STATIONS = [
    # station_id, lat, lon, elevation, name
    ("FR000007510", 45.1, 0.6, 47.0, "BORDEAUX MERIGNAC"),
    ("USW00023155", 38.5, -122.0, 10.0, "NAPA CO AP"),
    ("AR000087418", -32.8, -68.8, 704.0, "MENDOZA AERO"),
    ("CI000085574", -33.0, -71.5, 475.0, "SANTIAGO QUINTA NORMAL"),
]

REVIEW_HEADER = (
    ",country,description,designation,points,price,province,region_1,"
    "region_2,taster_name,taster_twitter_handle,title,variety,winery"
)
REVIEW_ROWS = [
    '0,France,"Dark fruit.",Grand Vin,92,45.0,Bordeaux,Bordeaux,,Roger Voss,@vossroger,'
    'Château Test 2010 Grand Vin Red (Bordeaux),Bordeaux-style Red Blend,Château Test',
    '1,US,"Ripe cassis.",,90,60.0,California,Napa Valley,Napa,Virginie Boone,@vboone,'
    'Napa Cellars 2010 Cabernet Sauvignon (Napa Valley),Cabernet Sauvignon,Napa Cellars',
    '2,Argentina,"Plum and violet.",Reserva,88,15.5,Mendoza,Luján de Cuyo,,Michael Schachner,@wineschach,'
    'Bodega 1887 2012 Reserva Malbec (Luján de Cuyo),Malbec,Bodega 1887',
    '3,France,"Simple.",,84,12.0,Bordeaux,,,Roger Voss,@vossroger,'
    'Château Sans Année Red (Bordeaux),Bordeaux-style Red Blend,Château Sans Année',
    '4,US,"Buttery.",,87,25.0,California,Sonoma,Sonoma,Virginie Boone,@vboone,'
    'Sonoma Winery 2011 Chardonnay (Sonoma),Chardonnay,Sonoma Winery',
]

SOURCE_CONFIG = """\
source_name: test_reviews
file_path: reviews.csv
column_mapping:
  row_id: ""
  title: title
  country: country
  designation: designation
  province: province
  region_1: region_1
  region_2: region_2
  price: price
  taster_name: taster_name
  variety: variety
  winery: winery
  points: points
transformations:
  region_1:
    - strip_whitespace
    - collapse_whitespace
target_varieties:
  - Bordeaux-style Red Blend
  - Cabernet Sauvignon
  - Malbec
"""


def station_line(station_id, lat, lon, elevation, name, state="") -> str:
    """One ghcnd-stations.txt fixed-width line."""
    return f"{station_id:<11} {lat:>8.4f} {lon:>9.4f} {elevation:>6.1f} {state:<2} {name:<30}"


def inventory_line(station_id, lat, lon, element, first_year, last_year) -> str:
    """One ghcnd-inventory.txt fixed-width line."""
    return f"{station_id:<11} {lat:>8.4f} {lon:>9.4f} {element:<4} {first_year:>4} {last_year:>4}"


def reading_line(station_id, day, element, value) -> str:
    """One by-station CSV line (ID,YYYYMMDD,ELEMENT,VALUE,MFLAG,QFLAG,SFLAG,OBSTIME)."""
    return f"{station_id},{day},{element},{value},,,E,"


class FakeClient:
    """Stand-in for geopy's Nominatim client."""

    def __init__(self, places=None, unavailable=None, errors=None):
        self.places = dict(PLACES if places is None else places)
        self.unavailable = set(UNAVAILABLE if unavailable is None else unavailable)
        self.errors = {k: list(v) for k, v in (errors or {}).items()}  # query -> exceptions to raise first
        self.calls = []

    def geocode(self, query, exactly_one=True, timeout=None):
        self.calls.append(query)
        if self.errors.get(query):
            raise self.errors[query].pop(0)
        if query in self.unavailable:
            raise GeocoderUnavailable("Service unavailable")
        if query not in self.places:
            return None
        lat, lon = self.places[query]
        return SimpleNamespace(latitude=lat, longitude=lon, address=f"{query}, somewhere")


@pytest.fixture
def fake_client():
    """Fake provider answering from PLACES."""
    return FakeClient()


@pytest.fixture
def sleeps():
    """Collects sleep durations requested by code under test."""
    return []


@pytest.fixture
def geocoder(fake_client, sleeps):
    """NominatimGeocoder over the fake client, with no real sleeping."""
    return NominatimGeocoder(
        client=fake_client,
        min_delay=0.0,
        max_retries=3,
        backoff_seconds=0.5,
        sleep=sleeps.append,
    )


@pytest.fixture
def boundaries_path(tmp_path):
    """Country boundary GeoJSON file."""
    path = tmp_path / "countries.geojson"
    features = [dict(type="Feature", **feature) for feature in COUNTRY_FEATURES]
    path.write_text(json.dumps({"type": "FeatureCollection", "features": features}))
    return path


@pytest.fixture
def validator(boundaries_path):
    """Country validator over the fixture boundaries and packaged aliases."""
    return CountryValidator.from_files(str(boundaries_path))


@pytest.fixture
def stations_path(tmp_path):
    """ghcnd-stations.txt style station list."""
    path = tmp_path / "ghcnd-stations.txt"
    path.write_text("\n".join(station_line(*station) for station in STATIONS) + "\n")
    return path


@pytest.fixture
def readings_dir(tmp_path):
    """
    By-station readings.

    FR000007510: Aug-Oct 2010 TAVG 20.0, 22.0, 18.0, 19.0 (mean 19.75),
        PRCP 3.0, 1.0 (mean 2.0), one missing PRCP and two days outside the window.
    AR000087418: Feb-Apr 2012 TAVG 25.0, 15.0 (mean 20.0), PRCP 4.0.
    USW00023155: no file.
    """
    directory = tmp_path / "by_station"
    directory.mkdir()

    france = [
        ("20100731", "TAVG", 500),
        ("20100801", "TAVG", 200),
        ("20100801", "PRCP", 30),
        ("20100802", "TAVG", 220),
        ("20100802", "PRCP", 10),
        ("20100802", "SNOW", 0),
        ("20100915", "TAVG", 190),
        ("20100915", "PRCP", -9999),
        ("20101031", "TAVG", 180),
        ("20101101", "TAVG", 500),
    ]
    argentina = [
        ("20120131", "TAVG", 350),
        ("20120201", "TAVG", 250),
        ("20120315", "PRCP", 40),
        ("20120430", "TAVG", 150),
        ("20120501", "TAVG", 0),
    ]
    for station_id, rows in (("FR000007510", france), ("AR000087418", argentina)):
        lines = [reading_line(station_id, *row) for row in rows]
        (directory / f"{station_id}.csv").write_text("\n".join(lines) + "\n")
    return directory


@pytest.fixture
def source_config(tmp_path):
    """Source YAML plus the review CSV it points at."""
    (tmp_path / "reviews.csv").write_text(
        REVIEW_HEADER + "\n" + "\n".join(REVIEW_ROWS) + "\n", encoding="utf-8"
    )
    path = tmp_path / "test_reviews.yaml"
    path.write_text(SOURCE_CONFIG, encoding="utf-8")
    return path

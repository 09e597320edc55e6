"""Tests for the MetroMan archive reader."""

import io
import zipfile

import pytest

from china_gtfs.errors import MissingTableError, RouteTimingMissingError
from china_gtfs.geo.coordinates import Coordinate, gcj02_to_wgs84
from china_gtfs.metroman.bundle import ArchiveBundle
from china_gtfs.metroman.reader import MetromanReader
from china_gtfs.transform.trips import build_trips
from conftest import (
    ARCHIVE_VERSION,
    BEIJING_POINT_GEOMETRY,
    CITY_CODE,
    build_archive,
    crlf,
    sample_tables,
)


def read_city(tables: dict[str, str], **kwargs):
    with ArchiveBundle(build_archive(tables), ARCHIVE_VERSION) as bundle:
        reader = MetromanReader(bundle, CITY_CODE, **kwargs)
        return reader.read_all(), reader.timings


def test_bundle_table_paths(bundle: ArchiveBundle) -> None:
    """Test tables are addressed under the version prefix."""
    assert bundle.table_path("uno") == f"{ARCHIVE_VERSION}/uno.csv"
    assert bundle.table_path("uno.csv") == f"{ARCHIVE_VERSION}/uno.csv"
    assert bundle.has_table("way")
    assert not bundle.has_table("R3")


def test_bundle_splits_crlf_and_skips_blank(bundle: ArchiveBundle) -> None:
    """Test CRLF records split cleanly and blank lines are dropped."""
    records = bundle.read_table("holiday")

    assert records == [["20240101"], ["20240501"]]


def test_bundle_missing_table(bundle: ArchiveBundle) -> None:
    """Test absent tables raise with their full path."""
    with pytest.raises(MissingTableError) as excinfo:
        bundle.read_table("nonexistent")
    assert excinfo.value.path == f"{ARCHIVE_VERSION}/nonexistent.csv"

    with pytest.raises(RouteTimingMissingError):
        bundle.read_timing_table("R3")


def test_bundle_rejects_non_zip() -> None:
    """Test a payload that is not a zip fails early."""
    with pytest.raises(ValueError):
        ArchiveBundle(b"not a zip", ARCHIVE_VERSION)


def test_station_indices_follow_file_order() -> None:
    """Test station indices are contiguous from 0 in file order."""
    city, _ = read_city(sample_tables())

    assert [s.index for s in city.stations] == [0, 1, 2, 3]
    assert [s.code for s in city.stations] == ["S0", "S1", "S2", "S3"]
    assert city.stations_by_code == {"S0": 0, "S1": 1, "S2": 2, "S3": 3}


def test_reload_gives_identical_indices() -> None:
    """Test loading the same bundle twice assigns the same indices."""
    first, _ = read_city(sample_tables())
    second, _ = read_city(sample_tables())

    assert first.stations == second.stations
    assert first.routes_by_code == second.routes_by_code


def test_entities_classified_by_tag() -> None:
    """Test uno.csv records split into stations, lines and routes; others ignored."""
    city, _ = read_city(sample_tables())

    assert len(city.stations) == 4
    assert [line.code for line in city.lines] == ["L1"]
    assert [route.code for route in city.routes] == ["R1", "R2", "R3"]
    assert city.route("R3").is_walking
    assert not city.route("R1").is_walking
    assert city.line("L1").color == "#C23A30"


def test_station_positions_converted_to_wgs84() -> None:
    """Test archive GCJ-02 coordinates are stored as WGS-84."""
    city, _ = read_city(sample_tables())
    expected = gcj02_to_wgs84(Coordinate(lat=39.90, lng=116.40))

    station = city.station("S0")
    assert station.lat == pytest.approx(expected.lat)
    assert station.lng == pytest.approx(expected.lng)
    assert station.english_name == "Alpha"
    assert station.simplified_name == "甲站"
    assert (station.map_x, station.map_y) == (10, 20)


def test_station_geometry_override() -> None:
    """Test a decodable station geometry replaces the archive position."""
    city, _ = read_city(
        sample_tables(),
        station_geometries={"S0": BEIJING_POINT_GEOMETRY, "S1": ".=kBAA"},
    )
    archive_s1 = gcj02_to_wgs84(Coordinate(lat=39.91, lng=116.41))

    s0 = city.station("S0")
    assert 39.85 < s0.lat < 39.95
    assert s0.lat != pytest.approx(gcj02_to_wgs84(Coordinate(lat=39.90, lng=116.40)).lat)
    # Undecodable geometry falls back to uno.csv
    assert city.station("S1").lat == pytest.approx(archive_s1.lat)


def test_line_and_route_stations() -> None:
    """Test line.csv and way.csv station lists and line back-references."""
    city, _ = read_city(sample_tables())

    assert city.line("L1").station_indices == [0, 1, 2, 3]
    r1, r2 = city.route("R1"), city.route("R2")
    assert r1.station_indices == [0, 1, 2, 3]
    assert r2.station_indices == [3, 2, 1, 0]
    assert r1.line_index == r2.line_index == 0
    assert (r1.index_within_line, r2.index_within_line) == (0, 1)
    assert r2.schedule_positions == {1: 0, 2: 1, 3: 2}


def test_unknown_station_index_skipped() -> None:
    """Test out-of-range station indices in way.csv are dropped."""
    tables = sample_tables()
    tables["way.csv"] = "R1,0,,0,1,99,2,3,\r\nR2,0,,3,2,1,0\r\n"

    city, _ = read_city(tables)

    assert city.route("R1").station_indices == [0, 1, 2, 3]


def test_fares() -> None:
    """Test fixed-price and external matrix fare records."""
    city, _ = read_city(sample_tables())

    fixed, matrix = city.fare_matrices
    assert fixed.station_indices == [0, 1, 2, 3]
    assert fixed.prices == [[3] * 4 for _ in range(4)]
    assert fixed.route_codes == ["R1"]
    assert matrix.station_indices == [0, 1]
    assert matrix.prices == [[2, 4], [4, 2]]


def test_fare_falls_back_to_route_stations() -> None:
    """Test a fare record without station codes uses its first route."""
    tables = sample_tables()
    tables["fare.csv"] = ",R2,5,,\r\n"

    city, _ = read_city(tables)

    assert city.fare_matrices[0].station_indices == [3, 2, 1, 0]
    assert city.fare_matrices[0].prices[0] == [5, 5, 5, 5]


def test_missing_fare_matrix_is_fatal() -> None:
    """Test a referenced but absent matrix table fails the load."""
    tables = sample_tables()
    del tables["farematrix.csv"]

    with pytest.raises(MissingTableError):
        read_city(tables)


def test_fare_matrix_drops_unknown_station() -> None:
    """Test an unknown station removes its row and column from the matrix."""
    tables = sample_tables()
    tables["fare.csv"] = ",R1,,farematrix,S0|SX|S1\r\n"
    tables["farematrix.csv"] = crlf("1,2,3", "2,1,4", "3,4,1")

    city, _ = read_city(tables)

    matrix = city.fare_matrices[0]
    assert matrix.station_indices == [0, 1]
    assert matrix.prices == [[1, 3], [3, 1]]


def test_fare_matrix_smaller_than_stations_skipped() -> None:
    """Test a matrix that does not cover its station list is ignored."""
    tables = sample_tables()
    tables["fare.csv"] = crlf(",R1,,farematrix,S0|S1|S2", ",R1,7,,S0|S1")

    city, _ = read_city(tables)

    assert len(city.fare_matrices) == 1
    assert city.fare_matrices[0].prices == [[7, 7], [7, 7]]


def test_missing_required_table_is_fatal() -> None:
    """Test a missing core table fails the load."""
    tables = sample_tables()
    del tables["schedule.csv"]

    with pytest.raises(MissingTableError):
        read_city(tables)


def test_holidays_and_schedules() -> None:
    """Test holiday dates and schedule bit vectors."""
    city, _ = read_city(sample_tables())

    assert [h.as_gtfs_date() for h in city.holidays] == ["20240101", "20240501"]
    assert city.schedules["WD"].days_of_week == (1, 1, 1, 1, 1, 0, 0)
    assert not city.schedules["WD"].holidays
    assert city.schedules["HD"].days_of_week == (0, 0, 0, 0, 0, 1, 1)
    assert city.schedules["HD"].holidays
    assert city.route("R1").schedule_codes == ["WD", "HD"]
    assert city.route("R2").schedule_codes == ["WD"]


def test_timings_loaded_and_missing_tolerated() -> None:
    """Test timing tables are read per route and missing ones are skipped."""
    _, timings = read_city(sample_tables())

    assert set(timings) == {"R1", "R2"}
    assert timings["R2"] == [(389, 392), (386, 389), (383, 386)]


def test_station_paths_sliced_inclusive() -> None:
    """Test path_rail bounds are inclusive slices of the global path."""
    city, _ = read_city(sample_tables())
    paths = city.line("L1").station_paths

    assert set(paths) == {("S0", "S1"), ("S1", "S2"), ("S2", "S3")}
    assert len(paths[("S0", "S1")]) == 3
    assert len(paths[("S1", "S2")]) == 2
    assert paths[("S1", "S2")][0] == paths[("S0", "S1")][-1]


def test_invalid_utf8_in_names_replaced() -> None:
    """Test undecodable bytes in a table are replaced instead of failing the load."""
    payload = io.BytesIO()
    with zipfile.ZipFile(payload, "w") as archive:
        for name, text in sample_tables().items():
            data = text.encode("utf-8")
            if name == "uno.csv":
                data = data.replace(b"Alpha", b"Alph\xff")
            archive.writestr(f"{ARCHIVE_VERSION}/{name}", data)

    with ArchiveBundle(payload.getvalue(), ARCHIVE_VERSION) as bundle:
        city = MetromanReader(bundle, CITY_CODE).read_all()

    assert city.stations[0].english_name == "Alph\ufffd"
    assert city.stations[1].english_name == "Bravo"


def test_unknown_schedule_trips_dropped() -> None:
    """Test trips assigned to an undefined schedule never reach the route."""
    tables = sample_tables()
    tables["wayschedule.csv"] = crlf("R1,,WD,HD,ZZ", "R2,,WD")
    city, timings = read_city(tables)

    build_trips(city, timings)

    route = city.route("R1")
    assert route.schedule_codes == ["WD", "HD"]
    assert [len(trips) for trips in route.trips] == [2, 2]

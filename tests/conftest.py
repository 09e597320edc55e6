"""Pytest configuration and fixtures."""

import io
import zipfile
from pathlib import Path

import pytest
import requests

from china_gtfs.api import load_city_from_archive
from china_gtfs.metroman.bundle import ArchiveBundle
from china_gtfs.metroman.models import City
from china_gtfs.metroman.versions import VersionTable

ARCHIVE_VERSION = "20240315"
CITY_CODE = "bj"


def wide(*fields: str) -> str:
    """Join fields with the wide '<,>' delimiter."""
    return "<,>".join(fields)


def station_record(code: str, english: str, simplified: str, lat: str, lng: str) -> str:
    return wide(code, "MS", english, simplified, simplified, english, english[:3], simplified,
                lat, lng, "10", "20", "")


def build_archive(tables: dict[str, str], version: str = ARCHIVE_VERSION) -> bytes:
    """Zip tables under the '{version}/' prefix."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, text in tables.items():
            archive.writestr(f"{version}/{name}", text.encode("utf-8"))
    return buffer.getvalue()


def crlf(*records: str) -> str:
    return "\r\n".join(records) + "\r\n"


def sample_tables() -> dict[str, str]:
    """
    A four-station line with two directional routes.

    R1 runs S0 -> S3 on weekdays (two trains) and on weekends/holidays (two
    trains). R2 runs S3 -> S0 with a single weekday train. R3 is a walking
    connector without a timing table.
    """
    return {
        "uno.csv": crlf(
            station_record("S0", "Alpha", "甲站", "39.90", "116.40"),
            station_record("S1", "Bravo", "乙站", "39.91", "116.41"),
            station_record("S2", "Charlie", "丙站", "39.92", "116.42"),
            station_record("S3", "Delta", "丁站", "39.93", "116.43"),
            wide("L1", "ML", "Line 1", "地铁1号线(八通线)", "地鐵1號線", "1号線", "L1", "1号线",
                 "", "", "", "", "#C23A30"),
            wide("R1", "MW", "Line 1 to Delta", "1号线(往丁站)", "", "", "", "", "", "", "", "", ""),
            wide("R2", "MW", "Line 1 to Alpha", "1号线(往甲站)", "", "", "", "", "", "", "", "", ""),
            wide("R3", "WW", "Transfer walk", "换乘通道", "", "", "", "", "", "", "", "", ""),
            wide("X9", "EX", "Exit A", "A口", "", "", "", "", "", "", "", "", ""),
        ),
        "line.csv": crlf("L1,0,1,2,3"),
        "way.csv": crlf("R1,0,,0,1,2,3", "R2,0,,3,2,1,0"),
        "fare.csv": crlf(",R1,3,,S0|S1|S2|S3", ",R1,,farematrix,S0|S1"),
        "farematrix.csv": crlf("2,4", "4,2"),
        "holiday.csv": crlf("20240101", "20240501"),
        "schedule.csv": crlf(
            wide("WD", "1", "1", "1", "1", "1", "0", "0", "", "0"),
            wide("HD", "0", "0", "0", "0", "0", "1", "1", "", "1"),
        ),
        "wayschedule.csv": crlf("R1,,WD,HD", "R2,,WD"),
        # Weekday block then holiday block, three hops each, departures wrap
        # at every hop and schedule boundary
        "R1.csv": crlf(
            "360,363", "370,373",
            "363,367", "373,377",
            "367,370", "377,380",
            "300,303", "310,313",
            "303,306", "313,316",
            "306,309", "316,319",
        ),
        # One record per hop, stored in sorted station order (S1, S2, S3)
        "R2.csv": crlf("389,392", "386,389", "383,386"),
        "path_latlng.csv": crlf(
            "39.900,116.400",
            "39.905,116.405",
            "39.910,116.410",
            "39.920,116.420",
            "39.930,116.430",
        ),
        "path_rail.csv": crlf("L1,S0,S1,0,2", "L1,S1,S2,2,3", "L1,S2,S3,3,4"),
    }


# Baidu Mercator (12958160.97, 4825923.77), central Beijing
BEIJING_POINT_GEOMETRY = ".=hWJPNB5Z8wcA"


@pytest.fixture
def archive_tables() -> dict[str, str]:
    """Mutable copy of the sample tables."""
    return sample_tables()


@pytest.fixture
def archive_payload() -> bytes:
    """Sample archive as zip bytes."""
    return build_archive(sample_tables())


@pytest.fixture
def bundle(archive_payload: bytes) -> ArchiveBundle:
    """Opened sample archive."""
    with ArchiveBundle(archive_payload, ARCHIVE_VERSION) as opened:
        yield opened


@pytest.fixture
def city(archive_payload: bytes) -> City:
    """Sample city with trips reconstructed."""
    return load_city_from_archive(archive_payload, CITY_CODE, ARCHIVE_VERSION)


@pytest.fixture
def versions() -> VersionTable:
    """Version table listing the sample city."""
    return VersionTable({CITY_CODE: ARCHIVE_VERSION, "sh": "20240101"})


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, content: bytes = b"") -> None:
        self.status_code = status_code
        self.content = content

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Serve canned responses keyed by URL; records every request."""

    def __init__(self, responses: dict[str, list[object]]) -> None:
        self.responses = responses
        self.requested: list[str] = []

    def get(self, url: str, timeout: float | None = None) -> FakeResponse:
        self.requested.append(url)
        queue = self.responses[url]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_session(archive_payload: bytes) -> FakeSession:
    """Session serving the version list and the sample archive."""
    base = "https://example.test/metroman"
    return FakeSession(
        {
            f"{base}/version.txt": [
                FakeResponse(content=f"{CITY_CODE},{ARCHIVE_VERSION},x\nsh,20240101,x\n".encode())
            ],
            f"{base}/{CITY_CODE}/{ARCHIVE_VERSION}.zip": [FakeResponse(content=archive_payload)],
        }
    )


@pytest.fixture
def tmp_output(tmp_path: Path) -> Path:
    """Temporary output directory."""
    output_dir = tmp_path / "build"
    output_dir.mkdir()
    return output_dir

"""Tests for CLI."""

import subprocess
import sys
from pathlib import Path

from china_gtfs.gtfs.feed import FeedBuilder
from china_gtfs.metroman.models import City
from china_gtfs.output.gtfs import write_gtfs_zip
from conftest import BEIJING_POINT_GEOMETRY


def run_cli(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "china_gtfs.cli", *args],
        capture_output=True,
        text=True,
    )


def test_cli_version() -> None:
    """Test --version prints the tool version."""
    result = run_cli("--version")

    assert result.returncode == 0
    assert "china-gtfs" in result.stdout


def test_cli_no_command() -> None:
    """Test running without a command prints help and fails."""
    result = run_cli()

    assert result.returncode == 1
    assert "usage" in result.stdout


def test_cli_decode_geo() -> None:
    """Test decode-geo prints WGS-84 points per segment."""
    result = run_cli("decode-geo", BEIJING_POINT_GEOMETRY)

    assert result.returncode == 0
    assert "# segment 0 (POINT, 1 points)" in result.stdout
    lat, lng = result.stdout.strip().splitlines()[-1].split(",")
    assert 39.85 < float(lat) < 39.95
    assert 116.33 < float(lng) < 116.45


def test_cli_decode_geo_empty() -> None:
    """Test decode-geo fails when nothing decodes."""
    result = run_cli("decode-geo", ".=kBAA")

    assert result.returncode == 1
    assert "Error" in result.stderr


def test_cli_validate(city: City, tmp_path: Path) -> None:
    """Test validate on a generated feed."""
    feed = write_gtfs_zip(tmp_path / "bj.gtfs.zip", FeedBuilder(city).build_all())

    result = run_cli("validate", "--input", str(feed))

    assert result.returncode == 0
    assert "Validation successful" in result.stdout


def test_cli_validate_missing_feed(tmp_path: Path) -> None:
    """Test validate fails on a missing file."""
    result = run_cli("validate", "--input", str(tmp_path / "missing.gtfs.zip"))

    assert result.returncode == 1
    assert "Validation failed" in result.stdout


def test_cli_load_all_missing_column(tmp_path: Path) -> None:
    """Test load-all rejects a city list without metroman_code."""
    city_csv = tmp_path / "cities.csv"
    city_csv.write_text("name,code\nBeijing,bj\n", encoding="utf-8")

    result = run_cli("load-all", "--city-csv", str(city_csv), "--output", str(tmp_path / "out"))

    assert result.returncode == 1
    assert "metroman_code" in result.stderr

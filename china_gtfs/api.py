"""Public API for china-gtfs."""

import csv
import hashlib
import io
import json
import logging
import platform
import zipfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import fields, replace
from datetime import UTC, datetime
from pathlib import Path

from china_gtfs.gtfs.feed import FeedBuilder
from china_gtfs.gtfs.models import ConvertConfig, Manifest, ValidationReport
from china_gtfs.gtfs.validator import CityValidator
from china_gtfs.metroman.bundle import ArchiveBundle
from china_gtfs.metroman.client import MetromanClient
from china_gtfs.metroman.models import City
from china_gtfs.metroman.reader import MetromanReader
from china_gtfs.metroman.versions import VersionTable
from china_gtfs.output.gtfs import TABLE_MODELS, write_debug_tables, write_gtfs_zip
from china_gtfs.output.json import write_json_files
from china_gtfs.transform.trips import build_trips
from china_gtfs.version import SCHEMA_VERSION, VERSION

logger = logging.getLogger(__name__)


def load_station_geometries(path: str) -> dict[str, str]:
    """Read a JSON object mapping station codes to Baidu encoded geometries."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Station geometry file {path} must contain a JSON object")
    return {str(code): str(encoded) for code, encoded in data.items()}


def load_city_from_archive(
    payload: bytes,
    code: str,
    version: str,
    station_geometries: dict[str, str] | None = None,
) -> City:
    """
    Load a city graph from archive bytes and reconstruct its trips.

    Args:
        payload: Zip archive as downloaded
        code: MetroMan city code
        version: Archive version, which is also the table prefix inside the zip
        station_geometries: Optional station code -> Baidu encoded geometry

    Returns:
        City with trips populated
    """
    with ArchiveBundle(payload, version) as bundle:
        reader = MetromanReader(bundle, code, station_geometries)
        city = reader.read_all()
        build_trips(city, reader.timings)
    return city


def load_city(
    code: str,
    versions: VersionTable,
    client: MetromanClient,
    station_geometries: dict[str, str] | None = None,
) -> City:
    """
    Fetch and load the current archive of a city.

    Raises:
        CityNotFoundError: The version table has no entry for the code
        MissingTableError: A required table is absent from the archive
    """
    version = versions.version_for(code)
    payload = client.fetch_archive(code, version)
    return load_city_from_archive(payload, code, version, station_geometries)


def _sha256(path: Path) -> str:
    with open(path, "rb") as f:
        return hashlib.sha256(f.read()).hexdigest()


def _read_archive(
    config: ConvertConfig, client: MetromanClient, version: str, backup_path: Path
) -> bytes:
    if config.use_cache and backup_path.exists():
        logger.info(f"Using cached archive {backup_path}")
        return backup_path.read_bytes()

    payload = client.fetch_archive(config.city_code, version)
    if config.keep_archive:
        backup_path.parent.mkdir(parents=True, exist_ok=True)
        backup_path.write_bytes(payload)
        logger.info(f"Backed up archive to {backup_path}")
    return payload


def convert(
    config: ConvertConfig,
    versions: VersionTable | None = None,
    client: MetromanClient | None = None,
) -> Manifest:
    """
    Convert the MetroMan archive of one city to a GTFS zip.

    Args:
        config: Conversion configuration
        versions: Version table; fetched when not given
        client: Archive client; built from the config when not given

    Returns:
        Manifest with build metadata
    """
    if client is None:
        client = MetromanClient(config.base_url, timeout=config.timeout)
    if versions is None:
        versions = client.fetch_versions()

    code = config.city_code
    version = versions.version_for(code)

    output_dir = Path(config.output_path)
    feed_path = output_dir / f"{code}.{version}.gtfs.zip"
    backup_path = output_dir / "backup" / f"{code}.{version}.metroman.zip"
    manifest_path = output_dir / f"{code}.{version}.manifest.json"

    logger.info(f"Starting conversion: {code} (archive {version}) -> {feed_path}")
    start_time = datetime.now(UTC)

    inputs = {"city": code, "archive_version": version, "base_url": config.base_url}

    if config.use_cache and feed_path.exists():
        logger.info(f"Feed {feed_path} already built, skipping")
        return Manifest(
            schema_version=SCHEMA_VERSION,
            tool_version=VERSION,
            created_at_iso=start_time.isoformat(),
            inputs={**inputs, "cached": True},
            outputs={feed_path.name: _sha256(feed_path)},
            stats={},
            build={},
        )

    station_geometries = None
    if config.station_geometries_path:
        station_geometries = load_station_geometries(config.station_geometries_path)

    # Load
    payload = _read_archive(config, client, version, backup_path)
    city = load_city_from_archive(payload, code, version, station_geometries)

    # Validate
    validation_report = CityValidator(city).validate()
    for warning in validation_report.warnings:
        logger.debug(f"  {warning}")
    if not validation_report.valid:
        raise ValueError(
            f"City {code} validation failed with {len(validation_report.errors)} errors: "
            f"{validation_report.errors[0]}"
        )

    # Project
    builder = FeedBuilder(city, agency_name=config.agency_name, agency_url=config.agency_url)
    tables = builder.build_all()

    # Write outputs
    files_written = {feed_path.name: str(write_gtfs_zip(feed_path, tables))}

    if config.debug_json:
        debug_dir = output_dir / "debug" / code
        files_written.update(write_debug_tables(debug_dir, tables))
        json_files = write_json_files(debug_dir, city)
        files_written.update({f"debug/{name}": path for name, path in json_files.items()})

    # Compute checksums
    checksums = {filename: _sha256(Path(path)) for filename, path in files_written.items()}

    stats = {name.removesuffix(".txt"): len(rows) for name, rows in tables.items()}

    manifest = Manifest(
        schema_version=SCHEMA_VERSION,
        tool_version=VERSION,
        created_at_iso=start_time.isoformat(),
        inputs=inputs,
        outputs=checksums,
        stats=stats,
        build={
            "python": platform.python_version(),
            "platform": platform.platform(),
        },
    )

    # Write manifest
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(
            {
                "schema_version": manifest.schema_version,
                "tool_version": manifest.tool_version,
                "created_at": manifest.created_at_iso,
                "inputs": manifest.inputs,
                "outputs": manifest.outputs,
                "stats": manifest.stats,
                "build": manifest.build,
            },
            f,
            indent=2,
            sort_keys=True,
        )

    logger.info(f"Wrote manifest to {manifest_path}")

    elapsed = (datetime.now(UTC) - start_time).total_seconds()
    logger.info(f"Conversion of {code} completed in {elapsed:.2f}s")

    return manifest


def read_city_codes(city_csv: str) -> list[str]:
    """Read the metroman_code column of a city list, skipping blank cells."""
    with open(city_csv, encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None or "metroman_code" not in reader.fieldnames:
            raise ValueError(f"{city_csv} has no metroman_code column")
        return [row["metroman_code"].strip() for row in reader if row["metroman_code"].strip()]


def convert_all(
    codes: list[str],
    config: ConvertConfig,
    versions: VersionTable | None = None,
) -> tuple[dict[str, Manifest], dict[str, Exception]]:
    """
    Convert several cities, up to config.jobs at a time.

    The version table is fetched once and shared read-only; every worker gets
    its own client.

    Returns:
        (manifests by city code, errors by city code)
    """
    if versions is None:
        versions = MetromanClient(config.base_url, timeout=config.timeout).fetch_versions()

    manifests: dict[str, Manifest] = {}
    failures: dict[str, Exception] = {}

    def run(code: str) -> Manifest:
        return convert(replace(config, city_code=code), versions=versions)

    with ThreadPoolExecutor(max_workers=max(config.jobs, 1)) as executor:
        futures = {executor.submit(run, code): code for code in codes}
        for future in as_completed(futures):
            code = futures[future]
            try:
                manifests[code] = future.result()
            except Exception as e:
                logger.error(f"Conversion of {code} failed: {e}")
                failures[code] = e

    logger.info(f"Converted {len(manifests)} of {len(codes)} cities")
    return manifests, failures


def validate(feed_path: str) -> ValidationReport:
    """
    Validate a generated GTFS zip.

    Args:
        feed_path: Path to a .gtfs.zip file

    Returns:
        ValidationReport with results
    """
    logger.info(f"Validating feed: {feed_path}")

    errors: list[str] = []
    warnings: list[str] = []
    stats: dict[str, int] = {}

    path = Path(feed_path)
    if not path.exists():
        return ValidationReport(valid=False, errors=[f"Feed not found: {feed_path}"])

    try:
        with zipfile.ZipFile(path) as archive:
            names = set(archive.namelist())
            tables: dict[str, list[dict[str, str]]] = {}

            for filename, model in TABLE_MODELS.items():
                if filename not in names:
                    errors.append(f"Required file missing: {filename}")
                    continue

                text = archive.read(filename).decode("utf-8")
                reader = csv.DictReader(io.StringIO(text))
                expected = [f.name for f in fields(model)]
                if reader.fieldnames != expected:
                    errors.append(f"{filename} has columns {reader.fieldnames}, expected {expected}")
                    continue

                tables[filename] = list(reader)
                stats[filename.removesuffix(".txt")] = len(tables[filename])

    except zipfile.BadZipFile as e:
        return ValidationReport(valid=False, errors=[f"Feed is not a valid zip: {e}"])

    if errors:
        return ValidationReport(valid=False, errors=errors, warnings=warnings, stats=stats)

    route_ids = {row["route_id"] for row in tables["routes.txt"]}
    stop_ids = {row["stop_id"] for row in tables["stops.txt"]}
    trip_ids = {row["trip_id"] for row in tables["trips.txt"]}
    service_ids = {row["service_id"] for row in tables["calendar.txt"]} | {
        row["service_id"] for row in tables["calendar_dates.txt"]
    }

    for row in tables["trips.txt"]:
        if row["route_id"] not in route_ids:
            errors.append(f"Trip {row['trip_id']} references non-existent route {row['route_id']}")
        if row["service_id"] not in service_ids:
            warnings.append(f"Trip {row['trip_id']} references unknown service {row['service_id']}")

    for row in tables["stop_times.txt"]:
        if row["trip_id"] not in trip_ids:
            errors.append(f"Stop time references non-existent trip {row['trip_id']}")
        if row["stop_id"] not in stop_ids:
            errors.append(f"Stop time of {row['trip_id']} references unknown stop {row['stop_id']}")

    if not tables["routes.txt"]:
        warnings.append("Feed has no routes")

    valid = len(errors) == 0

    if valid:
        logger.info("Validation passed")
    else:
        logger.error(f"Validation failed with {len(errors)} errors")

    return ValidationReport(valid=valid, errors=errors, warnings=warnings, stats=stats)

"""GTFS CSV and zip output."""

import csv
import io
import logging
import zipfile
from dataclasses import astuple, fields
from pathlib import Path
from typing import Any

from china_gtfs.gtfs.models import (
    Agency,
    Calendar,
    CalendarDate,
    FareAttribute,
    FareRule,
    Route,
    ShapePoint,
    Stop,
    StopTime,
    Trip,
)

logger = logging.getLogger(__name__)

# File name -> row model; column order follows the model's fields
TABLE_MODELS: dict[str, type] = {
    "agency.txt": Agency,
    "stops.txt": Stop,
    "routes.txt": Route,
    "calendar.txt": Calendar,
    "calendar_dates.txt": CalendarDate,
    "trips.txt": Trip,
    "shapes.txt": ShapePoint,
    "stop_times.txt": StopTime,
    "fare_rules.txt": FareRule,
    "fare_attributes.txt": FareAttribute,
}

TIME_COLUMNS = {"arrival_time", "departure_time"}


def format_time(seconds: int) -> str:
    """Format seconds since midnight as HH:MM:SS; hours may exceed 23."""
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _format_value(column: str, value: Any) -> str:
    if column in TIME_COLUMNS:
        return format_time(value)
    if isinstance(value, float):
        return f"{value:f}"
    return str(value)


def render_table(model: type, rows: list[Any]) -> str:
    """Render rows of one model as CSV text with a header line."""
    columns = [f.name for f in fields(model)]

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow(
            _format_value(column, value) for column, value in zip(columns, astuple(row))
        )
    return buffer.getvalue()


def render_tables(tables: dict[str, list[Any]]) -> dict[str, str]:
    """Render every known table; unknown file names are rejected."""
    rendered: dict[str, str] = {}
    for filename, rows in tables.items():
        model = TABLE_MODELS.get(filename)
        if model is None:
            raise ValueError(f"Unknown GTFS table: {filename}")
        rendered[filename] = render_table(model, rows)
    return rendered


def build_gtfs_zip(tables: dict[str, list[Any]]) -> bytes:
    """Pack the tables into an in-memory GTFS zip."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for filename, text in render_tables(tables).items():
            archive.writestr(filename, text.encode("utf-8"))
    return buffer.getvalue()


def write_gtfs_zip(output_file: Path, tables: dict[str, list[Any]]) -> Path:
    """Write the GTFS zip to disk."""
    output_file.parent.mkdir(parents=True, exist_ok=True)
    payload = build_gtfs_zip(tables)
    output_file.write_bytes(payload)
    logger.info(f"Wrote {output_file} ({len(payload)} bytes)")
    return output_file


def write_debug_tables(debug_dir: Path, tables: dict[str, list[Any]]) -> dict[str, str]:
    """Write each table as a loose CSV file for inspection."""
    logger.info(f"Writing debug GTFS tables to {debug_dir}")
    debug_dir.mkdir(parents=True, exist_ok=True)

    files_written: dict[str, str] = {}
    for filename, text in render_tables(tables).items():
        path = debug_dir / filename
        path.write_text(text, encoding="utf-8")
        files_written[f"debug/{filename}"] = str(path)

    return files_written

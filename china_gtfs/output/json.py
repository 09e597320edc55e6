"""JSON debug output."""

import json
import logging
from pathlib import Path

from china_gtfs.gtfs.calendar import combine_schedules
from china_gtfs.gtfs.feed import clean_line_name
from china_gtfs.metroman.models import City

logger = logging.getLogger(__name__)


def write_json_files(output_path: Path, city: City) -> dict[str, str]:
    """Write debug JSON files describing the loaded city graph."""
    logger.info(f"Writing debug JSON files to {output_path}")

    output_path.mkdir(parents=True, exist_ok=True)

    files_written = {}

    # Write stations.json
    stations_data = [
        {
            "index": station.index,
            "code": station.code,
            "english_name": station.english_name,
            "simplified_name": station.simplified_name,
            "lat": station.lat,
            "lng": station.lng,
            "map_x": station.map_x,
            "map_y": station.map_y,
        }
        for station in city.stations
    ]

    stations_path = output_path / "stations.json"
    with open(stations_path, "w", encoding="utf-8") as f:
        json.dump(stations_data, f, indent=2, sort_keys=True, ensure_ascii=False)
    files_written["stations.json"] = str(stations_path)
    logger.info(f"Wrote {stations_path}")

    # Write lines.json
    lines_data = [
        {
            "code": line.code,
            "simplified_name": line.simplified_name,
            "clean_name": clean_line_name(line.simplified_name),
            "color": line.color,
            "is_walking": line.is_walking,
            "station_indices": line.station_indices,
            "path_count": len(line.station_paths),
        }
        for line in city.lines
    ]

    lines_path = output_path / "lines.json"
    with open(lines_path, "w", encoding="utf-8") as f:
        json.dump(lines_data, f, indent=2, sort_keys=True, ensure_ascii=False)
    files_written["lines.json"] = str(lines_path)
    logger.info(f"Wrote {lines_path}")

    # Write routes.json
    routes_data = []
    for route in city.routes:
        schedules = [city.schedules[c] for c in route.schedule_codes if c in city.schedules]
        combined = combine_schedules(schedules) if schedules else None

        routes_data.append(
            {
                "code": route.code,
                "english_name": route.english_name,
                "line_index": route.line_index,
                "index_within_line": route.index_within_line,
                "station_indices": route.station_indices,
                "trip_counts": {
                    code: len(trips) for code, trips in zip(route.schedule_codes, route.trips)
                },
                "combined_service": None
                if combined is None
                else {
                    "code": combined.code,
                    "days_of_week": list(combined.days_of_week),
                    "holidays": combined.holidays,
                },
            }
        )

    routes_path = output_path / "routes.json"
    with open(routes_path, "w", encoding="utf-8") as f:
        json.dump(routes_data, f, indent=2, sort_keys=True, ensure_ascii=False)
    files_written["routes.json"] = str(routes_path)
    logger.info(f"Wrote {routes_path}")

    return files_written

"""MetroMan archive reader building the entity graph of one city."""

import logging

from china_gtfs.errors import RouteTimingMissingError
from china_gtfs.geo.codec import decode_combined_geometry
from china_gtfs.geo.coordinates import Coordinate, gcj02_to_wgs84
from china_gtfs.metroman.bundle import COMMA_DELIMITER, WIDE_DELIMITER, ArchiveBundle
from china_gtfs.metroman.fields import field_at, parse_float, parse_int
from china_gtfs.metroman.models import (
    LINE_TAGS,
    ROUTE_TAGS,
    STATION_TAGS,
    City,
    FareMatrix,
    Holiday,
    Line,
    Route,
    Schedule,
    Station,
)
from china_gtfs.transform.timetable import parse_timing_records
from china_gtfs.transform.trips import build_schedule_positions

logger = logging.getLogger(__name__)


class MetromanReader:
    """Read a MetroMan archive into a City."""

    def __init__(
        self,
        bundle: ArchiveBundle,
        city_code: str,
        station_geometries: dict[str, str] | None = None,
    ) -> None:
        """
        Initialize reader.

        Args:
            bundle: Opened city archive
            city_code: MetroMan city code (e.g. "bj")
            station_geometries: Optional station code -> Baidu encoded geometry.
                A station whose geometry decodes to at least one point takes its
                position from the first point instead of uno.csv.
        """
        self.bundle = bundle
        self.city = City(code=city_code, version=bundle.version)
        self.station_geometries = station_geometries or {}

        # route code -> timing records, filled by read_timings
        self.timings: dict[str, list[tuple[int, int]]] = {}

    def read_all(self) -> City:
        """Read every table in dependency order."""
        logger.info(f"Reading MetroMan archive {self.city.code}/{self.bundle.version}")
        self.read_entities()
        self.read_line_stations()
        self.read_route_stations()
        self.read_fares()
        self.read_holidays()
        self.read_schedules()
        self.read_route_schedules()
        self.read_paths()
        self.read_timings()

        city = self.city
        logger.info(
            f"Loaded {len(city.stations)} stations, {len(city.lines)} lines, "
            f"{len(city.routes)} routes, {len(city.schedules)} schedules, "
            f"{len(city.holidays)} holidays, {len(city.fare_matrices)} fare matrices"
        )
        return city

    def read_entities(self) -> None:
        """Read uno.csv, classifying records into stations, lines and routes."""
        for record in self.bundle.read_table("uno", WIDE_DELIMITER):
            tag = field_at(record, 1)

            if tag in STATION_TAGS:
                station = self._build_station(record, len(self.city.stations))
                self.city.stations_by_code[station.code] = station.index
                self.city.stations.append(station)

            elif tag in LINE_TAGS:
                line = Line(
                    code=field_at(record, 0),
                    english_name=field_at(record, 2),
                    simplified_name=field_at(record, 3),
                    traditional_name=field_at(record, 4),
                    japanese_name=field_at(record, 5),
                    short_name=field_at(record, 7),
                    color=field_at(record, 12),
                    is_walking=tag == "WL",
                )
                self.city.lines_by_code[line.code] = len(self.city.lines)
                self.city.lines.append(line)

            elif tag in ROUTE_TAGS:
                route = Route(
                    code=field_at(record, 0),
                    english_name=field_at(record, 2),
                    simplified_name=field_at(record, 3),
                    traditional_name=field_at(record, 4),
                    japanese_name=field_at(record, 5),
                    is_walking=tag == "WW",
                )
                self.city.routes_by_code[route.code] = len(self.city.routes)
                self.city.routes.append(route)

            else:
                logger.debug(f"Ignoring uno.csv record with tag {tag!r}")

    def _build_station(self, record: list[str], index: int) -> Station:
        code = field_at(record, 0)
        position = self._station_position(
            code,
            Coordinate(lat=parse_float(field_at(record, 8)), lng=parse_float(field_at(record, 9))),
        )
        return Station(
            code=code,
            index=index,
            english_name=field_at(record, 2),
            simplified_name=field_at(record, 3),
            traditional_name=field_at(record, 4),
            japanese_name=field_at(record, 5),
            english_short_name=field_at(record, 6),
            short_name=field_at(record, 7),
            lat=position.lat,
            lng=position.lng,
            map_x=parse_int(field_at(record, 10)),
            map_y=parse_int(field_at(record, 11)),
        )

    def _station_position(self, code: str, gcj02: Coordinate) -> Coordinate:
        encoded = self.station_geometries.get(code)
        if encoded:
            geometries = decode_combined_geometry(encoded)
            if geometries:
                return geometries[0].to_wgs84()[0]
            logger.warning(f"Station {code} geometry decoded empty, using archive coordinates")
        return gcj02_to_wgs84(gcj02)

    def _station_indices(self, fields: list[str], table: str, owner: str) -> list[int]:
        indices: list[int] = []
        for raw in fields:
            if not raw.strip():
                continue
            index = parse_int(raw)
            if not 0 <= index < len(self.city.stations):
                logger.warning(f"{table}: {owner} references unknown station index {raw!r}")
                continue
            indices.append(index)
        return indices

    def read_line_stations(self) -> None:
        """Read line.csv: line code followed by station indices."""
        for record in self.bundle.read_table("line"):
            code = field_at(record, 0)
            line_pos = self.city.lines_by_code.get(code)
            if line_pos is None:
                logger.warning(f"line.csv references unknown line {code}")
                continue
            line = self.city.lines[line_pos]
            line.station_indices.extend(self._station_indices(record[1:], "line.csv", code))

    def read_route_stations(self) -> None:
        """Read way.csv: route code, line index, unused, station indices."""
        within_line: dict[str, int] = {}

        for record in self.bundle.read_table("way"):
            code = field_at(record, 0)
            route_pos = self.city.routes_by_code.get(code)
            if route_pos is None:
                logger.warning(f"way.csv references unknown route {code}")
                continue
            route = self.city.routes[route_pos]
            route.station_indices.extend(self._station_indices(record[3:], "way.csv", code))
            route.schedule_positions = build_schedule_positions(route.station_indices)

            line_index = parse_int(field_at(record, 1))
            if not 0 <= line_index < len(self.city.lines):
                logger.warning(f"Route {code} references unknown line index {line_index}")
                continue
            route.line_index = line_index
            line_code = self.city.lines[line_index].code
            route.index_within_line = within_line.get(line_code, 0)
            within_line[line_code] = route.index_within_line + 1

    def read_fares(self) -> None:
        """Read fare.csv and any fare matrix tables it references."""
        for record in self.bundle.read_table("fare"):
            route_codes = [c for c in field_at(record, 1).split("|") if c]
            station_codes = [c for c in field_at(record, 4).split("|") if c]

            if station_codes:
                # positions of the listed stations that exist in this city
                kept = [i for i, c in enumerate(station_codes) if c in self.city.stations_by_code]
                if len(kept) < len(station_codes):
                    unknown = [c for c in station_codes if c not in self.city.stations_by_code]
                    logger.warning(f"Fare record references unknown stations {unknown}")
                station_indices = [self.city.stations_by_code[station_codes[i]] for i in kept]
                listed = len(station_codes)
            elif route_codes and route_codes[0] in self.city.routes_by_code:
                station_indices = list(self.city.route(route_codes[0]).station_indices)
                kept = list(range(len(station_indices)))
                listed = len(station_indices)
            else:
                logger.warning(f"Fare record {record!r} has neither stations nor a known route")
                continue

            matrix_table = field_at(record, 3)
            if matrix_table:
                prices = self._read_matrix(matrix_table)
                if len(prices) != listed or any(len(row) != listed for row in prices):
                    logger.warning(
                        f"Fare matrix {matrix_table} does not match its {listed} stations, "
                        "skipping fare record"
                    )
                    continue
                # drop the rows and columns of unknown stations
                prices = [[prices[x][y] for y in kept] for x in kept]
            else:
                fixed_price = parse_int(field_at(record, 2))
                prices = [[fixed_price] * len(station_indices) for _ in station_indices]

            self.city.fare_matrices.append(
                FareMatrix(station_indices=station_indices, prices=prices, route_codes=route_codes)
            )

    def _read_matrix(self, name: str) -> list[list[int]]:
        return [
            [parse_int(value) for value in row]
            for row in self.bundle.read_table(name, COMMA_DELIMITER)
        ]

    def read_holidays(self) -> None:
        """Read holiday.csv: one YYYYMMDD date per record."""
        for record in self.bundle.read_table("holiday"):
            raw = field_at(record, 0)
            self.city.holidays.append(
                Holiday(
                    year=parse_int(raw[0:4]),
                    month=parse_int(raw[4:6]),
                    day=parse_int(raw[6:8]),
                )
            )

    def read_schedules(self) -> None:
        """Read schedule.csv: code, seven day bits, unused, holiday bit."""
        for record in self.bundle.read_table("schedule", WIDE_DELIMITER):
            code = field_at(record, 0)
            bits = tuple(1 if field_at(record, i).startswith("1") else 0 for i in range(1, 8))
            self.city.schedules[code] = Schedule(
                code=code,
                days_of_week=bits,  # type: ignore[arg-type]
                holidays=field_at(record, 9).startswith("1"),
            )

    def read_route_schedules(self) -> None:
        """Read wayschedule.csv: route code, unused, schedule codes."""
        for record in self.bundle.read_table("wayschedule"):
            code = field_at(record, 0)
            route_pos = self.city.routes_by_code.get(code)
            if route_pos is None:
                logger.warning(f"wayschedule.csv references unknown route {code}")
                continue

            schedule_codes = [c.strip() for c in record[2:] if c.strip()]
            for schedule_code in schedule_codes:
                if schedule_code not in self.city.schedules:
                    logger.warning(f"Route {code} references unknown schedule {schedule_code}")
            self.city.routes[route_pos].schedule_codes = schedule_codes

    def read_timings(self) -> None:
        """Read the per-route timing tables; routes without one get no trips."""
        for route in self.city.routes:
            try:
                rows = self.bundle.read_timing_table(route.code)
            except RouteTimingMissingError:
                logger.debug(f"Route {route.code} has no timing table")
                continue
            self.timings[route.code] = parse_timing_records(rows)

    def read_paths(self) -> None:
        """Read path_latlng.csv and slice it per station pair using path_rail.csv."""
        coords = [
            gcj02_to_wgs84(
                Coordinate(lat=parse_float(field_at(r, 0)), lng=parse_float(field_at(r, 1)))
            )
            for r in self.bundle.read_table("path_latlng")
        ]

        for record in self.bundle.read_table("path_rail"):
            line_code = field_at(record, 0)
            line_pos = self.city.lines_by_code.get(line_code)
            if line_pos is None:
                logger.warning(f"path_rail.csv references unknown line {line_code}")
                continue

            lower = parse_int(field_at(record, 3))
            upper = parse_int(field_at(record, 4))
            key = (field_at(record, 1), field_at(record, 2))
            self.city.lines[line_pos].station_paths[key] = coords[lower : upper + 1]

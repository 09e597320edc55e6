"""Projection of a loaded City onto GTFS rows."""

import logging
from collections.abc import Iterator

from china_gtfs.geo.coordinates import Coordinate
from china_gtfs.gtfs import calendar
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
from china_gtfs.metroman.models import City
from china_gtfs.metroman.models import Route as CityRoute
from china_gtfs.metroman.models import Trip as CityTrip

logger = logging.getLogger(__name__)

ROUTE_TYPE_RAIL = 2
DEFAULT_AGENCY_URL = "https://tgrcode.com/"

_LINE_NAME_NOISE = ("地铁", "轨道交通")
_LINE_SUFFIX = "号线"


def clean_line_name(name: str) -> str:
    """
    Shorten a MetroMan line name to its commonly used form.

    "地铁" and "轨道交通" are dropped. A name containing "号线" is cut right
    after it; otherwise anything from the first "(" on is dropped.
    """
    for noise in _LINE_NAME_NOISE:
        name = name.replace(noise, "")

    suffix_at = name.find(_LINE_SUFFIX)
    if suffix_at != -1:
        return name[: suffix_at + len(_LINE_SUFFIX)]

    paren_at = name.find("(")
    if paren_at != -1:
        return name[:paren_at]
    return name


def zone_id(station_code: str) -> str:
    return f"zone_{station_code}"


def shape_id(route_code: str) -> str:
    return f"shape_{route_code}"


def trip_id(route_code: str, schedule_code: str, n: int) -> str:
    return f"{route_code}_trip_{schedule_code}_{n}"


def sorted_trips(trips: list[CityTrip]) -> list[CityTrip]:
    """Trips ordered by the minute of their first visit; ties keep input order."""
    return sorted(trips, key=lambda trip: trip.first_minute)


class FeedBuilder:
    """Build GTFS rows for one city."""

    def __init__(
        self,
        city: City,
        agency_name: str | None = None,
        agency_url: str = DEFAULT_AGENCY_URL,
    ) -> None:
        """
        Initialize builder.

        Args:
            city: Loaded city with reconstructed trips
            agency_name: Display name of the city, defaults to its upper-cased code
            agency_url: URL published in agency.txt
        """
        self.city = city
        self.agency_name = agency_name or city.code.upper()
        self.agency_url = agency_url

    @property
    def agency_id(self) -> str:
        return self.city.code

    def routes_with_trips(self) -> list[CityRoute]:
        return [route for route in self.city.routes if route.has_trips()]

    def build_stops(self) -> list[Stop]:
        """One stop per station, in station index order."""
        return [
            Stop(
                stop_id=station.code,
                stop_code=station.simplified_name,
                stop_name=station.english_name,
                stop_lat=station.lat,
                stop_lon=station.lng,
                zone_id=zone_id(station.code),
            )
            for station in self.city.stations
        ]

    def build_agency(self) -> list[Agency]:
        return [
            Agency(
                agency_id=self.agency_id,
                agency_name=f"China-GTFS {self.agency_name}",
                agency_url=self.agency_url,
            )
        ]

    def build_routes(self) -> list[Route]:
        """Routes that have at least one trip, colored after their line."""
        rows: list[Route] = []

        for route in self.routes_with_trips():
            color = ""
            if route.line_index >= 0:
                color = self.city.line_for(route).color.lstrip("#")

            rows.append(
                Route(
                    agency_id=self.agency_id,
                    route_id=route.code,
                    route_short_name=route.simplified_name,
                    route_long_name=route.english_name,
                    route_type=ROUTE_TYPE_RAIL,
                    route_color=color,
                )
            )

        return rows

    def build_calendar(self) -> list[Calendar]:
        return calendar.build_calendar(list(self.city.schedules.values()))

    def build_calendar_dates(self) -> list[CalendarDate]:
        return calendar.build_calendar_dates(list(self.city.schedules.values()), self.city.holidays)

    def build_trips(self) -> list[Trip]:
        """Trips per route and schedule, numbered in order of first departure."""
        rows: list[Trip] = []

        for route in self.routes_with_trips():
            for schedule_code, trips in zip(route.schedule_codes, route.trips):
                for n in range(len(trips)):
                    rows.append(
                        Trip(
                            route_id=route.code,
                            service_id=schedule_code,
                            trip_id=trip_id(route.code, schedule_code, n),
                            trip_headsign=route.english_name,
                            direction_id=route.index_within_line % 2,
                            shape_id=shape_id(route.code),
                        )
                    )

        return rows

    def route_path(self, route: CityRoute) -> list[Coordinate]:
        """
        Concatenate the stored paths between consecutive stations of a route.

        A pair stored only in the opposite direction is walked backwards, a
        pair stored in neither direction contributes nothing.
        """
        if route.line_index < 0:
            return []

        paths = self.city.line_for(route).station_paths
        points: list[Coordinate] = []

        for here, there in zip(route.station_indices, route.station_indices[1:]):
            here_code = self.city.stations[here].code
            there_code = self.city.stations[there].code

            forward = paths.get((here_code, there_code))
            if forward is not None:
                points.extend(forward)
                continue

            backward = paths.get((there_code, here_code))
            if backward is None:
                logger.debug(f"Route {route.code}: no path between {here_code} and {there_code}")
                continue
            points.extend(reversed(backward))

        return points

    def build_shapes(self) -> list[ShapePoint]:
        rows: list[ShapePoint] = []

        for route in self.routes_with_trips():
            for sequence, point in enumerate(self.route_path(route)):
                rows.append(
                    ShapePoint(
                        shape_id=shape_id(route.code),
                        shape_pt_lat=point.lat,
                        shape_pt_lon=point.lng,
                        shape_pt_sequence=sequence,
                    )
                )

        return rows

    def build_stop_times(self) -> list[StopTime]:
        """Stop times in trip order; arrival and departure share the visit minute."""
        rows: list[StopTime] = []

        for route in self.routes_with_trips():
            for schedule_code, trips in zip(route.schedule_codes, route.trips):
                for n, trip in enumerate(sorted_trips(trips)):
                    current_trip_id = trip_id(route.code, schedule_code, n)
                    for sequence, visit in enumerate(trip.visits):
                        seconds = visit.minutes * 60
                        rows.append(
                            StopTime(
                                trip_id=current_trip_id,
                                arrival_time=seconds,
                                departure_time=seconds,
                                stop_id=self.city.stations[visit.station_index].code,
                                stop_sequence=sequence,
                            )
                        )

        return rows

    def _fare_pairs(self) -> Iterator[tuple[str, str, str, int]]:
        """Yield (fare_id, origin code, destination code, price) for every matrix cell."""
        for matrix in self.city.fare_matrices:
            codes = [self.city.stations[index].code for index in matrix.station_indices]
            for x, origin in enumerate(codes):
                for y, destination in enumerate(codes):
                    yield f"fare_{origin}_{destination}", origin, destination, matrix.prices[x][y]

    def build_fare_rules(self) -> list[FareRule]:
        """Fares v1 rules, one per ordered station pair including same-station trips."""
        return [
            FareRule(
                fare_id=fare_id,
                route_id="",
                origin_id=zone_id(origin),
                destination_id=zone_id(destination),
            )
            for fare_id, origin, destination, _ in self._fare_pairs()
        ]

    def build_fare_attributes(self) -> list[FareAttribute]:
        return [
            FareAttribute(fare_id=fare_id, price=price)
            for fare_id, _, _, price in self._fare_pairs()
        ]

    def build_all(self) -> dict[str, list]:
        """Every table keyed by its GTFS file name."""
        logger.info(f"Building GTFS tables for {self.city.code}")
        tables = {
            "agency.txt": self.build_agency(),
            "stops.txt": self.build_stops(),
            "routes.txt": self.build_routes(),
            "calendar.txt": self.build_calendar(),
            "calendar_dates.txt": self.build_calendar_dates(),
            "trips.txt": self.build_trips(),
            "shapes.txt": self.build_shapes(),
            "stop_times.txt": self.build_stop_times(),
            "fare_rules.txt": self.build_fare_rules(),
            "fare_attributes.txt": self.build_fare_attributes(),
        }
        for name, rows in tables.items():
            logger.debug(f"  {name}: {len(rows)} rows")
        return tables

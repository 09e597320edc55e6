"""Trip reconstruction from segmented route timetables."""

import logging
from dataclasses import dataclass, field

from china_gtfs.metroman.models import City, Route, StationVisit, Trip
from china_gtfs.transform.timetable import HopTable, ScheduleTable, segment_timetable

logger = logging.getLogger(__name__)


@dataclass
class _OpenTrip:
    visits: list[StationVisit] = field(default_factory=list)
    ended: bool = False

    def close(self) -> Trip:
        return Trip(visits=tuple(self.visits))


def build_schedule_positions(station_indices: list[int]) -> dict[int, int]:
    """
    Map each station (except the terminal one) to the position of its hop.

    Timing tables store hops sorted by station index rather than in route
    order, and the terminal station has no outgoing hop.
    """
    return {index: rank for rank, index in enumerate(sorted(station_indices[:-1]))}


def _hop_cell(table: ScheduleTable, position: int | None) -> HopTable:
    if position is None or position >= len(table):
        return {}
    return table[position]


def reconstruct_trips(
    station_indices: list[int],
    schedule_positions: dict[int, int],
    table: ScheduleTable,
) -> list[Trip]:
    """
    Recover trips for one schedule by walking hops in route order.

    A record continues a trip when its departure minute equals the arrival
    minute a still-open trip reached in the previous hop. Every other record
    starts a new trip at the current station. Trips not continued in a hop are
    closed for good, which covers trains terminating short of the last station.

    Records sharing an arrival minute are resolved in table iteration order,
    so trip identity is only stable for identically ordered input.
    """
    trips: list[_OpenTrip] = []
    arrival_index: dict[int, int] = {}  # arrival minute at next station -> trip position

    for hop in range(len(station_indices) - 1):
        position = schedule_positions.get(station_indices[hop])
        cell = _hop_cell(table, position)
        if not cell:
            logger.debug(f"No timing records for hop {hop} (table position {position})")

        ended_before = [trip.ended for trip in trips]
        for trip in trips:
            trip.ended = True

        previous_index = arrival_index
        arrival_index = {}
        current_station = station_indices[hop]
        next_station = station_indices[hop + 1]

        for arrive_next_min, depart_min in cell.items():
            trip_pos = previous_index.pop(depart_min, None) if hop > 0 else None

            if trip_pos is not None and not ended_before[trip_pos]:
                trip = trips[trip_pos]
                trip.visits.append(StationVisit(next_station, arrive_next_min))
                trip.ended = False
            else:
                trips.append(
                    _OpenTrip(
                        visits=[
                            StationVisit(current_station, depart_min),
                            StationVisit(next_station, arrive_next_min),
                        ]
                    )
                )
                trip_pos = len(trips) - 1

            arrival_index[arrive_next_min] = trip_pos

    return [trip.close() for trip in trips]


def build_route_trips(route: Route, records: list[tuple[int, int]]) -> list[list[Trip]]:
    """Segment a route's timing records and reconstruct trips per schedule."""
    tables = segment_timetable(records, route.hop_count, len(route.schedule_codes))

    if len(tables) != len(route.schedule_codes):
        logger.warning(
            f"Route {route.code}: timing table yields {len(tables)} schedule blocks "
            f"for {len(route.schedule_codes)} assigned schedules"
        )
        tables = tables[: len(route.schedule_codes)]

    trips_by_schedule = [
        reconstruct_trips(route.station_indices, route.schedule_positions, table)
        for table in tables
    ]

    # Keep one (possibly empty) trip list per assigned schedule
    while len(trips_by_schedule) < len(route.schedule_codes):
        trips_by_schedule.append([])

    return trips_by_schedule


def build_trips(city: City, timings: dict[str, list[tuple[int, int]]]) -> None:
    """Reconstruct trips for every route of a city that has a timing table."""
    logger.info("Reconstructing trips")

    for route in city.routes:
        records = timings.get(route.code)
        if records is None:
            route.trips = [[] for _ in route.schedule_codes]
            continue

        route.trips = build_route_trips(route, records)
        logger.debug(
            f"Route {route.code}: {sum(len(t) for t in route.trips)} trips "
            f"from {len(records)} timing records"
        )

    for route in city.routes:
        drop_unknown_schedules(city, route)

    total_trips = sum(len(trips) for route in city.routes for trips in route.trips)
    logger.info(f"Reconstructed {total_trips} trips across {len(city.routes)} routes")


def drop_unknown_schedules(city: City, route: Route) -> None:
    """
    Remove schedule codes the city does not define, with their trips.

    Segmentation still counts every assigned code, so the remaining timing
    blocks stay paired with the schedules they were written for.
    """
    kept = [i for i, code in enumerate(route.schedule_codes) if code in city.schedules]
    if len(kept) == len(route.schedule_codes):
        return

    dropped = [code for code in route.schedule_codes if code not in city.schedules]
    logger.warning(f"Route {route.code}: dropping trips of unknown schedules {dropped}")
    route.schedule_codes = [route.schedule_codes[i] for i in kept]
    route.trips = [route.trips[i] for i in kept]

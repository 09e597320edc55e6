"""Segmentation of a route's flat timing dump into per-schedule hop tables.

A timing table is a flat list of ``departure,next_arrival`` minute pairs. The
result of segmentation is indexed ``[schedule][hop]`` and each cell maps the
arrival minute at the next station to the departure minute at this one.
"""

import logging

from china_gtfs.metroman.fields import field_at, parse_int

logger = logging.getLogger(__name__)

HopTable = dict[int, int]  # next-station arrival minute -> departure minute
ScheduleTable = list[HopTable]


def parse_timing_records(rows: list[list[str]]) -> list[tuple[int, int]]:
    """Convert raw timing rows into (departure_minute, next_arrival_minute) pairs."""
    return [(parse_int(field_at(row, 0)), parse_int(field_at(row, 1))) for row in rows]


def segment_timetable(
    records: list[tuple[int, int]], hop_count: int, schedule_count: int
) -> list[ScheduleTable]:
    """
    Split timing records into one hop table list per schedule.

    When the record count is exactly hop_count * schedule_count every hop is
    assumed to hold a single record. Otherwise hop and schedule boundaries are
    detected from departure minutes wrapping around.

    Args:
        records: (departure_minute, next_arrival_minute) pairs in file order
        hop_count: number of station adjacencies on the route
        schedule_count: number of schedules assigned to the route

    Returns:
        List indexed [schedule][hop]
    """
    if hop_count <= 0:
        if records:
            logger.warning(f"Ignoring {len(records)} timing records for a route without hops")
        return []

    if len(records) == hop_count * schedule_count:
        return _segment_fixed(records, hop_count, schedule_count)
    return _segment_by_wraparound(records, hop_count)


def _segment_fixed(
    records: list[tuple[int, int]], hop_count: int, schedule_count: int
) -> list[ScheduleTable]:
    """One record per hop per schedule, consumed in order."""
    tables: list[ScheduleTable] = []
    position = 0
    for _ in range(schedule_count):
        table: ScheduleTable = []
        for _ in range(hop_count):
            depart_min, arrive_next_min = records[position]
            table.append({arrive_next_min: depart_min})
            position += 1
        tables.append(table)
    return tables


def _segment_by_wraparound(records: list[tuple[int, int]], hop_count: int) -> list[ScheduleTable]:
    """Start a new hop (or schedule, once all hops are present) whenever departures decrease."""
    tables: list[ScheduleTable] = []
    if not records:
        return tables

    table: ScheduleTable = [{}]
    hop = 0
    last_depart_min = 0

    for depart_min, arrive_next_min in records:
        if depart_min < last_depart_min:
            if len(table) == hop_count:
                tables.append(table)
                table = [{}]
                hop = 0
            else:
                hop += 1
                table.append({})

        table[hop][arrive_next_min] = depart_min
        last_depart_min = depart_min

    tables.append(table)
    return tables

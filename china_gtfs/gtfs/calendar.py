"""Service calendar projection of MetroMan schedules."""

import logging

from china_gtfs.gtfs.models import Calendar, CalendarDate
from china_gtfs.metroman.models import Holiday, Schedule

logger = logging.getLogger(__name__)

# Open-ended validity; MetroMan schedules carry no date range
SERVICE_START_DATE = "20000101"
SERVICE_END_DATE = "99991231"

EXCEPTION_ADDED = 1
EXCEPTION_REMOVED = 2


def combine_schedules(schedules: list[Schedule]) -> Schedule:
    """
    OR-combine several schedules into one.

    Day bits and the holiday flag are set when set on any input, and the codes
    are joined with underscores.
    """
    if not schedules:
        raise ValueError("Cannot combine an empty list of schedules")

    days = tuple(
        1 if any(schedule.days_of_week[day] for schedule in schedules) else 0 for day in range(7)
    )
    return Schedule(
        code="_".join(schedule.code for schedule in schedules),
        days_of_week=days,  # type: ignore[arg-type]
        holidays=any(schedule.holidays for schedule in schedules),
    )


def build_calendar(schedules: list[Schedule]) -> list[Calendar]:
    """
    Build calendar rows.

    A schedule gets a row when it runs on at least one weekday or on holidays,
    since holiday-only services still need a calendar entry to reference.
    """
    rows: list[Calendar] = []

    for schedule in schedules:
        if not (schedule.runs_any_day() or schedule.holidays):
            logger.debug(f"Schedule {schedule.code} never runs, no calendar row")
            continue

        mon, tue, wed, thu, fri, sat, sun = schedule.days_of_week
        rows.append(
            Calendar(
                service_id=schedule.code,
                monday=mon,
                tuesday=tue,
                wednesday=wed,
                thursday=thu,
                friday=fri,
                saturday=sat,
                sunday=sun,
                start_date=SERVICE_START_DATE,
                end_date=SERVICE_END_DATE,
            )
        )

    return rows


def build_calendar_dates(schedules: list[Schedule], holidays: list[Holiday]) -> list[CalendarDate]:
    """
    Build calendar exceptions: every holiday adds service to holiday schedules
    and removes it from all others.
    """
    rows: list[CalendarDate] = []

    for schedule in schedules:
        exception_type = EXCEPTION_ADDED if schedule.holidays else EXCEPTION_REMOVED
        for holiday in holidays:
            rows.append(
                CalendarDate(
                    service_id=schedule.code,
                    date=holiday.as_gtfs_date(),
                    exception_type=exception_type,
                )
            )

    logger.debug(f"Built {len(rows)} calendar exceptions for {len(holidays)} holidays")
    return rows

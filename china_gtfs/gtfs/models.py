"""GTFS row models and pipeline configuration.

Field names of the row dataclasses double as the column names of the emitted
tables.
"""

from dataclasses import dataclass, field
from typing import Any

from china_gtfs.metroman.client import DEFAULT_BASE_URL

TIMEZONE = "Asia/Shanghai"


@dataclass(frozen=True)
class Agency:
    """GTFS agency."""

    agency_id: str
    agency_name: str
    agency_url: str
    agency_timezone: str = TIMEZONE
    agency_lang: str = "zh"
    agency_phone: str = ""


@dataclass(frozen=True)
class Stop:
    """GTFS stop with WGS-84 coordinates."""

    stop_id: str
    stop_code: str
    stop_name: str
    stop_lat: float
    stop_lon: float
    zone_id: str
    stop_url: str = ""
    location_type: int = 0
    stop_timezone: str = TIMEZONE
    wheelchair_boarding: int = 0


@dataclass(frozen=True)
class Route:
    """GTFS route."""

    agency_id: str
    route_id: str
    route_short_name: str
    route_long_name: str
    route_type: int = 2  # rail
    route_url: str = ""
    route_color: str = ""
    route_text_color: str = "000000"


@dataclass(frozen=True)
class Calendar:
    """GTFS calendar entry."""

    service_id: str
    monday: int
    tuesday: int
    wednesday: int
    thursday: int
    friday: int
    saturday: int
    sunday: int
    start_date: str
    end_date: str


@dataclass(frozen=True)
class CalendarDate:
    """GTFS calendar exception. exception_type 1 adds service, 2 removes it."""

    service_id: str
    date: str
    exception_type: int


@dataclass(frozen=True)
class Trip:
    """GTFS trip."""

    route_id: str
    service_id: str
    trip_id: str
    trip_headsign: str
    direction_id: int
    shape_id: str


@dataclass(frozen=True)
class ShapePoint:
    """GTFS shape point."""

    shape_id: str
    shape_pt_lat: float
    shape_pt_lon: float
    shape_pt_sequence: int


@dataclass(frozen=True)
class StopTime:
    """GTFS stop time."""

    trip_id: str
    arrival_time: int  # seconds since midnight
    departure_time: int  # seconds since midnight
    stop_id: str
    stop_sequence: int
    timepoint: int = 1


@dataclass(frozen=True)
class FareRule:
    """GTFS fare rule (fares v1)."""

    fare_id: str
    route_id: str
    origin_id: str
    destination_id: str
    contains_id: str = ""


@dataclass(frozen=True)
class FareAttribute:
    """GTFS fare attribute (fares v1)."""

    fare_id: str
    price: int
    currency_type: str = "CNY"
    payment_method: int = 1
    transfers: int = 0
    agency_id: str = ""
    transfer_duration: str = ""


@dataclass
class Manifest:
    """Build manifest with metadata and checksums."""

    schema_version: int
    tool_version: str
    created_at_iso: str
    inputs: dict[str, Any]
    outputs: dict[str, str]  # filename -> sha256
    stats: dict[str, int]
    build: dict[str, str]


@dataclass
class ValidationReport:
    """Report from validation process."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)


@dataclass
class ConvertConfig:
    """Configuration for conversion process."""

    city_code: str
    output_path: str = "./build"
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    debug_json: bool = False
    use_cache: bool = True
    keep_archive: bool = True
    station_geometries_path: str | None = None
    agency_name: str | None = None
    agency_url: str = "https://tgrcode.com/"
    jobs: int = 1

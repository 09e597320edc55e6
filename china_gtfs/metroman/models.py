"""Data models for the MetroMan entity graph of one city."""

from dataclasses import dataclass, field

from china_gtfs.geo.coordinates import Coordinate

# uno.csv type tags
STATION_TAGS = ("MS",)
LINE_TAGS = ("ML", "WL")  # metro line, walking line
ROUTE_TAGS = ("MW", "WW")  # metro route, walking connector


@dataclass(frozen=True)
class Station:
    """Station with WGS-84 position and a load-time index."""

    code: str
    index: int
    english_name: str
    simplified_name: str
    traditional_name: str = ""
    japanese_name: str = ""
    english_short_name: str = ""
    short_name: str = ""
    lat: float = 0.0
    lng: float = 0.0
    map_x: int = 0
    map_y: int = 0


@dataclass
class Line:
    """Physical line with its stations in topological order."""

    code: str
    english_name: str
    simplified_name: str
    traditional_name: str = ""
    japanese_name: str = ""
    short_name: str = ""
    color: str = ""
    is_walking: bool = False
    station_indices: list[int] = field(default_factory=list)
    # (from_station_code, to_station_code) -> polyline between them
    station_paths: dict[tuple[str, str], list[Coordinate]] = field(default_factory=dict)


@dataclass(frozen=True)
class Schedule:
    """Service calendar definition. days_of_week starts on Monday."""

    code: str
    days_of_week: tuple[int, int, int, int, int, int, int]
    holidays: bool

    def runs_any_day(self) -> bool:
        return any(self.days_of_week)


@dataclass(frozen=True)
class StationVisit:
    """One stop of a trip. Arrival and departure share a single minute."""

    station_index: int
    minutes: int


@dataclass(frozen=True)
class Trip:
    """A reconstructed vehicle journey."""

    visits: tuple[StationVisit, ...]

    @property
    def first_minute(self) -> int:
        return self.visits[0].minutes


@dataclass
class Route:
    """One direction of travel along a line, with trips per schedule."""

    code: str
    english_name: str
    simplified_name: str
    traditional_name: str = ""
    japanese_name: str = ""
    is_walking: bool = False
    station_indices: list[int] = field(default_factory=list)
    line_index: int = -1
    index_within_line: int = 0
    schedule_codes: list[str] = field(default_factory=list)
    # station index -> position of that station's hop in the timing table
    schedule_positions: dict[int, int] = field(default_factory=dict)
    # one list of trips per entry of schedule_codes
    trips: list[list[Trip]] = field(default_factory=list)

    @property
    def hop_count(self) -> int:
        return max(len(self.station_indices) - 1, 0)

    def has_trips(self) -> bool:
        return any(self.trips)


@dataclass(frozen=True)
class Holiday:
    """Calendar date on which holiday schedules apply."""

    year: int
    month: int
    day: int

    def as_gtfs_date(self) -> str:
        return f"{self.year:04d}{self.month:02d}{self.day:02d}"


@dataclass
class FareMatrix:
    """Prices between stations; prices[origin][destination] by list position."""

    station_indices: list[int]
    prices: list[list[int]]
    route_codes: list[str] = field(default_factory=list)


@dataclass
class City:
    """Index-addressed arenas for one loaded city."""

    code: str
    version: str
    stations: list[Station] = field(default_factory=list)
    lines: list[Line] = field(default_factory=list)
    routes: list[Route] = field(default_factory=list)
    schedules: dict[str, Schedule] = field(default_factory=dict)
    holidays: list[Holiday] = field(default_factory=list)
    fare_matrices: list[FareMatrix] = field(default_factory=list)
    stations_by_code: dict[str, int] = field(default_factory=dict)
    lines_by_code: dict[str, int] = field(default_factory=dict)
    routes_by_code: dict[str, int] = field(default_factory=dict)

    def station(self, code: str) -> Station:
        return self.stations[self.stations_by_code[code]]

    def line(self, code: str) -> Line:
        return self.lines[self.lines_by_code[code]]

    def route(self, code: str) -> Route:
        return self.routes[self.routes_by_code[code]]

    def line_for(self, route: Route) -> Line:
        return self.lines[route.line_index]

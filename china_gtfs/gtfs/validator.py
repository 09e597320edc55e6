"""Consistency checks on a loaded city."""

import logging

from china_gtfs.gtfs.models import ValidationReport
from china_gtfs.metroman.models import City

logger = logging.getLogger(__name__)


class CityValidator:
    """Validate a City graph before it is projected to GTFS."""

    def __init__(self, city: City) -> None:
        """Initialize validator with a loaded city."""
        self.city = city
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def validate(self) -> ValidationReport:
        """Run all validation checks."""
        logger.info(f"Validating city {self.city.code}")

        self._validate_stations()
        self._validate_routes()
        self._validate_schedules()
        self._validate_trips()
        self._validate_fares()

        valid = len(self.errors) == 0

        stats = {
            "stations": len(self.city.stations),
            "lines": len(self.city.lines),
            "routes": len(self.city.routes),
            "schedules": len(self.city.schedules),
            "trips": sum(len(trips) for route in self.city.routes for trips in route.trips),
            "fare_matrices": len(self.city.fare_matrices),
        }

        report = ValidationReport(
            valid=valid,
            errors=self.errors.copy(),
            warnings=self.warnings.copy(),
            stats=stats,
        )

        if not valid:
            logger.error(f"Validation failed with {len(self.errors)} errors")
        elif self.warnings:
            logger.warning(f"Validation passed with {len(self.warnings)} warnings")
        else:
            logger.info("Validation passed")

        return report

    def _validate_stations(self) -> None:
        """Validate stations have valid coordinates."""
        if not self.city.stations:
            self.errors.append("No stations found in archive")

        for station in self.city.stations:
            if not (-90 <= station.lat <= 90):
                self.errors.append(f"Station {station.code} has invalid latitude: {station.lat}")
            if not (-180 <= station.lng <= 180):
                self.errors.append(f"Station {station.code} has invalid longitude: {station.lng}")
            if station.lat == 0 and station.lng == 0:
                self.warnings.append(f"Station {station.code} has no coordinates")
            if not station.english_name and not station.simplified_name:
                self.warnings.append(f"Station {station.code} has empty name")

    def _validate_routes(self) -> None:
        """Validate routes belong to a line and stay on its stations."""
        for route in self.city.routes:
            if route.line_index < 0:
                self.warnings.append(f"Route {route.code} is not attached to a line")
                continue
            if len(route.station_indices) < 2:
                self.warnings.append(f"Route {route.code} has fewer than two stations")

            line = self.city.line_for(route)
            line_stations = set(line.station_indices)
            off_line = [i for i in route.station_indices if i not in line_stations]
            if off_line:
                codes = [self.city.stations[i].code for i in off_line]
                self.warnings.append(
                    f"Route {route.code} visits stations not on line {line.code}: {codes}"
                )

    def _validate_schedules(self) -> None:
        """Validate schedule references resolve."""
        for route in self.city.routes:
            for code in route.schedule_codes:
                if code not in self.city.schedules:
                    self.warnings.append(f"Route {route.code} references unknown schedule {code}")

            if route.trips and len(route.trips) != len(route.schedule_codes):
                self.errors.append(
                    f"Route {route.code} has {len(route.trips)} trip lists "
                    f"for {len(route.schedule_codes)} schedules"
                )

    def _validate_trips(self) -> None:
        """Validate every trip follows consecutive hops of its route."""
        for route in self.city.routes:
            hops = set(zip(route.station_indices, route.station_indices[1:]))

            for schedule_trips in route.trips:
                for trip in schedule_trips:
                    if len(trip.visits) < 2:
                        self.errors.append(f"Route {route.code} has a trip with a single visit")
                        continue

                    for prev, curr in zip(trip.visits, trip.visits[1:]):
                        if (prev.station_index, curr.station_index) not in hops:
                            self.errors.append(
                                f"Route {route.code} trip starting at minute "
                                f"{trip.first_minute} leaves route order between stations "
                                f"{prev.station_index} and {curr.station_index}"
                            )
                            break
                        if curr.minutes < prev.minutes:
                            self.warnings.append(
                                f"Route {route.code} trip starting at minute "
                                f"{trip.first_minute} goes back in time at station "
                                f"{curr.station_index}"
                            )

    def _validate_fares(self) -> None:
        """Validate fare matrix dimensions equal their station list length."""
        for i, matrix in enumerate(self.city.fare_matrices):
            size = len(matrix.station_indices)
            if len(matrix.prices) != size or any(len(row) != size for row in matrix.prices):
                self.errors.append(
                    f"Fare matrix {i} is {len(matrix.prices)} rows for {size} stations"
                )

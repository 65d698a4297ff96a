"""Feed checks run before any pattern is extracted."""

import logging

from gtfs_git.gtfs.models import Stop, StopTime, ValidationReport
from gtfs_git.gtfs.reader import GTFSReader

logger = logging.getLogger(__name__)


class GTFSValidator:
    """
    Check that a loaded feed can be turned into a stop graph.

    Errors are broken references and impossible values that would make the
    graph meaningless. Warnings flag data that still builds but loses
    something: unnamed stops, lines without trips, trips the builder will
    reject as circular.
    """

    def __init__(self, reader: GTFSReader) -> None:
        self.reader = reader
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def validate(self) -> ValidationReport:
        """Run every check and return the report."""
        logger.info("Validating GTFS data")

        stop_times_by_trip = self.reader.stop_times_by_trip()
        self._check_stops()
        self._check_routes()
        self._check_trips(stop_times_by_trip)
        trip_ids = {trip.trip_id for trip in self.reader.trips}
        stops = self.reader.stops_by_id
        for trip_id, stop_times in stop_times_by_trip.items():
            if trip_id not in trip_ids:
                self.errors.append(f"Stop times reference non-existent trip {trip_id}")
                continue
            self._check_trip_stop_times(trip_id, stop_times, stops)

        report = ValidationReport(
            valid=not self.errors,
            errors=list(self.errors),
            warnings=list(self.warnings),
            stats={
                "stops": len(self.reader.stops),
                "stations": len(set(self.reader.platform_map.values())),
                "routes": len(self.reader.routes),
                "trips": len(self.reader.trips),
                "stop_times": len(self.reader.stop_times),
            },
        )

        if self.errors:
            logger.error(f"Validation failed with {len(self.errors)} errors")
        elif self.warnings:
            logger.warning(f"Validation passed with {len(self.warnings)} warnings")
        else:
            logger.info("Validation passed")
        return report

    def _warn(self, message: str) -> None:
        logger.debug(message)
        self.warnings.append(message)

    def _check_stops(self) -> None:
        stop_ids: set[str] = set()
        for stop in self.reader.stops:
            if stop.stop_id in stop_ids:
                self.errors.append(f"Stop {stop.stop_id} is defined more than once")
            stop_ids.add(stop.stop_id)

            if not -90 <= stop.lat <= 90:
                self.errors.append(f"Stop {stop.stop_id} has invalid latitude: {stop.lat}")
            if not -180 <= stop.lon <= 180:
                self.errors.append(f"Stop {stop.stop_id} has invalid longitude: {stop.lon}")
            if stop.name == stop.stop_id:
                self._warn(f"Stop {stop.stop_id} has empty name, using its id")

        for stop in self.reader.stops:
            if stop.parent_station and stop.parent_station not in stop_ids:
                self._warn(
                    f"Stop {stop.stop_id} has unknown parent station {stop.parent_station}"
                )

    def _check_routes(self) -> None:
        if not self.reader.routes:
            self.errors.append("No routes found in GTFS data")
            return

        served = {trip.route_id for trip in self.reader.trips}
        for route in self.reader.routes:
            if route.route_id not in served:
                self._warn(f"Line {route.route_id} has no trips and gets no branch")
            if not route.route_short_name and not route.route_long_name:
                self._warn(f"Line {route.route_id} has no name, its branches use the id")

    def _check_trips(self, stop_times_by_trip: dict[str, list[StopTime]]) -> None:
        route_ids = {route.route_id for route in self.reader.routes}
        for trip in self.reader.trips:
            if trip.route_id not in route_ids:
                self.errors.append(
                    f"Trip {trip.trip_id} references non-existent route {trip.route_id}"
                )
            elif trip.trip_id not in stop_times_by_trip:
                self._warn(f"Trip {trip.trip_id} has no stop times")

    def _check_trip_stop_times(
        self, trip_id: str, stop_times: list[StopTime], stops: dict[str, Stop]
    ) -> None:
        sequences = [st.stop_sequence for st in stop_times]
        if len(set(sequences)) != len(sequences):
            self.errors.append(f"Trip {trip_id} has duplicate stop_sequence values: {sequences}")

        visited: set[str] = set()
        previous_stop = None
        previous_time = -1
        for st in stop_times:
            if st.stop_id not in stops:
                self.errors.append(
                    f"Stop time for trip {trip_id} references non-existent stop {st.stop_id}"
                )

            # Consecutive rows for one stop are collapsed into a single visit
            if st.stop_id != previous_stop:
                if st.stop_id in visited:
                    self._warn(
                        f"Trip {trip_id} revisits stop {st.stop_id}, its line variant is circular"
                    )
                visited.add(st.stop_id)
            previous_stop = st.stop_id

            if 0 <= st.arrival_time < previous_time:
                self._warn(
                    f"Trip {trip_id} has non-increasing times at stop {st.stop_id}: "
                    f"{previous_time} -> {st.arrival_time}"
                )
            if st.departure_time >= 0:
                previous_time = st.departure_time

        if stop_times[0].arrival_time < 0:
            self._warn(f"Trip {trip_id} has no time at its first stop, offsets start at 0")

"""GTFS data reader and normalizer."""

import csv
import logging
from pathlib import Path

from gtfs_git.gtfs.models import Route, Stop, StopTime, Trip

logger = logging.getLogger(__name__)


class GTFSReader:
    """Read and normalize GTFS feed from directory."""

    def __init__(self, gtfs_path: str, merge_platforms: bool = False) -> None:
        """Initialize reader with GTFS directory path."""
        self.gtfs_path = Path(gtfs_path)
        if not self.gtfs_path.is_dir():
            raise ValueError(f"GTFS path not found or not a directory: {gtfs_path}")

        self.merge_platforms = merge_platforms

        # Platform stop_id -> parent station stop_id, filled when merging
        self.platform_map: dict[str, str] = {}

        # Data storage
        self.stops: list[Stop] = []
        self.routes: list[Route] = []
        self.trips: list[Trip] = []
        self.stop_times: list[StopTime] = []

        self._stops_by_id: dict[str, Stop] = {}

    def read_all(self) -> None:
        """Read all GTFS files."""
        logger.info(f"Reading GTFS data from {self.gtfs_path}")
        self.read_stops()
        self.read_routes()
        self.read_trips()
        self.read_stop_times()
        logger.info(
            f"Loaded {len(self.stops)} stops, {len(self.routes)} routes, "
            f"{len(self.trips)} trips, {len(self.stop_times)} stop_times"
        )

    def read_stops(self) -> None:
        """Read stops.txt, sorted by stop_id."""
        file_path = self._require("stops.txt")

        stops_raw: list[Stop] = []
        with open(file_path, encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            for row in reader:
                stop_id = row["stop_id"]
                stops_raw.append(
                    Stop(
                        stop_id=stop_id,
                        name=row.get("stop_name", "") or stop_id,
                        lat=float(row["stop_lat"]),
                        lon=float(row["stop_lon"]),
                        parent_station=row.get("parent_station", "") or "",
                    )
                )

        stops_raw.sort(key=lambda s: s.stop_id)
        self.stops = stops_raw
        self._stops_by_id = {stop.stop_id: stop for stop in stops_raw}

        if self.merge_platforms:
            for stop in stops_raw:
                if stop.parent_station and stop.parent_station in self._stops_by_id:
                    self.platform_map[stop.stop_id] = stop.parent_station
            logger.info(f"Merging {len(self.platform_map)} platforms into parent stations")

    def read_routes(self) -> None:
        """Read routes.txt, sorted by route_id."""
        file_path = self._require("routes.txt")

        routes_raw: list[Route] = []
        with open(file_path, encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            for row in reader:
                routes_raw.append(
                    Route(
                        route_id=row["route_id"],
                        route_short_name=row.get("route_short_name", "") or "",
                        route_long_name=row.get("route_long_name", "") or "",
                        route_type=int(row.get("route_type", "") or 3),
                    )
                )

        routes_raw.sort(key=lambda r: r.route_id)
        self.routes = routes_raw

    def read_trips(self) -> None:
        """Read trips.txt, sorted by trip_id."""
        file_path = self._require("trips.txt")

        trips_raw: list[Trip] = []
        with open(file_path, encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            for row in reader:
                trips_raw.append(
                    Trip(
                        trip_id=row["trip_id"],
                        route_id=row["route_id"],
                        service_id=row.get("service_id", ""),
                        direction_id=int(row.get("direction_id", "") or 0),
                    )
                )

        trips_raw.sort(key=lambda t: t.trip_id)
        self.trips = trips_raw

    def read_stop_times(self) -> None:
        """Read stop_times.txt and normalize times."""
        file_path = self._require("stop_times.txt")

        stop_times_raw: list[StopTime] = []
        with open(file_path, encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            for row in reader:
                arrival = row.get("arrival_time", "").strip()
                departure = row.get("departure_time", "").strip()
                # Non-timepoint stops may leave one of the two times empty
                arrival = arrival or departure
                departure = departure or arrival

                stop_times_raw.append(
                    StopTime(
                        trip_id=row["trip_id"],
                        stop_id=self.platform_map.get(row["stop_id"], row["stop_id"]),
                        arrival_time=self._parse_time(arrival) if arrival else -1,
                        departure_time=self._parse_time(departure) if departure else -1,
                        stop_sequence=int(row["stop_sequence"]),
                    )
                )

        # Sort by trip_id, then stop_sequence for normalization
        stop_times_raw.sort(key=lambda st: (st.trip_id, st.stop_sequence))
        self.stop_times = stop_times_raw

    def _require(self, filename: str) -> Path:
        file_path = self.gtfs_path / filename
        if not file_path.exists():
            raise FileNotFoundError(f"Required file not found: {file_path}")
        return file_path

    @staticmethod
    def _parse_time(time_str: str) -> int:
        """Parse HH:MM:SS to seconds since midnight, supporting >24h."""
        parts = time_str.strip().split(":")
        if len(parts) != 3:
            raise ValueError(f"Invalid time format: {time_str}")

        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = int(parts[2])

        return hours * 3600 + minutes * 60 + seconds

    @property
    def stops_by_id(self) -> dict[str, Stop]:
        return dict(self._stops_by_id)

    def stop_times_by_trip(self) -> dict[str, list[StopTime]]:
        """Group stop times by trip, each list ordered by stop_sequence."""
        grouped: dict[str, list[StopTime]] = {}
        for st in self.stop_times:
            if st.trip_id not in grouped:
                grouped[st.trip_id] = []
            grouped[st.trip_id].append(st)
        return grouped

    def trips_by_route(self) -> dict[str, list[Trip]]:
        """Group trips by route_id."""
        grouped: dict[str, list[Trip]] = {}
        for trip in self.trips:
            if trip.route_id not in grouped:
                grouped[trip.route_id] = []
            grouped[trip.route_id].append(trip)
        return grouped

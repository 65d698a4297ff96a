"""Pattern extraction: distinct stop sequences per line."""

import logging

from gtfs_git.errors import DuplicateIgnored
from gtfs_git.gtfs.models import Pattern, StopTime, Trip

logger = logging.getLogger(__name__)


def extract_patterns(
    route_id: str,
    trips: list[Trip],
    stop_times_by_trip: dict[str, list[StopTime]],
) -> tuple[list[Pattern], list[DuplicateIgnored]]:
    """
    Reduce the trips of one line to its distinct stop sequences.

    Trips are visited by (direction_id, trip_id); a pattern's index is the
    order in which its sequence first appears and its offsets come from that
    first trip. Later trips with the same sequence are reported as duplicates.
    """
    patterns: list[Pattern] = []
    duplicates: list[DuplicateIgnored] = []
    seen: dict[tuple[str, ...], Pattern] = {}
    trips_of: dict[tuple[str, ...], list[str]] = {}

    for trip in sorted(trips, key=lambda t: (t.direction_id, t.trip_id)):
        stop_times = stop_times_by_trip.get(trip.trip_id)
        if not stop_times:
            logger.warning(f"Trip {trip.trip_id} has no stop times, skipping")
            continue

        stops = _stops_with_offsets(stop_times)
        sequence = tuple(stop_id for stop_id, _ in stops)

        if sequence in seen:
            duplicate = DuplicateIgnored(
                route_id=route_id,
                trip_id=trip.trip_id,
                pattern_index=seen[sequence].pattern_index,
            )
            logger.debug(duplicate.message())
            duplicates.append(duplicate)
            trips_of[sequence].append(trip.trip_id)
            continue

        pattern = Pattern(
            route_id=route_id,
            pattern_index=len(patterns),
            stops=stops,
        )
        seen[sequence] = pattern
        trips_of[sequence] = [trip.trip_id]
        patterns.append(pattern)

    patterns = [
        Pattern(
            route_id=p.route_id,
            pattern_index=p.pattern_index,
            stops=p.stops,
            trip_ids=tuple(trips_of[p.stop_ids]),
        )
        for p in patterns
    ]

    if duplicates:
        logger.info(
            f"Line {route_id}: {len(patterns)} patterns, "
            f"{len(duplicates)} duplicate trips ignored"
        )
    else:
        logger.debug(f"Line {route_id}: {len(patterns)} patterns")

    return patterns, duplicates


def _stops_with_offsets(stop_times: list[StopTime]) -> tuple[tuple[str, int], ...]:
    """Ordered (stop_id, offset) pairs; repeated consecutive rows for a stop collapse."""
    stops: list[tuple[str, int]] = []
    last_time = 0

    for st in stop_times:
        # Untimed stops inherit the previous known time
        offset = st.arrival_time if st.arrival_time >= 0 else last_time
        last_time = offset
        if stops and stops[-1][0] == st.stop_id:
            continue
        stops.append((st.stop_id, offset))

    return tuple(stops)

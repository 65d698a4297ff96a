"""Public API for gtfs-git."""

import logging
from datetime import UTC, datetime
from pathlib import Path

from git import Repo
from git.exc import GitError

from gtfs_git.graph.builder import GraphBuilder
from gtfs_git.graph.index import NodeIndex
from gtfs_git.gtfs.models import BuildConfig, BuildReport, Pattern, ValidationReport
from gtfs_git.gtfs.reader import GTFSReader
from gtfs_git.gtfs.selection import select_routes
from gtfs_git.gtfs.validator import GTFSValidator
from gtfs_git.output.manifest import read_manifest, write_graph_json, write_manifest
from gtfs_git.output.materializer import Materializer, assign_branch_names
from gtfs_git.output.replay import replay_branch
from gtfs_git.output.store import GitObjectStore
from gtfs_git.transform.patterns import extract_patterns

logger = logging.getLogger(__name__)


def load_feed(gtfs_path: str, merge_platforms: bool = False) -> GTFSReader:
    """Read and validate a GTFS feed."""
    reader = GTFSReader(gtfs_path, merge_platforms=merge_platforms)
    reader.read_all()

    validation_report = GTFSValidator(reader).validate()
    if not validation_report.valid:
        for error in validation_report.errors:
            logger.error(error)
        raise ValueError(f"GTFS validation failed with {len(validation_report.errors)} errors")
    return reader


def build(config: BuildConfig) -> BuildReport:
    """
    Convert the selected lines of a GTFS feed into a Git repository.

    Args:
        config: Build configuration

    Returns:
        BuildReport with branches, excluded patterns and stats

    Raises:
        InvalidSelection: a selected line does not exist
        RepositoryWriteError: the repository could not be written
    """
    logger.info(f"Starting build: {config.gtfs_path} -> {config.git_dir}")
    start_time = datetime.now(UTC)
    base_time = _base_time(config.base_date)

    reader = load_feed(config.gtfs_path, config.merge_platforms)
    routes = select_routes(reader.routes, config.lines, config.prefilter)

    # Extract patterns
    stop_times_by_trip = reader.stop_times_by_trip()
    trips_by_route = reader.trips_by_route()
    patterns: list[Pattern] = []
    duplicates: dict[str, int] = {}
    for route in routes:
        route_patterns, route_duplicates = extract_patterns(
            route.route_id, trips_by_route.get(route.route_id, []), stop_times_by_trip
        )
        if not route_patterns:
            logger.warning(f"Line {route.route_id} has no trips with stop times, skipping")
        patterns.extend(route_patterns)
        if route_duplicates:
            duplicates[route.route_id] = len(route_duplicates)

    # Build graph
    stops = reader.stops_by_id
    graph = GraphBuilder(NodeIndex(), stops).build(patterns)

    # Write repository
    store = GitObjectStore.open(config.git_dir, config.author_name, config.author_email)
    branch_names = assign_branch_names(
        graph.patterns, {route.route_id: route for route in routes}
    )
    materializer = Materializer(
        graph,
        store,
        stops,
        branch_names,
        jobs=config.jobs,
        base_time=base_time,
    )
    commits, branches = materializer.materialize()

    stats = {
        "lines": len(routes),
        "patterns": len(patterns),
        "branches": len(branches),
        "commits": len(commits),
        "circular": len(graph.circular),
        "duplicate_trips": sum(duplicates.values()),
        **{f"graph_{name}": value for name, value in graph.index.stats().items()},
    }

    manifest_path = write_manifest(
        store.git_dir,
        graph,
        branches,
        duplicates,
        stats,
        inputs={
            "gtfs_path": config.gtfs_path,
            "lines": [route.route_id for route in routes],
            "prefilter": config.prefilter,
            "merge_platforms": config.merge_platforms,
            "base_date": config.base_date,
        },
    )
    if config.debug_json:
        write_graph_json(store.git_dir, graph, commits)

    elapsed = (datetime.now(UTC) - start_time).total_seconds()
    logger.info(f"Build completed in {elapsed:.2f}s")

    return BuildReport(
        git_dir=config.git_dir,
        branches=branches,
        exclusions=list(graph.circular),
        duplicates=duplicates,
        stats=stats,
        manifest_path=str(manifest_path),
    )


def validate(git_dir: str) -> ValidationReport:
    """
    Replay every branch of a built repository against its manifest.

    Args:
        git_dir: Repository directory passed to build

    Returns:
        ValidationReport with results
    """
    logger.info(f"Validating repository: {git_dir}")
    errors: list[str] = []
    warnings: list[str] = []

    try:
        repo = Repo(git_dir)
        manifest = read_manifest(Path(repo.git_dir))
    except (OSError, GitError) as e:
        return ValidationReport(valid=False, errors=[f"Cannot open build output: {e}"])

    branches = manifest.get("branches", [])
    for entry in branches:
        name = entry["name"]
        try:
            tip = repo.commit(f"refs/heads/{name}").hexsha
            if tip != entry["tip"]:
                warnings.append(f"Branch {name} moved: expected {entry['tip']}, found {tip}")
            stop_ids = replay_branch(repo, name)
        except (ValueError, KeyError, OSError, GitError) as e:
            errors.append(f"Branch {name} cannot be replayed: {e}")
            continue

        if stop_ids != entry["stop_ids"]:
            errors.append(
                f"Branch {name} replays {stop_ids}, expected {entry['stop_ids']}"
            )

    valid = len(errors) == 0
    if valid:
        logger.info("Validation passed")
    else:
        logger.error(f"Validation failed with {len(errors)} errors")

    return ValidationReport(
        valid=valid,
        errors=errors,
        warnings=warnings,
        stats={"branches": len(branches), "exclusions": len(manifest.get("exclusions", []))},
    )


def list_lines(gtfs_path: str, prefilter: list[str] | None = None) -> list[tuple[str, str, str, str]]:
    """
    Describe the lines available for selection.

    Returns:
        (route_id, display name, first stop name, last stop name) per line
    """
    reader = GTFSReader(gtfs_path)
    reader.read_all()

    stop_times_by_trip = reader.stop_times_by_trip()
    trips_by_route = reader.trips_by_route()
    stops = reader.stops_by_id

    lines = []
    for route in select_routes(reader.routes, [], prefilter):
        first = last = ""
        for trip in trips_by_route.get(route.route_id, []):
            stop_times = stop_times_by_trip.get(trip.trip_id)
            if stop_times:
                first = _stop_name(stops, stop_times[0].stop_id)
                last = _stop_name(stops, stop_times[-1].stop_id)
                break
        lines.append((route.route_id, route.display_name, first, last))
    return lines


def _stop_name(stops: dict, stop_id: str) -> str:
    stop = stops.get(stop_id)
    return stop.name if stop else stop_id


def _base_time(base_date: str) -> int:
    """Unix time of midnight UTC on ``base_date`` (YYYY-MM-DD)."""
    try:
        day = datetime.strptime(base_date, "%Y-%m-%d").replace(tzinfo=UTC)
    except ValueError as e:
        raise ValueError(f"Invalid base date {base_date!r}, expected YYYY-MM-DD") from e
    return int(day.timestamp())

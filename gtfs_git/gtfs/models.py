"""Data models for GTFS and internal representations."""

from dataclasses import dataclass, field
from typing import Any

# Synthetic predecessor of every pattern's first stop.
ROOT = -1

PatternKey = tuple[str, int]


@dataclass(frozen=True)
class Stop:
    """GTFS stop with coordinates."""

    stop_id: str
    name: str
    lat: float
    lon: float
    parent_station: str = ""


@dataclass(frozen=True)
class Route:
    """GTFS route."""

    route_id: str
    route_short_name: str
    route_long_name: str
    route_type: int = 3

    @property
    def display_name(self) -> str:
        return self.route_long_name or self.route_short_name or self.route_id

    @property
    def branch_label(self) -> str:
        return self.route_short_name or self.route_long_name or self.route_id


@dataclass(frozen=True)
class Trip:
    """GTFS trip."""

    trip_id: str
    route_id: str
    service_id: str
    direction_id: int = 0


@dataclass(frozen=True)
class StopTime:
    """GTFS stop time."""

    trip_id: str
    stop_id: str
    arrival_time: int  # seconds since midnight
    departure_time: int  # seconds since midnight
    stop_sequence: int


@dataclass(frozen=True)
class Pattern:
    """One distinct stop sequence observed among the trips of a line."""

    route_id: str
    pattern_index: int
    stops: tuple[tuple[str, int], ...]  # (stop_id, arrival offset)
    trip_ids: tuple[str, ...] = ()

    @property
    def key(self) -> PatternKey:
        return (self.route_id, self.pattern_index)

    @property
    def stop_ids(self) -> tuple[str, ...]:
        return tuple(stop_id for stop_id, _ in self.stops)

    def __len__(self) -> int:
        return len(self.stops)


@dataclass
class ParentEdge:
    """Incoming edge of a graph node, with the offsets of every pattern using it."""

    parent: int  # node id, or ROOT
    created_by: PatternKey
    offsets: dict[PatternKey, int] = field(default_factory=dict)

    @property
    def earliest_offset(self) -> int:
        return min(self.offsets.values())

    @property
    def patterns(self) -> list[PatternKey]:
        return sorted(self.offsets)


@dataclass
class GraphNode:
    """A stop occurrence in a specific shared path context."""

    node_id: int
    stop_id: str
    parents: list[ParentEdge] = field(default_factory=list)
    children: list[int] = field(default_factory=list)
    contributors: set[PatternKey] = field(default_factory=set)

    def edge_from(self, parent: int) -> ParentEdge | None:
        for edge in self.parents:
            if edge.parent == parent:
                return edge
        return None

    @property
    def parent_ids(self) -> list[int]:
        """Non-root parents, ordered by the pattern that created each edge."""
        edges = sorted(self.parents, key=lambda e: e.created_by)
        return [edge.parent for edge in edges if edge.parent != ROOT]

    @property
    def earliest_offset(self) -> int:
        return min(edge.earliest_offset for edge in self.parents)


@dataclass
class RouteGraph:
    """Result of folding all patterns into one deduplicated DAG."""

    index: Any  # graph.index.NodeIndex
    patterns: list[Pattern] = field(default_factory=list)
    terminals: dict[PatternKey, int] = field(default_factory=dict)
    circular: list[Any] = field(default_factory=list)  # errors.CircularLine

    def path(self, key: PatternKey) -> list[int]:
        """Node ids of an accepted pattern, first stop first."""
        return self.index.path_of(self.terminals[key], key)


@dataclass(frozen=True)
class CommitRecord:
    """Commit written for one graph node."""

    node_id: int
    commit_id: str
    parent_commit_ids: tuple[str, ...]
    tree_id: str
    blob_id: str


@dataclass(frozen=True)
class BranchRef:
    """Branch pointing at the terminal commit of one pattern."""

    name: str
    tip_commit_id: str
    route_id: str
    pattern_index: int


@dataclass
class ValidationReport:
    """Report from validation process."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)


@dataclass
class BuildReport:
    """Summary of a build run."""

    git_dir: str
    branches: list[BranchRef] = field(default_factory=list)
    exclusions: list[Any] = field(default_factory=list)  # errors.CircularLine
    duplicates: dict[str, int] = field(default_factory=dict)  # route_id -> count
    stats: dict[str, int] = field(default_factory=dict)
    manifest_path: str = ""


@dataclass
class BuildConfig:
    """Configuration for a build."""

    gtfs_path: str
    git_dir: str = "./result"
    lines: list[str] = field(default_factory=list)
    prefilter: list[str] = field(default_factory=list)
    jobs: int = 1
    merge_platforms: bool = False
    debug_json: bool = False
    base_date: str = "2000-01-01"
    author_name: str = "gtfs-git"
    author_email: str = "gtfs-git@localhost"

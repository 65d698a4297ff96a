"""Turn the stop graph into commits and branches, parents first."""

import json
import logging
import re
from collections import Counter
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Protocol

from gtfs_git.errors import RepositoryWriteError
from gtfs_git.gtfs.models import (
    ROOT,
    BranchRef,
    CommitRecord,
    GraphNode,
    ParentEdge,
    Pattern,
    PatternKey,
    Route,
    RouteGraph,
    Stop,
)

logger = logging.getLogger(__name__)

STOP_FILE = "stop.json"


class ObjectStore(Protocol):
    """Write side of a version-control object database."""

    def create_blob(self, data: bytes) -> str: ...

    def create_tree(self, entries: list[tuple[str, str]]) -> str: ...

    def create_commit(
        self, parents: list[str], tree: str, message: str, timestamp: int
    ) -> str: ...

    def update_ref(self, name: str, commit_id: str) -> None: ...

    def set_head(self, name: str) -> None: ...


def slugify(value: str) -> str:
    """Reduce a line name to characters valid in a git ref component."""
    slug = re.sub(r"[^A-Za-z0-9._-]+", "_", value)
    slug = re.sub(r"\.{2,}", ".", slug)
    return slug.strip("._-")


def assign_branch_names(
    patterns: list[Pattern], routes: dict[str, Route]
) -> dict[PatternKey, str]:
    """
    Name one branch per pattern as ``<line label>-<pattern index>``.

    Lines sharing a label are told apart by appending their route id.
    """
    labels: dict[str, str] = {}
    for route_id in sorted({p.route_id for p in patterns}):
        route = routes.get(route_id)
        label = slugify(route.branch_label) if route else ""
        labels[route_id] = label or slugify(route_id) or "line"

    counts = Counter(labels.values())
    names: dict[PatternKey, str] = {}
    for pattern in patterns:
        label = labels[pattern.route_id]
        if counts[label] > 1:
            label = f"{label}_{slugify(pattern.route_id) or 'line'}"
        names[pattern.key] = f"{label}-{pattern.pattern_index}"
    return names


def stop_blob(stop: Stop) -> bytes:
    """Serialized content of a stop, one blob per commit."""
    data = {
        "stop_id": stop.stop_id,
        "name": stop.name,
        "lat": stop.lat,
        "lon": stop.lon,
    }
    return (json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n").encode("utf-8")


class Materializer:
    """
    Write one commit per graph node and one branch per pattern.

    Nodes are dispatched to a bounded thread pool as soon as every parent has
    a commit. The first write failure stops further dispatch; writes already
    running are allowed to finish and the failure is raised afterwards.
    """

    def __init__(
        self,
        graph: RouteGraph,
        store: ObjectStore,
        stops: dict[str, Stop],
        branch_names: dict[PatternKey, str],
        jobs: int = 1,
        base_time: int = 0,
    ) -> None:
        self.graph = graph
        self.store = store
        self.stops = stops
        self.branch_names = branch_names
        self.jobs = max(1, jobs)
        self.base_time = base_time

    def materialize(self) -> tuple[dict[int, CommitRecord], list[BranchRef]]:
        """Write all commits, then all branch references."""
        commits = self.write_commits()
        branches = self.write_branches(commits)
        return commits, branches

    def write_commits(self) -> dict[int, CommitRecord]:
        index = self.graph.index
        logger.info(f"Writing {len(index)} commits with {self.jobs} workers")

        # Dispatch follows the index's topological order, which also rejects cycles
        rank = {node_id: i for i, node_id in enumerate(index.topological_order())}
        pending = {node.node_id: len(set(node.parent_ids)) for node in index}
        ready = sorted(
            (node_id for node_id, count in pending.items() if count == 0), key=rank.__getitem__
        )
        commits: dict[int, CommitRecord] = {}
        failure: RepositoryWriteError | None = None

        with ThreadPoolExecutor(max_workers=self.jobs) as executor:
            running: dict[Future[CommitRecord], int] = {}

            while running or (ready and failure is None):
                while ready and failure is None and len(running) < self.jobs:
                    node_id = ready.pop(0)
                    node = index.node(node_id)
                    parents = [commits[parent].commit_id for parent in node.parent_ids]
                    running[executor.submit(self._write_node, node, parents)] = node_id

                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda f: running[f]):
                    node_id = running.pop(future)
                    try:
                        record = future.result()
                    except RepositoryWriteError as e:
                        logger.error(f"Writing node {node_id} failed: {e}")
                        failure = failure or e
                        continue

                    commits[node_id] = record
                    for child in index.node(node_id).children:
                        pending[child] -= 1
                        if pending[child] == 0:
                            ready.append(child)
                ready.sort(key=rank.__getitem__)

        if failure is not None:
            raise failure

        logger.info(f"Wrote {len(commits)} commits")
        return commits

    def write_branches(self, commits: dict[int, CommitRecord]) -> list[BranchRef]:
        branches: list[BranchRef] = []
        for pattern in self.graph.patterns:
            name = self.branch_names[pattern.key]
            tip = commits[self.graph.terminals[pattern.key]].commit_id
            self.store.update_ref(name, tip)
            branches.append(
                BranchRef(
                    name=name,
                    tip_commit_id=tip,
                    route_id=pattern.route_id,
                    pattern_index=pattern.pattern_index,
                )
            )
            logger.debug(f"Branch {name} -> {tip}")

        if branches:
            self.store.set_head(branches[0].name)
        logger.info(f"Wrote {len(branches)} branches")
        return branches

    def _write_node(self, node: GraphNode, parents: list[str]) -> CommitRecord:
        stop = self.stops.get(node.stop_id) or Stop(node.stop_id, node.stop_id, 0.0, 0.0)
        blob_id = self.store.create_blob(stop_blob(stop))
        tree_id = self.store.create_tree([(STOP_FILE, blob_id)])
        commit_id = self.store.create_commit(
            parents,
            tree_id,
            self.commit_message(node, stop),
            self.base_time + node.earliest_offset,
        )
        return CommitRecord(
            node_id=node.node_id,
            commit_id=commit_id,
            parent_commit_ids=tuple(parents),
            tree_id=tree_id,
            blob_id=blob_id,
        )

    def commit_message(self, node: GraphNode, stop: Stop) -> str:
        """
        Stop name as subject, then trailers.

        ``Start:`` lists the branches beginning at this stop and each
        ``Parent:`` line, in commit parent order, lists the branches arriving
        through that parent. Together they let a branch be replayed from the
        repository alone.
        """
        lines = [
            stop.name,
            "",
            f"Stop: {stop.stop_id}",
            f"Lines: {', '.join(sorted({route_id for route_id, _ in node.contributors}))}",
        ]
        root_edge = node.edge_from(ROOT)
        if root_edge is not None:
            lines.append(f"Start: {self._branches(root_edge)}")
        for edge in sorted(node.parents, key=lambda e: e.created_by):
            if edge.parent != ROOT:
                lines.append(f"Parent: {self._branches(edge)}")
        return "\n".join(lines) + "\n"

    def _branches(self, edge: ParentEdge) -> str:
        return ", ".join(self.branch_names[key] for key in edge.patterns)

"""Fold line patterns into one deduplicated DAG."""

import logging
from dataclasses import dataclass

from gtfs_git.errors import CircularLine
from gtfs_git.graph.index import NodeIndex
from gtfs_git.gtfs.models import ROOT, Pattern, RouteGraph, Stop

logger = logging.getLogger(__name__)

REUSE = "reuse"
CONVERGE = "converge"
CREATE = "create"


@dataclass(frozen=True)
class _Step:
    stop_id: str
    offset: int
    action: str
    node_id: int | None = None  # existing node for REUSE and CONVERGE


class GraphBuilder:
    """
    Build the shared stop graph, one pattern at a time.

    A pattern riding on nodes shared with earlier patterns keeps sharing them
    while the (predecessor, stop) key exists and branches off as soon as it
    does not. A pattern on its own nodes joins the earliest node created for a
    stop it reaches that would not close a cycle, and keeps a node of its own
    when there is none. Only a pattern revisiting one of its stops is
    rejected as circular. Each pattern is
    planned against the index before anything is written, so a rejected
    pattern leaves no trace in the graph.
    """

    def __init__(self, index: NodeIndex | None = None, stops: dict[str, Stop] | None = None) -> None:
        self.index = index if index is not None else NodeIndex()
        self.stops = stops or {}
        self.graph = RouteGraph(index=self.index)

    def build(self, patterns: list[Pattern]) -> RouteGraph:
        """Add every pattern in canonical (route_id, pattern_index) order."""
        ordered = sorted(patterns, key=lambda p: p.key)
        logger.info(f"Building stop graph from {len(ordered)} patterns")

        for pattern in ordered:
            self.add_pattern(pattern)

        stats = self.index.stats()
        logger.info(
            f"Built graph with {stats['nodes']} nodes, {stats['merges']} merges, "
            f"{stats['forks']} forks; {len(self.graph.circular)} patterns rejected"
        )
        return self.graph

    def add_pattern(self, pattern: Pattern) -> CircularLine | None:
        """Add one pattern; return the rejection if it is circular."""
        if pattern.key in self.graph.terminals:
            raise ValueError(f"Pattern {pattern.key} was already added")
        if not pattern.stops:
            raise ValueError(f"Pattern {pattern.key} has no stops")

        plan = self._plan(pattern)
        if isinstance(plan, CircularLine):
            logger.warning(plan.message())
            self.graph.circular.append(plan)
            return plan

        self._apply(pattern, plan)
        self.graph.patterns.append(pattern)
        return None

    def _plan(self, pattern: Pattern) -> list[_Step] | CircularLine:
        steps: list[_Step] = []
        visited: set[str] = set()
        shared_path: list[int] = []  # existing nodes already on this pattern's path
        pred = ROOT
        on_own_path = False

        for stop_id, offset in pattern.stops:
            if stop_id in visited:
                return self._circular(pattern, stop_id)
            visited.add(stop_id)

            if not on_own_path:
                node = self.index.get(pred, stop_id)
                if node is not None:
                    steps.append(_Step(stop_id, offset, REUSE, node.node_id))
                    shared_path.append(node.node_id)
                    pred = node.node_id
                else:
                    steps.append(_Step(stop_id, offset, CREATE))
                    on_own_path = True
                continue

            target = self._join_target(stop_id, shared_path)
            if target is None:
                steps.append(_Step(stop_id, offset, CREATE))
                continue

            steps.append(_Step(stop_id, offset, CONVERGE, target))
            shared_path.append(target)
            pred = target
            on_own_path = False

        return steps

    def _join_target(self, stop_id: str, shared_path: list[int]) -> int | None:
        """
        Earliest node for ``stop_id`` that the pattern can join without a cycle.

        Everything before this stop on the pattern becomes an ancestor of the
        joined node, so a node already on the path, or an ancestor of one, is
        skipped. None means the pattern keeps its own node for the stop.
        """
        for node in self.index.nodes_for_stop(stop_id):
            if node.node_id in shared_path or any(
                self.index.is_ancestor(node.node_id, node_id) for node_id in shared_path
            ):
                logger.debug(f"Node {node.node_id} of stop {stop_id} would close a cycle")
                continue
            return node.node_id
        return None

    def _apply(self, pattern: Pattern, steps: list[_Step]) -> None:
        key = pattern.key
        pred = ROOT

        for step in steps:
            if step.action == CREATE:
                node, _ = self.index.get_or_create(pred, step.stop_id, key)
            else:
                node = self.index.node(step.node_id)
                if step.action == CONVERGE:
                    self.index.alias(pred, node, key)
                    logger.debug(
                        f"Pattern {key} joins stop {step.stop_id} (node {node.node_id}) "
                        f"from node {pred}"
                    )
            self.index.record(node, pred, key, step.offset)
            pred = node.node_id

        self.graph.terminals[key] = pred

    def _circular(self, pattern: Pattern, stop_id: str) -> CircularLine:
        stop = self.stops.get(stop_id)
        return CircularLine(
            route_id=pattern.route_id,
            pattern_index=pattern.pattern_index,
            stop_id=stop_id,
            stop_name=stop.name if stop else "",
        )


def build_graph(patterns: list[Pattern], stops: dict[str, Stop] | None = None) -> RouteGraph:
    """Build the stop graph of ``patterns`` with a fresh node index."""
    return GraphBuilder(NodeIndex(), stops).build(patterns)

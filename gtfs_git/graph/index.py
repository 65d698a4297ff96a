"""Node index: arena of graph nodes keyed by (predecessor, stop)."""

import heapq
import logging
import threading
from collections.abc import Iterator

from gtfs_git.gtfs.models import ROOT, GraphNode, ParentEdge, PatternKey

logger = logging.getLogger(__name__)

NodeKey = tuple[int, str]


class NodeIndex:
    """
    Lookup structure shared by the graph builder and the materializer.

    Nodes live in an arena and reference each other by integer id. The key
    ``(predecessor id, stop_id)`` resolves to at most one node; a node reached
    from several predecessors is registered under one key per predecessor.
    Writes to a key hold that key's stripe lock, so distinct keys never
    contend on the same lock unless their hashes collide.
    """

    def __init__(self, stripes: int = 64) -> None:
        self._nodes: list[GraphNode] = []
        self._by_key: dict[NodeKey, int] = {}
        self._by_stop: dict[str, list[int]] = {}
        self._stripes = [threading.Lock() for _ in range(max(1, stripes))]
        self._arena_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(list(self._nodes))

    def _lock_for(self, key: NodeKey) -> threading.Lock:
        return self._stripes[hash(key) % len(self._stripes)]

    def node(self, node_id: int) -> GraphNode:
        return self._nodes[node_id]

    def get(self, parent: int, stop_id: str) -> GraphNode | None:
        node_id = self._by_key.get((parent, stop_id))
        return None if node_id is None else self._nodes[node_id]

    def nodes_for_stop(self, stop_id: str) -> list[GraphNode]:
        """Nodes of a stop in creation order, candidates for converging paths."""
        return [self._nodes[node_id] for node_id in self._by_stop.get(stop_id, [])]

    def get_or_create(
        self, parent: int, stop_id: str, created_by: PatternKey
    ) -> tuple[GraphNode, bool]:
        """Return the node for (parent, stop_id), creating it with a single parent edge."""
        key = (parent, stop_id)
        with self._lock_for(key):
            node_id = self._by_key.get(key)
            if node_id is not None:
                return self._nodes[node_id], False

            with self._arena_lock:
                node = GraphNode(node_id=len(self._nodes), stop_id=stop_id)
                self._nodes.append(node)
                self._by_stop.setdefault(stop_id, []).append(node.node_id)

            node.parents.append(ParentEdge(parent=parent, created_by=created_by))
            if parent != ROOT:
                self._add_child(parent, node.node_id)
            self._by_key[key] = node.node_id
            return node, True

    def alias(self, parent: int, node: GraphNode, created_by: PatternKey) -> ParentEdge:
        """Register ``node`` under (parent, node.stop_id), adding the parent edge if missing."""
        key = (parent, node.stop_id)
        with self._lock_for(key):
            existing = self._by_key.get(key)
            if existing is not None and existing != node.node_id:
                raise ValueError(
                    f"Key {key} already resolves to node {existing}, not {node.node_id}"
                )
            edge = node.edge_from(parent)
            if edge is None:
                edge = ParentEdge(parent=parent, created_by=created_by)
                node.parents.append(edge)
                if parent != ROOT:
                    self._add_child(parent, node.node_id)
            self._by_key[key] = node.node_id
            return edge

    def _add_child(self, parent: int, child: int) -> None:
        children = self._nodes[parent].children
        if child not in children:
            children.append(child)

    def record(self, node: GraphNode, parent: int, key: PatternKey, offset: int) -> None:
        """Record a pattern passing through ``node`` from ``parent`` at ``offset``."""
        edge = node.edge_from(parent)
        if edge is None:
            raise KeyError(f"Node {node.node_id} has no edge from {parent}")
        with self._lock_for((parent, node.stop_id)):
            edge.offsets[key] = offset
            node.contributors.add(key)

    def is_ancestor(self, candidate: int, node_id: int) -> bool:
        """True if ``candidate`` is reachable from ``node_id`` by parent edges."""
        if node_id == ROOT:
            return False
        stack = [node_id]
        visited: set[int] = set()
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            for edge in self._nodes[current].parents:
                if edge.parent == candidate:
                    return True
                if edge.parent != ROOT:
                    stack.append(edge.parent)
        return False

    def path_of(self, terminal: int, key: PatternKey) -> list[int]:
        """Walk back from a pattern terminal along the edges that pattern used."""
        path: list[int] = []
        current = terminal
        while True:
            path.append(current)
            edge = next(
                (e for e in self._nodes[current].parents if key in e.offsets),
                None,
            )
            if edge is None:
                raise KeyError(f"Pattern {key} does not pass through node {current}")
            if edge.parent == ROOT:
                break
            current = edge.parent
        path.reverse()
        return path

    def topological_order(self) -> list[int]:
        """Kahn's algorithm; among ready nodes the lowest id goes first."""
        pending = {node.node_id: len(set(node.parent_ids)) for node in self._nodes}
        ready = [node_id for node_id, count in pending.items() if count == 0]
        heapq.heapify(ready)

        order: list[int] = []
        while ready:
            node_id = heapq.heappop(ready)
            order.append(node_id)
            for child in self._nodes[node_id].children:
                pending[child] -= 1
                if pending[child] == 0:
                    heapq.heappush(ready, child)

        if len(order) != len(self._nodes):
            raise ValueError("Graph contains a cycle")
        return order

    def stats(self) -> dict[str, int]:
        edges = sum(len(node.parent_ids) for node in self._nodes)
        return {
            "nodes": len(self._nodes),
            "edges": edges,
            "merges": sum(1 for node in self._nodes if len(node.parent_ids) > 1),
            "forks": sum(1 for node in self._nodes if len(node.children) > 1),
            "starts": sum(1 for node in self._nodes if node.edge_from(ROOT) is not None),
        }

"""Tests for the node index."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from gtfs_git.graph.index import NodeIndex
from gtfs_git.gtfs.models import ROOT

KEY = ("L", 0)


def test_get_or_create_is_idempotent() -> None:
    """Test the same key always resolves to the same node."""
    index = NodeIndex()

    first, created = index.get_or_create(ROOT, "A", KEY)
    again, created_again = index.get_or_create(ROOT, "A", ("M", 0))

    assert created and not created_again
    assert first is again
    assert len(index) == 1
    assert index.get(ROOT, "A") is first
    assert index.get(first.node_id, "A") is None


def test_same_stop_different_predecessor_is_new_node() -> None:
    """Test node identity depends on the predecessor."""
    index = NodeIndex()
    a, _ = index.get_or_create(ROOT, "A", KEY)
    b, _ = index.get_or_create(ROOT, "B", KEY)

    c_after_a, _ = index.get_or_create(a.node_id, "C", KEY)
    c_after_b, _ = index.get_or_create(b.node_id, "C", KEY)

    assert c_after_a is not c_after_b
    assert [n.node_id for n in index.nodes_for_stop("C")] == [c_after_a.node_id, c_after_b.node_id]
    assert a.children == [c_after_a.node_id]


def test_alias_adds_parent_edge() -> None:
    """Test aliasing registers the key and the convergence edge."""
    index = NodeIndex()
    a, _ = index.get_or_create(ROOT, "A", KEY)
    b, _ = index.get_or_create(a.node_id, "B", KEY)
    x, _ = index.get_or_create(ROOT, "X", ("M", 0))

    edge = index.alias(x.node_id, b, ("M", 0))

    assert index.get(x.node_id, "B") is b
    assert edge.created_by == ("M", 0)
    assert b.parent_ids == [a.node_id, x.node_id]
    assert x.children == [b.node_id]


def test_alias_rejects_conflicting_key() -> None:
    """Test a key never resolves to two nodes."""
    index = NodeIndex()
    a, _ = index.get_or_create(ROOT, "A", KEY)
    index.get_or_create(a.node_id, "B", KEY)
    other, _ = index.get_or_create(ROOT, "B", KEY)

    with pytest.raises(ValueError):
        index.alias(a.node_id, other, KEY)


def test_record_offsets_on_edges() -> None:
    """Test offsets are kept per edge and per pattern."""
    index = NodeIndex()
    a, _ = index.get_or_create(ROOT, "A", KEY)
    index.record(a, ROOT, KEY, 500)
    index.record(a, ROOT, ("M", 0), 300)

    edge = a.edge_from(ROOT)
    assert edge.offsets == {KEY: 500, ("M", 0): 300}
    assert a.earliest_offset == 300
    assert a.contributors == {KEY, ("M", 0)}

    with pytest.raises(KeyError):
        index.record(a, 42, KEY, 0)


def test_is_ancestor_and_topological_order() -> None:
    """Test ancestry queries and parent-first ordering."""
    index = NodeIndex()
    a, _ = index.get_or_create(ROOT, "A", KEY)
    b, _ = index.get_or_create(a.node_id, "B", KEY)
    c, _ = index.get_or_create(b.node_id, "C", KEY)
    # Created last, but parent of B
    z, _ = index.get_or_create(ROOT, "Z", ("M", 0))
    index.alias(z.node_id, b, ("M", 0))

    assert index.is_ancestor(a.node_id, c.node_id)
    assert index.is_ancestor(z.node_id, c.node_id)
    assert not index.is_ancestor(c.node_id, a.node_id)
    assert not index.is_ancestor(a.node_id, ROOT)

    order = index.topological_order()
    assert order.index(z.node_id) < order.index(b.node_id)
    assert order.index(a.node_id) < order.index(b.node_id) < order.index(c.node_id)


def test_stats() -> None:
    """Test graph statistics."""
    index = NodeIndex()
    a, _ = index.get_or_create(ROOT, "A", KEY)
    index.get_or_create(a.node_id, "B", KEY)
    index.get_or_create(a.node_id, "C", KEY)

    stats = index.stats()
    assert stats["nodes"] == 3
    assert stats["edges"] == 2
    assert stats["forks"] == 1
    assert stats["merges"] == 0
    assert stats["starts"] == 1


def test_concurrent_get_or_create_creates_one_node() -> None:
    """Test concurrent writers on one key never duplicate the node."""
    index = NodeIndex(stripes=4)

    def create(i: int) -> int:
        node, _ = index.get_or_create(ROOT, "A", ("L", i))
        return node.node_id

    with ThreadPoolExecutor(max_workers=8) as executor:
        ids = set(executor.map(create, range(200)))

    assert ids == {0}
    assert len(index) == 1


def test_concurrent_distinct_keys() -> None:
    """Test concurrent writers on distinct keys get distinct ids."""
    index = NodeIndex(stripes=4)

    def create(i: int) -> int:
        node, _ = index.get_or_create(ROOT, f"S{i}", ("L", i))
        return node.node_id

    with ThreadPoolExecutor(max_workers=8) as executor:
        ids = list(executor.map(create, range(100)))

    assert sorted(ids) == list(range(100))
    assert len(index) == 100

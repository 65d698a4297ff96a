"""Build manifest and debug graph JSON."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from gtfs_git.errors import CircularLine
from gtfs_git.gtfs.models import ROOT, BranchRef, CommitRecord, RouteGraph
from gtfs_git.version import MANIFEST_VERSION, VERSION

logger = logging.getLogger(__name__)

MANIFEST_DIR = "gtfs-git"
MANIFEST_FILE = "manifest.json"
GRAPH_FILE = "graph.json"


def manifest_dir(git_dir: Path) -> Path:
    """Directory inside ``.git`` holding the build artifacts."""
    return git_dir / MANIFEST_DIR


def write_manifest(
    git_dir: Path,
    graph: RouteGraph,
    branches: list[BranchRef],
    duplicates: dict[str, int],
    stats: dict[str, int],
    inputs: dict[str, Any],
) -> Path:
    """Write manifest.json with every branch's expected stop sequence."""
    output_path = manifest_dir(git_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    stop_ids = {pattern.key: list(pattern.stop_ids) for pattern in graph.patterns}
    data = {
        "manifest_version": MANIFEST_VERSION,
        "tool_version": VERSION,
        "created_at": datetime.now(UTC).isoformat(),
        "inputs": inputs,
        "branches": [
            {
                "name": branch.name,
                "route_id": branch.route_id,
                "pattern_index": branch.pattern_index,
                "tip": branch.tip_commit_id,
                "stop_ids": stop_ids[(branch.route_id, branch.pattern_index)],
            }
            for branch in branches
        ],
        "exclusions": [_exclusion(item) for item in graph.circular],
        "duplicates": duplicates,
        "stats": stats,
    }

    manifest_path = output_path / MANIFEST_FILE
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
    logger.info(f"Wrote manifest to {manifest_path}")
    return manifest_path


def read_manifest(git_dir: Path) -> dict[str, Any]:
    """Load the manifest written by the last build."""
    manifest_path = manifest_dir(git_dir) / MANIFEST_FILE
    if not manifest_path.exists():
        raise FileNotFoundError(f"Manifest not found: {manifest_path}")
    with open(manifest_path, encoding="utf-8") as f:
        return json.load(f)


def write_graph_json(
    git_dir: Path, graph: RouteGraph, commits: dict[int, CommitRecord]
) -> Path:
    """Write the stop graph with its commit ids, for debugging."""
    output_path = manifest_dir(git_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    nodes_data = []
    for node in graph.index:
        record = commits.get(node.node_id)
        nodes_data.append(
            {
                "node_id": node.node_id,
                "stop_id": node.stop_id,
                "commit": record.commit_id if record else None,
                "children": node.children,
                "contributors": [f"{route_id}/{index}" for route_id, index in sorted(node.contributors)],
                "parents": [
                    {
                        "parent": None if edge.parent == ROOT else edge.parent,
                        "created_by": f"{edge.created_by[0]}/{edge.created_by[1]}",
                        "offsets": {
                            f"{route_id}/{index}": offset
                            for (route_id, index), offset in sorted(edge.offsets.items())
                        },
                    }
                    for edge in node.parents
                ],
            }
        )

    graph_path = output_path / GRAPH_FILE
    with open(graph_path, "w", encoding="utf-8") as f:
        json.dump(
            {
                "nodes": nodes_data,
                "terminals": {
                    f"{route_id}/{index}": node_id
                    for (route_id, index), node_id in sorted(graph.terminals.items())
                },
            },
            f,
            indent=2,
            sort_keys=True,
        )
    logger.info(f"Wrote {graph_path}")
    return graph_path


def _exclusion(item: CircularLine) -> dict[str, Any]:
    return {
        "route_id": item.route_id,
        "pattern_index": item.pattern_index,
        "reason": item.reason,
        "stop_id": item.stop_id,
        "message": item.message(),
    }

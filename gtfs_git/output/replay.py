"""Replay a branch from the repository back into its stop sequence."""

import json
import logging

from git import Repo
from git.refs import Head

from gtfs_git.output.materializer import STOP_FILE

logger = logging.getLogger(__name__)


def parse_trailers(message: str) -> dict[str, list[list[str]]]:
    """Parse ``Key: a, b`` trailer lines; repeated keys keep their order."""
    trailers: dict[str, list[list[str]]] = {}
    for line in message.splitlines()[1:]:
        key, sep, value = line.partition(": ")
        if not sep or " " in key:
            continue
        trailers.setdefault(key, []).append([v.strip() for v in value.split(",") if v.strip()])
    return trailers


def replay_branch(repo: Repo, name: str) -> list[str]:
    """
    Walk a branch from its tip to its first stop.

    At a merge commit the walk follows the parent whose ``Parent:`` trailer
    names the branch; it ends at the commit whose ``Start:`` trailer names the
    branch, or at a root commit.
    """
    commit = Head(repo, f"refs/heads/{name}").commit
    stop_ids: list[str] = []
    seen: set[str] = set()

    while True:
        if commit.hexsha in seen:
            raise ValueError(f"Branch {name} loops at commit {commit.hexsha}")
        seen.add(commit.hexsha)

        data = json.loads((commit.tree / STOP_FILE).data_stream.read().decode("utf-8"))
        stop_ids.append(data["stop_id"])

        trailers = parse_trailers(commit.message)
        starts = [branch for names in trailers.get("Start", []) for branch in names]
        if name in starts or not commit.parents:
            break

        parent_lines = trailers.get("Parent", [])
        position = next((i for i, names in enumerate(parent_lines) if name in names), None)
        if position is None:
            if len(commit.parents) != 1:
                raise ValueError(
                    f"Branch {name}: commit {commit.hexsha} does not say which parent to follow"
                )
            position = 0
        commit = commit.parents[position]

    stop_ids.reverse()
    logger.debug(f"Branch {name}: {len(stop_ids)} stops")
    return stop_ids

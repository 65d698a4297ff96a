"""Pytest configuration and fixtures."""

import shutil
from pathlib import Path

import pytest


@pytest.fixture
def gtfs_minimal() -> Path:
    """Path to minimal GTFS fixture."""
    return Path(__file__).parent / "fixtures" / "gtfs_minimal"


@pytest.fixture
def gtfs_branching() -> Path:
    """Path to branching GTFS fixture (divergence and convergence)."""
    return Path(__file__).parent / "fixtures" / "gtfs_branching"


@pytest.fixture
def gtfs_circular() -> Path:
    """Path to GTFS fixture with a line revisiting its first stop."""
    return Path(__file__).parent / "fixtures" / "gtfs_circular"


@pytest.fixture
def gtfs_edgecases() -> Path:
    """Path to edge cases GTFS fixture."""
    return Path(__file__).parent / "fixtures" / "gtfs_edgecases"


@pytest.fixture
def gtfs_platforms() -> Path:
    """Path to GTFS fixture with platforms under a parent station."""
    return Path(__file__).parent / "fixtures" / "gtfs_platforms"


@pytest.fixture
def tmp_repo(tmp_path: Path) -> Path:
    """Temporary repository directory."""
    repo_dir = tmp_path / "result"
    yield repo_dir
    # Cleanup
    if repo_dir.exists():
        shutil.rmtree(repo_dir)

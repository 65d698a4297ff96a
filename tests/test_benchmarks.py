"""Benchmark tests."""

from pathlib import Path

import pytest

from gtfs_git import build
from gtfs_git.graph.builder import build_graph
from gtfs_git.gtfs.models import BuildConfig, Pattern


@pytest.mark.benchmark
def test_bench_build_minimal(gtfs_minimal: Path, tmp_path: Path, benchmark: object) -> None:
    """Benchmark build of minimal fixture."""

    def do_build() -> None:
        build(BuildConfig(gtfs_path=str(gtfs_minimal), git_dir=str(tmp_path / "bench_minimal")))

    benchmark(do_build)


@pytest.mark.benchmark
def test_bench_build_branching(gtfs_branching: Path, tmp_path: Path, benchmark: object) -> None:
    """Benchmark build of branching fixture."""

    def do_build() -> None:
        build(
            BuildConfig(
                gtfs_path=str(gtfs_branching),
                git_dir=str(tmp_path / "bench_branching"),
                jobs=4,
            )
        )

    benchmark(do_build)


@pytest.mark.benchmark
def test_bench_graph_builder(benchmark: object) -> None:
    """Benchmark folding many overlapping patterns into one graph."""
    patterns = [
        Pattern(
            f"R{line:03d}",
            variant,
            tuple(
                (f"S{(line * 7 + variant + i) % 400}", 21600 + i * 90)
                for i in range(30)
            ),
        )
        for line in range(50)
        for variant in range(3)
    ]

    graph = benchmark(build_graph, patterns)
    assert len(graph.patterns) + len(graph.circular) == len(patterns)

"""End-to-end tests."""

import json
from pathlib import Path

import pytest
from git import Repo

from gtfs_git import build, list_lines, validate
from gtfs_git.errors import InvalidSelection
from gtfs_git.gtfs.models import BuildConfig
from gtfs_git.output.manifest import read_manifest
from gtfs_git.output.replay import replay_branch

BASE_TIME = 946684800  # 2000-01-01T00:00:00Z


def test_end_to_end_branching(gtfs_branching: Path, tmp_repo: Path) -> None:
    """Test complete pipeline on branching fixture."""
    report = build(BuildConfig(gtfs_path=str(gtfs_branching), git_dir=str(tmp_repo)))

    assert [b.name for b in report.branches] == ["A-0", "B-0", "C-0"]
    assert report.exclusions == []
    assert report.duplicates == {"RA": 1}
    assert report.stats["commits"] == 7
    assert report.stats["graph_merges"] == 1
    assert report.stats["duplicate_trips"] == 1

    repo = Repo(tmp_repo)
    assert repo.head.reference.name == "A-0"
    assert replay_branch(repo, "A-0") == ["S1", "S2", "S3", "S4"]
    assert replay_branch(repo, "B-0") == ["S1", "S2", "S3", "S5"]
    assert replay_branch(repo, "C-0") == ["S6", "S3", "S7"]

    # Shared prefix is one set of commits
    a_history = [c.hexsha for c in repo.iter_commits("A-0", first_parent=True)]
    b_history = [c.hexsha for c in repo.iter_commits("B-0", first_parent=True)]
    assert a_history[1:] == b_history[1:]

    bellecour = repo.commit("C-0").parents[0]
    assert bellecour.message.splitlines()[0] == "Bellecour"
    assert len(bellecour.parents) == 2
    assert json.loads((bellecour.tree / "stop.json").data_stream.read())["stop_id"] == "S3"
    # Earliest arrival at Bellecour is line C at 08:02
    assert bellecour.authored_date == BASE_TIME + 8 * 3600 + 2 * 60

    report = validate(str(tmp_repo))
    assert report.valid
    assert len(report.errors) == 0
    assert report.stats["branches"] == 3


def test_manifest_contents(gtfs_branching: Path, tmp_repo: Path) -> None:
    """Test the manifest records branches and their stop sequences."""
    report = build(BuildConfig(gtfs_path=str(gtfs_branching), git_dir=str(tmp_repo)))

    manifest = read_manifest(tmp_repo / ".git")
    assert Path(report.manifest_path) == tmp_repo / ".git" / "gtfs-git" / "manifest.json"
    assert manifest["manifest_version"] == 1
    assert manifest["tool_version"] == "0.1.0"
    assert manifest["inputs"]["lines"] == ["RA", "RB", "RC"]
    branches = {b["name"]: b for b in manifest["branches"]}
    assert branches["C-0"]["stop_ids"] == ["S6", "S3", "S7"]
    assert branches["C-0"]["route_id"] == "RC"
    assert branches["A-0"]["tip"] == report.branches[0].tip_commit_id
    assert manifest["duplicates"] == {"RA": 1}


def test_build_is_deterministic(gtfs_branching: Path, tmp_path: Path) -> None:
    """Test two builds of the same input give the same commit ids."""
    first = build(BuildConfig(gtfs_path=str(gtfs_branching), git_dir=str(tmp_path / "one")))
    second = build(
        BuildConfig(gtfs_path=str(gtfs_branching), git_dir=str(tmp_path / "two"), jobs=4)
    )

    assert [(b.name, b.tip_commit_id) for b in first.branches] == [
        (b.name, b.tip_commit_id) for b in second.branches
    ]


def test_rebuild_in_place(gtfs_branching: Path, tmp_repo: Path) -> None:
    """Test building twice into one repository keeps the same tips."""
    first = build(BuildConfig(gtfs_path=str(gtfs_branching), git_dir=str(tmp_repo)))
    second = build(BuildConfig(gtfs_path=str(gtfs_branching), git_dir=str(tmp_repo)))

    assert first.branches == second.branches
    assert validate(str(tmp_repo)).valid


def test_line_selection(gtfs_branching: Path, tmp_repo: Path) -> None:
    """Test only the selected lines become branches."""
    report = build(
        BuildConfig(gtfs_path=str(gtfs_branching), git_dir=str(tmp_repo), lines=["RC", "RA"])
    )

    assert [b.name for b in report.branches] == ["A-0", "C-0"]
    assert report.stats["lines"] == 2
    assert validate(str(tmp_repo)).valid


def test_unknown_line_is_rejected(gtfs_minimal: Path, tmp_repo: Path) -> None:
    """Test an unknown line id fails before anything is written."""
    with pytest.raises(InvalidSelection) as exc_info:
        build(BuildConfig(gtfs_path=str(gtfs_minimal), git_dir=str(tmp_repo), lines=["R1", "R9"]))

    assert exc_info.value.unknown == ["R9"]
    assert not tmp_repo.exists()


def test_circular_line_is_excluded(gtfs_circular: Path, tmp_repo: Path) -> None:
    """Test a circular line is reported and the others are built."""
    report = build(BuildConfig(gtfs_path=str(gtfs_circular), git_dir=str(tmp_repo)))

    assert [b.name for b in report.branches] == ["M-0"]
    assert len(report.exclusions) == 1
    exclusion = report.exclusions[0]
    assert exclusion.route_id == "L"
    assert exclusion.reason == "circular"
    assert exclusion.stop_id == "S1"
    assert report.stats["commits"] == 3

    manifest = read_manifest(tmp_repo / ".git")
    assert manifest["exclusions"][0]["route_id"] == "L"
    assert "Place Carnot" in manifest["exclusions"][0]["message"]
    assert validate(str(tmp_repo)).valid


def test_duplicate_trips_are_counted(gtfs_minimal: Path, tmp_repo: Path) -> None:
    """Test repeated stop sequences collapse into one branch."""
    report = build(BuildConfig(gtfs_path=str(gtfs_minimal), git_dir=str(tmp_repo)))

    assert [b.name for b in report.branches] == ["1-0"]
    assert report.duplicates == {"R1": 1}
    assert report.stats["commits"] == 3


def test_merge_platforms(gtfs_platforms: Path, tmp_path: Path) -> None:
    """Test platforms of one station share a node when merged."""
    separate = build(
        BuildConfig(gtfs_path=str(gtfs_platforms), git_dir=str(tmp_path / "separate"))
    )
    merged = build(
        BuildConfig(
            gtfs_path=str(gtfs_platforms),
            git_dir=str(tmp_path / "merged"),
            merge_platforms=True,
        )
    )

    assert separate.stats["commits"] == 4
    assert merged.stats["commits"] == 3
    repo = Repo(tmp_path / "merged")
    assert replay_branch(repo, "T1-0") == ["P", "Q"]
    assert replay_branch(repo, "T2-0") == ["P", "R"]


def test_invalid_feed_is_rejected(gtfs_edgecases: Path, tmp_repo: Path) -> None:
    """Test a feed with validation errors is not built."""
    with pytest.raises(ValueError, match="validation failed"):
        build(BuildConfig(gtfs_path=str(gtfs_edgecases), git_dir=str(tmp_repo)))


def test_invalid_base_date(gtfs_minimal: Path, tmp_repo: Path) -> None:
    """Test a malformed base date is rejected."""
    with pytest.raises(ValueError, match="base date"):
        build(BuildConfig(gtfs_path=str(gtfs_minimal), git_dir=str(tmp_repo), base_date="01/01/2000"))


def test_debug_json(gtfs_branching: Path, tmp_repo: Path) -> None:
    """Test the debug graph is written with commit ids."""
    report = build(
        BuildConfig(gtfs_path=str(gtfs_branching), git_dir=str(tmp_repo), debug_json=True)
    )

    graph_path = tmp_repo / ".git" / "gtfs-git" / "graph.json"
    assert graph_path.exists()
    with open(graph_path) as f:
        data = json.load(f)
    assert len(data["nodes"]) == 7
    tips = {b.tip_commit_id for b in report.branches}
    assert tips <= {node["commit"] for node in data["nodes"]}
    assert set(data["terminals"]) == {"RA/0", "RB/0", "RC/0"}


def test_validate_detects_moved_branch(gtfs_branching: Path, tmp_repo: Path) -> None:
    """Test validation fails when a branch no longer replays its line."""
    build(BuildConfig(gtfs_path=str(gtfs_branching), git_dir=str(tmp_repo)))
    repo = Repo(tmp_repo)
    repo.heads["A-0"].set_commit(repo.heads["B-0"].commit)

    report = validate(str(tmp_repo))

    assert not report.valid
    assert any("A-0" in error for error in report.errors)
    assert any("A-0" in warning for warning in report.warnings)


def test_validate_without_build(tmp_path: Path) -> None:
    """Test validating a directory that was never built."""
    report = validate(str(tmp_path / "missing"))

    assert not report.valid
    assert "Cannot open build output" in report.errors[0]


def test_list_lines(gtfs_branching: Path) -> None:
    """Test lines are described with their end stops."""
    lines = list_lines(str(gtfs_branching))

    assert lines[0] == ("RA", "Gare Centrale - Perrache", "Gare Centrale", "Perrache")
    assert [line[0] for line in lines] == ["RA", "RB", "RC"]
    assert [line[0] for line in list_lines(str(gtfs_branching), ["B"])] == ["RB"]


def test_both_directions_become_branches(tmp_path: Path, tmp_repo: Path) -> None:
    """Test a line's return trip is built next to its outbound trip."""
    feed = tmp_path / "gtfs"
    feed.mkdir()
    (feed / "stops.txt").write_text(
        "stop_id,stop_name,stop_lat,stop_lon\n"
        "S1,Perrache,45.7490,4.8260\n"
        "S2,Bellecour,45.7580,4.8320\n"
        "S3,Hotel de Ville,45.7650,4.8350\n"
        "S4,Croix-Paquet,45.7700,4.8360\n"
    )
    (feed / "routes.txt").write_text(
        "route_id,route_short_name,route_long_name,route_type\n"
        "RA,A,Perrache - Croix-Paquet,1\n"
    )
    (feed / "trips.txt").write_text(
        "route_id,service_id,trip_id,direction_id\n"
        "RA,WK,OUT1,0\n"
        "RA,WK,BACK1,1\n"
    )
    (feed / "stop_times.txt").write_text(
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "OUT1,08:00:00,08:00:00,S1,1\n"
        "OUT1,08:02:00,08:02:00,S2,2\n"
        "OUT1,08:04:00,08:04:00,S3,3\n"
        "OUT1,08:06:00,08:06:00,S4,4\n"
        "BACK1,08:10:00,08:10:00,S4,1\n"
        "BACK1,08:12:00,08:12:00,S3,2\n"
        "BACK1,08:14:00,08:14:00,S2,3\n"
        "BACK1,08:16:00,08:16:00,S1,4\n"
    )

    report = build(BuildConfig(gtfs_path=str(feed), git_dir=str(tmp_repo)))

    assert report.exclusions == []
    assert [b.name for b in report.branches] == ["A-0", "A-1"]
    repo = Repo(tmp_repo)
    assert replay_branch(repo, "A-0") == ["S1", "S2", "S3", "S4"]
    assert replay_branch(repo, "A-1") == ["S4", "S3", "S2", "S1"]
    assert validate(str(tmp_repo)).valid

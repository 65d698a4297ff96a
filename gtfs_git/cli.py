"""Command-line interface for gtfs-git."""

import argparse
import logging
import sys

from gtfs_git.api import build, list_lines, validate
from gtfs_git.errors import InvalidSelection, RepositoryWriteError
from gtfs_git.gtfs.models import BuildConfig
from gtfs_git.gtfs.selection import parse_name_list
from gtfs_git.version import VERSION


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def cmd_build(args: argparse.Namespace) -> int:
    """Execute build command."""
    setup_logging(args.verbose)

    config = BuildConfig(
        gtfs_path=args.path,
        git_dir=args.git_dir,
        lines=parse_name_list(args.lines),
        prefilter=parse_name_list(args.prefilter),
        jobs=args.jobs,
        merge_platforms=args.merge_platforms,
        debug_json=args.debug_json,
        base_date=args.base_date,
    )

    try:
        report = build(config)
    except InvalidSelection as e:
        print(f"Error: invalid selection: {e}", file=sys.stderr)
        return 1
    except RepositoryWriteError as e:
        print(f"Error: repository write failed: {e}", file=sys.stderr)
        logging.exception("Build failed")
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Build failed")
        return 1

    print("\nBuild successful!")
    print(f"Repository: {report.git_dir}")
    print(f"Branches ({len(report.branches)}):")
    for branch in report.branches:
        print(f"  - {branch.name} ({branch.route_id}) -> {branch.tip_commit_id[:10]}")
    if report.exclusions:
        print(f"Excluded ({len(report.exclusions)}):")
        for exclusion in report.exclusions:
            print(f"  - {exclusion.route_id} [{exclusion.reason}]: {exclusion.message()}")
    for route_id, count in sorted(report.duplicates.items()):
        print(f"  - {route_id} [duplicate]: {count} trips repeat an existing pattern")
    print(f"Stats: {report.stats}")
    return 0


def cmd_lines(args: argparse.Namespace) -> int:
    """Execute lines command."""
    setup_logging(args.verbose)

    try:
        lines = list_lines(args.path, parse_name_list(args.prefilter))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Listing lines failed")
        return 1

    for route_id, name, first, last in lines:
        print(f"{route_id}\t{name}: From {first or '?'} to {last or '?'}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute validate command."""
    setup_logging(args.verbose)

    try:
        report = validate(args.git_dir)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Validation failed")
        return 1

    if report.valid:
        print("\nValidation successful!")
        print(f"Stats: {report.stats}")
        if report.warnings:
            print(f"Warnings ({len(report.warnings)}):")
            for warning in report.warnings:
                print(f"  - {warning}")
        return 0

    print(f"\nValidation failed with {len(report.errors)} errors:")
    for error in report.errors:
        print(f"  - {error}")
    return 1


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="gtfs-git",
        description="Turn GTFS transit lines into a Git history graph",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Build command
    build_parser = subparsers.add_parser("build", help="Build the Git repository")
    build_parser.add_argument(
        "-p", "--path", default="./gtfs", help="Path to GTFS directory (default: ./gtfs)"
    )
    build_parser.add_argument(
        "-g",
        "--git-dir",
        default="./result",
        help="Directory of the Git repository to create (default: ./result)",
    )
    build_parser.add_argument(
        "--lines",
        default="",
        help="Comma separated route ids to include (default: every prefiltered line)",
    )
    build_parser.add_argument(
        "--prefilter",
        default="",
        help="Comma separated short or long line names to consider (default: all)",
    )
    build_parser.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="Number of parallel commit writers (default: 1)",
    )
    build_parser.add_argument(
        "--merge-platforms",
        type=lambda x: x.lower() == "true",
        default=False,
        help="Map platforms to their parent station (default: false)",
    )
    build_parser.add_argument(
        "--debug-json",
        type=lambda x: x.lower() == "true",
        default=False,
        help="Write the stop graph as JSON next to the manifest (default: false)",
    )
    build_parser.add_argument(
        "--base-date",
        default="2000-01-01",
        help="Service day that schedule offsets are added to (default: 2000-01-01)",
    )
    build_parser.set_defaults(func=cmd_build)

    # Lines command
    lines_parser = subparsers.add_parser("lines", help="List selectable lines")
    lines_parser.add_argument(
        "-p", "--path", default="./gtfs", help="Path to GTFS directory (default: ./gtfs)"
    )
    lines_parser.add_argument("--prefilter", default="", help="Comma separated line names")
    lines_parser.set_defaults(func=cmd_lines)

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Replay branches of a built repository")
    validate_parser.add_argument(
        "-g", "--git-dir", default="./result", help="Repository directory (default: ./result)"
    )
    validate_parser.set_defaults(func=cmd_validate)

    # Parse and execute
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()

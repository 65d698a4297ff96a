"""gtfs-git - Turn GTFS transit lines into a Git history graph."""

from gtfs_git.api import build, list_lines, validate
from gtfs_git.version import VERSION

__version__ = VERSION
__all__ = ["VERSION", "build", "list_lines", "validate"]

"""Error taxonomy for the transformation engine.

Per-pattern problems (duplicates, circular lines) are returned as typed
results so one bad line never stops the others. Problems that make the run
meaningless (bad selection, failed repository writes) are raised.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class DuplicateIgnored:
    """A trip whose stop sequence was already seen for the same line."""

    route_id: str
    trip_id: str
    pattern_index: int

    @property
    def reason(self) -> str:
        return "duplicate"

    def message(self) -> str:
        return (
            f"Trip {self.trip_id} of line {self.route_id} repeats pattern "
            f"{self.pattern_index}, ignored"
        )


@dataclass(frozen=True)
class CircularLine:
    """A pattern that would revisit a stop or close a cycle in the graph."""

    route_id: str
    pattern_index: int
    stop_id: str
    stop_name: str = ""

    @property
    def reason(self) -> str:
        return "circular"

    def message(self) -> str:
        name = f" ({self.stop_name})" if self.stop_name else ""
        return (
            f"Line {self.route_id} pattern {self.pattern_index} is circular: "
            f"stop {self.stop_id}{name} is reached twice"
        )


class InvalidSelection(ValueError):
    """Selected line ids that do not exist in the loaded feed."""

    def __init__(self, message: str, unknown: list[str] | None = None) -> None:
        super().__init__(message)
        self.unknown = unknown or []


class RepositoryWriteError(Exception):
    """The object store failed to write an object or a reference."""

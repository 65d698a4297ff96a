"""Line selection and name prefilter."""

import logging

from gtfs_git.errors import InvalidSelection
from gtfs_git.gtfs.models import Route

logger = logging.getLogger(__name__)


def parse_name_list(value: str) -> list[str]:
    """Split a comma separated option, dropping blanks."""
    return [part.strip() for part in value.split(",") if part.strip()]


def prefilter_routes(routes: list[Route], names: list[str]) -> list[Route]:
    """Keep routes whose short or long name is listed. An empty list keeps all."""
    if not names:
        return list(routes)

    wanted = set(names)
    kept = [
        route
        for route in routes
        if route.route_short_name in wanted or route.route_long_name in wanted
    ]
    logger.info(f"Prefilter kept {len(kept)} of {len(routes)} routes")
    return kept


def select_routes(
    routes: list[Route],
    line_ids: list[str] | None = None,
    prefilter: list[str] | None = None,
) -> list[Route]:
    """
    Resolve the selected lines in canonical (route_id) order.

    Args:
        routes: All routes of the loaded feed
        line_ids: Route ids to keep; empty keeps every prefiltered route
        prefilter: Short or long names restricting the candidates

    Raises:
        InvalidSelection: a selected id is unknown, filtered out, or nothing is left
    """
    candidates = {route.route_id: route for route in prefilter_routes(routes, prefilter or [])}

    if line_ids:
        unknown = sorted(line_id for line_id in set(line_ids) if line_id not in candidates)
        if unknown:
            raise InvalidSelection(
                f"Unknown or filtered out line ids: {', '.join(unknown)}", unknown
            )
        selected = [candidates[line_id] for line_id in set(line_ids)]
    else:
        selected = list(candidates.values())

    if not selected:
        raise InvalidSelection("No lines selected")

    selected.sort(key=lambda r: r.route_id)
    logger.info(f"Selected {len(selected)} lines: {', '.join(r.route_id for r in selected)}")
    return selected

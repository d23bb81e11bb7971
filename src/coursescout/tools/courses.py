"""
Course tools - list the user's courses and resolve course names.
"""

from typing import Any, Optional

from coursescout.discovery.client import CanvasClient
from coursescout.discovery.pagination import fetch_all_paginated
from coursescout.search.matcher import find_best_match
from coursescout.shared.logging import get_logger
from coursescout.shared.schemas import CourseSummary
from coursescout.shared.utils import parse_canvas_url, require

logger = get_logger(__name__)

ENROLLMENT_STATES = ("active", "invited_or_pending", "completed")


def _course_summary(item: dict[str, Any]) -> CourseSummary:
    # A user-set nickname replaces "name"; the real name moves to "original_name"
    original = item.get("original_name")
    enrollments = item.get("enrollments") or []
    return CourseSummary(
        id=str(item["id"]),
        name=original or item.get("name") or "",
        course_code=item.get("course_code"),
        nickname=item.get("name") if original else None,
        enrollment_state=enrollments[0].get("enrollment_state") if enrollments else None,
    )


async def list_courses(
    client: CanvasClient,
    enrollment_state: Optional[str] = "active",
) -> list[CourseSummary]:
    """
    List courses the current user is enrolled in.

    Args:
        client: Authenticated Canvas client
        enrollment_state: "active", "invited_or_pending", "completed" or None for all

    Raises:
        ValueError: On an unknown enrollment state
    """
    params: dict[str, Any] = {}
    if enrollment_state:
        if enrollment_state not in ENROLLMENT_STATES:
            raise ValueError(
                f"Unknown enrollment_state: {enrollment_state!r} "
                f"(expected one of {', '.join(ENROLLMENT_STATES)})"
            )
        params["enrollment_state"] = enrollment_state

    items = await fetch_all_paginated(client, "/api/v1/courses", params)
    # Courses restricted by date come back without a name
    return [_course_summary(item) for item in items if item.get("id") and item.get("name")]


async def resolve_course(client: CanvasClient, name_or_id: str) -> str:
    """
    Resolve a course id, URL, name, code or nickname to a course id.

    Example:
        >>> await resolve_course(client, "CS 101")
        '12345'

    Raises:
        ValueError: If nothing matches
    """
    value = require(name_or_id, "course")
    if value.isdigit():
        return value

    info = parse_canvas_url(value)
    if info.course_id:
        return info.course_id

    courses = await list_courses(client, enrollment_state=None)
    match = find_best_match(value, courses, ["name", "course_code", "nickname"])
    if match is None:
        raise ValueError(f"No course matches {value!r}")

    logger.debug(f"Resolved course {value!r} to {match.id} ({match.name})")
    return match.id

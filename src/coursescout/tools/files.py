"""
File tools - list a course's files and find one by name.
"""

from typing import Any, Optional

from coursescout.discovery.client import CanvasClient
from coursescout.discovery.pagination import fetch_all_paginated
from coursescout.search.matcher import find_best_match
from coursescout.shared.schemas import FileSummary
from coursescout.shared.utils import require


def _file_summary(item: dict[str, Any]) -> FileSummary:
    return FileSummary(
        id=str(item["id"]),
        display_name=item.get("display_name") or item.get("filename") or str(item["id"]),
        filename=item.get("filename"),
        content_type=item.get("content-type"),
        size=item.get("size"),
        url=item.get("url"),
        updated_at=item.get("updated_at"),
    )


async def list_files(
    client: CanvasClient,
    course_id: str,
    search_term: Optional[str] = None,
) -> list[FileSummary]:
    """List the files of a course, optionally filtered server-side by name."""
    course_id = require(course_id, "course_id")
    params: dict[str, Any] = {"sort": "name"}
    if search_term:
        if len(search_term.strip()) < 2:
            raise ValueError("search_term must be at least 2 characters")
        params["search_term"] = search_term.strip()
    items = await fetch_all_paginated(client, f"/api/v1/courses/{course_id}/files", params)
    return [_file_summary(item) for item in items]


async def find_file(client: CanvasClient, course_id: str, name: str) -> FileSummary:
    """
    Find the file whose name best matches ``name``.

    Raises:
        ValueError: If no file matches
    """
    name = require(name, "name")
    files = await list_files(client, course_id)
    match = find_best_match(name, files, ["display_name", "filename"])
    if match is None:
        raise ValueError(f"No file matches {name!r} in course {course_id}")
    return match

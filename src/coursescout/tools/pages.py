"""
Page tools - list and read course wiki pages.
"""

from typing import Any

from coursescout.discovery.cleaner import clean_html
from coursescout.discovery.client import CanvasClient
from coursescout.discovery.pagination import fetch_all_paginated
from coursescout.search.matcher import find_best_match
from coursescout.shared.schemas import PageContent, PageSummary
from coursescout.shared.utils import parse_canvas_url, require


def _page_fields(item: dict[str, Any]) -> dict[str, Any]:
    return {
        "url": item.get("url") or "",
        "title": item.get("title") or item.get("url") or "",
        "html_url": item.get("html_url"),
        "updated_at": item.get("updated_at"),
        "published": item.get("published"),
        "front_page": bool(item.get("front_page")),
    }


async def list_pages(client: CanvasClient, course_id: str) -> list[PageSummary]:
    """List the wiki pages of a course, sorted by title."""
    course_id = require(course_id, "course_id")
    items = await fetch_all_paginated(
        client, f"/api/v1/courses/{course_id}/pages", {"sort": "title"}
    )
    return [PageSummary(**_page_fields(item)) for item in items]


async def get_page(client: CanvasClient, course_id: str, page: str) -> PageContent:
    """
    Read one page by slug, Canvas URL or (fuzzy) title.

    Raises:
        ValueError: If no page matches
        CanvasAPIError: If Canvas refuses the page
    """
    course_id = require(course_id, "course_id")
    page = require(page, "page")

    info = parse_canvas_url(page)
    if info.page_slug:
        slug = info.page_slug
        course_id = info.course_id or course_id
    else:
        pages = await list_pages(client, course_id)
        match = find_best_match(page, pages, ["title", "url"])
        if match is None:
            raise ValueError(f"No page matches {page!r} in course {course_id}")
        slug = match.url

    item = await client.get_json(f"/api/v1/courses/{course_id}/pages/{slug}")
    body = item.get("body") or ""
    return PageContent(
        **_page_fields(item),
        body_html=body,
        body_text=clean_html(body),
        locked_for_user=bool(item.get("locked_for_user")),
    )

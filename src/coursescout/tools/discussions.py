"""
Discussion tools - list topics and announcements, read threads.
"""

from typing import Any

from coursescout.discovery.cleaner import clean_html
from coursescout.discovery.client import CanvasClient
from coursescout.discovery.pagination import fetch_all_paginated
from coursescout.search.matcher import find_best_match
from coursescout.shared.errors import CanvasAPIError
from coursescout.shared.logging import get_logger
from coursescout.shared.schemas import DiscussionEntry, DiscussionSummary, DiscussionThread
from coursescout.shared.utils import parse_canvas_url, require

logger = get_logger(__name__)


def _summary_fields(item: dict[str, Any], is_announcement: bool) -> dict[str, Any]:
    author = item.get("author") or {}
    return {
        "id": str(item["id"]),
        "title": item.get("title") or "",
        "html_url": item.get("html_url"),
        "posted_at": item.get("posted_at"),
        "last_reply_at": item.get("last_reply_at"),
        "author": author.get("display_name") or item.get("user_name"),
        "message_text": clean_html(item.get("message")),
        "reply_count": int(item.get("discussion_subentry_count") or 0),
        "is_announcement": is_announcement,
    }


def _entry(item: dict[str, Any], participants: dict[str, str]) -> DiscussionEntry:
    return DiscussionEntry(
        id=str(item.get("id", "")),
        author=participants.get(str(item.get("user_id"))) or item.get("user_name"),
        created_at=item.get("created_at"),
        message_text=clean_html(item.get("message")),
        replies=[_entry(reply, participants) for reply in item.get("replies") or []],
    )


async def list_discussions(
    client: CanvasClient,
    course_id: str,
    announcements_only: bool = False,
) -> list[DiscussionSummary]:
    """List discussion topics, or only announcements, of a course."""
    course_id = require(course_id, "course_id")
    params = {"only_announcements": "true"} if announcements_only else {}
    items = await fetch_all_paginated(
        client, f"/api/v1/courses/{course_id}/discussion_topics", params
    )
    return [
        DiscussionSummary(**_summary_fields(item, announcements_only or bool(item.get("is_announcement"))))
        for item in items
    ]


async def get_discussion(client: CanvasClient, course_id: str, topic: str) -> DiscussionThread:
    """
    Read a discussion topic with its threaded entries.

    Args:
        client: Authenticated Canvas client
        course_id: Canvas course identifier
        topic: Topic id, Canvas URL or (fuzzy) title

    Raises:
        ValueError: If no topic matches
    """
    course_id = require(course_id, "course_id")
    topic = require(topic, "topic")

    info = parse_canvas_url(topic)
    if topic.isdigit():
        topic_id = topic
    elif info.discussion_id:
        topic_id = info.discussion_id
        course_id = info.course_id or course_id
    else:
        candidates = await list_discussions(client, course_id)
        candidates += await list_discussions(client, course_id, announcements_only=True)
        match = find_best_match(topic, candidates, ["title"])
        if match is None:
            raise ValueError(f"No discussion matches {topic!r} in course {course_id}")
        topic_id = match.id

    base_path = f"/api/v1/courses/{course_id}/discussion_topics/{topic_id}"
    item = await client.get_json(base_path)
    thread = DiscussionThread(**_summary_fields(item, bool(item.get("is_announcement"))))

    try:
        view = await client.get_json(f"{base_path}/view")
    except CanvasAPIError as e:
        logger.warning(f"Could not read entries of topic {topic_id}: {e}")
        return thread

    participants = {
        str(person.get("id")): person.get("display_name", "")
        for person in view.get("participants") or []
    }
    thread.entries = [_entry(entry, participants) for entry in view.get("view") or []]
    return thread

"""
Submission tools - the current user's submissions.
"""

from typing import Any, Optional

from coursescout.discovery.client import CanvasClient
from coursescout.discovery.pagination import fetch_all_paginated
from coursescout.search.matcher import find_best_match
from coursescout.shared.schemas import SubmissionSummary
from coursescout.shared.utils import parse_canvas_url, require


def _submission_summary(item: dict[str, Any], assignment_name: Optional[str] = None) -> SubmissionSummary:
    assignment = item.get("assignment") or {}
    return SubmissionSummary(
        assignment_id=str(item.get("assignment_id") or assignment.get("id") or ""),
        assignment_name=assignment_name or assignment.get("name"),
        submitted_at=item.get("submitted_at"),
        workflow_state=item.get("workflow_state"),
        submission_type=item.get("submission_type"),
        score=item.get("score"),
        grade=item.get("grade"),
        attempt=item.get("attempt"),
        late=bool(item.get("late")),
        missing=bool(item.get("missing")),
        comments=[
            f"{comment.get('author_name', 'Unknown')}: {comment.get('comment', '')}"
            for comment in item.get("submission_comments") or []
        ],
        attachments=[
            attachment.get("display_name") or attachment.get("filename") or ""
            for attachment in item.get("attachments") or []
        ],
    )


async def get_submission(
    client: CanvasClient,
    course_id: str,
    assignment: str,
) -> SubmissionSummary:
    """
    Read the current user's submission for one assignment.

    Args:
        client: Authenticated Canvas client
        course_id: Canvas course identifier
        assignment: Assignment id, Canvas URL or (fuzzy) name

    Raises:
        ValueError: If no assignment matches
    """
    course_id = require(course_id, "course_id")
    assignment = require(assignment, "assignment")
    assignment_name = None

    info = parse_canvas_url(assignment)
    if assignment.isdigit():
        assignment_id = assignment
    elif info.assignment_id:
        assignment_id = info.assignment_id
        course_id = info.course_id or course_id
    else:
        candidates = await fetch_all_paginated(client, f"/api/v1/courses/{course_id}/assignments")
        match = find_best_match(assignment, candidates, ["name"])
        if match is None:
            raise ValueError(f"No assignment matches {assignment!r} in course {course_id}")
        assignment_id = str(match["id"])
        assignment_name = match.get("name")

    item = await client.get_json(
        f"/api/v1/courses/{course_id}/assignments/{assignment_id}/submissions/self",
        {"include[]": ["submission_comments", "assignment"]},
    )
    return _submission_summary(item, assignment_name)


async def list_submissions(client: CanvasClient, course_id: str) -> list[SubmissionSummary]:
    """List all of the current user's submissions in a course."""
    course_id = require(course_id, "course_id")
    items = await fetch_all_paginated(
        client,
        f"/api/v1/courses/{course_id}/students/submissions",
        {"student_ids[]": "self", "include[]": "assignment"},
    )
    return [_submission_summary(item) for item in items]

"""
Grade tools - the current user's course and assignment grades.
"""

from coursescout.discovery.client import CanvasClient
from coursescout.discovery.pagination import fetch_all_paginated
from coursescout.shared.logging import get_logger
from coursescout.shared.schemas import AssignmentGrade, CourseGrade
from coursescout.shared.utils import require

logger = get_logger(__name__)


async def get_course_grade(client: CanvasClient, course_id: str) -> CourseGrade:
    """
    Read the current user's overall grade from their student enrollment.

    Scores are None when the course hides totals or the user is not a student.
    """
    course_id = require(course_id, "course_id")
    enrollments = await fetch_all_paginated(
        client,
        f"/api/v1/courses/{course_id}/enrollments",
        {"user_id": "self", "type[]": "StudentEnrollment"},
    )

    for enrollment in enrollments:
        grades = enrollment.get("grades")
        if grades:
            return CourseGrade(
                course_id=course_id,
                current_score=grades.get("current_score"),
                final_score=grades.get("final_score"),
                current_grade=grades.get("current_grade"),
                final_grade=grades.get("final_grade"),
            )

    logger.info(f"No student grades visible in course {course_id}")
    return CourseGrade(course_id=course_id)


async def list_assignment_grades(client: CanvasClient, course_id: str) -> list[AssignmentGrade]:
    """List every assignment with the current user's score."""
    course_id = require(course_id, "course_id")
    assignments = await fetch_all_paginated(
        client,
        f"/api/v1/courses/{course_id}/assignments",
        {"include[]": "submission", "order_by": "due_at"},
    )

    grades = []
    for assignment in assignments:
        submission = assignment.get("submission") or {}
        grades.append(AssignmentGrade(
            assignment_id=str(assignment["id"]),
            name=assignment.get("name") or "",
            points_possible=assignment.get("points_possible"),
            score=submission.get("score"),
            grade=submission.get("grade"),
            due_at=assignment.get("due_at"),
            workflow_state=submission.get("workflow_state"),
            missing=bool(submission.get("missing")),
            late=bool(submission.get("late")),
        ))
    return grades

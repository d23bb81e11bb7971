"""
Tools Module - Per-entity Canvas operations.
============================================

Thin async wrappers over the Canvas API. Each validates its parameters
(ValueError), aggregates pages where needed, and reshapes the JSON into
schema models:

- courses: list_courses, resolve_course
- pages: list_pages, get_page
- discussions: list_discussions, get_discussion
- files: list_files, find_file
- grades: get_course_grade, list_assignment_grades
- submissions: get_submission, list_submissions
"""

from coursescout.tools.courses import list_courses, resolve_course
from coursescout.tools.discussions import get_discussion, list_discussions
from coursescout.tools.files import find_file, list_files
from coursescout.tools.grades import get_course_grade, list_assignment_grades
from coursescout.tools.pages import get_page, list_pages
from coursescout.tools.submissions import get_submission, list_submissions

__all__ = [
    "list_courses",
    "resolve_course",
    "list_pages",
    "get_page",
    "list_discussions",
    "get_discussion",
    "list_files",
    "find_file",
    "get_course_grade",
    "list_assignment_grades",
    "get_submission",
    "list_submissions",
]

"""
Tests for Tools Module.
=======================

Tests for the per-entity Canvas operations:
- Courses: listing, nicknames, name resolution
- Pages: lookup by title and URL
- Discussions: topics, announcements, threaded entries
- Files, grades and submissions
"""

import pytest

from tests.conftest import BASE_URL, FakeCanvas

COURSES = [
    {"id": "101", "name": "Intro to CS", "course_code": "CS 101",
     "enrollments": [{"enrollment_state": "active"}]},
    {"id": "202", "name": "Data Nerds", "original_name": "Data Structures", "course_code": "CS 202"},
    {"id": "303", "course_code": "HIST 1"},
]


# ─────────────────────────────────────────────────────────────────────────────
# Course Tools
# ─────────────────────────────────────────────────────────────────────────────


class TestCourseTools:
    """Tests for list_courses and resolve_course."""

    async def test_list_courses_maps_nicknames(self, fake_canvas: FakeCanvas):
        """Test that nicknamed courses keep their real name."""
        from coursescout.tools import list_courses

        fake_canvas.add("/api/v1/courses", json=COURSES)

        async with fake_canvas.client() as client:
            courses = await list_courses(client)

        assert [c.id for c in courses] == ["101", "202"]
        assert courses[0].enrollment_state == "active"
        assert courses[1].name == "Data Structures"
        assert courses[1].nickname == "Data Nerds"
        request = fake_canvas.calls("/api/v1/courses")[0]
        assert request.url.params.get("enrollment_state") == "active"

    async def test_list_courses_rejects_unknown_state(self, fake_canvas: FakeCanvas):
        """Test enrollment state validation."""
        from coursescout.tools import list_courses

        async with fake_canvas.client() as client:
            with pytest.raises(ValueError, match="enrollment_state"):
                await list_courses(client, "graduated")

    async def test_resolve_course_by_id_and_url(self, fake_canvas: FakeCanvas):
        """Test that ids and URLs resolve without API calls."""
        from coursescout.tools import resolve_course

        async with fake_canvas.client() as client:
            assert await resolve_course(client, "12345") == "12345"
            assert await resolve_course(client, f"{BASE_URL}/courses/678/pages/intro") == "678"

        assert fake_canvas.requests == []

    async def test_resolve_course_by_code_and_nickname(self, fake_canvas: FakeCanvas):
        """Test fuzzy resolution over names, codes and nicknames."""
        from coursescout.tools import resolve_course

        fake_canvas.add("/api/v1/courses", json=COURSES)

        async with fake_canvas.client() as client:
            assert await resolve_course(client, "cs 101") == "101"
            assert await resolve_course(client, "data nerds") == "202"
            assert await resolve_course(client, "Data Structures") == "202"
            with pytest.raises(ValueError, match="No course matches"):
                await resolve_course(client, "Organic Chemistry")

    async def test_resolve_course_requires_value(self, fake_canvas: FakeCanvas):
        """Test that an empty course reference is rejected."""
        from coursescout.tools import resolve_course

        async with fake_canvas.client() as client:
            with pytest.raises(ValueError, match="course"):
                await resolve_course(client, "")


# ─────────────────────────────────────────────────────────────────────────────
# Page Tools
# ─────────────────────────────────────────────────────────────────────────────


class TestPageTools:
    """Tests for list_pages and get_page."""

    def _add_pages(self, fake_canvas: FakeCanvas) -> None:
        fake_canvas.add("/api/v1/courses/5/pages", json=[
            {"url": "syllabus", "title": "Syllabus", "front_page": True},
            {"url": "week-1-overview", "title": "Week 1 Overview"},
        ])
        fake_canvas.add("/api/v1/courses/5/pages/week-1-overview", json={
            "url": "week-1-overview",
            "title": "Week 1 Overview",
            "body": "<p>Read chapter 1 &amp; 2.</p>",
        })

    async def test_list_pages(self, fake_canvas: FakeCanvas):
        """Test page listing."""
        from coursescout.tools import list_pages

        self._add_pages(fake_canvas)

        async with fake_canvas.client() as client:
            pages = await list_pages(client, "5")

        assert [p.url for p in pages] == ["syllabus", "week-1-overview"]
        assert pages[0].front_page is True

    async def test_get_page_by_title(self, fake_canvas: FakeCanvas):
        """Test fuzzy title lookup and body cleaning."""
        from coursescout.tools import get_page

        self._add_pages(fake_canvas)

        async with fake_canvas.client() as client:
            page = await get_page(client, "5", "week 1 overview")

        assert page.url == "week-1-overview"
        assert page.body_html.startswith("<p>")
        assert page.body_text == "Read chapter 1 & 2."

    async def test_get_page_by_url_skips_listing(self, fake_canvas: FakeCanvas):
        """Test that a page URL is read directly."""
        from coursescout.tools import get_page

        self._add_pages(fake_canvas)

        async with fake_canvas.client() as client:
            page = await get_page(client, "5", f"{BASE_URL}/courses/5/pages/week-1-overview")

        assert page.title == "Week 1 Overview"
        assert fake_canvas.calls("/api/v1/courses/5/pages") == []

    async def test_get_page_disabled(self, fake_canvas: FakeCanvas):
        """Test that a disabled Pages API surfaces a readable error."""
        from coursescout.shared.errors import CanvasAPIError
        from coursescout.tools import get_page

        fake_canvas.add(
            "/api/v1/courses/5/pages",
            status=404,
            json={"message": "That page has been disabled for this course"},
        )

        async with fake_canvas.client() as client:
            with pytest.raises(CanvasAPIError, match="disabled"):
                await get_page(client, "5", "syllabus")


# ─────────────────────────────────────────────────────────────────────────────
# Discussion Tools
# ─────────────────────────────────────────────────────────────────────────────


class TestDiscussionTools:
    """Tests for list_discussions and get_discussion."""

    async def test_list_announcements(self, fake_canvas: FakeCanvas):
        """Test that announcements_only filters server-side."""
        from coursescout.tools import list_discussions

        fake_canvas.add("/api/v1/courses/5/discussion_topics", json=[
            {"id": "9", "title": "Exam moved", "message": "<p>Now on Friday</p>",
             "author": {"display_name": "Prof. Lee"}},
        ])

        async with fake_canvas.client() as client:
            topics = await list_discussions(client, "5", announcements_only=True)

        assert topics[0].is_announcement is True
        assert topics[0].author == "Prof. Lee"
        assert topics[0].message_text == "Now on Friday"
        request = fake_canvas.calls("/api/v1/courses/5/discussion_topics")[0]
        assert request.url.params.get("only_announcements") == "true"

    async def test_get_discussion_with_entries(self, fake_canvas: FakeCanvas):
        """Test threaded entries with participant names."""
        from coursescout.tools import get_discussion

        fake_canvas.add("/api/v1/courses/5/discussion_topics/9", json={
            "id": "9", "title": "Week 1 questions", "discussion_subentry_count": 2,
        })
        fake_canvas.add("/api/v1/courses/5/discussion_topics/9/view", json={
            "participants": [{"id": "1", "display_name": "Ada"}, {"id": "2", "display_name": "Alan"}],
            "view": [{
                "id": "50", "user_id": "1", "message": "<p>Is lab due Monday?</p>",
                "replies": [{"id": "51", "user_id": "2", "message": "Yes"}],
            }],
        })

        async with fake_canvas.client() as client:
            thread = await get_discussion(client, "5", "9")

        assert thread.reply_count == 2
        assert thread.entries[0].author == "Ada"
        assert thread.entries[0].message_text == "Is lab due Monday?"
        assert thread.entries[0].replies[0].author == "Alan"

    async def test_get_discussion_without_view_access(self, fake_canvas: FakeCanvas):
        """Test that a forbidden entry view still returns the topic."""
        from coursescout.tools import get_discussion

        fake_canvas.add("/api/v1/courses/5/discussion_topics/9", json={"id": "9", "title": "Intro"})
        fake_canvas.add(
            "/api/v1/courses/5/discussion_topics/9/view", status=403, json={"message": "forbidden"}
        )

        async with fake_canvas.client() as client:
            thread = await get_discussion(client, "5", f"{BASE_URL}/courses/5/discussion_topics/9")

        assert thread.title == "Intro"
        assert thread.entries == []


# ─────────────────────────────────────────────────────────────────────────────
# File, Grade and Submission Tools
# ─────────────────────────────────────────────────────────────────────────────


class TestFileTools:
    """Tests for list_files and find_file."""

    async def test_find_file_by_name(self, fake_canvas: FakeCanvas):
        """Test fuzzy file lookup."""
        from coursescout.tools import find_file

        fake_canvas.add("/api/v1/courses/5/files", json=[
            {"id": "1", "display_name": "Lecture 1 Slides.pdf", "size": 100},
            {"id": "2", "display_name": "Homework 1.docx"},
        ])

        async with fake_canvas.client() as client:
            match = await find_file(client, "5", "homework 1")

        assert match.id == "2"

    async def test_short_search_term_rejected(self, fake_canvas: FakeCanvas):
        """Test Canvas's two-character minimum for search_term."""
        from coursescout.tools import list_files

        async with fake_canvas.client() as client:
            with pytest.raises(ValueError, match="search_term"):
                await list_files(client, "5", search_term="a")

    async def test_files_forbidden(self, fake_canvas: FakeCanvas):
        """Test that a 403 on the Files API raises a readable error."""
        from coursescout.shared.errors import CanvasAPIError
        from coursescout.tools import list_files

        fake_canvas.add("/api/v1/courses/5/files", status=403, json={"message": "unauthorized"})

        async with fake_canvas.client() as client:
            with pytest.raises(CanvasAPIError, match="Access denied"):
                await list_files(client, "5")


class TestGradeTools:
    """Tests for get_course_grade and list_assignment_grades."""

    async def test_course_grade(self, fake_canvas: FakeCanvas):
        """Test reading grades from the student enrollment."""
        from coursescout.tools import get_course_grade

        fake_canvas.add("/api/v1/courses/5/enrollments", json=[
            {"type": "StudentEnrollment", "grades": {"current_score": 91.5, "current_grade": "A-"}},
        ])

        async with fake_canvas.client() as client:
            grade = await get_course_grade(client, "5")

        assert grade.current_score == 91.5
        assert grade.current_grade == "A-"
        assert grade.final_score is None

    async def test_course_grade_without_enrollment(self, fake_canvas: FakeCanvas):
        """Test the empty grade when no student enrollment is visible."""
        from coursescout.tools import get_course_grade

        fake_canvas.add("/api/v1/courses/5/enrollments", json=[])

        async with fake_canvas.client() as client:
            grade = await get_course_grade(client, "5")

        assert grade.course_id == "5"
        assert grade.current_score is None

    async def test_assignment_grades(self, fake_canvas: FakeCanvas):
        """Test per-assignment scores."""
        from coursescout.tools import list_assignment_grades

        fake_canvas.add("/api/v1/courses/5/assignments", json=[
            {"id": "1", "name": "Essay", "points_possible": 10,
             "submission": {"score": 8, "grade": "8", "workflow_state": "graded"}},
            {"id": "2", "name": "Quiz", "submission": {"missing": True}},
        ])

        async with fake_canvas.client() as client:
            grades = await list_assignment_grades(client, "5")

        assert grades[0].score == 8
        assert grades[1].missing is True


class TestSubmissionTools:
    """Tests for get_submission and list_submissions."""

    async def test_get_submission_by_name(self, fake_canvas: FakeCanvas):
        """Test resolving the assignment by name before reading the submission."""
        from coursescout.tools import get_submission

        fake_canvas.add("/api/v1/courses/5/assignments", json=[
            {"id": "1", "name": "Essay Draft"},
            {"id": "2", "name": "Final Project"},
        ])
        fake_canvas.add("/api/v1/courses/5/assignments/2/submissions/self", json={
            "assignment_id": "2",
            "workflow_state": "submitted",
            "attempt": 1,
            "submission_comments": [{"author_name": "TA", "comment": "Nice work"}],
            "attachments": [{"display_name": "project.zip"}],
        })

        async with fake_canvas.client() as client:
            submission = await get_submission(client, "5", "final project")

        assert submission.assignment_id == "2"
        assert submission.assignment_name == "Final Project"
        assert submission.comments == ["TA: Nice work"]
        assert submission.attachments == ["project.zip"]
        request = fake_canvas.calls("/api/v1/courses/5/assignments/2/submissions/self")[0]
        assert request.url.params.get_list("include[]") == ["submission_comments", "assignment"]

    async def test_list_submissions(self, fake_canvas: FakeCanvas):
        """Test listing the user's submissions."""
        from coursescout.tools import list_submissions

        fake_canvas.add("/api/v1/courses/5/students/submissions", json=[
            {"assignment_id": "1", "assignment": {"name": "Essay"}, "score": 9, "late": True},
        ])

        async with fake_canvas.client() as client:
            submissions = await list_submissions(client, "5")

        assert submissions[0].assignment_name == "Essay"
        assert submissions[0].late is True

    async def test_get_submission_requires_assignment(self, fake_canvas: FakeCanvas):
        """Test that an empty assignment reference is rejected."""
        from coursescout.tools import get_submission

        async with fake_canvas.client() as client:
            with pytest.raises(ValueError, match="assignment"):
                await get_submission(client, "5", " ")

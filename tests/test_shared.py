"""
Tests for Shared Module.
========================

Tests for:
- Utilities (URL handling, text normalization)
- Error messages for Canvas error responses
- Configuration defaults and environment overrides
- Logging helpers
- Schema helpers
- MCP server plumbing
"""

import logging

import httpx
import pytest


# ─────────────────────────────────────────────────────────────────────────────
# Utils Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestUtils:
    """Tests for utility functions."""

    def test_require(self):
        """Test required-parameter validation."""
        from coursescout.shared.utils import require

        assert require(" 42 ", "course_id") == "42"
        assert require(42, "course_id") == "42"
        with pytest.raises(ValueError, match="Missing required parameter: course_id"):
            require("   ", "course_id")
        with pytest.raises(ValueError):
            require(None, "token")

    def test_normalize_base_url(self):
        """Test scheme defaulting and trailing slash removal."""
        from coursescout.shared.utils import normalize_base_url

        assert normalize_base_url("school.instructure.com/") == "https://school.instructure.com"
        assert normalize_base_url("http://localhost:3000//") == "http://localhost:3000"

    def test_parse_canvas_url(self):
        """Test identifier extraction from Canvas URLs."""
        from coursescout.shared.utils import parse_canvas_url

        page = parse_canvas_url("https://school.instructure.com/courses/123/pages/week-1-overview")
        assert page.base_url == "https://school.instructure.com"
        assert page.course_id == "123"
        assert page.page_slug == "week-1-overview"

        file_info = parse_canvas_url("/courses/123/files/456/download?wrap=1")
        assert file_info.file_id == "456"

        item = parse_canvas_url("https://x.test/courses/1/modules/items/77")
        assert item.module_item_id == "77"
        assert item.module_id is None

        assert parse_canvas_url("not a url").course_id is None

    def test_is_canvas_url(self):
        """Test Canvas URL detection."""
        from coursescout.shared.utils import is_canvas_url

        assert is_canvas_url("https://school.instructure.com/courses/1")
        assert is_canvas_url("https://lms.example.edu/courses/1/pages/x")
        assert not is_canvas_url("CS 101")

    def test_normalize_text_and_tokenize(self):
        """Test lowercase and punctuation folding."""
        from coursescout.shared.utils import normalize_text, tokenize

        assert normalize_text("  Intro to CS-101! ") == "intro to cs 101"
        assert normalize_text(None) == ""
        assert tokenize("Week 1: Overview") == ["week", "1", "overview"]

    def test_truncate_text(self):
        """Test truncation at word boundaries."""
        from coursescout.shared.utils import truncate_text

        assert truncate_text("short", 100) == "short"
        assert truncate_text("one two three four five", 0) == "one two three four five"
        assert truncate_text("alpha beta gamma delta", 17) == "alpha beta gamma..."


# ─────────────────────────────────────────────────────────────────────────────
# Errors Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestErrors:
    """Tests for Canvas error translation."""

    @pytest.mark.parametrize(
        "status,body,expected",
        [
            (404, {"message": "That page has been disabled for this course"},
             "Canvas API Error (404): The requested resource has been disabled for this course"),
            (404, {"errors": [{"message": "The specified resource does not exist."}]},
             "Canvas API Error (404): The requested resource was not found or is not accessible"),
            (401, {"errors": [{"message": "Invalid access token."}]},
             "Canvas API Error (401): Invalid or expired access token"),
            (403, {"status": "unauthorized"},
             "Canvas API Error (403): Access denied - insufficient permissions"),
            (422, {"errors": [{"message": "search_term is too short"}]},
             "Canvas API Error (422): search_term is too short"),
        ],
    )
    def test_friendly_messages(self, status, body, expected):
        """Test messages for common statuses."""
        from coursescout.shared.errors import CanvasAPIError

        error = CanvasAPIError.from_response(httpx.Response(status, json=body), "/api/v1/x")

        assert str(error) == expected
        assert error.status_code == status
        assert error.path == "/api/v1/x"

    def test_extract_error_message_from_text(self):
        """Test plain-text and empty error bodies."""
        from coursescout.shared.errors import extract_error_message

        assert extract_error_message(httpx.Response(500, text="Internal failure")) == "Internal failure"
        assert extract_error_message(httpx.Response(502)) == "Bad Gateway"

    def test_hierarchy(self):
        """Test that both error kinds share a base class."""
        from coursescout.shared.errors import CanvasAPIError, CanvasError, CanvasRequestError

        assert issubclass(CanvasAPIError, CanvasError)
        assert issubclass(CanvasRequestError, CanvasError)
        assert CanvasRequestError("boom", path="/x").path == "/x"


# ─────────────────────────────────────────────────────────────────────────────
# Config Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestConfig:
    """Tests for configuration loading."""

    def test_defaults(self):
        """Test values shipped in settings.yaml."""
        from coursescout.shared.config import get_settings

        settings = get_settings()

        assert settings.pagination.per_page == 100
        assert settings.discovery.max_web_pages == 40
        assert "syllabus" in settings.discovery.common_page_slugs
        assert settings.search.match_threshold == 0.5
        assert settings.get_effective_cache_ttl() == 3600

    def test_environment_overrides(self, monkeypatch):
        """Test that environment variables win over YAML."""
        from coursescout.shared.config import reload_settings

        monkeypatch.setenv("CANVAS_BASE_URL", " https://school.instructure.com ")
        monkeypatch.setenv("CANVAS_API_TOKEN", "abc")
        monkeypatch.setenv("CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = reload_settings()

        assert settings.get_effective_base_url() == "https://school.instructure.com"
        assert settings.get_effective_token() == "abc"
        assert settings.get_effective_cache_ttl() == 60
        assert settings.get_effective_log_level() == "DEBUG"

    def test_singleton(self):
        """Test that get_settings is cached."""
        from coursescout.shared.config import get_settings

        assert get_settings() is get_settings()


# ─────────────────────────────────────────────────────────────────────────────
# Logging Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestLogging:
    """Tests for logging helpers."""

    def test_get_logger(self):
        """Test named logger creation."""
        from coursescout.shared.logging import get_logger

        assert get_logger("coursescout.test").name == "coursescout.test"

    def test_log_context_restores_level(self):
        """Test temporary level changes."""
        from coursescout.shared.logging import LogContext

        logger = logging.getLogger("coursescout.context_test")
        logger.setLevel(logging.WARNING)

        with LogContext("DEBUG", "coursescout.context_test"):
            assert logger.level == logging.DEBUG

        assert logger.level == logging.WARNING


# ─────────────────────────────────────────────────────────────────────────────
# Schema Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestSchemas:
    """Tests for schema helpers."""

    def _report(self, available: dict):
        from coursescout.shared.schemas import (
            APIAvailabilityReport,
            EndpointCategory,
            EndpointStatus,
        )

        report = APIAvailabilityReport(course_id="1")
        for category in EndpointCategory:
            ok = available.get(category, True)
            report.endpoints[category] = EndpointStatus(
                category=category, path=f"/{category.value}", available=ok,
                status_code=200 if ok else 403,
            )
        return report

    def test_restriction_summary_variants(self):
        """Test all-available and all-restricted wording."""
        from coursescout.shared.schemas import EndpointCategory

        assert self._report({}).restriction_summary() == "All APIs available (7/7)"

        restricted = self._report({c: False for c in EndpointCategory})
        assert restricted.restriction_summary().startswith("All APIs restricted (0/7)")
        assert restricted.summary().recommend_web_discovery is True

    def test_fallback_per_category(self):
        """Test fallback wording for files and modules."""
        from coursescout.shared.schemas import EndpointCategory

        report = self._report({EndpointCategory.FILES: False, EndpointCategory.MODULES: False})
        fallbacks = {s.category: s for s in report.suggested_fallbacks()}

        assert "unauthorized" in fallbacks[EndpointCategory.FILES].reason
        assert fallbacks[EndpointCategory.MODULES].fallback == "Course navigation parsing"

    def test_course_index_is_frozen(self):
        """Test that a cached index cannot be edited in place."""
        from pydantic import ValidationError

        from coursescout.shared.schemas import CourseIndex

        index = CourseIndex(course_id="1")

        with pytest.raises(ValidationError):
            index.course_name = "changed"
        assert index.is_empty

    def test_to_jsonable(self):
        """Test model dumping for tool payloads."""
        from coursescout.shared.schemas import CourseSummary, to_jsonable

        payload = to_jsonable([CourseSummary(id="1", name="Intro")])

        assert payload == [{
            "id": "1", "name": "Intro", "course_code": None,
            "nickname": None, "enrollment_state": None,
        }]
        assert to_jsonable({"a": 1}) == {"a": 1}


# ─────────────────────────────────────────────────────────────────────────────
# Server Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestServer:
    """Tests for MCP server plumbing."""

    async def test_guarded_returns_error_payload(self):
        """Test that expected failures become {"error": ...}."""
        from coursescout.server import _guarded
        from coursescout.shared.errors import CanvasAPIError

        async def failing():
            raise CanvasAPIError(403, "/x", "Canvas API Error (403): Access denied")

        async def invalid():
            raise ValueError("Missing required parameter: course")

        assert await _guarded("op", failing) == {"error": "Canvas API Error (403): Access denied"}
        assert await _guarded("op", invalid) == {"error": "Missing required parameter: course"}

    async def test_guarded_dumps_models(self):
        """Test that successful results are JSON-ready."""
        from coursescout.server import _guarded
        from coursescout.shared.schemas import CourseGrade

        async def ok():
            return CourseGrade(course_id="5", current_score=90.0)

        result = await _guarded("op", ok)

        assert result["course_id"] == "5"
        assert result["current_score"] == 90.0

    def test_missing_credentials(self):
        """Test that tools refuse to run without configuration."""
        from coursescout.server import _credentials

        with pytest.raises(ValueError, match="CANVAS_BASE_URL"):
            _credentials()

    def test_orchestrator_singleton(self):
        """Test that the server keeps one orchestrator and cache."""
        from coursescout.server import get_orchestrator

        assert get_orchestrator() is get_orchestrator()
        assert get_orchestrator().clear_course_cache() == 0

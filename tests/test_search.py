"""
Tests for Search Module.
========================

Tests for:
- similarity and relevance scoring
- find_best_match / rank_matches tie-breaking
- Smart search over an extracted course
"""

from types import SimpleNamespace

import pytest

from tests.conftest import BASE_URL, TOKEN, FakeCanvas


# ─────────────────────────────────────────────────────────────────────────────
# Scoring Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestSimilarity:
    """Tests for the similarity and relevance functions."""

    def test_exact_match_ignores_case_and_punctuation(self):
        """Test that normalized equality scores 1.0."""
        from coursescout.search import similarity

        assert similarity("CS 101", "cs-101") == 1.0

    def test_substring_scores_by_length_ratio(self):
        """Test containment scoring."""
        from coursescout.search import similarity

        assert similarity("CS 101", "CS 101 Lab") == pytest.approx(0.78)

    def test_empty_input_scores_zero(self):
        """Test that missing text never matches."""
        from coursescout.search import similarity

        assert similarity("", "Intro") == 0.0
        assert similarity("Intro", None) == 0.0

    def test_closer_text_scores_higher(self):
        """Test that a typo still beats an unrelated name."""
        from coursescout.search import similarity

        assert similarity("Syllabus", "Sylabus") > similarity("Syllabus", "Homework")

    def test_relevance_rewards_query_coverage(self):
        """Test that a long body containing every query word is relevant."""
        from coursescout.search import relevance

        body = "Read the lecture notes before class"

        assert relevance("lecture notes", body) == pytest.approx(0.75)
        assert relevance("lecture notes", body) > relevance("exam schedule", body)


# ─────────────────────────────────────────────────────────────────────────────
# Matching Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestFindBestMatch:
    """Tests for find_best_match and rank_matches."""

    def test_course_code_exact_match_wins(self):
        """Test that an exact match on a later field beats a partial name match."""
        from coursescout.search import find_best_match

        courses = [
            {"name": "Intro to CS", "course_code": "CS 101"},
            {"name": "CS 101 Lab"},
        ]

        best = find_best_match("CS 101", courses, ["name", "course_code"])

        assert best is courses[0]

    def test_equal_scores_prefer_earlier_field(self):
        """Test field priority on ties."""
        from coursescout.search import rank_matches

        candidates = [
            {"name": "Linear Algebra Review", "code": "algebra"},
            {"name": "Algebra"},
        ]

        ranked = rank_matches("algebra", candidates, ["name", "code"])

        assert [c for c, _ in ranked] == [candidates[1], candidates[0]]
        assert all(score == 1.0 for _, score in ranked)

    def test_equal_candidates_keep_input_order(self):
        """Test that identical scores keep the original order."""
        from coursescout.search import rank_matches

        candidates = [{"title": "Week 1", "id": 1}, {"title": "Week 1", "id": 2}]

        ranked = rank_matches("week 1", candidates, ["title"])

        assert [c["id"] for c, _ in ranked] == [1, 2]

    def test_below_threshold_returns_none(self):
        """Test that weak matches are rejected."""
        from coursescout.search import find_best_match

        assert find_best_match("chemistry", [{"name": "Intro to CS"}], ["name"]) is None
        assert find_best_match("CS", [{"name": "CS 101"}], ["name"], threshold=0.99) is None

    def test_blank_query_returns_none(self):
        """Test that an empty query matches nothing."""
        from coursescout.search import find_best_match

        assert find_best_match("   ", [{"name": "Intro"}], ["name"]) is None

    def test_matches_object_attributes(self):
        """Test that candidates can be objects as well as dicts."""
        from coursescout.search import find_best_match

        pages = [SimpleNamespace(title="Syllabus"), SimpleNamespace(title="Week 1 Overview")]

        assert find_best_match("week 1 overview", pages, ["title"]) is pages[1]

    def test_missing_fields_are_skipped(self):
        """Test that candidates lacking a field are scored on the others."""
        from coursescout.search import find_best_match

        files = [{"display_name": None, "filename": "notes.pdf"}]

        assert find_best_match("notes.pdf", files, ["display_name", "filename"]) is files[0]

    def test_requires_fields(self):
        """Test that an empty field list is rejected."""
        from coursescout.search import rank_matches

        with pytest.raises(ValueError):
            rank_matches("x", [{"name": "x"}], [])


# ─────────────────────────────────────────────────────────────────────────────
# Smart Search Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestSmartSearch:
    """Tests for ContentExtractionOrchestrator.smart_search."""

    async def test_ranks_files_and_pages(self, make_orchestrator, restricted_course: FakeCanvas):
        """Test that the best file and page come first."""
        from coursescout.shared.schemas import DiscoveryMethod

        orchestrator = make_orchestrator()

        result = await orchestrator.smart_search("lecture notes", "42", BASE_URL, TOKEN)

        assert result.success is True
        assert result.method == DiscoveryMethod.HYBRID
        assert result.files[0].identifier == "502"
        assert result.files[0].kind == "file"
        assert result.pages[0].title == "Week 1 Overview"
        assert result.total_results == len(result.files) + len(result.pages) + len(result.links)

    async def test_uses_cached_index(self, make_orchestrator, restricted_course: FakeCanvas):
        """Test that a second search does not hit Canvas."""
        from coursescout.shared.schemas import DiscoveryMethod

        orchestrator = make_orchestrator()
        await orchestrator.smart_search("syllabus", "42", BASE_URL, TOKEN)
        request_count = len(restricted_course.requests)

        result = await orchestrator.smart_search("outline", "42", BASE_URL, TOKEN)

        assert len(restricted_course.requests) == request_count
        assert result.method == DiscoveryMethod.CACHED
        assert result.files[0].identifier == "101"

    async def test_truncates_to_max_results(self, make_orchestrator, restricted_course: FakeCanvas):
        """Test per-kind truncation and the truncated flag."""
        orchestrator = make_orchestrator()

        result = await orchestrator.smart_search("pdf", "42", BASE_URL, TOKEN, max_results=1)

        assert len(result.files) == 1
        assert result.files[0].identifier == "101"
        assert result.truncated is True

    async def test_invalid_max_results(self, make_orchestrator):
        """Test that max_results below 1 is rejected."""
        orchestrator = make_orchestrator()

        with pytest.raises(ValueError, match="max_results"):
            await orchestrator.smart_search("pdf", "42", BASE_URL, TOKEN, max_results=0)

    async def test_failed_extraction_is_unsuccessful(self, make_orchestrator, fake_canvas: FakeCanvas):
        """Test that search reports extraction failures instead of raising."""
        from tests.test_orchestrator import RaisingDetector, RaisingWebFallback

        orchestrator = make_orchestrator(
            detector=RaisingDetector(), web_fallback=RaisingWebFallback()
        )

        result = await orchestrator.smart_search("pdf", "42", BASE_URL, TOKEN)

        assert result.success is False
        assert result.errors
        assert result.total_results == 0

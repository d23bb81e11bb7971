"""
MCP Server - Expose Canvas tools and content discovery over MCP.
================================================================

Registers the per-entity tools and the extraction engine operations on
a FastMCP app. Credentials come from settings (CANVAS_BASE_URL and
CANVAS_API_TOKEN). Logs go to stderr so stdout stays protocol-clean.

Tools return JSON-ready dicts; failures are returned as {"error": ...}.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from fastmcp import FastMCP

from coursescout import tools
from coursescout.discovery.client import CanvasClient
from coursescout.discovery.detector import APIAvailabilityDetector
from coursescout.discovery.orchestrator import ContentExtractionOrchestrator
from coursescout.shared.config import get_settings
from coursescout.shared.errors import CanvasError
from coursescout.shared.logging import get_logger, setup_logging
from coursescout.shared.schemas import to_jsonable

logger = get_logger(__name__)

app = FastMCP("coursescout")

_orchestrator: Optional[ContentExtractionOrchestrator] = None

READ_ONLY = {"readOnlyHint": True}


def get_orchestrator() -> ContentExtractionOrchestrator:
    """Get the process-wide orchestrator (and its cache)."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ContentExtractionOrchestrator()
    return _orchestrator


def _credentials() -> tuple[str, str]:
    settings = get_settings()
    base_url = settings.get_effective_base_url()
    token = settings.get_effective_token()
    if not base_url or not token:
        raise ValueError("CANVAS_BASE_URL and CANVAS_API_TOKEN must be configured")
    return base_url, token


@asynccontextmanager
async def _client() -> AsyncIterator[CanvasClient]:
    base_url, token = _credentials()
    client = CanvasClient(base_url, token)
    try:
        yield client
    finally:
        await client.aclose()


async def _guarded(operation: str, call: Callable[[], Awaitable[Any]]) -> Any:
    """Run a tool body, turning expected failures into an error payload."""
    try:
        return to_jsonable(await call())
    except (ValueError, CanvasError) as e:
        logger.warning(f"{operation} failed: {e}")
        return {"error": str(e)}


async def _with_course(course: str, operation: Callable[[CanvasClient, str], Awaitable[Any]]) -> Any:
    async with _client() as client:
        course_id = await tools.resolve_course(client, course)
        return await operation(client, course_id)


# ─────────────────────────────────────────────────────────────────────────────
# Entity Tools
# ─────────────────────────────────────────────────────────────────────────────


@app.tool(annotations={"title": "List your Canvas courses", **READ_ONLY})
async def list_courses(enrollment_state: Optional[str] = "active") -> Any:
    """
    List courses you are enrolled in.

    Args:
        enrollment_state: "active", "invited_or_pending", "completed", or empty for all
    """
    async def call() -> Any:
        async with _client() as client:
            return await tools.list_courses(client, enrollment_state or None)

    return await _guarded("list_courses", call)


@app.tool(annotations={"title": "List the pages of a course", **READ_ONLY})
async def list_pages(course: str) -> Any:
    """List wiki pages of a course (course id, URL, name or code)."""
    return await _guarded("list_pages", lambda: _with_course(course, tools.list_pages))


@app.tool(annotations={"title": "Read a course page", **READ_ONLY})
async def get_page(course: str, page: str) -> Any:
    """Read a page by slug, Canvas URL or title."""
    return await _guarded(
        "get_page",
        lambda: _with_course(course, lambda client, cid: tools.get_page(client, cid, page)),
    )


@app.tool(annotations={"title": "List discussions or announcements", **READ_ONLY})
async def list_discussions(course: str, announcements_only: bool = False) -> Any:
    """List discussion topics of a course, or only its announcements."""
    return await _guarded(
        "list_discussions",
        lambda: _with_course(
            course, lambda client, cid: tools.list_discussions(client, cid, announcements_only)
        ),
    )


@app.tool(annotations={"title": "Read a discussion thread", **READ_ONLY})
async def get_discussion(course: str, topic: str) -> Any:
    """Read a discussion topic (id, URL or title) with its replies."""
    return await _guarded(
        "get_discussion",
        lambda: _with_course(course, lambda client, cid: tools.get_discussion(client, cid, topic)),
    )


@app.tool(annotations={"title": "List the files of a course", **READ_ONLY})
async def list_files(course: str, search_term: Optional[str] = None) -> Any:
    """List files of a course, optionally filtered by name."""
    return await _guarded(
        "list_files",
        lambda: _with_course(course, lambda client, cid: tools.list_files(client, cid, search_term)),
    )


@app.tool(annotations={"title": "Find a course file by name", **READ_ONLY})
async def find_file(course: str, name: str) -> Any:
    """Find the file whose name best matches the given text."""
    return await _guarded(
        "find_file",
        lambda: _with_course(course, lambda client, cid: tools.find_file(client, cid, name)),
    )


@app.tool(annotations={"title": "Get your grade in a course", **READ_ONLY})
async def get_course_grade(course: str) -> Any:
    """Get your current and final score in a course."""
    return await _guarded("get_course_grade", lambda: _with_course(course, tools.get_course_grade))


@app.tool(annotations={"title": "List your assignment grades", **READ_ONLY})
async def list_assignment_grades(course: str) -> Any:
    """List every assignment of a course with your score."""
    return await _guarded(
        "list_assignment_grades", lambda: _with_course(course, tools.list_assignment_grades)
    )


@app.tool(annotations={"title": "Get your submission for an assignment", **READ_ONLY})
async def get_submission(course: str, assignment: str) -> Any:
    """Get your submission, grade and comments for one assignment (id, URL or name)."""
    return await _guarded(
        "get_submission",
        lambda: _with_course(
            course, lambda client, cid: tools.get_submission(client, cid, assignment)
        ),
    )


@app.tool(annotations={"title": "List your submissions in a course", **READ_ONLY})
async def list_submissions(course: str) -> Any:
    """List all of your submissions in a course."""
    return await _guarded("list_submissions", lambda: _with_course(course, tools.list_submissions))


# ─────────────────────────────────────────────────────────────────────────────
# Content Discovery Tools
# ─────────────────────────────────────────────────────────────────────────────


async def _resolve(course: str) -> str:
    async with _client() as client:
        return await tools.resolve_course(client, course)


@app.tool(annotations={"title": "Check which Canvas APIs a course allows", **READ_ONLY})
async def check_api_availability(course: str) -> Any:
    """Probe the course's API endpoints and suggest fallbacks for restricted ones."""
    async def call() -> Any:
        async with _client() as client:
            course_id = await tools.resolve_course(client, course)
            report = await APIAvailabilityDetector().detect(client, course_id)
        return {
            "report": to_jsonable(report),
            "summary": to_jsonable(report.summary()),
            "restriction_summary": report.restriction_summary(),
            "suggested_fallbacks": to_jsonable(report.suggested_fallbacks()),
        }

    return await _guarded("check_api_availability", call)


@app.tool(annotations={"title": "Discover all content of a course", **READ_ONLY})
async def extract_course_content(
    course: str,
    force_refresh: bool = False,
    preferred_method: Optional[str] = None,
) -> Any:
    """
    Build an index of a course's pages, files and links.

    Falls back to the web interface when API endpoints are restricted.
    Results are cached; use force_refresh to rebuild.
    """
    async def call() -> Any:
        base_url, token = _credentials()
        course_id = await _resolve(course)
        return await get_orchestrator().extract_course_content(
            course_id, base_url, token, force_refresh, preferred_method
        )

    return await _guarded("extract_course_content", call)


@app.tool(annotations={"title": "Search a course's content", **READ_ONLY})
async def smart_search(
    query: str,
    course: str,
    max_results: Optional[int] = None,
    force_refresh: bool = False,
) -> Any:
    """Search a course's files, pages and links, even when APIs are restricted."""
    async def call() -> Any:
        base_url, token = _credentials()
        course_id = await _resolve(course)
        return await get_orchestrator().smart_search(
            query, course_id, base_url, token, max_results, force_refresh
        )

    return await _guarded("smart_search", call)


@app.tool(annotations={"title": "Look up a discovered file by id", **READ_ONLY})
async def get_content_by_file_id(file_id: str, course: str) -> Any:
    """Look up a file found during content discovery by its Canvas id."""
    async def call() -> Any:
        base_url, token = _credentials()
        course_id = await _resolve(course)
        return await get_orchestrator().get_content_by_file_id(file_id, course_id, base_url, token)

    return await _guarded("get_content_by_file_id", call)


@app.tool(annotations={"title": "Clear cached course content"})
async def clear_course_cache(course_id: Optional[str] = None) -> Any:
    """Drop the cached index of one course id, or of all courses."""
    removed = get_orchestrator().clear_course_cache(course_id or None)
    return {"cleared": removed}


@app.tool(annotations={"title": "Content discovery statistics", **READ_ONLY})
async def get_extraction_stats() -> Any:
    """Report cached courses and discovered item counts."""
    return to_jsonable(get_orchestrator().get_extraction_stats())


def main() -> None:
    """Run the MCP server over stdio."""
    settings = get_settings()
    setup_logging(
        level=settings.get_effective_log_level(),
        use_rich=settings.logging.rich_console,
        log_file=settings.logging.file or None,
        log_format=settings.logging.format,
        force=True,
    )
    logger.info("Starting CourseScout MCP server")
    app.run()


if __name__ == "__main__":
    main()

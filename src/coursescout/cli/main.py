"""
CLI Main - Typer command-line interface.
========================================

Commands:
- serve: Run the MCP server over stdio
- courses: List your Canvas courses
- probe: Check which API categories a course allows
- discover: Build a course content index (API with web fallback)
- search: Search a course's discovered content
- info: Show configuration
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from coursescout.shared.config import get_settings
from coursescout.shared.logging import LogContext, get_logger

logger = get_logger(__name__)

app = typer.Typer(
    name="coursescout",
    help="""CourseScout - Canvas LMS content discovery for MCP clients

Finds a course's pages, files and links even when parts of the Canvas API
are disabled, by falling back to the web interface.

Configure CANVAS_BASE_URL and CANVAS_API_TOKEN (environment or .env).

QUICK START:

  coursescout courses                       # List your courses
  coursescout probe "CS 101"                # Which APIs are available?
  coursescout discover "CS 101"             # Build the content index
  coursescout search "CS 101" "syllabus"    # Search discovered content
  coursescout serve                         # Run the MCP server
""",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def _credentials() -> tuple[str, str]:
    settings = get_settings()
    base_url = settings.get_effective_base_url()
    token = settings.get_effective_token()
    if not base_url or not token:
        console.print("[red]Error:[/red] CANVAS_BASE_URL and CANVAS_API_TOKEN must be set")
        raise typer.Exit(1)
    return base_url, token


async def _resolve_course(course: str) -> str:
    from coursescout.discovery.client import CanvasClient
    from coursescout.tools import resolve_course

    base_url, token = _credentials()
    async with CanvasClient(base_url, token) as client:
        return await resolve_course(client, course)


def _run(coro):
    """Run a coroutine, reporting expected failures without a traceback."""
    from coursescout.shared.errors import CanvasError

    try:
        return asyncio.run(coro)
    except (ValueError, CanvasError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Serve Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def serve():
    """
    Run the MCP server over stdio.

    Logs go to stderr; stdout carries the protocol.
    """
    from coursescout.server import main

    main()


# ─────────────────────────────────────────────────────────────────────────────
# Courses Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def courses(
    state: Optional[str] = typer.Option(
        "active",
        "--state", "-s",
        help="Enrollment state: active, invited_or_pending, completed. Use 'all' for every course.",
    ),
):
    """List your Canvas courses."""
    from coursescout.discovery.client import CanvasClient
    from coursescout.tools import list_courses

    base_url, token = _credentials()

    async def fetch():
        async with CanvasClient(base_url, token) as client:
            return await list_courses(client, None if state == "all" else state)

    results = _run(fetch())

    table = Table(title=f"Courses ({len(results)})")
    table.add_column("ID", style="cyan")
    table.add_column("Code")
    table.add_column("Name")
    table.add_column("Nickname", style="dim")
    for course in results:
        table.add_row(course.id, course.course_code or "", course.name, course.nickname or "")
    console.print(table)


# ─────────────────────────────────────────────────────────────────────────────
# Probe Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def probe(
    course: str = typer.Argument(..., help="Course id, URL, name or code."),
):
    """Check which API categories a course allows."""
    from coursescout.discovery.client import CanvasClient
    from coursescout.discovery.detector import APIAvailabilityDetector

    base_url, token = _credentials()

    async def run_probe():
        course_id = await _resolve_course(course)
        async with CanvasClient(base_url, token) as client:
            return await APIAvailabilityDetector().detect(client, course_id)

    report = _run(run_probe())

    table = Table(title=f"API availability for course {report.course_id}")
    table.add_column("Category")
    table.add_column("Status")
    table.add_column("HTTP", justify="right")
    table.add_column("Reason", style="dim")
    for category, status in report.endpoints.items():
        verdict = "[green]available[/green]" if status.available else "[red]restricted[/red]"
        table.add_row(category.value, verdict, str(status.status_code), status.reason or "")
    console.print(table)
    console.print(f"\n{report.restriction_summary()}")

    for suggestion in report.suggested_fallbacks():
        console.print(f"  • {suggestion.category.value}: {suggestion.fallback} ({suggestion.reason})")


# ─────────────────────────────────────────────────────────────────────────────
# Discover Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def discover(
    course: str = typer.Argument(..., help="Course id, URL, name or code."),
    method: Optional[str] = typer.Option(
        None,
        "--method", "-m",
        help="Force a single avenue: api or web.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show discovery debug logs.",
    ),
    show_items: bool = typer.Option(
        False,
        "--items",
        help="List every discovered page, file and link.",
    ),
):
    """
    Build the content index of a course.

    Uses the API where available and the web interface for restricted
    categories.
    """
    from coursescout.discovery.orchestrator import ContentExtractionOrchestrator

    base_url, token = _credentials()

    async def run_discovery():
        course_id = await _resolve_course(course)
        return await ContentExtractionOrchestrator().extract_course_content(
            course_id, base_url, token, force_refresh=True, preferred_method=method
        )

    with LogContext("DEBUG" if verbose else "INFO", "coursescout"):
        result = _run(run_discovery())

    if not result.success or result.course_index is None:
        console.print(Panel("\n".join(result.errors), title="Discovery failed", style="red"))
        raise typer.Exit(1)

    index = result.course_index
    meta = index.metadata
    console.print(Panel(
        f"[bold]{index.course_name or index.course_id}[/bold]\n"
        f"Method: {result.method.value if result.method else '-'}\n"
        f"Pages: {meta.total_pages}  Files: {meta.total_files}  Links: {meta.total_links}\n"
        f"API: {result.restriction_summary or '-'}\n"
        f"Elapsed: {result.elapsed_seconds:.2f}s",
        title="Discovery",
    ))

    if show_items:
        table = Table()
        table.add_column("Kind")
        table.add_column("Title")
        table.add_column("Source", style="dim")
        table.add_column("URL", style="dim")
        for page in index.discovered_pages:
            table.add_row(page.content_type, page.name, page.source, page.url)
        for record in index.discovered_files:
            table.add_row("file", record.file_name, record.source, record.url)
        for link in index.discovered_links:
            table.add_row(link.link_type.value, link.title, link.source, link.url)
        console.print(table)

    if result.errors:
        console.print(f"\n[yellow]{len(result.errors)} problems during discovery:[/yellow]")
        for error in result.errors:
            console.print(f"  • {error}")


# ─────────────────────────────────────────────────────────────────────────────
# Search Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def search(
    course: str = typer.Argument(..., help="Course id, URL, name or code."),
    query: str = typer.Argument(..., help="What to look for."),
    max_results: int = typer.Option(
        5,
        "--max-results", "-k",
        help="Maximum hits per kind (files, pages, links).",
    ),
):
    """Search a course's files, pages and links."""
    from coursescout.discovery.orchestrator import ContentExtractionOrchestrator

    base_url, token = _credentials()

    async def run_search():
        course_id = await _resolve_course(course)
        return await ContentExtractionOrchestrator().smart_search(
            query, course_id, base_url, token, max_results=max_results
        )

    result = _run(run_search())

    if not result.success:
        console.print(Panel("\n".join(result.errors), title="Search failed", style="red"))
        raise typer.Exit(1)

    table = Table(title=f"{result.total_results} results for {query!r}")
    table.add_column("Kind")
    table.add_column("Title")
    table.add_column("Score", justify="right")
    table.add_column("URL", style="dim")
    for hit in result.files + result.pages + result.links:
        table.add_row(hit.kind, hit.title, f"{hit.relevance:.2f}", hit.url)
    console.print(table)

    if result.truncated:
        console.print("[dim]More results available; raise --max-results to see them.[/dim]")


# ─────────────────────────────────────────────────────────────────────────────
# Info Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def info():
    """Show configuration."""
    from coursescout import __version__

    settings = get_settings()
    token = settings.get_effective_token()

    console.print(Panel(
        f"[bold]CourseScout[/bold]\n"
        f"Version: {__version__}\n"
        f"Config: config/settings.yaml",
        title="Info",
    ))

    table = Table()
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Canvas URL", settings.get_effective_base_url() or "[red]not set[/red]")
    table.add_row("API token", "configured" if token else "[red]not set[/red]")
    table.add_row("Cache TTL", f"{settings.get_effective_cache_ttl()}s")
    table.add_row("Max web pages", str(settings.discovery.max_web_pages))
    table.add_row("Match threshold", str(settings.search.match_threshold))
    table.add_row("Log level", settings.get_effective_log_level())
    console.print(table)


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def cli():
    """CLI entry point."""
    app()


if __name__ == "__main__":
    cli()

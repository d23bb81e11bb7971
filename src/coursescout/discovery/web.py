"""
Web Discovery Module - Rebuild course content from rendered Canvas pages.
=========================================================================

Used when the REST API is restricted for a course. Fetches the HTML
surfaces a student would click through (course home, pages, modules,
files, discussions, assignments, announcements, plus well-known page
slugs such as ``syllabus``) and follows in-course content links
breadth-first.

Every fetch is bounded: the crawl stops after ``discovery.max_web_pages``
pages and at most ``discovery.max_concurrency`` requests run at once.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from coursescout.discovery.client import CanvasClient
from coursescout.discovery.cleaner import CleanerConfig, TextCleaner
from coursescout.discovery.collector import ContentCollector
from coursescout.discovery.parser import CanvasPageParser, ParsedPage
from coursescout.shared.config import get_settings
from coursescout.shared.errors import CanvasError
from coursescout.shared.logging import get_logger
from coursescout.shared.schemas import (
    DiscoveredFile,
    DiscoveredLink,
    DiscoveredPage,
    DiscoveryMethod,
    EndpointCategory,
)
from coursescout.shared.utils import require

logger = get_logger(__name__)

LOGIN_REQUIRED_ERROR = "Web interface requires additional authentication"

# Listing surfaces per category; {course_id} is filled in per course
NAVIGATION_SURFACES: dict[EndpointCategory, list[str]] = {
    EndpointCategory.PAGES: ["/courses/{course_id}/pages"],
    EndpointCategory.FILES: ["/courses/{course_id}/files"],
    EndpointCategory.MODULES: ["/courses/{course_id}/modules"],
    EndpointCategory.ASSIGNMENTS: ["/courses/{course_id}/assignments"],
    EndpointCategory.DISCUSSIONS: ["/courses/{course_id}/discussion_topics"],
    EndpointCategory.ANNOUNCEMENTS: ["/courses/{course_id}/announcements"],
    EndpointCategory.TABS: [],
}

CONTENT_TYPES = {
    "pages": "page",
    "discussion_topics": "discussion",
    "assignments": "assignment",
}


# ─────────────────────────────────────────────────────────────────────────────
# Data Classes
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class Surface:
    """A course web page scheduled for fetching."""

    path: str
    is_content: bool = False
    guessed: bool = False
    label: str = ""


@dataclass
class WebDiscoveryResult:
    """Content reconstructed from the web interface."""

    course_id: str
    content: ContentCollector = field(default_factory=ContentCollector)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    surfaces_fetched: int = 0
    discovery_method: DiscoveryMethod = DiscoveryMethod.WEB

    @property
    def reached(self) -> bool:
        """True when at least one page was fetched and parsed."""
        return self.surfaces_fetched > 0

    @property
    def has_data(self) -> bool:
        return not self.content.is_empty

    def add_error(self, message: str) -> None:
        if message not in self.errors:
            self.errors.append(message)


# ─────────────────────────────────────────────────────────────────────────────
# Fallback Class
# ─────────────────────────────────────────────────────────────────────────────


class WebDiscoveryFallback:
    """
    Crawl a course's web interface for pages, files and links.

    Example:
        >>> fallback = WebDiscoveryFallback()
        >>> result = await fallback.discover(client, "42", [EndpointCategory.PAGES])
        >>> for page in result.content.pages:
        ...     print(page.name, page.url)
    """

    def __init__(
        self,
        cleaner: Optional[TextCleaner] = None,
        max_pages: Optional[int] = None,
        max_concurrency: Optional[int] = None,
        common_page_slugs: Optional[list[str]] = None,
    ):
        """
        Initialize the fallback.

        Args:
            cleaner: Text cleaner for page bodies
            max_pages: Maximum pages fetched per course
            max_concurrency: Maximum simultaneous requests
            common_page_slugs: Wiki page slugs tried on every course
        """
        config = get_settings().discovery
        self.cleaner = cleaner or TextCleaner(CleanerConfig(max_chars=config.max_body_chars))
        self.max_pages = max_pages if max_pages is not None else config.max_web_pages
        self.max_concurrency = max(
            1, max_concurrency if max_concurrency is not None else config.max_concurrency
        )
        self.common_page_slugs = (
            common_page_slugs if common_page_slugs is not None else list(config.common_page_slugs)
        )

    def _seed_surfaces(
        self,
        course_id: str,
        categories: list[EndpointCategory],
    ) -> list[Surface]:
        surfaces = [Surface(f"/courses/{course_id}", label="Course Home")]

        for category in categories:
            for template in NAVIGATION_SURFACES.get(category, []):
                surfaces.append(Surface(
                    template.format(course_id=course_id),
                    label=category.value.capitalize(),
                ))

        if EndpointCategory.PAGES in categories:
            for slug in self.common_page_slugs:
                surfaces.append(Surface(
                    f"/courses/{course_id}/pages/{slug}", is_content=True, guessed=True
                ))
        if EndpointCategory.ASSIGNMENTS in categories:
            surfaces.append(Surface(
                f"/courses/{course_id}/assignments/syllabus", is_content=True, guessed=True
            ))

        return surfaces

    async def _fetch(
        self,
        client: CanvasClient,
        surface: Surface,
        course_id: str,
        parser: CanvasPageParser,
        semaphore: asyncio.Semaphore,
        result: WebDiscoveryResult,
    ) -> Optional[ParsedPage]:
        async with semaphore:
            try:
                response = await client.get_html(surface.path)
            except CanvasError as e:
                result.add_error(f"Web {surface.path}: {e}")
                return None

        if not response.is_success:
            if surface.guessed:
                logger.debug(f"Guessed page {surface.path} not found ({response.status_code})")
            else:
                result.add_error(f"Web {surface.path}: HTTP {response.status_code}")
            return None

        final_path = response.url.path
        if final_path.startswith("/login"):
            result.add_error(LOGIN_REQUIRED_ERROR)
            return None
        if surface.guessed and final_path.rstrip("/") != surface.path.rstrip("/"):
            # Canvas redirects unknown wiki slugs to the pages index
            logger.debug(f"Guessed page {surface.path} redirected to {final_path}")
            return None

        try:
            parsed = parser.parse(response.text, surface.path, course_id)
        except Exception as e:
            result.add_error(f"Web {surface.path}: failed to parse page: {e}")
            logger.warning(f"Failed to parse {surface.path}: {e}")
            return None

        if parsed.login_required:
            result.add_error(LOGIN_REQUIRED_ERROR)
            return None
        for message in parsed.parse_errors:
            result.add_error(f"Web {surface.path}: {message}")

        result.surfaces_fetched += 1
        return parsed

    def _record(
        self,
        client: CanvasClient,
        surface: Surface,
        parsed: ParsedPage,
        result: WebDiscoveryResult,
    ) -> None:
        segments = surface.path.strip("/").split("/")
        source = surface.label

        if surface.is_content:
            slug = segments[-1]
            name = parsed.title or slug.replace("-", " ")
            source = name
            result.content.add_page(DiscoveredPage(
                name=name,
                url=f"{client.base_url}{surface.path}",
                path=slug,
                content_type=CONTENT_TYPES.get(segments[-2], "page"),
                body_text=self.cleaner.clean(parsed.body_text),
                source="web",
            ))
            for ref in parsed.links:
                result.content.add_link(DiscoveredLink(
                    title=ref.title, url=ref.url, link_type=ref.link_type, source=source
                ))

        for ref in parsed.files:
            result.content.add_file(DiscoveredFile(
                file_id=ref.file_id,
                file_name=ref.file_name,
                url=ref.url,
                source=source,
                discovered_via="web",
            ))

    async def discover(
        self,
        client: CanvasClient,
        course_id: str,
        categories: Optional[list[EndpointCategory]] = None,
    ) -> WebDiscoveryResult:
        """
        Crawl the course web interface.

        Args:
            client: Authenticated Canvas client (same session as the API)
            course_id: Canvas course identifier
            categories: Categories to cover (defaults to all)

        Returns:
            WebDiscoveryResult; individual page failures are in ``errors``
        """
        course_id = require(course_id, "course_id")
        categories = list(categories) if categories is not None else list(EndpointCategory)
        result = WebDiscoveryResult(course_id=course_id)
        parser = CanvasPageParser(client.base_url)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        logger.info(
            f"Web discovery for course {course_id}: "
            f"{', '.join(c.value for c in categories)}"
        )

        queue = self._seed_surfaces(course_id, categories)
        seen = {surface.path for surface in queue}
        attempted = 0

        while queue and attempted < self.max_pages:
            wave = queue[: self.max_pages - attempted]
            queue = queue[len(wave):]
            attempted += len(wave)

            parsed_pages = await asyncio.gather(
                *(self._fetch(client, s, course_id, parser, semaphore, result) for s in wave)
            )

            for surface, parsed in zip(wave, parsed_pages):
                if parsed is None:
                    continue
                self._record(client, surface, parsed, result)
                for path in parsed.content_links:
                    if path not in seen:
                        seen.add(path)
                        queue.append(Surface(path, is_content=True))

        if queue:
            result.warnings.append(
                f"Stopped after {attempted} pages; {len(queue)} linked pages not visited"
            )
            logger.warning(f"Web discovery for course {course_id} hit the {self.max_pages}-page limit")

        logger.info(
            f"Web discovery for course {course_id}: {len(result.content.pages)} pages, "
            f"{len(result.content.files)} files, {len(result.content.links)} links "
            f"from {result.surfaces_fetched} fetched pages, {len(result.errors)} errors"
        )
        return result

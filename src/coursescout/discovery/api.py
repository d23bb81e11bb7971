"""
API Discovery Module - Build course content from the Canvas REST API.
=====================================================================

Lists every available content category of a course through the
pagination aggregator:
- pages (with bodies), files, modules (with items)
- assignments, discussions, announcements
- navigation tabs (as internal links)

HTML bodies are scanned for embedded file references and links. A
category that fails is recorded and never aborts the others.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from coursescout.discovery.client import CanvasClient
from coursescout.discovery.cleaner import CleanerConfig, TextCleaner
from coursescout.discovery.collector import ContentCollector
from coursescout.discovery.detector import endpoint_for
from coursescout.discovery.pagination import PaginationFetcher
from coursescout.discovery.parser import CanvasPageParser, classify_link
from coursescout.shared.config import get_settings
from coursescout.shared.errors import CanvasError
from coursescout.shared.logging import get_logger
from coursescout.shared.schemas import (
    DiscoveredFile,
    DiscoveredLink,
    DiscoveredPage,
    DiscoveryMethod,
    EndpointCategory,
    LinkType,
)
from coursescout.shared.utils import require

logger = get_logger(__name__)

# Extra query parameters per listed category
LIST_PARAMS: dict[EndpointCategory, dict[str, Any]] = {
    EndpointCategory.PAGES: {"include[]": "body"},
    EndpointCategory.MODULES: {"include[]": "items"},
}

MODULE_ITEM_CONTENT_TYPES = {
    "Page": "page",
    "Assignment": "assignment",
    "Discussion": "discussion",
    "Quiz": "quiz",
}


@dataclass
class ApiDiscoveryResult:
    """Content listed through the API for one course."""

    course_id: str
    course_name: Optional[str] = None
    content: ContentCollector = field(default_factory=ContentCollector)
    categories_listed: list[EndpointCategory] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    discovery_method: DiscoveryMethod = DiscoveryMethod.API

    @property
    def reached(self) -> bool:
        """True when at least one category answered."""
        return bool(self.categories_listed)

    @property
    def has_data(self) -> bool:
        return not self.content.is_empty


class ApiDiscovery:
    """
    List course content through the API.

    Example:
        >>> discovery = ApiDiscovery()
        >>> result = await discovery.discover(client, "42", [EndpointCategory.PAGES])
        >>> print(len(result.content.pages))
    """

    def __init__(
        self,
        cleaner: Optional[TextCleaner] = None,
        per_page: Optional[int] = None,
        max_pages: Optional[int] = None,
    ):
        settings = get_settings()
        self.cleaner = cleaner or TextCleaner(
            CleanerConfig(max_chars=settings.discovery.max_body_chars)
        )
        self.per_page = per_page
        self.max_pages = max_pages

        self._handlers: dict[EndpointCategory, Callable[..., None]] = {
            EndpointCategory.PAGES: self._collect_pages,
            EndpointCategory.FILES: self._collect_files,
            EndpointCategory.MODULES: self._collect_modules,
            EndpointCategory.ASSIGNMENTS: self._collect_assignments,
            EndpointCategory.DISCUSSIONS: self._collect_discussions,
            EndpointCategory.ANNOUNCEMENTS: self._collect_announcements,
            EndpointCategory.TABS: self._collect_tabs,
        }

    # ─────────────────────────────────────────────────────────────────────────
    # Per-category Collection
    # ─────────────────────────────────────────────────────────────────────────

    def _absolute(self, client: CanvasClient, url: Optional[str], fallback: str) -> str:
        value = url or fallback
        if value.startswith("/"):
            return f"{client.base_url}{value}"
        return value

    def _scan_body(
        self,
        parser: CanvasPageParser,
        collector: ContentCollector,
        html: Optional[str],
        course_id: str,
        source: str,
    ) -> None:
        files, links = parser.extract_references(html, course_id)
        for ref in files:
            collector.add_file(DiscoveredFile(
                file_id=ref.file_id,
                file_name=ref.file_name,
                url=ref.url,
                source=source,
                discovered_via="api",
            ))
        for ref in links:
            collector.add_link(DiscoveredLink(
                title=ref.title, url=ref.url, link_type=ref.link_type, source=source
            ))

    def _add_body_page(
        self,
        client: CanvasClient,
        parser: CanvasPageParser,
        collector: ContentCollector,
        course_id: str,
        *,
        name: str,
        url: Optional[str],
        fallback_path: str,
        path: str,
        content_type: str,
        body: Optional[str],
    ) -> None:
        collector.add_page(DiscoveredPage(
            name=name,
            url=self._absolute(client, url, fallback_path),
            path=path,
            content_type=content_type,
            body_text=self.cleaner.clean(body),
            source="api",
        ))
        self._scan_body(parser, collector, body, course_id, name)

    def _collect_pages(
        self,
        client: CanvasClient,
        parser: CanvasPageParser,
        collector: ContentCollector,
        course_id: str,
        items: list[dict[str, Any]],
    ) -> None:
        for item in items:
            slug = str(item.get("url") or item.get("page_id") or "")
            title = item.get("title") or slug.replace("-", " ")
            self._add_body_page(
                client, parser, collector, course_id,
                name=title,
                url=item.get("html_url"),
                fallback_path=f"/courses/{course_id}/pages/{slug}",
                path=slug,
                content_type="page",
                body=item.get("body"),
            )

    def _collect_files(
        self,
        client: CanvasClient,
        parser: CanvasPageParser,
        collector: ContentCollector,
        course_id: str,
        items: list[dict[str, Any]],
    ) -> None:
        for item in items:
            file_id = str(item.get("id", "")).strip()
            if not file_id:
                continue
            collector.add_file(DiscoveredFile(
                file_id=file_id,
                file_name=item.get("display_name") or item.get("filename") or f"File {file_id}",
                url=item.get("url") or f"{client.base_url}/courses/{course_id}/files/{file_id}",
                source="Files",
                content_type=item.get("content-type") or item.get("content_type"),
                size=item.get("size"),
                discovered_via="api",
            ))

    def _collect_modules(
        self,
        client: CanvasClient,
        parser: CanvasPageParser,
        collector: ContentCollector,
        course_id: str,
        items: list[dict[str, Any]],
    ) -> None:
        for module in items:
            module_name = module.get("name") or f"Module {module.get('id')}"
            for entry in module.get("items") or []:
                kind = entry.get("type")
                title = entry.get("title") or ""
                if kind == "File" and entry.get("content_id") is not None:
                    file_id = str(entry["content_id"])
                    collector.add_file(DiscoveredFile(
                        file_id=file_id,
                        file_name=title or f"File {file_id}",
                        url=self._absolute(
                            client, entry.get("html_url"), f"/courses/{course_id}/files/{file_id}"
                        ),
                        source=module_name,
                        discovered_via="api",
                    ))
                elif kind == "ExternalUrl" and entry.get("external_url"):
                    url = entry["external_url"]
                    collector.add_link(DiscoveredLink(
                        title=title or url,
                        url=url,
                        link_type=classify_link(url),
                        source=module_name,
                    ))
                elif kind in MODULE_ITEM_CONTENT_TYPES and entry.get("html_url"):
                    collector.add_page(DiscoveredPage(
                        name=title,
                        url=self._absolute(client, entry.get("html_url"), ""),
                        path=str(entry.get("page_url") or entry.get("content_id") or ""),
                        content_type=MODULE_ITEM_CONTENT_TYPES[kind],
                        source="api",
                    ))

    def _collect_assignments(
        self,
        client: CanvasClient,
        parser: CanvasPageParser,
        collector: ContentCollector,
        course_id: str,
        items: list[dict[str, Any]],
    ) -> None:
        for item in items:
            assignment_id = str(item.get("id", ""))
            self._add_body_page(
                client, parser, collector, course_id,
                name=item.get("name") or f"Assignment {assignment_id}",
                url=item.get("html_url"),
                fallback_path=f"/courses/{course_id}/assignments/{assignment_id}",
                path=assignment_id,
                content_type="assignment",
                body=item.get("description"),
            )

    def _collect_topics(
        self,
        client: CanvasClient,
        parser: CanvasPageParser,
        collector: ContentCollector,
        course_id: str,
        items: list[dict[str, Any]],
        content_type: str,
    ) -> None:
        for item in items:
            topic_id = str(item.get("id", ""))
            self._add_body_page(
                client, parser, collector, course_id,
                name=item.get("title") or f"Topic {topic_id}",
                url=item.get("html_url"),
                fallback_path=f"/courses/{course_id}/discussion_topics/{topic_id}",
                path=topic_id,
                content_type=content_type,
                body=item.get("message"),
            )

    def _collect_discussions(
        self,
        client: CanvasClient,
        parser: CanvasPageParser,
        collector: ContentCollector,
        course_id: str,
        items: list[dict[str, Any]],
    ) -> None:
        self._collect_topics(client, parser, collector, course_id, items, "discussion")

    def _collect_announcements(
        self,
        client: CanvasClient,
        parser: CanvasPageParser,
        collector: ContentCollector,
        course_id: str,
        items: list[dict[str, Any]],
    ) -> None:
        self._collect_topics(client, parser, collector, course_id, items, "announcement")

    def _collect_tabs(
        self,
        client: CanvasClient,
        parser: CanvasPageParser,
        collector: ContentCollector,
        course_id: str,
        items: list[dict[str, Any]],
    ) -> None:
        for tab in items:
            if tab.get("hidden") or not tab.get("html_url"):
                continue
            url = self._absolute(client, tab["html_url"], "")
            collector.add_link(DiscoveredLink(
                title=tab.get("label") or tab.get("id") or url,
                url=url,
                link_type=LinkType.INTERNAL if tab.get("type") == "internal" else LinkType.EXTERNAL,
                source="Course navigation",
            ))

    # ─────────────────────────────────────────────────────────────────────────
    # Discovery
    # ─────────────────────────────────────────────────────────────────────────

    async def _list_category(
        self,
        client: CanvasClient,
        parser: CanvasPageParser,
        course_id: str,
        category: EndpointCategory,
        result: ApiDiscoveryResult,
    ) -> ContentCollector:
        path, params = endpoint_for(category, course_id)
        fetcher = PaginationFetcher(client, per_page=self.per_page, max_pages=self.max_pages)
        outcome = await fetcher.fetch(path, {**params, **LIST_PARAMS.get(category, {})})

        collector = ContentCollector()
        if outcome.pages_fetched:
            result.categories_listed.append(category)
            self._handlers[category](client, parser, collector, course_id, outcome.items)
        if outcome.error is not None:
            result.errors.append(f"API {category.value}: {outcome.error}")
        logger.debug(f"Listed {len(outcome.items)} {category.value} items for course {course_id}")
        return collector

    async def _fetch_course_name(self, client: CanvasClient, course_id: str) -> Optional[str]:
        try:
            course = await client.get_json(f"/api/v1/courses/{course_id}")
        except CanvasError as e:
            logger.debug(f"Could not read course {course_id} details: {e}")
            return None
        if isinstance(course, dict):
            return course.get("name")
        return None

    async def discover(
        self,
        client: CanvasClient,
        course_id: str,
        categories: Optional[list[EndpointCategory]] = None,
    ) -> ApiDiscoveryResult:
        """
        List the given categories of a course.

        Args:
            client: Authenticated Canvas client
            course_id: Canvas course identifier
            categories: Categories to list (defaults to all)

        Returns:
            ApiDiscoveryResult with de-duplicated content and per-category errors
        """
        course_id = require(course_id, "course_id")
        categories = list(categories) if categories is not None else list(EndpointCategory)
        result = ApiDiscoveryResult(course_id=course_id)
        parser = CanvasPageParser(client.base_url)

        logger.info(
            f"API discovery for course {course_id}: "
            f"{', '.join(c.value for c in categories) or 'nothing to list'}"
        )

        name_task = self._fetch_course_name(client, course_id)
        outcomes = await asyncio.gather(
            name_task,
            *(self._list_category(client, parser, course_id, c, result) for c in categories),
            return_exceptions=True,
        )

        course_name, collected = outcomes[0], outcomes[1:]
        if isinstance(course_name, str):
            result.course_name = course_name
        elif isinstance(course_name, BaseException) and not isinstance(course_name, Exception):
            raise course_name

        # Merge in category order so the listing is deterministic
        for category, collector in zip(categories, collected):
            if isinstance(collector, ContentCollector):
                result.content.merge(collector)
            elif isinstance(collector, Exception):
                result.errors.append(f"API {category.value} listing failed: {collector}")
                logger.warning(f"API {category.value} listing failed for course {course_id}: {collector}")
            else:
                raise collector
        result.categories_listed = [c for c in categories if c in result.categories_listed]

        logger.info(
            f"API discovery for course {course_id}: {len(result.content.pages)} pages, "
            f"{len(result.content.files)} files, {len(result.content.links)} links, "
            f"{len(result.errors)} errors"
        )
        return result

"""
Orchestrator Module - Resilient course content extraction.
==========================================================

Combines the discovery avenues into one operation:

1. CHECK_CACHE   serve a fresh cached index without network I/O
2. PROBE_API     classify which API categories are usable
3. DISCOVER_API  list the usable categories through the API
4. DISCOVER_WEB  crawl the web interface for restricted categories
5. MERGE         de-duplicate, build the search text, cache the index

Remote failures never raise out of the orchestrator: they are recorded
in the result's ``errors`` and the best partial index is returned.
Only caller input errors raise ValueError.

Example:
    >>> orchestrator = ContentExtractionOrchestrator()
    >>> result = await orchestrator.extract_course_content("42", base_url, token)
    >>> print(result.method, result.course_index.metadata.total_files)
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

from coursescout.discovery.api import ApiDiscovery, ApiDiscoveryResult
from coursescout.discovery.cache import DiscoveryCache
from coursescout.discovery.client import CanvasClient
from coursescout.discovery.collector import ContentCollector
from coursescout.discovery.detector import APIAvailabilityDetector
from coursescout.discovery.web import WebDiscoveryFallback, WebDiscoveryResult
from coursescout.search.matcher import relevance
from coursescout.shared.config import get_settings
from coursescout.shared.errors import CanvasError
from coursescout.shared.logging import get_logger
from coursescout.shared.schemas import (
    APIAvailabilityReport,
    CourseCacheSummary,
    CourseIndex,
    DiscoveredFile,
    DiscoveryMethod,
    EndpointCategory,
    ExtractionResult,
    ExtractionStats,
    FileLookupMethod,
    FileLookupResult,
    IndexMetadata,
    SearchHit,
    SmartSearchResult,
)
from coursescout.shared.utils import normalize_text, require

logger = get_logger(__name__)

ClientFactory = Callable[[str, str], CanvasClient]
InFlightKey = tuple[str, Optional[DiscoveryMethod]]

# Smart search hits below this relevance are dropped
MIN_SEARCH_RELEVANCE = 0.3


class ExtractionState(str, Enum):
    """States of the extraction state machine."""

    CHECK_CACHE = "check_cache"
    PROBE_API = "probe_api"
    DISCOVER_API = "discover_api"
    DISCOVER_WEB = "discover_web"
    MERGE = "merge"
    DONE = "done"


@dataclass
class ExtractionRun:
    """Mutable state of one extraction."""

    course_id: str
    force_refresh: bool
    preferred: Optional[DiscoveryMethod]
    report: Optional[APIAvailabilityReport] = None
    api_categories: list[EndpointCategory] = field(default_factory=list)
    web_categories: list[EndpointCategory] = field(default_factory=list)
    api_result: Optional[ApiDiscoveryResult] = None
    web_result: Optional[WebDiscoveryResult] = None
    errors: list[str] = field(default_factory=list)
    result: Optional[ExtractionResult] = None
    started: float = field(default_factory=time.perf_counter)

    @property
    def elapsed(self) -> float:
        return round(time.perf_counter() - self.started, 3)


def _parse_method(preferred_method: Union[str, DiscoveryMethod, None]) -> Optional[DiscoveryMethod]:
    if preferred_method is None:
        return None
    try:
        method = DiscoveryMethod(str(getattr(preferred_method, "value", preferred_method)).lower())
    except ValueError:
        method = None
    if method not in (DiscoveryMethod.API, DiscoveryMethod.WEB):
        raise ValueError(
            f"Unknown preferred_method: {preferred_method!r} (expected 'api' or 'web')"
        )
    return method


def build_searchable_content(content: ContentCollector) -> str:
    """Flatten titles, bodies, file names and link titles into one search blob."""
    parts: list[str] = []
    for page in content.pages:
        parts.append(normalize_text(page.name))
        parts.append(normalize_text(page.body_text))
    for record in content.files:
        parts.append(normalize_text(record.file_name))
    for link in content.links:
        parts.append(normalize_text(link.title))
    return "\n".join(part for part in parts if part)


# ─────────────────────────────────────────────────────────────────────────────
# Orchestrator Class
# ─────────────────────────────────────────────────────────────────────────────


class ContentExtractionOrchestrator:
    """
    Extract, cache and search course content.

    Cache hits are answered synchronously. Otherwise at most one
    extraction per course and preferred method runs at a time; concurrent
    callers with the same request share the pending result.
    """

    def __init__(
        self,
        cache: Optional[DiscoveryCache] = None,
        detector: Optional[APIAvailabilityDetector] = None,
        api_discovery: Optional[ApiDiscovery] = None,
        web_fallback: Optional[WebDiscoveryFallback] = None,
        client_factory: ClientFactory = CanvasClient,
    ):
        self.cache = cache if cache is not None else DiscoveryCache()
        self.detector = detector or APIAvailabilityDetector()
        self.api_discovery = api_discovery or ApiDiscovery()
        self.web_fallback = web_fallback or WebDiscoveryFallback()
        self.client_factory = client_factory
        self._in_flight: dict[InFlightKey, "asyncio.Task[ExtractionResult]"] = {}

    # ─────────────────────────────────────────────────────────────────────────
    # Extraction
    # ─────────────────────────────────────────────────────────────────────────

    async def extract_course_content(
        self,
        course_id: str,
        base_url: str,
        token: str,
        force_refresh: bool = False,
        preferred_method: Union[str, DiscoveryMethod, None] = None,
    ) -> ExtractionResult:
        """
        Build (or fetch from cache) the content index of a course.

        Args:
            course_id: Canvas course identifier
            base_url: Canvas instance URL
            token: Bearer access token
            force_refresh: Ignore any cached index
            preferred_method: "api" or "web" to use a single avenue

        Returns:
            ExtractionResult (success=False on total failure, never raised)

        Raises:
            ValueError: On missing parameters or an unknown preferred_method
        """
        course_id = require(course_id, "course_id")
        base_url = require(base_url, "base_url")
        token = require(token, "token")
        preferred = _parse_method(preferred_method)

        # CHECK_CACHE runs before any task exists so hits never share a run
        if not force_refresh:
            cached = self._cached_result(course_id)
            if cached is not None:
                return cached

        # Every pending run probes afresh, so forced callers may join one
        key: InFlightKey = (course_id, preferred)
        task = self._in_flight.get(key)
        if task is not None:
            logger.info(f"Joining in-flight extraction for course {course_id}")
        else:
            task = asyncio.create_task(
                self._run(course_id, base_url, token, force_refresh, preferred)
            )
            self._in_flight[key] = task

            def _release(finished: "asyncio.Task[ExtractionResult]") -> None:
                if self._in_flight.get(key) is finished:
                    del self._in_flight[key]

            task.add_done_callback(_release)

        result = await asyncio.shield(task)
        return result.model_copy(update={
            "errors": list(result.errors),
            "suggested_fallbacks": list(result.suggested_fallbacks),
        })

    async def _run(
        self,
        course_id: str,
        base_url: str,
        token: str,
        force_refresh: bool,
        preferred: Optional[DiscoveryMethod],
    ) -> ExtractionResult:
        run = ExtractionRun(course_id=course_id, force_refresh=force_refresh, preferred=preferred)
        state = ExtractionState.PROBE_API
        client: Optional[CanvasClient] = None

        logger.info(
            f"Extraction started for course {course_id} "
            f"(force_refresh={force_refresh}, preferred={preferred.value if preferred else 'auto'})"
        )

        try:
            client = self.client_factory(base_url, token)
            while state != ExtractionState.DONE:
                logger.debug(f"Course {course_id}: {state.value}")

                if state == ExtractionState.PROBE_API:
                    state = await self._probe_api(run, client)
                elif state == ExtractionState.DISCOVER_API:
                    state = await self._discover_api(run, client)
                elif state == ExtractionState.DISCOVER_WEB:
                    state = await self._discover_web(run, client)
                elif state == ExtractionState.MERGE:
                    state = self._merge(run)
        except Exception as e:
            logger.exception(f"Extraction failed for course {course_id}")
            run.errors.append(f"Content extraction failed: {e}")
            run.result = ExtractionResult(success=False, errors=run.errors)
        finally:
            if client is not None:
                await client.aclose()

        result = run.result or ExtractionResult(success=False, errors=run.errors)
        result.elapsed_seconds = run.elapsed
        return result

    def _cached_result(self, course_id: str) -> Optional[ExtractionResult]:
        cached = self.cache.get_cached_discovery(course_id)
        if cached is None:
            return None

        logger.info(f"Cache hit for course {course_id}")
        report = cached.api_availability
        return ExtractionResult(
            success=True,
            method=DiscoveryMethod.CACHED,
            course_index=cached,
            restriction_summary=report.restriction_summary() if report else None,
            suggested_fallbacks=report.suggested_fallbacks() if report else [],
        )

    async def _probe_api(self, run: ExtractionRun, client: CanvasClient) -> ExtractionState:
        all_categories = list(EndpointCategory)

        try:
            report = await self.detector.detect(client, run.course_id)
        except Exception as e:
            logger.warning(f"API probe failed for course {run.course_id}: {e}")
            run.errors.append(f"Content extraction failed: API probe error: {e}")
            if run.preferred == DiscoveryMethod.API:
                return ExtractionState.MERGE
            run.web_categories = all_categories
            return ExtractionState.DISCOVER_WEB

        run.report = report
        restricted = report.restricted_categories

        if run.preferred == DiscoveryMethod.WEB:
            run.web_categories = all_categories
            return ExtractionState.DISCOVER_WEB

        run.api_categories = report.available_categories
        if run.preferred == DiscoveryMethod.API:
            for category in restricted:
                status = report.endpoints[category]
                run.errors.append(f"API {category.value} unavailable: {status.reason}")
        else:
            run.web_categories = restricted

        if not run.api_categories:
            if run.preferred == DiscoveryMethod.API:
                return ExtractionState.MERGE
            return ExtractionState.DISCOVER_WEB
        return ExtractionState.DISCOVER_API

    async def _discover_api(self, run: ExtractionRun, client: CanvasClient) -> ExtractionState:
        try:
            run.api_result = await self.api_discovery.discover(
                client, run.course_id, run.api_categories
            )
            run.errors.extend(run.api_result.errors)
        except Exception as e:
            logger.warning(f"API discovery failed for course {run.course_id}: {e}")
            run.errors.append(f"Content extraction failed: API discovery error: {e}")

        if run.preferred == DiscoveryMethod.API:
            return ExtractionState.MERGE

        if run.web_categories and (run.api_result is None or not run.api_result.has_data):
            # Restricted course and nothing came through the API; let the web cover everything
            run.web_categories = list(EndpointCategory)

        if run.web_categories:
            return ExtractionState.DISCOVER_WEB
        return ExtractionState.MERGE

    async def _discover_web(self, run: ExtractionRun, client: CanvasClient) -> ExtractionState:
        logger.info(
            f"Web fallback invoked for course {run.course_id}: "
            f"{', '.join(c.value for c in run.web_categories)}"
        )
        try:
            run.web_result = await self.web_fallback.discover(
                client, run.course_id, run.web_categories
            )
            run.errors.extend(run.web_result.errors)
        except Exception as e:
            logger.warning(f"Web discovery failed for course {run.course_id}: {e}")
            run.errors.append(f"Content extraction failed: web discovery error: {e}")
        return ExtractionState.MERGE

    def _merge(self, run: ExtractionRun) -> ExtractionState:
        api_result, web_result = run.api_result, run.web_result
        api_data = api_result is not None and api_result.has_data
        web_data = web_result is not None and web_result.has_data
        reached = (api_result is not None and api_result.reached) or (
            web_result is not None and web_result.reached
        )

        if not (api_data or web_data or reached):
            logger.error(f"Extraction failed for course {run.course_id}: no avenue produced data")
            if not run.errors:
                run.errors.append("Content extraction failed: no content could be discovered")
            run.result = ExtractionResult(
                success=False,
                errors=run.errors,
                restriction_summary=run.report.restriction_summary() if run.report else None,
                suggested_fallbacks=run.report.suggested_fallbacks() if run.report else [],
            )
            return ExtractionState.DONE

        if api_data and web_data:
            method = DiscoveryMethod.HYBRID
        elif api_data:
            method = DiscoveryMethod.API
        elif web_result is not None or api_result is None:
            method = DiscoveryMethod.WEB
        else:
            method = DiscoveryMethod.API

        content = ContentCollector()
        if api_result is not None:
            content.merge(api_result.content)
        if web_result is not None:
            content.merge(web_result.content)

        report = run.report
        index = CourseIndex(
            course_id=run.course_id,
            course_name=api_result.course_name if api_result else None,
            last_scanned=self.cache.now(),
            api_availability=report,
            discovered_pages=content.pages,
            discovered_files=content.files,
            discovered_links=content.links,
            searchable_content=build_searchable_content(content),
            metadata=IndexMetadata(
                total_files=len(content.files),
                total_pages=len(content.pages),
                total_links=len(content.links),
                has_restricted_apis=report.has_restricted_apis if report else True,
                discovery_method=method,
            ),
        )
        self.cache.set_cached_discovery(run.course_id, index)

        logger.info(
            f"Extraction finished for course {run.course_id} via {method.value}: "
            f"{index.metadata.total_pages} pages, {index.metadata.total_files} files, "
            f"{index.metadata.total_links} links, {len(run.errors)} errors"
        )
        run.result = ExtractionResult(
            success=True,
            method=method,
            course_index=index,
            errors=run.errors,
            restriction_summary=(
                report.restriction_summary() if report else "API availability unknown"
            ),
            suggested_fallbacks=report.suggested_fallbacks() if report else [],
        )
        return ExtractionState.DONE

    # ─────────────────────────────────────────────────────────────────────────
    # Supporting Operations
    # ─────────────────────────────────────────────────────────────────────────

    def _rank(
        self,
        query: str,
        kind: str,
        records: list[Any],
        describe: Callable[[Any], tuple[str, str, str, str, list[tuple[str, float]]]],
    ) -> list[SearchHit]:
        scored = []
        for position, record in enumerate(records):
            title, url, source, identifier, fields = describe(record)
            score = max((relevance(query, text) * weight for text, weight in fields), default=0.0)
            if score >= MIN_SEARCH_RELEVANCE:
                scored.append((-score, position, SearchHit(
                    kind=kind,
                    title=title,
                    url=url,
                    source=source,
                    identifier=identifier,
                    relevance=round(score, 4),
                )))
        scored.sort(key=lambda item: item[:2])
        return [hit for _, _, hit in scored]

    async def smart_search(
        self,
        query: str,
        course_id: str,
        base_url: str,
        token: str,
        max_results: Optional[int] = None,
        force_refresh: bool = False,
    ) -> SmartSearchResult:
        """
        Search a course's discovered files, pages and links.

        Extracts the course first (or uses the cached index), then ranks
        each kind of record by relevance to the query.

        Raises:
            ValueError: On missing parameters or max_results < 1
        """
        query = require(query, "query")
        if max_results is None:
            max_results = get_settings().search.max_results
        if max_results < 1:
            raise ValueError("max_results must be at least 1")

        extraction = await self.extract_course_content(
            course_id, base_url, token, force_refresh=force_refresh
        )
        if not extraction.success or extraction.course_index is None:
            return SmartSearchResult(
                success=False,
                query=query,
                course_id=str(course_id).strip(),
                errors=extraction.errors,
            )

        index = extraction.course_index
        files = self._rank(query, "file", index.discovered_files, lambda f: (
            f.file_name, f.url, f.source, f.file_id,
            [(f.file_name, 1.0), (f.source, 0.5)],
        ))
        pages = self._rank(query, "page", index.discovered_pages, lambda p: (
            p.name, p.url, p.source, p.path,
            [(p.name, 1.0), (p.path, 0.9), (p.body_text, 0.6)],
        ))
        links = self._rank(query, "link", index.discovered_links, lambda link: (
            link.title, link.url, link.source, None,
            [(link.title, 1.0), (link.source, 0.5)],
        ))

        truncated = any(len(hits) > max_results for hits in (files, pages, links))
        result = SmartSearchResult(
            success=True,
            query=query,
            course_id=index.course_id,
            method=extraction.method,
            files=files[:max_results],
            pages=pages[:max_results],
            links=links[:max_results],
            truncated=truncated,
            errors=extraction.errors,
        )
        logger.info(
            f"Smart search {query!r} in course {index.course_id}: {result.total_results} results"
        )
        return result

    async def get_content_by_file_id(
        self,
        file_id: str,
        course_id: str,
        base_url: str,
        token: str,
    ) -> FileLookupResult:
        """
        Look up a file by identifier.

        Asks the Files API directly first. When that is refused, falls back
        to the course's discovered index, extracting the course if needed.

        Raises:
            ValueError: On missing parameters
        """
        file_id = require(file_id, "file_id")
        course_id = require(course_id, "course_id")
        base_url = require(base_url, "base_url")
        token = require(token, "token")

        record, direct_error = await self._lookup_file_directly(file_id, base_url, token)
        if record is not None:
            logger.info(f"Found file {file_id} via direct API")
            return FileLookupResult(
                found=True,
                course_id=course_id,
                file_id=file_id,
                file=record,
                method=FileLookupMethod.DIRECT,
            )

        index = self.cache.get_cached_discovery(course_id)
        if index is None:
            extraction = await self.extract_course_content(course_id, base_url, token)
            if not extraction.success or extraction.course_index is None:
                return FileLookupResult(
                    found=False,
                    course_id=course_id,
                    file_id=file_id,
                    error="Could not extract course content: " + "; ".join(extraction.errors),
                    direct_error=direct_error,
                )
            index = extraction.course_index

        record = index.find_file(file_id)
        if record is None:
            return FileLookupResult(
                found=False,
                course_id=course_id,
                file_id=file_id,
                error=(
                    f"File {file_id} not found in course {course_id} "
                    f"({len(index.discovered_files)} files discovered)"
                ),
                direct_error=direct_error,
            )
        return FileLookupResult(
            found=True,
            course_id=course_id,
            file_id=file_id,
            file=record,
            direct_error=direct_error,
        )

    async def _lookup_file_directly(
        self, file_id: str, base_url: str, token: str
    ) -> tuple[Optional[DiscoveredFile], Optional[str]]:
        path = f"/api/v1/files/{file_id}"
        try:
            async with self.client_factory(base_url, token) as client:
                data = await client.get_json(path)
                fallback_url = f"{client.base_url}/files/{file_id}"
        except CanvasError as e:
            logger.debug(f"Direct API lookup failed for file {file_id}: {e}")
            return None, str(e)

        if not isinstance(data, dict):
            return None, f"Unexpected response for {path}"
        record = DiscoveredFile(
            file_id=str(data.get("id") or file_id),
            file_name=data.get("display_name") or data.get("filename") or f"File {file_id}",
            url=data.get("url") or fallback_url,
            source="Files",
            content_type=data.get("content-type") or data.get("content_type"),
            size=data.get("size"),
            discovered_via="api",
        )
        return record, None

    def clear_course_cache(self, course_id: Optional[str] = None) -> int:
        """
        Drop the cached index of one course, or of all courses.

        Returns:
            Number of entries removed
        """
        removed = self.cache.clear_discovery_cache(course_id)
        target = f"course {course_id}" if course_id is not None else "all courses"
        logger.info(f"Cache cleared for {target} ({removed} entries removed)")
        return removed

    def get_extraction_stats(self) -> ExtractionStats:
        """Aggregate counts over cached indexes."""
        stats = ExtractionStats(in_flight=len(self._in_flight))
        for course_id, index in self.cache.entries():
            stats.cached_courses += 1
            stats.total_pages += index.metadata.total_pages
            stats.total_files += index.metadata.total_files
            stats.total_links += index.metadata.total_links
            stats.courses.append(CourseCacheSummary(
                course_id=course_id,
                last_scanned=index.last_scanned,
                age_seconds=round(self.cache.age_seconds(index), 3),
                discovery_method=index.metadata.discovery_method,
                has_restricted_apis=index.metadata.has_restricted_apis,
                pages=index.metadata.total_pages,
                files=index.metadata.total_files,
                links=index.metadata.total_links,
            ))
        return stats

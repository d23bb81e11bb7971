"""
Detector Module - Classify which Canvas API endpoints are usable.
=================================================================

Some institutions disable course features or restrict the API for
student tokens. The detector probes one endpoint per content category
(with ``per_page=1``) and records whether it answers.
"""

import asyncio
from typing import Any, Optional

from coursescout.discovery.client import CanvasClient
from coursescout.shared.config import get_settings
from coursescout.shared.errors import CanvasAPIError
from coursescout.shared.logging import get_logger
from coursescout.shared.schemas import (
    APIAvailabilityReport,
    EndpointCategory,
    EndpointStatus,
)
from coursescout.shared.utils import require

logger = get_logger(__name__)


# Path template and fixed params per category. Announcements live under the
# global endpoint filtered by context code.
CATEGORY_ENDPOINTS: dict[EndpointCategory, tuple[str, dict[str, Any]]] = {
    EndpointCategory.PAGES: ("/api/v1/courses/{course_id}/pages", {}),
    EndpointCategory.FILES: ("/api/v1/courses/{course_id}/files", {}),
    EndpointCategory.MODULES: ("/api/v1/courses/{course_id}/modules", {}),
    EndpointCategory.ASSIGNMENTS: ("/api/v1/courses/{course_id}/assignments", {}),
    EndpointCategory.DISCUSSIONS: ("/api/v1/courses/{course_id}/discussion_topics", {}),
    EndpointCategory.ANNOUNCEMENTS: (
        "/api/v1/announcements",
        {"context_codes[]": "course_{course_id}"},
    ),
    EndpointCategory.TABS: ("/api/v1/courses/{course_id}/tabs", {}),
}


def endpoint_for(category: EndpointCategory, course_id: str) -> tuple[str, dict[str, Any]]:
    """Resolve the API path and params for a category of one course."""
    template, params = CATEGORY_ENDPOINTS[category]
    resolved = {key: str(value).format(course_id=course_id) for key, value in params.items()}
    return template.format(course_id=course_id), resolved


class APIAvailabilityDetector:
    """
    Probe every known endpoint category of a course.

    Probes run concurrently; a probe that fails never aborts the others,
    and every category always gets a verdict.

    Example:
        >>> detector = APIAvailabilityDetector()
        >>> report = await detector.detect(client, "42")
        >>> print(report.restriction_summary())
    """

    def __init__(
        self,
        categories: Optional[list[EndpointCategory]] = None,
        probe_timeout: Optional[float] = None,
    ):
        self.categories = categories or list(CATEGORY_ENDPOINTS)
        self.probe_timeout = (
            probe_timeout if probe_timeout is not None else get_settings().http.probe_timeout
        )

    async def _probe(
        self,
        client: CanvasClient,
        course_id: str,
        category: EndpointCategory,
    ) -> EndpointStatus:
        path, params = endpoint_for(category, course_id)
        response = await client.call(
            "GET", path, params={**params, "per_page": 1}, timeout=self.probe_timeout
        )

        if response.is_success:
            return EndpointStatus(
                category=category,
                path=path,
                available=True,
                status_code=response.status_code,
            )

        error = CanvasAPIError.from_response(response, path)
        return EndpointStatus(
            category=category,
            path=path,
            available=False,
            status_code=response.status_code,
            reason=str(error),
        )

    async def detect(self, client: CanvasClient, course_id: str) -> APIAvailabilityReport:
        """
        Probe all categories for a course.

        Args:
            client: Authenticated Canvas client
            course_id: Canvas course identifier

        Returns:
            APIAvailabilityReport with one verdict per category
        """
        course_id = require(course_id, "course_id")
        logger.info(f"Probing API availability for course {course_id}")

        results = await asyncio.gather(
            *(self._probe(client, course_id, category) for category in self.categories),
            return_exceptions=True,
        )

        report = APIAvailabilityReport(course_id=course_id)
        for category, result in zip(self.categories, results):
            if isinstance(result, EndpointStatus):
                report.endpoints[category] = result
                continue
            if not isinstance(result, Exception):
                # Cancellation and other BaseExceptions must propagate
                raise result
            path, _ = endpoint_for(category, course_id)
            report.endpoints[category] = EndpointStatus(
                category=category,
                path=path,
                available=False,
                status_code=0,
                reason=f"Probe failed: {result}",
            )

        summary = report.summary()
        logger.info(
            f"Course {course_id}: {summary.available_endpoints}/{summary.total_endpoints} "
            f"API categories available"
        )
        if summary.restricted_categories:
            names = ", ".join(c.value for c in summary.restricted_categories)
            logger.info(f"Course {course_id}: restricted categories: {names}")

        return report

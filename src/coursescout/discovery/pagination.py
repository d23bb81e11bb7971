"""
Pagination Module - Aggregate paginated Canvas list endpoints.
==============================================================

Canvas list endpoints return one page at a time and advertise the next
page through an RFC 5988 ``Link`` header. This module follows those links
(or advances a ``page`` parameter on servers that send none) until the
collection is exhausted or a page ceiling is reached.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from coursescout.discovery.client import CanvasClient
from coursescout.shared.config import get_settings
from coursescout.shared.errors import CanvasAPIError, CanvasError
from coursescout.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PaginationOutcome:
    """Result of aggregating a paginated endpoint."""

    items: list[Any] = field(default_factory=list)
    pages_fetched: int = 0
    complete: bool = True
    error: Optional[CanvasError] = None


class PaginationFetcher:
    """
    Fetch every page of a Canvas list endpoint in order.

    Remote failures never raise: aggregation stops with what was collected
    and the failure is kept on the outcome.

    Example:
        >>> fetcher = PaginationFetcher(client, per_page=50)
        >>> outcome = await fetcher.fetch("/api/v1/courses/42/pages")
        >>> print(len(outcome.items), outcome.complete)
    """

    def __init__(
        self,
        client: CanvasClient,
        per_page: Optional[int] = None,
        max_pages: Optional[int] = None,
    ):
        config = get_settings().pagination
        self.client = client
        self.per_page = per_page if per_page is not None else config.per_page
        self.max_pages = max_pages if max_pages is not None else config.max_pages

        if self.per_page < 1:
            raise ValueError("per_page must be at least 1")
        if self.max_pages < 1:
            raise ValueError("max_pages must be at least 1")

    async def fetch(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
    ) -> PaginationOutcome:
        """
        Aggregate all pages of ``path``.

        Args:
            path: API path (relative to the client's base URL)
            params: Extra query parameters

        Returns:
            PaginationOutcome with items in server order
        """
        outcome = PaginationOutcome()
        query: Optional[dict[str, Any]] = {**(params or {}), "per_page": self.per_page}
        url = path
        page_number = 1
        seen_link_header = False

        while True:
            if outcome.pages_fetched >= self.max_pages:
                outcome.complete = False
                logger.warning(
                    f"Stopped paginating {path} after {self.max_pages} pages "
                    f"({len(outcome.items)} items collected)"
                )
                break

            try:
                response = await self.client.call("GET", url, params=query)
            except CanvasError as e:
                outcome.error = e
                outcome.complete = False
                break

            if not response.is_success:
                outcome.error = CanvasAPIError.from_response(response, path)
                outcome.complete = False
                logger.debug(f"Pagination of {path} stopped: {outcome.error}")
                break

            try:
                batch = response.json()
            except ValueError:
                batch = None
            if not isinstance(batch, list):
                outcome.error = CanvasAPIError(
                    response.status_code, path, f"Expected a JSON list from {path}"
                )
                outcome.complete = False
                break

            outcome.items.extend(batch)
            outcome.pages_fetched += 1

            if "link" in response.headers:
                seen_link_header = True

            next_link = response.links.get("next")
            if next_link and next_link.get("url"):
                # The next URL already carries every query parameter
                url = next_link["url"]
                query = None
                continue

            if seen_link_header or len(batch) < self.per_page:
                break

            page_number += 1
            url = path
            query = {**(params or {}), "per_page": self.per_page, "page": page_number}

        return outcome


async def fetch_all_paginated(
    client: CanvasClient,
    path: str,
    params: Optional[dict[str, Any]] = None,
    per_page: Optional[int] = None,
    max_pages: Optional[int] = None,
) -> list[Any]:
    """
    Fetch every item of a paginated endpoint.

    Later-page failures are logged and the items collected so far are
    returned.

    Raises:
        CanvasError: If the first page could not be fetched
    """
    fetcher = PaginationFetcher(client, per_page=per_page, max_pages=max_pages)
    outcome = await fetcher.fetch(path, params)

    if outcome.error is not None and outcome.pages_fetched == 0:
        raise outcome.error
    if outcome.error is not None:
        logger.warning(
            f"Partial results for {path}: {outcome.error} "
            f"({outcome.pages_fetched} pages fetched)"
        )
    return outcome.items

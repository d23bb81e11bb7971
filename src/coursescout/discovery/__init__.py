"""
Discovery Module - Canvas content discovery and extraction engine.
==================================================================

This module handles finding course content even when the API is restricted:

- client: Authenticated Canvas HTTP client with retries
- pagination: Aggregate paginated list endpoints
- detector: Classify which API categories are usable
- api: List content through the REST API
- web: Reconstruct content from rendered web pages
- parser / cleaner: HTML extraction and text normalization
- cache: In-memory course index cache
- orchestrator: Strategy selection, merging and caching
"""

from coursescout.discovery.api import ApiDiscovery, ApiDiscoveryResult
from coursescout.discovery.cache import DiscoveryCache
from coursescout.discovery.client import CanvasClient, ClientStats
from coursescout.discovery.detector import APIAvailabilityDetector
from coursescout.discovery.orchestrator import (
    ContentExtractionOrchestrator,
    ExtractionState,
)
from coursescout.discovery.pagination import (
    PaginationFetcher,
    PaginationOutcome,
    fetch_all_paginated,
)
from coursescout.discovery.parser import CanvasPageParser, ParsedPage
from coursescout.discovery.web import WebDiscoveryFallback, WebDiscoveryResult

__all__ = [
    # Client
    "CanvasClient",
    "ClientStats",
    # Pagination
    "PaginationFetcher",
    "PaginationOutcome",
    "fetch_all_paginated",
    # Discovery avenues
    "APIAvailabilityDetector",
    "ApiDiscovery",
    "ApiDiscoveryResult",
    "WebDiscoveryFallback",
    "WebDiscoveryResult",
    "CanvasPageParser",
    "ParsedPage",
    # Cache and orchestration
    "DiscoveryCache",
    "ContentExtractionOrchestrator",
    "ExtractionState",
]

"""
Shared Module - Common utilities, configuration, schemas, and logging.
======================================================================

This module provides foundational components used across all other modules:

- config: Configuration loading and management
- logging: Structured logging setup (stderr, Rich)
- schemas: Pydantic data models
- utils: URL parsing, input validation, text normalization
"""

from coursescout.shared.config import Settings, get_settings, reload_settings
from coursescout.shared.logging import get_logger, setup_logging
from coursescout.shared.schemas import (
    APIAvailabilityReport,
    CourseIndex,
    DiscoveredFile,
    DiscoveredLink,
    DiscoveredPage,
    DiscoveryMethod,
    EndpointCategory,
    EndpointStatus,
    ExtractionResult,
    FileLookupResult,
    SmartSearchResult,
)
from coursescout.shared.utils import (
    normalize_base_url,
    normalize_text,
    parse_canvas_url,
    require,
    tokenize,
)

__all__ = [
    # Config
    "get_settings",
    "reload_settings",
    "Settings",
    # Logging
    "get_logger",
    "setup_logging",
    # Schemas
    "APIAvailabilityReport",
    "CourseIndex",
    "DiscoveredFile",
    "DiscoveredLink",
    "DiscoveredPage",
    "DiscoveryMethod",
    "EndpointCategory",
    "EndpointStatus",
    "ExtractionResult",
    "FileLookupResult",
    "SmartSearchResult",
    # Utils
    "normalize_base_url",
    "normalize_text",
    "parse_canvas_url",
    "require",
    "tokenize",
]

"""
Utilities Module - Common helper functions.
==========================================

Provides utility functions for:
- Canvas base URL normalization and validation
- Canvas web URL parsing (course, page, file, module identifiers)
- Text normalization and tokenization for matching
"""

import re
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from coursescout.shared.logging import get_logger

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Input Validation
# ─────────────────────────────────────────────────────────────────────────────


def require(value: Any, name: str) -> str:
    """
    Validate a required string parameter.

    Args:
        value: Parameter value supplied by the caller
        name: Parameter name used in the error message

    Returns:
        The value as a stripped string

    Raises:
        ValueError: If the value is missing or blank
    """
    if value is None or not str(value).strip():
        raise ValueError(f"Missing required parameter: {name}")
    return str(value).strip()


def normalize_base_url(base_url: str) -> str:
    """
    Normalize a Canvas base URL.

    Adds an https scheme when missing and strips trailing slashes.

    Example:
        >>> normalize_base_url("school.instructure.com/")
        'https://school.instructure.com'
    """
    url = require(base_url, "base_url")
    if not re.match(r"^https?://", url, re.IGNORECASE):
        url = f"https://{url}"
    return url.rstrip("/")


# ─────────────────────────────────────────────────────────────────────────────
# Canvas URL Parsing
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class CanvasUrlInfo:
    """Identifiers extracted from a Canvas web URL."""

    base_url: Optional[str] = None
    course_id: Optional[str] = None
    page_slug: Optional[str] = None
    file_id: Optional[str] = None
    discussion_id: Optional[str] = None
    assignment_id: Optional[str] = None
    module_id: Optional[str] = None
    module_item_id: Optional[str] = None


def _segment_after(parts: list[str], marker: str) -> Optional[str]:
    if marker in parts:
        index = parts.index(marker)
        if index + 1 < len(parts):
            return parts[index + 1]
    return None


def parse_canvas_url(url: str) -> CanvasUrlInfo:
    """
    Parse a Canvas URL into its useful identifiers.

    Examples of accepted URLs:
        https://school.instructure.com/courses/123/pages/week-1-overview
        https://school.instructure.com/courses/123/files/456/download
        /courses/123/discussion_topics/789

    Returns:
        CanvasUrlInfo (all fields None when nothing is recognized)
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return CanvasUrlInfo()

    info = CanvasUrlInfo()
    if parsed.scheme and parsed.netloc:
        info.base_url = f"{parsed.scheme}://{parsed.netloc}"

    parts = [part for part in parsed.path.split("/") if part]
    info.course_id = _segment_after(parts, "courses")
    info.page_slug = _segment_after(parts, "pages")
    info.file_id = _segment_after(parts, "files")
    info.discussion_id = _segment_after(parts, "discussion_topics")
    info.assignment_id = _segment_after(parts, "assignments")
    info.module_id = _segment_after(parts, "modules")

    if info.file_id is not None and not info.file_id.isdigit():
        info.file_id = None
    if info.module_id == "items":
        info.module_item_id = _segment_after(parts, "items")
        info.module_id = None

    module_item = parse_qs(parsed.query).get("module_item_id")
    if module_item:
        info.module_item_id = module_item[0]

    return info


def is_canvas_url(value: str) -> bool:
    """Check whether a string looks like a Canvas course URL."""
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    return "instructure.com" in parsed.netloc or "/courses/" in parsed.path


# ─────────────────────────────────────────────────────────────────────────────
# Text Normalization
# ─────────────────────────────────────────────────────────────────────────────

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def normalize_text(text: Optional[str]) -> str:
    """
    Normalize text for matching: lowercase, punctuation to spaces.

    Example:
        >>> normalize_text("  Intro to CS-101! ")
        'intro to cs 101'
    """
    if not text:
        return ""
    return _NON_ALNUM.sub(" ", str(text).lower()).strip()


def tokenize(text: Optional[str]) -> list[str]:
    """Split normalized text into tokens."""
    normalized = normalize_text(text)
    return normalized.split() if normalized else []


def truncate_text(text: str, max_chars: int) -> str:
    """Truncate text at a word boundary when it exceeds max_chars."""
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    last_space = cut.rfind(" ")
    if last_space > max_chars * 0.8:
        cut = cut[:last_space]
    return cut.rstrip() + "..."

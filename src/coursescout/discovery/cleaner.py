"""
Cleaner Module - Normalize text pulled from Canvas pages.
=========================================================

Canvas bodies arrive as HTML fragments (API) or text extracted from
rendered pages (web). Both go through the same cleaning so that the
search index sees consistent text:
- Drop script and style elements, strip HTML comments and tags, decode entities
- Unicode normalization and control character removal
- Drop Canvas chrome ("Skip To Content", "Previous"/"Next" module buttons)
- Collapse whitespace and cap length
"""

import html
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Optional

from coursescout.shared.logging import get_logger
from coursescout.shared.utils import truncate_text

logger = get_logger(__name__)


@dataclass
class CleanerConfig:
    """Configuration for text cleaning operations."""

    unicode_form: str = "NFKC"
    max_consecutive_newlines: int = 2
    max_chars: int = 0  # 0 disables truncation

    # Canvas interface text that carries no course content
    remove_patterns: list[str] = field(default_factory=lambda: [
        r"^\s*Skip To Content\s*$",
        r"^\s*Dashboard\s*$",
        r"^\s*(?:Previous|Next)(?: Module Item)?\s*$",
        r"^\s*Toggle navigation\s*$",
        r"^\s*Switch to the new Canvas.*$",
    ])


class TextCleaner:
    """
    Cleaner applied to page bodies before indexing.

    Example:
        >>> cleaner = TextCleaner()
        >>> cleaner.clean("<p>Week 1 &amp; 2</p>\\n\\n\\n\\nReadings")
        'Week 1 & 2\\n\\nReadings'
    """

    def __init__(self, config: Optional[CleanerConfig] = None):
        self.config = config or CleanerConfig()

        self._compiled_patterns = [
            re.compile(pattern, re.IGNORECASE | re.MULTILINE)
            for pattern in self.config.remove_patterns
        ]
        self._non_content_pattern = re.compile(
            r"<\s*(script|style|noscript)\b[^>]*>.*?<\s*/\s*\1\s*>", re.IGNORECASE | re.DOTALL
        )
        self._html_comment_pattern = re.compile(r"<!--.*?-->", re.DOTALL)
        self._block_tag_pattern = re.compile(
            r"<\s*(?:br|/p|/div|/li|/h[1-6]|/tr)\s*/?>", re.IGNORECASE
        )
        self._html_tag_pattern = re.compile(r"<[^>]+>")
        self._multiple_spaces = re.compile(r"[ \t ]+")
        self._multiple_newlines = re.compile(
            r"\n{%d,}" % (self.config.max_consecutive_newlines + 1)
        )

    def clean(self, text: Optional[str]) -> str:
        """
        Clean a text or HTML fragment.

        Args:
            text: Text to clean (can be None)

        Returns:
            Cleaned text (empty string for None)
        """
        if not text:
            return ""

        text = self._non_content_pattern.sub(" ", text)
        text = self._html_comment_pattern.sub("", text)
        text = self._block_tag_pattern.sub("\n", text)
        text = self._html_tag_pattern.sub(" ", text)
        text = html.unescape(text)
        text = unicodedata.normalize(self.config.unicode_form, text)
        text = "".join(
            char for char in text
            if char in "\n\t" or unicodedata.category(char)[0] != "C"
        )

        for pattern in self._compiled_patterns:
            text = pattern.sub("", text)

        text = self._multiple_spaces.sub(" ", text)
        text = "\n".join(line.strip() for line in text.split("\n"))
        replacement = "\n" * self.config.max_consecutive_newlines
        text = self._multiple_newlines.sub(replacement, text).strip()

        if self.config.max_chars:
            text = truncate_text(text, self.config.max_chars)
        return text


_default_cleaner: Optional[TextCleaner] = None


def get_cleaner() -> TextCleaner:
    """Get the shared default cleaner."""
    global _default_cleaner
    if _default_cleaner is None:
        _default_cleaner = TextCleaner()
    return _default_cleaner


def clean_html(html_content: Optional[str]) -> str:
    """Clean an HTML fragment with the default cleaner."""
    return get_cleaner().clean(html_content)

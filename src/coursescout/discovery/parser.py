"""
Parser Module - Extract titles, text, files and links from Canvas HTML.
=======================================================================

Parses rendered Canvas pages (web discovery) and HTML bodies returned by
the API (pages, assignments, discussions). Uses BeautifulSoup with lxml
and configurable selectors.

File references are recognized in three forms:
- ``href`` pointing at ``/files/<id>`` (optionally under ``/courses/<id>``)
- ``a.instructure_file_link`` anchors, whose ``title`` holds the file name
- elements carrying ``data-api-endpoint=".../files/<id>"``
"""

import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from coursescout.shared.logging import get_logger
from coursescout.shared.schemas import LinkType

logger = get_logger(__name__)

FILE_ID_PATTERN = re.compile(r"/files/(\d+)")
CONTENT_PATH_PATTERN = re.compile(
    r"^/courses/(?P<course>\d+)/(?P<kind>pages|discussion_topics|assignments)/(?P<item>[^/?#]+)/?$"
)

VIDEO_MARKERS = ("youtube.com", "youtu.be", "vimeo.com", "mediaspace", "kaltura")
DOCUMENT_EXTENSIONS = (".pdf", ".doc", ".docx", ".ppt", ".pptx", ".xls", ".xlsx")
LOGIN_MARKERS = ("Sign in to your account", "Microsoft Corporation")
IGNORED_SCHEMES = ("mailto:", "javascript:", "tel:", "#")


# ─────────────────────────────────────────────────────────────────────────────
# Selector Configuration
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class ParserSelectors:
    """CSS selectors for rendered Canvas pages (comma-separated fallbacks)."""

    title: str = "h1.page-title, .discussion-title, h1.title, h2.title, title"
    body: str = (
        "#wiki_page_show .user_content, .show-content.user_content, "
        ".user_content, #content, main, body"
    )
    chrome: str = "script, style, noscript, nav, header, footer, #left-side, .ic-app-nav-toggle-and-crumbs"
    login_form: str = "form#login_form, form[action*='login']"


@dataclass
class FileReference:
    """A file referenced from HTML."""

    file_id: str
    file_name: str
    url: str


@dataclass
class LinkReference:
    """An outbound link referenced from HTML."""

    title: str
    url: str
    link_type: LinkType


@dataclass
class ParsedPage:
    """Everything extracted from one HTML document."""

    url: str
    title: Optional[str] = None
    body_text: str = ""
    files: list[FileReference] = field(default_factory=list)
    links: list[LinkReference] = field(default_factory=list)
    content_links: list[str] = field(default_factory=list)
    login_required: bool = False
    parse_errors: list[str] = field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# Link Classification
# ─────────────────────────────────────────────────────────────────────────────


def classify_link(url: str, canvas_host: Optional[str] = None) -> LinkType:
    """
    Classify a link as video, document, internal or external.

    Example:
        >>> classify_link("https://www.youtube.com/watch?v=abc")
        <LinkType.VIDEO: 'video'>
    """
    lowered = url.lower()
    parsed = urlparse(lowered)

    if any(marker in lowered for marker in VIDEO_MARKERS):
        return LinkType.VIDEO
    if parsed.path.endswith(DOCUMENT_EXTENSIONS):
        return LinkType.DOCUMENT
    if canvas_host and parsed.netloc == canvas_host.lower():
        return LinkType.INTERNAL
    return LinkType.EXTERNAL


def extract_file_id(href: Optional[str]) -> Optional[str]:
    """Return the Canvas file id referenced by a URL, if any."""
    if not href:
        return None
    match = FILE_ID_PATTERN.search(urlparse(href).path)
    return match.group(1) if match else None


# ─────────────────────────────────────────────────────────────────────────────
# Parser Class
# ─────────────────────────────────────────────────────────────────────────────


class CanvasPageParser:
    """
    Parser for Canvas HTML documents and fragments.

    Example:
        >>> parser = CanvasPageParser("https://school.instructure.com")
        >>> parsed = parser.parse(html, "/courses/42/pages/syllabus", course_id="42")
        >>> print(parsed.title, len(parsed.files))
    """

    def __init__(self, base_url: str = "", selectors: Optional[ParserSelectors] = None):
        """
        Initialize the parser.

        Args:
            base_url: Canvas base URL used to absolutize links
            selectors: Custom selector configuration (uses defaults if None)
        """
        self.base_url = base_url.rstrip("/")
        self.selectors = selectors or ParserSelectors()
        self._host = urlparse(self.base_url).netloc or None

    def _create_soup(self, html: str) -> BeautifulSoup:
        """Create BeautifulSoup object from HTML."""
        return BeautifulSoup(html, "lxml")

    def _select_first(self, soup: BeautifulSoup, selector: str) -> Optional[Tag]:
        for sel in selector.split(","):
            element = soup.select_one(sel.strip())
            if element is not None:
                return element
        return None

    def _extract_title(self, soup: BeautifulSoup) -> Optional[str]:
        for sel in self.selectors.title.split(","):
            element = soup.select_one(sel.strip())
            if element is not None:
                text = element.get_text(" ", strip=True)
                if text:
                    return text
        return None

    def _absolute(self, href: str) -> str:
        if self.base_url:
            return urljoin(self.base_url + "/", href)
        return href

    def _file_url(self, file_id: str, course_id: Optional[str]) -> str:
        if course_id:
            return f"{self.base_url}/courses/{course_id}/files/{file_id}"
        return f"{self.base_url}/files/{file_id}"

    # ─────────────────────────────────────────────────────────────────────────
    # Reference Extraction
    # ─────────────────────────────────────────────────────────────────────────

    def _extract_files(self, root: Tag, course_id: Optional[str]) -> list[FileReference]:
        files: dict[str, FileReference] = {}

        for anchor in root.select("a[href]"):
            file_id = extract_file_id(anchor.get("href"))
            if file_id is None:
                continue
            title_attr = anchor.get("title") if "instructure_file_link" in (anchor.get("class") or []) else None
            name = (title_attr or anchor.get_text(" ", strip=True) or f"File {file_id}").strip()
            existing = files.get(file_id)
            # Prefer a real name over the placeholder
            if existing is None or existing.file_name.startswith("File "):
                files[file_id] = FileReference(file_id, name, self._file_url(file_id, course_id))

        for element in root.select("[data-api-endpoint]"):
            file_id = extract_file_id(element.get("data-api-endpoint"))
            if file_id is None or file_id in files:
                continue
            name = element.get("title") or element.get_text(" ", strip=True) or f"File {file_id}"
            files[file_id] = FileReference(file_id, name.strip(), self._file_url(file_id, course_id))

        return list(files.values())

    def _extract_links(self, root: Tag) -> list[LinkReference]:
        links: dict[str, LinkReference] = {}

        for anchor in root.select("a[href]"):
            href = (anchor.get("href") or "").strip()
            if not href or href.startswith(IGNORED_SCHEMES):
                continue
            if extract_file_id(href) is not None:
                continue

            url = self._absolute(href)
            if not url.startswith(("http://", "https://")) or url in links:
                continue

            title = anchor.get_text(" ", strip=True) or anchor.get("title") or url
            links[url] = LinkReference(title.strip(), url, classify_link(url, self._host))

        return list(links.values())

    def _extract_content_links(self, root: Tag, course_id: Optional[str]) -> list[str]:
        paths: list[str] = []
        for anchor in root.select("a[href]"):
            href = (anchor.get("href") or "").strip()
            parsed = urlparse(self._absolute(href))
            if self._host and parsed.netloc and parsed.netloc != self._host:
                continue
            match = CONTENT_PATH_PATTERN.match(parsed.path)
            if match is None:
                continue
            if course_id and match.group("course") != str(course_id):
                continue
            path = parsed.path.rstrip("/")
            if path not in paths:
                paths.append(path)
        return paths

    def extract_references(
        self,
        html: Optional[str],
        course_id: Optional[str] = None,
    ) -> tuple[list[FileReference], list[LinkReference]]:
        """
        Extract file and link references from an HTML fragment.

        Used on API bodies (page bodies, assignment descriptions,
        discussion messages).
        """
        if not html:
            return [], []
        soup = self._create_soup(html)
        return self._extract_files(soup, course_id), self._extract_links(soup)

    # ─────────────────────────────────────────────────────────────────────────
    # Full Page Parsing
    # ─────────────────────────────────────────────────────────────────────────

    def parse(
        self,
        html: str,
        page_url: str,
        course_id: Optional[str] = None,
    ) -> ParsedPage:
        """
        Parse a rendered Canvas page.

        Args:
            html: Raw HTML document
            page_url: URL or path the document was fetched from
            course_id: Restrict followed content links to this course

        Returns:
            ParsedPage (check parse_errors and login_required)
        """
        parsed = ParsedPage(url=page_url)

        if not html or not html.strip():
            parsed.parse_errors.append(f"Empty document at {page_url}")
            return parsed

        soup = self._create_soup(html)

        if self._select_first(soup, self.selectors.login_form) is not None or any(
            marker in html for marker in LOGIN_MARKERS
        ):
            parsed.login_required = True
            return parsed

        parsed.title = self._extract_title(soup)

        # Files and content links are read before chrome removal; course
        # navigation and module lists live outside the content area.
        parsed.files = self._extract_files(soup, course_id)
        parsed.content_links = self._extract_content_links(soup, course_id)

        for element in soup.select(self.selectors.chrome):
            element.decompose()

        body = self._select_first(soup, self.selectors.body)
        if body is None:
            parsed.parse_errors.append(f"No content area found at {page_url}")
            return parsed

        parsed.body_text = body.get_text("\n", strip=True)
        parsed.links = self._extract_links(body)

        logger.debug(
            f"Parsed {page_url}: title={parsed.title!r}, {len(parsed.files)} files, "
            f"{len(parsed.links)} links, {len(parsed.content_links)} content links"
        )
        return parsed

"""
Collector Module - De-duplicating accumulator for discovered content.
=====================================================================

Pages are keyed by URL, files by Canvas file id and links by URL.
The first record seen for a key wins, except that a file found under a
placeholder name ("File 123") is upgraded when a real name turns up.
"""

from typing import Iterable

from coursescout.shared.schemas import DiscoveredFile, DiscoveredLink, DiscoveredPage


def _url_key(url: str) -> str:
    return url.strip().rstrip("/").lower()


class ContentCollector:
    """Ordered, de-duplicated pages, files and links."""

    def __init__(self) -> None:
        self._pages: dict[str, DiscoveredPage] = {}
        self._files: dict[str, DiscoveredFile] = {}
        self._links: dict[str, DiscoveredLink] = {}

    @property
    def pages(self) -> list[DiscoveredPage]:
        return list(self._pages.values())

    @property
    def files(self) -> list[DiscoveredFile]:
        return list(self._files.values())

    @property
    def links(self) -> list[DiscoveredLink]:
        return list(self._links.values())

    @property
    def is_empty(self) -> bool:
        return not (self._pages or self._files or self._links)

    def add_page(self, page: DiscoveredPage) -> bool:
        """Add a page unless its URL is already known."""
        key = _url_key(page.url or page.path)
        if not key or key in self._pages:
            return False
        self._pages[key] = page
        return True

    def add_file(self, record: DiscoveredFile) -> bool:
        """Add a file unless its id is already known."""
        existing = self._files.get(record.file_id)
        if existing is None:
            self._files[record.file_id] = record
            return True
        if existing.file_name.startswith("File ") and not record.file_name.startswith("File "):
            self._files[record.file_id] = existing.model_copy(
                update={"file_name": record.file_name}
            )
        return False

    def add_link(self, link: DiscoveredLink) -> bool:
        """Add a link unless its URL is already known."""
        key = _url_key(link.url)
        if not key or key in self._links:
            return False
        self._links[key] = link
        return True

    def add_all(
        self,
        pages: Iterable[DiscoveredPage] = (),
        files: Iterable[DiscoveredFile] = (),
        links: Iterable[DiscoveredLink] = (),
    ) -> int:
        """Add many records; returns how many were new."""
        added = 0
        for page in pages:
            added += self.add_page(page)
        for record in files:
            added += self.add_file(record)
        for link in links:
            added += self.add_link(link)
        return added

    def merge(self, other: "ContentCollector") -> int:
        """Add another collector's records after this one's."""
        return self.add_all(other.pages, other.files, other.links)

    def __len__(self) -> int:
        return len(self._pages) + len(self._files) + len(self._links)

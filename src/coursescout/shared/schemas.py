"""
Schemas Module - Pydantic data models for the application.
==========================================================

Defines all data contracts used across the application:
- API availability models (endpoint verdicts and probe reports)
- Discovered content records and the cached course index
- Extraction, search, and lookup result envelopes
- Tool-level records returned to the MCP client
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────


class EndpointCategory(str, Enum):
    """Course content categories probed for API availability."""

    PAGES = "pages"
    FILES = "files"
    MODULES = "modules"
    ASSIGNMENTS = "assignments"
    DISCUSSIONS = "discussions"
    ANNOUNCEMENTS = "announcements"
    TABS = "tabs"


class DiscoveryMethod(str, Enum):
    """Avenue that produced a course index."""

    API = "api"
    WEB = "web"
    HYBRID = "hybrid"
    CACHED = "cached"


class FileLookupMethod(str, Enum):
    """How a file lookup was answered."""

    DIRECT = "direct"
    DISCOVERY = "discovery"


class LinkType(str, Enum):
    """Classification of an outbound link."""

    EXTERNAL = "external"
    INTERNAL = "internal"
    VIDEO = "video"
    DOCUMENT = "document"


# ─────────────────────────────────────────────────────────────────────────────
# API Availability Models
# ─────────────────────────────────────────────────────────────────────────────


class EndpointStatus(BaseModel):
    """Verdict for a single probed endpoint."""

    category: EndpointCategory
    path: str
    available: bool
    status_code: int = Field(default=0, description="HTTP status (0 if unreachable)")
    reason: Optional[str] = Field(default=None, description="Why the endpoint is restricted")


class AvailabilitySummary(BaseModel):
    """Convenience summary of a probe."""

    total_endpoints: int
    available_endpoints: int
    restricted_endpoints: int
    restricted_categories: list[EndpointCategory] = Field(default_factory=list)
    recommend_web_discovery: bool = False


class FallbackSuggestion(BaseModel):
    """Suggested alternative for a restricted category."""

    category: EndpointCategory
    fallback: str
    reason: str


class APIAvailabilityReport(BaseModel):
    """
    Availability verdicts for every known endpoint category of a course.

    Every category has exactly one verdict once a probe completes;
    unreachable endpoints are recorded as restricted, never omitted.
    """

    course_id: str
    tested_at: datetime = Field(default_factory=utc_now)
    endpoints: dict[EndpointCategory, EndpointStatus] = Field(default_factory=dict)

    @property
    def restricted_categories(self) -> list[EndpointCategory]:
        """Restricted categories, in probe order."""
        return [c for c, status in self.endpoints.items() if not status.available]

    @property
    def available_categories(self) -> list[EndpointCategory]:
        """Available categories, in probe order."""
        return [c for c, status in self.endpoints.items() if status.available]

    @property
    def has_restricted_apis(self) -> bool:
        return bool(self.restricted_categories)

    def is_available(self, category: EndpointCategory) -> bool:
        """Check whether a category is usable through the API."""
        status = self.endpoints.get(category)
        return bool(status and status.available)

    def summary(self) -> AvailabilitySummary:
        """Build the count/list summary with the web-discovery recommendation."""
        restricted = self.restricted_categories
        return AvailabilitySummary(
            total_endpoints=len(self.endpoints),
            available_endpoints=len(self.endpoints) - len(restricted),
            restricted_endpoints=len(restricted),
            restricted_categories=restricted,
            recommend_web_discovery=len(restricted) > 0,
        )

    def restriction_summary(self) -> str:
        """Human-readable one-line description of API access."""
        total = len(self.endpoints)
        restricted = self.restricted_categories
        available = total - len(restricted)

        if not restricted:
            return f"All APIs available ({total}/{total})"
        if available == 0:
            return f"All APIs restricted (0/{total}) - web discovery recommended"

        names = ", ".join(c.value for c in restricted)
        return f"Partial API access ({available}/{total} available). Restricted: {names}"

    def suggested_fallbacks(self) -> list[FallbackSuggestion]:
        """Suggest an alternative discovery route for each restricted category."""
        suggestions = []
        for category in self.restricted_categories:
            status = self.endpoints[category]
            if category == EndpointCategory.PAGES:
                state = "disabled" if status.status_code == 404 else "restricted"
                suggestions.append(FallbackSuggestion(
                    category=category,
                    fallback="Web interface discovery",
                    reason=f"Pages API {state} - try direct page URLs",
                ))
            elif category == EndpointCategory.FILES:
                state = "unauthorized" if status.status_code == 403 else "restricted"
                suggestions.append(FallbackSuggestion(
                    category=category,
                    fallback="Extract from page content",
                    reason=f"Files API {state} - search for embedded file links",
                ))
            elif category == EndpointCategory.MODULES:
                suggestions.append(FallbackSuggestion(
                    category=category,
                    fallback="Course navigation parsing",
                    reason="Modules API restricted - check the rendered modules page",
                ))
            else:
                suggestions.append(FallbackSuggestion(
                    category=category,
                    fallback="Web interface",
                    reason=f"{category.value} API restricted - try web discovery",
                ))
        return suggestions


# ─────────────────────────────────────────────────────────────────────────────
# Discovered Content Models
# ─────────────────────────────────────────────────────────────────────────────


class DiscoveredPage(BaseModel):
    """A content page (wiki page, assignment, discussion) found in a course."""

    name: str
    url: str
    path: str = Field(default="", description="Page slug or resource id")
    content_type: str = Field(default="page", description="page, assignment, discussion, ...")
    body_text: str = Field(default="", description="Cleaned body text")
    source: str = Field(default="api", description="'api' or 'web'")
    accessible: bool = True
    last_checked: datetime = Field(default_factory=utc_now)


class DiscoveredFile(BaseModel):
    """A file referenced by the course."""

    file_id: str
    file_name: str
    url: str = ""
    source: str = Field(default="", description="Where the file was found")
    content_type: Optional[str] = None
    size: Optional[int] = None
    discovered_via: str = Field(default="api", description="'api' or 'web'")


class DiscoveredLink(BaseModel):
    """An outbound or navigation link found in course content."""

    title: str
    url: str
    link_type: LinkType = LinkType.EXTERNAL
    source: str = ""


class IndexMetadata(BaseModel):
    """Counts and provenance for a course index."""

    model_config = ConfigDict(frozen=True)

    total_files: int = 0
    total_pages: int = 0
    total_links: int = 0
    has_restricted_apis: bool = False
    discovery_method: DiscoveryMethod = DiscoveryMethod.API


class CourseIndex(BaseModel):
    """
    Merged, searchable record of a course's discoverable content.

    Owned by its cache entry. A fresh index is built on every successful
    discovery; instances are frozen and never updated in place.
    """

    model_config = ConfigDict(frozen=True)

    course_id: str
    course_name: Optional[str] = None
    last_scanned: datetime = Field(default_factory=utc_now)
    api_availability: Optional[APIAvailabilityReport] = None
    discovered_pages: list[DiscoveredPage] = Field(default_factory=list)
    discovered_files: list[DiscoveredFile] = Field(default_factory=list)
    discovered_links: list[DiscoveredLink] = Field(default_factory=list)
    searchable_content: str = ""
    metadata: IndexMetadata = Field(default_factory=IndexMetadata)

    @property
    def is_empty(self) -> bool:
        return not (self.discovered_pages or self.discovered_files or self.discovered_links)

    def find_file(self, file_id: str) -> Optional[DiscoveredFile]:
        """Look up a discovered file by identifier."""
        wanted = str(file_id).strip()
        for record in self.discovered_files:
            if record.file_id == wanted:
                return record
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Result Envelopes
# ─────────────────────────────────────────────────────────────────────────────


class ExtractionResult(BaseModel):
    """Uniform envelope returned by content extraction."""

    success: bool
    method: Optional[DiscoveryMethod] = None
    course_index: Optional[CourseIndex] = None
    errors: list[str] = Field(default_factory=list)
    restriction_summary: Optional[str] = None
    suggested_fallbacks: list[FallbackSuggestion] = Field(default_factory=list)
    elapsed_seconds: float = 0.0


class FileLookupResult(BaseModel):
    """Outcome of looking up a file by identifier."""

    found: bool
    course_id: str
    file_id: str
    file: Optional[DiscoveredFile] = None
    error: Optional[str] = None
    method: FileLookupMethod = FileLookupMethod.DISCOVERY
    direct_error: Optional[str] = Field(
        default=None, description="Why the direct Files API lookup failed"
    )


class SearchHit(BaseModel):
    """A ranked smart-search result."""

    kind: str = Field(..., description="'file', 'page' or 'link'")
    title: str
    url: str
    source: str = ""
    identifier: Optional[str] = None
    relevance: float = 0.0


class SmartSearchResult(BaseModel):
    """Ranked results of a smart search within one course."""

    success: bool
    query: str
    course_id: str
    method: Optional[DiscoveryMethod] = None
    files: list[SearchHit] = Field(default_factory=list)
    pages: list[SearchHit] = Field(default_factory=list)
    links: list[SearchHit] = Field(default_factory=list)
    truncated: bool = False
    errors: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def total_results(self) -> int:
        return len(self.files) + len(self.pages) + len(self.links)


class CourseCacheSummary(BaseModel):
    """Per-course view of a cached index."""

    course_id: str
    last_scanned: datetime
    age_seconds: float
    discovery_method: DiscoveryMethod
    has_restricted_apis: bool
    pages: int
    files: int
    links: int


class ExtractionStats(BaseModel):
    """Aggregate observability counters for the extraction engine."""

    cached_courses: int = 0
    in_flight: int = 0
    total_pages: int = 0
    total_files: int = 0
    total_links: int = 0
    courses: list[CourseCacheSummary] = Field(default_factory=list)

    @computed_field
    @property
    def total_items(self) -> int:
        return self.total_pages + self.total_files + self.total_links


# ─────────────────────────────────────────────────────────────────────────────
# Tool Records
# ─────────────────────────────────────────────────────────────────────────────


class CourseSummary(BaseModel):
    """A course visible to the current user."""

    id: str
    name: str
    course_code: Optional[str] = None
    nickname: Optional[str] = None
    enrollment_state: Optional[str] = None


class PageSummary(BaseModel):
    """A wiki page listed in a course."""

    url: str = Field(..., description="Page slug")
    title: str
    html_url: Optional[str] = None
    updated_at: Optional[str] = None
    published: Optional[bool] = None
    front_page: bool = False


class PageContent(PageSummary):
    """A wiki page with its body."""

    body_html: str = ""
    body_text: str = ""
    locked_for_user: bool = False


class DiscussionSummary(BaseModel):
    """A discussion topic or announcement."""

    id: str
    title: str
    html_url: Optional[str] = None
    posted_at: Optional[str] = None
    last_reply_at: Optional[str] = None
    author: Optional[str] = None
    message_text: str = ""
    reply_count: int = 0
    is_announcement: bool = False


class DiscussionEntry(BaseModel):
    """A reply posted to a discussion topic."""

    id: str
    author: Optional[str] = None
    created_at: Optional[str] = None
    message_text: str = ""
    replies: list["DiscussionEntry"] = Field(default_factory=list)


class DiscussionThread(DiscussionSummary):
    """A discussion topic with its entries."""

    entries: list[DiscussionEntry] = Field(default_factory=list)


class FileSummary(BaseModel):
    """A file in a course's file area."""

    id: str
    display_name: str
    filename: Optional[str] = None
    content_type: Optional[str] = None
    size: Optional[int] = None
    url: Optional[str] = None
    updated_at: Optional[str] = None


class CourseGrade(BaseModel):
    """The current user's overall grade in a course."""

    course_id: str
    current_score: Optional[float] = None
    final_score: Optional[float] = None
    current_grade: Optional[str] = None
    final_grade: Optional[str] = None


class AssignmentGrade(BaseModel):
    """The current user's grade on one assignment."""

    assignment_id: str
    name: str
    points_possible: Optional[float] = None
    score: Optional[float] = None
    grade: Optional[str] = None
    due_at: Optional[str] = None
    workflow_state: Optional[str] = None
    missing: bool = False
    late: bool = False


class SubmissionSummary(BaseModel):
    """A submission by the current user."""

    assignment_id: str
    assignment_name: Optional[str] = None
    submitted_at: Optional[str] = None
    workflow_state: Optional[str] = None
    submission_type: Optional[str] = None
    score: Optional[float] = None
    grade: Optional[str] = None
    attempt: Optional[int] = None
    late: bool = False
    missing: bool = False
    comments: list[str] = Field(default_factory=list)
    attachments: list[str] = Field(default_factory=list)


def to_jsonable(value: Any) -> Any:
    """Dump a model (or list of models) into JSON-ready Python data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [to_jsonable(item) for item in value]
    return value

"""
Pytest Configuration and Fixtures.
===================================

Shared fixtures for all test modules:
- FakeCanvas: an in-process Canvas served through httpx.MockTransport
- Client and orchestrator factories wired to the fake
- A controllable clock for cache expiry
- A sample course with a restricted Pages API
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx
import pytest

# Keep real credentials out of the test run
os.environ["CANVAS_BASE_URL"] = ""
os.environ["CANVAS_API_TOKEN"] = ""

BASE_URL = "https://canvas.test"
TOKEN = "test-token"

NOT_FOUND = {"errors": [{"message": "The specified resource does not exist."}]}


# ─────────────────────────────────────────────────────────────────────────────
# Fake Canvas
# ─────────────────────────────────────────────────────────────────────────────


Handler = Callable[[httpx.Request], httpx.Response]


class FakeCanvas:
    """
    Route requests by URL path to canned responses and record every call.

    Unrouted paths answer 404 like Canvas does.
    """

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.routes: dict[str, Handler] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        path: str,
        *,
        json: Any = None,
        html: Optional[str] = None,
        status: int = 200,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Serve a fixed JSON or HTML response for a path."""
        def handler(request: httpx.Request) -> httpx.Response:
            if html is not None:
                return httpx.Response(status, html=html, headers=headers)
            return httpx.Response(status, json=json, headers=headers)

        self.routes[path] = handler

    def add_handler(self, path: str, handler: Handler) -> None:
        """Serve a path with a custom function."""
        self.routes[path] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json=NOT_FOUND)
        return handler(request)

    def calls(self, path: str) -> list[httpx.Request]:
        """Requests made to one path."""
        return [request for request in self.requests if request.url.path == path]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self, max_retries: int = 2):
        """A CanvasClient talking to this fake, with no retry backoff."""
        from coursescout.discovery.client import CanvasClient

        return CanvasClient(
            self.base_url,
            TOKEN,
            max_retries=max_retries,
            retry_min_wait=0,
            retry_max_wait=0,
            transport=self.transport(),
        )


class FakeClock:
    """Controllable clock for cache expiry tests."""

    def __init__(self) -> None:
        self.now = datetime(2024, 9, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def fake_canvas() -> FakeCanvas:
    """An empty fake Canvas instance."""
    return FakeCanvas()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client_factory(fake_canvas: FakeCanvas):
    """Client factory for the orchestrator, bound to the fake."""
    from coursescout.discovery.client import CanvasClient

    def factory(base_url: str, token: str) -> CanvasClient:
        return CanvasClient(
            base_url,
            token,
            max_retries=1,
            retry_min_wait=0,
            retry_max_wait=0,
            transport=fake_canvas.transport(),
        )

    return factory


@pytest.fixture
def make_orchestrator(client_factory, clock: FakeClock):
    """Build an orchestrator with a small crawl budget and the fake clock."""
    from coursescout.discovery.cache import DiscoveryCache
    from coursescout.discovery.orchestrator import ContentExtractionOrchestrator
    from coursescout.discovery.web import WebDiscoveryFallback

    def build(**overrides):
        options = {
            "cache": DiscoveryCache(ttl_seconds=3600, clock=clock),
            "web_fallback": WebDiscoveryFallback(
                max_pages=20, max_concurrency=3, common_page_slugs=["syllabus"]
            ),
            "client_factory": client_factory,
        }
        options.update(overrides)
        return ContentExtractionOrchestrator(**options)

    return build


# ─────────────────────────────────────────────────────────────────────────────
# Sample Course
# ─────────────────────────────────────────────────────────────────────────────

COURSE_HOME_HTML = """
<html>
<head><title>Intro to CS</title></head>
<body>
  <nav id="left-side">
    <a href="/courses/42/pages">Pages</a>
    <a href="/courses/42/files">Files</a>
  </nav>
  <div id="content">
    <h1>Welcome to Intro to CS</h1>
    <p>Start with the <a href="/courses/42/pages/week-1">Week 1 overview</a>.</p>
  </div>
</body>
</html>
"""

PAGES_INDEX_HTML = """
<html>
<head><title>Pages: Intro to CS</title></head>
<body>
  <div id="content">
    <ul>
      <li><a href="/courses/42/pages/syllabus">Syllabus</a></li>
      <li><a href="/courses/42/pages/week-1">Week 1 Overview</a></li>
    </ul>
  </div>
</body>
</html>
"""

SYLLABUS_HTML = """
<html>
<head><title>Syllabus: Intro to CS</title></head>
<body>
  <div id="wiki_page_show">
    <h1 class="page-title">Syllabus</h1>
    <div class="show-content user_content">
      <p>Grading policy and weekly schedule.</p>
      <p><a class="instructure_file_link" href="/courses/42/files/101/download"
            title="Course Outline.pdf">outline</a></p>
      <p><a href="https://www.youtube.com/watch?v=intro">Welcome video</a></p>
    </div>
  </div>
</body>
</html>
"""

WEEK_1_HTML = """
<html>
<head><title>Week 1 Overview: Intro to CS</title></head>
<body>
  <div id="wiki_page_show">
    <h1 class="page-title">Week 1 Overview</h1>
    <div class="show-content user_content">
      <p>Read the lecture notes before class.</p>
      <p><a href="/courses/42/files/502?wrap=1">Lecture Notes Week 1.pdf</a></p>
      <p><a href="https://docs.python.org/3/tutorial/">Python tutorial</a></p>
    </div>
  </div>
</body>
</html>
"""


@pytest.fixture
def restricted_course(fake_canvas: FakeCanvas) -> FakeCanvas:
    """
    Course 42 with the Pages API disabled.

    Files come from the API; pages are only reachable through the web.
    """
    fake_canvas.add("/api/v1/courses/42", json={"id": "42", "name": "Intro to CS"})
    fake_canvas.add(
        "/api/v1/courses/42/pages",
        status=404,
        json={"message": "That page has been disabled for this course"},
    )
    fake_canvas.add("/api/v1/courses/42/files", json=[
        {"id": "101", "display_name": "Course Outline.pdf", "content-type": "application/pdf",
         "size": 2048, "url": f"{BASE_URL}/files/101/download"},
        {"id": "102", "display_name": "Homework 1.docx", "size": 1024,
         "url": f"{BASE_URL}/files/102/download"},
    ])
    for path in (
        "/api/v1/courses/42/modules",
        "/api/v1/courses/42/assignments",
        "/api/v1/courses/42/discussion_topics",
        "/api/v1/announcements",
        "/api/v1/courses/42/tabs",
    ):
        fake_canvas.add(path, json=[])

    fake_canvas.add("/courses/42", html=COURSE_HOME_HTML)
    fake_canvas.add("/courses/42/pages", html=PAGES_INDEX_HTML)
    fake_canvas.add("/courses/42/pages/syllabus", html=SYLLABUS_HTML)
    fake_canvas.add("/courses/42/pages/week-1", html=WEEK_1_HTML)
    return fake_canvas


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that talk to a real Canvas instance"
    )


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset global singletons between tests."""
    import coursescout.server as server_module
    from coursescout.shared.config import reload_settings

    server_module._orchestrator = None
    reload_settings()

    yield

    server_module._orchestrator = None

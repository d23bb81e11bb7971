"""
CourseScout - Canvas LMS content discovery for MCP clients
==========================================================

Exposes Canvas courses, pages, discussions, files, grades and submissions
as MCP tools, built around a content discovery engine that keeps working
when parts of the Canvas API are restricted:

- Probe which API categories a course allows
- List content through the API where possible
- Fall back to the rendered web interface for the rest
- Cache and search the merged course index
"""

__version__ = "0.1.0"
__author__ = "CourseScout Team"
__license__ = "MIT"

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Main modules (imported on demand)
    "shared",
    "discovery",
    "search",
    "tools",
    "cli",
    "server",
]

"""
CLI Module - Command-line interface for CourseScout.
"""

from coursescout.cli.main import app, cli

__all__ = ["app", "cli"]

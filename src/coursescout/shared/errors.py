"""
Errors Module - Exception hierarchy for Canvas access.
======================================================

Caller input problems are plain ValueError. Remote failures use the
classes below so callers can tell transport failures from HTTP errors.
"""

from typing import Optional

import httpx


class CanvasError(Exception):
    """Base exception for all Canvas access errors."""


class CanvasRequestError(CanvasError):
    """Raised when a request could not be completed (network, timeout)."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(message)


class CanvasAPIError(CanvasError):
    """Raised when Canvas answers with an error status."""

    def __init__(self, status_code: int, path: str, message: Optional[str] = None):
        self.status_code = status_code
        self.path = path
        super().__init__(message or f"Canvas API Error ({status_code}) for {path}")

    @classmethod
    def from_response(cls, response: httpx.Response, path: str) -> "CanvasAPIError":
        """Build an error with a user-friendly message for common statuses."""
        status = response.status_code
        detail = extract_error_message(response)

        if status == 404:
            if "disabled" in detail.lower():
                message = "The requested resource has been disabled for this course"
            else:
                message = "The requested resource was not found or is not accessible"
        elif status == 401:
            message = "Invalid or expired access token"
        elif status == 403:
            message = "Access denied - insufficient permissions"
        else:
            message = detail or response.reason_phrase

        return cls(status, path, f"Canvas API Error ({status}): {message}")


def extract_error_message(response: httpx.Response) -> str:
    """
    Pull the most specific error text out of a Canvas error response.

    Canvas answers with {"errors": [{"message": ...}]}, {"message": ...}
    or plain text depending on the endpoint.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict) and first.get("message"):
                return str(first["message"])
            return str(first)
        if isinstance(errors, dict) and errors:
            return str(next(iter(errors.values())))
        for key in ("message", "error"):
            if payload.get(key):
                return str(payload[key])

    text = response.text.strip()
    if text:
        return text[:300]
    return response.reason_phrase

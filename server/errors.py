"""
Exception classes for the placement service.

Collaborator failures are reported to the user and leave state unchanged;
nothing raised here is meant to be fatal.
"""

from typing import Any, Dict, Optional


class PlacementError(Exception):
    """Base exception for placement service errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class DirectoryError(PlacementError):
    """A directory or event-location request failed.

    Raised for connection errors, non-2xx responses and malformed payloads.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.status = status


class DirectoryTimeoutError(DirectoryError):
    """A directory request exceeded the configured timeout."""

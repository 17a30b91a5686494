"""
Error taxonomy for the POS ingestion API.

Every error carries the HTTP status it maps to. Routes render these through
the response envelope; deferred writes never surface them to the caller.
"""
from __future__ import annotations

from typing import Any


class PosError(Exception):
    """Base class for errors that map onto an API response."""

    code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details or {}


class ValidationError(PosError):
    """400-level input problem; details carries field -> [messages]."""

    code = 400
    default_message = "Validation failed"

    def __init__(self, errors: dict[str, list[str]], message: str | None = None):
        super().__init__(message, details={"errors": errors})
        self.errors = errors


class AuthorizationError(PosError):
    """403: the caller is not allowed to touch the referenced resource."""

    code = 403
    default_message = "Forbidden"


class NotFoundError(PosError):
    """404: a referenced branch or sale does not exist."""

    code = 404
    default_message = "Not found"


class PersistenceError(PosError):
    """500: the transactional write failed and was rolled back."""

    code = 500
    default_message = "Failed to persist changes"

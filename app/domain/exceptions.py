"""Centralized exception hierarchy for GrowLab analytics.

All domain and service exceptions inherit from :class:`GrowLabError` so that
callers can catch a single base class when they need a broad safety net, yet
still match on specific subclasses where narrower handling is appropriate.

Hierarchy
---------
::

    GrowLabError (base, maps to 500)
    ├── ValidationError          (400, bad input from caller)
    ├── NotFoundError            (404, plant or recommendation does not exist)
    ├── ServiceError             (500, business-logic failure)
    │   └── RepositoryError      (500, database or persistence)
    └── ConfigurationError       (500, missing or invalid config)
"""

from __future__ import annotations


class GrowLabError(Exception):
    """Base exception for all GrowLab application errors.

    Parameters
    ----------
    message:
        Human-readable description.
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        """JSON-serializable error payload."""
        return {"error": type(self).__name__, "message": self.message, "detail": dict(self.detail)}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(GrowLabError):
    """Caller supplied invalid or incomplete input (HTTP 400).

    ``errors`` lists every violated field so callers can report them all at
    once instead of fixing one field per round-trip.
    """

    http_status: int = 400

    def __init__(
        self,
        message: str = "",
        *,
        errors: list[str] | None = None,
        detail: dict | None = None,
    ) -> None:
        self.errors = list(errors or [])
        if not message:
            message = "Validation failed: " + "; ".join(self.errors) if self.errors else "Validation failed"
        merged = dict(detail or {})
        if self.errors:
            merged.setdefault("errors", list(self.errors))
        super().__init__(message, detail=merged)


class NotFoundError(GrowLabError):
    """Requested entity does not exist (HTTP 404)."""

    http_status: int = 404


# ── Server errors (5xx) ──────────────────────────────────────────────


class ServiceError(GrowLabError):
    """Business-logic failure in a service method (HTTP 500)."""

    http_status: int = 500


class RepositoryError(ServiceError):
    """Database / persistence layer failure (HTTP 500)."""

    http_status: int = 500


class ConfigurationError(GrowLabError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500

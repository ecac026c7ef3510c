"""HTTP middleware for the keeper API."""

from .logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]

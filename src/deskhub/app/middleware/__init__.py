"""HTTP middleware."""

from deskhub.app.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]

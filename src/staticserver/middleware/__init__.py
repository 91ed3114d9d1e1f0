"""
Request/response middleware.

    Middleware           base class, __call__(request, next) -> response
    MiddlewarePipeline   chains middleware around the router
    LoggingMiddleware    access log (text or JSON) with X-Request-ID
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]

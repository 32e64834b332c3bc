"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request processing, in pipeline order:

    LoggingMiddleware   access log + X-Request-ID
    CORSMiddleware      CORS headers, OPTIONS preflight short-circuit
    AuthMiddleware      bearer-token check, 401 on failure

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .cors import CORSMiddleware, CORSConfig
from .auth import AuthMiddleware
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "CORSMiddleware",
    "CORSConfig",
    "AuthMiddleware",
    "LoggingMiddleware",
    "RequestLog",
]

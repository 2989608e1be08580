"""
=============================================================================
MIDDLEWARE
=============================================================================

Optional layers wrapped around the file handler, each one a
Chain of Responsibility link:

    Auth → Logging → Compression → CORS → StaticFileHandler

    base.py          Middleware, MiddlewarePipeline, FunctionMiddleware
    auth.py          AuthMiddleware (401 unless credentials check out)
    logging.py       LoggingMiddleware (one access line per request)
    compression.py   CompressionMiddleware, GzipResponseWriter
    cors.py          CORSMiddleware (public GET-only policy)

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, FunctionMiddleware, Handler
from .auth import AuthMiddleware
from .logging import LoggingMiddleware, RequestLog
from .compression import CompressionMiddleware, GzipResponseWriter
from .cors import CORSMiddleware

__all__ = [
    "Handler",
    "Middleware",
    "MiddlewarePipeline",
    "FunctionMiddleware",

    "AuthMiddleware",
    "LoggingMiddleware",
    "RequestLog",
    "CompressionMiddleware",
    "GzipResponseWriter",
    "CORSMiddleware",
]

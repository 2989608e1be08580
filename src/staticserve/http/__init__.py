"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Translates raw bytes from TCP into structured requests, and streams
responses back out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   bytes ──► RequestParser ──► HTTPRequest ──► handler(writer, req)  │
    │                                                      │               │
    │   bytes ◄── SocketResponseWriter ◄───────────────────┘               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    request.py      HTTPRequest, RequestParser, HTTPParseError
    response.py     ResponseWriter and implementations, error helpers
    mime_types.py   Extension table and content sniffing

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    Headers,
    ResponseWriter,
    SocketResponseWriter,
    ResponseRecorder,
    error,
    redirect,       # 301/302
    unauthorized,   # 401
    forbidden,      # 403
    not_found,      # 404
    method_not_allowed,  # 405
    internal_error,      # 500
)
from .mime_types import get_mime_type, get_content_type, sniff_content_type


__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    "Headers",
    "ResponseWriter",
    "SocketResponseWriter",
    "ResponseRecorder",

    "error",
    "redirect",
    "unauthorized",
    "forbidden",
    "not_found",
    "method_not_allowed",
    "internal_error",

    "get_mime_type",
    "get_content_type",
    "sniff_content_type",
]

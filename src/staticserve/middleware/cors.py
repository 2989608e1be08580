"""
=============================================================================
CORS MIDDLEWARE
=============================================================================

Cross-Origin Resource Sharing: lets pages served from another origin read
our files with fetch()/XMLHttpRequest.

    Browser on https://app.example                 staticserve
         │                                              │
         │  GET /data.json                              │
         │  Origin: https://app.example                 │
         │ ───────────────────────────────────────────► │
         │                                              │
         │  200 OK                                      │
         │  Access-Control-Allow-Origin: *              │
         │ ◄─────────────────────────────────────────── │
         │                                              │
      page may read the body

A read-only file server only needs the simple case: every response (any
status, including 404) advertises a public, GET-only policy. There is no
preflight handling and no per-origin allow list.

=============================================================================
"""

from typing import Sequence

from .base import Middleware, Handler
from ..http.request import HTTPRequest
from ..http.response import ResponseWriter


class CORSMiddleware(Middleware):
    """
    Adds permissive CORS headers to every response.

    Headers are set BEFORE the inner handler runs, because once the
    handler has written the body the headers are already on the wire.

        Access-Control-Allow-Origin:  *
        Access-Control-Allow-Methods: GET
        Access-Control-Allow-Headers: Accept
    """

    def __init__(
        self,
        allow_origin: str = "*",
        allow_methods: Sequence[str] = ("GET",),
        allow_headers: Sequence[str] = ("Accept",),
    ):
        self.allow_origin = allow_origin
        self.allow_methods = ", ".join(allow_methods)
        self.allow_headers = ", ".join(allow_headers)

    def __call__(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        writer.headers["Access-Control-Allow-Origin"] = self.allow_origin
        writer.headers["Access-Control-Allow-Methods"] = self.allow_methods
        writer.headers["Access-Control-Allow-Headers"] = self.allow_headers
        next(writer, request)

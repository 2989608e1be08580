"""
=============================================================================
GZIP COMPRESSION MIDDLEWARE
=============================================================================

Compresses response bodies on the fly for clients that send
"Accept-Encoding: gzip".

=============================================================================
STREAMING COMPRESSION
=============================================================================

The inner handler never sees the compression. It writes plain bytes into a
GzipResponseWriter, which feeds them through a zlib compressor and passes
compressed bytes on to the real writer:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   handler ──write(plain)──► GzipResponseWriter ──write(gzip)──► out │
    │                                  │                                   │
    │                          first write: sniff                          │
    │                          Content-Type from the                       │
    │                          UNCOMPRESSED bytes                          │
    │                                                                      │
    │   close() ──► compressor.flush(Z_FINISH) ──► gzip trailer (CRC32)   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

HEADERS
-------
    Content-Encoding: gzip        Set before the inner handler runs
    Vary: Accept-Encoding         Caches must key on the request header
    Content-Length                Removed: it described the plain body

The stream is finalized exactly once, whichever way the inner handler exits.
A gzip stream without its trailer is not decodable, so close() runs in a
``with`` block around the inner call.

=============================================================================
"""

from typing import Optional
import logging
import zlib

from .base import Middleware, Handler
from ..http.request import HTTPRequest
from ..http.response import Headers, ResponseWriter
from ..http.mime_types import sniff_content_type


logger = logging.getLogger(__name__)

# wbits 16 + MAX_WBITS selects the gzip container (header + CRC32 trailer)
GZIP_WBITS = 16 + zlib.MAX_WBITS


class GzipResponseWriter(ResponseWriter):
    """
    ResponseWriter that gzip-compresses everything written through it.

    Usage:
        with GzipResponseWriter(writer, level=6) as gz:
            handler(gz, request)
    """

    def __init__(self, writer: ResponseWriter, level: int = 6):
        """
        Args:
            writer: The underlying response sink.
            level: zlib compression level (1 = fastest, 9 = smallest).
        """
        self._writer = writer
        self._compressor = zlib.compressobj(level, zlib.DEFLATED, GZIP_WBITS)
        self._started = False
        self._closed = False

    @property
    def headers(self) -> Headers:
        return self._writer.headers

    @property
    def headers_sent(self) -> bool:
        return self._writer.headers_sent

    @property
    def status(self) -> Optional[int]:
        return self._writer.status

    @property
    def closed(self) -> bool:
        return self._closed

    def write_header(self, status: int) -> None:
        self.headers.pop("Content-Length", None)
        self._writer.write_header(status)

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError("write to closed GzipResponseWriter")

        if not self._started:
            self._started = True
            if not self.headers.get("Content-Type"):
                self.headers["Content-Type"] = sniff_content_type(data)
            self.headers.pop("Content-Length", None)

        compressed = self._compressor.compress(data)
        if compressed:
            self._writer.write(compressed)
        return len(data)

    def close(self, discard: bool = False) -> None:
        """
        Finalize the gzip stream. Safe to call more than once.

        Args:
            discard: Finalize without emitting anything, leaving an
                     uncommitted response free for an error reply.
        """
        if self._closed:
            return
        self._closed = True

        tail = self._compressor.flush(zlib.Z_FINISH)
        if discard:
            return
        self._writer.write(tail)

    def __enter__(self) -> "GzipResponseWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        # The inner handler failed before anything reached the client:
        # keep the response uncommitted so the server can still send a 500.
        self.close(discard=exc_type is not None and not self.headers_sent)


class CompressionMiddleware(Middleware):
    """
    Gzip response compression.

    =========================================================================
    MIDDLEWARE POSITION
    =========================================================================

        Auth → Logging → Compression → CORS → files

    The logging middleware sits outside compression, so the byte counts
    it records are what actually went over the wire.

    =========================================================================
    USAGE
    =========================================================================

        pipeline.add(CompressionMiddleware())          # level 6
        pipeline.add(CompressionMiddleware(level=1))   # fastest

    =========================================================================
    """

    def __init__(self, level: int = 6):
        """
        Args:
            level: Compression level (1-9).
                  1 = fastest, least compression
                  6 = balanced (default)
                  9 = slowest, best compression
        """
        if not 1 <= level <= 9:
            raise ValueError(f"gzip level must be between 1 and 9, got {level}")
        self.level = level

    def __call__(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        if not request.accepts_encoding("gzip"):
            next(writer, request)
            return

        writer.headers["Content-Encoding"] = "gzip"
        _add_vary(writer.headers, "Accept-Encoding")

        with GzipResponseWriter(writer, level=self.level) as gz:
            next(gz, request)


def _add_vary(headers: Headers, name: str) -> None:
    vary: Optional[str] = headers.get("Vary")
    if not vary:
        headers["Vary"] = name
    elif name.lower() not in vary.lower():
        headers["Vary"] = f"{vary}, {name}"

"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Emits one log record per completed request:

    GET /docs/index.html from 127.0.0.1:53122 took 1.274ms (200, 5120 bytes)

The duration is wall-clock time from entering the middleware until the
inner handler returned, so it includes time spent streaming the body to
the client.

=============================================================================
OBSERVING A STREAMED RESPONSE
=============================================================================

The response is written straight to the client, so there is no response
object to inspect afterwards. Instead the inner handler gets a thin
_ResponseObserver that records the status code and counts body bytes as
they pass through, and changes nothing else.

=============================================================================
"""

from dataclasses import dataclass, asdict
from typing import Optional
import json
import logging
import time

from .base import Middleware, Handler
from ..http.request import HTTPRequest
from ..http.response import Headers, ResponseWriter


# Configure separately from the server's own logger:
#   logging.getLogger("staticserve.access").addHandler(file_handler)
logger = logging.getLogger("staticserve.access")


@dataclass
class RequestLog:
    """
    Structured log entry for a request.

    Attached to every access-log record as ``record.request_log`` so
    handlers and formatters can use the fields directly.
    """

    method: str
    url: str
    remote_addr: str
    status: int
    bytes_sent: int
    duration_ms: float
    user: Optional[str] = None

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 3)
        return entry

    def to_text(self) -> str:
        return (
            f"{self.method} {self.url} from {self.remote_addr} "
            f"took {self.duration_ms:.3f}ms ({self.status}, {self.bytes_sent} bytes)"
        )


class _ResponseObserver(ResponseWriter):
    """Passes everything through to the wrapped writer, recording status and size."""

    def __init__(self, writer: ResponseWriter):
        self._writer = writer
        self.status: Optional[int] = None
        self.bytes_sent = 0

    @property
    def headers(self) -> Headers:
        return self._writer.headers

    @property
    def headers_sent(self) -> bool:
        return self._writer.headers_sent

    def write_header(self, status: int) -> None:
        if self.status is None:
            self.status = int(status)
        self._writer.write_header(status)

    def write(self, data: bytes) -> int:
        if self.status is None:
            self.status = 200
        written = self._writer.write(data)
        self.bytes_sent += written
        return written


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    =========================================================================
    MIDDLEWARE POSITION
    =========================================================================

        Auth → Logging → Compression → CORS → files

    Requests rejected by authentication are not logged.

    =========================================================================
    USAGE
    =========================================================================

        pipeline.add(LoggingMiddleware())                    # text lines
        pipeline.add(LoggingMiddleware(log_format="json"))   # JSON lines

    =========================================================================
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        """
        Args:
            log_format: "text" (human readable) or "json" (one object per line).
            log_level: Level for access records.
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.log_level = log_level

    def __call__(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        observer = _ResponseObserver(writer)
        start_time = time.monotonic()

        try:
            next(observer, request)
        except Exception as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                f"{request.method} {request.url} from {request.remote_addr} "
                f"failed after {duration_ms:.3f}ms: {type(e).__name__}: {e}"
            )
            raise

        duration_ms = (time.monotonic() - start_time) * 1000

        entry = RequestLog(
            method=request.method,
            url=request.url,
            remote_addr=request.remote_addr,
            # A handler that wrote nothing still gets an implicit 200
            status=observer.status or 200,
            bytes_sent=observer.bytes_sent,
            duration_ms=duration_ms,
            user=request.remote_user,
        )

        if self.log_format == "json":
            message = json.dumps(entry.to_dict())
        else:
            message = entry.to_text()
        logger.log(self.log_level, message, extra={"request_log": entry})

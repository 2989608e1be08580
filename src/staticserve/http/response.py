"""
=============================================================================
HTTP RESPONSE WRITING
=============================================================================

Responses are STREAMED: a handler receives a ResponseWriter (the response
sink), sets headers, optionally commits a status, and writes body chunks.
Nothing is buffered in memory, so a 2 GB file costs the same as a 2 KB one.

=============================================================================
THE RESPONSE WRITER CONTRACT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    RESPONSE WRITER LIFECYCLE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   headers["Content-Type"] = ...   Mutable until headers are sent    │
    │        │                                                             │
    │        ▼                                                             │
    │   write_header(404)               Commits status + headers          │
    │        │                          (optional: write() implies 200)    │
    │        ▼                                                             │
    │   write(b"...")  ×N               Body chunks go to the client      │
    │        │                                                             │
    │        ▼                                                             │
    │   finish()                        Runtime terminates the body       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Once the headers are committed, later header changes never reach the wire.
Middleware can wrap a writer (gzip, status recording) because every piece of
the pipeline only talks to the abstract ResponseWriter.

=============================================================================
MESSAGE FRAMING
=============================================================================

The client must know where the body ends. SocketResponseWriter picks:

    Content-Length set by handler   →  exact length framing
    HTTP/1.1 + keep-alive           →  Transfer-Encoding: chunked
    otherwise                       →  close the connection after the body

    Chunked body on the wire:

        1a\r\n
        <26 bytes of data>\r\n
        0\r\n
        \r\n                        ← terminating zero-length chunk

=============================================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Optional
import html
import io
import logging


logger = logging.getLogger(__name__)


class Headers(dict):
    """
    Response headers with case-insensitive names.

    Names are stored in canonical form ("content-type" → "Content-Type"),
    so handlers and middleware can use any casing and still see the same
    entry.
    """

    def __init__(self, *args, **kwargs):
        super().__init__()
        self.update(*args, **kwargs)

    @staticmethod
    def canonical(name: str) -> str:
        return "-".join(part.capitalize() for part in name.strip().split("-"))

    def __setitem__(self, name: str, value: str):
        super().__setitem__(self.canonical(name), value)

    def __getitem__(self, name: str) -> str:
        return super().__getitem__(self.canonical(name))

    def __delitem__(self, name: str):
        super().__delitem__(self.canonical(name))

    def __contains__(self, name) -> bool:
        return isinstance(name, str) and super().__contains__(self.canonical(name))

    def get(self, name: str, default=None):
        return super().get(self.canonical(name), default)

    def pop(self, name: str, *default):
        return super().pop(self.canonical(name), *default)

    def setdefault(self, name: str, default: str = "") -> str:
        return super().setdefault(self.canonical(name), default)

    def update(self, *args, **kwargs):
        for name, value in dict(*args, **kwargs).items():
            self[name] = value

    def copy(self) -> "Headers":
        return Headers(self)


class ResponseWriter(ABC):
    """
    Abstract response sink handed to every handler.

    Handler signature used across the package:

        def handler(writer: ResponseWriter, request: HTTPRequest) -> None
    """

    # Committed status code, None until the headers are sent
    status: Optional[int] = None

    @property
    @abstractmethod
    def headers(self) -> Headers:
        """Headers that will be sent with the response."""

    @property
    @abstractmethod
    def headers_sent(self) -> bool:
        """True once the status line and headers are committed."""

    @abstractmethod
    def write_header(self, status: int) -> None:
        """Commit the status code and the current headers."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """
        Write a chunk of the body.

        Commits a 200 status first if write_header() was not called.

        Returns:
            Number of bytes accepted from ``data``.
        """


class SocketResponseWriter(ResponseWriter):
    """
    Streams a response to a client connection.

    =========================================================================
    WHAT THE RUNTIME ADDS
    =========================================================================

    - Date and Server headers (unless the handler set them)
    - Connection: keep-alive / close
    - Framing (Content-Length, chunked, or close-delimited)
    - Body suppression for HEAD requests and 1xx/204/304 responses

    =========================================================================
    """

    def __init__(
        self,
        conn,
        request=None,
        server_name: str = "staticserve",
        keep_alive: bool = True,
    ):
        """
        Args:
            conn: Connection with a send(bytes) method.
            request: The request being answered. None for responses sent
                     before a request could be parsed.
            server_name: Value for the Server header.
            keep_alive: Whether the server allows persistent connections.
        """
        self._conn = conn
        self._request = request
        self._server_name = server_name
        self._headers = Headers()
        self.status: Optional[int] = None
        self.bytes_written = 0
        self.close_connection = request is None or not (keep_alive and request.is_keep_alive)
        self._chunked = False
        self._body_allowed = True
        self._finished = False

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def headers_sent(self) -> bool:
        return self.status is not None

    def write_header(self, status: int) -> None:
        if self.status is not None:
            logger.debug(f"Superfluous write_header({status}), already sent {self.status}")
            return
        self.status = int(status)

        headers = self._headers.copy()
        method = self._request.method if self._request else "GET"
        version = self._request.version if self._request else "HTTP/1.0"

        # ─────────────────────────────────────────────────────────────────
        # FRAMING
        # ─────────────────────────────────────────────────────────────────
        no_body_status = 100 <= self.status < 200 or self.status in (204, 304)
        self._body_allowed = not no_body_status and method != "HEAD"

        if no_body_status:
            headers.pop("Transfer-Encoding", None)
            if self.status != 304:
                headers.pop("Content-Length", None)
        elif "Content-Length" not in headers and self._body_allowed:
            if version == "HTTP/1.1" and not self.close_connection:
                headers["Transfer-Encoding"] = "chunked"
                self._chunked = True
            else:
                self.close_connection = True

        headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        headers.setdefault("Server", self._server_name)
        headers["Connection"] = "close" if self.close_connection else "keep-alive"

        lines = [f"HTTP/1.1 {self.status} {status_phrase(self.status)}"]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        self._conn.send(("\r\n".join(lines) + "\r\n\r\n").encode("latin-1"))

    def write(self, data: bytes) -> int:
        if self.status is None:
            self.write_header(HTTPStatus.OK)
        if not data or not self._body_allowed:
            return len(data)

        if self._chunked:
            self._conn.send(b"%x\r\n" % len(data) + bytes(data) + b"\r\n")
        else:
            self._conn.send(bytes(data))

        self.bytes_written += len(data)
        return len(data)

    def finish(self) -> None:
        """
        Complete the response.

        A handler that wrote nothing gets an empty 200 response. A chunked
        body gets its terminating zero-length chunk.
        """
        if self._finished:
            return
        self._finished = True

        if self.status is None:
            self._headers.setdefault("Content-Length", "0")
            self.write_header(HTTPStatus.OK)

        if self._chunked:
            self._conn.send(b"0\r\n\r\n")


class ResponseRecorder(ResponseWriter):
    """
    In-memory ResponseWriter that records what a handler produced.

    Used for testing handlers and middleware without a socket:

        recorder = ResponseRecorder()
        handler(recorder, request)
        assert recorder.status == 200
        assert recorder.body == b"..."
    """

    def __init__(self):
        self._headers = Headers()
        self.status: Optional[int] = None
        self.sent_headers: Optional[Headers] = None
        self._body = io.BytesIO()

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def headers_sent(self) -> bool:
        return self.status is not None

    @property
    def body(self) -> bytes:
        return self._body.getvalue()

    def write_header(self, status: int) -> None:
        if self.status is not None:
            return
        self.status = int(status)
        # Snapshot: what the client would have seen
        self.sent_headers = self._headers.copy()

    def write(self, data: bytes) -> int:
        if self.status is None:
            self.write_header(HTTPStatus.OK)
        return self._body.write(data)

    def result(self) -> tuple[int, Headers, bytes]:
        """Return (status, headers, body); an untouched recorder reports 200."""
        if self.status is None:
            return HTTPStatus.OK, self._headers.copy(), b""
        return self.status, self.sent_headers, self.body


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def status_phrase(status: int) -> str:
    """Reason phrase for a status code ("Unknown" for unregistered codes)."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are ALWAYS in GMT, never local time.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    dt = dt.astimezone(timezone.utc)
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# Quick one-liners for error responses. They write a short plain-text body
# and never leak internal details to the client:
#
#     return not_found(writer)
#     return forbidden(writer, "Directory listing not allowed")
#
# =============================================================================

def error(writer: ResponseWriter, status: int, message: Optional[str] = None) -> None:
    """
    Reply with a plain-text error body.

    Args:
        writer: The response sink.
        status: HTTP status code.
        message: Body text (defaults to "<code> <phrase>").
    """
    if message is None:
        message = f"{int(status)} {status_phrase(status)}"
    body = (message + "\n").encode("utf-8")

    writer.headers["Content-Length"] = str(len(body))
    writer.headers["Content-Type"] = "text/plain; charset=utf-8"
    writer.headers["X-Content-Type-Options"] = "nosniff"
    writer.write_header(status)
    writer.write(body)


def unauthorized(writer: ResponseWriter, realm: str = "") -> None:
    """
    401 Unauthorized with a Basic challenge.

    The browser shows its login prompt when it sees the WWW-Authenticate
    header; the realm is displayed to the user.
    """
    escaped = realm.replace("\\", "\\\\").replace('"', '\\"')
    writer.headers["WWW-Authenticate"] = f'Basic realm="{escaped}"'
    error(writer, HTTPStatus.UNAUTHORIZED)


def forbidden(writer: ResponseWriter, message: Optional[str] = None) -> None:
    error(writer, HTTPStatus.FORBIDDEN, message)


def not_found(writer: ResponseWriter, message: Optional[str] = None) -> None:
    error(writer, HTTPStatus.NOT_FOUND, message)


def method_not_allowed(writer: ResponseWriter, allowed_methods: list[str]) -> None:
    """405 with the Allow header listing valid methods (RFC 7231 requirement)."""
    writer.headers["Allow"] = ", ".join(allowed_methods)
    error(writer, HTTPStatus.METHOD_NOT_ALLOWED)


def internal_error(writer: ResponseWriter) -> None:
    error(writer, HTTPStatus.INTERNAL_SERVER_ERROR)


def redirect(writer: ResponseWriter, location: str, permanent: bool = True) -> None:
    """301 (permanent) or 302 redirect with a Location header."""
    writer.headers["Location"] = location
    status = HTTPStatus.MOVED_PERMANENTLY if permanent else HTTPStatus.FOUND
    writer.headers["Content-Type"] = "text/html; charset=utf-8"
    writer.write_header(status)
    writer.write(f'<a href="{html.escape(location)}">{status_phrase(status)}</a>.\n'.encode("utf-8"))

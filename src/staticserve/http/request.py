"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.x request bytes into structured HTTPRequest objects
(RFC 7230). A static file server only needs the request line and headers,
but the body is still read so keep-alive connections stay in sync.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    GET /docs/guide%20v2.html?lang=en HTTP/1.1\r\n                    │
    │    ─┬─ ────────────┬─────────────── ────┬────                        │
    │   Method        Target               Version                         │
    │                    │                                                 │
    │         ┌──────────┴───────────┐                                     │
    │       Path (decoded)      Query string                               │
    │    /docs/guide v2.html      lang=en                                  │
    │                                                                      │
    │    Host: example.com\r\n                                             │
    │    Accept-Encoding: gzip, deflate\r\n                                │
    │    Authorization: Basic YWxpY2U6c2VjcmV0\r\n                         │
    │    \r\n                                                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The raw target is kept as ``url`` for access logs; the decoded ``path`` is
what the file handler maps onto the document root.

=============================================================================
MALFORMED REQUESTS
=============================================================================

    400 Bad Request               Bad syntax, ".." path segment
    405 Method Not Allowed        Unknown method token
    413 Payload Too Large         Request exceeds max_request_size
    505 HTTP Version Not Supported  Anything but HTTP/1.0 and HTTP/1.1

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict
from urllib.parse import parse_qs, urlsplit, unquote
import base64
import binascii
import re


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code that should be returned to the client.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         GET, HEAD, POST, ...
        path:           Percent-decoded path without the query string
        target:         Request target exactly as received ("/a%20b?x=1")
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header dict with LOWERCASE keys
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw request body
        client_address: (ip, port) of the peer
        remote_user:    User name set once authentication succeeded

    Requests are treated as values: middleware that needs to attach data
    (the authenticated user) passes a dataclasses.replace() copy downstream.

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    target: str = ""

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple = ("", 0)
    remote_user: Optional[str] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def url(self) -> str:
        """The request target as the client sent it."""
        return self.target or self.path

    @property
    def remote_addr(self) -> str:
        """
        Peer address as "ip:port" ("[ip]:port" for IPv6).
        """
        host, port = self.client_address[0], self.client_address[1]
        if ":" in host:
            return f"[{host}]:{port}"
        return f"{host}:{port}"

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

        HTTP/1.1 keeps alive unless "Connection: close";
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # ACCESSOR METHODS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Header value by case-insensitive name."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def accepts_encoding(self, coding: str) -> bool:
        """
        True if the Accept-Encoding header mentions ``coding``.

        A plain substring check: "gzip;q=0" still counts as accepting gzip.
        """
        return coding in self.get_header("Accept-Encoding")

    def basic_auth(self) -> Optional[tuple[str, str]]:
        """
        Credentials from an "Authorization: Basic ..." header.

        Returns:
            (user, password), or None if the header is missing, uses another
            scheme, or does not decode to "user:password".
        """
        authorization = self.get_header("Authorization")
        scheme, _, encoded = authorization.partition(" ")
        if scheme.lower() != "basic":
            return None

        try:
            decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None

        user, sep, password = decoded.partition(":")
        if not sep:
            return None
        return user, password


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        1. Size check                    → 413
        2. Split at \\r\\n\\r\\n
        3. Request line                  → 400 / 405 / 505
        4. Headers (lowercased names, duplicates comma-joined)
        5. Body (exactly Content-Length bytes)

    ==========================================================================
    """

    VALID_METHODS = {
        "GET", "HEAD", "POST", "PUT", "DELETE",
        "PATCH", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Requests larger than this are rejected with
                              413 Payload Too Large.
        """
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
        """
        Parse raw HTTP request data.

        Args:
            data: Raw request bytes from the socket.
            client_address: Peer (ip, port).

        Returns:
            The parsed request.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header bytes are ISO-8859-1 on the wire
        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            target=target,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str):
        """
        Parse "METHOD SP REQUEST-TARGET SP HTTP-VERSION".

        Returns:
            Tuple of (method, target, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        parts = urlsplit(target)
        path = unquote(parts.path) or "/"
        query_params = parse_qs(parts.query, keep_blank_values=True)

        # "/a/../../etc/passwd" and "/a%2F..%2Fb" both decode to a ".." segment.
        # "/notes..txt" is a legitimate name and stays allowed.
        if ".." in path.replace("\\", "/").split("/"):
            raise HTTPParseError("Invalid path: contains ..", status_code=400)
        if "\x00" in path:
            raise HTTPParseError("Invalid path: contains NUL", status_code=400)

        return method, target, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict keyed by lowercase name.

        Obsolete line folding is joined onto the previous header, and
        repeated headers are combined with ", " (RFC 7230 §3.2.2).
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted client socket: buffered request reads, response
writes, keep-alive timeouts, and an orderly close.

=============================================================================
READING A REQUEST FROM A BYTE STREAM
=============================================================================

TCP delivers bytes, not messages. One recv() may hold half a request, or
the end of one request and the start of the next (pipelining). The
connection keeps a buffer across reads:

    recv() ──► _buffer ──► "\\r\\n\\r\\n" found? ──► Content-Length bytes
                                                     more available?
                                                          │
                              request bytes ◄─────────────┘
                              (leftover stays in _buffer)

    First request        timeout            (slow clients get time)
    Later requests       keep_alive_timeout (idle connections go away)

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import logging
import socket
import time
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and cleanup."""

    NEW = "new"
    READING = "reading"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Usable as a context manager; the socket is closed on exit:

        with Connection(sock, address) as conn:
            data = conn.read_request()
            conn.send(response_bytes)

    Attributes:
        socket: The client socket.
        address: Client (ip, port).
        id: Short identifier for log lines.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: tuple
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.monotonic)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.monotonic() - self.created_at

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        Returns:
            The request bytes, or None if the client closed the connection
            or an idle keep-alive connection timed out.

        Raises:
            TimeoutError: If the first request does not arrive in time.
            ValueError: If the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise ValueError(f"Request too large: {body_start + content_length} bytes")

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # client closed mid-body; the parser reports it
                self._buffer += chunk

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            return request_data

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """Content-Length from raw header bytes, needed before full parsing."""
        for line in headers.split(b"\r\n")[1:]:
            name, _, value = line.partition(b":")
            if name.strip().lower() == b"content-length":
                try:
                    return max(int(value.strip()), 0)
                except ValueError:
                    return 0  # the parser rejects it
        return 0

    def send(self, data: bytes) -> None:
        """
        Send bytes to the client.

        Raises:
            OSError: If the connection is lost.
        """
        self.state = ConnectionState.WRITING
        self.socket.sendall(data)

    def set_keep_alive(self) -> None:
        """Mark the connection as waiting for its next request."""
        self.state = ConnectionState.KEEP_ALIVE

    def close(self) -> None:
        """
        Close the connection: FIN to the client, drain, release the socket.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        self.socket.close()
        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests "
            f"({self.age:.3f}s)"
        )

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

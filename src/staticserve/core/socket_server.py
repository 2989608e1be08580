"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. It knows nothing about
HTTP: every accepted client is wrapped in a Connection and handed to a
callback.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    bind()            getaddrinfo → socket → bind → listen           │
    │        │             (IPv4 or IPv6, decided by the bind host)       │
    │        ▼                                                             │
    │    serve(handler)    while running:                                 │
    │                          accept()  (1s timeout so shutdown is seen) │
    │                          handler(Connection(...))                   │
    │        │                                                             │
    │        ▼                                                             │
    │    shutdown()        from a signal handler or another thread        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

SIGINT and SIGTERM trigger a graceful shutdown when the server runs in the
main thread. Signal handlers can only be installed there, so a server
started from a background thread (as the tests do) is stopped by calling
shutdown().

=============================================================================
"""

from typing import Callable, Optional
import logging
import signal
import socket
import threading

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        server = SocketServer(config)
        server.bind()
        print(server.server_address)   # actual port when binding port 0
        server.serve(handle_connection)
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready = threading.Event()
        self._original_handlers: dict = {}
        self.server_address: Optional[tuple] = None

    def _create_socket(self, host: str, port: int) -> socket.socket:
        """
        Create, configure and bind the listening socket.

        An empty host means all interfaces; "[::]" style hosts select IPv6.
        """
        family, socktype, proto, _, sockaddr = socket.getaddrinfo(
            host or None, port, socket.AF_UNSPEC, socket.SOCK_STREAM, 0, socket.AI_PASSIVE
        )[0]

        sock = socket.socket(family, socktype, proto)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.settimeout(1.0)
            sock.bind(sockaddr)
        except OSError:
            sock.close()
            raise
        return sock

    def bind(self) -> tuple:
        """
        Bind and start listening.

        Returns:
            The bound (host, port).

        Raises:
            OSError: If the address cannot be bound.
        """
        host, port = self.config.address
        try:
            self._socket = self._create_socket(host, port)
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.bind}: {e}")
            raise

        self._socket.listen(self.config.backlog)
        self.server_address = self._socket.getsockname()[:2]
        logger.debug(f"Listening on {self.server_address[0]}:{self.server_address[1]}")
        return self.server_address

    def _setup_signals(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def serve(self, connection_handler: Callable[[Connection], None]) -> None:
        """
        Accept connections until shutdown() is called. Blocks.

        Args:
            connection_handler: Called with each new Connection. It must
                                return quickly (hand the connection off).
        """
        if self._socket is None:
            self.bind()

        self._running = True
        self._setup_signals()
        self._ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]) -> None:
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop is running."""
        return self._ready.wait(timeout)

    def shutdown(self) -> None:
        """Stop the accept loop. Idempotent; safe from any thread."""
        if self._running:
            logger.info("Shutting down...")
        self._running = False

    def _cleanup(self) -> None:
        self._restore_signals()
        if self._socket:
            self._socket.close()
            self._socket = None
        self._ready.clear()
        logger.info("Server stopped")

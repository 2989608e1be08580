"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the layers together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ── accept ──► Connection                              │
    │                                  │                                   │
    │                    one daemon thread per connection                  │
    │                                  │                                   │
    │                                  ▼                                   │
    │              ┌───────── keep-alive loop ─────────┐                   │
    │              │  read_request()                   │                   │
    │              │  RequestParser.parse()            │                   │
    │              │  handler(SocketResponseWriter, req)│                  │
    │              │  writer.finish()                  │                   │
    │              └───────────────────────────────────┘                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The handler is built once, before the socket is bound, and shared by every
connection thread. Nothing in it holds per-request state, so no locking is
needed.

=============================================================================
ERRORS DURING A REQUEST
=============================================================================

    Unparseable request          → 400/405/413/505, connection closed
    Slow first request           → 408, connection closed
    Handler raised, nothing sent → logged with traceback, plain 500
    Handler raised mid-body      → logged, connection dropped (the client
                                   sees a truncated response, never a
                                   fake complete one)
    Client went away             → logged at DEBUG, connection dropped

=============================================================================
"""

from http import HTTPStatus
from typing import Optional
import logging
import threading

from .config import ServerConfig
from .core import Connection, SocketServer
from .http.request import HTTPParseError, RequestParser
from .http.response import SocketResponseWriter, error, internal_error
from .middleware import Handler
from .pipeline import build_handler


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Threaded HTTP/1.1 server running one handler.

    Usage:
        config = ServerConfig(root="./public", gzip=True)
        config.validate()
        HTTPServer(config).run()

    A custom handler can replace the default file-serving pipeline:

        HTTPServer(config, handler=my_handler).run()
    """

    def __init__(self, config: Optional[ServerConfig] = None, handler: Optional[Handler] = None):
        """
        Args:
            config: Server configuration (defaults if omitted).
            handler: Request handler. Defaults to build_handler(config).

        Raises:
            ConfigError: If the authenticator spec is invalid.
        """
        self.config = config or ServerConfig()
        self._handler = handler or build_handler(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._socket_server = SocketServer(self.config)
        self._running = False

    @property
    def server_address(self) -> Optional[tuple]:
        """The bound (host, port), once run() has bound the socket."""
        return self._socket_server.server_address

    def run(self) -> None:
        """
        Bind and serve until shutdown() or SIGINT/SIGTERM. Blocks.

        Raises:
            OSError: If the listen address cannot be bound.
        """
        self._setup_logging()
        self._socket_server.bind()
        self._running = True

        logger.info(f"Serving [{self.config.root}] at [{self.config.bind}].")

        try:
            self._socket_server.serve(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._running = False

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server accepts connections."""
        return self._socket_server.wait_until_ready(timeout)

    def shutdown(self) -> None:
        """Stop accepting connections. In-flight requests finish on their own threads."""
        self._running = False
        self._socket_server.shutdown()

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("staticserve").setLevel(level)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        thread = threading.Thread(
            target=self._process_connection,
            args=(conn,),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        thread.start()

    def _process_connection(self, conn: Connection) -> None:
        """Keep-alive loop for one connection (runs on its own thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.debug(f"[{conn.id}] Bad request: {e}")
                        self._send_error(conn, e.status_code)
                        break

                    writer = SocketResponseWriter(
                        conn,
                        request,
                        server_name=self.config.server_name,
                        keep_alive=self.config.keep_alive,
                    )

                    try:
                        self._handler(writer, request)
                    except ConnectionError:
                        raise
                    except Exception as e:
                        logger.exception(f"[{conn.id}] Handler error on {request.method} {request.url}: {e}")
                        if writer.headers_sent:
                            break
                        writer.headers.clear()
                        writer.close_connection = True
                        internal_error(writer)

                    writer.finish()

                    if writer.close_connection:
                        break
                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break
                except ValueError as e:
                    logger.debug(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.REQUEST_ENTITY_TOO_LARGE)
                    break
                except OSError as e:
                    logger.debug(f"[{conn.id}] Connection lost: {e}")
                    break

    def _send_error(self, conn: Connection, status: int) -> None:
        """Reply to a request that never reached the handler, then close."""
        writer = SocketResponseWriter(conn, None, server_name=self.config.server_name)
        try:
            error(writer, status)
            writer.finish()
        except OSError as e:
            logger.debug(f"[{conn.id}] Could not send {int(status)}: {e}")

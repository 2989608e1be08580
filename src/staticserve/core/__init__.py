"""
=============================================================================
NETWORK CORE
=============================================================================

The transport layer under the HTTP code:

    socket_server.py   SocketServer: listening socket, accept loop, signals
    connection.py      Connection: buffered reads, writes, keep-alive, close

Concurrency is one daemon thread per accepted connection (see
staticserve.server). A blocked client only ever blocks its own thread.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
]

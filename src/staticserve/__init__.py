"""
=============================================================================
STATICSERVE - Static File Server with Optional Middleware
=============================================================================

Serves a directory over HTTP/1.1. Four optional layers can be switched on
around the file handler, each one independent of the others:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   --auth   Basic authentication against an htpasswd file            │
    │   --log    One access-log line per request, with timing             │
    │   --gzip   Streaming gzip for clients that accept it                │
    │   --cors   Public, GET-only CORS headers                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    staticserve/
    ├── __main__.py          # CLI entry point (python -m staticserve)
    ├── config.py            # ServerConfig, ConfigError, parse_bind
    ├── auth.py              # Authenticator spec parsing and registry
    ├── pipeline.py          # Config → handler composition
    ├── server.py            # HTTPServer: threads, keep-alive loop
    ├── core/                # TCP: SocketServer, Connection
    ├── http/                # Request parsing, streaming responses, MIME
    ├── middleware/          # Auth, Logging, Compression, CORS
    └── handlers/            # StaticFileHandler

=============================================================================
QUICK START
=============================================================================

    from staticserve import HTTPServer, ServerConfig

    config = ServerConfig(root="./public", bind=":8000", gzip=True, log=True)
    config.validate()
    HTTPServer(config).run()

=============================================================================
"""

__version__ = "dev"

from .config import ConfigError, ServerConfig
from .pipeline import build_handler, build_pipeline
from .server import HTTPServer

__all__ = [
    "ConfigError",
    "HTTPServer",
    "ServerConfig",
    "build_handler",
    "build_pipeline",
    "__version__",
]

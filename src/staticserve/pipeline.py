"""
=============================================================================
PIPELINE COMPOSITION
=============================================================================

Turns a ServerConfig into the request handler the server runs. The file
handler sits at the core; each enabled feature adds one layer around it.

    ┌──────────────┬────────────────────┬──────────────────────────────────┐
    │  Setting     │  Layer             │  Position (outer → inner)        │
    ├──────────────┼────────────────────┼──────────────────────────────────┤
    │  auth        │  AuthMiddleware    │  1  rejects before anything runs │
    │  log         │  LoggingMiddleware │  2  times everything inside      │
    │  gzip        │  Compression       │  3                               │
    │  cors        │  CORSMiddleware    │  4  headers on every file reply  │
    │  (always)    │  StaticFileHandler │  core                            │
    └──────────────┴────────────────────┴──────────────────────────────────┘

Consequences of the order:

    - a 401 from authentication carries no CORS headers and is not logged
    - a 404 from the file handler carries CORS headers
    - the access log measures compression as well as file reading

The authenticator is loaded here, so a bad auth spec fails at startup,
before the server binds its socket.

=============================================================================
"""

import logging

from .auth import load_authenticator
from .config import ServerConfig
from .handlers import StaticFileHandler
from .middleware import (
    AuthMiddleware,
    CompressionMiddleware,
    CORSMiddleware,
    Handler,
    LoggingMiddleware,
    MiddlewarePipeline,
)


logger = logging.getLogger(__name__)


def build_pipeline(config: ServerConfig) -> MiddlewarePipeline:
    """
    Assemble the middleware enabled by ``config``, outermost first.

    Raises:
        AuthConfigError: If ``config.auth`` is set but invalid.
    """
    pipeline = MiddlewarePipeline()

    if config.auth:
        pipeline.add(AuthMiddleware(load_authenticator(config.auth)))
    if config.log:
        pipeline.add(LoggingMiddleware(log_format=config.log_format))
    if config.gzip:
        pipeline.add(CompressionMiddleware(level=config.gzip_level))
    if config.cors:
        pipeline.add(CORSMiddleware())

    logger.debug(f"Pipeline: {pipeline!r}")
    return pipeline


def build_handler(config: ServerConfig) -> Handler:
    """
    The complete request handler for ``config``: file server plus layers.

    Raises:
        AuthConfigError: If ``config.auth`` is set but invalid.
        ValueError: If ``config.root`` is not a directory.
    """
    return build_pipeline(config).wrap(StaticFileHandler(config.root))

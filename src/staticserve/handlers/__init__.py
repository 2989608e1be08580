"""
=============================================================================
REQUEST HANDLERS
=============================================================================

A handler answers a request by writing to a ResponseWriter:

    def handler(writer: ResponseWriter, request: HTTPRequest) -> None

The file server is the only terminal handler; everything else in the
pipeline is middleware wrapped around it.

    from staticserve.handlers import StaticFileHandler
    handler = StaticFileHandler("/srv/site")

=============================================================================
"""

from .static import StaticFileHandler

__all__ = [
    "StaticFileHandler",
]

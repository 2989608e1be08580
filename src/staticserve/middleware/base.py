"""
=============================================================================
MIDDLEWARE BASE CLASSES
=============================================================================

A middleware is a handler decorator: it receives the response writer, the
request and the next handler, and decides what happens around the call.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   def __call__(self, writer, request, next):                         │
    │                                                                      │
    │       # before: inspect request, set response headers,              │
    │       #         or answer directly and never call next              │
    │                                                                      │
    │       next(writer, request)      # possibly a wrapped writer        │
    │                                                                      │
    │       # after: finalize a wrapped writer, record timing             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Because the response is streamed, "after" work cannot rewrite what the
inner handler already sent. Middleware that needs to change the body
(compression) does so by handing the inner handler a wrapping writer.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional
import logging

from ..http.request import HTTPRequest
from ..http.response import ResponseWriter


logger = logging.getLogger(__name__)


# A handler answers one request by writing to the response sink.
Handler = Callable[[ResponseWriter, HTTPRequest], None]


class Middleware(ABC):
    """
    Abstract base class for middleware.

    =========================================================================
    THE MIDDLEWARE CONTRACT
    =========================================================================

        def __call__(self, writer, request, next) -> None

    - Call ``next(writer, request)`` exactly once to continue the chain,
      or not at all to short-circuit (e.g. a 401).
    - Exceptions from ``next`` propagate unless the middleware has a
      specific reason to handle them.

    =========================================================================
    """

    @abstractmethod
    def __call__(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        """
        Process the request.

        Args:
            writer: Response sink (may be wrapped before passing on)
            request: The incoming request
            next: The next handler in the chain
        """

    def wrap(self, handler: Handler) -> Handler:
        """
        Bind this middleware to an inner handler.

        Returns:
            A handler that runs this middleware around ``handler``.
        """
        def wrapped(writer: ResponseWriter, request: HTTPRequest) -> None:
            self(writer, request, handler)

        wrapped.__qualname__ = f"{self.name}({getattr(handler, '__qualname__', handler)!s})"
        return wrapped

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

    =========================================================================
    PIPELINE ARCHITECTURE
    =========================================================================

        pipeline.add(AuthMiddleware(...))      # First added = outermost
        pipeline.add(LoggingMiddleware())
        pipeline.add(CompressionMiddleware())
        pipeline.add(CORSMiddleware())         # Last added = innermost

            ┌─────────────────────────────────────────────────────────┐
            │  Auth                                                   │
            │  ┌───────────────────────────────────────────────────┐  │
            │  │  Logging                                          │  │
            │  │  ┌─────────────────────────────────────────────┐  │  │
            │  │  │  Compression                                │  │  │
            │  │  │  ┌─────────────────────────────────────┐    │  │  │
            │  │  │  │  CORS                               │    │  │  │
            │  │  │  │  ┌─────────────────────────────┐    │    │  │  │
            │  │  │  │  │   StaticFileHandler         │    │    │  │  │
            │  │  │  │  └─────────────────────────────┘    │    │  │  │
            │  │  │  └─────────────────────────────────────┘    │  │  │
            │  │  └─────────────────────────────────────────────┘  │  │
            │  └───────────────────────────────────────────────────┘  │
            └─────────────────────────────────────────────────────────┘

    =========================================================================
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """
        Add middleware to the pipeline (first added = outermost).

        Returns:
            Self for method chaining
        """
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        """Add several middleware at once, outermost first."""
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: Handler) -> Handler:
        """
        Wrap a handler with all middleware in the pipeline.

        Given [MW1, MW2, MW3], wrapping happens in reverse so the result is
        MW1 → MW2 → MW3 → handler.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = middleware.wrap(current)
        return current

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)

    def __repr__(self) -> str:
        names = " → ".join(mw.name for mw in self._middleware) or "(empty)"
        return f"<MiddlewarePipeline {names}>"


# =============================================================================
# FUNCTION MIDDLEWARE
# =============================================================================

class FunctionMiddleware(Middleware):
    """
    Wraps a plain function as middleware.

        def add_header(writer, request, next):
            writer.headers["X-Custom"] = "value"
            next(writer, request)

        pipeline.add(FunctionMiddleware(add_header))
    """

    def __init__(
        self,
        func: Callable[[ResponseWriter, HTTPRequest, Handler], None],
        name: Optional[str] = None,
    ):
        self._func = func
        self._name = name or func.__name__

    def __call__(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        self._func(writer, request, next)

    @property
    def name(self) -> str:
        return self._name

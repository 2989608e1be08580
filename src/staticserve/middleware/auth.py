"""
=============================================================================
AUTHENTICATION MIDDLEWARE
=============================================================================

Gatekeeper for every request:

    credentials valid   → inner pipeline runs, request.remote_user is set
    otherwise           → the authenticator's challenge (401), inner
                          pipeline never runs

Sitting outermost, a rejected request is neither logged, compressed nor
given CORS headers.

=============================================================================
"""

from dataclasses import replace
import logging

from .base import Middleware, Handler
from ..auth import Authenticator
from ..http.request import HTTPRequest
from ..http.response import ResponseWriter


logger = logging.getLogger(__name__)


class AuthMiddleware(Middleware):
    """
    Enforces an Authenticator.

    Usage:
        pipeline.add(AuthMiddleware(load_authenticator(spec)))
    """

    def __init__(self, authenticator: Authenticator):
        self.authenticator = authenticator

    def __call__(self, writer: ResponseWriter, request: HTTPRequest, next: Handler) -> None:
        user = self.authenticator.authenticate(request)
        if user is None:
            logger.debug(f"Unauthenticated {request.method} {request.url} from {request.remote_addr}")
            self.authenticator.challenge(writer)
            return

        next(writer, replace(request, remote_user=user))

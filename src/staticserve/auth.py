"""
=============================================================================
AUTHENTICATORS
=============================================================================

An authenticator is chosen by a compact URN-style spec string:

    basic?realm=Private%20Area&secrets=/etc/site.htpasswd
    ─┬───  ─────────────────────┬──────────────────────────
     │                          │
   type tag            query-string parameters
                       (percent-decoding applies)

The part before the first "?" selects the authenticator type from the
registry; the rest is parsed like a URL query string and handed to that
type's loader.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SPEC STRING → ERROR                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │  "basic"                      NoAuthTypeError  (no "?")             │
    │  "?realm=x"                   NoAuthTypeError  (empty tag)          │
    │  "basic?realm=x"              NoHtpasswdFileError                   │
    │  "digest?secrets=f"           UnknownAuthTypeError                  │
    │  "basic?secrets=/missing"     CredentialStoreError                  │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BASIC AUTHENTICATION
=============================================================================

    Client                                         Server
       │  GET /report.pdf                             │
       │ ───────────────────────────────────────────► │
       │  401 Unauthorized                            │
       │  WWW-Authenticate: Basic realm="Private"     │
       │ ◄─────────────────────────────────────────── │
       │  GET /report.pdf                             │
       │  Authorization: Basic YWxpY2U6c2VjcmV0       │
       │ ───────────────────────────────────────────► │  htpasswd check
       │  200 OK                                      │
       │ ◄─────────────────────────────────────────── │

Passwords are checked against an Apache htpasswd file through passlib.
The file is read once, at startup.

    ┌──────────────────┬─────────────────────────────┐
    │  Entry prefix    │  Scheme                     │
    ├──────────────────┼─────────────────────────────┤
    │  $2y$ $2a$ $2b$  │  bcrypt                     │
    │  $apr1$          │  Apache MD5 (htpasswd -m)   │
    │  $1$             │  MD5-crypt                  │
    │  $5$ $6$         │  SHA-256 / SHA-512 crypt    │
    │  {SHA}           │  SHA1 (htpasswd -s)         │
    │  13 chars        │  DES crypt (htpasswd -d)    │
    │  anything else   │  plaintext (htpasswd -p)    │
    └──────────────────┴─────────────────────────────┘

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from urllib.parse import parse_qs
import logging

from passlib.apache import HtpasswdFile
from passlib.context import CryptContext

from .config import ConfigError
from .http.request import HTTPRequest
from .http.response import ResponseWriter, unauthorized


logger = logging.getLogger(__name__)


# Every scheme is served by a passlib builtin backend (bcrypt by the bcrypt
# package), never by the host's crypt(3). plaintext matches anything, so it
# must stay last.
HTPASSWD_CONTEXT = CryptContext(
    schemes=[
        "bcrypt",
        "apr_md5_crypt",
        "md5_crypt",
        "sha256_crypt",
        "sha512_crypt",
        "ldap_sha1",
        "des_crypt",
        "plaintext",
    ],
    default="bcrypt",
)


# =============================================================================
# ERRORS
# =============================================================================

class AuthConfigError(ConfigError):
    """The authenticator spec could not be turned into an authenticator."""


class NoAuthTypeError(AuthConfigError):
    def __init__(self):
        super().__init__("no auth type specified")


class NoHtpasswdFileError(AuthConfigError):
    def __init__(self):
        super().__init__("no htpasswd file specified")


class UnknownAuthTypeError(AuthConfigError):
    def __init__(self, auth_type: str):
        super().__init__(f"unknown auth type specified: {auth_type}")
        self.auth_type = auth_type


class CredentialStoreError(AuthConfigError):
    """The credential store named by the spec could not be loaded."""


# =============================================================================
# SPEC PARSING
# =============================================================================

@dataclass(frozen=True)
class AuthenticatorSpec:
    """
    A parsed authenticator spec.

    Attributes:
        auth_type: The type tag before "?" (e.g. "basic").
        params: Query parameters, each name mapped to all its values.
    """

    auth_type: str
    params: Dict[str, List[str]] = field(default_factory=dict)

    def get(self, name: str, default: str = "") -> str:
        """First value of a parameter, or ``default`` if absent."""
        values = self.params.get(name)
        return values[0] if values else default


def parse_auth_spec(urn: str) -> AuthenticatorSpec:
    """
    Split a spec string into its type tag and parameters.

    Raises:
        NoAuthTypeError: If there is no "?" or nothing precedes it.
    """
    auth_type, sep, query = urn.partition("?")
    if not sep or not auth_type:
        raise NoAuthTypeError()
    return AuthenticatorSpec(auth_type, parse_qs(query, keep_blank_values=True))


# =============================================================================
# AUTHENTICATORS
# =============================================================================

class Authenticator(ABC):
    """
    Decides whether a request may proceed.

    Implementations must be safe to call from many threads at once.
    """

    @abstractmethod
    def authenticate(self, request: HTTPRequest) -> Optional[str]:
        """
        Check the credentials carried by ``request``.

        Returns:
            The authenticated user name, or None to reject.
        """

    @abstractmethod
    def challenge(self, writer: ResponseWriter) -> None:
        """Write the rejection response (status, challenge headers, body)."""


class BasicAuthenticator(Authenticator):
    """
    HTTP Basic authentication against an htpasswd file.

    Usage:
        htpasswd = HtpasswdFile("/etc/site.htpasswd", context=HTPASSWD_CONTEXT)
        authenticator = BasicAuthenticator("Private", htpasswd)
    """

    def __init__(self, realm: str, htpasswd: HtpasswdFile):
        self.realm = realm
        self._htpasswd = htpasswd

    @classmethod
    def from_spec(cls, spec: AuthenticatorSpec) -> "BasicAuthenticator":
        """
        Build from "basic?realm=<name>&secrets=<htpasswd path>".

        Raises:
            NoHtpasswdFileError: If ``secrets`` is missing or empty.
            CredentialStoreError: If the file cannot be read or parsed.
        """
        secrets = spec.get("secrets")
        if not secrets:
            raise NoHtpasswdFileError()

        try:
            htpasswd = HtpasswdFile(secrets, context=HTPASSWD_CONTEXT)
        except OSError as e:
            raise CredentialStoreError(
                f"cannot read htpasswd file {secrets}: {e.strerror or e}"
            ) from e
        except ValueError as e:
            raise CredentialStoreError(f"invalid htpasswd file {secrets}: {e}") from e

        logger.debug(f"Loaded {len(htpasswd.users())} user(s) from {secrets}")
        return cls(spec.get("realm"), htpasswd)

    def authenticate(self, request: HTTPRequest) -> Optional[str]:
        credentials = request.basic_auth()
        if credentials is None:
            return None

        user, password = credentials
        try:
            # None for unknown users, False for a wrong password
            verified = self._htpasswd.check_password(user, password)
        except ValueError as e:
            # Unsupported hash scheme or a user name htpasswd cannot hold
            logger.warning(f"Cannot verify credentials for {user!r}: {e}")
            return None

        return user if verified else None

    def challenge(self, writer: ResponseWriter) -> None:
        unauthorized(writer, self.realm)


# =============================================================================
# REGISTRY
# =============================================================================
#
# Maps a spec's type tag to a loader. Adding a scheme means adding a row.
#
# =============================================================================

AUTHENTICATORS: Dict[str, Callable[[AuthenticatorSpec], Authenticator]] = {
    "basic": BasicAuthenticator.from_spec,
}


def load_authenticator(urn: str) -> Authenticator:
    """
    Build an authenticator from a spec string.

    Args:
        urn: e.g. "basic?realm=Private&secrets=/etc/site.htpasswd"

    Raises:
        AuthConfigError: One of its subclasses, naming what is wrong.
    """
    spec = parse_auth_spec(urn)

    loader = AUTHENTICATORS.get(spec.auth_type)
    if loader is None:
        raise UnknownAuthTypeError(spec.auth_type)

    return loader(spec)

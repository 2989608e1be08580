"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves the files under one root directory. This is the innermost handler
of the pipeline; every optional feature wraps around it.

=============================================================================
REQUEST → FILESYSTEM
=============================================================================

    GET /docs/guide.html
            │
            ▼
    root / "docs/guide.html"  ──resolve()──►  /srv/site/docs/guide.html
            │
            ├── outside root?          → 403 Forbidden
            ├── directory, no "/"      → 301 to "/docs/"
            ├── directory              → index.html, else a listing
            ├── missing                → 404 Not Found
            └── file                   → 200 (or 304 if the client's
                                         copy is current)

=============================================================================
STREAMING
=============================================================================

Files are sent in CHUNK_SIZE pieces straight from disk to the response
writer, with Content-Length from stat(). A large file never sits in memory.

=============================================================================
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from http import HTTPStatus
from pathlib import Path
from urllib.parse import quote
import html
import logging

from ..http.request import HTTPRequest
from ..http.response import (
    ResponseWriter,
    format_http_date,
    forbidden,
    method_not_allowed,
    not_found,
    redirect,
)
from ..http.mime_types import get_content_type, sniff_content_type, SNIFF_LENGTH


logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Handler for serving static files.

    =========================================================================
    FEATURES
    =========================================================================

    - Content-Type by extension, sniffed from the first bytes otherwise
    - Directory index (index.html) or an HTML directory listing
    - Path traversal protection
    - ETag / If-None-Match and Last-Modified / If-Modified-Since (304)
    - HEAD requests (headers only)

    Range requests are not supported; clients always get the whole file.

    =========================================================================
    USAGE
    =========================================================================

        handler = StaticFileHandler("/srv/site")
        handler(writer, request)

    =========================================================================
    """

    CHUNK_SIZE = 64 * 1024
    ALLOWED_METHODS = ["GET", "HEAD"]

    def __init__(
        self,
        root_dir: str,
        index_file: str = "index.html",
        enable_directory_listing: bool = True,
    ):
        """
        Args:
            root_dir: Directory to serve. Nothing outside it is reachable.
            index_file: File served for directory requests.
            enable_directory_listing: List directories that have no index
                                      file (403 when disabled).

        Raises:
            ValueError: If root_dir is not a directory.
        """
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file
        self.enable_directory_listing = enable_directory_listing

        if not self.root_dir.is_dir():
            raise ValueError(f"Static root directory does not exist: {root_dir}")

    def __call__(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        self.handle(writer, request)

    def handle(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        """Answer one request from the filesystem."""
        if request.method not in self.ALLOWED_METHODS:
            return method_not_allowed(writer, self.ALLOWED_METHODS)

        relative = request.path.lstrip("/")
        full_path = (self.root_dir / relative).resolve()

        # resolve() has followed ".." and symlinks; the result must stay inside root
        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {request.path}")
            return forbidden(writer)

        if full_path.is_dir():
            if not request.path.endswith("/"):
                location = quote(request.path + "/")
                if request.query_params:
                    location += "?" + request.url.partition("?")[2]
                return redirect(writer, location)

            index_path = full_path / self.index_file
            if index_path.is_file():
                full_path = index_path
            elif self.enable_directory_listing:
                return self._directory_listing(writer, request, full_path)
            else:
                return forbidden(writer, "Directory listing not allowed")

        if not full_path.is_file():
            return not_found(writer)

        self._serve_file(writer, request, full_path)

    def _serve_file(self, writer: ResponseWriter, request: HTTPRequest, path: Path) -> None:
        """
        Stream a single file with caching headers.

        =====================================================================
        CONDITIONAL REQUESTS
        =====================================================================

        ETag is "<mtime>-<size>". A client that presents it in If-None-Match
        (or, without If-None-Match, a Last-Modified date at least as new as
        the file's in If-Modified-Since) gets 304 with no body.

        =====================================================================
        """
        stat = path.stat()
        etag = f'"{int(stat.st_mtime)}-{stat.st_size}"'
        mtime = datetime.fromtimestamp(int(stat.st_mtime), tz=timezone.utc)

        writer.headers["ETag"] = etag
        writer.headers["Last-Modified"] = format_http_date(mtime)

        if self._not_modified(request, etag, mtime):
            writer.write_header(HTTPStatus.NOT_MODIFIED)
            return

        try:
            f = path.open("rb")
        except PermissionError:
            return forbidden(writer)

        with f:
            content_type = get_content_type(path)
            if content_type is None:
                content_type = sniff_content_type(f.read(SNIFF_LENGTH))
                f.seek(0)

            writer.headers["Content-Type"] = content_type
            writer.headers["Content-Length"] = str(stat.st_size)
            writer.write_header(HTTPStatus.OK)

            if request.method == "HEAD":
                return

            while True:
                chunk = f.read(self.CHUNK_SIZE)
                if not chunk:
                    break
                writer.write(chunk)

    def _not_modified(self, request: HTTPRequest, etag: str, mtime: datetime) -> bool:
        if_none_match = request.get_header("If-None-Match")
        if if_none_match:
            candidates = [tag.strip() for tag in if_none_match.split(",")]
            return "*" in candidates or etag in candidates or f"W/{etag}" in candidates

        if_modified_since = request.get_header("If-Modified-Since")
        if if_modified_since:
            try:
                since = parsedate_to_datetime(if_modified_since)
            except (TypeError, ValueError):
                return False
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            return mtime <= since

        return False

    def _directory_listing(self, writer: ResponseWriter, request: HTTPRequest, path: Path) -> None:
        """Write an HTML index of a directory, sorted by name."""
        entries = []

        if path != self.root_dir:
            entries.append('<li><a href="../">../</a></li>')

        for entry in sorted(path.iterdir(), key=lambda p: p.name):
            name = entry.name + ("/" if entry.is_dir() else "")
            entries.append(f'<li><a href="{quote(name)}">{html.escape(name)}</a></li>')

        title = html.escape(request.path)
        page = (
            "<!DOCTYPE html>\n"
            "<html>\n"
            f"<head><title>Index of {title}</title></head>\n"
            "<body>\n"
            f"<h1>Index of {title}</h1>\n"
            "<ul>\n"
            + "\n".join(entries) +
            "\n</ul>\n"
            "</body>\n"
            "</html>\n"
        ).encode("utf-8")

        writer.headers["Content-Type"] = "text/html; charset=utf-8"
        writer.headers["Content-Length"] = str(len(page))
        writer.write_header(HTTPStatus.OK)
        if request.method != "HEAD":
            writer.write(page)

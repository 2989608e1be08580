"""
pytest configuration and fixtures.
"""

import http.client
import threading
from dataclasses import replace
from typing import Generator

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from passlib.apache import HtpasswdFile

from staticserve import HTTPServer, ServerConfig
from staticserve.http import HTTPRequest


class FakeConnection:
    """Stands in for core.Connection; collects everything sent."""

    def __init__(self):
        self.sent = bytearray()

    def send(self, data: bytes) -> None:
        self.sent.extend(data)


@pytest.fixture
def fake_conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def make_request():
    """Factory for HTTPRequest objects with lowercase header keys."""

    def _make(method="GET", path="/", headers=None, version="HTTP/1.1", target=None):
        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            target=target or path,
            headers={k.lower(): v for k, v in (headers or {}).items()},
            client_address=("127.0.0.1", 50000),
        )

    return _make


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A small document root."""
    (tmp_path / "index.html").write_text("<html><body>home</body></html>")
    (tmp_path / "hello.txt").write_text("hello, world\n" * 200)
    (tmp_path / "notes").write_text("plain words without an extension")
    (tmp_path / "blob.unknownext").write_bytes(b"\x89PNG\r\n\x1a\n" + bytes(range(256)))

    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "guide.md").write_text("# Guide\n")
    (docs / "a b.txt").write_text("spaced")

    return tmp_path


@pytest.fixture
def htpasswd_file(tmp_path: Path) -> Path:
    """htpasswd file with alice:wonderland and bob:builder (apr1-MD5 hashes)."""
    path = tmp_path / "users.htpasswd"
    htpasswd = HtpasswdFile(str(path), new=True, default_scheme="apr_md5_crypt")
    htpasswd.set_password("alice", "wonderland")
    htpasswd.set_password("bob", "builder")
    htpasswd.save()
    return path


class ServerThread:
    """Runs an HTTPServer on a free port in a background thread."""

    def __init__(self, config: ServerConfig, handler=None):
        self.server = HTTPServer(config, handler=handler)
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.server_address[1]

    def start(self) -> "ServerThread":
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")
        return self

    def stop(self) -> None:
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, method="GET", path="/", headers=None):
        """
        Send one request on a fresh connection.

        Returns:
            (status, headers as a case-insensitive message, body bytes)
        """
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=5)
        try:
            conn.request(method, path, headers=headers or {})
            response = conn.getresponse()
            body = response.read()
            return response.status, response.headers, body
        finally:
            conn.close()


@pytest.fixture
def run_server(site: Path) -> Generator:
    """
    Factory: start a server over ``site`` with config overrides.

        server = run_server(gzip=True)
        status, headers, body = server.request("GET", "/hello.txt")
    """
    started = []

    def _run(handler=None, **overrides) -> ServerThread:
        config = replace(
            ServerConfig(bind="127.0.0.1:0", root=str(site), log_level="WARNING", timeout=5.0),
            **overrides,
        )
        server = ServerThread(config, handler=handler).start()
        started.append(server)
        return server

    yield _run

    for server in started:
        server.stop()

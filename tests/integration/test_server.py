"""
End-to-end tests: a real server on a loopback port, driven over TCP.
"""

import base64
import gzip
import http.client
import socket

import pytest
from passlib.hash import bcrypt, md5_crypt

from staticserve.__main__ import main


def raw_exchange(port: int, data: bytes) -> bytes:
    """Send raw bytes, read until the server closes the connection."""
    with socket.create_connection(("127.0.0.1", port), timeout=5) as sock:
        sock.sendall(data)
        chunks = []
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestFileServing:
    """Tests for plain file serving over HTTP."""

    def test_get_file(self, run_server, site):
        server = run_server()
        status, headers, body = server.request("GET", "/hello.txt")

        assert status == 200
        assert body == (site / "hello.txt").read_bytes()
        assert headers["Content-Type"] == "text/plain; charset=utf-8"
        assert headers["Server"] == "staticserve"

    def test_not_found(self, run_server):
        status, _, body = run_server().request("GET", "/nope.html")

        assert status == 404
        assert body == b"404 Not Found\n"

    def test_head(self, run_server, site):
        status, headers, body = run_server().request("HEAD", "/hello.txt")

        assert status == 200
        assert int(headers["Content-Length"]) == (site / "hello.txt").stat().st_size
        assert body == b""

    def test_percent_encoded_name(self, run_server):
        status, _, body = run_server().request("GET", "/docs/a%20b.txt")

        assert status == 200
        assert body == b"spaced"

    def test_traversal_rejected(self, run_server):
        server = run_server()
        response = raw_exchange(server.port, b"GET /../../etc/passwd HTTP/1.1\r\nHost: x\r\n\r\n")

        assert response.startswith(b"HTTP/1.1 400 ")

    def test_unsupported_version(self, run_server):
        server = run_server()
        response = raw_exchange(server.port, b"GET / HTTP/2.0\r\nHost: x\r\n\r\n")

        assert response.startswith(b"HTTP/1.1 505 ")

    def test_keep_alive(self, run_server):
        """Two requests share one TCP connection."""
        server = run_server()
        conn = http.client.HTTPConnection("127.0.0.1", server.port, timeout=5)
        try:
            conn.request("GET", "/hello.txt")
            first = conn.getresponse()
            first.read()
            sock = conn.sock

            conn.request("GET", "/docs/guide.md")
            second = conn.getresponse()

            assert first.status == 200
            assert second.status == 200
            assert second.read() == b"# Guide\n"
            assert conn.sock is sock
        finally:
            conn.close()

    def test_handler_error_is_500(self, run_server):
        def broken(writer, request):
            raise RuntimeError("boom")

        status, headers, body = run_server(handler=broken).request("GET", "/")

        assert status == 500
        assert body == b"500 Internal Server Error\n"
        assert headers["Connection"] == "close"

    def test_streamed_body_is_chunked(self, run_server):
        def streaming(writer, request):
            for part in (b"one ", b"two ", b"three"):
                writer.write(part)

        status, headers, body = run_server(handler=streaming).request("GET", "/")

        assert status == 200
        assert headers["Transfer-Encoding"] == "chunked"
        assert body == b"one two three"


class TestFeatures:
    """Tests for the optional layers over a real connection."""

    def test_gzip(self, run_server, site):
        server = run_server(gzip=True)
        status, headers, body = server.request("GET", "/hello.txt", {"Accept-Encoding": "gzip"})

        assert status == 200
        assert headers["Content-Encoding"] == "gzip"
        assert headers["Vary"] == "Accept-Encoding"
        assert gzip.decompress(body) == (site / "hello.txt").read_bytes()

    def test_gzip_not_requested(self, run_server, site):
        server = run_server(gzip=True)
        status, headers, body = server.request("GET", "/hello.txt", {"Accept-Encoding": "identity"})

        assert headers.get("Content-Encoding") is None
        assert body == (site / "hello.txt").read_bytes()

    def test_cors(self, run_server):
        server = run_server(cors=True)

        _, headers, _ = server.request("GET", "/hello.txt")
        assert headers["Access-Control-Allow-Origin"] == "*"
        assert headers["Access-Control-Allow-Methods"] == "GET"
        assert headers["Access-Control-Allow-Headers"] == "Accept"

        status, headers, _ = server.request("GET", "/missing")
        assert status == 404
        assert headers["Access-Control-Allow-Origin"] == "*"

    def test_basic_auth(self, run_server, htpasswd_file):
        server = run_server(auth=f"basic?realm=Staff&secrets={htpasswd_file}", cors=True)

        status, headers, _ = server.request("GET", "/hello.txt")
        assert status == 401
        assert headers["WWW-Authenticate"] == 'Basic realm="Staff"'
        assert headers.get("Access-Control-Allow-Origin") is None

        token = base64.b64encode(b"bob:builder").decode()
        status, _, _ = server.request("GET", "/hello.txt", {"Authorization": f"Basic {token}"})
        assert status == 200

        token = base64.b64encode(b"bob:wrong").decode()
        status, _, _ = server.request("GET", "/hello.txt", {"Authorization": f"Basic {token}"})
        assert status == 401

    def test_bcrypt_and_md5_crypt_entries(self, run_server, tmp_path):
        """Entries written by 'htpasswd -B' and by crypt(3) MD5 both log in."""
        path = tmp_path / "mixed.htpasswd"
        path.write_text(
            f"carol:{bcrypt.using(ident='2y', rounds=5).hash('secret')}\n"
            f"dave:{md5_crypt.hash('secret')}\n"
        )
        server = run_server(auth=f"basic?realm=x&secrets={path}")

        for user in (b"carol", b"dave"):
            token = base64.b64encode(user + b":secret").decode()
            status, _, _ = server.request("GET", "/hello.txt", {"Authorization": f"Basic {token}"})
            assert status == 200


class TestCommandLine:
    """Tests for the staticserve entry point."""

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out.strip() == "dev"

    def test_missing_root(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([str(tmp_path / "gone")])

        assert exc_info.value.code == 1
        assert capsys.readouterr().err.startswith("Error: root directory does not exist")

    def test_bad_auth_spec(self, site, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--auth", "basic", str(site)])

        assert exc_info.value.code == 1
        assert capsys.readouterr().err.strip() == "Error: no auth type specified"

    def test_bad_bind(self, site, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--bind", "nowhere", str(site)])

        assert exc_info.value.code == 1
        assert "missing port" in capsys.readouterr().err

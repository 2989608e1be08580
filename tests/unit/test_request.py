"""
Unit tests for HTTP request parsing.
"""

import base64

import pytest

from staticserve.http.request import HTTPRequest, RequestParser, HTTPParseError


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /docs/guide%20v2.html?lang=en&lang=fr HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept-Encoding: gzip, deflate\r\n"
        b"\r\n"
    )


class TestRequestParser:
    """Tests for RequestParser."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Request line parts are split and the path is decoded."""
        request = RequestParser().parse(sample_get_request, ("10.0.0.7", 4242))

        assert request.method == "GET"
        assert request.path == "/docs/guide v2.html"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("10.0.0.7", 4242)

    def test_url_keeps_raw_target(self, sample_get_request: bytes):
        """url is the target exactly as sent, for access logs."""
        request = RequestParser().parse(sample_get_request)
        assert request.url == "/docs/guide%20v2.html?lang=en&lang=fr"

    def test_parse_headers(self, sample_get_request: bytes):
        """Header names are lowercased; lookups are case-insensitive."""
        request = RequestParser().parse(sample_get_request)

        assert request.headers["host"] == "localhost:8080"
        assert request.get_header("USER-AGENT") == "pytest"
        assert request.get_header("X-Missing", "none") == "none"

    def test_parse_query_params(self, sample_get_request: bytes):
        """Repeated query parameters keep every value."""
        request = RequestParser().parse(sample_get_request)

        assert request.query_params["lang"] == ["en", "fr"]
        assert request.get_query("lang") == "en"
        assert request.get_query("page", "1") == "1"

    def test_duplicate_headers_are_joined(self):
        """Repeated headers combine into one comma-separated value."""
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"Accept-Encoding: br\r\n"
            b"Accept-Encoding: gzip\r\n"
            b"\r\n"
        )
        request = RequestParser().parse(raw)
        assert request.get_header("accept-encoding") == "br, gzip"

    def test_body_is_cut_to_content_length(self):
        """Extra bytes after the body are not part of the request."""
        raw = (
            b"POST /upload HTTP/1.1\r\n"
            b"Content-Length: 5\r\n"
            b"\r\n"
            b"helloEXTRA"
        )
        request = RequestParser().parse(raw)
        assert request.body == b"hello"

    def test_parse_invalid_method(self):
        """Unknown methods are rejected with 405."""
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(b"BREW /pot HTTP/1.1\r\n\r\n")
        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        """A garbled request line is a 400."""
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(b"GET\r\n\r\n")
        assert exc_info.value.status_code == 400

    def test_parse_missing_terminator(self):
        """Headers without the blank line are incomplete."""
        with pytest.raises(HTTPParseError):
            RequestParser().parse(b"GET / HTTP/1.1\r\nHost: x\r\n")

    def test_unsupported_version(self):
        """Only HTTP/1.0 and HTTP/1.1 are spoken."""
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(b"GET / HTTP/2.0\r\n\r\n")
        assert exc_info.value.status_code == 505

    @pytest.mark.parametrize("target", [
        "/../etc/passwd",
        "/docs/../../secret",
        "/a%2F..%2Fb",
    ])
    def test_dot_dot_segments_blocked(self, target: str):
        """Any '..' path segment, encoded or not, is a 400."""
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(f"GET {target} HTTP/1.1\r\n\r\n".encode())
        assert exc_info.value.status_code == 400

    def test_dots_inside_names_allowed(self):
        """'..' inside a file name is not traversal."""
        request = RequestParser().parse(b"GET /notes..txt HTTP/1.1\r\n\r\n")
        assert request.path == "/notes..txt"

    def test_parse_request_too_large(self):
        """Oversized requests are rejected with 413."""
        parser = RequestParser(max_request_size=64)
        raw = b"GET / HTTP/1.1\r\nX-Pad: " + b"a" * 100 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)
        assert exc_info.value.status_code == 413


class TestHTTPRequest:
    """Tests for HTTPRequest properties."""

    def test_keep_alive_defaults(self):
        """HTTP/1.1 keeps alive by default, HTTP/1.0 does not."""
        assert HTTPRequest(method="GET", path="/").is_keep_alive
        assert not HTTPRequest(method="GET", path="/", headers={"connection": "close"}).is_keep_alive
        assert not HTTPRequest(method="GET", path="/", version="HTTP/1.0").is_keep_alive
        assert HTTPRequest(
            method="GET", path="/", version="HTTP/1.0", headers={"connection": "keep-alive"}
        ).is_keep_alive

    def test_remote_addr(self):
        """remote_addr is ip:port, bracketed for IPv6."""
        assert HTTPRequest(method="GET", path="/", client_address=("127.0.0.1", 80)).remote_addr == "127.0.0.1:80"
        assert HTTPRequest(method="GET", path="/", client_address=("::1", 80)).remote_addr == "[::1]:80"

    def test_accepts_encoding(self, make_request):
        """Accept-Encoding is checked by substring."""
        assert make_request(headers={"Accept-Encoding": "deflate, gzip"}).accepts_encoding("gzip")
        assert not make_request(headers={"Accept-Encoding": "br"}).accepts_encoding("gzip")
        assert not make_request().accepts_encoding("gzip")


class TestBasicAuth:
    """Tests for HTTPRequest.basic_auth()."""

    def _request(self, value: str) -> HTTPRequest:
        return HTTPRequest(method="GET", path="/", headers={"authorization": value})

    def test_decodes_credentials(self):
        """user:password is split at the first colon."""
        token = base64.b64encode(b"alice:se:cret").decode()
        assert self._request(f"Basic {token}").basic_auth() == ("alice", "se:cret")

    def test_scheme_is_case_insensitive(self):
        token = base64.b64encode(b"bob:builder").decode()
        assert self._request(f"basic {token}").basic_auth() == ("bob", "builder")

    def test_missing_header(self):
        assert HTTPRequest(method="GET", path="/").basic_auth() is None

    @pytest.mark.parametrize("value", [
        "Bearer abc.def",
        "Basic !!!not-base64!!!",
        "Basic " + base64.b64encode(b"no-colon").decode(),
    ])
    def test_malformed_values(self, value: str):
        """Other schemes and undecodable tokens yield None."""
        assert self._request(value).basic_auth() is None

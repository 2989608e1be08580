"""
Unit tests for access logging middleware.
"""

import json
import logging
import time

import pytest

from staticserve.http.response import ResponseRecorder, not_found
from staticserve.middleware.logging import LoggingMiddleware, RequestLog


ACCESS_LOGGER = "staticserve.access"


def access_records(caplog):
    return [r for r in caplog.records if r.name == ACCESS_LOGGER]


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    def test_one_line_per_request(self, caplog, make_request):
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        handler = LoggingMiddleware().wrap(lambda w, r: w.write(b"hello"))
        request = make_request(path="/a b.txt", target="/a%20b.txt?x=1")
        handler(ResponseRecorder(), request)

        records = access_records(caplog)
        assert len(records) == 1
        message = records[0].getMessage()
        assert message.startswith("GET /a%20b.txt?x=1 from 127.0.0.1:50000 took ")
        assert "(200, 5 bytes)" in message

    def test_duration_covers_handler(self, caplog, make_request):
        """Logged duration is at least the time the handler took."""
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        def slow(writer, request):
            time.sleep(0.05)
            writer.write(b"done")

        LoggingMiddleware().wrap(slow)(ResponseRecorder(), make_request())

        entry = access_records(caplog)[0].request_log
        assert isinstance(entry, RequestLog)
        assert entry.duration_ms >= 50

    def test_records_error_status(self, caplog, make_request):
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        LoggingMiddleware().wrap(lambda w, r: not_found(w))(ResponseRecorder(), make_request())

        entry = access_records(caplog)[0].request_log
        assert entry.status == 404

    def test_response_unchanged(self, make_request):
        """Logging adds no headers and passes the body through."""
        def handler(writer, request):
            writer.headers["Content-Type"] = "text/plain"
            writer.write(b"payload")

        recorder = ResponseRecorder()
        LoggingMiddleware().wrap(handler)(recorder, make_request())

        assert dict(recorder.sent_headers) == {"Content-Type": "text/plain"}
        assert recorder.body == b"payload"

    def test_json_format(self, caplog, make_request):
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        handler = LoggingMiddleware(log_format="json").wrap(lambda w, r: w.write(b"{}"))
        handler(ResponseRecorder(), make_request(method="HEAD", path="/x"))

        data = json.loads(access_records(caplog)[0].getMessage())
        assert data["method"] == "HEAD"
        assert data["url"] == "/x"
        assert data["remote_addr"] == "127.0.0.1:50000"
        assert data["status"] == 200

    def test_failure_logged_and_reraised(self, caplog, make_request):
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        def broken(writer, request):
            raise RuntimeError("kaput")

        with pytest.raises(RuntimeError):
            LoggingMiddleware().wrap(broken)(ResponseRecorder(), make_request())

        records = access_records(caplog)
        assert len(records) == 1
        assert records[0].levelno == logging.ERROR
        assert "kaput" in records[0].getMessage()

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            LoggingMiddleware(log_format="xml")

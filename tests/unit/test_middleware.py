"""
Unit tests for the middleware pipeline and access logging.
"""

import json
import logging

import pytest

from staticserver.http.request import HTTPRequest
from staticserver.http.response import (
    HTTPResponse,
    ResponseBuilder,
    not_found,
    not_modified,
)
from staticserver.middleware import (
    LoggingMiddleware,
    Middleware,
    MiddlewarePipeline,
)


def make_request(path: str = "/a.txt", query: str = "") -> HTTPRequest:
    return HTTPRequest(
        method="GET",
        path=path,
        query=query,
        headers={"user-agent": "pytest"},
        client_address=("127.0.0.1", 5555),
    )


class Recorder(Middleware):
    def __init__(self, name: str, calls: list):
        self._name = name
        self.calls = calls

    def __call__(self, request, next):
        self.calls.append(f"{self._name}:before")
        response = next(request)
        self.calls.append(f"{self._name}:after")
        return response


class Blocker(Middleware):
    def __call__(self, request, next):
        return not_found()


class TestMiddlewarePipeline:
    """Tests for chaining middleware."""

    def test_order(self):
        """Test that the first middleware added is the outermost."""
        calls = []
        pipeline = MiddlewarePipeline().add(Recorder("a", calls)).add(Recorder("b", calls))

        def handler(request):
            calls.append("handler")
            return HTTPResponse()

        pipeline.wrap(handler)(make_request())

        assert calls == ["a:before", "b:before", "handler", "b:after", "a:after"]

    def test_short_circuit(self):
        """Test that middleware can answer without calling next."""
        blocker = Blocker()
        handler_called = []

        wrapped = MiddlewarePipeline().add(blocker).wrap(
            lambda request: handler_called.append(True) or HTTPResponse()
        )

        assert wrapped(make_request()).status == 404
        assert handler_called == []

    def test_len_and_iter(self):
        """Test the container helpers."""
        first = LoggingMiddleware()
        pipeline = MiddlewarePipeline().add(first)

        assert len(pipeline) == 1
        assert list(pipeline) == [first]


class TestLoggingMiddleware:
    """Tests for access logging."""

    def test_text_line(self, caplog):
        """Test the text format and request ID header."""
        middleware = LoggingMiddleware()

        with caplog.at_level(logging.INFO, logger="staticserver.access"):
            response = middleware(
                make_request(query="v=1"),
                lambda request: ResponseBuilder().text("hello").build(),
            )

        line = caplog.records[-1].getMessage()
        assert line.startswith("127.0.0.1 - - [")
        assert '"GET /a.txt?v=1" 200 5 ' in line
        assert len(response.headers["X-Request-ID"]) == 8

    def test_json_line(self, caplog):
        """Test the JSON format."""
        middleware = LoggingMiddleware(log_format="json")

        with caplog.at_level(logging.INFO, logger="staticserver.access"):
            response = middleware(make_request(), lambda request: not_found())

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["status_code"] == 404
        assert entry["content_length"] == 9
        assert entry["user_agent"] == "pytest"
        assert entry["request_id"] == response.headers["X-Request-ID"]

    def test_not_modified_has_no_request_id(self, caplog):
        """Test that a 304 is logged but gets no extra header."""
        middleware = LoggingMiddleware()

        with caplog.at_level(logging.INFO, logger="staticserver.access"):
            response = middleware(
                make_request(), lambda request: not_modified({"ETag": "abc"})
            )

        assert response.headers == {"ETag": "abc"}
        assert '" 304 ' in caplog.records[-1].getMessage()

    def test_streamed_length_is_dash(self, caplog):
        """Test that streamed bodies are logged without a size."""
        middleware = LoggingMiddleware()

        with caplog.at_level(logging.INFO, logger="staticserver.access"):
            middleware(make_request(), lambda request: HTTPResponse(stream=iter([b"x"])))

        assert '" 200 - ' in caplog.records[-1].getMessage()

    def test_skip_paths(self, caplog):
        """Test that skipped paths are not logged."""
        middleware = LoggingMiddleware(skip_paths=["/favicon.ico"])

        with caplog.at_level(logging.INFO, logger="staticserver.access"):
            middleware(make_request("/favicon.ico"), lambda request: not_found())

        assert caplog.records == []

    def test_errors_logged_and_raised(self, caplog):
        """Test that handler exceptions propagate after being logged."""
        def broken(request):
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="staticserver.access"):
            with pytest.raises(RuntimeError):
                LoggingMiddleware()(make_request(), broken)

        assert "boom" in caplog.records[-1].getMessage()

    def test_unknown_format(self):
        """Test that the format is checked up front."""
        with pytest.raises(ValueError):
            LoggingMiddleware(log_format="xml")

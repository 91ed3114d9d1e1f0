"""
Unit tests for HTTP response building.
"""

from datetime import datetime, timezone

import pytest

from staticserver.http.response import (
    HTTPResponse,
    ResponseBuilder,
    error_response,
    format_http_date,
    forbidden,
    internal_error,
    not_found,
    not_modified,
)
from staticserver.http.status_codes import HTTPStatus


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        """Test status line generation."""
        assert HTTPResponse(status=HTTPStatus.OK).status_line == "HTTP/1.1 200 OK"
        assert HTTPResponse(status=HTTPStatus.NOT_FOUND).status_line == "HTTP/1.1 404 Not Found"
        assert (HTTPResponse(status=HTTPStatus.NOT_MODIFIED, version="HTTP/1.0").status_line
                == "HTTP/1.0 304 Not Modified")

    def test_to_bytes_includes_headers(self):
        """Test that to_bytes includes all headers."""
        response = HTTPResponse(headers={"X-Custom": "value"}, body=b"test")

        result = response.to_bytes()

        assert result.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"X-Custom: value\r\n" in result
        assert b"Content-Length: 4\r\n" in result
        assert b"Date: " in result
        assert b"Server: staticserver/1.0\r\n" in result
        assert result.endswith(b"\r\n\r\ntest")

    def test_not_modified_has_no_body(self):
        """Test that a 304 never carries a body or a length."""
        response = HTTPResponse(status=HTTPStatus.NOT_MODIFIED, body=b"ignored")

        result = response.to_bytes()

        assert result.endswith(b"\r\n\r\n")
        assert b"Content-Length" not in result

    def test_streaming_response(self):
        """Test that streamed responses have no length and no one-shot form."""
        response = HTTPResponse(stream=iter([b"a", b"b"]))

        assert response.is_streaming
        assert response.content_length is None
        assert b"Content-Length" not in response.head_bytes()
        with pytest.raises(ValueError):
            response.to_bytes()

    def test_close_stream(self):
        """Test that close_stream closes the body iterator."""
        class Source:
            closed = False

            def __iter__(self):
                return iter([b"x"])

            def close(self):
                self.closed = True

        source = Source()
        HTTPResponse(stream=source).close_stream()

        assert source.closed

    def test_set_header_chaining(self):
        """Test method chaining for headers."""
        response = (HTTPResponse()
            .set_header("X-One", "1")
            .set_header("X-Two", "2"))

        assert response.headers["X-One"] == "1"
        assert response.headers["X-Two"] == "2"


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_status(self):
        """Test setting status code."""
        response = ResponseBuilder().status(HTTPStatus.FORBIDDEN).build()
        assert response.status == HTTPStatus.FORBIDDEN

    def test_html_body(self):
        """Test HTML body."""
        response = ResponseBuilder().html("<p>café</p>").build()

        assert response.headers["Content-Type"] == "text/html; charset=utf-8"
        assert response.body == "<p>café</p>".encode("utf-8")

    def test_stream_replaces_body(self):
        """Test that stream() discards a previously set body."""
        response = ResponseBuilder().body(b"old").stream(iter([b"new"])).build()

        assert response.body == b""
        assert response.is_streaming


class TestConvenienceFunctions:
    """Tests for the error response helpers."""

    def test_not_found_body(self):
        """Test the 404 body and type."""
        response = not_found()

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"NOT Found"
        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"

    def test_forbidden(self):
        """Test the 403 helper."""
        assert forbidden().status == HTTPStatus.FORBIDDEN

    def test_internal_error(self):
        """Test the 500 helper."""
        assert internal_error().status == HTTPStatus.INTERNAL_SERVER_ERROR

    def test_not_modified_keeps_validators(self):
        """Test that 304 carries the validator headers it was given."""
        response = not_modified({"ETag": "abc", "Cache-Control": "no-cache"})

        assert response.status == HTTPStatus.NOT_MODIFIED
        assert response.headers["ETag"] == "abc"
        assert response.body == b""

    def test_error_response_default_message(self):
        """Test that the reason phrase is the default body."""
        response = error_response(HTTPStatus.SERVICE_UNAVAILABLE)

        assert response.status == 503
        assert response.body == b"Service Unavailable"


class TestFormatHttpDate:
    """Tests for HTTP-date formatting."""

    def test_epoch(self):
        """Test the Unix epoch."""
        assert format_http_date(0) == "Thu, 01 Jan 1970 00:00:00 GMT"

    def test_datetime_converted_to_gmt(self):
        """Test that aware datetimes are converted to GMT."""
        value = datetime(2024, 2, 29, 13, 5, 9, tzinfo=timezone.utc)

        assert format_http_date(value) == "Thu, 29 Feb 2024 13:05:09 GMT"

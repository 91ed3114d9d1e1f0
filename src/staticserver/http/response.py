"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses. A response body is one of two things:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       RESPONSE BODY KINDS                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   BUFFERED  (body: bytes)                                            │
    │     404 text, 500 text, directory listings                          │
    │     → Content-Length known up front, sent in one sendall()          │
    │                                                                      │
    │   STREAMED  (stream: iterator of byte chunks)                       │
    │     file contents, optionally gzip/deflate compressed               │
    │     → length unknown (compression!), so the connection frames it    │
    │       with Transfer-Encoding: chunked, or closes at the end for     │
    │       HTTP/1.0 clients                                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A streamed response owns its iterator. Whoever sends it must call
close_stream() when done or when the client goes away, so the underlying
file handle is released.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Iterator, Union

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "staticserver/1.0"


@dataclass
class HTTPResponse:
    """
    An HTTP response waiting to be sent.

    Attributes:
        status:  Status code.
        headers: Response headers (case-sensitive names, as sent).
        body:    Buffered body; ignored when stream is set.
        stream:  Iterator of body chunks for streamed responses.
        version: HTTP version for the status line.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: Optional[Iterator[bytes]] = field(default=None, repr=False)
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 304 Not Modified"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def is_streaming(self) -> bool:
        return self.stream is not None

    @property
    def content_length(self) -> Optional[int]:
        """Body size in bytes, or None when it is only known after streaming."""
        if self.is_streaming:
            return None
        return len(self.body)

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def close_stream(self) -> None:
        """
        Release whatever the body iterator holds (usually an open file).

        Safe to call more than once and on buffered responses.
        """
        if self.stream is not None:
            close = getattr(self.stream, "close", None)
            if close is not None:
                close()

    def head_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the status line and headers, including the blank line.

        Adds Date and Server when missing. Content-Length is added for
        buffered bodies only; streamed bodies are framed by the caller.
        """
        response_headers = dict(self.headers)

        if not self.is_streaming and self.status.allows_body:
            response_headers.setdefault("Content-Length", str(len(self.body)))

        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("latin-1", errors="replace") + b"\r\n"

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize a buffered response, headers and body.

            HTTP/1.1 404 Not Found\\r\\n
            Content-Type: text/plain; charset=utf-8\\r\\n
            Content-Length: 9\\r\\n
            Date: ...\\r\\n
            Server: staticserver/1.0\\r\\n
            \\r\\n
            NOT Found

        Raises:
            ValueError: For streamed responses; use Connection.send_stream.
        """
        if self.is_streaming:
            raise ValueError("Streamed responses cannot be serialized in one piece")

        body = self.body if self.status.allows_body else b""
        return self.head_bytes(server_name) + body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type("text/css; charset=utf-8")
            .header("Cache-Control", "no-cache")
            .stream(chunks)
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._stream: Optional[Iterator[bytes]] = None

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        """Add several headers at once (later values win)."""
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set a buffered body; strings are encoded as UTF-8."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        self._stream = None
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._headers["Content-Type"] = content_type
        return self.body(text)

    def html(self, html: str) -> "ResponseBuilder":
        return self.text(html, "text/html; charset=utf-8")

    def stream(self, chunks: Iterator[bytes]) -> "ResponseBuilder":
        """
        Use an iterator of byte chunks as the body.

        The iterator is sent lazily, so large files are never held in
        memory. If it has a close() method it will be called once the
        response has been sent or abandoned.
        """
        self._stream = chunks
        self._body = b""
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
            stream=self._stream,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_http_date(value: Union[datetime, float, int]) -> str:
    """
    Format a datetime or POSIX timestamp as an IMF-fixdate (RFC 7231).

        >>> format_http_date(0)
        'Thu, 01 Jan 1970 00:00:00 GMT'

    HTTP dates are always GMT; naive datetimes are assumed to be UTC.
    """
    if isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif value.tzinfo is None:
        dt = value.replace(tzinfo=timezone.utc)
    else:
        dt = value.astimezone(timezone.utc)

    return (
        f"{_DAYS[dt.weekday()]}, "
        f"{dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# Error responses are plain text: the server's clients are browsers and
# curl, and "NOT Found" is the body people expect from this tool.
#
# =============================================================================

def not_found(message: str = "NOT Found") -> HTTPResponse:
    """404 with a plain-text body."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).text(message).build()


def forbidden(message: str = "Forbidden") -> HTTPResponse:
    """403 with a plain-text body."""
    return ResponseBuilder().status(HTTPStatus.FORBIDDEN).text(message).build()


def not_modified(headers: Optional[Dict[str, str]] = None) -> HTTPResponse:
    """304 carrying only the given validator headers and no body."""
    return ResponseBuilder().status(HTTPStatus.NOT_MODIFIED).headers(headers or {}).build()


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500 with a plain-text body. Keep the message generic."""
    return ResponseBuilder().status(HTTPStatus.INTERNAL_SERVER_ERROR).text(message).build()


def error_response(status: HTTPStatus, message: Optional[str] = None) -> HTTPResponse:
    """Plain-text response for an arbitrary error status."""
    status = HTTPStatus(status)
    return ResponseBuilder().status(status).text(message or status.phrase).build()

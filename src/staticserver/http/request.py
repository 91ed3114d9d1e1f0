"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes read by a Connection into an HTTPRequest.

A static server only cares about a handful of things in a request:

    GET /docs/read%20me.txt?download=1 HTTP/1.1\r\n
    ─┬─ ──────────┬────────── ───┬──── ────┬───
     │            │              │         └── version: keep-alive default
     │            │              └── query: discarded for file lookup
     │            └── path: percent-decoded exactly once
     └── method: any token, all handled the same way

    Accept-Encoding: gzip, deflate\r\n     ← compression negotiation
    If-None-Match: 3q2+7w==\r\n            ← ETag revalidation
    If-Modified-Since: Tue, ...\r\n        ← Last-Modified revalidation

=============================================================================
WHY DECODE EXACTLY ONCE?
=============================================================================

"/a%2520b" decodes to "/a%20b". Decoding again would give "/a b", which
is a different file. The parser keeps both the raw path (as sent) and the
decoded path, and nothing downstream ever calls unquote() again.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import urlsplit, unquote_to_bytes
import re


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the status code the server should answer with:

        400 Bad Request                 malformed syntax, undecodable path
        413 Payload Too Large           request exceeds max_request_size
        505 HTTP Version Not Supported  anything but HTTP/1.0 and HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         Request method token (not interpreted).
        path:           URL path, percent-decoded once, query removed.
        raw_path:       URL path exactly as it appeared on the wire.
        version:        "HTTP/1.1" or "HTTP/1.0".
        query:          Raw query string, kept for logging only.
        headers:        Header dict with lowercase names.
        body:           Request body (read to keep the connection in sync).
        client_address: (ip, port) of the peer.
    """

    method: str
    path: str
    raw_path: str = ""
    version: str = "HTTP/1.1"
    query: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple[str, int] = ("", 0)

    def __post_init__(self):
        if not self.raw_path:
            self.raw_path = self.path

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def accept_encoding(self) -> str:
        return self.headers.get("accept-encoding", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client expects the connection to stay open.

        HTTP/1.1 keeps alive unless "Connection: close" is sent;
        HTTP/1.0 closes unless "Connection: keep-alive" is sent.
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    Unlike an API server, a file server does not restrict methods: any
    RFC 7230 token is accepted and routed the same way. The only path
    checks done here are the ones that would make the path unusable as a
    filesystem name (invalid UTF-8 escapes, NUL bytes). Traversal checks
    belong to the router, which knows the root directory.
    """

    # method token: tchar from RFC 7230 section 3.2.6
    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+.^_`|~0-9A-Za-z-]+) ([^ ]+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data.

        Args:
            data: Complete request bytes (headers plus any body).
            client_address: Peer (ip, port), kept for the access log.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # ISO-8859-1 maps every byte, so odd header bytes never fail here.
        header_section = data[:header_end].decode("iso-8859-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, raw_path, path, query, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0 or len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            raw_path=raw_path,
            version=version,
            query=query,
            headers=headers,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str, str, str]:
        """
        Split "METHOD SP REQUEST-URI SP VERSION" into its parts.

        Returns:
            (method, raw_path, decoded_path, query, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        if uri.startswith("/"):
            # origin-form: "//a/b" is a path, urlsplit would read "a" as a host
            raw_path, _, query = uri.partition("#")[0].partition("?")
        else:
            # absolute-form, "GET http://host/x HTTP/1.1"
            parts = urlsplit(uri)
            raw_path, query = parts.path or "/", parts.query

        try:
            # latin-1 round-trips the wire bytes; the decoded path is UTF-8
            path = unquote_to_bytes(raw_path.encode("iso-8859-1")).decode("utf-8")
        except UnicodeDecodeError:
            raise HTTPParseError(f"Invalid percent-encoding in path: {raw_path}")

        if "\x00" in path:
            raise HTTPParseError("Invalid path: contains NUL byte")

        return method, raw_path, path, query, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", " as RFC 7230 allows, and
        obsolete line folding (continuation lines starting with
        whitespace) is appended to the previous header.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip garbage lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

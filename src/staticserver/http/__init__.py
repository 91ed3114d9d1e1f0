"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that knows about HTTP message syntax but nothing about files:

    request.py       bytes → HTTPRequest
    response.py      HTTPResponse → bytes (buffered or streamed)
    status_codes.py  HTTPStatus enum with reason phrases
    mime_types.py    file extension → Content-Type
    encoding.py      Accept-Encoding → gzip / deflate compressor

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    format_http_date,
    not_found,
    forbidden,
    not_modified,
    internal_error,
    error_response,
)
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type
from .encoding import ContentEncoding, CompressedStream, EncodingNegotiator

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "HTTPResponse",
    "ResponseBuilder",
    "format_http_date",
    "not_found",
    "forbidden",
    "not_modified",
    "internal_error",
    "error_response",
    "HTTPStatus",
    "get_mime_type",
    "get_content_type",
    "ContentEncoding",
    "CompressedStream",
    "EncodingNegotiator",
]

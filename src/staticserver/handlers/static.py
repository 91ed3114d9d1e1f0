"""
=============================================================================
FILE STREAMING
=============================================================================

Answers a request for a regular file.

=============================================================================
FLOW
=============================================================================

    FileStreamer.serve(context, stat)
        │
        ├── CacheValidator.is_fresh()  ── yes ──► 304, validator headers only
        │
        ├── Content-Type from extension  (text/plain fallback, utf-8 charset)
        │
        ├── EncodingNegotiator.negotiate(Accept-Encoding)
        │       gzip / deflate ──► Content-Encoding + Vary headers
        │
        ├── open the file NOW  ── fails ──► 404 / 403 / 500
        │
        └── 200 with a streamed body:
                FileStream ──(optional CompressedStream)──► Connection

The file is opened before the response is returned so that "disappeared
since stat" and "permission denied" become proper status codes. Once the
headers are on the wire there is no way to report an error any more.

=============================================================================
FILE HANDLE OWNERSHIP
=============================================================================

FileStream owns the open file. Connection.send_stream() closes it in a
finally block, so the handle is released when:

    - the whole file has been sent
    - the client disconnects halfway (sendall raises)
    - reading fails halfway (disk error)

=============================================================================
"""

import logging
import os
from typing import BinaryIO, Iterator, Optional

from ..http.encoding import EncodingNegotiator
from ..http.mime_types import get_content_type
from ..http.response import (
    HTTPResponse, ResponseBuilder,
    not_found, forbidden, not_modified, internal_error,
)
from ..http.status_codes import HTTPStatus
from .cache import CacheValidator
from .context import RequestContext


logger = logging.getLogger(__name__)


class FileStream:
    """
    Iterator over a file's bytes in fixed-size chunks.

    Owns the file handle. close() is idempotent, and iteration closes the
    file on its own once the end is reached.
    """

    def __init__(self, path: str, chunk_size: int = 64 * 1024):
        self.path = path
        self.chunk_size = chunk_size
        self._file: Optional[BinaryIO] = open(path, "rb")

    @property
    def closed(self) -> bool:
        return self._file is None

    def __iter__(self) -> Iterator[bytes]:
        try:
            while self._file is not None:
                chunk = self._file.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class FileStreamer:
    """
    Serves regular files with cache validation and compression.

    Args:
        cache_validator: Strategy used for 304 decisions.
        negotiator: Chooses gzip/deflate from Accept-Encoding.
        chunk_size: Read size for the streamed body.
    """

    def __init__(
        self,
        cache_validator: CacheValidator,
        negotiator: EncodingNegotiator,
        chunk_size: int = 64 * 1024,
    ):
        self.cache_validator = cache_validator
        self.negotiator = negotiator
        self.chunk_size = chunk_size

    def serve(self, context: RequestContext, stat_result: os.stat_result) -> HTTPResponse:
        path = context.filesystem_path

        if self.cache_validator.is_fresh(context, stat_result):
            logger.debug(f"Not modified: {context.decoded_path}")
            return not_modified(context.response_headers)

        headers = context.response_headers
        headers["Content-Type"] = get_content_type(path)

        encoding = self.negotiator.negotiate(context.request_headers.get("accept-encoding"))

        try:
            stream = FileStream(path, self.chunk_size)
        except FileNotFoundError:
            return not_found()
        except PermissionError:
            logger.warning(f"Permission denied: {path}")
            return forbidden("Permission denied")
        except OSError as e:
            logger.error(f"Error opening {path}: {e}")
            return internal_error("Failed to read file")

        body = stream
        if encoding is not None:
            headers["Content-Encoding"] = encoding.value
            headers["Vary"] = "Accept-Encoding"
            body = self.negotiator.wrap(stream, encoding)

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .headers(headers)
            .stream(body)
            .build())

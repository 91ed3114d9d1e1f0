"""
=============================================================================
CONTENT-ENCODING NEGOTIATION
=============================================================================

Picks a compression scheme for a file response from the client's
Accept-Encoding header and compresses the file stream on the fly.

=============================================================================
NEGOTIATION RULE
=============================================================================

The header is split on ", " and scanned in the order the CLIENT listed
the tokens. The first supported token wins:

    Accept-Encoding: deflate, gzip     → deflate
    Accept-Encoding: gzip, deflate, br → gzip
    Accept-Encoding: br                → identity (no compression)
    (no header)                        → identity

Quality values are not interpreted: "gzip;q=0" is simply an unknown token
and is skipped.

=============================================================================
STREAMING COMPRESSION
=============================================================================

    file chunks ──► compressobj.compress() ──► non-empty output chunks
                                  │
                    end of file ──┴──► compressobj.flush() ──► trailer

zlib.compressobj keeps the compression state between chunks, so memory use
is bounded by the chunk size regardless of file size. The wbits value picks
the container format:

    gzip     wbits=31  (16 + 15) → gzip header + deflate + CRC32 trailer
    deflate  wbits=15            → zlib header + deflate + Adler-32

"deflate" in HTTP means the zlib-wrapped format (RFC 9110 8.4.1.2).

=============================================================================
"""

import logging
import zlib
from enum import Enum
from typing import Iterable, Iterator, Optional


logger = logging.getLogger(__name__)


class ContentEncoding(Enum):
    """Supported response encodings; the value is the header token."""

    GZIP = "gzip"
    DEFLATE = "deflate"

    @property
    def wbits(self) -> int:
        return 31 if self is ContentEncoding.GZIP else 15

    def compressor(self, level: int = 6):
        """A fresh zlib compressor for one response."""
        return zlib.compressobj(level, zlib.DEFLATED, self.wbits)


class CompressedStream:
    """
    Iterator that compresses another chunk iterator lazily.

    Closing it closes the source, so a compressed file response releases its
    file handle exactly like an uncompressed one.
    """

    def __init__(self, source: Iterable[bytes], encoding: ContentEncoding, level: int = 6):
        self.source = source
        self.encoding = encoding
        self._compressor = encoding.compressor(level)

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self.source:
            data = self._compressor.compress(chunk)
            if data:
                yield data
        tail = self._compressor.flush()
        if tail:
            yield tail

    def close(self) -> None:
        close = getattr(self.source, "close", None)
        if close is not None:
            close()


class EncodingNegotiator:
    """
    Chooses a ContentEncoding for a request.

    Args:
        enabled: When False, negotiate() always returns None. Used for
                 --no-compression.
        level:   zlib compression level for the streams it creates.
    """

    SEPARATOR = ", "

    def __init__(self, enabled: bool = True, level: int = 6):
        self.enabled = enabled
        self.level = level
        self._supported = {encoding.value: encoding for encoding in ContentEncoding}

    def negotiate(self, accept_encoding: Optional[str]) -> Optional[ContentEncoding]:
        """
        Return the first supported encoding in client order, or None.

        Tokens are compared exactly as sent, so "GZIP" or "gzip;q=1" do not
        match.
        """
        if not self.enabled or not accept_encoding:
            return None

        for token in accept_encoding.split(self.SEPARATOR):
            encoding = self._supported.get(token)
            if encoding is not None:
                return encoding

        return None

    def wrap(self, source: Iterable[bytes], encoding: ContentEncoding) -> CompressedStream:
        logger.debug(f"Compressing response with {encoding.value}")
        return CompressedStream(source, encoding, self.level)

"""
=============================================================================
CACHE VALIDATION
=============================================================================

Decides whether a file request can be answered with 304 Not Modified.

Every file response carries "Cache-Control: no-cache": the browser may
keep a copy but must ask before reusing it. It asks by echoing the
validator it was given:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  First request                                                       │
    │    GET /app.js                                                       │
    │    ◄── 200  ETag: 1B2M2Y8AsgTpgAmY7PhCfg==   Cache-Control: no-cache │
    │                                                                      │
    │  Revalidation                                                        │
    │    GET /app.js   If-None-Match: 1B2M2Y8AsgTpgAmY7PhCfg==             │
    │    ◄── 304 (no body)        if the file still hashes the same        │
    │    ◄── 200 + new ETag       otherwise                                │
    └─────────────────────────────────────────────────────────────────────┘

Two interchangeable validators, chosen once via ServerConfig.cache_strategy:

    ETagValidator          base64(md5(file bytes)), compared to If-None-Match
                           exact, but reads the whole file on every request
    LastModifiedValidator  mtime as HTTP-date, compared to If-Modified-Since
                           cheap, but one-second resolution

Both compare with plain string equality. There is no weak-ETag or
date-range logic.

=============================================================================
"""

import base64
import hashlib
import logging
import os
from abc import ABC, abstractmethod

from ..config import CacheStrategy
from ..http.response import format_http_date
from .context import RequestContext


logger = logging.getLogger(__name__)


class CacheValidator(ABC):
    """
    Strategy interface for conditional requests.

    Implementations must be stateless: a single instance serves every
    worker thread.
    """

    CACHE_CONTROL = "no-cache"

    def is_fresh(self, context: RequestContext, stat_result: os.stat_result) -> bool:
        """
        Set validator headers on the context and report whether the
        client's cached copy is still current.
        """
        context.response_headers["Cache-Control"] = self.CACHE_CONTROL
        return self._validate(context, stat_result)

    @abstractmethod
    def _validate(self, context: RequestContext, stat_result: os.stat_result) -> bool:
        ...

    @property
    def name(self) -> str:
        return self.__class__.__name__


class ETagValidator(CacheValidator):
    """
    Content-hash validator.

    The digest is recomputed on every request. Reading happens in chunks,
    so hashing a large file does not load it into memory.
    """

    def __init__(self, chunk_size: int = 64 * 1024):
        self.chunk_size = chunk_size

    def compute_etag(self, path: str) -> str:
        """base64-encoded MD5 of the file's bytes."""
        digest = hashlib.md5(usedforsecurity=False)
        with open(path, "rb") as f:
            while True:
                chunk = f.read(self.chunk_size)
                if not chunk:
                    break
                digest.update(chunk)
        return base64.b64encode(digest.digest()).decode("ascii")

    def _validate(self, context: RequestContext, stat_result: os.stat_result) -> bool:
        try:
            etag = self.compute_etag(context.filesystem_path)
        except OSError as e:
            # Unreadable: serve normally and let the streamer report the error.
            logger.debug(f"Could not hash {context.filesystem_path}: {e}")
            return False

        context.response_headers["ETag"] = etag
        return context.request_headers.get("if-none-match") == etag


class LastModifiedValidator(CacheValidator):
    """Modification-time validator."""

    def _validate(self, context: RequestContext, stat_result: os.stat_result) -> bool:
        last_modified = format_http_date(stat_result.st_mtime)
        context.response_headers["Last-Modified"] = last_modified
        return context.request_headers.get("if-modified-since") == last_modified


def create_cache_validator(strategy: CacheStrategy, chunk_size: int = 64 * 1024) -> CacheValidator:
    """Build the validator for a configured strategy."""
    if strategy is CacheStrategy.ETAG:
        return ETagValidator(chunk_size=chunk_size)
    if strategy is CacheStrategy.LAST_MODIFIED:
        return LastModifiedValidator()
    raise ValueError(f"Unknown cache strategy: {strategy!r}")

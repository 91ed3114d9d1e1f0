"""
=============================================================================
HANDLERS MODULE
=============================================================================

Everything that turns a parsed request into a response.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   HTTPRequest ──► RequestRouter ──┬──► DirectoryRenderer  (HTML)    │
    │                                   │        uses TemplateEngine      │
    │                                   │                                 │
    │                                   └──► FileStreamer       (bytes)   │
    │                                            uses CacheValidator      │
    │                                            uses EncodingNegotiator  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

All of these are built once at startup and shared by every worker thread.
Per-request state lives in a RequestContext, never on the handlers.

=============================================================================
"""

from .cache import (
    CacheValidator,
    ETagValidator,
    LastModifiedValidator,
    create_cache_validator,
)
from .context import RequestContext
from .directory import DirectoryEntry, DirectoryListingError, DirectoryRenderer
from .router import RequestRouter
from .static import FileStream, FileStreamer

__all__ = [
    "CacheValidator",
    "ETagValidator",
    "LastModifiedValidator",
    "create_cache_validator",
    "RequestContext",
    "DirectoryEntry",
    "DirectoryListingError",
    "DirectoryRenderer",
    "RequestRouter",
    "FileStream",
    "FileStreamer",
]

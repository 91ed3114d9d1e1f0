"""
=============================================================================
STATICSERVER
=============================================================================

A small HTTP/1.1 static file server built on raw sockets and a thread pool.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /            ──► HTML listing of the root directory             │
    │  GET /docs/       ──► HTML listing of root/docs                      │
    │  GET /docs/a.txt  ──► file bytes, streamed in chunks                 │
    │                       ETag or Last-Modified, Cache-Control: no-cache │
    │                       gzip / deflate when the client asks for it     │
    │  GET /missing     ──► 404 "NOT Found"                                │
    └─────────────────────────────────────────────────────────────────────┘

Quick start:

    from staticserver import ServerConfig, start

    start(ServerConfig(port=8000, root_directory="./public"))

or from a shell:

    hs -p 8000 -d ./public

=============================================================================
"""

__version__ = "1.0.0"

from .config import CacheStrategy, ServerConfig
from .server import StaticServer, start
from .template import TemplateEngine, TemplateRenderError

__all__ = [
    "CacheStrategy",
    "ServerConfig",
    "StaticServer",
    "start",
    "TemplateEngine",
    "TemplateRenderError",
    "__version__",
]

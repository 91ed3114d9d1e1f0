"""
=============================================================================
DIRECTORY LISTINGS
=============================================================================

Renders an HTML page linking every immediate entry of a directory.

    GET /docs           (root/docs is a directory)
        │
        ├── os.listdir(root/docs)        ["b.md", "a.txt", "img"]
        ├── links: /docs + name          /docs/b.md, /docs/a.txt, /docs/img
        ├── TemplateEngine.render(listing_template, files=[...], path="/docs")
        └── 200 text/html; charset=utf-8

Entries keep the order the filesystem returns them in. No sorting is
applied, and hidden files are listed like any other.

Errors here are server errors: the router already saw the directory, so a
failed listing (permissions changed, directory removed in between) or a
broken template becomes a 500 with no partial page.

=============================================================================
"""

import logging
import os
import posixpath
from typing import List, NamedTuple
from urllib.parse import quote

from ..http.response import HTTPResponse, ResponseBuilder, internal_error
from ..template import TemplateEngine, TemplateRenderError
from .context import RequestContext


logger = logging.getLogger(__name__)


class DirectoryListingError(Exception):
    """Raised when a directory cannot be enumerated."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot list {path}: {reason}")
        self.path = path
        self.reason = reason


class DirectoryEntry(NamedTuple):
    """One link on the listing page."""

    name: str
    url: str


class DirectoryRenderer:
    """
    Builds listing pages.

    Args:
        template: Listing template text, loaded once by the server.
        engine: TemplateEngine used to render it.
    """

    def __init__(self, template: str, engine: TemplateEngine = None):
        self.template = template
        self.engine = engine or TemplateEngine()

    def list_entries(self, directory: str, request_path: str) -> List[DirectoryEntry]:
        """
        Enumerate a directory into DirectoryEntry tuples.

        The link is the request path joined with the entry name, so
        "/docs" + "a.txt" gives "/docs/a.txt" and "/" + "a.txt" gives
        "/a.txt". It is percent-encoded for use in an href.

        Names that are not valid UTF-8 come back from os.listdir with
        surrogate escapes. The link is built from the original bytes, so it
        still names the file; the displayed name gets U+FFFD instead.

        Raises:
            DirectoryListingError: If the directory cannot be read.
        """
        try:
            names = os.listdir(directory)
        except OSError as e:
            raise DirectoryListingError(directory, e.strerror or str(e)) from e

        return [
            DirectoryEntry(
                name=name.encode("utf-8", "surrogateescape").decode("utf-8", "replace"),
                url=quote(os.fsencode(posixpath.join(request_path, name))),
            )
            for name in names
        ]

    def render(self, context: RequestContext) -> HTTPResponse:
        try:
            files = self.list_entries(context.filesystem_path, context.decoded_path)
            page = self.engine.render(
                self.template,
                {"files": files, "path": context.decoded_path},
                name="directory listing",
            )
        except DirectoryListingError as e:
            logger.error(str(e))
            return internal_error("Failed to list directory")
        except TemplateRenderError as e:
            logger.error(f"Directory listing for {context.decoded_path} failed: {e}")
            return internal_error("Failed to render directory listing")

        return (ResponseBuilder()
            .headers(context.response_headers)
            .html(page)
            .build())

"""
=============================================================================
REQUEST ROUTING
=============================================================================

Maps a URL path onto the served directory and picks who answers:

    decoded path ──► root + path ──► normpath ──► inside root?
                                                     │
                         no ─────────────────────────┼──────► 403
                                                     │ yes
                                                  os.stat()
                                                     │
            missing / unreadable ────────────────────┼──────► 404 "NOT Found"
                                                     │
                   directory ──► DirectoryRenderer   │
                   regular file ──► FileStreamer     │
                   anything else (fifo, socket) ─────┴──────► 404

The method is not checked: every request is treated like a GET.

=============================================================================
PATH CONTAINMENT
=============================================================================

"/../etc/passwd" percent-decodes to a path that normalizes outside the
root. The joined path is normalized first and then compared against the
root, so ".." segments cannot climb out:

    root            /srv/site
    request         /docs/../../etc/passwd
    joined          /srv/site/docs/../../etc/passwd
    normalized      /etc/passwd              ──► not under /srv/site ──► 403

Symlinks inside the root are followed and not re-checked.

=============================================================================
"""

import logging
import os
import stat

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, forbidden, not_found
from .context import RequestContext
from .directory import DirectoryRenderer
from .static import FileStreamer


logger = logging.getLogger(__name__)


class RequestRouter:
    """
    Dispatches requests to the directory renderer or the file streamer.

    Args:
        root_directory: Directory being served.
        directory_renderer: Renders listings for directory paths.
        file_streamer: Serves regular files.
    """

    def __init__(
        self,
        root_directory: str,
        directory_renderer: DirectoryRenderer,
        file_streamer: FileStreamer,
    ):
        self.root_directory = os.path.abspath(root_directory)
        self.directory_renderer = directory_renderer
        self.file_streamer = file_streamer

    def resolve(self, decoded_path: str) -> str | None:
        """
        Join a decoded URL path onto the root.

        Returns:
            Normalized filesystem path, or None if it escapes the root.
        """
        candidate = os.path.normpath(
            os.path.join(self.root_directory, decoded_path.lstrip("/"))
        )
        if candidate != self.root_directory and not candidate.startswith(
            self.root_directory.rstrip(os.sep) + os.sep
        ):
            return None
        return candidate

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        filesystem_path = self.resolve(request.path)
        if filesystem_path is None:
            logger.warning(f"Blocked path traversal attempt: {request.raw_path}")
            return forbidden()

        try:
            stat_result = os.stat(filesystem_path)
        except (OSError, ValueError):
            return not_found()

        context = RequestContext.from_request(request, filesystem_path)

        if stat.S_ISDIR(stat_result.st_mode):
            return self.directory_renderer.render(context)
        if stat.S_ISREG(stat_result.st_mode):
            return self.file_streamer.serve(context, stat_result)

        logger.debug(f"Not a file or directory: {filesystem_path}")
        return not_found()

    __call__ = handle

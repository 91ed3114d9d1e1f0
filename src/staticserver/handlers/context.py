"""Per-request state shared by the router, renderer and streamer."""

from dataclasses import dataclass, field
from typing import Dict

from ..http.request import HTTPRequest


@dataclass
class RequestContext:
    """
    Everything one request needs while it is being answered.

    Created by RequestRouter when a request arrives and discarded once the
    response has been built. Never shared between requests.

    Attributes:
        raw_path:         URL path as sent by the client.
        decoded_path:     URL path after percent-decoding (once).
        filesystem_path:  decoded_path joined onto the root directory.
        request_headers:  Incoming headers, lowercase names.
        response_headers: Headers decided so far (validators, encoding),
                          copied into the final response.
    """

    raw_path: str
    decoded_path: str
    filesystem_path: str
    request_headers: Dict[str, str] = field(default_factory=dict)
    response_headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_request(cls, request: HTTPRequest, filesystem_path: str) -> "RequestContext":
        return cls(
            raw_path=request.raw_path,
            decoded_path=request.path,
            filesystem_path=filesystem_path,
            request_headers=request.headers,
        )

"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Callable, Generator, List

import pytest

from staticserver import ServerConfig, StaticServer
from staticserver.handlers import RequestContext


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request for a file."""
    return (
        b"GET /docs/read%20me.txt?download=1 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept-Encoding: gzip, deflate\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """
    A small served tree:

        a.txt          "hello"
        sub/
        sub/page.html
    """
    (tmp_path / "a.txt").write_bytes(b"hello")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "page.html").write_text("<p>hi</p>", encoding="utf-8")
    return tmp_path


@pytest.fixture
def config(site: Path) -> ServerConfig:
    """Test configuration serving the site fixture."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # let the OS pick a free port
        root_directory=str(site),
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def make_context():
    """
    Factory for RequestContext objects.

        make_context(site / "a.txt", "/a.txt", if_none_match="...")
    """
    def factory(path: Path, url_path: str = "/", **request_headers) -> RequestContext:
        return RequestContext(
            raw_path=url_path,
            decoded_path=url_path,
            filesystem_path=str(path),
            request_headers={k.replace("_", "-"): v for k, v in request_headers.items()},
        )
    return factory


class RunningServer:
    """StaticServer running in a background thread."""

    def __init__(self, server: StaticServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.start, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def start_server() -> Generator[Callable[[ServerConfig], RunningServer], None, None]:
    """Factory starting servers that are stopped at teardown."""
    started: List[RunningServer] = []

    def factory(config: ServerConfig) -> RunningServer:
        srv = RunningServer(StaticServer(config))
        srv.start()
        started.append(srv)
        return srv

    yield factory

    for srv in started:
        srv.stop()


@pytest.fixture
def running_server(config: ServerConfig, start_server) -> RunningServer:
    """A server on a free port serving the site fixture."""
    return start_server(config)

"""
=============================================================================
STATIC FILE SERVER
=============================================================================

Ties the pieces together: socket, thread pool, parser, middleware, router.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer (main thread)                                        │
    │       accept() ──► Connection ──► ThreadPool.submit()               │
    │                                        │  queue full ──► 503        │
    │                                        ▼                            │
    │   Worker thread: _process_connection(conn)                          │
    │       ┌──────────────────────────────────────────────────────────┐  │
    │       │ read_request ──► RequestParser ──► MiddlewarePipeline    │  │
    │       │                                      │                   │  │
    │       │                                      ▼                   │  │
    │       │                               RequestRouter              │  │
    │       │                                 ├─ DirectoryRenderer     │  │
    │       │                                 └─ FileStreamer          │  │
    │       │                                      │                   │  │
    │       │ send_response / send_stream ◄────────┘                   │  │
    │       │ keep-alive? loop : close                                 │  │
    │       └──────────────────────────────────────────────────────────┘  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Everything the workers share (router, renderer, streamer, validator,
negotiator, the listing template) is built in __init__ and never mutated
afterwards.

=============================================================================
RESPONSE FRAMING
=============================================================================

    buffered body         Content-Length, keep-alive allowed
    streamed, HTTP/1.1    Transfer-Encoding: chunked, keep-alive allowed
    streamed, HTTP/1.0    no length at all; the body ends when the
                          connection closes, so Connection: close

=============================================================================
"""

import logging
import socket
from pathlib import Path
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .handlers import (
    DirectoryRenderer,
    FileStreamer,
    RequestRouter,
    create_cache_validator,
)
from .http import (
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    HTTPParseError,
    RequestParser,
    EncodingNegotiator,
    error_response,
    internal_error,
)
from .middleware import LoggingMiddleware, MiddlewarePipeline
from .template import TemplateEngine


logger = logging.getLogger(__name__)


DEFAULT_TEMPLATE_PATH = Path(__file__).parent / "templates" / "directory.html"


def load_listing_template(path: Optional[str] = None) -> str:
    """Read the directory listing template, the bundled one by default."""
    template_path = Path(path) if path else DEFAULT_TEMPLATE_PATH
    return template_path.read_text(encoding="utf-8")


def lan_address() -> str:
    """
    Best guess at this machine's LAN IPv4 address.

    Connecting a UDP socket sends nothing; it only makes the kernel pick
    the outgoing interface, whose address getsockname() then reports.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(("10.255.255.255", 1))
            return probe.getsockname()[0]
    except OSError:
        pass

    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError:
        return "127.0.0.1"


class StaticServer:
    """
    HTTP/1.1 static file server.

        server = StaticServer(ServerConfig(port=8000, root_directory="./public"))
        server.start()          # blocks until Ctrl+C or shutdown()

    To run it in the background (tests do this):

        thread = threading.Thread(target=server.start, daemon=True)
        thread.start()
        server.wait_until_ready()
        host, port = server.address
        ...
        server.shutdown()

    Raises:
        ValueError: From ServerConfig.validate() on bad configuration.
        TemplateRenderError: If the listing template does not compile.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self.listing_template = load_listing_template(self.config.template_path)
        engine = TemplateEngine()
        # fail at startup, not on the first directory request
        engine.compile(self.listing_template, "directory listing")

        self.router = RequestRouter(
            root_directory=self.config.root_directory,
            directory_renderer=DirectoryRenderer(self.listing_template, engine),
            file_streamer=FileStreamer(
                cache_validator=create_cache_validator(
                    self.config.cache_strategy, self.config.chunk_size
                ),
                negotiator=EncodingNegotiator(enabled=self.config.compression),
                chunk_size=self.config.chunk_size,
            ),
        )

        self._middleware = MiddlewarePipeline()
        self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once listening on port 0."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self):
        """
        Serve until shutdown() is called or SIGINT/SIGTERM arrives.

        Raises:
            OSError: If the port cannot be bound.
        """
        self._setup_logging()
        self._handler = self._middleware.wrap(self.router.handle)
        self._running = True
        self._thread_pool.start()

        logger.info(
            f"Serving {self.config.root_directory} on {self.config.host}:{self.config.port}"
        )

        try:
            self._socket_server.start(self._handle_connection, on_ready=self._print_startup_banner)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop accepting connections; start() returns once workers finish."""
        self._socket_server.shutdown()

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.timeout)
        logger.info("Server stopped")

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("staticserver").setLevel(level)

    def _print_startup_banner(self):
        port = self.address[1]
        print()
        print(f"  Serving {self.config.root_directory}")
        print()
        print(f"    http://{lan_address()}:{port}")
        print(f"    http://127.0.0.1:{port}")
        print()
        print("  Press Ctrl+C to stop")
        print()

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to the pool (runs on the accept thread)."""
        submitted = self._thread_pool.submit(self._process_connection, args=(conn,))

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one client (runs on a worker thread).

            read ──► parse ──► handle ──► send ──► keep-alive? ──► read ...

        Any failure to read, parse or send ends the loop and closes the
        connection.
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except ValueError as e:
                    logger.warning(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, "Request too large")
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] Bad request: {e}")
                    self._send_error(conn, e.status_code, str(e))
                    break

                conn.state = ConnectionState.PROCESSING

                try:
                    response = self._handler(request)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Handler error: {e}")
                    response = internal_error()

                try:
                    keep_going = self._send(conn, request, response)
                finally:
                    # no-op once send_stream has drained it
                    response.close_stream()
                if not keep_going:
                    break

                conn.set_keep_alive()

    def _keeps_alive(self, request: HTTPRequest, response: HTTPResponse) -> bool:
        if not (self.config.keep_alive and request.is_keep_alive):
            return False
        if response.headers.get("Connection", "").lower() == "close":
            return False
        # HTTP/1.0 has no chunked encoding; the close marks the end of the body
        return not (response.is_streaming and request.version != "HTTP/1.1")

    def _send(self, conn: Connection, request: HTTPRequest, response: HTTPResponse) -> bool:
        """
        Write the response in the right framing.

        Returns:
            True if the connection can serve another request.
        """
        response.version = "HTTP/1.1" if request.version == "HTTP/1.1" else "HTTP/1.0"
        keep_alive = self._keeps_alive(request, response)

        if keep_alive:
            response.headers["Connection"] = "keep-alive"
            response.headers.setdefault(
                "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
            )
        else:
            response.headers["Connection"] = "close"

        if not response.is_streaming:
            sent = conn.send_response(response.to_bytes(self.config.server_name))
            return sent and keep_alive

        chunked = request.version == "HTTP/1.1"
        if chunked:
            response.headers["Transfer-Encoding"] = "chunked"

        sent = conn.send_stream(
            response.head_bytes(self.config.server_name),
            response.stream,
            chunked=chunked,
        )
        return sent and keep_alive

    def _send_error(self, conn: Connection, status: int, message: str):
        """Plain-text error for failures before a request reached the router."""
        response = error_response(HTTPStatus(status), message)
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))


def start(config: Optional[ServerConfig] = None):
    """
    Serve config.root_directory until interrupted.

    Raises:
        ValueError: If the configuration is invalid.
        OSError: If the port cannot be bound.
    """
    server = StaticServer(config or ServerConfig.from_env())
    server.start()
    return server

"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: reads complete requests out of the TCP
byte stream, writes responses back, and closes cleanly.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

recv() returns whatever bytes happen to have arrived. A request may come
in three pieces, or two pipelined requests may arrive in one. The
connection keeps a buffer and only hands out a request once the blank line
ending the headers (and any Content-Length body) is present. Leftover
bytes stay in the buffer for the next request on a keep-alive connection.

=============================================================================
STREAMED BODIES
=============================================================================

File bodies are written chunk by chunk with send_stream():

    HTTP/1.1 client                      HTTP/1.0 client
    ───────────────                      ───────────────
    Transfer-Encoding: chunked           Connection: close
    1a\\r\\n<26 bytes>\\r\\n                 <raw bytes>
    ...                                  ...
    0\\r\\n\\r\\n                            (connection closed = end)

sendall() blocks while the kernel send buffer is full, so a slow client
slows down how fast the file is read: nothing is queued in Python memory.
If the client disconnects, sendall() raises, the body iterator is closed
(releasing the file handle) and nothing more is written.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
              ▲                                                  │
              └──────────────────────────────────────────────────┘
    any state ──► CLOSING ──► CLOSED

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Iterable, Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short random id used to prefix log lines.
        state: Current ConnectionState.
        requests_handled: Requests read on this connection so far.
        bytes_sent: Total bytes written, headers included.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0
    bytes_sent: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Returns:
            The request bytes, or None if the client closed the connection
            (or went idle on a keep-alive connection).

        Raises:
            TimeoutError: If the first request on the connection times out.
            ValueError: If the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        # Subsequent requests on a kept-alive socket get the short timeout.
        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # truncated; the parser reports it
                self._buffer += chunk
                self._check_size()

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise ValueError(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Find Content-Length in the raw header block.

        This runs before the real parser, which validates the value properly,
        so anything unparseable is treated as 0 here.
        """
        for line in headers.split(b"\r\n")[1:]:
            name, sep, value = line.partition(b":")
            if sep and name.strip().lower() == b"content-length":
                try:
                    return max(int(value.strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a complete buffered response.

        Returns:
            True on success, False if the client has gone away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        self.bytes_sent += len(data)
        self.last_activity = time.time()
        return True

    def send_stream(self, head: bytes, chunks: Iterable[bytes], chunked: bool = True) -> bool:
        """
        Send response headers followed by a streamed body.

        The chunk iterator is always closed before returning, whether the
        body was sent completely, the client disconnected, or reading the
        source failed halfway.

        Args:
            head: Serialized status line and headers.
            chunks: Body chunks, typically a FileStream.
            chunked: Frame the body with Transfer-Encoding: chunked.

        Returns:
            True if the whole body was sent; False if the stream was aborted.
            An aborted stream leaves the connection unusable.
        """
        self.state = ConnectionState.WRITING
        sent = 0
        try:
            self.socket.sendall(head)
            sent += len(head)

            for chunk in chunks:
                if not chunk:
                    continue
                if chunked:
                    chunk = b"%x\r\n" % len(chunk) + chunk + b"\r\n"
                self.socket.sendall(chunk)
                sent += len(chunk)

            if chunked:
                self.socket.sendall(b"0\r\n\r\n")
                sent += 5

            self.last_activity = time.time()
            return True

        except OSError as e:
            # headers may already be on the wire: nothing left to do but stop
            logger.warning(f"[{self.id}] Stream aborted after {sent} bytes: {e}")
            return False

        finally:
            self.bytes_sent += sent
            close = getattr(chunks, "close", None)
            if close is not None:
                close()

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection: send FIN, drain briefly, release the socket.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests, "
            f"{self.bytes_sent} bytes sent"
        )

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

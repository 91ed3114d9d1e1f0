"""
Networking and concurrency building blocks: the listening socket, the
per-client connection wrapper, and the worker thread pool.
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]

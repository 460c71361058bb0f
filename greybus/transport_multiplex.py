"""Greybus transport over a single TCP/IP connection that carries every cport.

Each message on the wire is preceded by the cport it belongs to, as a
little-endian 16-bit number.
"""

from __future__ import annotations

import logging
import selectors
import socket
import ssl
import struct
import threading
from collections.abc import Callable
from typing import Optional

from greybus.message import HEADER_SIZE, OperationHeader

log = logging.getLogger(__name__)

CPORT_ID_MAX = 4095
BASE_PORT = 4242
BACKLOG = 10

_CPORT = struct.Struct("<H")

Handler = Callable[[int, bytes], None]


def read_exact(sock: socket.socket, length: int) -> Optional[bytes]:
    """Read exactly ``length`` bytes; None when the peer closed the connection first."""
    if length < 0:
        raise ValueError(f"invalid length {length}")
    buf = bytearray()
    while len(buf) < length:
        chunk = sock.recv(length - len(buf))
        if not chunk:
            return None
        buf += chunk
    return bytes(buf)


def receive_message(sock: socket.socket) -> Optional[tuple[int, bytes]]:
    """Read one framed message and return ``(cport, message)``.

    Returns None when the peer shut the connection down. Raises
    ValueError when the header declares an impossible size.
    """
    raw_cport = read_exact(sock, _CPORT.size)
    if raw_cport is None:
        return None
    (cport,) = _CPORT.unpack(raw_cport)

    head = read_exact(sock, HEADER_SIZE)
    if head is None:
        return None
    payload_size = OperationHeader.unpack(head).payload_size()

    payload = read_exact(sock, payload_size)
    if payload is None:
        return None
    return cport, head + payload


def encode_frame(cport: int, message: bytes) -> bytes:
    """Prefix ``message`` with its cport, ready to be written to the connection."""
    if not 0 <= cport <= 0xFFFF:
        raise ValueError(f"invalid cport {cport}")
    message = bytes(message)
    if len(message) < HEADER_SIZE:
        raise ValueError(f"message of {len(message)} bytes is shorter than a header")
    size = OperationHeader.unpack(message).size
    if size != len(message):
        raise ValueError(f"invalid message size {size} (len: {len(message)})")
    return _CPORT.pack(cport) + message


class MultiplexTransport:
    """Serves one client at a time on one port and passes every message
    received to ``handler(cport, message)``.

    A ``port`` of 0 lets the system choose; see :attr:`port` once started.
    """

    def __init__(
        self,
        handler: Handler,
        *,
        num_cports: int = 1,
        host: str = "",
        port: int = BASE_PORT,
        family: Optional[int] = None,
        backlog: int = BACKLOG,
        ssl_context: Optional[ssl.SSLContext] = None,
    ) -> None:
        self._handler = handler
        self.num_cports = num_cports
        self.host = host
        self._requested_port = port
        if family is None:
            family = socket.AF_INET6 if socket.has_ipv6 else socket.AF_INET
        self.family = family
        self.backlog = backlog
        self.ssl_context = ssl_context
        self._server: Optional[socket.socket] = None
        self._client: Optional[socket.socket] = None
        self._send_lock = threading.Lock()

    @property
    def port(self) -> int:
        if self._server is None:
            raise RuntimeError("transport is not started")
        return self._server.getsockname()[1]

    @property
    def connected(self) -> bool:
        return self._client is not None

    def start(self) -> None:
        if self._server is not None:
            raise RuntimeError("transport already started")
        if not 0 <= self.num_cports < CPORT_ID_MAX:
            raise ValueError(f"invalid number of cports {self.num_cports}")
        sock = socket.socket(self.family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self._requested_port))
            sock.listen(self.backlog)
        except BaseException:
            sock.close()
            raise
        self._server = sock
        log.info("Greybus socket opened at port %u", self.port)

    def send(self, cport: int, message: bytes) -> None:
        frame = encode_frame(cport, message)
        client = self._client
        if client is None:
            raise ConnectionError("no client connected")
        with self._send_lock:
            client.sendall(frame)

    def serve_once(self, timeout: Optional[float] = None) -> int:
        """Accept a client or handle one message from it; return how many events were handled."""
        if self._server is None:
            raise RuntimeError("transport is not started")
        if self._client is None:
            return self._accept(timeout)
        return self._receive(timeout)

    def _wait_readable(self, sock: socket.socket, timeout: Optional[float]) -> bool:
        if isinstance(sock, ssl.SSLSocket) and sock.pending():
            return True
        with selectors.DefaultSelector() as selector:
            selector.register(sock, selectors.EVENT_READ)
            return bool(selector.select(timeout))

    def _accept(self, timeout: Optional[float]) -> int:
        assert self._server is not None
        if not self._wait_readable(self._server, timeout):
            return 0
        try:
            conn, addr = self._server.accept()
        except OSError as exc:
            log.error("Failed to accept connection: %s", exc)
            return 0
        if self.ssl_context is not None:
            try:
                conn = self.ssl_context.wrap_socket(conn, server_side=True)
            except OSError as exc:
                log.error("TLS handshake failed: %s", exc)
                conn.close()
                return 0
        self._client = conn
        log.info("Accepted new connection from %s", addr)
        return 1

    def _drop_client(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            client.close()

    def _receive(self, timeout: Optional[float]) -> int:
        client = self._client
        assert client is not None
        if not self._wait_readable(client, timeout):
            return 0
        try:
            received = receive_message(client)
        except (OSError, ValueError) as exc:
            log.error("Failed to receive message: %s", exc)
            self._drop_client()
            return 1
        if received is None:
            self._drop_client()
            return 1
        cport, message = received
        try:
            self._handler(cport, message)
        except Exception:
            log.exception("Failed to handle greybus message on cport %u", cport)
        return 1

    def close(self) -> None:
        self._drop_client()
        server, self._server = self._server, None
        if server is not None:
            server.close()

    def __enter__(self) -> "MultiplexTransport":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
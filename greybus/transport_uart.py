"""Greybus transport over a serial line.

Messages travel back to back; the cport of each is carried in the pad
bytes of its header.
"""

from __future__ import annotations

import logging
import struct
import threading
from collections.abc import Callable
from typing import Optional

from greybus.message import HEADER_SIZE, MAX_MESSAGE_SIZE, OperationHeader

log = logging.getLogger(__name__)

CPORT_ID_MAX = 4095
RB_PAD = 8
UART_RB_SIZE = MAX_MESSAGE_SIZE + RB_PAD
MAX_PAYLOAD_SIZE = MAX_MESSAGE_SIZE - HEADER_SIZE

_PAD_OFFSET = 6
_PAD = struct.Struct("<H")

Handler = Callable[[int, bytes], None]
Writer = Callable[[bytes], object]


class RingBuffer:
    """Fixed-capacity byte FIFO."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"invalid capacity {capacity}")
        self.capacity = capacity
        self._data = bytearray()

    def put(self, data: bytes) -> int:
        """Append as much of ``data`` as fits; return the number of bytes stored."""
        count = min(len(data), self.space())
        self._data += bytes(data[:count])
        return count

    def get(self, count: int) -> bytes:
        """Remove and return up to ``count`` bytes from the head."""
        if count < 0:
            raise ValueError(f"invalid count {count}")
        out = bytes(self._data[:count])
        del self._data[:count]
        return out

    def peek(self, count: int) -> bytes:
        """Return up to ``count`` bytes from the head without removing them."""
        return bytes(self._data[:count])

    def space(self) -> int:
        return self.capacity - len(self._data)

    def __len__(self) -> int:
        return len(self._data)


class UartTransport:
    """Frames outgoing messages onto ``write`` and reassembles incoming bytes.

    Bytes received from the line are handed to :meth:`feed`; :meth:`process`
    then passes each complete message to ``handler(cport, message)``.
    """

    def __init__(
        self,
        write: Writer,
        handler: Optional[Handler] = None,
        *,
        num_cports: int = 1,
        buffer_size: int = UART_RB_SIZE,
        max_payload: int = MAX_PAYLOAD_SIZE,
    ) -> None:
        if not 0 <= num_cports < CPORT_ID_MAX:
            raise ValueError(f"invalid number of cports {num_cports}")
        self._write = write
        self._handler = handler
        self.num_cports = num_cports
        self.max_payload = max_payload
        self._rb = RingBuffer(buffer_size)
        self._lock = threading.Lock()

    @property
    def buffered(self) -> int:
        with self._lock:
            return len(self._rb)

    def feed(self, data: bytes) -> bool:
        """Store received bytes, dropping the oldest on overflow.

        Returns True once at least a whole header is buffered.
        """
        data = bytes(data)
        with self._lock:
            overflow = len(data) - self._rb.space()
            if overflow > 0:
                log.error("overflow occurred, dropping %u bytes", overflow)
                dropped_from_buffer = min(overflow, len(self._rb))
                self._rb.get(dropped_from_buffer)
                data = data[overflow - dropped_from_buffer :]
            self._rb.put(data)
            return len(self._rb) >= HEADER_SIZE

    def process(self) -> Optional[tuple[int, bytes]]:
        """Take one complete message from the buffer and hand it on.

        Returns ``(cport, message)``, or None while the message is still
        incomplete. A header declaring an impossible size is discarded and
        ValueError raised.
        """
        with self._lock:
            if len(self._rb) < HEADER_SIZE:
                return None
            header = OperationHeader.unpack(self._rb.peek(HEADER_SIZE))
            if header.size < HEADER_SIZE:
                self._rb.get(HEADER_SIZE)
                log.error("invalid message size %u", header.size)
                raise ValueError(f"invalid message size {header.size}")
            payload_size = header.size - HEADER_SIZE
            if payload_size > self.max_payload:
                self._rb.get(HEADER_SIZE)
                log.error("invalid payload size %u", payload_size)
                raise ValueError(f"invalid payload size {payload_size}")
            if len(self._rb) < header.size:
                return None
            message = self._rb.get(header.size)

        (cport,) = _PAD.unpack_from(message, _PAD_OFFSET)
        if self._handler is not None:
            try:
                self._handler(cport, message)
            except Exception:
                log.exception(
                    "failed to handle message : size: %u, id: %u, type: %u",
                    header.size,
                    header.id,
                    header.type,
                )
        return cport, message

    def send(self, cport: int, message: bytes) -> None:
        """Write ``message`` to the line with ``cport`` stored in its pad bytes."""
        if not 0 <= cport <= 0xFFFF:
            raise ValueError(f"invalid cport {cport}")
        framed = bytearray(message)
        if len(framed) < HEADER_SIZE:
            raise ValueError(f"message of {len(framed)} bytes is shorter than a header")
        _PAD.pack_into(framed, _PAD_OFFSET, cport)
        size = OperationHeader.unpack(framed).size
        if size != len(framed):
            raise ValueError(f"invalid message size {size} (len: {len(framed)})")
        self._write(bytes(framed))
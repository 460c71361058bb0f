"""Greybus operation message header and message helpers."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

HEADER_FORMAT = "<HHBB2s"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
RESPONSE_FLAG = 0x80
MAX_MESSAGE_SIZE = 0xFFFF


class OperationResult(IntEnum):
    """Result codes carried in the header of a response."""

    SUCCESS = 0x00
    INTERRUPTED = 0x01
    TIMEOUT = 0x02
    NO_MEMORY = 0x03
    PROTOCOL_BAD = 0x04
    OVERFLOW = 0x05
    INVALID = 0x06
    RETRY = 0x07
    NONEXISTENT = 0x08
    UNKNOWN_ERROR = 0xFE
    INTERNAL = 0xFF


class OperationFailed(Exception):
    """A response arrived carrying a result other than success."""

    def __init__(self, result: int) -> None:
        try:
            name = OperationResult(result).name
        except ValueError:
            name = f"0x{result:02x}"
        super().__init__(f"operation failed with result {name}")
        self.result = result


@dataclass
class OperationHeader:
    """The eight-byte header that starts every Greybus message."""

    size: int
    id: int
    type: int
    result: int = OperationResult.SUCCESS
    pad: bytes = b"\x00\x00"

    def pack(self) -> bytes:
        if len(self.pad) != 2:
            raise ValueError("pad must be exactly two bytes")
        try:
            return struct.pack(
                HEADER_FORMAT, self.size, self.id, self.type, self.result, bytes(self.pad)
            )
        except struct.error as exc:
            raise ValueError(f"header field out of range: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "OperationHeader":
        if len(data) < HEADER_SIZE:
            raise ValueError(f"need {HEADER_SIZE} bytes for a header, got {len(data)}")
        size, op_id, op_type, result, pad = struct.unpack_from(HEADER_FORMAT, data)
        return cls(size=size, id=op_id, type=op_type, result=result, pad=pad)

    def payload_size(self) -> int:
        if self.size < HEADER_SIZE:
            raise ValueError(f"invalid message size {self.size}")
        return self.size - HEADER_SIZE

    @property
    def is_response(self) -> bool:
        return bool(self.type & RESPONSE_FLAG)


def make_message(op_type: int, payload: bytes = b"", op_id: int = 0) -> bytes:
    """Build a complete message: header followed by ``payload``."""
    size = HEADER_SIZE + len(payload)
    if size > MAX_MESSAGE_SIZE:
        raise ValueError(f"message of {size} bytes is too large")
    return OperationHeader(size=size, id=op_id, type=op_type).pack() + bytes(payload)


def split_message(data: bytes) -> tuple[OperationHeader, bytes]:
    """Split a complete message into its header and payload."""
    header = OperationHeader.unpack(data)
    if header.size != len(data):
        raise ValueError(f"header size {header.size} does not match length {len(data)}")
    header.payload_size()
    return header, bytes(data[HEADER_SIZE:])


def response_type(op_type: int) -> int:
    """Return the type a response to ``op_type`` carries."""
    if not 0 <= op_type < RESPONSE_FLAG:
        raise ValueError(f"invalid request type {op_type}")
    return op_type | RESPONSE_FLAG
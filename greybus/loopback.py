"""Greybus loopback protocol: request handling, test traffic and statistics."""

from __future__ import annotations

import logging
import random
import struct
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from enum import IntEnum
from typing import Optional

from greybus.message import OperationFailed, OperationResult

log = logging.getLogger(__name__)

VERSION_MAJOR = 0
VERSION_MINOR = 1

GREYBUS_FW_TIMESTAMP_APBRIDGE = 0x01
GREYBUS_FW_TIMESTAMP_GPBRIDGE = 0x02

USEC_PER_SEC = 1_000_000

_TRANSFER_HEADER = "<III"
TRANSFER_HEADER_SIZE = struct.calcsize(_TRANSFER_HEADER)


class LoopbackType(IntEnum):
    NONE = 0x00
    PROTOCOL_VERSION = 0x01
    PING = 0x02
    TRANSFER = 0x03
    SINK = 0x04


@dataclass
class LoopbackStatistics:
    """Counters and running figures collected for one cport."""

    recv: int = 0
    recv_err: int = 0
    throughput_min: int = 0
    throughput_max: int = 0
    throughput_avg: int = 0
    latency_min: int = 0
    latency_max: int = 0
    latency_avg: int = 0
    reqs_per_sec_min: int = 0
    reqs_per_sec_max: int = 0
    reqs_per_sec_avg: int = 0


@dataclass
class Operation:
    """An outgoing loopback request and, once answered, its response."""

    cport: int
    type: LoopbackType
    request: bytes
    response: Optional[bytes] = None
    send_ts: int = 0
    recv_ts: int = 0

    @property
    def elapsed_us(self) -> int:
        return max(0, (self.recv_ts - self.send_ts) // 1000)


Sender = Callable[[Operation], bytes]


def _div_round_closest(value: int, divisor: int) -> int:
    return (value + divisor // 2) // divisor


def _update_avg(avg: int, new: int) -> int:
    return new if avg == 0 else _div_round_closest(avg + new, 2)


def _update_min(current: int, avg: int) -> int:
    if current == 0 or avg < current:
        return avg
    return current


def _encode_transfer(data: bytes) -> bytes:
    return struct.pack(_TRANSFER_HEADER, len(data), 0, 0) + data


def _decode_transfer(payload: bytes) -> tuple[int, bytes]:
    if len(payload) < TRANSFER_HEADER_SIZE:
        raise ValueError("transfer payload too short")
    length, _, _ = struct.unpack_from(_TRANSFER_HEADER, payload)
    return length, bytes(payload[TRANSFER_HEADER_SIZE:])


@dataclass
class _CportState:
    cport: int
    lock: threading.Lock = field(default_factory=threading.Lock)
    stats: LoopbackStatistics = field(default_factory=LoopbackStatistics)


class Loopback:
    """Loopback driver for a set of registered cports.

    ``sender`` delivers an :class:`Operation` and returns the response
    payload; it raises :class:`OperationFailed` when the response carries
    an error result.
    """

    def __init__(self, sender: Optional[Sender] = None, rng: Optional[random.Random] = None):
        self._sender = sender
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._cports: list[_CportState] = []

    def _find(self, cport: int) -> Optional[_CportState]:
        with self._lock:
            for state in self._cports:
                if state.cport == cport:
                    return state
        return None

    def register(self, cport: int) -> None:
        """Start collecting statistics for ``cport``."""
        with self._lock:
            if any(state.cport == cport for state in self._cports):
                raise ValueError(f"cport {cport} is already registered")
            self._cports.append(_CportState(cport))

    def for_each_cport(self, callback: Callable[[int], Optional[int]]) -> int:
        """Call ``callback`` for each cport; stop at the first negative status."""
        status = 0
        with self._lock:
            cports = [state.cport for state in self._cports]
        for cport in cports:
            result = callback(cport)
            status = 0 if result is None else result
            if status < 0:
                break
        return status

    def get_stats(self, cport: int) -> LoopbackStatistics:
        state = self._find(cport)
        if state is None:
            raise KeyError(f"cport {cport} is not registered")
        with state.lock:
            return replace(state.stats)

    def reset(self, cport: int) -> None:
        state = self._find(cport)
        if state is not None:
            with state.lock:
                state.stats = LoopbackStatistics()

    def cport_valid(self, cport: int) -> bool:
        return self._find(cport) is not None

    def _error_notify(self, cport: int) -> None:
        state = self._find(cport)
        if state is not None:
            with state.lock:
                state.stats.recv_err += 1

    def _recv_inc(self, cport: int) -> None:
        state = self._find(cport)
        if state is not None:
            with state.lock:
                state.stats.recv += 1

    def record_latency(self, cport: int, total_us: int, length: int, xfer: bool) -> None:
        """Fold one round trip of ``total_us`` microseconds into the statistics."""
        state = self._find(cport)
        if state is None:
            return
        total = max(1, int(total_us))
        rps = _div_round_closest(USEC_PER_SEC, total)
        tps = length * (2 if xfer else 1) * rps
        with state.lock:
            s = state.stats
            s.latency_avg = _update_avg(s.latency_avg, total)
            s.throughput_avg = _update_avg(s.throughput_avg, tps)
            s.reqs_per_sec_avg = _update_avg(s.reqs_per_sec_avg, rps)
            s.latency_min = _update_min(s.latency_min, s.latency_avg)
            s.throughput_min = _update_min(s.throughput_min, s.throughput_avg)
            s.reqs_per_sec_min = _update_min(s.reqs_per_sec_min, s.reqs_per_sec_avg)
            s.latency_max = max(s.latency_max, s.latency_avg)
            s.throughput_max = max(s.throughput_max, s.throughput_avg)
            s.reqs_per_sec_max = max(s.reqs_per_sec_max, s.reqs_per_sec_avg)

    def send_request(self, cport: int, size: int, op_type: int) -> bool:
        """Send a ping, transfer or sink request.

        Returns True when the response was good, False when a transfer
        came back altered. Errors from the sender propagate.
        """
        try:
            kind = LoopbackType(op_type)
        except ValueError:
            raise ValueError(f"invalid loopback type {op_type}") from None
        if kind not in (LoopbackType.PING, LoopbackType.TRANSFER, LoopbackType.SINK):
            raise ValueError(f"invalid loopback type {kind.name}")
        if size < 0:
            raise ValueError(f"invalid size {size}")
        if self._sender is None:
            raise RuntimeError("no sender configured")

        if kind is LoopbackType.PING:
            request = b"\x00"
            length = 0
        elif kind is LoopbackType.TRANSFER:
            request = _encode_transfer(self._rng.randbytes(size))
            length = size
        else:
            request = _encode_transfer(bytes(size))
            length = size

        operation = Operation(cport=cport, type=kind, request=request)
        operation.send_ts = time.monotonic_ns()
        try:
            response = self._sender(operation)
        except OperationFailed:
            self._error_notify(cport)
            raise
        operation.recv_ts = time.monotonic_ns()
        operation.response = bytes(response)

        if kind is LoopbackType.TRANSFER:
            try:
                resp_len, resp_data = _decode_transfer(operation.response)
            except ValueError:
                resp_len, resp_data = -1, b""
            req_len, req_data = _decode_transfer(request)
            if resp_len != req_len or resp_data[:req_len] != req_data[:req_len]:
                self._error_notify(cport)
                return False
            self._recv_inc(cport)
            self.record_latency(cport, operation.elapsed_us, length, True)
            return True

        self._recv_inc(cport)
        self.record_latency(cport, operation.elapsed_us, length, False)
        return True

    def handle_request(self, op_type: int, payload: bytes) -> tuple[OperationResult, bytes]:
        """Answer an incoming request; returns the result and response payload."""
        if op_type == LoopbackType.PROTOCOL_VERSION:
            return OperationResult.SUCCESS, bytes([VERSION_MAJOR, VERSION_MINOR])
        if op_type in (LoopbackType.PING, LoopbackType.SINK):
            return OperationResult.SUCCESS, b""
        if op_type == LoopbackType.TRANSFER:
            if len(payload) < TRANSFER_HEADER_SIZE:
                log.error("dropping short message")
                return OperationResult.INVALID, b""
            length, data = _decode_transfer(payload)
            if len(data) < length:
                log.error("transfer declares %u bytes, carries %u", length, len(data))
                return OperationResult.INVALID, b""
            return OperationResult.SUCCESS, _encode_transfer(data[:length])
        return OperationResult.PROTOCOL_BAD, b""


__all__ = [f.name for f in fields(LoopbackStatistics)] and [
    "LoopbackType",
    "LoopbackStatistics",
    "Operation",
    "Loopback",
]
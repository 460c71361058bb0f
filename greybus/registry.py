"""Bidirectional mapping between Greybus cports and devices."""

from __future__ import annotations

import logging
import threading
from typing import Any

log = logging.getLogger(__name__)


class AlreadyMappedError(ValueError):
    """The cport or the device already takes part in a mapping."""


class NoDeviceError(LookupError):
    """A device that was needed could not be found."""


class CportRegistry:
    """Thread-safe one-to-one mapping of cports to devices."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[tuple[int, Any]] = []

    def add(self, cport: int, device: Any) -> None:
        if device is None:
            raise ValueError("device must not be None")
        if cport < 0:
            raise ValueError(f"invalid cport {cport}")
        with self._lock:
            for mapped_cport, mapped_device in self._entries:
                if mapped_cport == cport:
                    raise AlreadyMappedError(f"cport {cport} is already mapped to {mapped_device!r}")
                if mapped_device is device:
                    raise AlreadyMappedError(f"{device!r} is already mapped to cport {mapped_cport}")
            self._entries.append((cport, device))
        log.debug("added mapping between cport %u and device %r", cport, device)

    def device_to_cport(self, device: Any) -> int:
        with self._lock:
            for cport, mapped_device in self._entries:
                if mapped_device is device:
                    return cport
        raise KeyError(f"no mapping for device {device!r}")

    def cport_to_device(self, cport: int) -> Any:
        with self._lock:
            for mapped_cport, device in self._entries:
                if mapped_cport == cport:
                    return device
        raise KeyError(f"no mapping for cport {cport}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_default_registry = CportRegistry()


def add_cport_device_mapping(cport: int, device: Any) -> None:
    """Map ``cport`` to ``device`` in the shared registry."""
    _default_registry.add(cport, device)


def device_to_cport(device: Any) -> int:
    """Look up the cport of ``device`` in the shared registry."""
    return _default_registry.device_to_cport(device)


def cport_to_device(cport: int) -> Any:
    """Look up the device of ``cport`` in the shared registry."""
    return _default_registry.cport_to_device(cport)
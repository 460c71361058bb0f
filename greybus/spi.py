"""Greybus SPI controller configuration and device pairing."""

from __future__ import annotations

import logging
import threading
from collections.abc import Container, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from greybus.registry import AlreadyMappedError, CportRegistry, NoDeviceError

log = logging.getLogger(__name__)


@dataclass
class SpiControllerConfig:
    """Answer to a controller (master) config request."""

    bpw_mask: int
    min_speed_hz: int
    max_speed_hz: int
    mode: int
    flags: int
    num_chipselect: int


@dataclass
class SpiPeripheralConfig:
    """Answer to a device config request for one chip select."""

    mode: int
    bpw: int
    max_speed_hz: int
    device_type: int
    name: str


@dataclass
class CsControl:
    """Chip-select line of one peripheral; ``gpio_port`` is None when absent."""

    gpio_port: Any
    gpio_pin: int = -1
    gpio_flags: int = -1
    delay: int = 0


@dataclass
class SpiControl:
    """Configuration of one Greybus SPI cport and the platform queries it answers."""

    id: int
    bundle: int
    controller: Any
    bus_name: str
    controller_config: SpiControllerConfig
    peripherals: Sequence[SpiPeripheralConfig] = ()
    cs_controls: Sequence[CsControl] = ()
    bound_controller: Optional[Any] = field(default=None, init=False)

    def controller_config_response(self) -> SpiControllerConfig:
        return replace(self.controller_config)

    def num_peripherals(self) -> int:
        return len(self.peripherals)

    def _check_chip_select(self, chip_select: int) -> None:
        if not 0 <= chip_select < self.num_peripherals():
            raise ValueError(f"invalid chip select {chip_select}")

    def peripheral_config_response(self, chip_select: int) -> SpiPeripheralConfig:
        self._check_chip_select(chip_select)
        return replace(self.peripherals[chip_select])

    def get_cs_control(self, chip_select: int) -> CsControl:
        self._check_chip_select(chip_select)
        if chip_select >= len(self.cs_controls) or self.cs_controls[chip_select].gpio_port is None:
            log.error("failed to look up cs %u GPIO device", chip_select)
            raise NoDeviceError(f"no GPIO device for chip select {chip_select}")
        return replace(self.cs_controls[chip_select])


class SpiDevicePairs:
    """Thread-safe pairing of Greybus SPI devices with physical SPI devices."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pairs: list[tuple[Any, Any]] = []

    def add(self, greybus_device: Any, device: Any) -> None:
        if greybus_device is None or device is None:
            raise ValueError("both devices are required")
        with self._lock:
            for paired_greybus, paired_device in self._pairs:
                if paired_greybus is greybus_device or paired_device is device:
                    raise AlreadyMappedError("device is already paired")
            self._pairs.append((greybus_device, device))
        log.debug("added spi device mapping %r <-> %r", greybus_device, device)

    def lookup(self, device: Any) -> Any:
        """Return the Greybus SPI device paired with the physical ``device``."""
        with self._lock:
            for greybus_device, paired_device in self._pairs:
                if paired_device is device:
                    return greybus_device
        log.error("no greybus spi device exists for physical device %r", device)
        raise KeyError(f"no greybus spi device for {device!r}")


def init_spi_control(
    control: SpiControl,
    registry: CportRegistry,
    pairs: SpiDevicePairs,
    buses: Container[str],
) -> None:
    """Pair the controller with ``control``, check the bus and map the cport."""
    control.bound_controller = control.controller
    if control.controller is None:
        raise NoDeviceError(f"no SPI controller for cport {control.id}")
    pairs.add(control, control.controller)
    if control.bus_name not in buses:
        log.error("spi control: failed to get binding for device '%s'", control.bus_name)
        raise NoDeviceError(f"bus '{control.bus_name}' not found")
    registry.add(control.id, control.controller)
    log.debug("probed cport %u: bundle: %u protocol: spi", control.id, control.bundle)
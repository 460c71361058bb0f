"""Binding of a Greybus I2C cport to an I2C controller device."""

from __future__ import annotations

import logging
from collections.abc import Container
from dataclasses import dataclass, field
from typing import Any, Optional

from greybus.registry import CportRegistry, NoDeviceError

log = logging.getLogger(__name__)


@dataclass
class I2cControl:
    """Configuration of one Greybus I2C cport."""

    id: int
    bundle: int
    controller: Any
    bus_name: str
    bound_controller: Optional[Any] = field(default=None, init=False)

    def init(self, registry: CportRegistry, buses: Container[str]) -> None:
        """Check the bus exists and map the cport to the controller."""
        self.bound_controller = self.controller
        if self.controller is None:
            raise NoDeviceError(f"no I2C controller for cport {self.id}")
        if self.bus_name not in buses:
            log.error("i2c control: failed to get binding for device '%s'", self.bus_name)
            raise NoDeviceError(f"bus '{self.bus_name}' not found")
        registry.add(self.id, self.controller)
        log.debug("probed cport %u: bundle: %u protocol: i2c", self.id, self.bundle)
import pytest

from greybus.platform_i2c import I2cControl
from greybus.registry import AlreadyMappedError, CportRegistry, NoDeviceError

BUS = "greybus0"


def test_init_maps_cport_to_controller():
    registry = CportRegistry()
    controller = object()
    control = I2cControl(id=2, bundle=1, controller=controller, bus_name=BUS)
    control.init(registry, {BUS})
    assert registry.cport_to_device(2) is controller
    assert registry.device_to_cport(controller) == 2
    assert control.bound_controller is controller


def test_missing_controller_raises():
    registry = CportRegistry()
    control = I2cControl(id=2, bundle=1, controller=None, bus_name=BUS)
    with pytest.raises(NoDeviceError):
        control.init(registry, {BUS})
    assert len(registry) == 0


def test_missing_bus_raises():
    registry = CportRegistry()
    control = I2cControl(id=2, bundle=1, controller=object(), bus_name="other")
    with pytest.raises(NoDeviceError):
        control.init(registry, {BUS})
    with pytest.raises(KeyError):
        registry.cport_to_device(2)


def test_second_control_on_same_cport_raises():
    registry = CportRegistry()
    I2cControl(id=2, bundle=1, controller=object(), bus_name=BUS).init(registry, [BUS])
    with pytest.raises(AlreadyMappedError):
        I2cControl(id=2, bundle=1, controller=object(), bus_name=BUS).init(registry, [BUS])
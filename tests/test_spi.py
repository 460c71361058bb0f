import pytest

from greybus.registry import AlreadyMappedError, CportRegistry, NoDeviceError
from greybus.spi import (
    CsControl,
    SpiControl,
    SpiControllerConfig,
    SpiDevicePairs,
    SpiPeripheralConfig,
    init_spi_control,
)


def _control(controller=None, bus_name="greybus0"):
    if controller is None:
        controller = object()
    return SpiControl(
        id=3,
        bundle=1,
        controller=controller,
        bus_name=bus_name,
        controller_config=SpiControllerConfig(
            bpw_mask=0xFF, min_speed_hz=1000, max_speed_hz=2000, mode=0, flags=0, num_chipselect=2
        ),
        peripherals=[
            SpiPeripheralConfig(mode=0, bpw=8, max_speed_hz=1000, device_type=0, name="a"),
            SpiPeripheralConfig(mode=1, bpw=16, max_speed_hz=2000, device_type=1, name="b"),
        ],
        cs_controls=[CsControl(gpio_port="gpio0", gpio_pin=4), CsControl(gpio_port=None)],
    )


def test_controller_config_is_copy():
    control = _control()
    rsp = control.controller_config_response()
    assert rsp == control.controller_config
    rsp.mode = 3
    assert control.controller_config.mode == 0


def test_num_peripherals():
    assert _control().num_peripherals() == 2


def test_peripheral_config_response():
    control = _control()
    assert control.peripheral_config_response(1).name == "b"
    assert control.peripheral_config_response(0).bpw == 8


@pytest.mark.parametrize("cs", [2, -1, 255])
def test_peripheral_config_out_of_range(cs):
    with pytest.raises(ValueError):
        _control().peripheral_config_response(cs)


def test_get_cs_control():
    ctrl = _control().get_cs_control(0)
    assert ctrl.gpio_port == "gpio0"
    assert ctrl.gpio_pin == 4
    assert ctrl.delay == 0


def test_get_cs_control_without_port():
    with pytest.raises(NoDeviceError):
        _control().get_cs_control(1)


def test_get_cs_control_out_of_range():
    with pytest.raises(ValueError):
        _control().get_cs_control(2)


def test_pairs_add_and_lookup():
    pairs = SpiDevicePairs()
    gb, phys = object(), object()
    pairs.add(gb, phys)
    assert pairs.lookup(phys) is gb


def test_pairs_lookup_missing():
    with pytest.raises(KeyError):
        SpiDevicePairs().lookup(object())


def test_pairs_reject_duplicates():
    pairs = SpiDevicePairs()
    gb, phys = object(), object()
    pairs.add(gb, phys)
    with pytest.raises(AlreadyMappedError):
        pairs.add(gb, object())
    with pytest.raises(AlreadyMappedError):
        pairs.add(object(), phys)


def test_pairs_reject_none():
    with pytest.raises(ValueError):
        SpiDevicePairs().add(None, object())


def test_init_maps_cport_and_pair():
    registry, pairs = CportRegistry(), SpiDevicePairs()
    control = _control()
    init_spi_control(control, registry, pairs, {"greybus0"})
    assert registry.cport_to_device(3) is control.controller
    assert pairs.lookup(control.controller) is control
    assert control.bound_controller is control.controller


def test_init_missing_bus_keeps_pair():
    registry, pairs = CportRegistry(), SpiDevicePairs()
    control = _control(bus_name="nope")
    with pytest.raises(NoDeviceError):
        init_spi_control(control, registry, pairs, {"greybus0"})
    assert len(registry) == 0
    assert pairs.lookup(control.controller) is control


def test_init_without_controller():
    control = _control()
    control.controller = None
    with pytest.raises(NoDeviceError):
        init_spi_control(control, CportRegistry(), SpiDevicePairs(), {"greybus0"})
import threading

import pytest

from greybus.registry import (
    AlreadyMappedError,
    CportRegistry,
    add_cport_device_mapping,
    cport_to_device,
    device_to_cport,
)


def test_add_and_lookup_both_ways():
    registry = CportRegistry()
    device = object()
    registry.add(3, device)
    assert registry.device_to_cport(device) == 3
    assert registry.cport_to_device(3) is device


def test_duplicate_cport_rejected():
    registry = CportRegistry()
    registry.add(1, object())
    with pytest.raises(AlreadyMappedError):
        registry.add(1, object())
    assert len(registry) == 1


def test_duplicate_device_rejected():
    registry = CportRegistry()
    device = object()
    registry.add(1, device)
    with pytest.raises(AlreadyMappedError):
        registry.add(2, device)
    with pytest.raises(KeyError):
        registry.cport_to_device(2)


def test_none_device_rejected():
    with pytest.raises(ValueError):
        CportRegistry().add(0, None)


def test_negative_cport_rejected():
    with pytest.raises(ValueError):
        CportRegistry().add(-1, object())


def test_missing_lookups_raise():
    registry = CportRegistry()
    with pytest.raises(KeyError):
        registry.device_to_cport(object())
    with pytest.raises(KeyError):
        registry.cport_to_device(5)


def test_concurrent_adds_keep_every_mapping():
    registry = CportRegistry()
    devices = [object() for _ in range(50)]
    threads = [
        threading.Thread(target=registry.add, args=(cport, device))
        for cport, device in enumerate(devices)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(registry) == len(devices)
    assert all(registry.device_to_cport(d) == c for c, d in enumerate(devices))


def test_module_level_functions_share_registry():
    device = object()
    add_cport_device_mapping(4001, device)
    assert device_to_cport(device) == 4001
    assert cport_to_device(4001) is device
    with pytest.raises(AlreadyMappedError):
        add_cport_device_mapping(4001, object())
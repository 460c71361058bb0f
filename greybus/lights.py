"""Greybus Lights protocol messages."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

NAME_LENGTH = 32


class LightsType(IntEnum):
    PROTOCOL_VERSION = 0x01
    GET_LIGHTS = 0x02
    GET_LIGHT_CONFIG = 0x03
    GET_CHANNEL_CONFIG = 0x04
    GET_CHANNEL_FLASH_CONFIG = 0x05
    SET_BRIGHTNESS = 0x06
    SET_BLINK = 0x07
    SET_COLOR = 0x08
    SET_FADE = 0x09
    EVENT = 0x0A
    SET_FLASH_INTENSITY = 0x0B
    SET_FLASH_STROBE = 0x0C
    SET_FLASH_TIMEOUT = 0x0D
    GET_FLASH_FAULT = 0x0E


def _pack(fmt: str, *values) -> bytes:
    try:
        return struct.pack(fmt, *values)
    except struct.error as exc:
        raise ValueError(f"field out of range: {exc}") from exc


def _unpack(fmt: str, data: bytes, what: str) -> tuple:
    size = struct.calcsize(fmt)
    if len(data) != size:
        raise ValueError(f"{what} must be {size} bytes, got {len(data)}")
    return struct.unpack(fmt, bytes(data))


def _encode_name(name: str) -> bytes:
    raw = name.encode("utf-8")
    if b"\x00" in raw:
        raise ValueError("name must not contain NUL characters")
    if len(raw) >= NAME_LENGTH:
        raise ValueError(f"name must be at most {NAME_LENGTH - 1} bytes, got {len(raw)}")
    return raw


def _decode_name(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("utf-8")


_LIGHT_CONFIG = f"<B{NAME_LENGTH}s"
_CHANNEL_CONFIG = f"<BII{NAME_LENGTH}sI{NAME_LENGTH}s"
_FLASH_CONFIG = "<6I"
_BLINK = "<BBHH"
_COLOR = "<BBI"
_FADE = "<BBBB"


@dataclass
class LightConfig:
    """Get light config response: channel count and light name."""

    channel_count: int
    name: str

    def pack(self) -> bytes:
        return _pack(_LIGHT_CONFIG, self.channel_count, _encode_name(self.name))

    @classmethod
    def unpack(cls, data: bytes) -> "LightConfig":
        channel_count, name = _unpack(_LIGHT_CONFIG, data, "light config")
        return cls(channel_count, _decode_name(name))


@dataclass
class ChannelConfig:
    """Get channel config response."""

    max_brightness: int
    flags: int
    color: int
    color_name: str
    mode: int
    mode_name: str

    def pack(self) -> bytes:
        return _pack(
            _CHANNEL_CONFIG,
            self.max_brightness,
            self.flags,
            self.color,
            _encode_name(self.color_name),
            self.mode,
            _encode_name(self.mode_name),
        )

    @classmethod
    def unpack(cls, data: bytes) -> "ChannelConfig":
        max_brightness, flags, color, color_name, mode, mode_name = _unpack(
            _CHANNEL_CONFIG, data, "channel config"
        )
        return cls(
            max_brightness, flags, color, _decode_name(color_name), mode, _decode_name(mode_name)
        )


@dataclass
class FlashConfig:
    """Get channel flash config response; currents in microamps, times in microseconds."""

    intensity_min_ua: int
    intensity_max_ua: int
    intensity_step_ua: int
    timeout_min_us: int
    timeout_max_us: int
    timeout_step_us: int

    def pack(self) -> bytes:
        return _pack(
            _FLASH_CONFIG,
            self.intensity_min_ua,
            self.intensity_max_ua,
            self.intensity_step_ua,
            self.timeout_min_us,
            self.timeout_max_us,
            self.timeout_step_us,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "FlashConfig":
        return cls(*_unpack(_FLASH_CONFIG, data, "flash config"))


@dataclass
class BlinkRequest:
    """Set blink request; on and off periods in milliseconds."""

    light_id: int
    channel_id: int
    time_on_ms: int
    time_off_ms: int

    def pack(self) -> bytes:
        return _pack(_BLINK, self.light_id, self.channel_id, self.time_on_ms, self.time_off_ms)

    @classmethod
    def unpack(cls, data: bytes) -> "BlinkRequest":
        return cls(*_unpack(_BLINK, data, "blink request"))


@dataclass
class ColorRequest:
    """Set color request."""

    light_id: int
    channel_id: int
    color: int

    def pack(self) -> bytes:
        return _pack(_COLOR, self.light_id, self.channel_id, self.color)

    @classmethod
    def unpack(cls, data: bytes) -> "ColorRequest":
        return cls(*_unpack(_COLOR, data, "color request"))


@dataclass
class FadeRequest:
    """Set fade request."""

    light_id: int
    channel_id: int
    fade_in: int
    fade_out: int

    def pack(self) -> bytes:
        return _pack(_FADE, self.light_id, self.channel_id, self.fade_in, self.fade_out)

    @classmethod
    def unpack(cls, data: bytes) -> "FadeRequest":
        return cls(*_unpack(_FADE, data, "fade request"))
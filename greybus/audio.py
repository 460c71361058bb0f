"""Greybus Audio protocol messages."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag

SAMPLE_BUFFER_MIN_US = 10000
PCM_NAME_MAX = 32
DAI_NAME_MAX = 32
CONTROL_NAME_MAX = 32
CTL_ELEM_NAME_MAX = 44
ENUM_NAME_MAX = 64
WIDGET_NAME_MAX = 32
INVALID_INDEX = 0xFF


class AudioType(IntEnum):
    PROTOCOL_VERSION = 0x01
    GET_TOPOLOGY_SIZE = 0x02
    GET_TOPOLOGY = 0x03
    GET_CONTROL = 0x04
    SET_CONTROL = 0x05
    ENABLE_WIDGET = 0x06
    DISABLE_WIDGET = 0x07
    GET_PCM = 0x08
    SET_PCM = 0x09
    SET_TX_DATA_SIZE = 0x0A
    GET_TX_DELAY = 0x0B
    ACTIVATE_TX = 0x0C
    DEACTIVATE_TX = 0x0D
    SET_RX_DATA_SIZE = 0x0E
    GET_RX_DELAY = 0x0F
    ACTIVATE_RX = 0x10
    DEACTIVATE_RX = 0x11
    JACK_EVENT = 0x12
    BUTTON_EVENT = 0x13
    STREAMING_EVENT = 0x14
    SEND_DATA = 0x15


class PcmFormat(IntFlag):
    NONE = 0
    S8 = 1 << 0
    U8 = 1 << 1
    S16_LE = 1 << 2
    S16_BE = 1 << 3
    U16_LE = 1 << 4
    U16_BE = 1 << 5
    S24_LE = 1 << 6
    S24_BE = 1 << 7
    U24_LE = 1 << 8
    U24_BE = 1 << 9
    S32_LE = 1 << 10
    S32_BE = 1 << 11
    U32_LE = 1 << 12
    U32_BE = 1 << 13


class PcmRate(IntFlag):
    NONE = 0
    RATE_5512 = 1 << 0
    RATE_8000 = 1 << 1
    RATE_11025 = 1 << 2
    RATE_16000 = 1 << 3
    RATE_22050 = 1 << 4
    RATE_32000 = 1 << 5
    RATE_44100 = 1 << 6
    RATE_48000 = 1 << 7
    RATE_64000 = 1 << 8
    RATE_88200 = 1 << 9
    RATE_96000 = 1 << 10
    RATE_176400 = 1 << 11
    RATE_192000 = 1 << 12


class WidgetType(IntEnum):
    INPUT = 0x0
    OUTPUT = 0x1
    MUX = 0x2
    VIRT_MUX = 0x3
    VALUE_MUX = 0x4
    MIXER = 0x5
    MIXER_NAMED_CTL = 0x6
    PGA = 0x7
    OUT_DRV = 0x8
    ADC = 0x9
    DAC = 0xA
    MICBIAS = 0xB
    MIC = 0xC
    HP = 0xD
    SPK = 0xE
    LINE = 0xF
    SWITCH = 0x10
    VMID = 0x11
    PRE = 0x12
    POST = 0x13
    SUPPLY = 0x14
    REGULATOR_SUPPLY = 0x15
    CLOCK_SUPPLY = 0x16
    AIF_IN = 0x17
    AIF_OUT = 0x18
    SIGGEN = 0x19
    DAI_IN = 0x1A
    DAI_OUT = 0x1B
    DAI_LINK = 0x1C


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


def _encode_name(name: str, size: int) -> bytes:
    raw = name.encode("utf-8")
    if b"\x00" in raw:
        raise ValueError("name must not contain NUL characters")
    if len(raw) > size:
        raise ValueError(f"name must be at most {size} bytes, got {len(raw)}")
    return raw


def _decode_name(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("utf-8")


_PCM = f"<{PCM_NAME_MAX}sIIBBB"
_DAI_HEAD = f"<{DAI_NAME_MAX}sH"
_ROUTE = "<BBBB"
_SET_PCM = "<HIIBB"
_TOPOLOGY = "<BBBBIIII"


@dataclass
class Pcm:
    """Capabilities of one PCM stream."""

    stream_name: str
    formats: PcmFormat
    rates: PcmRate
    chan_min: int
    chan_max: int
    sig_bits: int

    SIZE = struct.calcsize(_PCM)

    def pack(self) -> bytes:
        return _pack(
            _PCM,
            _encode_name(self.stream_name, PCM_NAME_MAX),
            int(self.formats),
            int(self.rates),
            self.chan_min,
            self.chan_max,
            self.sig_bits,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Pcm":
        name, formats, rates, chan_min, chan_max, sig_bits = _unpack(_PCM, data, "pcm")
        return cls(
            _decode_name(name), PcmFormat(formats), PcmRate(rates), chan_min, chan_max, sig_bits
        )


@dataclass
class Dai:
    """A digital audio interface with its capture and playback streams."""

    name: str
    data_cport: int
    capture: Pcm
    playback: Pcm

    SIZE = struct.calcsize(_DAI_HEAD) + 2 * Pcm.SIZE

    def pack(self) -> bytes:
        head = _pack(_DAI_HEAD, _encode_name(self.name, DAI_NAME_MAX), self.data_cport)
        return head + self.capture.pack() + self.playback.pack()

    @classmethod
    def unpack(cls, data: bytes) -> "Dai":
        if len(data) != cls.SIZE:
            raise ValueError(f"dai must be {cls.SIZE} bytes, got {len(data)}")
        data = bytes(data)
        head_size = struct.calcsize(_DAI_HEAD)
        name, data_cport = struct.unpack_from(_DAI_HEAD, data)
        capture = Pcm.unpack(data[head_size : head_size + Pcm.SIZE])
        playback = Pcm.unpack(data[head_size + Pcm.SIZE :])
        return cls(_decode_name(name), data_cport, capture, playback)


@dataclass
class Route:
    """A route between two widgets through a control."""

    source_id: int
    destination_id: int
    control_id: int
    index: int

    def pack(self) -> bytes:
        return _pack(_ROUTE, self.source_id, self.destination_id, self.control_id, self.index)

    @classmethod
    def unpack(cls, data: bytes) -> "Route":
        return cls(*_unpack(_ROUTE, data, "route"))


@dataclass
class SetPcmRequest:
    """Set PCM request for a data cport."""

    data_cport: int
    format: PcmFormat
    rate: PcmRate
    channels: int
    sig_bits: int

    def pack(self) -> bytes:
        return _pack(
            _SET_PCM,
            self.data_cport,
            int(self.format),
            int(self.rate),
            self.channels,
            self.sig_bits,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "SetPcmRequest":
        data_cport, fmt, rate, channels, sig_bits = _unpack(_SET_PCM, data, "set pcm request")
        return cls(data_cport, PcmFormat(fmt), PcmRate(rate), channels, sig_bits)


@dataclass
class TopologyHeader:
    """Counts and byte sizes of the sections that follow a topology header."""

    num_dais: int
    num_controls: int
    num_widgets: int
    num_routes: int
    size_dais: int
    size_controls: int
    size_widgets: int
    size_routes: int

    SIZE = struct.calcsize(_TOPOLOGY)

    def pack(self) -> bytes:
        return _pack(
            _TOPOLOGY,
            self.num_dais,
            self.num_controls,
            self.num_widgets,
            self.num_routes,
            self.size_dais,
            self.size_controls,
            self.size_widgets,
            self.size_routes,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "TopologyHeader":
        """Read the header from the start of ``data``; section data may follow."""
        if len(data) < cls.SIZE:
            raise ValueError(f"topology header needs {cls.SIZE} bytes, got {len(data)}")
        return cls(*struct.unpack_from(_TOPOLOGY, bytes(data)))

    @property
    def total_size(self) -> int:
        """Size of the whole topology: header plus all sections."""
        return (
            self.SIZE + self.size_dais + self.size_controls + self.size_widgets + self.size_routes
        )
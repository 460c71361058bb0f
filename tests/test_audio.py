import pytest

from greybus.audio import (
    AudioType,
    Dai,
    Pcm,
    PcmFormat,
    PcmRate,
    Route,
    SetPcmRequest,
    TopologyHeader,
    WidgetType,
    PCM_NAME_MAX,
)


def _pcm(name="stream"):
    return Pcm(
        stream_name=name,
        formats=PcmFormat.S16_LE | PcmFormat.S24_LE,
        rates=PcmRate.RATE_44100 | PcmRate.RATE_48000,
        chan_min=1,
        chan_max=2,
        sig_bits=16,
    )


def test_pcm_round_trip_keeps_flags():
    pcm = _pcm()
    data = pcm.pack()
    assert len(data) == Pcm.SIZE
    result = Pcm.unpack(data)
    assert result == pcm
    assert result.formats == PcmFormat.S16_LE | PcmFormat.S24_LE
    assert PcmRate.RATE_48000 in result.rates


def test_pcm_full_length_name():
    name = "n" * PCM_NAME_MAX
    assert Pcm.unpack(_pcm(name).pack()).stream_name == name


def test_pcm_name_too_long():
    with pytest.raises(ValueError):
        _pcm("n" * (PCM_NAME_MAX + 1)).pack()


def test_dai_round_trip():
    dai = Dai(name="i2s", data_cport=7, capture=_pcm("capture"), playback=_pcm("playback"))
    data = dai.pack()
    assert len(data) == Dai.SIZE
    assert Dai.unpack(data) == dai


def test_dai_unpack_wrong_length():
    dai = Dai(name="i2s", data_cport=7, capture=_pcm(), playback=_pcm())
    with pytest.raises(ValueError):
        Dai.unpack(dai.pack()[:-1])


def test_route_wire_bytes():
    route = Route(source_id=1, destination_id=2, control_id=3, index=4)
    assert route.pack() == bytes([1, 2, 3, 4])
    assert Route.unpack(bytes([1, 2, 3, 4])) == route


def test_route_field_out_of_range():
    with pytest.raises(ValueError):
        Route(256, 0, 0, 0).pack()


def test_set_pcm_request_wire_bytes():
    request = SetPcmRequest(
        data_cport=1,
        format=PcmFormat.S16_LE,
        rate=PcmRate.RATE_48000,
        channels=2,
        sig_bits=16,
    )
    assert request.pack() == bytes.fromhex("0100" "04000000" "80000000" "02" "10")
    assert SetPcmRequest.unpack(request.pack()) == request


def test_topology_header_round_trip_with_trailing_data():
    header = TopologyHeader(1, 2, 3, 4, 10, 20, 30, 40)
    data = header.pack()
    assert len(data) == TopologyHeader.SIZE
    assert TopologyHeader.unpack(data + b"\x00" * 100) == header
    assert header.total_size == len(data) + 10 + 20 + 30 + 40


def test_topology_header_too_short():
    with pytest.raises(ValueError):
        TopologyHeader.unpack(b"\x00" * (TopologyHeader.SIZE - 1))


def test_enum_lookups():
    assert AudioType(0x15) is AudioType.SEND_DATA
    assert WidgetType(0x1C) is WidgetType.DAI_LINK
    with pytest.raises(ValueError):
        WidgetType(0x1D)
import pytest

from greybus.manifest import ManifestNotFound, ManifestSource, manifest_size


def _blob(size, filler=b""):
    return size.to_bytes(2, "little") + b"\x00\x01" + filler


def test_manifest_size_reads_little_endian_header():
    assert manifest_size(bytes([0x10, 0x00, 0x00, 0x01])) == 16


def test_manifest_size_rejects_short_blob():
    with pytest.raises(ValueError):
        manifest_size(b"\x10")


def test_get_without_builtin_raises():
    with pytest.raises(ManifestNotFound):
        ManifestSource().get()


def test_get_returns_builtin():
    blob = _blob(4)
    assert ManifestSource(blob).get() == blob


def test_builtin_fragments_by_id():
    first, second = _blob(4), _blob(6, b"ab")
    source = ManifestSource(click_fragments=[first, second])
    assert source.get_fragment(0) == first
    assert source.get_fragment(1) == second
    with pytest.raises(ValueError):
        source.get_fragment(2)


def test_clickid_fragment_trimmed_to_declared_size():
    blob = _blob(8, b"abcd" + b"trailing")
    source = ManifestSource(clickid_fragments={1: blob})
    fragment = source.get_fragment(1)
    assert fragment == blob[: manifest_size(blob)]
    assert len(fragment) == manifest_size(blob)


def test_clickid_fragment_missing():
    with pytest.raises(ManifestNotFound):
        ManifestSource(clickid_fragments={0: _blob(4)}).get_fragment(1)


def test_clickid_fragment_truncated():
    with pytest.raises(ValueError):
        ManifestSource(clickid_fragments={0: _blob(20)}).get_fragment(0)
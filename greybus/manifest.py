"""Sources of the Greybus manifest blob and of its add-on board fragments."""

from __future__ import annotations

import struct
from collections.abc import Mapping, Sequence
from typing import Optional

_HEADER = struct.Struct("<HBB")


class ManifestNotFound(LookupError):
    """No manifest or fragment is available."""


def manifest_size(blob: bytes) -> int:
    """Return the size a manifest declares in its header."""
    if len(blob) < _HEADER.size:
        raise ValueError(f"manifest header needs {_HEADER.size} bytes, got {len(blob)}")
    size, _major, _minor = _HEADER.unpack_from(bytes(blob))
    return size


class ManifestSource:
    """Provides the built-in manifest and the fragments that patch it.

    ``click_fragments`` holds the two built-in fragments; without them,
    fragments are looked up in ``clickid_fragments`` as read from the
    add-on boards' ID memory, by board id.
    """

    def __init__(
        self,
        builtin: Optional[bytes] = None,
        *,
        click_fragments: Optional[Sequence[bytes]] = None,
        clickid_fragments: Optional[Mapping[int, bytes]] = None,
    ) -> None:
        self.builtin = None if builtin is None else bytes(builtin)
        self.click_fragments = (
            None if click_fragments is None else [bytes(f) for f in click_fragments]
        )
        self.clickid_fragments = dict(clickid_fragments or {})

    def get(self) -> bytes:
        if self.builtin is None:
            raise ManifestNotFound("no built-in manifest")
        return self.builtin

    def get_fragment(self, fragment_id: int) -> bytes:
        if self.click_fragments is not None:
            if fragment_id not in (0, 1):
                raise ValueError(f"invalid fragment id {fragment_id}")
            if fragment_id >= len(self.click_fragments):
                raise ManifestNotFound(f"no built-in fragment {fragment_id}")
            return self.click_fragments[fragment_id]

        try:
            blob = self.clickid_fragments[fragment_id]
        except KeyError:
            raise ManifestNotFound(f"no fragment for click id {fragment_id}") from None
        size = manifest_size(blob)
        if size > len(blob):
            raise ValueError(f"fragment declares {size} bytes, holds {len(blob)}")
        return blob[:size]
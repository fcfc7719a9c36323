# GRIB Raster - Test Helpers
# SPDX-License-Identifier: Apache-2.0

"""
Synthetic GRIB framing and a fake codec.

The messages built here carry real GRIB section 0/section framing, but the
section contents are placeholders: each grid is identified by a tag
("field:<name>") in its section 4 (GRIB2) or body (GRIB1), which the fake
codec maps to a GridDefinition and sample array.
"""

import io
import re
import struct

import numpy as np

from gribraster.codec import CodecResult
from gribraster.grid import SCAN_J_POSITIVE, GridDefinition, ProjectionKind

TAG_RE = re.compile(rb"field:([A-Za-z0-9_]+)")


def grib2_section(number: int, body: bytes = b"") -> bytes:
    return struct.pack(">IB", 5 + len(body), number) + body


def bitmap_section(indicator: int, bitmap: bytes = b"") -> bytes:
    return grib2_section(6, bytes([indicator]) + bitmap)


def build_grib2(tags, local_use: bool = False, bitmaps=None) -> bytes:
    """
    GRIB2 message with one sub-grid per tag.

    Args:
        tags: Grid tags, one sub-grid each
        local_use: Include a section 2
        bitmaps: Optional per-tag section 6 bytes (default: no bitmap)
    """
    sections = [grib2_section(1, b"\x00" * 16)]
    if local_use:
        sections.append(grib2_section(2, b"local"))
    sections.append(grib2_section(3, b"\x00" * 9))
    for i, tag in enumerate(tags):
        bitmap = bitmaps[i] if bitmaps else bitmap_section(255)
        sections.extend([
            grib2_section(4, f"field:{tag};".encode()),
            grib2_section(5, b"\x00" * 6),
            bitmap,
            grib2_section(7, b"data"),
        ])
    body = b"".join(sections)
    total = 16 + len(body) + 4
    return b"GRIB\x00\x00\x00\x02" + struct.pack(">Q", total) + body + b"7777"


def build_grib1(tag: str) -> bytes:
    body = f"field:{tag};".encode().ljust(32, b"\x00")
    total = 8 + len(body) + 4
    return b"GRIB" + total.to_bytes(3, "big") + b"\x01" + body + b"7777"


def latlon_definition(**overrides) -> GridDefinition:
    """The 4x3 south-to-north lat/lon grid used throughout the tests"""
    params = dict(
        projection_kind=ProjectionKind.LATLON,
        nx=4,
        ny=3,
        dx=1.0,
        dy=1.0,
        lon1=10.0,
        lat1=50.0,
        major_earth_km=6371.229,
        minor_earth_km=6371.229,
        is_sphere=True,
        scan_mode=SCAN_J_POSITIVE,
    )
    params.update(overrides)
    return GridDefinition(**params)


class FakeCodec:
    """Codec stand-in that counts decode calls"""

    def __init__(self, grids=None, labels=None, fail=None):
        self.grids = grids or {}
        self.labels = labels or {}
        self.fail = set(fail or ())
        self.decode_calls = 0
        self.decoded = []

    @staticmethod
    def tag(message: bytes) -> str:
        tags = TAG_RE.findall(message)
        assert len(tags) == 1, f"expected one grid per message, got {tags}"
        return tags[0].decode()

    def decode(self, message: bytes) -> CodecResult:
        self.decode_calls += 1
        tag = self.tag(message)
        self.decoded.append(tag)
        if tag in self.fail:
            raise RuntimeError(f"corrupt packing for {tag}")
        definition, values = self.grids[tag]
        return CodecResult(
            values=None if values is None else np.array(values, dtype=np.float64),
            definition=definition,
            diagnostics=(f"decoded {tag}",),
        )

    def level_label(self, message: bytes) -> str:
        return self.labels.get(self.tag(message), "")


class CountingStream(io.BytesIO):
    """BytesIO that counts seeks and reads"""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.seeks = 0
        self.reads = 0

    def seek(self, *args, **kwargs):
        self.seeks += 1
        return super().seek(*args, **kwargs)

    def read(self, *args, **kwargs):
        self.reads += 1
        return super().read(*args, **kwargs)

# GRIB Raster - Message Framing
# SPDX-License-Identifier: Apache-2.0

"""
Byte-level framing of GRIB messages.

Handles:
1. Locating "GRIB" markers and reading section 0 (edition 1 and 2)
2. Walking GRIB2 sections to count the sub-grids of a message
3. Cutting one sub-grid out of a multi-grid GRIB2 message as a standalone message

Sample decoding is left to the codec; this module never looks inside
sections 3-7 beyond their lengths (and the bitmap indicator).
"""

from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional
import logging
import struct

from gribraster.errors import FormatError, TruncatedMessage

logger = logging.getLogger(__name__)

GRIB_MARKER = b"GRIB"
END_MARKER = b"7777"

SECTION0_LEN = {1: 8, 2: 16}
SEARCH_CHUNK = 64 * 1024

# Bitmap indicator values (code table 6.0)
BITMAP_PRESENT = 0
BITMAP_PREVIOUS = 254


@dataclass(frozen=True)
class MessageHeader:
    """Section 0 of one message"""

    offset: int
    edition: int
    length: int


@dataclass(frozen=True)
class Section:
    """A GRIB2 section: number and byte span inside its message"""

    number: int
    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length


def parse_section0(buf: bytes, offset: int = 0) -> MessageHeader:
    """
    Parse section 0 at the start of buf.

    Args:
        buf: At least 8 bytes (edition 1) or 16 bytes (edition 2)
        offset: Stream offset of buf, recorded in the header

    Returns:
        MessageHeader with edition and total message length
    """
    if len(buf) < 8 or buf[:4] != GRIB_MARKER:
        raise FormatError(f"No GRIB marker at offset {offset}")

    edition = buf[7]
    if edition == 1:
        length = int.from_bytes(buf[4:7], "big")
    elif edition == 2:
        if len(buf) < 16:
            raise TruncatedMessage(f"Truncated GRIB2 section 0 at offset {offset}")
        (length,) = struct.unpack(">Q", buf[8:16])
    else:
        raise FormatError(f"Unsupported GRIB edition {edition} at offset {offset}")

    if length < SECTION0_LEN[edition] + len(END_MARKER):
        raise FormatError(f"Invalid GRIB message length {length} at offset {offset}")

    return MessageHeader(offset=offset, edition=edition, length=length)


def find_marker(stream: BinaryIO, start: int) -> Optional[int]:
    """Offset of the next "GRIB" marker at or after start, or None at end of stream"""
    stream.seek(start)
    position = start
    carry = b""

    while True:
        chunk = stream.read(SEARCH_CHUNK)
        if not chunk:
            return None
        window = carry + chunk
        found = window.find(GRIB_MARKER)
        if found >= 0:
            return position - len(carry) + found
        # Keep a partial marker split across chunks
        carry = window[-(len(GRIB_MARKER) - 1):]
        position += len(chunk)


def read_message(stream: BinaryIO, offset: int) -> bytes:
    """
    Read the complete message starting at offset.

    Raises:
        FormatError: No marker at offset, message truncated, or end marker missing
    """
    stream.seek(offset)
    head = stream.read(SECTION0_LEN[2])
    header = parse_section0(head, offset)

    remaining = header.length - len(head)
    if remaining < 0:
        message = head[:header.length]
    else:
        message = head + stream.read(remaining)

    if len(message) < header.length:
        raise TruncatedMessage(
            f"Truncated GRIB message at offset {offset}: "
            f"expected {header.length} bytes, got {len(message)}"
        )
    if message[-len(END_MARKER):] != END_MARKER:
        raise FormatError(f"Missing end marker for GRIB message at offset {offset}")

    return message


def iter_messages(stream: BinaryIO) -> Iterator[tuple[int, bytes]]:
    """
    Yield (offset, message bytes) for every message in file order.

    Junk between messages is skipped, including "GRIB" markers that do not
    start a valid message. A message truncated by the end of the stream ends
    the iteration with a warning; messages before it are still yielded.
    """
    position = 0
    while True:
        offset = find_marker(stream, position)
        if offset is None:
            return
        try:
            message = read_message(stream, offset)
        except TruncatedMessage as e:
            logger.warning(f"Stopping scan: {e}")
            return
        except FormatError as e:
            logger.warning(f"Skipping false GRIB marker: {e}")
            position = offset + 1
            continue
        yield offset, message
        position = offset + len(message)


def iter_sections(message: bytes) -> Iterator[Section]:
    """Walk the sections of a GRIB2 message (section 0 and end marker excluded)"""
    header = parse_section0(message)
    if header.edition != 2:
        raise FormatError(f"Section walk requires GRIB2, got edition {header.edition}")

    end = min(header.length, len(message))
    pos = SECTION0_LEN[2]
    while pos < end:
        if message[pos:pos + 4] == END_MARKER:
            return
        if pos + 5 > end:
            break
        (length,) = struct.unpack(">I", message[pos:pos + 4])
        number = message[pos + 4]
        if length < 5 or pos + length > end:
            raise FormatError(f"Invalid length {length} for section {number} at byte {pos}")
        yield Section(number=number, start=pos, length=length)
        pos += length

    raise FormatError("GRIB2 message ended without end marker")


def count_fields(message: bytes) -> int:
    """Number of sub-grids carried by one message"""
    header = parse_section0(message)
    if header.edition == 1:
        return 1
    return sum(1 for section in iter_sections(message) if section.number == 7)


def extract_field(message: bytes, subgrid_index: int) -> bytes:
    """
    Standalone single-grid message for one sub-grid.

    For GRIB2 the result carries section 1, the most recent sections 2 and 3,
    and the sub-grid's sections 4-7. A "previously defined" bitmap is replaced
    by the last explicit one so the field decodes on its own.
    """
    header = parse_section0(message)
    if header.edition == 1:
        if subgrid_index != 0:
            raise FormatError(f"GRIB1 messages have a single grid, asked for {subgrid_index}")
        return message

    identification = None
    local_use = None
    grid_definition = None
    bitmap = None
    pending: list[bytes] = []
    field_index = 0

    for section in iter_sections(message):
        body = message[section.start:section.end]
        if section.number == 1:
            identification = body
        elif section.number == 2:
            local_use = body
        elif section.number == 3:
            grid_definition = body
        elif section.number == 4:
            pending = [body]
        elif section.number == 5:
            pending.append(body)
        elif section.number == 6:
            indicator = body[5] if len(body) > 5 else BITMAP_PRESENT
            if indicator == BITMAP_PRESENT:
                bitmap = body
            elif indicator == BITMAP_PREVIOUS:
                if bitmap is None:
                    raise FormatError("Sub-grid refers to a bitmap that was never defined")
                body = bitmap
            pending.append(body)
        elif section.number == 7:
            pending.append(body)
            if field_index == subgrid_index:
                if identification is None or grid_definition is None:
                    raise FormatError("Sub-grid without identification or grid definition")
                parts = [identification]
                if local_use is not None:
                    parts.append(local_use)
                parts.append(grid_definition)
                parts.extend(pending)
                return _assemble(message[:8], parts)
            field_index += 1
            pending = []

    raise FormatError(f"Sub-grid {subgrid_index} not found (message has {field_index})")


def _assemble(prefix: bytes, sections: list[bytes]) -> bytes:
    body = b"".join(sections)
    total = SECTION0_LEN[2] + len(body) + len(END_MARKER)
    return prefix + struct.pack(">Q", total) + body + END_MARKER

# GRIB Raster - Record Decoder
# SPDX-License-Identifier: Apache-2.0

"""
Decodes one inventory record into a DecodedGrid.

The decoder does not interpret sample order; orientation is handled by the
georeference (scan mode) and the band (row order policy).
"""

from typing import BinaryIO
import logging

from gribraster.codec import GribCodec
from gribraster.errors import DecodeError, FormatError
from gribraster.framing import extract_field, read_message
from gribraster.grid import DecodedGrid, GridMessageRecord

logger = logging.getLogger(__name__)


def decode_record(
    stream: BinaryIO,
    offset: int,
    subgrid_index: int,
    codec: GribCodec,
) -> DecodedGrid:
    """
    Decode the grid at (offset, subgrid_index).

    Codec diagnostics are logged, never raised.

    Raises:
        DecodeError: The message cannot be read (framing or I/O) or
            decoded, has no samples, or reports a grid smaller than 1x1
    """
    where = f"offset {offset} sub-grid {subgrid_index}"

    try:
        message = read_message(stream, offset)
        field = extract_field(message, subgrid_index)
    except (FormatError, OSError, ValueError) as e:
        # ValueError covers reads from a closed stream
        raise DecodeError(f"Cannot read GRIB message at {where}: {e}") from e

    try:
        result = codec.decode(field)
    except Exception as e:  # noqa: BLE001 - any codec failure is a decode failure
        raise DecodeError(f"Codec failed at {where}: {e}") from e

    for diagnostic in result.diagnostics:
        logger.debug(f"GRIB decoder ({where}): {diagnostic}")

    definition = result.definition
    if definition is None or not definition.is_valid:
        size = f"{definition.nx}x{definition.ny}" if definition else "no grid definition"
        raise DecodeError(f"Invalid grid dimensions at {where}: {size}")
    if result.values is None:
        raise DecodeError(f"No sample data at {where}")

    values = result.values.astype("float64", copy=False).ravel()
    if values.size != definition.nx * definition.ny:
        raise DecodeError(
            f"Sample count {values.size} does not match grid "
            f"{definition.nx}x{definition.ny} at {where}"
        )

    return DecodedGrid(values=values, definition=definition)


def decode(stream: BinaryIO, record: GridMessageRecord, codec: GribCodec) -> DecodedGrid:
    """decode_record for an inventory record"""
    return decode_record(stream, record.offset, record.subgrid_index, codec)

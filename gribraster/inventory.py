# GRIB Raster - Inventory Scanner
# SPDX-License-Identifier: Apache-2.0

"""
Single-pass inventory of a GRIB stream.

Produces one GridMessageRecord per grid (every sub-grid of every message),
in file order. The inventory is built once per open; bands are numbered
from it, starting at 1.
"""

from typing import BinaryIO
import logging

from gribraster.codec import GribCodec
from gribraster.errors import FormatError
from gribraster.framing import count_fields, extract_field, iter_messages
from gribraster.grid import GridMessageRecord

logger = logging.getLogger(__name__)


def scan_inventory(stream: BinaryIO, codec: GribCodec) -> list[GridMessageRecord]:
    """
    Scan the whole stream for grid messages.

    Args:
        stream: Seekable binary stream positioned anywhere
        codec: Codec used to label each grid's level

    Returns:
        Records ordered by file position, sub-grids in message order

    Raises:
        FormatError: No grid was found
    """
    records: list[GridMessageRecord] = []

    for offset, message in iter_messages(stream):
        try:
            n_fields = count_fields(message)
        except FormatError as e:
            logger.warning(f"Skipping damaged message at offset {offset}: {e}")
            continue

        for subgrid_index in range(n_fields):
            label = _level_label(codec, message, offset, subgrid_index)
            records.append(GridMessageRecord(
                offset=offset,
                subgrid_index=subgrid_index,
                level_label=label,
            ))

    if not records:
        raise FormatError("No GRIB grid messages found in stream")

    logger.debug(f"Inventory: {len(records)} grids")
    return records


def _level_label(codec: GribCodec, message: bytes, offset: int, subgrid_index: int) -> str:
    try:
        return codec.level_label(extract_field(message, subgrid_index))
    except Exception as e:  # noqa: BLE001 - a label is optional
        logger.debug(f"No level label for offset {offset} sub-grid {subgrid_index}: {e}")
        return ""

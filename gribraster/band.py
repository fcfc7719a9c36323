# GRIB Raster - Raster Bands
# SPDX-License-Identifier: Apache-2.0

"""
Lazily decoded raster bands.

A band holds only its inventory record until the first read, then decodes
the whole grid once and serves every later read from memory. Row 0 is the
northernmost row; the mapping to stored rows follows
ReaderOptions.rows_bottom_up and never consults the message scan mode.
"""

from dataclasses import dataclass
from typing import BinaryIO, Optional
import logging

import numpy as np

from gribraster.codec import GribCodec
from gribraster.config import ReaderOptions
from gribraster.decoder import decode
from gribraster.errors import DecodeError
from gribraster.grid import DecodedGrid, GridDefinition, GridMessageRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetContext:
    """Read-only dataset state shared with every band"""

    stream: BinaryIO
    codec: GribCodec
    nx: int
    ny: int
    options: ReaderOptions


class RasterBand:
    """
    One grid of the dataset.

    Args:
        context: Shared dataset context (stream, codec, dataset size)
        index: 1-based band number
        record: Inventory record locating the grid
        grid: Already decoded grid, if the caller has one
    """

    def __init__(
        self,
        context: DatasetContext,
        index: int,
        record: GridMessageRecord,
        grid: Optional[DecodedGrid] = None,
    ):
        self.context = context
        self.index = index
        self.record = record
        self._grid = grid

    def __repr__(self) -> str:
        state = "loaded" if self.is_loaded else "lazy"
        return f"RasterBand({self.index}, offset={self.record.offset}, {state})"

    @property
    def is_loaded(self) -> bool:
        return self._grid is not None

    @property
    def definition(self) -> Optional[GridDefinition]:
        """Grid definition of this band, once decoded"""
        return self._grid.definition if self._grid is not None else None

    @property
    def nbytes(self) -> int:
        return self._grid.nbytes if self._grid is not None else 0

    def description(self) -> str:
        return self.context.options.describe_band(self.index, self.record.level_label)

    def load(self) -> DecodedGrid:
        """Decode the full grid on first use; later calls return the cached grid"""
        if self._grid is None:
            grid = decode(self.context.stream, self.record, self.context.codec)
            if grid.definition.shape != (self.context.ny, self.context.nx):
                raise DecodeError(
                    f"Band {self.index} grid {grid.definition.nx}x{grid.definition.ny} "
                    f"does not match dataset {self.context.nx}x{self.context.ny}"
                )
            logger.debug(f"Decoded band {self.index} ({grid.nbytes / 1024:.1f} KB)")
            self._grid = grid
        return self._grid

    def stored_row(self, row: int) -> int:
        """Index of the decoded row holding north-up row `row`"""
        ny = self.context.ny
        if not 0 <= row < ny:
            raise IndexError(f"Row {row} out of range for band {self.index} (0..{ny - 1})")
        if self.context.options.rows_bottom_up:
            return ny - 1 - row
        return row

    def read_row(self, row: int) -> np.ndarray:
        """Copy of north-up row `row` (nx float64 samples)"""
        stored = self.stored_row(row)
        return self.load().row(stored)

    def read(self) -> np.ndarray:
        """Whole band as a north-up (ny, nx) array"""
        grid = self.load()
        data = grid.values.reshape(self.context.ny, self.context.nx)
        if self.context.options.rows_bottom_up:
            data = data[::-1, :]
        return data.copy()

    def release(self):
        """Drop the decoded grid; the next read decodes again"""
        self._grid = None

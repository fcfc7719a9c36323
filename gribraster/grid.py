# GRIB Raster - Grid Model
# SPDX-License-Identifier: Apache-2.0

"""
Value types shared by the inventory, decoder, resolver and bands.

- GridMessageRecord: where one band's grid lives in the stream
- GridDefinition: shape, spacing, first point and projection of one grid
- DecodedGrid: flat sample array paired with its definition
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np

# GRIB scanning-mode flags (code table 3.4)
SCAN_I_NEGATIVE = 0x80
SCAN_J_POSITIVE = 0x40
SCAN_J_CONSECUTIVE = 0x20


class ProjectionKind(Enum):
    """Projection families a grid definition can describe"""
    LATLON = "latlon"
    GAUSSIAN_LATLON = "gaussian_latlon"
    MERCATOR = "mercator"
    POLAR_STEREOGRAPHIC = "polar_stereographic"
    LAMBERT = "lambert"
    GEOSTATIONARY = "geostationary"
    EQUATORIAL_EQUIDISTANT = "equatorial_equidistant"
    AZIMUTH_RANGE = "azimuth_range"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class GridMessageRecord:
    """
    Location of one band inside the stream.

    Produced once by the inventory scan, in file order.
    """

    offset: int
    subgrid_index: int
    level_label: str = ""


@dataclass(frozen=True)
class GridDefinition:
    """
    Grid-definition metadata of one decoded message.

    dx/dy are degrees for geographic grids and metres for projected ones.
    Earth radii are in kilometres; zero means "not stated".
    """

    projection_kind: ProjectionKind
    nx: int
    ny: int
    dx: float = 0.0
    dy: float = 0.0
    lon1: float = 0.0
    lat1: float = 0.0
    major_earth_km: float = 0.0
    minor_earth_km: float = 0.0
    is_sphere: bool = True
    scan_mode: int = 0

    # Per-projection parameters
    orient_lon: float = 0.0
    mesh_lat: float = 0.0
    scale_lat1: float = 0.0
    scale_lat2: float = 0.0

    @property
    def is_valid(self) -> bool:
        return self.nx >= 1 and self.ny >= 1

    @property
    def rows_south_to_north(self) -> bool:
        """True when the first row of the message is the southernmost one"""
        return bool(self.scan_mode & SCAN_J_POSITIVE)

    @property
    def columns_east_to_west(self) -> bool:
        """True when the first column of the message is the easternmost one"""
        return bool(self.scan_mode & SCAN_I_NEGATIVE)

    @property
    def shape(self) -> tuple[int, int]:
        """(rows, columns)"""
        return (self.ny, self.nx)


@dataclass
class DecodedGrid:
    """Flat float64 samples in the codec's row order, plus their definition"""

    values: np.ndarray
    definition: GridDefinition

    def row(self, stored_row: int) -> np.ndarray:
        """Copy of one stored row (codec order, no orientation applied)"""
        nx = self.definition.nx
        start = stored_row * nx
        return self.values[start:start + nx].copy()

    @property
    def nbytes(self) -> int:
        return self.values.nbytes

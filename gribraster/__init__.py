# GRIB Raster - Gridded Weather Data as Rasters
# SPDX-License-Identifier: Apache-2.0

"""
Random-access, georeferenced raster view of GRIB files.

Core operations:
1. Inventory: locate every grid (message and sub-grid) in one pass
2. Lazy decode: each band decodes its grid on first read, once
3. Georeference: derive spatial reference and affine transform from the
   first grid's definition
"""

__version__ = "0.1.0"

from gribraster.config import ReaderOptions
from gribraster.dataset import GribDataset, open_dataset
from gribraster.errors import DecodeError, FormatError, GribRasterError, OpenFailed
from gribraster.georef import AffineTransform, SpatialReference, resolve_georeference
from gribraster.grid import GridDefinition, GridMessageRecord, ProjectionKind

__all__ = [
    "ReaderOptions",
    "GribDataset",
    "open_dataset",
    "GribRasterError",
    "FormatError",
    "DecodeError",
    "OpenFailed",
    "AffineTransform",
    "SpatialReference",
    "resolve_georeference",
    "GridDefinition",
    "GridMessageRecord",
    "ProjectionKind",
]

# GRIB Raster - Georeference Resolver
# SPDX-License-Identifier: Apache-2.0

"""
Turns a GridDefinition into a spatial reference and an affine transform.

Each projection family maps through one entry of RESOLVERS. Families the
data has never exercised (equatorial equidistant, azimuth-range, unknown
grid types) fall back to a geographic-only reference.

A projected grid whose first point cannot be transformed opens
ungeoreferenced: identity transform, empty spatial reference, and a warning.
"""

from dataclasses import dataclass
from typing import Callable, Optional
import logging
import math

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from gribraster.errors import GeoreferenceFailure
from gribraster.grid import GridDefinition, ProjectionKind

logger = logging.getLogger(__name__)

# Used when a message states neither earth radius (Airy 1830)
DEFAULT_MAJOR_M = 6377563.396
DEFAULT_MINOR_M = 6356256.910

# Geostationary parameters are not read from the message yet: full disc,
# nominal height, sub-satellite longitude 0
GEOS_HEIGHT_M = 35785831.0
GEOS_EXTENT_M = 11137496.552

UNGEOREFERENCED_WARNING = (
    "Unable to perform coordinate transformations, so the correct projected "
    "geotransform could not be deduced from the lat/long control points. "
    "Defaulting to ungeoreferenced."
)


@dataclass(frozen=True)
class AffineTransform:
    """
    Pixel (column, row) to world (x, y) mapping, in GDAL coefficient order.

    x = x_origin + col * pixel_width + row * row_rotation
    y = y_origin + col * column_rotation + row * pixel_height
    """

    x_origin: float = 0.0
    pixel_width: float = 1.0
    row_rotation: float = 0.0
    y_origin: float = 0.0
    column_rotation: float = 0.0
    pixel_height: float = 1.0

    def as_tuple(self) -> tuple[float, float, float, float, float, float]:
        return (
            self.x_origin,
            self.pixel_width,
            self.row_rotation,
            self.y_origin,
            self.column_rotation,
            self.pixel_height,
        )

    def pixel_to_world(self, col: float, row: float) -> tuple[float, float]:
        x = self.x_origin + col * self.pixel_width + row * self.row_rotation
        y = self.y_origin + col * self.column_rotation + row * self.pixel_height
        return x, y


IDENTITY = AffineTransform()


class SpatialReference:
    """Geographic or projected coordinate system, possibly empty"""

    def __init__(self, crs: Optional[CRS] = None):
        self.crs = crs

    @property
    def is_empty(self) -> bool:
        return self.crs is None

    @property
    def is_projected(self) -> bool:
        return self.crs is not None and self.crs.is_projected

    def to_wkt(self) -> str:
        """WKT export; empty string for an empty reference"""
        if self.crs is None:
            return ""
        return self.crs.to_wkt(version="WKT1_GDAL")

    def __repr__(self) -> str:
        name = self.crs.name if self.crs is not None else "empty"
        return f"SpatialReference({name})"


@dataclass(frozen=True)
class Georeference:
    """Dataset-level geometry derived from the first grid"""

    srs: SpatialReference
    transform: AffineTransform
    warning: Optional[str] = None


def earth_parameters(definition: GridDefinition) -> dict:
    """
    PROJ earth-shape parameters for a grid.

    Radii are converted from km to metres. An ellipsoid that would have no
    flattening (a == b) or no minor axis is treated as a sphere of radius a.
    """
    a = definition.major_earth_km * 1000.0
    b = definition.minor_earth_km * 1000.0
    if a == 0 and b == 0:
        a, b = DEFAULT_MAJOR_M, DEFAULT_MINOR_M

    if definition.is_sphere or b <= 0 or a == b:
        return {"R": a}
    return {"a": a, "rf": a / (a - b)}


def _crs(params: dict, definition: GridDefinition) -> CRS:
    try:
        return CRS.from_dict({**params, **earth_parameters(definition)})
    except CRSError as e:
        raise GeoreferenceFailure(f"Invalid coordinate system {params}: {e}") from e


def _top_edge(y: float, definition: GridDefinition) -> float:
    """Y of the northernmost row, given the Y of the first point"""
    if definition.rows_south_to_north:
        return y + (definition.ny - 1) * definition.dy
    return y


def _left_edge(x: float, definition: GridDefinition) -> float:
    """X of the westernmost column, given the X of the first point"""
    if definition.columns_east_to_west:
        return x - (definition.nx - 1) * definition.dx
    return x


def _resolve_geographic(definition: GridDefinition) -> Georeference:
    crs = _crs({"proj": "longlat"}, definition)
    transform = AffineTransform(
        x_origin=_left_edge(definition.lon1, definition),
        pixel_width=definition.dx,
        y_origin=_top_edge(definition.lat1, definition),
        pixel_height=-definition.dy,
    )
    return Georeference(srs=SpatialReference(crs), transform=transform)


def _project_first_point(crs: CRS, definition: GridDefinition) -> tuple[float, float]:
    geodetic = crs.geodetic_crs
    if geodetic is None:
        raise GeoreferenceFailure(f"{crs.name} has no geodetic coordinate system")
    try:
        transformer = Transformer.from_crs(geodetic, crs, always_xy=True)
        x, y = transformer.transform(definition.lon1, definition.lat1, errcheck=True)
    except (ProjError, CRSError) as e:
        raise GeoreferenceFailure(
            f"Cannot transform ({definition.lon1}, {definition.lat1}): {e}"
        ) from e
    if not (math.isfinite(x) and math.isfinite(y)):
        raise GeoreferenceFailure(
            f"Transform of ({definition.lon1}, {definition.lat1}) is not finite"
        )
    return x, y


def _resolve_projected(definition: GridDefinition, params: dict) -> Georeference:
    crs = _crs(params, definition)
    x, y = _project_first_point(crs, definition)
    transform = AffineTransform(
        x_origin=_left_edge(x, definition),
        pixel_width=definition.dx,
        y_origin=_top_edge(y, definition),
        pixel_height=-definition.dy,
    )
    return Georeference(srs=SpatialReference(crs), transform=transform)


def _resolve_mercator(definition: GridDefinition) -> Georeference:
    return _resolve_projected(definition, {
        "proj": "merc",
        "lat_ts": definition.mesh_lat,
        "lon_0": definition.orient_lon,
    })


def _resolve_polar_stereographic(definition: GridDefinition) -> Georeference:
    return _resolve_projected(definition, {
        "proj": "stere",
        "lat_0": -90.0 if definition.scale_lat1 < 0 else 90.0,
        "lat_ts": definition.scale_lat1,
        "lon_0": definition.orient_lon,
    })


def _resolve_lambert(definition: GridDefinition) -> Georeference:
    return _resolve_projected(definition, {
        "proj": "lcc",
        "lat_1": definition.scale_lat1,
        "lat_2": definition.scale_lat2,
        "lat_0": 0.0,
        "lon_0": definition.orient_lon,
    })


def _resolve_geostationary(definition: GridDefinition) -> Georeference:
    crs = _crs({"proj": "geos", "h": GEOS_HEIGHT_M, "lon_0": 0.0, "sweep": "y"}, definition)
    transform = AffineTransform(
        x_origin=-(GEOS_EXTENT_M / 2),
        pixel_width=GEOS_EXTENT_M / definition.nx,
        y_origin=GEOS_EXTENT_M / 2,
        pixel_height=-(GEOS_EXTENT_M / definition.ny),
    )
    return Georeference(srs=SpatialReference(crs), transform=transform)


RESOLVERS: dict[ProjectionKind, Callable[[GridDefinition], Georeference]] = {
    ProjectionKind.LATLON: _resolve_geographic,
    ProjectionKind.GAUSSIAN_LATLON: _resolve_geographic,
    ProjectionKind.MERCATOR: _resolve_mercator,
    ProjectionKind.POLAR_STEREOGRAPHIC: _resolve_polar_stereographic,
    ProjectionKind.LAMBERT: _resolve_lambert,
    ProjectionKind.GEOSTATIONARY: _resolve_geostationary,
    ProjectionKind.EQUATORIAL_EQUIDISTANT: _resolve_geographic,
    ProjectionKind.AZIMUTH_RANGE: _resolve_geographic,
    ProjectionKind.UNKNOWN: _resolve_geographic,
}

_unmapped = set(ProjectionKind) - set(RESOLVERS)
if _unmapped:
    raise RuntimeError(f"No georeference resolver for {sorted(k.name for k in _unmapped)}")


def resolve_georeference(definition: GridDefinition) -> Georeference:
    """
    Spatial reference and affine transform for a grid.

    Never raises for georeferencing problems: the result is ungeoreferenced
    and carries the warning text instead.
    """
    resolver = RESOLVERS[definition.projection_kind]
    try:
        return resolver(definition)
    except GeoreferenceFailure as e:
        warning = f"{UNGEOREFERENCED_WARNING} ({e})"
        logger.warning(warning)
        return Georeference(srs=SpatialReference(), transform=IDENTITY, warning=warning)

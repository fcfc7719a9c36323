# GRIB Raster - Codec
# SPDX-License-Identifier: Apache-2.0

"""
Boundary to the bit-level GRIB codec.

The codec turns one standalone message into samples plus a GridDefinition.
Every call returns an explicit CodecResult carrying any diagnostics the
codec produced, instead of leaving them in shared state for the caller to
drain.

EccodesCodec delivers samples in a fixed order regardless of the message's
scanning mode: rows south to north, columns west to east.
"""

from dataclasses import dataclass
from typing import Optional, Protocol
import logging

import numpy as np

from gribraster.grid import (
    SCAN_I_NEGATIVE,
    SCAN_J_CONSECUTIVE,
    SCAN_J_POSITIVE,
    GridDefinition,
    ProjectionKind,
)

logger = logging.getLogger(__name__)

GRID_TYPES: dict[str, ProjectionKind] = {
    "regular_ll": ProjectionKind.LATLON,
    "regular_gg": ProjectionKind.GAUSSIAN_LATLON,
    "mercator": ProjectionKind.MERCATOR,
    "polar_stereographic": ProjectionKind.POLAR_STEREOGRAPHIC,
    "lambert": ProjectionKind.LAMBERT,
    "space_view": ProjectionKind.GEOSTATIONARY,
    "equatorial_azimuthal_equidistant": ProjectionKind.EQUATORIAL_EQUIDISTANT,
    "azimuth_range": ProjectionKind.AZIMUTH_RANGE,
}

# Earth shapes (code table 3.2) with fixed dimensions, in metres
SPHERE_SHAPES: dict[int, float] = {
    0: 6367470.0,
    6: 6371229.0,
    8: 6371200.0,
}
OBLATE_SHAPES: dict[int, tuple[float, float]] = {
    2: (6378160.0, 6356775.0),         # IAU 1965
    4: (6378137.0, 6356752.314),       # IAG-GRS80
    5: (6378137.0, 6356752.314245),    # WGS84
    9: (6377563.396, 6356256.909),     # OSGB 1936 (Airy)
}
GRIB1_OBLATE = OBLATE_SHAPES[2]
DEFAULT_RADIUS_M = SPHERE_SHAPES[0]


@dataclass(frozen=True)
class CodecResult:
    """Outcome of decoding one message"""

    values: Optional[np.ndarray]
    definition: Optional[GridDefinition]
    diagnostics: tuple[str, ...] = ()


class GribCodec(Protocol):
    """What the decoder and inventory need from a codec"""

    def decode(self, message: bytes) -> CodecResult:
        ...

    def level_label(self, message: bytes) -> str:
        ...


class EccodesCodec:
    """
    GRIB codec backed by ecCodes.

    Args:
        earth_override: (major, minor) earth radii in km forced onto every
            message, e.g. from ReaderOptions.earth_override()
    """

    def __init__(self, earth_override: Optional[tuple[float, float]] = None):
        self.earth_override = earth_override

    def decode(self, message: bytes) -> CodecResult:
        import eccodes

        handle = eccodes.codes_new_from_message(message)
        try:
            reader = _KeyReader(handle)
            definition = self._grid_definition(reader)
            values = self._values(reader, definition)
            return CodecResult(
                values=values,
                definition=definition,
                diagnostics=tuple(reader.diagnostics),
            )
        finally:
            eccodes.codes_release(handle)

    def level_label(self, message: bytes) -> str:
        """Level description such as "2[m] heightAboveGround" (headers only)"""
        import eccodes

        handle = eccodes.codes_new_from_message(message)
        try:
            reader = _KeyReader(handle)
            level = reader.string("level")
            type_of_level = reader.string("typeOfLevel")
            units = reader.string("unitsOfFirstFixedSurface")
        finally:
            eccodes.codes_release(handle)

        for note in reader.diagnostics:
            logger.debug(f"Level label: {note}")

        if level is None and type_of_level is None:
            return ""
        level_text = level or ""
        if units and units not in ("unknown", "missing"):
            level_text = f"{level_text}[{units}]"
        return " ".join(part for part in (level_text, type_of_level) if part)

    def _grid_definition(self, reader: "_KeyReader") -> GridDefinition:
        grid_type = reader.string("gridType") or ""
        kind = GRID_TYPES.get(grid_type, ProjectionKind.UNKNOWN)
        if kind is ProjectionKind.UNKNOWN:
            reader.note(f"grid type {grid_type!r} has no projection mapping")

        nx = reader.first_long("Ni", "Nx") or 0
        ny = reader.first_long("Nj", "Ny") or 0
        lon1 = reader.double("longitudeOfFirstGridPointInDegrees") or 0.0
        lat1 = reader.double("latitudeOfFirstGridPointInDegrees") or 0.0

        if kind in (ProjectionKind.LATLON, ProjectionKind.GAUSSIAN_LATLON, ProjectionKind.UNKNOWN):
            dx = reader.double("iDirectionIncrementInDegrees")
            dy = reader.double("jDirectionIncrementInDegrees")
            if dy is None and ny > 1:
                # Gaussian grids only state the number of latitudes
                lat2 = reader.double("latitudeOfLastGridPointInDegrees")
                if lat2 is not None:
                    dy = abs(lat2 - lat1) / (ny - 1)
        elif kind is ProjectionKind.MERCATOR:
            dx = reader.double("DiInMetres")
            dy = reader.double("DjInMetres")
        else:
            dx = reader.first_double("DxInMetres", "dx")
            dy = reader.first_double("DyInMetres", "dy")

        scan_mode = reader.long("scanningMode")
        if scan_mode is None:
            scan_mode = 0
            if reader.long("iScansNegatively"):
                scan_mode |= SCAN_I_NEGATIVE
            if reader.long("jScansPositively"):
                scan_mode |= SCAN_J_POSITIVE
            if reader.long("jPointsAreConsecutive"):
                scan_mode |= SCAN_J_CONSECUTIVE

        major_km, minor_km, is_sphere = self._earth_shape(reader)

        mesh_lat = reader.double("LaDInDegrees") or 0.0
        scale_lat1 = reader.double("Latin1InDegrees")
        scale_lat2 = reader.double("Latin2InDegrees")
        if kind is ProjectionKind.POLAR_STEREOGRAPHIC:
            # Polar grids are true at LaD
            scale_lat1 = scale_lat2 = mesh_lat

        return GridDefinition(
            projection_kind=kind,
            nx=int(nx),
            ny=int(ny),
            dx=float(dx or 0.0),
            dy=float(dy or 0.0),
            lon1=float(lon1),
            lat1=float(lat1),
            major_earth_km=major_km,
            minor_earth_km=minor_km,
            is_sphere=is_sphere,
            scan_mode=int(scan_mode),
            orient_lon=float(reader.double("LoVInDegrees") or 0.0),
            mesh_lat=float(mesh_lat),
            scale_lat1=float(scale_lat1 or 0.0),
            scale_lat2=float(scale_lat2 or 0.0),
        )

    def _earth_shape(self, reader: "_KeyReader") -> tuple[float, float, bool]:
        """(major km, minor km, is sphere) for the message"""
        if self.earth_override is not None:
            major, minor = self.earth_override
            return major, minor, major == minor

        shape = reader.long("shapeOfTheEarth")
        if shape is None:
            # GRIB1 only flags the IAU 1965 spheroid
            if reader.long("earthIsOblate"):
                major, minor = GRIB1_OBLATE
                return major / 1000.0, minor / 1000.0, False
            return DEFAULT_RADIUS_M / 1000.0, DEFAULT_RADIUS_M / 1000.0, True

        if shape in SPHERE_SHAPES:
            radius = SPHERE_SHAPES[shape]
            return radius / 1000.0, radius / 1000.0, True
        if shape in OBLATE_SHAPES:
            major, minor = OBLATE_SHAPES[shape]
            return major / 1000.0, minor / 1000.0, False

        if shape == 1:
            radius = reader.scaled("RadiusOfSphericalEarth")
            if radius:
                return radius / 1000.0, radius / 1000.0, True
        elif shape in (3, 7):
            major = reader.scaled("EarthMajorAxis")
            minor = reader.scaled("EarthMinorAxis")
            if major and minor:
                # Shape 3 states its axes in km
                unit = 1.0 if shape == 3 else 1000.0
                return major / unit, minor / unit, False

        reader.note(f"shape of the earth {shape} not usable, assuming the default sphere")
        return DEFAULT_RADIUS_M / 1000.0, DEFAULT_RADIUS_M / 1000.0, True

    def _values(self, reader: "_KeyReader", definition: GridDefinition) -> Optional[np.ndarray]:
        if reader.long("PLPresent"):
            reader.note("quasi-regular (reduced) grids are not supported")
            return None

        values = reader.values()
        if values is None:
            return None

        nx, ny = definition.nx, definition.ny
        if values.size != nx * ny:
            reader.note(f"sample count {values.size} does not match grid {nx}x{ny}")
            return values

        if reader.long("bitmapPresent"):
            missing = reader.double("missingValue")
            if missing is not None:
                values = np.where(values == missing, np.nan, values)

        scan = definition.scan_mode
        if scan & SCAN_J_CONSECUTIVE:
            grid = values.reshape(nx, ny).T
        else:
            grid = values.reshape(ny, nx)
        if not scan & SCAN_J_POSITIVE:
            grid = grid[::-1, :]
        if scan & SCAN_I_NEGATIVE:
            grid = grid[:, ::-1]
        return np.ascontiguousarray(grid, dtype=np.float64).ravel()


class _KeyReader:
    """Reads optional ecCodes keys, turning failures into diagnostics text"""

    def __init__(self, handle):
        import eccodes

        self._eccodes = eccodes
        self.handle = handle
        self.diagnostics: list[str] = []

    def note(self, message: str):
        self.diagnostics.append(message)

    def _get(self, key: str, getter):
        if not self._eccodes.codes_is_defined(self.handle, key):
            return None
        try:
            if self._eccodes.codes_is_missing(self.handle, key):
                return None
            return getter(self.handle, key)
        except self._eccodes.CodesInternalError as e:
            self.note(f"{key}: {e}")
            return None

    def long(self, key: str) -> Optional[int]:
        return self._get(key, self._eccodes.codes_get_long)

    def double(self, key: str) -> Optional[float]:
        return self._get(key, self._eccodes.codes_get_double)

    def string(self, key: str) -> Optional[str]:
        return self._get(key, self._eccodes.codes_get_string)

    def first_long(self, *keys: str) -> Optional[int]:
        for key in keys:
            value = self.long(key)
            if value is not None:
                return value
        return None

    def first_double(self, *keys: str) -> Optional[float]:
        for key in keys:
            value = self.double(key)
            if value is not None:
                return value
        return None

    def scaled(self, name: str) -> Optional[float]:
        """Value of a scaledValueOf<name> / scaleFactorOf<name> key pair"""
        value = self.long(f"scaledValueOf{name}")
        factor = self.long(f"scaleFactorOf{name}")
        if value is None or factor is None:
            return None
        return value / 10.0 ** factor

    def values(self) -> Optional[np.ndarray]:
        try:
            return np.asarray(
                self._eccodes.codes_get_double_array(self.handle, "values"),
                dtype=np.float64,
            )
        except self._eccodes.CodesInternalError as e:
            self.note(f"values: {e}")
            return None

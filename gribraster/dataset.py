# GRIB Raster - Dataset Assembly
# SPDX-License-Identifier: Apache-2.0

"""
Opens a GRIB stream as a georeferenced raster dataset.

Open sequence:
1. Scan the inventory (one record per grid)
2. Decode the first grid: its size becomes the dataset size
3. Resolve the georeference from the first grid's definition
4. Build band 1 around the already decoded grid, the others as lazy records

Any failure before the dataset is complete raises OpenFailed and closes the
stream.
"""

from enum import Enum
from typing import Optional, Sequence
import logging

import numpy as np
import xarray as xr

from gribraster.band import DatasetContext, RasterBand
from gribraster.codec import EccodesCodec, GribCodec
from gribraster.config import ReaderOptions
from gribraster.decoder import decode
from gribraster.errors import DecodeError, FormatError, OpenFailed
from gribraster.georef import AffineTransform, Georeference, SpatialReference, resolve_georeference
from gribraster.inventory import scan_inventory
from gribraster.streams import Source, describe_source, open_stream

logger = logging.getLogger(__name__)


class OpenState(Enum):
    """Stages of opening a dataset, in order"""
    UNOPENED = "unopened"
    INVENTORY_SCANNED = "inventory_scanned"
    GEOMETRY_ESTABLISHED = "geometry_established"
    BANDS_CONSTRUCTED = "bands_constructed"
    OPEN = "open"


class GribDataset:
    """
    Raster view of a GRIB file: one band per grid, shared geometry.

    Use open_dataset() rather than constructing this directly.
    """

    def __init__(
        self,
        context: DatasetContext,
        georeference: Georeference,
        bands: Sequence[RasterBand],
        name: str = "",
    ):
        self.context = context
        self.georeference = georeference
        self._bands = tuple(bands)
        self.name = name
        self.closed = False

    def __repr__(self) -> str:
        return f"GribDataset({self.name!r}, {self.width}x{self.height}, bands={self.band_count})"

    def __enter__(self) -> "GribDataset":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def width(self) -> int:
        return self.context.nx

    @property
    def height(self) -> int:
        return self.context.ny

    @property
    def size(self) -> tuple[int, int]:
        """(nx, ny)"""
        return (self.context.nx, self.context.ny)

    @property
    def band_count(self) -> int:
        return len(self._bands)

    @property
    def bands(self) -> tuple[RasterBand, ...]:
        return self._bands

    def band(self, number: int) -> RasterBand:
        """Band by 1-based number"""
        if not 1 <= number <= len(self._bands):
            raise IndexError(f"Band {number} out of range (1..{len(self._bands)})")
        return self._bands[number - 1]

    @property
    def transform(self) -> AffineTransform:
        return self.georeference.transform

    @property
    def srs(self) -> SpatialReference:
        return self.georeference.srs

    @property
    def warnings(self) -> list[str]:
        """Non-fatal problems found while opening"""
        return [self.georeference.warning] if self.georeference.warning else []

    def geo_transform(self) -> tuple[float, float, float, float, float, float]:
        return self.georeference.transform.as_tuple()

    def projection_ref(self) -> str:
        """WKT of the spatial reference, empty when ungeoreferenced"""
        return self.georeference.srs.to_wkt()

    def to_xarray(self, bands: Optional[Sequence[int]] = None) -> xr.Dataset:
        """
        Export bands as an xarray Dataset.

        Each band becomes a (y, x) variable "band_<n>"; coordinates are pixel
        centres in the dataset's spatial reference.

        Args:
            bands: 1-based band numbers to export (default: all)
        """
        numbers = list(bands) if bands is not None else list(range(1, self.band_count + 1))
        t = self.transform
        x = t.x_origin + (np.arange(self.width) + 0.5) * t.pixel_width
        y = t.y_origin + (np.arange(self.height) + 0.5) * t.pixel_height

        data_vars = {}
        for number in numbers:
            band = self.band(number)
            data_vars[f"band_{number}"] = (
                ("y", "x"),
                band.read(),
                {"description": band.description(), "offset": band.record.offset},
            )

        return xr.Dataset(
            data_vars,
            coords={"y": y, "x": x},
            attrs={
                "source": self.name,
                "crs_wkt": self.projection_ref(),
                "geo_transform": list(self.geo_transform()),
            },
        )

    def close(self):
        """Release every band's decoded grid and close the stream"""
        if self.closed:
            return
        for band in self._bands:
            band.release()
        self.context.stream.close()
        self.closed = True
        logger.debug(f"Closed {self.name}")


def _advance(state: OpenState, new_state: OpenState, name: str) -> OpenState:
    logger.debug(f"{name}: {state.value} -> {new_state.value}")
    return new_state


def _assemble(stream, codec: GribCodec, options: ReaderOptions, name: str) -> GribDataset:
    state = OpenState.UNOPENED

    try:
        records = scan_inventory(stream, codec)
    except (FormatError, OSError) as e:
        raise OpenFailed(f"{name}: no GRIB raster data found: {e}") from e
    state = _advance(state, OpenState.INVENTORY_SCANNED, name)

    # The inventory does not carry grid sizes, so the first grid is decoded
    # now and handed to band 1
    first = records[0]
    try:
        grid = decode(stream, first, codec)
    except (DecodeError, OSError) as e:
        raise OpenFailed(
            f"{name} is a GRIB file, but no raster dataset was successfully identified: {e}"
        ) from e

    definition = grid.definition
    georeference = resolve_georeference(definition)
    context = DatasetContext(
        stream=stream,
        codec=codec,
        nx=definition.nx,
        ny=definition.ny,
        options=options,
    )
    state = _advance(state, OpenState.GEOMETRY_ESTABLISHED, name)

    bands = [RasterBand(context, 1, first, grid=grid)]
    for number, record in enumerate(records[1:], start=2):
        bands.append(RasterBand(context, number, record))
    state = _advance(state, OpenState.BANDS_CONSTRUCTED, name)

    dataset = GribDataset(context, georeference, bands, name=name)
    _advance(state, OpenState.OPEN, name)

    logger.info(
        f"Opened {name}: {definition.nx}x{definition.ny}, {len(bands)} bands, "
        f"{definition.projection_kind.value}"
    )
    return dataset


def open_dataset(
    source: Source,
    codec: Optional[GribCodec] = None,
    options: Optional[ReaderOptions] = None,
) -> GribDataset:
    """
    Open a GRIB source as a raster dataset.

    Args:
        source: Path, http(s) URL, seekable binary file object or bytes.
            The dataset takes ownership of the stream and closes it.
        codec: Message codec (default: ecCodes)
        options: Reader options (default: ReaderOptions())

    Raises:
        OpenFailed: No grid found, or the first grid is unusable
    """
    options = options or ReaderOptions()
    if codec is None:
        codec = EccodesCodec(earth_override=options.earth_override())

    name = describe_source(source)
    try:
        stream = open_stream(source, timeout=options.http_timeout_seconds)
    except OSError as e:
        raise OpenFailed(f"Cannot open {name}: {e}") from e

    try:
        return _assemble(stream, codec, options, name)
    except Exception:
        stream.close()
        raise

# GRIB Raster - Errors
# SPDX-License-Identifier: Apache-2.0

"""
Exception taxonomy for GRIB raster access.

Fatal errors stay local to the operation that raised them: a failed open
never returns a dataset, a failed band read leaves the other bands usable.
"""


class GribRasterError(Exception):
    """Base class for all gribraster errors"""


class FormatError(GribRasterError):
    """The byte stream is not framed as GRIB, or holds no grid messages"""


class TruncatedMessage(FormatError):
    """A message runs past the end of the stream"""


class DecodeError(GribRasterError):
    """A single grid message could not be decoded into a usable grid"""


class OpenFailed(GribRasterError):
    """The stream cannot be opened as a raster dataset"""


class GeoreferenceFailure(GribRasterError):
    """
    A projected grid could not be georeferenced.

    Never escapes the resolver: it is converted into a logged warning and an
    ungeoreferenced (identity) transform.
    """

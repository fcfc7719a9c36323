# GRIB Raster - Test Fixtures
# SPDX-License-Identifier: Apache-2.0

import numpy as np
import pytest

from tests.helpers import CountingStream, FakeCodec, build_grib2, latlon_definition


@pytest.fixture
def example_grids():
    """Two 4x3 grids: samples 0..11 and 100..111, stored south to north"""
    definition = latlon_definition()
    return {
        "t2m": (definition, np.arange(12, dtype=np.float64)),
        "msl": (definition, np.arange(100, 112, dtype=np.float64)),
    }


@pytest.fixture
def example_stream():
    """Two GRIB2 messages, one grid each"""
    return CountingStream(build_grib2(["t2m"]) + build_grib2(["msl"]))


@pytest.fixture
def example_codec(example_grids):
    return FakeCodec(
        example_grids,
        labels={"t2m": "2[m] heightAboveGround", "msl": ""},
    )

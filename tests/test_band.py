# GRIB Raster - Band Tests
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for lazily decoded raster bands.
"""

from unittest.mock import patch

import numpy as np
import pytest
import requests

from gribraster.band import DatasetContext, RasterBand
from gribraster.config import ReaderOptions
from gribraster.errors import DecodeError
from gribraster.grid import GridMessageRecord
from gribraster.inventory import scan_inventory
from tests.helpers import FakeCodec, latlon_definition


def make_band(stream, codec, record, options=None, nx=4, ny=3, index=1):
    context = DatasetContext(
        stream=stream,
        codec=codec,
        nx=nx,
        ny=ny,
        options=options or ReaderOptions(),
    )
    return RasterBand(context, index, record)


class TestLazyDecode:
    """Test decode-once caching"""

    def test_nothing_decoded_before_first_read(self, example_stream, example_codec):
        records = scan_inventory(example_stream, example_codec)
        band = make_band(example_stream, example_codec, records[1], index=2)

        assert not band.is_loaded
        assert band.definition is None
        assert band.nbytes == 0
        assert example_codec.decode_calls == 0

    def test_second_read_hits_cache(self, example_stream, example_codec):
        records = scan_inventory(example_stream, example_codec)
        band = make_band(example_stream, example_codec, records[1], index=2)

        first = band.read_row(0)
        seeks, reads = example_stream.seeks, example_stream.reads
        second = band.read_row(0)
        other = band.read_row(2)

        assert example_codec.decode_calls == 1
        assert example_stream.seeks == seeks
        assert example_stream.reads == reads
        np.testing.assert_array_equal(first, second)
        np.testing.assert_array_equal(other, [100, 101, 102, 103])
        assert band.is_loaded
        assert band.nbytes == 12 * 8

    def test_returned_rows_are_copies(self, example_stream, example_codec):
        records = scan_inventory(example_stream, example_codec)
        band = make_band(example_stream, example_codec, records[0])

        row = band.read_row(0)
        row[:] = -1

        np.testing.assert_array_equal(band.read_row(0), [8, 9, 10, 11])

    def test_release_forces_decode(self, example_stream, example_codec):
        records = scan_inventory(example_stream, example_codec)
        band = make_band(example_stream, example_codec, records[0])

        band.read_row(0)
        band.release()
        assert not band.is_loaded

        band.read_row(0)
        assert example_codec.decode_calls == 2


class TestOrientation:
    """Test north-up row mapping"""

    def test_bottom_up_rows(self, example_stream, example_codec):
        records = scan_inventory(example_stream, example_codec)
        band = make_band(example_stream, example_codec, records[0])

        np.testing.assert_array_equal(band.read_row(0), [8, 9, 10, 11])
        np.testing.assert_array_equal(band.read_row(2), [0, 1, 2, 3])
        assert band.stored_row(0) == 2

    def test_top_down_rows(self, example_stream, example_codec):
        records = scan_inventory(example_stream, example_codec)
        band = make_band(
            example_stream, example_codec, records[0],
            options=ReaderOptions(rows_bottom_up=False),
        )

        np.testing.assert_array_equal(band.read_row(0), [0, 1, 2, 3])
        assert band.stored_row(0) == 0

    def test_flip_ignores_scan_mode(self, example_stream, example_grids):
        """Orientation comes from the options, not the message"""
        north_first = latlon_definition(scan_mode=0, lat1=52.0)
        codec = FakeCodec({
            "t2m": (north_first, example_grids["t2m"][1]),
            "msl": example_grids["msl"],
        })
        records = scan_inventory(example_stream, codec)
        band = make_band(example_stream, codec, records[0])

        np.testing.assert_array_equal(band.read_row(0), [8, 9, 10, 11])

    def test_read_whole_band(self, example_stream, example_codec):
        records = scan_inventory(example_stream, example_codec)
        band = make_band(example_stream, example_codec, records[0])

        data = band.read()

        assert data.shape == (3, 4)
        np.testing.assert_array_equal(data[0], [8, 9, 10, 11])
        np.testing.assert_array_equal(data[:, 0], [8, 4, 0])

    @pytest.mark.parametrize("row", [-1, 3, 100])
    def test_row_out_of_range(self, example_stream, example_codec, row):
        records = scan_inventory(example_stream, example_codec)
        band = make_band(example_stream, example_codec, records[0])

        with pytest.raises(IndexError, match="out of range"):
            band.read_row(row)
        assert example_codec.decode_calls == 0


class TestBandErrors:
    """Test per-band decode failures"""

    def test_shape_mismatch(self, example_stream, example_grids):
        codec = FakeCodec({
            "t2m": example_grids["t2m"],
            "msl": (latlon_definition(nx=2, ny=2), np.zeros(4)),
        })
        records = scan_inventory(example_stream, codec)
        band = make_band(example_stream, codec, records[1], index=2)

        with pytest.raises(DecodeError, match="does not match dataset 4x3"):
            band.read_row(0)
        assert not band.is_loaded

    def test_codec_failure(self, example_stream, example_grids):
        codec = FakeCodec(example_grids, fail={"msl"})
        records = scan_inventory(example_stream, codec)
        band = make_band(example_stream, codec, records[1], index=2)

        with pytest.raises(DecodeError, match="corrupt packing"):
            band.read()

    def test_bad_offset(self, example_stream, example_codec):
        band = make_band(example_stream, example_codec, GridMessageRecord(offset=3, subgrid_index=0))

        with pytest.raises(DecodeError, match="Cannot read GRIB message"):
            band.read_row(0)

    @pytest.mark.parametrize("error", [
        OSError("disk read failed"),
        requests.exceptions.ConnectionError("connection reset"),
    ])
    def test_stream_failure(self, example_stream, example_codec, error):
        records = scan_inventory(example_stream, example_codec)
        band = make_band(example_stream, example_codec, records[1], index=2)

        with patch.object(example_stream, "read", side_effect=error):
            with pytest.raises(DecodeError, match="Cannot read GRIB message") as excinfo:
                band.read_row(0)

        assert excinfo.value.__cause__ is error
        assert not band.is_loaded

    def test_closed_stream(self, example_stream, example_codec):
        records = scan_inventory(example_stream, example_codec)
        band = make_band(example_stream, example_codec, records[0])
        example_stream.close()

        with pytest.raises(DecodeError, match="Cannot read GRIB message"):
            band.read()


class TestDescription:
    """Test band descriptions"""

    def test_level_label(self, example_stream, example_codec):
        band = make_band(
            example_stream, example_codec,
            GridMessageRecord(offset=0, subgrid_index=0, level_label="500[hPa] isobaricInhPa"),
        )
        assert band.description() == "500[hPa] isobaricInhPa"

    def test_default_description(self, example_stream, example_codec):
        band = make_band(example_stream, example_codec, GridMessageRecord(0, 0), index=7)
        assert band.description() == "Band 7"

    def test_custom_template(self, example_stream, example_codec):
        options = ReaderOptions(default_description="grid #{index}")
        band = make_band(example_stream, example_codec, GridMessageRecord(0, 0), options=options, index=2)
        assert band.description() == "grid #2"

#!/usr/bin/env python3
# GRIB Raster - CLI
# SPDX-License-Identifier: Apache-2.0

"""
Command-line interface for inspecting GRIB files as rasters.

Usage:
    grib-raster info gfs.t00z.pgrb2.0p25.f000
    grib-raster inventory gfs.t00z.pgrb2.0p25.f000
    grib-raster row gfs.t00z.pgrb2.0p25.f000 --band 3 --row 0
"""

import logging
import sys

import click
import numpy as np
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gribraster import __version__

console = Console()


def _open(source: str):
    from gribraster.config import ReaderOptions
    from gribraster.dataset import open_dataset
    from gribraster.errors import OpenFailed

    try:
        return open_dataset(source, options=ReaderOptions.from_env())
    except OpenFailed as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="grib-raster")
@click.option("--verbose", "-v", is_flag=True, help="Show decoder diagnostics")
def main(verbose: bool):
    """
    GRIB Raster - gridded weather data as georeferenced rasters.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)


@main.command()
@click.argument("source")
def info(source: str):
    """
    Show size, bands, geotransform and projection of a GRIB file.
    """
    with _open(source) as ds:
        table = Table(title=f"GRIB: {ds.name}", show_header=False)
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Size", f"{ds.width} x {ds.height}")
        table.add_row("Bands", str(ds.band_count))
        table.add_row("Geotransform", ", ".join(f"{c:.6f}" for c in ds.geo_transform()))
        table.add_row("Projection", ds.srs.crs.name if not ds.srs.is_empty else "(none)")

        console.print(table)

        for warning in ds.warnings:
            console.print(f"[yellow]Warning: {escape(warning)}[/]")

        wkt = ds.projection_ref()
        if wkt:
            console.print(Panel(Text(wkt), title="Spatial Reference (WKT)", border_style="blue"))


@main.command()
@click.argument("source")
def inventory(source: str):
    """
    List every band with its message offset, sub-grid and level.
    """
    with _open(source) as ds:
        table = Table(title=f"Inventory: {ds.name}")
        table.add_column("Band", style="cyan", justify="right")
        table.add_column("Offset", style="green", justify="right")
        table.add_column("Sub-grid", justify="right")
        table.add_column("Description", style="magenta")

        for band in ds.bands:
            table.add_row(
                str(band.index),
                str(band.record.offset),
                str(band.record.subgrid_index),
                escape(band.description()),
            )

        console.print(table)


@main.command()
@click.argument("source")
@click.option("--band", "band_number", type=int, default=1, help="1-based band number (default: 1)")
@click.option("--row", type=int, default=0, help="Row index, 0 = northernmost (default: 0)")
def row(source: str, band_number: int, row: int):
    """
    Print the samples of one row of one band.
    """
    from gribraster.errors import DecodeError

    with _open(source) as ds:
        try:
            values = ds.band(band_number).read_row(row)
        except (IndexError, DecodeError) as e:
            console.print(f"[red]Error: {escape(str(e))}[/]")
            sys.exit(1)

        console.print(f"[dim]Band {band_number}, row {row} ({values.size} samples)[/]")
        console.print(np.array2string(values, precision=4, threshold=sys.maxsize))


if __name__ == "__main__":
    main()

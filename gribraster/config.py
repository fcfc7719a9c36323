# GRIB Raster - Reader Options
# SPDX-License-Identifier: Apache-2.0

"""
Options controlling how GRIB files are opened and read.

Environment Variables:
- GRIBRASTER_MAJOR_EARTH_KM: Override the major earth radius (km, >= 6000 to take effect)
- GRIBRASTER_MINOR_EARTH_KM: Override the minor earth radius (km, >= 6000 to take effect)
- GRIBRASTER_ROWS_BOTTOM_UP: Whether decoded rows are stored south to north (default: true)
- GRIBRASTER_DEFAULT_DESCRIPTION: Band description template (default: "Band {index}")
- GRIBRASTER_HTTP_TIMEOUT: Timeout for HTTP range requests in seconds (default: 30)
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

# Radii below this are treated as "no override"
MIN_EARTH_OVERRIDE_KM = 6000.0

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ReaderOptions(BaseModel):
    """Open/read options for GRIB datasets"""

    major_earth_km: float = Field(0.0, ge=0, description="Major earth radius override (km)")
    minor_earth_km: float = Field(0.0, ge=0, description="Minor earth radius override (km)")

    # The codec stores rows south to north, so row 0 (north) is the last stored row.
    # Applied regardless of the message scan mode.
    rows_bottom_up: bool = Field(True, description="Decoded rows run south to north")

    default_description: str = Field(
        "Band {index}", description="Description used when a band has no level label"
    )
    http_timeout_seconds: float = Field(30.0, gt=0, description="HTTP request timeout")

    @field_validator("default_description")
    @classmethod
    def _check_template(cls, value: str) -> str:
        try:
            value.format(index=1)
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid description template {value!r}: {e}") from e
        return value

    def earth_override(self) -> Optional[tuple[float, float]]:
        """
        Earth radii (major, minor) in km to force onto every message, if any.

        A single usable override makes a sphere of that radius.
        """
        major = self.major_earth_km if self.major_earth_km >= MIN_EARTH_OVERRIDE_KM else 0.0
        minor = self.minor_earth_km if self.minor_earth_km >= MIN_EARTH_OVERRIDE_KM else 0.0
        if not major:
            return None
        return (major, minor or major)

    def describe_band(self, index: int, level_label: str) -> str:
        if level_label:
            return level_label
        return self.default_description.format(index=index)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ReaderOptions":
        """Build options from GRIBRASTER_* environment variables"""
        env = os.environ if environ is None else environ
        values = {}

        if "GRIBRASTER_MAJOR_EARTH_KM" in env:
            values["major_earth_km"] = float(env["GRIBRASTER_MAJOR_EARTH_KM"])
        if "GRIBRASTER_MINOR_EARTH_KM" in env:
            values["minor_earth_km"] = float(env["GRIBRASTER_MINOR_EARTH_KM"])
        if "GRIBRASTER_ROWS_BOTTOM_UP" in env:
            values["rows_bottom_up"] = _parse_bool(
                "GRIBRASTER_ROWS_BOTTOM_UP", env["GRIBRASTER_ROWS_BOTTOM_UP"]
            )
        if "GRIBRASTER_DEFAULT_DESCRIPTION" in env:
            values["default_description"] = env["GRIBRASTER_DEFAULT_DESCRIPTION"]
        if "GRIBRASTER_HTTP_TIMEOUT" in env:
            values["http_timeout_seconds"] = float(env["GRIBRASTER_HTTP_TIMEOUT"])

        return cls(**values)


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")

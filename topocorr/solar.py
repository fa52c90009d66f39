"""
Solar Angles

Carries the scene-constant solar elevation and azimuth supplied by scene
metadata. Angles are converted to radians once, at the boundary, using an
explicit unit.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict

from topocorr.exceptions import InvalidSolarGeometryError

VALID_UNITS = ("degrees", "radians")


def _to_degrees(value: float, units: str) -> float:
    if units not in VALID_UNITS:
        raise ValueError(f"units must be one of {VALID_UNITS}, got {units!r}")
    value = float(value)
    return math.degrees(value) if units == "radians" else value


@dataclass(frozen=True)
class SolarAngles:
    """
    Solar elevation and azimuth for a single capture time.

    Attributes:
        elevation_deg: Sun height above the horizon, (0, 90] degrees
        azimuth_deg: Compass bearing from observer to sun, [0, 360) degrees
    """

    elevation_deg: float
    azimuth_deg: float

    def __post_init__(self):
        elevation, azimuth = self.elevation_deg, self.azimuth_deg
        if not (math.isfinite(elevation) and math.isfinite(azimuth)):
            raise InvalidSolarGeometryError("angles must be finite", elevation, azimuth)
        if not 0.0 < elevation <= 90.0:
            raise InvalidSolarGeometryError("sun must be above the horizon", elevation, azimuth)
        object.__setattr__(self, "azimuth_deg", azimuth % 360.0)

    @classmethod
    def create(cls, elevation: float, azimuth: float, units: str = "degrees") -> "SolarAngles":
        """
        Build solar angles from elevation and azimuth in the given units.

        Args:
            elevation: Solar elevation above the horizon
            azimuth: Solar azimuth, clockwise from north
            units: "degrees" or "radians"
        """
        return cls(_to_degrees(elevation, units), _to_degrees(azimuth, units))

    @classmethod
    def from_zenith(cls, zenith: float, azimuth: float, units: str = "degrees") -> "SolarAngles":
        """Build solar angles from zenith (90 deg - elevation) and azimuth."""
        return cls(90.0 - _to_degrees(zenith, units), _to_degrees(azimuth, units))

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "SolarAngles":
        """
        Create from a metadata dictionary.

        Accepts either "elevation" or "zenith" alongside "azimuth", and an
        optional "units" entry (defaults to degrees).
        """
        units = params.get("units", "degrees")
        if "elevation" in params:
            return cls.create(params["elevation"], params["azimuth"], units)
        if "zenith" in params:
            return cls.from_zenith(params["zenith"], params["azimuth"], units)
        raise KeyError("Solar angles need 'elevation' or 'zenith' and 'azimuth'")

    @property
    def elevation(self) -> float:
        """Solar elevation in radians."""
        return math.radians(self.elevation_deg)

    @property
    def zenith(self) -> float:
        """Solar zenith in radians."""
        return math.radians(90.0 - self.elevation_deg)

    @property
    def azimuth(self) -> float:
        """Solar azimuth in radians."""
        return math.radians(self.azimuth_deg)

    @property
    def cos_zenith(self) -> float:
        return math.cos(self.zenith)

    def to_dict(self) -> Dict[str, float]:
        return {
            "elevation_deg": self.elevation_deg,
            "zenith_deg": 90.0 - self.elevation_deg,
            "azimuth_deg": self.azimuth_deg,
        }

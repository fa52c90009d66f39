"""
Terrain Parameter Extraction

Derives slope and aspect rasters from a digital elevation grid using the
Horn (1981) 3x3 weighted finite-difference operator.

Conventions:
    - Row 0 is the northern edge of the grid, columns increase eastward.
    - Slope is in radians, 0 = flat.
    - Aspect is the compass bearing of the downslope direction in radians,
      0 = north, pi/2 = east, normalised to [0, 2*pi).
    - Flat cells (gradient magnitude below FLAT_GRADIENT_TOLERANCE) get
      slope 0 and aspect 0. Aspect has no influence on illumination when
      slope is 0.
    - Border cells: the grid is padded by one cell with odd reflection
      (2*z_edge - z_inner), a linear extrapolation, so the full 3x3 stencil
      applies everywhere and planar terrain has exact border slope/aspect.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

import numpy as np

from topocorr.exceptions import InvalidGridError

logger = logging.getLogger(__name__)

FLAT_GRADIENT_TOLERANCE = 1e-12

CellSize = Union[float, Tuple[float, float]]


@dataclass(frozen=True)
class TerrainParameters:
    """
    Co-registered slope and aspect grids derived from one elevation grid.

    Arrays are marked read-only once computed.
    """

    slope: np.ndarray  # radians, shape (H, W)
    aspect: np.ndarray  # radians from north, clockwise, shape (H, W)
    cell_size: Tuple[float, float]  # (x_res, y_res)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.slope.shape

    @classmethod
    def from_elevation(cls, elevation: np.ndarray, cell_size: CellSize) -> "TerrainParameters":
        """Compute terrain parameters from an elevation grid."""
        return compute_slope_aspect(elevation, cell_size)

    def summary(self) -> Dict[str, Any]:
        """Summary statistics in degrees, for diagnostics."""
        slope_deg = np.degrees(self.slope)
        finite = np.isfinite(slope_deg)
        if not np.any(finite):
            return {"slope_mean_deg": None, "slope_max_deg": None, "flat_fraction": None}
        return {
            "slope_mean_deg": float(np.mean(slope_deg[finite])),
            "slope_max_deg": float(np.max(slope_deg[finite])),
            "flat_fraction": float(np.mean(self.slope[finite] == 0.0)),
        }


def _resolve_cell_size(cell_size: CellSize) -> Tuple[float, float]:
    if np.isscalar(cell_size):
        x_res = y_res = float(cell_size)
    else:
        values = tuple(float(v) for v in cell_size)
        if len(values) != 2:
            raise InvalidGridError(f"cell_size must be a scalar or (x_res, y_res), got {cell_size!r}")
        x_res, y_res = values

    if not (np.isfinite(x_res) and np.isfinite(y_res)) or x_res <= 0 or y_res <= 0:
        raise InvalidGridError(f"cell spacing must be positive, got ({x_res}, {y_res})")
    return x_res, y_res


def validate_elevation(elevation: np.ndarray) -> np.ndarray:
    """
    Check that an elevation grid is a 2D array with at least 2x2 cells.

    Returns:
        The grid as a float64 array
    """
    elevation = np.asarray(elevation, dtype=np.float64)
    if elevation.ndim != 2:
        raise InvalidGridError("elevation grid must be 2D", shape=elevation.shape)
    if elevation.shape[0] < 2 or elevation.shape[1] < 2:
        raise InvalidGridError("elevation grid needs at least 2 rows and 2 columns", shape=elevation.shape)
    return elevation


def horn_gradient(elevation: np.ndarray, x_res: float, y_res: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Horn 3x3 partial derivatives of elevation.

    Args:
        elevation: Elevation grid, shape (H, W), H and W >= 2
        x_res: Cell width
        y_res: Cell height

    Returns:
        Tuple of (dz/dx toward east, dz/dy toward north)
    """
    z = np.pad(elevation, 1, mode="reflect", reflect_type="odd")

    # Neighbourhood layout:  a b c / d e f / g h i
    a = z[:-2, :-2]
    b = z[:-2, 1:-1]
    c = z[:-2, 2:]
    d = z[1:-1, :-2]
    f = z[1:-1, 2:]
    g = z[2:, :-2]
    h = z[2:, 1:-1]
    i = z[2:, 2:]

    dz_dx = ((c + 2.0 * f + i) - (a + 2.0 * d + g)) / (8.0 * x_res)
    dz_dy = ((a + 2.0 * b + c) - (g + 2.0 * h + i)) / (8.0 * y_res)
    return dz_dx, dz_dy


def compute_slope_aspect(elevation: np.ndarray, cell_size: CellSize) -> TerrainParameters:
    """
    Derive slope and aspect grids from an elevation grid.

    Args:
        elevation: Elevation grid, shape (H, W)
        cell_size: Cell spacing in elevation units, scalar or (x_res, y_res)

    Returns:
        TerrainParameters with slope/aspect of the same shape as the grid

    Raises:
        InvalidGridError: If cell spacing is not positive or the grid is
            not 2D with at least 2 rows and 2 columns
    """
    x_res, y_res = _resolve_cell_size(cell_size)
    elevation = validate_elevation(elevation)

    dz_dx, dz_dy = horn_gradient(elevation, x_res, y_res)
    gradient = np.hypot(dz_dx, dz_dy)

    slope = np.arctan(gradient)
    aspect = np.mod(np.arctan2(-dz_dx, -dz_dy), 2.0 * np.pi)
    aspect[aspect >= 2.0 * np.pi] = 0.0

    flat = gradient < FLAT_GRADIENT_TOLERANCE
    slope[flat] = 0.0
    aspect[flat] = 0.0

    # The Horn stencil ignores the centre cell, so mask missing elevations explicitly
    missing = ~np.isfinite(elevation)
    slope[missing] = np.nan
    aspect[missing] = np.nan

    slope.setflags(write=False)
    aspect.setflags(write=False)

    logger.debug(
        f"Terrain parameters for {elevation.shape} grid: "
        f"{int(np.sum(flat))} flat cells, cell size=({x_res}, {y_res})"
    )

    return TerrainParameters(slope=slope, aspect=aspect, cell_size=(x_res, y_res))

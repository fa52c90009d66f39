"""
Illumination Model

Computes the cosine of the solar incidence angle for every pixel:

    cos(i) = cos(slope) * cos(zenith) + sin(slope) * sin(zenith) * cos(azimuth - aspect)

Values are left unclamped in [-1, 1]; values at or below zero mark
self-shadowed terrain. Callers that divide by cos(i) floor it with
clamp_illumination.
"""

import logging
from typing import Tuple

import numpy as np

from topocorr.exceptions import InvalidGridError
from topocorr.solar import SolarAngles
from topocorr.terrain import TerrainParameters

logger = logging.getLogger(__name__)


def illumination_from_arrays(
    slope: np.ndarray,
    aspect: np.ndarray,
    zenith: float,
    azimuth: float,
) -> np.ndarray:
    """
    Cosine of the incidence angle. All input geometry units are radians.

    Args:
        slope: Ground slope
        aspect: Ground aspect
        zenith: Solar zenith angle (scalar)
        azimuth: Solar azimuth angle (scalar)

    Returns:
        cos(i) array with the shape of slope
    """
    slope = np.asarray(slope, dtype=np.float64)
    aspect = np.asarray(aspect, dtype=np.float64)
    if slope.shape != aspect.shape:
        raise InvalidGridError("slope and aspect must be co-registered", shape=aspect.shape, expected_shape=slope.shape)

    return (
        np.cos(slope) * np.cos(zenith)
        + np.sin(slope) * np.sin(zenith) * np.cos(azimuth - aspect)
    )


def compute_illumination(terrain: TerrainParameters, solar: SolarAngles) -> np.ndarray:
    """
    Illumination map for a scene.

    Args:
        terrain: Slope and aspect grids
        solar: Scene solar angles

    Returns:
        Read-only cos(i) grid with the terrain's shape
    """
    cos_i = illumination_from_arrays(terrain.slope, terrain.aspect, solar.zenith, solar.azimuth)
    cos_i.setflags(write=False)

    finite = np.isfinite(cos_i)
    if np.any(finite):
        logger.debug(
            f"Illumination range: {np.min(cos_i[finite]):.4f} - {np.max(cos_i[finite]):.4f}, "
            f"{int(np.sum(cos_i[finite] <= 0))} self-shadowed pixels"
        )
    return cos_i


def shadow_mask(cos_i: np.ndarray, floor: float) -> np.ndarray:
    """Pixels whose illumination is at or below the floor."""
    return np.asarray(cos_i) <= floor


def clamp_illumination(cos_i: np.ndarray, floor: float) -> Tuple[np.ndarray, int]:
    """
    Floor illumination values for use in a denominator.

    Args:
        cos_i: Illumination map
        floor: Smallest value allowed

    Returns:
        Tuple of (floored copy, number of finite pixels raised to the floor)
    """
    cos_i = np.asarray(cos_i, dtype=np.float64)
    clamped = (cos_i < floor) & np.isfinite(cos_i)
    return np.where(clamped, floor, cos_i), int(np.sum(clamped))

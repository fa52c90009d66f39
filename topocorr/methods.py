"""
Topographic Correction Formulas

Elementwise correction of one band given its illumination map and fitted
scalar parameters. Each apply function returns the corrected band and the
number of pixels whose denominator had to be floored.

Methods:
    - c: L * (cos(sz) + C) / (cos(i) + C)                 (Teillet et al., 1982)
    - minnaert: L * (cos(sz) / cos(i)) ** k               (Minnaert, 1941)
    - stat: L - (A * cos(i) + B) + mean(L)                (Teillet et al., 1982)
    - cosine: L * cos(sz) / cos(i)
    - avgcosine: L + L * (mean(cos(i)) - cos(i)) / mean(cos(i))
    - illu: the illumination map itself
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

import numpy as np

from topocorr.illumination import clamp_illumination


class CorrectionMethod(Enum):
    """Available topographic correction methods."""
    C = "c"
    MINNAERT = "minnaert"
    STAT = "stat"
    COSINE = "cosine"
    AVGCOSINE = "avgcosine"
    ILLU = "illu"


METHOD_ALIASES = {
    "c_correction": "c",
    "statistical": "stat",
    "avg_cosine": "avgcosine",
    "illumination": "illu",
}


@dataclass(frozen=True)
class MethodInfo:
    """Registry entry describing a correction method."""

    method: CorrectionMethod
    name: str
    requires_fit: bool
    uses_n_strat: bool = False
    citation: str = ""


CORRECTION_METHODS = {
    "c": MethodInfo(
        CorrectionMethod.C, "C-correction", requires_fit=True,
        citation="Teillet, Guindon & Goodenough (1982)",
    ),
    "minnaert": MethodInfo(
        CorrectionMethod.MINNAERT, "Minnaert correction", requires_fit=True, uses_n_strat=True,
        citation="Minnaert (1941); Law & Nichol (2004)",
    ),
    "stat": MethodInfo(
        CorrectionMethod.STAT, "Statistical-empirical correction", requires_fit=True,
        citation="Teillet, Guindon & Goodenough (1982)",
    ),
    "cosine": MethodInfo(CorrectionMethod.COSINE, "Cosine correction", requires_fit=False),
    "avgcosine": MethodInfo(CorrectionMethod.AVGCOSINE, "Average cosine correction", requires_fit=False),
    "illu": MethodInfo(CorrectionMethod.ILLU, "Illumination map", requires_fit=False),
}


def normalize_method_name(method) -> str:
    """
    Canonical method name for a name, alias or CorrectionMethod.

    Raises:
        KeyError: If the method is unknown
    """
    if isinstance(method, CorrectionMethod):
        return method.value
    name = str(method).strip().lower()
    name = METHOD_ALIASES.get(name, name)
    if name not in CORRECTION_METHODS:
        available = ", ".join(CORRECTION_METHODS.keys())
        raise KeyError(f"Unknown correction method: {method}. Available: {available}")
    return name


def get_method(method) -> MethodInfo:
    """
    Get method information by name.

    Args:
        method: Method name (e.g., "minnaert"), alias or CorrectionMethod

    Returns:
        MethodInfo

    Raises:
        KeyError: If the method is not found
    """
    return CORRECTION_METHODS[normalize_method_name(method)]


def list_methods() -> List[Tuple[str, MethodInfo]]:
    """List all available correction methods as (name, info) tuples."""
    return list(CORRECTION_METHODS.items())


def apply_c_correction(
    radiance: np.ndarray,
    cos_i: np.ndarray,
    cos_zenith: float,
    c: float,
    floor: float,
) -> Tuple[np.ndarray, int]:
    """C-correction. A non-finite C is the identity limit."""
    radiance = np.asarray(radiance, dtype=np.float64)
    if not math.isfinite(c):
        return radiance.copy(), 0

    denominator = np.asarray(cos_i, dtype=np.float64) + c
    singular = (np.abs(denominator) < floor) & np.isfinite(denominator)
    denominator = np.where(singular, np.copysign(floor, denominator), denominator)

    return radiance * (cos_zenith + c) / denominator, int(np.sum(singular))


def apply_minnaert_correction(
    radiance: np.ndarray,
    cos_i: np.ndarray,
    cos_zenith: float,
    k: float,
    floor: float,
) -> Tuple[np.ndarray, int]:
    """Minnaert correction with exponent k."""
    safe_cos_i, clamped = clamp_illumination(cos_i, floor)
    factor = (cos_zenith / safe_cos_i) ** k
    return np.asarray(radiance, dtype=np.float64) * factor, clamped


def apply_statistical_correction(
    radiance: np.ndarray,
    cos_i: np.ndarray,
    a: float,
    b: float,
    mean: float,
) -> Tuple[np.ndarray, int]:
    """Statistical-empirical correction; no division, nothing is clamped."""
    radiance = np.asarray(radiance, dtype=np.float64)
    return radiance - (a * np.asarray(cos_i, dtype=np.float64) + b) + mean, 0


def apply_cosine_correction(
    radiance: np.ndarray,
    cos_i: np.ndarray,
    cos_zenith: float,
    floor: float,
) -> Tuple[np.ndarray, int]:
    """Cosine (Lambertian) correction."""
    safe_cos_i, clamped = clamp_illumination(cos_i, floor)
    return np.asarray(radiance, dtype=np.float64) * cos_zenith / safe_cos_i, clamped


def apply_avgcosine_correction(
    radiance: np.ndarray,
    cos_i: np.ndarray,
    mean_cos_i: float,
) -> Tuple[np.ndarray, int]:
    """Average-cosine correction relative to the scene mean illumination."""
    radiance = np.asarray(radiance, dtype=np.float64)
    cos_i = np.asarray(cos_i, dtype=np.float64)
    return radiance + radiance * (mean_cos_i - cos_i) / mean_cos_i, 0

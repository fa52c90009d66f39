"""
Correction Parameter Estimation

Per-band regressions of radiance against illumination:

    - C-method: OLS  L = m * cos(i) + b,  C = b / m
    - Minnaert: OLS  log(L) - log(cos(sz)) = k * log(cos(i)) + c
    - Statistical-empirical: OLS  L = A * cos(i) + B, plus the band mean

Samples are put into a canonical order before any reduction so a fit
depends only on the multiset of (illumination, radiance) pairs, not on
pixel traversal order.

Illumination values that differ only within a small tolerance (rounding
noise on planar terrain) count as a single value, so such samples are
rejected rather than fitted.

Minnaert stratification: the sample's illumination range is split into
n_strat equal-width strata, empty strata are dropped, and the regression
runs on the per-stratum means of (log cos(i), log L - log cos(sz)), each
stratum weighted equally.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
from scipy import stats

from topocorr.exceptions import DegenerateParameterError, InsufficientDataError

logger = logging.getLogger(__name__)

# Illumination values closer than this count as one value
DISTINCT_TOLERANCE = 1e-9


@dataclass
class BandFit:
    """Fitted correction parameters for one band."""

    method: str
    params: Dict[str, float] = field(default_factory=dict)
    r_squared: Optional[float] = None
    n_samples: int = 0
    n_strata: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "params": dict(self.params),
            "r_squared": self.r_squared,
            "n_samples": self.n_samples,
            "n_strata": self.n_strata,
        }


def _paired_samples(cos_i: np.ndarray, radiance: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Finite (cos_i, radiance) pairs in canonical (sorted) order."""
    x = np.asarray(cos_i, dtype=np.float64).ravel()
    y = np.asarray(radiance, dtype=np.float64).ravel()
    if x.shape != y.shape:
        raise ValueError(f"Illumination and radiance sizes differ: {x.size} vs {y.size}")

    valid = np.isfinite(x) & np.isfinite(y)
    x, y = x[valid], y[valid]
    order = np.lexsort((y, x))
    return x[order], y[order]


def _is_near_constant(values: np.ndarray, tolerance: float) -> bool:
    """True when the spread of values is within tolerance, scaled by their magnitude above 1."""
    scale = max(1.0, float(np.max(np.abs(values))))
    return bool(np.ptp(values) <= tolerance * scale)


def _require_distinct(
    x: np.ndarray,
    method: str,
    band_index: Optional[int],
    tolerance: float,
    n_samples: Optional[int] = None,
) -> None:
    n_distinct = int(np.unique(x).size)
    if n_distinct >= 2 and _is_near_constant(x, tolerance):
        # Rounding noise only, e.g. a planar DEM
        n_distinct = 1
    if n_distinct < 2:
        raise InsufficientDataError(
            method,
            n_samples=int(x.size) if n_samples is None else n_samples,
            n_distinct=n_distinct,
            band_index=band_index,
        )


def _ols(x: np.ndarray, y: np.ndarray) -> Tuple[float, float, float]:
    """Ordinary least squares, returns (slope, intercept, r_squared)."""
    result = stats.linregress(x, y)
    r_squared = float(result.rvalue ** 2) if np.isfinite(result.rvalue) else None
    return float(result.slope), float(result.intercept), r_squared


def fit_c_parameter(
    radiance: np.ndarray,
    cos_i: np.ndarray,
    band_index: Optional[int] = None,
    tolerance: float = DISTINCT_TOLERANCE,
) -> BandFit:
    """
    Estimate the C-method parameter for a band.

    Args:
        radiance: Band radiance values
        cos_i: Illumination values, co-registered with radiance
        band_index: Band being fitted, for error reporting
        tolerance: Illumination spread at or below which values count as one

    Returns:
        BandFit with params "c", "slope", "intercept"

    Raises:
        InsufficientDataError: If fewer than 2 distinct illumination values
    """
    x, y = _paired_samples(cos_i, radiance)
    _require_distinct(x, "c", band_index, tolerance)

    slope, intercept, r_squared = _ols(x, y)
    c = intercept / slope if slope != 0 else math.inf

    logger.debug(f"Band {band_index}: C-method m={slope:.6g}, b={intercept:.6g}, C={c:.6g}")
    return BandFit(
        method="c",
        params={"c": c, "slope": slope, "intercept": intercept},
        r_squared=r_squared,
        n_samples=int(x.size),
    )


def _stratum_means(
    cos_i: np.ndarray,
    x: np.ndarray,
    y: np.ndarray,
    n_strat: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Mean (x, y) per populated equal-width illumination stratum."""
    edges = np.linspace(cos_i.min(), cos_i.max(), n_strat + 1)
    index = np.clip(np.searchsorted(edges, cos_i, side="right") - 1, 0, n_strat - 1)

    counts = np.bincount(index, minlength=n_strat)
    sum_x = np.bincount(index, weights=x, minlength=n_strat)
    sum_y = np.bincount(index, weights=y, minlength=n_strat)

    populated = counts > 0
    return sum_x[populated] / counts[populated], sum_y[populated] / counts[populated]


def fit_minnaert_k(
    radiance: np.ndarray,
    cos_i: np.ndarray,
    cos_zenith: float,
    n_strat: Optional[int] = None,
    floor: float = 0.05,
    band_index: Optional[int] = None,
    tolerance: float = DISTINCT_TOLERANCE,
) -> BandFit:
    """
    Estimate the Minnaert exponent k for a band.

    Only pixels with cos(i) above the floor and positive radiance enter the
    log-linear regression.

    Args:
        radiance: Band radiance values
        cos_i: Illumination values, co-registered with radiance
        cos_zenith: Cosine of the solar zenith angle
        n_strat: Number of illumination strata (None fits every pixel)
        floor: Minimum illumination for a pixel to be sampled
        band_index: Band being fitted, for error reporting
        tolerance: Illumination spread at or below which values count as one

    Returns:
        BandFit with params "k", "intercept"

    Raises:
        InsufficientDataError: If fewer than 2 distinct illumination values
            or fewer than 2 populated strata
    """
    cos_i, radiance = _paired_samples(cos_i, radiance)
    usable = (cos_i > floor) & (radiance > 0)
    cos_i, radiance = cos_i[usable], radiance[usable]
    _require_distinct(cos_i, "minnaert", band_index, tolerance)

    x = np.log(cos_i)
    y = np.log(radiance) - math.log(cos_zenith)

    n_strata = None
    if n_strat is not None:
        x, y = _stratum_means(cos_i, x, y, int(n_strat))
        n_strata = int(x.size)
        # Strata whose mean illumination coincides collapse into one
        _require_distinct(x, "minnaert", band_index, tolerance, n_samples=int(cos_i.size))

    k, intercept, r_squared = _ols(x, y)

    logger.debug(f"Band {band_index}: Minnaert k={k:.6g} from {cos_i.size} pixels"
                 + (f" in {n_strata} strata" if n_strata else ""))
    return BandFit(
        method="minnaert",
        params={"k": k, "intercept": intercept},
        r_squared=r_squared,
        n_samples=int(cos_i.size),
        n_strata=n_strata,
    )


def fit_statistical(
    radiance: np.ndarray,
    cos_i: np.ndarray,
    band_index: Optional[int] = None,
    tolerance: float = DISTINCT_TOLERANCE,
) -> BandFit:
    """
    Estimate statistical-empirical parameters for a band.

    Returns:
        BandFit with params "a" (slope), "b" (intercept), "mean" (band mean)

    Raises:
        InsufficientDataError: If fewer than 2 distinct illumination values
    """
    x, y = _paired_samples(cos_i, radiance)
    _require_distinct(x, "stat", band_index, tolerance)

    a, b, r_squared = _ols(x, y)
    mean = float(np.mean(y))

    logger.debug(f"Band {band_index}: statistical A={a:.6g}, B={b:.6g}, mean={mean:.6g}")
    return BandFit(
        method="stat",
        params={"a": a, "b": b, "mean": mean},
        r_squared=r_squared,
        n_samples=int(x.size),
    )


def check_degenerate(fit: BandFit, band_index: Optional[int] = None) -> None:
    """
    Reject fits whose parameters are outside their physical range.

    Raises:
        DegenerateParameterError: C-method slope <= 0 or non-finite C;
            Minnaert k <= 0 or non-finite; statistical non-finite A/B
    """
    params = fit.params
    if fit.method == "c":
        if not params["slope"] > 0:
            raise DegenerateParameterError("c", "slope", params["slope"], band_index)
        if not math.isfinite(params["c"]):
            raise DegenerateParameterError("c", "c", params["c"], band_index)
    elif fit.method == "minnaert":
        if not (math.isfinite(params["k"]) and params["k"] > 0):
            raise DegenerateParameterError("minnaert", "k", params["k"], band_index)
    elif fit.method == "stat":
        for name in ("a", "b"):
            if not math.isfinite(params[name]):
                raise DegenerateParameterError("stat", name, params[name], band_index)

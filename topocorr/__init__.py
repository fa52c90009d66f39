"""
Topographic Correction of Satellite Imagery

Adjusts per-pixel radiance so values read as if the surface were flat,
compensating for illumination differences caused by terrain slope and
orientation relative to the sun.

Modules:
    - terrain: Slope and aspect from an elevation grid
    - solar: Scene solar angles
    - illumination: cos(incidence angle) map
    - estimation: Per-band regression of correction parameters
    - methods: Correction formulas and method registry
    - engine: Two-phase per-band correction of a multi-band image
    - config: Configuration dataclasses, YAML and environment loading
"""

from topocorr.config import CorrectionConfig, PerformanceConfig, load_config
from topocorr.engine import TopographicCorrectionResult, TopographicCorrector, correct_topography
from topocorr.estimation import BandFit, fit_c_parameter, fit_minnaert_k, fit_statistical
from topocorr.exceptions import (
    DegenerateParameterError,
    DivisionSingularityWarning,
    InsufficientDataError,
    InvalidGridError,
    InvalidSolarGeometryError,
    TopographicCorrectionError,
)
from topocorr.illumination import compute_illumination, illumination_from_arrays
from topocorr.methods import CorrectionMethod, get_method, list_methods
from topocorr.report import BandReport, CorrectionReport
from topocorr.solar import SolarAngles
from topocorr.terrain import TerrainParameters, compute_slope_aspect

__version__ = "1.0.0"

__all__ = [
    # Engine
    "TopographicCorrector",
    "TopographicCorrectionResult",
    "correct_topography",
    # Configuration
    "CorrectionConfig",
    "PerformanceConfig",
    "load_config",
    # Terrain and illumination
    "TerrainParameters",
    "compute_slope_aspect",
    "SolarAngles",
    "compute_illumination",
    "illumination_from_arrays",
    # Estimation and methods
    "BandFit",
    "fit_c_parameter",
    "fit_minnaert_k",
    "fit_statistical",
    "CorrectionMethod",
    "get_method",
    "list_methods",
    # Reporting
    "BandReport",
    "CorrectionReport",
    # Errors
    "TopographicCorrectionError",
    "InvalidGridError",
    "InvalidSolarGeometryError",
    "InsufficientDataError",
    "DegenerateParameterError",
    "DivisionSingularityWarning",
]

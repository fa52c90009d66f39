"""
Custom Exceptions for Topographic Correction.

Provides a hierarchy of exceptions for the failure modes of the
terrain, illumination and correction stages, plus the warning category
emitted when near-zero illumination has to be clamped.
"""


class TopographicCorrectionError(Exception):
    """
    Base exception for topographic correction failures.

    All correction-specific exceptions inherit from this class,
    allowing for broad exception handling when needed.

    Attributes:
        message: Human-readable error description
        details: Additional context about the failure
    """

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class InvalidGridError(TopographicCorrectionError):
    """
    Input grid cannot be processed.

    Raised for mismatched dimensions between the elevation grid and the
    radiance image, non-positive cell spacing, or grids with fewer than
    2 rows or columns.

    Attributes:
        reason: Explanation of why the grid is invalid
        shape: Shape of the offending grid (if applicable)
        expected_shape: Shape the grid was required to have (if applicable)
    """

    def __init__(
        self,
        reason: str,
        shape: tuple = None,
        expected_shape: tuple = None,
    ):
        message = f"Invalid grid: {reason}"
        details = {}
        if shape is not None:
            details["shape"] = shape
        if expected_shape is not None:
            details["expected_shape"] = expected_shape
        super().__init__(message, details)
        self.reason = reason
        self.shape = shape
        self.expected_shape = expected_shape


class InvalidSolarGeometryError(TopographicCorrectionError):
    """
    Solar angles are outside the range the illumination model supports.

    Raised when the sun is at or below the horizon, or when an angle is
    not a finite number.

    Attributes:
        elevation: Offending solar elevation (degrees)
        azimuth: Offending solar azimuth (degrees)
        reason: Explanation of the failure
    """

    def __init__(self, reason: str, elevation: float = None, azimuth: float = None):
        message = f"Invalid solar geometry: {reason}"
        details = {
            "elevation_deg": elevation,
            "azimuth_deg": azimuth,
        }
        super().__init__(message, details)
        self.reason = reason
        self.elevation = elevation
        self.azimuth = azimuth


class InsufficientDataError(TopographicCorrectionError):
    """
    Regression sample cannot support a parameter fit.

    Raised when a band has fewer than 2 distinct illumination values
    (or, for stratified Minnaert fits, fewer than 2 populated strata).

    Attributes:
        method: Correction method being fitted
        band_index: Band being fitted (None when fitting a bare array)
        n_samples: Number of usable samples
        n_distinct: Number of distinct illumination values (or strata)
    """

    def __init__(
        self,
        method: str,
        n_samples: int = 0,
        n_distinct: int = 0,
        band_index: int = None,
    ):
        message = f"Insufficient data to fit '{method}' correction parameters"
        details = {
            "band_index": band_index,
            "n_samples": n_samples,
            "n_distinct": n_distinct,
        }
        super().__init__(message, details)
        self.method = method
        self.band_index = band_index
        self.n_samples = n_samples
        self.n_distinct = n_distinct


class DegenerateParameterError(TopographicCorrectionError):
    """
    Fitted parameter is outside its physically meaningful range.

    Raised for e.g. a non-positive Minnaert exponent or a C-method fit
    whose radiance decreases with illumination.

    Attributes:
        method: Correction method
        parameter: Name of the degenerate parameter
        value: Fitted value
        band_index: Band the parameter was fitted for
    """

    def __init__(
        self,
        method: str,
        parameter: str,
        value: float,
        band_index: int = None,
    ):
        message = f"Degenerate '{method}' parameter {parameter}={value}"
        details = {
            "band_index": band_index,
            "method": method,
            "parameter": parameter,
            "value": value,
        }
        super().__init__(message, details)
        self.method = method
        self.parameter = parameter
        self.value = value
        self.band_index = band_index


class DivisionSingularityWarning(UserWarning):
    """Near-zero illumination was clamped to the floor during correction."""

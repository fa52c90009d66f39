"""
Topographic Correction Engine

Normalises per-pixel radiance of a multi-band image so that values read
as if the surface were flat, using an illumination map derived from a
co-registered elevation grid and scene solar angles.

Each band runs in two phases: parameters are fitted from the band's valid
pixels, then the correction is applied elementwise. Bands are independent
and may run on a thread pool.
"""

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from topocorr.config import CorrectionConfig
from topocorr.estimation import (
    BandFit,
    check_degenerate,
    fit_c_parameter,
    fit_minnaert_k,
    fit_statistical,
)
from topocorr.exceptions import (
    DegenerateParameterError,
    DivisionSingularityWarning,
    InvalidGridError,
)
from topocorr.illumination import compute_illumination
from topocorr.methods import (
    apply_avgcosine_correction,
    apply_c_correction,
    apply_cosine_correction,
    apply_minnaert_correction,
    apply_statistical_correction,
    get_method,
)
from topocorr.report import BandReport, CorrectionReport
from topocorr.solar import SolarAngles
from topocorr.terrain import CellSize, TerrainParameters, compute_slope_aspect

logger = logging.getLogger(__name__)

SolarInput = Union[SolarAngles, Mapping[str, Any], Tuple[float, float]]


@dataclass
class TopographicCorrectionResult:
    """Results from a topographic correction run."""

    corrected: np.ndarray  # Same shape as the input image ("illu": the (H, W) illumination map)
    illumination: np.ndarray  # cos(i), shape (H, W)
    terrain: TerrainParameters
    report: CorrectionReport
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (without large arrays)."""
        return {
            "data_shape": list(self.corrected.shape),
            "data_dtype": str(self.corrected.dtype),
            "report": self.report.to_dict(),
            "metadata": self.metadata,
        }


class TopographicCorrector:
    """
    Topographic illumination correction for multi-band imagery.

    Requirements:
        - Radiance image, shape (H, W) or (H, W, bands)
        - Elevation grid, shape (H, W), with known cell spacing
        - Scene solar elevation and azimuth

    Outputs:
        - corrected: Topographically normalised image, input shape
        - illumination: cos(incidence angle) map
        - report: Per-band fitted parameters and clamped-pixel counts
    """

    METADATA = {
        "id": "topography.correction",
        "name": "Topographic Illumination Correction",
        "version": "1.0.0",
        "deterministic": True,
        "requirements": {
            "data": {
                "radiance": {"type": "optical", "layout": "(H, W[, bands])"},
                "elevation": {"type": "elevation", "co_registered": True},
            },
            "solar": ["elevation", "azimuth"],
        },
    }

    def __init__(self, config: Optional[CorrectionConfig] = None):
        """
        Initialize topographic corrector.

        Args:
            config: Correction configuration. Uses defaults if None.
        """
        self.config = config or CorrectionConfig()
        self.method_info = get_method(self.config.method)
        logger.info(f"Initialized {self.METADATA['name']} v{self.METADATA['version']}")
        logger.info(f"Configuration: method={self.config.method}, n_strat={self.config.n_strat}, "
                    f"illumination_floor={self.config.illumination_floor}")

    def correct(
        self,
        image: np.ndarray,
        elevation: np.ndarray,
        cell_size: CellSize,
        solar: SolarInput,
    ) -> TopographicCorrectionResult:
        """
        Execute topographic correction.

        Args:
            image: Radiance image, shape (H, W) or (H, W, bands)
            elevation: Elevation grid, shape (H, W)
            cell_size: Elevation cell spacing, scalar or (x_res, y_res)
            solar: SolarAngles, a metadata mapping, or an
                (elevation, azimuth) pair in config.angle_units

        Returns:
            TopographicCorrectionResult

        Raises:
            InvalidGridError: Bad cell spacing, undersized grid, or image and
                elevation shapes that differ
            InvalidSolarGeometryError: Sun at or below the horizon
            InsufficientDataError: A band cannot support its parameter fit
            DegenerateParameterError: Degenerate fit with on_degenerate="raise"
        """
        method = self.config.method
        solar = self._resolve_solar(solar)
        terrain = compute_slope_aspect(elevation, cell_size)
        bands, squeeze = self._as_band_stack(image, terrain.shape)

        logger.info(f"Starting {self.method_info.name} of {bands.shape[2]} band(s), "
                    f"grid {terrain.shape}, sun elevation={solar.elevation_deg:.2f} deg, "
                    f"azimuth={solar.azimuth_deg:.2f} deg")

        cos_i = compute_illumination(terrain, solar)
        finite_cos_i = cos_i[np.isfinite(cos_i)]
        metadata = self._build_metadata(terrain, solar, finite_cos_i)

        if method == "illu":
            report = CorrectionReport(method=method)
            return TopographicCorrectionResult(
                corrected=np.array(cos_i), illumination=cos_i,
                terrain=terrain, report=report, metadata=metadata,
            )

        if self._is_flat_scene(finite_cos_i, solar.cos_zenith):
            logger.info("Illumination equals cos(zenith) everywhere; correction is the identity")
            report = CorrectionReport(method=method, flat_scene=True, bands=[
                BandReport(
                    band_index=index, method=method,
                    valid_pixels=int(np.sum(self._valid_mask(bands[..., index], cos_i))),
                    fallback_to_identity=True, reason="flat_scene",
                )
                for index in range(bands.shape[2])
            ])
            corrected = bands.copy()
        else:
            mean_cos_i = float(np.mean(finite_cos_i)) if finite_cos_i.size else float("nan")
            corrected, band_reports = self._correct_bands(bands, cos_i, solar, mean_cos_i)
            report = CorrectionReport(method=method, bands=band_reports)

        for band_report in report.bands:
            if band_report.clamped_pixels:
                logger.warning(f"Band {band_report.band_index}: clamped {band_report.clamped_pixels} "
                               f"near-zero illumination pixel(s)")
                warnings.warn(
                    f"Band {band_report.band_index}: {band_report.clamped_pixels} pixel(s) with "
                    f"illumination below {self.config.illumination_floor} were clamped",
                    DivisionSingularityWarning,
                    stacklevel=2,
                )

        logger.info(f"Correction complete: {report.total_clamped_pixels} clamped pixel(s), "
                    f"{len(report.fallback_bands)} band(s) left uncorrected")

        return TopographicCorrectionResult(
            corrected=corrected[..., 0] if squeeze else corrected,
            illumination=cos_i,
            terrain=terrain,
            report=report,
            metadata=metadata,
        )

    def _resolve_solar(self, solar: SolarInput) -> SolarAngles:
        if isinstance(solar, SolarAngles):
            return solar
        if isinstance(solar, Mapping):
            params = {"units": self.config.angle_units, **solar}
            return SolarAngles.from_dict(params)
        elevation, azimuth = solar
        return SolarAngles.create(elevation, azimuth, units=self.config.angle_units)

    @staticmethod
    def _as_band_stack(image: np.ndarray, grid_shape: Tuple[int, int]) -> Tuple[np.ndarray, bool]:
        """Return the image as float64 (H, W, bands) and whether it was 2D."""
        image = np.asarray(image, dtype=np.float64)
        if image.ndim not in (2, 3):
            raise InvalidGridError("image must be (H, W) or (H, W, bands)", shape=image.shape)
        if image.shape[:2] != tuple(grid_shape):
            raise InvalidGridError(
                "image and elevation grid dimensions differ",
                shape=image.shape[:2], expected_shape=tuple(grid_shape),
            )
        if image.ndim == 2:
            return image[..., np.newaxis], True
        if image.shape[2] == 0:
            raise InvalidGridError("image has no bands", shape=image.shape)
        return image, False

    def _is_flat_scene(self, finite_cos_i: np.ndarray, cos_zenith: float) -> bool:
        if finite_cos_i.size == 0:
            return False
        return bool(np.max(np.abs(finite_cos_i - cos_zenith)) <= self.config.flat_tolerance)

    def _valid_mask(self, band: np.ndarray, cos_i: np.ndarray) -> np.ndarray:
        valid = np.isfinite(band) & np.isfinite(cos_i)
        if self.config.nodata_value is not None:
            valid &= band != self.config.nodata_value
        return valid

    def _correct_bands(
        self,
        bands: np.ndarray,
        cos_i: np.ndarray,
        solar: SolarAngles,
        mean_cos_i: float,
    ) -> Tuple[np.ndarray, List[BandReport]]:
        n_bands = bands.shape[2]
        performance = self.config.performance

        if performance.parallel_bands and n_bands > 1:
            with ThreadPoolExecutor(max_workers=performance.max_workers) as executor:
                futures = [
                    executor.submit(self._correct_band, index, bands[..., index], cos_i, solar, mean_cos_i)
                    for index in range(n_bands)
                ]
                results = [future.result() for future in futures]
        else:
            results = [
                self._correct_band(index, bands[..., index], cos_i, solar, mean_cos_i)
                for index in range(n_bands)
            ]

        corrected = np.stack([band for band, _ in results], axis=-1)
        return corrected, [band_report for _, band_report in results]

    def _correct_band(
        self,
        band_index: int,
        band: np.ndarray,
        cos_i: np.ndarray,
        solar: SolarAngles,
        mean_cos_i: float,
    ) -> Tuple[np.ndarray, BandReport]:
        """Fit and apply the correction to one band."""
        method = self.config.method
        valid = self._valid_mask(band, cos_i)
        radiance = band[valid]
        illumination = cos_i[valid]

        report = BandReport(band_index=band_index, method=method, valid_pixels=int(radiance.size))
        out = band.copy()

        if self.method_info.requires_fit:
            report.fit = self._fit(radiance, illumination, solar, band_index)
            try:
                check_degenerate(report.fit, band_index)
            except DegenerateParameterError as e:
                if self.config.on_degenerate == "raise":
                    raise
                logger.warning(f"{e}; band {band_index} left uncorrected")
                report.fallback_to_identity = True
                report.reason = e.message
                return out, report

        out[valid], report.clamped_pixels = self._apply(
            radiance, illumination, solar.cos_zenith, report.fit, mean_cos_i
        )
        return out, report

    def _fit(
        self,
        radiance: np.ndarray,
        illumination: np.ndarray,
        solar: SolarAngles,
        band_index: int,
    ) -> BandFit:
        method = self.config.method
        tolerance = self.config.flat_tolerance
        if method == "c":
            return fit_c_parameter(radiance, illumination, band_index=band_index, tolerance=tolerance)
        if method == "minnaert":
            return fit_minnaert_k(
                radiance, illumination, solar.cos_zenith,
                n_strat=self.config.n_strat,
                floor=self.config.illumination_floor,
                band_index=band_index,
                tolerance=tolerance,
            )
        return fit_statistical(radiance, illumination, band_index=band_index, tolerance=tolerance)

    def _apply(
        self,
        radiance: np.ndarray,
        illumination: np.ndarray,
        cos_zenith: float,
        fit: Optional[BandFit],
        mean_cos_i: float,
    ) -> Tuple[np.ndarray, int]:
        method = self.config.method
        floor = self.config.illumination_floor

        if method == "c":
            return apply_c_correction(radiance, illumination, cos_zenith, fit.params["c"], floor)
        if method == "minnaert":
            return apply_minnaert_correction(radiance, illumination, cos_zenith, fit.params["k"], floor)
        if method == "stat":
            return apply_statistical_correction(
                radiance, illumination, fit.params["a"], fit.params["b"], fit.params["mean"]
            )
        if method == "cosine":
            return apply_cosine_correction(radiance, illumination, cos_zenith, floor)
        return apply_avgcosine_correction(radiance, illumination, mean_cos_i)

    def _build_metadata(
        self,
        terrain: TerrainParameters,
        solar: SolarAngles,
        finite_cos_i: np.ndarray,
    ) -> Dict[str, Any]:
        return {
            **self.METADATA,
            "parameters": self.config.to_dict(),
            "method": {
                "name": self.method_info.name,
                "citation": self.method_info.citation or None,
            },
            "solar": solar.to_dict(),
            "terrain": terrain.summary(),
            "illumination": {
                "mean": float(np.mean(finite_cos_i)) if finite_cos_i.size else None,
                "min": float(np.min(finite_cos_i)) if finite_cos_i.size else None,
                "shadowed_pixels": int(np.sum(finite_cos_i <= 0)),
            },
        }

    @staticmethod
    def get_metadata() -> Dict[str, Any]:
        """Get algorithm metadata."""
        return TopographicCorrector.METADATA

    @staticmethod
    def create_from_dict(params: Dict[str, Any]) -> "TopographicCorrector":
        """
        Create corrector instance from parameter dictionary.

        Args:
            params: Parameter dictionary

        Returns:
            Configured corrector instance
        """
        return TopographicCorrector(CorrectionConfig.from_dict(params))


def correct_topography(
    image: np.ndarray,
    elevation: np.ndarray,
    cell_size: CellSize,
    sun_elevation: float,
    sun_azimuth: float,
    method: str = "c",
    n_strat: Optional[int] = None,
    units: str = "degrees",
) -> TopographicCorrectionResult:
    """
    Apply topographic correction to an image.

    Args:
        image: Radiance image, shape (H, W) or (H, W, bands)
        elevation: Elevation grid, shape (H, W)
        cell_size: Elevation cell spacing
        sun_elevation: Solar elevation above the horizon
        sun_azimuth: Solar azimuth, clockwise from north
        method: Correction method
        n_strat: Minnaert illumination strata
        units: Unit of the solar angles ("degrees" or "radians")

    Returns:
        TopographicCorrectionResult
    """
    config = CorrectionConfig(method=method, n_strat=n_strat, angle_units=units)
    corrector = TopographicCorrector(config)
    return corrector.correct(image, elevation, cell_size, (sun_elevation, sun_azimuth))

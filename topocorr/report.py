"""
Per-band diagnostic report for a correction run.

Fitted parameters live here for the duration of one run so callers can
inspect them; nothing is persisted.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from topocorr.estimation import BandFit


@dataclass
class BandReport:
    """
    Diagnostics for a single corrected band.

    Attributes:
        band_index: 0-based band position in the image
        method: Correction method applied
        fit: Fitted parameters (None for methods without a fit)
        valid_pixels: Pixels that entered the fit and correction
        clamped_pixels: Pixels whose denominator was floored
        fallback_to_identity: Band was left uncorrected
        reason: Why the band fell back to identity
    """

    band_index: int
    method: str
    fit: Optional[BandFit] = None
    valid_pixels: int = 0
    clamped_pixels: int = 0
    fallback_to_identity: bool = False
    reason: Optional[str] = None

    @property
    def params(self) -> Dict[str, float]:
        return dict(self.fit.params) if self.fit is not None else {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "band_index": self.band_index,
            "method": self.method,
            "params": self.params,
            "r_squared": self.fit.r_squared if self.fit is not None else None,
            "n_samples": self.fit.n_samples if self.fit is not None else None,
            "n_strata": self.fit.n_strata if self.fit is not None else None,
            "valid_pixels": self.valid_pixels,
            "clamped_pixels": self.clamped_pixels,
            "fallback_to_identity": self.fallback_to_identity,
            "reason": self.reason,
        }


@dataclass
class CorrectionReport:
    """Scene-level summary of a correction run."""

    method: str
    flat_scene: bool = False
    bands: List[BandReport] = field(default_factory=list)

    @property
    def band_fits(self) -> Dict[int, BandFit]:
        """Fitted parameters keyed by band index."""
        return {b.band_index: b.fit for b in self.bands if b.fit is not None}

    @property
    def total_clamped_pixels(self) -> int:
        return sum(b.clamped_pixels for b in self.bands)

    @property
    def fallback_bands(self) -> List[int]:
        return [b.band_index for b in self.bands if b.fallback_to_identity]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "flat_scene": self.flat_scene,
            "n_bands": len(self.bands),
            "total_clamped_pixels": self.total_clamped_pixels,
            "fallback_bands": self.fallback_bands,
            "bands": [b.to_dict() for b in self.bands],
        }

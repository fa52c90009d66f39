"""
Configuration for Topographic Correction.

Provides dataclasses and utilities for configuring the correction engine,
including the correction method, Minnaert stratification, angle units,
singularity handling and band parallelism.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from topocorr.methods import get_method, normalize_method_name

logger = logging.getLogger(__name__)

VALID_ANGLE_UNITS = ("degrees", "radians")
VALID_DEGENERATE_POLICIES = ("identity", "raise")


@dataclass
class PerformanceConfig:
    """
    Performance settings for correction.

    Attributes:
        parallel_bands: Whether to fit and correct bands in parallel
        max_workers: Thread pool size (None lets the executor decide)
    """

    parallel_bands: bool = True
    max_workers: Optional[int] = None

    def __post_init__(self):
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")


@dataclass
class CorrectionConfig:
    """
    Complete configuration for topographic correction.

    Attributes:
        method: Correction method name ("c", "minnaert", "stat", "cosine",
            "avgcosine", "illu")
        n_strat: Number of illumination strata for the Minnaert fit
            (None fits on every valid pixel)
        angle_units: Unit of solar angles supplied to the engine
        illumination_floor: Smallest cos(i) allowed in a denominator
        flat_tolerance: Max deviation of cos(i) from cos(zenith) for the
            scene to count as flat; illumination spreads at or below it
            cannot support a parameter fit
        on_degenerate: "identity" falls back to no correction with a
            warning, "raise" propagates DegenerateParameterError
        nodata_value: Radiance value marking invalid pixels
        performance: Performance tuning settings
    """

    method: str = "c"
    n_strat: Optional[int] = None
    angle_units: str = "degrees"
    illumination_floor: float = 0.05
    flat_tolerance: float = 1e-9
    on_degenerate: str = "identity"
    nodata_value: Optional[float] = None
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)

    def __post_init__(self):
        """Validate configuration parameters."""
        self.method = normalize_method_name(self.method)
        if self.n_strat is not None and (int(self.n_strat) != self.n_strat or self.n_strat < 1):
            raise ValueError(f"n_strat must be a positive integer, got {self.n_strat}")
        if self.n_strat is not None and not get_method(self.method).uses_n_strat:
            logger.debug(f"n_strat={self.n_strat} is ignored by method '{self.method}'")
        if self.angle_units not in VALID_ANGLE_UNITS:
            raise ValueError(f"angle_units must be one of {VALID_ANGLE_UNITS}, got {self.angle_units!r}")
        if not 0.0 < self.illumination_floor < 1.0:
            raise ValueError(f"illumination_floor must be in (0, 1), got {self.illumination_floor}")
        if self.flat_tolerance < 0:
            raise ValueError(f"flat_tolerance must be non-negative, got {self.flat_tolerance}")
        if self.on_degenerate not in VALID_DEGENERATE_POLICIES:
            raise ValueError(
                f"on_degenerate must be one of {VALID_DEGENERATE_POLICIES}, got {self.on_degenerate!r}"
            )

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "CorrectionConfig":
        """
        Create configuration from dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            CorrectionConfig instance
        """
        config_dict = dict(config_dict)
        performance = PerformanceConfig(**config_dict.pop("performance", {}))

        # Accept the camelCase spelling used by R-derived workflows
        if "nStrat" in config_dict:
            config_dict["n_strat"] = config_dict.pop("nStrat")

        return cls(performance=performance, **config_dict)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "CorrectionConfig":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            CorrectionConfig instance
        """
        path = Path(yaml_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(path, "r") as f:
            config_dict = yaml.safe_load(f) or {}

        # Extract correction section if present
        if "topographic_correction" in config_dict:
            config_dict = config_dict["topographic_correction"]

        return cls.from_dict(config_dict)

    @classmethod
    def from_environment(cls) -> "CorrectionConfig":
        """
        Create configuration from environment variables.

        Environment variables override default values:
        - TOPOCORR_METHOD
        - TOPOCORR_N_STRAT
        - TOPOCORR_ANGLE_UNITS
        - TOPOCORR_ILLUMINATION_FLOOR
        - TOPOCORR_PARALLEL_BANDS

        Returns:
            CorrectionConfig instance
        """
        config = cls()
        config._apply_environment()
        return config

    def _apply_environment(self) -> None:
        if os.environ.get("TOPOCORR_METHOD"):
            self.method = normalize_method_name(os.environ["TOPOCORR_METHOD"])

        if os.environ.get("TOPOCORR_N_STRAT"):
            try:
                n_strat = int(os.environ["TOPOCORR_N_STRAT"])
            except ValueError:
                logger.warning("Ignoring non-integer TOPOCORR_N_STRAT")
            else:
                if n_strat >= 1:
                    self.n_strat = n_strat

        if os.environ.get("TOPOCORR_ANGLE_UNITS") in VALID_ANGLE_UNITS:
            self.angle_units = os.environ["TOPOCORR_ANGLE_UNITS"]

        if os.environ.get("TOPOCORR_ILLUMINATION_FLOOR"):
            try:
                floor = float(os.environ["TOPOCORR_ILLUMINATION_FLOOR"])
            except ValueError:
                logger.warning("Ignoring non-numeric TOPOCORR_ILLUMINATION_FLOOR")
            else:
                if 0.0 < floor < 1.0:
                    self.illumination_floor = floor

        if os.environ.get("TOPOCORR_PARALLEL_BANDS"):
            self.performance.parallel_bands = (
                os.environ["TOPOCORR_PARALLEL_BANDS"].lower() == "true"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "method": self.method,
            "n_strat": self.n_strat,
            "angle_units": self.angle_units,
            "illumination_floor": self.illumination_floor,
            "flat_tolerance": self.flat_tolerance,
            "on_degenerate": self.on_degenerate,
            "nodata_value": self.nodata_value,
            "performance": {
                "parallel_bands": self.performance.parallel_bands,
                "max_workers": self.performance.max_workers,
            },
        }


DEFAULT_CONFIG_PATHS = (
    Path("config/topocorr.yaml"),
    Path("~/.topocorr/config.yaml"),
)


def load_config(
    yaml_path: Optional[str] = None,
    use_environment: bool = True,
) -> CorrectionConfig:
    """
    Load correction configuration with fallbacks.

    Attempts to load configuration in order:
    1. From specified YAML path (if provided)
    2. From default config paths
    3. Fall back to defaults
    Environment overrides are applied on top when requested.

    Args:
        yaml_path: Optional explicit path to YAML config
        use_environment: Whether to apply environment variable overrides

    Returns:
        CorrectionConfig instance
    """
    config = None

    if yaml_path:
        try:
            config = CorrectionConfig.from_yaml(yaml_path)
        except FileNotFoundError:
            logger.warning(f"Config file {yaml_path} not found, trying defaults")

    if config is None:
        for path in DEFAULT_CONFIG_PATHS:
            path = path.expanduser()
            if path.exists():
                config = CorrectionConfig.from_yaml(str(path))
                logger.info(f"Loaded correction config from {path}")
                break

    if config is None:
        config = CorrectionConfig()

    if use_environment:
        config._apply_environment()

    return config

"""
Pytest configuration and fixtures for topocorr tests.

Markers:
    @pytest.mark.terrain - Slope/aspect extraction tests
    @pytest.mark.illumination - Illumination model and solar angle tests
    @pytest.mark.correction - Parameter estimation and correction tests
    @pytest.mark.config - Configuration loading tests
    @pytest.mark.slow - Tests that take longer to run

Usage:
    pytest -m terrain               # Run only terrain tests
    pytest -m "not slow"            # Skip slow tests
    pytest -m "correction and not slow"
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "terrain: Slope and aspect extraction tests")
    config.addinivalue_line("markers", "illumination: Illumination model tests")
    config.addinivalue_line("markers", "correction: Parameter estimation and correction tests")
    config.addinivalue_line("markers", "config: Configuration tests")
    config.addinivalue_line("markers", "slow: Slow-running tests")


def pytest_collection_modifyitems(config, items):
    """Auto-apply markers based on test file names and test names."""
    for item in items:
        basename = item.fspath.basename
        if "terrain" in basename:
            item.add_marker(pytest.mark.terrain)
        if "illumination" in basename or "solar" in basename:
            item.add_marker(pytest.mark.illumination)
        if "estimation" in basename or "methods" in basename or "engine" in basename:
            item.add_marker(pytest.mark.correction)
        if "config" in basename:
            item.add_marker(pytest.mark.config)

        test_name = item.name.lower()
        if "large" in test_name or "stress" in test_name:
            item.add_marker(pytest.mark.slow)


class TopographySyntheticDataGenerator:
    """Generate synthetic terrain and radiance for correction testing."""

    CELL_SIZE = 30.0

    @staticmethod
    def hilly_dem(height: int = 40, width: int = 50, amplitude: float = 50.0) -> np.ndarray:
        """
        Smooth rolling hills with slopes below ~30 degrees at 30 m cells.

        Every aspect is represented, and with a sun elevation of 55 degrees
        all pixels stay well lit (cos(i) > 0.4).
        """
        rows, cols = np.mgrid[0:height, 0:width]
        return (
            500.0
            + amplitude * np.sin(2 * np.pi * cols / 20.0) * np.cos(2 * np.pi * rows / 25.0)
        )

    @staticmethod
    def plane(height: int, width: int, rise_per_row: float = 0.0, rise_per_col: float = 0.0) -> np.ndarray:
        """Planar surface rising by fixed amounts per row and per column."""
        rows, cols = np.mgrid[0:height, 0:width]
        return 100.0 + rise_per_row * rows + rise_per_col * cols


@pytest.fixture
def synthetic():
    """Synthetic data generator."""
    return TopographySyntheticDataGenerator


@pytest.fixture
def hilly_dem():
    """Rolling-hills elevation grid, 30 m cells."""
    return TopographySyntheticDataGenerator.hilly_dem()


@pytest.fixture
def flat_dem():
    """Constant elevation grid."""
    return np.full((20, 30), 250.0)


@pytest.fixture
def solar():
    """High sun from the south-east."""
    from topocorr.solar import SolarAngles
    return SolarAngles(elevation_deg=55.0, azimuth_deg=150.0)

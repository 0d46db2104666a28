"""Pytest configuration and fixtures for sandflow tests."""
import os

# Widgets render without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import numpy as np
import pytest

from sandflow.core.config import SimulationConfig
from sandflow.core.heightfield import HeightOrderedList, TerrainSnapshot


@pytest.fixture(scope="session")
def qt_app():
    """One Qt application for the whole session."""
    from PySide6.QtWidgets import QApplication
    return QApplication.instance() or QApplication([])


@pytest.fixture
def small_config():
    """A 16x12 grid with a calibration that keeps numbers readable."""
    config = SimulationConfig(width=16, height=12)
    config.minimum_height = 0.0
    config.height_scale_factor = 1.0
    return config


@pytest.fixture
def walled_terrain():
    """5x5 grid: a low center cell at 1.0 surrounded by terrain at 10.0."""
    terrain = np.full((5, 5), 10.0, dtype=np.float32)
    terrain[2, 2] = 1.0
    return terrain


@pytest.fixture
def single_cell_snapshot():
    """Builds snapshots whose ordered list holds only the cell (x, y)."""
    def build(terrain, x, y):
        terrain = np.array(terrain, dtype=np.float32)
        ordered = HeightOrderedList(np.array([x], dtype=np.int32),
                                    np.array([y], dtype=np.int32),
                                    np.array([terrain[y, x]], dtype=np.float32))
        return TerrainSnapshot(terrain, ordered)
    return build

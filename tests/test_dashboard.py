"""
Tests for the operator dashboard, run on the offscreen Qt platform.
"""

import numpy as np
import pytest

pytest.importorskip("PySide6.QtWidgets")

from PySide6.QtCore import QEvent, QPointF, Qt
from PySide6.QtGui import QImage, QMouseEvent

from sandflow.core.config import HEIGHT_MAP_MULTIPLIER
from sandflow.ui.dashboard import SEA_LEVEL_STEP, SandboxDashboard, VideoWidget


def click(widget, x, y):
    pos = QPointF(x, y)
    widget.mousePressEvent(QMouseEvent(QEvent.MouseButtonPress, pos, pos,
                                       Qt.LeftButton, Qt.LeftButton, Qt.NoModifier))


@pytest.fixture
def dashboard(qt_app, small_config):
    window = SandboxDashboard(small_config, ["Bone", "Jet"])
    yield window
    window.close()


class TestControls:
    def test_sliders_start_from_config(self, dashboard, small_config):
        assert dashboard.sld_inflow.value() == int(small_config.water_inflow_scale * 100)
        assert dashboard.sld_scale.value() == int(small_config.height_scale_factor)
        assert dashboard.chk_sea.isChecked() == small_config.show_sea_level_indicator

    def test_inflow_slider_emits_scale(self, dashboard):
        values = []
        dashboard.signals.inflow_changed.connect(values.append)

        dashboard.sld_inflow.setValue(25)
        assert values == [pytest.approx(0.25)]

    def test_sea_level_slider(self, dashboard):
        values = []
        dashboard.signals.sea_level_changed.connect(values.append)

        dashboard.sld_sea.setValue(150)
        # 1.5 normalized height units
        assert values == [pytest.approx(1.5 * HEIGHT_MAP_MULTIPLIER)]

    def test_sea_level_slider_reaches_high_terrain(self, dashboard):
        # Default calibration: heights up to 0.5 * 20 * 500 units
        assert dashboard.sld_sea.maximum() * SEA_LEVEL_STEP >= 0.5 * 20.0 * HEIGHT_MAP_MULTIPLIER

    def test_sea_level_slider_starts_from_config(self, qt_app, small_config):
        small_config.set_sea_level(2.0 * SEA_LEVEL_STEP)
        window = SandboxDashboard(small_config)

        assert window.sld_sea.value() == 2
        window.close()

    def test_colour_theme(self, dashboard):
        names = []
        dashboard.signals.cmap_changed.connect(names.append)

        dashboard.combo.setCurrentText("Jet")
        assert names == ["Jet"]

    def test_source_selection_updates_label(self, dashboard):
        picked = []
        dashboard.signals.source_selected.connect(lambda x, y: picked.append((x, y)))

        dashboard._on_cell_clicked(4, 7)

        assert picked == [(4, 7)]
        assert "(4, 7)" in dashboard.video_hint.text()

    def test_status_and_feed(self, dashboard):
        dashboard.set_status("Tick 30")
        dashboard.update_feed(np.zeros((12, 16, 3), dtype=np.uint8))

        assert dashboard.status_label.text() == "Tick 30"
        assert dashboard.video.image.width() == 16
        assert dashboard.video.image.height() == 12


class TestVideoWidget:
    def test_click_maps_to_grid_cell(self, qt_app):
        widget = VideoWidget()
        widget.resize(200, 100)
        image = QImage(100, 50, QImage.Format_BGR888)
        widget.set_frame(image)
        cells = []
        widget.cell_clicked.connect(lambda x, y: cells.append((x, y)))

        click(widget, 100, 50)
        assert cells == [(50, 25)]

    def test_click_in_letterbox_is_ignored(self, qt_app):
        widget = VideoWidget()
        widget.resize(200, 200)
        # 100x50 image is letterboxed into 200x100, centered vertically
        widget.set_frame(QImage(100, 50, QImage.Format_BGR888))
        cells = []
        widget.cell_clicked.connect(lambda x, y: cells.append((x, y)))

        click(widget, 100, 10)
        click(widget, 100, 60)

        assert cells == [(50, 5)]

    def test_click_without_image(self, qt_app):
        widget = VideoWidget()
        cells = []
        widget.cell_clicked.connect(lambda x, y: cells.append((x, y)))

        click(widget, 5, 5)
        assert cells == []

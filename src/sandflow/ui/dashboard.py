import logging

import numpy as np
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QGroupBox, QLabel,
    QSlider, QComboBox, QCheckBox, QPushButton, QTabWidget, QSizePolicy
)
from PySide6.QtCore import Qt, Signal, Slot
from PySide6.QtGui import QImage, QPainter

from ..core.config import HEIGHT_MAP_MULTIPLIER

logger = logging.getLogger(__name__)

# Terrain units per sea-level slider step
SEA_LEVEL_STEP = HEIGHT_MAP_MULTIPLIER / 100.0

# --- Internal Helper Widgets ---

class VideoWidget(QWidget):
    """Renders the simulation frame; a click reports the grid cell under the cursor."""
    cell_clicked = Signal(int, int)

    def __init__(self):
        super().__init__()
        self.image = None
        self.setSizePolicy(QSizePolicy.Ignored, QSizePolicy.Ignored)
        self.setStyleSheet("background-color: #111; border: 1px solid #444;")

    def set_frame(self, qt_img):
        self.image = qt_img
        self.update()

    def _image_rect(self):
        scaled = self.image.size().scaled(self.size(), Qt.KeepAspectRatio)
        x = (self.width() - scaled.width()) // 2
        y = (self.height() - scaled.height()) // 2
        return x, y, scaled.width(), scaled.height()

    def paintEvent(self, event):
        painter = QPainter(self)
        if self.image:
            x, y, w, h = self._image_rect()
            painter.drawImage(x, y, self.image.scaled(w, h, Qt.KeepAspectRatio, Qt.SmoothTransformation))
        else:
            painter.setPen(Qt.white)
            painter.drawText(self.rect(), Qt.AlignCenter, "Awaiting Stream...")

    def mousePressEvent(self, event):
        if self.image is None:
            return
        x, y, w, h = self._image_rect()
        if w == 0 or h == 0:
            return
        pos = event.position()
        # Widget -> grid coordinates
        cell_x = int((pos.x() - x) * self.image.width() / w)
        cell_y = int((pos.y() - y) * self.image.height() / h)
        if 0 <= cell_x < self.image.width() and 0 <= cell_y < self.image.height():
            self.cell_clicked.emit(cell_x, cell_y)

# --- Main Dashboard Class ---

class SandboxDashboard(QMainWindow):
    class Signals(QWidget):
        # Water
        inflow_changed = Signal(float)
        decay_changed = Signal(float)
        clear_water = Signal()
        source_selected = Signal(int, int)
        # Terrain
        ground_changed = Signal(float)
        scale_changed = Signal(float)
        sea_level_changed = Signal(float)
        sea_indicator_toggled = Signal(bool)
        cmap_changed = Signal(str)
        reset_terrain = Signal()
        save_config = Signal()

    def __init__(self, config, cmap_names=()):
        super().__init__()
        self.setWindowTitle("Sandflow - AR Sandbox")
        self.resize(1100, 768)
        self.setStyleSheet("QMainWindow { background-color: #333; color: #ccc; }")

        self.signals = self.Signals()

        main_widget = QWidget()
        self.setCentralWidget(main_widget)
        layout = QHBoxLayout(main_widget)

        # ================= Sidebar =================
        sidebar = QWidget()
        sidebar.setFixedWidth(320)
        side_layout = QVBoxLayout(sidebar)

        self.status_label = QLabel("Waiting for terrain...")
        gb_status = QGroupBox("Status")
        l_status = QVBoxLayout()
        l_status.addWidget(self.status_label)
        gb_status.setLayout(l_status)

        self.tabs = QTabWidget()
        self.tabs.setStyleSheet("QTabWidget::pane { border: 1px solid #555; }")

        # --- Tab A: Water ---
        t_water = QWidget()
        l_water = QVBoxLayout()

        l_water.addWidget(QLabel("Water Inflow:"))
        self.sld_inflow = QSlider(Qt.Horizontal)
        self.sld_inflow.setRange(0, 100)
        self.sld_inflow.setValue(int(config.water_inflow_scale * 100))
        self.sld_inflow.valueChanged.connect(lambda v: self.signals.inflow_changed.emit(v / 100.0))
        l_water.addWidget(self.sld_inflow)

        l_water.addWidget(QLabel("Evaporation Rate:"))
        self.sld_decay = QSlider(Qt.Horizontal)
        self.sld_decay.setRange(0, 50)
        self.sld_decay.setValue(int(config.decay_rate * 1000))
        self.sld_decay.valueChanged.connect(lambda v: self.signals.decay_changed.emit(v / 1000.0))
        l_water.addWidget(self.sld_decay)

        l_water.addWidget(QLabel("Click the preview to move the water source."))
        self.video_hint = QLabel(self._source_text(config.water_sources))
        l_water.addWidget(self.video_hint)

        btn_clear = QPushButton("Drain Water")
        btn_clear.clicked.connect(self.signals.clear_water.emit)
        l_water.addWidget(btn_clear)
        l_water.addStretch()
        t_water.setLayout(l_water)

        # --- Tab B: Terrain ---
        t_terrain = QWidget()
        l_terrain = QVBoxLayout()

        l_terrain.addWidget(QLabel("Ground Height:"))
        self.sld_ground = QSlider(Qt.Horizontal)
        self.sld_ground.setRange(0, 100)
        self.sld_ground.setValue(int(config.minimum_height * 100))
        self.sld_ground.valueChanged.connect(lambda v: self.signals.ground_changed.emit(v / 100.0))
        l_terrain.addWidget(self.sld_ground)

        l_terrain.addWidget(QLabel("Height Scale:"))
        self.sld_scale = QSlider(Qt.Horizontal)
        self.sld_scale.setRange(1, 100)
        self.sld_scale.setValue(int(config.height_scale_factor))
        self.sld_scale.valueChanged.connect(lambda v: self.signals.scale_changed.emit(float(v)))
        l_terrain.addWidget(self.sld_scale)

        l_terrain.addWidget(QLabel("Sea Level:"))
        self.sld_sea = QSlider(Qt.Horizontal)
        # One step is a hundredth of a normalized height unit, up to 10 units
        self.sld_sea.setRange(0, 1000)
        self.sld_sea.setValue(round(config.sea_level / SEA_LEVEL_STEP))
        self.sld_sea.valueChanged.connect(lambda v: self.signals.sea_level_changed.emit(v * SEA_LEVEL_STEP))
        l_terrain.addWidget(self.sld_sea)

        self.chk_sea = QCheckBox("Highlight Sea Level Ground")
        self.chk_sea.setChecked(config.show_sea_level_indicator)
        self.chk_sea.toggled.connect(self.signals.sea_indicator_toggled.emit)
        l_terrain.addWidget(self.chk_sea)

        self.combo = QComboBox()
        self.combo.addItems(list(cmap_names))
        self.combo.currentTextChanged.connect(self.signals.cmap_changed.emit)
        l_terrain.addWidget(QLabel("Color Theme:"))
        l_terrain.addWidget(self.combo)

        btn_reset = QPushButton("Rescan Terrain")
        btn_reset.clicked.connect(self.signals.reset_terrain.emit)
        l_terrain.addWidget(btn_reset)
        l_terrain.addStretch()
        t_terrain.setLayout(l_terrain)

        self.tabs.addTab(t_water, "Water")
        self.tabs.addTab(t_terrain, "Terrain")

        btn_save = QPushButton("Save Settings")
        btn_save.clicked.connect(self.signals.save_config.emit)

        side_layout.addWidget(gb_status)
        side_layout.addWidget(self.tabs)
        side_layout.addWidget(btn_save)
        side_layout.addStretch()

        # ================= Preview =================
        self.video = VideoWidget()
        self.video.cell_clicked.connect(self._on_cell_clicked)

        layout.addWidget(sidebar)
        layout.addWidget(self.video, stretch=1)

    @staticmethod
    def _source_text(sources):
        return "Source: " + ", ".join(f"({x}, {y})" for x, y in sources)

    # --- Slots & Handlers ---

    def _on_cell_clicked(self, x, y):
        logger.debug("Preview clicked at cell (%d, %d)", x, y)
        self.video_hint.setText(self._source_text([(x, y)]))
        self.signals.source_selected.emit(x, y)

    @Slot(str)
    def set_status(self, text):
        self.status_label.setText(text)

    @Slot(np.ndarray)
    def update_feed(self, frame):
        # Handle Gray (2D) vs Color (3D)
        frame = np.ascontiguousarray(frame)
        if len(frame.shape) == 2:
            h, w = frame.shape
            bytes_per_line = w
            fmt = QImage.Format_Grayscale8
        else:
            h, w, ch = frame.shape
            bytes_per_line = ch * w
            fmt = QImage.Format_BGR888

        img = QImage(frame.data, w, h, bytes_per_line, fmt)
        self.video.set_frame(img.copy())

import json
import logging
import os

logger = logging.getLogger(__name__)

CONFIG_FILE = "assets/config/sandflow.json"

MAX_DEPTH = 8000.0                # Largest distance the Kinect v2 reports
WATER_HEIGHT_EPSILON = 0.001      # Water at or below this height counts as dry
SEA_LEVEL_HEIGHT_EPSILON = 0.01   # Terrain below this is ground water level
FRESH_WATER_INFLOW = 1000.0       # Inflow at a scale of 1.0
HEIGHT_MAP_MULTIPLIER = 500.0     # 1.0 normalized terrain == 500 units of water

DEPTH_WIDTH = 512
DEPTH_HEIGHT = 424


class SimulationConfig:
    """Runtime-adjustable simulation parameters.

    One instance is shared between the UI, the terrain worker and the water
    tick. Every setter replaces a single attribute, so readers on other
    threads always see either the old or the new value.
    """

    def __init__(self, width=DEPTH_WIDTH, height=DEPTH_HEIGHT):
        self.width = width
        self.height = height

        self.water_inflow_scale = 0.5
        self.minimum_height = 0.5
        self.height_scale_factor = 20.0
        self.sea_level = SEA_LEVEL_HEIGHT_EPSILON
        self.decay_rate = WATER_HEIGHT_EPSILON
        self.water_epsilon = WATER_HEIGHT_EPSILON
        self.water_sources = [(130, 100)]
        self.show_sea_level_indicator = True

        self.target_fps = 60
        self.rebuild_interval_ms = 100

    @property
    def inflow_amount(self):
        return self.water_inflow_scale * FRESH_WATER_INFLOW

    # --- Adjustments from outside (UI) ---

    def adjust_water_flow(self, amount):
        logger.info("Adjusting flow to %s", amount)
        self.water_inflow_scale = float(amount)

    def set_ground_height(self, amount):
        """Moves the whole heightmap up or down.

        Everything scanned at this normalized height ends up at terrain
        height 0, which is how the operator tells the system where the
        floor of the box is.
        """
        logger.info("Adjusting minimum height to %s", amount)
        self.minimum_height = float(amount)

    def set_height_scale(self, amount):
        """Unlike set_ground_height this stretches the heightmap instead of moving it."""
        logger.info("Adjusting height scale to %s", amount)
        self.height_scale_factor = float(amount)

    def set_sea_level(self, amount):
        logger.info("Adjusting sea level to %s", amount)
        self.sea_level = float(amount)

    def set_decay_rate(self, amount):
        logger.info("Adjusting decay rate to %s", amount)
        self.decay_rate = float(amount)

    def set_water_source(self, x, y):
        logger.info("Moving water source to (%s, %s)", x, y)
        self.water_sources = [(int(x), int(y))]

    def add_water_source(self, x, y):
        logger.info("Adding water source at (%s, %s)", x, y)
        self.water_sources = self.water_sources + [(int(x), int(y))]

    def toggle_sea_level_indicator(self, enabled):
        self.show_sea_level_indicator = bool(enabled)

    # --- Serialization ---

    def to_dict(self):
        return {
            "grid": [self.width, self.height],
            "water_inflow_scale": self.water_inflow_scale,
            "minimum_height": self.minimum_height,
            "height_scale_factor": self.height_scale_factor,
            "sea_level": self.sea_level,
            "decay_rate": self.decay_rate,
            "water_sources": [list(s) for s in self.water_sources],
            "show_sea_level_indicator": self.show_sea_level_indicator,
            "target_fps": self.target_fps,
            "rebuild_interval_ms": self.rebuild_interval_ms,
        }

    @classmethod
    def from_dict(cls, data):
        width, height = data.get("grid", [DEPTH_WIDTH, DEPTH_HEIGHT])
        config = cls(int(width), int(height))
        for key in ("water_inflow_scale", "minimum_height", "height_scale_factor",
                    "sea_level", "decay_rate"):
            if key in data:
                setattr(config, key, float(data[key]))
        if "water_sources" in data:
            config.water_sources = [(int(x), int(y)) for x, y in data["water_sources"]]
        if "show_sea_level_indicator" in data:
            config.show_sea_level_indicator = bool(data["show_sea_level_indicator"])
        if "target_fps" in data:
            config.target_fps = int(data["target_fps"])
        if "rebuild_interval_ms" in data:
            config.rebuild_interval_ms = int(data["rebuild_interval_ms"])
        return config


class ConfigManager:
    def __init__(self, path=CONFIG_FILE):
        self.path = path
        self.config = self.load()

    def load(self):
        if not os.path.exists(self.path):
            return SimulationConfig()
        try:
            with open(self.path, 'r') as f:
                return SimulationConfig.from_dict(json.load(f))
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Could not read %s (%s), using defaults", self.path, e)
            return SimulationConfig()

    def save(self, config=None):
        config = config or self.config
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(config.to_dict(), f, indent=4)
        logger.info("Configuration saved to %s", self.path)

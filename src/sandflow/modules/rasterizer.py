import cv2
import numpy as np

from ..core.config import HEIGHT_MAP_MULTIPLIER, WATER_HEIGHT_EPSILON
from .color_maps import ColorMapManager


class OutputRasterizer:
    """Turns a SimulationFrame into images for the projector and the preview."""

    def __init__(self, cmap_manager=None, water_color=(255, 120, 0), sea_level_color=(0, 0, 200),
                 water_opacity=0.8):
        self.cmap_manager = cmap_manager or ColorMapManager()
        self.water_color = water_color          # BGR
        self.sea_level_color = sea_level_color  # BGR
        self.water_opacity = water_opacity

    def water_mask(self, water, epsilon=WATER_HEIGHT_EPSILON):
        """
        Per-cell water intensity in 0..1.
        Dry cells next to water get the mean of their neighbours so a puddle
        does not show single dry pixels along its edge.
        """
        mask = np.zeros(water.shape, dtype=np.float32)
        inner = water[1:-1, 1:-1]
        surrounding = (water[1:-1, 2:] + water[1:-1, :-2] + water[2:, 1:-1] + water[:-2, 1:-1]) / 4.0
        mask[1:-1, 1:-1] = np.where(inner > epsilon, 1.0, np.clip(surrounding, 0.0, 1.0))
        return mask

    def height_image(self, terrain):
        """Normalized terrain (0..1) as an 8-bit grayscale image."""
        return (np.clip(terrain, 0.0, 1.0) * 255).astype(np.uint8)

    def compose(self, frame, show_sea_level=False, sea_level=0.0):
        color = self.cmap_manager.apply(self.height_image(frame.terrain))

        if show_sea_level:
            # frame.terrain is normalized, the sea level is in water units
            color[frame.terrain < sea_level / HEIGHT_MAP_MULTIPLIER] = self.sea_level_color

        alpha = self.water_mask(frame.water) * self.water_opacity
        water_layer = np.empty_like(color)
        water_layer[:] = self.water_color
        return cv2.blendLinear(color, water_layer, (1.0 - alpha).astype(np.float32), alpha.astype(np.float32))

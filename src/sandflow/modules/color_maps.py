import cv2
import numpy as np


class ColorMapManager:
    def __init__(self, default="Jet"):
        # Dynamically find all COLORMAP_ constants in the cv2 library
        self.available_maps = {
            name.replace("COLORMAP_", "").capitalize(): getattr(cv2, name)
            for name in dir(cv2) if name.startswith("COLORMAP_")
        }
        self.current_map_id = self.available_maps.get(default, cv2.COLORMAP_JET)

    def get_names(self):
        """Returns a list of human-readable names for the GUI combo box."""
        return sorted(self.available_maps.keys())

    def set_map_by_name(self, name):
        if name in self.available_maps:
            self.current_map_id = self.available_maps[name]

    def apply(self, height_8bit):
        """
        Colours a terrain height image.
        Input must be an 8-bit single-channel image (0-255), the result is BGR.
        """
        return cv2.applyColorMap(np.ascontiguousarray(height_8bit), self.current_map_id)

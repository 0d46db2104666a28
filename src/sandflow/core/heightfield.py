import logging
import threading
from typing import NamedTuple

import cv2
import numpy as np

from .config import HEIGHT_MAP_MULTIPLIER, MAX_DEPTH

logger = logging.getLogger(__name__)

# Mean of a cell and its four axis neighbours
_STENCIL = np.array([
    [0, 1, 0],
    [1, 1, 1],
    [0, 1, 0]
], dtype=np.float32) / 5.0


class FrameSizeError(ValueError):
    """Raised when a depth buffer does not hold exactly one sample per grid cell."""


class HeightOrderedList:
    """Interior cells sorted from the highest to the lowest terrain.

    Stored as three parallel arrays so the water kernel can walk it without
    touching Python objects. Iterating yields ``(x, y, height)`` triples.
    """

    def __init__(self, xs, ys, heights):
        self.xs = xs
        self.ys = ys
        self.heights = heights
        for arr in (self.xs, self.ys, self.heights):
            arr.setflags(write=False)

    @classmethod
    def from_terrain(cls, terrain):
        h, w = terrain.shape
        ys, xs = np.mgrid[1:h - 1, 1:w - 1]
        heights = terrain[1:h - 1, 1:w - 1].ravel()
        # Stable descending sort: ties stay in row-major order
        order = np.argsort(-heights, kind="stable")
        return cls(xs.ravel()[order].astype(np.int32),
                   ys.ravel()[order].astype(np.int32),
                   heights[order].astype(np.float32))

    def __len__(self):
        return len(self.xs)

    def __getitem__(self, index):
        return int(self.xs[index]), int(self.ys[index]), float(self.heights[index])

    def __iter__(self):
        for x, y, height in zip(self.xs, self.ys, self.heights):
            yield int(x), int(y), float(height)


class TerrainSnapshot(NamedTuple):
    """A terrain grid together with its ordered cell list.

    Snapshots are never modified after construction; the rebuild hands a new
    one over by replacing the reference.
    """
    terrain: np.ndarray
    ordered: HeightOrderedList

    @classmethod
    def from_terrain(cls, terrain):
        terrain = np.array(terrain, dtype=np.float32)
        terrain.setflags(write=False)
        return cls(terrain, HeightOrderedList.from_terrain(terrain))

    @classmethod
    def flat(cls, width, height):
        return cls.from_terrain(np.zeros((height, width), dtype=np.float32))

    @property
    def shape(self):
        return self.terrain.shape


def normalized_terrain(terrain):
    """Reduces terrain heights to the 0..1 range used for display."""
    return terrain / HEIGHT_MAP_MULTIPLIER


class HeightfieldBuilder:
    def __init__(self, config):
        self.config = config
        self.snapshot = TerrainSnapshot.flat(config.width, config.height)
        self.rebuild_count = 0
        # Guards self.snapshot, a reset may arrive from the UI thread mid-rebuild
        self.lock = threading.RLock()

    def reset(self):
        """Forgets the scanned terrain and starts again from a flat box."""
        with self.lock:
            self.snapshot = TerrainSnapshot.flat(self.config.width, self.config.height)
            return self.snapshot

    def compute_heights(self, samples):
        """Converts raw distance samples into unsmoothed terrain heights."""
        depth = np.asarray(samples)
        w, h = self.config.width, self.config.height
        if depth.size != w * h:
            raise FrameSizeError(f"Expected {w * h} depth samples for a {w}x{h} grid, got {depth.size}")

        # The sensor reports 0 for the nearest point and MAX_DEPTH for the farthest
        inverse_height = depth.reshape(h, w).astype(np.float32) / MAX_DEPTH

        # Move the ground by minimum_height, then stretch to water units
        heights = (1.0 - inverse_height) - self.config.minimum_height
        heights *= self.config.height_scale_factor
        heights *= HEIGHT_MAP_MULTIPLIER
        return heights

    def smooth(self, heights):
        """5-point blur of the interior; border cells are left as they are."""
        smoothed = cv2.filter2D(heights, -1, _STENCIL, borderType=cv2.BORDER_REPLICATE)
        smoothed[0, :] = heights[0, :]
        smoothed[-1, :] = heights[-1, :]
        smoothed[:, 0] = heights[:, 0]
        smoothed[:, -1] = heights[:, -1]
        return smoothed

    def rebuild(self, samples):
        """Derives a new terrain snapshot from one depth frame.

        A missing frame keeps the previous snapshot, the water layer depends
        on the terrain staying continuous between ticks.
        """
        if samples is None:
            logger.debug("No depth frame, keeping previous terrain")
            return self.snapshot

        heights = self.compute_heights(samples)
        while True:
            with self.lock:
                previous = self.snapshot
            # Average with the last frame to suppress sensor noise
            blended = (previous.terrain + heights) / 2
            snapshot = TerrainSnapshot.from_terrain(self.smooth(blended))

            with self.lock:
                if self.snapshot is previous:
                    self.snapshot = snapshot
                    self.rebuild_count += 1
                    return snapshot
            logger.debug("Terrain was reset during the rebuild, blending again")

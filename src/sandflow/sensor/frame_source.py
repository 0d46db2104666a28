import logging
import os

import cv2
import numpy as np

from ..core.config import MAX_DEPTH

logger = logging.getLogger(__name__)


class FrameSource:
    """
    Delivers raw depth frames for the terrain rebuild.

    ``get_frame`` returns a flat, row-major uint16 array with one distance
    sample per grid cell, or None when no new frame is available.
    """

    def __init__(self, width, height):
        self.width = width
        self.height = height

    def get_frame(self):
        raise NotImplementedError

    def close(self):
        pass


class KinectFrameSource(FrameSource):
    def __init__(self, width, height, index=0):
        super().__init__(width, height)
        try:
            import freenect
        except ImportError:
            raise ImportError('Kinect dependencies are not installed (pip install sandflow[kinect])')
        self.freenect = freenect
        self.index = index
        self.name = 'kinect_v1'

    def get_frame(self):
        # Registered depth is metric (mm) and aligned to the RGB camera
        result = self.freenect.sync_get_depth(index=self.index, format=self.freenect.DEPTH_REGISTERED)
        if result is None:
            return None
        depth = result[0].astype(np.float32)

        # Shadowed pixels come back as 0, push them to the far plane
        depth[depth == 0] = MAX_DEPTH

        depth = cv2.resize(depth, (self.width, self.height), interpolation=cv2.INTER_NEAREST)
        return np.clip(depth, 0, MAX_DEPTH).astype(np.uint16).ravel()

    def close(self):
        self.freenect.sync_stop()


class DummyFrameSource(FrameSource):
    """Synthetic sand landscape for running without a sensor.

    A few gaussian hills over a flat box floor plus per-frame sensor noise.
    """

    def __init__(self, width, height, floor_depth=4000.0, hill_height=300.0, n_hills=4, noise=5.0, seed=None):
        super().__init__(width, height)
        self.rng = np.random.default_rng(seed)
        self.noise = noise

        yy, xx = np.mgrid[0:height, 0:width].astype(np.float32)
        depth = np.full((height, width), floor_depth, dtype=np.float32)
        for _ in range(n_hills):
            cx, cy = self.rng.uniform(0, width), self.rng.uniform(0, height)
            radius = self.rng.uniform(0.08, 0.2) * min(width, height)
            depth -= hill_height * np.exp(-((xx - cx) ** 2 + (yy - cy) ** 2) / (2 * radius ** 2))
        self.base_depth = depth

    def get_frame(self):
        depth = self.base_depth + self.rng.normal(0, self.noise, self.base_depth.shape)
        return np.clip(depth, 0, MAX_DEPTH).astype(np.uint16).ravel()


class RecordedFrameSource(FrameSource):
    """Replays depth frames stored with ``numpy.save``.

    The file holds either a single frame or a stack of frames; a stack is
    played back in a loop.
    """

    def __init__(self, path, width, height):
        super().__init__(width, height)
        frames = np.load(path)
        if frames.size % (width * height) != 0:
            raise ValueError(f"{path} does not contain {width}x{height} frames")
        self.frames = frames.reshape(-1, width * height).astype(np.uint16)
        self.position = 0
        logger.info("Loaded %d recorded frame(s) from %s", len(self.frames), path)

    def get_frame(self):
        frame = self.frames[self.position]
        self.position = (self.position + 1) % len(self.frames)
        return frame

    @staticmethod
    def record(frame, filename):
        "Saves a depth frame so it can be replayed later"
        directory = os.path.dirname(filename)
        if directory:
            os.makedirs(directory, exist_ok=True)
        np.save(filename, np.asarray(frame, dtype=np.uint16))
        logger.info("Depth frame recorded and saved to %s", filename)

import logging
import time
from typing import NamedTuple

import numpy as np
from PySide6.QtCore import QObject, QTimer, Signal

from .heightfield import HeightfieldBuilder, normalized_terrain
from .terrain_worker import TerrainUpdateWorker
from ..modules.water_flow import WaterDistributor

logger = logging.getLogger(__name__)


class SimulationFrame(NamedTuple):
    water: np.ndarray    # water heights, a copy owned by the consumer
    terrain: np.ndarray  # terrain heights normalized to 0..1
    tick: int


class SimulationClock(QObject):
    """Runs the per-tick pipeline.

    height update -> water injection -> distribution -> decay -> output

    The height rebuild either happens inline (``tick(samples)``) or on a
    ``TerrainUpdateWorker`` that publishes finished snapshots. Each tick reads
    the published snapshot once, so it never mixes two terrains.
    """
    frame_ready = Signal(object)

    def __init__(self, config, builder=None, distributor=None):
        super().__init__()
        self.config = config
        self.builder = builder or HeightfieldBuilder(config)
        self.distributor = distributor or WaterDistributor(config.width, config.height, config.water_epsilon)
        self.snapshot = self.builder.snapshot
        self.tick_count = 0

        self.frame_source = None
        self.worker = None
        self.timer = QTimer(self)
        self.timer.timeout.connect(self.tick)

    @property
    def water(self):
        return self.distributor.water

    def publish_terrain(self, snapshot):
        # Replacing the reference is the whole hand-off
        self.snapshot = snapshot

    def publish_rebuilt(self, snapshot):
        """Publishes a snapshot from the builder unless a reset superseded it."""
        with self.builder.lock:
            if snapshot is self.builder.snapshot:
                self.publish_terrain(snapshot)

    def rebuild(self, samples):
        snapshot = self.builder.rebuild(samples)
        self.publish_rebuilt(snapshot)
        return snapshot

    def reset_terrain(self):
        with self.builder.lock:
            self.publish_terrain(self.builder.reset())

    def clear_water(self):
        logger.info("Draining all water")
        self.distributor.clear()

    def tick(self, samples=None):
        if samples is not None:
            self.rebuild(samples)

        snapshot = self.snapshot
        cfg = self.config
        started = time.perf_counter()

        self.distributor.tick(snapshot, cfg.water_sources, cfg.inflow_amount)
        self.distributor.decay(snapshot, cfg.decay_rate, cfg.sea_level)

        self.tick_count += 1
        frame = SimulationFrame(self.distributor.water.copy(), normalized_terrain(snapshot.terrain), self.tick_count)
        if self.tick_count % 300 == 0:
            logger.debug("Tick %d took %.1f ms, water volume %.1f", self.tick_count,
                         (time.perf_counter() - started) * 1000, self.distributor.total_volume)
        self.frame_ready.emit(frame)
        return frame

    # --- Scheduling ---

    def attach_source(self, frame_source):
        self.frame_source = frame_source

    def start(self):
        if self.frame_source is not None and self.worker is None:
            self.worker = TerrainUpdateWorker(self.frame_source, self.builder, self.publish_rebuilt,
                                              self.config.rebuild_interval_ms)
            self.worker.start()
        self.timer.start(int(1000 / self.config.target_fps))
        logger.info("Simulation started at %s fps", self.config.target_fps)

    def stop(self):
        """Stops scheduling ticks; the tick in progress always completes."""
        self.timer.stop()
        if self.worker is not None:
            self.worker.stop()
            self.worker = None
        logger.info("Simulation stopped after %d ticks", self.tick_count)

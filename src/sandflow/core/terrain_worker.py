import logging

from PySide6.QtCore import QThread, Signal

logger = logging.getLogger(__name__)


class TerrainUpdateWorker(QThread):
    """Rebuilds the terrain from the sensor on its own cadence.

    The water tick keeps running on the main loop; each finished snapshot is
    handed over through ``publish`` as a whole, never cell by cell.
    """
    terrain_updated = Signal(int)
    update_failed = Signal(str)

    def __init__(self, frame_source, builder, publish, interval_ms=100):
        super().__init__()
        self.frame_source = frame_source
        self.builder = builder
        self.publish = publish
        self.interval_ms = interval_ms
        self.running = True

    def run(self):
        logger.info("Terrain update thread started")
        while self.running:
            try:
                samples = self.frame_source.get_frame()
                if samples is not None:
                    self.publish(self.builder.rebuild(samples))
                    self.terrain_updated.emit(self.builder.rebuild_count)
            except Exception as e:
                logger.warning("Terrain update error: %s", e)
                self.update_failed.emit(str(e))
                self.msleep(500)  # Wait and retry
                continue
            self.msleep(self.interval_ms)
        logger.info("Terrain update thread stopped")

    def stop(self):
        self.running = False
        self.wait()

import argparse
import logging
import sys

from PySide6.QtWidgets import QApplication

from sandflow.core.clock import SimulationClock
from sandflow.core.config import CONFIG_FILE, ConfigManager
from sandflow.modules.rasterizer import OutputRasterizer
from sandflow.sensor.frame_source import DummyFrameSource, KinectFrameSource, RecordedFrameSource
from sandflow.ui.dashboard import SandboxDashboard

logger = logging.getLogger("sandflow")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="AR sandbox water simulation")
    parser.add_argument("--source", choices=["kinect", "dummy", "recorded"], default="kinect",
                        help="where depth frames come from")
    parser.add_argument("--recording", help=".npy file replayed by --source recorded")
    parser.add_argument("--config", default=CONFIG_FILE, help="settings file")
    parser.add_argument("--fps", type=int, help="water ticks per second")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)
    if args.source == "recorded" and not args.recording:
        parser.error("--source recorded requires --recording")
    return args


def create_frame_source(args, config):
    if args.source == "dummy":
        return DummyFrameSource(config.width, config.height)
    if args.source == "recorded":
        return RecordedFrameSource(args.recording, config.width, config.height)
    return KinectFrameSource(config.width, config.height)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    manager = ConfigManager(args.config)
    config = manager.config
    if args.fps:
        config.target_fps = args.fps

    # 1. Initialize the Qt Application
    app = QApplication(sys.argv[:1])
    app.setStyle('Fusion')

    # 2. Simulation core and its sensor
    source = create_frame_source(args, config)
    clock = SimulationClock(config)
    clock.attach_source(source)
    rasterizer = OutputRasterizer()

    # 3. Operator console
    window = SandboxDashboard(config, rasterizer.cmap_manager.get_names())
    sig = window.signals
    sig.inflow_changed.connect(config.adjust_water_flow)
    sig.decay_changed.connect(config.set_decay_rate)
    sig.ground_changed.connect(config.set_ground_height)
    sig.scale_changed.connect(config.set_height_scale)
    sig.sea_level_changed.connect(config.set_sea_level)
    sig.sea_indicator_toggled.connect(config.toggle_sea_level_indicator)
    sig.source_selected.connect(config.set_water_source)
    sig.cmap_changed.connect(rasterizer.cmap_manager.set_map_by_name)
    sig.clear_water.connect(clock.clear_water)
    sig.reset_terrain.connect(clock.reset_terrain)
    sig.save_config.connect(lambda: manager.save(config))
    window.combo.setCurrentText("Jet")

    def on_frame(frame):
        window.update_feed(rasterizer.compose(frame, config.show_sea_level_indicator, config.sea_level))
        if frame.tick % 30 == 0:
            window.set_status(f"Tick {frame.tick} | water volume {clock.distributor.total_volume:.0f}")

    clock.frame_ready.connect(on_frame)

    # 4. Execute the Application loop
    window.show()
    clock.start()
    try:
        return app.exec()
    finally:
        logger.info("Closing Sandflow...")
        # Ensure threads stop correctly
        clock.stop()
        source.close()


if __name__ == "__main__":
    sys.exit(main())

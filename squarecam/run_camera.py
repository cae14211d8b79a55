"""CLI runner for the square camera.

Opens a camera, requests one capture and writes the square result. With
--simulate the camera is simulated (optionally fed from --frame); otherwise a
Raspberry Pi camera is used through picamera2.
"""
import argparse
import sys
import logging
import threading

from PIL import Image

from squarecam.config import load_config, DEFAULT_SIMULATION
from squarecam.core import SquareCameraCore
from squarecam.orientation import Rotation
from squarecam.session import SimulatedCameraSession, StaticDisplay, Picamera2Session
from squarecam.errors import SquareCamError

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


def _parse_size(text):
    try:
        w, h = text.lower().split("x")
        return (int(w), int(h))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {text!r}")


def main(argv=None):
    p = argparse.ArgumentParser(description="Capture one square photo")
    p.add_argument("--simulate", action="store_true", help="Use a simulated camera instead of picamera2")
    p.add_argument("--config", help="Path to capture config JSON (defaults to squarecam/sample_config.json)")
    p.add_argument("--camera-id", type=int, default=0, help="Camera to open (0 = back)")
    p.add_argument("--rotation", type=int, choices=[0, 90, 180, 270], default=0, help="Display rotation in degrees")
    p.add_argument("--device-orientation", type=int, default=0, help="Orientation sensor reading (0-359) at capture time")
    p.add_argument("--viewport", type=_parse_size, default=tuple(DEFAULT_SIMULATION["display_size"]), help="Visible display size WxH")
    p.add_argument("--real", type=_parse_size, default=None, help="Real display size WxH (defaults to --viewport)")
    p.add_argument("--frame", help="Image file the simulated camera captures")
    p.add_argument("--flash-cycles", type=int, default=0, help="Press the flash button this many times before capturing")
    p.add_argument("--output", default="square.png", help="Where to write the square image")
    p.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = p.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.info("Debug logging enabled")

    try:
        cfg = load_config(args.config) if args.config else load_config()
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load config: {e}")
        return 1

    display = StaticDisplay(size=args.viewport, real_size=args.real or args.viewport, rotation=Rotation.from_degrees(args.rotation))

    try:
        if args.simulate:
            logger.info("Using simulated camera")
            frame = None
            if args.frame:
                with Image.open(args.frame) as f:
                    frame = f.copy()
            session = SimulatedCameraSession(frame=frame)
        else:
            logger.info("Using Pi camera")
            session = Picamera2Session()
    except (OSError, SquareCamError) as e:
        logger.error(f"Failed to initialize camera: {e}")
        return 1

    done = threading.Event()
    result = {}

    def on_picture_taken(image):
        result["image"] = image
        done.set()

    def on_camera_error(error):
        result["camera_error"] = error

    def on_capture_failed(error):
        result["capture_error"] = error
        done.set()

    core = SquareCameraCore(
        session,
        display,
        on_picture_taken=on_picture_taken,
        on_camera_error=on_camera_error,
        on_capture_failed=on_capture_failed,
        config=cfg,
        camera_id=args.camera_id,
    )

    if not core.start():
        logger.error("Camera failed to start")
        core.stop()
        return 1
    if "camera_error" in result:
        logger.error(f"Camera error: {result['camera_error'].message}")
        core.stop()
        return 1

    try:
        logger.info(f"Camera switch available: {core.camera_switch_available()}")
        for _ in range(max(0, args.flash_cycles)):
            core.swap_flash()
        state = core.flash_button_state()
        logger.info(f"Flash button visible={state.visible} icon={state.icon}")

        core.orientation_listener.on_orientation_changed(args.device_orientation)
        core.request_capture()
        if not done.wait(timeout=cfg["capture_timeout"]):
            logger.error(f"No frame received within {cfg['capture_timeout']}s")
            return 1

        if "capture_error" in result:
            logger.error(f"Capture failed: {result['capture_error'].message}")
            return 1

        image = result["image"]
        image.save(args.output)
        logger.info(f"Saved {image.size[0]}x{image.size[1]} square image to {args.output}")
        return 0
    except SquareCamError as e:
        logger.error(f"Camera error: {e}")
        return 1
    finally:
        if not core.capture_in_flight:
            core.stop()


if __name__ == "__main__":
    sys.exit(main())

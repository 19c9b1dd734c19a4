"""
Scan an ID card from a still image or a live camera.

Usage:
    # Crop a card from a photo
    python scripts/scan_id_card.py --image photo.jpg --output card.jpg

    # Three-attempt scan from the default camera
    python scripts/scan_id_card.py --camera 0 --output card.jpg

    # Wait until a card is held steady, then scan
    python scripts/scan_id_card.py --camera 0 --auto --output card.jpg

Exit codes:
    0  card captured
    1  scan failed (no card, too blurry, processing error)
    2  camera unavailable
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import cv2  # noqa: E402

from src.capture import AutoCaptureLoop, CameraSession, DeviceError, StillImageSource  # noqa: E402
from src.common.config_loader import DEFAULT_CONFIG_PATH, load_config  # noqa: E402
from src.pipeline import CardCropper, MultiAttemptSelector  # noqa: E402

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_SCAN_FAILED = 1
EXIT_DEVICE_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect, rectify and quality-check an ID card",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--image", type=Path, help="Still image to scan")
    source.add_argument("--camera", type=int, help="Camera device index")
    parser.add_argument(
        "--auto",
        action="store_true",
        help="Wait for a steady card before scanning (camera only)",
    )
    parser.add_argument(
        "--attempts", type=int, default=None, help="Capture attempts per scan"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Pipeline configuration YAML",
    )
    parser.add_argument("--output", type=Path, help="Where to write the result image")
    parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="Seconds to wait for auto-capture before giving up",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def run_auto_capture(camera, scanner, config, timeout):
    loop = AutoCaptureLoop(
        camera,
        scanner.cropper.selector,
        scanner,
        config.auto_capture,
        on_status=lambda message: logger.info(f"[AUTO] {message}"),
    )
    loop.start()
    if not loop.wait(timeout):
        logger.warning(f"No card captured within {timeout:.0f}s")
        loop.cancel()
        return None
    if loop.error is not None:
        raise loop.error
    return loop.result


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.auto and args.image is not None:
        parser.error("--auto requires --camera")
    if args.attempts is not None and args.attempts < 1:
        parser.error("--attempts must be at least 1")

    config = load_config(args.config)
    scanner = MultiAttemptSelector(CardCropper(config), config.scan)

    try:
        if args.image is not None:
            source = StillImageSource.from_file(args.image)
            attempts = args.attempts if args.attempts is not None else 1
            result = scanner.scan(source, attempts=attempts)
        elif args.auto:
            camera = CameraSession(args.camera)
            result = run_auto_capture(camera, scanner, config, args.timeout)
        else:
            with CameraSession(args.camera) as camera:
                result = scanner.scan(camera, attempts=args.attempts)
    except DeviceError as e:
        logger.error(f"Camera error: {e}")
        return EXIT_DEVICE_ERROR

    if result is None:
        return EXIT_SCAN_FAILED

    if args.output is not None and result.image is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        cv2.imwrite(str(args.output), result.image)
        logger.info(f"Wrote {args.output}")

    sharpness = f"{result.sharpness:.2f}" if result.sharpness is not None else "n/a"
    if result.is_pass():
        logger.info(f"Card captured (sharpness={sharpness})")
        return EXIT_SUCCESS

    logger.warning(f"Scan failed: {result.reason} (sharpness={sharpness})")
    logger.warning(result.get_user_message())
    return EXIT_SCAN_FAILED


if __name__ == "__main__":
    sys.exit(main())

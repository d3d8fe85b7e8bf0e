"""
Entry point for the hand input server.

Usage examples:
    python gesture_server.py                          # calibrate, then stream events
    python gesture_server.py --skip-calibration       # use screen center, no identity lock
    python gesture_server.py --config my.json --port 6000
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
PY_DIR = ROOT / "python"
if str(PY_DIR) not in sys.path:
    sys.path.insert(0, str(PY_DIR))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hand input server")
    parser.add_argument("--config", default=str(PY_DIR / "config.json"), help="Path to the JSON config file.")
    parser.add_argument("--host", help="Override network.host.")
    parser.add_argument("--port", type=int, help="Override network.port.")
    parser.add_argument("--camera", type=int, help="Override tracker.camera_index.")
    parser.add_argument(
        "--skip-calibration",
        action="store_true",
        help="Start streaming immediately with the default screen-center offset.",
    )
    parser.add_argument(
        "--no-signature-lock",
        action="store_true",
        help="Do not gate hands by the signature captured during calibration.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log per-frame debug output.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    from Config import ConfigError, load_config, validate_config
    from main_loop import main as run_main_loop

    try:
        cfg = load_config(args.config)
        if args.host:
            cfg["network"]["host"] = args.host
        if args.port is not None:
            cfg["network"]["port"] = args.port
        if args.camera is not None:
            cfg["tracker"]["camera_index"] = args.camera
        validate_config(cfg)
    except ConfigError as e:
        logging.getLogger("gesture_server").error("Invalid configuration: %s", e)
        sys.exit(2)

    run_main_loop(
        cfg,
        config_path=args.config,
        skip_calibration=args.skip_calibration,
        signature_lock=not args.no_signature_lock,
    )


if __name__ == "__main__":
    main()

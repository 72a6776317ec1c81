"""Command-line front end.

Stitches the given images into one composite and prints where it was saved.

Usage:
    stitchbox left.jpg middle.jpg right.jpg
    stitchbox page_1.png page_2.png --mode scans --output-dir ./scans
    stitchbox *.jpg --engine feature --log-level debug

Results are delivered on the main thread, which pumps the completion queue
while the request runs on the background worker.
"""

import argparse
import logging
import sys
from pathlib import Path

from loguru import logger as loguru_logger

from stitchbox.config import load_config
from stitchbox.pipeline.controller import StitchCoordinator
from stitchbox.pipeline.delivery import QueueCompletionContext
from stitchbox.pipeline.engine import ENGINES
from stitchbox.pipeline.models import Failure, StitchMode, StitchRequest

LOGGER = logging.getLogger("stitchbox")
LOG_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def _configure_logging(level: str):
    logging.basicConfig(
        level=LOG_LEVELS[level],
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    loguru_logger.remove()
    loguru_logger.add(sys.stderr, level=level.upper())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stitch overlapping photos into a panorama or scan")
    parser.add_argument("images", nargs="+", help="Input images, in sweep order")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in StitchMode],
        default=StitchMode.PANORAMA.value,
        help="panorama: rotating camera; scans: flat documents (default: panorama)",
    )
    parser.add_argument("--engine", choices=sorted(ENGINES), help="Stitching engine (default from config)")
    parser.add_argument("--output-dir", help="Directory for stitched results (default from config)")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS.keys(),
        default="info",
        help="Logging verbosity",
    )
    return parser


def run(args) -> int:
    config = load_config(args.config)
    if args.engine:
        config.engine = args.engine
    if args.output_dir:
        config.workspace.output_dir = Path(args.output_dir)

    request = StitchRequest(args.images, StitchMode(args.mode))
    completion = QueueCompletionContext()
    results = []

    with StitchCoordinator.from_config(config, on_result=results.append, completion=completion) as coordinator:
        coordinator.submit(request)
        while not results:
            completion.run_pending(timeout=0.2)

    result = results[0]
    if isinstance(result, Failure):
        LOGGER.error(f"Stitching failed: {result.message}")
        print(f"{result.kind.value}: {result.message}")
        return 1

    print(result.location)
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.log_level)

    try:
        return run(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except (OSError, ValueError) as e:
        LOGGER.error(f"Failed to start: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Mask refinement benchmark.

Runs the refinement pipeline over synthetic segmenter output (or a mask
image) and reports per-frame processing time.

Usage:
    segrefine-bench [--preset PRESET] [--config CONFIG_PATH] [--frames N]
    segrefine-bench --input mask.png --output refined.png

Examples:
    segrefine-bench                              # MEDIUM preset, 640x480 synthetic frames
    segrefine-bench --preset PERFORMANCE         # Low-power settings
    segrefine-bench --width 1280 --height 720    # HD frames
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterator, Optional

import cv2
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from segrefine.config import ACTIVE_PRESET, PRESETS, PipelineConfig, describe_config, load_config
from segrefine.pipeline.orchestrator import MaskPipeline
from segrefine.segmentation.mask_io import probability_from_uint8, to_uint8


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} {level: <7} {name}:{function}:{line} - {message}"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    file_level: str = "DEBUG",
    rotation: str = "5 MB",
    retention: int = 3,
):
    """Route loguru output to stderr and, optionally, a rotating log file.

    The file sink keeps per-frame DEBUG timing lines even when the console
    only shows INFO. retention is the number of rotated files kept.
    """
    logger.remove()
    logger.add(sys.stderr, level=log_level.upper(), format=CONSOLE_FORMAT, colorize=True)

    if not log_file:
        return

    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.add(path, level=file_level, format=FILE_FORMAT, rotation=rotation, retention=retention)
    logger.debug(f"Logging to {path}")


# ============================================================
# SYNTHETIC SEGMENTER OUTPUT
# ============================================================

def synthetic_frames(
    width: int,
    height: int,
    count: int,
    seed: int = 0,
) -> Iterator[NDArray[np.float32]]:
    """
    Generate noisy probability masks resembling a selfie segmenter.

    Each frame holds a jittering head-and-shoulders subject, a few
    confident background blobs, and low-confidence speckle.
    """
    rng = np.random.default_rng(seed)

    for _ in range(count):
        canvas = np.zeros((height, width), dtype=np.uint8)

        cx = width // 2 + int(rng.integers(-4, 5))
        cy = height // 2 + int(rng.integers(-4, 5))

        # Head and torso
        cv2.ellipse(canvas, (cx, cy - height // 5), (width // 10, height // 7), 0, 0, 360, 230, -1)
        cv2.ellipse(canvas, (cx, cy + height // 4), (width // 4, height // 4), 0, 0, 360, 230, -1)

        # Background objects that pass the threshold
        for _ in range(int(rng.integers(1, 4))):
            x = int(rng.integers(0, width))
            y = int(rng.integers(0, height))
            r = int(rng.integers(2, max(3, min(width, height) // 30)))
            cv2.circle(canvas, (x, y), r, 200, -1)

        probability = canvas.astype(np.float32) / 255.0
        probability += rng.normal(0.0, 0.08, size=probability.shape).astype(np.float32)
        yield np.clip(probability, 0.0, 1.0)


def read_mask_image(path: str) -> NDArray[np.float32]:
    """Read a grayscale mask image as a probability mask."""
    image = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise FileNotFoundError(f"Could not read mask image: {path}")
    return probability_from_uint8(image)


# ============================================================
# BENCHMARK
# ============================================================

def run_benchmark(
    pipeline: MaskPipeline,
    frames: Iterator[NDArray[np.float32]],
) -> dict:
    """Process frames sequentially and collect timing stats."""
    times = []
    last = None

    for probability in frames:
        last = pipeline.refine(probability)
        times.append(last.stats.processing_time_ms)

    if last is None:
        return {"frames": 0}

    return {
        "frames": len(times),
        "avg_ms": float(np.mean(times)),
        "max_ms": float(np.max(times)),
        "foreground_ratio": last.stats.foreground_ratio,
        "mask": last.mask,
    }


# ============================================================
# ENTRY POINT
# ============================================================

def _positive_int(text: str) -> int:
    """argparse type for sizes and counts that must be at least 1."""
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {text!r}")
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Segmentation mask refinement benchmark",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--preset",
        type=str.upper,
        choices=list(PRESETS.keys()),
        default=None,
        help=f"Quality preset (default: {ACTIVE_PRESET}, or the config file)",
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        default=None,
        help="Grayscale mask image to refine instead of synthetic frames",
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Write the last refined mask as an 8-bit image",
    )

    parser.add_argument("--width", type=_positive_int, default=640, help="Synthetic frame width (default: 640)")
    parser.add_argument("--height", type=_positive_int, default=480, help="Synthetic frame height (default: 480)")
    parser.add_argument("--frames", "-n", type=_positive_int, default=120, help="Frames to process (default: 120)")
    parser.add_argument("--seed", type=int, default=0, help="Random seed for synthetic frames")

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Optional log file path",
    )

    return parser


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level, args.log_file)

    if args.config:
        config = load_config(args.config)
        if args.preset:
            logger.warning("--preset is ignored when --config is given; set 'preset' in the file")
    else:
        config = PipelineConfig.from_preset(args.preset or ACTIVE_PRESET)

    logger.info(describe_config(config))

    if args.input:
        try:
            probability = read_mask_image(args.input)
        except FileNotFoundError as e:
            logger.error(str(e))
            return 1
        frames = iter([probability] * args.frames)
    else:
        frames = synthetic_frames(args.width, args.height, args.frames, args.seed)

    pipeline = MaskPipeline(config)
    report = run_benchmark(pipeline, frames)

    if report["frames"] == 0:
        logger.warning("No frames processed")
        return 1

    logger.info(
        f"Processed {report['frames']} frames: {report['avg_ms']:.2f}ms avg, "
        f"{report['max_ms']:.2f}ms max, foreground {report['foreground_ratio'] * 100:.1f}%"
    )

    if args.output:
        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        cv2.imwrite(args.output, to_uint8(report["mask"]))
        logger.info(f"Refined mask written to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())

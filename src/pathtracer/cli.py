"""Command-line interface: render a named demo scene to an image file.

Usage:
    pathtracer OUTPUT SCENE [SAMPLES] [options]

Options:
    --seed SEED         Seed for host and device randomness (default: random)
    --arch ARCH         Taichi backend: cpu, gpu, cuda, vulkan or metal (default: cpu)
    --width WIDTH       Override the scene's image width
    --earth-texture P   Image used by the earth texture (default: assets/earthmap.jpg)
    --log-level LEVEL   Logging level (default: $PATHTRACER_LOG_LEVEL or INFO)
    --log-file PATH     Also write logs to a rotating file
    --quiet             Suppress the progress line

Example:
    pathtracer cornell.ppm cornell_box 50 --width 300
"""

from __future__ import annotations

import argparse
import dataclasses
import os
import random
import sys
import time
from typing import List, Optional

from pathtracer.config import ARCHS, RuntimeConfig, init_runtime
from pathtracer.logging_config import get_logger, setup_logging

logger = get_logger("cli")

LOG_LEVEL_ENV = "PATHTRACER_LOG_LEVEL"


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="pathtracer",
        description="Render a demo scene with a Monte Carlo path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("output", help="Output image path (.ppm, .png, .jpg, ...)")
    parser.add_argument("scene", help="Name of the demo scene to render")
    parser.add_argument(
        "samples",
        nargs="?",
        type=_positive_int,
        default=None,
        help="Samples per pixel (default: the scene's own setting)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for host and device randomness (default: random)",
    )
    parser.add_argument(
        "--arch",
        choices=sorted(ARCHS),
        default="cpu",
        help="Taichi backend (default: cpu)",
    )
    parser.add_argument(
        "--width",
        type=_positive_int,
        default=None,
        help="Image width in pixels (default: the scene's own setting)",
    )
    parser.add_argument(
        "--earth-texture",
        default=None,
        help="Image used by the earth texture (default: assets/earthmap.jpg)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_LEVEL_ENV, "INFO"),
        help=f"Logging level (default: ${LOG_LEVEL_ENV} or INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress the progress line",
    )
    return parser.parse_args(argv)


def render_to_file(args: argparse.Namespace, seed: int) -> None:
    """Build the requested scene, render it and write the image.

    Must be called after the Taichi runtime is initialized.
    """
    # Field-declaring modules can only be imported after ti.init
    from pathtracer.core.integrator import render
    from pathtracer.output.export import save_image
    from pathtracer.scene.scenes import DEFAULT_EARTH_TEXTURE, SCENES, SceneBuildOptions, build_scene

    if args.scene not in SCENES:
        raise ValueError(f"Unknown scene {args.scene!r}, expected one of {', '.join(SCENES)}")

    earth_texture = args.earth_texture or DEFAULT_EARTH_TEXTURE
    options = SceneBuildOptions(seed=seed, earth_texture_path=earth_texture)
    scene, camera = build_scene(args.scene, options)

    overrides = {}
    if args.samples is not None:
        overrides["samples_per_pixel"] = args.samples
    if args.width is not None:
        overrides["image_width"] = args.width
    if overrides:
        camera = dataclasses.replace(camera, **overrides)

    start_time = time.time()

    def progress_callback(done: int, total: int) -> None:
        if args.quiet:
            return
        elapsed = time.time() - start_time
        progress_pct = (done / total) * 100 if total > 0 else 0
        print(
            f"\r  Progress: {done}/{total} pixels ({progress_pct:.1f}%) - {elapsed:.1f}s",
            end="",
            file=sys.stderr,
            flush=True,
        )

    result = render(scene, camera, progress=progress_callback)
    if not args.quiet:
        print(file=sys.stderr)  # Newline after progress

    save_image(args.output, result.pixels, result.width, result.height)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        setup_logging(args.log_level, args.log_file)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    seed = args.seed if args.seed is not None else random.randrange(2**31)
    logger.info("Rendering scene %r with seed %d", args.scene, seed)

    try:
        init_runtime(RuntimeConfig(arch=args.arch, random_seed=seed))
        render_to_file(args, seed)
    except (ValueError, RuntimeError, OSError) as e:
        logger.error("Error: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

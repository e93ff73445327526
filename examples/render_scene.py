#!/usr/bin/env python3
"""Render a demo scene at preview quality.

This script renders one of the named demo scenes with the path tracer, at a
reduced width and sample count suitable for a quick look, and saves it as a
PNG.

Usage:
    python examples/render_scene.py [options]

Options:
    --scene NAME        Demo scene to render (default: cornell_box)
    --width WIDTH       Image width in pixels (default: 300)
    --samples SAMPLES   Number of samples per pixel (default: 20)
    --output OUTPUT     Output file path (default: <scene>.png)
    --seed SEED         Random seed (default: 42)
    --gpu               Render on the GPU backend

Example:
    python examples/render_scene.py --scene fog_cornell_box --samples 50
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
import time
from pathlib import Path

from pathtracer.config import RuntimeConfig, init_runtime
from pathtracer.logging_config import setup_logging


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a demo scene at preview quality.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--scene",
        type=str,
        default="cornell_box",
        help="Demo scene to render (default: cornell_box)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=300,
        help="Image width in pixels (default: 300)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=20,
        help="Number of samples per pixel (default: 20)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output file path (default: <scene>.png)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed (default: 42)",
    )
    parser.add_argument(
        "--gpu",
        action="store_true",
        help="Render on the GPU backend",
    )
    return parser.parse_args()


def render_scene(name: str, width: int, samples: int, seed: int, output_path: Path) -> Path:
    """Render a named scene and save it.

    Args:
        name: Demo scene name.
        width: Image width in pixels.
        samples: Samples per pixel.
        seed: Seed for the scene's host-side randomness.
        output_path: Where to write the image.

    Returns:
        Path to the saved image.
    """
    # Import after Taichi initialization
    from pathtracer.core.integrator import render
    from pathtracer.output.export import save_image
    from pathtracer.scene.scenes import SceneBuildOptions, build_scene

    print(f"Building scene {name!r}...")
    scene, camera = build_scene(name, SceneBuildOptions(seed=seed))
    camera = dataclasses.replace(camera, image_width=width, samples_per_pixel=samples)

    print(f"Rendering {camera.image_width}x{camera.image_height} at {samples} spp...")
    start_time = time.time()

    def progress_callback(done: int, total: int) -> None:
        print(f"\r  Progress: {100.0 * done / total:.1f}%", end="", flush=True)

    result = render(scene, camera, progress=progress_callback)
    print()  # Newline after progress

    save_image(output_path, result.pixels, result.width, result.height)
    print(f"Saved to: {output_path.absolute()}")
    print(f"Total time: {time.time() - start_time:.2f}s")
    return output_path


def main() -> int:
    """Main entry point."""
    args = parse_args()
    setup_logging("WARNING")

    init_runtime(RuntimeConfig(arch="gpu" if args.gpu else "cpu", random_seed=args.seed))

    output = Path(args.output) if args.output else Path(f"{args.scene}.png")
    try:
        render_scene(args.scene, args.width, args.samples, args.seed, output)
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

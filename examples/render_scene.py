#!/usr/bin/env python3
"""Render one of the preset scenes to a PNG file.

Usage:
    python -m examples.render_scene [options]

Options:
    --scene NAME        Preset: bouncing_spheres, cornell_box, cornell_smoke,
                        final_scene (default: cornell_box)
    --width WIDTH       Image width in pixels (default: 400)
    --samples SAMPLES   Samples per pixel (default: 100)
    --max-depth DEPTH   Maximum bounces per path (default: 50)
    --mode MODE         sequential or parallel (default: parallel)
    --workers N         Parallel row chunks (default: CPU count)
    --seed SEED         Seed for scene layout and sampling (default: random)
    --output OUTPUT     Output file path (default: <scene>.png)
    --verbose           Log debug output

Example:
    python -m examples.render_scene --scene bouncing_spheres --width 320 --samples 16
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import taichi as ti

logger = logging.getLogger("render_scene")

SCENES = ("bouncing_spheres", "cornell_box", "cornell_smoke", "final_scene")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a preset scene with the path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--scene", choices=SCENES, default="cornell_box", help="Preset scene")
    parser.add_argument("--width", type=int, default=400, help="Image width in pixels (default: 400)")
    parser.add_argument("--samples", type=int, default=100, help="Samples per pixel (default: 100)")
    parser.add_argument(
        "--max-depth", type=int, default=50, help="Maximum bounces per path (default: 50)"
    )
    parser.add_argument(
        "--mode",
        choices=("sequential", "parallel"),
        default="parallel",
        help="Render mode (default: parallel)",
    )
    parser.add_argument("--workers", type=int, default=None, help="Parallel row chunks")
    parser.add_argument("--seed", type=int, default=None, help="Seed for layout and sampling")
    parser.add_argument("--output", type=str, default=None, help="Output PNG path")
    parser.add_argument("--verbose", action="store_true", help="Log debug output")
    return parser.parse_args()


def render_scene(
    scene_name: str,
    width: int,
    samples: int,
    max_depth: int,
    mode: str = "parallel",
    workers: int | None = None,
    seed: int | None = None,
    output_path: str | None = None,
) -> Path:
    """Build a preset, render it and save the PNG.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from src.pathtracer.core.renderer import RenderConfig, render, render_parallel
    from src.pathtracer.preview.export import save_png
    from src.pathtracer.scene import presets

    factory = getattr(presets, scene_name)
    if scene_name in ("bouncing_spheres", "final_scene"):
        scene, camera = factory(seed=seed)
    else:
        scene, camera = factory()

    config = RenderConfig(width=width, samples_per_pixel=samples, max_depth=max_depth, camera=camera)
    if mode == "parallel":
        result = render_parallel(scene, config, rng=seed, workers=workers)
    else:
        result = render(scene, config, rng=seed)

    output_file = Path(output_path or f"{scene_name}.png")
    save_png(result, str(output_file))
    logger.info(
        "Saved %dx%d image (%d spp, %d worker(s), %.2f s) to %s",
        result.width,
        result.height,
        result.samples_per_pixel,
        result.workers,
        result.elapsed,
        output_file.absolute(),
    )
    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    ti.init(arch=ti.cpu)

    try:
        render_scene(
            args.scene,
            width=args.width,
            samples=args.samples,
            max_depth=args.max_depth,
            mode=args.mode,
            workers=args.workers,
            seed=args.seed,
            output_path=args.output,
        )
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        logger.error("Render failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())

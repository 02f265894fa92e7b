"""Render entry points: sequential and parallel.

Both modes render the same built scene with the same pixel sampling and
return the same ``RenderResult``. They differ only in how rows are split:

- ``render`` runs one chunk covering the whole image on random stream 0.
- ``render_parallel`` splits the rows into contiguous strips, one per
  worker, and renders each strip in its own parallel iteration with its own
  random stream. Strips never overlap, so workers never write to the same
  pixel, and every strip finishes before the image is returned.

The scene is read-only while a render runs.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.core.renderer import RenderConfig, render_parallel
    >>> from src.pathtracer.scene.presets import bouncing_spheres
    >>> scene, camera = bouncing_spheres()
    >>> config = RenderConfig(width=400, samples_per_pixel=16, max_depth=10, camera=camera)
    >>> result = render_parallel(scene, config, rng=7)
    >>> result.image.shape
    (225, 400, 3)
"""

import logging
import math
import os
import time
from dataclasses import dataclass

import numpy as np

from src.pathtracer.camera.thin_lens import Camera, setup_camera
from src.pathtracer.core.integrator import MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH, render_chunks
from src.pathtracer.core.sampling import MAX_STREAMS, seed_streams
from src.pathtracer.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderConfig:
    """Parameters of one render invocation.

    Attributes:
        width: Image width in pixels.
        samples_per_pixel: Requested samples per pixel. The pixel is sampled
            on a ceil(sqrt(spp)) x ceil(sqrt(spp)) grid.
        max_depth: Maximum number of scattering events per path.
        camera: The camera to render through. Its aspect ratio fixes the
            image height.
    """

    width: int
    samples_per_pixel: int
    max_depth: int
    camera: Camera

    @property
    def height(self) -> int:
        return int(self.width / self.camera.aspect_ratio)

    @property
    def grid_size(self) -> int:
        return math.ceil(math.sqrt(self.samples_per_pixel))

    @property
    def effective_samples_per_pixel(self) -> int:
        return self.grid_size * self.grid_size

    def validate(self) -> None:
        """Check the configuration before rendering.

        Raises:
            ConfigurationError: If any parameter is out of range.
        """
        if self.width <= 0:
            raise ConfigurationError(f"Image width must be positive, got {self.width}")
        if self.width > MAX_IMAGE_WIDTH:
            raise ConfigurationError(f"Image width {self.width} exceeds maximum {MAX_IMAGE_WIDTH}")
        if self.samples_per_pixel <= 0:
            raise ConfigurationError(
                f"Samples per pixel must be positive, got {self.samples_per_pixel}"
            )
        if self.max_depth < 0:
            raise ConfigurationError(f"Max depth must be non-negative, got {self.max_depth}")
        self.camera.validate()
        if self.height <= 0:
            raise ConfigurationError(
                f"Image height must be positive, got {self.height} "
                f"(width {self.width}, aspect ratio {self.camera.aspect_ratio})"
            )
        if self.height > MAX_IMAGE_HEIGHT:
            raise ConfigurationError(
                f"Image height {self.height} exceeds maximum {MAX_IMAGE_HEIGHT}"
            )


@dataclass
class RenderResult:
    """Output of a render.

    Attributes:
        linear: (height, width, 3) float32 average radiance per pixel,
            row 0 at the top.
        image: Gamma-2 encoding of ``linear`` (square root of the value
            clamped at zero). Values above 1 are kept.
        elapsed: Wall-clock seconds spent rendering.
        samples_per_pixel: Effective samples per pixel (a perfect square).
        workers: Number of row chunks rendered.
    """

    linear: np.ndarray
    image: np.ndarray
    elapsed: float
    samples_per_pixel: int
    workers: int

    @property
    def width(self) -> int:
        return int(self.linear.shape[1])

    @property
    def height(self) -> int:
        return int(self.linear.shape[0])


def gamma_encode(linear: np.ndarray) -> np.ndarray:
    """Apply gamma-2 encoding (square root) to a linear image."""
    return np.sqrt(np.maximum(linear, 0.0)).astype(np.float32)


def partition_rows(height: int, workers: int) -> list[tuple[int, int]]:
    """Split ``height`` rows into contiguous strips of ceil(height / workers).

    Args:
        height: Number of image rows.
        workers: Desired number of strips.

    Returns:
        Non-empty ``(start, end)`` row ranges in order, covering every row
        exactly once. Fewer than ``workers`` strips are returned when the
        rows run out.

    Raises:
        ValueError: If height or workers is not positive.
    """
    if height <= 0:
        raise ValueError(f"height must be positive, got {height}")
    if workers <= 0:
        raise ValueError(f"workers must be positive, got {workers}")

    rows_per_chunk = math.ceil(height / workers)
    return [
        (start, min(start + rows_per_chunk, height))
        for start in range(0, height, rows_per_chunk)
    ]


def _check_scene(scene) -> None:
    if not scene.is_built:
        raise RuntimeError("Scene must be built before rendering; call scene.build()")


def _run(scene, config: RenderConfig, rng, chunks: list[tuple[int, int]]) -> RenderResult:
    setup_camera(config.camera)
    seed_streams(rng, count=len(chunks))

    width, height = config.width, config.height
    logger.info(
        "Rendering %dx%d at %d spp (requested %d), max depth %d, %d chunk(s)",
        width,
        height,
        config.effective_samples_per_pixel,
        config.samples_per_pixel,
        config.max_depth,
        len(chunks),
    )

    start = time.perf_counter()
    linear = render_chunks(chunks, width, height, config.grid_size, config.max_depth)
    elapsed = time.perf_counter() - start

    logger.info("Render finished in %.3f s", elapsed)
    return RenderResult(
        linear=linear,
        image=gamma_encode(linear),
        elapsed=elapsed,
        samples_per_pixel=config.effective_samples_per_pixel,
        workers=len(chunks),
    )


def render(scene, config: RenderConfig, rng=None) -> RenderResult:
    """Render sequentially with a single random stream.

    Args:
        scene: A built Scene.
        config: The render configuration.
        rng: Integer seed, ``numpy.random.Generator`` or ``None``.

    Returns:
        The rendered image.

    Raises:
        ConfigurationError: If the configuration is invalid.
        RuntimeError: If the scene has not been built.
    """
    config.validate()
    _check_scene(scene)
    return _run(scene, config, rng, [(0, config.height)])


def render_parallel(scene, config: RenderConfig, rng=None, workers: int | None = None) -> RenderResult:
    """Render with row strips processed in parallel.

    Args:
        scene: A built Scene.
        config: The render configuration.
        rng: Integer seed, ``numpy.random.Generator`` or ``None``.
        workers: Number of strips. Defaults to the CPU count, and is clamped
            to the image height and the number of random streams.

    Returns:
        The rendered image. It is statistically equivalent to ``render`` but
        not bit-identical, since each strip draws from its own stream.

    Raises:
        ConfigurationError: If the configuration or worker count is invalid.
        RuntimeError: If the scene has not been built.
    """
    config.validate()
    _check_scene(scene)

    if workers is None:
        workers = os.cpu_count() or 1
    if workers <= 0:
        raise ConfigurationError(f"Worker count must be positive, got {workers}")
    workers = min(workers, config.height, MAX_STREAMS)

    chunks = partition_rows(config.height, workers)
    logger.debug("Partitioned %d rows into %d chunk(s): %s", config.height, len(chunks), chunks)
    return _run(scene, config, rng, chunks)

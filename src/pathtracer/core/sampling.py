"""Per-stream random number generation for Monte Carlo sampling.

Every routine that consumes randomness takes an explicit ``stream`` index.
Each stream is a 32-bit PCG-style generator whose state lives in a Taichi
field, so a sequential render threads a single stream through all calls
while a parallel render gives each worker a private stream. Streams are
never shared between concurrently running workers.

Stream states are derived on the host with NumPy, from an integer seed, an
existing ``numpy.random.Generator``, or fresh OS entropy.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.core.sampling import seed_streams, random_float
    >>> seed_streams(1234)
    >>> @ti.kernel
    ... def draw() -> ti.f32:
    ...     return random_float(0)
"""

import logging

import numpy as np
import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import length_squared, vec3

logger = logging.getLogger(__name__)

# Maximum number of independent random streams (one per parallel worker)
MAX_STREAMS = 256

# Generator constants (32-bit LCG step followed by a PCG output permutation)
_LCG_MULTIPLIER = 747796405
_LCG_INCREMENT = 1442695041
_PCG_OUTPUT_MULTIPLIER = 277803737

# Scale mapping the top 24 bits of a draw onto [0, 1)
_FLOAT_SCALE = 1.0 / 16777216.0

_rng_state = ti.field(dtype=ti.u32, shape=MAX_STREAMS)


def make_generator(source=None) -> np.random.Generator:
    """Normalize a randomness source into a NumPy Generator.

    Args:
        source: ``None`` for fresh OS entropy, an integer seed, or an
            existing ``numpy.random.Generator`` which is used as-is.

    Returns:
        A NumPy random Generator.
    """
    if isinstance(source, np.random.Generator):
        return source
    return np.random.default_rng(source)


def seed_streams(source=None, count: int = MAX_STREAMS) -> np.ndarray:
    """Seed the first ``count`` random streams from a host randomness source.

    Each stream receives an independent 32-bit state drawn from the source,
    so streams never replay each other's sequence.

    Args:
        source: Integer seed, ``numpy.random.Generator`` or ``None``.
        count: Number of streams to seed (at most MAX_STREAMS).

    Returns:
        The uint32 array of states written to the stream field.

    Raises:
        ValueError: If count is outside [1, MAX_STREAMS].
    """
    if count < 1 or count > MAX_STREAMS:
        raise ValueError(f"Stream count {count} is outside [1, {MAX_STREAMS}]")

    rng = make_generator(source)
    states = np.zeros(MAX_STREAMS, dtype=np.uint32)
    states[:count] = rng.integers(1, 2**32, size=count, dtype=np.uint64).astype(np.uint32)
    _rng_state.from_numpy(states)
    logger.debug("Seeded %d random streams", count)
    return states


# =============================================================================
# Uniform Draws
# =============================================================================


@ti.func
def _next_u32(stream: ti.i32) -> ti.u32:
    """Advance a stream and return a permuted 32-bit output word."""
    state = _rng_state[stream] * ti.u32(_LCG_MULTIPLIER) + ti.u32(_LCG_INCREMENT)
    _rng_state[stream] = state
    word = ((state >> ((state >> ti.u32(28)) + ti.u32(4))) ^ state) * ti.u32(
        _PCG_OUTPUT_MULTIPLIER
    )
    return (word >> ti.u32(22)) ^ word


@ti.func
def random_float(stream: ti.i32) -> ti.f32:
    """Draw a uniform float in [0, 1) from a stream."""
    return ti.cast(_next_u32(stream) >> ti.u32(8), ti.f32) * _FLOAT_SCALE


@ti.func
def random_range(stream: ti.i32, lo: ti.f32, hi: ti.f32) -> ti.f32:
    """Draw a uniform float in [lo, hi) from a stream."""
    return lo + (hi - lo) * random_float(stream)


# =============================================================================
# Geometric Samplers
# =============================================================================


@ti.func
def random_in_unit_sphere(stream: ti.i32) -> vec3:
    """Generate a random point inside the unit sphere by rejection sampling.

    Args:
        stream: The random stream to draw from.

    Returns:
        A random point with length < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(100):  # Max iterations to avoid infinite loops
        if not found:
            p = vec3(
                random_range(stream, -1.0, 1.0),
                random_range(stream, -1.0, 1.0),
                random_range(stream, -1.0, 1.0),
            )
            if length_squared(p) < 1.0:
                found = True
    return p


@ti.func
def random_unit_vector(stream: ti.i32) -> vec3:
    """Generate a random unit vector uniformly distributed on the sphere.

    Samples the z coordinate and azimuth directly so no rejection or
    normalization of a near-zero vector is needed.
    """
    z = random_range(stream, -1.0, 1.0)
    phi = 2.0 * tm.pi * random_float(stream)
    r = ti.sqrt(ti.max(0.0, 1.0 - z * z))
    return vec3(r * ti.cos(phi), r * ti.sin(phi), z)


@ti.func
def random_in_unit_disk(stream: ti.i32) -> vec3:
    """Generate a random point (x, y, 0) inside the unit disk.

    Used for thin-lens depth of field sampling.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(100):  # Max iterations to avoid infinite loops
        if not found:
            p = vec3(
                random_range(stream, -1.0, 1.0),
                random_range(stream, -1.0, 1.0),
                0.0,
            )
            if p.x * p.x + p.y * p.y < 1.0:
                found = True
    return p


@ti.func
def random_cosine_direction(stream: ti.i32) -> vec3:
    """Generate a cosine-weighted direction in a local z-up frame.

    The distribution has PDF = cos(theta) / pi.
    """
    r1 = random_float(stream)
    r2 = random_float(stream)
    phi = 2.0 * tm.pi * r1
    sqrt_r2 = ti.sqrt(r2)
    return vec3(ti.cos(phi) * sqrt_r2, ti.sin(phi) * sqrt_r2, ti.sqrt(1.0 - r2))

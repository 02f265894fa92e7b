"""Texture registry and evaluation.

Textures are pure evaluators of (u, v, point) -> RGB. Supported kinds:

- SOLID: a constant color.
- CHECKER: alternates between two sub-textures in world space. The cell of
  a point is ``floor(x / s) + floor(y / s) + floor(z / s)``; even cells use
  the even texture and odd cells the odd texture, so the pattern repeats
  every ``2 * s`` along each axis.
- NOISE: grey Perlin turbulence, or a marble pattern
  ``0.5 * (1 + sin(scale * z + 10 * turbulence(scale * p)))``.
- IMAGE: nearest-texel lookup of a decoded image at (u, v).

Checker sub-textures must themselves be non-checker textures, which keeps
evaluation free of recursion inside kernels.

Example:
    >>> from src.pathtracer.textures.texture import add_solid_texture, add_checker_texture
    >>> white = add_solid_texture((0.9, 0.9, 0.9))
    >>> green = add_solid_texture((0.2, 0.3, 0.1))
    >>> checker = add_checker_texture(0.32, white, green)
"""

from enum import IntEnum

import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.pathtracer.errors import SceneBuildError
from src.pathtracer.textures.image import add_image, clear_images, load_image_file, sample_image
from src.pathtracer.textures.perlin import add_noise_generator, clear_noise_generators, turbulence

vec3 = tm.vec3


class TextureType(IntEnum):
    """Enumeration of supported texture kinds."""

    SOLID = 0
    CHECKER = 1
    NOISE = 2
    IMAGE = 3


MAX_TEXTURES = 1024

texture_types = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
# SOLID
texture_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
# CHECKER: inverse cell size and the two sub-texture ids
texture_inv_scales = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
texture_even = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_odd = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
# NOISE: generator slot, frequency scale and marble flag
texture_noise_slots = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_noise_scales = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
texture_marble = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
# IMAGE: image slot
texture_image_slots = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())


def clear_textures() -> None:
    """Clear all textures along with their noise tables and images."""
    num_textures[None] = 0
    clear_noise_generators()
    clear_images()


def _next_texture_slot() -> int:
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    return idx


def get_texture_count() -> int:
    return int(num_textures[None])


def get_texture_type(texture_id: int) -> TextureType:
    """Host-side type lookup.

    Raises:
        SceneBuildError: If the id does not name a registered texture.
    """
    if not 0 <= texture_id < num_textures[None]:
        raise SceneBuildError(f"Unknown texture id: {texture_id}")
    return TextureType(int(texture_types[texture_id]))


def add_solid_texture(color: tuple[float, float, float]) -> int:
    """Add a constant-color texture.

    Args:
        color: (R, G, B). Components must be non-negative; values above 1
            are allowed for emission.

    Returns:
        The texture id.

    Raises:
        RuntimeError: If the maximum number of textures is exceeded.
        ValueError: If a component is negative.
    """
    for i, component in enumerate(color):
        if component < 0.0:
            raise ValueError(f"Color component {i} = {component} is negative")
    idx = _next_texture_slot()
    texture_types[idx] = int(TextureType.SOLID)
    texture_colors[idx] = vec3(color[0], color[1], color[2])
    num_textures[None] = idx + 1
    return idx


def add_checker_texture(scale: float, even: int, odd: int) -> int:
    """Add a world-space checker alternating between two textures.

    Args:
        scale: Edge length of one checker cell; must be positive.
        even: Texture id used where the cell index sum is even.
        odd: Texture id used where the cell index sum is odd.

    Returns:
        The texture id.

    Raises:
        ValueError: If scale is not positive.
        SceneBuildError: If a sub-texture is unknown or is itself a checker.
    """
    if not scale > 0.0:
        raise ValueError(f"Checker scale must be positive, got {scale}")
    for sub in (even, odd):
        if get_texture_type(sub) == TextureType.CHECKER:
            raise SceneBuildError("Checker sub-textures cannot be checker textures")
    idx = _next_texture_slot()
    texture_types[idx] = int(TextureType.CHECKER)
    texture_inv_scales[idx] = 1.0 / scale
    texture_even[idx] = even
    texture_odd[idx] = odd
    num_textures[None] = idx + 1
    return idx


def add_noise_texture(scale: float = 1.0, seed=None, marble: bool = True) -> int:
    """Add a Perlin noise texture.

    Args:
        scale: Spatial frequency of the noise; must be positive.
        seed: Seed for the gradient and permutation tables. ``None`` draws
            fresh entropy.
        marble: Use the phase-shifted marble pattern instead of plain
            turbulence.

    Returns:
        The texture id.
    """
    if not scale > 0.0:
        raise ValueError(f"Noise scale must be positive, got {scale}")
    idx = _next_texture_slot()
    slot = add_noise_generator(seed)
    texture_types[idx] = int(TextureType.NOISE)
    texture_noise_slots[idx] = slot
    texture_noise_scales[idx] = scale
    texture_marble[idx] = 1 if marble else 0
    num_textures[None] = idx + 1
    return idx


def add_image_texture(pixels: npt.ArrayLike) -> int:
    """Add an image texture from an (H, W, 3) pixel array.

    Returns:
        The texture id.
    """
    idx = _next_texture_slot()
    slot = add_image(pixels)
    texture_types[idx] = int(TextureType.IMAGE)
    texture_image_slots[idx] = slot
    num_textures[None] = idx + 1
    return idx


def add_image_texture_from_file(path) -> int:
    """Decode an image file with Pillow and add it as an image texture."""
    return add_image_texture(load_image_file(path))


# =============================================================================
# Evaluation
# =============================================================================


@ti.func
def _evaluate_leaf(texture_id: ti.i32, u: ti.f32, v: ti.f32, p: vec3) -> vec3:
    """Evaluate a non-checker texture."""
    color = vec3(0.0, 0.0, 0.0)
    kind = texture_types[texture_id]
    if kind == int(TextureType.SOLID):
        color = texture_colors[texture_id]
    elif kind == int(TextureType.NOISE):
        slot = texture_noise_slots[texture_id]
        scaled = texture_noise_scales[texture_id] * p
        value = 0.0
        if texture_marble[texture_id] == 1:
            value = 0.5 * (1.0 + ti.sin(scaled.z + 10.0 * turbulence(slot, scaled)))
        else:
            value = turbulence(slot, scaled)
        color = vec3(value, value, value)
    elif kind == int(TextureType.IMAGE):
        color = sample_image(texture_image_slots[texture_id], u, v)
    return color


@ti.func
def checker_cell_parity(inv_scale: ti.f32, p: vec3) -> ti.i32:
    """Return 0 for even checker cells and 1 for odd ones."""
    cells = ti.cast(ti.floor(inv_scale * p), ti.i32)
    return (cells.x + cells.y + cells.z) & 1


@ti.func
def evaluate_texture(texture_id: ti.i32, u: ti.f32, v: ti.f32, p: vec3) -> vec3:
    """Evaluate a texture at surface coordinates (u, v) and world point p.

    Args:
        texture_id: The texture to evaluate.
        u: First surface coordinate.
        v: Second surface coordinate.
        p: World-space hit point.

    Returns:
        The RGB value of the texture.
    """
    leaf = texture_id
    if texture_types[texture_id] == int(TextureType.CHECKER):
        leaf = texture_even[texture_id]
        if checker_cell_parity(texture_inv_scales[texture_id], p) == 1:
            leaf = texture_odd[texture_id]
    return _evaluate_leaf(leaf, u, v, p)

"""Decoded image storage for image textures.

All images share one flat texel buffer. Each registered image records its
offset, width and height. Texel (row, col) of an image lives at
``offset + row * width + col`` with row 0 at the top of the image.

Images are accepted as (height, width, 3) arrays, either uint8 (scaled by
1/255) or floating point in [0, 1], or decoded from a file with Pillow.
"""

import logging
import os

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
from PIL import Image as PILImage

from src.pathtracer.errors import SceneBuildError

logger = logging.getLogger(__name__)

vec3 = tm.vec3

MAX_IMAGES = 64
MAX_IMAGE_TEXELS = 1 << 21

image_texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_IMAGE_TEXELS)
image_offset = ti.field(dtype=ti.i32, shape=MAX_IMAGES)
image_width = ti.field(dtype=ti.i32, shape=MAX_IMAGES)
image_height = ti.field(dtype=ti.i32, shape=MAX_IMAGES)
num_images = ti.field(dtype=ti.i32, shape=())
num_texels = ti.field(dtype=ti.i32, shape=())


def clear_images() -> None:
    num_images[None] = 0
    num_texels[None] = 0


def normalize_pixels(pixels: npt.ArrayLike) -> npt.NDArray[np.float32]:
    """Convert an image array to float32 RGB in [0, 1].

    Args:
        pixels: (H, W, 3) or (H, W, 4) array; uint8 values are divided by
            255, float values must already lie in [0, 1]. Alpha is dropped.

    Returns:
        Contiguous float32 array of shape (H, W, 3).

    Raises:
        SceneBuildError: If the shape or value range is invalid.
    """
    array = np.asarray(pixels)
    if array.ndim != 3 or array.shape[2] not in (3, 4) or array.shape[0] < 1 or array.shape[1] < 1:
        raise SceneBuildError(f"Image must have shape (H, W, 3), got {array.shape}")
    array = array[:, :, :3]
    if array.dtype == np.uint8:
        result = array.astype(np.float32) / 255.0
    else:
        result = array.astype(np.float32)
        if result.min() < 0.0 or result.max() > 1.0:
            raise SceneBuildError("Floating point image values must lie in [0, 1]")
    return np.ascontiguousarray(result)


def load_image_file(path: str | os.PathLike) -> npt.NDArray[np.uint8]:
    """Decode an image file into an (H, W, 3) uint8 array with Pillow."""
    with PILImage.open(path) as img:
        return np.asarray(img.convert("RGB"), dtype=np.uint8)


@ti.kernel
def _upload_texels(offset: ti.i32, n: ti.i32, pixels: ti.types.ndarray()):
    for i in range(n):
        image_texels[offset + i] = vec3(pixels[i, 0], pixels[i, 1], pixels[i, 2])


def add_image(pixels: npt.ArrayLike) -> int:
    """Register an image and upload its texels.

    Returns:
        The image slot index.

    Raises:
        RuntimeError: If image count or texel capacity is exceeded.
        SceneBuildError: If the pixel array is invalid.
    """
    data = normalize_pixels(pixels)
    height, width = data.shape[:2]

    slot = num_images[None]
    if slot >= MAX_IMAGES:
        raise RuntimeError(f"Maximum number of images ({MAX_IMAGES}) exceeded")
    offset = num_texels[None]
    if offset + width * height > MAX_IMAGE_TEXELS:
        raise RuntimeError(
            f"Image texel capacity ({MAX_IMAGE_TEXELS}) exceeded by a {width}x{height} image"
        )

    _upload_texels(offset, width * height, data.reshape(-1, 3))
    image_offset[slot] = offset
    image_width[slot] = width
    image_height[slot] = height
    num_texels[None] = offset + width * height
    num_images[None] = slot + 1
    logger.debug("Uploaded %dx%d image into slot %d", width, height, slot)
    return slot


@ti.func
def sample_image(slot: ti.i32, u: ti.f32, v: ti.f32) -> vec3:
    """Nearest-texel lookup with (u, v) clamped to [0, 1].

    v = 1 maps to the top row of the image.
    """
    w = image_width[slot]
    h = image_height[slot]
    cu = tm.clamp(u, 0.0, 1.0)
    cv = 1.0 - tm.clamp(v, 0.0, 1.0)
    col = ti.min(ti.cast(cu * w, ti.i32), w - 1)
    row = ti.min(ti.cast(cv * h, ti.i32), h - 1)
    return image_texels[image_offset[slot] + row * w + col]

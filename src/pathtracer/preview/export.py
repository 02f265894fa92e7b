"""Image export utilities for rendered images.

Renders are handed over gamma-encoded (square root of linear radiance).
This module clamps them to [0, 1], converts to 8-bit and writes PNG files
with Pillow.

Example:
    >>> from src.pathtracer.preview.export import save_png
    >>> from src.pathtracer.core.renderer import render
    >>>
    >>> result = render(scene, config, rng=1)
    >>> save_png(result, "output.png")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

if TYPE_CHECKING:
    from src.pathtracer.core.renderer import RenderResult


def image_to_uint8(image: npt.NDArray[np.floating]) -> npt.NDArray[np.uint8]:
    """Convert a gamma-encoded float image to uint8.

    Args:
        image: Image array of shape (H, W, 3); values are clamped to [0, 1].

    Returns:
        8-bit image array of shape (H, W, 3) with dtype uint8.

    Raises:
        ValueError: If the array is not (H, W, 3).
    """
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}")
    clamped = np.clip(np.nan_to_num(image, nan=0.0), 0.0, 1.0)
    return (clamped * 255).astype(np.uint8)


def save_png(result: RenderResult | npt.NDArray[np.floating], filepath: str) -> None:
    """Save a render as an 8-bit PNG.

    Args:
        result: A RenderResult (its gamma-encoded image is written) or a
            gamma-encoded (H, W, 3) array.
        filepath: Output file path (should end in .png).
    """
    image = result.image if hasattr(result, "image") else result
    pil_image = PILImage.fromarray(image_to_uint8(image))
    pil_image.save(filepath)

"""Preview module for rendered output.

Components:
    export: 8-bit conversion and PNG export with Pillow
"""

from src.pathtracer.preview.export import image_to_uint8, save_png

__all__ = [
    "save_png",
    "image_to_uint8",
]

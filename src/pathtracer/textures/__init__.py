"""Textures module: pure evaluators of (u, v, point) -> RGB.

Components:
    texture: Texture registry and evaluation (solid, checker, noise, image)
    perlin: Perlin gradient noise and turbulence
    image: Decoded image storage and texel lookup

Every module here declares Taichi fields, so import them after ``ti.init()``.
"""

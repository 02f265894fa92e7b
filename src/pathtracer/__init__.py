"""Taichi-based offline path tracer.

This package renders scenes by Monte Carlo path tracing, with support for:
- Spheres, quads and boxes wrapped in transform/motion instances
- A bounding volume hierarchy over scene objects
- Lambertian, metal, dielectric, emissive and isotropic-volume materials
- Solid, checker, Perlin noise and image textures
- Constant-density participating media
- Sequential and row-chunked parallel rendering with per-worker random streams

Subpackages:
    core: Ray utilities, random streams, intervals, integrator and renderer
    camera: Thin-lens camera with depth of field and shutter time
    geometry: Primitives, bounding boxes, transforms, instances and the BVH
    materials: Material registries and scattering functions
    textures: Texture registry and evaluators
    scene: Scene construction, intersection, volumes and preset scenes
    preview: Image export helpers

Modules that declare Taichi fields must be imported after ``ti.init()``.
"""

__version__ = "0.1.0"

"""Core rendering module.

Components:
    ray: Ray data structure and vector utilities
    interval: Host-side scalar intervals
    sampling: Per-stream random number generation and samplers
    integrator: Path tracing loop and render kernels
    renderer: Render configuration, sequential and parallel entry points

Only field-free modules are imported here. Import sampling, integrator and
renderer directly after ``ti.init()``.
"""

from .interval import Interval
from .ray import (
    Ray,
    build_onb_from_normal,
    length_squared,
    local_to_world,
    make_ray,
    ray_at,
    reflect,
    refract,
    schlick_fresnel,
    vec3,
)

__all__ = [
    "Interval",
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length_squared",
    "reflect",
    "refract",
    "schlick_fresnel",
    "build_onb_from_normal",
    "local_to_world",
]

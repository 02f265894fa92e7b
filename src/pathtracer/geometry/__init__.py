"""Geometry module for shape primitives and spatial acceleration.

Components:
    aabb: Bounding boxes (host) and the kernel slab test
    sphere: Sphere primitive with ray-sphere intersection and uv mapping
    quad: Parallelogram primitive with ray-quad intersection
    shapes: Shape descriptions, box construction and the shape table
    transform: Translate, rotate, scale and move transforms
    instance: Shapes wrapped in a composed transform stack
    bvh: Bounding volume hierarchy construction and storage

Intersection routines are Taichi functions (@ti.func). Modules holding
Taichi fields (shapes, instance, bvh) must be imported after ``ti.init()``,
so only field-free modules are re-exported here.
"""

from .aabb import BOX_PADDING, BoundingBox, hit_aabb, safe_inverse_direction, union_all
from .quad import Quad, hit_quad, quad_normal
from .sphere import HitRecord, Sphere, hit_sphere, make_miss_record, sphere_uv
from .transform import ComposedTransform, Move, Rotate, Scale, Translate

__all__ = [
    "BOX_PADDING",
    "BoundingBox",
    "union_all",
    "hit_aabb",
    "safe_inverse_direction",
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "make_miss_record",
    "sphere_uv",
    "Quad",
    "hit_quad",
    "quad_normal",
    "Translate",
    "Rotate",
    "Scale",
    "Move",
    "ComposedTransform",
]

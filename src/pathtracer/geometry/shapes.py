"""Shape table shared by all geometry instances.

Shapes are stored in object space in a structure-of-arrays layout. Each
GeometryInstance owns a contiguous run of shapes in this table; a box is six
quads, while a sphere or a single quad is one entry.

Host-side ``SphereShape`` and ``QuadShape`` describe shapes before upload
and know their own object-space bounding boxes.
"""

from dataclasses import dataclass
from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

from src.pathtracer.errors import SceneBuildError
from src.pathtracer.geometry.aabb import BoundingBox
from src.pathtracer.geometry.quad import Quad, hit_quad
from src.pathtracer.geometry.sphere import HitRecord, Sphere, hit_sphere, make_miss_record

# Type alias for 3D vectors
vec3 = tm.vec3


class ShapeType(IntEnum):
    """Primitive shape kinds stored in the shape table."""

    SPHERE = 0
    QUAD = 1


@dataclass(frozen=True)
class SphereShape:
    """A sphere in object space.

    Attributes:
        center: Center point (x, y, z).
        radius: Radius, must be positive.
    """

    center: tuple[float, float, float]
    radius: float

    def __post_init__(self) -> None:
        if not self.radius > 0.0:
            raise SceneBuildError(f"Sphere radius must be positive, got {self.radius}")

    def bounding_box(self) -> BoundingBox:
        c = np.asarray(self.center, dtype=np.float64)
        r = abs(self.radius)
        return BoundingBox.from_arrays(c - r, c + r)


@dataclass(frozen=True)
class QuadShape:
    """A parallelogram in object space with corner q and edges u and v."""

    q: tuple[float, float, float]
    u: tuple[float, float, float]
    v: tuple[float, float, float]

    def __post_init__(self) -> None:
        n = np.cross(np.asarray(self.u, dtype=np.float64), np.asarray(self.v, dtype=np.float64))
        if np.dot(n, n) <= 1e-20:
            raise SceneBuildError(f"Quad edges {self.u} and {self.v} are parallel or zero")

    def corners(self) -> np.ndarray:
        q = np.asarray(self.q, dtype=np.float64)
        u = np.asarray(self.u, dtype=np.float64)
        v = np.asarray(self.v, dtype=np.float64)
        return np.stack([q, q + u, q + v, q + u + v])

    def bounding_box(self) -> BoundingBox:
        corners = self.corners()
        return BoundingBox.from_arrays(corners.min(axis=0), corners.max(axis=0)).pad_to_minimums()


def box_shapes(a, b) -> list[QuadShape]:
    """Build the six quads of the axis-aligned box spanned by corners a and b.

    Every face normal (u x v) points out of the box.

    Args:
        a: One corner of the box.
        b: The opposite corner of the box.

    Returns:
        List of six QuadShapes: front, right, back, left, top, bottom.
    """
    lo = np.minimum(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64))
    hi = np.maximum(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64))
    dx = (hi[0] - lo[0], 0.0, 0.0)
    dy = (0.0, hi[1] - lo[1], 0.0)
    dz = (0.0, 0.0, hi[2] - lo[2])
    neg_dx = tuple(-c for c in dx)
    neg_dz = tuple(-c for c in dz)

    def p(x, y, z):
        return (float(x), float(y), float(z))

    return [
        QuadShape(p(lo[0], lo[1], hi[2]), dx, dy),  # front  (+z)
        QuadShape(p(hi[0], lo[1], hi[2]), neg_dz, dy),  # right  (+x)
        QuadShape(p(hi[0], lo[1], lo[2]), neg_dx, dy),  # back   (-z)
        QuadShape(p(lo[0], lo[1], lo[2]), dz, dy),  # left   (-x)
        QuadShape(p(lo[0], hi[1], hi[2]), dx, neg_dz),  # top    (+y)
        QuadShape(p(lo[0], lo[1], lo[2]), dx, dz),  # bottom (-y)
    ]


# =============================================================================
# Shape Storage (Structure of Arrays)
# =============================================================================

MAX_SHAPES = 8192

shape_types = ti.field(dtype=ti.i32, shape=MAX_SHAPES)
# Sphere: p0 = center. Quad: p0 = Q, p1 = u, p2 = v.
shape_p0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SHAPES)
shape_p1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SHAPES)
shape_p2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SHAPES)
shape_radius = ti.field(dtype=ti.f32, shape=MAX_SHAPES)
num_shapes = ti.field(dtype=ti.i32, shape=())


def clear_shapes() -> None:
    """Reset the shape count to zero."""
    num_shapes[None] = 0


def add_shape(shape) -> int:
    """Append a host shape to the shape table.

    Args:
        shape: A SphereShape or QuadShape.

    Returns:
        The index of the added shape.

    Raises:
        RuntimeError: If the maximum number of shapes is exceeded.
        TypeError: If the shape kind is not supported.
    """
    idx = num_shapes[None]
    if idx >= MAX_SHAPES:
        raise RuntimeError(f"Maximum number of shapes ({MAX_SHAPES}) exceeded")

    if isinstance(shape, SphereShape):
        shape_types[idx] = int(ShapeType.SPHERE)
        shape_p0[idx] = shape.center
        shape_radius[idx] = shape.radius
    elif isinstance(shape, QuadShape):
        shape_types[idx] = int(ShapeType.QUAD)
        shape_p0[idx] = shape.q
        shape_p1[idx] = shape.u
        shape_p2[idx] = shape.v
    else:
        raise TypeError(f"Unsupported shape type: {type(shape).__name__}")

    num_shapes[None] = idx + 1
    return idx


def get_shape_count() -> int:
    return int(num_shapes[None])


@ti.func
def hit_shape(
    shape_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a ray (in object space) with one stored shape.

    Args:
        shape_id: Index into the shape table.
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        The shape's HitRecord, or a miss record.
    """
    result = make_miss_record()
    kind = shape_types[shape_id]
    if kind == int(ShapeType.SPHERE):
        sphere = Sphere(center=shape_p0[shape_id], radius=shape_radius[shape_id])
        result = hit_sphere(ray_origin, ray_direction, sphere, t_min, t_max)
    elif kind == int(ShapeType.QUAD):
        quad = Quad(Q=shape_p0[shape_id], u=shape_p1[shape_id], v=shape_p2[shape_id])
        result = hit_quad(ray_origin, ray_direction, quad, t_min, t_max)
    return result

"""Axis-aligned bounding boxes.

BoundingBox is the host-side box used while building instances and the BVH.
It is made of three Intervals and supports union, padding and a NumPy slab
test. ``hit_aabb`` is the matching slab test used inside Taichi kernels.

Boxes thinner than a small epsilon on any axis are padded so that flat
primitives (axis-aligned quads) still produce valid slab intersections.
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from src.pathtracer.core.interval import Interval

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Minimum thickness of a padded box along any axis
BOX_PADDING = 1e-4

# Direction components smaller than this are replaced before inversion
_MIN_DIRECTION_COMPONENT = 1e-12


@dataclass(frozen=True)
class BoundingBox:
    """An axis-aligned box made of one Interval per axis.

    Attributes:
        x: Extent along the x axis.
        y: Extent along the y axis.
        z: Extent along the z axis.
    """

    x: Interval = Interval.EMPTY
    y: Interval = Interval.EMPTY
    z: Interval = Interval.EMPTY

    @classmethod
    def from_points(cls, a, b) -> "BoundingBox":
        """Build the box spanned by two corner points in any order."""
        return cls(
            Interval(min(a[0], b[0]), max(a[0], b[0])),
            Interval(min(a[1], b[1]), max(a[1], b[1])),
            Interval(min(a[2], b[2]), max(a[2], b[2])),
        )

    @classmethod
    def from_arrays(cls, lo: np.ndarray, hi: np.ndarray) -> "BoundingBox":
        """Build a box from min and max corner arrays."""
        return cls(
            Interval(float(lo[0]), float(hi[0])),
            Interval(float(lo[1]), float(hi[1])),
            Interval(float(lo[2]), float(hi[2])),
        )

    def axis(self, n: int) -> Interval:
        """Return the interval for axis n (0 = x, 1 = y, 2 = z)."""
        if n == 1:
            return self.y
        if n == 2:
            return self.z
        return self.x

    @property
    def minimum(self) -> np.ndarray:
        return np.array([self.x.min, self.y.min, self.z.min], dtype=np.float64)

    @property
    def maximum(self) -> np.ndarray:
        return np.array([self.x.max, self.y.max, self.z.max], dtype=np.float64)

    @property
    def is_empty(self) -> bool:
        return self.x.is_empty or self.y.is_empty or self.z.is_empty

    def centroid(self) -> np.ndarray:
        return 0.5 * (self.minimum + self.maximum)

    def union(self, other: "BoundingBox") -> "BoundingBox":
        """Return the smallest box surrounding both boxes."""
        return BoundingBox(
            self.x.union(other.x),
            self.y.union(other.y),
            self.z.union(other.z),
        )

    def longest_axis(self) -> int:
        """Return the index of the axis with the greatest extent."""
        sizes = (self.x.size, self.y.size, self.z.size)
        return int(max(range(3), key=lambda i: sizes[i]))

    def contains_box(self, other: "BoundingBox", tolerance: float = 0.0) -> bool:
        """Check whether other lies entirely inside this box."""
        for n in range(3):
            outer = self.axis(n)
            inner = other.axis(n)
            if inner.min < outer.min - tolerance or inner.max > outer.max + tolerance:
                return False
        return True

    def pad_to_minimums(self, delta: float = BOX_PADDING) -> "BoundingBox":
        """Expand any axis thinner than delta so the box has volume."""
        axes = []
        for n in range(3):
            interval = self.axis(n)
            if interval.size < delta:
                interval = interval.expand(delta)
            axes.append(interval)
        return BoundingBox(*axes)

    def hit(self, origin, direction, t_min: float = 0.0, t_max: float = math.inf) -> bool:
        """Slab test of a ray against the box.

        Args:
            origin: Ray origin (sequence of 3 floats).
            direction: Ray direction (sequence of 3 floats).
            t_min: Start of the valid ray parameter window.
            t_max: End of the valid ray parameter window.

        Returns:
            True if the ray overlaps the box within [t_min, t_max].
        """
        origin = np.asarray(origin, dtype=np.float64)
        direction = np.asarray(direction, dtype=np.float64)
        safe = np.where(np.abs(direction) < _MIN_DIRECTION_COMPONENT, _MIN_DIRECTION_COMPONENT, direction)
        inv = 1.0 / safe
        t0 = (self.minimum - origin) * inv
        t1 = (self.maximum - origin) * inv
        t_enter = max(t_min, float(np.max(np.minimum(t0, t1))))
        t_exit = min(t_max, float(np.min(np.maximum(t0, t1))))
        return t_exit > t_enter


def union_all(boxes) -> BoundingBox:
    """Return the union of an iterable of boxes (empty box for no boxes)."""
    result = BoundingBox()
    for box in boxes:
        result = result.union(box)
    return result


@ti.func
def safe_inverse_direction(direction: vec3) -> vec3:
    """Invert a ray direction, replacing zero components with a tiny value.

    The result is used by ``hit_aabb``; a ray parallel to a slab then yields
    very large entry/exit distances of the correct sign instead of NaN.
    """
    d = direction
    for k in ti.static(range(3)):
        if ti.abs(d[k]) < _MIN_DIRECTION_COMPONENT:
            d[k] = _MIN_DIRECTION_COMPONENT
    return 1.0 / d


@ti.func
def hit_aabb(
    box_min: vec3,
    box_max: vec3,
    ray_origin: vec3,
    inv_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Slab test of a ray against an axis-aligned box.

    Args:
        box_min: Minimum corner of the box.
        box_max: Maximum corner of the box.
        ray_origin: The starting point of the ray.
        inv_direction: Component-wise inverse of the ray direction, as
            returned by ``safe_inverse_direction``.
        t_min: Start of the valid ray parameter window.
        t_max: End of the valid ray parameter window.

    Returns:
        1 if the ray overlaps the box within the window, 0 otherwise.
    """
    t_enter = t_min
    t_exit = t_max
    for k in ti.static(range(3)):
        t0 = (box_min[k] - ray_origin[k]) * inv_direction[k]
        t1 = (box_max[k] - ray_origin[k]) * inv_direction[k]
        t_enter = ti.max(t_enter, ti.min(t0, t1))
        t_exit = ti.min(t_exit, ti.max(t0, t1))
    result = 0
    if t_exit > t_enter:
        result = 1
    return result

"""Geometry instances: shapes wrapped in a transform stack.

A ``GeometryInstance`` owns one or more object-space shapes and an ordered
list of transforms. It is immutable once created and exposes:

- ``bounding_box(time_window)``: a world-space box containing every position
  the instance occupies during the window (the whole motion by default).
- ``to_world`` / ``to_object``: host-side point mapping at a given time.

After upload, ``hit_instance`` intersects a world-space ray with an instance
inside a kernel. The ray is moved into object space with the inverse
transform at the ray's time, the shapes are tested there, and the hit normal
is mapped back with the inverse-transpose of the linear part. The ray
parameter t is unchanged by the mapping, so the world hit point is simply
``origin + t * direction``.
"""

import itertools
from collections.abc import Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from src.pathtracer.errors import SceneBuildError
from src.pathtracer.geometry.aabb import BoundingBox, union_all
from src.pathtracer.geometry.shapes import add_shape, hit_shape
from src.pathtracer.geometry.sphere import HitRecord, make_miss_record
from src.pathtracer.geometry.transform import (
    MOVE_TIME_EPSILON,
    ComposedTransform,
)

# Type alias for 3D vectors
vec3 = tm.vec3


class GeometryInstance:
    """Object-space shapes plus a composed transform stack.

    Args:
        shapes: One shape or a sequence of shapes (SphereShape / QuadShape).
        transforms: Transforms applied in order, first entry first.

    Raises:
        SceneBuildError: If no shapes are given or the transform stack is
            singular.
    """

    def __init__(self, shapes, transforms: Sequence = ()) -> None:
        if not isinstance(shapes, (list, tuple)):
            shapes = [shapes]
        if not shapes:
            raise SceneBuildError("A geometry instance needs at least one shape")
        self.shapes = tuple(shapes)
        self.transforms = tuple(transforms)
        self.transform = ComposedTransform.compose(self.transforms)
        self._object_box = union_all(shape.bounding_box() for shape in self.shapes)

    @property
    def is_moving(self) -> bool:
        return bool(self.transform.motion_deltas)

    def object_bounding_box(self) -> BoundingBox:
        return self._object_box

    def bounding_box(self, time_window=None) -> BoundingBox:
        """World-space box over a time window.

        The eight corners of the object-space box are mapped through the
        static affine part, then the box is grown by the range of the motion
        displacement over the window.

        Args:
            time_window: ``(t0, t1)`` or ``None`` for the full motion range.

        Returns:
            A padded BoundingBox.
        """
        lo = self._object_box.minimum
        hi = self._object_box.maximum
        corners = np.array(
            [
                [(lo, hi)[i][0], (lo, hi)[j][1], (lo, hi)[k][2]]
                for i, j, k in itertools.product((0, 1), repeat=3)
            ]
        )
        mapped = corners @ self.transform.linear.T + self.transform.offset
        motion_lo, motion_hi = self.transform.motion_extent(time_window)
        box = BoundingBox.from_arrays(mapped.min(axis=0) + motion_lo, mapped.max(axis=0) + motion_hi)
        return box.pad_to_minimums()

    def bounding_box_at(self, time: float) -> BoundingBox:
        """World-space box at a single instant."""
        return self.bounding_box((time, time))

    def to_world(self, point, time: float = 0.0) -> np.ndarray:
        return self.transform.to_world(point, time)

    def to_object(self, point, time: float = 0.0) -> np.ndarray:
        return self.transform.to_object(point, time)

    def __repr__(self) -> str:
        return f"GeometryInstance(shapes={len(self.shapes)}, transforms={list(self.transforms)!r})"


# =============================================================================
# Instance Storage
# =============================================================================

MAX_INSTANCES = 4096
MAX_MOTIONS = 4

instance_shape_start = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
instance_shape_count = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
instance_inverse = ti.Matrix.field(3, 3, dtype=ti.f32, shape=MAX_INSTANCES)
instance_normal_matrix = ti.Matrix.field(3, 3, dtype=ti.f32, shape=MAX_INSTANCES)
instance_offset = ti.Vector.field(3, dtype=ti.f32, shape=MAX_INSTANCES)
instance_motion_count = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
motion_delta = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_INSTANCES, MAX_MOTIONS))
motion_time0 = ti.field(dtype=ti.f32, shape=(MAX_INSTANCES, MAX_MOTIONS))
motion_time1 = ti.field(dtype=ti.f32, shape=(MAX_INSTANCES, MAX_MOTIONS))
num_instances = ti.field(dtype=ti.i32, shape=())


def clear_instances() -> None:
    """Reset the instance count to zero."""
    num_instances[None] = 0


def upload_instance(instance: GeometryInstance) -> int:
    """Write an instance and its shapes into the Taichi tables.

    Args:
        instance: The instance to upload.

    Returns:
        The index of the uploaded instance.

    Raises:
        RuntimeError: If instance or shape capacity is exceeded.
        SceneBuildError: If the instance has more than MAX_MOTIONS moves.
    """
    idx = num_instances[None]
    if idx >= MAX_INSTANCES:
        raise RuntimeError(f"Maximum number of instances ({MAX_INSTANCES}) exceeded")

    transform = instance.transform
    if len(transform.motion_deltas) > MAX_MOTIONS:
        raise SceneBuildError(
            f"An instance supports at most {MAX_MOTIONS} Move transforms, "
            f"got {len(transform.motion_deltas)}"
        )

    first_shape = -1
    for shape in instance.shapes:
        shape_id = add_shape(shape)
        if first_shape < 0:
            first_shape = shape_id

    instance_shape_start[idx] = first_shape
    instance_shape_count[idx] = len(instance.shapes)
    instance_inverse[idx] = transform.inverse_linear.tolist()
    instance_normal_matrix[idx] = transform.normal_matrix.tolist()
    instance_offset[idx] = transform.offset.tolist()
    instance_motion_count[idx] = len(transform.motion_deltas)
    for k, (delta, (t0, t1)) in enumerate(zip(transform.motion_deltas, transform.motion_windows)):
        motion_delta[idx, k] = delta.tolist()
        motion_time0[idx, k] = t0
        motion_time1[idx, k] = t1

    num_instances[None] = idx + 1
    return idx


def get_instance_count() -> int:
    return int(num_instances[None])


@ti.func
def instance_offset_at(instance_id: ti.i32, time: ti.f32) -> vec3:
    """Total world translation of an instance at the given time."""
    offset = instance_offset[instance_id]
    for k in range(instance_motion_count[instance_id]):
        t0 = motion_time0[instance_id, k]
        t1 = motion_time1[instance_id, k]
        span = ti.max(t1 - t0, MOVE_TIME_EPSILON)
        fraction = tm.clamp((time - t0) / span, 0.0, 1.0)
        offset += motion_delta[instance_id, k] * fraction
    return offset


@ti.func
def hit_instance(
    instance_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a world-space ray with an instance at the ray's time.

    Args:
        instance_id: Index into the instance tables.
        ray_origin: The starting point of the ray (world space).
        ray_direction: The direction vector of the ray (world space).
        time: The ray's time, used to evaluate motion.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        The closest HitRecord among the instance's shapes, in world space.
    """
    inverse = instance_inverse[instance_id]
    local_origin = inverse @ (ray_origin - instance_offset_at(instance_id, time))
    local_direction = inverse @ ray_direction

    result = make_miss_record()
    closest_t = t_max
    start = instance_shape_start[instance_id]
    for s in range(start, start + instance_shape_count[instance_id]):
        rec = hit_shape(s, local_origin, local_direction, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = rec

    if result.hit == 1:
        # Affine maps preserve the sign of dot(direction, normal), so the
        # face orientation found in object space still holds in world space.
        result.normal = tm.normalize(instance_normal_matrix[instance_id] @ result.normal)
        result.point = ray_origin + result.t * ray_direction

    return result

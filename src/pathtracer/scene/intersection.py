"""Scene-level nearest-hit queries over render objects.

A render object pairs an uploaded geometry instance with a material id and an
RGB tint. Objects live in module-level fields; the BVH built over their
bounding boxes indexes into the same table.

Two kernel-side queries return the closest hit with material information:

- ``intersect_objects_bvh``: stack-based BVH traversal, near child first,
  with the valid interval shrunk to the closest hit so far.
- ``intersect_objects_linear``: tests every object, used to verify the BVH.

``intersect_rays`` runs either query for a batch of rays from the host.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.scene.intersection import intersect_rays
    >>> # After Scene.build():
    >>> # t, obj = intersect_rays(origins, directions, times, use_bvh=True)
"""

import numpy as np
import taichi as ti
import taichi.math as tm

from src.pathtracer.core.sampling import MAX_STREAMS
from src.pathtracer.geometry.aabb import hit_aabb, safe_inverse_direction
from src.pathtracer.geometry.bvh import (
    BVH_STACK_SIZE,
    bvh_axis,
    bvh_count,
    bvh_first,
    bvh_left,
    bvh_max,
    bvh_min,
    bvh_objects,
    bvh_right,
    num_bvh_nodes,
)
from src.pathtracer.geometry.instance import hit_instance
from src.pathtracer.geometry.sphere import HitRecord

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Attributes:
        hit: Whether the ray intersected anything (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
        point: The world-space hit point.
        normal: The unit surface normal, oriented against the ray.
        front_face: Whether the ray hit the front face (1) or back face (0).
        u: First texture coordinate.
        v: Second texture coordinate.
        material_id: The unified material id of the hit object, -1 on miss.
        object_id: Index of the hit render object, -1 on miss or for
            volume scattering events.
        tint: RGB multiplier applied to the material's emission and
            attenuation.

    All fields except ``hit`` are only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32
    material_id: ti.i32
    object_id: ti.i32
    tint: vec3


@ti.func
def make_scene_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        u=0.0,
        v=0.0,
        material_id=-1,
        object_id=-1,
        tint=vec3(1.0, 1.0, 1.0),
    )


# =============================================================================
# Render Object Storage
# =============================================================================

# Maximum number of render objects in the scene
MAX_OBJECTS = 4096

object_instance = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
object_material = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
object_tint = ti.Vector.field(3, dtype=ti.f32, shape=MAX_OBJECTS)
num_objects = ti.field(dtype=ti.i32, shape=())

# Per-stream traversal stacks; a stream is only ever used by one worker
_bvh_stack = ti.field(dtype=ti.i32, shape=(MAX_STREAMS, BVH_STACK_SIZE))


def clear_objects() -> None:
    """Reset the object count to zero."""
    num_objects[None] = 0


def add_object(instance_id: int, material_id: int, tint=(1.0, 1.0, 1.0)) -> int:
    """Register a render object.

    Args:
        instance_id: Index of an uploaded geometry instance.
        material_id: Unified material id.
        tint: RGB multiplier for the material's emission and attenuation.

    Returns:
        The index of the added object.

    Raises:
        RuntimeError: If the maximum number of objects is exceeded.
    """
    idx = num_objects[None]
    if idx >= MAX_OBJECTS:
        raise RuntimeError(f"Maximum number of objects ({MAX_OBJECTS}) exceeded")
    object_instance[idx] = instance_id
    object_material[idx] = material_id
    object_tint[idx] = [float(c) for c in tint]
    num_objects[None] = idx + 1
    return idx


def get_object_count() -> int:
    """Get the number of render objects in the scene."""
    return int(num_objects[None])


# =============================================================================
# Nearest-Hit Queries
# =============================================================================


@ti.func
def _to_scene_hit_record(rec: HitRecord, object_id: ti.i32) -> SceneHitRecord:
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        u=rec.u,
        v=rec.v,
        material_id=object_material[object_id],
        object_id=object_id,
        tint=object_tint[object_id],
    )


@ti.func
def hit_object(
    object_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Intersect a ray with one render object."""
    rec = hit_instance(object_instance[object_id], ray_origin, ray_direction, time, t_min, t_max)
    return _to_scene_hit_record(rec, object_id)


@ti.func
def intersect_objects_linear(
    ray_origin: vec3,
    ray_direction: vec3,
    time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Find the closest hit by testing every object in turn.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        time: The ray's time.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        SceneHitRecord of the closest hit, or a miss record.
    """
    result = make_scene_miss_record()
    closest_t = t_max
    for obj in range(num_objects[None]):
        rec = hit_object(obj, ray_origin, ray_direction, time, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = rec
    return result


@ti.func
def intersect_objects_bvh(
    ray_origin: vec3,
    ray_direction: vec3,
    time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
    stream: ti.i32,
) -> SceneHitRecord:
    """Find the closest hit by traversing the uploaded BVH.

    Nodes whose box the ray misses within the current interval are culled.
    Children of an internal node are pushed so that the child on the near
    side of the split axis is visited first, which shrinks the interval
    early and lets the far child be culled more often.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        time: The ray's time.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.
        stream: Index of the traversal stack to use (the caller's stream).

    Returns:
        SceneHitRecord of the closest hit, or a miss record.
    """
    result = make_scene_miss_record()
    closest_t = t_max

    if num_bvh_nodes[None] > 0:
        inv_direction = safe_inverse_direction(ray_direction)
        _bvh_stack[stream, 0] = 0
        top = 1
        while top > 0:
            top -= 1
            node = _bvh_stack[stream, top]
            if hit_aabb(bvh_min[node], bvh_max[node], ray_origin, inv_direction, t_min, closest_t) == 1:
                if bvh_left[node] < 0:
                    first = bvh_first[node]
                    for k in range(first, first + bvh_count[node]):
                        rec = hit_object(bvh_objects[k], ray_origin, ray_direction, time, t_min, closest_t)
                        if rec.hit == 1:
                            closest_t = rec.t
                            result = rec
                else:
                    axis = bvh_axis[node]
                    d_axis = ray_direction.x
                    if axis == 1:
                        d_axis = ray_direction.y
                    elif axis == 2:
                        d_axis = ray_direction.z

                    near_child = bvh_left[node]
                    far_child = bvh_right[node]
                    if d_axis < 0.0:
                        near_child = bvh_right[node]
                        far_child = bvh_left[node]

                    # Far child below the near one so the near child pops first
                    _bvh_stack[stream, top] = far_child
                    _bvh_stack[stream, top + 1] = near_child
                    top += 2

    return result


# =============================================================================
# Host Query Helpers
# =============================================================================


@ti.kernel
def _intersect_rays_kernel(
    n: ti.i32,
    origins: ti.types.ndarray(),
    directions: ti.types.ndarray(),
    times: ti.types.ndarray(),
    use_bvh: ti.i32,
    t_min: ti.f32,
    t_max: ti.f32,
    out_t: ti.types.ndarray(),
    out_object: ti.types.ndarray(),
):
    # One traversal stack is shared, so the rays run one after another
    ti.loop_config(serialize=True)
    for i in range(n):
        origin = vec3(origins[i, 0], origins[i, 1], origins[i, 2])
        direction = vec3(directions[i, 0], directions[i, 1], directions[i, 2])
        rec = make_scene_miss_record()
        if use_bvh == 1:
            rec = intersect_objects_bvh(origin, direction, times[i], t_min, t_max, 0)
        else:
            rec = intersect_objects_linear(origin, direction, times[i], t_min, t_max)
        out_t[i] = rec.t
        out_object[i] = -1
        if rec.hit == 1:
            out_object[i] = rec.object_id


def intersect_rays(
    origins,
    directions,
    times=None,
    use_bvh: bool = True,
    t_min: float = 1e-4,
    t_max: float = 1e10,
) -> tuple[np.ndarray, np.ndarray]:
    """Find the nearest surface hit for a batch of rays.

    Args:
        origins: (N, 3) ray origins.
        directions: (N, 3) ray directions.
        times: (N,) ray times, zeros by default.
        use_bvh: Traverse the BVH if True, otherwise scan every object.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A tuple ``(t, object_id)``: the nearest hit distance per ray
        (``inf`` on miss) and the hit object index (-1 on miss).
    """
    origins = np.ascontiguousarray(origins, dtype=np.float32).reshape(-1, 3)
    directions = np.ascontiguousarray(directions, dtype=np.float32).reshape(-1, 3)
    n = origins.shape[0]
    if directions.shape[0] != n:
        raise ValueError(f"Got {n} origins but {directions.shape[0]} directions")
    if times is None:
        times = np.zeros(n, dtype=np.float32)
    times = np.ascontiguousarray(times, dtype=np.float32).reshape(-1)

    out_t = np.zeros(n, dtype=np.float32)
    out_object = np.zeros(n, dtype=np.int32)
    if n > 0:
        _intersect_rays_kernel(
            n, origins, directions, times, int(use_bvh), t_min, t_max, out_t, out_object
        )
    out_t = np.where(out_object >= 0, out_t, np.inf)
    return out_t, out_object

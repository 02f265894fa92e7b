"""Constant-density participating media.

A volume is a boundary geometry instance, an isotropic phase material and a
density. A ray crossing the boundary travels a random free path drawn from
an exponential distribution; if that path ends inside the boundary the ray
scatters there, otherwise it passes through untouched.

Volumes are not part of the surface BVH. The integrator first finds the
nearest surface hit and then asks ``sample_volumes`` for a scattering event
in front of it.
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.sampling import random_float
from src.pathtracer.geometry.instance import hit_instance
from src.pathtracer.scene.intersection import SceneHitRecord, make_scene_miss_record

vec3 = tm.vec3

# Boundary queries run over the whole ray line to find the entry point even
# when the ray origin is inside the medium
VOLUME_INFINITY = 1e30

# Offset past the entry hit when searching for the exit hit
VOLUME_EXIT_EPSILON = 1e-4

# Maximum number of volumes in the scene
MAX_VOLUMES = 64

volume_instance = ti.field(dtype=ti.i32, shape=MAX_VOLUMES)
volume_density = ti.field(dtype=ti.f32, shape=MAX_VOLUMES)
volume_material = ti.field(dtype=ti.i32, shape=MAX_VOLUMES)
num_volumes = ti.field(dtype=ti.i32, shape=())


def clear_volumes() -> None:
    """Reset the volume count to zero."""
    num_volumes[None] = 0


def add_volume(instance_id: int, density: float, material_id: int) -> int:
    """Register a constant-density medium.

    Args:
        instance_id: Index of the uploaded boundary instance.
        density: Scattering events per unit world distance (positive).
        material_id: Unified id of the phase-function material.

    Returns:
        The index of the added volume.

    Raises:
        RuntimeError: If the maximum number of volumes is exceeded.
    """
    idx = num_volumes[None]
    if idx >= MAX_VOLUMES:
        raise RuntimeError(f"Maximum number of volumes ({MAX_VOLUMES}) exceeded")
    volume_instance[idx] = instance_id
    volume_density[idx] = density
    volume_material[idx] = material_id
    num_volumes[None] = idx + 1
    return idx


def get_volume_count() -> int:
    return int(num_volumes[None])


@ti.func
def sample_volumes(
    ray_origin: vec3,
    ray_direction: vec3,
    time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
    stream: ti.i32,
) -> SceneHitRecord:
    """Sample the nearest scattering event among all volumes.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (any length).
        time: The ray's time.
        t_min: Minimum t value to consider.
        t_max: Maximum t value to consider, usually the nearest surface hit.
        stream: The random stream for free-path draws.

    Returns:
        A hit record for the scattering event with the volume's material,
        an arbitrary normal and ``object_id`` -1, or a miss record.
    """
    result = make_scene_miss_record()
    closest_t = t_max
    ray_length = tm.length(ray_direction)

    for vol in range(num_volumes[None]):
        boundary = volume_instance[vol]
        entry = hit_instance(boundary, ray_origin, ray_direction, time, -VOLUME_INFINITY, VOLUME_INFINITY)
        if entry.hit == 1:
            exit_rec = hit_instance(
                boundary,
                ray_origin,
                ray_direction,
                time,
                entry.t + VOLUME_EXIT_EPSILON,
                VOLUME_INFINITY,
            )
            if exit_rec.hit == 1:
                t0 = ti.max(entry.t, t_min)
                t1 = ti.min(exit_rec.t, closest_t)
                if t0 < t1:
                    t0 = ti.max(t0, 0.0)
                    distance_inside = (t1 - t0) * ray_length
                    # random_float is in [0, 1), so the log argument is in (0, 1]
                    hit_distance = -ti.log(1.0 - random_float(stream)) / volume_density[vol]
                    if hit_distance < distance_inside:
                        t = t0 + hit_distance / ray_length
                        closest_t = t
                        result = SceneHitRecord(
                            hit=1,
                            t=t,
                            point=ray_origin + t * ray_direction,
                            normal=vec3(1.0, 0.0, 0.0),
                            front_face=1,
                            u=0.0,
                            v=0.0,
                            material_id=volume_material[vol],
                            object_id=-1,
                            tint=vec3(1.0, 1.0, 1.0),
                        )

    return result

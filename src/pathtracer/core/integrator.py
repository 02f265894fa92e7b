"""Path tracing integrator for Monte Carlo light transport.

This module implements the light-transport loop and the rendering kernel.
A path starts at a camera ray and, at every hit, adds the surface's emitted
radiance and then asks the material for a scattered ray. Paths end when a
ray escapes to the background, when a material absorbs or only emits, or
when the bounce depth reaches the configured maximum.

Key features:
    - Material dispatch (Lambertian, Metal, Dielectric, DiffuseLight,
      Isotropic) with textured albedo and per-object tint
    - Volume scattering events in front of the nearest surface
    - Stratified, jittered pixel sampling on a ceil(sqrt(spp))^2 grid
    - Row-range chunks, each with a private random stream
    - Self-intersection avoidance with ray offset

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.core.integrator import render_chunks
    >>> # After Scene.build() and setup_camera(camera):
    >>> # linear = render_chunks([(0, 90)], width=160, height=90, grid=4, max_depth=10)
"""

import numpy as np
import taichi as ti
import taichi.math as tm

from src.pathtracer.camera.thin_lens import get_ray
from src.pathtracer.core.sampling import MAX_STREAMS, random_float
from src.pathtracer.materials.background import background_color
from src.pathtracer.materials.dielectric import get_dielectric_ior, scatter_dielectric
from src.pathtracer.materials.diffuse_light import get_diffuse_light_texture
from src.pathtracer.materials.isotropic import get_isotropic_texture, scatter_isotropic
from src.pathtracer.materials.lambertian import get_lambertian_texture, scatter_lambertian
from src.pathtracer.materials.metal import get_metal_fuzz, get_metal_texture, scatter_metal
from src.pathtracer.materials.registry import (
    MaterialType,
    background_material,
    get_material_type,
    get_material_type_index,
)
from src.pathtracer.scene.intersection import SceneHitRecord, intersect_objects_bvh
from src.pathtracer.scene.volume import sample_volumes
from src.pathtracer.textures.texture import evaluate_texture

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Small offset for ray origins to avoid self-intersection
RAY_EPSILON = 1e-4

# Valid t range for scene queries
T_MIN = 1e-4
T_MAX = 1e10

# Maximum image dimensions (for field allocation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Average linear radiance per pixel, indexed [row, col] with row 0 at the top
_linear_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH))

# Row range [start, end) of each chunk; chunk k draws from stream k
_chunk_row_start = ti.field(dtype=ti.i32, shape=MAX_STREAMS)
_chunk_row_end = ti.field(dtype=ti.i32, shape=MAX_STREAMS)


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(rec: SceneHitRecord, incident_direction: vec3, stream: ti.i32):
    """Dispatch to the appropriate material scattering function.

    Args:
        rec: The hit being shaded.
        incident_direction: The incoming ray direction (normalized).
        stream: The random stream to draw from.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where:
        - scattered_direction: The new ray direction (normalized).
        - attenuation: The color attenuation for this bounce.
        - did_scatter: 1 if ray scattered, 0 if absorbed or emissive.
    """
    mat_type = get_material_type(rec.material_id)
    type_index = get_material_type_index(rec.material_id)

    # Default values
    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == int(MaterialType.LAMBERTIAN):
        albedo = evaluate_texture(get_lambertian_texture(type_index), rec.u, rec.v, rec.point)
        scattered_direction, attenuation, did_scatter = scatter_lambertian(albedo, rec.normal, stream)

    elif mat_type == int(MaterialType.METAL):
        albedo = evaluate_texture(get_metal_texture(type_index), rec.u, rec.v, rec.point)
        scattered_direction, attenuation, did_scatter = scatter_metal(
            albedo, get_metal_fuzz(type_index), incident_direction, rec.normal, stream
        )

    elif mat_type == int(MaterialType.DIELECTRIC):
        scattered_direction, attenuation, did_scatter = scatter_dielectric(
            get_dielectric_ior(type_index), incident_direction, rec.normal, rec.front_face, stream
        )

    elif mat_type == int(MaterialType.ISOTROPIC):
        albedo = evaluate_texture(get_isotropic_texture(type_index), rec.u, rec.v, rec.point)
        scattered_direction, attenuation, did_scatter = scatter_isotropic(albedo, stream)

    return scattered_direction, attenuation, did_scatter


@ti.func
def _emitted(rec: SceneHitRecord) -> vec3:
    """Radiance emitted by the hit surface, zero for non-emitters.

    Lights emit from both faces.
    """
    emission = vec3(0.0, 0.0, 0.0)
    if get_material_type(rec.material_id) == int(MaterialType.DIFFUSE_LIGHT):
        texture_id = get_diffuse_light_texture(get_material_type_index(rec.material_id))
        emission = evaluate_texture(texture_id, rec.u, rec.v, rec.point)
    return emission


@ti.func
def _background(direction: vec3) -> vec3:
    """Radiance of a ray escaping the scene, black when no background is set."""
    color = vec3(0.0, 0.0, 0.0)
    material_id = background_material[None]
    if get_material_type(material_id) == int(MaterialType.BACKGROUND):
        color = background_color(get_material_type_index(material_id), direction)
    return color


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def _offset_ray_origin(point: vec3, normal: vec3, direction: vec3) -> vec3:
    """Offset ray origin to avoid self-intersection.

    Pushes the point slightly along the normal on the side the scattered ray
    travels to (above the surface for reflection, below for refraction).
    """
    offset_dir = normal
    if tm.dot(direction, normal) < 0.0:
        offset_dir = -normal
    return point + RAY_EPSILON * offset_dir


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
    stream: ti.i32,
) -> SceneHitRecord:
    """Nearest surface hit or volume scattering event along a ray.

    Surfaces come from the BVH. Volumes are sampled afterwards, only in
    front of the surface hit, and win when they produce an event.
    """
    rec = intersect_objects_bvh(ray_origin, ray_direction, time, t_min, t_max, stream)
    limit = t_max
    if rec.hit == 1:
        limit = rec.t
    volume_rec = sample_volumes(ray_origin, ray_direction, time, t_min, limit, stream)
    if volume_rec.hit == 1:
        rec = volume_rec
    return rec


@ti.func
def trace_path(
    origin: vec3,
    direction: vec3,
    time: ti.f32,
    max_depth: ti.i32,
    stream: ti.i32,
) -> vec3:
    """Trace a single path through the scene.

    The ray traced at depth d adds its hit's emission and scatters only
    while d < max_depth, so max_depth = 0 sees emitters and the background
    directly and max_depth = 1 adds one bounce.

    Args:
        origin: Ray origin.
        direction: Ray direction (normalized here).
        time: Ray time, carried unchanged through every bounce.
        max_depth: Maximum number of scattering events.
        stream: The random stream to draw from.

    Returns:
        The estimated radiance (RGB) along this path.
    """
    ray_origin = origin
    ray_direction = tm.normalize(direction)

    # Accumulated radiance for this path
    radiance = vec3(0.0, 0.0, 0.0)

    # Product of attenuations along the path
    throughput = vec3(1.0, 1.0, 1.0)

    # Active flag for path continuation (Taichi doesn't support break in ti.func loops)
    active = 1

    for depth in range(max_depth + 1):
        if active == 1:
            rec = intersect_scene(ray_origin, ray_direction, time, T_MIN, T_MAX, stream)

            if rec.hit == 0:
                radiance += throughput * _background(ray_direction)
                active = 0
            else:
                radiance += throughput * rec.tint * _emitted(rec)

                if depth >= max_depth:
                    active = 0
                else:
                    scattered_direction, attenuation, did_scatter = _scatter_material(
                        rec, ray_direction, stream
                    )

                    if did_scatter == 0:
                        active = 0
                    else:
                        throughput *= attenuation * rec.tint
                        # Volume events happen inside the medium, not on a surface
                        if get_material_type(rec.material_id) == int(MaterialType.ISOTROPIC):
                            ray_origin = rec.point
                        else:
                            ray_origin = _offset_ray_origin(rec.point, rec.normal, scattered_direction)
                        ray_direction = scattered_direction

    return radiance


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Clamp negative components and replace NaN/Inf with zero."""
    result = tm.max(color, vec3(0.0, 0.0, 0.0))
    for c in ti.static(range(3)):
        if tm.isnan(result[c]) or tm.isinf(result[c]):
            result[c] = 0.0
    return result


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_chunks(
    num_chunks: ti.i32,
    width: ti.i32,
    height: ti.i32,
    grid: ti.i32,
    max_depth: ti.i32,
):
    """Render every pixel of every chunk into the linear buffer.

    The outer loop over chunks is the parallel one. Each chunk walks its own
    rows serially with its own stream, so no two iterations share state.
    """
    ti.loop_config(block_dim=1)
    for chunk in range(num_chunks):
        inv_grid = 1.0 / ti.cast(grid, ti.f32)
        for row in range(_chunk_row_start[chunk], _chunk_row_end[chunk]):
            for col in range(width):
                total = vec3(0.0, 0.0, 0.0)
                for si in range(grid):
                    for sj in range(grid):
                        s = (ti.cast(col, ti.f32) + (si + random_float(chunk)) * inv_grid) / width
                        t = (ti.cast(height - 1 - row, ti.f32) + (sj + random_float(chunk)) * inv_grid) / height
                        ray = get_ray(s, t, chunk)
                        total += _sanitize(trace_path(ray.origin, ray.direction, ray.time, max_depth, chunk))
                _linear_buffer[row, col] = total * inv_grid * inv_grid


@ti.kernel
def _trace_single_ray(
    ox: ti.f32,
    oy: ti.f32,
    oz: ti.f32,
    dx: ti.f32,
    dy: ti.f32,
    dz: ti.f32,
    time: ti.f32,
    max_depth: ti.i32,
    stream: ti.i32,
) -> vec3:
    return trace_path(vec3(ox, oy, oz), vec3(dx, dy, dz), time, max_depth, stream)


# =============================================================================
# Public Rendering API
# =============================================================================


def trace_ray(origin, direction, time: float = 0.0, max_depth: int = 10, stream: int = 0):
    """Evaluate a single path from the host.

    Args:
        origin: Ray origin (x, y, z).
        direction: Ray direction (x, y, z), need not be normalized.
        time: Ray time.
        max_depth: Maximum number of scattering events.
        stream: The random stream to draw from.

    Returns:
        Tuple of (R, G, B) radiance values.
    """
    color = _trace_single_ray(
        float(origin[0]),
        float(origin[1]),
        float(origin[2]),
        float(direction[0]),
        float(direction[1]),
        float(direction[2]),
        float(time),
        int(max_depth),
        int(stream),
    )
    return (float(color[0]), float(color[1]), float(color[2]))


def render_chunks(
    chunks: list[tuple[int, int]],
    width: int,
    height: int,
    grid: int,
    max_depth: int,
) -> np.ndarray:
    """Render row-range chunks and return the linear image.

    Args:
        chunks: Disjoint ``(row_start, row_end)`` ranges covering the image.
            Chunk k uses random stream k.
        width: Image width in pixels.
        height: Image height in pixels.
        grid: Stratification grid size; each pixel takes grid * grid samples.
        max_depth: Maximum number of scattering events per path.

    Returns:
        The (height, width, 3) float32 average radiance, row 0 at the top.

    Raises:
        RuntimeError: If there are more chunks than random streams or the
            image exceeds the preallocated buffer.
    """
    if len(chunks) > MAX_STREAMS:
        raise RuntimeError(f"{len(chunks)} chunks exceed the {MAX_STREAMS} random streams")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise RuntimeError(
            f"Image {width}x{height} exceeds maximum {MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT}"
        )

    for k, (start, end) in enumerate(chunks):
        _chunk_row_start[k] = start
        _chunk_row_end[k] = end

    _render_chunks(len(chunks), width, height, grid, max_depth)
    return get_linear_image_numpy(width, height)


def get_linear_image_numpy(width: int, height: int) -> np.ndarray:
    """Get the top-left (height, width) region of the linear buffer."""
    full_image = _linear_buffer.to_numpy()
    return np.ascontiguousarray(full_image[:height, :width, :], dtype=np.float32)

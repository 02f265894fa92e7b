"""Lambertian (ideal diffuse) material implementation.

A Lambertian surface scatters light with a cosine-weighted distribution
about the surface normal. Directions are drawn with density cos(theta) / pi
in a local frame whose z axis is the normal, then rotated into world space
through an orthonormal basis. The BRDF and sampling density cancel, so the
path throughput is simply multiplied by the albedo.

The albedo comes from a texture evaluated at the hit.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.materials.lambertian import scatter_lambertian
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_lambertian(albedo, normal, stream)
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import build_onb_from_normal, local_to_world
from src.pathtracer.core.sampling import random_cosine_direction

vec3 = tm.vec3


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3, stream: ti.i32):
    """Sample a cosine-weighted scattered direction about the normal.

    Args:
        albedo: The diffuse reflectance color (RGB).
        normal: The surface normal facing the incoming ray (normalized).
        stream: The random stream to draw from.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        did_scatter is always 1.
    """
    tangent, bitangent, n = build_onb_from_normal(normal)
    local_dir = random_cosine_direction(stream)
    scattered_direction = local_to_world(local_dir, tangent, bitangent, n)
    return tm.normalize(scattered_direction), albedo, 1


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of Lambertian materials in the scene
MAX_LAMBERTIAN_MATERIALS = 256

# Albedo texture of each Lambertian material
lambertian_textures = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Clear all Lambertian materials."""
    num_lambertian_materials[None] = 0


def add_lambertian_material(texture_id: int) -> int:
    """Add a Lambertian material to the material registry.

    Args:
        texture_id: The texture providing the albedo.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    lambertian_textures[idx] = texture_id
    num_lambertian_materials[None] = idx + 1
    return idx


@ti.func
def get_lambertian_texture(material_idx: ti.i32) -> ti.i32:
    return lambertian_textures[material_idx]

"""Isotropic phase function for scattering inside participating media.

An isotropic medium always scatters, in a direction drawn uniformly over the
whole sphere, and tints the path by its albedo texture. It is the material
handed to volume scattering events.
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.sampling import random_unit_vector

vec3 = tm.vec3


@ti.func
def scatter_isotropic(albedo: vec3, stream: ti.i32):
    """Scatter uniformly over the sphere.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        did_scatter is always 1.
    """
    return random_unit_vector(stream), albedo, 1


# Maximum number of isotropic materials in the scene
MAX_ISOTROPIC_MATERIALS = 256

isotropic_textures = ti.field(dtype=ti.i32, shape=MAX_ISOTROPIC_MATERIALS)
num_isotropic_materials = ti.field(dtype=ti.i32, shape=())


def clear_isotropic_materials() -> None:
    """Clear all isotropic materials."""
    num_isotropic_materials[None] = 0


def add_isotropic_material(texture_id: int) -> int:
    """Add an isotropic phase-function material.

    Args:
        texture_id: The texture providing the medium albedo.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_isotropic_materials[None]
    if idx >= MAX_ISOTROPIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of isotropic materials ({MAX_ISOTROPIC_MATERIALS}) exceeded"
        )

    isotropic_textures[idx] = texture_id
    num_isotropic_materials[None] = idx + 1
    return idx


@ti.func
def get_isotropic_texture(material_idx: ti.i32) -> ti.i32:
    return isotropic_textures[material_idx]

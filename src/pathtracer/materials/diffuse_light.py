"""Diffuse area light material.

A diffuse light never scatters. Its texture, evaluated at the hit, is the
radiance emitted toward the incoming ray, and the path ends there. Both
faces of the surface emit.
"""

import taichi as ti

# Maximum number of diffuse light materials in the scene
MAX_DIFFUSE_LIGHT_MATERIALS = 256

# Emission texture of each light material
diffuse_light_textures = ti.field(dtype=ti.i32, shape=MAX_DIFFUSE_LIGHT_MATERIALS)
num_diffuse_light_materials = ti.field(dtype=ti.i32, shape=())


def clear_diffuse_light_materials() -> None:
    """Clear all diffuse light materials."""
    num_diffuse_light_materials[None] = 0


def add_diffuse_light_material(texture_id: int) -> int:
    """Add a diffuse light material to the material registry.

    Args:
        texture_id: The texture providing the emitted radiance.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_diffuse_light_materials[None]
    if idx >= MAX_DIFFUSE_LIGHT_MATERIALS:
        raise RuntimeError(
            f"Maximum number of diffuse light materials ({MAX_DIFFUSE_LIGHT_MATERIALS}) exceeded"
        )

    diffuse_light_textures[idx] = texture_id
    num_diffuse_light_materials[None] = idx + 1
    return idx


@ti.func
def get_diffuse_light_texture(material_idx: ti.i32) -> ti.i32:
    return diffuse_light_textures[material_idx]

"""Unified material ids across all material types.

Every material type keeps its own registry of parameters. This module maps
a single scene-wide material id to ``(material_type, type_local_index)`` so
the integrator can dispatch on the type and then look up the parameters.

The world background is stored here too, as the material id of a BACKGROUND
material or -1 for a black background.
"""

from enum import IntEnum

import taichi as ti

from src.pathtracer.materials.background import clear_background_materials
from src.pathtracer.materials.dielectric import clear_dielectric_materials
from src.pathtracer.materials.diffuse_light import clear_diffuse_light_materials
from src.pathtracer.materials.isotropic import clear_isotropic_materials
from src.pathtracer.materials.lambertian import clear_lambertian_materials
from src.pathtracer.materials.metal import clear_metal_materials


class MaterialType(IntEnum):
    """Enumeration of supported material types.

    Used for material dispatch in the path tracer to determine which
    scattering function to call.
    """

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2
    DIFFUSE_LIGHT = 3
    ISOTROPIC = 4
    BACKGROUND = 5


# Maximum number of materials across all types
MAX_MATERIALS = 1024

# material_types[i] stores the MaterialType for material_id i
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[i] stores the type-local index for material_id i
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())

# Material id of the world background, -1 for black
background_material = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Clear the unified id table, every type registry and the background."""
    num_materials[None] = 0
    background_material[None] = -1
    clear_lambertian_materials()
    clear_metal_materials()
    clear_dielectric_materials()
    clear_diffuse_light_materials()
    clear_isotropic_materials()
    clear_background_materials()


def register_material(material_type: MaterialType, type_index: int) -> int:
    """Assign a unified id to a material already added to its type registry.

    Args:
        material_type: The type of the material.
        type_index: The index within the type-specific registry.

    Returns:
        The unified material id.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    material_id = num_materials[None]
    if material_id >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    material_types[material_id] = int(material_type)
    material_type_indices[material_id] = type_index
    num_materials[None] = material_id + 1
    return material_id


def get_material_count() -> int:
    return int(num_materials[None])


def get_material_type_python(material_id: int) -> MaterialType | None:
    """Host-side type lookup, ``None`` for unknown ids."""
    if not 0 <= material_id < num_materials[None]:
        return None
    return MaterialType(int(material_types[material_id]))


def set_background_material(material_id: int) -> None:
    background_material[None] = material_id


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Get the material type for a given material ID.

    Returns:
        The material type as an integer (see MaterialType enum), or -1
        for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Get the type-local index for a given material ID, or -1 if invalid."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result

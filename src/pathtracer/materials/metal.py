"""Metal (specular reflective) material implementation.

This module implements the metal BSDF, which models specular reflection with
optional fuzziness. Perfect metals (fuzz=0) produce mirror-like reflections,
while fuzzier metals scatter reflected rays within a cone.

The reflection formula is:
    R = I - 2(I . N)N

where I is the incident direction and N is the surface normal.

For fuzzy metals, the reflected direction is perturbed by a random point in
the unit sphere scaled by the fuzz parameter. If the perturbed direction
points into the surface the ray is absorbed.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.materials.metal import scatter_metal
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_metal(
    >>> #     albedo, fuzz, incident_dir, normal, stream
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import reflect
from src.pathtracer.core.sampling import random_in_unit_sphere

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    stream: ti.i32,
):
    """Compute scattered ray direction for metal material.

    Reflects the incident ray about the surface normal, then perturbs the
    reflected direction based on fuzz. The ray is absorbed if the scattered
    direction ends up below the surface.

    Args:
        albedo: The reflective color (RGB, each component in [0, 1]).
        fuzz: The surface fuzziness in [0, 1]. 0 = perfect mirror.
        incident_direction: The incoming ray direction (should be normalized).
        normal: The surface normal (should be normalized).
        stream: The random stream to draw from.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where:
        - scattered_direction: The reflected direction (normalized).
        - attenuation: The color attenuation (equals albedo for metals).
        - did_scatter: 1 if the ray scattered above surface, 0 if absorbed.
    """
    reflected = reflect(incident_direction, normal)
    scattered_direction = tm.normalize(reflected + fuzz * random_in_unit_sphere(stream))

    did_scatter = 1
    if tm.dot(scattered_direction, normal) <= 0.0:
        did_scatter = 0
        scattered_direction = vec3(0.0, 0.0, 0.0)

    return scattered_direction, albedo, did_scatter


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of metal materials in the scene
MAX_METAL_MATERIALS = 256

metal_textures = ti.field(dtype=ti.i32, shape=MAX_METAL_MATERIALS)
metal_fuzz = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    """Clear all metal materials."""
    num_metal_materials[None] = 0


def add_metal_material(texture_id: int, fuzz: float = 0.0) -> int:
    """Add a metal material to the material registry.

    Args:
        texture_id: The texture providing the reflective tint.
        fuzz: The surface fuzziness in [0, 1]. Default is 0 (perfect mirror).

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If fuzz is outside [0, 1].
    """
    if fuzz < 0.0 or fuzz > 1.0:
        raise ValueError(
            f"Fuzz = {fuzz} is outside [0, 1]. "
            "Fuzz must be between 0 (perfect mirror) and 1 (maximum fuzz)."
        )

    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(
            f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded"
        )

    metal_textures[idx] = texture_id
    metal_fuzz[idx] = fuzz
    num_metal_materials[None] = idx + 1
    return idx


@ti.func
def get_metal_texture(material_idx: ti.i32) -> ti.i32:
    return metal_textures[material_idx]


@ti.func
def get_metal_fuzz(material_idx: ti.i32) -> ti.f32:
    return metal_fuzz[material_idx]

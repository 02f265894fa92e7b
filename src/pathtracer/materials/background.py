"""World background materials.

A background is not attached to any surface. It is evaluated when a ray
leaves the scene without hitting anything and returns either a constant
color or a vertical sky gradient::

    t = 0.5 * (normalize(direction).y + 1)
    color = (1 - t) * bottom + t * top

so a horizontal ray sees the midpoint of the two colors, a ray straight up
sees ``top`` and a ray straight down sees ``bottom``.
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# Maximum number of background materials in the scene
MAX_BACKGROUND_MATERIALS = 64

background_top = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BACKGROUND_MATERIALS)
background_bottom = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BACKGROUND_MATERIALS)
num_background_materials = ti.field(dtype=ti.i32, shape=())


def clear_background_materials() -> None:
    """Clear all background materials."""
    num_background_materials[None] = 0


def add_background_material(
    top: tuple[float, float, float],
    bottom: tuple[float, float, float] | None = None,
) -> int:
    """Add a gradient (or constant) background.

    Args:
        top: Color seen looking straight up (the zenith).
        bottom: Color seen looking straight down. ``None`` gives a constant
            background equal to ``top``.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If a color component is negative.
    """
    if bottom is None:
        bottom = top
    for name, color in (("top", top), ("bottom", bottom)):
        for i, component in enumerate(color):
            if component < 0.0:
                raise ValueError(f"Background {name} component {i} = {component} is negative")

    idx = num_background_materials[None]
    if idx >= MAX_BACKGROUND_MATERIALS:
        raise RuntimeError(
            f"Maximum number of background materials ({MAX_BACKGROUND_MATERIALS}) exceeded"
        )

    background_top[idx] = vec3(top[0], top[1], top[2])
    background_bottom[idx] = vec3(bottom[0], bottom[1], bottom[2])
    num_background_materials[None] = idx + 1
    return idx


@ti.func
def background_color(material_idx: ti.i32, direction: vec3) -> vec3:
    """Evaluate a background for a ray direction."""
    unit = tm.normalize(direction)
    t = 0.5 * (unit.y + 1.0)
    return (1.0 - t) * background_bottom[material_idx] + t * background_top[material_idx]

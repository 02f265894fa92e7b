"""Demonstration scenes.

Each factory builds a fresh ``Scene`` and returns it, already built,
together with a matching ``Camera``:

- ``bouncing_spheres``: a field of small random spheres, some of them moving
  upward during the shutter, on a checkered ground under a sky gradient.
- ``cornell_box``: the classic box with two rotated blocks and a ceiling
  light.
- ``cornell_smoke``: the Cornell box with its blocks replaced by smoke and
  fog volumes.
- ``final_scene``: a busy scene with a field of boxes, a moving sphere,
  glass, metal, a subsurface-like glass ball with a blue medium inside,
  thin global fog, a marble sphere and a rotated cluster of spheres.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.scene.presets import cornell_box
    >>> scene, camera = cornell_box()
"""

import numpy as np

from src.pathtracer.camera.thin_lens import Camera
from src.pathtracer.geometry.instance import GeometryInstance
from src.pathtracer.geometry.shapes import SphereShape, box_shapes
from src.pathtracer.geometry.transform import Move, Rotate, Translate
from src.pathtracer.scene.manager import Scene

Y_AXIS = (0.0, 1.0, 0.0)

# Cornell box palette
RED = (0.65, 0.05, 0.05)
WHITE = (0.73, 0.73, 0.73)
GREEN = (0.12, 0.45, 0.15)


def bouncing_spheres(seed=None) -> tuple[Scene, Camera]:
    """Random spheres with motion blur and depth of field.

    Diffuse and metal spheres share white base materials and get their
    color from the object tint, which keeps the material registries small.

    Args:
        seed: Seed for the sphere layout. ``None`` gives a fresh layout.

    Returns:
        The built scene and its camera.
    """
    rng = np.random.default_rng(seed)
    scene = Scene()
    scene.set_background(top=(0.5, 0.7, 1.0), bottom=(1.0, 1.0, 1.0))

    white = scene.add_solid_texture((1.0, 1.0, 1.0))
    diffuse = scene.add_lambertian_material(texture=white)
    glass = scene.add_dielectric_material(1.5)
    metal_by_fuzz: dict[float, int] = {}

    for i in range(-11, 11):
        for j in range(-11, 11):
            moving = rng.random() < 0.5
            choose_mat = rng.random()
            center = (i + 0.9 * rng.random(), 0.2, j + 0.9 * rng.random())
            if np.linalg.norm(np.subtract(center, (4.0, 0.2, 0.0))) <= 0.9:
                continue

            tint = (1.0, 1.0, 1.0)
            if choose_mat < 0.8:
                material = diffuse
                tint = tuple(rng.random(3) * rng.random(3))
            elif choose_mat < 0.95:
                fuzz = round(0.5 * rng.random(), 2)
                if fuzz not in metal_by_fuzz:
                    metal_by_fuzz[fuzz] = scene.add_metal_material(texture=white, fuzz=fuzz)
                material = metal_by_fuzz[fuzz]
                tint = tuple(rng.random(3) * rng.random(3))
            else:
                material = glass

            transforms = []
            if moving:
                transforms.append(Move((0.0, 0.0, 0.0), (0.0, 0.5 * rng.random(), 0.0)))
            transforms.append(Translate(center))
            instance = GeometryInstance(SphereShape((0.0, 0.0, 0.0), 0.2), transforms)
            scene.add_object(instance, material, tint)

    scene.add_sphere((0.0, 1.0, 0.0), 1.0, glass)
    scene.add_sphere((-4.0, 1.0, 0.0), 1.0, scene.add_lambertian_material(albedo=(0.4, 0.2, 0.1)))
    scene.add_sphere((4.0, 1.0, 0.0), 1.0, scene.add_metal_material(albedo=(0.7, 0.6, 0.5), fuzz=0.0))

    checker = scene.add_checker_texture(1.0, (0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
    scene.add_sphere((0.0, -1000.0, 0.0), 1000.0, scene.add_lambertian_material(texture=checker))

    camera = Camera(
        lookfrom=(13.0, 2.0, 3.0),
        lookat=(0.0, 0.0, 0.0),
        vup=Y_AXIS,
        vfov=20.0,
        aspect_ratio=16.0 / 9.0,
        aperture=0.1,
        focus_dist=10.0,
    )
    return scene.build(), camera


def _cornell_walls(scene: Scene, light_emission: float) -> dict[str, int]:
    """Add the five walls and the ceiling light; return the wall materials."""
    red = scene.add_lambertian_material(albedo=RED)
    white = scene.add_lambertian_material(albedo=WHITE)
    green = scene.add_lambertian_material(albedo=GREEN)
    light = scene.add_diffuse_light_material(
        emission=(light_emission, light_emission, light_emission)
    )

    scene.add_quad((0.0, 0.0, 555.0), (0.0, 0.0, -555.0), (0.0, 555.0, 0.0), green)  # left
    scene.add_quad((555.0, 0.0, 0.0), (0.0, 0.0, 555.0), (0.0, 555.0, 0.0), red)  # right
    scene.add_quad((0.0, 0.0, 0.0), (0.0, 0.0, 555.0), (555.0, 0.0, 0.0), white)  # floor
    scene.add_quad((0.0, 555.0, 555.0), (0.0, 0.0, -555.0), (555.0, 0.0, 0.0), white)  # ceiling
    scene.add_quad((555.0, 0.0, 555.0), (-555.0, 0.0, 0.0), (0.0, 555.0, 0.0), white)  # back
    return {"red": red, "white": white, "green": green, "light": light}


def _cornell_blocks() -> tuple[GeometryInstance, GeometryInstance]:
    short_block = GeometryInstance(
        box_shapes((0.0, 0.0, 0.0), (165.0, 165.0, 165.0)),
        [Rotate(Y_AXIS, -18.0), Translate((130.0, 0.0, 65.0))],
    )
    tall_block = GeometryInstance(
        box_shapes((0.0, 0.0, 0.0), (165.0, 330.0, 165.0)),
        [Rotate(Y_AXIS, 15.0), Translate((265.0, 0.0, 295.0))],
    )
    return short_block, tall_block


def _cornell_camera() -> Camera:
    return Camera(
        lookfrom=(278.0, 278.0, -800.0),
        lookat=(278.0, 278.0, 0.0),
        vup=Y_AXIS,
        vfov=40.0,
        aspect_ratio=1.0,
    )


def cornell_box() -> tuple[Scene, Camera]:
    """The Cornell box with two rotated white blocks and a ceiling light."""
    scene = Scene()
    materials = _cornell_walls(scene, 15.0)
    scene.add_quad((213.0, 554.0, 227.0), (130.0, 0.0, 0.0), (0.0, 0.0, 105.0), materials["light"])
    for block in _cornell_blocks():
        scene.add_object(block, materials["white"])
    return scene.build(), _cornell_camera()


def cornell_smoke() -> tuple[Scene, Camera]:
    """The Cornell box with dark smoke and white fog in place of the blocks."""
    scene = Scene()
    materials = _cornell_walls(scene, 7.0)
    scene.add_quad((113.0, 554.0, 127.0), (330.0, 0.0, 0.0), (0.0, 0.0, 305.0), materials["light"])

    short_block, tall_block = _cornell_blocks()
    scene.add_constant_medium(tall_block, 0.01, scene.add_isotropic_material(albedo=(0.0, 0.0, 0.0)))
    scene.add_constant_medium(short_block, 0.01, scene.add_isotropic_material(albedo=(1.0, 1.0, 1.0)))
    return scene.build(), _cornell_camera()


def final_scene(seed=None, image_path=None) -> tuple[Scene, Camera]:
    """A scene exercising every feature at once.

    Args:
        seed: Seed for the random layout and noise tables.
        image_path: Optional image file for the textured sphere. Without
            one the sphere gets a checker texture.

    Returns:
        The built scene and its camera.
    """
    rng = np.random.default_rng(seed)
    scene = Scene()

    ground = scene.add_lambertian_material(albedo=(0.48, 0.83, 0.53))
    boxes_per_side = 20
    width = 100.0
    for i in range(boxes_per_side):
        for j in range(boxes_per_side):
            x0 = -1000.0 + i * width
            z0 = -1000.0 + j * width
            y1 = rng.uniform(1.0, 101.0)
            scene.add_box((x0, 0.0, z0), (x0 + width, y1, z0 + width), ground)

    light = scene.add_diffuse_light_material(emission=(7.0, 7.0, 7.0))
    scene.add_quad((123.0, 554.0, 147.0), (300.0, 0.0, 0.0), (0.0, 0.0, 265.0), light)

    moving = GeometryInstance(
        SphereShape((0.0, 0.0, 0.0), 50.0),
        [Move((0.0, 0.0, 0.0), (30.0, 0.0, 0.0)), Translate((400.0, 400.0, 200.0))],
    )
    scene.add_object(moving, scene.add_lambertian_material(albedo=(0.7, 0.3, 0.1)))

    glass = scene.add_dielectric_material(1.5)
    scene.add_sphere((260.0, 150.0, 45.0), 50.0, glass)
    scene.add_sphere((0.0, 150.0, 145.0), 50.0, scene.add_metal_material(albedo=(0.8, 0.8, 0.9), fuzz=1.0))

    # Glass ball with a blue medium inside
    scene.add_sphere((360.0, 150.0, 145.0), 70.0, glass)
    scene.add_constant_medium(
        GeometryInstance(SphereShape((360.0, 150.0, 145.0), 70.0)),
        0.2,
        scene.add_isotropic_material(albedo=(0.2, 0.4, 0.9)),
    )
    # Thin fog over the whole scene
    scene.add_constant_medium(
        GeometryInstance(SphereShape((0.0, 0.0, 0.0), 5000.0)),
        0.0001,
        scene.add_isotropic_material(albedo=(1.0, 1.0, 1.0)),
    )

    if image_path is not None:
        textured = scene.add_image_texture_from_file(image_path)
    else:
        textured = scene.add_checker_texture(20.0, (0.1, 0.2, 0.5), (0.9, 0.9, 0.9))
    scene.add_sphere((400.0, 200.0, 400.0), 100.0, scene.add_lambertian_material(texture=textured))

    marble = scene.add_noise_texture(0.2, seed=rng)
    scene.add_sphere((220.0, 280.0, 300.0), 80.0, scene.add_lambertian_material(texture=marble))

    white = scene.add_lambertian_material(albedo=WHITE)
    for _ in range(1000):
        center = tuple(rng.uniform(0.0, 165.0, size=3))
        cluster = GeometryInstance(
            SphereShape((0.0, 0.0, 0.0), 10.0),
            [Translate(center), Rotate(Y_AXIS, 15.0), Translate((-100.0, 270.0, 395.0))],
        )
        scene.add_object(cluster, white)

    camera = Camera(
        lookfrom=(478.0, 278.0, -600.0),
        lookat=(278.0, 278.0, 0.0),
        vup=Y_AXIS,
        vfov=40.0,
        aspect_ratio=1.0,
    )
    return scene.build(), camera

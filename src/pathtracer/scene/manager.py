"""High-level scene building.

The ``Scene`` coordinates the texture and material registries with the
geometry tables. It keeps a unified material id space, records render
objects (a geometry instance paired with a material and a tint) and
constant-density volumes, and on ``build()`` uploads everything to the
Taichi fields and builds the BVH.

Scene data lives in module-level fields, so only one scene is active at a
time; creating a ``Scene`` clears the previous one. A built scene is frozen:
further additions raise ``RuntimeError``.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.scene.manager import Scene
    >>> scene = Scene()
    >>> red = scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3))
    >>> scene.add_sphere(center=(0, 0, -1), radius=0.5, material_id=red)
    >>> scene.set_background(top=(0.5, 0.7, 1.0), bottom=(1.0, 1.0, 1.0))
    >>> scene.build()
"""

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np

from src.pathtracer.errors import SceneBuildError
from src.pathtracer.geometry.bvh import FlatBVH, build_bvh, clear_bvh, upload_bvh
from src.pathtracer.geometry.instance import GeometryInstance, clear_instances, upload_instance
from src.pathtracer.geometry.shapes import QuadShape, SphereShape, box_shapes, clear_shapes
from src.pathtracer.geometry.transform import Move
from src.pathtracer.materials.background import add_background_material
from src.pathtracer.materials.dielectric import add_dielectric_material
from src.pathtracer.materials.diffuse_light import add_diffuse_light_material
from src.pathtracer.materials.isotropic import add_isotropic_material
from src.pathtracer.materials.lambertian import add_lambertian_material
from src.pathtracer.materials.metal import add_metal_material
from src.pathtracer.materials.registry import (
    MaterialType,
    clear_materials,
    register_material,
    set_background_material,
)
from src.pathtracer.scene.intersection import add_object, clear_objects
from src.pathtracer.scene.volume import add_volume, clear_volumes
from src.pathtracer.textures.texture import (
    add_checker_texture,
    add_image_texture,
    add_image_texture_from_file,
    add_noise_texture,
    add_solid_texture,
    clear_textures,
    get_texture_type,
)

logger = logging.getLogger(__name__)


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material.
        type_index: The index within the type-specific registry.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class ObjectInfo:
    """A render object: one geometry instance with a material and tint."""

    instance: GeometryInstance
    material_id: int
    tint: tuple[float, float, float]


@dataclass
class VolumeInfo:
    """A constant-density medium bounded by a geometry instance."""

    boundary: GeometryInstance
    density: float
    material_id: int


def _validate_albedo(albedo: tuple[float, float, float]) -> None:
    if len(albedo) != 3:
        raise ValueError(f"Albedo must have 3 components, got {len(albedo)}")
    for i, component in enumerate(albedo):
        if component < 0.0 or component > 1.0:
            raise ValueError(
                f"Albedo component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )


class Scene:
    """Scene builder coordinating textures, materials, objects and volumes.

    Attributes:
        materials: MaterialInfo for every registered material, by id.
        objects: Render objects in insertion order.
        volumes: Volumes in insertion order.
        background_id: Material id of the background, or None for black.

    Example:
        >>> scene = Scene()
        >>> ground = scene.add_lambertian_material(
        ...     texture=scene.add_checker_texture(0.32, (0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
        ... )
        >>> glass = scene.add_dielectric_material(ior=1.5)
        >>> scene.add_sphere((0, -1000, 0), 1000, ground)
        >>> scene.add_sphere((0, 1, 0), 1.0, glass)
        >>> scene.build()
    """

    def __init__(self) -> None:
        """Initialize an empty scene, clearing any previous scene data."""
        self.materials: list[MaterialInfo] = []
        self.objects: list[ObjectInfo] = []
        self.volumes: list[VolumeInfo] = []
        self.background_id: int | None = None
        self._bvh: FlatBVH | None = None
        self._built = False
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        self._clear_geometry_tables()
        clear_materials()
        clear_textures()
        self.materials.clear()
        self.objects.clear()
        self.volumes.clear()
        self.background_id = None
        self._bvh = None
        self._built = False

    def _clear_geometry_tables(self) -> None:
        """Reset the tables that build() fills."""
        clear_objects()
        clear_volumes()
        clear_bvh()
        clear_instances()
        clear_shapes()

    def clear(self) -> None:
        """Clear the entire scene and unfreeze it."""
        self._clear_all()

    @property
    def is_built(self) -> bool:
        return self._built

    @property
    def bvh(self) -> FlatBVH | None:
        """The flattened BVH, available after ``build()``."""
        return self._bvh

    def _check_mutable(self) -> None:
        if self._built:
            raise RuntimeError("Scene is built and read-only; call clear() to start over")

    # =========================================================================
    # Texture Management
    # =========================================================================

    def add_solid_texture(self, color: tuple[float, float, float]) -> int:
        self._check_mutable()
        return add_solid_texture(color)

    def add_checker_texture(self, scale: float, even, odd) -> int:
        """Add a world-space checker texture.

        Args:
            scale: Edge length of one checker cell.
            even: Texture id or (R, G, B) color for even cells.
            odd: Texture id or (R, G, B) color for odd cells.

        Returns:
            The texture id.
        """
        self._check_mutable()
        if not isinstance(even, int):
            even = add_solid_texture(even)
        if not isinstance(odd, int):
            odd = add_solid_texture(odd)
        return add_checker_texture(scale, even, odd)

    def add_noise_texture(self, scale: float = 1.0, seed=None, marble: bool = True) -> int:
        self._check_mutable()
        return add_noise_texture(scale, seed=seed, marble=marble)

    def add_image_texture(self, pixels) -> int:
        self._check_mutable()
        return add_image_texture(pixels)

    def add_image_texture_from_file(self, path) -> int:
        self._check_mutable()
        return add_image_texture_from_file(path)

    def _resolve_texture(self, color, texture: int | None, validate_albedo: bool = True) -> int:
        """Return ``texture`` if given, otherwise a new solid texture of ``color``."""
        if texture is not None:
            get_texture_type(texture)
            return texture
        if color is None:
            raise ValueError("Either a color or a texture id is required")
        if validate_albedo:
            _validate_albedo(color)
        return add_solid_texture(color)

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register(self, material_type: MaterialType, type_index: int, params: dict[str, Any]) -> int:
        material_id = register_material(material_type, type_index)
        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        return material_id

    def add_lambertian_material(
        self,
        albedo: tuple[float, float, float] | None = None,
        texture: int | None = None,
    ) -> int:
        """Add a Lambertian (diffuse) material.

        Args:
            albedo: Diffuse reflectance (R, G, B), each in [0, 1].
            texture: Texture id to use instead of a constant albedo.

        Returns:
            The unified material ID.

        Raises:
            ValueError: If an albedo component is outside [0, 1].
        """
        self._check_mutable()
        texture_id = self._resolve_texture(albedo, texture)
        type_index = add_lambertian_material(texture_id)
        return self._register(
            MaterialType.LAMBERTIAN, type_index, {"albedo": albedo, "texture": texture_id}
        )

    def add_metal_material(
        self,
        albedo: tuple[float, float, float] | None = None,
        fuzz: float = 0.0,
        texture: int | None = None,
    ) -> int:
        """Add a metal (specular reflective) material.

        Args:
            albedo: Reflective color (R, G, B), each in [0, 1].
            fuzz: Surface fuzziness in [0, 1]. 0 is a perfect mirror.
            texture: Texture id to use instead of a constant albedo.

        Returns:
            The unified material ID.

        Raises:
            ValueError: If an albedo component or fuzz is outside [0, 1].
        """
        self._check_mutable()
        texture_id = self._resolve_texture(albedo, texture)
        type_index = add_metal_material(texture_id, fuzz)
        return self._register(
            MaterialType.METAL, type_index, {"albedo": albedo, "fuzz": fuzz, "texture": texture_id}
        )

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Add a dielectric (glass/water) material.

        Raises:
            ValueError: If the index of refraction is not positive.
        """
        self._check_mutable()
        type_index = add_dielectric_material(ior)
        return self._register(MaterialType.DIELECTRIC, type_index, {"ior": ior})

    def add_diffuse_light_material(
        self,
        emission: tuple[float, float, float] | None = None,
        texture: int | None = None,
    ) -> int:
        """Add an emissive material. Emission may exceed 1 but not be negative."""
        self._check_mutable()
        texture_id = self._resolve_texture(emission, texture, validate_albedo=False)
        type_index = add_diffuse_light_material(texture_id)
        return self._register(
            MaterialType.DIFFUSE_LIGHT, type_index, {"emission": emission, "texture": texture_id}
        )

    def add_isotropic_material(
        self,
        albedo: tuple[float, float, float] | None = None,
        texture: int | None = None,
    ) -> int:
        """Add an isotropic phase function for use inside volumes."""
        self._check_mutable()
        texture_id = self._resolve_texture(albedo, texture)
        type_index = add_isotropic_material(texture_id)
        return self._register(
            MaterialType.ISOTROPIC, type_index, {"albedo": albedo, "texture": texture_id}
        )

    def add_background_material(
        self,
        top: tuple[float, float, float],
        bottom: tuple[float, float, float] | None = None,
    ) -> int:
        """Add a gradient (or, without ``bottom``, constant) background."""
        self._check_mutable()
        type_index = add_background_material(top, bottom)
        return self._register(MaterialType.BACKGROUND, type_index, {"top": top, "bottom": bottom})

    def set_background(
        self,
        top: tuple[float, float, float] | None = None,
        bottom: tuple[float, float, float] | None = None,
        material_id: int | None = None,
    ) -> int:
        """Set the color of rays that escape the scene.

        Either pass colors (a new background material is created) or the id
        of an existing BACKGROUND material.

        Returns:
            The background material id.

        Raises:
            SceneBuildError: If ``material_id`` is not a background material.
        """
        self._check_mutable()
        if material_id is None:
            if top is None:
                raise ValueError("Either top colors or a material_id is required")
            material_id = self.add_background_material(top, bottom)
        elif self.get_material_type_python(material_id) != MaterialType.BACKGROUND:
            raise SceneBuildError(f"Material {material_id} is not a background material")
        self.background_id = material_id
        set_background_material(material_id)
        return material_id

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return len(self.materials)

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Get the material type for a given material ID, or None if unknown."""
        info = self.get_material_info(material_id)
        if info is None:
            return None
        return info.material_type

    # =========================================================================
    # Object Management
    # =========================================================================

    def add_object(
        self,
        instance: GeometryInstance,
        material_id: int,
        tint: tuple[float, float, float] = (1.0, 1.0, 1.0),
    ) -> int:
        """Add a render object.

        Args:
            instance: The geometry to render.
            material_id: Unified material ID applied to every shape of the
                instance.
            tint: RGB multiplier of the material's emission and attenuation.

        Returns:
            The index of the object.

        Raises:
            ValueError: If a tint component is negative.
        """
        self._check_mutable()
        for i, component in enumerate(tint):
            if component < 0.0:
                raise ValueError(f"Tint component {i} = {component} is negative")
        self.objects.append(ObjectInfo(instance, material_id, tuple(float(c) for c in tint)))
        return len(self.objects) - 1

    def add_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        material_id: int,
        transforms=(),
        tint: tuple[float, float, float] = (1.0, 1.0, 1.0),
    ) -> int:
        """Add a sphere. Raises SceneBuildError for a non-positive radius."""
        instance = GeometryInstance(SphereShape(tuple(center), radius), transforms)
        return self.add_object(instance, material_id, tint)

    def add_moving_sphere(
        self,
        center0: tuple[float, float, float],
        center1: tuple[float, float, float],
        radius: float,
        material_id: int,
        time0: float = 0.0,
        time1: float = 1.0,
        tint: tuple[float, float, float] = (1.0, 1.0, 1.0),
    ) -> int:
        """Add a sphere moving linearly from center0 at time0 to center1 at time1."""
        instance = GeometryInstance(
            SphereShape((0.0, 0.0, 0.0), radius),
            [Move(tuple(center0), tuple(center1), time0, time1)],
        )
        return self.add_object(instance, material_id, tint)

    def add_quad(
        self,
        q: tuple[float, float, float],
        u: tuple[float, float, float],
        v: tuple[float, float, float],
        material_id: int,
        transforms=(),
        tint: tuple[float, float, float] = (1.0, 1.0, 1.0),
    ) -> int:
        """Add a parallelogram with corner q and edges u and v."""
        instance = GeometryInstance(QuadShape(tuple(q), tuple(u), tuple(v)), transforms)
        return self.add_object(instance, material_id, tint)

    def add_box(
        self,
        a: tuple[float, float, float],
        b: tuple[float, float, float],
        material_id: int,
        transforms=(),
        tint: tuple[float, float, float] = (1.0, 1.0, 1.0),
    ) -> int:
        """Add the box spanned by opposite corners a and b as one object."""
        instance = GeometryInstance(box_shapes(a, b), transforms)
        return self.add_object(instance, material_id, tint)

    def add_constant_medium(self, boundary: GeometryInstance, density: float, material_id: int) -> int:
        """Add a constant-density medium filling a closed boundary.

        Args:
            boundary: Closed geometry enclosing the medium.
            density: Scattering events per unit distance; must be positive.
            material_id: An ISOTROPIC material.

        Returns:
            The index of the volume.

        Raises:
            SceneBuildError: If the density is not positive.
        """
        self._check_mutable()
        if not density > 0.0:
            raise SceneBuildError(f"Volume density must be positive, got {density}")
        self.volumes.append(VolumeInfo(boundary, float(density), material_id))
        return len(self.volumes) - 1

    # =========================================================================
    # Build
    # =========================================================================

    def _check_surface_material(self, material_id: int) -> None:
        material_type = self.get_material_type_python(material_id)
        if material_type is None:
            raise SceneBuildError(f"Unknown material id: {material_id}")
        if material_type == MaterialType.BACKGROUND:
            raise SceneBuildError(
                f"Material {material_id} is a background material and cannot be used on a surface"
            )

    def build(self) -> "Scene":
        """Validate, upload geometry, build the BVH and freeze the scene.

        Returns:
            The scene itself.

        Raises:
            SceneBuildError: If an object or volume references an invalid
                material.
            RuntimeError: If the scene is already built or a capacity is
                exceeded.
        """
        self._check_mutable()

        for obj in self.objects:
            self._check_surface_material(obj.material_id)
        for volume in self.volumes:
            if self.get_material_type_python(volume.material_id) != MaterialType.ISOTROPIC:
                raise SceneBuildError(
                    f"Volume material {volume.material_id} must be an isotropic material"
                )

        # A failed earlier build may have left partial uploads
        self._clear_geometry_tables()
        box_min = np.zeros((len(self.objects), 3))
        box_max = np.zeros((len(self.objects), 3))
        for i, obj in enumerate(self.objects):
            instance_id = upload_instance(obj.instance)
            add_object(instance_id, obj.material_id, obj.tint)
            box = obj.instance.bounding_box()
            box_min[i] = box.minimum
            box_max[i] = box.maximum

        for volume in self.volumes:
            instance_id = upload_instance(volume.boundary)
            add_volume(instance_id, volume.density, volume.material_id)

        self._bvh = build_bvh(box_min, box_max)
        upload_bvh(self._bvh)
        self._built = True

        logger.info(
            "Built scene: %d objects, %d volumes, %d materials, %d BVH nodes (depth %d)",
            len(self.objects),
            len(self.volumes),
            len(self.materials),
            self._bvh.node_count,
            self._bvh.depth(),
        )
        return self

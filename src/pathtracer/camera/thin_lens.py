"""Thin-lens camera model with depth of field and a shutter window.

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

The image plane is placed at the focus distance, so points at that distance
stay sharp regardless of aperture. Each generated ray starts at a random
point on a lens disk of radius ``aperture / 2`` and carries a random time in
``[time0, time1)`` for motion blur.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.camera.thin_lens import Camera, setup_camera, get_ray
    >>>
    >>> camera = Camera(
    ...     lookfrom=(13.0, 2.0, 3.0),
    ...     lookat=(0.0, 0.0, 0.0),
    ...     vfov=20.0,
    ...     aspect_ratio=16.0 / 9.0,
    ...     aperture=0.1,
    ...     focus_dist=10.0,
    ... )
    >>> setup_camera(camera)
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import Ray, make_ray, vec3
from src.pathtracer.core.sampling import random_float, random_in_unit_disk
from src.pathtracer.errors import ConfigurationError

# =============================================================================
# Camera Configuration
# =============================================================================


@dataclass(frozen=True)
class Camera:
    """Configuration for a thin-lens perspective camera.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at in world space (x, y, z).
        vup: Up direction vector for camera orientation.
        vfov: Vertical field of view in degrees.
        aspect_ratio: Width divided by height of the output image.
        aperture: Lens diameter. 0 gives a pinhole camera (no defocus blur).
        focus_dist: Distance to the plane of perfect focus. ``None`` uses
            the distance from lookfrom to lookat.
        time0: Shutter open time.
        time1: Shutter close time.
    """

    lookfrom: tuple[float, float, float] = (0.0, 0.0, 0.0)
    lookat: tuple[float, float, float] = (0.0, 0.0, -1.0)
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 90.0
    aspect_ratio: float = 16.0 / 9.0
    aperture: float = 0.0
    focus_dist: float | None = None
    time0: float = 0.0
    time1: float = 1.0

    @property
    def lens_radius(self) -> float:
        return self.aperture / 2.0

    def resolved_focus_dist(self) -> float:
        if self.focus_dist is not None:
            return float(self.focus_dist)
        return float(np.linalg.norm(np.subtract(self.lookfrom, self.lookat)))

    def validate(self) -> None:
        """Check the camera parameters.

        Raises:
            ConfigurationError: If the view basis is degenerate or any
                parameter is out of range.
        """
        if not 0.0 < self.vfov < 180.0:
            raise ConfigurationError(f"Vertical field of view must be in (0, 180), got {self.vfov}")
        if not self.aspect_ratio > 0.0:
            raise ConfigurationError(f"Aspect ratio must be positive, got {self.aspect_ratio}")
        if self.aperture < 0.0:
            raise ConfigurationError(f"Aperture must be non-negative, got {self.aperture}")
        if self.time1 < self.time0:
            raise ConfigurationError(
                f"Shutter window is reversed: time0={self.time0}, time1={self.time1}"
            )
        view = np.subtract(self.lookfrom, self.lookat).astype(np.float64)
        if np.linalg.norm(view) < 1e-12:
            raise ConfigurationError("lookfrom and lookat must differ")
        if np.linalg.norm(np.cross(self.vup, view)) < 1e-12:
            raise ConfigurationError("vup must not be parallel to the view direction")
        if not self.resolved_focus_dist() > 0.0:
            raise ConfigurationError(f"Focus distance must be positive, got {self.focus_dist}")


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())
_lens_radius = ti.field(dtype=ti.f32, shape=())
_time0 = ti.field(dtype=ti.f32, shape=())
_time1 = ti.field(dtype=ti.f32, shape=())


def setup_camera(camera: Camera) -> None:
    """Validate a camera and write its derived state to the camera fields.

    Args:
        camera: Camera configuration.

    Raises:
        ConfigurationError: If the camera is invalid.
    """
    camera.validate()

    theta = math.radians(camera.vfov)
    h = math.tan(theta / 2.0)
    viewport_height = 2.0 * h
    viewport_width = camera.aspect_ratio * viewport_height
    focus_dist = camera.resolved_focus_dist()

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    w = lookfrom - lookat
    w = w / np.linalg.norm(w)
    u = np.cross(vup, w)
    u = u / np.linalg.norm(u)
    v = np.cross(w, u)

    horizontal = focus_dist * viewport_width * u
    vertical = focus_dist * viewport_height * v
    lower_left = lookfrom - horizontal / 2.0 - vertical / 2.0 - focus_dist * w

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()
    _lens_radius[None] = camera.lens_radius
    _time0[None] = camera.time0
    _time1[None] = camera.time1


# =============================================================================
# Ray Generation
# =============================================================================


@ti.func
def get_ray(s: ti.f32, t: ti.f32, stream: ti.i32) -> Ray:
    """Generate a camera ray through normalized image coordinates (s, t).

    - s = 0: left edge, s = 1: right edge
    - t = 0: bottom edge, t = 1: top edge

    Args:
        s: Horizontal coordinate in [0, 1].
        t: Vertical coordinate in [0, 1].
        stream: The random stream used for the lens and time samples.

    Returns:
        A Ray from a random lens point toward the focus plane, with a random
        time inside the shutter window.
    """
    rd = _lens_radius[None] * random_in_unit_disk(stream)
    offset = _camera_u[None] * rd.x + _camera_v[None] * rd.y
    origin = _camera_origin[None] + offset

    target = _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    direction = tm.normalize(target - origin)

    time = _time0[None] + random_float(stream) * (_time1[None] - _time0[None])
    return make_ray(origin, direction, time)


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Get current camera state for debugging."""

    def as_tuple(value) -> tuple[float, float, float]:
        return (float(value[0]), float(value[1]), float(value[2]))

    return {
        "origin": as_tuple(_camera_origin[None]),
        "u": as_tuple(_camera_u[None]),
        "v": as_tuple(_camera_v[None]),
        "horizontal": as_tuple(_viewport_horizontal[None]),
        "vertical": as_tuple(_viewport_vertical[None]),
        "lower_left": as_tuple(_lower_left_corner[None]),
    }

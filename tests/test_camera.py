"""Tests for the thin-lens camera.

Tests cover:
- Parameter validation
- Derived viewport state
- Ray generation for pinhole and thin-lens cameras
- Ray times within the shutter window
"""

import numpy as np
import pytest
import taichi as ti


def _rays(camera, s, t, n=1):
    """Generate n rays through (s, t); return (origins, directions, times)."""
    from src.pathtracer.camera.thin_lens import get_ray, setup_camera

    setup_camera(camera)
    origins = ti.Vector.field(3, dtype=ti.f32, shape=n)
    directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
    times = ti.field(dtype=ti.f32, shape=n)

    @ti.kernel
    def ray_kernel(s_coord: ti.f32, t_coord: ti.f32):
        ti.loop_config(serialize=True)
        for i in range(n):
            ray = get_ray(s_coord, t_coord, 0)
            origins[i] = ray.origin
            directions[i] = ray.direction
            times[i] = ray.time

    ray_kernel(s, t)
    return origins.to_numpy(), directions.to_numpy(), times.to_numpy()


class TestCameraValidation:
    """Tests for Camera.validate."""

    @pytest.mark.parametrize(
        "kwargs,match",
        [
            ({"vfov": 0.0}, "field of view"),
            ({"vfov": 180.0}, "field of view"),
            ({"aspect_ratio": 0.0}, "Aspect"),
            ({"aperture": -0.5}, "Aperture"),
            ({"time0": 1.0, "time1": 0.5}, "reversed"),
            ({"lookat": (0.0, 0.0, 0.0)}, "differ"),
            ({"vup": (0.0, 0.0, 2.0)}, "parallel"),
            ({"focus_dist": 0.0}, "Focus"),
        ],
    )
    def test_invalid_camera(self, kwargs, match):
        """Test degenerate or out-of-range parameters are rejected."""
        from src.pathtracer.camera.thin_lens import Camera
        from src.pathtracer.errors import ConfigurationError

        params = {"lookfrom": (0.0, 0.0, 0.0), "lookat": (0.0, 0.0, -1.0)}
        params.update(kwargs)
        with pytest.raises(ConfigurationError, match=match):
            Camera(**params).validate()

    def test_defaults_are_valid(self):
        """Test the default camera validates and focuses on lookat."""
        from src.pathtracer.camera.thin_lens import Camera

        camera = Camera(lookfrom=(0.0, 0.0, 4.0), lookat=(0.0, 0.0, 0.0))
        camera.validate()
        assert camera.resolved_focus_dist() == pytest.approx(4.0)
        assert camera.lens_radius == 0.0

    def test_setup_rejects_invalid_camera(self):
        """Test setup_camera validates before writing state."""
        from src.pathtracer.camera.thin_lens import Camera, setup_camera
        from src.pathtracer.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            setup_camera(Camera(vfov=-10.0))


class TestCameraState:
    """Tests for the viewport derived by setup_camera."""

    def test_viewport_geometry(self):
        """Test a 90 degree square camera at unit focus spans [-1, 1]."""
        from src.pathtracer.camera.thin_lens import Camera, get_camera_info, setup_camera

        setup_camera(Camera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0), vfov=90.0, aspect_ratio=1.0))
        info = get_camera_info()
        np.testing.assert_allclose(info["origin"], (0.0, 0.0, 0.0), atol=1e-6)
        np.testing.assert_allclose(info["u"], (1.0, 0.0, 0.0), atol=1e-6)
        np.testing.assert_allclose(info["v"], (0.0, 1.0, 0.0), atol=1e-6)
        np.testing.assert_allclose(info["horizontal"], (2.0, 0.0, 0.0), atol=1e-5)
        np.testing.assert_allclose(info["vertical"], (0.0, 2.0, 0.0), atol=1e-5)
        np.testing.assert_allclose(info["lower_left"], (-1.0, -1.0, -1.0), atol=1e-5)

    def test_viewport_scales_with_focus(self):
        """Test the viewport sits on the focus plane."""
        from src.pathtracer.camera.thin_lens import Camera, get_camera_info, setup_camera

        setup_camera(
            Camera(
                lookfrom=(0.0, 0.0, 0.0),
                lookat=(0.0, 0.0, -1.0),
                vfov=90.0,
                aspect_ratio=2.0,
                focus_dist=3.0,
            )
        )
        info = get_camera_info()
        np.testing.assert_allclose(info["horizontal"], (12.0, 0.0, 0.0), atol=1e-4)
        np.testing.assert_allclose(info["vertical"], (0.0, 6.0, 0.0), atol=1e-4)
        np.testing.assert_allclose(info["lower_left"], (-6.0, -3.0, -3.0), atol=1e-4)


class TestRayGeneration:
    """Tests for get_ray."""

    def test_center_ray_follows_view_direction(self):
        """Test a pinhole camera's center ray leaves lookfrom toward lookat."""
        from src.pathtracer.camera.thin_lens import Camera

        camera = Camera(lookfrom=(1.0, 2.0, 3.0), lookat=(1.0, 2.0, -7.0), vfov=40.0, aspect_ratio=1.0)
        origins, directions, _ = _rays(camera, 0.5, 0.5, n=8)
        np.testing.assert_allclose(origins, np.tile([1.0, 2.0, 3.0], (8, 1)), atol=1e-5)
        np.testing.assert_allclose(directions, np.tile([0.0, 0.0, -1.0], (8, 1)), atol=1e-5)

    def test_corner_rays(self):
        """Test (0, 0) is bottom-left and (1, 1) is top-right."""
        from src.pathtracer.camera.thin_lens import Camera

        camera = Camera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0), vfov=90.0, aspect_ratio=1.0)
        _, bottom_left, _ = _rays(camera, 0.0, 0.0)
        _, top_right, _ = _rays(camera, 1.0, 1.0)
        expected = np.array([-1.0, -1.0, -1.0]) / np.sqrt(3.0)
        np.testing.assert_allclose(bottom_left[0], expected, atol=1e-5)
        np.testing.assert_allclose(top_right[0], [-expected[0], -expected[1], expected[2]], atol=1e-5)

    def test_directions_are_unit_length(self):
        """Test generated directions are normalized."""
        from src.pathtracer.camera.thin_lens import Camera

        camera = Camera(lookfrom=(13.0, 2.0, 3.0), lookat=(0.0, 0.0, 0.0), vfov=20.0, aperture=0.4)
        _, directions, _ = _rays(camera, 0.2, 0.7, n=100)
        np.testing.assert_allclose(np.linalg.norm(directions, axis=1), 1.0, atol=1e-5)

    def test_lens_rays_converge_on_focus_plane(self):
        """Test rays from across the lens meet at the same focus-plane point."""
        from src.pathtracer.camera.thin_lens import Camera

        camera = Camera(
            lookfrom=(0.0, 0.0, 0.0),
            lookat=(0.0, 0.0, -1.0),
            vfov=60.0,
            aspect_ratio=1.0,
            aperture=1.0,
            focus_dist=5.0,
        )
        n = 200
        origins, directions, _ = _rays(camera, 0.5, 0.5, n=n)

        radii = np.linalg.norm(origins[:, :2], axis=1)
        assert np.all(radii <= 0.5 + 1e-5)
        np.testing.assert_allclose(origins[:, 2], 0.0, atol=1e-6)
        assert radii.std() > 0.05

        # Walk each ray to z = -5
        steps = -5.0 / directions[:, 2]
        points = origins + directions * steps[:, None]
        np.testing.assert_allclose(points, np.tile([0.0, 0.0, -5.0], (n, 1)), atol=1e-3)

    def test_times_within_shutter(self):
        """Test ray times are uniform in [time0, time1)."""
        from src.pathtracer.camera.thin_lens import Camera

        camera = Camera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0), time0=2.0, time1=3.0)
        _, _, times = _rays(camera, 0.5, 0.5, n=1000)
        assert np.all((times >= 2.0) & (times <= 3.0))
        assert abs(times.mean() - 2.5) < 0.05

    def test_closed_shutter_has_fixed_time(self):
        """Test equal shutter times give every ray that time."""
        from src.pathtracer.camera.thin_lens import Camera

        camera = Camera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0), time0=0.25, time1=0.25)
        _, _, times = _rays(camera, 0.5, 0.5, n=16)
        np.testing.assert_allclose(times, 0.25)

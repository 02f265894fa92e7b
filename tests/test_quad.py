"""Unit tests for quad intersection.

Tests cover:
- Front and back face hits
- Misses outside the parallelogram and parallel rays
- Planar (u, v) coordinates of the hit
- Host-side QuadShape and box construction
"""

import numpy as np
import pytest
import taichi as ti


class TestQuadIntersection:
    """Tests for ray-quad intersection."""

    def test_hit_front_face(self):
        """Test a ray hitting the side the normal points to."""
        from src.pathtracer.geometry.quad import Quad, hit_quad, vec3

        hit = ti.field(dtype=ti.i32, shape=())
        t_val = ti.field(dtype=ti.f32, shape=())
        normal = ti.field(dtype=ti.math.vec3, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            # Unit square in the z=0 plane, normal +z
            quad = Quad(Q=vec3(-1.0, -1.0, 0.0), u=vec3(2.0, 0.0, 0.0), v=vec3(0.0, 2.0, 0.0))
            record = hit_quad(vec3(0.0, 0.0, 3.0), vec3(0.0, 0.0, -1.0), quad, 0.001, 1000.0)
            hit[None] = record.hit
            t_val[None] = record.t
            normal[None] = record.normal
            front_face[None] = record.front_face

        test_kernel()
        assert hit[None] == 1
        assert abs(t_val[None] - 3.0) < 1e-5
        assert abs(normal[None][2] - 1.0) < 1e-5
        assert front_face[None] == 1

    def test_hit_back_face(self):
        """Test a ray from behind gets a flipped normal."""
        from src.pathtracer.geometry.quad import Quad, hit_quad, vec3

        normal = ti.field(dtype=ti.math.vec3, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            quad = Quad(Q=vec3(-1.0, -1.0, 0.0), u=vec3(2.0, 0.0, 0.0), v=vec3(0.0, 2.0, 0.0))
            record = hit_quad(vec3(0.0, 0.0, -3.0), vec3(0.0, 0.0, 1.0), quad, 0.001, 1000.0)
            normal[None] = record.normal
            front_face[None] = record.front_face

        test_kernel()
        assert abs(normal[None][2] + 1.0) < 1e-5
        assert front_face[None] == 0

    @pytest.mark.parametrize(
        "origin,direction",
        [
            ((2.0, 0.0, 3.0), (0.0, 0.0, -1.0)),  # outside the edges
            ((0.0, 0.0, 3.0), (1.0, 0.0, 0.0)),  # parallel to the plane
            ((0.0, 0.0, 3.0), (0.0, 0.0, 1.0)),  # pointing away
        ],
    )
    def test_miss(self, origin, direction):
        """Test rays that never reach the quad."""
        from src.pathtracer.geometry.quad import Quad, hit_quad, vec3

        hit = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel(ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32):
            quad = Quad(Q=vec3(-1.0, -1.0, 0.0), u=vec3(2.0, 0.0, 0.0), v=vec3(0.0, 2.0, 0.0))
            record = hit_quad(vec3(ox, oy, oz), vec3(dx, dy, dz), quad, 0.001, 1000.0)
            hit[None] = record.hit

        test_kernel(*origin, *direction)
        assert hit[None] == 0

    def test_uv_are_planar_coordinates(self):
        """Test (u, v) are the fractions along the two edges."""
        from src.pathtracer.geometry.quad import Quad, hit_quad, vec3

        uv = ti.Vector.field(2, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            quad = Quad(Q=vec3(0.0, 0.0, 0.0), u=vec3(4.0, 0.0, 0.0), v=vec3(0.0, 2.0, 0.0))
            record = hit_quad(vec3(1.0, 1.5, 1.0), vec3(0.0, 0.0, -1.0), quad, 0.001, 1000.0)
            uv[None] = ti.Vector([record.u, record.v])

        test_kernel()
        assert abs(uv[None][0] - 0.25) < 1e-5
        assert abs(uv[None][1] - 0.75) < 1e-5


class TestQuadShapes:
    """Tests for host-side quad shapes and boxes."""

    def test_degenerate_quad_rejected(self):
        """Test parallel edges raise a build error."""
        from src.pathtracer.errors import SceneBuildError
        from src.pathtracer.geometry.shapes import QuadShape

        with pytest.raises(SceneBuildError):
            QuadShape((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (2.0, 0.0, 0.0))

    def test_flat_quad_box_is_padded(self):
        """Test an axis-aligned quad gets a box with non-zero thickness."""
        from src.pathtracer.geometry.shapes import QuadShape

        box = QuadShape((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)).bounding_box()
        assert box.z.size > 0.0
        np.testing.assert_allclose(box.minimum[:2], [0.0, 0.0])
        np.testing.assert_allclose(box.maximum[:2], [1.0, 1.0])

    def test_box_shapes_outward_normals(self):
        """Test the six box faces have normals pointing away from the center."""
        from src.pathtracer.geometry.shapes import box_shapes

        faces = box_shapes((1.0, 2.0, 3.0), (0.0, 0.0, 0.0))
        assert len(faces) == 6
        center = np.array([0.5, 1.0, 1.5])
        for face in faces:
            normal = np.cross(face.u, face.v)
            face_center = np.asarray(face.q) + 0.5 * np.asarray(face.u) + 0.5 * np.asarray(face.v)
            assert np.dot(normal, face_center - center) > 0.0

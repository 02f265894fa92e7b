"""Unit tests for intervals and axis-aligned bounding boxes.

Tests cover:
- Interval predicates, union, intersection and expansion
- BoundingBox construction, union monotonicity and padding
- Host and kernel slab tests, including axis-parallel rays
- Culling monotonicity for nested boxes on random rays
"""

import math

import numpy as np
import pytest
import taichi as ti


class TestInterval:
    """Tests for the Interval value type."""

    def test_empty_and_universe(self):
        """Test the canonical empty and unbounded intervals."""
        from src.pathtracer.core.interval import Interval

        assert Interval.EMPTY.is_empty
        assert not Interval.UNIVERSE.is_empty
        assert Interval.UNIVERSE.contains(1e30)
        assert not Interval.EMPTY.contains(0.0)

    def test_contains_versus_surrounds(self):
        """Test contains includes endpoints while surrounds excludes them."""
        from src.pathtracer.core.interval import Interval

        interval = Interval(0.0, 1.0)
        assert interval.contains(0.0) and interval.contains(1.0)
        assert not interval.surrounds(0.0) and not interval.surrounds(1.0)
        assert interval.surrounds(0.5)

    def test_union_intersect_expand(self):
        """Test interval algebra."""
        from src.pathtracer.core.interval import Interval

        a = Interval(0.0, 2.0)
        b = Interval(1.0, 3.0)
        assert a.union(b) == Interval(0.0, 3.0)
        assert a.intersect(b) == Interval(1.0, 2.0)
        assert a.intersect(Interval(5.0, 6.0)).is_empty
        assert a.expand(1.0) == Interval(-0.5, 2.5)
        assert a.clamp(-4.0) == 0.0
        assert a.clamp(7.0) == 2.0


class TestBoundingBox:
    """Tests for host-side BoundingBox."""

    def test_from_points_any_order(self):
        """Test corner order does not matter."""
        from src.pathtracer.geometry.aabb import BoundingBox

        box = BoundingBox.from_points((1.0, -2.0, 3.0), (-1.0, 2.0, 0.0))
        np.testing.assert_allclose(box.minimum, [-1.0, -2.0, 0.0])
        np.testing.assert_allclose(box.maximum, [1.0, 2.0, 3.0])

    def test_union_contains_both(self):
        """Test the union of two boxes contains each of them."""
        from src.pathtracer.geometry.aabb import BoundingBox

        a = BoundingBox.from_points((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        b = BoundingBox.from_points((2.0, -1.0, 0.5), (3.0, 0.5, 4.0))
        union = a.union(b)
        assert union.contains_box(a)
        assert union.contains_box(b)

    def test_union_with_empty_is_identity(self):
        """Test the empty box is the identity of union."""
        from src.pathtracer.geometry.aabb import BoundingBox, union_all

        a = BoundingBox.from_points((0.0, 0.0, 0.0), (1.0, 2.0, 3.0))
        assert BoundingBox().union(a) == a
        assert union_all([]).is_empty

    def test_longest_axis(self):
        """Test the longest axis is found."""
        from src.pathtracer.geometry.aabb import BoundingBox

        box = BoundingBox.from_points((0.0, 0.0, 0.0), (1.0, 5.0, 2.0))
        assert box.longest_axis() == 1

    def test_padding_flat_box(self):
        """Test a flat box gains thickness only along the flat axis."""
        from src.pathtracer.geometry.aabb import BOX_PADDING, BoundingBox

        flat = BoundingBox.from_points((0.0, 0.0, 1.0), (2.0, 2.0, 1.0)).pad_to_minimums()
        assert flat.z.size == pytest.approx(BOX_PADDING)
        assert flat.x == BoundingBox.from_points((0.0, 0.0, 0.0), (2.0, 2.0, 0.0)).x

    def test_host_slab_test(self):
        """Test the host slab test for a hit, a miss and a parallel ray."""
        from src.pathtracer.geometry.aabb import BoundingBox

        box = BoundingBox.from_points((-1.0, -1.0, -1.0), (1.0, 1.0, 1.0))
        assert box.hit((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert not box.hit((3.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert not box.hit((0.0, 0.0, 5.0), (0.0, 0.0, 1.0))
        assert not box.hit((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), t_max=3.0)
        assert box.hit((0.5, 0.5, 5.0), (0.0, 0.0, -1.0), 0.0, math.inf)


class TestKernelSlabTest:
    """Tests for hit_aabb inside kernels."""

    def test_hit_aabb_cases(self):
        """Test hits, misses and a ray parallel to two slabs."""
        from src.pathtracer.geometry.aabb import hit_aabb, safe_inverse_direction, vec3

        results = ti.field(dtype=ti.i32, shape=4)

        @ti.kernel
        def test_kernel():
            lo = vec3(-1.0, -1.0, -1.0)
            hi = vec3(1.0, 1.0, 1.0)
            inv_down = safe_inverse_direction(vec3(0.0, 0.0, -1.0))
            # Straight through the center
            results[0] = hit_aabb(lo, hi, vec3(0.0, 0.0, 5.0), inv_down, 0.0, 1e10)
            # Parallel to x and y slabs but outside in x
            results[1] = hit_aabb(lo, hi, vec3(2.0, 0.0, 5.0), inv_down, 0.0, 1e10)
            # Window ends before the box
            results[2] = hit_aabb(lo, hi, vec3(0.0, 0.0, 5.0), inv_down, 0.0, 3.0)
            # Diagonal ray
            inv_diag = safe_inverse_direction(vec3(-1.0, -1.0, -1.0))
            results[3] = hit_aabb(lo, hi, vec3(4.0, 4.0, 4.0), inv_diag, 0.0, 1e10)

        test_kernel()
        assert results[0] == 1
        assert results[1] == 0
        assert results[2] == 0
        assert results[3] == 1


def _nested_boxes_and_rays(seed, n):
    """Random outer boxes, inner boxes strictly inside them, and rays.

    About a third of the direction components are exactly zero.
    """
    rng = np.random.default_rng(seed)
    a = rng.uniform(-2.0, 2.0, size=(n, 3))
    b = rng.uniform(-2.0, 2.0, size=(n, 3))
    outer_lo = np.minimum(a, b) - 0.05
    outer_hi = np.maximum(a, b) + 0.05
    extent = outer_hi - outer_lo
    f0 = rng.uniform(0.05, 0.5, size=(n, 3))
    f1 = rng.uniform(0.5, 0.95, size=(n, 3))
    inner_lo = outer_lo + f0 * extent
    inner_hi = outer_lo + f1 * extent

    origins = rng.uniform(-4.0, 4.0, size=(n, 3))
    targets = 0.5 * (inner_lo + inner_hi) + rng.normal(0.0, 0.5, size=(n, 3))
    directions = targets - origins
    directions[rng.random((n, 3)) < 0.3] = 0.0
    all_zero = ~directions.any(axis=1)
    directions[all_zero, 0] = 1.0

    arrays = (outer_lo, outer_hi, inner_lo, inner_hi, origins, directions)
    return tuple(np.ascontiguousarray(x, dtype=np.float32) for x in arrays)


class TestNestedBoxCulling:
    """Tests that a ray hitting a box also hits every box enclosing it."""

    def test_host_hit_is_monotone(self):
        """Test BoundingBox.hit never misses an outer box when the inner box is hit."""
        from src.pathtracer.geometry.aabb import BoundingBox

        outer_lo, outer_hi, inner_lo, inner_hi, origins, directions = _nested_boxes_and_rays(11, 2000)
        inner_hits = 0
        for i in range(len(origins)):
            outer = BoundingBox.from_points(outer_lo[i], outer_hi[i])
            inner = BoundingBox.from_points(inner_lo[i], inner_hi[i])
            if inner.hit(origins[i], directions[i]):
                inner_hits += 1
                assert outer.hit(origins[i], directions[i]), f"ray {i} hit the inner box only"
        assert inner_hits > 100

    def test_kernel_hit_is_monotone(self):
        """Test hit_aabb never misses an outer box when the inner box is hit."""
        from src.pathtracer.geometry.aabb import hit_aabb, safe_inverse_direction, vec3

        outer_lo, outer_hi, inner_lo, inner_hi, origins, directions = _nested_boxes_and_rays(12, 2000)
        n = len(origins)
        inner_hit = np.zeros(n, dtype=np.int32)
        outer_hit = np.zeros(n, dtype=np.int32)

        @ti.kernel
        def test_kernel(
            outer_lo: ti.types.ndarray(),
            outer_hi: ti.types.ndarray(),
            inner_lo: ti.types.ndarray(),
            inner_hi: ti.types.ndarray(),
            origins: ti.types.ndarray(),
            directions: ti.types.ndarray(),
            inner_hit: ti.types.ndarray(),
            outer_hit: ti.types.ndarray(),
        ):
            for i in range(origins.shape[0]):
                origin = vec3(origins[i, 0], origins[i, 1], origins[i, 2])
                inv_dir = safe_inverse_direction(vec3(directions[i, 0], directions[i, 1], directions[i, 2]))
                lo2 = vec3(outer_lo[i, 0], outer_lo[i, 1], outer_lo[i, 2])
                hi2 = vec3(outer_hi[i, 0], outer_hi[i, 1], outer_hi[i, 2])
                lo1 = vec3(inner_lo[i, 0], inner_lo[i, 1], inner_lo[i, 2])
                hi1 = vec3(inner_hi[i, 0], inner_hi[i, 1], inner_hi[i, 2])
                inner_hit[i] = hit_aabb(lo1, hi1, origin, inv_dir, 0.0, 1e10)
                outer_hit[i] = hit_aabb(lo2, hi2, origin, inv_dir, 0.0, 1e10)

        test_kernel(outer_lo, outer_hi, inner_lo, inner_hi, origins, directions, inner_hit, outer_hit)
        assert inner_hit.sum() > 100
        missed = np.flatnonzero((inner_hit == 1) & (outer_hit == 0))
        assert missed.size == 0, f"rays {missed[:10].tolist()} hit the inner box only"

    def test_axis_parallel_rays_included(self):
        """Test the generated rays include zero direction components that still hit."""
        from src.pathtracer.geometry.aabb import BoundingBox

        _, _, inner_lo, inner_hi, origins, directions = _nested_boxes_and_rays(11, 2000)
        parallel_hits = 0
        for i in range(len(origins)):
            if np.any(directions[i] == 0.0):
                inner = BoundingBox.from_points(inner_lo[i], inner_hi[i])
                parallel_hits += int(inner.hit(origins[i], directions[i]))
        assert parallel_hits > 0

"""Unit tests for per-stream random sampling.

Tests cover:
- Seeding: determinism, independence of streams, argument checking
- Ranges of the uniform and geometric samplers
"""

import numpy as np
import pytest
import taichi as ti


def _draw_floats(stream: int, n: int) -> np.ndarray:
    from src.pathtracer.core.sampling import random_float

    out = ti.field(dtype=ti.f32, shape=n)

    @ti.kernel
    def draw(s: ti.i32):
        ti.loop_config(serialize=True)
        for i in range(n):
            out[i] = random_float(s)

    draw(stream)
    return out.to_numpy()


class TestSeeding:
    """Tests for seed_streams."""

    def test_same_seed_same_sequence(self):
        """Test reseeding with the same integer replays the sequence."""
        from src.pathtracer.core.sampling import seed_streams

        seed_streams(7)
        first = _draw_floats(0, 64)
        seed_streams(7)
        second = _draw_floats(0, 64)
        np.testing.assert_array_equal(first, second)

    def test_different_seeds_differ(self):
        """Test different seeds produce different sequences."""
        from src.pathtracer.core.sampling import seed_streams

        seed_streams(1)
        first = _draw_floats(0, 64)
        seed_streams(2)
        second = _draw_floats(0, 64)
        assert not np.array_equal(first, second)

    def test_streams_are_independent(self):
        """Test two streams seeded together do not share a sequence."""
        from src.pathtracer.core.sampling import seed_streams

        states = seed_streams(3, count=2)
        assert states[0] != states[1]
        assert not np.array_equal(_draw_floats(0, 32), _draw_floats(1, 32))

    def test_generator_source(self):
        """Test a numpy Generator is accepted as the source."""
        from src.pathtracer.core.sampling import make_generator, seed_streams

        rng = np.random.default_rng(5)
        assert make_generator(rng) is rng
        states = seed_streams(rng, count=4)
        assert np.all(states[:4] != 0)

    @pytest.mark.parametrize("count", [0, 257])
    def test_invalid_count_raises(self, count):
        """Test stream counts outside [1, MAX_STREAMS] are rejected."""
        from src.pathtracer.core.sampling import seed_streams

        with pytest.raises(ValueError, match="Stream count"):
            seed_streams(1, count=count)


class TestSamplers:
    """Tests for sampler value ranges."""

    def test_random_float_range_and_mean(self):
        """Test uniform draws lie in [0, 1) with mean near one half."""
        values = _draw_floats(0, 4096)
        assert values.min() >= 0.0
        assert values.max() < 1.0
        assert abs(values.mean() - 0.5) < 0.03

    def test_geometric_samplers(self):
        """Test unit vectors, disk points and sphere points stay in bounds."""
        from src.pathtracer.core.sampling import (
            random_cosine_direction,
            random_in_unit_disk,
            random_in_unit_sphere,
            random_unit_vector,
        )

        n = 512
        unit_len = ti.field(dtype=ti.f32, shape=n)
        sphere_len = ti.field(dtype=ti.f32, shape=n)
        disk = ti.Vector.field(3, dtype=ti.f32, shape=n)
        cosine_z = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            ti.loop_config(serialize=True)
            for i in range(n):
                unit_len[i] = ti.math.length(random_unit_vector(0))
                sphere_len[i] = ti.math.length(random_in_unit_sphere(0))
                disk[i] = random_in_unit_disk(0)
                cosine_z[i] = random_cosine_direction(0).z

        test_kernel()
        np.testing.assert_allclose(unit_len.to_numpy(), 1.0, atol=1e-5)
        assert np.all(sphere_len.to_numpy() < 1.0)
        d = disk.to_numpy()
        assert np.all(d[:, 2] == 0.0)
        assert np.all(d[:, 0] ** 2 + d[:, 1] ** 2 < 1.0)
        assert np.all(cosine_z.to_numpy() >= 0.0)

"""Unit tests for textures.

Tests cover:
- Solid color lookup
- Checker pattern periodicity and cell flips
- Image lookups with (u, v) clamping and top-row orientation
- Perlin noise range and determinism per seed
- Registration errors
"""

import numpy as np
import pytest
import taichi as ti


def _evaluate(texture_id, points, uvs=None):
    """Evaluate a texture at a batch of world points and (u, v) pairs."""
    from src.pathtracer.textures.texture import evaluate_texture, vec3

    points = np.asarray(points, dtype=np.float32).reshape(-1, 3)
    n = points.shape[0]
    if uvs is None:
        uvs = np.zeros((n, 2), dtype=np.float32)
    uvs = np.asarray(uvs, dtype=np.float32).reshape(-1, 2)
    out = np.zeros((n, 3), dtype=np.float32)

    @ti.kernel
    def eval_kernel(
        tex: ti.i32,
        pts: ti.types.ndarray(),
        coords: ti.types.ndarray(),
        result: ti.types.ndarray(),
    ):
        for i in range(n):
            color = evaluate_texture(tex, coords[i, 0], coords[i, 1], vec3(pts[i, 0], pts[i, 1], pts[i, 2]))
            for k in ti.static(range(3)):
                result[i, k] = color[k]

    eval_kernel(texture_id, points, uvs, out)
    return out


class TestSolidAndChecker:
    """Tests for solid and checker textures."""

    def test_solid_color(self):
        """Test a solid texture returns its color everywhere."""
        from src.pathtracer.textures.texture import add_solid_texture

        tex = add_solid_texture((0.2, 0.4, 0.6))
        colors = _evaluate(tex, [[0.0, 0.0, 0.0], [100.0, -3.0, 7.5]])
        np.testing.assert_allclose(colors, [[0.2, 0.4, 0.6]] * 2, atol=1e-6)

    def test_checker_flips_and_repeats(self):
        """Test the pattern flips every cell and repeats every two cells."""
        from src.pathtracer.textures.texture import add_checker_texture, add_solid_texture

        even = add_solid_texture((1.0, 1.0, 1.0))
        odd = add_solid_texture((0.0, 0.0, 0.0))
        scale = 0.5
        checker = add_checker_texture(scale, even, odd)

        rng = np.random.default_rng(4)
        base = rng.uniform(-3.0, 3.0, size=(50, 3))
        shift = np.array([scale, 0.0, 0.0])

        # Nudge points away from cell borders
        cells = np.floor(base / scale)
        base = (cells + 0.5) * scale

        at_base = _evaluate(checker, base)
        one_cell = _evaluate(checker, base + shift)
        two_cells = _evaluate(checker, base + 2.0 * shift)

        np.testing.assert_allclose(at_base, two_cells)
        np.testing.assert_allclose(at_base + one_cell, np.ones_like(at_base))

    def test_checker_cell_parity_at_origin(self):
        """Test the cell containing the origin's positive octant is even."""
        from src.pathtracer.textures.texture import add_checker_texture, add_solid_texture

        even = add_solid_texture((0.9, 0.9, 0.9))
        odd = add_solid_texture((0.2, 0.3, 0.1))
        checker = add_checker_texture(1.0, even, odd)
        colors = _evaluate(checker, [[0.5, 0.5, 0.5], [-0.5, 0.5, 0.5], [-0.5, -0.5, 0.5]])
        np.testing.assert_allclose(colors[0], [0.9, 0.9, 0.9], atol=1e-6)
        np.testing.assert_allclose(colors[1], [0.2, 0.3, 0.1], atol=1e-6)
        np.testing.assert_allclose(colors[2], [0.9, 0.9, 0.9], atol=1e-6)

    def test_nested_checker_rejected(self):
        """Test a checker cannot use another checker as a cell texture."""
        from src.pathtracer.errors import SceneBuildError
        from src.pathtracer.textures.texture import add_checker_texture, add_solid_texture

        a = add_solid_texture((1.0, 1.0, 1.0))
        b = add_solid_texture((0.0, 0.0, 0.0))
        inner = add_checker_texture(1.0, a, b)
        with pytest.raises(SceneBuildError):
            add_checker_texture(2.0, inner, a)

    def test_invalid_arguments(self):
        """Test bad scales, unknown ids and negative colors."""
        from src.pathtracer.errors import SceneBuildError
        from src.pathtracer.textures.texture import add_checker_texture, add_solid_texture

        a = add_solid_texture((1.0, 1.0, 1.0))
        with pytest.raises(ValueError, match="scale"):
            add_checker_texture(0.0, a, a)
        with pytest.raises(SceneBuildError, match="Unknown texture"):
            add_checker_texture(1.0, a, 42)
        with pytest.raises(ValueError, match="negative"):
            add_solid_texture((0.5, -0.1, 0.0))


class TestImageTexture:
    """Tests for image textures."""

    def _two_by_two(self):
        # Top row red, green; bottom row blue, white
        return np.array(
            [
                [[255, 0, 0], [0, 255, 0]],
                [[0, 0, 255], [255, 255, 255]],
            ],
            dtype=np.uint8,
        )

    def test_lookup_orientation(self):
        """Test v = 1 is the top row and u = 0 the left column."""
        from src.pathtracer.textures.texture import add_image_texture

        tex = add_image_texture(self._two_by_two())
        colors = _evaluate(
            tex,
            np.zeros((4, 3)),
            [[0.25, 0.75], [0.75, 0.75], [0.25, 0.25], [0.75, 0.25]],
        )
        np.testing.assert_allclose(colors[0], [1.0, 0.0, 0.0], atol=1e-6)
        np.testing.assert_allclose(colors[1], [0.0, 1.0, 0.0], atol=1e-6)
        np.testing.assert_allclose(colors[2], [0.0, 0.0, 1.0], atol=1e-6)
        np.testing.assert_allclose(colors[3], [1.0, 1.0, 1.0], atol=1e-6)

    def test_coordinates_are_clamped(self):
        """Test out-of-range (u, v) use the nearest edge texel."""
        from src.pathtracer.textures.texture import add_image_texture

        tex = add_image_texture(self._two_by_two())
        colors = _evaluate(tex, np.zeros((3, 3)), [[-1.0, 2.0], [1.0, 1.0], [5.0, -3.0]])
        np.testing.assert_allclose(colors[0], [1.0, 0.0, 0.0], atol=1e-6)
        np.testing.assert_allclose(colors[1], [0.0, 1.0, 0.0], atol=1e-6)
        np.testing.assert_allclose(colors[2], [1.0, 1.0, 1.0], atol=1e-6)

    def test_load_from_file(self, tmp_path):
        """Test an image decoded from a PNG file."""
        from PIL import Image

        from src.pathtracer.textures.texture import add_image_texture_from_file

        path = tmp_path / "swatch.png"
        Image.fromarray(self._two_by_two()).save(path)
        tex = add_image_texture_from_file(path)
        colors = _evaluate(tex, np.zeros((1, 3)), [[0.75, 0.25]])
        np.testing.assert_allclose(colors[0], [1.0, 1.0, 1.0], atol=1e-6)

    def test_invalid_pixels_rejected(self):
        """Test wrong shapes and out-of-range float pixels."""
        from src.pathtracer.errors import SceneBuildError
        from src.pathtracer.textures.image import normalize_pixels

        with pytest.raises(SceneBuildError):
            normalize_pixels(np.zeros((4, 4)))
        with pytest.raises(SceneBuildError):
            normalize_pixels(np.full((2, 2, 3), 2.0))
        rgba = normalize_pixels(np.zeros((2, 2, 4), dtype=np.uint8))
        assert rgba.shape == (2, 2, 3)


class TestNoiseTexture:
    """Tests for Perlin noise textures."""

    def test_marble_values_in_unit_range(self):
        """Test the marble pattern stays in [0, 1] and is grey."""
        from src.pathtracer.textures.texture import add_noise_texture

        tex = add_noise_texture(4.0, seed=11)
        points = np.random.default_rng(0).uniform(-5.0, 5.0, size=(300, 3))
        colors = _evaluate(tex, points)
        assert colors.min() >= 0.0
        assert colors.max() <= 1.0 + 1e-6
        np.testing.assert_allclose(colors[:, 0], colors[:, 1])
        assert colors[:, 0].std() > 0.05

    def test_same_seed_same_pattern(self):
        """Test two generators with the same seed agree."""
        from src.pathtracer.textures.texture import add_noise_texture

        a = add_noise_texture(1.0, seed=3, marble=False)
        b = add_noise_texture(1.0, seed=3, marble=False)
        c = add_noise_texture(1.0, seed=4, marble=False)
        points = np.random.default_rng(1).uniform(-2.0, 2.0, size=(64, 3))
        np.testing.assert_allclose(_evaluate(a, points), _evaluate(b, points))
        assert not np.allclose(_evaluate(a, points), _evaluate(c, points))

    def test_tables_are_permutations(self):
        """Test the generated permutation tables cover every index once."""
        from src.pathtracer.textures.perlin import POINT_COUNT, generate_tables

        gradients, perm_x, perm_y, perm_z = generate_tables(5)
        assert gradients.shape == (POINT_COUNT, 3)
        np.testing.assert_allclose(np.linalg.norm(gradients, axis=1), 1.0, atol=1e-5)
        for perm in (perm_x, perm_y, perm_z):
            assert sorted(perm.tolist()) == list(range(POINT_COUNT))

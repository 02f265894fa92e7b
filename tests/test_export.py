"""Tests for image export.

Tests cover:
- Float to uint8 conversion with clamping
- PNG export from arrays and render results
"""

import numpy as np
import pytest


class TestImageToUint8:
    """Tests for image_to_uint8."""

    def test_clamps_and_scales(self):
        """Test values are clamped to [0, 1] before scaling."""
        from src.pathtracer.preview.export import image_to_uint8

        image = np.array([[[0.0, 0.5, 1.0], [-0.3, 2.0, np.nan]]], dtype=np.float32)
        out = image_to_uint8(image)
        assert out.dtype == np.uint8
        assert out.shape == (1, 2, 3)
        np.testing.assert_array_equal(out, [[[0, 127, 255], [0, 255, 0]]])

    @pytest.mark.parametrize("shape", [(4, 4), (4, 4, 4), (3,)])
    def test_bad_shape_rejected(self, shape):
        """Test non-RGB arrays raise ValueError."""
        from src.pathtracer.preview.export import image_to_uint8

        with pytest.raises(ValueError, match="H, W, 3"):
            image_to_uint8(np.zeros(shape))


class TestSavePng:
    """Tests for save_png."""

    def test_array_round_trip(self, tmp_path):
        """Test a saved array loads back with the same pixels."""
        from PIL import Image

        from src.pathtracer.preview.export import image_to_uint8, save_png

        image = np.random.default_rng(0).uniform(0.0, 1.0, size=(5, 7, 3))
        path = tmp_path / "out.png"
        save_png(image, str(path))

        loaded = np.asarray(Image.open(path).convert("RGB"))
        assert loaded.shape == (5, 7, 3)
        np.testing.assert_array_equal(loaded, image_to_uint8(image))

    def test_render_result_writes_encoded_image(self, tmp_path):
        """Test a RenderResult is saved from its gamma-encoded image."""
        from PIL import Image

        from src.pathtracer.core.renderer import RenderResult, gamma_encode
        from src.pathtracer.preview.export import save_png

        linear = np.full((2, 3, 3), 0.25, dtype=np.float32)
        result = RenderResult(linear=linear, image=gamma_encode(linear), elapsed=0.0, samples_per_pixel=1, workers=1)
        path = tmp_path / "result.png"
        save_png(result, str(path))

        loaded = np.asarray(Image.open(path).convert("RGB"))
        # sqrt(0.25) = 0.5
        assert np.all(loaded == 127)

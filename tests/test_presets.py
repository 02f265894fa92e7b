"""Smoke tests for the demonstration scenes.

Each preset must build and render a tiny image with finite values.
"""

import numpy as np
import pytest


def _render_tiny(scene, camera, spp=1, max_depth=3):
    from src.pathtracer.core.renderer import RenderConfig, render_parallel

    config = RenderConfig(width=8, samples_per_pixel=spp, max_depth=max_depth, camera=camera)
    return render_parallel(scene, config, rng=0, workers=2)


class TestCornell:
    """Tests for the Cornell box scenes."""

    def test_cornell_box(self):
        """Test the Cornell box has walls, light, blocks and a square camera."""
        from src.pathtracer.scene.presets import cornell_box

        scene, camera = cornell_box()
        assert scene.is_built
        assert len(scene.objects) == 8
        assert scene.background_id is None
        assert camera.aspect_ratio == 1.0

        result = _render_tiny(scene, camera, spp=4)
        assert result.image.shape == (8, 8, 3)
        assert np.all(np.isfinite(result.linear))
        assert result.linear.max() > 0.0

    def test_cornell_smoke(self):
        """Test the smoke variant holds two volumes."""
        from src.pathtracer.scene.presets import cornell_smoke

        scene, camera = cornell_smoke()
        assert len(scene.volumes) == 2
        assert len(scene.objects) == 6
        assert np.all(np.isfinite(_render_tiny(scene, camera).linear))


class TestRandomScenes:
    """Tests for the seeded preset layouts."""

    def test_bouncing_spheres_seeded(self):
        """Test the same seed gives the same layout."""
        from src.pathtracer.scene.presets import bouncing_spheres

        scene, camera = bouncing_spheres(seed=3)
        centers = [obj.instance.bounding_box().minimum.tolist() for obj in scene.objects]
        assert scene.background_id is not None
        assert camera.aperture > 0.0

        scene.clear()
        again, _ = bouncing_spheres(seed=3)
        assert [obj.instance.bounding_box().minimum.tolist() for obj in again.objects] == centers
        assert np.all(np.isfinite(_render_tiny(again, camera).linear))

    @pytest.mark.slow
    def test_final_scene(self):
        """Test the feature showcase builds and renders."""
        from src.pathtracer.scene.presets import final_scene

        scene, camera = final_scene(seed=1)
        assert len(scene.volumes) == 2
        assert len(scene.objects) > 1000
        assert np.all(np.isfinite(_render_tiny(scene, camera).linear))

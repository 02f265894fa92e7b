"""Pytest configuration for path tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene data and reseed the random streams around each test.

    This ensures tests are isolated from each other.
    """
    # Import here so Taichi is initialized before any field is created
    from src.pathtracer.core.sampling import seed_streams
    from src.pathtracer.geometry.bvh import clear_bvh
    from src.pathtracer.geometry.instance import clear_instances
    from src.pathtracer.geometry.shapes import clear_shapes
    from src.pathtracer.materials.registry import clear_materials
    from src.pathtracer.scene.intersection import clear_objects
    from src.pathtracer.scene.volume import clear_volumes
    from src.pathtracer.textures.texture import clear_textures

    def _clear_all():
        clear_objects()
        clear_volumes()
        clear_bvh()
        clear_instances()
        clear_shapes()
        clear_materials()
        clear_textures()

    _clear_all()
    seed_streams(42)

    yield

    _clear_all()

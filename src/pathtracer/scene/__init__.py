"""Scene module for scene construction and ray-scene queries.

Components:
    manager: The Scene builder (textures, materials, objects, volumes, build)
    intersection: Render object table, BVH traversal and linear scan
    volume: Constant-density participating media
    presets: Demonstration scenes returning (scene, camera)

Scene data lives in Taichi fields, so import these modules after
``ti.init()``.
"""

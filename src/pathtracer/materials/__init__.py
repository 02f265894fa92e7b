"""Materials module for light scattering.

Components:
    lambertian: Ideal diffuse reflection
    metal: Specular reflection with optional fuzz
    dielectric: Glass-like refraction with Schlick reflectance
    diffuse_light: Emissive surfaces
    isotropic: Phase function for participating media
    background: Sky gradient or constant color for escaped rays
    registry: Unified material ids and type dispatch tables

Albedo and emission come from textures (see ``textures``). Every module
here declares Taichi fields, so import them after ``ti.init()``.
"""

"""Quad (parallelogram) primitive for walls, lights and box faces.

A quad is defined by a corner point Q and two edge vectors u and v. The
intersection test finds where the ray meets the quad's plane and then checks
that the hit point's planar coordinates (alpha, beta) both lie in [0, 1].
The planar coordinates double as the texture coordinates of the hit.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.geometry.quad import Quad, hit_quad
    >>> # Floor quad at y=0, spanning x=[0,1] and z=[0,1]
    >>> quad = Quad(
    ...     Q=ti.math.vec3(0, 0, 0),
    ...     u=ti.math.vec3(1, 0, 0),
    ...     v=ti.math.vec3(0, 0, 1)
    ... )
    >>> # Use hit_quad within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from .sphere import HitRecord

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class Quad:
    """A quad (parallelogram) defined by a corner point and two edge vectors.

    The quad represents the parallelogram with vertices at:
        Q, Q+u, Q+v, Q+u+v

    Attributes:
        Q: The corner point of the quad (vec3).
        u: Edge vector from Q to adjacent corner (vec3).
        v: Edge vector from Q to other adjacent corner (vec3).
    """

    Q: vec3
    u: vec3
    v: vec3


@ti.func
def _compute_quad_frame(quad: Quad):
    """Compute the quad's plane normal and basis vectors for intersection.

    The intersection point P can be expressed as:
        P = Q + alpha * u + beta * v

    and alpha, beta are recovered by dotting P - Q with the helper vectors
    w_u = (v x n) / (n . n) and w_v = (n x u) / (n . n), where n = u x v.

    Args:
        quad: The quad to compute frame for.

    Returns:
        Tuple of (normal, d, w_u, w_v) where:
        - normal: Unit normal vector of the quad plane
        - d: Plane constant (distance from origin along normal)
        - w_u: Helper vector for computing alpha coordinate
        - w_v: Helper vector for computing beta coordinate
    """
    n = tm.cross(quad.u, quad.v)
    n_dot_n = tm.dot(n, n)

    normal = vec3(0.0, 0.0, 0.0)
    w_u = vec3(0.0, 0.0, 0.0)
    w_v = vec3(0.0, 0.0, 0.0)

    # Degenerate quads (u parallel to v) keep a zero frame and never hit
    if n_dot_n > 1e-20:
        normal = n / ti.sqrt(n_dot_n)
        w_u = tm.cross(quad.v, n) / n_dot_n
        w_v = tm.cross(n, quad.u) / n_dot_n

    d = tm.dot(normal, quad.Q)
    return normal, d, w_u, w_v


@ti.func
def hit_quad(
    ray_origin: vec3,
    ray_direction: vec3,
    quad: Quad,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-quad intersection.

    Uses parametric plane intersection followed by bounds checking:
    1. Compute where ray hits the plane containing the quad
    2. Express hit point in quad's local coordinates (alpha, beta)
    3. Check if 0 <= alpha <= 1 and 0 <= beta <= 1

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be normalized).
        quad: The quad to test intersection against.
        t_min: Minimum t value to consider a valid hit (exclusive).
        t_max: Maximum t value to consider a valid hit (exclusive).

    Returns:
        A HitRecord containing intersection information, with (u, v) set to
        the planar coordinates (alpha, beta) of the hit.
    """
    normal, d, w_u, w_v = _compute_quad_frame(quad)
    denom = tm.dot(normal, ray_direction)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    tex_u = 0.0
    tex_v = 0.0

    # Ray parallel to the plane never hits
    if ti.abs(denom) > 1e-8:
        t = (d - tm.dot(normal, ray_origin)) / denom

        if t > t_min and t < t_max:
            hit_point = ray_origin + t * ray_direction

            p_minus_q = hit_point - quad.Q
            alpha = tm.dot(w_u, p_minus_q)
            beta = tm.dot(w_v, p_minus_q)

            if alpha >= 0.0 and alpha <= 1.0 and beta >= 0.0 and beta <= 1.0:
                did_hit = 1
                hit_t = t
                tex_u = alpha
                tex_v = beta

                if denom > 0.0:
                    # Ray and normal point the same way: back face
                    is_front_face = 0
                    hit_normal = -normal
                else:
                    is_front_face = 1
                    hit_normal = normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        u=tex_u,
        v=tex_v,
    )


@ti.func
def quad_normal(quad: Quad) -> vec3:
    """Compute the unit normal of a quad (right-hand rule on u x v)."""
    return tm.normalize(tm.cross(quad.u, quad.v))

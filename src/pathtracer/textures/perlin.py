"""Perlin gradient noise and turbulence.

Each noise generator is a table of 256 random unit gradient vectors plus
three random permutations of 0..255, generated on the host from a seed with
NumPy. Lattice corners are hashed by XOR-ing the permutation entries of their
integer coordinates, and the eight corner contributions are blended with
Hermite smoothing.
"""

import numpy as np
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

POINT_COUNT = 256

# Maximum number of distinct noise generators
MAX_NOISE_GENERATORS = 16

# Octaves summed by turbulence
TURBULENCE_DEPTH = 7

perlin_gradients = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_NOISE_GENERATORS, POINT_COUNT))
perlin_perm_x = ti.field(dtype=ti.i32, shape=(MAX_NOISE_GENERATORS, POINT_COUNT))
perlin_perm_y = ti.field(dtype=ti.i32, shape=(MAX_NOISE_GENERATORS, POINT_COUNT))
perlin_perm_z = ti.field(dtype=ti.i32, shape=(MAX_NOISE_GENERATORS, POINT_COUNT))
num_noise_generators = ti.field(dtype=ti.i32, shape=())


def generate_tables(seed) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Generate gradient and permutation tables for one noise generator.

    Args:
        seed: Anything accepted by ``numpy.random.default_rng``.

    Returns:
        Tuple (gradients (256, 3) float32, perm_x, perm_y, perm_z (256,) int32).
    """
    rng = np.random.default_rng(seed)
    gradients = rng.uniform(-1.0, 1.0, size=(POINT_COUNT, 3))
    lengths = np.linalg.norm(gradients, axis=1)
    # Redraw the (vanishingly rare) near-zero vectors before normalizing
    while np.any(lengths < 1e-6):
        bad = lengths < 1e-6
        gradients[bad] = rng.uniform(-1.0, 1.0, size=(int(bad.sum()), 3))
        lengths = np.linalg.norm(gradients, axis=1)
    gradients = (gradients / lengths[:, None]).astype(np.float32)

    perms = [rng.permutation(POINT_COUNT).astype(np.int32) for _ in range(3)]
    return gradients, perms[0], perms[1], perms[2]


@ti.kernel
def _upload_tables(
    slot: ti.i32,
    gradients: ti.types.ndarray(),
    perm_x: ti.types.ndarray(),
    perm_y: ti.types.ndarray(),
    perm_z: ti.types.ndarray(),
):
    for i in range(POINT_COUNT):
        perlin_gradients[slot, i] = vec3(gradients[i, 0], gradients[i, 1], gradients[i, 2])
        perlin_perm_x[slot, i] = perm_x[i]
        perlin_perm_y[slot, i] = perm_y[i]
        perlin_perm_z[slot, i] = perm_z[i]


def clear_noise_generators() -> None:
    num_noise_generators[None] = 0


def add_noise_generator(seed) -> int:
    """Create a noise generator from a seed and upload its tables.

    Returns:
        The generator slot index.

    Raises:
        RuntimeError: If the maximum number of generators is exceeded.
    """
    slot = num_noise_generators[None]
    if slot >= MAX_NOISE_GENERATORS:
        raise RuntimeError(f"Maximum number of noise generators ({MAX_NOISE_GENERATORS}) exceeded")
    gradients, perm_x, perm_y, perm_z = generate_tables(seed)
    _upload_tables(slot, gradients, perm_x, perm_y, perm_z)
    num_noise_generators[None] = slot + 1
    return slot


@ti.func
def perlin_noise(slot: ti.i32, p: vec3) -> ti.f32:
    """Gradient noise at point p, roughly in [-1, 1]."""
    fx = ti.floor(p.x)
    fy = ti.floor(p.y)
    fz = ti.floor(p.z)
    u = p.x - fx
    v = p.y - fy
    w = p.z - fz
    i = ti.cast(fx, ti.i32)
    j = ti.cast(fy, ti.i32)
    k = ti.cast(fz, ti.i32)

    # Hermite smoothing
    uu = u * u * (3.0 - 2.0 * u)
    vv = v * v * (3.0 - 2.0 * v)
    ww = w * w * (3.0 - 2.0 * w)

    accum = 0.0
    for di in ti.static(range(2)):
        for dj in ti.static(range(2)):
            for dk in ti.static(range(2)):
                idx = (
                    perlin_perm_x[slot, (i + di) & 255]
                    ^ perlin_perm_y[slot, (j + dj) & 255]
                    ^ perlin_perm_z[slot, (k + dk) & 255]
                )
                weight = vec3(u - di, v - dj, w - dk)
                blend_i = di * uu + (1 - di) * (1.0 - uu)
                blend_j = dj * vv + (1 - dj) * (1.0 - vv)
                blend_k = dk * ww + (1 - dk) * (1.0 - ww)
                accum += blend_i * blend_j * blend_k * tm.dot(perlin_gradients[slot, idx], weight)
    return accum


@ti.func
def turbulence(slot: ti.i32, p: vec3) -> ti.f32:
    """Sum of TURBULENCE_DEPTH noise octaves with halving weights, made positive."""
    accum = 0.0
    temp_p = p
    weight = 1.0
    for _ in ti.static(range(TURBULENCE_DEPTH)):
        accum += weight * perlin_noise(slot, temp_p)
        weight *= 0.5
        temp_p *= 2.0
    return ti.abs(accum)

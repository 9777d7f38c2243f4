"""Vector helpers, tolerance comparisons and the seeded random engine."""

from __future__ import annotations

import math

import numpy as np

from voxtrace.primitives import EPSILON

TWO_PI = 2.0 * math.pi
SQRT_OF_ONE_THIRD = math.sqrt(1.0 / 3.0)

_MASK32 = 0xFFFFFFFF


def util_hash(a: int) -> int:
    """Integer hash over 32-bit unsigned arithmetic."""
    a &= _MASK32
    a = ((a + 0x7ED55D16) + (a << 12)) & _MASK32
    a = ((a ^ 0xC761C23C) ^ (a >> 19)) & _MASK32
    a = ((a + 0x165667B1) + (a << 5)) & _MASK32
    a = ((a + 0xD3A2646C) ^ (a << 9)) & _MASK32
    a = ((a + 0xFD7046C5) + (a << 3)) & _MASK32
    a = ((a ^ 0xB55A4F09) ^ (a >> 16)) & _MASK32
    return a


class MinStdRand:
    """Minimal standard linear congruential generator (multiplier 48271)."""

    MULTIPLIER = 48271
    MODULUS = 2**31 - 1

    def __init__(self, seed: int = 1) -> None:
        state = (seed & _MASK32) % self.MODULUS
        self.state = state if state else 1

    def next(self) -> int:
        """Advance the generator and return the new raw value."""
        self.state = (self.state * self.MULTIPLIER) % self.MODULUS
        return self.state

    def uniform(self) -> float:
        """Return a float in [0, 1)."""
        return (self.next() - 1) / (self.MODULUS - 1)

    def __iter__(self):
        return self

    def __next__(self) -> int:
        return self.next()


def make_seeded_random_engine(iteration: int, index: int, depth: int) -> MinStdRand:
    """Engine seeded from the iteration, ray index and bounce depth."""
    key = (0x80000000 | (depth << 22) | iteration) & _MASK32
    return MinStdRand(util_hash(key) ^ util_hash(index))


def is_equal(x: float, y: float) -> bool:
    return abs(x - y) < EPSILON


def is_less_than(x: float, y: float) -> bool:
    return x < y - EPSILON


def is_more_than(x: float, y: float) -> bool:
    return x > y + EPSILON


def clamp(value, low, high):
    if value < low:
        return low
    if value > high:
        return high
    return value


def normalize(vector) -> np.ndarray:
    v = np.asarray(vector, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return v / np.linalg.norm(v)


def reflect_ray(incident, normal) -> np.ndarray:
    """Reflection as the renderer defines it: n - 2 (i . n) n."""
    n = np.asarray(normal, dtype=float)
    i = np.asarray(incident, dtype=float)
    return n - 2.0 * float(np.dot(i, n)) * n


def transform_direction(direction, matrix) -> np.ndarray:
    d = np.append(np.asarray(direction, dtype=float), 0.0)
    return (np.asarray(matrix, dtype=float) @ d)[:3]


def transform_position(position, matrix) -> np.ndarray:
    p = np.append(np.asarray(position, dtype=float), 1.0)
    return (np.asarray(matrix, dtype=float) @ p)[:3]


def transform_normal(normal, matrix) -> np.ndarray:
    upper = np.asarray(matrix, dtype=float)[:3, :3]
    return np.linalg.inv(upper).T @ np.asarray(normal, dtype=float)


def scaling(factors) -> np.ndarray:
    """4x4 scale matrix."""
    sx, sy, sz = (float(f) for f in factors)
    return np.diag([sx, sy, sz, 1.0])


def translation(offset) -> np.ndarray:
    """4x4 translation matrix."""
    m = np.identity(4)
    m[:3, 3] = np.asarray(offset, dtype=float)
    return m


def rotation(angle_degrees: float, axis) -> np.ndarray:
    """4x4 rotation by an angle in degrees about an axis (right-handed)."""
    a = normalize(axis)
    theta = math.radians(angle_degrees)
    c, s = math.cos(theta), math.sin(theta)
    x, y, z = a
    cross = np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])
    m = np.identity(4)
    m[:3, :3] = c * np.identity(3) + s * cross + (1.0 - c) * np.outer(a, a)
    return m


def random_direction_in_hemisphere(normal, rng: MinStdRand) -> np.ndarray:
    """Cosine-weighted direction in the hemisphere around the normal."""
    n = np.asarray(normal, dtype=float)
    up = math.sqrt(rng.uniform())
    over = math.sqrt(1.0 - up * up)
    around = rng.uniform() * TWO_PI

    if abs(n[0]) < SQRT_OF_ONE_THIRD:
        not_normal = np.array([1.0, 0.0, 0.0])
    elif abs(n[1]) < SQRT_OF_ONE_THIRD:
        not_normal = np.array([0.0, 1.0, 0.0])
    else:
        not_normal = np.array([0.0, 0.0, 1.0])

    perpendicular1 = normalize(np.cross(n, not_normal))
    perpendicular2 = normalize(np.cross(n, perpendicular1))
    return (
        up * n
        + math.cos(around) * over * perpendicular1
        + math.sin(around) * over * perpendicular2
    )


def coat_scattering(normal, ray_dir, rng: MinStdRand) -> np.ndarray:
    """Half the time reflect off the surface, otherwise scatter diffusely."""
    if rng.uniform() < 0.5:
        return reflect_ray(ray_dir, normal)
    return random_direction_in_hemisphere(normal, rng)


def metal_scattering(normal, ray_dir, rng: MinStdRand) -> np.ndarray:
    """Phong-lobe perturbation of the ideal mirror reflection."""
    n = np.asarray(normal, dtype=float)
    d = np.asarray(ray_dir, dtype=float)

    # Two draws are consumed without being used, keeping the random stream aligned.
    rng.uniform()
    rng.uniform()

    phi = TWO_PI * rng.uniform()
    r2 = rng.uniform()
    phong_exponent = 30.0
    cos_theta = (1.0 - r2) ** (1.0 / (phong_exponent + 1.0))
    sin_theta = math.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))

    w = normalize(d - n * 2.0 * float(np.dot(n, d)))
    helper = np.array([0.0, 1.0, 0.0]) if abs(w[0]) > 0.1 else np.array([1.0, 0.0, 0.0])
    u = normalize(np.cross(helper, w))
    v = np.cross(w, u)
    return u * math.cos(phi) * sin_theta + v * math.sin(phi) * sin_theta + w * cos_theta
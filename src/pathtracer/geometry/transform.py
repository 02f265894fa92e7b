"""Object-to-world transforms: translation, rotation, scaling and motion.

Transforms are plain host-side dataclasses. A list of transforms is composed
in order (the first entry is applied first) into a ``ComposedTransform``,
which maps an object-space point ``p`` at time ``t`` to::

    world = linear @ p + offset + sum_k(motion_delta[k] * fraction_k(t))

where ``fraction_k(t) = clamp((t - t0_k) / max(t1_k - t0_k, eps), 0, 1)`` is
the normalized progress of the k-th Move through its time window. Linear
transforms applied after a Move also act on its displacement, so the motion
terms are carried through the rest of the stack.
"""

import math
from dataclasses import dataclass, field

import numpy as np

from src.pathtracer.errors import SceneBuildError

# Smallest time window a Move may span before it acts as a step
MOVE_TIME_EPSILON = 1e-6

# Determinant magnitude below which a linear part counts as singular
SINGULAR_DETERMINANT = 1e-12


def _as_vector(value, name: str) -> np.ndarray:
    vector = np.asarray(value, dtype=np.float64).reshape(-1)
    if vector.shape != (3,):
        raise SceneBuildError(f"{name} must have 3 components, got {value!r}")
    return vector


@dataclass(frozen=True)
class Translate:
    """Translate by a constant offset."""

    offset: tuple[float, float, float]


@dataclass(frozen=True)
class Rotate:
    """Rotate about an axis through the origin.

    Attributes:
        axis: Rotation axis; need not be unit length.
        degrees: Counter-clockwise angle (right-hand rule) in degrees.
    """

    axis: tuple[float, float, float]
    degrees: float

    def matrix(self) -> np.ndarray:
        """Return the 3x3 rotation matrix (Rodrigues' formula)."""
        axis = _as_vector(self.axis, "Rotation axis")
        norm = np.linalg.norm(axis)
        if norm < 1e-12:
            raise SceneBuildError("Rotation axis must be non-zero")
        x, y, z = axis / norm
        theta = math.radians(self.degrees)
        c = math.cos(theta)
        s = math.sin(theta)
        k = np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])
        return np.eye(3) * c + s * k + (1.0 - c) * np.outer([x, y, z], [x, y, z])


@dataclass(frozen=True)
class Scale:
    """Scale independently along x, y and z."""

    factors: tuple[float, float, float]


@dataclass(frozen=True)
class Move:
    """Linear motion from ``start`` to ``end`` offsets over a time window.

    Before ``time0`` the offset is ``start``; after ``time1`` it is ``end``.
    """

    start: tuple[float, float, float]
    end: tuple[float, float, float]
    time0: float = 0.0
    time1: float = 1.0

    def __post_init__(self) -> None:
        if self.time1 < self.time0:
            raise SceneBuildError(
                f"Move time window is reversed: time0={self.time0}, time1={self.time1}"
            )


def move_fraction(time: float, time0: float, time1: float) -> float:
    """Normalized progress of a Move at ``time``, clamped to [0, 1]."""
    span = max(time1 - time0, MOVE_TIME_EPSILON)
    return min(max((time - time0) / span, 0.0), 1.0)


@dataclass
class ComposedTransform:
    """A composed affine transform with linear motion terms.

    Attributes:
        linear: 3x3 linear part.
        offset: Static translation.
        motion_deltas: Displacement of each Move, in world space.
        motion_windows: (time0, time1) of each Move.
    """

    linear: np.ndarray = field(default_factory=lambda: np.eye(3))
    offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    motion_deltas: list[np.ndarray] = field(default_factory=list)
    motion_windows: list[tuple[float, float]] = field(default_factory=list)

    @classmethod
    def compose(cls, transforms) -> "ComposedTransform":
        """Compose a sequence of transforms, first entry applied first.

        Raises:
            SceneBuildError: If the composed linear part is singular or a
                transform kind is unknown.
        """
        result = cls()
        for transform in transforms:
            result._apply(transform)

        det = float(np.linalg.det(result.linear))
        if not math.isfinite(det) or abs(det) < SINGULAR_DETERMINANT:
            raise SceneBuildError(
                f"Transform stack is not invertible (determinant {det:.3e})"
            )
        return result

    def _apply_linear(self, matrix: np.ndarray) -> None:
        self.linear = matrix @ self.linear
        self.offset = matrix @ self.offset
        self.motion_deltas = [matrix @ delta for delta in self.motion_deltas]

    def _apply(self, transform) -> None:
        if isinstance(transform, Translate):
            self.offset = self.offset + _as_vector(transform.offset, "Translation")
        elif isinstance(transform, Rotate):
            self._apply_linear(transform.matrix())
        elif isinstance(transform, Scale):
            self._apply_linear(np.diag(_as_vector(transform.factors, "Scale factors")))
        elif isinstance(transform, Move):
            start = _as_vector(transform.start, "Move start")
            end = _as_vector(transform.end, "Move end")
            self.offset = self.offset + start
            self.motion_deltas.append(end - start)
            self.motion_windows.append((float(transform.time0), float(transform.time1)))
        else:
            raise SceneBuildError(f"Unknown transform: {transform!r}")

    @property
    def inverse_linear(self) -> np.ndarray:
        return np.linalg.inv(self.linear)

    @property
    def normal_matrix(self) -> np.ndarray:
        """Inverse transpose of the linear part, used to map normals."""
        return self.inverse_linear.T

    def offset_at(self, time: float) -> np.ndarray:
        """Total translation (static plus motion) at ``time``."""
        total = self.offset.copy()
        for delta, (t0, t1) in zip(self.motion_deltas, self.motion_windows):
            total += delta * move_fraction(time, t0, t1)
        return total

    def motion_extent(self, time_window=None) -> tuple[np.ndarray, np.ndarray]:
        """Range of the motion displacement over a time window.

        Each Move's fraction is monotonic in time, so over ``[ta, tb]`` it
        spans ``[fraction(ta), fraction(tb)]``. The per-move ranges are summed
        component-wise (Minkowski sum of segments).

        Args:
            time_window: ``(ta, tb)`` or ``None`` for the whole motion.

        Returns:
            Tuple (low, high) of component-wise displacement bounds.
        """
        low = np.zeros(3)
        high = np.zeros(3)
        for delta, (t0, t1) in zip(self.motion_deltas, self.motion_windows):
            if time_window is None:
                f_lo, f_hi = 0.0, 1.0
            else:
                f_lo = move_fraction(time_window[0], t0, t1)
                f_hi = move_fraction(time_window[1], t0, t1)
            a = delta * f_lo
            b = delta * f_hi
            low += np.minimum(a, b)
            high += np.maximum(a, b)
        return low, high

    def to_world(self, point, time: float = 0.0) -> np.ndarray:
        return self.linear @ np.asarray(point, dtype=np.float64) + self.offset_at(time)

    def to_object(self, point, time: float = 0.0) -> np.ndarray:
        return self.inverse_linear @ (np.asarray(point, dtype=np.float64) - self.offset_at(time))

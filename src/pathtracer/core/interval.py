"""Scalar intervals used for ray parameter windows and box extents.

An interval is empty when ``min > max``. ``Interval.EMPTY`` and
``Interval.UNIVERSE`` are the canonical empty and unbounded intervals.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Interval:
    """A closed numeric range [min, max].

    Attributes:
        min: Lower bound.
        max: Upper bound. The interval is empty when max < min.
    """

    min: float = math.inf
    max: float = -math.inf

    @property
    def size(self) -> float:
        """Length of the interval, negative when empty."""
        return self.max - self.min

    @property
    def is_empty(self) -> bool:
        return self.min > self.max

    def contains(self, x: float) -> bool:
        """Check min <= x <= max."""
        return self.min <= x <= self.max

    def surrounds(self, x: float) -> bool:
        """Check min < x < max."""
        return self.min < x < self.max

    def clamp(self, x: float) -> float:
        return min(max(x, self.min), self.max)

    def expand(self, delta: float) -> "Interval":
        """Return the interval grown by delta / 2 on each side."""
        padding = delta / 2.0
        return Interval(self.min - padding, self.max + padding)

    def union(self, other: "Interval") -> "Interval":
        """Return the smallest interval enclosing both intervals."""
        return Interval(min(self.min, other.min), max(self.max, other.max))

    def intersect(self, other: "Interval") -> "Interval":
        """Return the overlap of both intervals (possibly empty)."""
        return Interval(max(self.min, other.min), min(self.max, other.max))


Interval.EMPTY = Interval(math.inf, -math.inf)
Interval.UNIVERSE = Interval(-math.inf, math.inf)

"""Abstract base class for geometric transforms."""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np


class Transform(ABC):
    """Invertible mapping from physical coordinates to physical coordinates."""

    @abstractmethod
    def apply_points(self, points: np.ndarray) -> np.ndarray:
        """Map an ``[N, 3]`` array of points."""
        ...

    @abstractmethod
    def inverse(self) -> Transform:
        """Transform undoing this one.

        Raises TransformNotInvertibleError when no inverse exists.
        """
        ...

    def apply(self, point) -> tuple[float, float, float]:
        """Map a single point."""
        out = self.apply_points(np.asarray(point, dtype=np.float64).reshape(1, 3))[0]
        return (float(out[0]), float(out[1]), float(out[2]))

"""Index <-> physical coordinate mapping for calibrated grids.

Index ``(i, j, k)`` maps to physical ``origin + index * spacing`` per axis.
Fractional indices are accepted in both directions since interpolation
lookups land between samples. Spacing must be non-zero; grids enforce
that at construction.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from volgrid.core.types import Vec3


@dataclass(frozen=True)
class CoordinateMapper:
    """Affine mapping parameterized by a grid's origin and spacing."""

    spacing: Vec3
    origin: Vec3

    def index_to_physical(self, i: float, j: float, k: float) -> Vec3:
        return (
            i * self.spacing[0] + self.origin[0],
            j * self.spacing[1] + self.origin[1],
            k * self.spacing[2] + self.origin[2],
        )

    def physical_to_index(self, x: float, y: float, z: float) -> Vec3:
        return (
            (x - self.origin[0]) / self.spacing[0],
            (y - self.origin[1]) / self.spacing[1],
            (z - self.origin[2]) / self.spacing[2],
        )

    def indices_to_physical(self, indices: np.ndarray) -> np.ndarray:
        """Vectorized :meth:`index_to_physical` for an ``[N, 3]`` array."""
        indices = np.asarray(indices, dtype=np.float64)
        return indices * np.asarray(self.spacing) + np.asarray(self.origin)

    def physical_to_indices(self, points: np.ndarray) -> np.ndarray:
        """Vectorized :meth:`physical_to_index` for an ``[N, 3]`` array."""
        points = np.asarray(points, dtype=np.float64)
        return (points - np.asarray(self.origin)) / np.asarray(self.spacing)

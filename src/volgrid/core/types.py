"""Core data types for volgrid."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from volgrid.core.slices import SliceArena

Vec3 = tuple[float, float, float]
Size3 = tuple[int, int, int]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned physical-space box."""

    min: Vec3
    max: Vec3

    @property
    def extent(self) -> Vec3:
        return tuple(hi - lo for lo, hi in zip(self.min, self.max))

    def contains(self, point, tol: float = 1e-9) -> bool:
        """Whether ``point`` lies inside the box (inclusive, with tolerance)."""
        return all(
            lo - tol <= p <= hi + tol for p, lo, hi in zip(point, self.min, self.max)
        )


@dataclass(frozen=True)
class GridState:
    """Geometry and storage of a grid, replaced as a single value.

    ``slices`` holds one entry per depth index. ``version`` increases every
    time a grid swaps in a new state.
    """

    size: Size3
    spacing: Vec3
    origin: Vec3
    slices: SliceArena
    version: int = 0


@dataclass(frozen=True)
class OutputGeometry:
    """Geometry derived for the output of a resampling call."""

    bounds: BoundingBox
    size: Size3
    spacing: Vec3
    origin: Vec3


@dataclass
class ResampleConfig:
    """Configuration for a resampling call."""

    num_threads: int | None = None  # None = process-wide thread count
    fill_value: float = 0.0  # value for lookups outside the source volume

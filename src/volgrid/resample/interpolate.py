"""Trilinear sampling of volumetric grids.

Out-of-domain policy: a fractional index within ``DOMAIN_TOLERANCE`` of the
valid range ``[0, n - 1]`` on every axis is clamped onto the edge, which
absorbs round-off from transform round trips. Anything further out, or
non-finite, yields ``fill_value`` (0.0 by default). Sampling never raises
for out-of-domain coordinates and has no side effects beyond the grid's
read notification.
"""

from __future__ import annotations

import math

import numpy as np
from scipy.ndimage import map_coordinates

from volgrid.core.grid import VolumetricGrid

DOMAIN_TOLERANCE = 1e-4


def sample_linear(
    volume: np.ndarray,
    coords: np.ndarray,
    fill_value: float = 0.0,
) -> np.ndarray:
    """Trilinear samples of a ``[Z, Y, X]`` array.

    Args:
        volume: Source samples, indexed ``[k, j, i]``.
        coords: Fractional indices, shape ``[3, N]``, rows ordered (k, j, i).
        fill_value: Value for coordinates outside the volume.

    Returns:
        Sample values [N], same dtype as ``volume``.
    """
    coords = np.asarray(coords, dtype=np.float64)
    upper = (np.asarray(volume.shape, dtype=np.float64) - 1.0).reshape(3, 1)

    finite = np.isfinite(coords)
    safe = np.where(finite, coords, 0.0)
    outside = ~finite.all(axis=0) | np.any(
        (safe < -DOMAIN_TOLERANCE) | (safe > upper + DOMAIN_TOLERANCE), axis=0
    )
    clipped = np.clip(safe, 0.0, upper)

    values = map_coordinates(volume, clipped, order=1, mode="nearest")
    values[outside] = fill_value
    return values


def _clamp_axis(x: float, n: int) -> float | None:
    if not math.isfinite(x) or x < -DOMAIN_TOLERANCE or x > n - 1 + DOMAIN_TOLERANCE:
        return None
    return min(max(x, 0.0), float(n - 1))


def _bilinear(data: np.ndarray, i: float, j: float) -> float:
    height, width = data.shape
    i0, j0 = int(math.floor(i)), int(math.floor(j))
    i1, j1 = min(i0 + 1, width - 1), min(j0 + 1, height - 1)
    di, dj = i - i0, j - j0
    top = data[j0, i0] * (1.0 - di) + data[j0, i1] * di
    bottom = data[j1, i0] * (1.0 - di) + data[j1, i1] * di
    return float(top * (1.0 - dj) + bottom * dj)


def interpolate_linear(
    grid: VolumetricGrid,
    k: float,
    i: float,
    j: float,
    fill_value: float = 0.0,
) -> float:
    """Trilinear sample of ``grid`` at fractional depth ``k`` and pixel ``(i, j)``."""
    width, height, depth = grid.size
    k = _clamp_axis(k, depth)
    i = _clamp_axis(i, width)
    j = _clamp_axis(j, height)
    if k is None or i is None or j is None:
        return fill_value

    k0 = int(math.floor(k))
    k1 = min(k0 + 1, depth - 1)
    dk = k - k0
    lower = _bilinear(grid.slice_at(k0).data, i, j)
    if dk == 0.0:
        return lower
    upper = _bilinear(grid.slice_at(k1).data, i, j)
    return lower * (1.0 - dk) + upper * dk

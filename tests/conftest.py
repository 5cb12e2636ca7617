"""Shared test fixtures: synthetic grids and observers."""

from __future__ import annotations

import numpy as np
import pytest

from volgrid.core.grid import VolumetricGrid


class RecordingObserver:
    """Observer that records every notification it receives."""

    def __init__(self):
        self.events: list[str] = []

    def before_read(self, grid):
        self.events.append("read")

    def after_write(self, grid):
        self.events.append("write")

    def reset(self):
        self.events.clear()


@pytest.fixture
def recorder() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def constant_grid() -> VolumetricGrid:
    """4x4x4 grid, unit spacing, filled with 5.0."""
    return VolumetricGrid.from_array(np.full((4, 4, 4), 5.0, dtype=np.float32))


@pytest.fixture
def ramp_grid() -> VolumetricGrid:
    """Anisotropic grid whose value is a linear function of physical position.

    Trilinear interpolation reproduces linear fields exactly, so resampled
    values can be checked against the analytic field.
    """
    spacing = (1.0, 2.0, 1.5)
    origin = (-2.0, 1.0, 0.5)
    depth, height, width = 5, 4, 6
    kk, jj, ii = np.mgrid[0:depth, 0:height, 0:width].astype(np.float64)
    x = ii * spacing[0] + origin[0]
    y = jj * spacing[1] + origin[1]
    z = kk * spacing[2] + origin[2]
    volume = _ramp_field(x, y, z)
    return VolumetricGrid.from_array(volume, spacing=spacing, origin=origin)


def _ramp_field(x, y, z):
    return 2.0 * x - 0.5 * y + 3.0 * z + 10.0


@pytest.fixture
def ramp_field():
    """The analytic field sampled by ``ramp_grid``."""
    return _ramp_field


@pytest.fixture
def sphere_grid() -> VolumetricGrid:
    """20^3 grid with a solid sphere of value 100 in the middle."""
    shape = (20, 20, 20)
    kk, jj, ii = np.mgrid[0:shape[0], 0:shape[1], 0:shape[2]]
    dist = np.sqrt((kk - 9.5) ** 2 + (jj - 9.5) ** 2 + (ii - 9.5) ** 2)
    volume = np.where(dist < 6, 100.0, 0.0).astype(np.float32)
    return VolumetricGrid.from_array(volume)

"""Calibrated 3-D grid stored as a stack of planar slices."""

from __future__ import annotations

import dataclasses
import logging
from typing import Protocol

import numpy as np

from volgrid.core.coords import CoordinateMapper
from volgrid.core.errors import GridStateError, InvalidGeometryError
from volgrid.core.slices import Slice, SliceArena
from volgrid.core.types import GridState, Size3, Vec3

logger = logging.getLogger("volgrid")


class GridObserver(Protocol):
    """Receives read/write notifications from a grid.

    Grid variants that keep a copy of the voxel data elsewhere (e.g. on an
    accelerator) register an observer to sync before reads and to mark
    their copy stale after writes. Callbacks may be invoked from worker
    threads.
    """

    def before_read(self, grid: VolumetricGrid) -> None: ...

    def after_write(self, grid: VolumetricGrid) -> None: ...


def _validate_geometry(size, spacing) -> None:
    for d, n in enumerate(size):
        if int(n) <= 0:
            raise InvalidGeometryError(
                f"Size values have to be greater than zero, got {tuple(size)} (axis {d})"
            )
    for d, s in enumerate(spacing):
        if not float(s) > 0:
            raise InvalidGeometryError(
                f"Spacing values have to be greater than zero, got {tuple(spacing)} (axis {d})"
            )


class VolumetricGrid:
    """A ``width x height x depth`` grid of float32 samples.

    Voxel ``(i, j, k)`` lives in slice ``k`` at pixel ``(i, j)``. Size,
    spacing, origin and slices form one :class:`GridState` that is swapped
    as a whole whenever geometry changes.
    """

    def __init__(
        self,
        width: int,
        height: int,
        depth: int,
        allocate: bool = True,
        spacing: Vec3 | None = None,
        origin: Vec3 | None = None,
    ):
        size = (int(width), int(height), int(depth))
        spacing = (1.0, 1.0, 1.0) if spacing is None else tuple(float(s) for s in spacing)
        origin = (0.0, 0.0, 0.0) if origin is None else tuple(float(o) for o in origin)
        _validate_geometry(size, spacing)

        self._observers: list[GridObserver] = []
        self._state = GridState(
            size=size, spacing=spacing, origin=origin, slices=SliceArena(size[2])
        )
        if allocate:
            self.allocate()

    # --- construction helpers ---

    @classmethod
    def from_array(
        cls,
        volume: np.ndarray,
        spacing: Vec3 | None = None,
        origin: Vec3 | None = None,
    ) -> VolumetricGrid:
        """Build a grid from a ``[Z, Y, X]`` array (copied to float32)."""
        volume = np.asarray(volume)
        if volume.ndim != 3:
            raise InvalidGeometryError(f"Expected a 3-D array, got shape {volume.shape}")
        depth, height, width = volume.shape
        grid = cls(width, height, depth, spacing=spacing, origin=origin)
        for k in range(depth):
            grid._state.slices[k].data[...] = volume[k]
        return grid

    @classmethod
    def copy_of(cls, other: VolumetricGrid, ensure_valid_values: bool = False) -> VolumetricGrid:
        """Deep copy of ``other``; observers are not carried over.

        With ``ensure_valid_values``, NaN and infinite samples become 0.
        """
        other.notify_before_read()
        state = other._state
        grid = cls.__new__(cls)
        grid._observers = []
        grid._state = GridState(
            size=state.size,
            spacing=state.spacing,
            origin=state.origin,
            slices=state.slices.deep_copy(),
        )
        if ensure_valid_values:
            grid.fill_invalid_values()
        return grid

    def clone(self) -> VolumetricGrid:
        return VolumetricGrid.copy_of(self)

    def allocate(self) -> None:
        """Materialize all slices, zero-filled, with the grid's x/y calibration."""
        arena = self._state.slices
        if not arena.is_empty:
            raise GridStateError("Grid is already allocated")
        width, height, depth = self._state.size
        for k in range(depth):
            arena[k] = Slice(
                width,
                height,
                spacing=self._state.spacing[:2],
                origin=self._state.origin[:2],
            )
        logger.debug("Allocated %d slices of %dx%d", depth, width, height)
        self.notify_after_write()

    # --- observers ---

    def add_observer(self, observer: GridObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: GridObserver) -> None:
        self._observers.remove(observer)

    def notify_before_read(self) -> None:
        for observer in self._observers:
            observer.before_read(self)

    def notify_after_write(self) -> None:
        for observer in self._observers:
            observer.after_write(self)

    # --- geometry ---

    @property
    def state(self) -> GridState:
        return self._state

    @property
    def size(self) -> Size3:
        return self._state.size

    @property
    def spacing(self) -> Vec3:
        return self._state.spacing

    @property
    def origin(self) -> Vec3:
        return self._state.origin

    @property
    def version(self) -> int:
        return self._state.version

    @property
    def width(self) -> int:
        return self._state.size[0]

    @property
    def height(self) -> int:
        return self._state.size[1]

    @property
    def depth(self) -> int:
        return self._state.size[2]

    @property
    def mapper(self) -> CoordinateMapper:
        return CoordinateMapper(spacing=self._state.spacing, origin=self._state.origin)

    def index_to_physical(self, i: float, j: float, k: float) -> Vec3:
        return self.mapper.index_to_physical(i, j, k)

    def physical_to_index(self, x: float, y: float, z: float) -> Vec3:
        return self.mapper.physical_to_index(x, y, z)

    def set_spacing(self, *spacing: float) -> None:
        spacing = tuple(float(s) for s in spacing)
        if len(spacing) != 3:
            raise InvalidGeometryError(f"Expected 3 spacing values, got {len(spacing)}")
        _validate_geometry(self._state.size, spacing)
        self._replace_state(spacing=spacing)
        for slc in self._state.slices.present():
            slc.set_spacing(spacing[0], spacing[1])
        self.notify_after_write()

    def set_origin(self, *origin: float) -> None:
        origin = tuple(float(o) for o in origin)
        if len(origin) != 3:
            raise InvalidGeometryError(f"Expected 3 origin values, got {len(origin)}")
        self._replace_state(origin=origin)
        for slc in self._state.slices.present():
            slc.set_origin(origin[0], origin[1])
        self.notify_after_write()

    def _replace_state(self, **changes) -> None:
        self._state = dataclasses.replace(
            self._state, version=self._state.version + 1, **changes
        )

    def commit_state(self, state: GridState) -> None:
        """Swap in a complete new state (size, spacing, origin, slices)."""
        if len(state.slices) != state.size[2]:
            raise InvalidGeometryError(
                f"State has {len(state.slices)} slices for depth {state.size[2]}"
            )
        self._state = dataclasses.replace(state, version=self._state.version + 1)
        self.notify_after_write()

    # --- slice access ---

    def _slice(self, k: int) -> Slice:
        if k < 0 or k >= self._state.size[2]:
            raise IndexError(f"Depth index {k} out of range [0, {self._state.size[2]})")
        slc = self._state.slices[k]
        if slc is None:
            raise GridStateError(f"Slice {k} is not allocated")
        return slc

    def slice_at(self, k: int) -> Slice:
        """Allocated slice at depth ``k``.

        Raises IndexError for an out-of-range ``k`` and GridStateError when
        the slice is not allocated.
        """
        self.notify_before_read()
        return self._slice(k)

    def get_sub_grid(self, k: int) -> Slice | None:
        """Slice at depth ``k``, or ``None`` when ``k`` is out of range."""
        self.notify_before_read()
        if k < 0 or k >= len(self._state.slices):
            return None
        return self._state.slices[k]

    def set_sub_grid(self, k: int, slc: Slice) -> None:
        """Replace the slice at depth ``k`` in a new state record.

        The slice's calibration is re-synced to the grid.
        """
        if (slc.width, slc.height) != self._state.size[:2]:
            raise InvalidGeometryError(
                f"Slice is {slc.width}x{slc.height}, grid planes are "
                f"{self._state.size[0]}x{self._state.size[1]}"
            )
        if k < 0 or k >= self._state.size[2]:
            raise IndexError(f"Depth index {k} out of range [0, {self._state.size[2]})")
        slc.set_spacing(*self._state.spacing[:2])
        slc.set_origin(*self._state.origin[:2])
        slices = SliceArena.from_slices(list(self._state.slices))
        slices[k] = slc
        self._replace_state(slices=slices)
        self.notify_after_write()

    def set_slice_data(self, k: int, values: np.ndarray) -> None:
        """Overwrite the samples of plane ``k`` with a ``[Y, X]`` array."""
        self._slice(k).data[...] = values
        self.notify_after_write()

    def get_buffer(self) -> list[Slice | None]:
        self.notify_before_read()
        return list(self._state.slices)

    def as_array(self) -> np.ndarray:
        """Stack all slices into a ``[Z, Y, X]`` float32 array (a copy)."""
        self.notify_before_read()
        return np.stack([self._slice(k).data for k in range(self.depth)])

    # --- voxel access ---

    def get_at_index(self, i: int, j: int, k: int) -> float:
        self.notify_before_read()
        return self._slice(k).get_pixel(i, j)

    def set_at_index(self, i: int, j: int, k: int, value: float) -> None:
        self._slice(k).put_pixel(i, j, value)
        self.notify_after_write()

    def add_at_index(self, i: int, j: int, k: int, value: float) -> None:
        self.notify_before_read()
        self.set_at_index(i, j, k, self.get_at_index(i, j, k) + value)
        self.notify_after_write()

    def multiply_at_index(self, i: int, j: int, k: int, value: float) -> None:
        self.notify_before_read()
        self.set_at_index(i, j, k, self.get_at_index(i, j, k) * value)
        self.notify_after_write()

    def get_value(self, idx) -> float:
        self.notify_before_read()
        return self.get_at_index(idx[0], idx[1], idx[2])

    def set_value(self, value: float, idx) -> None:
        self.set_at_index(idx[0], idx[1], idx[2], value)
        self.notify_after_write()

    # --- whole-grid helpers ---

    def fill_invalid_values(self, value: float = 0.0) -> None:
        """Replace NaN and infinite samples with ``value``."""
        for slc in self._state.slices.present():
            bad = ~np.isfinite(slc.data)
            if bad.any():
                slc.data[bad] = value
        self.notify_after_write()

    def value_range(self) -> tuple[float, float]:
        self.notify_before_read()
        present = list(self._state.slices.present())
        if not present:
            return (0.0, 0.0)
        return (
            float(min(s.data.min() for s in present)),
            float(max(s.data.max() for s in present)),
        )

    def __repr__(self) -> str:
        vmin, vmax = self.value_range()
        return (
            f"VolumetricGrid(size={self.size}, spacing={self.spacing}, "
            f"origin={self.origin}, range={vmin:g}:{vmax:g})"
        )

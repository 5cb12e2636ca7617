"""Planar slice storage for volumetric grids."""

from __future__ import annotations

from collections.abc import Iterator

import numpy as np

from volgrid.core.errors import InvalidGeometryError


class Slice:
    """One 2-D float32 plane with its own in-plane calibration.

    Pixels are stored as ``data[j, i]`` (rows along y, columns along x), so a
    slice of width ``w`` and height ``h`` has shape ``(h, w)``.
    """

    def __init__(
        self,
        width: int,
        height: int,
        data: np.ndarray | None = None,
        spacing: tuple[float, float] = (1.0, 1.0),
        origin: tuple[float, float] = (0.0, 0.0),
    ):
        if data is None:
            data = np.zeros((height, width), dtype=np.float32)
        elif data.shape != (height, width):
            raise InvalidGeometryError(
                f"Slice data shape {data.shape} does not match ({height}, {width})"
            )
        self.data = data
        self.spacing = (float(spacing[0]), float(spacing[1]))
        self.origin = (float(origin[0]), float(origin[1]))

    @classmethod
    def from_array(cls, data: np.ndarray, **kwargs) -> Slice:
        data = np.asarray(data, dtype=np.float32)
        height, width = data.shape
        return cls(width, height, data=data, **kwargs)

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def height(self) -> int:
        return self.data.shape[0]

    def get_pixel(self, i: int, j: int) -> float:
        return float(self.data[j, i])

    def put_pixel(self, i: int, j: int, value: float) -> None:
        self.data[j, i] = value

    def set_spacing(self, sx: float, sy: float) -> None:
        self.spacing = (float(sx), float(sy))

    def set_origin(self, ox: float, oy: float) -> None:
        self.origin = (float(ox), float(oy))

    def copy(self) -> Slice:
        return Slice(
            self.width,
            self.height,
            data=self.data.copy(),
            spacing=self.spacing,
            origin=self.origin,
        )

    def __repr__(self) -> str:
        return (
            f"Slice({self.width}x{self.height}, spacing={self.spacing}, "
            f"origin={self.origin})"
        )


class SliceArena:
    """Depth-indexed arena of optional slices.

    Entry ``k`` is the plane at depth index ``k``. An entry is ``None`` until
    its grid is allocated.
    """

    def __init__(self, depth: int):
        self._entries: list[Slice | None] = [None] * depth

    @classmethod
    def from_slices(cls, slices: list[Slice | None]) -> SliceArena:
        arena = cls(len(slices))
        arena._entries[:] = slices
        return arena

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Slice | None]:
        return iter(self._entries)

    def __getitem__(self, k: int) -> Slice | None:
        return self._entries[k]

    def __setitem__(self, k: int, value: Slice | None) -> None:
        self._entries[k] = value

    def present(self) -> Iterator[Slice]:
        """Iterate over the allocated entries only."""
        return (s for s in self._entries if s is not None)

    @property
    def is_allocated(self) -> bool:
        return all(s is not None for s in self._entries)

    @property
    def is_empty(self) -> bool:
        return all(s is None for s in self._entries)

    def deep_copy(self) -> SliceArena:
        return SliceArena.from_slices(
            [s.copy() if s is not None else None for s in self._entries]
        )

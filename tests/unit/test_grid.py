"""Unit tests for VolumetricGrid."""

from __future__ import annotations

import numpy as np
import pytest

from volgrid.core.errors import GridStateError, InvalidGeometryError
from volgrid.core.grid import VolumetricGrid
from volgrid.core.slices import Slice


class TestConstruction:
    def test_allocates_zero_slices(self):
        grid = VolumetricGrid(3, 4, 5)
        assert grid.size == (3, 4, 5)
        assert len(grid.get_buffer()) == 5
        assert all(s.data.shape == (4, 3) for s in grid.get_buffer())
        assert grid.value_range() == (0.0, 0.0)

    def test_default_calibration(self):
        grid = VolumetricGrid(2, 2, 2)
        assert grid.spacing == (1.0, 1.0, 1.0)
        assert grid.origin == (0.0, 0.0, 0.0)

    @pytest.mark.parametrize("size", [(0, 2, 2), (2, -1, 2), (2, 2, 0)])
    def test_rejects_non_positive_size(self, size):
        with pytest.raises(InvalidGeometryError, match="Size"):
            VolumetricGrid(*size)

    @pytest.mark.parametrize("spacing", [(0.0, 1.0, 1.0), (1.0, -2.0, 1.0)])
    def test_rejects_non_positive_spacing(self, spacing):
        with pytest.raises(InvalidGeometryError, match="Spacing"):
            VolumetricGrid(2, 2, 2, spacing=spacing)

    def test_lazy_allocation(self):
        grid = VolumetricGrid(2, 3, 4, allocate=False)
        assert grid.get_buffer() == [None] * 4
        with pytest.raises(GridStateError, match="not allocated"):
            grid.get_at_index(0, 0, 0)
        grid.allocate()
        assert grid.get_at_index(1, 2, 3) == 0.0

    def test_double_allocate_rejected(self):
        grid = VolumetricGrid(2, 2, 2)
        with pytest.raises(GridStateError, match="already allocated"):
            grid.allocate()

    def test_allocate_propagates_calibration(self):
        grid = VolumetricGrid(
            2, 2, 3, allocate=False, spacing=(0.5, 0.7, 2.0), origin=(1.0, 2.0, 3.0)
        )
        grid.allocate()
        for s in grid.get_buffer():
            assert s.spacing == (0.5, 0.7)
            assert s.origin == (1.0, 2.0)

    def test_from_array_layout(self):
        volume = np.arange(24, dtype=np.float32).reshape(2, 3, 4)  # Z, Y, X
        grid = VolumetricGrid.from_array(volume, spacing=(1.0, 2.0, 3.0))
        assert grid.size == (4, 3, 2)
        assert grid.get_at_index(3, 2, 1) == volume[1, 2, 3]
        np.testing.assert_array_equal(grid.as_array(), volume)

    def test_from_array_rejects_2d(self):
        with pytest.raises(InvalidGeometryError, match="3-D"):
            VolumetricGrid.from_array(np.zeros((3, 3)))


class TestVoxelAccess:
    def test_set_get(self):
        grid = VolumetricGrid(3, 3, 3)
        grid.set_at_index(1, 2, 0, 4.5)
        assert grid.get_at_index(1, 2, 0) == 4.5
        assert grid.get_sub_grid(0).get_pixel(1, 2) == 4.5

    def test_add_and_multiply(self):
        grid = VolumetricGrid(2, 2, 2)
        grid.set_at_index(1, 1, 1, 2.0)
        grid.add_at_index(1, 1, 1, 3.0)
        assert grid.get_at_index(1, 1, 1) == 5.0
        grid.multiply_at_index(1, 1, 1, 4.0)
        assert grid.get_at_index(1, 1, 1) == 20.0

    def test_generic_index_access(self):
        grid = VolumetricGrid(2, 2, 2)
        grid.set_value(7.0, (0, 1, 1))
        assert grid.get_value([0, 1, 1]) == 7.0

    def test_depth_out_of_range(self):
        grid = VolumetricGrid(2, 2, 2)
        with pytest.raises(IndexError):
            grid.get_at_index(0, 0, 2)
        with pytest.raises(IndexError):
            grid.set_at_index(0, 0, -1, 1.0)

    def test_plane_out_of_range(self):
        grid = VolumetricGrid(2, 2, 2)
        with pytest.raises(IndexError):
            grid.get_at_index(2, 0, 0)


class TestCalibration:
    def test_set_spacing_propagates_to_slices(self):
        grid = VolumetricGrid(2, 2, 3)
        grid.set_spacing(0.5, 0.25, 4.0)
        assert grid.spacing == (0.5, 0.25, 4.0)
        assert all(s.spacing == (0.5, 0.25) for s in grid.get_buffer())

    def test_set_origin_propagates_to_slices(self):
        grid = VolumetricGrid(2, 2, 3)
        grid.set_origin(-1.0, 2.0, 3.0)
        assert grid.origin == (-1.0, 2.0, 3.0)
        assert all(s.origin == (-1.0, 2.0) for s in grid.get_buffer())

    def test_set_spacing_on_lazy_grid(self):
        grid = VolumetricGrid(2, 2, 2, allocate=False)
        grid.set_spacing(2.0, 2.0, 2.0)
        grid.allocate()
        assert grid.get_sub_grid(1).spacing == (2.0, 2.0)

    def test_set_spacing_rejects_zero(self):
        grid = VolumetricGrid(2, 2, 2)
        with pytest.raises(InvalidGeometryError):
            grid.set_spacing(1.0, 0.0, 1.0)

    def test_set_spacing_needs_three_values(self):
        grid = VolumetricGrid(2, 2, 2)
        with pytest.raises(InvalidGeometryError, match="3 spacing"):
            grid.set_spacing(1.0, 1.0)

    def test_geometry_changes_bump_version(self):
        grid = VolumetricGrid(2, 2, 2)
        v0 = grid.version
        grid.set_spacing(2.0, 2.0, 2.0)
        grid.set_origin(1.0, 1.0, 1.0)
        assert grid.version == v0 + 2

    def test_index_physical_round_trip(self):
        grid = VolumetricGrid(4, 5, 6, spacing=(0.3, 1.7, 2.2), origin=(5.0, -1.0, 0.4))
        for idx in [(0, 0, 0), (3, 4, 5), (1.5, 0.5, 2.5)]:
            back = grid.physical_to_index(*grid.index_to_physical(*idx))
            assert back == pytest.approx(idx)


class TestSubGrids:
    def test_get_sub_grid_out_of_range_is_none(self):
        grid = VolumetricGrid(2, 2, 2)
        assert grid.get_sub_grid(2) is None
        assert grid.get_sub_grid(-1) is None

    def test_set_sub_grid_syncs_calibration(self):
        grid = VolumetricGrid(3, 2, 2, spacing=(0.5, 0.5, 1.0), origin=(1.0, 1.0, 0.0))
        plane = Slice.from_array(np.ones((2, 3)))
        grid.set_sub_grid(1, plane)
        assert grid.get_at_index(2, 1, 1) == 1.0
        assert plane.spacing == (0.5, 0.5)
        assert plane.origin == (1.0, 1.0)

    def test_set_sub_grid_rejects_wrong_shape(self):
        grid = VolumetricGrid(3, 2, 2)
        with pytest.raises(InvalidGeometryError, match="planes are 3x2"):
            grid.set_sub_grid(0, Slice(2, 3))

    def test_set_sub_grid_bumps_version(self):
        grid = VolumetricGrid(3, 2, 2)
        old = grid.state
        grid.set_sub_grid(1, Slice.from_array(np.ones((2, 3))))
        assert grid.version == old.version + 1
        assert grid.state is not old
        assert old.slices[1].get_pixel(0, 0) == 0.0
        assert grid.get_at_index(0, 0, 1) == 1.0

    def test_slice_at(self):
        grid = VolumetricGrid(2, 2, 3, allocate=False)
        with pytest.raises(GridStateError, match="not allocated"):
            grid.slice_at(0)
        grid.allocate()
        assert grid.slice_at(2).data.shape == (2, 2)
        with pytest.raises(IndexError):
            grid.slice_at(3)


class TestCopy:
    def test_deep_copy_is_independent(self):
        grid = VolumetricGrid(2, 2, 2, spacing=(1.0, 2.0, 3.0), origin=(4.0, 5.0, 6.0))
        grid.set_at_index(0, 0, 0, 1.0)
        copy = grid.clone()
        copy.set_at_index(0, 0, 0, 9.0)
        assert grid.get_at_index(0, 0, 0) == 1.0
        assert copy.size == grid.size
        assert copy.spacing == grid.spacing
        assert copy.origin == grid.origin
        assert copy.get_sub_grid(0) is not grid.get_sub_grid(0)

    def test_copy_ensure_valid_values(self):
        grid = VolumetricGrid(2, 2, 1)
        grid.set_at_index(0, 0, 0, float("nan"))
        grid.set_at_index(1, 0, 0, float("inf"))
        grid.set_at_index(1, 1, 0, 3.0)
        copy = VolumetricGrid.copy_of(grid, ensure_valid_values=True)
        assert copy.get_at_index(0, 0, 0) == 0.0
        assert copy.get_at_index(1, 0, 0) == 0.0
        assert copy.get_at_index(1, 1, 0) == 3.0
        assert np.isnan(grid.get_at_index(0, 0, 0))

    def test_copy_does_not_carry_observers(self, recorder):
        grid = VolumetricGrid(2, 2, 2)
        grid.add_observer(recorder)
        copy = grid.clone()
        recorder.reset()
        copy.set_at_index(0, 0, 0, 1.0)
        assert recorder.events == []

    def test_repr_shows_geometry_and_range(self):
        grid = VolumetricGrid(2, 2, 2)
        grid.set_at_index(1, 1, 1, 3.0)
        text = repr(grid)
        assert "size=(2, 2, 2)" in text
        assert "range=0:3" in text


class TestObservers:
    def test_read_notifies_before_read(self, recorder):
        grid = VolumetricGrid(2, 2, 2)
        grid.add_observer(recorder)
        grid.get_at_index(0, 0, 0)
        assert recorder.events == ["read"]

    def test_write_notifies_after_write(self, recorder):
        grid = VolumetricGrid(2, 2, 2)
        grid.add_observer(recorder)
        grid.set_at_index(0, 0, 0, 1.0)
        assert recorder.events == ["write"]

    def test_read_modify_write_order(self, recorder):
        grid = VolumetricGrid(2, 2, 2)
        grid.add_observer(recorder)
        grid.add_at_index(0, 0, 0, 1.0)
        assert recorder.events[0] == "read"
        assert recorder.events[-1] == "write"
        assert "write" in recorder.events[:-1]

    def test_calibration_change_notifies(self, recorder):
        grid = VolumetricGrid(2, 2, 2)
        grid.add_observer(recorder)
        grid.set_spacing(2.0, 2.0, 2.0)
        grid.set_origin(1.0, 1.0, 1.0)
        assert recorder.events == ["write", "write"]

    def test_remove_observer(self, recorder):
        grid = VolumetricGrid(2, 2, 2)
        grid.add_observer(recorder)
        grid.remove_observer(recorder)
        grid.get_at_index(0, 0, 0)
        assert recorder.events == []

    def test_commit_state_notifies_and_swaps(self, recorder):
        grid = VolumetricGrid(2, 2, 2)
        other = VolumetricGrid(3, 3, 3, spacing=(0.5, 0.5, 0.5))
        grid.add_observer(recorder)
        v0 = grid.version
        grid.commit_state(other.state)
        assert grid.size == (3, 3, 3)
        assert grid.spacing == (0.5, 0.5, 0.5)
        assert len(grid.get_buffer()) == 3
        assert grid.version == v0 + 1
        assert recorder.events[0] == "write"

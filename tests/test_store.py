"""Tests for rsrf.store slot arenas."""

import numpy as np
import pytest

from rsrf.errors import AllocationError, SlotError
from rsrf.geometry import GridGeometry
from rsrf.store import GENERATED_NAME, NO_NAME, SlotStore


@pytest.fixture
def geometry():
    return GridGeometry(3, 4, 5, 3, 4, 5, 6.0, 8.0, 10.0, 90.0, 90.0, 90.0)


class TestAllocation:

    def test_zero_initialised(self, geometry):
        store = SlotStore(geometry, 2, np.float32)
        assert store.data.shape == (2, 5, 4, 3)
        assert not store.data.any()

    def test_non_positive_capacity(self, geometry):
        with pytest.raises(AllocationError, match="positive"):
            SlotStore(geometry, 0, np.float32)

    def test_byte_ceiling(self, geometry):
        # 2 slots * 60 voxels * 4 bytes = 480 bytes
        SlotStore(geometry, 2, np.float32, max_bytes=480)
        with pytest.raises(AllocationError, match="limit"):
            SlotStore(geometry, 2, np.float32, max_bytes=479)

    def test_allocation_error_is_memory_error(self, geometry):
        with pytest.raises(MemoryError):
            SlotStore(geometry, -1, np.uint8)


class TestAddressing:

    def test_linear_index_matches_view(self, geometry):
        store = SlotStore(geometry, 3, np.float32)
        store.data[...] = np.arange(store.data.size).reshape(store.data.shape)
        x, y, z, slot = 2, 3, 4, 1
        expected = (x - 1) + (y - 1) * 3 + (z - 1) * 12 + slot * 60
        assert store.linear_index(x, y, z, slot) == expected
        assert store.get(slot, x, y, z) == store.view(slot)[z - 1, y - 1, x - 1]

    def test_set_writes_single_voxel(self, geometry):
        store = SlotStore(geometry, 1, np.float32)
        store.set(0, 1, 1, 1, 7.0)
        assert store.view(0)[0, 0, 0] == 7.0
        assert store.data.sum() == 7.0

    def test_point_outside_grid(self, geometry):
        store = SlotStore(geometry, 1, np.float32)
        with pytest.raises(IndexError):
            store.linear_index(4, 1, 1)

    @pytest.mark.parametrize("slot", [-1, 2, 10])
    def test_slot_out_of_range(self, geometry, slot):
        store = SlotStore(geometry, 2, np.float32)
        with pytest.raises(SlotError):
            store.view(slot)

    def test_slot_must_be_integer(self, geometry):
        store = SlotStore(geometry, 2, np.float32)
        with pytest.raises(SlotError, match="integer"):
            store.view(1.0)


class TestSlotOperations:

    def test_copy_is_independent(self, geometry):
        store = SlotStore(geometry, 2, np.float32)
        store.view(0)[...] = 1.5
        store.copy(0, 1)
        store.view(0)[...] = 0.0
        assert np.all(store.view(1) == 1.5)

    def test_copy_names_unnamed_destination(self, geometry):
        store = SlotStore(geometry, 2, np.float32)
        store.copy(0, 1)
        assert store.names[1] == GENERATED_NAME
        assert store.names[0] == NO_NAME

    def test_store_checks_shape(self, geometry):
        store = SlotStore(geometry, 1, np.float32)
        with pytest.raises(ValueError, match="do not fit"):
            store.store(0, np.zeros((3, 4, 5)))

    def test_generation_bumps_on_mutation(self, geometry):
        store = SlotStore(geometry, 2, np.float32)
        before = store.generation(1)
        store.copy(0, 1)
        store.clear(1)
        assert store.generation(1) == before + 2
        assert store.generation(0) == 0

    def test_rename_and_listing(self, geometry):
        store = SlotStore(geometry, 2, np.uint8, kind='mask')
        assert store.rename(1, "envelope") == NO_NAME
        assert store.listing() == [(0, NO_NAME), (1, "envelope")]

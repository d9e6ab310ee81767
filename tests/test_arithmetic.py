"""Tests for rsrf.arithmetic zone-restricted operations."""

import numpy as np
import pytest

from rsrf.errors import SlotError
from rsrf.zones import Zone, ZoneSelector


class TestZero:

    def test_inside(self, workspace, ramp):
        assert workspace.zero(1, "IN", mask=0) == 32
        data = workspace.map_view(1)
        assert not data[:2].any()
        np.testing.assert_array_equal(data[2:], ramp[2:])

    def test_total_ignores_mask(self, workspace):
        assert workspace.zero(1, Zone.TOTAL) == 64
        assert not workspace.map_view(1).any()

    def test_names_generated_slot(self, workspace):
        workspace.zero(2, "TOTAL")
        assert workspace.maps.names[2] == "COMPUTER GENERATED"


class TestClip:

    def test_counts_changed_voxels(self, workspace):
        assert workspace.clip(1, "TOTAL", 10.0, 60.0) == 9 + 4
        data = workspace.map_view(1)
        assert data.min() == 10.0
        assert data.max() == 60.0

    def test_zone_restricted(self, workspace):
        assert workspace.clip(1, "OUT", 40.0, 100.0, mask=0) == 7
        assert workspace.map_view(1).min() == 1.0

    def test_voxel_counted_per_violated_bound(self, workspace):
        # min above max: a low voxel is raised to 5 then lowered to 2
        workspace.zero(2, "TOTAL")
        assert workspace.clip(2, "TOTAL", 5.0, 2.0) == 128
        assert np.all(workspace.map_view(2) == 2.0)


class TestCombine:

    def test_add_inside(self, workspace, ramp):
        workspace.add(1, 0, "IN", mask=0)
        data = workspace.map_view(1)
        np.testing.assert_array_equal(data[:2], ramp[:2] + 1)
        np.testing.assert_array_equal(data[2:], ramp[2:])

    def test_subtract_total(self, workspace, ramp):
        assert workspace.subtract(1, 0, "TOTAL") == 64
        np.testing.assert_array_equal(workspace.map_view(1), ramp - 1)

    def test_blend(self, workspace, ramp):
        workspace.combine(1, 0, ZoneSelector.outside(0), 0.5)
        np.testing.assert_allclose(workspace.map_view(1)[2:], ramp[2:] + 0.5)

    def test_zone_complement(self, workspace, ramp):
        """Applying an operation inside then outside equals applying it to the total."""
        workspace.copy_map(1, 2)
        workspace.scale(1, "IN", 3.0, mask=0)
        workspace.scale(1, "OUT", 3.0, mask=0)
        workspace.scale(2, "TOTAL", 3.0)
        np.testing.assert_array_equal(workspace.map_view(1), workspace.map_view(2))

    def test_add_constant(self, workspace, ramp):
        assert workspace.add_constant(1, "OUT", -1.0, mask=0) == 32
        np.testing.assert_array_equal(workspace.map_view(1)[2:], ramp[2:] - 1)

    def test_mask_slot_checked(self, workspace):
        with pytest.raises(SlotError):
            workspace.scale(1, "IN", 2.0, mask=5)


class TestUnconditional:

    def test_max_of(self, workspace, ramp):
        workspace.scale(0, "TOTAL", 10.0)
        workspace.max_of(2, 0, 1)
        np.testing.assert_array_equal(workspace.map_view(2), np.maximum(ramp, 10.0))

    def test_mask_or_and(self, workspace):
        workspace.mask_view(1)[:, :2] = 1
        workspace.touch_mask(1)
        workspace.max_mask(2, 0, 1)
        union = workspace.mask_view(2).copy()
        workspace.min_mask(2, 0, 1)
        intersection = workspace.mask_view(2)
        assert union.sum() == 32 + 32 - 16
        assert intersection.sum() == 16

    def test_flip(self, workspace, half_mask):
        workspace.flip(1, 0)
        np.testing.assert_array_equal(workspace.mask_view(1), 1 - half_mask)
        workspace.flip(1, 1)
        np.testing.assert_array_equal(workspace.mask_view(1), half_mask)

    def test_flip_then_and_is_empty(self, workspace):
        workspace.flip(1, 0)
        workspace.min_mask(2, 0, 1)
        assert not workspace.mask_view(2).any()
        workspace.max_mask(2, 0, 1)
        assert workspace.mask_view(2).all()

    def test_copy_mask(self, workspace, half_mask):
        workspace.copy_mask(0, 2)
        workspace.mask_view(0)[...] = 0
        np.testing.assert_array_equal(workspace.mask_view(2), half_mask)

"""Tests for rsrf.shape mask growth."""

import numpy as np
import pytest

from rsrf.geometry import GridGeometry
from rsrf.shape import MAX_SHAPE_CYCLES, ShapeFitResult, shape_fit
from rsrf.workspace import Workspace

BACKENDS = ['numpy', 'numba']


def make_workspace(n=5):
    geometry = GridGeometry(n, n, n, n, n, n, 10.0, 10.0, 10.0, 90.0, 90.0, 90.0)
    return Workspace.from_geometry(geometry, map_capacity=1, mask_capacity=3)


@pytest.fixture
def dip():
    """5x5x5 map of ones with a zero at grid point (2, 3, 3) and a seed at the centre."""
    ws = make_workspace()
    ws.map_view(0)[...] = 1.0
    ws.map_view(0)[2, 2, 1] = 0.0
    ws.mask_view(0)[2, 2, 2] = 1
    return ws


@pytest.mark.parametrize("backend", BACKENDS)
class TestShapeFit:

    def test_grows_toward_dip(self, dip, backend):
        result = shape_fit(dip, 0, 1, 2, 0, 0.0, 1, 1, backend=backend)
        grown = dip.mask_view(1)
        assert grown.sum() == 2
        assert grown[2, 2, 2] == 1
        assert grown[2, 2, 1] == 1
        assert result.grown == [1]
        assert result.added == [1]
        assert result.constrictions == [0]

    def test_seed_untouched(self, dip, backend):
        shape_fit(dip, 0, 1, 2, 0, 0.0, 3, 1, backend=backend)
        assert dip.mask_view(0).sum() == 1

    def test_scratch_matches_output(self, dip, backend):
        shape_fit(dip, 0, 1, 2, 0, 0.0, 2, 1, backend=backend)
        np.testing.assert_array_equal(dip.mask_view(1), dip.mask_view(2))

    def test_min_dif_blocks_growth(self, dip, backend):
        result = shape_fit(dip, 0, 1, 2, 0, 1.0, 1, 1, backend=backend)
        assert result.grown == [0]
        assert dip.mask_view(1).sum() == 1

    def test_constriction(self, dip, backend):
        result = shape_fit(dip, 0, 1, 2, 0, 0.0, 1, 2, backend=backend)
        assert result.constrictions == [1]
        assert result.grown == [0]
        assert dip.mask_view(1).sum() == 1

    def test_runs_every_cycle(self, dip, backend):
        result = shape_fit(dip, 0, 1, 2, 0, 0.0, 4, 1, backend=backend)
        assert result.cycles == 4
        # the dip voxel lies on the border and cannot grow further
        assert result.added == [1, 0, 0, 0]
        assert result.total_grown == 1

    def test_border_voxels_ignored(self, backend):
        ws = make_workspace()
        ws.map_view(0)[...] = np.arange(125, dtype=np.float32).reshape(5, 5, 5)
        ws.mask_view(0)[0, 0, 0] = 1
        result = shape_fit(ws, 0, 1, 2, 0, 0.0, 2, 1, backend=backend)
        assert result.total_grown == 0
        assert ws.mask_view(1).sum() == 1

    def test_tie_takes_first_in_scan_order(self, backend):
        ws = make_workspace()
        ws.map_view(0)[...] = 1.0
        ws.map_view(0)[1, 2, 2] = 0.0
        ws.map_view(0)[3, 2, 2] = 0.0
        ws.mask_view(0)[2, 2, 2] = 1
        shape_fit(ws, 0, 1, 2, 0, 0.0, 1, 1, backend=backend)
        assert ws.mask_view(1)[1, 2, 2] == 1
        assert ws.mask_view(1)[3, 2, 2] == 0


def test_cycle_cap_warns(dip):
    with pytest.warns(UserWarning, match="limited to 100"):
        result = shape_fit(dip, 0, 1, 2, 0, 0.0, MAX_SHAPE_CYCLES + 1, 1, backend='numpy')
    assert result.cycles == MAX_SHAPE_CYCLES


def test_output_and_scratch_must_differ(dip):
    with pytest.raises(ValueError, match="distinct"):
        shape_fit(dip, 0, 1, 1, 0, 0.0, 1, 1)


def test_backends_agree():
    ws = make_workspace(n=12)
    rng = np.random.default_rng(7)
    ws.map_view(0)[...] = rng.random((12, 12, 12))
    ws.mask_view(0)[5:7, 5:7, 5:7] = 1

    first = shape_fit(ws, 0, 1, 2, 0, 0.05, 4, 3, backend='numpy')
    numpy_mask = ws.mask_view(1).copy()
    second = shape_fit(ws, 0, 1, 2, 0, 0.05, 4, 3, backend='numba')

    np.testing.assert_array_equal(ws.mask_view(1), numpy_mask)
    assert first == second


def test_result_totals():
    result = ShapeFitResult(grown=[3, 2], added=[2, 1], constrictions=[0, 4])
    assert (result.total_grown, result.total_added, result.total_constrictions) == (5, 3, 4)
    assert result.cycles == 2

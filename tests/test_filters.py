"""Tests for rsrf.filters smoothing and roughness."""

import numpy as np
import pytest

from rsrf.filters import MAX_ROUGHNESS_RADIUS, roughness, smear, taper_weights
from rsrf.geometry import GridGeometry
from rsrf.workspace import Workspace

BACKENDS = ['numpy', 'numba']


def make_workspace(shape=(6, 7, 8), maps=4):
    nz, ny, nx = shape
    geometry = GridGeometry(nx, ny, nz, nx, ny, nz, 10.0, 10.0, 10.0, 90.0, 90.0, 90.0)
    return Workspace.from_geometry(geometry, map_capacity=maps, mask_capacity=1)


class TestTaperWeights:

    def test_radius_one_is_identity(self):
        np.testing.assert_allclose(taper_weights(1), [1.0])

    def test_radius_three(self):
        # S = 3 + 2 * (1 + 2) = 9
        np.testing.assert_allclose(taper_weights(3), [3 / 9, 2 / 9, 1 / 9])

    @pytest.mark.parametrize("radius", [1, 2, 4, 7])
    def test_symmetric_window_sums_to_one(self, radius):
        w = taper_weights(radius)
        assert w[0] + 2 * w[1:].sum() == pytest.approx(1.0)

    def test_radius_below_one(self):
        with pytest.raises(ValueError, match="at least 1"):
            taper_weights(0)


@pytest.mark.parametrize("backend", BACKENDS)
class TestSmear:

    def test_constant_field_preserved(self, backend):
        ws = make_workspace()
        ws.map_view(0)[...] = 2.5
        smear(ws, 0, 1, 2, 3, backend=backend)
        np.testing.assert_allclose(ws.map_view(1), 2.5, rtol=1e-6)

    def test_scratch_left_zeroed(self, backend):
        ws = make_workspace()
        ws.map_view(0)[...] = np.random.default_rng(1).random((6, 7, 8))
        smear(ws, 0, 1, 2, 2, backend=backend)
        assert not ws.map_view(2).any()

    def test_mass_conserved(self, backend):
        ws = make_workspace()
        values = np.random.default_rng(2).random((6, 7, 8)).astype(np.float32)
        ws.map_view(0)[...] = values
        smear(ws, 0, 1, 2, 3, backend=backend)
        assert ws.map_view(1).sum() == pytest.approx(values.sum(), rel=1e-5)

    def test_point_spreads_separably(self, backend):
        ws = make_workspace()
        ws.map_view(0)[3, 3, 3] = 1.0
        smear(ws, 0, 1, 2, 2, backend=backend)
        w = taper_weights(2)
        result = ws.map_view(1)
        assert result[3, 3, 3] == pytest.approx(w[0] ** 3)
        assert result[3, 3, 4] == pytest.approx(w[0] ** 2 * w[1])
        assert result[4, 2, 4] == pytest.approx(w[1] ** 3)
        assert result[3, 3, 5] == 0.0

    def test_wraps_around(self, backend):
        ws = make_workspace()
        ws.map_view(0)[0, 0, 0] = 1.0
        smear(ws, 0, 1, 2, 2, backend=backend)
        assert ws.map_view(1)[0, 0, 7] > 0.0
        assert ws.map_view(1)[5, 6, 7] > 0.0

    def test_in_place(self, backend):
        ws = make_workspace()
        values = np.random.default_rng(3).random((6, 7, 8))
        ws.map_view(0)[...] = values
        ws.map_view(1)[...] = values
        smear(ws, 0, 3, 2, 3, backend=backend)
        smear(ws, 1, 1, 2, 3, backend=backend)
        np.testing.assert_allclose(ws.map_view(1), ws.map_view(3), rtol=1e-6)

    def test_returns_weights(self, backend):
        ws = make_workspace()
        np.testing.assert_allclose(smear(ws, 0, 1, 2, 3, backend=backend), taper_weights(3))


def test_smear_scratch_must_differ():
    ws = make_workspace()
    with pytest.raises(ValueError, match="Scratch"):
        smear(ws, 0, 1, 1, 2)


def test_smear_backends_agree():
    ws = make_workspace()
    ws.map_view(0)[...] = np.random.default_rng(4).normal(size=(6, 7, 8))
    smear(ws, 0, 1, 2, 4, backend='numpy')
    smear(ws, 0, 3, 2, 4, backend='numba')
    np.testing.assert_allclose(ws.map_view(1), ws.map_view(3), rtol=1e-5, atol=1e-6)


@pytest.mark.parametrize("backend", BACKENDS)
class TestRoughness:

    def test_flat_map_is_smooth(self, backend):
        ws = make_workspace()
        ws.map_view(0)[...] = 4.0
        low, high = roughness(ws, 0, 1, 2, backend=backend)
        assert low == pytest.approx(0.0, abs=1e-5)
        assert high == pytest.approx(0.0, abs=1e-5)

    def test_single_spike(self, backend):
        ws = make_workspace(shape=(9, 9, 9))
        ws.map_view(0)[4, 4, 4] = 1.0
        low, high = roughness(ws, 0, 1, 1, backend=backend)
        # radius 1 neighbourhood holds 7 voxels: sum of squared deviations = 1 - 1/7
        expected = np.sqrt(1.0 - 1.0 / 7.0)
        result = ws.map_view(1)
        assert result[4, 4, 4] == pytest.approx(expected, rel=1e-5)
        assert result[4, 4, 5] == pytest.approx(expected, rel=1e-5)
        assert result[4, 5, 5] == pytest.approx(0.0, abs=1e-6)
        assert (low, high) == (pytest.approx(0.0, abs=1e-6), pytest.approx(expected, rel=1e-5))

    def test_radius_capped(self, backend):
        ws = make_workspace(shape=(21, 21, 21))
        with pytest.warns(UserWarning, match="reduced to 10"):
            roughness(ws, 0, 1, MAX_ROUGHNESS_RADIUS + 5, backend=backend)

    def test_same_slot_rejected(self, backend):
        ws = make_workspace()
        with pytest.raises(ValueError, match="distinct"):
            roughness(ws, 0, 0, 2, backend=backend)


def test_roughness_backends_agree():
    ws = make_workspace()
    ws.map_view(0)[...] = np.random.default_rng(5).normal(size=(6, 7, 8))
    roughness(ws, 0, 1, 2, backend='numpy')
    roughness(ws, 0, 2, 2, backend='numba')
    np.testing.assert_allclose(ws.map_view(1), ws.map_view(2), rtol=1e-4, atol=1e-4)

"""Tests for rsrf.cell coordinate transforms."""

import numpy as np
import pytest

from rsrf.cell import (
    Convention,
    cartesian_to_grid,
    grid_to_cartesian,
    orthogonalisation_matrix,
    to_cartesian,
    to_fractional,
)
from rsrf.geometry import GridGeometry

CONVENTIONS = [Convention.C_ALONG_Z, Convention.A_ALONG_X]


@pytest.fixture
def triclinic():
    return GridGeometry(20, 30, 40, 20, 30, 40, 7.0, 9.0, 11.0, 75.0, 85.0, 100.0)


@pytest.fixture
def cubic():
    return GridGeometry(10, 10, 10, 10, 10, 10, 5.0, 5.0, 5.0, 90.0, 90.0, 90.0)


class TestOrthogonalCell:

    @pytest.mark.parametrize("convention", CONVENTIONS)
    def test_scales_by_grid_spacing(self, cubic, convention):
        point = (1.0, 2.5, 4.0)
        assert to_fractional(cubic, 'x', point, convention) == pytest.approx(2.0)
        assert to_fractional(cubic, 'y', point, convention) == pytest.approx(5.0)
        assert to_fractional(cubic, 'z', point, convention) == pytest.approx(8.0)

    def test_back_to_angstrom(self, cubic):
        assert to_cartesian(cubic, 0, (2.0, 5.0, 8.0)) == pytest.approx(1.0)
        assert to_cartesian(cubic, 2, (2.0, 5.0, 8.0)) == pytest.approx(4.0)


class TestTriclinic:

    @pytest.mark.parametrize("convention", CONVENTIONS)
    def test_per_axis_round_trip(self, triclinic, convention):
        point = (1.3, -2.2, 6.7)
        grid = [to_fractional(triclinic, axis, point, convention) for axis in range(3)]
        back = [to_cartesian(triclinic, axis, grid, convention) for axis in range(3)]
        np.testing.assert_allclose(back, point, atol=1e-10)

    @pytest.mark.parametrize("convention", CONVENTIONS)
    def test_matrix_agrees_with_per_axis(self, triclinic, convention):
        point = np.array([3.1, 0.4, -5.0])
        grid = cartesian_to_grid(triclinic, point, convention)
        per_axis = [to_fractional(triclinic, axis, point, convention) for axis in 'xyz']
        np.testing.assert_allclose(grid, per_axis, atol=1e-10)
        np.testing.assert_allclose(grid_to_cartesian(triclinic, grid, convention), point, atol=1e-10)

    @pytest.mark.parametrize("convention", CONVENTIONS)
    def test_lattice_vectors(self, triclinic, convention):
        m = orthogonalisation_matrix(triclinic, convention)
        np.testing.assert_allclose(np.linalg.norm(m, axis=1), [7.0, 9.0, 11.0])
        cos_gamma = m[0] @ m[1] / (7.0 * 9.0)
        assert cos_gamma == pytest.approx(np.cos(np.radians(100.0)))
        assert abs(np.linalg.det(m)) == pytest.approx(triclinic.cell_volume)

    def test_conventions_orient_cell_differently(self, triclinic):
        assert orthogonalisation_matrix(triclinic, Convention.A_ALONG_X)[0, 1] == 0.0
        assert orthogonalisation_matrix(triclinic, Convention.C_ALONG_Z)[2, 0] == 0.0

    def test_lattice_point_lands_on_cell_count(self, triclinic):
        b_vector = orthogonalisation_matrix(triclinic)[1]
        grid = cartesian_to_grid(triclinic, b_vector)
        np.testing.assert_allclose(grid, [0.0, 30.0, 0.0], atol=1e-9)

    def test_arrays_of_points(self, triclinic):
        points = np.random.default_rng(0).normal(size=(5, 3))
        grid = cartesian_to_grid(triclinic, points)
        assert grid.shape == (5, 3)
        np.testing.assert_allclose(grid_to_cartesian(triclinic, grid), points, atol=1e-10)


class TestAxisNames:

    def test_case_and_whitespace(self, cubic):
        assert to_fractional(cubic, ' X ', (1.0, 0.0, 0.0)) == pytest.approx(2.0)

    @pytest.mark.parametrize("axis", ['w', 3, -1])
    def test_unknown_axis(self, cubic, axis):
        with pytest.raises(ValueError):
            to_fractional(cubic, axis, (0.0, 0.0, 0.0))


def test_workspace_delegates(workspace):
    # 4 grid points over an 8 A cubic cell
    assert workspace.to_fractional('y', (0.0, 3.0, 0.0)) == pytest.approx(1.5)
    assert workspace.to_cartesian('z', (0.0, 0.0, 2.0)) == pytest.approx(4.0)


def test_fractional_not_truncated(cubic):
    # 1.3 A over 0.5 A spacing
    value = to_fractional(cubic, 'x', (1.3, 0.0, 0.0))
    assert isinstance(value, float)
    assert value == pytest.approx(2.6)


def test_two_conventions():
    assert [c.name for c in Convention] == ['C_ALONG_Z', 'A_ALONG_X']

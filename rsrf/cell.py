"""
Coordinate transforms between Cartesian space and the map grid.

Fractional coordinates are expressed in grid points: a fractional
coordinate along an axis is multiplied by the number of grid points spanning
the unit cell along that axis.

Two orthogonalisation conventions are supported (see :class:`Convention`).
The per-axis functions :func:`to_fractional` and :func:`to_cartesian` use
closed forms for a single axis; the matrix functions convert whole
coordinate arrays and use the convention that rows of the cell matrix are
lattice vectors: ``M[0] = a``, ``M[1] = b``, ``M[2] = c``.

Key operations:

- Cartesian from fractional: ``r = s @ M``
- Fractional from Cartesian: ``s = r @ inv(M)``
- Grid from fractional: ``g = s * (cell_nx, cell_ny, cell_nz)``
"""

from __future__ import annotations

from enum import Enum

import numpy as np

from rsrf.geometry import GridGeometry, metric_term

_AXES = {'x': 0, 'y': 1, 'z': 2}


class Convention(Enum):
    """
    Orientation of the unit cell in the Cartesian frame.

    Only these two orientations are provided. The legacy tool also listed a
    rhombohedral variant, but its inverse transform was not consistent with
    its forward one, so it has no counterpart here.
    """

    #: Real c along Cartesian Z, reciprocal a* along Cartesian X.
    C_ALONG_Z = 0
    #: Real a along Cartesian X, reciprocal c* along Cartesian Z (PDB files).
    A_ALONG_X = 1


def _axis_index(axis) -> int:
    if isinstance(axis, str):
        try:
            return _AXES[axis.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown axis {axis!r}; expected 'x', 'y' or 'z'.") from None
    index = int(axis)
    if index not in (0, 1, 2):
        raise ValueError(f"Axis index must be 0, 1 or 2, got {axis!r}.")
    return index


def _trig(geometry: GridGeometry):
    alpha, beta, gamma = np.radians([geometry.alpha, geometry.beta, geometry.gamma])
    return (
        np.cos(alpha), np.cos(beta), np.cos(gamma),
        np.sin(alpha), np.sin(gamma),
        metric_term(geometry.alpha, geometry.beta, geometry.gamma),
    )


def to_fractional(
    geometry: GridGeometry,
    axis,
    xyz,
    convention: Convention = Convention.C_ALONG_Z,
) -> float:
    """
    Fractional coordinate of a Cartesian point along one axis, in grid points.

    Parameters
    ----------
    geometry : GridGeometry
        Supplies the cell and the unit-cell grid counts.
    axis : int or str
        0/1/2 or 'x'/'y'/'z'.
    xyz : sequence of float
        Cartesian point ``(X, Y, Z)`` in Angstrom.
    convention : Convention, optional
        Cell orientation (default: ``C_ALONG_Z``).

    Returns
    -------
    float
        Not truncated; the legacy tool returned the integer part, a grid
        index. Apply ``int`` or ``np.floor`` where an index is needed.
    """
    axis = _axis_index(axis)
    X, Y, Z = (float(v) for v in xyz)
    A, B, C = geometry.a, geometry.b, geometry.c
    ca, cb, cg, sa, sg, G = _trig(geometry)

    if Convention(convention) is Convention.C_ALONG_Z:
        if axis == 0:
            value = X * sa / (A * G)
        elif axis == 1:
            value = X * (ca * cb - cg) / (B * G * sa) + Y / (B * sa)
        else:
            value = X * (ca * cg - cb) / (C * G * sa) - Y * ca / (C * sa) + Z / C
    else:
        if axis == 0:
            value = X / A - Y * cg / (A * sg) + Z * (ca * cg - cb) / (A * G * sg)
        elif axis == 1:
            value = Y / (B * sg) + Z * (cb * cg - ca) / (B * G * sg)
        else:
            value = Z * sg / (C * G)

    return float(value * geometry.cell_dimensions[axis])


def to_cartesian(
    geometry: GridGeometry,
    axis,
    grid_xyz,
    convention: Convention = Convention.C_ALONG_Z,
) -> float:
    """
    Cartesian coordinate along one axis of a point given in grid points.

    Inverse of :func:`to_fractional` once all three axes are combined.

    Parameters
    ----------
    geometry : GridGeometry
    axis : int or str
        0/1/2 or 'x'/'y'/'z'.
    grid_xyz : sequence of float
        Fractional point in grid points.
    convention : Convention, optional
        Cell orientation (default: ``C_ALONG_Z``).

    Returns
    -------
    float
        Coordinate in Angstrom.
    """
    axis = _axis_index(axis)
    x, y, z = (float(v) / n for v, n in zip(grid_xyz, geometry.cell_dimensions))
    A, B, C = geometry.a, geometry.b, geometry.c
    ca, cb, cg, sa, sg, G = _trig(geometry)

    if Convention(convention) is Convention.C_ALONG_Z:
        if axis == 0:
            return float(x * A * G / sa)
        if axis == 1:
            return float(x * A * (cg - ca * cb) / sa + y * B * sa)
        return float(x * A * cb + y * B * ca + z * C)

    if axis == 0:
        return float(x * A + y * B * cg + z * C * cb)
    if axis == 1:
        return float(y * B * sg + z * C * (ca - cb * cg) / sg)
    return float(z * C * G / sg)


def orthogonalisation_matrix(
    geometry: GridGeometry,
    convention: Convention = Convention.C_ALONG_Z,
) -> np.ndarray:
    """
    Cell matrix whose rows are the lattice vectors in Cartesian space.

    Returns
    -------
    np.ndarray, shape (3, 3)
    """
    A, B, C = geometry.a, geometry.b, geometry.c
    ca, cb, cg, sa, sg, G = _trig(geometry)

    if Convention(convention) is Convention.C_ALONG_Z:
        return np.array([
            [A * G / sa, A * (cg - ca * cb) / sa, A * cb],
            [0.0, B * sa, B * ca],
            [0.0, 0.0, C],
        ])
    return np.array([
        [A, 0.0, 0.0],
        [B * cg, B * sg, 0.0],
        [C * cb, C * (ca - cb * cg) / sg, C * G / sg],
    ])


def cartesian_to_grid(
    geometry: GridGeometry,
    positions: np.ndarray,
    convention: Convention = Convention.C_ALONG_Z,
) -> np.ndarray:
    """
    Convert Cartesian positions to fractional coordinates in grid points.

    Parameters
    ----------
    positions : np.ndarray, shape (..., 3)
        Cartesian positions in Angstrom.

    Returns
    -------
    np.ndarray, shape (..., 3)
    """
    cell_inverse = np.linalg.inv(orthogonalisation_matrix(geometry, convention))
    return (np.asarray(positions, dtype=float) @ cell_inverse) * np.array(geometry.cell_dimensions)


def grid_to_cartesian(
    geometry: GridGeometry,
    grid_positions: np.ndarray,
    convention: Convention = Convention.C_ALONG_Z,
) -> np.ndarray:
    """
    Convert fractional coordinates in grid points to Cartesian positions.

    Parameters
    ----------
    grid_positions : np.ndarray, shape (..., 3)

    Returns
    -------
    np.ndarray, shape (..., 3)
        Cartesian positions in Angstrom.
    """
    fractional = np.asarray(grid_positions, dtype=float) / np.array(geometry.cell_dimensions)
    return fractional @ orthogonalisation_matrix(geometry, convention)

"""
Per-voxel grid kernels for smoothing, roughness and shape fitting.

This module provides backend-agnostic functions for the three loops that
visit every voxel of a map. Two backends are available:
- NumPy: whole-array implementations using np.roll and scipy.ndimage
- Numba: JIT-compiled explicit loops (default)

All kernels work on single slots held as ``(nz, ny, nx)`` arrays and treat
the grid as periodic along every axis.

Backend selection is controlled by the RSRF_BACKEND environment variable.
See `rsrf.backends` for configuration details.
"""

from __future__ import annotations

from typing import Callable

import numpy as np
from scipy import ndimage

from rsrf.backends import get_backend, AVAILABLE_BACKENDS

#: Smearing axis index of X, Y and Z in a ``(nz, ny, nx)`` slot.
AXIS_X, AXIS_Y, AXIS_Z = 2, 1, 0


def _get_numba_functions() -> tuple[Callable, Callable, Callable]:
    """Import and return Numba backend functions."""
    try:
        from rsrf.grid_helpers_numba import (
            smear_pass_numba,
            roughness_filter_numba,
            shape_cycle_numba,
        )
        return smear_pass_numba, roughness_filter_numba, shape_cycle_numba
    except ImportError as e:
        raise ImportError(
            "Numba backend requested but numba is not installed. "
            "Install with: pip install numba"
        ) from e


def get_backend_functions(
    backend: str | None = None,
) -> tuple[Callable, Callable, Callable]:
    """
    Get the grid kernels for the specified backend.

    Parameters
    ----------
    backend : str, optional
        Backend to use: 'numpy' or 'numba'. If not specified, uses the
        RSRF_BACKEND environment variable, defaulting to 'numba'.

    Returns
    -------
    tuple[Callable, Callable, Callable]
        Tuple of (smear_pass, roughness_filter, shape_cycle) functions.

    Raises
    ------
    ValueError
        If an unknown backend is specified.
    """
    if backend is None:
        backend = get_backend()

    if backend not in AVAILABLE_BACKENDS:
        raise ValueError(
            f"Unknown grid backend: {backend!r}. "
            f"Available backends: {sorted(AVAILABLE_BACKENDS)}"
        )

    if backend == 'numba':
        return _get_numba_functions()

    # NumPy backend
    return smear_pass, roughness_filter, shape_cycle


def ball_offsets(radius: int) -> np.ndarray:
    """
    Integer offsets ``(dz, dy, dx)`` within Euclidean pixel distance ``radius``.

    Offsets run from ``-radius`` to ``radius`` along each axis, Z slowest.

    Returns
    -------
    np.ndarray
        Array of shape ``(n, 3)`` and dtype int64.
    """
    span = np.arange(-radius, radius + 1)
    dz, dy, dx = np.meshgrid(span, span, span, indexing='ij')
    inside = dx * dx + dy * dy + dz * dz <= radius * radius
    return np.stack([dz[inside], dy[inside], dx[inside]], axis=1).astype(np.int64)


def ball_footprint(radius: int) -> np.ndarray:
    """Cubic ``(2r+1)**3`` array of ones inside the pixel ball of ``radius``, zeros outside."""
    span = np.arange(-radius, radius + 1)
    dz, dy, dx = np.meshgrid(span, span, span, indexing='ij')
    return (dx * dx + dy * dy + dz * dz <= radius * radius).astype(np.float64)


def smear_pass(
    src: np.ndarray,
    out: np.ndarray,
    weights: np.ndarray,
    axis: int,
) -> None:
    """
    Spread every voxel along one axis with a symmetric taper.

    Each voxel adds ``weights[|d|] * src[v]`` to the voxel ``d`` steps away
    along ``axis`` for ``|d| < len(weights)``, wrapping around the grid edge.

    Parameters
    ----------
    src : np.ndarray
        Input slot, shape ``(nz, ny, nx)``.
    out : np.ndarray
        Accumulator of the same shape. Modified in place; must not be ``src``.
    weights : np.ndarray
        Taper weights ``w[0] .. w[N-1]``.
    axis : int
        Array axis to smear along (``AXIS_X``, ``AXIS_Y`` or ``AXIS_Z``).
    """
    reach = len(weights)
    for offset in range(-(reach - 1), reach):
        out += weights[abs(offset)] * np.roll(src, offset, axis=axis)


def roughness_filter(src: np.ndarray, out: np.ndarray, radius: int) -> None:
    """
    Local roughness of every voxel.

    For each voxel the values inside the pixel ball of ``radius`` (periodic
    wraparound) are gathered, and the square root of their summed squared
    deviation from the neighbourhood mean is written to ``out``.

    Parameters
    ----------
    src : np.ndarray
        Input slot, shape ``(nz, ny, nx)``.
    out : np.ndarray
        Output slot of the same shape. Modified in place; must not be ``src``.
    radius : int
        Neighbourhood radius in voxels.

    Notes
    -----
    Uses the one-pass identity ``sum((v - mean)**2) = sum(v**2) - sum(v)**2 / n``
    evaluated in float64; the tiny negative residues it can leave on flat
    regions are clipped to zero.
    """
    footprint = ball_footprint(radius)
    count = footprint.sum()
    values = src.astype(np.float64)
    sums = ndimage.correlate(values, footprint, mode='grid-wrap')
    squares = ndimage.correlate(values * values, footprint, mode='grid-wrap')
    deviation = np.clip(squares - sums * sums / count, 0.0, None)
    out[...] = np.sqrt(deviation)


def shape_cycle(
    mask: np.ndarray,
    values: np.ndarray,
    marks: np.ndarray,
    min_dif: float,
    min_connect: int,
) -> tuple[int, int]:
    """
    One growth cycle of the shape fitter.

    Visits every voxel of ``mask`` at least two voxels away from each face.
    A voxel whose 3x3x3 block holds fewer than ``min_connect`` mask voxels
    is a constriction. Otherwise the block voxel outside the mask with the
    lowest value strictly below the centre (first in z, y, x scan order on
    ties) is marked in ``marks`` when that value is below
    ``centre - min_dif``.

    Parameters
    ----------
    mask : np.ndarray
        Current mask (uint8, ``(nz, ny, nx)``). Not modified.
    values : np.ndarray
        Map values of the same shape.
    marks : np.ndarray
        Mask receiving new voxels. Modified in place.
    min_dif : float
        Minimum drop below the centre value required for growth.
    min_connect : int
        Minimum block membership for a voxel to grow.

    Returns
    -------
    tuple[int, int]
        ``(grown, constrictions)``: growth events and constrictions counted
        this cycle.
    """
    nz, ny, nx = mask.shape
    inner = np.zeros(mask.shape, dtype=bool)
    inner[2:nz - 2, 2:ny - 2, 2:nx - 2] = True
    kz, ky, kx = np.nonzero(inner & (mask == 1))
    if kz.size == 0:
        return 0, 0

    cur = values[kz, ky, kx]
    threshold = cur - values.dtype.type(min_dif)
    n_block = 27
    count = np.zeros(kz.size, dtype=np.int64)
    candidates = np.empty((n_block, kz.size), dtype=values.dtype)
    positions = np.empty((n_block, 3, kz.size), dtype=np.int64)

    block = 0
    for dz in (-1, 0, 1):
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                z, y, x = kz + dz, ky + dy, kx + dx
                member = mask[z, y, x]
                neighbour = values[z, y, x]
                count += member
                candidates[block] = np.where((member == 0) & (neighbour < cur), neighbour, np.inf)
                positions[block] = (z, y, x)
                block += 1

    constricted = count < min_connect
    best = np.argmin(candidates, axis=0)
    columns = np.arange(kz.size)
    low = candidates[best, columns]
    grow = ~constricted & np.isfinite(low) & (low < threshold)

    target = positions[best, :, columns][grow]
    marks[target[:, 0], target[:, 1], target[:, 2]] = 1
    return int(np.count_nonzero(grow)), int(np.count_nonzero(constricted))

"""
Numba JIT-compiled grid kernels.

This module provides high-performance implementations of the grid kernels
in `rsrf.grid_helpers` using Numba's JIT compilation. Each voxel is handled
by an explicit loop with modulo wraparound at the grid edges.

Note: We use sequential loops (not prange) because the smear pass and shape
cycle scatter into neighbouring voxels and would race under parallel
execution.
"""

from __future__ import annotations

import numpy as np
from numba import jit  # type: ignore[import-untyped]

from rsrf.grid_helpers import ball_offsets


@jit(nopython=True, cache=True)
def _smear_pass_numba(
    src: np.ndarray,
    out: np.ndarray,
    weights: np.ndarray,
    axis: int,
) -> None:
    """
    JIT-compiled smear pass with explicit loops.

    Each voxel scatters its weighted value to its neighbours along ``axis``.
    """
    nz, ny, nx = src.shape
    reach = len(weights)

    for k in range(nz):
        for j in range(ny):
            for i in range(nx):
                v = src[k, j, i]
                for d in range(-(reach - 1), reach):
                    w = weights[abs(d)] * v
                    if axis == 2:
                        out[k, j, (i + d) % nx] += w
                    elif axis == 1:
                        out[k, (j + d) % ny, i] += w
                    else:
                        out[(k + d) % nz, j, i] += w


def smear_pass_numba(
    src: np.ndarray,
    out: np.ndarray,
    weights: np.ndarray,
    axis: int,
) -> None:
    """
    Spread every voxel along one axis (Numba backend).

    See `rsrf.grid_helpers.smear_pass` for parameter documentation.
    """
    _smear_pass_numba(
        np.ascontiguousarray(src),
        out,
        np.asarray(weights, dtype=np.float64),
        int(axis),
    )


@jit(nopython=True, cache=True)
def _roughness_filter_numba(
    src: np.ndarray,
    out: np.ndarray,
    offsets: np.ndarray,
) -> None:
    """
    JIT-compiled roughness with explicit loops.

    Two passes over each neighbourhood: the mean, then the squared
    deviations from it.
    """
    nz, ny, nx = src.shape
    n = offsets.shape[0]

    for k in range(nz):
        for j in range(ny):
            for i in range(nx):
                total = 0.0
                for m in range(n):
                    total += src[(k + offsets[m, 0]) % nz,
                                 (j + offsets[m, 1]) % ny,
                                 (i + offsets[m, 2]) % nx]
                mean = total / n

                deviation = 0.0
                for m in range(n):
                    diff = src[(k + offsets[m, 0]) % nz,
                               (j + offsets[m, 1]) % ny,
                               (i + offsets[m, 2]) % nx] - mean
                    deviation += diff * diff
                out[k, j, i] = np.sqrt(deviation)


def roughness_filter_numba(src: np.ndarray, out: np.ndarray, radius: int) -> None:
    """
    Local roughness of every voxel (Numba backend).

    See `rsrf.grid_helpers.roughness_filter` for parameter documentation.
    """
    _roughness_filter_numba(np.ascontiguousarray(src), out, ball_offsets(int(radius)))


@jit(nopython=True, cache=True)
def _shape_cycle_numba(
    mask: np.ndarray,
    values: np.ndarray,
    marks: np.ndarray,
    min_dif: float,
    min_connect: int,
) -> tuple[int, int]:
    """
    JIT-compiled shape cycle with explicit loops.

    The block scan runs z, then y, then x, and only a strictly lower value
    replaces the current lowest, so ties keep the first voxel found.
    """
    nz, ny, nx = mask.shape
    grown = 0
    constrictions = 0

    for k in range(2, nz - 2):
        for j in range(2, ny - 2):
            for i in range(2, nx - 2):
                if mask[k, j, i] != 1:
                    continue

                cur = values[k, j, i]
                low = cur
                found = False
                lz = 0
                ly = 0
                lx = 0
                num = 0
                for z in range(k - 1, k + 2):
                    for y in range(j - 1, j + 2):
                        for x in range(i - 1, i + 2):
                            num += mask[z, y, x]
                            if mask[z, y, x] == 0 and values[z, y, x] < low:
                                low = values[z, y, x]
                                lz = z
                                ly = y
                                lx = x
                                found = True

                if num < min_connect:
                    constrictions += 1
                elif found and low < cur - min_dif:
                    marks[lz, ly, lx] = 1
                    grown += 1

    return grown, constrictions


def shape_cycle_numba(
    mask: np.ndarray,
    values: np.ndarray,
    marks: np.ndarray,
    min_dif: float,
    min_connect: int,
) -> tuple[int, int]:
    """
    One growth cycle of the shape fitter (Numba backend).

    See `rsrf.grid_helpers.shape_cycle` for parameter documentation.
    """
    grown, constrictions = _shape_cycle_numba(
        np.ascontiguousarray(mask),
        np.ascontiguousarray(values),
        marks,
        values.dtype.type(min_dif),
        int(min_connect),
    )
    return int(grown), int(constrictions)

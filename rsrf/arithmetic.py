"""
Zone-restricted elementwise operations on maps and masks.

Every function takes the :class:`rsrf.workspace.Workspace` first. Map
operations that accept a ``zone`` touch only the voxels it selects (see
:mod:`rsrf.zones`); the mask operations and :func:`max_of` are
unconditional. Each mutated slot has its generation bumped, which
invalidates any cached statistics for it.
"""

from __future__ import annotations

import logging

import numpy as np

from rsrf.store import GENERATED_NAME

logger = logging.getLogger(__name__)


def _selected_count(data: np.ndarray, selected: np.ndarray | None) -> int:
    if selected is None:
        return int(data.size)
    return int(np.count_nonzero(selected))


def _touch_map(ws, slot: int) -> None:
    ws.maps.touch(slot, GENERATED_NAME)


def _touch_mask(ws, slot: int) -> None:
    ws.masks.touch(slot, GENERATED_NAME)


# ----------------------------
# Zone-restricted map operations
# ----------------------------

def zero(ws, slot: int, zone, mask: int | None = None) -> int:
    """
    Set the selected voxels of map ``slot`` to zero.

    Returns
    -------
    int
        Number of voxels set.
    """
    data = ws.map_view(slot)
    selected = ws.selection(zone, mask)
    if selected is None:
        data[...] = 0
    else:
        data[selected] = 0
    _touch_map(ws, slot)
    return _selected_count(data, selected)


def clip(ws, slot: int, zone, minimum: float, maximum: float, mask: int | None = None) -> int:
    """
    Clamp the selected voxels of map ``slot`` to ``[minimum, maximum]``.

    The lower bound is applied first, then the upper bound, so a voxel is
    counted once for each bound it violated.

    Returns
    -------
    int
        Number of bound corrections made.
    """
    data = ws.map_view(slot)
    selected = ws.selection(zone, mask)
    if selected is None:
        selected = np.ones(data.shape, dtype=bool)

    below = selected & (data < minimum)
    data[below] = minimum
    above = selected & (data > maximum)
    data[above] = maximum

    changed = int(np.count_nonzero(below)) + int(np.count_nonzero(above))
    _touch_map(ws, slot)
    logger.debug("Clipped %d voxels of map %d to [%g, %g]", changed, slot, minimum, maximum)
    return changed


def combine(ws, dst: int, src: int, zone, factor: float, mask: int | None = None) -> int:
    """
    ``dst += factor * src`` over the selected voxels.

    ``factor`` of 1 adds, -1 subtracts, anything else blends linearly.

    Returns
    -------
    int
        Number of voxels updated.
    """
    target = ws.map_view(dst)
    source = ws.map_view(src)
    selected = ws.selection(zone, mask)
    if selected is None:
        target += factor * source
    else:
        target[selected] += factor * source[selected]
    _touch_map(ws, dst)
    return _selected_count(target, selected)


def add(ws, dst: int, src: int, zone, mask: int | None = None) -> int:
    """``dst += src`` over the selected voxels."""
    return combine(ws, dst, src, zone, 1.0, mask)


def subtract(ws, dst: int, src: int, zone, mask: int | None = None) -> int:
    """``dst -= src`` over the selected voxels."""
    return combine(ws, dst, src, zone, -1.0, mask)


def scale(ws, slot: int, zone, factor: float, mask: int | None = None) -> int:
    """Multiply the selected voxels of map ``slot`` by ``factor``."""
    data = ws.map_view(slot)
    selected = ws.selection(zone, mask)
    if selected is None:
        data *= factor
    else:
        data[selected] *= factor
    _touch_map(ws, slot)
    return _selected_count(data, selected)


def add_constant(ws, slot: int, zone, value: float, mask: int | None = None) -> int:
    """Add ``value`` to the selected voxels of map ``slot``."""
    data = ws.map_view(slot)
    selected = ws.selection(zone, mask)
    if selected is None:
        data += value
    else:
        data[selected] += value
    _touch_map(ws, slot)
    return _selected_count(data, selected)


# ----------------------------
# Unconditional operations
# ----------------------------

def max_of(ws, dst: int, a: int, b: int) -> None:
    """Map ``dst`` becomes the voxelwise maximum of maps ``a`` and ``b``."""
    np.maximum(ws.map_view(a), ws.map_view(b), out=ws.map_view(dst))
    _touch_map(ws, dst)


def max_mask(ws, dst: int, a: int, b: int) -> None:
    """Mask ``dst`` becomes ``a OR b``."""
    np.maximum(ws.mask_view(a), ws.mask_view(b), out=ws.mask_view(dst))
    _touch_mask(ws, dst)


def min_mask(ws, dst: int, a: int, b: int) -> None:
    """Mask ``dst`` becomes ``a AND b``."""
    np.minimum(ws.mask_view(a), ws.mask_view(b), out=ws.mask_view(dst))
    _touch_mask(ws, dst)


def flip(ws, dst: int, src: int) -> None:
    """Mask ``dst`` becomes the complement of mask ``src``."""
    target = ws.mask_view(dst)
    target[...] = 1 - ws.mask_view(src)
    _touch_mask(ws, dst)


def copy_map(ws, src: int, dst: int) -> None:
    ws.require_geometry()
    ws.maps.copy(src, dst)


def copy_mask(ws, src: int, dst: int) -> None:
    ws.require_geometry()
    ws.masks.copy(src, dst)

"""
Spherical integration of map density around grid points.

Used to assign an integrated density to each atom of a structure: the
caller supplies the atom's grid position and radius, and stores the
returned value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AtomSite:
    """
    A sphere to integrate over.

    Attributes
    ----------
    x, y, z : float
        Centre in 1-based grid coordinates.
    radius : float
        Radius in Angstrom.
    """

    x: float
    y: float
    z: float
    radius: float

    @property
    def center(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


def _bounds(center: float, reach: float, limit: int) -> tuple[int, int]:
    low = max(int(center - reach - 1), 1)
    high = min(int(center + reach + 1), limit)
    return low, high


def integrate_density(ws, center, radius: float, slot: int) -> float:
    """
    Integrated density of map ``slot`` inside a sphere.

    Voxels in the box ``center -/+ (radius / spacing + 1)`` (clamped to the
    grid) are summed when their distance from ``center``, measured with the
    unit-cell metric, is at most ``radius``. The sum is multiplied by the
    voxel volume.

    Parameters
    ----------
    ws : Workspace
    center : sequence of float
        ``(X, Y, Z)`` in 1-based grid coordinates.
    radius : float
        Sphere radius in Angstrom.
    slot : int
        Map slot.

    Returns
    -------
    float

    Raises
    ------
    ValueError
        If ``radius`` is negative.
    """
    if radius < 0:
        raise ValueError(f"Integration radius must not be negative, got {radius}.")
    geometry = ws.require_geometry()
    data = ws.map_view(slot)
    cx, cy, cz = (float(v) for v in center)
    sx, sy, sz = geometry.spacing

    x0, x1 = _bounds(cx, radius / sx, geometry.nx)
    y0, y1 = _bounds(cy, radius / sy, geometry.ny)
    z0, z1 = _bounds(cz, radius / sz, geometry.nz)
    if x0 > x1 or y0 > y1 or z0 > z1:
        return 0.0

    gz, gy, gx = np.meshgrid(
        np.arange(z0, z1 + 1), np.arange(y0, y1 + 1), np.arange(x0, x1 + 1), indexing='ij'
    )
    inside = geometry.distance(gx - cx, gy - cy, gz - cz) <= radius
    box = data[z0 - 1:z1, y0 - 1:y1, x0 - 1:x1]
    value = float(box[inside].astype(np.float64).sum()) * geometry.voxel_volume
    logger.debug(
        "Integrated %d voxels of map %d within %g A of %s: %g",
        int(np.count_nonzero(inside)), slot, radius, (cx, cy, cz), value,
    )
    return value


def integrate_sites(ws, sites: Iterable[AtomSite], slot: int) -> np.ndarray:
    """Integrated density of map ``slot`` for every site, in order."""
    return np.array(
        [integrate_density(ws, site.center, site.radius, slot) for site in sites],
        dtype=float,
    )

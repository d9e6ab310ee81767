"""
Workspace: the owned arena of maps and masks that every operation works on.

A workspace is empty until a reference map is loaded. The reference map fixes
the grid geometry and allocates both stores; every later map or mask must
have the same grid dimensions.

Each operation is a plain function in its own module taking the workspace as
first argument; the methods of :class:`Workspace` are thin conveniences that
delegate to them.

Examples
--------
>>> ws = Workspace(map_capacity=4, mask_capacity=2)
>>> ws.load_reference_map("model.map")
0
>>> ws.load_map("observed.map", 1)
>>> ws.load_mask("region.msk", 0)
0.125
>>> ws.scale_to(1, 0, "IN", mask=0)
1.04
>>> ws.r_factor(1, 0, "IN", mask=0).value
0.31
"""

from __future__ import annotations

import logging
import os

import numpy as np

from rsrf import arithmetic, cell, filters, integrate, shape, statistics
from rsrf.codec import (
    MAP_DTYPE,
    MASK_DTYPE,
    MODE_MASK,
    MapHeader,
    describe_header,
    read_map,
    read_mask,
    write_map as _write_map_file,
    write_mask as _write_mask_file,
)
from rsrf.errors import GeometryNotSetError
from rsrf.geometry import GridGeometry
from rsrf.statistics import RFactorKind
from rsrf.store import SlotStore
from rsrf.zones import as_selector

logger = logging.getLogger(__name__)

DEFAULT_MAP_CAPACITY = 3
DEFAULT_MASK_CAPACITY = 1


class Workspace:
    """
    Maps, masks and the grid geometry they share.

    Parameters
    ----------
    map_capacity : int, optional
        Number of map slots allocated when the reference map is loaded
        (default: 3).
    mask_capacity : int, optional
        Number of mask slots (default: 1).
    max_bytes : int, optional
        Per-store allocation ceiling; defaults to ``RSRF_MAX_STORE_BYTES``.

    Attributes
    ----------
    geometry : GridGeometry or None
        Established by the reference map.
    maps : SlotStore or None
        Float map store.
    masks : SlotStore or None
        Byte mask store.
    reference_header : MapHeader or None
        Header of map slot 0, used when maps are written.
    """

    def __init__(
        self,
        map_capacity: int = DEFAULT_MAP_CAPACITY,
        mask_capacity: int = DEFAULT_MASK_CAPACITY,
        max_bytes: int | None = None,
    ):
        self.map_capacity = int(map_capacity)
        self.mask_capacity = int(mask_capacity)
        self.max_bytes = max_bytes
        self.geometry: GridGeometry | None = None
        self.maps: SlotStore | None = None
        self.masks: SlotStore | None = None
        self._stats_cache: dict = {}

    # ----------------------------
    # Setup
    # ----------------------------
    @classmethod
    def from_geometry(
        cls,
        geometry: GridGeometry,
        map_capacity: int = DEFAULT_MAP_CAPACITY,
        mask_capacity: int = DEFAULT_MASK_CAPACITY,
        header: MapHeader | None = None,
        max_bytes: int | None = None,
    ) -> Workspace:
        """Create a workspace with empty (zeroed) stores for ``geometry``."""
        ws = cls(map_capacity, mask_capacity, max_bytes)
        if header is None:
            header = MapHeader(
                nc=geometry.nx, nr=geometry.ny, ns=geometry.nz,
                nx=geometry.cell_nx, ny=geometry.cell_ny, nz=geometry.cell_nz,
                cell=geometry.cell_parameters,
            )
        ws._allocate(geometry, header)
        return ws

    def _allocate(self, geometry: GridGeometry, header: MapHeader) -> None:
        maps = SlotStore(geometry, self.map_capacity, MAP_DTYPE, 'map', self.max_bytes)
        masks = SlotStore(geometry, self.mask_capacity, MASK_DTYPE, 'mask', self.max_bytes)
        self.geometry, self.maps, self.masks = geometry, maps, masks
        self.maps.headers[0] = header
        self._stats_cache.clear()

    @property
    def reference_header(self) -> MapHeader | None:
        """Header of map slot 0; replaced whenever a map is loaded into slot 0."""
        if self.maps is None:
            return None
        return self.maps.headers[0]

    def require_geometry(self) -> GridGeometry:
        if self.geometry is None:
            raise GeometryNotSetError("Load a reference map before using the workspace.")
        return self.geometry

    # ----------------------------
    # Loading and writing
    # ----------------------------
    def load_reference_map(
        self,
        path: str,
        map_capacity: int | None = None,
        mask_capacity: int | None = None,
    ) -> int:
        """
        Load the reference map into map slot 0.

        Establishes the grid geometry, allocates and zero-fills both stores,
        and reports the cell, map and voxel volumes.

        Returns
        -------
        int
            The slot the map was stored in (always 0).

        Raises
        ------
        MapIOError
            If the file cannot be read.
        AllocationError
            If the stores cannot be allocated.
        """
        if map_capacity is not None:
            self.map_capacity = int(map_capacity)
        if mask_capacity is not None:
            self.mask_capacity = int(mask_capacity)

        header, data = read_map(path)
        geometry = GridGeometry.from_header(header)
        self._allocate(geometry, header)
        self.maps.store(0, data, header, name=os.fspath(path))

        logger.info("Reference map %s\n%s", path, describe_header(header))
        logger.info("Grid geometry:\n%s", geometry.describe())
        logger.info(
            "Unit cell volume %.4f, map volume %.4f, voxel volume %.4f",
            geometry.cell_volume, geometry.map_volume, geometry.voxel_volume,
        )
        return 0

    def load_map(self, path: str, slot: int) -> None:
        """
        Load a map into ``slot``.

        Raises
        ------
        MapIOError
            If the file cannot be read.
        DimensionMismatchError
            If its dimensions differ from the reference; ``slot`` is untouched.
        """
        geometry = self.require_geometry()
        slot = self.maps.check(slot)
        header, data = read_map(path, expected=geometry.dimensions)
        self.maps.store(slot, data, header, name=os.fspath(path))
        logger.info("Map %s stored in map slot %d", path, slot)
        logger.debug("%s", describe_header(header))

    def load_mask(self, path: str, slot: int) -> float:
        """
        Load a mask into ``slot``.

        Returns
        -------
        float
            Fraction of voxels equal to 1.

        Raises
        ------
        MapIOError
            If the file cannot be read.
        DimensionMismatchError
            If its dimensions differ from the reference; ``slot`` is untouched.
        """
        geometry = self.require_geometry()
        slot = self.masks.check(slot)
        header, data = read_mask(path, expected=geometry.dimensions)
        self.masks.store(slot, data, header, name=os.fspath(path))
        return self._report_mask(slot, "MASKI")

    def write_map(self, path: str, slot: int) -> None:
        """Write map ``slot`` to ``path`` under the header of map slot 0."""
        self.require_geometry()
        data = self.maps.view(slot)
        _write_map_file(path, self.maps.headers[0], data)
        logger.info("Map slot %d written to %s", slot, path)

    def write_mask(self, path: str, slot: int) -> float:
        """
        Write mask ``slot`` to ``path``.

        The header is that of mask slot 0 when a mask has been loaded there,
        otherwise the header of map slot 0 with the mask storage mode.

        Returns
        -------
        float
            Fraction of voxels equal to 1.
        """
        self.require_geometry()
        data = self.masks.view(slot)
        header = self.masks.headers[0]
        if header is None:
            header = self.maps.headers[0].copy()
            header.mode = MODE_MASK
        _write_mask_file(path, header, data)
        return self._report_mask(slot, "MASKO")

    def _report_mask(self, slot: int, tag: str) -> float:
        values = self.masks.view(slot)
        total = values.size
        ones = int(np.count_nonzero(values))
        logger.info("%s => Total pixels in mask are %d", tag, total)
        logger.info("%s => Pixels with value 1 =>   %d", tag, ones)
        logger.info("%s => Pixels with value 0 =>   %d", tag, total - ones)
        return ones / total

    # ----------------------------
    # Slot bookkeeping
    # ----------------------------
    def map_view(self, slot: int) -> np.ndarray:
        """Writable ``(nz, ny, nx)`` view of map ``slot``; call :meth:`touch_map` after writing."""
        self.require_geometry()
        return self.maps.view(slot)

    def mask_view(self, slot: int) -> np.ndarray:
        """Writable ``(nz, ny, nx)`` view of mask ``slot``; call :meth:`touch_mask` after writing."""
        self.require_geometry()
        return self.masks.view(slot)

    def touch_map(self, slot: int) -> None:
        self.maps.touch(slot)

    def touch_mask(self, slot: int) -> None:
        self.masks.touch(slot)

    def selection(self, zone, mask: int | None = None) -> np.ndarray | None:
        """Boolean selection for a zone, or None for every voxel."""
        self.require_geometry()
        return as_selector(zone, mask).select(self.masks)

    def list_slots(self) -> dict[str, list[tuple[int, str]]]:
        """Names of every map and mask slot."""
        self.require_geometry()
        return {'maps': self.maps.listing(), 'masks': self.masks.listing()}

    def rename_map(self, slot: int, name: str) -> str:
        self.require_geometry()
        return self.maps.rename(slot, name)

    def rename_mask(self, slot: int, name: str) -> str:
        self.require_geometry()
        return self.masks.rename(slot, name)

    # ----------------------------
    # Operations (delegates)
    # ----------------------------
    def zero(self, slot, zone, mask=None):
        return arithmetic.zero(self, slot, zone, mask)

    def clip(self, slot, zone, minimum, maximum, mask=None):
        return arithmetic.clip(self, slot, zone, minimum, maximum, mask)

    def combine(self, dst, src, zone, factor, mask=None):
        return arithmetic.combine(self, dst, src, zone, factor, mask)

    def add(self, dst, src, zone, mask=None):
        return arithmetic.add(self, dst, src, zone, mask)

    def subtract(self, dst, src, zone, mask=None):
        return arithmetic.subtract(self, dst, src, zone, mask)

    def scale(self, slot, zone, factor, mask=None):
        return arithmetic.scale(self, slot, zone, factor, mask)

    def add_constant(self, slot, zone, value, mask=None):
        return arithmetic.add_constant(self, slot, zone, value, mask)

    def max_of(self, dst, a, b):
        return arithmetic.max_of(self, dst, a, b)

    def max_mask(self, dst, a, b):
        return arithmetic.max_mask(self, dst, a, b)

    def min_mask(self, dst, a, b):
        return arithmetic.min_mask(self, dst, a, b)

    def flip(self, dst, src):
        return arithmetic.flip(self, dst, src)

    def copy_map(self, src, dst):
        return arithmetic.copy_map(self, src, dst)

    def copy_mask(self, src, dst):
        return arithmetic.copy_mask(self, src, dst)

    def find_parms(self, slot, zone, mask=None):
        return statistics.find_parms(self, slot, zone, mask)

    def find_rms(self, slot, zone, mask=None):
        return statistics.find_rms(self, slot, zone, mask)

    def statistics(self, slot, zone, mask=None):
        return statistics.statistics(self, slot, zone, mask)

    def scale_to(self, slot, reference, zone, mask=None):
        return statistics.scale_to(self, slot, reference, zone, mask)

    def r_factor(self, a, b, zone, mask=None, kind=RFactorKind.AVERAGE_DIFFERENCE):
        return statistics.r_factor(self, a, b, zone, mask, kind)

    def minimize_difference(self, slot, reference, scratch, zone, mask=None):
        return statistics.minimize_difference(self, slot, reference, scratch, zone, mask)

    def smear(self, src, dst, scratch, radius, backend=None):
        return filters.smear(self, src, dst, scratch, radius, backend)

    def roughness(self, src, dst, radius, backend=None):
        return filters.roughness(self, src, dst, radius, backend)

    def shape_fit(self, seed, dst, scratch, map_slot, min_dif, n_cycles, min_connect,
                  backend=None, progress=False):
        return shape.shape_fit(self, seed, dst, scratch, map_slot, min_dif, n_cycles,
                               min_connect, backend, progress)

    def integrate(self, center, radius, slot):
        return integrate.integrate_density(self, center, radius, slot)

    def integrate_sites(self, sites, slot):
        return integrate.integrate_sites(self, sites, slot)

    def to_fractional(self, axis, xyz, convention=cell.Convention.C_ALONG_Z):
        return cell.to_fractional(self.require_geometry(), axis, xyz, convention)

    def to_cartesian(self, axis, grid_xyz, convention=cell.Convention.C_ALONG_Z):
        return cell.to_cartesian(self.require_geometry(), axis, grid_xyz, convention)

"""
Fixed-capacity slot arena for maps and masks.

All slots of one kind share a single contiguous, zero-initialised allocation
of shape ``(capacity, nz, ny, nx)``. In C order this is exactly the flat
layout ``(x-1) + (y-1)*nx + (z-1)*nx*ny + slot*nx*ny*nz`` for 1-based grid
coordinates, so ``store.flat[store.linear_index(...)]`` and
``store.view(slot)[z-1, y-1, x-1]`` address the same voxel.
"""

from __future__ import annotations

import logging

import numpy as np

from rsrf.backends import get_max_store_bytes
from rsrf.errors import AllocationError, SlotError
from rsrf.geometry import GridGeometry

logger = logging.getLogger(__name__)

NO_NAME = "NO NAME"
GENERATED_NAME = "COMPUTER GENERATED"


class SlotStore:
    """
    Arena of ``capacity`` dense grids sharing one allocation.

    Parameters
    ----------
    geometry : GridGeometry
        Grid dimensions every slot conforms to.
    capacity : int
        Number of slots.
    dtype : np.dtype
        Voxel type (``float32`` for maps, ``uint8`` for masks).
    kind : str, optional
        ``'map'`` or ``'mask'``; used in messages.
    max_bytes : int, optional
        Refuse allocations larger than this. Defaults to the
        ``RSRF_MAX_STORE_BYTES`` setting.

    Attributes
    ----------
    data : np.ndarray
        The whole arena, shape ``(capacity, nz, ny, nx)``.
    headers : list
        Per-slot :class:`rsrf.codec.MapHeader`, ``None`` until loaded.
    names : list of str
        Per-slot display names.

    Raises
    ------
    AllocationError
        If the capacity is not positive, exceeds ``max_bytes``, or the
        allocation fails.
    """

    def __init__(
        self,
        geometry: GridGeometry,
        capacity: int,
        dtype,
        kind: str = 'map',
        max_bytes: int | None = None,
    ):
        capacity = int(capacity)
        if capacity <= 0:
            raise AllocationError(f"{kind} store capacity must be positive, got {capacity}.")

        dtype = np.dtype(dtype)
        nbytes = capacity * geometry.voxel_count * dtype.itemsize
        if max_bytes is None:
            max_bytes = get_max_store_bytes()
        if max_bytes is not None and nbytes > max_bytes:
            raise AllocationError(
                f"{kind} store of {capacity} slots needs {nbytes} bytes, "
                f"above the limit of {max_bytes} bytes."
            )

        logger.info("Attempting to assign memory for %d %ss ...", capacity, kind)
        try:
            self.data = np.zeros((capacity,) + geometry.array_shape, dtype=dtype)
        except (MemoryError, ValueError) as e:
            raise AllocationError(
                f"Cannot allocate {nbytes} bytes for {capacity} {kind}s."
            ) from e
        logger.info("Memory assigned for %d %ss; all pixels set to zero.", capacity, kind)

        self.geometry = geometry
        self.capacity = capacity
        self.kind = kind
        self.headers = [None] * capacity
        self.names = [NO_NAME] * capacity
        self._generations = [0] * capacity

    # ----------------------------
    # Addressing
    # ----------------------------
    def check(self, slot: int) -> int:
        """Return ``slot`` as an int, raising :class:`SlotError` when out of range."""
        if isinstance(slot, bool) or not isinstance(slot, (int, np.integer)):
            raise SlotError(f"{self.kind} slot must be an integer, got {slot!r}.")
        slot = int(slot)
        if not 0 <= slot < self.capacity:
            raise SlotError(
                f"{self.kind} slot {slot} is outside the store (capacity {self.capacity})."
            )
        return slot

    def linear_index(self, x: int, y: int, z: int, slot: int = 0) -> int:
        """Flat index of 1-based grid point ``(x, y, z)`` in ``slot``."""
        g = self.geometry
        slot = self.check(slot)
        if not (1 <= x <= g.nx and 1 <= y <= g.ny and 1 <= z <= g.nz):
            raise IndexError(f"Grid point {(x, y, z)} lies outside {g.dimensions}.")
        return (x - 1) + (y - 1) * g.nx + (z - 1) * g.nx * g.ny + slot * g.voxel_count

    @property
    def flat(self) -> np.ndarray:
        """Flat view of the whole arena."""
        return self.data.reshape(-1)

    def view(self, slot: int) -> np.ndarray:
        """Writable ``(nz, ny, nx)`` view of one slot."""
        return self.data[self.check(slot)]

    def get(self, slot: int, x: int, y: int, z: int):
        return self.flat[self.linear_index(x, y, z, slot)]

    def set(self, slot: int, x: int, y: int, z: int, value) -> None:
        self.flat[self.linear_index(x, y, z, slot)] = value
        self.touch(slot)

    # ----------------------------
    # Mutation tracking
    # ----------------------------
    def generation(self, slot: int) -> int:
        """Counter bumped by every mutation of ``slot``."""
        return self._generations[self.check(slot)]

    def touch(self, slot: int, name: str | None = None) -> None:
        """
        Record that ``slot`` was modified.

        An unnamed slot is renamed to ``name`` (typically
        ``"COMPUTER GENERATED"``) when one is given.
        """
        slot = self.check(slot)
        self._generations[slot] += 1
        if name is not None and self.names[slot] == NO_NAME:
            self.names[slot] = name

    # ----------------------------
    # Whole-slot operations
    # ----------------------------
    def store(self, slot: int, values: np.ndarray, header=None, name: str | None = None) -> None:
        """Overwrite ``slot`` with ``values`` (shape ``(nz, ny, nx)``)."""
        slot = self.check(slot)
        if values.shape != self.geometry.array_shape:
            raise ValueError(
                f"Values of shape {values.shape} do not fit a slot of shape "
                f"{self.geometry.array_shape}."
            )
        self.data[slot] = values
        if header is not None:
            self.headers[slot] = header
        if name is not None:
            self.names[slot] = name
        self.touch(slot)

    def copy(self, src: int, dst: int) -> None:
        """Duplicate the payload of ``src`` into ``dst``; the two stay independent."""
        src, dst = self.check(src), self.check(dst)
        if src == dst:
            return
        self.data[dst] = self.data[src]
        self.touch(dst, GENERATED_NAME)

    def clear(self, slot: int) -> None:
        self.data[self.check(slot)] = 0
        self.touch(slot)

    def rename(self, slot: int, name: str) -> str:
        """Set the display name of ``slot``; returns the old name."""
        slot = self.check(slot)
        old, self.names[slot] = self.names[slot], str(name)
        return old

    def listing(self) -> list[tuple[int, str]]:
        """``(slot, name)`` for every slot."""
        return list(enumerate(self.names))

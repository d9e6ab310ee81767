"""
Zones: which voxels of a map an operation touches.

A zone is ``INSIDE`` a mask (mask value 1), ``OUTSIDE`` it (mask value 0),
or ``TOTAL`` (every voxel; no mask is read). The user-facing keywords
IN/OUT/TOTAL are translated in :meth:`Zone.from_keyword` and nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class Zone(Enum):
    INSIDE = 'inside'
    OUTSIDE = 'outside'
    TOTAL = 'total'

    @classmethod
    def from_keyword(cls, keyword: str) -> Zone:
        """
        Translate a user keyword (``IN``, ``OUT``, ``TOTAL``, any case or
        longer spelling such as ``INSIDE``) into a zone.

        Raises
        ------
        ValueError
            If the keyword starts with none of I, O or T.
        """
        key = str(keyword).strip().upper()
        if key.startswith('I'):
            return cls.INSIDE
        if key.startswith('O'):
            return cls.OUTSIDE
        if key.startswith('T'):
            return cls.TOTAL
        raise ValueError(f"Unknown zone {keyword!r}; expected IN, OUT or TOTAL.")


@dataclass(frozen=True)
class ZoneSelector:
    """
    A zone together with the mask slot it refers to.

    Parameters
    ----------
    zone : Zone
        Inside, outside or total.
    mask_slot : int or None
        Mask slot for ``INSIDE``/``OUTSIDE``; ignored (and stored as None)
        for ``TOTAL``.
    """

    zone: Zone
    mask_slot: int | None = None

    def __post_init__(self):
        if self.zone is Zone.TOTAL:
            object.__setattr__(self, 'mask_slot', None)
        elif self.mask_slot is None:
            raise ValueError(f"Zone {self.zone.name} needs a mask slot.")

    @classmethod
    def inside(cls, mask_slot: int) -> ZoneSelector:
        return cls(Zone.INSIDE, mask_slot)

    @classmethod
    def outside(cls, mask_slot: int) -> ZoneSelector:
        return cls(Zone.OUTSIDE, mask_slot)

    @classmethod
    def total(cls) -> ZoneSelector:
        return cls(Zone.TOTAL)

    @property
    def is_total(self) -> bool:
        return self.zone is Zone.TOTAL

    def select(self, masks) -> np.ndarray | None:
        """
        Boolean ``(nz, ny, nx)`` array of selected voxels, or None for
        ``TOTAL`` (meaning every voxel).

        Parameters
        ----------
        masks : SlotStore or None
            The mask store; may be None only for ``TOTAL``.
        """
        if self.is_total:
            return None
        if masks is None:
            raise ValueError(f"Zone {self.zone.name} needs a mask store, but no masks are allocated.")
        values = masks.view(self.mask_slot)
        if self.zone is Zone.INSIDE:
            return values == 1
        return values == 0


def as_selector(zone, mask: int | None = None) -> ZoneSelector:
    """
    Coerce ``zone`` into a :class:`ZoneSelector`.

    Parameters
    ----------
    zone : ZoneSelector, Zone or str
        A selector (returned unchanged), a zone, or a keyword understood by
        :meth:`Zone.from_keyword`.
    mask : int, optional
        Mask slot used when ``zone`` is not already a selector.
    """
    if isinstance(zone, ZoneSelector):
        return zone
    if not isinstance(zone, Zone):
        zone = Zone.from_keyword(zone)
    return ZoneSelector(zone, mask)

"""
Exceptions raised by the rsrf grid engine.

Every exception derives from :class:`RsrfError` and from the built-in
exception a caller would expect for the same failure, so code that only
knows about ``OSError`` or ``ValueError`` still catches them.
"""

from __future__ import annotations


class RsrfError(Exception):
    """Base class for all rsrf errors."""
    pass


class MapIOError(RsrfError, OSError):
    """Raised when a map or mask file cannot be opened, read or written."""
    pass


class DimensionMismatchError(RsrfError, ValueError):
    """
    Raised when a loaded grid does not match the reference geometry.

    Parameters
    ----------
    expected : tuple of int
        ``(nx, ny, nz)`` established by the reference map.
    found : tuple of int
        ``(nx, ny, nz)`` read from the rejected file.
    path : str, optional
        File that was rejected.
    """

    def __init__(self, expected, found, path=None):
        self.expected = tuple(expected)
        self.found = tuple(found)
        self.path = path
        where = f" in {path!r}" if path else ""
        super().__init__(
            f"Grid dimensions {self.found}{where} do not match the "
            f"reference dimensions {self.expected}."
        )


class AllocationError(RsrfError, MemoryError):
    """Raised when the map or mask store cannot be allocated."""
    pass


class DegenerateZoneError(RsrfError, ArithmeticError):
    """Raised when a zone selects no voxels, so mean and variance are undefined."""
    pass


class SlotError(RsrfError, IndexError):
    """Raised when a slot index lies outside the store capacity."""
    pass


class GeometryNotSetError(RsrfError, RuntimeError):
    """Raised when an operation needs the grid geometry before a reference map is loaded."""
    pass

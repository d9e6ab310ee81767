"""
Real-space comparison of electron-density maps.

This package provides the volumetric grid engine for comparing maps:
- Workspace: map and mask slots sharing one grid geometry
- Zone arithmetic, statistics, scaling and R factors
- Smoothing, roughness and mask shape fitting
- Coordinate transforms and spherical density integration
"""

from rsrf.version import __version__
from rsrf.cell import Convention
from rsrf.errors import (
    AllocationError,
    DegenerateZoneError,
    DimensionMismatchError,
    GeometryNotSetError,
    MapIOError,
    RsrfError,
    SlotError,
)
from rsrf.geometry import GridGeometry
from rsrf.integrate import AtomSite
from rsrf.logging_config import setup_logging
from rsrf.shape import ShapeFitResult
from rsrf.statistics import RFactorKind, RFactorReport, ZoneStatistics
from rsrf.workspace import Workspace
from rsrf.zones import Zone, ZoneSelector

__all__ = [
    "__version__",
    "Workspace",
    "GridGeometry",
    "Zone",
    "ZoneSelector",
    "ZoneStatistics",
    "RFactorKind",
    "RFactorReport",
    "ShapeFitResult",
    "AtomSite",
    "Convention",
    "setup_logging",
    "RsrfError",
    "MapIOError",
    "DimensionMismatchError",
    "AllocationError",
    "DegenerateZoneError",
    "SlotError",
    "GeometryNotSetError",
]

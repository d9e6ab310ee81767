"""
Grid geometry shared by every map and mask in a workspace.

The geometry is established once, from the header of the reference map, and
describes both the map box (``nx, ny, nz`` grid points actually stored) and
the crystallographic unit cell it samples (``cell_nx, cell_ny, cell_nz`` grid
points along edges ``a, b, c`` with angles ``alpha, beta, gamma``).
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


def metric_term(alpha: float, beta: float, gamma: float) -> float:
    """
    Return ``G = sqrt(1 - cos²α - cos²β - cos²γ + 2 cosα cosβ cosγ)``.

    ``G`` is the unit-cell volume divided by ``a*b*c``.

    Parameters
    ----------
    alpha, beta, gamma : float
        Cell angles in degrees.
    """
    ca, cb, cg = np.cos(np.radians([alpha, beta, gamma]))
    value = 1.0 - ca * ca - cb * cb - cg * cg + 2.0 * ca * cb * cg
    if value <= 0.0:
        raise ValueError(
            f"Cell angles ({alpha}, {beta}, {gamma}) do not describe a valid unit cell."
        )
    return float(np.sqrt(value))


def cell_volume(a: float, b: float, c: float, alpha: float, beta: float, gamma: float) -> float:
    """Volume of a unit cell with edges in Angstrom and angles in degrees."""
    return float(a * b * c * metric_term(alpha, beta, gamma))


@dataclass(frozen=True)
class GridGeometry:
    """
    Map box and unit-cell description.

    Parameters
    ----------
    nx, ny, nz : int
        Grid points stored along columns, rows and sections.
    cell_nx, cell_ny, cell_nz : int
        Grid points spanning one unit cell along each axis.
    a, b, c : float
        Unit-cell edge lengths (Angstrom).
    alpha, beta, gamma : float
        Unit-cell angles (degrees).
    """

    nx: int
    ny: int
    nz: int
    cell_nx: int
    cell_ny: int
    cell_nz: int
    a: float
    b: float
    c: float
    alpha: float
    beta: float
    gamma: float

    def __post_init__(self):
        if min(self.nx, self.ny, self.nz) <= 0:
            raise ValueError(
                f"Grid dimensions must be positive, got {(self.nx, self.ny, self.nz)}."
            )
        if min(self.cell_nx, self.cell_ny, self.cell_nz) <= 0:
            raise ValueError(
                "Unit-cell grid counts must be positive, got "
                f"{(self.cell_nx, self.cell_ny, self.cell_nz)}."
            )
        if min(self.a, self.b, self.c) <= 0:
            raise ValueError(
                f"Cell lengths must be positive, got {(self.a, self.b, self.c)}."
            )
        # Validates the angles
        metric_term(self.alpha, self.beta, self.gamma)

    @classmethod
    def from_header(cls, header) -> GridGeometry:
        """Build the geometry from a :class:`rsrf.codec.MapHeader`."""
        a, b, c, alpha, beta, gamma = (float(v) for v in header.cell)
        return cls(
            nx=int(header.nc), ny=int(header.nr), nz=int(header.ns),
            cell_nx=int(header.nx), cell_ny=int(header.ny), cell_nz=int(header.nz),
            a=a, b=b, c=c, alpha=alpha, beta=beta, gamma=gamma,
        )

    # ----------------------------
    # Sizes
    # ----------------------------
    @property
    def dimensions(self) -> tuple[int, int, int]:
        """``(nx, ny, nz)`` of the map box."""
        return (self.nx, self.ny, self.nz)

    @property
    def array_shape(self) -> tuple[int, int, int]:
        """Shape of one slot as held in memory: ``(nz, ny, nx)``, X fastest."""
        return (self.nz, self.ny, self.nx)

    @property
    def voxel_count(self) -> int:
        return self.nx * self.ny * self.nz

    @property
    def cell_voxel_count(self) -> int:
        return self.cell_nx * self.cell_ny * self.cell_nz

    @property
    def cell_dimensions(self) -> tuple[int, int, int]:
        return (self.cell_nx, self.cell_ny, self.cell_nz)

    @property
    def cell_parameters(self) -> tuple[float, float, float, float, float, float]:
        return (self.a, self.b, self.c, self.alpha, self.beta, self.gamma)

    def matches(self, dimensions) -> bool:
        """Return ``True`` if ``dimensions`` equals ``(nx, ny, nz)``."""
        return tuple(int(d) for d in dimensions) == self.dimensions

    # ----------------------------
    # Physical quantities
    # ----------------------------
    @property
    def spacing(self) -> tuple[float, float, float]:
        """Grid spacing along each axis in Angstrom."""
        return (self.a / self.cell_nx, self.b / self.cell_ny, self.c / self.cell_nz)

    @property
    def cell_volume(self) -> float:
        return cell_volume(*self.cell_parameters)

    @property
    def map_volume(self) -> float:
        """Volume covered by the map box (cell volume scaled by the voxel ratio)."""
        return self.cell_volume * (self.voxel_count / self.cell_voxel_count)

    @property
    def voxel_volume(self) -> float:
        return self.cell_volume / self.cell_voxel_count

    def distance(self, dx, dy, dz):
        """
        Length in Angstrom of a displacement given in grid points.

        The displacement is converted to fractional units with the unit-cell
        grid counts and measured with the cell metric, so non-orthogonal
        cells are handled correctly.

        Parameters
        ----------
        dx, dy, dz : int, float or np.ndarray
            Displacement along each axis in grid points (broadcastable).

        Returns
        -------
        float or np.ndarray
            Distance(s) in Angstrom.
        """
        fx = np.asarray(dx, dtype=float) / self.cell_nx
        fy = np.asarray(dy, dtype=float) / self.cell_ny
        fz = np.asarray(dz, dtype=float) / self.cell_nz
        ca, cb, cg = np.cos(np.radians([self.alpha, self.beta, self.gamma]))
        squared = (
            (fx * self.a) ** 2
            + (fy * self.b) ** 2
            + (fz * self.c) ** 2
            + 2.0 * fx * fy * self.a * self.b * cg
            + 2.0 * fx * fz * self.a * self.c * cb
            + 2.0 * fy * fz * self.b * self.c * ca
        )
        return np.sqrt(np.maximum(squared, 0.0))

    def describe(self) -> str:
        """Tabulate cell and map extents the way the load report shows them."""
        gx, gy, gz = self.spacing
        rows = [
            f"Grid X size      = {gx:.4f}",
            f"Grid Y size      = {gy:.4f}",
            f"Grid Z size      = {gz:.4f}",
            f"Grid volume      = {self.voxel_volume:.4f}",
            "----------------------------------------------",
            "| PARAMETER          | UNIT CELL |    MAP    |",
            "|--------------------|-----------|-----------|",
        ]
        axes = (
            ("X", self.cell_nx, self.nx, gx),
            ("Y", self.cell_ny, self.ny, gy),
            ("Z", self.cell_nz, self.nz, gz),
        )
        for axis, ncell, nmap, _ in axes:
            rows.append(f"| {axis} in Grid Units    |{ncell:11d}|{nmap:11d}|")
        for axis, ncell, nmap, step in axes:
            rows.append(f"| {axis} in Angstroms     |{ncell * step:11.4f}|{nmap * step:11.4f}|")
        rows.append(f"| Voxel number       |{self.cell_voxel_count:11d}|{self.voxel_count:11d}|")
        rows.append(f"| Volume             |{self.cell_volume:11.0f}|{self.map_volume:11.0f}|")
        rows.append("----------------------------------------------")
        return "\n".join(rows)

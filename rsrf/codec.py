"""
Reader and writer for the flat binary map/mask file format.

A file is a fixed 1024-byte header, a variable-length symmetry block whose
byte length is stored in the header, and the voxel payload in column-major
order (X fastest, then Y, then Z). Map voxels are 4-byte floats, mask voxels
single bytes.

The fixed header is described once, as a NumPy structured dtype with explicit
little-endian widths, so reading and writing are a single ``frombuffer`` /
``tobytes`` each. The density extrema (``amin``, ``amax``, ``amean``) sit in
4-byte slots that legacy writers filled through integer-sized writes; they
hold float bit patterns and are kept as 4-byte floats for compatibility.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field, replace

import numpy as np

from rsrf.errors import DimensionMismatchError, MapIOError

logger = logging.getLogger(__name__)

LABEL_LENGTH = 800
EXTRA_LENGTH = 32

#: Index into ``extra`` holding the rms deviation of the map.
RMS_INDEX = 30

MAP_DTYPE = np.dtype('<f4')
MASK_DTYPE = np.dtype('u1')

MODE_MASK = 0
MODE_MAP = 2

HEADER_DTYPE = np.dtype([
    ('nc', '<i4'),
    ('nr', '<i4'),
    ('ns', '<i4'),
    ('mode', '<i4'),
    ('ncstart', '<i4'),
    ('nrstart', '<i4'),
    ('nsstart', '<i4'),
    ('nx', '<i4'),
    ('ny', '<i4'),
    ('nz', '<i4'),
    ('cell', '<f4', (6,)),
    ('mapc', '<i4'),
    ('mapr', '<i4'),
    ('maps', '<i4'),
    # Integer-width slots holding float bit patterns
    ('amin', '<f4'),
    ('amax', '<f4'),
    ('amean', '<f4'),
    ('ispg', '<i4'),
    ('nsymbt', '<i4'),
    ('extra', '<f4', (EXTRA_LENGTH,)),
    ('label', 'u1', (LABEL_LENGTH,)),
])

HEADER_SIZE = HEADER_DTYPE.itemsize  # 1024


@dataclass
class MapHeader:
    """
    Header of a map or mask file.

    Attributes
    ----------
    nc, nr, ns : int
        Columns, rows and sections stored in the file.
    mode : int
        Storage mode (2 for float maps, 0 for byte masks).
    ncstart, nrstart, nsstart : int
        Grid index of the first column, row and section.
    nx, ny, nz : int
        Grid points spanning the unit cell.
    cell : tuple of float
        ``(a, b, c, alpha, beta, gamma)`` in Angstrom and degrees.
    mapc, mapr, maps : int
        Axis assigned to columns, rows and sections.
    amin, amax, amean : float
        Density extrema and mean.
    ispg : int
        Space-group number.
    extra : np.ndarray
        32 reserved floats; ``extra[30]`` holds the rms deviation.
    label : bytes
        800-byte free-text label block.
    symmetry : bytes
        Symmetry record text (``nsymbt`` bytes).
    """

    nc: int
    nr: int
    ns: int
    mode: int = MODE_MAP
    ncstart: int = 0
    nrstart: int = 0
    nsstart: int = 0
    nx: int = 0
    ny: int = 0
    nz: int = 0
    cell: tuple = (1.0, 1.0, 1.0, 90.0, 90.0, 90.0)
    mapc: int = 1
    mapr: int = 2
    maps: int = 3
    amin: float = 0.0
    amax: float = 0.0
    amean: float = 0.0
    ispg: int = 1
    extra: np.ndarray = field(default_factory=lambda: np.zeros(EXTRA_LENGTH, dtype=np.float32))
    label: bytes = b''
    symmetry: bytes = b''

    def __post_init__(self):
        self.cell = tuple(float(v) for v in self.cell)
        self.extra = np.array(self.extra, dtype=np.float32).reshape(EXTRA_LENGTH)
        label = bytes(self.label)
        if len(label) > LABEL_LENGTH:
            raise ValueError(f"Label is {len(label)} bytes; at most {LABEL_LENGTH} fit in the header.")
        self.label = label.ljust(LABEL_LENGTH, b'\x00')
        self.symmetry = bytes(self.symmetry)

    @property
    def dimensions(self) -> tuple[int, int, int]:
        """``(nc, nr, ns)`` as stored in the file."""
        return (int(self.nc), int(self.nr), int(self.ns))

    @property
    def nsymbt(self) -> int:
        return len(self.symmetry)

    @property
    def rms(self) -> float:
        return float(self.extra[RMS_INDEX])

    @rms.setter
    def rms(self, value: float) -> None:
        self.extra[RMS_INDEX] = value

    @property
    def label_text(self) -> str:
        """The label block decoded as text, trailing padding removed."""
        return self.label.decode('latin-1').rstrip('\x00 \n')

    def copy(self) -> MapHeader:
        return replace(self, extra=self.extra.copy())

    # ----------------------------
    # Binary conversion
    # ----------------------------
    @classmethod
    def from_bytes(cls, raw: bytes, symmetry: bytes = b'') -> MapHeader:
        """Build a header from the fixed 1024-byte block and the symmetry text."""
        if len(raw) != HEADER_SIZE:
            raise ValueError(f"Header block must be {HEADER_SIZE} bytes, got {len(raw)}.")
        rec = np.frombuffer(raw, dtype=HEADER_DTYPE)[0]
        return cls(
            nc=int(rec['nc']), nr=int(rec['nr']), ns=int(rec['ns']),
            mode=int(rec['mode']),
            ncstart=int(rec['ncstart']), nrstart=int(rec['nrstart']), nsstart=int(rec['nsstart']),
            nx=int(rec['nx']), ny=int(rec['ny']), nz=int(rec['nz']),
            cell=tuple(float(v) for v in rec['cell']),
            mapc=int(rec['mapc']), mapr=int(rec['mapr']), maps=int(rec['maps']),
            amin=float(rec['amin']), amax=float(rec['amax']), amean=float(rec['amean']),
            ispg=int(rec['ispg']),
            extra=np.array(rec['extra'], dtype=np.float32),
            label=rec['label'].tobytes(),
            symmetry=symmetry,
        )

    def to_bytes(self) -> bytes:
        """Serialise the fixed header followed by the symmetry block."""
        rec = np.zeros(1, dtype=HEADER_DTYPE)
        for name in ('nc', 'nr', 'ns', 'mode', 'ncstart', 'nrstart', 'nsstart',
                     'nx', 'ny', 'nz', 'mapc', 'mapr', 'maps',
                     'amin', 'amax', 'amean', 'ispg'):
            rec[name] = getattr(self, name)
        rec['cell'] = self.cell
        rec['nsymbt'] = self.nsymbt
        rec['extra'] = self.extra
        rec['label'] = np.frombuffer(self.label, dtype=np.uint8)
        return rec.tobytes() + self.symmetry


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def _read_exact(handle, nbytes: int, path: str, what: str) -> bytes:
    data = handle.read(nbytes)
    if len(data) != nbytes:
        raise MapIOError(
            f"{path!r} is truncated: expected {nbytes} bytes of {what}, got {len(data)}."
        )
    return data


def read_header(handle, path: str = '<stream>') -> MapHeader:
    """
    Read the fixed header and symmetry block from an open binary file.

    Raises
    ------
    MapIOError
        If the file ends inside the header or the symmetry length is negative.
    """
    raw = _read_exact(handle, HEADER_SIZE, path, "header")
    nsymbt = int(np.frombuffer(raw, dtype=HEADER_DTYPE)[0]['nsymbt'])
    if nsymbt < 0:
        raise MapIOError(f"{path!r} has a negative symmetry block length ({nsymbt}).")
    symmetry = _read_exact(handle, nsymbt, path, "symmetry records")
    return MapHeader.from_bytes(raw, symmetry)


def read_grid(
    path: str,
    dtype: np.dtype,
    expected: tuple[int, int, int] | None = None,
) -> tuple[MapHeader, np.ndarray]:
    """
    Read a header and voxel payload from ``path``.

    Parameters
    ----------
    path : str
        File to read.
    dtype : np.dtype
        Voxel type on disk (``MAP_DTYPE`` or ``MASK_DTYPE``).
    expected : tuple of int, optional
        Required ``(nx, ny, nz)``. Checked after the header and before the
        payload is read.

    Returns
    -------
    header : MapHeader
    data : np.ndarray
        Payload reshaped to ``(nz, ny, nx)`` (X fastest), a fresh array.

    Raises
    ------
    MapIOError
        If the file cannot be opened or is truncated.
    DimensionMismatchError
        If ``expected`` is given and the header dimensions differ.
    """
    try:
        handle = open(path, 'rb')
    except OSError as e:
        raise MapIOError(f"Cannot open {path!r}: {e.strerror or e}") from e

    with handle:
        header = read_header(handle, path)
        if expected is not None and header.dimensions != tuple(expected):
            raise DimensionMismatchError(expected, header.dimensions, path)
        nc, nr, ns = header.dimensions
        if min(nc, nr, ns) <= 0:
            raise MapIOError(f"{path!r} declares non-positive dimensions {header.dimensions}.")
        count = nc * nr * ns
        payload = _read_exact(handle, count * dtype.itemsize, path, "voxel data")

    data = np.frombuffer(payload, dtype=dtype).reshape(ns, nr, nc).copy()
    return header, data


def read_map(path: str, expected: tuple[int, int, int] | None = None) -> tuple[MapHeader, np.ndarray]:
    """Read a float map file; see :func:`read_grid`."""
    header, data = read_grid(path, MAP_DTYPE, expected)
    return header, data.astype(np.float32, copy=False)


def read_mask(path: str, expected: tuple[int, int, int] | None = None) -> tuple[MapHeader, np.ndarray]:
    """
    Read a byte mask file; see :func:`read_grid`.

    Voxels other than 0 or 1 are set to 1 so the mask stays binary.
    """
    header, data = read_grid(path, MASK_DTYPE, expected)
    stray = int(np.count_nonzero(data > 1))
    if stray:
        warnings.warn(
            f"{stray} voxels in mask {path!r} hold values other than 0 or 1; treating them as 1.",
            stacklevel=2,
        )
        data[data > 1] = 1
    return header, data


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def write_grid(path: str, header: MapHeader, data: np.ndarray, dtype: np.dtype) -> None:
    """
    Write ``header`` and ``data`` to ``path``.

    ``data`` must have shape ``(ns, nr, nc)`` matching the header; it is
    written in C order, which is the file's column-major voxel order.

    Raises
    ------
    MapIOError
        If the file cannot be opened or written.
    ValueError
        If the data shape does not match the header dimensions.
    """
    nc, nr, ns = header.dimensions
    if data.shape != (ns, nr, nc):
        raise ValueError(
            f"Data shape {data.shape} does not match header dimensions (ns, nr, nc) = {(ns, nr, nc)}."
        )
    payload = np.ascontiguousarray(data, dtype=dtype).tobytes()
    try:
        with open(path, 'wb') as handle:
            handle.write(header.to_bytes())
            handle.write(payload)
    except OSError as e:
        raise MapIOError(f"Cannot write {path!r}: {e.strerror or e}") from e


def write_map(path: str, header: MapHeader, data: np.ndarray) -> None:
    """Write a float map file."""
    write_grid(path, header, data, MAP_DTYPE)


def write_mask(path: str, header: MapHeader, data: np.ndarray) -> None:
    """Write a byte mask file."""
    write_grid(path, header, data, MASK_DTYPE)


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

def describe_header(header: MapHeader) -> str:
    """Multi-line summary of a header for the load report."""
    a, b, c, alpha, beta, gamma = header.cell
    lines = [
        f"Map Label:  {header.label_text}",
        f"MODE:                 {header.mode}",
        f"Columns   (X grid):   {header.nc}",
        f"Rows      (Y grid):   {header.nr}",
        f"Sections  (Z grid):   {header.ns}",
        f"First column:         {header.ncstart}",
        f"First row:            {header.nrstart}",
        f"First section:        {header.nsstart}",
        f"Axis order:           {header.mapc} {header.mapr} {header.maps}",
        f"Space group number:   {header.ispg}",
        "Unit cell:",
        f"   X (A)                 {a:.4f}",
        f"   Y (A)                 {b:.4f}",
        f"   Z (A)                 {c:.4f}",
        f"   Alpha                 {alpha:.4f}",
        f"   Beta                  {beta:.4f}",
        f"   Gamma                 {gamma:.4f}",
        f"   X Sections            {header.nx}",
        f"   Y Sections            {header.ny}",
        f"   Z Sections            {header.nz}",
        "Electron Density:",
        f"   Minimum               {header.amin:.4f}",
        f"   Maximum               {header.amax:.4f}",
        f"   Average               {header.amean:.4f}",
        f"   RMS Deviation         {header.rms:.4f}",
    ]
    return "\n".join(lines)

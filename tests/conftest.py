"""Shared fixtures for unit tests."""

import numpy as np
import pytest

from rsrf.codec import MODE_MASK, MapHeader, write_map, write_mask
from rsrf.workspace import Workspace


def make_header(nx, ny, nz, cell=(8.0, 8.0, 8.0, 90.0, 90.0, 90.0), cell_counts=None,
                mode=2, label=b'', symmetry=b''):
    """Header for an ``nx * ny * nz`` map sampling ``cell``."""
    if cell_counts is None:
        cell_counts = (nx, ny, nz)
    return MapHeader(
        nc=nx, nr=ny, ns=nz, mode=mode,
        nx=cell_counts[0], ny=cell_counts[1], nz=cell_counts[2],
        cell=cell, label=label, symmetry=symmetry,
    )


@pytest.fixture
def map_file(tmp_path):
    """Factory writing a float map file and returning its path."""
    def _write(name, data, header=None, **header_kwargs):
        data = np.asarray(data, dtype=np.float32)
        nz, ny, nx = data.shape
        if header is None:
            header = make_header(nx, ny, nz, **header_kwargs)
        path = tmp_path / name
        write_map(path, header, data)
        return str(path)
    return _write


@pytest.fixture
def mask_file(tmp_path):
    """Factory writing a byte mask file and returning its path."""
    def _write(name, data, header=None, **header_kwargs):
        data = np.asarray(data, dtype=np.uint8)
        nz, ny, nx = data.shape
        if header is None:
            header = make_header(nx, ny, nz, mode=MODE_MASK, **header_kwargs)
        path = tmp_path / name
        write_mask(path, header, data)
        return str(path)
    return _write


@pytest.fixture
def half_mask():
    """4x4x4 mask with the lower half (z < 2) set."""
    mask = np.zeros((4, 4, 4), dtype=np.uint8)
    mask[:2] = 1
    return mask


@pytest.fixture
def ramp():
    """4x4x4 map holding 1 .. 64 in file order."""
    return np.arange(1, 65, dtype=np.float32).reshape(4, 4, 4)


@pytest.fixture
def workspace(map_file, mask_file, ramp, half_mask):
    """
    Workspace on a 4x4x4 grid over an 8 A cubic cell (voxel volume 8).

    Map 0 holds ones, map 1 the ramp, mask 0 the lower half.
    """
    ws = Workspace(map_capacity=4, mask_capacity=3)
    ws.load_reference_map(map_file("ones.map", np.ones((4, 4, 4))))
    ws.load_map(map_file("ramp.map", ramp), 1)
    ws.load_mask(mask_file("half.msk", half_mask), 0)
    return ws

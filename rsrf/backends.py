"""
Backend configuration for rsrf.

This module provides unified backend selection for the per-voxel grid loops
(smoothing passes, roughness, shape fitting).

The backend can be configured via the RSRF_BACKEND environment variable:
- 'numba': JIT-compiled implementations (default, requires numba)
- 'numpy': Pure NumPy/SciPy implementations

An optional ceiling on the memory used by the map and mask stores can be set
via RSRF_MAX_STORE_BYTES (unset or empty means no ceiling).

Example
-------
>>> import os
>>> os.environ['RSRF_BACKEND'] = 'numpy'  # Before importing rsrf
>>> os.environ['RSRF_MAX_STORE_BYTES'] = str(2 * 1024**3)
"""

from __future__ import annotations

import os

BACKEND_ENV_VAR = 'RSRF_BACKEND'
AVAILABLE_BACKENDS = frozenset({'numpy', 'numba'})
DEFAULT_BACKEND = 'numba'

MAX_STORE_BYTES_ENV_VAR = 'RSRF_MAX_STORE_BYTES'


def _resolve_backend() -> str:
    """Resolve and validate backend from environment variable.

    Called once at module import time to ensure the backend is valid.

    Returns
    -------
    str
        Validated backend name ('numpy' or 'numba').

    Raises
    ------
    ValueError
        If the environment variable contains an invalid backend name.
    """
    value = os.environ.get(BACKEND_ENV_VAR, DEFAULT_BACKEND).lower().strip()
    if not value:
        return DEFAULT_BACKEND
    if value not in AVAILABLE_BACKENDS:
        raise ValueError(
            f"Invalid RSRF_BACKEND '{value}'. "
            f"Must be one of: {', '.join(sorted(AVAILABLE_BACKENDS))}"
        )
    return value


def _resolve_max_store_bytes() -> int | None:
    """Resolve the store memory ceiling from environment variable.

    Returns
    -------
    int or None
        Maximum number of bytes a single store may allocate, or None
        for no ceiling.

    Raises
    ------
    ValueError
        If the environment variable is not a positive integer.
    """
    value = os.environ.get(MAX_STORE_BYTES_ENV_VAR, '').strip()
    if not value:
        return None
    try:
        limit = int(value)
    except ValueError:
        raise ValueError(
            f"Invalid {MAX_STORE_BYTES_ENV_VAR} '{value}'. Must be an integer."
        )
    if limit <= 0:
        raise ValueError(
            f"Invalid {MAX_STORE_BYTES_ENV_VAR} '{value}'. Must be positive."
        )
    return limit


BACKEND = _resolve_backend()
MAX_STORE_BYTES = _resolve_max_store_bytes()


def get_backend() -> str:
    """
    Get the current backend.

    Returns
    -------
    str
        Backend name ('numpy' or 'numba').
    """
    return BACKEND


def get_max_store_bytes() -> int | None:
    """
    Get the configured store memory ceiling.

    Returns
    -------
    int or None
        Byte ceiling for one store allocation, or None when unlimited.
    """
    return MAX_STORE_BYTES

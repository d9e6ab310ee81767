"""
Smoothing and roughness filters over whole maps.

Both filters treat the map as periodic: neighbourhoods that run past a face
of the grid wrap around to the opposite face.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np

from rsrf.grid_helpers import AXIS_X, AXIS_Y, AXIS_Z, get_backend_functions
from rsrf.store import GENERATED_NAME

logger = logging.getLogger(__name__)

#: Largest roughness radius accepted; larger requests are reduced to it.
MAX_ROUGHNESS_RADIUS = 10


def taper_weights(radius: int) -> np.ndarray:
    """
    Linear taper used by :func:`smear`.

    ``w[d] = (N - d) / S`` for ``d = 0 .. N-1`` with ``S = N + 2 * sum(1 .. N-1)``.

    Parameters
    ----------
    radius : int
        ``N``, the number of weights (at least 1).

    Returns
    -------
    np.ndarray
        The ``N`` weights, float64.

    Raises
    ------
    ValueError
        If ``radius`` is smaller than 1.
    """
    radius = int(radius)
    if radius < 1:
        raise ValueError(f"Smear radius must be at least 1, got {radius}.")
    norm = radius + 2 * sum(range(1, radius))
    return (radius - np.arange(radius)) / float(norm)


def smear(
    ws,
    src: int,
    dst: int,
    scratch: int,
    radius: int,
    backend: str | None = None,
) -> np.ndarray:
    """
    Smooth map ``src`` into map ``dst`` by three separable passes.

    Each pass (X, then Y, then Z) spreads every voxel over its neighbours
    within ``radius - 1`` voxels along one axis with :func:`taper_weights`.
    A pass accumulates into ``scratch`` and the result becomes the input of
    the next pass. ``scratch`` is left zeroed; ``src`` may equal ``dst``.

    Parameters
    ----------
    ws : Workspace
    src, dst, scratch : int
        Map slots.
    radius : int
        Taper length ``N`` (at least 1).
    backend : str, optional
        'numpy' or 'numba'; defaults to the configured backend.

    Returns
    -------
    np.ndarray
        The weight table used.

    Raises
    ------
    ValueError
        If ``radius`` is below 1 or ``scratch`` is ``src`` or ``dst``.
    """
    weights = taper_weights(radius)
    if scratch in (src, dst):
        raise ValueError(f"Scratch map {scratch} must differ from maps {src} and {dst}.")
    smear_pass, _, _ = get_backend_functions(backend)

    logger.info("Pixel multiplication table:")
    for d, w in enumerate(weights):
        logger.info("  %d\t%.6f", d, w)

    target = ws.map_view(dst)
    work = ws.map_view(scratch)
    target[...] = ws.map_view(src)

    for name, axis in (('X', AXIS_X), ('Y', AXIS_Y), ('Z', AXIS_Z)):
        logger.info("Smoothing map %d in %s direction", src, name)
        work[...] = 0
        smear_pass(target, work, weights, axis)
        target[...] = work

    work[...] = 0
    ws.maps.touch(dst, GENERATED_NAME)
    ws.maps.touch(scratch)
    return weights


def roughness(
    ws,
    src: int,
    dst: int,
    radius: int,
    backend: str | None = None,
) -> tuple[float, float]:
    """
    Local roughness of map ``src``, written to map ``dst``.

    For every voxel the values within Euclidean pixel distance ``radius``
    are gathered and the square root of their summed squared deviation from
    their mean is stored.

    Parameters
    ----------
    ws : Workspace
    src, dst : int
        Map slots; they must differ.
    radius : int
        Neighbourhood radius in voxels, 1 to 10. Larger values are reduced
        to 10 with a warning.
    backend : str, optional
        'numpy' or 'numba'; defaults to the configured backend.

    Returns
    -------
    tuple[float, float]
        Smallest and largest roughness computed.

    Raises
    ------
    ValueError
        If ``radius`` is below 1 or ``src`` equals ``dst``.
    """
    radius = int(radius)
    if radius < 1:
        raise ValueError(f"Roughness radius must be at least 1, got {radius}.")
    if radius > MAX_ROUGHNESS_RADIUS:
        warnings.warn(
            f"Roughness radius {radius} reduced to {MAX_ROUGHNESS_RADIUS}.",
            stacklevel=2,
        )
        radius = MAX_ROUGHNESS_RADIUS
    if src == dst:
        raise ValueError("Roughness needs distinct source and destination maps.")
    _, roughness_filter, _ = get_backend_functions(backend)

    logger.info("Calculating roughness of map %d radius %d to map %d", src, radius, dst)
    source = ws.map_view(src)
    target = ws.map_view(dst)
    roughness_filter(source, target, radius)
    ws.maps.touch(dst, GENERATED_NAME)

    low, high = float(target.min()), float(target.max())
    logger.info("Roughness values between %g and %g from map %d saved to map %d", low, high, src, dst)
    return low, high

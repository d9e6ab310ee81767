"""
Shape fitting: grow a mask down the density slope of a map.

Starting from a seed mask, every interior mask voxel looks at its 3x3x3
block and claims the lowest-valued neighbour outside the mask, provided it
lies clearly below its own value. Voxels whose block holds too few mask
voxels are constrictions and do not grow. The newly claimed voxels join the
mask for the next cycle; the fitter always runs the requested number of
cycles.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field

import numpy as np
from tqdm import tqdm

from rsrf.grid_helpers import get_backend_functions
from rsrf.store import GENERATED_NAME

logger = logging.getLogger(__name__)

#: Largest number of cycles accepted; larger requests are reduced to it.
MAX_SHAPE_CYCLES = 100


@dataclass
class ShapeFitResult:
    """
    Counts reported by :func:`shape_fit`.

    Attributes
    ----------
    grown : list of int
        Growth events per cycle (a voxel may be claimed more than once).
    added : list of int
        Voxels newly added to the mask per cycle.
    constrictions : list of int
        Constrictions per cycle.
    """

    grown: list[int] = field(default_factory=list)
    added: list[int] = field(default_factory=list)
    constrictions: list[int] = field(default_factory=list)

    @property
    def cycles(self) -> int:
        return len(self.grown)

    @property
    def total_grown(self) -> int:
        return sum(self.grown)

    @property
    def total_added(self) -> int:
        return sum(self.added)

    @property
    def total_constrictions(self) -> int:
        return sum(self.constrictions)


def shape_fit(
    ws,
    seed: int,
    dst: int,
    scratch: int,
    map_slot: int,
    min_dif: float,
    n_cycles: int,
    min_connect: int,
    backend: str | None = None,
    progress: bool = False,
) -> ShapeFitResult:
    """
    Grow mask ``seed`` into mask ``dst`` following map ``map_slot``.

    Parameters
    ----------
    ws : Workspace
    seed : int
        Mask slot to start from; left unchanged unless it is ``dst``.
    dst : int
        Mask slot receiving the result.
    scratch : int
        Mask slot collecting claimed voxels; ends equal to ``dst``.
    map_slot : int
        Map whose values guide the growth.
    min_dif : float
        A neighbour is claimed only if its value is below the centre value
        minus ``min_dif``.
    n_cycles : int
        Number of cycles to run, at most 100. Larger values are reduced to
        100 with a warning.
    min_connect : int
        Minimum number of mask voxels in a 3x3x3 block for its centre to grow.
    backend : str, optional
        'numpy' or 'numba'; defaults to the configured backend.
    progress : bool, optional
        Show a progress bar over the cycles (default: False).

    Returns
    -------
    ShapeFitResult

    Raises
    ------
    ValueError
        If ``n_cycles`` is negative or ``dst`` and ``scratch`` coincide.
    """
    n_cycles = int(n_cycles)
    if n_cycles < 0:
        raise ValueError(f"Number of cycles must not be negative, got {n_cycles}.")
    if n_cycles > MAX_SHAPE_CYCLES:
        warnings.warn(
            f"Shape fitting limited to {MAX_SHAPE_CYCLES} cycles ({n_cycles} requested).",
            stacklevel=2,
        )
        n_cycles = MAX_SHAPE_CYCLES
    if dst == scratch:
        raise ValueError("Shape fitting needs distinct output and scratch masks.")
    _, _, shape_cycle = get_backend_functions(backend)

    values = ws.map_view(map_slot)
    mask = ws.mask_view(dst)
    marks = ws.mask_view(scratch)
    logger.info("Making mask copy and setting temporary location.")
    ws.copy_mask(seed, dst)
    ws.copy_mask(seed, scratch)

    result = ShapeFitResult()
    for cycle in tqdm(range(n_cycles), disable=not progress):
        before = int(np.count_nonzero(mask))
        grown, constrictions = shape_cycle(mask, values, marks, min_dif, min_connect)
        mask[...] = marks
        added = int(np.count_nonzero(mask)) - before

        result.grown.append(grown)
        result.added.append(added)
        result.constrictions.append(constrictions)
        logger.info(
            "Expanding mask %d cycle %d: %d pixels changed, %d new, %d constrictions pinched",
            seed, cycle, grown, added, constrictions,
        )

    ws.masks.touch(dst, GENERATED_NAME)
    ws.masks.touch(scratch, GENERATED_NAME)
    logger.info(
        "Total pixels changed: %d, total constrictions pinched: %d",
        result.total_grown, result.total_constrictions,
    )
    return result

"""
Statistics of map voxels inside, outside or regardless of a mask.

Per-(slot, zone) statistics are cached on the workspace and recomputed
whenever the map slot or the selecting mask slot has been modified since.
Statistics over the ``TOTAL`` zone are also written back into the slot's
header (``amin``, ``amax``, ``amean`` and the rms word), which is what a
later write of that map carries.

On top of the plain statistics this module provides the map comparison
operations: scaling one map to another, real-space R factors and a search
for the scale factor minimising the difference between two maps.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import IntEnum

import numpy as np

from rsrf.arithmetic import copy_map, scale
from rsrf.errors import DegenerateZoneError
from rsrf.store import GENERATED_NAME
from rsrf.zones import ZoneSelector, as_selector

logger = logging.getLogger(__name__)

#: Coarse and fine search of :func:`minimize_difference`.
COARSE_START = 0.50
COARSE_STEP = 1.10
FINE_OFFSET = 0.45
FINE_STEP = 1.02
SEARCH_STEPS = 11


@dataclass(frozen=True)
class ZoneStatistics:
    """
    Statistics of one map over one zone.

    Attributes
    ----------
    maximum, minimum : float
        Extreme voxel values.
    sum : float
        Sum of the voxel values.
    count : int
        Number of voxels in the zone.
    mean : float
        ``sum / count``.
    total : float
        Integrated density, ``sum`` times the voxel volume.
    variance : float
        ``(1/count) * sum((v - mean)**2)``.
    rms : float
        Square root of ``variance``.
    """

    maximum: float
    minimum: float
    sum: float
    count: int
    mean: float
    total: float
    variance: float
    rms: float


def _compute(ws, slot: int, selector: ZoneSelector) -> ZoneStatistics:
    data = ws.map_view(slot)
    selected = selector.select(ws.masks)
    values = data.reshape(-1) if selected is None else data[selected]
    count = int(values.size)
    if count == 0:
        raise DegenerateZoneError(
            f"Zone {selector.zone.name} of mask {selector.mask_slot} selects no voxels of map {slot}."
        )

    values = values.astype(np.float64)
    total_sum = float(values.sum())
    mean = total_sum / count
    variance = float(np.mean((values - mean) ** 2))
    return ZoneStatistics(
        maximum=float(values.max()),
        minimum=float(values.min()),
        sum=total_sum,
        count=count,
        mean=mean,
        total=total_sum * ws.geometry.voxel_volume,
        variance=variance,
        rms=math.sqrt(variance),
    )


def _cached(ws, slot: int, selector: ZoneSelector) -> ZoneStatistics:
    ws.require_geometry()
    slot = ws.maps.check(slot)
    mask_generation = None
    if not selector.is_total:
        mask_generation = ws.masks.generation(selector.mask_slot)
    stamp = (ws.maps.generation(slot), mask_generation)

    key = (slot, selector)
    hit = ws._stats_cache.get(key)
    if hit is not None and hit[0] == stamp:
        return hit[1]

    stats = _compute(ws, slot, selector)
    ws._stats_cache[key] = (stamp, stats)
    logger.debug("Statistics of map %d over %s: %s", slot, selector, stats)
    return stats


def _write_parameters(ws, slot: int, stats: ZoneStatistics) -> None:
    header = ws.maps.headers[slot]
    if header is not None:
        header.amax = stats.maximum
        header.amin = stats.minimum
        header.amean = stats.mean


def _write_rms(ws, slot: int, stats: ZoneStatistics) -> None:
    header = ws.maps.headers[slot]
    if header is not None:
        header.rms = stats.rms


def find_parms(ws, slot: int, zone, mask: int | None = None) -> float:
    """
    Extrema, sum, count, mean and integrated total of map ``slot``.

    Over the ``TOTAL`` zone the header extrema and mean are updated.

    Returns
    -------
    float
        The mean; the other values are available through :func:`statistics`.

    Raises
    ------
    DegenerateZoneError
        If the zone selects no voxels.
    """
    selector = as_selector(zone, mask)
    stats = _cached(ws, slot, selector)
    if selector.is_total:
        _write_parameters(ws, slot, stats)
    return stats.mean


def find_rms(ws, slot: int, zone, mask: int | None = None) -> float:
    """
    Root-mean-square deviation of map ``slot`` from its zone mean.

    Over the ``TOTAL`` zone the header rms word is updated.

    Raises
    ------
    DegenerateZoneError
        If the zone selects no voxels.
    """
    selector = as_selector(zone, mask)
    stats = _cached(ws, slot, selector)
    if selector.is_total:
        _write_rms(ws, slot, stats)
    return stats.rms


def statistics(ws, slot: int, zone, mask: int | None = None) -> ZoneStatistics:
    """
    All statistics of map ``slot`` over a zone.

    Raises
    ------
    DegenerateZoneError
        If the zone selects no voxels.
    """
    selector = as_selector(zone, mask)
    stats = _cached(ws, slot, selector)
    if selector.is_total:
        _write_parameters(ws, slot, stats)
        _write_rms(ws, slot, stats)
    return stats


def scale_to(ws, slot: int, reference: int, zone, mask: int | None = None) -> float:
    """
    Scale map ``slot`` so its zone mean matches that of map ``reference``.

    The zone only decides where the means are measured; the whole map is
    multiplied by the factor.

    Returns
    -------
    float
        The factor ``mean(reference) / mean(slot)``.

    Raises
    ------
    DegenerateZoneError
        If the zone is empty or the mean of ``slot`` is zero.
    """
    selector = as_selector(zone, mask)
    mean_slot = find_parms(ws, slot, selector)
    mean_reference = find_parms(ws, reference, selector)
    logger.info("Average for map %d is %g", slot, mean_slot)
    logger.info("Average for map %d is %g", reference, mean_reference)
    if mean_slot == 0.0:
        raise DegenerateZoneError(f"Map {slot} has zero mean over {selector}; it cannot be scaled.")

    factor = mean_reference / mean_slot
    ws.map_view(slot)[...] *= factor
    ws.maps.touch(slot, GENERATED_NAME)
    logger.info("Map %d scaled by %g", slot, factor)
    return factor


# ----------------------------
# R factors
# ----------------------------

class RFactorKind(IntEnum):
    """Normalisation of the average voxel difference between two maps."""

    AVERAGE_DIFFERENCE = 0
    BY_MEAN_A = 1
    BY_MEAN_B = 2
    BY_MEAN_AVERAGE = 3
    BY_RMS_A = 4
    BY_RMS_B = 5
    BY_RMS_AVERAGE = 6


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0.0:
        return math.nan
    return numerator / denominator


@dataclass(frozen=True)
class RFactorReport:
    """
    Comparison of two maps over a zone.

    ``value`` is the R factor of the requested ``kind``; every other
    normalisation is available through :meth:`normalised`.
    """

    difference_sum: float
    count: int
    mean_a: float
    mean_b: float
    rms_a: float
    rms_b: float
    kind: RFactorKind = RFactorKind.AVERAGE_DIFFERENCE

    @property
    def average_difference(self) -> float:
        return self.difference_sum / self.count

    def normalised(self, kind: RFactorKind) -> float:
        kind = RFactorKind(kind)
        avg = self.average_difference
        if kind is RFactorKind.BY_MEAN_A:
            return _ratio(avg, self.mean_a)
        if kind is RFactorKind.BY_MEAN_B:
            return _ratio(avg, self.mean_b)
        if kind is RFactorKind.BY_MEAN_AVERAGE:
            return _ratio(avg, (self.mean_a + self.mean_b) / 2.0)
        if kind is RFactorKind.BY_RMS_A:
            return _ratio(avg, self.rms_a)
        if kind is RFactorKind.BY_RMS_B:
            return _ratio(avg, self.rms_b)
        if kind is RFactorKind.BY_RMS_AVERAGE:
            return _ratio(avg, (self.rms_a + self.rms_b) / 2.0)
        return avg

    @property
    def value(self) -> float:
        return self.normalised(self.kind)

    def describe(self) -> str:
        rows = [
            ("Average density for map 1", self.mean_a),
            ("Average density for map 2", self.mean_b),
            ("RMS value for map 1", self.rms_a),
            ("RMS value for map 2", self.rms_b),
            ("Sum of map pixel differences", self.difference_sum),
            ("Number of pixels in zone", self.count),
            ("Average difference per pixel", self.average_difference),
            ("Avg diff / Map 1 average", self.normalised(RFactorKind.BY_MEAN_A)),
            ("Avg diff / Map 2 average", self.normalised(RFactorKind.BY_MEAN_B)),
            ("Avg diff / ((Avg1 + Avg2)/2)", self.normalised(RFactorKind.BY_MEAN_AVERAGE)),
            ("Avg diff / Map 1 RMS", self.normalised(RFactorKind.BY_RMS_A)),
            ("Avg diff / Map 2 RMS", self.normalised(RFactorKind.BY_RMS_B)),
            ("Avg diff / ((RMS1 + RMS2)/2)", self.normalised(RFactorKind.BY_RMS_AVERAGE)),
        ]
        rule = "-" * 47
        lines = [rule]
        lines.extend(f"| {label:<28} | {value:>12.6g} |" for label, value in rows)
        lines.append(rule)
        return "\n".join(lines)


def _difference_sum(ws, a: int, b: int, selector: ZoneSelector) -> tuple[float, int]:
    first = ws.map_view(a)
    second = ws.map_view(b)
    selected = selector.select(ws.masks)
    if selected is None:
        diff = first.astype(np.float64) - second
    else:
        diff = first[selected].astype(np.float64) - second[selected]
    if diff.size == 0:
        raise DegenerateZoneError(f"Zone {selector} selects no voxels of maps {a} and {b}.")
    return float(np.abs(diff).sum()), int(diff.size)


def r_factor(
    ws,
    a: int,
    b: int,
    zone,
    mask: int | None = None,
    kind: RFactorKind = RFactorKind.AVERAGE_DIFFERENCE,
) -> RFactorReport:
    """
    Real-space R factor between maps ``a`` and ``b`` over a zone.

    Parameters
    ----------
    ws : Workspace
    a, b : int
        Map slots to compare.
    zone : ZoneSelector, Zone or str
        Where to compare them.
    mask : int, optional
        Mask slot when ``zone`` is not a selector.
    kind : RFactorKind, optional
        Which normalisation ``report.value`` returns.

    Returns
    -------
    RFactorReport

    Raises
    ------
    DegenerateZoneError
        If the zone selects no voxels.
    """
    selector = as_selector(zone, mask)
    difference, count = _difference_sum(ws, a, b, selector)
    report = RFactorReport(
        difference_sum=difference,
        count=count,
        mean_a=find_parms(ws, a, selector),
        mean_b=find_parms(ws, b, selector),
        rms_a=find_rms(ws, a, selector),
        rms_b=find_rms(ws, b, selector),
        kind=RFactorKind(kind),
    )
    logger.info("R factor of maps %d and %d:\n%s", a, b, report.describe())
    return report


def minimize_difference(
    ws,
    slot: int,
    reference: int,
    scratch: int,
    zone,
    mask: int | None = None,
) -> float:
    """
    Find the factor for map ``slot`` that minimises its average difference
    from map ``reference`` over a zone.

    A coarse search multiplies a copy of ``slot`` (in ``scratch``) from 0.5
    upward in eleven steps of 10%; a fine search restarts just below the best
    coarse factor and takes eleven steps of 2%. Neither map is modified.

    Returns
    -------
    float
        The best factor found.

    Raises
    ------
    ValueError
        If ``scratch`` is one of the compared maps.
    DegenerateZoneError
        If the zone selects no voxels.
    """
    if scratch in (slot, reference):
        raise ValueError(f"Scratch map {scratch} must differ from maps {slot} and {reference}.")
    selector = as_selector(zone, mask)

    def search(start: float, step: float) -> int:
        copy_map(ws, slot, scratch)
        scale(ws, scratch, selector, start)
        best, best_step = math.inf, 0
        for n in range(SEARCH_STEPS):
            difference, count = _difference_sum(ws, scratch, reference, selector)
            if difference / count < best:
                best, best_step = difference / count, n
            scale(ws, scratch, selector, step)
        return best_step

    coarse = search(COARSE_START, COARSE_STEP)
    start = FINE_OFFSET * COARSE_STEP ** coarse
    fine = search(start, FINE_STEP)
    factor = start * FINE_STEP ** fine
    logger.info("Difference minimised when map %d is multiplied by %.6g", slot, factor)
    return factor

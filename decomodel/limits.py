"""
Bühlmann M-values, gradient factors and ceilings.

M-value:          M(P) = a + P/b
GF-adjusted:      M_gf(P) = P + gf * (M(P) - P)
Ceiling (solved): P_ceil = b * (P_tissue - gf * a) / (b * (1 - gf) + gf)

All functions are pure (no side effects) for safe use in parallel execution paths.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .compartments import Compartment, CompartmentTable, get_active_table
from .pressure import (
    SURFACE_PRESSURE,
    alveolar_pressure,
    ambient_pressure,
    depth_from_pressure,
)
from .walker import CalculationResult

# Standard stop spacing in meters
STOP_INCREMENT = 3.0

# Ceiling depths within this distance (m) of a stop depth are not rounded up
DEPTH_TOLERANCE = 1e-9

NDL_CAP = 999.0


@dataclass(frozen=True)
class GradientFactors:
    """Gradient factor pair for Bühlmann decompression adjustments.

    gf_low:  applied at the deepest ceiling (first stop), controls first stop depth
    gf_high: applied at the surface, controls final ascent and NDL
    Values are fractions (0.0–1.0), where 1.0 = use full M-value (standard Bühlmann).
    A reversed pair (gf_low > gf_high) is unusual but valid.
    """
    gf_low: float
    gf_high: float

    def __post_init__(self):
        if not (0.0 < self.gf_low <= 1.0):
            raise ValueError(f"gf_low must be in (0, 1.0], got {self.gf_low}")
        if not (0.0 < self.gf_high <= 1.0):
            raise ValueError(f"gf_high must be in (0, 1.0], got {self.gf_high}")

    @classmethod
    def from_percent(cls, gf_low: float, gf_high: float) -> "GradientFactors":
        return cls(gf_low=gf_low / 100.0, gf_high=gf_high / 100.0)

    @property
    def is_standard(self) -> bool:
        """True if GF 100/100 (no adjustment)."""
        return self.gf_low == 1.0 and self.gf_high == 1.0

    def label(self) -> str:
        return f"GF {round(self.gf_low * 100)}/{round(self.gf_high * 100)}"


GF_DEFAULT = GradientFactors(gf_low=1.0, gf_high=1.0)


def m_value(ambient: float, a: float, b: float) -> float:
    """Maximum tolerable tissue pressure at an ambient pressure."""
    return a + ambient / b


def adjusted_m_value(ambient: float, a: float, b: float, gf: float) -> float:
    """GF-adjusted M-value: ambient at gf=0, raw M-value at gf=1."""
    return ambient + gf * (m_value(ambient, a, b) - ambient)


def compartment_ceiling(tissue_pressure: float, a: float, b: float, gf: float) -> float:
    """Lowest ambient pressure at which the tissue stays within M_gf.

    Inverse of adjusted_m_value. Returns 0.0 for a degenerate denominator.
    """
    denominator = b * (1.0 - gf) + gf
    if denominator <= 0:
        return 0.0
    return b * (tissue_pressure - gf * a) / denominator


@dataclass(frozen=True)
class DiveCeiling:
    """Whole-dive ceiling at one instant."""
    ceiling: float  # bar, never below surface pressure
    ceiling_depth: float  # meters, never negative
    controlling_compartment: int  # id of the compartment with the deepest ceiling


def compartment_ceilings(
    tissue_pressures: Sequence[float],
    gf: float,
    table: CompartmentTable,
) -> np.ndarray:
    """compartment_ceiling() for every compartment of a table at once.

    Compartments with a degenerate denominator get 0.0, as in the scalar form.
    """
    p = np.asarray(tissue_pressures, dtype=float)
    denominator = table.b * (1.0 - gf) + gf
    valid = denominator > 0
    safe = np.where(valid, denominator, 1.0)
    return np.where(valid, table.b * (p - gf * table.a) / safe, 0.0)


def dive_ceiling(
    tissue_pressures: Sequence[float],
    gf: float,
    table: Optional[CompartmentTable] = None,
) -> DiveCeiling:
    """Ceiling over all compartments (max), clamped to the surface."""
    table = table if table is not None else get_active_table()
    ceilings = compartment_ceilings(tissue_pressures, gf, table)
    idx = int(np.argmax(ceilings))
    ceiling = max(float(ceilings[idx]), SURFACE_PRESSURE)
    return DiveCeiling(
        ceiling=ceiling,
        ceiling_depth=depth_from_pressure(ceiling),
        controlling_compartment=table.compartments[idx].id,
    )


def interpolate_gf(
    current_ambient: float,
    first_stop_ambient: float,
    gf_low: float,
    gf_high: float,
) -> float:
    """Gradient factor at an ambient pressure.

    gf_low at or below the first stop, gf_high at or above the surface, linear
    in ambient pressure in between. The first stop wins where the two meet,
    so without a stop below the surface gf_low applies at every depth.
    """
    if current_ambient >= first_stop_ambient:
        return gf_low
    if first_stop_ambient <= SURFACE_PRESSURE or current_ambient <= SURFACE_PRESSURE:
        return gf_high
    fraction = (first_stop_ambient - current_ambient) / (first_stop_ambient - SURFACE_PRESSURE)
    return gf_low + fraction * (gf_high - gf_low)


@dataclass(frozen=True)
class FirstStop:
    depth: float  # meters, multiple of the stop increment
    ambient_pressure: float
    controlling_compartment: int


def first_stop_depth(
    tissue_pressures: Sequence[float],
    gf_low: float,
    stop_increment: float = STOP_INCREMENT,
    table: Optional[CompartmentTable] = None,
) -> FirstStop:
    """First stop: ceiling at gf_low rounded up to the next stop increment."""
    if stop_increment <= 0:
        raise ValueError(f"stop_increment must be positive, got {stop_increment}")
    ceil = dive_ceiling(tissue_pressures, gf_low, table)
    stops = math.ceil(ceil.ceiling_depth / stop_increment - DEPTH_TOLERANCE)
    depth = max(stops, 0) * stop_increment
    return FirstStop(
        depth=depth,
        ambient_pressure=ambient_pressure(depth),
        controlling_compartment=ceil.controlling_compartment,
    )


@dataclass
class CeilingSeries:
    """Ceiling at every time point of a CalculationResult."""
    time_points: List[float]
    ceilings: List[float]
    ceiling_depths: List[float]
    controlling_compartments: List[int]
    gradient_factors: List[float]

    @property
    def max_ceiling_depth(self) -> float:
        return max(self.ceiling_depths, default=0.0)


def calculate_ceiling_time_series(
    result: CalculationResult,
    gf_low: float,
    gf_high: Optional[float] = None,
) -> CeilingSeries:
    """Ceiling curve for a calculated dive.

    With only gf_low, every point uses gf_low. With gf_high as well, the GF is
    interpolated on ambient pressure between the deepest first stop of the
    dive (at gf_low) and the surface.
    """
    table = result.table
    pressures = result.tissue_pressures

    first_stop_ambient = SURFACE_PRESSURE
    if gf_high is not None:
        for row in pressures:
            stop = first_stop_depth(row, gf_low, table=table)
            if stop.ambient_pressure > first_stop_ambient:
                first_stop_ambient = stop.ambient_pressure

    ceilings = []
    depths = []
    controlling = []
    gfs = []
    for i, row in enumerate(pressures):
        if gf_high is None:
            gf = gf_low
        else:
            gf = interpolate_gf(result.ambient_pressures[i], first_stop_ambient, gf_low, gf_high)
        c = dive_ceiling(row, gf, table)
        ceilings.append(c.ceiling)
        depths.append(c.ceiling_depth)
        controlling.append(c.controlling_compartment)
        gfs.append(gf)

    return CeilingSeries(
        time_points=list(result.time_points),
        ceilings=ceilings,
        ceiling_depths=depths,
        controlling_compartments=controlling,
        gradient_factors=gfs,
    )


@dataclass(frozen=True)
class NoDecoLimit:
    minutes: float
    controlling_compartment: Optional[int]  # None when no compartment limits the dive


def no_decompression_limit(
    tissue_pressures: Sequence[float],
    depth: float,
    n2_fraction: float,
    gf_high: float = 1.0,
    table: Optional[CompartmentTable] = None,
) -> NoDecoLimit:
    """Time at constant depth until a compartment reaches its surface M_gf.

    Uses the analytic Haldane solution:
        P(t) = P_alv + (P0 - P_alv) * exp(-kt)
    solved for P(t) = M_gf_high(P_surface). Capped at NDL_CAP minutes.
    """
    table = table if table is not None else get_active_table()
    p_alv = alveolar_pressure(ambient_pressure(depth), n2_fraction)
    p_tissue = np.asarray(tissue_pressures, dtype=float)

    min_ndl = NDL_CAP
    controlling = None
    for c, comp in enumerate(table.compartments):
        m_target = adjusted_m_value(SURFACE_PRESSURE, comp.a_n2, comp.b_n2, gf_high)

        if p_tissue[c] >= m_target:
            # Already exceeded
            return NoDecoLimit(minutes=0.0, controlling_compartment=comp.id)

        if p_alv <= m_target:
            # This compartment never exceeds at this depth
            continue

        ratio = (m_target - p_alv) / (p_tissue[c] - p_alv)
        if ratio <= 0:
            return NoDecoLimit(minutes=0.0, controlling_compartment=comp.id)
        t = -math.log(ratio) / table.k[c]
        if t < min_ndl:
            min_ndl = t
            controlling = comp.id

    return NoDecoLimit(minutes=min(min_ndl, NDL_CAP), controlling_compartment=controlling)


def m_value_line(
    compartment: Compartment,
    ambient_pressures: Sequence[float],
    gf: float = 1.0,
) -> np.ndarray:
    """M-value (or M_gf) line of one compartment over a range of ambient pressures."""
    p = np.asarray(ambient_pressures, dtype=float)
    return p + gf * (compartment.a_n2 + p / compartment.b_n2 - p)

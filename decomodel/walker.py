"""
Tissue loading along a dive profile.

Walks a piecewise-linear, possibly multi-gas profile on a fixed time grid
(10 s by default) and integrates all 16 compartments with the Haldane or
Schreiner solution at every step. Steps are shortened so that every waypoint
time and the end of the dive is an exact grid point: a step therefore never
spans a change of depth rate or a gas switch.

After the last waypoint the diver stays at the surface for the requested
surface interval.
"""

import bisect
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .compartments import CompartmentTable, get_active_table
from .gases import AIR, Gas, GasSwitch
from .perfusion import integrate_step
from .pressure import alveolar_pressure, ambient_pressure, initial_tissue_pressure
from .profile import (
    check_profile,
    coerce_waypoints,
    depth_at,
    gas_at,
    resolve_gas_schedule,
)

logger = logging.getLogger(__name__)

# Calculation interval in seconds
CALC_INTERVAL = 10

DEFAULT_STEP_MINUTES = CALC_INTERVAL / 60.0
DEFAULT_SURFACE_INTERVAL = 60.0

# Grid points closer than this (minutes) to a breakpoint snap onto it
TIME_EPSILON = 1e-9


def step_fraction(fraction_start: float, fraction_end: float) -> float:
    """Inert gas fraction used across one step: mean of both endpoints.

    Steps end on every waypoint, so both endpoints normally see the same gas.
    The fractions only differ for a step that straddles a gas switch.
    """
    return (fraction_start + fraction_end) / 2.0


@dataclass
class CalculationResult:
    """Aligned time series produced by a profile walk.

    Every list has one entry per time point; tissue_pressures has shape
    (n_points, n_compartments) in table order.
    """
    time_points: List[float]
    depth_points: List[float]
    ambient_pressures: List[float]
    alveolar_n2_pressures: List[float]
    gas_names: List[str]
    tissue_pressures: np.ndarray
    table: CompartmentTable
    gas_switches: List[GasSwitch] = field(default_factory=list)
    dive_end_time: float = 0.0
    surface_interval: float = 0.0

    def __len__(self) -> int:
        return len(self.time_points)

    @property
    def total_time(self) -> float:
        return self.dive_end_time + self.surface_interval

    def compartment_pressures(self, compartment_id: int) -> np.ndarray:
        """Pressure series of one compartment (1-based id)."""
        idx = self.table.ids.index(compartment_id)
        return self.tissue_pressures[:, idx]

    def pressures_at(self, index: int) -> np.ndarray:
        """All compartment pressures at one time point."""
        return self.tissue_pressures[index]

    def index_at(self, time: float) -> int:
        """Index of the last time point at or before time (0 if before the start)."""
        return max(bisect.bisect_right(self.time_points, time) - 1, 0)

    def to_dict(self) -> Dict[str, Any]:
        """Plain Python structure for JSON output."""
        return {
            "variant": self.table.variant,
            "timePoints": list(self.time_points),
            "depthPoints": list(self.depth_points),
            "ambientPressures": list(self.ambient_pressures),
            "alveolarN2Pressures": list(self.alveolar_n2_pressures),
            "gasNames": list(self.gas_names),
            "compartments": {
                str(comp.id): self.tissue_pressures[:, i].tolist()
                for i, comp in enumerate(self.table)
            },
            "gasSwitches": [
                {
                    "time": s.time,
                    "depth": s.depth,
                    "fromGas": s.from_gas.id,
                    "toGas": s.to_gas.id,
                }
                for s in self.gas_switches
            ],
        }


class ProfileWalker:
    """Integrates tissue loading over a profile.

    The compartment table is pinned at construction, so switching the active
    variant while a walk is running has no effect on it.
    """

    def __init__(
        self,
        table: Optional[CompartmentTable] = None,
        step_minutes: float = DEFAULT_STEP_MINUTES,
    ):
        if step_minutes <= 0:
            raise ValueError(f"step_minutes must be positive, got {step_minutes}")
        self.table = table if table is not None else get_active_table()
        self.step_minutes = step_minutes

    def _next_time(self, current: float, times: Sequence[float], total_time: float) -> float:
        """Next grid time, clamped to the next waypoint or the end of the dive."""
        naive = current + self.step_minutes
        i = bisect.bisect_right(times, current + TIME_EPSILON)
        boundary = times[i] if i < len(times) else total_time
        boundary = min(boundary, total_time)
        if naive >= boundary - TIME_EPSILON:
            return boundary
        return naive

    def run(
        self,
        profile: Sequence[Any],
        surface_interval: float = DEFAULT_SURFACE_INTERVAL,
        gases: Optional[Sequence[Gas]] = None,
    ) -> CalculationResult:
        """Walk a profile and return the tissue loading time series.

        Args:
            profile: waypoints (Waypoint, mappings or (time, depth[, gas_id]) tuples)
            surface_interval: extra surface time after the last waypoint (minutes)
            gases: available gases; the first one is breathed until a switch.
                Defaults to air.

        Raises:
            InvalidProfileError: fewer than 2 waypoints, non-increasing times
                or negative values.
        """
        waypoints = coerce_waypoints(profile)
        check_profile(waypoints)
        if surface_interval < 0:
            raise ValueError(f"surface_interval cannot be negative, got {surface_interval}")

        gas_list = list(gases) if gases else [AIR]
        schedule = resolve_gas_schedule(waypoints, gas_list)
        times = [wp.time for wp in waypoints]
        dive_end = times[-1]
        total_time = dive_end + surface_interval

        k = self.table.k
        start_gas = gas_at(waypoints, gas_list, 0.0, schedule=schedule)
        tissues = np.full(len(self.table), initial_tissue_pressure(start_gas.n2))

        time_points = []
        depth_points = []
        ambient_pressures = []
        alveolar_n2 = []
        gas_names = []
        history = []
        switches = []

        current_time = 0.0
        previous_gas = None

        while True:
            depth = depth_at(waypoints, current_time)
            gas = gas_at(waypoints, gas_list, current_time, schedule=schedule)
            p_amb = ambient_pressure(depth)

            time_points.append(current_time)
            depth_points.append(depth)
            ambient_pressures.append(p_amb)
            alveolar_n2.append(alveolar_pressure(p_amb, gas.n2))
            gas_names.append(gas.name)
            history.append(tissues.copy())

            if previous_gas is not None and gas.id != previous_gas.id:
                switches.append(
                    GasSwitch(time=current_time, depth=depth, from_gas=previous_gas, to_gas=gas)
                )
                logger.debug(
                    f"Gas switch at {current_time:.2f} min / {depth:.1f} m: "
                    f"{previous_gas.name} -> {gas.name}"
                )
            previous_gas = gas

            if current_time >= total_time - TIME_EPSILON:
                break

            next_time = self._next_time(current_time, times, total_time)
            dt = next_time - current_time

            # Left limits: the step belongs to the segment it ends in
            end_depth = depth_at(waypoints, next_time, from_left=True)
            end_gas = gas_at(waypoints, gas_list, next_time, from_left=True, schedule=schedule)

            f_n2 = step_fraction(gas.n2, end_gas.n2)
            ambient_rate = (ambient_pressure(end_depth) - p_amb) / dt
            palv0 = alveolar_pressure(p_amb, f_n2)

            tissues = integrate_step(tissues, palv0, ambient_rate * f_n2, dt, k)
            current_time = next_time

        logger.debug(
            f"Profile walk: {len(waypoints)} waypoints, {len(time_points)} time points, "
            f"ZH-L16{self.table.variant}, {total_time:.1f} min"
        )

        return CalculationResult(
            time_points=time_points,
            depth_points=depth_points,
            ambient_pressures=ambient_pressures,
            alveolar_n2_pressures=alveolar_n2,
            gas_names=gas_names,
            tissue_pressures=np.array(history),
            table=self.table,
            gas_switches=switches,
            dive_end_time=dive_end,
            surface_interval=surface_interval,
        )


def calculate_tissue_loading(
    profile: Sequence[Any],
    surface_interval: float = DEFAULT_SURFACE_INTERVAL,
    gases: Optional[Sequence[Gas]] = None,
    table: Optional[CompartmentTable] = None,
    step_minutes: float = DEFAULT_STEP_MINUTES,
) -> CalculationResult:
    """Tissue loading for a profile; the entry point used by all charts."""
    walker = ProfileWalker(table=table, step_minutes=step_minutes)
    return walker.run(profile, surface_interval=surface_interval, gases=gases)

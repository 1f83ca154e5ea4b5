"""
Dive profiles as piecewise-linear waypoint sequences.

A profile is an ordered list of waypoints (time in minutes, depth in meters,
optional gas id). Depth between waypoints is linearly interpolated; the gas is
a step function that switches at waypoints carrying a gas id and is inherited
forward otherwise.

depth_at() and gas_at() are the single source of truth for "where is the diver
and what are they breathing" at any time; the profile walker uses them for
both ends of every integration step.
"""

import bisect
import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .errors import InvalidProfileError
from .gases import AIR, Gas, GasSwitch, find_gas

logger = logging.getLogger(__name__)

# Depth beyond which a warning is reported (recreational limit)
RECREATIONAL_DEPTH_LIMIT = 60.0


@dataclass(frozen=True)
class Waypoint:
    """A profile point. gas_id marks a gas switch effective at this time."""
    time: float
    depth: float
    gas_id: Optional[str] = None

    @classmethod
    def coerce(cls, value: Any) -> "Waypoint":
        """Build a Waypoint from a Waypoint, a mapping or a (time, depth[, gas_id]) tuple."""
        if isinstance(value, Waypoint):
            return value
        if isinstance(value, Mapping):
            gas_id = value.get("gasId", value.get("gas_id"))
            return cls(
                time=float(value["time"]),
                depth=float(value["depth"]),
                gas_id=str(gas_id) if gas_id else None,
            )
        if isinstance(value, (tuple, list)) and len(value) in (2, 3):
            gas_id = value[2] if len(value) == 3 else None
            return cls(time=float(value[0]), depth=float(value[1]), gas_id=gas_id or None)
        raise TypeError(f"Cannot interpret {value!r} as a waypoint")

    def to_dict(self) -> dict:
        data = {"time": self.time, "depth": self.depth}
        if self.gas_id:
            data["gasId"] = self.gas_id
        return data


def coerce_waypoints(profile: Sequence[Any]) -> List[Waypoint]:
    if profile is None:
        return []
    return [Waypoint.coerce(wp) for wp in profile]


def check_profile(waypoints: Sequence[Waypoint]) -> None:
    """Raise InvalidProfileError if the profile cannot be walked."""
    if len(waypoints) < 2:
        raise InvalidProfileError("Profile must have at least 2 waypoints")
    for i, wp in enumerate(waypoints):
        if wp.time < 0 or wp.depth < 0:
            raise InvalidProfileError(
                f"Waypoint {i + 1}: time and depth cannot be negative "
                f"(time={wp.time}, depth={wp.depth})"
            )
        if i > 0 and wp.time <= waypoints[i - 1].time:
            raise InvalidProfileError(
                f"Waypoint {i + 1}: time {wp.time} must be greater than "
                f"previous waypoint time {waypoints[i - 1].time}"
            )


def waypoint_index(times: Sequence[float], time: float, from_left: bool = False) -> int:
    """Index of the waypoint whose segment contains time.

    Normally the largest index with times[i] <= time. With from_left the
    segment ending at time is chosen instead (largest index with times[i] < time),
    which is what the end of an integration step needs. -1 before the first
    waypoint.
    """
    if from_left:
        return bisect.bisect_left(times, time) - 1
    return bisect.bisect_right(times, time) - 1


def depth_at(waypoints: Sequence[Waypoint], time: float, from_left: bool = False) -> float:
    """Interpolated depth at a given time.

    From the last waypoint's time onwards the diver is at the surface (surface
    interval), unless from_left is set and time is exactly the last waypoint's
    time, in which case the depth the final segment reaches is returned.
    Zero-duration segments return their starting depth.
    """
    if not waypoints:
        return 0.0
    last = waypoints[-1]
    if time > last.time or (time == last.time and not from_left):
        return 0.0

    times = [wp.time for wp in waypoints]
    i = waypoint_index(times, time, from_left)
    if i < 0:
        return waypoints[0].depth
    if i >= len(waypoints) - 1:
        return last.depth

    wp1 = waypoints[i]
    wp2 = waypoints[i + 1]
    duration = wp2.time - wp1.time
    if duration <= 0:
        return wp1.depth
    fraction = (time - wp1.time) / duration
    return wp1.depth + fraction * (wp2.depth - wp1.depth)


def resolve_gas_schedule(waypoints: Sequence[Waypoint], gases: Sequence[Gas]) -> List[Gas]:
    """Gas in effect from each waypoint onwards.

    A waypoint without gas_id inherits the previous gas; the first gas of the
    list is active until the first switch. Unknown gas ids fall back to the
    first gas and are logged once per id.
    """
    default = gases[0] if gases else AIR
    current = default
    unknown = set()
    schedule = []
    for wp in waypoints:
        if wp.gas_id:
            gas = find_gas(gases, wp.gas_id) if gases else None
            if gas is None:
                if wp.gas_id not in unknown:
                    logger.warning(
                        f"Unknown gas id {wp.gas_id!r} at t={wp.time} min, "
                        f"falling back to {default.name}"
                    )
                    unknown.add(wp.gas_id)
                gas = default
            current = gas
        schedule.append(current)
    return schedule


def gas_at(
    waypoints: Sequence[Waypoint],
    gases: Sequence[Gas],
    time: float,
    from_left: bool = False,
    schedule: Optional[Sequence[Gas]] = None,
) -> Gas:
    """Gas being breathed at a given time.

    Pass a precomputed schedule (from resolve_gas_schedule) when calling
    repeatedly for the same profile.
    """
    if not waypoints:
        return gases[0] if gases else AIR
    if schedule is None:
        schedule = resolve_gas_schedule(waypoints, gases)
    times = [wp.time for wp in waypoints]
    i = waypoint_index(times, time, from_left)
    return schedule[max(i, 0)]


def gas_switch_events(waypoints: Sequence[Any], gases: Sequence[Gas]) -> List[GasSwitch]:
    """All gas changes along a profile, in time order."""
    wps = coerce_waypoints(waypoints)
    if len(wps) < 2 or not gases or len(gases) < 2:
        return []

    schedule = resolve_gas_schedule(wps, gases)
    switches = []
    for i in range(1, len(wps)):
        if schedule[i].id != schedule[i - 1].id:
            switches.append(
                GasSwitch(
                    time=wps[i].time,
                    depth=wps[i].depth,
                    from_gas=schedule[i - 1],
                    to_gas=schedule[i],
                )
            )
    return switches


@dataclass
class ProfileValidation:
    """Outcome of validate_profile(). Warnings do not make a profile invalid."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_profile(profile: Sequence[Any]) -> ProfileValidation:
    """Check a profile and collect all problems instead of raising.

    Used by editors to show errors and warnings next to the waypoint table.
    """
    result = ProfileValidation()
    if profile is None or isinstance(profile, (str, bytes)):
        result.errors.append("Profile must be a sequence of waypoints")
        return result

    if len(profile) < 2:
        result.errors.append("Profile must have at least 2 waypoints")

    waypoints: List[Optional[Waypoint]] = []
    for i, raw in enumerate(profile):
        try:
            wp = Waypoint.coerce(raw)
        except (TypeError, ValueError, KeyError):
            result.errors.append(f"Waypoint {i + 1}: Invalid time or depth value")
            waypoints.append(None)
            continue
        waypoints.append(wp)

        if math.isnan(wp.time) or math.isnan(wp.depth):
            result.errors.append(f"Waypoint {i + 1}: Invalid time or depth value")
            continue
        if wp.time < 0:
            result.errors.append(f"Waypoint {i + 1}: Time cannot be negative")
        if wp.depth < 0:
            result.errors.append(f"Waypoint {i + 1}: Depth cannot be negative")

        prev = waypoints[i - 1] if i > 0 else None
        if prev is not None and wp.time <= prev.time:
            result.errors.append(f"Waypoint {i + 1}: Time must be greater than previous waypoint")

        if wp.depth > RECREATIONAL_DEPTH_LIMIT:
            result.warnings.append(
                f"Waypoint {i + 1} depth ({wp.depth:g}m) exceeds recreational limits"
            )

    first = waypoints[0] if waypoints else None
    if first is not None:
        if first.time != 0:
            result.errors.append("First waypoint must be at time 0")
        if first.depth != 0:
            result.warnings.append("First waypoint should be at surface (0m)")

    last = waypoints[-1] if waypoints else None
    if last is not None and last.depth != 0:
        result.warnings.append("Dive should end at surface (0m)")

    return result


@dataclass(frozen=True)
class SegmentRate:
    """Vertical speed between two consecutive waypoints."""
    from_index: int
    to_index: int
    rate: float  # m/min, always positive
    kind: str  # "descent", "ascent" or "level"


def calculate_rates(waypoints: Sequence[Any]) -> List[SegmentRate]:
    """Descent/ascent rates between waypoints; zero-duration segments are skipped."""
    wps = coerce_waypoints(waypoints)
    rates = []
    for i in range(len(wps) - 1):
        dt = wps[i + 1].time - wps[i].time
        dd = wps[i + 1].depth - wps[i].depth
        if dt <= 0:
            continue
        if dd > 0:
            kind = "descent"
        elif dd < 0:
            kind = "ascent"
        else:
            kind = "level"
        rates.append(SegmentRate(from_index=i, to_index=i + 1, rate=abs(dd / dt), kind=kind))
    return rates


@dataclass(frozen=True)
class DiveStats:
    max_depth: float
    total_time: float
    max_descent_rate: float
    max_ascent_rate: float
    waypoint_count: int


def get_dive_stats(waypoints: Sequence[Any]) -> Optional[DiveStats]:
    """Summary statistics, or None for profiles with fewer than 2 waypoints."""
    wps = coerce_waypoints(waypoints)
    if len(wps) < 2:
        return None
    rates = calculate_rates(wps)
    return DiveStats(
        max_depth=max(wp.depth for wp in wps),
        total_time=wps[-1].time,
        max_descent_rate=max([r.rate for r in rates if r.kind == "descent"], default=0.0),
        max_ascent_rate=max([r.rate for r in rates if r.kind == "ascent"], default=0.0),
        waypoint_count=len(wps),
    )


def create_default_profile() -> List[Waypoint]:
    """30m for 25 minutes with a safety stop at 5m."""
    return [
        Waypoint(0, 0),
        Waypoint(2, 30),
        Waypoint(25, 30),
        Waypoint(26, 5),
        Waypoint(29, 5),
        Waypoint(30, 0),
    ]


class ProfileGenerator:
    """Generate waypoint profiles from a few dive parameters.

    All segment durations are rounded up to whole minutes, as divers plan them.
    """

    def __init__(
        self,
        descent_rate: float = 20.0,  # m/min
        ascent_rate: float = 10.0,  # m/min
        safety_stop_depth: float = 5.0,
        safety_stop_time: float = 3.0,
    ):
        if descent_rate <= 0 or ascent_rate <= 0:
            raise ValueError("Descent and ascent rates must be positive")
        self.descent_rate = descent_rate
        self.ascent_rate = ascent_rate
        self.safety_stop_depth = safety_stop_depth
        self.safety_stop_time = safety_stop_time

    def generate_simple(self, max_depth: float, bottom_time: float) -> List[Waypoint]:
        """Square dive with a safety stop.

        Bottom time is measured from the start of the dive (time 0), so the
        ascent starts at minute bottom_time.
        """
        if max_depth <= 0:
            raise ValueError(f"max_depth must be positive, got {max_depth}")
        descent_time = math.ceil(max_depth / self.descent_rate)
        bottom_end = max(bottom_time, descent_time)
        stop_depth = min(self.safety_stop_depth, max_depth)

        stop_start = bottom_end + math.ceil((max_depth - stop_depth) / self.ascent_rate)
        stop_end = stop_start + self.safety_stop_time
        surface_time = stop_end + math.ceil(stop_depth / self.ascent_rate)

        waypoints = [Waypoint(0, 0), Waypoint(descent_time, max_depth)]
        if bottom_end > descent_time:
            waypoints.append(Waypoint(bottom_end, max_depth))
        if stop_start > waypoints[-1].time:
            waypoints.append(Waypoint(stop_start, stop_depth))
        waypoints.append(Waypoint(stop_end, stop_depth))
        waypoints.append(Waypoint(surface_time, 0))
        return waypoints

    def generate_multilevel(self, levels: Sequence[Tuple[float, float]]) -> List[Waypoint]:
        """Multi-level dive from (depth, duration) tuples, then direct ascent.

        Durations count from arrival at each level.
        """
        waypoints = [Waypoint(0, 0)]
        time = 0.0
        current_depth = 0.0
        for depth, duration in levels:
            change = depth - current_depth
            rate = self.descent_rate if change > 0 else self.ascent_rate
            travel = math.ceil(abs(change) / rate)
            if travel > 0:
                time += travel
                waypoints.append(Waypoint(time, depth))
            if duration > 0:
                time += duration
                waypoints.append(Waypoint(time, depth))
            current_depth = depth

        if current_depth > 0:
            time += max(1, math.ceil(current_depth / self.ascent_rate))
            waypoints.append(Waypoint(time, 0))
        return waypoints


def generate_simple_profile(max_depth: float, bottom_time: float) -> List[Waypoint]:
    """Square dive with a 3 min safety stop at 5m (20 m/min down, 10 m/min up)."""
    return ProfileGenerator().generate_simple(max_depth, bottom_time)

"""
Dive setups: gases, one or more dives, gradient factors and surface interval.

A setup is what the web pages share between each other. It can be loaded from
a YAML or JSON file and round-trips through the URL-safe string used in
sandbox links (base64 of compact JSON, '+/' replaced by '-_', padding removed).
"""

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

import yaml

from .compartments import CompartmentTable
from .gases import AIR, Gas, gas_from_dict
from .limits import GradientFactors
from .profile import Waypoint, coerce_waypoints
from .walker import DEFAULT_SURFACE_INTERVAL, CalculationResult, calculate_tissue_loading

logger = logging.getLogger(__name__)

# Percentages (100 = raw Bühlmann M-values)
DEFAULT_GF_LOW = 100
DEFAULT_GF_HIGH = 100


@dataclass
class Dive:
    """One dive of a setup. Waypoint times are relative to the dive start."""
    waypoints: List[Waypoint]
    surface_interval_before: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Dive":
        return cls(
            waypoints=coerce_waypoints(data.get("waypoints", [])),
            surface_interval_before=float(data.get("surfaceIntervalBefore", 0.0) or 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"waypoints": [wp.to_dict() for wp in self.waypoints]}
        if self.surface_interval_before:
            data["surfaceIntervalBefore"] = self.surface_interval_before
        return data


@dataclass
class DiveSetup:
    """Complete dive configuration shared across pages."""
    gases: List[Gas] = field(default_factory=lambda: [AIR])
    dives: List[Dive] = field(default_factory=list)
    gf_low: float = DEFAULT_GF_LOW  # percent
    gf_high: float = DEFAULT_GF_HIGH  # percent
    surface_interval: float = DEFAULT_SURFACE_INTERVAL
    name: str = ""
    description: str = ""
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiveSetup":
        gases = [gas_from_dict(g) for g in data.get("gases") or []]
        dives = [Dive.from_dict(d) for d in data.get("dives") or []]
        surface_interval = data.get("surfaceInterval")
        return cls(
            gases=gases or [AIR],
            dives=dives,
            gf_low=float(data.get("gfLow", DEFAULT_GF_LOW)),
            gf_high=float(data.get("gfHigh", DEFAULT_GF_HIGH)),
            surface_interval=(
                float(surface_interval) if surface_interval is not None
                else DEFAULT_SURFACE_INTERVAL
            ),
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            id=data.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Minimal representation; id and description only when set."""
        data: Dict[str, Any] = {
            "name": self.name,
            "gases": [g.to_dict() for g in self.gases],
            "gfLow": self.gf_low,
            "gfHigh": self.gf_high,
            "dives": [d.to_dict() for d in self.dives],
            "surfaceInterval": self.surface_interval,
        }
        if self.id:
            data["id"] = self.id
        if self.description:
            data["description"] = self.description
        return data

    def waypoints(self) -> List[Waypoint]:
        """All dives merged into one timeline.

        Each dive starts where the previous one ended plus its
        surface_interval_before. Without an interval the next dive's first
        waypoint lands on the previous dive's last one and replaces it,
        keeping the earlier gas id unless the new waypoint sets its own.
        """
        if not self.dives:
            logger.warning("Dive setup has no dives, returning empty waypoints")
            return []

        merged = []
        offset = 0.0
        for index, dive in enumerate(self.dives):
            if index > 0:
                offset += dive.surface_interval_before
            for position, wp in enumerate(dive.waypoints):
                shifted = Waypoint(time=wp.time + offset, depth=wp.depth, gas_id=wp.gas_id)
                if index > 0 and position == 0 and merged and shifted.time == merged[-1].time:
                    logger.debug(f"Dive {index + 1} starts at {shifted.time} min, merging boundary waypoint")
                    if shifted.gas_id is None:
                        shifted = Waypoint(shifted.time, shifted.depth, merged[-1].gas_id)
                    merged[-1] = shifted
                    continue
                merged.append(shifted)
            if dive.waypoints:
                offset += dive.waypoints[-1].time
        return merged

    def gradient_factors(self) -> GradientFactors:
        return GradientFactors.from_percent(self.gf_low, self.gf_high)

    @property
    def bottom_gas(self) -> Gas:
        return self.gases[0]

    @property
    def deco_gases(self) -> List[Gas]:
        return self.gases[1:]

    def extend(self, **overrides) -> "DiveSetup":
        """Copy with fields replaced; lists are copied, never shared."""
        merged = replace(self, **overrides)
        merged.gases = list(merged.gases)
        merged.dives = list(merged.dives)
        return merged

    def calculate(
        self,
        table: Optional[CompartmentTable] = None,
        step_minutes: Optional[float] = None,
    ) -> CalculationResult:
        """Run tissue loading over all dives of this setup."""
        kwargs = {}
        if step_minutes is not None:
            kwargs["step_minutes"] = step_minutes
        return calculate_tissue_loading(
            self.waypoints(),
            surface_interval=self.surface_interval,
            gases=self.gases,
            table=table,
            **kwargs,
        )


def get_default_setup() -> DiveSetup:
    """40m dive with planned decompression stops, on air."""
    return DiveSetup.from_dict({
        "name": "Example Decompression Dive",
        "description": "A 40m dive with planned decompression stops.",
        "gases": [{"id": "bottom", "name": "Air", "o2": 0.21, "n2": 0.79, "he": 0}],
        "gfLow": DEFAULT_GF_LOW,
        "gfHigh": DEFAULT_GF_HIGH,
        "surfaceInterval": 60,
        "dives": [
            {
                "waypoints": [
                    {"time": 0, "depth": 0},
                    {"time": 2, "depth": 40},
                    {"time": 22, "depth": 40},
                    {"time": 26, "depth": 9},
                    {"time": 29, "depth": 9},
                    {"time": 30, "depth": 6},
                    {"time": 35, "depth": 6},
                    {"time": 36, "depth": 3},
                    {"time": 41, "depth": 3},
                    {"time": 42, "depth": 0},
                ]
            }
        ],
    })


def load_dive_setup(path: str) -> DiveSetup:
    """Load a setup from a YAML or JSON file (JSON is valid YAML)."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Dive setup not found: {path}")
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Dive setup {path} must contain a mapping, got {type(data).__name__}")
    setup = DiveSetup.from_dict(data)
    logger.info(f"Loaded dive setup {setup.name or path!r}: {len(setup.dives)} dive(s), {len(setup.gases)} gas(es)")
    return setup


def encode_dive_setup(setup: Optional[DiveSetup]) -> str:
    """URL-safe string for sharing a setup; empty string for no setup."""
    if setup is None:
        return ""
    payload = json.dumps(setup.to_dict(), separators=(",", ":"), ensure_ascii=False)
    encoded = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")
    return encoded.rstrip("=")


def decode_dive_setup(encoded: Optional[str]) -> Optional[DiveSetup]:
    """Inverse of encode_dive_setup. Returns None for missing or malformed input."""
    if not encoded:
        return None
    padding = (4 - len(encoded) % 4) % 4
    try:
        raw = base64.urlsafe_b64decode(encoded + "=" * padding)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        logger.error(f"Failed to decode dive setup: {e}")
        return None

    if not isinstance(data, dict) or not data.get("gases") or not data.get("dives"):
        logger.warning("Invalid dive setup: missing required fields")
        return None

    try:
        return DiveSetup.from_dict(data)
    except (TypeError, ValueError, KeyError) as e:
        logger.error(f"Failed to decode dive setup: {e}")
        return None

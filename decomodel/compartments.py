"""
Bühlmann ZH-L16 tissue compartments for nitrogen.

Each compartment is a theoretical tissue group with its own N2 half-time.
M-value coefficients define the maximum tolerable inert gas pressure:

    P_tolerated = a + P_ambient / b

The A/B/C variants differ only in their a-coefficients; half-times and
b-coefficients are shared. Compartment 1 uses the 5.0 min half-time variant
(Bühlmann's first ZH-L16 table used 4.0 min).

Tables are immutable snapshots. The process-wide active table is swapped as a
whole by set_variant(), so a calculation that holds a table reference never
observes a partial switch.
"""

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Dict, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Half-times in minutes
ZH_L16_N2_HALFTIMES: Tuple[float, ...] = (
    5.0, 8.0, 12.5, 18.5, 27.0, 38.3, 54.3, 77.0,
    109.0, 146.0, 187.0, 239.0, 305.0, 390.0, 498.0, 635.0,
)

ZH_L16_N2_B: Tuple[float, ...] = (
    0.5578, 0.6514, 0.7222, 0.7825, 0.8126, 0.8434, 0.8693, 0.8910,
    0.9092, 0.9222, 0.9319, 0.9403, 0.9477, 0.9544, 0.9602, 0.9653,
)

ZH_L16_N2_A: Dict[str, Tuple[float, ...]] = {
    "A": (
        1.1696, 1.0000, 0.8618, 0.7562, 0.6667, 0.5600, 0.4947, 0.4500,
        0.4187, 0.3798, 0.3497, 0.3223, 0.2971, 0.2737, 0.2523, 0.2327,
    ),
    "B": (
        1.1696, 1.0000, 0.8618, 0.7562, 0.6667, 0.5600, 0.4947, 0.4500,
        0.4187, 0.3798, 0.3497, 0.3223, 0.2850, 0.2737, 0.2523, 0.2327,
    ),
    "C": (
        1.1696, 1.0000, 0.8618, 0.7562, 0.6200, 0.5043, 0.4410, 0.4000,
        0.3750, 0.3500, 0.3295, 0.3065, 0.2835, 0.2610, 0.2480, 0.2327,
    ),
}

COMPARTMENT_LABELS: Tuple[str, ...] = (
    "Brain, Spinal Cord", "Brain, Spinal Cord", "Spinal Cord", "Muscle, Skin",
    "Muscle, Skin", "Muscle", "Muscle", "Muscle, Tendons",
    "Tendons, Cartilage", "Tendons, Bones", "Bones", "Bones, Fat",
    "Fat", "Fat", "Fat", "Fat",
)

NUM_COMPARTMENTS = 16
VARIANTS: Tuple[str, ...] = ("A", "B", "C")
DEFAULT_VARIANT = "A"
# Lowest a-coefficients, i.e. the smallest tolerated supersaturation
CONSERVATIVE_VARIANT = "C"


def get_rate_constant(half_time: float) -> float:
    """Rate constant k = ln(2) / half_time (per minute)."""
    return math.log(2) / half_time


def get_compartment_category(half_time: float) -> str:
    """Descriptive speed category for a half-time."""
    if half_time <= 12.5:
        return "Fast"
    if half_time <= 54.3:
        return "Medium"
    if half_time <= 146.0:
        return "Medium-Slow"
    return "Slow"


@dataclass(frozen=True)
class Compartment:
    """A single ZH-L16 N2 compartment."""
    id: int
    half_time: float
    a_n2: float
    b_n2: float
    label: str = ""

    @property
    def k(self) -> float:
        return get_rate_constant(self.half_time)

    @property
    def category(self) -> str:
        return get_compartment_category(self.half_time)


@dataclass(frozen=True)
class CompartmentTable:
    """Immutable, ordered set of 16 compartments for one ZH-L16 variant.

    Array views (half_times, a, b, k) are precomputed once so the profile
    walker can update all compartments in a single vectorized step.
    """
    variant: str
    compartments: Tuple[Compartment, ...]
    half_times: np.ndarray = field(init=False, repr=False, compare=False)
    a: np.ndarray = field(init=False, repr=False, compare=False)
    b: np.ndarray = field(init=False, repr=False, compare=False)
    k: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        half_times = np.array([c.half_time for c in self.compartments])
        a = np.array([c.a_n2 for c in self.compartments])
        b = np.array([c.b_n2 for c in self.compartments])
        if np.any(np.diff(half_times) <= 0):
            raise ValueError("Compartment half-times must be strictly increasing")
        if np.any(np.diff(a) >= 0):
            raise ValueError("Compartment a-coefficients must be strictly decreasing")
        if np.any(np.diff(b) <= 0):
            raise ValueError("Compartment b-coefficients must be strictly increasing")
        for arr in (half_times, a, b):
            arr.setflags(write=False)
        k = np.log(2) / half_times
        k.setflags(write=False)
        # Frozen dataclass: bypass __setattr__ for the derived arrays
        object.__setattr__(self, "half_times", half_times)
        object.__setattr__(self, "a", a)
        object.__setattr__(self, "b", b)
        object.__setattr__(self, "k", k)

    def __len__(self) -> int:
        return len(self.compartments)

    def __iter__(self):
        return iter(self.compartments)

    def __getitem__(self, idx):
        return self.compartments[idx]

    @property
    def ids(self) -> Tuple[int, ...]:
        return tuple(c.id for c in self.compartments)

    def by_id(self, compartment_id: int) -> Compartment:
        """Look up a compartment by its 1-based id."""
        for comp in self.compartments:
            if comp.id == compartment_id:
                return comp
        raise KeyError(f"No compartment with id {compartment_id}")


def build_table(variant: str) -> CompartmentTable:
    """Build a compartment table for a ZH-L16 variant.

    Unknown variants fall back to the most conservative variant (C) with a
    warning.
    """
    key = str(variant).upper()
    if key not in ZH_L16_N2_A:
        logger.warning(
            f"Unknown compartment variant {variant!r}, "
            f"falling back to ZH-L16{CONSERVATIVE_VARIANT}"
        )
        key = CONSERVATIVE_VARIANT

    compartments = tuple(
        Compartment(
            id=i + 1,
            half_time=ZH_L16_N2_HALFTIMES[i],
            a_n2=ZH_L16_N2_A[key][i],
            b_n2=ZH_L16_N2_B[i],
            label=f"{i + 1} - {COMPARTMENT_LABELS[i]}",
        )
        for i in range(NUM_COMPARTMENTS)
    )
    return CompartmentTable(variant=key, compartments=compartments)


_TABLES: Dict[str, CompartmentTable] = {v: build_table(v) for v in VARIANTS}

# Ordered compartments of the default (ZH-L16A) table. Use get_compartments()
# for the currently active variant.
COMPARTMENTS: Tuple[Compartment, ...] = _TABLES[DEFAULT_VARIANT].compartments

_active_lock = threading.Lock()
_active_table: CompartmentTable = _TABLES[DEFAULT_VARIANT]


def get_table(variant: str) -> CompartmentTable:
    """Return the cached table for a variant (C for unknown variants)."""
    key = str(variant).upper()
    if key not in _TABLES:
        return build_table(variant)
    return _TABLES[key]


def get_active_table() -> CompartmentTable:
    """Snapshot of the active table. Safe to hold across a variant switch."""
    with _active_lock:
        return _active_table


def get_compartments() -> Tuple[Compartment, ...]:
    """Ordered compartments of the active table."""
    return get_active_table().compartments


def get_variant() -> str:
    return get_active_table().variant


def set_variant(variant: str) -> CompartmentTable:
    """Make a variant the active one and return its table."""
    global _active_table
    table = get_table(variant)
    with _active_lock:
        previous = _active_table.variant
        _active_table = table
    if previous != table.variant:
        logger.info(f"Compartment variant switched: ZH-L16{previous} -> ZH-L16{table.variant}")
    return table

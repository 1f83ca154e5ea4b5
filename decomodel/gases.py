"""
Breathing gases and gas-related dive calculations.

Gases are referenced from waypoints by id. The first gas of a gas list is the
bottom gas and is active from the start of the dive.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

FRACTION_TOLERANCE = 1e-3


@dataclass(frozen=True)
class Gas:
    """A breathing gas mix. Fractions are 0-1 and must sum to 1."""
    id: str
    name: str
    o2: float
    n2: float
    he: float = 0.0

    def __post_init__(self):
        for label, value in (("o2", self.o2), ("n2", self.n2), ("he", self.he)):
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"Gas {self.id!r}: {label} fraction must be in [0, 1], got {value}")
        total = self.o2 + self.n2 + self.he
        if abs(total - 1.0) > FRACTION_TOLERANCE:
            raise ValueError(
                f"Gas {self.id!r}: fractions must sum to 1.0, got {total:.4f}"
            )

    @property
    def inert_fraction(self) -> float:
        return self.n2 + self.he

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "o2": self.o2, "n2": self.n2, "he": self.he}


AIR = Gas(id="air", name="Air", o2=0.21, n2=0.79, he=0.0)

# Bottom gases - suitable for descent and bottom time
BOTTOM_GASES: List[Gas] = [
    AIR,
    Gas(id="ean32", name="Nitrox 32 (EAN32)", o2=0.32, n2=0.68),
    Gas(id="ean36", name="Nitrox 36 (EAN36)", o2=0.36, n2=0.64),
    Gas(id="tx21_35", name="Trimix 21/35", o2=0.21, n2=0.44, he=0.35),
    Gas(id="tx18_45", name="Trimix 18/45", o2=0.18, n2=0.37, he=0.45),
    Gas(id="tx10_70", name="Trimix 10/70", o2=0.10, n2=0.20, he=0.70),
]

# Deco gases - high O2, shallow MOD
DECO_GASES: List[Gas] = [
    Gas(id="ean50", name="Nitrox 50 (EAN50)", o2=0.50, n2=0.50),
    Gas(id="ean80", name="Nitrox 80 (EAN80)", o2=0.80, n2=0.20),
    Gas(id="o2", name="Pure Oxygen (100%)", o2=1.0, n2=0.0),
]

PREDEFINED_GASES: List[Gas] = BOTTOM_GASES + DECO_GASES


def get_predefined_gas(gas_id: str) -> Optional[Gas]:
    """Predefined gas by id, or None."""
    for gas in PREDEFINED_GASES:
        if gas.id == gas_id:
            return gas
    return None


def gas_from_dict(data: Dict[str, Any]) -> Gas:
    """Build a Gas from a mapping (extra keys like cylinderVolume are ignored).

    Missing n2 is derived from o2 and he.
    """
    o2 = float(data.get("o2", 0.21))
    he = float(data.get("he", 0.0) or 0.0)
    n2 = data.get("n2")
    n2 = float(n2) if n2 is not None else 1.0 - o2 - he
    gas_id = str(data.get("id", "bottom"))
    return Gas(id=gas_id, name=str(data.get("name", gas_id)), o2=o2, n2=n2, he=he)


def find_gas(gases: Sequence[Gas], gas_id: str) -> Optional[Gas]:
    for gas in gases:
        if gas.id == gas_id:
            return gas
    return None


def calculate_mod(o2_fraction: float, max_ppo2: float = 1.4) -> float:
    """Maximum Operating Depth in whole meters (rounded down)."""
    if o2_fraction <= 0:
        return math.inf
    max_ambient = max_ppo2 / o2_fraction
    return math.floor((max_ambient - 1) * 10)


def calculate_end(depth: float, he_fraction: float = 0.0) -> int:
    """Equivalent Narcotic Depth in meters (O2 and N2 narcotic, He not)."""
    narcotic_fraction = 1 - he_fraction
    return round((depth + 10) * narcotic_fraction - 10)


@dataclass(frozen=True)
class GasSwitch:
    """A change of breathing gas at a given time and depth."""
    time: float
    depth: float
    from_gas: Gas
    to_gas: Gas


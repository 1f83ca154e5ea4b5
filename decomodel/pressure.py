"""
Depth/pressure conversions and alveolar inert gas pressure.

All functions are pure (no side effects) for safe use in parallel execution paths.
"""

# Surface atmospheric pressure in bar
SURFACE_PRESSURE = 1.0

# Water vapor pressure at body temperature (37°C) in bar
WATER_VAPOR_PRESSURE = 0.0627

# Pressure increase per meter of seawater depth (bar/m)
PRESSURE_PER_METER = 0.1

# Fraction of nitrogen in air
N2_FRACTION = 0.79


def ambient_pressure(depth: float) -> float:
    """Ambient pressure (bar) at a depth in meters."""
    return SURFACE_PRESSURE + depth * PRESSURE_PER_METER


def depth_from_pressure(pressure: float) -> float:
    """Depth (m) for an ambient pressure, never shallower than the surface."""
    return max(0.0, (pressure - SURFACE_PRESSURE) / PRESSURE_PER_METER)


def alveolar_pressure(ambient: float, gas_fraction: float = N2_FRACTION) -> float:
    """Alveolar inert gas partial pressure.

    P_alv = (P_ambient - P_water_vapor) * f_inert

    This is what the tissues equilibrate towards.
    """
    return (ambient - WATER_VAPOR_PRESSURE) * gas_fraction


def initial_tissue_pressure(gas_fraction: float = N2_FRACTION) -> float:
    """Tissue inert gas pressure when saturated at the surface."""
    return alveolar_pressure(SURFACE_PRESSURE, gas_fraction)


def partial_pressure(depth: float, gas_fraction: float) -> float:
    """Inspired (dry) partial pressure of a gas component at depth."""
    return gas_fraction * ambient_pressure(depth)

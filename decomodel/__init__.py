"""
Inert gas tissue loading and Bühlmann decompression limits.

Modules:
    - compartments: ZH-L16 A/B/C compartment tables and the active variant
    - pressure: depth/pressure conversions and alveolar pressure
    - perfusion: Haldane and Schreiner equations
    - profile: waypoints, depth/gas lookup, validation and simple profiles
    - gases: breathing gases, MOD/END
    - walker: tissue loading time series over a profile
    - limits: M-values, gradient factors, ceilings, first stop, NDL
    - dive_setup: shareable dive setups (YAML/JSON/URL string)
    - config: config.yaml loading and output naming
"""

__version__ = "0.3.0"

from .errors import InvalidProfileError
from .compartments import (
    COMPARTMENTS,
    Compartment,
    CompartmentTable,
    get_active_table,
    get_compartments,
    get_rate_constant,
    get_variant,
    set_variant,
)
from .pressure import (
    SURFACE_PRESSURE,
    WATER_VAPOR_PRESSURE,
    PRESSURE_PER_METER,
    N2_FRACTION,
    ambient_pressure,
    alveolar_pressure,
    initial_tissue_pressure,
)
from .perfusion import haldane_equation, schreiner_equation
from .gases import AIR, Gas, GasSwitch
from .profile import Waypoint, depth_at, gas_at, validate_profile
from .walker import CALC_INTERVAL, CalculationResult, ProfileWalker, calculate_tissue_loading
from .limits import (
    GF_DEFAULT,
    GradientFactors,
    adjusted_m_value,
    calculate_ceiling_time_series,
    compartment_ceiling,
    dive_ceiling,
    first_stop_depth,
    interpolate_gf,
    m_value,
    no_decompression_limit,
)
from .dive_setup import DiveSetup, decode_dive_setup, encode_dive_setup, load_dive_setup

__all__ = [
    "InvalidProfileError",
    "COMPARTMENTS",
    "Compartment",
    "CompartmentTable",
    "get_active_table",
    "get_compartments",
    "get_rate_constant",
    "get_variant",
    "set_variant",
    "SURFACE_PRESSURE",
    "WATER_VAPOR_PRESSURE",
    "PRESSURE_PER_METER",
    "N2_FRACTION",
    "ambient_pressure",
    "alveolar_pressure",
    "initial_tissue_pressure",
    "haldane_equation",
    "schreiner_equation",
    "AIR",
    "Gas",
    "GasSwitch",
    "Waypoint",
    "depth_at",
    "gas_at",
    "validate_profile",
    "CALC_INTERVAL",
    "CalculationResult",
    "ProfileWalker",
    "calculate_tissue_loading",
    "GF_DEFAULT",
    "GradientFactors",
    "adjusted_m_value",
    "calculate_ceiling_time_series",
    "compartment_ceiling",
    "dive_ceiling",
    "first_stop_depth",
    "interpolate_gf",
    "m_value",
    "no_decompression_limit",
    "DiveSetup",
    "decode_dive_setup",
    "encode_dive_setup",
    "load_dive_setup",
]

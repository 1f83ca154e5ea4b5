"""
Closed-form solutions of the single-compartment perfusion equation.

    dP/dt = k * (P_alv - P),   k = ln(2) / half_time

Haldane: constant alveolar pressure.
Schreiner: alveolar pressure changing linearly at rate R (bar/min).

Scalar versions take a half-time; the *_vec versions take a numpy array of
rate constants and update all compartments at once.
"""

import math

import numpy as np

from .compartments import get_rate_constant

# Alveolar pressure rate (bar/min) below which a step is treated as constant depth
RATE_EPSILON = 1e-4


def haldane_equation(
    initial_pressure: float,
    alveolar_pressure: float,
    time: float,
    half_time: float,
) -> float:
    """Haldane equation for constant depth.

    P(t) = P_alv + (P0 - P_alv) * e^(-kt)
    """
    k = get_rate_constant(half_time)
    return alveolar_pressure + (initial_pressure - alveolar_pressure) * math.exp(-k * time)


def schreiner_equation(
    initial_pressure: float,
    initial_alveolar_pressure: float,
    rate: float,
    time: float,
    half_time: float,
) -> float:
    """Schreiner equation for a linear depth change (ascent/descent).

    P(t) = P_alv0 + R*(t - 1/k) - (P_alv0 - P0 - R/k) * e^(-kt)

    rate is the alveolar pressure rate of change (bar/min), positive on descent.
    """
    k = get_rate_constant(half_time)
    term1 = initial_alveolar_pressure + rate * (time - 1.0 / k)
    term2 = (initial_alveolar_pressure - initial_pressure - rate / k) * math.exp(-k * time)
    return term1 - term2


def haldane_vec(
    pt0: np.ndarray, palv: float, t: float, k: np.ndarray
) -> np.ndarray:
    """Vectorized Haldane equation across compartments."""
    return palv + (pt0 - palv) * np.exp(-k * t)


def schreiner_vec(
    pt0: np.ndarray, palv0: float, rate: float, t: float, k: np.ndarray
) -> np.ndarray:
    """Vectorized Schreiner equation across compartments."""
    return palv0 + rate * (t - 1.0 / k) - (palv0 - pt0 - rate / k) * np.exp(-k * t)


def integrate_step(
    pt0: np.ndarray, palv0: float, rate: float, t: float, k: np.ndarray
) -> np.ndarray:
    """Advance tissue pressures over one step.

    Uses Haldane when the alveolar rate is negligible, Schreiner otherwise.
    """
    if abs(rate) < RATE_EPSILON:
        return haldane_vec(pt0, palv0, t, k)
    return schreiner_vec(pt0, palv0, rate, t, k)

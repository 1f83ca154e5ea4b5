"""
Configuration loading and output directory naming.

Settings resolve in order: built-in defaults, config.yaml, command line.
Output subfolder names encode the active settings so plots from runs with
different configurations coexist without overwriting each other.
"""

import logging
import os
import shutil

import yaml

from .compartments import DEFAULT_VARIANT, VARIANTS, CONSERVATIVE_VARIANT
from .limits import GF_DEFAULT, STOP_INCREMENT, GradientFactors
from .walker import CALC_INTERVAL, DEFAULT_SURFACE_INTERVAL

logger = logging.getLogger(__name__)


def default_config_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "config.yaml")


def build_settings_dirname(
    gf: GradientFactors,
    variant: str,
    step_minutes: float,
) -> str:
    """Build a deterministic directory name encoding the active settings.

    Format: gf{low}-{high}_zhl16{variant}_step{seconds}s

    Examples:
        GF 30/85, ZH-L16C, 10 s step   -> gf30-85_zhl16c_step10s
        GF 100/100, ZH-L16A, 60 s step -> gf100-100_zhl16a_step60s
    """
    gf_low_pct = int(round(gf.gf_low * 100))
    gf_high_pct = int(round(gf.gf_high * 100))
    step_seconds = int(round(step_minutes * 60))
    return f"gf{gf_low_pct}-{gf_high_pct}_zhl16{variant.lower()}_step{step_seconds}s"


def load_effective_config(
    config_path: str = None,
    gf_override: tuple = None,
    variant_override: str = None,
) -> dict:
    """Load configuration from config.yaml with optional CLI overrides.

    gf_override is a (low, high) pair in percent. GF values in the file are
    fractions.

    Returns a dict with resolved settings:
        gf:               GradientFactors instance
        variant:          ZH-L16 variant letter
        step_minutes:     float
        surface_interval: float (minutes)
        stop_increment:   float (meters)
        config_path:      str (resolved path)
        gf_source:        'cli' | 'config' | 'default'
    """
    if config_path is None:
        config_path = default_config_path()

    # Defaults
    gf = GF_DEFAULT
    gf_source = "default"
    variant = DEFAULT_VARIANT
    step_seconds = float(CALC_INTERVAL)
    surface_interval = DEFAULT_SURFACE_INTERVAL
    stop_increment = STOP_INCREMENT

    if os.path.exists(config_path):
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        variant = str(config.get("compartments", {}).get("variant", variant))

        calc_cfg = config.get("calculation", {})
        step_seconds = float(calc_cfg.get("step_seconds", step_seconds))
        surface_interval = float(calc_cfg.get("surface_interval", surface_interval))

        stop_increment = float(config.get("limits", {}).get("stop_increment", stop_increment))

        buhlmann_cfg = config.get("buhlmann", {})
        if buhlmann_cfg:
            gf = GradientFactors(
                gf_low=float(buhlmann_cfg.get("gf_low", 1.0)),
                gf_high=float(buhlmann_cfg.get("gf_high", 1.0)),
            )
            gf_source = "config"
    else:
        logger.debug(f"No config file at {config_path}, using defaults")

    if gf_override:
        gf = GradientFactors.from_percent(gf_override[0], gf_override[1])
        gf_source = "cli"

    if variant_override:
        variant = variant_override

    variant = variant.upper()
    if variant not in VARIANTS:
        logger.warning(
            f"Unknown compartment variant {variant!r} in configuration, "
            f"using {CONSERVATIVE_VARIANT}"
        )
        variant = CONSERVATIVE_VARIANT

    if step_seconds <= 0:
        raise ValueError(f"step_seconds must be positive, got {step_seconds}")
    if surface_interval < 0:
        raise ValueError(f"surface_interval cannot be negative, got {surface_interval}")

    return {
        "gf": gf,
        "variant": variant,
        "step_minutes": step_seconds / 60.0,
        "surface_interval": surface_interval,
        "stop_increment": stop_increment,
        "config_path": config_path,
        "gf_source": gf_source,
    }


def save_config_snapshot(config_path: str, output_dir: str) -> None:
    """Copy config.yaml into the output directory for reproducibility."""
    if os.path.exists(config_path):
        os.makedirs(output_dir, exist_ok=True)
        shutil.copy2(config_path, os.path.join(output_dir, "config.yaml"))

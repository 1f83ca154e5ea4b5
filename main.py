"""
Tissue loading viewer - run a dive setup through the ZH-L16 model.

Computes N2 tissue loading for every compartment, the gradient-factor ceiling
and the first stop, then plots the dive with matplotlib.

Usage:
    python main.py                              # Built-in 40m deco example
    python main.py --depth 30 --time 20         # Quick square profile with safety stop
    python main.py --setup data/dive.yaml       # Dive setup from YAML/JSON
    python main.py --gf 30 85 --variant C       # Override gradient factors and variant
    python main.py --save output --no-plot      # Write plot and results without a window
"""

import argparse
import json
import logging
import os

import numpy as np
import matplotlib.pyplot as plt
from matplotlib import colormaps

from decomodel.compartments import get_table
from decomodel.config import build_settings_dirname, load_effective_config, save_config_snapshot
from decomodel.dive_setup import Dive, DiveSetup, get_default_setup, load_dive_setup
from decomodel.limits import (
    calculate_ceiling_time_series,
    first_stop_depth,
    m_value_line,
    no_decompression_limit,
)
from decomodel.pressure import SURFACE_PRESSURE
from decomodel.profile import generate_simple_profile, get_dive_stats, validate_profile
from decomodel.walker import CalculationResult

logger = logging.getLogger("decomodel.main")


def setup_logging(verbose: bool = False, log_dir: str = None):
    """Set up logging configuration."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(log_dir, "decomodel.log")))

    console_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=console_level, format=log_format, handlers=handlers)


def build_setup(args: argparse.Namespace, config: dict) -> DiveSetup:
    """Dive setup from a file, a quick square profile or the built-in example."""
    if args.setup:
        setup = load_dive_setup(args.setup)
    elif args.depth is not None:
        bottom_time = args.time if args.time is not None else 20.0
        setup = DiveSetup(
            dives=[Dive(waypoints=generate_simple_profile(args.depth, bottom_time))],
            name=f"square_{args.depth:g}m_{bottom_time:g}min",
        )
    else:
        setup = get_default_setup()

    gf = config["gf"]
    overrides = {}
    # A setup file keeps its own GFs and surface interval unless given on the command line
    if config["gf_source"] == "cli" or args.setup is None:
        overrides["gf_low"] = gf.gf_low * 100
        overrides["gf_high"] = gf.gf_high * 100
    if args.setup is None:
        overrides["surface_interval"] = config["surface_interval"]
    if args.surface_interval is not None:
        overrides["surface_interval"] = args.surface_interval
    return setup.extend(**overrides)


def print_dive_plan(setup: DiveSetup, variant: str) -> None:
    """Print dive plan summary before simulation."""
    waypoints = setup.waypoints()
    stats = get_dive_stats(waypoints)
    validation = validate_profile(waypoints)

    print("--- DIVE PLAN ---")
    print(f"Setup: {setup.name or 'unnamed'}")
    if stats is not None:
        print(f"Max depth: {stats.max_depth:.0f}m")
        print(f"Dive time: {stats.total_time:.0f} min ({stats.waypoint_count} waypoints)")
        print(f"Max descent/ascent rate: {stats.max_descent_rate:.1f} / {stats.max_ascent_rate:.1f} m/min")
    print(f"Gases: {', '.join(g.name for g in setup.gases)}")
    print(f"Model: ZH-L16{variant}, {setup.gradient_factors().label()}")
    print(f"Surface interval: {setup.surface_interval:.0f} min")
    for message in validation.errors:
        print(f"ERROR: {message}")
    for message in validation.warnings:
        print(f"Warning: {message}")


def print_results(setup: DiveSetup, result: CalculationResult, stop_increment: float) -> dict:
    """Print simulation results and return them as a summary dict."""
    gf = setup.gradient_factors()
    series = calculate_ceiling_time_series(result, gf.gf_low, gf.gf_high)

    peak_idx = int(np.argmax(series.ceiling_depths))
    stop = first_stop_depth(
        result.pressures_at(peak_idx), gf.gf_low,
        stop_increment=stop_increment, table=result.table,
    )
    ndl = no_decompression_limit(
        result.pressures_at(0),
        max(result.depth_points),
        setup.bottom_gas.n2,
        gf_high=gf.gf_high,
        table=result.table,
    )
    max_tissue = result.tissue_pressures.max(axis=0)

    print("\n--- SIMULATION RESULTS ---")
    print(f"Time points: {len(result)} ({result.total_time:.0f} min)")
    print(f"NDL at max depth from surface saturation: {ndl.minutes:.0f} min")
    if series.max_ceiling_depth > 0:
        print(
            f"Deepest ceiling: {series.max_ceiling_depth:.1f}m at "
            f"{series.time_points[peak_idx]:.1f} min "
            f"(TC{series.controlling_compartments[peak_idx]})"
        )
        print(f"First stop: {stop.depth:.0f}m (TC{stop.controlling_compartment})")
    else:
        print("No decompression ceiling during the dive.")

    violations = [
        t for t, depth, ceil in zip(result.time_points, result.depth_points, series.ceiling_depths)
        if depth < ceil - 1e-6
    ]
    if violations:
        print(f"\nWARNING: ceiling violated for {len(violations)} time points "
              f"(first at {violations[0]:.1f} min)")

    for switch in result.gas_switches:
        print(f"Gas switch at {switch.time:.1f} min / {switch.depth:.0f}m: "
              f"{switch.from_gas.name} -> {switch.to_gas.name}")

    return {
        "ndl": ndl.minutes,
        "maxCeilingDepth": series.max_ceiling_depth,
        "firstStopDepth": stop.depth,
        "controllingCompartment": stop.controlling_compartment,
        "maxTissuePressures": max_tissue.tolist(),
        "ceilingDepths": series.ceiling_depths,
    }


def plot_results(setup: DiveSetup, result: CalculationResult):
    """Depth profile with ceiling, tissue pressures and the M-value diagram."""
    gf = setup.gradient_factors()
    series = calculate_ceiling_time_series(result, gf.gf_low, gf.gf_high)
    table = result.table
    cmap = colormaps["viridis"]
    colors = cmap(np.linspace(0, 1, len(table)))

    fig, axes = plt.subplots(3, 1, figsize=(12, 14), gridspec_kw={"height_ratios": [1, 1.5, 1.5]})

    # --- Row 0: Depth profile and ceiling ---
    ax_depth = axes[0]
    ax_depth.plot(result.time_points, result.depth_points, "b-", linewidth=2, label="Depth")
    ax_depth.fill_between(result.time_points, result.depth_points, alpha=0.15, color="blue")
    ax_depth.plot(
        series.time_points, series.ceiling_depths, "r--", linewidth=1.5,
        label=f"Ceiling ({gf.label()})",
    )
    for switch in result.gas_switches:
        ax_depth.axvline(x=switch.time, color="gray", linestyle=":", alpha=0.6)
        ax_depth.annotate(switch.to_gas.name, (switch.time, switch.depth), fontsize=8)
    ax_depth.set_ylabel("Depth (m)")
    ax_depth.set_xlabel("Time (min)")
    ax_depth.set_title(f"Dive Profile: {setup.name or 'unnamed'}")
    ax_depth.invert_yaxis()
    ax_depth.grid(True, alpha=0.3)
    ax_depth.legend(loc="lower right", fontsize=8)

    # --- Row 1: Tissue pressure per compartment ---
    ax_tissue = axes[1]
    for i, comp in enumerate(table):
        ax_tissue.plot(
            result.time_points, result.tissue_pressures[:, i],
            color=colors[i], linewidth=1.2, label=f"TC{comp.id} ({comp.half_time:g} min)",
        )
    ax_tissue.plot(
        result.time_points, result.alveolar_n2_pressures,
        color="black", linestyle="--", linewidth=1, label="Alveolar ppN2",
    )
    ax_tissue.set_xlabel("Time (min)")
    ax_tissue.set_ylabel("ppN2 (bar)")
    ax_tissue.set_title(f"N2 Tissue Loading (ZH-L16{table.variant})")
    ax_tissue.legend(loc="upper right", fontsize=7, ncol=2)
    ax_tissue.grid(True, alpha=0.3)

    # --- Row 2: Pressure-pressure diagram with M-value lines ---
    ax_mv = axes[2]
    max_ambient = max(result.ambient_pressures) + 0.5
    ambient = np.linspace(0.5, max_ambient, 50)
    ax_mv.plot(ambient, ambient, color="tab:blue", linewidth=1, label="Ambient")
    for i, comp in enumerate(table):
        m_line = m_value_line(comp, ambient, gf.gf_high)
        ax_mv.plot(ambient, m_line, color=colors[i], linewidth=0.8, alpha=0.6)
        ax_mv.plot(
            result.ambient_pressures, result.tissue_pressures[:, i],
            color=colors[i], linewidth=1.5,
        )
    ax_mv.axvline(x=SURFACE_PRESSURE, color="gray", linestyle=":", alpha=0.6, label="Surface")
    ax_mv.set_xlabel("Ambient pressure (bar)")
    ax_mv.set_ylabel("Tissue ppN2 (bar)")
    ax_mv.set_title("Tissue State vs. M-Value Lines")
    ax_mv.set_xlim(0.5, max_ambient)
    ax_mv.legend(loc="upper left", fontsize=8)
    ax_mv.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for quick overrides."""
    parser = argparse.ArgumentParser(
        description="Bühlmann ZH-L16 tissue loading viewer",
    )
    parser.add_argument("--setup", type=str, help="Dive setup file (YAML or JSON)")
    parser.add_argument("--depth", type=float, help="Square profile depth in meters")
    parser.add_argument("--time", type=float, help="Square profile bottom time in minutes")
    parser.add_argument(
        "--gf", type=int, nargs=2, metavar=("LOW", "HIGH"),
        help="Gradient factors in percent, e.g. --gf 30 85",
    )
    parser.add_argument("--variant", choices=["A", "B", "C"], help="ZH-L16 variant")
    parser.add_argument("--surface-interval", type=float, help="Surface time after the dive (minutes)")
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config YAML (default: config.yaml next to the package)",
    )
    parser.add_argument("--save", type=str, help="Directory to write the plot and results to")
    parser.add_argument("--no-plot", action="store_true", help="Do not open a plot window")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = load_effective_config(
        config_path=args.config,
        gf_override=tuple(args.gf) if args.gf else None,
        variant_override=args.variant,
    )

    output_dir = None
    if args.save:
        output_dir = os.path.join(
            args.save,
            build_settings_dirname(config["gf"], config["variant"], config["step_minutes"]),
        )
    setup_logging(args.verbose, output_dir)

    setup = build_setup(args, config)
    table = get_table(config["variant"])

    print_dive_plan(setup, table.variant)

    result = setup.calculate(table=table, step_minutes=config["step_minutes"])
    summary = print_results(setup, result, config["stop_increment"])

    fig = plot_results(setup, result)

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        save_config_snapshot(config["config_path"], output_dir)
        fig.savefig(os.path.join(output_dir, "dive.png"), dpi=120)
        with open(os.path.join(output_dir, "results.json"), "w") as f:
            json.dump({"setup": setup.to_dict(), "summary": summary, "series": result.to_dict()}, f)
        logger.info(f"Results written to {output_dir}")

    if not args.no_plot:
        plt.show()


if __name__ == "__main__":
    main()

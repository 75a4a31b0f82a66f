#!/usr/bin/env python3
"""
Stand Metrics Report

Computes the spatial metrics of a saved stand (.npz or .csv with x, y, radius)
and optionally its energy against a targets/weights file.
"""

import argparse
import json
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stand_pattern import (  # noqa: E402
    MetricsConfig,
    classify_pattern,
    compute_stand_metrics,
    load_config,
    stand_energy,
    utils,
)
from stand_pattern.log import set_debug  # noqa: E402


def main():
    parser = argparse.ArgumentParser(
        description="Compute spatial metrics for a saved stand",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("stand", type=str, help="Stand file (.npz or .csv)")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON/TOML metrics config (defaults used if omitted)",
    )
    parser.add_argument("--plot-size", type=float, default=None, help="Override plot side (m)")
    parser.add_argument("--grid-res", type=float, default=None, help="Override raster resolution (m)")
    parser.add_argument(
        "--targets",
        type=str,
        default=None,
        help="JSON/TOML file with 'targets' and 'weights' tables",
    )
    parser.add_argument("--json", action="store_true", help="Print metrics as JSON")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()
    set_debug(args.debug)

    config = load_config(args.config) if args.config else MetricsConfig()
    overrides = {}
    if args.plot_size is not None:
        overrides["plot_size"] = args.plot_size
    if args.grid_res is not None:
        overrides["grid_res"] = args.grid_res
    if overrides:
        params = {**config.__dict__, **overrides}
        config = MetricsConfig.from_dict(params)

    stand = utils.load_stand(args.stand)
    if stand.radius is None:
        raise ValueError(f"{args.stand} has no crown radii")

    start_time = time.time()
    metrics = compute_stand_metrics(stand.x, stand.y, stand.radius, config)
    elapsed_time = time.time() - start_time

    report = metrics.as_dict()
    report["pattern"] = classify_pattern(metrics.clark_evans)
    if args.targets:
        goals = utils.load_params(args.targets)
        report["energy"] = stand_energy(
            metrics,
            goals.get("targets", {}),
            goals.get("weights", {}),
            relative_floor=config.relative_floor,
        )

    if args.json:
        print(json.dumps(report, indent=2))
        return 0

    print(f"Stand: {args.stand} ({metrics.n_trees} trees, plot {config.plot_size:g} m)")
    print(f"   Density:          {metrics.density_ha:.1f} stems/ha")
    print(f"   Clark-Evans R:    {metrics.clark_evans:.4f} ({report['pattern']})")
    print(f"   Canopy cover:     {metrics.canopy_cover:.4f}")
    print(f"   Crown overlap:    {metrics.crown_overlap:.2f} m^2")
    print(f"   Mean crown r:     {metrics.mean_crown_radius:.2f} m")
    if "energy" in report:
        print(f"   Energy:           {report['energy']:.6f}")
    print(f"   Time elapsed:     {elapsed_time:.3f} s")
    return 0


if __name__ == "__main__":
    sys.exit(main())

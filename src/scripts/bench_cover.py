#!/usr/bin/env python3
"""
Canopy Cover Benchmark

Times every rasterizer on random stands of increasing size and checks that
all of them return the same cover.
"""

import argparse
import sys
import time
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stand_pattern import canopy_cover, utils  # noqa: E402

METHODS = ("direct", "indexed", "parallel", "hybrid")


def random_stand(n, plot_size, r_min, r_max):
    x = np.random.uniform(0.0, plot_size, n)
    y = np.random.uniform(0.0, plot_size, n)
    r = np.random.uniform(r_min, r_max, n)
    return x, y, r


def time_method(method, x, y, r, plot_size, grid_res, n_threads, repeats):
    # First call compiles the kernel
    cover = canopy_cover(x, y, r, plot_size, grid_res, method=method, n_threads=n_threads)
    best = float("inf")
    for _ in range(repeats):
        t0 = time.perf_counter()
        canopy_cover(x, y, r, plot_size, grid_res, method=method, n_threads=n_threads)
        best = min(best, time.perf_counter() - t0)
    return cover, best


def main():
    parser = argparse.ArgumentParser(description="Benchmark the canopy cover rasterizers")
    parser.add_argument("--sizes", type=int, nargs="+", default=[100, 500, 2000])
    parser.add_argument("--plot-size", type=float, default=100.0)
    parser.add_argument("--grid-res", type=float, default=0.5)
    parser.add_argument("--r-min", type=float, default=1.0)
    parser.add_argument("--r-max", type=float, default=4.0)
    parser.add_argument("--threads", type=int, default=None)
    parser.add_argument("--repeats", type=int, default=3)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    utils.set_seed(args.seed)
    mismatches = 0
    for n in args.sizes:
        x, y, r = random_stand(n, args.plot_size, args.r_min, args.r_max)
        results = {}
        for method in METHODS:
            results[method] = time_method(
                method, x, y, r, args.plot_size, args.grid_res, args.threads, args.repeats
            )
        covers = {cover for cover, _ in results.values()}
        status = "ok" if len(covers) == 1 else "MISMATCH"
        mismatches += status != "ok"
        timings = "  ".join(f"{m}={t * 1e3:8.2f}ms" for m, (_, t) in results.items())
        print(f"[bench] n={n:6d} cover={results['direct'][0]:.4f} {status}  {timings}")

    return 1 if mismatches else 0


if __name__ == "__main__":
    sys.exit(main())

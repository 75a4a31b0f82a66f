# src/scripts/plot_cover.py
import argparse
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stand_pattern import canopy_cover, clark_evans_index, coverage_grid, utils  # noqa: E402
from stand_pattern.canopy import COVER_METHODS, DEFAULT_GRID_RES  # noqa: E402


def format_title(stand, plot_size, cover, ce):
    """
    Title string with the headline statistics of a stand.
    """
    meta = stand.meta or {}
    parts = [f"N={stand.num_trees}", f"plot={plot_size:g} m", f"cover={cover:.3f}"]
    if ce is not None:
        parts.append(f"R={ce:.3f}")
    label = meta.get("label")
    if label:
        parts.insert(0, str(label))
    return ", ".join(parts)


def plot_stand(stand, plot_size, grid_res, method, show_crowns=True):
    grid = coverage_grid(stand.x, stand.y, stand.radius, plot_size, grid_res, method=method)
    cover = canopy_cover(stand.x, stand.y, stand.radius, plot_size, grid_res, method=method)
    ce = clark_evans_index(stand.x, stand.y, plot_size, plot_size) if stand.num_trees >= 2 else None

    fig, ax = plt.subplots(figsize=(7, 7))
    n_cells = grid.shape[0]
    extent = (0.0, n_cells * grid_res, 0.0, n_cells * grid_res)
    ax.imshow(grid, origin="lower", extent=extent, cmap="Greens", vmin=0, vmax=1.5, interpolation="nearest")
    if show_crowns:
        theta = np.linspace(0.0, 2.0 * np.pi, 64)
        for x, y, r in zip(stand.x, stand.y, stand.radius):
            ax.plot(x + r * np.cos(theta), y + r * np.sin(theta), color="darkgreen", lw=0.5)
    ax.scatter(stand.x, stand.y, s=4, color="saddlebrown")
    ax.set_xlim(0.0, plot_size)
    ax.set_ylim(0.0, plot_size)
    ax.set_aspect("equal")
    ax.set_xlabel("x (m)")
    ax.set_ylabel("y (m)")
    ax.set_title(format_title(stand, plot_size, cover, ce))
    fig.tight_layout()
    return fig


def main():
    parser = argparse.ArgumentParser(description="Render the canopy coverage grid of a stand")
    parser.add_argument("stand", help="Stand file (.npz or .csv)")
    parser.add_argument("--plot-size", type=float, required=True, help="Plot side (m)")
    parser.add_argument("--grid-res", type=float, default=DEFAULT_GRID_RES, help="Raster resolution (m)")
    parser.add_argument("--method", choices=COVER_METHODS, default="auto")
    parser.add_argument("--no-crowns", action="store_true", help="Hide crown outlines")
    parser.add_argument("--out", default=None, help="Image path (shows a window if omitted)")
    args = parser.parse_args()

    stand = utils.load_stand(args.stand)
    if stand.radius is None:
        raise ValueError(f"{args.stand} has no crown radii")
    fig = plot_stand(stand, args.plot_size, args.grid_res, args.method, show_crowns=not args.no_crowns)
    if args.out:
        Path(args.out).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(args.out, dpi=150)
        print(f"✅ Coverage plot saved to {args.out}")
    else:
        plt.show()


if __name__ == "__main__":
    main()

# src/stand_pattern/utils.py
from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np


@dataclass
class StandData:
    """Tree positions and crown radii of one stand, plus free-form metadata."""

    x: np.ndarray
    y: np.ndarray
    radius: Optional[np.ndarray] = None
    meta: Optional[Dict[str, Any]] = None

    def ensure_meta(self) -> Dict[str, Any]:
        if self.meta is None:
            self.meta = {}
        return self.meta

    @property
    def num_trees(self) -> int:
        return int(len(self.x))


def set_seed(seed: int = 0) -> None:
    """Set random seed for reproducibility (global numpy RNG)."""
    np.random.seed(seed)


def save_stand(
    path: str | os.PathLike[str], stand: StandData, *, overwrite: bool = True
) -> None:
    """Serialize a StandData to a compressed .npz file."""
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    out: Dict[str, Any] = {
        "x": np.asarray(stand.x, dtype=np.float64),
        "y": np.asarray(stand.y, dtype=np.float64),
    }
    if stand.radius is not None:
        out["radius"] = np.asarray(stand.radius, dtype=np.float64)
    out["meta"] = stand.meta or {}
    np.savez_compressed(path, **out)


def _load_npz(path: Path) -> StandData:
    data = np.load(path, allow_pickle=True)
    missing = [key for key in ("x", "y") if key not in data]
    if missing:
        raise ValueError(f"{path} is missing arrays: {', '.join(missing)}")
    radius = data["radius"].astype(float) if "radius" in data else None
    meta = None
    if "meta" in data:
        meta_raw = data["meta"]
        try:
            meta = meta_raw.item()
        except ValueError:
            meta = None
    return StandData(
        x=data["x"].astype(float),
        y=data["y"].astype(float),
        radius=radius,
        meta=meta or {},
    )


def _load_csv(path: Path) -> StandData:
    table = np.genfromtxt(path, delimiter=",", names=True, dtype=np.float64, encoding="utf-8")
    names = table.dtype.names or ()
    missing = [key for key in ("x", "y") if key not in names]
    if missing:
        raise ValueError(f"{path} is missing columns: {', '.join(missing)}")
    table = np.atleast_1d(table)
    radius = np.asarray(table["radius"], dtype=float) if "radius" in names else None
    return StandData(
        x=np.asarray(table["x"], dtype=float),
        y=np.asarray(table["y"], dtype=float),
        radius=radius,
        meta={"source": str(path)},
    )


def load_stand(path: str | os.PathLike[str]) -> StandData:
    """
    Load a stand from .npz (arrays ``x``, ``y``, optional ``radius``) or from
    CSV with a header naming the same columns.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".npz":
        return _load_npz(path)
    if suffix == ".csv":
        return _load_csv(path)
    raise ValueError(f"Unsupported stand file format: {suffix}")


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load metric parameters from JSON or TOML.
    """
    path = str(path)
    with open(path, "rb") as fh:
        data = fh.read()
    suffix = Path(path).suffix.lower()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    if suffix in {".toml", ".tml"}:
        return tomllib.loads(data.decode("utf-8"))
    raise ValueError(f"Unsupported parameter file format: {suffix}")

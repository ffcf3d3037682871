"""
RGB-D frame utilities.

1. Load a registered colour / 16-bit depth image pair from disk.
2. Generate synthetic frames with known surfaces for demos and tests.

Frame dict schema
-----------------
{
  "rgb"       : np.ndarray  (H, W, 3) RGB uint8
  "depth"     : np.ndarray  (H, W)    uint16, 0 = no measurement
  "gt_labels" : np.ndarray  (H, W)    int32 surface id, -1 = no depth
  "name"      : str
}
"""

from __future__ import annotations

import logging
import numpy as np
import cv2
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

SYNTHETIC_KINDS = ("plane", "tilted", "box", "crease", "speckle")


def load_rgbd(
    rgb_path:   Union[str, Path],
    depth_path: Union[str, Path],
) -> dict:
    """Read an RGB image and its registered 16-bit depth image."""
    rgb_path, depth_path = Path(rgb_path), Path(depth_path)

    bgr = cv2.imread(str(rgb_path), cv2.IMREAD_COLOR)
    if bgr is None:
        raise FileNotFoundError(f"Could not read image: {rgb_path}")
    depth = cv2.imread(str(depth_path), cv2.IMREAD_ANYDEPTH)
    if depth is None:
        raise FileNotFoundError(f"Could not read depth image: {depth_path}")

    if depth.shape != bgr.shape[:2]:
        raise ValueError(
            f"Depth shape {depth.shape} != image shape {bgr.shape[:2]}"
        )
    if depth.dtype != np.uint16:
        logger.warning(f"{depth_path.name} is {depth.dtype}, expected uint16; converting.")
        depth = np.clip(depth, 0, np.iinfo(np.uint16).max).astype(np.uint16)

    return {
        "rgb":       cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB),
        "depth":     depth,
        "gt_labels": np.where(depth > 0, 0, -1).astype(np.int32),
        "name":      rgb_path.stem,
    }


def make_synthetic_frame(
    kind:     str   = "plane",
    height:   int   = 96,
    width:    int   = 128,
    depth_mm: int   = 1000,
    slope:    float = 4.0,
    noise:    float = 0.0,
    seed:     int   = 0,
) -> dict:
    """
    Parameters
    ----------
    kind     : "plane" | "tilted" | "box" | "crease" | "speckle"
    depth_mm : depth of the nearest (or only) surface in raw units (mm)
    slope    : depth change per pixel for "tilted" and "crease"
    noise    : std of additive colour noise (0-255 scale)
    """
    if kind not in SYNTHETIC_KINDS:
        raise ValueError(f"Unknown synthetic frame kind {kind!r}, expected one of {SYNTHETIC_KINDS}")

    rng   = np.random.RandomState(seed)
    ys, xs = np.mgrid[0:height, 0:width]
    rgb   = np.empty((height, width, 3), dtype=np.float64)
    rgb[:] = (140, 140, 140)
    depth = np.full((height, width), float(depth_mm))
    gt    = np.zeros((height, width), dtype=np.int32)

    if kind == "tilted":
        depth = depth_mm + slope * (xs - width / 2)
    elif kind == "crease":
        # ridge along the vertical centre line, closest to the camera
        depth = depth_mm + slope * np.abs(xs - width / 2)
        gt[xs >= width / 2] = 1
        rgb[xs >= width / 2] = (170, 150, 130)
    elif kind == "box":
        depth[:] = depth_mm * 1.5
        rgb[:] = (60, 90, 160)
        box = (
            (ys >= height // 4) & (ys < 3 * height // 4)
            & (xs >= width // 4) & (xs < 3 * width // 4)
        )
        depth[box] = depth_mm
        rgb[box] = (200, 60, 50)
        gt[box] = 1
    elif kind == "speckle":
        holes = rng.rand(height, width) < 0.02
        depth[holes] = 0

    if noise > 0:
        rgb += rng.randn(*rgb.shape) * noise

    depth = np.clip(np.round(depth), 0, np.iinfo(np.uint16).max).astype(np.uint16)
    gt[depth == 0] = -1

    return {
        "rgb":       np.clip(rgb, 0, 255).astype(np.uint8),
        "depth":     depth,
        "gt_labels": gt,
        "name":      f"synthetic_{kind}",
    }

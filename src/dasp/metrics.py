"""
Evaluation metrics for superpixel / region segmentations against a
ground-truth label image.

- Boundary recall (with pixel tolerance)
- Undersegmentation error (leakage of segments across GT regions)

Pixels labelled -1 in either image are ignored.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass

from scipy.ndimage import binary_dilation
from skimage.segmentation import find_boundaries


@dataclass
class RegionMetrics:
    n_regions:               int
    boundary_recall:         float
    undersegmentation_error: float

    def __str__(self) -> str:
        return (
            f"Regions={self.n_regions}  BR={self.boundary_recall:.4f}  "
            f"UE={self.undersegmentation_error:.4f}"
        )

    def as_dict(self) -> dict:
        return {
            "n_regions": self.n_regions,
            "boundary_recall": round(self.boundary_recall, 4),
            "undersegmentation_error": round(self.undersegmentation_error, 4),
        }


def boundary_recall(
    pred: np.ndarray,
    gt: np.ndarray,
    tolerance: int = 2,
) -> float:
    """Fraction of GT boundary pixels within `tolerance` px of a predicted boundary."""
    valid  = (pred >= 0) & (gt >= 0)
    gt_b   = find_boundaries(gt, mode="thick") & valid
    pred_b = find_boundaries(pred, mode="thick") & valid
    if not gt_b.any():
        return 1.0
    if tolerance > 0:
        pred_b = binary_dilation(pred_b, iterations=tolerance)
    return float((gt_b & pred_b).sum() / gt_b.sum())


def undersegmentation_error(pred: np.ndarray, gt: np.ndarray) -> float:
    """
    Sum over segment/GT overlaps of the smaller of (inside, outside) parts,
    normalised by the number of valid pixels. 0 for a perfect segmentation.
    """
    valid = (pred >= 0) & (gt >= 0)
    n = int(valid.sum())
    if n == 0:
        return 0.0

    p = pred[valid].astype(np.int64)
    g = gt[valid].astype(np.int64)
    n_p, n_g = int(p.max()) + 1, int(g.max()) + 1

    overlap = np.bincount(p * n_g + g, minlength=n_p * n_g).reshape(n_p, n_g)
    seg_size = overlap.sum(axis=1, keepdims=True)
    leak = np.minimum(overlap, seg_size - overlap)
    return float(leak.sum() / n)


def evaluate_regions(pred: np.ndarray, gt: np.ndarray, tolerance: int = 2) -> RegionMetrics:
    n_regions = len(np.unique(pred[pred >= 0]))
    return RegionMetrics(
        n_regions=n_regions,
        boundary_recall=boundary_recall(pred, gt, tolerance),
        undersegmentation_error=undersegmentation_error(pred, gt),
    )

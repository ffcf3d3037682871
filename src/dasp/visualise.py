"""
Visualisation utilities for DASP segmentations.

Functions
---------
colour_labels       - random colour per label, black for -1
overlay_boundaries  - label boundaries drawn over the RGB image
normals_to_rgb      - surface normals mapped to colours
plot_segmentation   - input / depth / normals / superpixels / regions panel
"""

from __future__ import annotations

import logging
import numpy as np
from typing import Optional

from skimage.segmentation import mark_boundaries

try:
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    _MPL = True
except ImportError:
    _MPL = False

logger = logging.getLogger(__name__)


def colour_labels(labels: np.ndarray, seed: int = 0) -> np.ndarray:
    """(H, W) int labels -> (H, W, 3) uint8 RGB."""
    n = int(labels.max()) + 1 if labels.size else 0
    rng = np.random.RandomState(seed)
    palette = rng.randint(40, 256, (max(n, 1), 3)).astype(np.uint8)
    vis = np.zeros((*labels.shape, 3), dtype=np.uint8)
    valid = labels >= 0
    vis[valid] = palette[labels[valid]]
    return vis


def overlay_boundaries(rgb: np.ndarray, labels: np.ndarray) -> np.ndarray:
    img = mark_boundaries(rgb, labels, color=(1, 0.3, 0))
    return (img * 255).astype(np.uint8)


def normals_to_rgb(normal: np.ndarray, valid: Optional[np.ndarray] = None) -> np.ndarray:
    """Map each normal component from [-1, 1] to [0, 255]."""
    vis = ((normal + 1.0) * 0.5 * 255).clip(0, 255).astype(np.uint8)
    if valid is not None:
        vis[~valid] = 0
    return vis


def plot_segmentation(
    result,
    save_path: Optional[str] = None,
    show: bool = False,
) -> Optional["plt.Figure"]:
    """
    Five panels: RGB, depth, normals, superpixel boundaries, regions.

    result : SegmentationResult from DaspPipeline.segment
    """
    if not _MPL:
        logger.warning("matplotlib not installed - skipping plots.")
        return None

    fig, axes = plt.subplots(1, 5, figsize=(20, 4))
    fig.suptitle(
        f"DASP: {result.n_superpixels} superpixels -> {result.n_regions} regions",
        fontsize=14, fontweight="bold",
    )

    depth = np.ma.masked_equal(result.features.depth, 0.0)
    panels = [
        ("Input", result.rgb, None),
        ("Depth [m]", depth, "viridis"),
        ("Normals", normals_to_rgb(result.features.normal, result.features.valid), None),
        ("Superpixels", overlay_boundaries(result.rgb, result.superpixels), None),
        ("Regions", colour_labels(result.regions), None),
    ]
    for ax, (title, img, cmap) in zip(axes, panels):
        im = ax.imshow(img, cmap=cmap)
        if cmap is not None:
            fig.colorbar(im, ax=ax, fraction=0.046)
        ax.set_title(title)
        ax.axis("off")

    if len(result.seeds):
        axes[3].scatter(result.seeds[:, 0], result.seeds[:, 1], s=4, c="yellow")

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=120, bbox_inches="tight")
        logger.info(f"Saved segmentation figure: {save_path}")
    if show:
        plt.show()
    return fig

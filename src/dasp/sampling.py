"""
Seed placement from the density field.

The density of a pixel is the expected number of superpixels it contributes,
so summing density over an area gives the number of seeds that area should
receive. Samplers return integer (x, y) seed positions on valid pixels.
"""

from __future__ import annotations

import logging
import numpy as np
from typing import Optional, Protocol

from .features import FeatureField

logger = logging.getLogger(__name__)


class SeedSampler(Protocol):
    def sample(self, field: FeatureField) -> np.ndarray:
        """Return (N, 2) int array of (x, y) seed positions."""
        ...


def _empty_seeds() -> np.ndarray:
    return np.zeros((0, 2), dtype=np.int64)


class FloydSteinbergSampler:
    """
    Error-diffusion sampling of the density field.

    Density is first summed over square blocks of `cell_size` pixels, then
    Floyd-Steinberg dithering turns the block densities into a binary seed
    map: a block fires when its accumulated density reaches 0.5 and the
    quantisation error is pushed to the unvisited neighbours. Each fired block
    places its seed on its highest-density pixel.
    """

    def __init__(self, cell_size: Optional[int] = None):
        if cell_size is not None and cell_size < 1:
            raise ValueError(f"cell_size must be >= 1, got {cell_size}")
        self.cell_size = cell_size

    def _auto_cell_size(self, density: np.ndarray) -> int:
        # aim for about half a seed per block
        mean = float(density[density > 0].mean())
        return max(1, int(np.floor(np.sqrt(0.5 / mean))))

    def sample(self, field: FeatureField) -> np.ndarray:
        density = field.density
        if not (density > 0).any():
            return _empty_seeds()

        H, W = density.shape
        cell = self.cell_size or self._auto_cell_size(density)
        Hc, Wc = -(-H // cell), -(-W // cell)

        padded = np.zeros((Hc * cell, Wc * cell), dtype=np.float64)
        padded[:H, :W] = density
        blocks = padded.reshape(Hc, cell, Wc, cell).transpose(0, 2, 1, 3)
        err    = blocks.sum(axis=(2, 3))

        fired = []
        for cy in range(Hc):
            for cx in range(Wc):
                value = err[cy, cx]
                if value >= 0.5:
                    fired.append((cy, cx))
                    quant_error = value - 1.0
                else:
                    quant_error = value

                if cx + 1 < Wc:
                    err[cy, cx + 1] += quant_error * 7 / 16
                if cy + 1 < Hc:
                    if cx > 0:
                        err[cy + 1, cx - 1] += quant_error * 3 / 16
                    err[cy + 1, cx] += quant_error * 5 / 16
                    if cx + 1 < Wc:
                        err[cy + 1, cx + 1] += quant_error * 1 / 16

        seeds = []
        skipped = 0
        for cy, cx in fired:
            block = blocks[cy, cx]
            if not (block > 0).any():
                skipped += 1
                continue
            by, bx = np.unravel_index(int(np.argmax(block)), block.shape)
            seeds.append((cx * cell + bx, cy * cell + by))

        logger.debug(
            f"Floyd-Steinberg sampling: cell={cell}, {len(seeds)} seeds "
            f"({skipped} fired blocks without valid pixels)"
        )
        if not seeds:
            return _empty_seeds()
        return np.asarray(seeds, dtype=np.int64)


class GridSampler:
    """Regular grid whose spacing matches the total density."""

    def sample(self, field: FeatureField) -> np.ndarray:
        valid = field.valid
        n_valid = int(valid.sum())
        if n_valid == 0:
            return _empty_seeds()

        n_seeds = max(1, int(round(float(field.density.sum()))))
        spacing = max(1.0, float(np.sqrt(n_valid / n_seeds)))

        H, W = valid.shape
        ys = np.arange(spacing / 2, H, spacing).astype(np.int64)
        xs = np.arange(spacing / 2, W, spacing).astype(np.int64)
        gx, gy = np.meshgrid(xs, ys)
        grid = np.stack([gx.ravel(), gy.ravel()], axis=1)
        keep = valid[grid[:, 1], grid[:, 0]]

        logger.debug(f"Grid sampling: spacing={spacing:.1f}, {int(keep.sum())} seeds")
        return grid[keep]

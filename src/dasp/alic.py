"""
Adaptive local iterative clustering (ALIC).

A k-means variant restricted to local windows: every superpixel only
competes for pixels inside a square window sized from its mean density
(the radius of a disk holding 1 / density pixels). Density grows with depth
and tilt, so near frontal superpixels cover more pixels than far or oblique
ones while keeping about the same surface area.

Usage
-----
clusterer = LocalKMeansClusterer(params)
labels, aggregates = clusterer.cluster(field, seeds, DaspDistance.from_parameters(params))
"""

from __future__ import annotations

import logging
import numpy as np
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .features import DaspParameters, FeatureField, INVALID_NORMAL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlicConfig:
    n_iterations:  int   = 5     # Assignment/update rounds
    window_factor: float = 2.0   # Search window half-size in superpixel radii

    def __post_init__(self):
        if self.n_iterations < 1:
            raise ValueError(f"n_iterations must be >= 1, got {self.n_iterations}")
        if self.window_factor <= 0:
            raise ValueError(f"window_factor must be > 0, got {self.window_factor}")


@dataclass(frozen=True)
class SuperpixelAggregate:
    """Mean features of the pixels assigned to one superpixel."""
    position: np.ndarray   # (2,) mean pixel coordinate (x, y)
    color:    np.ndarray   # (3,)
    depth:    float        # metres
    density:  float        # mean density, 1 / expected area in pixels
    world:    np.ndarray   # (3,)
    normal:   np.ndarray   # (3,) unit
    count:    int = 1      # member pixels


class Clusterer(Protocol):
    def cluster(
        self,
        field: FeatureField,
        seeds: np.ndarray,
        metric: Callable,
    ) -> tuple[np.ndarray, list[SuperpixelAggregate]]:
        """Return (labels (H, W) int32 with -1 = unassigned, aggregates)."""
        ...


def _aggregate_at(field: FeatureField, x: int, y: int) -> SuperpixelAggregate:
    return SuperpixelAggregate(
        position=field.position[y, x].copy(),
        color=field.color[y, x].copy(),
        depth=float(field.depth[y, x]),
        density=float(field.density[y, x]),
        world=field.world[y, x].copy(),
        normal=field.normal[y, x].copy(),
        count=1,
    )


class LocalKMeansClusterer:

    def __init__(self, params: DaspParameters, config: Optional[AlicConfig] = None):
        self.params = params
        self.config = config or AlicConfig()

    def cluster(
        self,
        field: FeatureField,
        seeds: np.ndarray,
        metric: Callable,
    ) -> tuple[np.ndarray, list[SuperpixelAggregate]]:
        H, W   = field.shape
        valid  = field.valid
        labels = np.full((H, W), -1, dtype=np.int32)

        aggregates = [
            _aggregate_at(field, int(x), int(y))
            for x, y in np.asarray(seeds).reshape(-1, 2)
            if 0 <= x < W and 0 <= y < H and valid[int(y), int(x)]
        ]
        if not aggregates:
            logger.debug("No valid seeds, every pixel stays unassigned.")
            return labels, []

        for it in range(self.config.n_iterations):
            previous = labels
            labels   = self._assign(field, aggregates, metric)
            aggregates, labels = self._update(field, labels, len(aggregates))
            logger.debug(f"ALIC iteration {it + 1}: {len(aggregates)} superpixels")
            if np.array_equal(previous, labels):
                break

        return labels, aggregates

    def _window_radius(self, sp: SuperpixelAggregate) -> int:
        if sp.density > 0:
            # radius of a disk covering 1 / density pixels
            r_px = np.sqrt(1.0 / (np.pi * sp.density))
        else:
            r_px = self.params.radius * self.params.focal_px / sp.depth
        r_px *= self.config.window_factor
        return max(1, int(np.ceil(r_px)))

    def _assign(self, field: FeatureField, aggregates, metric) -> np.ndarray:
        H, W   = field.shape
        valid  = field.valid
        dist   = np.full((H, W), np.inf)
        labels = np.full((H, W), -1, dtype=np.int32)

        for k, sp in enumerate(aggregates):
            r  = self._window_radius(sp)
            cx = int(round(float(sp.position[0])))
            cy = int(round(float(sp.position[1])))
            x0, x1 = max(0, cx - r), min(W, cx + r + 1)
            y0, y1 = max(0, cy - r), min(H, cy + r + 1)

            d = metric(sp, field.window(x0, y0, x1, y1))
            win_dist = dist[y0:y1, x0:x1]
            better   = valid[y0:y1, x0:x1] & (d < win_dist)
            win_dist[better] = d[better]
            labels[y0:y1, x0:x1][better] = k

        return labels

    def _update(self, field: FeatureField, labels: np.ndarray, n: int):
        """Recompute aggregate means, drop empty superpixels, compact labels."""
        flat     = labels.ravel()
        assigned = flat >= 0
        idx      = flat[assigned]
        counts   = np.bincount(idx, minlength=n)

        def sums(values: np.ndarray) -> np.ndarray:
            v = values.reshape(flat.size, -1)[assigned]
            return np.stack(
                [np.bincount(idx, weights=v[:, c], minlength=n) for c in range(v.shape[1])],
                axis=1,
            )

        pos_sum, col_sum = sums(field.position), sums(field.color)
        dep_sum, wor_sum = sums(field.depth), sums(field.world)
        den_sum = sums(field.density)
        nor_sum = sums(field.normal)

        keep  = np.nonzero(counts > 0)[0]
        remap = np.full(n, -1, dtype=np.int32)
        remap[keep] = np.arange(keep.size, dtype=np.int32)
        new_labels = np.where(labels >= 0, remap[np.maximum(labels, 0)], -1).astype(np.int32)

        aggregates = []
        for k in keep:
            c = float(counts[k])
            normal = nor_sum[k]
            length = float(np.linalg.norm(normal))
            normal = normal / length if length > 0 else INVALID_NORMAL.copy()
            aggregates.append(SuperpixelAggregate(
                position=pos_sum[k] / c,
                color=col_sum[k] / c,
                depth=float(dep_sum[k, 0] / c),
                density=float(den_sum[k, 0] / c),
                world=wor_sum[k] / c,
                normal=normal,
                count=int(counts[k]),
            ))
        return aggregates, new_labels

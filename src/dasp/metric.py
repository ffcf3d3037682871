"""
Superpixel-to-pixel distance used by the clustering engine.

    d = c * |world_s - world_p|^2 / R^2
      + (1 - c) * ((1 - n) * |color_s - color_p|^2 + n * (1 - normal_s . normal_p))

with c = compactness, n = normal_weight and R = superpixel radius.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass

from .features import DaspParameters


def normal_distance(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Approximation of the angle between unit normals: 1 - cos."""
    return 1.0 - np.sum(a * b, axis=-1)


@dataclass(frozen=True)
class DaspDistance:
    compactness:   float = 0.4
    normal_weight: float = 0.75
    radius:        float = 0.02

    @classmethod
    def from_parameters(cls, params: DaspParameters) -> "DaspDistance":
        return cls(
            compactness=params.compactness,
            normal_weight=params.normal_weight,
            radius=params.radius,
        )

    def __call__(self, superpixel, pixel):
        """
        superpixel : anything with world / color / normal of shape (3,)
        pixel      : PixelSample, possibly batched -> distance per pixel
        """
        spatial = np.sum((superpixel.world - pixel.world) ** 2, axis=-1) / (self.radius ** 2)
        color   = np.sum((superpixel.color - pixel.color) ** 2, axis=-1)
        normal  = normal_distance(superpixel.normal, pixel.normal)
        return (
            self.compactness * spatial
            + (1.0 - self.compactness) * (
                (1.0 - self.normal_weight) * color
                + self.normal_weight * normal
            )
        )

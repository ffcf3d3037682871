"""
Per-pixel geometric features for depth-adaptive superpixels (DASP).

Feature field (one entry per pixel)
-----------------------------------
  position  (2)  pixel coordinates (x, y)
  color     (3)  RGB scaled to [0, 1]
  depth          metres, 0 = invalid
  world     (3)  back-projected camera-space point (pinhole model)
  normal    (3)  unit surface normal, oriented towards the camera
  density        expected number of superpixels covering the pixel
  num            validity count, 1 = valid depth, 0 = invalid

Depth gradients
---------------
Gradients are estimated with five depth taps straddling the pixel along each
axis. The tap spacing grows with the physical superpixel radius and shrinks
with depth, so the same surface patch is differentiated at every distance.
Taps that hit missing depth (0) fall back to one-sided differences; when all
taps are valid the two one-sided second differences are blended so the side
with the larger curvature (a likely depth discontinuity) gets less weight.
"""

from __future__ import annotations

import logging
import numpy as np
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)


INVALID_NORMAL = np.array([0.0, 0.0, -1.0])
MIN_GRADIENT_WINDOW = 4


@dataclass(frozen=True)
class DaspParameters:
    focal_px:        float = 540.0   # Focal length in pixels
    depth_to_z:      float = 0.001   # Raw depth unit -> metres
    radius:          float = 0.02    # Superpixel radius in metres
    compactness:     float = 0.4     # Spatial vs. appearance weight
    normal_weight:   float = 0.75    # Normal vs. colour weight
    num_superpixels: int   = 0       # 0 = count emerges from radius
    gradient_window_scale: float = 0.1

    def __post_init__(self):
        if self.focal_px <= 0:
            raise ValueError(f"focal_px must be > 0, got {self.focal_px}")
        if self.depth_to_z <= 0:
            raise ValueError(f"depth_to_z must be > 0, got {self.depth_to_z}")
        if self.radius <= 0:
            raise ValueError(f"radius must be > 0, got {self.radius}")
        if not 0.0 <= self.compactness <= 1.0:
            raise ValueError(f"compactness must be in [0, 1], got {self.compactness}")
        if not 0.0 <= self.normal_weight <= 1.0:
            raise ValueError(f"normal_weight must be in [0, 1], got {self.normal_weight}")
        if self.num_superpixels < 0:
            raise ValueError(f"num_superpixels must be >= 0, got {self.num_superpixels}")
        if self.gradient_window_scale <= 0:
            raise ValueError(
                f"gradient_window_scale must be > 0, got {self.gradient_window_scale}"
            )


@dataclass
class PixelSample:
    """
    Features of one pixel. Every field may carry leading batch axes, so the
    same container describes a whole window of pixels.
    """
    position: np.ndarray
    color:    np.ndarray
    depth:    np.ndarray
    world:    np.ndarray
    normal:   np.ndarray
    density:  np.ndarray
    num:      np.ndarray


@dataclass
class FeatureField:
    """Frame-scoped per-pixel features, all arrays share the (H, W) lead shape."""
    position: np.ndarray   # (H, W, 2) float64 (x, y)
    color:    np.ndarray   # (H, W, 3) float64 in [0, 1]
    depth:    np.ndarray   # (H, W)    float64 metres
    world:    np.ndarray   # (H, W, 3) float64
    normal:   np.ndarray   # (H, W, 3) float64
    density:  np.ndarray   # (H, W)    float64
    num:      np.ndarray   # (H, W)    float64 {0, 1}

    @property
    def shape(self) -> tuple[int, int]:
        return self.depth.shape

    @property
    def valid(self) -> np.ndarray:
        return self.num > 0

    def sample(self, x: int, y: int) -> PixelSample:
        return PixelSample(
            position=self.position[y, x],
            color=self.color[y, x],
            depth=self.depth[y, x],
            world=self.world[y, x],
            normal=self.normal[y, x],
            density=self.density[y, x],
            num=self.num[y, x],
        )

    def window(self, x0: int, y0: int, x1: int, y1: int) -> PixelSample:
        """Batched view of the half-open pixel rectangle [x0, x1) x [y0, y1)."""
        ys, xs = slice(y0, y1), slice(x0, x1)
        return PixelSample(
            position=self.position[ys, xs],
            color=self.color[ys, xs],
            depth=self.depth[ys, xs],
            world=self.world[ys, xs],
            normal=self.normal[ys, xs],
            density=self.density[ys, xs],
            num=self.num[ys, xs],
        )

    def with_density(self, density: np.ndarray) -> "FeatureField":
        return replace(self, density=density)


# Gradient estimation

def finite_difference(v0, v1, v2, v3, v4):
    """
    First derivative from five evenly spaced raw depth samples (v0, ..., v4),
    v2 being the centre. Zero samples are invalid. Accepts scalars or arrays.
    """
    v0, v1, v2, v3, v4 = (np.asarray(v, dtype=np.float64) for v in (v0, v1, v2, v3, v4))

    speckle       = (v0 == 0) & (v4 == 0) & (v1 != 0) & (v2 != 0) & (v3 != 0)
    left_invalid  = (v0 == 0) | (v1 == 0)
    right_invalid = (v3 == 0) | (v4 == 0)

    a = np.abs(v2 + v0 - 2.0 * v1)
    b = np.abs(v4 + v2 - 2.0 * v3)
    s = a + b
    with np.errstate(divide="ignore", invalid="ignore"):
        p = np.where(s > 0, a / s, 0.5)
        q = np.where(s > 0, b / s, 0.5)
    blend = q * (v2 - v0) + p * (v4 - v2)

    out = np.select(
        [speckle, left_invalid & right_invalid, left_invalid, right_invalid],
        [v3 - v1, np.zeros_like(blend), v4 - v2, v2 - v0],
        default=blend,
    )
    return out[()]


def gradient_window(depth_m, params: DaspParameters):
    """Tap spacing in pixels: ~ scale * radius * f / depth, at least 4, even."""
    window = params.gradient_window_scale * params.radius * params.focal_px / np.asarray(depth_m)
    w = np.maximum(np.floor(window + 0.5).astype(np.int64), MIN_GRADIENT_WINDOW)
    return (w + w % 2)[()]


def local_depth_gradient(depth: np.ndarray, x: int, y: int, params: DaspParameters) -> np.ndarray:
    """Physical depth gradient (dz/dx, dz/dy) at pixel (x, y)."""
    d00 = float(depth[y, x])
    if d00 == 0:
        return np.zeros(2)

    depth_m = d00 * params.depth_to_z
    w = int(gradient_window(depth_m, params))
    H, W = depth.shape
    # can not difference across the border
    if x < w or x >= W - w or y < w or y >= H - w:
        return np.zeros(2)

    h = w // 2
    dx = finite_difference(depth[y, x - w], depth[y, x - h], d00, depth[y, x + h], depth[y, x + w])
    dy = finite_difference(depth[y - w, x], depth[y - h, x], d00, depth[y + h, x], depth[y + w, x])

    # w is rounded, so the metric pixel size comes from the window actually used
    scale = params.depth_to_z * params.focal_px / (w * depth_m)
    return scale * np.array([dx, dy], dtype=np.float64)


def depth_gradients(depth: np.ndarray, params: DaspParameters) -> np.ndarray:
    """Vectorised local_depth_gradient over the whole image -> (H, W, 2)."""
    H, W = depth.shape
    grad = np.zeros((H, W, 2), dtype=np.float64)

    ys, xs = np.nonzero(depth)
    if ys.size == 0:
        return grad

    raw     = depth.astype(np.float64)
    depth_m = raw[ys, xs] * params.depth_to_z
    w       = np.atleast_1d(gradient_window(depth_m, params))

    inside = (xs >= w) & (xs < W - w) & (ys >= w) & (ys < H - w)
    ys, xs, w, depth_m = ys[inside], xs[inside], w[inside], depth_m[inside]
    h = w // 2

    centre = raw[ys, xs]
    dx = finite_difference(raw[ys, xs - w], raw[ys, xs - h], centre, raw[ys, xs + h], raw[ys, xs + w])
    dy = finite_difference(raw[ys - w, xs], raw[ys - h, xs], centre, raw[ys + h, xs], raw[ys + w, xs])

    scale = params.depth_to_z * params.focal_px / (w * depth_m)
    grad[ys, xs, 0] = scale * dx
    grad[ys, xs, 1] = scale * dy
    return grad


# Geometry

def backproject(depth_m: np.ndarray, params: DaspParameters) -> np.ndarray:
    """Pinhole back-projection around the image centre -> (H, W, 3)."""
    H, W = depth_m.shape
    cx, cy = 0.5 * W, 0.5 * H
    xs, ys = np.meshgrid(np.arange(W, dtype=np.float64), np.arange(H, dtype=np.float64))
    f = params.focal_px
    rays = np.stack([xs - cx, ys - cy, np.full_like(xs, f)], axis=-1)
    return (depth_m / f)[..., None] * rays


def normals_from_gradient(grad: np.ndarray, world: np.ndarray) -> np.ndarray:
    """Unit normals (gx, gy, -1)/|.|, flipped to face the camera at the origin."""
    gx, gy = grad[..., 0], grad[..., 1]
    scl    = 1.0 / np.sqrt(1.0 + gx * gx + gy * gy)
    normal = np.stack([scl * gx, scl * gy, -scl], axis=-1)
    facing = np.sum(normal * -world, axis=-1)
    normal[facing < 0] *= -1.0
    return normal


def density_from_gradient(depth_m: np.ndarray, grad: np.ndarray, params: DaspParameters) -> np.ndarray:
    """Inverse projected area of a radius-sized disk at this depth and tilt."""
    q = depth_m / (params.radius * params.focal_px)
    return q * q / np.pi * np.sqrt(np.sum(grad * grad, axis=-1) + 1.0)


def build_feature_field(rgb: np.ndarray, depth: np.ndarray, params: DaspParameters) -> FeatureField:
    """
    Compute the feature field of one RGB-D frame.

    Parameters
    ----------
    rgb    : uint8 (H, W, 3)
    depth  : uint16 (H, W), 0 marks missing depth
    params : DaspParameters
    """
    if rgb.ndim != 3 or rgb.shape[2] != 3:
        raise ValueError(f"RGB image must be (H, W, 3), got {rgb.shape}")
    if rgb.shape[:2] != depth.shape:
        raise ValueError(
            f"Depth shape {depth.shape} != RGB shape {rgb.shape[:2]}"
        )

    H, W  = depth.shape
    valid = depth > 0

    xs, ys   = np.meshgrid(np.arange(W, dtype=np.float64), np.arange(H, dtype=np.float64))
    position = np.stack([xs, ys], axis=-1)
    color    = rgb.astype(np.float64) / 255.0
    depth_m  = np.where(valid, depth.astype(np.float64) * params.depth_to_z, 0.0)
    world    = backproject(depth_m, params)

    grad    = depth_gradients(depth, params)
    normal  = normals_from_gradient(grad, world)
    normal[~valid] = INVALID_NORMAL
    density = np.where(valid, density_from_gradient(depth_m, grad, params), 0.0)

    logger.debug(
        f"Feature field {W}x{H}: {int(valid.sum())} valid pixels, "
        f"total density {density.sum():.2f}"
    )
    return FeatureField(
        position=position,
        color=color,
        depth=depth_m,
        world=world,
        normal=normal,
        density=density,
        num=valid.astype(np.float64),
    )


def normalize_density(field: FeatureField, target_count: int) -> FeatureField:
    """Rescale density so that it sums to target_count (skipped if <= 0)."""
    if target_count <= 0:
        return field
    total = float(field.density.sum())
    if total == 0.0:
        logger.debug("Total density is zero, skipping density normalisation.")
        return field
    return field.with_density(field.density * (float(target_count) / total))

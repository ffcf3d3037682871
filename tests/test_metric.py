from types import SimpleNamespace

import numpy as np
import pytest

from dasp.dataset import make_synthetic_frame
from dasp.features import DaspParameters, build_feature_field
from dasp.metric import DaspDistance, normal_distance


def _point(world=(0.0, 0.0, 1.0), color=(0.5, 0.5, 0.5), normal=(0.0, 0.0, -1.0)):
    return SimpleNamespace(
        world=np.asarray(world, dtype=np.float64),
        color=np.asarray(color, dtype=np.float64),
        normal=np.asarray(normal, dtype=np.float64),
    )


def test_identical_features_have_zero_distance():
    metric = DaspDistance(compactness=0.4, normal_weight=0.75, radius=0.02)
    assert metric(_point(), _point()) == 0.0


def test_zero_distance_against_feature_field_pixel():
    frame  = make_synthetic_frame("plane", height=24, width=32)
    params = DaspParameters()
    field  = build_feature_field(frame["rgb"], frame["depth"], params)
    px     = field.sample(7, 9)
    metric = DaspDistance.from_parameters(params)
    assert metric(px, px) == 0.0


def test_full_compactness_is_pure_spatial_term():
    metric = DaspDistance(compactness=1.0, normal_weight=0.5, radius=0.02)
    a = _point()
    b = _point(world=(0.01, 0.0, 1.0), color=(1.0, 0.0, 0.0), normal=(0.6, 0.0, -0.8))
    assert metric(a, b) == pytest.approx(0.01 ** 2 / 0.02 ** 2)


def test_high_compactness_converges_to_spatial_term():
    a = _point()
    b = _point(world=(0.02, 0.0, 1.0), color=(0.0, 1.0, 0.0), normal=(0.6, 0.0, -0.8))
    spatial = 1.0
    gaps = [abs(DaspDistance(c, 0.5, 0.02)(a, b) - spatial) for c in (0.5, 0.9, 0.99, 1.0)]
    assert gaps == sorted(gaps, reverse=True)
    assert gaps[-1] == pytest.approx(0.0)


@pytest.mark.parametrize("field, values", [
    ("world", [(0.0, 0.0, 1.0), (0.005, 0.0, 1.0), (0.01, 0.0, 1.0), (0.03, 0.0, 1.0)]),
    ("color", [(0.5, 0.5, 0.5), (0.6, 0.5, 0.5), (0.8, 0.5, 0.5), (1.0, 0.5, 0.5)]),
    ("normal", [(0.0, 0.0, -1.0), (0.28, 0.0, -0.96), (0.6, 0.0, -0.8), (1.0, 0.0, 0.0)]),
])
def test_monotone_in_each_deviation(field, values):
    metric = DaspDistance(compactness=0.4, normal_weight=0.5, radius=0.02)
    ref = _point()
    dists = [metric(ref, _point(**{field: v})) for v in values]
    assert all(d1 < d2 for d1, d2 in zip(dists, dists[1:]))


def test_batched_pixels():
    metric = DaspDistance()
    sp = _point()
    pixels = SimpleNamespace(
        world=np.tile([0.0, 0.0, 1.0], (4, 5, 1)),
        color=np.tile([0.5, 0.5, 0.5], (4, 5, 1)),
        normal=np.tile([0.0, 0.0, -1.0], (4, 5, 1)),
    )
    pixels.world[1, 2] = [0.02, 0.0, 1.0]
    d = metric(sp, pixels)
    assert d.shape == (4, 5)
    assert d[1, 2] == pytest.approx(0.4)
    assert np.count_nonzero(d) == 1


def test_normal_distance():
    assert normal_distance(np.array([0, 0, -1.0]), np.array([0, 0, -1.0])) == 0.0
    assert normal_distance(np.array([0, 0, -1.0]), np.array([0, 0, 1.0])) == 2.0

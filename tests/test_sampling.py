import numpy as np
import pytest

from dasp.dataset import make_synthetic_frame
from dasp.features import DaspParameters, build_feature_field, normalize_density
from dasp.sampling import FloydSteinbergSampler, GridSampler


def _field(kind="plane", target=0, **kw):
    frame  = make_synthetic_frame(kind, **kw)
    params = DaspParameters()
    field  = build_feature_field(frame["rgb"], frame["depth"], params)
    return normalize_density(field, target)


class TestFloydSteinberg:

    def test_seed_count_follows_density(self):
        field = _field(target=30)
        seeds = FloydSteinbergSampler().sample(field)
        assert seeds.shape[1] == 2
        assert abs(len(seeds) - 30) <= 6

    def test_deterministic(self):
        field = _field("box", target=40)
        a = FloydSteinbergSampler().sample(field)
        b = FloydSteinbergSampler().sample(field)
        np.testing.assert_array_equal(a, b)

    def test_seeds_on_valid_pixels(self):
        field = _field("speckle", target=50)
        seeds = FloydSteinbergSampler(cell_size=4).sample(field)
        assert len(seeds) > 0
        assert np.all(field.valid[seeds[:, 1], seeds[:, 0]])

    def test_more_seeds_on_denser_surface(self):
        # the far plane has higher density per pixel than the near box
        frame = make_synthetic_frame("box")
        field = build_feature_field(frame["rgb"], frame["depth"], DaspParameters())
        seeds = FloydSteinbergSampler(cell_size=4).sample(field)
        on_box = frame["gt_labels"][seeds[:, 1], seeds[:, 0]] == 1
        box_px = (frame["gt_labels"] == 1).sum()
        bg_px  = (frame["gt_labels"] == 0).sum()
        assert (~on_box).sum() / bg_px > on_box.sum() / box_px

    def test_empty_density_gives_no_seeds(self):
        field = _field()
        field = field.with_density(np.zeros(field.shape))
        assert FloydSteinbergSampler().sample(field).shape == (0, 2)

    def test_invalid_cell_size(self):
        with pytest.raises(ValueError):
            FloydSteinbergSampler(cell_size=0)


class TestGridSampler:

    def test_regular_grid(self):
        field = _field(target=48)
        seeds = GridSampler().sample(field)
        assert 30 <= len(seeds) <= 60
        assert np.all(field.valid[seeds[:, 1], seeds[:, 0]])

    def test_no_valid_pixels(self):
        frame = make_synthetic_frame("plane")
        frame["depth"][:] = 0
        field = build_feature_field(frame["rgb"], frame["depth"], DaspParameters())
        assert GridSampler().sample(field).shape == (0, 2)

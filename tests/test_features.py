import numpy as np
import pytest

from dasp.dataset import make_synthetic_frame
from dasp.features import (
    DaspParameters, build_feature_field, depth_gradients, finite_difference,
    gradient_window, local_depth_gradient, normalize_density,
)


def _field(kind="plane", **kw):
    frame  = make_synthetic_frame(kind, **kw)
    params = DaspParameters()
    return build_feature_field(frame["rgb"], frame["depth"], params), frame, params


class TestFiniteDifference:

    def test_both_sides_invalid_is_zero(self):
        assert finite_difference(0, 0, 1000, 0, 0) == 0.0
        assert finite_difference(1000, 0, 1000, 1010, 0) == 0.0

    def test_left_invalid_uses_right_taps(self):
        assert finite_difference(0, 990, 1000, 1010, 1020) == 20.0
        assert finite_difference(980, 0, 1000, 1010, 1030) == 30.0

    def test_right_invalid_uses_left_taps(self):
        assert finite_difference(980, 990, 1000, 0, 1020) == 20.0
        assert finite_difference(970, 990, 1000, 1010, 0) == 30.0

    def test_outer_speckle_uses_inner_taps(self):
        assert finite_difference(0, 990, 1000, 1012, 0) == 22.0

    def test_linear_ramp(self):
        assert finite_difference(980, 990, 1000, 1010, 1020) == pytest.approx(20.0)

    def test_blend_ignores_discontinuous_side(self):
        # step on the right: all weight goes to the flat left side
        assert finite_difference(1000, 1000, 1000, 1000, 1500) == pytest.approx(0.0)
        assert finite_difference(500, 1000, 1000, 1000, 1000) == pytest.approx(0.0)

    def test_vectorised_matches_scalar(self):
        taps = np.array([
            [0, 0, 1000, 0, 0],
            [0, 990, 1000, 1010, 1020],
            [980, 990, 1000, 0, 1020],
            [0, 990, 1000, 1012, 0],
            [1000, 1003, 1000, 1020, 1100],
        ], dtype=np.uint16)
        out = finite_difference(*taps.T)
        expected = [finite_difference(*row) for row in taps]
        np.testing.assert_allclose(out, expected)

    def test_unsigned_input_does_not_wrap(self):
        taps = np.array([1020, 1010, 1000, 990, 980], dtype=np.uint16)
        assert finite_difference(*taps) == pytest.approx(-20.0)


class TestGradient:

    @pytest.mark.parametrize("depth_m, expected", [(1.0, 4), (0.1, 12), (0.05, 22)])
    def test_window_width(self, depth_m, expected):
        assert int(gradient_window(depth_m, DaspParameters())) == expected

    def test_tilted_plane_gradient(self):
        field, frame, params = _field("tilted", slope=4.0)
        grad = local_depth_gradient(frame["depth"], 64, 48, params)
        # 4 mm per pixel at 1 m and f=540
        assert grad[0] == pytest.approx(0.004 * params.focal_px / 1.0, rel=1e-6)
        assert grad[1] == pytest.approx(0.0)

    def test_vectorised_matches_per_pixel(self):
        frame  = make_synthetic_frame("box", depth_mm=800)
        params = DaspParameters()
        grad   = depth_gradients(frame["depth"], params)
        for x, y in [(10, 10), (32, 24), (40, 50), (95, 71), (64, 48), (2, 2)]:
            np.testing.assert_allclose(
                grad[y, x], local_depth_gradient(frame["depth"], x, y, params)
            )

    def test_border_and_invalid_pixels_have_zero_gradient(self):
        frame = make_synthetic_frame("tilted")
        depth = frame["depth"].copy()
        depth[40, 40] = 0
        grad = depth_gradients(depth, DaspParameters())
        assert np.all(grad[0] == 0)
        assert np.all(grad[:, -1] == 0)
        assert np.all(grad[40, 40] == 0)


class TestFeatureField:

    def test_invalid_pixels(self):
        field, frame, _ = _field("speckle")
        holes = frame["depth"] == 0
        assert holes.any()
        assert np.all(field.num[holes] == 0)
        assert np.all(field.density[holes] == 0)
        assert np.all(field.world[holes] == 0)
        np.testing.assert_array_equal(field.normal[holes], [[0, 0, -1]] * int(holes.sum()))

    def test_backprojection_of_image_centre(self):
        field, _, _ = _field("plane")
        np.testing.assert_allclose(field.world[48, 64], [0.0, 0.0, 1.0])
        assert field.world[48, 10, 0] < 0
        assert field.world[10, 64, 1] < 0

    def test_frontal_plane_normals_and_density(self):
        field, _, params = _field("plane")
        np.testing.assert_allclose(field.normal[field.valid], [[0, 0, -1]] * int(field.valid.sum()))
        expected = (1.0 / (params.radius * params.focal_px)) ** 2 / np.pi
        np.testing.assert_allclose(field.density, expected)

    def test_normals_face_camera(self):
        field, _, _ = _field("crease", slope=6.0)
        valid = field.valid
        facing = np.sum(field.normal * -field.world, axis=-1)
        assert np.all(facing[valid] >= 0)
        np.testing.assert_allclose(np.linalg.norm(field.normal, axis=-1), 1.0)

    def test_tilt_increases_density(self):
        flat, _, _   = _field("plane")
        tilted, _, _ = _field("tilted", slope=8.0)
        assert tilted.density[48, 64] > flat.density[48, 64]

    def test_colour_scaled_to_unit_range(self):
        field, frame, _ = _field("box")
        np.testing.assert_allclose(field.color, frame["rgb"] / 255.0)

    def test_shape_mismatch_raises(self):
        frame = make_synthetic_frame("plane")
        with pytest.raises(ValueError):
            build_feature_field(frame["rgb"][:-1], frame["depth"], DaspParameters())

    def test_sample_and_window(self):
        field, _, _ = _field("plane")
        px = field.sample(5, 7)
        np.testing.assert_array_equal(px.position, [5, 7])
        win = field.window(2, 3, 6, 5)
        assert win.world.shape == (2, 4, 3)
        assert win.depth.shape == (2, 4)


class TestParameters:

    @pytest.mark.parametrize("kw", [
        {"focal_px": 0.0},
        {"depth_to_z": -1.0},
        {"radius": 0.0},
        {"compactness": 1.5},
        {"normal_weight": -0.1},
        {"num_superpixels": -3},
    ])
    def test_invalid_values_rejected(self, kw):
        with pytest.raises(ValueError):
            DaspParameters(**kw)


class TestDensityNormalizer:

    def test_scales_to_target_count(self):
        field, _, _ = _field("plane", height=10, width=12)
        field = field.with_density(np.full(field.shape, 2.0))
        out = normalize_density(field, 10)
        assert out.density.sum() == pytest.approx(10.0)
        np.testing.assert_allclose(out.density, 10.0 / (10 * 12))

    def test_zero_density_is_left_alone(self):
        field, _, _ = _field("plane", height=10, width=12)
        field = field.with_density(np.zeros(field.shape))
        out = normalize_density(field, 10)
        assert np.all(out.density == 0)
        assert np.all(np.isfinite(out.density))

    def test_no_target_keeps_density(self):
        field, _, _ = _field("plane")
        assert normalize_density(field, 0) is field

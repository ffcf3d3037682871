import numpy as np
import pytest

from dasp.metrics import boundary_recall, evaluate_regions, undersegmentation_error


@pytest.fixture
def halves():
    gt = np.zeros((20, 20), dtype=np.int32)
    gt[:, 10:] = 1
    return gt


def test_perfect_segmentation(halves):
    m = evaluate_regions(halves, halves)
    assert m.n_regions == 2
    assert m.boundary_recall == 1.0
    assert m.undersegmentation_error == 0.0


def test_single_region_over_two_surfaces(halves):
    pred = np.zeros_like(halves)
    assert boundary_recall(pred, halves) == 0.0
    assert undersegmentation_error(pred, halves) == pytest.approx(1.0)


def test_oversegmentation_does_not_leak(halves):
    pred = np.arange(400).reshape(20, 20)
    assert undersegmentation_error(pred, halves) == 0.0
    assert boundary_recall(pred, halves) == 1.0


def test_boundary_tolerance(halves):
    pred = np.zeros_like(halves)
    pred[:, 13:] = 1
    assert boundary_recall(pred, halves, tolerance=0) == 0.0
    assert boundary_recall(pred, halves, tolerance=3) == 1.0


def test_invalid_pixels_ignored(halves):
    pred = halves.copy()
    pred[:5] = 7
    gt = halves.copy()
    gt[:5] = -1
    m = evaluate_regions(pred, gt)
    assert m.undersegmentation_error == 0.0
    assert m.as_dict()["boundary_recall"] == 1.0


def test_no_gt_boundary():
    gt = np.zeros((8, 8), dtype=np.int32)
    assert boundary_recall(gt.copy(), gt) == 1.0
    assert "Regions=1" in str(evaluate_regions(gt.copy(), gt))

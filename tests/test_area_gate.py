import numpy as np

from segrefine.segmentation.area_gate import AreaGate, foreground_ratio


def test_ratio_at_minimum_passes() -> None:
    mask = np.zeros((10, 10), dtype=np.uint8)
    mask[0, 0] = 1

    assert foreground_ratio(mask) == 0.01
    np.testing.assert_array_equal(AreaGate(0.01).apply(mask), mask)


def test_ratio_below_minimum_clears() -> None:
    mask = np.zeros((10, 10), dtype=np.uint8)
    mask[0, 0] = 1

    assert not AreaGate(0.02).apply(mask).any()


def test_zero_minimum_passes_everything() -> None:
    mask = np.zeros((3, 3), dtype=np.uint8)

    assert AreaGate(0.0).passes(mask)


def test_empty_frame_has_zero_ratio() -> None:
    empty = np.zeros((0, 0), dtype=np.uint8)

    assert foreground_ratio(empty) == 0.0
    assert AreaGate(0.5).apply(empty).shape == (0, 0)

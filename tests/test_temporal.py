import numpy as np

from segrefine.segmentation.temporal import TemporalSmoother


def test_first_frame_passes_through_as_float() -> None:
    current = np.array([[0, 1], [1, 0]], dtype=np.uint8)

    out = TemporalSmoother(0.5).apply(current, None)

    assert out.dtype == np.float32
    np.testing.assert_array_equal(out, current.astype(np.float32))


def test_zero_blend_returns_current() -> None:
    current = np.array([[0, 1]], dtype=np.uint8)
    previous = np.array([[1.0, 0.0]], dtype=np.float32)

    np.testing.assert_array_equal(TemporalSmoother(0.0).apply(current, previous), [[0.0, 1.0]])


def test_full_blend_returns_previous() -> None:
    current = np.array([[0, 1]], dtype=np.uint8)
    previous = np.array([[0.25, 0.75]], dtype=np.float32)

    np.testing.assert_array_equal(TemporalSmoother(1.0).apply(current, previous), previous)


def test_blend_weights_previous_by_factor() -> None:
    current = np.array([[1, 0]], dtype=np.uint8)
    previous = np.array([[0.0, 1.0]], dtype=np.float32)

    out = TemporalSmoother(0.25).apply(current, previous)

    np.testing.assert_allclose(out, [[0.75, 0.25]])


def test_mismatched_previous_is_ignored() -> None:
    current = np.ones((2, 3), dtype=np.uint8)
    previous = np.zeros((3, 2), dtype=np.float32)

    np.testing.assert_array_equal(TemporalSmoother(0.5).apply(current, previous), np.ones((2, 3)))

import numpy as np

from segrefine.config import PipelineConfig
from segrefine.core.contracts import PipelineState, PipelineStatus
from segrefine.pipeline.orchestrator import MaskPipeline, refine_mask
from segrefine.segmentation.thresholding import ConfidenceThresholder


def _bare_config(**overrides) -> PipelineConfig:
    """Only the mandatory stages, nothing filtered by area."""
    values = dict(
        confidence_threshold=0.5,
        morphology_enabled=False,
        keep_largest_component_only=False,
        min_mask_area_ratio=0.0,
        temporal_smoothing_enabled=False,
    )
    values.update(overrides)
    return PipelineConfig(**values)


def test_full_subject_passes_unfiltered() -> None:
    pipeline = MaskPipeline(_bare_config())

    out = pipeline.process(np.ones((4, 4), dtype=np.float32))

    assert out.dtype == np.float32
    np.testing.assert_array_equal(out, np.ones((4, 4)))


def test_isolated_pixel_dropped_by_component_selection() -> None:
    probability = np.zeros((10, 10), dtype=np.float32)
    probability[0:3, 0:3] = 0.9
    probability[7, 7] = 0.9

    out = MaskPipeline(_bare_config(keep_largest_component_only=True)).process(probability)

    expected = np.zeros((10, 10), dtype=np.float32)
    expected[0:3, 0:3] = 1.0
    np.testing.assert_array_equal(out, expected)


def test_small_foreground_cleared_by_area_gate() -> None:
    probability = np.zeros((100, 100), dtype=np.float32)
    probability[0:5, 0:10] = 0.9  # 0.5% of the frame

    pipeline = MaskPipeline(_bare_config(min_mask_area_ratio=0.01))
    result = pipeline.refine(probability)

    assert not result.mask.any()
    assert result.stats.area_gated
    assert not result.has_subject


def test_smoothing_keeps_stable_full_coverage() -> None:
    pipeline = MaskPipeline(_bare_config(temporal_smoothing_enabled=True, temporal_smoothing_factor=0.5))
    full = np.ones((4, 4), dtype=np.float32)

    pipeline.process(full)
    result = pipeline.refine(full)

    np.testing.assert_array_equal(result.mask, np.ones((4, 4)))
    assert result.stats.smoothed


def test_smoothing_compounds_blended_output() -> None:
    pipeline = MaskPipeline(_bare_config(temporal_smoothing_enabled=True, temporal_smoothing_factor=0.5))
    empty = np.zeros((2, 2), dtype=np.float32)

    pipeline.process(np.ones((2, 2), dtype=np.float32))
    second = pipeline.process(empty)
    third = pipeline.process(empty)

    np.testing.assert_allclose(second, 0.5)
    np.testing.assert_allclose(third, 0.25)
    np.testing.assert_allclose(pipeline.state.previous_mask, 0.25)


def test_frame_size_change_resets_state() -> None:
    pipeline = MaskPipeline(_bare_config(temporal_smoothing_enabled=True, temporal_smoothing_factor=0.5))
    pipeline.process(np.ones((100, 100), dtype=np.float32))

    second = np.zeros((150, 200), dtype=np.float32)
    second[:, :100] = 1.0
    result = pipeline.refine(second)

    assert result.success
    assert result.stats.state_reset
    assert not result.stats.smoothed
    np.testing.assert_array_equal(result.mask, second)
    assert pipeline.state.frame_shape == (150, 200)
    assert pipeline.status is PipelineStatus.READY


def test_status_lifecycle() -> None:
    pipeline = MaskPipeline(_bare_config(temporal_smoothing_enabled=True))
    assert pipeline.status is PipelineStatus.UNINITIALIZED

    pipeline.process(np.ones((3, 3), dtype=np.float32))
    assert pipeline.status is PipelineStatus.READY

    pipeline.reset()
    assert pipeline.status is PipelineStatus.UNINITIALIZED
    assert pipeline.state.previous_mask is None
    assert pipeline.last_result is None


def test_reset_starts_a_fresh_sequence() -> None:
    pipeline = MaskPipeline(_bare_config(temporal_smoothing_enabled=True, temporal_smoothing_factor=0.9))
    pipeline.process(np.ones((3, 3), dtype=np.float32))
    pipeline.reset()

    out = pipeline.process(np.zeros((3, 3), dtype=np.float32))

    assert not out.any()


def test_per_call_config_does_not_replace_instance_config() -> None:
    base = _bare_config()
    pipeline = MaskPipeline(base)
    probability = np.full((4, 4), 0.6, dtype=np.float32)

    strict = pipeline.process(probability, _bare_config(confidence_threshold=0.8))
    loose = pipeline.process(probability)

    assert not strict.any()
    assert loose.all()
    assert pipeline.config is base


def test_all_stages_clean_noisy_frame() -> None:
    probability = np.zeros((60, 80), dtype=np.float32)
    probability[10:50, 20:60] = 0.95   # subject
    probability[5, 5] = 0.95           # speckle
    probability[40:46, 70:76] = 0.95   # separate background object
    probability[30, 60:63] = 0.95      # thin protrusion

    config = PipelineConfig(
        confidence_threshold=0.5,
        morphology_kernel_size=3,
        min_mask_area_ratio=0.05,
        temporal_smoothing_enabled=False,
    )
    result = MaskPipeline(config).refine(probability)

    expected = np.zeros((60, 80), dtype=np.float32)
    expected[10:50, 20:60] = 1.0
    np.testing.assert_array_equal(result.mask, expected)
    assert result.stats.stages_run == ["threshold", "morphology", "components", "area_gate"]
    assert result.stats.components_found == 2


def test_flat_buffer_input() -> None:
    values = [0.9] * 12

    out = MaskPipeline(_bare_config()).process(values, width=4, height=3)

    assert out.shape == (3, 4)
    assert out.all()


def test_garbled_buffer_degrades_to_background() -> None:
    result = MaskPipeline(_bare_config()).refine([0.9] * 5, width=4, height=3)

    assert result.success
    assert result.mask.shape == (3, 4)
    assert not result.mask.any()


def test_garbled_frame_is_dropped_without_touching_state() -> None:
    pipeline = MaskPipeline(_bare_config(temporal_smoothing_enabled=True, temporal_smoothing_factor=0.5))
    full = np.ones((4, 4), dtype=np.float32)

    pipeline.process(full)
    previous = pipeline.state.previous_mask

    dropped = pipeline.refine(np.ones((4, 4, 3), dtype=np.float32))

    assert dropped.stats.dropped
    assert dropped.mask.shape == (4, 4)
    assert not dropped.mask.any()
    assert pipeline.state.previous_mask is previous
    assert pipeline.state.frame_count == 1

    after = pipeline.refine(full)

    assert not after.stats.state_reset
    assert after.stats.smoothed
    np.testing.assert_array_equal(after.mask, np.ones((4, 4)))


def test_wrong_length_buffer_does_not_blend_into_next_frame() -> None:
    pipeline = MaskPipeline(_bare_config(temporal_smoothing_enabled=True, temporal_smoothing_factor=0.5))
    values = [1.0] * 12

    pipeline.process(values, width=4, height=3)
    dropped = pipeline.refine([1.0] * 7, width=4, height=3)
    after = pipeline.process(values, width=4, height=3)

    assert dropped.stats.dropped
    assert dropped.mask.shape == (3, 4)
    np.testing.assert_array_equal(after, np.ones((3, 4)))
    assert pipeline.state.frame_count == 2


def test_timing_log_disabled_keeps_no_samples() -> None:
    pipeline = MaskPipeline(_bare_config(log_interval=0))
    probability = np.ones((2, 2), dtype=np.float32)

    for _ in range(50):
        pipeline.process(probability)

    assert len(pipeline._processing_times) == 0


def test_empty_frame_is_not_an_error() -> None:
    result = MaskPipeline(PipelineConfig()).refine(np.zeros((0, 0), dtype=np.float32))

    assert result.success
    assert result.mask.shape == (0, 0)


def test_stage_failure_degrades_and_keeps_state(monkeypatch) -> None:
    pipeline = MaskPipeline(_bare_config(temporal_smoothing_enabled=True))
    pipeline.process(np.ones((3, 3), dtype=np.float32))
    previous = pipeline.state.previous_mask

    def explode(self, probability):
        raise RuntimeError("segmenter produced garbage")

    monkeypatch.setattr(ConfidenceThresholder, "apply", explode)
    result = pipeline.refine(np.ones((3, 3), dtype=np.float32))

    assert not result.success
    assert "garbage" in result.error_message
    np.testing.assert_array_equal(result.mask, np.zeros((3, 3)))
    assert pipeline.state.previous_mask is previous
    assert pipeline.state.frame_count == 1


def test_independent_states_do_not_interact() -> None:
    config = _bare_config(temporal_smoothing_enabled=True, temporal_smoothing_factor=0.5)
    first, second = PipelineState(), PipelineState()

    refine_mask(np.ones((2, 2), dtype=np.float32), config, first)
    out = refine_mask(np.zeros((2, 2), dtype=np.float32), config, second).mask

    assert not out.any()
    np.testing.assert_array_equal(first.previous_mask, np.ones((2, 2)))


def test_stages_rebuilt_only_on_config_change() -> None:
    pipeline = MaskPipeline(_bare_config())
    probability = np.ones((2, 2), dtype=np.float32)

    pipeline.process(probability)
    stages = pipeline._stages
    pipeline.process(probability, _bare_config())
    assert pipeline._stages is stages

    pipeline.process(probability, _bare_config(confidence_threshold=0.9))
    assert pipeline._stages is not stages

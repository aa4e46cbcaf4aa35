"""
Mask Pipeline Orchestrator.

Refines one probability mask per video frame in strict order:

1. Threshold confidence (always)
2. Morphological opening (optional)
3. Keep largest connected component (optional)
4. Minimum area gate (always)
5. Temporal smoothing against the previous output (optional)

The previous-frame mask lives in an explicit PipelineState owned by a
single pipeline (or a single caller of refine_mask). Calls for one state
must be sequential: process() is synchronous CPU work and commits the
new previous mask only after a frame fully succeeds.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike
from loguru import logger

from segrefine.config import PipelineConfig, describe_config
from segrefine.core.contracts import (
    FrameStats,
    PipelineState,
    PipelineStatus,
    RefinedMask,
    RefinementResult,
)
from segrefine.segmentation.area_gate import AreaGate, foreground_ratio
from segrefine.segmentation.components import ConnectedComponentSelector
from segrefine.segmentation.mask_io import as_probability_mask, frame_shape
from segrefine.segmentation.morphology import MorphologyFilter
from segrefine.segmentation.temporal import TemporalSmoother
from segrefine.segmentation.thresholding import ConfidenceThresholder


@dataclass
class PipelineStages:
    """Stage instances built from one config. Disabled stages are None."""
    thresholder: ConfidenceThresholder
    morphology: Optional[MorphologyFilter]
    selector: Optional[ConnectedComponentSelector]
    area_gate: AreaGate
    smoother: Optional[TemporalSmoother]

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "PipelineStages":
        return cls(
            thresholder=ConfidenceThresholder(config.confidence_threshold),
            morphology=(
                MorphologyFilter(config.morphology_kernel_size, config.morphology_shape)
                if config.morphology_enabled else None
            ),
            selector=(
                ConnectedComponentSelector(config.component_connectivity)
                if config.keep_largest_component_only else None
            ),
            area_gate=AreaGate(config.min_mask_area_ratio),
            smoother=(
                TemporalSmoother(config.temporal_smoothing_factor)
                if config.temporal_smoothing_enabled else None
            ),
        )


def _fallback_shape(
    probability_mask: ArrayLike,
    width: Optional[int],
    height: Optional[int],
    state: PipelineState,
) -> Tuple[int, int]:
    """Best-known frame shape for an all-background fallback mask.

    Declared dimensions win, then the input's own 2D shape, then the
    shape of the previous output.
    """
    if width is not None and height is not None:
        try:
            return max(int(height), 0), max(int(width), 0)
        except (TypeError, ValueError):
            pass
    try:
        shape = np.shape(probability_mask)
    except ValueError:  # ragged nested sequences
        shape = ()
    if len(shape) == 2:
        return shape[0], shape[1]
    if state.frame_shape is not None:
        return state.frame_shape
    return 0, 0


def refine_mask(
    probability_mask: ArrayLike,
    config: PipelineConfig,
    state: PipelineState,
    stages: Optional[PipelineStages] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> RefinementResult:
    """
    Refine a single probability mask.

    Never raises for bad input. A garbled frame (wrong buffer length,
    non-2D array) is dropped: the result is an all-background mask of the
    best-known frame shape with stats.dropped set. Any stage failure
    degrades the same way with success=False. In both cases the state is
    left untouched, so smoothing resumes with the next good frame.

    Args:
        probability_mask: Foreground probability (H x W), or a flat buffer with width/height
        config: Sanitized pipeline configuration
        state: Caller-owned state carrying the previous output
        stages: Prebuilt stages for this config (built on the fly if None)
        width: Frame width for flat buffers
        height: Frame height for flat buffers

    Returns:
        RefinementResult with float32 mask in [0, 1]
    """
    start_time = time.perf_counter()
    stats = FrameStats()

    try:
        if stages is None:
            stages = PipelineStages.from_config(config)

        if frame_shape(probability_mask, width, height) is None:
            fallback = _fallback_shape(probability_mask, width, height, state)
            logger.warning(
                f"Dropping garbled mask frame (declared {width}x{height}), "
                f"keeping previous mask"
            )
            stats.height, stats.width = fallback
            stats.dropped = True
            stats.processing_time_ms = (time.perf_counter() - start_time) * 1000
            return RefinementResult(mask=np.zeros(fallback, dtype=np.float32), stats=stats)

        probability = as_probability_mask(probability_mask, width, height)
        stats.height, stats.width = probability.shape

        # Frame size changed: start a new sequence instead of blending
        if state.previous_mask is not None and not state.matches(probability.shape):
            logger.info(
                f"Frame size changed {state.frame_shape} -> {probability.shape}, "
                f"resetting mask state"
            )
            state.reset()
            stats.state_reset = True

        mask = stages.thresholder.apply(probability)
        stats.stages_run.append("threshold")
        stats.thresholded_pixels = int(np.count_nonzero(mask))

        if stages.morphology is not None:
            mask = stages.morphology.apply(mask)
            stats.stages_run.append("morphology")

        if stages.selector is not None:
            components = stages.selector.label(mask)
            mask = stages.selector.select(components)
            stats.components_found = components.count
            stats.largest_component_pixels = components.largest_area
            stats.stages_run.append("components")

        ratio = foreground_ratio(mask)
        if not stages.area_gate.passes(mask):
            mask = np.zeros_like(mask)
            stats.area_gated = True
            ratio = 0.0
        stats.stages_run.append("area_gate")

        if stages.smoother is not None:
            refined = stages.smoother.apply(mask, state.previous_mask)
            stats.smoothed = state.previous_mask is not None
            stats.stages_run.append("temporal")
        else:
            refined = mask.astype(np.float32)

        stats.foreground_ratio = ratio

    except Exception as e:
        logger.error(f"Mask refinement error: {e}")
        stats.processing_time_ms = (time.perf_counter() - start_time) * 1000
        return RefinementResult(
            mask=np.zeros(_fallback_shape(probability_mask, width, height, state), dtype=np.float32),
            stats=stats,
            success=False,
            error_message=str(e),
        )

    state.commit(refined)
    stats.processing_time_ms = (time.perf_counter() - start_time) * 1000

    return RefinementResult(mask=refined, stats=stats)


class MaskPipeline:
    """
    Per-track mask refinement pipeline.

    Created when a background effect is enabled and discarded when it is
    disabled or the video track is replaced. One instance per track;
    never call process() concurrently on the same instance.

    Guarantees:
    - Stage order is NEVER reordered
    - Frame size changes reset state instead of blending mismatched masks
    - Fails safely to an all-background mask
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        state: Optional[PipelineState] = None,
    ):
        """
        Initialize mask pipeline.

        Args:
            config: Default configuration (overridable per call)
            state: Externally owned state, or None for a fresh one
        """
        self.config = config or PipelineConfig()
        self._state = state if state is not None else PipelineState()

        self._stages: Optional[PipelineStages] = None
        self._stages_config: Optional[PipelineConfig] = None

        # Performance tracking
        self._processing_times: List[float] = []
        self._last_result: Optional[RefinementResult] = None

        logger.info(f"Mask pipeline initialized: {describe_config(self.config)}")

    def _stages_for(self, config: PipelineConfig) -> PipelineStages:
        """Reuse stage instances until the config value changes."""
        if self._stages is None or config != self._stages_config:
            self._stages = PipelineStages.from_config(config)
            self._stages_config = config
            logger.debug(f"Stages rebuilt: {describe_config(config)}")
        return self._stages

    def refine(
        self,
        probability_mask: ArrayLike,
        config: Optional[PipelineConfig] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> RefinementResult:
        """
        Refine one frame and return the mask with diagnostics.

        Args:
            probability_mask: Foreground probability (H x W), or flat buffer with width/height
            config: Config for this call only (defaults to the instance config)
            width: Frame width for flat buffers
            height: Frame height for flat buffers

        Returns:
            RefinementResult
        """
        config = config or self.config
        result = refine_mask(
            probability_mask,
            config,
            self._state,
            stages=self._stages_for(config),
            width=width,
            height=height,
        )
        self._last_result = result
        self._record_timing(result, config.log_interval)
        return result

    def process(
        self,
        probability_mask: ArrayLike,
        config: Optional[PipelineConfig] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> RefinedMask:
        """
        Refine one frame.

        Returns:
            Refined mask (H x W) float32 in [0, 1], usable as compositing alpha
        """
        return self.refine(probability_mask, config, width, height).mask

    def _record_timing(self, result: RefinementResult, log_interval: int):
        """Log average processing time every log_interval frames (0 disables)."""
        if log_interval <= 0:
            self._processing_times.clear()
            return

        self._processing_times.append(result.stats.processing_time_ms)
        if len(self._processing_times) < log_interval:
            return

        avg_ms = sum(self._processing_times) / len(self._processing_times)
        max_ms = max(self._processing_times)
        self._processing_times.clear()

        stats = result.stats
        logger.debug(
            f"Mask refinement: {avg_ms:.2f}ms avg, {max_ms:.2f}ms max | "
            f"{stats.width}x{stats.height}, components={stats.components_found}, "
            f"largest={stats.largest_component_pixels}px, "
            f"foreground={stats.foreground_ratio * 100:.1f}%"
        )

    def reset(self):
        """Discard the previous mask (effect toggled off and on, track restarted)."""
        self._state.reset()
        self._processing_times.clear()
        self._last_result = None
        logger.info("Mask pipeline reset")

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def status(self) -> PipelineStatus:
        return self._state.status

    @property
    def last_result(self) -> Optional[RefinementResult]:
        return self._last_result

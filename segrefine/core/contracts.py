"""
Core data contracts for mask refinement.

All stages exchange plain numpy arrays shaped (height, width):
- ProbabilityMask: float32 foreground confidence in [0, 1]
- BinaryMask: uint8 in {0, 1}
- RefinedMask: float32 alpha in [0, 1], ready for compositing
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray


ProbabilityMask = NDArray[np.float32]
BinaryMask = NDArray[np.uint8]
RefinedMask = NDArray[np.float32]


# ============================================================
# PIPELINE STATE
# ============================================================

class PipelineStatus(Enum):
    """Lifecycle of a mask pipeline."""
    UNINITIALIZED = auto()  # no frame processed since creation or reset
    READY = auto()          # previous mask available for blending


@dataclass
class PipelineState:
    """
    Per-session state carried between frames.

    Owned by exactly one pipeline instance (or one caller of
    refine_mask). Never share it across video tracks.
    """
    previous_mask: Optional[RefinedMask] = None
    status: PipelineStatus = PipelineStatus.UNINITIALIZED
    frame_count: int = 0

    @property
    def frame_shape(self) -> Optional[Tuple[int, int]]:
        if self.previous_mask is None:
            return None
        return self.previous_mask.shape

    def matches(self, shape: Tuple[int, ...]) -> bool:
        """Check whether the stored mask can be blended with a frame of this shape."""
        return self.previous_mask is not None and self.previous_mask.shape == tuple(shape)

    def reset(self):
        """Drop the previous mask and return to UNINITIALIZED."""
        self.previous_mask = None
        self.status = PipelineStatus.UNINITIALIZED

    def commit(self, mask: RefinedMask):
        """Store the just-produced output as the previous mask."""
        self.previous_mask = mask
        self.status = PipelineStatus.READY
        self.frame_count += 1


# ============================================================
# RESULTS
# ============================================================

@dataclass
class FrameStats:
    """Diagnostics for a single refined frame."""
    width: int = 0
    height: int = 0
    thresholded_pixels: int = 0
    components_found: int = 0
    largest_component_pixels: int = 0
    foreground_ratio: float = 0.0
    area_gated: bool = False
    smoothed: bool = False
    state_reset: bool = False
    dropped: bool = False
    processing_time_ms: float = 0.0
    stages_run: list = field(default_factory=list)


@dataclass
class RefinementResult:
    """Result of refining one probability mask."""
    mask: RefinedMask
    stats: FrameStats = field(default_factory=FrameStats)
    success: bool = True
    error_message: Optional[str] = None

    @property
    def has_subject(self) -> bool:
        """True if any pixel of the refined mask is foreground."""
        return bool(self.mask.size) and bool(np.any(self.mask > 0))

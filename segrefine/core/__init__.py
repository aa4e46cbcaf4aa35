"""
Core data contracts for mask refinement.
"""

from .contracts import (
    ProbabilityMask,
    BinaryMask,
    RefinedMask,
    PipelineStatus,
    PipelineState,
    FrameStats,
    RefinementResult,
)

"""
Temporal smoothing across frames.

Exponential moving average of the refined mask:

    output = alpha * previous + (1 - alpha) * current

The caller feeds back the blended output (not the raw current mask) as
the next previous mask, so smoothing compounds across frames. Higher
alpha is steadier but lags behind motion; lower alpha is snappier but
lets single-frame segmentation noise flicker through.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from segrefine.core.contracts import RefinedMask


class TemporalSmoother:
    """Blends the current mask with the previous frame's output."""

    def __init__(self, blend_factor: float = 0.3):
        """
        Args:
            blend_factor: Weight of the previous frame (0 = no smoothing, 1 = frozen)
        """
        self.blend_factor = float(np.clip(blend_factor, 0.0, 1.0))

    def apply(
        self,
        current: NDArray[np.number],
        previous: Optional[NDArray[np.number]] = None,
    ) -> RefinedMask:
        """
        Blend current and previous masks.

        A missing previous mask, or one with different dimensions (camera
        switch, track restart), starts a new sequence: the current mask is
        returned promoted to float.

        Args:
            current: Current frame mask (H x W), 0/1 or [0, 1]
            previous: Previous blended output, or None on the first frame

        Returns:
            Smoothed mask (H x W) float32 in [0, 1]
        """
        current = np.asarray(current, dtype=np.float32)

        if previous is None or previous.shape != current.shape:
            return current.copy()

        alpha = self.blend_factor
        if alpha == 0.0:
            return current.copy()
        if alpha == 1.0:
            return np.asarray(previous, dtype=np.float32).copy()

        blended = alpha * previous.astype(np.float32) + (1.0 - alpha) * current
        return np.clip(blended, 0.0, 1.0, out=blended)

    __call__ = apply

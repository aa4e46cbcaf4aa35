"""
Minimum foreground area gate.

Clears masks whose foreground covers too little of the frame, such as a
hand glimpsed at the edge or a segmenter failure producing noise.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from segrefine.core.contracts import BinaryMask


def foreground_ratio(mask: NDArray[np.integer]) -> float:
    """Fraction of pixels that are foreground (0.0 for an empty mask)."""
    mask = np.asarray(mask)
    if mask.size == 0:
        return 0.0
    return float(np.count_nonzero(mask)) / mask.size


class AreaGate:
    """Clears a mask whose foreground ratio is below a minimum.

    The boundary is inclusive: a ratio exactly equal to the minimum passes.
    """

    def __init__(self, min_area_ratio: float = 0.02):
        self.min_area_ratio = float(np.clip(min_area_ratio, 0.0, 1.0))

    def passes(self, mask: NDArray[np.integer]) -> bool:
        return foreground_ratio(mask) >= self.min_area_ratio

    def apply(self, mask: NDArray[np.integer]) -> BinaryMask:
        """
        Args:
            mask: Binary mask (H x W)

        Returns:
            The mask unchanged if it passes, else an all-zero mask
        """
        mask = np.asarray(mask)
        if self.passes(mask):
            return mask
        return np.zeros_like(mask)

    __call__ = apply

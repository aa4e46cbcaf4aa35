"""
Confidence thresholding.

Converts the segmenter's continuous foreground probability into a
binary mask. Raising the threshold trades subject completeness for
fewer false positives (furniture, shadows).
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from segrefine.core.contracts import BinaryMask, ProbabilityMask


class ConfidenceThresholder:
    """Binarizes a probability mask: pixel = 1 iff probability >= threshold."""

    def __init__(self, threshold: float = 0.7):
        """
        Args:
            threshold: Cutoff in [0, 1]; values outside are clamped
        """
        self.threshold = float(np.clip(threshold, 0.0, 1.0))

    def apply(self, probability: ProbabilityMask) -> BinaryMask:
        """
        Threshold a probability mask.

        NaN never compares >= threshold, so NaN pixels become background.

        Args:
            probability: Foreground probability (H x W)

        Returns:
            Binary mask (H x W) with values 0/1
        """
        probability = np.asarray(probability)
        if probability.ndim != 2:
            raise ValueError(f"Expected a 2D mask, got shape {probability.shape}")

        with np.errstate(invalid="ignore"):
            return (probability >= self.threshold).astype(np.uint8)

    __call__ = apply


def threshold_mask(probability: NDArray[np.floating], threshold: float) -> BinaryMask:
    """Functional form of ConfidenceThresholder."""
    return ConfidenceThresholder(threshold).apply(probability)

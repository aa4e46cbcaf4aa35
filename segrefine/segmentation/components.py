"""
Largest connected component selection.

Keeps the single biggest foreground region (assumed to be the primary
subject) and discards spatially separate false positives such as a lamp
or a shelf item that independently passed the confidence threshold.

Labeling uses OpenCV's iterative two-pass algorithm, so large blobs
never risk recursion depth limits.

Tie-break: when several components share the maximum size, the one whose
first pixel in row-major order comes first wins (top-most row, then
left-most column). OpenCV label numbers are not used for this: its block
based 8-connectivity labeling does not number components in pixel order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np
from numpy.typing import NDArray

from segrefine.core.contracts import BinaryMask


@dataclass
class ComponentLabels:
    """Label grid for one mask: 0 = background, 1..count = components."""
    labels: NDArray[np.int32]
    areas: NDArray[np.int32]  # areas[i] = pixel count of label i + 1

    @property
    def count(self) -> int:
        return int(self.areas.size)

    @property
    def largest_label(self) -> Optional[int]:
        """Label of the largest component.

        Ties go to the component whose first pixel in row-major order
        comes first.
        """
        if self.areas.size == 0:
            return None

        candidates = np.flatnonzero(self.areas == self.areas.max()) + 1
        if candidates.size == 1:
            return int(candidates[0])

        # Every label 0..count owns at least one pixel, so first_index[label]
        # is that label's first row-major pixel
        _, first_index = np.unique(self.labels.ravel(), return_index=True)
        return int(candidates[int(np.argmin(first_index[candidates]))])

    @property
    def largest_area(self) -> int:
        if self.areas.size == 0:
            return 0
        return int(self.areas.max())


class ConnectedComponentSelector:
    """
    Retains only the largest connected foreground region.
    """

    def __init__(self, connectivity: int = 4):
        """
        Args:
            connectivity: 4 (edge neighbours, stricter separation) or 8
        """
        if connectivity not in (4, 8):
            raise ValueError(f"Connectivity must be 4 or 8, got {connectivity}")
        self.connectivity = connectivity

    def label(self, mask: NDArray[np.integer]) -> ComponentLabels:
        """
        Label connected foreground components.

        Args:
            mask: Binary mask (H x W), any non-zero value is foreground

        Returns:
            ComponentLabels with the label grid and per-component areas
        """
        mask = np.asarray(mask)
        if mask.ndim != 2:
            raise ValueError(f"Expected a 2D mask, got shape {mask.shape}")
        if mask.size == 0:
            return ComponentLabels(
                labels=np.zeros(mask.shape, dtype=np.int32),
                areas=np.zeros(0, dtype=np.int32),
            )

        binary = np.ascontiguousarray(mask != 0, dtype=np.uint8)
        num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(
            binary, connectivity=self.connectivity
        )

        # Skip background at label 0
        areas = stats[1:num_labels, cv2.CC_STAT_AREA].astype(np.int32)
        return ComponentLabels(labels=labels, areas=areas)

    def select(self, components: ComponentLabels) -> BinaryMask:
        """Build a mask holding only the largest labeled component."""
        largest = components.largest_label
        if largest is None:
            return np.zeros(components.labels.shape, dtype=np.uint8)
        return (components.labels == largest).astype(np.uint8)

    def apply(self, mask: NDArray[np.integer]) -> BinaryMask:
        """
        Keep only the largest connected component.

        Args:
            mask: Binary mask (H x W)

        Returns:
            Binary mask (H x W) containing exactly one component, or all
            zeros if the input had no foreground
        """
        return self.select(self.label(mask))

    __call__ = apply

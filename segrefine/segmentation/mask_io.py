"""
Mask Conversion Utilities.

Handles the boundary with external collaborators:
- Flat row-major buffers from the segmenter
- 8-bit grayscale masks (0-255)
- Multiclass selfie segmenter category masks
- Export of refined masks for the compositor
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray
from loguru import logger

from segrefine.core.contracts import ProbabilityMask, RefinedMask


# Multiclass selfie segmenter categories
# 0 = background, 1 = hair, 2 = body-skin, 3 = face-skin, 4 = clothes, 5 = others
BACKGROUND_CATEGORY = 0


def frame_shape(
    values: ArrayLike,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> Optional[Tuple[int, int]]:
    """
    Shape (H, W) of a well-formed segmenter frame, or None if garbled.

    A frame is garbled when it is neither a 2D array nor a flat buffer of
    exactly width x height values.
    """
    try:
        shape = np.shape(values)
    except ValueError:  # ragged nested sequences
        return None

    if width is not None and height is not None:
        try:
            width, height = int(width), int(height)
        except (TypeError, ValueError):
            return None
        if width < 0 or height < 0 or int(np.prod(shape)) != width * height:
            return None
        return height, width

    if len(shape) != 2:
        return None
    return shape[0], shape[1]


def as_probability_mask(
    values: ArrayLike,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> ProbabilityMask:
    """
    Coerce segmenter output into a float32 (H x W) probability mask.

    Accepts either a 2D array or a flat row-major buffer together with
    the frame's width and height. Values are clipped to [0, 1] and NaN
    becomes 0. A buffer that does not match width x height is treated as
    a garbled frame and yields an all-background mask.

    Args:
        values: 2D array, or flat buffer of width * height values
        width: Frame width (required for flat buffers)
        height: Frame height (required for flat buffers)

    Returns:
        Probability mask (H x W) float32
    """
    array = np.asarray(values, dtype=np.float32)

    if width is not None and height is not None:
        width, height = max(int(width), 0), max(int(height), 0)
        if array.size != width * height:
            logger.warning(
                f"Mask buffer has {array.size} values, expected {width}x{height}; "
                f"dropping frame"
            )
            return np.zeros((height, width), dtype=np.float32)
        array = array.reshape(height, width)
    elif array.ndim != 2:
        logger.warning(f"Cannot interpret mask of shape {array.shape} without dimensions")
        return np.zeros((0, 0), dtype=np.float32)

    return np.clip(np.nan_to_num(array, nan=0.0), 0.0, 1.0)


def probability_from_uint8(mask: NDArray[np.uint8]) -> ProbabilityMask:
    """Convert an 8-bit grayscale mask (0-255) to [0, 1] probabilities."""
    mask = np.asarray(mask)
    if mask.ndim == 3:
        # RGBA / RGB image data: the red channel carries the mask
        mask = mask[..., 0]
    return mask.astype(np.float32) / 255.0


def probability_from_categories(
    category_mask: NDArray[np.integer],
    background_category: int = BACKGROUND_CATEGORY,
) -> ProbabilityMask:
    """
    Convert a multiclass category mask into a person probability mask.

    Every non-background category (hair, skin, clothes, ...) is person.

    Args:
        category_mask: Category IDs (H x W)
        background_category: ID used for background

    Returns:
        Probability mask (H x W) with values 0.0 / 1.0
    """
    category_mask = np.asarray(category_mask)
    return (category_mask != background_category).astype(np.float32)


def to_uint8(mask: RefinedMask) -> NDArray[np.uint8]:
    """Scale a refined [0, 1] mask to 0-255 for export or display."""
    mask = np.clip(np.asarray(mask, dtype=np.float32), 0.0, 1.0)
    return np.round(mask * 255.0).astype(np.uint8)

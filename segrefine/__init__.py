"""
Segmentation Mask Refinement for Background Effects

Turns the noisy per-frame foreground probability mask produced by a
person segmenter into a stable alpha mask for background blur or
replacement.

Stage order (never reordered):
1. Confidence thresholding
2. Morphological opening
3. Largest connected component selection
4. Minimum area gate
5. Temporal smoothing
"""

from .config import PipelineConfig, PRESETS, load_config, describe_config
from .pipeline.orchestrator import MaskPipeline, refine_mask

__version__ = "0.1.0"
__author__ = "segrefine contributors"

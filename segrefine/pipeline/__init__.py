"""
Mask refinement pipeline.
"""

from .orchestrator import MaskPipeline, refine_mask

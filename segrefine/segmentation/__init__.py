"""
Mask refinement stages.

Responsibilities:
- Confidence thresholding
- Morphological cleaning
- Largest component selection
- Minimum area gating
- Mask temporal smoothing
"""

from .thresholding import ConfidenceThresholder
from .morphology import MorphologyFilter
from .components import ConnectedComponentSelector, ComponentLabels
from .area_gate import AreaGate, foreground_ratio
from .temporal import TemporalSmoother

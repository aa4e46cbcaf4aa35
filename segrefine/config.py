"""
Configuration module for mask refinement.

This module contains the pipeline configuration, quality presets, and
loaders for the flat settings record produced by the client settings UI.

To add a new preset:
1. Add entry to PRESETS dict with your settings
2. Optionally set as ACTIVE_PRESET default
"""
from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from loguru import logger


# === QUALITY PRESETS ===
# Each preset balances mask quality vs per-frame cost differently
PRESETS = {
    "LOW": {
        "confidence_threshold": 0.6,
        "morphology_enabled": True,
        "morphology_kernel_size": 3,
        "keep_largest_component_only": False,
        "min_mask_area_ratio": 0.01,
        "temporal_smoothing_enabled": True,
        "temporal_smoothing_factor": 0.5,
    },
    "MEDIUM": {
        "confidence_threshold": 0.7,
        "morphology_enabled": True,
        "morphology_kernel_size": 5,
        "keep_largest_component_only": True,
        "min_mask_area_ratio": 0.02,
        "temporal_smoothing_enabled": True,
        "temporal_smoothing_factor": 0.3,
    },
    "HIGH": {
        "confidence_threshold": 0.7,
        "morphology_enabled": True,
        "morphology_kernel_size": 5,
        "keep_largest_component_only": True,
        "min_mask_area_ratio": 0.02,
        "temporal_smoothing_enabled": True,
        "temporal_smoothing_factor": 0.4,
    },
    "ULTRA": {
        "confidence_threshold": 0.75,
        "morphology_enabled": True,
        "morphology_kernel_size": 7,
        "keep_largest_component_only": True,
        "min_mask_area_ratio": 0.02,
        "temporal_smoothing_enabled": True,
        "temporal_smoothing_factor": 0.5,
    },
    # Low-power devices: only the mandatory stages plus smoothing
    "PERFORMANCE": {
        "confidence_threshold": 0.6,
        "morphology_enabled": False,
        "morphology_kernel_size": 3,
        "keep_largest_component_only": False,
        "min_mask_area_ratio": 0.01,
        "temporal_smoothing_enabled": True,
        "temporal_smoothing_factor": 0.3,
    },
}

# Default preset
ACTIVE_PRESET = "MEDIUM"

MORPHOLOGY_SHAPES = ("square", "cross")
CONNECTIVITIES = (4, 8)
MIN_KERNEL_SIZE = 3

# Settings-record keys (camelCase) -> field names
_CAMEL_TO_FIELD = {
    "confidenceThreshold": "confidence_threshold",
    "morphologyEnabled": "morphology_enabled",
    "morphologyKernelSize": "morphology_kernel_size",
    "morphologyShape": "morphology_shape",
    "keepLargestComponentOnly": "keep_largest_component_only",
    "componentConnectivity": "component_connectivity",
    "minMaskAreaRatio": "min_mask_area_ratio",
    "temporalSmoothingEnabled": "temporal_smoothing_enabled",
    "temporalSmoothingFactor": "temporal_smoothing_factor",
    "logInterval": "log_interval",
}
_FIELD_TO_CAMEL = {v: k for k, v in _CAMEL_TO_FIELD.items()}


def _clamp_unit(name: str, value: Any, default: float) -> float:
    """Clamp a ratio-like setting into [0, 1]."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Config {name}={value!r} is not a number, using {default}")
        return default

    if math.isnan(value):
        logger.warning(f"Config {name} is NaN, using {default}")
        return default

    clamped = min(max(value, 0.0), 1.0)
    if clamped != value:
        logger.warning(f"Config {name}={value} clamped to {clamped}")
    return clamped


_TRUE_STRINGS = ("true", "yes", "on", "1")
_FALSE_STRINGS = ("false", "no", "off", "0")


def _as_bool(name: str, value: Any, default: bool) -> bool:
    """Read a flag that may arrive as a string from YAML or a settings record."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and not math.isnan(value):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False

    logger.warning(f"Config {name}={value!r} is not a boolean, using {default}")
    return default


def _odd_kernel(value: Any) -> int:
    """Force a kernel size to an odd integer >= MIN_KERNEL_SIZE."""
    try:
        size = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Config morphology_kernel_size={value!r} invalid, using {MIN_KERNEL_SIZE}")
        return MIN_KERNEL_SIZE

    fixed = max(size, MIN_KERNEL_SIZE)
    if fixed % 2 == 0:
        fixed += 1
    if fixed != size:
        logger.warning(f"Config morphology_kernel_size={size} adjusted to {fixed}")
    return fixed


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for one mask refinement session.

    Values are sanitized on construction, so a pipeline never has to
    re-validate per frame. Swap configs between frames by passing a new
    instance; never mutate one in place.

    Attributes:
        confidence_threshold: Probability at or above which a pixel is foreground
        morphology_enabled: Run the erosion + dilation opening stage
        morphology_kernel_size: Structuring element size (odd, >= 3)
        morphology_shape: "square" (8-neighbourhood) or "cross" (4-neighbourhood)
        keep_largest_component_only: Discard all but the largest foreground region
        component_connectivity: Pixel connectivity for component labeling (4 or 8)
        min_mask_area_ratio: Foreground fraction below which the mask is cleared
        temporal_smoothing_enabled: Blend with the previous frame's output
        temporal_smoothing_factor: Weight of the previous frame (0 = none, 1 = frozen)
        log_interval: Frames between timing log lines (0 disables)
    """
    confidence_threshold: float = 0.7
    morphology_enabled: bool = True
    morphology_kernel_size: int = 5
    morphology_shape: str = "square"
    keep_largest_component_only: bool = True
    component_connectivity: int = 4
    min_mask_area_ratio: float = 0.02
    temporal_smoothing_enabled: bool = True
    temporal_smoothing_factor: float = 0.3
    log_interval: int = 30

    def __post_init__(self):
        """Sanitize values (frozen, so fields are set via object.__setattr__)."""
        def set_(name, value):
            object.__setattr__(self, name, value)

        set_("confidence_threshold", _clamp_unit("confidence_threshold", self.confidence_threshold, 0.7))
        set_("min_mask_area_ratio", _clamp_unit("min_mask_area_ratio", self.min_mask_area_ratio, 0.0))
        set_("temporal_smoothing_factor", _clamp_unit("temporal_smoothing_factor", self.temporal_smoothing_factor, 0.3))
        set_("morphology_kernel_size", _odd_kernel(self.morphology_kernel_size))

        shape = str(self.morphology_shape).lower()
        if shape not in MORPHOLOGY_SHAPES:
            logger.warning(f"Config morphology_shape={self.morphology_shape!r} unknown, using 'square'")
            shape = "square"
        set_("morphology_shape", shape)

        if self.component_connectivity not in CONNECTIVITIES:
            logger.warning(f"Config component_connectivity={self.component_connectivity!r} unsupported, using 4")
            set_("component_connectivity", 4)

        set_("morphology_enabled", _as_bool("morphology_enabled", self.morphology_enabled, True))
        set_("keep_largest_component_only",
             _as_bool("keep_largest_component_only", self.keep_largest_component_only, True))
        set_("temporal_smoothing_enabled",
             _as_bool("temporal_smoothing_enabled", self.temporal_smoothing_enabled, True))
        try:
            set_("log_interval", max(int(self.log_interval), 0))
        except (TypeError, ValueError):
            logger.warning(f"Config log_interval={self.log_interval!r} invalid, using 30")
            set_("log_interval", 30)

    @classmethod
    def from_preset(cls, name: str = ACTIVE_PRESET, **overrides) -> "PipelineConfig":
        """Build a config from a named preset, with optional field overrides."""
        key = str(name).upper()
        if key not in PRESETS:
            logger.warning(f"Unknown preset {name!r}, using {ACTIVE_PRESET}")
            key = ACTIVE_PRESET
        return cls(**{**PRESETS[key], **overrides})

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "PipelineConfig":
        """Build a config from a flat settings record.

        Accepts camelCase keys (as stored by the client settings) or
        snake_case field names. An optional "preset" key selects the base
        values that the remaining keys override.

        Args:
            data: Settings record, or None for defaults

        Returns:
            Sanitized PipelineConfig
        """
        if not data:
            return cls()

        field_names = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        preset = None

        for key, value in data.items():
            if key == "preset":
                preset = value
                continue
            name = _CAMEL_TO_FIELD.get(key, key)
            if name not in field_names:
                logger.warning(f"Ignoring unknown config key {key!r}")
                continue
            values[name] = value

        if preset is not None:
            return cls.from_preset(preset, **values)
        return cls(**values)

    def to_mapping(self) -> Dict[str, Any]:
        """Export as a camelCase settings record."""
        return {_FIELD_TO_CAMEL[f.name]: getattr(self, f.name) for f in fields(self)}

    def with_overrides(self, **changes) -> "PipelineConfig":
        """Return a sanitized copy with some fields changed."""
        return replace(self, **changes)


def load_config(path: Optional[Union[str, Path]] = None) -> PipelineConfig:
    """Load configuration from a YAML file.

    The file holds the flat settings record, either at top level or
    under a "mask_refinement" key.

    Args:
        path: Path to YAML file, or None for defaults

    Returns:
        PipelineConfig (defaults if the file does not exist)
    """
    if path is None:
        return PipelineConfig()

    path = Path(path)
    if not path.exists():
        logger.warning(f"Config file {path} not found, using defaults")
        return PipelineConfig()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        logger.warning(f"Config file {path} does not contain a mapping, using defaults")
        return PipelineConfig()

    section = data.get("mask_refinement", data)
    logger.info(f"Loaded mask refinement config from {path}")
    return PipelineConfig.from_mapping(section)


def describe_config(config: Optional[PipelineConfig]) -> str:
    """Get a human-readable summary of the refinement settings."""
    if config is None:
        return "Standard person detection"

    features = [f"{config.confidence_threshold * 100:.0f}% confidence threshold"]

    if config.morphology_enabled:
        features.append(f"noise removal (kernel: {config.morphology_kernel_size}px)")

    if config.keep_largest_component_only:
        features.append("single person focus")

    features.append(f"min area: {config.min_mask_area_ratio * 100:.1f}%")

    if config.temporal_smoothing_enabled:
        features.append(f"temporal smoothing (factor: {config.temporal_smoothing_factor:.2f})")

    return f"Enhanced detection: {', '.join(features)}"

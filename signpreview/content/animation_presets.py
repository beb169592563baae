"""
Animation preset defaults.

Each preset carries its own parameter set. ``create_default_animation_content``
gives a ready-to-preview configuration; ``ensure_animation_defaults`` fills
missing parameters and clamps out-of-range ones so a half-edited form still
produces a valid payload.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from .models import AnimationContent, AnimationPreset, RGBColor

logger = logging.getLogger(__name__)

DEFAULT_ANIMATION_COLORS: List[RGBColor] = [(255, 90, 90), (64, 156, 255), (255, 230, 92)]

MIN_PLASMA_FLOW_SPEED = 0.05
MIN_PLASMA_NOISE_SCALE = 0.2

PRESET_DEFAULTS: Dict[AnimationPreset, Dict[str, Any]] = {
    AnimationPreset.PULSE: {"cycle_ms": 2000},
    AnimationPreset.PALETTE_WAVE: {"cycle_ms": 2500, "wave_count": 3},
    AnimationPreset.DUAL_PULSE: {"cycle_ms": 2300, "phase_offset": 0.5},
    AnimationPreset.COLOR_FADE: {"drift_speed": 0.25},
    AnimationPreset.STROBE: {"flash_ms": 180, "fade_ms": 220, "randomize": False, "randomization_factor": 0.35},
    AnimationPreset.SPARKLE: {"density": 0.12, "twinkle_ms": 600},
    AnimationPreset.PLASMA: {"flow_speed": 1.85, "noise_scale": 1.75},
    AnimationPreset.MOSAIC_TWINKLE: {
        "tile_size": 1,
        "flow_speed": 0.35,
        "border_size": 0,
        "border_color": (50, 0, 0),
    },
}


def create_default_animation_content(
    preset: AnimationPreset = AnimationPreset.PULSE, colors: Optional[List[RGBColor]] = None
) -> AnimationContent:
    """Animation content for a preset with its default parameters and palette."""
    palette = list(DEFAULT_ANIMATION_COLORS if colors is None else colors)
    return AnimationContent(preset=preset, colors=palette, **PRESET_DEFAULTS[preset])


def _number(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def ensure_animation_defaults(content: Union[AnimationContent, Dict[str, Any]]) -> AnimationContent:
    """
    Normalize an animation configuration for its preset.

    Parameters belonging to other presets are dropped, missing ones take the
    preset defaults, and cross-field constraints are applied:

    - MosaicTwinkle: tile_size >= 1 and border_size within [0, tile_size - 1]
    - Strobe: randomization_factor within [0, 1], randomize coerced to bool
    - Plasma: flow_speed >= 0.05 and noise_scale >= 0.2

    Args:
        content: Animation model or raw form data (may hold out-of-range values)

    Returns:
        New AnimationContent (the input is not modified)
    """
    current = content.model_dump() if isinstance(content, AnimationContent) else dict(content)
    preset = AnimationPreset(current.get("preset") or AnimationPreset.PULSE)
    defaults = PRESET_DEFAULTS[preset]
    params: Dict[str, Any] = {
        name: default if current.get(name) is None else current[name] for name, default in defaults.items()
    }

    if preset == AnimationPreset.MOSAIC_TWINKLE:
        tile_size = max(1, int(round(_number(params["tile_size"], 1))))
        border_size = int(round(_number(params["border_size"], 0)))
        params["tile_size"] = tile_size
        params["border_size"] = min(max(0, border_size), tile_size - 1)
    elif preset == AnimationPreset.STROBE:
        factor = _number(params["randomization_factor"], defaults["randomization_factor"])
        params["randomization_factor"] = min(1.0, max(0.0, factor))
        params["randomize"] = bool(params["randomize"])
    elif preset == AnimationPreset.PLASMA:
        params["flow_speed"] = max(MIN_PLASMA_FLOW_SPEED, _number(params["flow_speed"], defaults["flow_speed"]))
        params["noise_scale"] = max(MIN_PLASMA_NOISE_SCALE, _number(params["noise_scale"], defaults["noise_scale"]))

    return AnimationContent(preset=preset, colors=list(current.get("colors") or []), **params)

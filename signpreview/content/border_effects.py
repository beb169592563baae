"""
Border effect helpers for editor forms.

Editor forms pick a border effect by a lowercase name plus a palette; these
helpers map between that form representation and the ``BorderEffect`` model.
"""

import logging
from typing import List, Optional, Sequence

from .models import COLORED_BORDER_EFFECTS, BorderEffect, BorderEffectType, RGBColor

logger = logging.getLogger(__name__)

BORDER_EFFECT_NAMES = {effect.value.lower(): effect for effect in BorderEffectType}


def create_border_effect(effect_type: Optional[str], colors: Optional[Sequence[RGBColor]] = None) -> BorderEffect:
    """
    Create a border effect from a form selection.

    Colored effects (pulse, sparkle, gradient) fall back to None when no colors
    are chosen; unknown names also give None.

    Args:
        effect_type: Effect name, case-insensitive ("none", "rainbow", "pulse", ...)
        colors: Palette for colored effects

    Returns:
        BorderEffect model
    """
    kind = BORDER_EFFECT_NAMES.get((effect_type or "").strip().lower())
    if kind is None:
        if effect_type:
            logger.warning(f"Unknown border effect '{effect_type}', using None")
        return BorderEffect()

    if kind in COLORED_BORDER_EFFECTS:
        if not colors:
            return BorderEffect()
        return BorderEffect(kind=kind, colors=tuple(tuple(color) for color in colors))

    return BorderEffect(kind=kind)


def get_border_effect_type(effect: Optional[BorderEffect]) -> str:
    """Lowercase form name of an effect ("none" when absent)."""
    if effect is None:
        return BorderEffectType.NONE.value.lower()
    return effect.kind.value.lower()


def get_border_effect_colors(effect: Optional[BorderEffect]) -> List[RGBColor]:
    """Palette of a colored effect; empty for the rest."""
    if effect is None or effect.kind not in COLORED_BORDER_EFFECTS:
        return []
    return list(effect.colors)

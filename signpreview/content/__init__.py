"""
Preview content: wire models and the payload builder.
"""

from .animation_presets import create_default_animation_content, ensure_animation_defaults
from .border_effects import create_border_effect, get_border_effect_colors, get_border_effect_type
from .models import (
    AnimationContent,
    AnimationPreset,
    BorderEffect,
    BorderEffectType,
    ClockContent,
    ClockFormat,
    ContentType,
    ImageContent,
    PreviewPayload,
    TextContent,
    TextSegment,
)
from .preview_builder import EditorState, PreviewContentBuilder

__all__ = [
    "AnimationContent",
    "AnimationPreset",
    "BorderEffect",
    "BorderEffectType",
    "ClockContent",
    "ClockFormat",
    "ContentType",
    "EditorState",
    "ImageContent",
    "PreviewContentBuilder",
    "PreviewPayload",
    "TextContent",
    "TextSegment",
    "create_border_effect",
    "create_default_animation_content",
    "ensure_animation_defaults",
    "get_border_effect_colors",
    "get_border_effect_type",
]

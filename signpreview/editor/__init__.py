"""
Editor-side preview wiring: per-editor binding and image keyframe controls.
"""

from .animation_controls import ImageAnimationControls, compute_default_transform, compute_min_scale
from .binding import EditorPreviewBinding, StatusMessage, StatusType

__all__ = [
    "EditorPreviewBinding",
    "ImageAnimationControls",
    "StatusMessage",
    "StatusType",
    "compute_default_transform",
    "compute_min_scale",
]

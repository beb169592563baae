"""
Keyframe animation engine.

Pure computation for animated image content: keyframe timelines,
interpolation and playback clock math. No I/O and no scheduling.
"""

from .keyframe_timeline import (
    Keyframe,
    LastKeyframeError,
    Timeline,
    TimelineError,
    TimelineValidationError,
    Transform,
    clamp_scale,
    finite_or,
    sanitize_timestamp,
)
from .playback import PlaybackCursor, TimelinePlayback, clamp_timeline_length_sec, timeline_length_ms

__all__ = [
    "Keyframe",
    "Timeline",
    "Transform",
    "TimelineError",
    "TimelineValidationError",
    "LastKeyframeError",
    "clamp_scale",
    "finite_or",
    "sanitize_timestamp",
    "PlaybackCursor",
    "TimelinePlayback",
    "clamp_timeline_length_sec",
    "timeline_length_ms",
]

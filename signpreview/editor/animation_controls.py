"""
Image animation controls.

Editing operations of the image editor's keyframe panel: enabling and
disabling animation, drag edits, keyframe add/remove/re-time, iterations,
timeline length, scrubbing and local playback. The controls own the image
editor's ``EditorState`` and expose ``preview_state()`` for the preview
builder; pushing payloads to the display is left to the editor binding.
"""

import logging
from dataclasses import replace
from typing import Any, Optional, Tuple

from ..animation import (
    LastKeyframeError,
    Timeline,
    TimelinePlayback,
    TimelineValidationError,
    Transform,
    clamp_scale,
    clamp_timeline_length_sec,
    finite_or,
    sanitize_timestamp,
    timeline_length_ms,
)
from ..const import DEFAULT_DURATION_SECONDS, DEFAULT_ITERATIONS, DEFAULT_TIMELINE_LENGTH_SEC, MIN_SCALE
from ..content.models import ImageContent
from ..content.preview_builder import EditorState

logger = logging.getLogger(__name__)


def compute_min_scale(
    natural_width: int, natural_height: int, panel_size: Optional[Tuple[int, int]] = None
) -> float:
    """Smallest useful scale: half the fit-to-panel scale, floored to 2 decimals."""
    if not panel_size or natural_width <= 0 or natural_height <= 0:
        return MIN_SCALE
    panel_width, panel_height = panel_size
    fit_scale = min(panel_width / natural_width, panel_height / natural_height, 1.0)
    return max(MIN_SCALE, int(fit_scale * 50) / 100)


def compute_default_transform(content: ImageContent, panel_size: Optional[Tuple[int, int]] = None) -> Transform:
    """Fit the image inside the panel, centered; identity when sizes are unknown."""
    if not panel_size or content.natural_width <= 0 or content.natural_height <= 0:
        return Transform()
    panel_width, panel_height = panel_size
    scale = clamp_scale(min(panel_width / content.natural_width, panel_height / content.natural_height, 1.0))
    return Transform(
        x=int(round((panel_width - content.natural_width * scale) / 2)),
        y=int(round((panel_height - content.natural_height * scale) / 2)),
        scale=scale,
    )


def _snap(transform: Transform) -> Transform:
    return Transform(
        x=int(round(finite_or(transform.x, 0.0))),
        y=int(round(finite_or(transform.y, 0.0))),
        scale=clamp_scale(transform.scale),
    )


class ImageAnimationControls:
    """
    Keyframe panel state for one image editor.

    All edits go through ``Timeline``'s immutable operations; methods return
    True when the form changed so the caller knows whether a preview update is
    due.
    """

    def __init__(self, state: EditorState, panel_size: Optional[Tuple[int, int]] = None):
        """
        Initialize the controls.

        Args:
            state: Image editor state (content must be ImageContent)
            panel_size: Display size in pixels (width, height), if known
        """
        if not isinstance(state.content, ImageContent):
            raise TypeError("ImageAnimationControls requires image content")
        self.state = state
        self.panel_size = panel_size
        self.timeline_ms = 0
        self.timeline_length_sec = DEFAULT_TIMELINE_LENGTH_SEC
        self.play_transform: Optional[Transform] = None
        self.playback: Optional[TimelinePlayback] = None

    # ======================================================================
    # Derived state
    # ======================================================================

    @property
    def content(self) -> ImageContent:
        return self.state.content

    @property
    def timeline(self) -> Optional[Timeline]:
        return self.content.get_timeline()

    @property
    def animation_enabled(self) -> bool:
        return self.content.animation is not None

    @property
    def is_playing(self) -> bool:
        return self.playback is not None and self.playback.is_playing

    @property
    def timeline_length_ms(self) -> int:
        return timeline_length_ms(self.timeline_length_sec)

    @property
    def min_scale(self) -> float:
        return compute_min_scale(self.content.natural_width, self.content.natural_height, self.panel_size)

    @property
    def prepared_timeline(self) -> Optional[Timeline]:
        """Timeline extended to the configured timeline length."""
        timeline = self.timeline
        if timeline is None:
            return None
        return timeline.with_virtual_endpoint(self.timeline_length_ms)

    @property
    def render_transform(self) -> Transform:
        """Transform drawn on the local canvas."""
        if self.play_transform is not None:
            return self.play_transform
        if self.content.transform is not None:
            return self.content.transform.to_transform()
        return Transform()

    @property
    def preview_transform_for_panel(self) -> Transform:
        """Transform sent to the display: the first keyframe while playing."""
        timeline = self.timeline
        if self.is_playing and timeline is not None:
            return timeline.first_transform
        return self.render_transform

    def preview_state(self) -> EditorState:
        """Builder input; the timeline is included only while playing."""
        return replace(
            self.state,
            include_animation=self.is_playing and self.timeline is not None,
            timeline_length_ms=self.timeline_length_ms,
            transform=self.preview_transform_for_panel,
        )

    def _interpolate(self, elapsed_ms: Any) -> Transform:
        timeline = self.prepared_timeline
        if timeline is None or not timeline.is_playable:
            return self.render_transform if self.play_transform is None else self.play_transform
        return timeline.interpolate(elapsed_ms)

    def _set_content(self, content: ImageContent) -> None:
        self.state.content = content

    def _set_timeline(self, timeline: Optional[Timeline]) -> None:
        self._set_content(self.content.with_timeline(timeline))

    # ======================================================================
    # Transform edits
    # ======================================================================

    def apply_transform_change(
        self,
        transform: Transform,
        create_keyframe: Optional[bool] = None,
        timestamp_ms: Optional[int] = None,
        clear_play_transform: bool = True,
    ) -> bool:
        """
        Apply a drag/resize edit.

        Args:
            transform: New placement
            create_keyframe: Upsert a keyframe at the playhead; defaults to
                whether animation is enabled (never without animation)
            timestamp_ms: Keyframe timestamp (defaults to the playhead)
            clear_play_transform: Drop the scrub/playback transform

        Returns:
            True if the form changed
        """
        snapped = _snap(transform)
        if create_keyframe is None:
            create_keyframe = self.animation_enabled

        changed = False
        current = self.content.transform.to_transform() if self.content.transform is not None else None
        if current != snapped:
            self._set_content(self.content.with_transform(snapped))
            changed = True

        timeline = self.timeline
        if create_keyframe and timeline is not None:
            target = sanitize_timestamp(self.timeline_ms if timestamp_ms is None else timestamp_ms)
            updated = timeline.upsert_keyframe(target, snapped)
            if updated is not timeline:
                self._set_timeline(updated)
                changed = True

        if clear_play_transform:
            self.play_transform = None
        return changed

    def update_transform(self, field: str, value: float) -> bool:
        """
        Set one transform field from a numeric input.

        Scaling keeps the panel center fixed.
        """
        current = self.render_transform
        if field == "scale":
            old_scale = current.scale or 1.0
            new_scale = clamp_scale(value)
            if self.panel_size:
                center_x = self.panel_size[0] / 2
                center_y = self.panel_size[1] / 2
                new_x = round(center_x - (center_x - current.x) * new_scale / old_scale)
                new_y = round(center_y - (center_y - current.y) * new_scale / old_scale)
            else:
                new_x, new_y = current.x, current.y
            return self.apply_transform_change(Transform(x=new_x, y=new_y, scale=new_scale))
        if field == "x":
            return self.apply_transform_change(replace(current, x=round(finite_or(value, 0.0))))
        if field == "y":
            return self.apply_transform_change(replace(current, y=round(finite_or(value, 0.0))))
        raise ValueError(f"Unknown transform field: {field}")

    # ======================================================================
    # Animation lifecycle
    # ======================================================================

    def enable_animation(self) -> bool:
        """Start a timeline with one keyframe at the current placement."""
        iterations = DEFAULT_ITERATIONS if self.state.repeat_count is None else self.state.repeat_count
        initial = _snap(self.render_transform)
        self.timeline_ms = 0
        self.play_transform = None
        self.state.repeat_count = iterations
        self.state.duration = None
        self._set_content(self.content.with_transform(initial).with_timeline(Timeline.default(initial, iterations)))
        logger.debug(f"Animation enabled with {iterations} iterations")
        return True

    def disable_animation(self) -> bool:
        """Drop the timeline and switch back to a fixed duration."""
        if not self.animation_enabled:
            return False
        self.stop_playback()
        self.state.repeat_count = None
        if self.state.duration is None:
            self.state.duration = DEFAULT_DURATION_SECONDS
        self._set_timeline(None)
        return True

    def reset_animation(self) -> bool:
        """Collapse the timeline to a single keyframe at the default placement."""
        timeline = self.timeline
        if timeline is None:
            return False
        default = compute_default_transform(self.content, self.panel_size)
        self.stop_playback()
        self.timeline_ms = 0
        self._set_content(
            self.content.with_transform(default).with_timeline(Timeline.default(default, timeline.iterations))
        )
        return True

    def set_iterations(self, value: Any) -> bool:
        """Set the cycle count; non-positive means loop forever (0)."""
        number = finite_or(value, 0.0)
        iterations = 0 if number <= 0 else int(round(number))
        self.state.repeat_count = iterations
        timeline = self.timeline
        if timeline is not None:
            self._set_timeline(timeline.with_iterations(iterations))
        return True

    def set_timeline_length(self, value: Any) -> bool:
        """Change the timeline length; a playhead beyond the new end is pulled back."""
        self.timeline_length_sec = clamp_timeline_length_sec(value)
        if self.timeline_ms > self.timeline_length_ms:
            self.scrub(self.timeline_length_ms)
        return True

    # ======================================================================
    # Keyframes
    # ======================================================================

    def add_keyframe(self) -> bool:
        """Keyframe at the playhead holding the current placement."""
        timeline = self.timeline
        if timeline is None:
            return False
        updated = timeline.upsert_keyframe(self.timeline_ms, _snap(self.render_transform))
        if updated is timeline:
            return False
        self._set_timeline(updated)
        return True

    def remove_keyframe(self, index: int) -> bool:
        """Remove a keyframe; removing the only one resets the animation."""
        timeline = self.timeline
        if timeline is None:
            return False
        try:
            updated = timeline.remove_keyframe(index)
        except LastKeyframeError:
            logger.debug("Removed the only keyframe, resetting animation")
            return self.reset_animation()
        if updated is timeline:
            return False
        self._set_timeline(updated)
        return True

    def set_keyframe_time_to_current(self, index: int, timestamp_ms: Optional[int] = None) -> bool:
        """Move a keyframe to the playhead (or the given time)."""
        timeline = self.timeline
        if timeline is None:
            return False
        updated = timeline.move_keyframe(index, self.timeline_ms if timestamp_ms is None else timestamp_ms)
        if updated is timeline:
            return False
        self._set_timeline(updated)
        return True

    # ======================================================================
    # Scrubbing and playback
    # ======================================================================

    def scrub(self, timestamp_ms: Any) -> Transform:
        """Move the playhead, stop playback and show the interpolated frame."""
        position = min(sanitize_timestamp(timestamp_ms), self.timeline_length_ms)
        self.stop_playback()
        self.timeline_ms = position
        transform = self._interpolate(position)
        self.play_transform = transform
        self.apply_transform_change(transform, create_keyframe=False, clear_play_transform=False)
        return transform

    skip_to_keyframe = scrub

    def start_playback(self, now_ms: float) -> Transform:
        """
        Play the timeline from t=0.

        Raises:
            TimelineValidationError: If there are fewer than two keyframes
        """
        timeline = self.prepared_timeline
        if timeline is None or not self.timeline.is_playable:
            raise TimelineValidationError("Add at least two keyframes to play the animation")

        iterations = timeline.iterations if self.state.repeat_count is None else self.state.repeat_count
        self.playback = TimelinePlayback(timeline, iterations=iterations)
        transform = self.playback.start(now_ms)
        self.timeline_ms = 0
        self.play_transform = transform
        return transform

    def tick(self, now_ms: float) -> Optional[Transform]:
        """Advance playback; returns the frame, or None when not playing."""
        if not self.is_playing:
            return None
        cursor, transform = self.playback.tick(now_ms)
        self.timeline_ms = int(cursor.elapsed_ms)
        self.play_transform = transform
        if not cursor.is_playing:
            self.stop_playback()
        return transform

    def stop_playback(self) -> bool:
        """Stop local playback; returns whether it was playing."""
        was_playing = self.is_playing
        if self.playback is not None:
            self.playback.stop()
        self.playback = None
        self.play_transform = None
        return was_playing

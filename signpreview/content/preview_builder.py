"""
Preview payload builder.

Turns editor form state into the ``PreviewPayload`` pushed to the display.
The builder is pure: the same ``EditorState`` always yields an equal payload,
and ``build(EditorState.from_payload(build(state)))`` equals ``build(state)``.

Timing rules per content type:

- Text: ``duration`` when static, ``repeat_count`` when scrolling
- Image: ``repeat_count`` while a playable timeline is included, else ``duration``
- Clock / Animation: ``duration`` only
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from ..animation import Transform, finite_or
from ..const import (
    ANIMATION_PLACEHOLDER_SPEED,
    ANIMATION_PLACEHOLDER_TEXT,
    DEFAULT_COLOR,
    DEFAULT_DURATION_SECONDS,
    DEFAULT_REPEAT_COUNT,
    DEFAULT_TEXT_SPEED,
    IMAGE_PLACEHOLDER_TEXT,
)
from .animation_presets import ensure_animation_defaults
from .models import (
    AnimationContent,
    BorderEffect,
    ClockContent,
    ImageContent,
    PreviewPayload,
    TextContent,
)

logger = logging.getLogger(__name__)

EditorContent = Union[TextContent, ImageContent, ClockContent, AnimationContent]


def normalize_duration(value) -> int:
    """Whole seconds, at least 1; missing or non-positive values give the default."""
    seconds = finite_or(value, 0.0)
    if seconds <= 0:
        seconds = DEFAULT_DURATION_SECONDS
    return max(1, int(round(seconds)))


def _placeholder_text(text: str, speed: float) -> TextContent:
    return TextContent(text=text, scroll=False, color=DEFAULT_COLOR, speed=speed)


@dataclass
class EditorState:
    """
    Builder input: the editor's current form values.

    ``include_animation`` is decided by the editor binding and is true only
    while a playback preview is running; ``transform`` is the live on-canvas
    image placement, when the editor has one.
    """

    content: EditorContent
    border_effect: BorderEffect = field(default_factory=BorderEffect)
    duration: Optional[float] = None
    repeat_count: Optional[int] = None
    timeline_length_ms: Optional[int] = None
    include_animation: bool = False
    transform: Optional[Transform] = None

    @classmethod
    def from_payload(cls, payload: PreviewPayload) -> "EditorState":
        """Editor state that rebuilds the given payload."""
        content = payload.content
        include_animation = False
        timeline_length_ms = None
        transform = None

        if isinstance(content, ImageContent):
            timeline = content.get_timeline()
            if timeline is not None and timeline.is_playable:
                include_animation = True
                timeline_length_ms = timeline.cycle_length_ms()
            if content.transform is not None:
                transform = content.transform.to_transform()

        return cls(
            content=content,
            border_effect=payload.border_effect,
            duration=payload.duration,
            repeat_count=payload.repeat_count,
            timeline_length_ms=timeline_length_ms,
            include_animation=include_animation,
            transform=transform,
        )


class PreviewContentBuilder:
    """Builds preview payloads from editor state."""

    def build(self, state: EditorState) -> PreviewPayload:
        """
        Build the preview payload for the current editor state.

        Args:
            state: Editor form values

        Returns:
            PreviewPayload with exactly one timing field set

        Raises:
            TypeError: If the content type is not supported
        """
        content = state.content
        if isinstance(content, TextContent):
            return self._build_text(state, content)
        if isinstance(content, ImageContent):
            return self._build_image(state, content)
        if isinstance(content, ClockContent):
            return PreviewPayload(
                border_effect=state.border_effect,
                content=content,
                duration=normalize_duration(state.duration),
            )
        if isinstance(content, AnimationContent):
            return self._build_animation(state, content)
        raise TypeError(f"Unsupported preview content: {type(content).__name__}")

    def _build_text(self, state: EditorState, content: TextContent) -> PreviewPayload:
        if not content.text_segments and content.text_segments is not None:
            content = content.model_copy(update={"text_segments": None})

        if content.scroll:
            return PreviewPayload(
                border_effect=state.border_effect,
                content=content,
                repeat_count=state.repeat_count or DEFAULT_REPEAT_COUNT,
            )
        return PreviewPayload(
            border_effect=state.border_effect,
            content=content,
            duration=normalize_duration(state.duration),
        )

    def _build_image(self, state: EditorState, content: ImageContent) -> PreviewPayload:
        if not content.image_id:
            return PreviewPayload(
                border_effect=state.border_effect,
                content=_placeholder_text(IMAGE_PLACEHOLDER_TEXT, DEFAULT_TEXT_SPEED),
                duration=normalize_duration(state.duration),
            )

        timeline = content.get_timeline()

        if state.include_animation and timeline is not None and timeline.is_playable:
            if state.timeline_length_ms is not None:
                timeline = timeline.with_virtual_endpoint(state.timeline_length_ms)
            repeat_count = timeline.iterations if state.repeat_count is None else max(0, int(state.repeat_count))
            animated = content.with_timeline(timeline).with_transform(timeline.first_transform.sanitized())
            return PreviewPayload(border_effect=state.border_effect, content=animated, repeat_count=repeat_count)

        transform = state.transform
        if transform is None and content.transform is not None:
            transform = content.transform.to_transform()
        if transform is None and timeline is not None:
            transform = timeline.first_transform
        if transform is None:
            transform = Transform()

        static = content.with_timeline(None).with_transform(transform.sanitized())
        return PreviewPayload(
            border_effect=state.border_effect,
            content=static,
            duration=normalize_duration(state.duration),
        )

    def _build_animation(self, state: EditorState, content: AnimationContent) -> PreviewPayload:
        if not content.colors:
            return PreviewPayload(
                border_effect=state.border_effect,
                content=_placeholder_text(ANIMATION_PLACEHOLDER_TEXT, ANIMATION_PLACEHOLDER_SPEED),
                duration=normalize_duration(state.duration),
            )
        return PreviewPayload(
            border_effect=state.border_effect,
            content=ensure_animation_defaults(content),
            duration=normalize_duration(state.duration),
        )

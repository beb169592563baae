"""
Editor preview binding.

Per-editor adapter between an editor's form state and the shared preview
session. Continuous input (typing, dragging) goes through the debounced path;
discrete control changes (toggles, selects, playback) are sent immediately.
Unmounting an editor only drops its interest in the session; the preview is
ended by ``exit_preview`` (back/save).
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..animation import TimelineValidationError, Transform
from ..content.models import PreviewPayload
from ..content.preview_builder import EditorState, PreviewContentBuilder
from ..core.preview_session import PreviewResult, PreviewSessionCoordinator, get_preview_coordinator
from ..network.transport import PreviewConflictError, PreviewSessionLostError
from .animation_controls import ImageAnimationControls

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Preview already active in another session"
EXPIRED_MESSAGE = "Preview session expired. Another editor may have taken over the display."


class StatusType(str, Enum):
    """Kind of status message shown next to the editor."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass
class StatusMessage:
    """Local, user-facing status."""

    message: str
    type: StatusType = StatusType.INFO


class EditorPreviewBinding:
    """Connects one editor to the process-wide preview session."""

    def __init__(
        self,
        state_provider: Optional[Callable[[], EditorState]] = None,
        coordinator: Optional[PreviewSessionCoordinator] = None,
        builder: Optional[PreviewContentBuilder] = None,
        animation: Optional[ImageAnimationControls] = None,
    ):
        """
        Initialize the binding.

        Args:
            state_provider: Returns the editor's current form state; defaults to
                ``animation.preview_state`` for image editors
            coordinator: Session coordinator (the process-wide one if None)
            builder: Payload builder
            animation: Keyframe controls of an image editor
        """
        if state_provider is None:
            if animation is None:
                raise ValueError("state_provider is required without animation controls")
            state_provider = animation.preview_state

        self.state_provider = state_provider
        self.coordinator = coordinator or get_preview_coordinator()
        self.builder = builder or PreviewContentBuilder()
        self.animation = animation

        self.mounted = False
        self.session_expired = False
        self.status: Optional[StatusMessage] = None

        # Callback for status changes
        self.on_status: Optional[Callable[[Optional[StatusMessage]], None]] = None

    def build_payload(self) -> PreviewPayload:
        return self.builder.build(self.state_provider())

    def _set_status(self, status: Optional[StatusMessage]) -> None:
        self.status = status
        if self.on_status:
            try:
                self.on_status(status)
            except Exception as e:
                logger.error(f"Status callback failed: {e}")

    def _handle_expired(self) -> None:
        self.session_expired = True
        self._set_status(StatusMessage(EXPIRED_MESSAGE, StatusType.INFO))

    def _report(self, result: PreviewResult) -> PreviewResult:
        if result.success:
            self.session_expired = False
            if self.status is not None and self.status.type == StatusType.ERROR:
                self._set_status(None)
        elif isinstance(result.error, PreviewConflictError):
            self._set_status(StatusMessage(CONFLICT_MESSAGE, StatusType.ERROR))
        elif isinstance(result.error, PreviewSessionLostError):
            # The expired listener has already set the status
            pass
        elif result.error is not None:
            self._set_status(StatusMessage(f"Preview failed: {result.message}", StatusType.ERROR))
        return result

    # ======================================================================
    # Lifecycle
    # ======================================================================

    async def mount(self) -> PreviewResult:
        """Attach to the session and make sure it is running."""
        if not self.mounted:
            self.coordinator.attach_editor()
            self.coordinator.add_expired_listener(self._handle_expired)
            self.mounted = True

        payload = self.build_payload()
        already_active = self.coordinator.is_active
        result = await self.coordinator.ensure_started(payload)
        if result.success and already_active:
            # Another editor started the session; show this editor's content
            result = await self.coordinator.update(payload)
        return self._report(result)

    def unmount(self) -> None:
        """Drop this editor's interest; the session keeps running."""
        if not self.mounted:
            return
        if self.animation is not None:
            self.animation.stop_playback()
        self.coordinator.remove_expired_listener(self._handle_expired)
        self.coordinator.detach_editor()
        self.mounted = False

    def exit_preview(self) -> Optional[asyncio.Task]:
        """Back/save: end the preview session for every editor."""
        task = self.coordinator.stop()
        self.unmount()
        return task

    async def reacquire(self) -> PreviewResult:
        """Start a fresh session after expiry."""
        self.session_expired = False
        self._set_status(None)
        result = await self.coordinator.ensure_started(self.build_payload())
        return self._report(result)

    # ======================================================================
    # Form changes
    # ======================================================================

    def on_input_changed(self) -> bool:
        """Continuous input changed; queue a debounced update."""
        if self.session_expired:
            return False
        return self.coordinator.debounced_update(self.build_payload())

    async def on_control_changed(self) -> PreviewResult:
        """Discrete control changed; update immediately."""
        if self.session_expired:
            return PreviewResult(success=False, skipped=True)
        return self._report(await self.coordinator.update(self.build_payload()))

    # ======================================================================
    # Visibility
    # ======================================================================

    def on_background(self) -> None:
        self.coordinator.notify_background()

    async def on_foreground(self) -> bool:
        return await self.coordinator.notify_foreground()

    # ======================================================================
    # Image playback
    # ======================================================================

    async def start_playback(self, now_ms: float) -> bool:
        """Play the timeline locally and restart it on the display from t=0."""
        if self.animation is None:
            return False
        try:
            self.animation.start_playback(now_ms)
        except TimelineValidationError as e:
            self._set_status(StatusMessage(str(e), StatusType.ERROR))
            return False
        await self.on_control_changed()
        return True

    async def stop_playback(self) -> bool:
        """Stop playback and show the static frame on the display."""
        if self.animation is None or not self.animation.stop_playback():
            return False
        await self.on_control_changed()
        return True

    async def tick(self, now_ms: float) -> Optional[Transform]:
        """Advance local playback; sends the static frame when playback finishes."""
        if self.animation is None or not self.animation.is_playing:
            return None
        transform = self.animation.tick(now_ms)
        if not self.animation.is_playing:
            await self.on_control_changed()
        return transform

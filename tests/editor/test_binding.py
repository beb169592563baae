"""
Unit tests for the editor preview binding.

Uses a real coordinator over a mocked transport so the binding's calls go
through the session state machine.
"""

import asyncio
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from signpreview.animation import Transform
from signpreview.content import EditorState, ImageContent, TextContent
from signpreview.core import SessionState
from signpreview.editor import EditorPreviewBinding, ImageAnimationControls, StatusType
from signpreview.editor.binding import CONFLICT_MESSAGE, EXPIRED_MESSAGE
from signpreview.network import PreviewConflictError, PreviewSessionLostError, PreviewTransportError


@pytest.fixture
def text_state():
    return EditorState(content=TextContent(text="Hello"))


@pytest.fixture
def binding(coordinator, text_state):
    return EditorPreviewBinding(lambda: text_state, coordinator=coordinator)


@pytest.fixture
def image_controls():
    state = EditorState(content=ImageContent(image_id="img-1", natural_width=128, natural_height=64))
    controls = ImageAnimationControls(state, panel_size=(64, 32))
    controls.enable_animation()
    controls.timeline_ms = 1000
    controls.apply_transform_change(Transform(x=100, y=50, scale=0.5))
    return controls


@pytest.fixture
def image_binding(coordinator, image_controls):
    return EditorPreviewBinding(coordinator=coordinator, animation=image_controls)


# =============================================================================
# Lifecycle Tests
# =============================================================================


class TestMountAndUnmount:
    """Test attaching editors to the shared session."""

    def test_requires_state_source(self, coordinator):
        with pytest.raises(ValueError):
            EditorPreviewBinding(coordinator=coordinator)

    @pytest.mark.asyncio
    async def test_mount_starts_session(self, binding, coordinator, fake_transport):
        result = await binding.mount()

        assert result.success
        assert coordinator.is_active
        assert coordinator.editor_count == 1
        assert fake_transport.start.await_args.args[0].content.text == "Hello"
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_mount_twice_attaches_once(self, binding, coordinator):
        await binding.mount()
        await binding.mount()

        assert coordinator.editor_count == 1
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_second_editor_pushes_its_content(self, binding, coordinator, fake_transport):
        other_state = EditorState(content=TextContent(text="Second"))
        other = EditorPreviewBinding(lambda: other_state, coordinator=coordinator)

        await binding.mount()
        result = await other.mount()

        assert result.success
        assert coordinator.editor_count == 2
        assert fake_transport.start.await_count == 1
        assert fake_transport.update.await_args.args[1].content.text == "Second"
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_conflict_sets_error_status(self, binding, fake_transport):
        fake_transport.start.side_effect = PreviewConflictError("busy")
        statuses = []
        binding.on_status = statuses.append

        result = await binding.mount()

        assert not result.success
        assert binding.status.message == CONFLICT_MESSAGE
        assert binding.status.type == StatusType.ERROR
        assert statuses == [binding.status]

    @pytest.mark.asyncio
    async def test_other_failure_status(self, binding, fake_transport):
        fake_transport.start.side_effect = PreviewTransportError("connection refused")

        await binding.mount()

        assert binding.status.message == "Preview failed: connection refused"

    @pytest.mark.asyncio
    async def test_unmount_keeps_session(self, binding, coordinator, fake_transport):
        await binding.mount()

        binding.unmount()

        assert coordinator.is_active
        assert coordinator.editor_count == 0
        fake_transport.stop.assert_not_awaited()
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_exit_preview_stops_session(self, binding, coordinator, fake_transport):
        await binding.mount()

        task = binding.exit_preview()
        await task

        assert coordinator.state == SessionState.INACTIVE
        assert not binding.mounted
        fake_transport.stop.assert_awaited_once_with("session-1")


# =============================================================================
# Form Change Tests
# =============================================================================


class TestFormChanges:
    """Test debounced and immediate updates from the form."""

    @pytest.mark.asyncio
    async def test_typing_is_debounced(self, binding, coordinator, fake_transport, text_state):
        await binding.mount()

        for text in ("H", "He", "Hel"):
            text_state.content = TextContent(text=text)
            assert binding.on_input_changed()
        await asyncio.sleep(0.15)

        fake_transport.update.assert_awaited_once()
        assert fake_transport.update.await_args.args[1].content.text == "Hel"
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_control_change_is_immediate(self, binding, coordinator, fake_transport, text_state):
        await binding.mount()
        text_state.content = TextContent(text="Hello", scroll=True)

        result = await binding.on_control_changed()

        assert result.success
        assert fake_transport.update.await_args.args[1].repeat_count == 1
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_expiry_blocks_updates_until_reacquire(self, binding, coordinator, fake_transport):
        await binding.mount()
        fake_transport.update.side_effect = PreviewSessionLostError("taken over")

        await binding.on_control_changed()

        assert binding.session_expired
        assert binding.status.message == EXPIRED_MESSAGE
        assert not binding.on_input_changed()
        assert (await binding.on_control_changed()).skipped

        fake_transport.update.side_effect = None
        fake_transport.start.return_value = "session-2"
        result = await binding.reacquire()

        assert result.success
        assert not binding.session_expired
        assert binding.status is None
        assert coordinator.session_id == "session-2"
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_success_clears_error_status(self, binding, coordinator, fake_transport):
        fake_transport.start.side_effect = PreviewConflictError("busy")
        await binding.mount()

        fake_transport.start.side_effect = None
        await binding.mount()

        assert binding.status is None
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_status_callback_errors_are_contained(self, binding, fake_transport):
        binding.on_status = MagicMock(side_effect=RuntimeError("ui gone"))
        fake_transport.start.side_effect = PreviewConflictError("busy")

        result = await binding.mount()

        assert binding.status.message == CONFLICT_MESSAGE
        assert not result.success


# =============================================================================
# Visibility Tests
# =============================================================================


class TestVisibility:
    """Test background / foreground forwarding."""

    @pytest.mark.asyncio
    async def test_foreground_revalidates(self, binding, coordinator, fake_transport):
        await binding.mount()

        binding.on_background()
        assert await binding.on_foreground()

        fake_transport.check_ownership.assert_awaited_once_with("session-1")
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_foreground_after_takeover_marks_expired(self, binding, coordinator, fake_transport):
        await binding.mount()
        fake_transport.check_ownership.return_value = False

        binding.on_background()
        assert not await binding.on_foreground()

        assert binding.session_expired


# =============================================================================
# Image Playback Tests
# =============================================================================


class TestImagePlayback:
    """Test playback pushes for image editors."""

    @pytest.mark.asyncio
    async def test_preview_is_static_before_playback(self, image_binding, coordinator, fake_transport):
        await image_binding.mount()

        payload = fake_transport.start.await_args.args[0]
        assert payload.content.animation is None
        assert payload.duration == 10
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_start_playback_sends_timeline(self, image_binding, coordinator, fake_transport):
        await image_binding.mount()

        assert await image_binding.start_playback(0)

        payload = fake_transport.update.await_args.args[1]
        assert payload.repeat_count == 1
        assert [k.timestamp_ms for k in payload.content.get_timeline().keyframes] == [0, 1000, 5000]
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_playback_end_sends_static_frame(self, image_binding, coordinator, fake_transport):
        await image_binding.mount()
        await image_binding.start_playback(0)

        await image_binding.tick(2000)
        assert fake_transport.update.await_count == 1

        await image_binding.tick(5000)

        assert fake_transport.update.await_count == 2
        payload = fake_transport.update.await_args.args[1]
        assert payload.content.animation is None
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_stop_playback_sends_static_frame(self, image_binding, coordinator, fake_transport):
        await image_binding.mount()
        await image_binding.start_playback(0)

        assert await image_binding.stop_playback()
        assert not await image_binding.stop_playback()

        assert fake_transport.update.await_args.args[1].duration == 10
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_playback_with_one_keyframe_reports_error(self, coordinator, fake_transport):
        state = EditorState(content=ImageContent(image_id="img-1"))
        controls = ImageAnimationControls(state)
        controls.enable_animation()
        binding = EditorPreviewBinding(coordinator=coordinator, animation=controls)
        await binding.mount()

        assert not await binding.start_playback(0)

        assert binding.status.type == StatusType.ERROR
        fake_transport.update.assert_not_awaited()
        await coordinator.shutdown()

    @pytest.mark.asyncio
    async def test_text_binding_has_no_playback(self, binding):
        assert not await binding.start_playback(0)
        assert await binding.tick(100) is None

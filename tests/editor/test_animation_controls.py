"""
Unit tests for the image keyframe controls.

A 128x64 image on a 64x32 panel; the fit-to-panel scale is 0.5.
"""

import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from signpreview.animation import TimelineValidationError, Transform
from signpreview.content import EditorState, ImageContent, TextContent
from signpreview.editor import ImageAnimationControls, compute_default_transform, compute_min_scale

PANEL = (64, 32)


@pytest.fixture
def image_state():
    return EditorState(content=ImageContent(image_id="img-1", natural_width=128, natural_height=64))


@pytest.fixture
def controls(image_state):
    return ImageAnimationControls(image_state, panel_size=PANEL)


@pytest.fixture
def animated_controls(controls):
    """Controls with keyframes at 0ms (identity) and 1000ms (100, 50, 0.5)."""
    controls.enable_animation()
    controls.timeline_ms = 1000
    controls.apply_transform_change(Transform(x=100, y=50, scale=0.5))
    return controls


# =============================================================================
# Geometry Helper Tests
# =============================================================================


class TestGeometry:
    """Test fit and minimum scale helpers."""

    def test_min_scale(self):
        assert compute_min_scale(128, 64, PANEL) == 0.25

    def test_min_scale_unknown_size(self):
        assert compute_min_scale(0, 0, PANEL) == 0.01
        assert compute_min_scale(128, 64, None) == 0.01

    def test_default_transform_fits_and_centers(self):
        content = ImageContent(image_id="img", natural_width=32, natural_height=32)
        assert compute_default_transform(content, PANEL) == Transform(x=16, y=0, scale=1.0)

    def test_default_transform_scales_down(self):
        content = ImageContent(image_id="img", natural_width=128, natural_height=64)
        assert compute_default_transform(content, PANEL) == Transform(x=0, y=0, scale=0.5)


# =============================================================================
# Transform Edit Tests
# =============================================================================


class TestTransformEdits:
    """Test drag and numeric edits."""

    def test_requires_image_content(self):
        with pytest.raises(TypeError):
            ImageAnimationControls(EditorState(content=TextContent()))

    def test_drag_snaps_position(self, controls):
        assert controls.apply_transform_change(Transform(x=3.6, y=-1.2, scale=0.4444))
        assert controls.content.transform.to_transform() == Transform(x=4, y=-1, scale=0.444)

    def test_same_transform_is_no_change(self, controls):
        controls.apply_transform_change(Transform(x=3, y=1, scale=0.5))
        assert not controls.apply_transform_change(Transform(x=3, y=1, scale=0.5))

    def test_no_keyframe_without_animation(self, controls):
        controls.apply_transform_change(Transform(x=3, y=1, scale=0.5), create_keyframe=True)
        assert controls.content.animation is None

    def test_scale_keeps_panel_center(self, controls):
        controls.update_transform("scale", 0.5)
        assert controls.content.transform.to_transform() == Transform(x=16, y=8, scale=0.5)

    def test_update_position_fields(self, controls):
        controls.update_transform("x", 7.4)
        controls.update_transform("y", -2.6)
        assert controls.content.transform.to_transform() == Transform(x=7, y=-3, scale=1.0)

    def test_unknown_field(self, controls):
        with pytest.raises(ValueError):
            controls.update_transform("rotation", 90)

    def test_min_scale_property(self, controls):
        assert controls.min_scale == 0.25


# =============================================================================
# Animation Lifecycle Tests
# =============================================================================


class TestAnimationLifecycle:
    """Test enable / disable / reset and settings."""

    def test_enable_switches_to_repeat_count(self, controls, image_state):
        image_state.duration = 12

        assert controls.enable_animation()

        assert controls.animation_enabled
        assert image_state.repeat_count == 1
        assert image_state.duration is None
        assert len(controls.timeline.keyframes) == 1
        assert controls.timeline.iterations == 1

    def test_enable_keeps_existing_repeat_count(self, controls, image_state):
        image_state.repeat_count = 4
        controls.enable_animation()
        assert controls.timeline.iterations == 4

    def test_disable_switches_to_duration(self, animated_controls, image_state):
        assert animated_controls.disable_animation()

        assert not animated_controls.animation_enabled
        assert image_state.repeat_count is None
        assert image_state.duration == 10

    def test_disable_when_not_animated(self, controls):
        assert not controls.disable_animation()

    def test_reset_collapses_to_default(self, animated_controls):
        assert animated_controls.reset_animation()

        timeline = animated_controls.timeline
        assert len(timeline.keyframes) == 1
        assert timeline.first_transform == Transform(x=0, y=0, scale=0.5)
        assert animated_controls.timeline_ms == 0

    def test_set_iterations(self, animated_controls, image_state):
        animated_controls.set_iterations(-1)
        assert image_state.repeat_count == 0
        assert animated_controls.timeline.iterations == 0

        animated_controls.set_iterations(2.4)
        assert animated_controls.timeline.iterations == 2

    def test_set_timeline_length_clamps(self, controls):
        controls.set_timeline_length(120)
        assert controls.timeline_length_sec == 60
        controls.set_timeline_length(0)
        assert controls.timeline_length_sec == 1

    def test_shorter_length_pulls_playhead_back(self, animated_controls):
        animated_controls.timeline_ms = 4000
        animated_controls.set_timeline_length(2)
        assert animated_controls.timeline_ms == 2000


# =============================================================================
# Keyframe Tests
# =============================================================================


class TestKeyframeEdits:
    """Test keyframe add / remove / re-time."""

    def test_drag_creates_keyframe_at_playhead(self, animated_controls):
        keyframes = animated_controls.timeline.keyframes

        assert [k.timestamp_ms for k in keyframes] == [0, 1000]
        assert keyframes[1].transform == Transform(x=100, y=50, scale=0.5)

    def test_add_keyframe(self, animated_controls):
        animated_controls.timeline_ms = 2500
        assert animated_controls.add_keyframe()
        assert [k.timestamp_ms for k in animated_controls.timeline.keyframes] == [0, 1000, 2500]

    def test_add_existing_keyframe_is_no_change(self, animated_controls):
        assert not animated_controls.add_keyframe()

    def test_add_without_animation(self, controls):
        assert not controls.add_keyframe()

    def test_remove_keyframe(self, animated_controls):
        assert animated_controls.remove_keyframe(1)
        assert len(animated_controls.timeline.keyframes) == 1

    def test_remove_only_keyframe_resets(self, controls):
        controls.enable_animation()

        assert controls.remove_keyframe(0)

        assert controls.animation_enabled
        assert controls.timeline.first_transform == Transform(x=0, y=0, scale=0.5)

    def test_retime_keyframe(self, animated_controls):
        assert animated_controls.set_keyframe_time_to_current(1, 2500)
        assert [k.timestamp_ms for k in animated_controls.timeline.keyframes] == [0, 2500]


# =============================================================================
# Scrub and Playback Tests
# =============================================================================


class TestScrubAndPlayback:
    """Test scrubbing and local playback."""

    def test_scrub_interpolates(self, animated_controls):
        transform = animated_controls.scrub(500)

        assert transform == Transform(x=50, y=25, scale=0.75)
        assert animated_controls.render_transform == transform
        assert animated_controls.timeline_ms == 500

    def test_scrub_does_not_add_keyframes(self, animated_controls):
        animated_controls.scrub(500)
        assert len(animated_controls.timeline.keyframes) == 2

    def test_scrub_clamped_to_timeline_length(self, animated_controls):
        animated_controls.scrub(99999)
        assert animated_controls.timeline_ms == 5000

    def test_playback_needs_two_keyframes(self, controls):
        controls.enable_animation()
        with pytest.raises(TimelineValidationError):
            controls.start_playback(0)

    def test_playback_uses_timeline_length(self, animated_controls):
        assert animated_controls.start_playback(0) == Transform(x=0, y=0, scale=1.0)
        assert len(animated_controls.prepared_timeline.keyframes) == 3

        assert animated_controls.tick(500) == Transform(x=50, y=25, scale=0.75)
        assert animated_controls.tick(3000) == Transform(x=100, y=50, scale=0.5)
        assert animated_controls.is_playing

        animated_controls.tick(5000)
        assert not animated_controls.is_playing
        assert animated_controls.tick(6000) is None

    def test_preview_state_includes_timeline_only_while_playing(self, animated_controls):
        assert not animated_controls.preview_state().include_animation

        animated_controls.start_playback(0)
        state = animated_controls.preview_state()

        assert state.include_animation
        assert state.timeline_length_ms == 5000
        assert state.transform == Transform(x=0, y=0, scale=1.0)

    def test_stop_playback(self, animated_controls):
        animated_controls.start_playback(0)
        assert animated_controls.stop_playback()
        assert not animated_controls.stop_playback()

"""
Shared pytest fixtures for the SignPreview test suite.

Provides a mocked preview transport, fast session timing, sample timelines
and payloads, and resets the process-wide coordinator between tests.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from signpreview.animation import Keyframe, Timeline
from signpreview.content import EditorState, PreviewContentBuilder, TextContent
from signpreview.core import PreviewSessionConfig, PreviewSessionCoordinator, reset_preview_coordinator

# =============================================================================
# Timeline Fixtures
# =============================================================================


@pytest.fixture
def two_keyframe_timeline() -> Timeline:
    """Timeline moving from (0, 0) at full scale to (100, 50) at half scale over 1s."""
    return Timeline.from_keyframes(
        [
            Keyframe(timestamp_ms=0, x=0, y=0, scale=1.0),
            Keyframe(timestamp_ms=1000, x=100, y=50, scale=0.5),
        ]
    )


@pytest.fixture
def single_keyframe_timeline() -> Timeline:
    """Timeline with only the default keyframe."""
    return Timeline.default()


# =============================================================================
# Payload Fixtures
# =============================================================================


@pytest.fixture
def builder() -> PreviewContentBuilder:
    return PreviewContentBuilder()


@pytest.fixture
def text_payload(builder):
    """Static text payload."""
    return builder.build(EditorState(content=TextContent(text="Hello")))


@pytest.fixture
def other_text_payload(builder):
    """A second, different static text payload."""
    return builder.build(EditorState(content=TextContent(text="World")))


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
def fake_transport() -> MagicMock:
    """Preview transport with async mocks; start issues "session-1"."""
    transport = MagicMock()
    transport.start = AsyncMock(return_value="session-1")
    transport.update = AsyncMock(return_value=None)
    transport.ping = AsyncMock(return_value=None)
    transport.check_ownership = AsyncMock(return_value=True)
    transport.stop = AsyncMock(return_value=None)
    transport.is_active = AsyncMock(return_value=False)
    return transport


@pytest.fixture
def session_config() -> PreviewSessionConfig:
    """Fast keep-alive and the shortest debounce window."""
    return PreviewSessionConfig(ping_interval_seconds=0.02, server_session_timeout_seconds=1.0, debounce_seconds=0.05)


@pytest.fixture
def coordinator(fake_transport, session_config) -> PreviewSessionCoordinator:
    return PreviewSessionCoordinator(fake_transport, session_config)


@pytest.fixture(autouse=True)
def reset_global_coordinator():
    """Drop the process-wide coordinator around every test."""
    reset_preview_coordinator()
    yield
    reset_preview_coordinator()

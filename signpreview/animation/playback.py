"""
Timeline playback clock math.

Playback is driven externally: the caller supplies monotonic timestamps in
milliseconds (for example ``time.monotonic() * 1000`` from a UI tick) and this
module turns them into a cursor position and a transform. Scrubbing, playing
and rendering a static frame all go through ``Timeline.interpolate`` so the
three produce identical transforms for the same position.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ..const import DEFAULT_TIMELINE_LENGTH_SEC, MAX_TIMELINE_LENGTH_SEC, MIN_TIMELINE_LENGTH_SEC
from .keyframe_timeline import Timeline, TimelineValidationError, Transform, finite_or, sanitize_timestamp

logger = logging.getLogger(__name__)


def clamp_timeline_length_sec(value: Any) -> int:
    """Clamp a user-entered timeline length to whole seconds in the allowed range."""
    seconds = int(round(finite_or(value, DEFAULT_TIMELINE_LENGTH_SEC)))
    return max(MIN_TIMELINE_LENGTH_SEC, min(MAX_TIMELINE_LENGTH_SEC, seconds))


def timeline_length_ms(length_sec: Any) -> int:
    """Timeline length in milliseconds, never below 1."""
    return max(1, int(round(finite_or(length_sec, DEFAULT_TIMELINE_LENGTH_SEC) * 1000)))


@dataclass
class PlaybackCursor:
    """Ephemeral playback position; derived from a timeline, never persisted."""

    elapsed_ms: float = 0.0
    is_playing: bool = False
    cycle_length_ms: int = 0


class TimelinePlayback:
    """
    Playback state machine over one timeline.

    Holds only the start time of the current run; every position is computed
    from the timestamps passed in, so tests drive it by supplying ``now_ms``
    directly.
    """

    def __init__(self, timeline: Timeline, iterations: Optional[int] = None):
        """
        Initialize playback.

        Args:
            timeline: Timeline to play (usually already extended with a virtual endpoint)
            iterations: Override for the number of cycles (0 = infinite); defaults
                to ``timeline.iterations``
        """
        self.timeline = timeline
        self.iterations = timeline.iterations if iterations is None else sanitize_timestamp(iterations)
        self.cursor = PlaybackCursor(cycle_length_ms=timeline.cycle_length_ms())
        self._start_ms = 0.0

    @property
    def is_playing(self) -> bool:
        return self.cursor.is_playing

    def start(self, now_ms: float) -> Transform:
        """
        Start playing from t=0.

        Raises:
            TimelineValidationError: If the timeline has fewer than 2 keyframes
        """
        cycle = self.timeline.cycle_length_ms()
        if not self.timeline.is_playable or cycle <= 0:
            raise TimelineValidationError("Add at least two keyframes to play the animation")

        self._start_ms = float(now_ms)
        self.cursor = PlaybackCursor(elapsed_ms=0.0, is_playing=True, cycle_length_ms=cycle)
        logger.debug(f"Playback started: cycle {cycle}ms, iterations {self.iterations}")
        return self.timeline.interpolate(0)

    def tick(self, now_ms: float) -> Tuple[PlaybackCursor, Transform]:
        """Advance to ``now_ms`` and return the cursor with the transform to render."""
        if not self.cursor.is_playing:
            return self.cursor, self.timeline.interpolate(self.cursor.elapsed_ms)

        cycle = self.cursor.cycle_length_ms
        elapsed_total = max(0.0, float(now_ms) - self._start_ms)

        if self.iterations > 0 and elapsed_total >= self.iterations * cycle:
            self.cursor = PlaybackCursor(elapsed_ms=float(cycle), is_playing=False, cycle_length_ms=cycle)
            logger.debug(f"Playback finished after {self.iterations} iterations")
            return self.cursor, self.timeline.interpolate(cycle)

        within = elapsed_total % cycle
        self.cursor = PlaybackCursor(elapsed_ms=within, is_playing=True, cycle_length_ms=cycle)
        return self.cursor, self.timeline.interpolate(within)

    def stop(self) -> PlaybackCursor:
        """Stop playing, keeping the current position."""
        self.cursor = PlaybackCursor(
            elapsed_ms=self.cursor.elapsed_ms, is_playing=False, cycle_length_ms=self.cursor.cycle_length_ms
        )
        return self.cursor

    def scrub(self, timestamp_ms: Any, max_ms: Optional[int] = None) -> Transform:
        """
        Jump to a position, stopping playback.

        Args:
            timestamp_ms: Requested position
            max_ms: Upper bound (the configured timeline length); defaults to
                the last keyframe timestamp
        """
        upper = self.timeline.keyframes[-1].timestamp_ms if max_ms is None else sanitize_timestamp(max_ms)
        position = min(sanitize_timestamp(timestamp_ms), upper)
        self.cursor = PlaybackCursor(
            elapsed_ms=float(position), is_playing=False, cycle_length_ms=self.timeline.cycle_length_ms()
        )
        return self.timeline.interpolate(position)

    def frame_at(self, elapsed_ms: Any) -> Transform:
        """Static preview frame at a position; does not touch the cursor."""
        return self.timeline.interpolate(elapsed_ms)

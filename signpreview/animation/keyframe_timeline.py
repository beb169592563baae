"""
Keyframe Timeline Engine.

Pure data/algorithm module for animated image previews: an ordered set of
keyframes (timestamped position + scale), linear interpolation between them,
virtual endpoint extension for playlist-level timeline lengths, and immutable
edit operations.

Every edit returns a new Timeline (or the same object when nothing changed), so
callers can compare references to skip redundant preview writes. The engine
performs no I/O and owns no clock.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np

from ..const import DEFAULT_ITERATIONS, MAX_SCALE, MIN_SCALE, POSITION_DECIMAL_PLACES, SCALE_DECIMAL_PLACES

logger = logging.getLogger(__name__)


class TimelineError(Exception):
    """Base exception for timeline errors."""


class TimelineValidationError(TimelineError):
    """Raised when a timeline is malformed or not usable for the requested operation."""


class LastKeyframeError(TimelineError):
    """Raised when removing a keyframe would leave the timeline empty."""


def finite_or(value: Any, default: float) -> float:
    """Convert to float, replacing non-numeric and non-finite values with default."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def sanitize_timestamp(value: Any) -> int:
    """Clamp a timestamp to a non-negative integer number of milliseconds."""
    number = finite_or(value, 0.0)
    return max(0, int(round(number)))


def clamp_scale(value: Any) -> float:
    """Round scale to SCALE_DECIMAL_PLACES and clamp it to [MIN_SCALE, MAX_SCALE]."""
    number = round(finite_or(value, MAX_SCALE), SCALE_DECIMAL_PLACES)
    return min(MAX_SCALE, max(MIN_SCALE, number))


def _sanitize_elapsed(value: Any) -> float:
    # +inf is kept: it simply lands after the last keyframe
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or number < 0:
        return 0.0
    return number


def _lerp(start: float, end: float, rate: float) -> float:
    value = start + (end - start) * rate
    # Keep float rounding from overshooting the segment endpoints
    return min(max(value, min(start, end)), max(start, end))


@dataclass(frozen=True)
class Transform:
    """Image placement on the panel: top-left offset in pixels and uniform scale."""

    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0

    def sanitized(self) -> "Transform":
        """Return the transform as sent to the display: integer position, clamped scale."""
        return Transform(
            x=int(round(finite_or(self.x, 0.0))),
            y=int(round(finite_or(self.y, 0.0))),
            scale=clamp_scale(self.scale),
        )

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for JSON serialization."""
        return {"x": self.x, "y": self.y, "scale": self.scale}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transform":
        """Create from dictionary."""
        return cls(
            x=finite_or(data.get("x"), 0.0),
            y=finite_or(data.get("y"), 0.0),
            scale=finite_or(data.get("scale"), MAX_SCALE),
        )


@dataclass(frozen=True)
class Keyframe:
    """A timestamped transform anchoring animated motion."""

    timestamp_ms: int
    x: float
    y: float
    scale: float

    def __post_init__(self):
        object.__setattr__(self, "timestamp_ms", sanitize_timestamp(self.timestamp_ms))
        object.__setattr__(self, "x", finite_or(self.x, 0.0))
        object.__setattr__(self, "y", finite_or(self.y, 0.0))
        object.__setattr__(self, "scale", clamp_scale(self.scale))

    @property
    def transform(self) -> Transform:
        return Transform(x=self.x, y=self.y, scale=self.scale)

    @classmethod
    def at(cls, timestamp_ms: Any, transform: Transform) -> "Keyframe":
        """Create a keyframe carrying the given transform."""
        return cls(timestamp_ms=timestamp_ms, x=transform.x, y=transform.y, scale=transform.scale)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"timestamp_ms": self.timestamp_ms, "x": self.x, "y": self.y, "scale": self.scale}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Keyframe":
        """Create from dictionary."""
        return cls(
            timestamp_ms=data.get("timestamp_ms", 0),
            x=data.get("x", 0.0),
            y=data.get("y", 0.0),
            scale=data.get("scale", MAX_SCALE),
        )


@dataclass(frozen=True)
class Timeline:
    """
    Ordered keyframes plus an iteration count defining one animation cycle.

    Keyframes are kept sorted ascending by timestamp with unique timestamps;
    when several keyframes share a timestamp the last one given wins.
    ``iterations == 0`` means loop forever. A timeline always holds at least
    one keyframe and needs two to be playable.
    """

    keyframes: Tuple[Keyframe, ...]
    iterations: int = DEFAULT_ITERATIONS
    _timestamps: Tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_timestamp: Dict[int, Keyframe] = {}
        for keyframe in self.keyframes:
            by_timestamp[keyframe.timestamp_ms] = keyframe

        if not by_timestamp:
            raise TimelineValidationError("Timeline needs at least one keyframe")

        ordered = tuple(by_timestamp[timestamp] for timestamp in sorted(by_timestamp))
        object.__setattr__(self, "keyframes", ordered)
        object.__setattr__(self, "_timestamps", tuple(keyframe.timestamp_ms for keyframe in ordered))
        object.__setattr__(self, "iterations", sanitize_timestamp(self.iterations))

    @classmethod
    def from_keyframes(cls, keyframes: Iterable[Keyframe], iterations: Any = DEFAULT_ITERATIONS) -> "Timeline":
        """Build a timeline from any iterable of keyframes."""
        return cls(keyframes=tuple(keyframes), iterations=iterations)

    @classmethod
    def default(cls, transform: Optional[Transform] = None, iterations: Any = DEFAULT_ITERATIONS) -> "Timeline":
        """Single keyframe at t=0 holding the given (or identity) transform."""
        return cls(keyframes=(Keyframe.at(0, transform or Transform()),), iterations=iterations)

    @property
    def is_playable(self) -> bool:
        return len(self.keyframes) >= 2

    @property
    def first_transform(self) -> Transform:
        return self.keyframes[0].transform

    def cycle_length_ms(self) -> int:
        """Length of one animation cycle; 0 when the timeline cannot be played."""
        if not self.is_playable:
            return 0
        return self.keyframes[-1].timestamp_ms

    def keyframe_at(self, timestamp_ms: Any) -> Optional[Keyframe]:
        """Keyframe at exactly this timestamp, if any."""
        timestamp = sanitize_timestamp(timestamp_ms)
        index = int(np.searchsorted(self._timestamps, timestamp, side="left"))
        if index < len(self._timestamps) and self._timestamps[index] == timestamp:
            return self.keyframes[index]
        return None

    def interpolate(self, elapsed_ms: Any) -> Transform:
        """
        Transform at a point in the cycle.

        Clamps to the first keyframe before it and to the last keyframe at or
        after it; exact keyframe timestamps return that keyframe's values
        unchanged.

        Args:
            elapsed_ms: Position in the cycle in milliseconds

        Returns:
            Interpolated transform (x/y rounded to POSITION_DECIMAL_PLACES)
        """
        elapsed = _sanitize_elapsed(elapsed_ms)
        first = self.keyframes[0]
        last = self.keyframes[-1]

        if elapsed <= first.timestamp_ms:
            return first.transform
        if elapsed >= last.timestamp_ms:
            return last.transform

        # timestamps[index - 1] <= elapsed < timestamps[index]
        index = int(np.searchsorted(self._timestamps, elapsed, side="right"))
        previous = self.keyframes[index - 1]
        following = self.keyframes[index]

        if elapsed == previous.timestamp_ms:
            return previous.transform

        span = following.timestamp_ms - previous.timestamp_ms
        rate = min(1.0, max(0.0, (elapsed - previous.timestamp_ms) / span))

        return Transform(
            x=round(_lerp(previous.x, following.x, rate), POSITION_DECIMAL_PLACES),
            y=round(_lerp(previous.y, following.y, rate), POSITION_DECIMAL_PLACES),
            scale=max(MIN_SCALE, _lerp(previous.scale, following.scale, rate)),
        )

    def with_virtual_endpoint(self, target_length_ms: Any) -> "Timeline":
        """
        Extend the cycle to a longer playlist-level length without changing the motion.

        Appends a copy of the last keyframe at ``target_length_ms`` when the
        target lies beyond the last keyframe; otherwise returns this same object.
        """
        target = sanitize_timestamp(target_length_ms)
        last = self.keyframes[-1]
        if target <= last.timestamp_ms:
            return self
        return replace(self, keyframes=self.keyframes + (replace(last, timestamp_ms=target),))

    def upsert_keyframe(self, timestamp_ms: Any, transform: Transform) -> "Timeline":
        """Replace the keyframe at this exact timestamp, or insert a new one."""
        keyframe = Keyframe.at(timestamp_ms, transform)
        if self.keyframe_at(keyframe.timestamp_ms) == keyframe:
            return self
        return replace(self, keyframes=self.keyframes + (keyframe,))

    def remove_keyframe(self, index: int) -> "Timeline":
        """
        Remove the keyframe at ``index``.

        Raises:
            LastKeyframeError: If this is the only keyframe; the caller resets
                the animation instead.
        """
        if not 0 <= index < len(self.keyframes):
            logger.debug(f"Ignoring removal of keyframe {index}: timeline has {len(self.keyframes)} keyframes")
            return self
        if len(self.keyframes) <= 1:
            raise LastKeyframeError("Cannot remove the only keyframe")
        remaining = self.keyframes[:index] + self.keyframes[index + 1 :]
        return replace(self, keyframes=remaining)

    def move_keyframe(self, index: int, timestamp_ms: Any) -> "Timeline":
        """Re-time one keyframe; it overwrites any keyframe already at the target."""
        if not 0 <= index < len(self.keyframes):
            return self
        keyframe = self.keyframes[index]
        moved = replace(keyframe, timestamp_ms=timestamp_ms)
        if moved.timestamp_ms == keyframe.timestamp_ms:
            return self
        others = self.keyframes[:index] + self.keyframes[index + 1 :]
        return replace(self, keyframes=others + (moved,))

    def with_iterations(self, iterations: Any) -> "Timeline":
        """Set the iteration count; non-positive values mean infinite (0)."""
        count = sanitize_timestamp(iterations)
        if count == self.iterations:
            return self
        return replace(self, iterations=count)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "keyframes": [keyframe.to_dict() for keyframe in self.keyframes],
            "iterations": self.iterations,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Timeline":
        """Create from dictionary."""
        keyframes = [Keyframe.from_dict(item) for item in data.get("keyframes") or []]
        iterations = data.get("iterations")
        return cls(
            keyframes=tuple(keyframes),
            iterations=DEFAULT_ITERATIONS if iterations is None else iterations,
        )

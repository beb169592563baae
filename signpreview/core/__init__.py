"""
Core session components.

- Debounced, last-write-wins update queue
- Process-wide preview session coordinator
"""

from .debounce import CoalescingUpdateQueue
from .preview_session import (
    PreviewResult,
    PreviewSessionConfig,
    PreviewSessionCoordinator,
    SessionState,
    get_preview_coordinator,
    reset_preview_coordinator,
    set_preview_coordinator,
)

__all__ = [
    "CoalescingUpdateQueue",
    "PreviewResult",
    "PreviewSessionConfig",
    "PreviewSessionCoordinator",
    "SessionState",
    "get_preview_coordinator",
    "reset_preview_coordinator",
    "set_preview_coordinator",
]

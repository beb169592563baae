"""
Preview Session Coordinator.

Process-wide owner of the live-preview session with the display. Every open
editor shares one coordinator; it de-duplicates concurrent session starts,
keeps the session alive with periodic pings, coalesces rapid edits into
debounced updates, and re-validates ownership when the host returns from the
background.

State machine::

    INACTIVE --ensure_started--> INITIALIZING --ok--> ACTIVE
        ^                             |                  |
        |<-------- failure -----------+                  |
        |<------------------- stop() --------------------+
                                                         |
    EXPIRED <-- lost ownership on update / foreground ---+

``session_id`` is set exactly while the state is ACTIVE. Everything runs on a
single asyncio event loop; the only suspension points are transport calls.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from ..const import (
    DEBOUNCE_WINDOW_SECONDS,
    MAX_DEBOUNCE_WINDOW_SECONDS,
    MIN_DEBOUNCE_WINDOW_SECONDS,
    PING_INTERVAL_SECONDS,
    SERVER_SESSION_TIMEOUT_SECONDS,
)
from ..content.models import PreviewPayload
from ..network.transport import (
    HttpPreviewTransport,
    PreviewError,
    PreviewSessionLostError,
    PreviewTransport,
    PreviewTransportError,
)
from .debounce import CoalescingUpdateQueue

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Preview session state."""

    INACTIVE = "inactive"
    INITIALIZING = "initializing"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass
class PreviewSessionConfig:
    """Timing configuration for the preview session."""

    ping_interval_seconds: float = PING_INTERVAL_SECONDS
    server_session_timeout_seconds: float = SERVER_SESSION_TIMEOUT_SECONDS
    debounce_seconds: float = DEBOUNCE_WINDOW_SECONDS

    def __post_init__(self):
        if self.ping_interval_seconds <= 0:
            raise ValueError(f"ping_interval_seconds must be positive, got {self.ping_interval_seconds}")
        if self.ping_interval_seconds >= self.server_session_timeout_seconds:
            raise ValueError(
                f"ping_interval_seconds ({self.ping_interval_seconds}) must be shorter than "
                f"server_session_timeout_seconds ({self.server_session_timeout_seconds})"
            )
        if not MIN_DEBOUNCE_WINDOW_SECONDS <= self.debounce_seconds <= MAX_DEBOUNCE_WINDOW_SECONDS:
            raise ValueError(
                f"debounce_seconds must be within [{MIN_DEBOUNCE_WINDOW_SECONDS}, {MAX_DEBOUNCE_WINDOW_SECONDS}], "
                f"got {self.debounce_seconds}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ping_interval_seconds": self.ping_interval_seconds,
            "server_session_timeout_seconds": self.server_session_timeout_seconds,
            "debounce_seconds": self.debounce_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreviewSessionConfig":
        """
        Create from a config dictionary; unknown keys and nulls are ignored.

        Raises:
            ValueError: If the values are inconsistent
        """
        fields = ("ping_interval_seconds", "server_session_timeout_seconds", "debounce_seconds")
        return cls(**{name: float(data[name]) for name in fields if data.get(name) is not None})


@dataclass
class PreviewResult:
    """Outcome of ``ensure_started`` / ``update``."""

    success: bool
    error: Optional[PreviewError] = None
    skipped: bool = False

    @property
    def message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None


class PreviewSessionCoordinator:
    """
    Shared live-preview session.

    Editors push payloads through ``update`` (discrete control changes) and
    ``debounced_update`` (continuous input); both are ignored unless the
    session is ACTIVE. ``stop`` is reserved for explicit exits (back/save);
    closing one editor only calls ``detach_editor``.
    """

    def __init__(self, transport: PreviewTransport, config: Optional[PreviewSessionConfig] = None):
        """
        Initialize the coordinator.

        Args:
            transport: Preview API transport
            config: Timing configuration (defaults if None)
        """
        self.transport = transport
        self.config = config or PreviewSessionConfig()

        self._state = SessionState.INACTIVE
        self._session_id: Optional[str] = None
        self._pending_init: Optional[asyncio.Task] = None
        self._keep_alive_task: Optional[asyncio.Task] = None
        self._release_tasks: Set[asyncio.Task] = set()
        self._current_payload: Optional[PreviewPayload] = None
        self._update_queue: CoalescingUpdateQueue[PreviewPayload] = CoalescingUpdateQueue(
            self.config.debounce_seconds, self._send_debounced
        )
        self._expired_listeners: List[Callable[[], None]] = []
        self._editor_count = 0
        self._was_backgrounded = False
        # Bumped by stop() and expiry so in-flight starts can tell they are stale
        self._generation = 0

        self.ping_failures = 0
        self.update_failures = 0

    # ======================================================================
    # Properties
    # ======================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def is_active(self) -> bool:
        return self._state == SessionState.ACTIVE

    @property
    def current_payload(self) -> Optional[PreviewPayload]:
        """Latest payload sent or queued for the display."""
        return self._current_payload

    @property
    def editor_count(self) -> int:
        return self._editor_count

    @property
    def has_pending_update(self) -> bool:
        return self._update_queue.pending

    # ======================================================================
    # Editors and listeners
    # ======================================================================

    def attach_editor(self) -> int:
        """Register an open editor; returns the number of attached editors."""
        self._editor_count += 1
        logger.debug(f"Editor attached ({self._editor_count} open)")
        return self._editor_count

    def detach_editor(self) -> int:
        """Unregister an editor. The session stays up even when none remain."""
        self._editor_count = max(0, self._editor_count - 1)
        logger.debug(f"Editor detached ({self._editor_count} open)")
        return self._editor_count

    def add_expired_listener(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` whenever the session expires."""
        if listener not in self._expired_listeners:
            self._expired_listeners.append(listener)

    def remove_expired_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._expired_listeners:
            self._expired_listeners.remove(listener)

    # ======================================================================
    # Session start
    # ======================================================================

    async def ensure_started(self, initial_payload: PreviewPayload) -> PreviewResult:
        """
        Make sure a session is active, starting one if needed.

        Concurrent callers share a single in-flight start; cancelling one
        caller does not cancel the start for the others.

        Args:
            initial_payload: Item to show when a new session is started

        Returns:
            PreviewResult; ``error`` is a PreviewConflictError when another
            session owns the display
        """
        if self._state == SessionState.ACTIVE:
            return PreviewResult(success=True)

        if self._pending_init is None:
            self._state = SessionState.INITIALIZING
            self._pending_init = asyncio.get_running_loop().create_task(
                self._start(initial_payload, self._generation)
            )

        return await asyncio.shield(self._pending_init)

    async def _start(self, payload: PreviewPayload, generation: int) -> PreviewResult:
        if generation != self._generation:
            logger.info("Preview stopped before the session start was sent")
            return PreviewResult(success=False, error=PreviewError("Preview was stopped while starting"))

        logger.info("Starting preview session")
        try:
            session_id = await self.transport.start(payload)
        except PreviewError as e:
            return self._start_failed(generation, e)
        except Exception as e:
            return self._start_failed(generation, PreviewTransportError(f"Preview start failed: {e}"))
        finally:
            if self._pending_init is asyncio.current_task():
                self._pending_init = None

        if generation != self._generation:
            logger.info(f"Preview stopped while starting; releasing session {session_id}")
            self._spawn_release(session_id)
            return PreviewResult(success=False, error=PreviewError("Preview was stopped while starting"))

        self._session_id = session_id
        self._state = SessionState.ACTIVE
        self._current_payload = payload
        self.ping_failures = 0
        self._start_keep_alive()
        logger.info(f"Preview session active: {session_id}")
        return PreviewResult(success=True)

    def _start_failed(self, generation: int, error: PreviewError) -> PreviewResult:
        if generation == self._generation:
            self._state = SessionState.INACTIVE
        logger.warning(f"Failed to start preview session: {error}")
        return PreviewResult(success=False, error=error)

    # ======================================================================
    # Updates
    # ======================================================================

    async def update(self, payload: PreviewPayload) -> PreviewResult:
        """
        Send a payload immediately, superseding any pending debounced update.

        Returns:
            PreviewResult with ``skipped=True`` when no session is active
        """
        if self._state != SessionState.ACTIVE:
            return PreviewResult(success=False, skipped=True)

        self._update_queue.discard()
        self._current_payload = payload
        return await self._send(payload)

    def debounced_update(self, payload: PreviewPayload) -> bool:
        """
        Queue a payload; only the last one within the debounce window is sent.

        Returns:
            True if queued, False when no session is active
        """
        if self._state != SessionState.ACTIVE:
            return False

        self._current_payload = payload
        self._update_queue.submit(payload)
        return True

    async def flush_pending(self) -> None:
        """Send the pending debounced update now, if any."""
        await self._update_queue.flush()

    async def _send_debounced(self, payload: PreviewPayload) -> None:
        if self._state == SessionState.ACTIVE:
            await self._send(payload)

    async def _send(self, payload: PreviewPayload) -> PreviewResult:
        session_id = self._session_id
        try:
            await self.transport.update(session_id, payload)
        except PreviewSessionLostError as e:
            if self._session_id == session_id and self._state == SessionState.ACTIVE:
                self._expire(f"Preview update rejected: {e}")
            return PreviewResult(success=False, error=e)
        except PreviewError as e:
            self.update_failures += 1
            logger.warning(f"Preview update failed: {e}")
            return PreviewResult(success=False, error=e)
        except Exception as e:
            self.update_failures += 1
            logger.warning(f"Preview update failed: {e}")
            return PreviewResult(success=False, error=PreviewTransportError(f"Preview update failed: {e}"))
        return PreviewResult(success=True)

    # ======================================================================
    # Keep-alive
    # ======================================================================

    async def keep_alive(self) -> bool:
        """
        Ping the display once.

        Failures are logged and counted; they never end the session.

        Returns:
            True if the ping succeeded
        """
        if self._state != SessionState.ACTIVE:
            return False

        try:
            await self.transport.ping(self._session_id)
        except Exception as e:
            self.ping_failures += 1
            logger.warning(f"Preview keep-alive ping failed ({self.ping_failures} failures): {e}")
            return False
        return True

    async def _keep_alive_loop(self) -> None:
        while self._state == SessionState.ACTIVE:
            await asyncio.sleep(self.config.ping_interval_seconds)
            await self.keep_alive()

    def _start_keep_alive(self) -> None:
        self._stop_keep_alive()
        self._keep_alive_task = asyncio.get_running_loop().create_task(self._keep_alive_loop())

    def _stop_keep_alive(self) -> None:
        if self._keep_alive_task is not None:
            self._keep_alive_task.cancel()
            self._keep_alive_task = None

    # ======================================================================
    # Visibility
    # ======================================================================

    def notify_background(self) -> None:
        """The host was hidden; the next foreground transition re-validates."""
        self._was_backgrounded = True
        logger.debug("Host moved to background")

    async def notify_foreground(self) -> bool:
        """
        The host became visible again.

        Returns:
            Whether the session is active afterwards
        """
        if not self._was_backgrounded:
            return self.is_active
        self._was_backgrounded = False
        return await self.revalidate_on_foreground()

    async def revalidate_on_foreground(self) -> bool:
        """
        Confirm ownership after returning from the background.

        A failed check counts as lost ownership: the session expires and
        listeners are notified. When still the owner, the keep-alive is
        restarted and the current payload is re-sent.

        Returns:
            True if the session is still active
        """
        if self._state != SessionState.ACTIVE:
            return False

        session_id = self._session_id
        try:
            is_owner = await self.transport.check_ownership(session_id)
        except Exception as e:
            logger.warning(f"Ownership check failed: {e}")
            is_owner = False

        if self._session_id != session_id or self._state != SessionState.ACTIVE:
            return self.is_active

        if not is_owner:
            self._expire("Preview session no longer owns the display")
            return False

        self._start_keep_alive()
        if self._current_payload is not None:
            self._update_queue.discard()
            await self._send(self._current_payload)
        return self.is_active

    def _expire(self, reason: str) -> None:
        logger.warning(f"Preview session expired: {reason}")
        self._update_queue.discard()
        self._stop_keep_alive()
        self._generation += 1
        self._session_id = None
        self._state = SessionState.EXPIRED

        for listener in list(self._expired_listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"Session expired listener failed: {e}")

    # ======================================================================
    # Stop
    # ======================================================================

    def stop(self) -> Optional[asyncio.Task]:
        """
        End the preview (back/save).

        Cancels the pending debounced update and the keep-alive synchronously,
        returns to INACTIVE, and releases the session in the background.

        Returns:
            The release task, or None when there was nothing to release
        """
        self._update_queue.cancel()
        self._stop_keep_alive()
        self._generation += 1

        session_id = self._session_id
        self._session_id = None
        self._state = SessionState.INACTIVE
        self._pending_init = None
        self._current_payload = None
        self._was_backgrounded = False

        if session_id is None:
            return None
        logger.info(f"Stopping preview session {session_id}")
        return self._spawn_release(session_id)

    def _spawn_release(self, session_id: str) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop; preview session {session_id} will time out on the display")
            return None
        task = loop.create_task(self._release(session_id))
        self._release_tasks.add(task)
        task.add_done_callback(self._release_tasks.discard)
        return task

    async def _release(self, session_id: str) -> None:
        try:
            await self.transport.stop(session_id)
            logger.debug(f"Preview session {session_id} released")
        except Exception as e:
            logger.warning(f"Failed to release preview session {session_id}: {e}")

    async def shutdown(self) -> None:
        """Stop and wait for the release to finish."""
        task = self.stop()
        if task is not None:
            await task
        if self._release_tasks:
            await asyncio.gather(*self._release_tasks, return_exceptions=True)


# Global coordinator instance
_preview_coordinator: Optional[PreviewSessionCoordinator] = None


def get_preview_coordinator(
    transport: Optional[PreviewTransport] = None, config: Optional[PreviewSessionConfig] = None
) -> PreviewSessionCoordinator:
    """
    Get the process-wide coordinator, creating it on first use.

    Args:
        transport: Transport for a newly created coordinator (HTTP to the
            default display URL if None); ignored once it exists
        config: Timing configuration for a newly created coordinator

    Returns:
        Singleton PreviewSessionCoordinator
    """
    global _preview_coordinator
    if _preview_coordinator is None:
        _preview_coordinator = PreviewSessionCoordinator(transport or HttpPreviewTransport(), config)
    return _preview_coordinator


def set_preview_coordinator(coordinator: Optional[PreviewSessionCoordinator]) -> None:
    """Install a coordinator as the process-wide instance."""
    global _preview_coordinator
    _preview_coordinator = coordinator


def reset_preview_coordinator() -> None:
    """Stop and drop the process-wide coordinator."""
    global _preview_coordinator
    if _preview_coordinator is not None:
        _preview_coordinator.stop()
    _preview_coordinator = None

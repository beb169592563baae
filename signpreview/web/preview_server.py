"""
Reference Preview Server.

FastAPI implementation of the display's live-preview API with server-side
ownership. One session may drive the display at a time; it expires when no
ping or update arrives within the session timeout, after which another client
may start. Used for local development and integration tests.
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from ..const import (
    DEFAULT_WEB_HOST,
    DEFAULT_WEB_PORT,
    PREVIEW_API_PATH,
    PREVIEW_CURRENT_PATH,
    PREVIEW_OWNERSHIP_PATH,
    PREVIEW_PING_PATH,
    PREVIEW_STATUS_PATH,
    SERVER_SESSION_TIMEOUT_SECONDS,
)
from ..content.models import PreviewPayload

logger = logging.getLogger(__name__)


class PreviewArbiterError(Exception):
    """Base exception for arbiter errors."""


class PreviewBusyError(PreviewArbiterError):
    """Another live session owns the display."""


class NoPreviewSessionError(PreviewArbiterError):
    """No preview session is active."""


class NotPreviewOwnerError(PreviewArbiterError):
    """The session id does not own the display."""


class PreviewArbiter:
    """Server-side preview ownership with timeout-based expiry."""

    def __init__(
        self,
        session_timeout_seconds: float = SERVER_SESSION_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_timeout_seconds = session_timeout_seconds
        self.clock = clock
        self._session_id: Optional[str] = None
        self._item: Optional[PreviewPayload] = None
        self._last_seen = 0.0

    def _expire_if_stale(self) -> None:
        if self._session_id is None:
            return
        if self.clock() - self._last_seen > self.session_timeout_seconds:
            logger.info(f"Preview session {self._session_id} timed out")
            self._session_id = None
            self._item = None

    def _check_owner(self, session_id: str) -> None:
        self._expire_if_stale()
        if self._session_id is None:
            raise NoPreviewSessionError("No active preview session")
        if session_id != self._session_id:
            raise NotPreviewOwnerError("Session does not own the display")

    @property
    def active(self) -> bool:
        self._expire_if_stale()
        return self._session_id is not None

    @property
    def current_item(self) -> Optional[PreviewPayload]:
        self._expire_if_stale()
        return self._item

    def seconds_remaining(self) -> Optional[float]:
        if not self.active:
            return None
        return max(0.0, self.session_timeout_seconds - (self.clock() - self._last_seen))

    def start(self, item: PreviewPayload) -> str:
        """Open a session showing ``item``."""
        self._expire_if_stale()
        if self._session_id is not None:
            raise PreviewBusyError("Preview already active in another session")
        self._session_id = uuid.uuid4().hex
        self._item = item
        self._last_seen = self.clock()
        logger.info(f"Preview session started: {self._session_id}")
        return self._session_id

    def update(self, session_id: str, item: PreviewPayload) -> None:
        self._check_owner(session_id)
        self._item = item
        self._last_seen = self.clock()

    def ping(self, session_id: str) -> None:
        self._check_owner(session_id)
        self._last_seen = self.clock()

    def is_owner(self, session_id: str) -> bool:
        self._expire_if_stale()
        return self._session_id is not None and session_id == self._session_id

    def stop(self, session_id: str) -> None:
        self._check_owner(session_id)
        logger.info(f"Preview session stopped: {session_id}")
        self._session_id = None
        self._item = None


# ======================================================================
# Request models
# ======================================================================


class PreviewStartRequest(BaseModel):
    """Start a preview session."""

    item: Dict[str, Any] = Field(..., description="Playlist item to preview")


class PreviewUpdateRequest(BaseModel):
    """Replace the previewed item."""

    item: Dict[str, Any] = Field(..., description="Playlist item to preview")
    session_id: str = Field(..., description="Session id returned by start")


class PreviewSessionRequest(BaseModel):
    """Request carrying only the session id."""

    session_id: str = Field(..., description="Session id returned by start")


def _parse_item(data: Dict[str, Any]) -> PreviewPayload:
    try:
        return PreviewPayload.from_dict(data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid preview item: {e}") from e


def _http_error(error: PreviewArbiterError) -> HTTPException:
    if isinstance(error, NoPreviewSessionError):
        return HTTPException(status_code=404, detail=str(error))
    return HTTPException(status_code=403, detail=str(error))


def create_app(
    session_timeout_seconds: float = SERVER_SESSION_TIMEOUT_SECONDS,
    arbiter: Optional[PreviewArbiter] = None,
) -> FastAPI:
    """
    Create the preview API application.

    Args:
        session_timeout_seconds: Idle time after which a session expires
        arbiter: Ownership arbiter (a new one if None)

    Returns:
        FastAPI app with the arbiter on ``app.state.arbiter``
    """
    app = FastAPI(
        title="SignPreview Preview API",
        description="Reference live-preview arbiter for the LED sign",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.arbiter = arbiter or PreviewArbiter(session_timeout_seconds)

    def get_arbiter(request: Request) -> PreviewArbiter:
        return request.app.state.arbiter

    @app.post(PREVIEW_API_PATH)
    async def start_preview(body: PreviewStartRequest, request: Request):
        """Start a preview session; 403 while another session is live."""
        item = _parse_item(body.item)
        try:
            session_id = get_arbiter(request).start(item)
        except PreviewArbiterError as e:
            raise _http_error(e) from e
        return {"session_id": session_id}

    @app.put(PREVIEW_API_PATH)
    async def update_preview(body: PreviewUpdateRequest, request: Request):
        """Replace the previewed item."""
        item = _parse_item(body.item)
        try:
            get_arbiter(request).update(body.session_id, item)
        except PreviewArbiterError as e:
            raise _http_error(e) from e
        return {"item": item.to_dict(), "session_id": body.session_id}

    @app.delete(PREVIEW_API_PATH)
    async def stop_preview(body: PreviewSessionRequest, request: Request):
        """End the preview session."""
        try:
            get_arbiter(request).stop(body.session_id)
        except PreviewArbiterError as e:
            raise _http_error(e) from e
        return {"status": "stopped"}

    @app.post(PREVIEW_PING_PATH)
    async def ping_preview(body: PreviewSessionRequest, request: Request):
        """Keep the session alive."""
        try:
            get_arbiter(request).ping(body.session_id)
        except PreviewArbiterError as e:
            raise _http_error(e) from e
        return {"status": "ok"}

    @app.post(PREVIEW_OWNERSHIP_PATH)
    async def check_ownership(body: PreviewSessionRequest, request: Request):
        """Whether the session still owns the display."""
        return {"is_owner": get_arbiter(request).is_owner(body.session_id)}

    @app.get(PREVIEW_STATUS_PATH)
    async def preview_status(request: Request):
        arbiter = get_arbiter(request)
        return {"active": arbiter.active, "expires_in": arbiter.seconds_remaining()}

    @app.get(PREVIEW_CURRENT_PATH)
    async def current_preview(request: Request):
        """Item currently shown by the preview session."""
        item = get_arbiter(request).current_item
        return {"item": item.to_dict() if item is not None else None}

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": time.time(), "version": "1.0.0"}

    return app


def run_server(
    host: str = DEFAULT_WEB_HOST,
    port: int = DEFAULT_WEB_PORT,
    session_timeout_seconds: float = SERVER_SESSION_TIMEOUT_SECONDS,
) -> None:
    """Run the preview API server."""
    logger.info(f"Starting preview server on {host}:{port} (session timeout {session_timeout_seconds}s)")
    uvicorn.run(
        create_app(session_timeout_seconds),
        host=host,
        port=port,
        log_level="info",
        access_log=False,
    )

"""
Preview transport.

Request/response channel between the editor and the display's preview API.
``PreviewTransport`` is the async interface the session coordinator talks to;
``HttpPreviewTransport`` implements it over HTTP with ``requests``, running
each blocking call in the event loop's default executor.

Endpoints (JSON bodies, snake_case keys):

- ``POST   /api/preview``           start  ``{"item"}``             -> ``{"session_id"}``
- ``PUT    /api/preview``           update ``{"item", "session_id"}``
- ``POST   /api/preview/ping``      ping   ``{"session_id"}``
- ``POST   /api/preview/ownership`` check  ``{"session_id"}``       -> ``{"is_owner"}``
- ``DELETE /api/preview``           stop   ``{"session_id"}``
- ``GET    /api/preview/status``    status                         -> ``{"active"}``
"""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from ..const import (
    DEFAULT_DISPLAY_URL,
    PREVIEW_API_PATH,
    PREVIEW_OWNERSHIP_PATH,
    PREVIEW_PING_PATH,
    PREVIEW_STATUS_PATH,
    TRANSPORT_TIMEOUT_SECONDS,
)
from ..content.models import PreviewPayload

logger = logging.getLogger(__name__)


class PreviewError(Exception):
    """Base exception for preview session errors."""


class PreviewConflictError(PreviewError):
    """Another session already controls the display (HTTP 403 on start)."""


class PreviewSessionLostError(PreviewError):
    """The session no longer exists or is no longer the owner (HTTP 403/404 on update)."""


class PreviewTransportError(PreviewError):
    """Transient or unexpected transport failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PreviewTransport(ABC):
    """Async preview API used by the session coordinator."""

    @abstractmethod
    async def start(self, payload: PreviewPayload) -> str:
        """
        Start a preview session showing ``payload``.

        Returns:
            Session id issued by the display

        Raises:
            PreviewConflictError: If another session owns the display
            PreviewTransportError: On any other failure
        """

    @abstractmethod
    async def update(self, session_id: str, payload: PreviewPayload) -> None:
        """
        Replace the previewed item.

        Raises:
            PreviewSessionLostError: If the session expired or lost ownership
            PreviewTransportError: On any other failure
        """

    @abstractmethod
    async def ping(self, session_id: str) -> None:
        """Keep the session alive."""

    @abstractmethod
    async def check_ownership(self, session_id: str) -> bool:
        """Whether ``session_id`` still owns the display."""

    @abstractmethod
    async def stop(self, session_id: str) -> None:
        """Release the session."""

    @abstractmethod
    async def is_active(self) -> bool:
        """Whether any preview session is active on the display."""


class HttpPreviewTransport(PreviewTransport):
    """Preview transport over the display's HTTP API."""

    def __init__(
        self,
        base_url: str = DEFAULT_DISPLAY_URL,
        timeout: float = TRANSPORT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the transport.

        Args:
            base_url: Display URL, e.g. "http://sign.local:8080"
            timeout: Per-request timeout in seconds
            session: Optional requests session (shared connection pool)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise PreviewTransportError(f"{method} {url} timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise PreviewTransportError(f"{method} {url} failed: {e}") from e

    async def _call(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> requests.Response:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self._request, method, path, body))

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise PreviewTransportError(
                f"Invalid JSON response from {response.url}", status_code=response.status_code
            ) from e
        if not isinstance(data, dict):
            raise PreviewTransportError(f"Unexpected response from {response.url}", status_code=response.status_code)
        return data

    @staticmethod
    def _raise_for_status(response: requests.Response, operation: str) -> None:
        if response.ok:
            return
        raise PreviewTransportError(
            f"Preview {operation} failed with status {response.status_code}", status_code=response.status_code
        )

    async def start(self, payload: PreviewPayload) -> str:
        response = await self._call("POST", PREVIEW_API_PATH, {"item": payload.to_dict()})
        if response.status_code == 403:
            raise PreviewConflictError("Preview already active in another session")
        self._raise_for_status(response, "start")

        session_id = self._json(response).get("session_id")
        if not session_id:
            raise PreviewTransportError("Preview start response has no session_id", status_code=response.status_code)
        logger.debug(f"Preview session started: {session_id}")
        return str(session_id)

    async def update(self, session_id: str, payload: PreviewPayload) -> None:
        response = await self._call("PUT", PREVIEW_API_PATH, {"item": payload.to_dict(), "session_id": session_id})
        if response.status_code == 403:
            raise PreviewSessionLostError("Preview session no longer owns the display")
        if response.status_code == 404:
            raise PreviewSessionLostError("No active preview session")
        self._raise_for_status(response, "update")

    async def ping(self, session_id: str) -> None:
        response = await self._call("POST", PREVIEW_PING_PATH, {"session_id": session_id})
        if response.status_code in (403, 404):
            raise PreviewSessionLostError(f"Ping rejected with status {response.status_code}")
        self._raise_for_status(response, "ping")

    async def check_ownership(self, session_id: str) -> bool:
        response = await self._call("POST", PREVIEW_OWNERSHIP_PATH, {"session_id": session_id})
        self._raise_for_status(response, "ownership check")
        return bool(self._json(response).get("is_owner", False))

    async def stop(self, session_id: str) -> None:
        response = await self._call("DELETE", PREVIEW_API_PATH, {"session_id": session_id})
        if response.status_code == 404:
            logger.debug(f"Preview session {session_id} was already gone")
            return
        self._raise_for_status(response, "stop")

    async def is_active(self) -> bool:
        response = await self._call("GET", PREVIEW_STATUS_PATH)
        self._raise_for_status(response, "status")
        return bool(self._json(response).get("active", False))

    def close(self) -> None:
        self.session.close()

"""
Network transport for the display's live-preview API.
"""

from .transport import (
    HttpPreviewTransport,
    PreviewConflictError,
    PreviewError,
    PreviewSessionLostError,
    PreviewTransport,
    PreviewTransportError,
)

__all__ = [
    "PreviewTransport",
    "HttpPreviewTransport",
    "PreviewError",
    "PreviewConflictError",
    "PreviewSessionLostError",
    "PreviewTransportError",
]

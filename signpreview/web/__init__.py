"""
Reference preview API server.
"""

from .preview_server import PreviewArbiter, create_app, run_server

__all__ = ["PreviewArbiter", "create_app", "run_server"]

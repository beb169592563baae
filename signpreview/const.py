"""
Global constants for the SignPreview live-preview layer.

This module contains the timing, geometry and wire constants shared by the
keyframe engine, the payload builder, the session coordinator and the
reference preview server.
"""

# Preview Session Timing
PING_INTERVAL_SECONDS = 4.0  # Keep-alive period while a session is active
SERVER_SESSION_TIMEOUT_SECONDS = 5.0  # Assumed server-side timeout, must exceed the ping interval
DEBOUNCE_WINDOW_SECONDS = 0.08  # Quiescence window for coalesced updates
MIN_DEBOUNCE_WINDOW_SECONDS = 0.05
MAX_DEBOUNCE_WINDOW_SECONDS = 0.08
REACQUIRE_DELAY_SECONDS = 0.2  # Pause before re-acquiring an expired session

# Transport Configuration
DEFAULT_DISPLAY_URL = "http://localhost:8080"  # Base URL of the display API
TRANSPORT_TIMEOUT_SECONDS = 5.0  # HTTP timeout per preview request
PREVIEW_API_PATH = "/api/preview"
PREVIEW_PING_PATH = "/api/preview/ping"
PREVIEW_OWNERSHIP_PATH = "/api/preview/ownership"
PREVIEW_STATUS_PATH = "/api/preview/status"
PREVIEW_CURRENT_PATH = "/api/preview/current"

# Keyframe Geometry
MIN_SCALE = 0.01  # Floor for any interpolated or stored scale
MAX_SCALE = 1.0
SCALE_DECIMAL_PLACES = 3
POSITION_DECIMAL_PLACES = 3  # Rounding for interpolated x/y

# Timeline Length (playlist-level duration of one animation cycle)
DEFAULT_TIMELINE_LENGTH_SEC = 5
MIN_TIMELINE_LENGTH_SEC = 1
MAX_TIMELINE_LENGTH_SEC = 60

# Payload Defaults
DEFAULT_DURATION_SECONDS = 10
DEFAULT_REPEAT_COUNT = 1
DEFAULT_ITERATIONS = 1
DEFAULT_TEXT = "Edit Mode"
DEFAULT_TEXT_SPEED = 50
DEFAULT_COLOR = (255, 255, 255)
IMAGE_PLACEHOLDER_TEXT = "Upload an image"
ANIMATION_PLACEHOLDER_TEXT = "Configure animation colors"
ANIMATION_PLACEHOLDER_SPEED = 30

# Reference server
DEFAULT_WEB_HOST = "0.0.0.0"
DEFAULT_WEB_PORT = 8080

#!/usr/bin/env python3
"""
SignPreview command line entry point.

Commands:
- serve: run the reference preview API server (FastAPI + uvicorn)
- preview-text: start a preview session on a display, show a text item,
  keep the session alive for a while, then release it
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import time
from typing import Dict, Optional

from signpreview.const import (
    DEBOUNCE_WINDOW_SECONDS,
    DEFAULT_DISPLAY_URL,
    DEFAULT_WEB_HOST,
    DEFAULT_WEB_PORT,
    PING_INTERVAL_SECONDS,
    SERVER_SESSION_TIMEOUT_SECONDS,
    TRANSPORT_TIMEOUT_SECONDS,
)
from signpreview.content import EditorState, PreviewContentBuilder, TextContent, create_border_effect
from signpreview.core import PreviewSessionConfig, PreviewSessionCoordinator
from signpreview.network import HttpPreviewTransport
from signpreview.paths import ensure_directories, get_log_file_path

logger = logging.getLogger(__name__)

# Get the project root directory (where main.py is located)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(PROJECT_ROOT, "config", "config.json")


def setup_logging(debug: bool = False) -> None:
    """Setup logging: WARNING+ to stdout, everything to the log file."""
    from signpreview.utils.logging_utils import create_app_time_formatter, quiet_loggers, set_app_start_time

    set_app_start_time(time.time())
    level = logging.DEBUG if debug else logging.INFO

    ensure_directories()
    log_file = get_log_file_path()

    formatter = create_app_time_formatter()

    root_logger = logging.getLogger()
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.WARNING)

    file_handler = logging.FileHandler(log_file, mode="w")
    file_handler.setFormatter(formatter)

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    quiet_loggers()


def load_config_file(config_path: Optional[str] = None) -> Dict:
    """Load configuration from JSON file."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    config = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, "r") as f:
                loaded_config = json.load(f)
                # Filter out comments and null values
                config = {k: v for k, v in loaded_config.items() if k != "comments" and v is not None}
            logger.info(f"Loaded configuration from {config_path}")
        except Exception as e:
            logger.warning(f"Failed to load config file {config_path}: {e}")
    else:
        logger.warning(f"Config file not found: {config_path}")
    return config


def build_parser(file_config: Dict, config_path: str) -> argparse.ArgumentParser:
    """Argument parser with defaults taken from the config file."""
    parser = argparse.ArgumentParser(description="SignPreview live-preview tools")
    parser.add_argument("--config", default=config_path, help="Path to configuration file")
    parser.add_argument(
        "--debug", action="store_true", default=file_config.get("debug", False), help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the reference preview server")
    serve.add_argument("--web-host", default=file_config.get("web_host", DEFAULT_WEB_HOST), help="Web server host")
    serve.add_argument(
        "--web-port", type=int, default=file_config.get("web_port", DEFAULT_WEB_PORT), help="Web server port"
    )
    serve.add_argument(
        "--session-timeout",
        type=float,
        default=file_config.get("server_session_timeout_seconds", SERVER_SESSION_TIMEOUT_SECONDS),
        help="Seconds without ping/update before a session expires",
    )

    text = subparsers.add_parser("preview-text", help="Preview a text item on a display")
    text.add_argument("text", help="Text to show")
    text.add_argument(
        "--display-url", default=file_config.get("display_url", DEFAULT_DISPLAY_URL), help="Display base URL"
    )
    text.add_argument("--scroll", action="store_true", help="Scroll the text")
    text.add_argument("--border", default="none", help="Border effect (none, rainbow, pulse, sparkle, gradient)")
    text.add_argument("--hold", type=float, default=10.0, help="Seconds to keep the preview before stopping")
    text.add_argument(
        "--timeout",
        type=float,
        default=file_config.get("transport_timeout_seconds", TRANSPORT_TIMEOUT_SECONDS),
        help="HTTP timeout per request",
    )
    return parser


async def preview_text(args: argparse.Namespace, session_config: PreviewSessionConfig) -> int:
    """Start a session, show the text, keep it alive for ``--hold`` seconds, stop."""
    transport = HttpPreviewTransport(args.display_url, timeout=args.timeout)
    coordinator = PreviewSessionCoordinator(transport, session_config)
    state = EditorState(
        content=TextContent(text=args.text, scroll=args.scroll),
        border_effect=create_border_effect(args.border, [(255, 0, 0), (0, 0, 255)]),
    )
    payload = PreviewContentBuilder().build(state)

    result = await coordinator.ensure_started(payload)
    if not result.success:
        logger.error(f"Could not start preview: {result.message}")
        print(f"Preview failed: {result.message}")
        transport.close()
        return 1

    print(f"Previewing '{args.text}' on {args.display_url} (session {coordinator.session_id})")
    try:
        await asyncio.sleep(args.hold)
    finally:
        await coordinator.shutdown()
        transport.close()
    return 0


def main():
    """Main entry point."""

    # Parse just the config argument first to know which config file to load
    parser_config = argparse.ArgumentParser(add_help=False)
    parser_config.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to configuration file")
    config_args, _ = parser_config.parse_known_args()

    file_config = load_config_file(config_args.config)
    args = build_parser(file_config, config_args.config).parse_args()

    setup_logging(args.debug)

    try:
        session_config = PreviewSessionConfig.from_dict(
            {
                "ping_interval_seconds": file_config.get("ping_interval_seconds", PING_INTERVAL_SECONDS),
                "server_session_timeout_seconds": file_config.get(
                    "server_session_timeout_seconds", SERVER_SESSION_TIMEOUT_SECONDS
                ),
                "debounce_seconds": file_config.get("debounce_seconds", DEBOUNCE_WINDOW_SECONDS),
            }
        )
    except ValueError as e:
        logger.error(f"Invalid preview session configuration: {e}")
        sys.exit(1)

    logger.info(f"Configuration: {session_config.to_dict()}")

    try:
        if args.command == "serve":
            from signpreview.web.preview_server import run_server

            run_server(args.web_host, args.web_port, args.session_timeout)
        elif args.command == "preview-text":
            sys.exit(asyncio.run(preview_text(args, session_config)))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")


if __name__ == "__main__":
    main()

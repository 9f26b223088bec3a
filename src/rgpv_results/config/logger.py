"""Logger configuration shared by the CLI and the MCP server.

This module configures structlog so that every log line goes to stderr.
The MCP server speaks JSON-RPC over stdio, so any non-JSON output on stdout
would break the protocol; the CLI prints its own summaries on stdout and
keeps logs out of the way for the same reason.
"""

import logging
import sys

import structlog


def configure_logging(debug: bool = False, json_logs: bool = True) -> None:
    """Configure stdlib logging and structlog.

    Args:
        debug: Emit debug-level events (captcha samples, request steps).
        json_logs: Render JSON lines (MCP mode) instead of the console
            renderer used by the CLI.
    """
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


# Configure logging when module is imported
configure_logging()

# Export configured logger
logger = structlog.get_logger()

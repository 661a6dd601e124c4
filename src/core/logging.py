"""Logging setup for the deep research server.

Every record carries the id of the MCP request it belongs to, so interleaved
pipeline runs can be told apart in one log stream. Output goes to stderr
because stdout carries the stdio transport.
"""

import logging
import os
import sys
from contextvars import ContextVar
from typing import TextIO

LOGGER_NAME = "deep_research"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s %(request_id)s%(message)s"

# Libraries that log every HTTP round trip at INFO
QUIET_LOGGERS = ("aiohttp.access", "httpx", "openai", "pypdf")

# Set by track_request for the duration of one tool call
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Stamp records with the current request id, or an empty prefix."""

    def filter(self, record):
        request_id = request_id_ctx.get()
        record.request_id = f"[{request_id}] " if request_id else ""
        return True


class ServerLogHandler(logging.StreamHandler):
    """Stream handler with the server's format and request id filter."""

    def __init__(self, stream: TextIO | None = None):
        super().__init__(stream or sys.stderr)
        self.setFormatter(logging.Formatter(LOG_FORMAT))
        self.addFilter(RequestIdFilter())


def _debug_from_env() -> bool:
    return os.getenv("MCP_DEBUG", "").lower() in ("true", "1", "yes")


def configure_logging(debug: bool | None = None, stream: TextIO | None = None) -> logging.Logger:
    """Install the server handler on the root logger and return the server logger.

    Safe to call repeatedly: the handler is added once, later calls only
    change the level.

    Args:
        debug: Log at DEBUG instead of INFO. Defaults to the MCP_DEBUG variable.
        stream: Destination for the handler when it is first installed.
    """
    if debug is None:
        debug = _debug_from_env()

    root = logging.getLogger()
    if not any(isinstance(h, ServerLogHandler) for h in root.handlers):
        root.addHandler(ServerLogHandler(stream))
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(LOGGER_NAME)
    logger.debug("Debug logging enabled")
    return logger


logger = configure_logging()

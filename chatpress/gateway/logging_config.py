"""Logging configuration: loguru setup, standard logging interception, request context.

Every record carries `request_id`, `channel_id` and `index_version` in `extra`.
Requests bind them through RequestContextMiddleware; background work (startup
build, refresher) logs with the defaults.
"""

import logging
import sys
import uuid
from collections.abc import Callable
from typing import Any

from fastapi import Request, Response
from fastapi.responses import HTMLResponse, ORJSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from chatpress.gateway.config import Settings
from chatpress.gateway.markdown.renderer import escape_html
from chatpress.gateway.posts.pages import page_shell

_CONTEXT_DEFAULTS = {"request_id": "-", "channel_id": "-", "index_version": None}

_STDOUT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[request_id]}</magenta> v{extra[index_version]} | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

# Held at WARNING; RequestContextMiddleware logs each request itself
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class InterceptHandler(logging.Handler):
    """Route standard library logging to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller frame (skip logging internals)
        frame, depth = sys._getframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(settings: Settings) -> None:
    """Colorized stdout plus a JSON-lines file in settings.log_dir; standard logging goes through loguru."""
    logger.remove()
    logger.configure(extra={**_CONTEXT_DEFAULTS, "channel_id": settings.channel_id})
    logger.add(sys.stdout, format=_STDOUT_FORMAT, level=settings.log_level, colorize=True)

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    logger.add(
        settings.log_dir / "chatpress.jsonl",
        format="{message}",
        level=settings.log_level,
        serialize=True,
        rotation="100 MB",
        retention=100,
        compression="gz",
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def request_log_context(request: Request) -> dict[str, Any]:
    """Log fields for a request: its id and the channel index it is served from."""
    settings: Settings = request.app.state.settings
    registry = getattr(request.app.state, "registry", None)
    index = registry.get(settings.channel_id) if registry is not None else None
    return {
        "request_id": getattr(request.state, "request_id", "-"),
        "channel_id": settings.channel_id,
        "index_version": index.version if index else None,
    }


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request id, channel and index version to every log record of the request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.request_id = uuid.uuid4().hex[:8]
        context = request_log_context(request)

        with logger.contextualize(**context):
            response = await call_next(request)
            logger.debug(f"{request.method} {request.url.path} -> {response.status_code}")

        response.headers["X-Request-ID"] = context["request_id"]
        return response


def error_response(request: Request, status_code: int, message: str, payload: dict[str, Any]) -> Response:
    """Error page for browsers (Accept: text/html), JSON for everyone else."""
    if "text/html" in request.headers.get("accept", ""):
        content = f"<h1>{status_code}</h1><p>{escape_html(message)}</p>"
        return HTMLResponse(page_shell("Error", content, "", request.app.state.settings), status_code=status_code)
    return ORJSONResponse(payload, status_code=status_code)


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    """Log unhandled exceptions with request context and answer 500."""
    # Runs outside the middleware's contextualize block, so bind explicitly
    logger.bind(**request_log_context(request)).exception(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}"
    )
    return error_response(request, 500, "Internal server error", {"detail": "Internal server error"})

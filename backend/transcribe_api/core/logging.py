"""structlog setup for the transcription service.

Console output is colored in development and JSON elsewhere; an optional
rotating JSON file sink sits next to it. Application code only ever does::

    logger = get_logger(__name__)
    logger.info("transcript_saved", record_id=str(record_id))

``setup_logging`` is called once from the application lifespan.
"""

import logging
import sys
import time
import uuid
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, Processor

LOG_FILE_NAME = "transcribe-api.log"
REQUEST_ID_HEADER = b"x-request-id"

# Event keys whose values must never reach a log sink
SENSITIVE_KEYS = frozenset({"api_key", "authorization", "assemblyai_api_key"})

_QUIET_LIBRARIES = (
    "uvicorn.access",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "asyncio",
    "multipart",
)


def _redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def _pre_chain() -> list[Processor]:
    """Processors applied to both structlog and plain stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _formatter(as_json: bool) -> structlog.stdlib.ProcessorFormatter:
    if as_json:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=_pre_chain(),
    )


def resolve_level(level_name: str) -> int:
    """Map a level name to its numeric value, falling back to INFO."""
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "auto",
    is_development: bool = True,
    logs_dir: str | None = None,
    log_to_file: bool = False,
    log_file_max_bytes: int = 10 * 1024 * 1024,
    log_file_backup_count: int = 5,
) -> None:
    """
    Route structlog and stdlib logging through one set of handlers.

    Args:
        log_level: Root level name
        log_format: 'console', 'json', or 'auto' (JSON outside development)
        is_development: Picks the renderer when log_format is 'auto'
        logs_dir: Directory for the rotating file sink
        log_to_file: Enable the file sink (always JSON)
        log_file_max_bytes: Rotation threshold for the file sink
        log_file_backup_count: Rotated files to keep
    """
    level = resolve_level(log_level)
    as_json = (not is_development) if log_format == "auto" else log_format == "json"

    structlog.configure(
        processors=_pre_chain() + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(_formatter(as_json))
    handlers.append(stream)

    if log_to_file and logs_dir:
        Path(logs_dir).mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            Path(logs_dir) / LOG_FILE_NAME,
            maxBytes=log_file_max_bytes,
            backupCount=log_file_backup_count,
            encoding="utf-8",
        )
        rotating.setFormatter(_formatter(as_json=True))
        handlers.append(rotating)

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)

    # Library chatter only above WARNING unless the app itself is quieter
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(logging.WARNING, level))


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.stdlib.get_logger(name)


class LoggingMiddleware:
    """
    ASGI middleware that logs one ``request_completed`` event per request.

    Every log line emitted while the request runs carries ``request_id``,
    ``method`` and ``path``. An incoming ``X-Request-ID`` is reused,
    otherwise one is generated; either way it is echoed on the response.
    """

    SKIP_PATHS = frozenset({"/health"})

    def __init__(self, app: Any) -> None:
        self.app = app
        self.logger = get_logger("transcribe_api.http")

    @staticmethod
    def _request_id(scope: dict) -> str:
        for key, value in scope.get("headers", []):
            if key.lower() == REQUEST_ID_HEADER and value:
                return value.decode("latin-1")[:64]
        return uuid.uuid4().hex[:12]

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.SKIP_PATHS:
            await self.app(scope, receive, send)
            return

        request_id = self._request_id(scope)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=scope.get("method", ""),
            path=scope.get("path", ""),
        )

        started = time.perf_counter()
        status_code = 500

        async def send_with_request_id(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                headers = list(message.get("headers", []))
                headers.append((REQUEST_ID_HEADER, request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            emit = self.logger.info if status_code < 500 else self.logger.warning
            emit(
                "request_completed",
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            structlog.contextvars.clear_contextvars()

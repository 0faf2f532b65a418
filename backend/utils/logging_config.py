import logging
import logging.handlers
import contextvars
from pathlib import Path
from typing import Optional

from core.config import settings
from core.security import ACCESS_TOKEN_COOKIE, extract_access_token, verify_access_token
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


def map_log_level(level_name: str) -> int:
    level = logging.getLevelName((level_name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


user_id_var = contextvars.ContextVar("user_id", default="-")
api_var = contextvars.ContextVar("api", default="-")


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # Inject per-request context variables
        record.user_id = user_id_var.get()
        record.api = api_var.get()
        return True


def _build_rotating_file_handler(filename: str, level: int, formatter: logging.Formatter, log_dir: Path) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir / filename),
        when="midnight",
        interval=1,
        backupCount=max(int(settings.LOG_TTL_DAYS), 0),
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    return handler


def _build_handlers(level: int, log_dir: Path) -> list[logging.Handler]:
    """app.log gets everything at ``level``, error.log only warnings and up."""
    formatter = logging.Formatter(
        fmt="%(levelname)s - %(asctime)s - %(user_id)s - %(api)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ContextFilter())

    return [
        _build_rotating_file_handler("app.log", level, formatter, log_dir),
        _build_rotating_file_handler("error.log", logging.WARNING, formatter, log_dir),
        console_handler,
    ]


def _attach(target_logger: logging.Logger, handlers: list[logging.Handler], level: int) -> None:
    for h in list(target_logger.handlers):
        target_logger.removeHandler(h)
    for h in handlers:
        target_logger.addHandler(h)
    target_logger.setLevel(level)


def configure_logging(app_logger_name: Optional[str] = None) -> logging.Logger:
    """Route root, app and server loggers to rotating files plus the console.

    Files rotate at midnight and the last LOG_TTL_DAYS of them are kept.
    """
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = map_log_level(settings.LOG_LEVEL)
    handlers = _build_handlers(level, log_dir)

    _attach(logging.getLogger(), handlers, level)

    app_logger = logging.getLogger(app_logger_name or "videotube")
    for name in (app_logger.name, "uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        lgr = logging.getLogger(name)
        lgr.propagate = False
        _attach(lgr, handlers, level)

    # pymongo is chatty at DEBUG
    logging.getLogger("pymongo").setLevel(max(level, logging.INFO))

    return app_logger


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag log records of a request with the caller's user id and the route."""

    async def dispatch(self, request: Request, call_next):
        user_id = "-"
        token = extract_access_token(
            request.headers.get("authorization"),
            request.cookies.get(ACCESS_TOKEN_COOKIE),
        )
        if token:
            payload = verify_access_token(token)
            if payload:
                user_id = payload.get("sub") or "-"

        context_token_user = user_id_var.set(user_id)
        context_token_api = api_var.set(f"{request.method} {request.url.path}")
        try:
            return await call_next(request)
        finally:
            user_id_var.reset(context_token_user)
            api_var.reset(context_token_api)

"""Main FastAPI application."""
import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from grading_engine.config import logging_settings
from grading_engine.dependencies.grading_config import get_grading_config
from grading_engine.routers import grading, rewards


class CustomFormatter(logging.Formatter):
    """
    Log formatter that appends a record's extra fields to the message.

    Request logs carry method, path, status_code and duration_ms; use_json emits one
    JSON object per record instead.
    """

    def __init__(self, use_json: bool = False, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.use_json = use_json
        self.default_attrs = set(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys())

    def format(self, record: logging.LogRecord) -> str:
        """Format log record."""
        extra = {k: v for k, v in record.__dict__.items() if k not in self.default_attrs}

        if self.use_json:
            payload = {
                "timestamp": self.formatTime(record),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                **extra,
            }

            if record.exc_info:
                payload["exception"] = self.formatException(record.exc_info)

            return json.dumps(payload, default=str)

        base = super().format(record)
        if extra:
            extra_info = " ".join(f"{k}={v}" for k, v in extra.items())
            return f"{base} | {extra_info}"

        return base


def setup_logging() -> None:
    """Set up logging configuration."""
    root = logging.getLogger()

    if getattr(root, "_configured", False):
        return

    root._configured = True
    root.setLevel(logging_settings.LOG_LEVEL)

    handler = logging.StreamHandler()
    formatter = CustomFormatter(
        use_json=logging_settings.LOG_FORMAT == "json",
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    handler.setFormatter(formatter)
    handler.setLevel(logging.NOTSET)

    root.handlers.clear()
    root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context for application startup and shutdown."""
    # Configure logging FIRST
    setup_logging()

    # Load the grading configuration up front so a malformed file stops startup
    config = get_grading_config()
    logging.getLogger(__name__).info(
        "Grading engine ready (distribution model: %s, best %d)",
        config.scheme.distribution_model.value,
        config.best_n,
    )
    yield


app = FastAPI(title="Academic Scoring & Grading Engine", lifespan=lifespan)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every API request."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.logger = logging.getLogger("http")

    async def dispatch(self, request: Request, call_next):
        """Dispatch request with logging."""
        if request.url.path in {"/", "/health"}:
            return await call_next(request)

        start_time = time.monotonic()

        try:
            response = await call_next(request)
            self.logger.info(
                "request completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )
            return response

        except Exception as exc:
            duration_ms = (time.monotonic() - start_time) * 1000

            self.logger.error(
                "request failed",
                exc_info=exc,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round(duration_ms, 2),
                },
            )

            if logging_settings.ENV == "dev":
                raise

            return Response(
                content="Internal server error",
                status_code=500,
            )


app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(grading.router)
app.include_router(rewards.router)


@app.get("/", status_code=status.HTTP_200_OK)
def health() -> dict[str, Any]:
    return {"success": True}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)

"""
HTTP middleware and exception handlers shared by both services.
"""
import time
import uuid
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from honey_store.core.models import RequestLog
from honey_store.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

SOURCE_HEADER = "X-Source-Service"
UNLOGGED_PATHS = frozenset({"/metrics"})


def install_request_middleware(app: FastAPI) -> None:
    """
    Add request ID tracking, structured request logs and the live request log.

    Every request except /metrics is recorded in the request log ring buffer
    and pushed to live observers.
    """

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
        request_id = str(uuid.uuid4())
        start_time = time.time()
        path = request.url.path

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
        )

        logger.debug(
            "request_started",
            request_id=request_id,
            client_host=request.client.host if request.client else None,
        )

        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            logger.error("request_failed", request_id=request_id, error=str(e))
            raise

        finally:
            duration = time.time() - start_time
            metrics.record_http_request(request.method, status_code, duration)
            logger.info(
                "request_completed",
                request_id=request_id,
                status_code=status_code,
                duration_seconds=duration,
            )
            if path not in UNLOGGED_PATHS:
                broadcaster = request.app.state.broadcaster
                await broadcaster.record_request(
                    RequestLog(
                        source=request.headers.get(SOURCE_HEADER, "external"),
                        destination=broadcaster.runtime.service_name,
                        method=request.method,
                        path=path,
                        status=status_code,
                        duration=round(duration * 1000, 2),
                    )
                )
            structlog.contextvars.clear_contextvars()


def install_exception_handlers(app: FastAPI) -> None:
    """Render errors as {"error": ...} bodies."""

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )

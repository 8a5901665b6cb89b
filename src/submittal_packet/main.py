from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from submittal_packet.api.routes import build_packets_router
from submittal_packet.errors import ApiError, PacketApiError
from submittal_packet.schemas import ErrorEnvelope
from submittal_packet.services import PacketService
from submittal_packet.settings import Settings, is_hardened_environment, load_settings
from submittal_packet.telemetry import RequestMetrics, generate_trace_id

LOGGER = logging.getLogger(__name__)


def create_app(
    *,
    settings: Settings | None = None,
    packet_service: PacketService | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    packet_service = packet_service or PacketService.from_settings(settings)
    request_metrics = RequestMetrics()

    app = FastAPI(title=settings.app_name, version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allowed_origins),
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
        expose_headers=["x-trace-id", "Content-Disposition"],
        max_age=600,
    )

    @app.middleware("http")
    async def trace_middleware(request: Request, call_next):
        request.state.trace_id = generate_trace_id()
        start_time = time.perf_counter()
        status_code = 500
        is_api_request = request.url.path.startswith("/api")
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["x-trace-id"] = request.state.trace_id
            return response
        finally:
            if is_api_request:
                request_metrics.record_api_response(
                    status_code=status_code,
                    duration_seconds=time.perf_counter() - start_time,
                )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        trace_id = getattr(request.state, "trace_id", generate_trace_id())
        payload = ErrorEnvelope(
            error={
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "trace_id": trace_id,
            }
        )
        return JSONResponse(
            status_code=422,
            content=payload.model_dump(),
            headers={"x-trace-id": trace_id},
        )

    @app.exception_handler(ApiError)
    async def api_exception_handler(request: Request, exc: ApiError):
        trace_id = getattr(request.state, "trace_id", generate_trace_id())
        category = exc.category if isinstance(exc, PacketApiError) else None
        payload = ErrorEnvelope(
            error={
                "code": exc.code,
                "message": exc.message,
                "trace_id": trace_id,
                "category": category,
            }
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=payload.model_dump(),
            headers={"x-trace-id": trace_id},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        trace_id = getattr(request.state, "trace_id", generate_trace_id())
        LOGGER.exception("Unhandled API exception", exc_info=exc)
        message = "Failed to generate PDF packet"
        if not is_hardened_environment(settings.environment):
            message = str(exc) or message
        payload = ErrorEnvelope(
            error={
                "code": "INTERNAL_ERROR",
                "message": message,
                "trace_id": trace_id,
                "category": "unknown",
            }
        )
        return JSONResponse(
            status_code=500,
            content=payload.model_dump(),
            headers={"x-trace-id": trace_id},
        )

    app.include_router(build_packets_router(packet_service, request_metrics=request_metrics))

    @app.get("/healthz", tags=["health"])
    async def healthz() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/ops/metrics", tags=["ops"])
    async def ops_metrics() -> dict[str, object]:
        return {
            "request_metrics": request_metrics.snapshot(),
            "pdf_worker": {"endpoint": packet_service.packet_client.endpoint},
            "document_directory": {
                "configured": packet_service.directory_client is not None,
            },
        }

    return app


app = create_app()

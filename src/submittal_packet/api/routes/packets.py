from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Request, Response

from submittal_packet.errors import PacketApiError, PacketError
from submittal_packet.schemas import PacketGenerateRequest
from submittal_packet.services import PacketService, classify_packet_failure
from submittal_packet.services.artifact_presenter import (
    PDF_MEDIA_TYPE,
    content_disposition,
    ensure_pdf_filename,
    require_artifact,
)
from submittal_packet.telemetry import RequestMetrics

Delivery = Literal["preview", "download"]


def build_packets_router(
    packet_service: PacketService,
    *,
    request_metrics: RequestMetrics | None = None,
) -> APIRouter:
    router = APIRouter(prefix="/api/packets", tags=["packets"])

    def _record_outcome(
        *,
        trace_id: str,
        delivery: Delivery,
        payload: PacketGenerateRequest,
        artifact_bytes: int = 0,
        failure_category: str | None = None,
    ) -> None:
        if request_metrics is None:
            return
        request_metrics.record_packet_outcome(
            trace_id=trace_id,
            delivery=delivery,
            document_count=sum(1 for entry in payload.documents if entry.selected),
            artifact_bytes=artifact_bytes,
            failure_category=failure_category,
        )

    async def _generate(
        payload: PacketGenerateRequest,
        request: Request,
        *,
        delivery: Delivery,
    ) -> Response:
        trace_id = getattr(request.state, "trace_id", "")
        try:
            artifact = await packet_service.generate_packet(payload.project, payload.documents)
            require_artifact(delivery, artifact)
        except PacketError as exc:
            failure = classify_packet_failure(exc)
            _record_outcome(
                trace_id=trace_id,
                delivery=delivery,
                payload=payload,
                failure_category=failure.category,
            )
            raise PacketApiError(
                code=failure.code,
                message=failure.message,
                status_code=failure.status_code,
                category=failure.category,
            ) from exc

        _record_outcome(
            trace_id=trace_id,
            delivery=delivery,
            payload=payload,
            artifact_bytes=len(artifact),
        )
        filename = ensure_pdf_filename(payload.filename)
        return Response(
            content=artifact,
            media_type=PDF_MEDIA_TYPE,
            headers={
                "Content-Disposition": content_disposition(
                    inline=delivery == "preview", filename=filename
                ),
                "Cache-Control": "no-store",
                "x-trace-id": trace_id,
            },
        )

    @router.post("/preview", response_class=Response)
    async def preview_packet(payload: PacketGenerateRequest, request: Request) -> Response:
        return await _generate(payload, request, delivery="preview")

    @router.post("/download", response_class=Response)
    async def download_packet(payload: PacketGenerateRequest, request: Request) -> Response:
        return await _generate(payload, request, delivery="download")

    return router

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
import logging
from typing import Any

import httpx

from submittal_packet.errors import (
    ConnectivityError,
    EmptyArtifactError,
    PacketTimeoutError,
    RenderServiceError,
)
from submittal_packet.schemas import PacketRequest
from submittal_packet.settings import DEFAULT_PDF_WORKER_URL

LOGGER = logging.getLogger(__name__)
_FILE_DATA_PREVIEW_CHARS = 30


def summarize_packet_request(wire_payload: dict[str, Any]) -> dict[str, Any]:
    """Copy of the wire payload with each ``fileData`` shortened for logging."""
    documents = []
    for document in wire_payload.get("documents", []):
        file_data = document.get("fileData") or ""
        documents.append(
            {
                **document,
                "fileData": f"{file_data[:_FILE_DATA_PREVIEW_CHARS]}..."
                if file_data
                else "No file data",
            }
        )
    return {**wire_payload, "documents": documents}


def extract_error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return json.dumps(payload)


@dataclass
class PacketClient:
    base_url: str = DEFAULT_PDF_WORKER_URL
    timeout_seconds: float = 120.0
    transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        self.base_url = (self.base_url or DEFAULT_PDF_WORKER_URL).rstrip("/")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/generate-packet"

    async def render(self, request: PacketRequest) -> bytes:
        wire_payload = request.to_wire()
        if LOGGER.isEnabledFor(logging.DEBUG):
            LOGGER.debug(
                "Sending packet request to %s: %s",
                self.endpoint,
                json.dumps(summarize_packet_request(wire_payload)),
            )

        try:
            response = await asyncio.wait_for(
                self._post(wire_payload), timeout=self.timeout_seconds
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise PacketTimeoutError(
                self.endpoint, self.timeout_seconds, stage="render"
            ) from exc
        except httpx.TransportError as exc:
            raise ConnectivityError(
                self.base_url, str(exc) or exc.__class__.__name__
            ) from exc

        if not response.is_success:
            raise RenderServiceError(
                response.status_code,
                response.reason_phrase,
                extract_error_detail(response),
            )

        artifact = response.content
        if not artifact:
            raise EmptyArtifactError()

        media_type = response.headers.get("content-type", "")
        if media_type and not media_type.lower().startswith("application/pdf"):
            LOGGER.warning("PDF Worker responded with content type %s", media_type)
        LOGGER.info("PDF generated successfully: %d bytes", len(artifact))
        return artifact

    async def _post(self, wire_payload: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            transport=self.transport,
        ) as client:
            return await client.post(
                self.endpoint,
                json=wire_payload,
                headers={"Content-Type": "application/json"},
            )

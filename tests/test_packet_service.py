from __future__ import annotations

import asyncio
import base64
import dataclasses
from datetime import date
import json

import fitz
import httpx
import pytest

from submittal_packet.errors import (
    ConnectivityError,
    DirectoryLookupError,
    DocumentProcessingError,
    EmptyArtifactError,
    EncodingError,
    NoDocumentsSelectedError,
    PacketTimeoutError,
    PresentationError,
    RenderServiceError,
    SourceFetchError,
    StorageConfigurationError,
)
from submittal_packet.schemas import Document, ProjectMetadataInput, SelectableDocument
from submittal_packet.services.document_fetcher import DocumentFetcher
from submittal_packet.services.packet_service import (
    DOCUMENT_FAILURE_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    STORAGE_FAILURE_MESSAGE,
    PacketService,
    classify_packet_failure,
)
from submittal_packet.settings import Settings
from submittal_packet.sources.category_directory import (
    RegistryDirectoryClient,
    StaticDirectoryClient,
)
from submittal_packet.sources.packet_client import PacketClient

WORKER_URL = "https://pdf-worker.example"
TODAY = date(2026, 10, 19)


def _pdf_payload(text: str) -> bytes:
    document = fitz.open()
    page = document.new_page()
    page.insert_text((72, 72), text)
    payload = document.tobytes()
    document.close()
    return payload


def _entry(doc_id: str, name: str, *, order: int, selected: bool = True) -> SelectableDocument:
    return SelectableDocument(
        id=doc_id,
        document=Document(
            id=f"doc-{doc_id}",
            name=name,
            url=f"https://files.example/{doc_id}.pdf",
            type="TDS",
        ),
        selected=selected,
        order=order,
    )


class _FakeWorker:
    def __init__(
        self,
        *,
        sources: dict[str, bytes],
        missing: set[str] | None = None,
        render_response: httpx.Response | None = None,
    ) -> None:
        self.sources = sources
        self.missing = missing or set()
        self.render_response = render_response
        self.render_bodies: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "pdf-worker.example":
            self.render_bodies.append(json.loads(request.content))
            if self.render_response is not None:
                return self.render_response
            return httpx.Response(
                200,
                content=_pdf_payload("Packet"),
                headers={"content-type": "application/pdf"},
            )
        name = request.url.path.lstrip("/").removesuffix(".pdf")
        if name in self.missing:
            return httpx.Response(404, text="Not Found")
        return httpx.Response(
            200,
            content=self.sources[name],
            headers={"content-type": "application/pdf"},
        )


def _service(worker: _FakeWorker, *, directory_client=None) -> PacketService:
    transport = httpx.MockTransport(worker)
    return PacketService(
        fetcher=DocumentFetcher(transport=transport),
        packet_client=PacketClient(base_url=WORKER_URL, transport=transport),
        directory_client=directory_client,
        today_fn=lambda: TODAY,
    )


def test_generate_packet_sends_documents_in_selection_order() -> None:
    sources = {"a": _pdf_payload("Document A"), "b": _pdf_payload("Document B")}
    worker = _FakeWorker(sources=sources)
    directory = StaticDirectoryClient.from_records(
        [
            {"id": "d1", "name": "Installation Guide", "product_type": "structural-floor"},
            {"id": "d2", "name": "Warranty", "product_type": "structural-floor"},
            {"id": "d3", "name": "Underlayment TDS", "product_type": "underlayment"},
        ]
    )
    selection = [
        _entry("a", "Installation Guide", order=2),
        _entry("b", "Warranty", order=1),
        _entry("c", "Ignored", order=0, selected=False),
    ]

    artifact = asyncio.run(
        _service(worker, directory_client=directory).generate_packet(
            ProjectMetadataInput(project_name="Harbor Tower"), selection
        )
    )

    assert artifact.startswith(b"%PDF")
    [body] = worker.render_bodies
    assert [document["id"] for document in body["documents"]] == ["b", "a"]
    assert body["selectedDocumentNames"] == ["Warranty", "Installation Guide"]
    assert body["allAvailableDocuments"] == ["Installation Guide", "Warranty"]
    assert base64.b64decode(body["documents"][1]["fileData"]) == sources["a"]
    assert body["projectData"]["projectName"] == "Harbor Tower"
    assert body["projectData"]["submittedTo"] == "N/A"
    assert body["projectData"]["date"] == "October 19, 2026"


def test_generate_packet_stops_before_render_when_a_document_is_missing() -> None:
    worker = _FakeWorker(sources={"a": _pdf_payload("A")}, missing={"b"})
    selection = [_entry("a", "Data Sheet", order=1), _entry("b", "Warranty", order=2)]

    with pytest.raises(DocumentProcessingError) as exc_info:
        asyncio.run(_service(worker).generate_packet(None, selection))

    assert exc_info.value.document_name == "Warranty"
    assert worker.render_bodies == []


def test_generate_packet_requires_a_selection() -> None:
    worker = _FakeWorker(sources={})

    with pytest.raises(NoDocumentsSelectedError):
        asyncio.run(
            _service(worker).generate_packet(
                None, [_entry("a", "Data Sheet", order=1, selected=False)]
            )
        )

    assert worker.render_bodies == []


def test_generate_packet_survives_directory_failure() -> None:
    def _registry_down(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="registry unavailable")

    worker = _FakeWorker(sources={"a": _pdf_payload("A")})
    directory = RegistryDirectoryClient(
        base_url="https://registry.example",
        transport=httpx.MockTransport(_registry_down),
    )

    artifact = asyncio.run(
        _service(worker, directory_client=directory).generate_packet(
            None, [_entry("a", "Data Sheet", order=1)]
        )
    )

    assert artifact.startswith(b"%PDF")
    assert worker.render_bodies[0]["allAvailableDocuments"] == []


def test_generate_packet_propagates_render_failures() -> None:
    worker = _FakeWorker(
        sources={"a": _pdf_payload("A")},
        render_response=httpx.Response(500, text="Internal Server Error"),
    )

    with pytest.raises(RenderServiceError) as exc_info:
        asyncio.run(_service(worker).generate_packet(None, [_entry("a", "TDS", order=1)]))

    failure = classify_packet_failure(exc_info.value)
    assert failure.category == "render_service"
    assert failure.status_code == 502
    assert "Internal Server Error" in failure.message


def test_from_settings_wires_configured_clients() -> None:
    settings = Settings(
        app_name="Submittal Packet API",
        environment="development",
        pdf_worker_url=WORKER_URL,
        document_registry_url="https://registry.example",
        document_registry_api_key="anon-key",
        document_fetch_timeout_seconds=12.0,
        directory_timeout_seconds=3.0,
        render_timeout_seconds=90.0,
        document_max_download_bytes=2048,
        cors_allowed_origins=(),
    )

    service = PacketService.from_settings(settings)

    assert service.packet_client.endpoint == f"{WORKER_URL}/generate-packet"
    assert service.packet_client.timeout_seconds == 90.0
    assert service.fetcher.timeout_seconds == 12.0
    assert service.fetcher.max_download_bytes == 2048
    assert isinstance(service.directory_client, RegistryDirectoryClient)
    assert service.directory_client.api_key == "anon-key"
    assert service.directory_client.timeout_seconds == 3.0

    without_registry = PacketService.from_settings(
        dataclasses.replace(settings, document_registry_url=None)
    )
    assert without_registry.directory_client is None


@pytest.mark.parametrize(
    ("error", "category", "code", "status_code"),
    [
        (NoDocumentsSelectedError(), "selection", "NO_DOCUMENTS_SELECTED", 422),
        (
            DocumentProcessingError("TDS", SourceFetchError("TDS", "404 Not Found")),
            "document_processing",
            "DOCUMENT_UNAVAILABLE",
            502,
        ),
        (
            DocumentProcessingError("TDS", EncodingError("TDS")),
            "document_processing",
            "DOCUMENT_UNAVAILABLE",
            502,
        ),
        (
            DocumentProcessingError(
                "TDS", StorageConfigurationError("TDS", "Bucket not found")
            ),
            "storage_configuration",
            "STORAGE_MISCONFIGURED",
            503,
        ),
        (
            ConnectivityError(WORKER_URL, "connection refused"),
            "connectivity",
            "RENDER_SERVICE_UNREACHABLE",
            503,
        ),
        (
            PacketTimeoutError(f"{WORKER_URL}/generate-packet", 120, stage="render"),
            "timeout",
            "RENDER_SERVICE_TIMEOUT",
            504,
        ),
        (
            RenderServiceError(500, "Internal Server Error", "boom"),
            "render_service",
            "RENDER_FAILED",
            502,
        ),
        (EmptyArtifactError(), "render_service", "RENDER_FAILED", 502),
        (
            PresentationError("preview", "Failed to preview PDF."),
            "presentation",
            "PRESENTATION_FAILED",
            500,
        ),
        (DirectoryLookupError("underlayment", "offline"), "unknown", "INTERNAL_ERROR", 500),
        (RuntimeError("unexpected"), "unknown", "INTERNAL_ERROR", 500),
    ],
)
def test_classify_packet_failure_maps_error_kinds(
    error: BaseException,
    category: str,
    code: str,
    status_code: int,
) -> None:
    failure = classify_packet_failure(error)

    assert failure.category == category
    assert failure.code == code
    assert failure.status_code == status_code


def test_classify_packet_failure_user_messages() -> None:
    document_failure = DocumentProcessingError("TDS", SourceFetchError("TDS", "404 Not Found"))
    storage_failure = DocumentProcessingError(
        "TDS", StorageConfigurationError("TDS", "Bucket not found")
    )

    assert classify_packet_failure(document_failure).message == DOCUMENT_FAILURE_MESSAGE
    assert classify_packet_failure(storage_failure).message == STORAGE_FAILURE_MESSAGE
    assert classify_packet_failure(RuntimeError("boom")).message == GENERIC_FAILURE_MESSAGE
    assert classify_packet_failure(
        ConnectivityError(WORKER_URL, "connection refused")
    ).message.startswith(f"Cannot connect to PDF Worker at {WORKER_URL}.")
    assert classify_packet_failure(
        PacketTimeoutError("https://pdf-worker.example/generate-packet", 120, stage="render")
    ).message == (
        "Request to https://pdf-worker.example/generate-packet timed out after 120 seconds."
        " Please try again."
    )
    assert (
        classify_packet_failure(EmptyArtifactError()).message
        == "Received empty PDF from worker"
    )

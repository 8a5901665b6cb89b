from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import date
import logging

from submittal_packet.errors import (
    ConnectivityError,
    DocumentProcessingError,
    PacketError,
)
from submittal_packet.schemas import (
    FailureCategory,
    PacketFailure,
    ProjectMetadataInput,
    SelectableDocument,
)
from submittal_packet.services.document_fetcher import DocumentFetcher, select_documents
from submittal_packet.services.payload_builder import (
    build_packet_request,
    canonicalize_project_data,
)
from submittal_packet.settings import Settings
from submittal_packet.sources.category_directory import (
    CategoryDirectoryClient,
    RegistryDirectoryClient,
    lookup_available_documents,
)
from submittal_packet.sources.packet_client import PacketClient

LOGGER = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to generate PDF packet"
DOCUMENT_FAILURE_MESSAGE = (
    "One or more documents could not be loaded. "
    "Please verify all documents are accessible and try again."
)
STORAGE_FAILURE_MESSAGE = (
    "Document storage is not properly configured. "
    "Please contact support or verify the document storage bucket setup."
)

_FAILURE_BY_KIND: dict[str, tuple[FailureCategory, str, int]] = {
    "no_documents_selected": ("selection", "NO_DOCUMENTS_SELECTED", 422),
    "document_processing": ("document_processing", "DOCUMENT_UNAVAILABLE", 502),
    "source_fetch": ("document_processing", "DOCUMENT_UNAVAILABLE", 502),
    "encoding": ("document_processing", "DOCUMENT_UNAVAILABLE", 502),
    "storage_configuration": ("storage_configuration", "STORAGE_MISCONFIGURED", 503),
    "connectivity": ("connectivity", "RENDER_SERVICE_UNREACHABLE", 503),
    "timeout": ("timeout", "RENDER_SERVICE_TIMEOUT", 504),
    "render_service": ("render_service", "RENDER_FAILED", 502),
    "empty_artifact": ("render_service", "RENDER_FAILED", 502),
    "presentation": ("presentation", "PRESENTATION_FAILED", 500),
}
_UNKNOWN_FAILURE: tuple[FailureCategory, str, int] = ("unknown", "INTERNAL_ERROR", 500)


def _effective_error(exc: PacketError) -> PacketError:
    # Storage misconfiguration is reported as such even when a document wraps it.
    if isinstance(exc, DocumentProcessingError) and exc.cause.kind == "storage_configuration":
        return exc.cause
    return exc


def _user_message(exc: PacketError, category: FailureCategory) -> str:
    if category == "document_processing":
        return DOCUMENT_FAILURE_MESSAGE
    if category == "storage_configuration":
        return STORAGE_FAILURE_MESSAGE
    if isinstance(exc, ConnectivityError):
        return (
            f"Cannot connect to PDF Worker at {exc.endpoint}. "
            "Please check your internet connection and verify the worker is accessible."
        )
    if category == "timeout":
        return f"{exc.message}. Please try again."
    if category == "unknown":
        return GENERIC_FAILURE_MESSAGE
    return exc.message


def classify_packet_failure(exc: BaseException) -> PacketFailure:
    """Map a pipeline error onto the category and message shown to the user."""
    if not isinstance(exc, PacketError):
        category, code, status_code = _UNKNOWN_FAILURE
        return PacketFailure(
            category=category,
            code=code,
            message=GENERIC_FAILURE_MESSAGE,
            status_code=status_code,
        )

    effective = _effective_error(exc)
    category, code, status_code = _FAILURE_BY_KIND.get(effective.kind, _UNKNOWN_FAILURE)
    return PacketFailure(
        category=category,
        code=code,
        message=_user_message(effective, category),
        status_code=status_code,
    )


class PacketService:
    def __init__(
        self,
        *,
        fetcher: DocumentFetcher,
        packet_client: PacketClient,
        directory_client: CategoryDirectoryClient | None = None,
        today_fn: Callable[[], date] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.packet_client = packet_client
        self.directory_client = directory_client
        self._today_fn = today_fn or date.today

    @classmethod
    def from_settings(cls, settings: Settings) -> "PacketService":
        directory_client = None
        if settings.document_registry_url:
            directory_client = RegistryDirectoryClient(
                base_url=settings.document_registry_url,
                api_key=settings.document_registry_api_key,
                timeout_seconds=settings.directory_timeout_seconds,
            )
        return cls(
            fetcher=DocumentFetcher(
                timeout_seconds=settings.document_fetch_timeout_seconds,
                max_download_bytes=settings.document_max_download_bytes,
            ),
            packet_client=PacketClient(
                base_url=settings.pdf_worker_url,
                timeout_seconds=settings.render_timeout_seconds,
            ),
            directory_client=directory_client,
        )

    async def generate_packet(
        self,
        project: ProjectMetadataInput | None,
        selection: Sequence[SelectableDocument],
    ) -> bytes:
        try:
            return await self._generate_packet(project, selection)
        except PacketError as exc:
            failure = classify_packet_failure(exc)
            LOGGER.warning(
                "Packet generation failed category=%s stage=%s: %s",
                failure.category,
                exc.stage,
                exc,
            )
            raise

    async def _generate_packet(
        self,
        project: ProjectMetadataInput | None,
        selection: Sequence[SelectableDocument],
    ) -> bytes:
        ordered_selection = select_documents(selection)
        project_data = canonicalize_project_data(project, today=self._today_fn())

        directory_task = asyncio.create_task(
            lookup_available_documents(self.directory_client, project_data.product_type)
        )
        try:
            fetched_documents = await self.fetcher.fetch_documents(ordered_selection)
        except BaseException:
            directory_task.cancel()
            await asyncio.gather(directory_task, return_exceptions=True)
            raise
        directory_documents = await directory_task

        packet_request = build_packet_request(
            project_data=project_data,
            ordered_selection=ordered_selection,
            fetched_documents=fetched_documents,
            directory_documents=directory_documents,
        )
        LOGGER.info(
            "Requesting packet with %d documents (%d available in %s)",
            len(packet_request.documents),
            len(packet_request.all_available_documents),
            project_data.product_type,
        )
        return await self.packet_client.render(packet_request)

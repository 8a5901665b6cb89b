from __future__ import annotations

import asyncio
import base64
import binascii
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import logging
from urllib.parse import unquote_to_bytes

import httpx

from submittal_packet.errors import (
    DocumentProcessingError,
    EncodingError,
    NoDocumentsSelectedError,
    PacketError,
    PacketTimeoutError,
    SourceFetchError,
    StorageConfigurationError,
)
from submittal_packet.schemas import FetchedDocument, SelectableDocument
from submittal_packet.services.payload_builder import document_display_name

LOGGER = logging.getLogger(__name__)
DEFAULT_EXPECTED_CONTENT_TYPE = "application/pdf"
_STORAGE_ERROR_MARKERS = ("bucket",)
_ERROR_BODY_PREVIEW_CHARS = 200


def select_documents(selection: Iterable[SelectableDocument]) -> list[SelectableDocument]:
    """Selected entries in ascending ``order``; equal orders keep input order."""
    ordered = sorted(
        (entry for entry in selection if entry.selected),
        key=lambda entry: entry.order,
    )
    if not ordered:
        raise NoDocumentsSelectedError()
    return ordered


def encode_document_bytes(payload: bytes) -> str:
    return base64.b64encode(payload).decode("ascii")


def decode_data_uri(value: str) -> tuple[bytes, str | None]:
    """Split ``data:<media-type>[;base64],<data>`` into raw bytes and media type."""
    if not value.startswith("data:"):
        raise ValueError("not a data URI")
    header, separator, data = value[len("data:"):].partition(",")
    if not separator:
        raise ValueError("data URI is missing the ',' separator")
    media_type, *parameters = header.split(";")
    if "base64" in (parameter.strip().lower() for parameter in parameters):
        return base64.b64decode(data, validate=True), media_type or None
    return unquote_to_bytes(data), media_type or None


def _media_type(content_type: str | None) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def _references_storage(body: str) -> bool:
    lowered = body.lower()
    return any(marker in lowered for marker in _STORAGE_ERROR_MARKERS)


@dataclass
class DocumentFetcher:
    timeout_seconds: float = 30.0
    max_download_bytes: int = 50 * 1024 * 1024
    expected_content_type: str = DEFAULT_EXPECTED_CONTENT_TYPE
    transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.max_download_bytes < 1:
            raise ValueError("max_download_bytes must be >= 1")

    async def fetch_documents(
        self, ordered_selection: Sequence[SelectableDocument]
    ) -> list[FetchedDocument]:
        if not ordered_selection:
            raise NoDocumentsSelectedError()

        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            tasks = [
                asyncio.create_task(self._fetch_entry(client, entry))
                for entry in ordered_selection
            ]
            completed: list[asyncio.Task] = []
            for task in tasks:
                task.add_done_callback(completed.append)
            try:
                await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            finally:
                pending = [task for task in tasks if not task.done()]
                for task in pending:
                    task.cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)

        # Completion order, so the earliest failure wins over array position.
        for task in completed:
            if task.cancelled():
                continue
            error = task.exception()
            if error is not None:
                raise error
        return [task.result() for task in tasks]

    async def _fetch_entry(
        self, client: httpx.AsyncClient, entry: SelectableDocument
    ) -> FetchedDocument:
        document = entry.document
        name = document_display_name(document)
        try:
            try:
                payload, content_type = await asyncio.wait_for(
                    self._retrieve(client, name, document.url),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError as exc:
                raise PacketTimeoutError(
                    document.url or name, self.timeout_seconds, stage="document_fetch"
                ) from exc
            expected = _media_type(document.content_type) or self.expected_content_type
            received = _media_type(content_type)
            if received and received != expected:
                LOGGER.warning(
                    "Document %s has unexpected content type %s (expected %s)",
                    name,
                    received,
                    expected,
                )
            file_data = encode_document_bytes(payload)
            if not file_data:
                raise EncodingError(name)
        except PacketError as exc:
            LOGGER.warning("Error processing document %s: %s", name, exc)
            raise DocumentProcessingError(name, exc) from exc

        LOGGER.debug("Fetched document %s (%d bytes)", name, len(payload))
        return FetchedDocument(
            id=entry.id,
            name=name,
            url=document.url or "",
            type=document.type or "other",
            file_data=file_data,
        )

    async def _retrieve(
        self, client: httpx.AsyncClient, name: str, url: str | None
    ) -> tuple[bytes, str | None]:
        source_url = (url or "").strip()
        if not source_url:
            raise SourceFetchError(name, "document has no URL")
        if source_url.startswith("data:"):
            try:
                payload, media_type = decode_data_uri(source_url)
            except (ValueError, binascii.Error) as exc:
                raise SourceFetchError(name, f"invalid data URI: {exc}") from exc
            self._check_size(name, len(payload))
            return payload, media_type

        try:
            async with client.stream("GET", source_url) as response:
                if not response.is_success:
                    await self._raise_for_failed_response(name, response)

                content_length = response.headers.get("content-length")
                if content_length:
                    try:
                        declared_bytes = int(content_length)
                    except ValueError:
                        declared_bytes = 0
                    self._check_size(name, declared_bytes)

                chunks: list[bytes] = []
                total_bytes = 0
                async for chunk in response.aiter_bytes():
                    total_bytes += len(chunk)
                    self._check_size(name, total_bytes)
                    chunks.append(chunk)
                return b"".join(chunks), response.headers.get("content-type")
        except httpx.TimeoutException as exc:
            raise PacketTimeoutError(
                source_url, self.timeout_seconds, stage="document_fetch"
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise SourceFetchError(name, str(exc) or exc.__class__.__name__) from exc

    async def _raise_for_failed_response(
        self, name: str, response: httpx.Response
    ) -> None:
        body = (await response.aread()).decode("utf-8", errors="replace").strip()
        if _references_storage(body):
            raise StorageConfigurationError(
                name,
                body[:_ERROR_BODY_PREVIEW_CHARS],
                status_code=response.status_code,
            )
        raise SourceFetchError(
            name,
            f"{response.status_code} {response.reason_phrase}".strip(),
            status_code=response.status_code,
        )

    def _check_size(self, name: str, size: int) -> None:
        if size > self.max_download_bytes:
            raise SourceFetchError(
                name,
                f"document exceeds the {self.max_download_bytes} byte download limit",
            )

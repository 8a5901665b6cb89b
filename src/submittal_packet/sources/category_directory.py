from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from submittal_packet.errors import DirectoryLookupError
from submittal_packet.schemas import Document

LOGGER = logging.getLogger(__name__)


class CategoryDirectoryClient(Protocol):
    async def get_documents_by_product_type(self, product_type: str) -> list[Document]:
        ...


@dataclass
class RegistryDirectoryClient:
    """Reads the document registry through its REST interface."""

    base_url: str
    api_key: str | None = None
    timeout_seconds: float = 10.0
    transport: httpx.AsyncBaseTransport | None = None

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/rest/v1/documents"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def get_documents_by_product_type(self, product_type: str) -> list[Document]:
        params = {
            "select": "*",
            "product_type": f"eq.{product_type}",
            "order": "name.asc",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                headers=self._headers(),
                transport=self.transport,
            ) as client:
                response = await client.get(self.endpoint, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            raise DirectoryLookupError(product_type, "registry request timed out") from exc
        except httpx.HTTPError as exc:
            raise DirectoryLookupError(product_type, str(exc) or exc.__class__.__name__) from exc
        except ValueError as exc:
            raise DirectoryLookupError(product_type, "registry returned invalid JSON") from exc

        return _parse_documents(product_type, payload)


def _parse_documents(product_type: str, payload: Any) -> list[Document]:
    if not isinstance(payload, list):
        raise DirectoryLookupError(product_type, "registry response is not a list")
    documents: list[Document] = []
    for row in payload:
        if not isinstance(row, Mapping):
            continue
        try:
            documents.append(Document.model_validate(row))
        except ValidationError:
            LOGGER.debug("Skipping malformed registry row for %s: %r", product_type, row)
    return documents


@dataclass
class StaticDirectoryClient:
    documents: list[Document] = field(default_factory=list)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "StaticDirectoryClient":
        return cls(documents=[Document.model_validate(record) for record in records])

    async def get_documents_by_product_type(self, product_type: str) -> list[Document]:
        return [
            document
            for document in self.documents
            if document.product_type in (None, product_type)
        ]


async def lookup_available_documents(
    client: CategoryDirectoryClient | None,
    product_type: str,
) -> list[Document]:
    """Best-effort directory lookup; any failure degrades to an empty listing."""
    if client is None:
        return []
    try:
        return list(await client.get_documents_by_product_type(product_type))
    except Exception as exc:
        LOGGER.warning("Failed to fetch category documents for %s: %s", product_type, exc)
        return []

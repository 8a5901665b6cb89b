from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal


PacketErrorKind = Literal[
    "no_documents_selected",
    "source_fetch",
    "encoding",
    "storage_configuration",
    "document_processing",
    "directory_lookup",
    "render_service",
    "empty_artifact",
    "connectivity",
    "timeout",
    "presentation",
]
PacketStage = Literal[
    "selection",
    "document_fetch",
    "directory_lookup",
    "render",
    "presentation",
]


@dataclass
class ApiError(Exception):
    code: str
    message: str
    status_code: int

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)


class PacketApiError(ApiError):
    def __init__(
        self,
        *,
        code: str,
        message: str,
        status_code: int,
        category: str,
    ) -> None:
        super().__init__(code=code, message=message, status_code=status_code)
        self.category = category


class PacketError(Exception):
    """Base for every failure the packet pipeline can raise.

    Each subclass carries a fixed ``kind`` tag plus the structured context needed
    to explain the failure; callers branch on ``kind`` rather than on message text.
    """

    kind: ClassVar[PacketErrorKind]

    def __init__(self, message: str, *, stage: PacketStage) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage


class NoDocumentsSelectedError(PacketError):
    kind = "no_documents_selected"

    def __init__(self) -> None:
        super().__init__("No documents selected for packet generation", stage="selection")


class SourceFetchError(PacketError):
    kind = "source_fetch"

    def __init__(
        self,
        document_name: str,
        reason: str,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            f"Failed to fetch document {document_name}: {reason}",
            stage="document_fetch",
        )
        self.document_name = document_name
        self.reason = reason
        self.status_code = status_code


class EncodingError(PacketError):
    kind = "encoding"

    def __init__(self, document_name: str) -> None:
        super().__init__(
            f"Failed to encode document {document_name} as base64",
            stage="document_fetch",
        )
        self.document_name = document_name


class StorageConfigurationError(PacketError):
    kind = "storage_configuration"

    def __init__(self, document_name: str, detail: str, *, status_code: int | None = None) -> None:
        super().__init__(
            f"Document storage rejected {document_name}: {detail}",
            stage="document_fetch",
        )
        self.document_name = document_name
        self.detail = detail
        self.status_code = status_code


class DocumentProcessingError(PacketError):
    kind = "document_processing"

    def __init__(self, document_name: str, cause: PacketError) -> None:
        super().__init__(f"Failed to process document: {document_name}", stage="document_fetch")
        self.document_name = document_name
        self.cause = cause


class DirectoryLookupError(PacketError):
    kind = "directory_lookup"

    def __init__(self, product_type: str, reason: str) -> None:
        super().__init__(
            f"Document directory lookup failed for {product_type}: {reason}",
            stage="directory_lookup",
        )
        self.product_type = product_type
        self.reason = reason


class RenderServiceError(PacketError):
    kind = "render_service"

    def __init__(self, status_code: int, status_text: str, detail: str) -> None:
        message = f"PDF Worker request failed: {status_code} {status_text}".rstrip()
        if detail:
            message = f"{message} - {detail}"
        super().__init__(message, stage="render")
        self.status_code = status_code
        self.status_text = status_text
        self.detail = detail


class EmptyArtifactError(PacketError):
    kind = "empty_artifact"

    def __init__(self) -> None:
        super().__init__("Received empty PDF from worker", stage="render")


class ConnectivityError(PacketError):
    kind = "connectivity"

    def __init__(self, endpoint: str, reason: str, *, stage: PacketStage = "render") -> None:
        super().__init__(f"Cannot reach {endpoint}: {reason}", stage=stage)
        self.endpoint = endpoint
        self.reason = reason


class PacketTimeoutError(PacketError):
    kind = "timeout"

    def __init__(self, target: str, timeout_seconds: float, *, stage: PacketStage) -> None:
        super().__init__(
            f"Request to {target} timed out after {timeout_seconds:g} seconds",
            stage=stage,
        )
        self.target = target
        self.timeout_seconds = timeout_seconds


class PresentationError(PacketError):
    kind = "presentation"

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(reason, stage="presentation")
        self.operation = operation
        self.reason = reason

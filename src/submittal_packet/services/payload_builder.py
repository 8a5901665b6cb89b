"""Canonical request construction for the PDF Worker.

Every project field the worker reads is resolved here against one default table,
so the outgoing payload never carries a missing value.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from submittal_packet.schemas import (
    Document,
    FetchedDocument,
    PacketRequest,
    ProjectData,
    ProjectMetadataInput,
    ProjectStatus,
    ProjectStatusInput,
    SelectableDocument,
    SubmittalType,
    SubmittalTypeInput,
)

UNNAMED_DOCUMENT = "Unnamed Document"

PROJECT_TEXT_DEFAULTS: dict[str, str] = {
    "project_name": "Untitled Project",
    "submitted_to": "N/A",
    "prepared_by": "N/A",
    "project_number": "N/A",
    "email_address": "N/A",
    "phone_number": "N/A",
    "product": "3/4-in (20mm)",
}
DEFAULT_PRODUCT_TYPE = "structural-floor"
STATUS_FLAGS: tuple[str, ...] = tuple(ProjectStatus.model_fields)
SUBMITTAL_TYPE_FLAGS: tuple[str, ...] = tuple(
    name for name in SubmittalType.model_fields if name != "other_text"
)


def format_long_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def _text_or_default(value: str | None, default: str) -> str:
    if value is None:
        return default
    normalized = value.strip()
    return normalized or default


def canonicalize_status(partial: ProjectStatusInput | None) -> ProjectStatus:
    values = partial.model_dump() if partial else {}
    return ProjectStatus(**{flag: bool(values.get(flag)) for flag in STATUS_FLAGS})


def canonicalize_submittal_type(partial: SubmittalTypeInput | None) -> SubmittalType:
    values = partial.model_dump() if partial else {}
    flags = {flag: bool(values.get(flag)) for flag in SUBMITTAL_TYPE_FLAGS}
    return SubmittalType(**flags, other_text=values.get("other_text") or "")


def canonicalize_project_data(
    partial: ProjectMetadataInput | None,
    *,
    today: date | None = None,
) -> ProjectData:
    partial = partial or ProjectMetadataInput()
    text_fields = {
        field_name: _text_or_default(getattr(partial, field_name), default)
        for field_name, default in PROJECT_TEXT_DEFAULTS.items()
    }
    return ProjectData(
        **text_fields,
        date=_text_or_default(partial.date, format_long_date(today or date.today())),
        product_type=partial.product_type or DEFAULT_PRODUCT_TYPE,
        status=canonicalize_status(partial.status),
        submittal_type=canonicalize_submittal_type(partial.submittal_type),
    )


def document_display_name(document: Document) -> str:
    return document.name.strip() or UNNAMED_DOCUMENT


def available_document_names(documents: Iterable[Document]) -> list[str]:
    return [document.name for document in documents if document.name]


def build_packet_request(
    *,
    project_data: ProjectData,
    ordered_selection: Sequence[SelectableDocument],
    fetched_documents: Sequence[FetchedDocument],
    directory_documents: Iterable[Document] = (),
) -> PacketRequest:
    if len(ordered_selection) != len(fetched_documents):
        raise ValueError("fetched documents must align one-to-one with the ordered selection")
    return PacketRequest(
        project_data=project_data,
        documents=list(fetched_documents),
        selected_document_names=[
            document_display_name(entry.document) for entry in ordered_selection
        ],
        all_available_documents=available_document_names(directory_documents),
    )

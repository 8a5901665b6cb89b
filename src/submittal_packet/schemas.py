from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


ProductType = Literal["structural-floor", "underlayment"]
FailureCategory = Literal[
    "selection",
    "document_processing",
    "storage_configuration",
    "connectivity",
    "timeout",
    "render_service",
    "presentation",
    "unknown",
]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Document(WireModel):
    id: str
    name: str = ""
    url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("url", "file_url", "fileUrl"),
    )
    type: str | None = None
    content_type: str | None = None
    product_type: ProductType | None = None


class SelectableDocument(WireModel):
    id: str
    document: Document
    selected: bool = False
    order: int = 0


class FetchedDocument(WireModel):
    id: str
    name: str
    url: str
    type: str
    file_data: str = Field(min_length=1)


class ProjectStatusInput(WireModel):
    for_review: bool | None = None
    for_approval: bool | None = None
    for_record: bool | None = None
    for_information_only: bool | None = None


class SubmittalTypeInput(WireModel):
    tds: bool | None = None
    three_part_specs: bool | None = None
    test_report_icc_esr5194: bool | None = None
    test_report_icc_esl1645: bool | None = None
    fire_assembly: bool | None = None
    fire_assembly01: bool | None = None
    fire_assembly02: bool | None = None
    fire_assembly03: bool | None = None
    msds: bool | None = None
    leed_guide: bool | None = None
    installation_guide: bool | None = None
    warranty: bool | None = None
    samples: bool | None = None
    other: bool | None = None
    other_text: str | None = None


class ProjectMetadataInput(WireModel):
    project_name: str | None = None
    submitted_to: str | None = None
    prepared_by: str | None = None
    date: str | None = None
    project_number: str | None = None
    email_address: str | None = None
    phone_number: str | None = None
    product: str | None = None
    product_type: ProductType | None = None
    status: ProjectStatusInput | None = None
    submittal_type: SubmittalTypeInput | None = None


class ProjectStatus(WireModel):
    for_review: bool
    for_approval: bool
    for_record: bool
    for_information_only: bool


class SubmittalType(WireModel):
    tds: bool
    three_part_specs: bool
    test_report_icc_esr5194: bool
    test_report_icc_esl1645: bool
    fire_assembly: bool
    fire_assembly01: bool
    fire_assembly02: bool
    fire_assembly03: bool
    msds: bool
    leed_guide: bool
    installation_guide: bool
    warranty: bool
    samples: bool
    other: bool
    other_text: str


class ProjectData(WireModel):
    project_name: str
    submitted_to: str
    prepared_by: str
    date: str
    project_number: str
    email_address: str
    phone_number: str
    product: str
    product_type: ProductType
    status: ProjectStatus
    submittal_type: SubmittalType


class PacketRequest(WireModel):
    project_data: ProjectData
    documents: list[FetchedDocument]
    selected_document_names: list[str]
    all_available_documents: list[str]


class PacketGenerateRequest(WireModel):
    project: ProjectMetadataInput = Field(default_factory=ProjectMetadataInput)
    documents: list[SelectableDocument] = Field(default_factory=list, max_length=200)
    filename: str | None = Field(default=None, max_length=255)


class PacketFailure(BaseModel):
    category: FailureCategory
    code: str
    message: str
    status_code: int


class ErrorBody(BaseModel):
    code: Literal[
        "VALIDATION_ERROR",
        "NO_DOCUMENTS_SELECTED",
        "DOCUMENT_UNAVAILABLE",
        "STORAGE_MISCONFIGURED",
        "RENDER_SERVICE_UNREACHABLE",
        "RENDER_SERVICE_TIMEOUT",
        "RENDER_FAILED",
        "PRESENTATION_FAILED",
        "INTERNAL_ERROR",
    ]
    message: str
    trace_id: str
    category: FailureCategory | None = None


class ErrorEnvelope(BaseModel):
    error: ErrorBody

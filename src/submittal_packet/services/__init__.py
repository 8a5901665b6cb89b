from submittal_packet.services.artifact_presenter import (
    ArtifactPresenter,
    LocalArtifactPresenter,
    ensure_pdf_filename,
)
from submittal_packet.services.document_fetcher import DocumentFetcher, select_documents
from submittal_packet.services.packet_service import PacketService, classify_packet_failure
from submittal_packet.services.payload_builder import (
    build_packet_request,
    canonicalize_project_data,
)

__all__ = [
    "ArtifactPresenter",
    "LocalArtifactPresenter",
    "ensure_pdf_filename",
    "DocumentFetcher",
    "select_documents",
    "PacketService",
    "classify_packet_failure",
    "build_packet_request",
    "canonicalize_project_data",
]

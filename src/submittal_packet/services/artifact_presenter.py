from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import re
import tempfile
import threading
from typing import Protocol
from urllib.parse import quote
import webbrowser

from submittal_packet.errors import PresentationError

LOGGER = logging.getLogger(__name__)
PDF_EXTENSION = ".pdf"
PDF_MEDIA_TYPE = "application/pdf"
DEFAULT_PACKET_FILENAME = "submittal-packet.pdf"
PREVIEW_FAILURE_MESSAGE = "Failed to preview PDF. Please try again or download the file instead."


class ArtifactPresenter(Protocol):
    def preview(self, artifact: bytes) -> str:
        ...

    def download(self, artifact: bytes, filename: str) -> Path:
        ...


def ensure_pdf_filename(filename: str | None) -> str:
    normalized = Path((filename or "").strip()).name
    if not normalized:
        return DEFAULT_PACKET_FILENAME
    if not normalized.lower().endswith(PDF_EXTENSION):
        normalized = f"{normalized}{PDF_EXTENSION}"
    return normalized


def ascii_download_filename(filename: str | None) -> str:
    normalized = ensure_pdf_filename(filename)
    stem = normalized[: -len(PDF_EXTENSION)]
    suffix = normalized[-len(PDF_EXTENSION):]
    safe_stem = re.sub(r"[^A-Za-z0-9_.-]+", "-", stem).strip("-.")
    return f"{safe_stem or DEFAULT_PACKET_FILENAME[: -len(PDF_EXTENSION)]}{suffix}"


def content_disposition(*, inline: bool, filename: str) -> str:
    """Header value safe for latin-1 transport.

    Names that do not survive the ASCII fallback are also sent as an RFC 5987
    ``filename*`` parameter.
    """
    normalized = ensure_pdf_filename(filename)
    safe_filename = ascii_download_filename(normalized)
    disposition = "inline" if inline else "attachment"
    header = f'{disposition}; filename="{safe_filename}"'
    if safe_filename != normalized:
        header = f"{header}; filename*=UTF-8''{quote(normalized, safe='')}"
    return header


def require_artifact(operation: str, artifact: bytes) -> None:
    if not artifact:
        raise PresentationError(operation, "Cannot present an empty PDF artifact")


def _default_release_scheduler(delay_seconds: float, callback: Callable[[], None]) -> None:
    timer = threading.Timer(delay_seconds, callback)
    timer.daemon = True
    timer.start()


@dataclass
class LocalArtifactPresenter:
    """Delivers packets on the local machine through the default browser."""

    download_dir: Path = field(default_factory=Path.cwd)
    preview_release_seconds: float = 60.0
    open_new: Callable[[str], bool] = webbrowser.open_new_tab
    open_current: Callable[[str], bool] = webbrowser.open
    schedule_release: Callable[[float, Callable[[], None]], None] = _default_release_scheduler

    def preview(self, artifact: bytes) -> str:
        require_artifact("preview", artifact)
        try:
            transient_path = self._write_transient(artifact, directory=None)
        except OSError as exc:
            raise PresentationError("preview", PREVIEW_FAILURE_MESSAGE) from exc
        reference = transient_path.as_uri()
        try:
            opened = self.open_new(reference)
            if not opened:
                LOGGER.info("New viewer could not be opened; reusing current window")
                opened = self.open_current(reference)
        except webbrowser.Error as exc:
            self._release(transient_path)
            raise PresentationError("preview", PREVIEW_FAILURE_MESSAGE) from exc

        if not opened:
            self._release(transient_path)
            raise PresentationError("preview", PREVIEW_FAILURE_MESSAGE)
        self.schedule_release(self.preview_release_seconds, lambda: self._release(transient_path))
        return reference

    def download(self, artifact: bytes, filename: str) -> Path:
        require_artifact("download", artifact)
        target_path = Path(self.download_dir) / ensure_pdf_filename(filename)
        transient_path: Path | None = None
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            transient_path = self._write_transient(artifact, directory=target_path.parent)
            os.replace(transient_path, target_path)
        except OSError as exc:
            if transient_path is not None:
                self._release(transient_path)
            raise PresentationError(
                "download", "Failed to download PDF. Please try again."
            ) from exc
        LOGGER.info("Saved packet to %s (%d bytes)", target_path, len(artifact))
        return target_path

    def _write_transient(self, artifact: bytes, *, directory: Path | None) -> Path:
        with tempfile.NamedTemporaryFile(
            prefix="packet-",
            suffix=PDF_EXTENSION,
            dir=directory,
            delete=False,
        ) as handle:
            handle.write(artifact)
            return Path(handle.name)

    @staticmethod
    def _release(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.warning("Could not release transient packet file %s: %s", path, exc)

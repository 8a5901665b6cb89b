#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
from pathlib import Path
import sys

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from submittal_packet.errors import PacketError  # noqa: E402
from submittal_packet.schemas import PacketGenerateRequest  # noqa: E402
from submittal_packet.services import (  # noqa: E402
    ArtifactPresenter,
    LocalArtifactPresenter,
    PacketService,
    classify_packet_failure,
)
from submittal_packet.settings import load_settings  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate a submittal packet from a job file and preview or save it"
    )
    parser.add_argument(
        "--job",
        required=True,
        help="Path to a JSON job file with 'project', 'documents' and optional 'filename'.",
    )
    delivery = parser.add_mutually_exclusive_group()
    delivery.add_argument(
        "--preview",
        action="store_true",
        help="Open the generated packet in the default browser instead of saving it.",
    )
    delivery.add_argument(
        "--output",
        default=".",
        help="Directory the packet is saved into (default: current directory).",
    )
    parser.add_argument(
        "--filename",
        default=None,
        help="Override the saved filename ('.pdf' is appended when missing).",
    )
    parser.add_argument(
        "--worker-url",
        default=None,
        help="Override PDF_WORKER_URL for this run.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    return parser.parse_args(argv)


def load_job(path: str | Path) -> PacketGenerateRequest:
    raw = Path(path).read_text(encoding="utf-8")
    return PacketGenerateRequest.model_validate(json.loads(raw))


def build_service(worker_url: str | None) -> PacketService:
    load_dotenv()
    settings = load_settings()
    if worker_url:
        settings = dataclasses.replace(settings, pdf_worker_url=worker_url.rstrip("/"))
    return PacketService.from_settings(settings)


def main(
    argv: list[str] | None = None,
    *,
    service: PacketService | None = None,
    presenter: ArtifactPresenter | None = None,
) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        job = load_job(args.job)
        service = service or build_service(args.worker_url)
    except (OSError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    presenter = presenter or LocalArtifactPresenter(download_dir=Path(args.output))
    try:
        artifact = asyncio.run(service.generate_packet(job.project, job.documents))
        if args.preview:
            reference = presenter.preview(artifact)
            print(f"Packet preview opened ({len(artifact)} bytes): {reference}")
        else:
            saved_path = presenter.download(artifact, args.filename or job.filename or "")
            print(f"Packet saved ({len(artifact)} bytes): {saved_path}")
    except PacketError as exc:
        failure = classify_packet_failure(exc)
        print(f"ERROR [{failure.category}]: {failure.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

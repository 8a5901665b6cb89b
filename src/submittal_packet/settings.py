from __future__ import annotations

from dataclasses import dataclass
import os
import re
from urllib.parse import urlparse

DEFAULT_PDF_WORKER_URL = "https://pdf-packet-generator.maxterra-pdf-builder.workers.dev"
_HARDENED_ENVIRONMENT_PATTERN = re.compile(r"^(production|prod|ci)(?:[-_].+)?$")


@dataclass(frozen=True)
class Settings:
    app_name: str
    environment: str
    pdf_worker_url: str
    document_registry_url: str | None
    document_registry_api_key: str | None
    document_fetch_timeout_seconds: float
    directory_timeout_seconds: float
    render_timeout_seconds: float
    document_max_download_bytes: int
    cors_allowed_origins: tuple[str, ...]


def is_hardened_environment(environment: str) -> bool:
    normalized = environment.strip().lower()
    if not normalized:
        return False
    return _HARDENED_ENVIRONMENT_PATTERN.fullmatch(normalized) is not None


def parse_str_env(name: str, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip()
    if not normalized:
        return default
    return normalized


def parse_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a numeric value, got {raw!r}") from exc


def parse_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer value, got {raw!r}") from exc


def parse_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    values = tuple(item.strip() for item in raw.split(",") if item.strip())
    if not values:
        return default
    return values


def _require_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be > 0")


def load_settings() -> Settings:
    environment = parse_str_env("ENVIRONMENT", "development") or "development"
    hardened_environment = is_hardened_environment(environment)

    pdf_worker_url = (
        parse_str_env("PDF_WORKER_URL", DEFAULT_PDF_WORKER_URL) or DEFAULT_PDF_WORKER_URL
    ).rstrip("/")
    parsed_worker_url = urlparse(pdf_worker_url)
    if parsed_worker_url.scheme not in {"http", "https"} or not parsed_worker_url.netloc:
        raise ValueError(f"PDF_WORKER_URL must be an absolute http(s) URL, got {pdf_worker_url!r}")
    if hardened_environment and parsed_worker_url.scheme != "https":
        raise ValueError("PDF_WORKER_URL must use https when ENVIRONMENT is production/prod/ci")

    document_registry_url = parse_str_env("DOCUMENT_REGISTRY_URL")
    if document_registry_url:
        document_registry_url = document_registry_url.rstrip("/")

    document_fetch_timeout_seconds = parse_float_env("DOCUMENT_FETCH_TIMEOUT_SECONDS", 30.0)
    directory_timeout_seconds = parse_float_env("DIRECTORY_TIMEOUT_SECONDS", 10.0)
    render_timeout_seconds = parse_float_env("RENDER_TIMEOUT_SECONDS", 120.0)
    _require_positive("DOCUMENT_FETCH_TIMEOUT_SECONDS", document_fetch_timeout_seconds)
    _require_positive("DIRECTORY_TIMEOUT_SECONDS", directory_timeout_seconds)
    _require_positive("RENDER_TIMEOUT_SECONDS", render_timeout_seconds)

    document_max_download_bytes = parse_int_env(
        "DOCUMENT_MAX_DOWNLOAD_BYTES", 50 * 1024 * 1024
    )
    if document_max_download_bytes < 1:
        raise ValueError("DOCUMENT_MAX_DOWNLOAD_BYTES must be >= 1")

    return Settings(
        app_name=parse_str_env("API_APP_NAME", "Submittal Packet API")
        or "Submittal Packet API",
        environment=environment,
        pdf_worker_url=pdf_worker_url,
        document_registry_url=document_registry_url,
        document_registry_api_key=parse_str_env("DOCUMENT_REGISTRY_API_KEY"),
        document_fetch_timeout_seconds=document_fetch_timeout_seconds,
        directory_timeout_seconds=directory_timeout_seconds,
        render_timeout_seconds=render_timeout_seconds,
        document_max_download_bytes=document_max_download_bytes,
        cors_allowed_origins=parse_csv_env(
            "CORS_ALLOWED_ORIGINS",
            ("http://127.0.0.1:5173", "http://localhost:5173"),
        ),
    )

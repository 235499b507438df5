"""Settings loaded from environment variables (and an optional ``.env`` file).

No secret is required at import time; the upstream clients complain about a
missing API key only when they are first constructed.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

ENV_PREFIX = "MEETTASKS"

logger = logging.getLogger(__name__)


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    value = os.getenv(name)
    return default if value is None or value.strip() == "" else value.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    extraction_model: str = "gpt-4o"
    extraction_temperature: float = 0.1
    transcription_backend: str = "openai"
    transcription_model: str = "whisper-1"
    bailian_api_key: Optional[str] = None
    upstream_timeout: int = 120
    max_upload_mb: int = 100
    transcription_chunk_mb: int = 25
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def transcription_chunk_bytes(self) -> int:
        return self.transcription_chunk_mb * 1024 * 1024

    def extractor_options(self) -> dict[str, Any]:
        return {
            "api_token": self.openai_api_key,
            "base_url": self.openai_base_url,
            "model": self.extraction_model,
            "temperature": self.extraction_temperature,
            "timeout": self.upstream_timeout,
        }

    def transcriber_options(self) -> dict[str, Any]:
        if self.transcription_backend == "bailian":
            return {"api_key": self.bailian_api_key, "timeout": self.upstream_timeout}
        return {
            "api_token": self.openai_api_key,
            "base_url": self.openai_base_url,
            "model": self.transcription_model,
            "timeout": self.upstream_timeout,
        }


def load_settings(*, dotenv: bool = True) -> Settings:
    """Build :class:`Settings` from the process environment."""

    if dotenv:
        load_dotenv(override=False)

    log_dir = _env(_k("LOG_DIR"))
    return Settings(
        openai_api_key=_env("OPENAI_API_KEY") or None,
        openai_base_url=_env(_k("OPENAI_BASE_URL"), "https://api.openai.com/v1"),
        extraction_model=_env(_k("EXTRACTION_MODEL"), "gpt-4o"),
        extraction_temperature=_env_float(_k("EXTRACTION_TEMPERATURE"), 0.1),
        transcription_backend=_env(_k("TRANSCRIPTION_BACKEND"), "openai").lower(),
        transcription_model=_env(_k("TRANSCRIPTION_MODEL"), "whisper-1"),
        bailian_api_key=_env("BAILIAN_API_KEY") or None,
        upstream_timeout=_env_int(_k("UPSTREAM_TIMEOUT"), 120),
        max_upload_mb=_env_int(_k("MAX_UPLOAD_MB"), 100),
        transcription_chunk_mb=_env_int(_k("TRANSCRIPTION_CHUNK_MB"), 25),
        host=_env(_k("HOST"), "0.0.0.0"),
        port=_env_int(_k("PORT"), 5000),
        log_level=_env(_k("LOG_LEVEL"), "INFO").upper(),
        log_dir=Path(log_dir).expanduser() if log_dir else None,
    )

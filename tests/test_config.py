from __future__ import annotations

import logging
from pathlib import Path

import pytest

from meeting_tasks.config import Settings, load_settings
from meeting_tasks.logging_setup import setup_logging

_VARS = [
    "OPENAI_API_KEY",
    "BAILIAN_API_KEY",
    "MEETTASKS_EXTRACTION_MODEL",
    "MEETTASKS_TRANSCRIPTION_BACKEND",
    "MEETTASKS_UPSTREAM_TIMEOUT",
    "MEETTASKS_MAX_UPLOAD_MB",
    "MEETTASKS_LOG_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment() -> None:
    settings = load_settings(dotenv=False)

    assert settings == Settings()
    assert settings.max_upload_bytes == 100 * 1024 * 1024
    assert settings.extractor_options()["model"] == "gpt-4o"
    assert settings.transcriber_options()["model"] == "whisper-1"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("BAILIAN_API_KEY", "bl-test")
    monkeypatch.setenv("MEETTASKS_TRANSCRIPTION_BACKEND", "Bailian")
    monkeypatch.setenv("MEETTASKS_UPSTREAM_TIMEOUT", "30")
    monkeypatch.setenv("MEETTASKS_MAX_UPLOAD_MB", "not-a-number")
    monkeypatch.setenv("MEETTASKS_LOG_DIR", str(tmp_path))

    settings = load_settings(dotenv=False)

    assert settings.openai_api_key == "sk-test"
    assert settings.transcription_backend == "bailian"
    assert settings.upstream_timeout == 30
    assert settings.max_upload_mb == 100
    assert settings.log_dir == tmp_path
    assert settings.transcriber_options() == {"api_key": "bl-test", "timeout": 30}
    assert settings.extractor_options()["api_token"] == "sk-test"


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging(level="info", log_dir=tmp_path)
        logging.getLogger("meeting_tasks.test").debug("debug line")
        for handler in root.handlers:
            handler.flush()
        assert "debug line" in (tmp_path / "meeting_tasks.log").read_text()
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
        logging.captureWarnings(False)

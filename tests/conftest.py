from __future__ import annotations

import pytest

from meeting_tasks.models import CandidateTask


class FakeTranscriber:
    """Returns a canned transcript and remembers what it was asked to transcribe."""

    def __init__(self, transcript: str = "") -> None:
        self.transcript = transcript
        self.error: Exception | None = None
        self.calls: list[tuple[bytes, str]] = []

    def transcribe(self, audio: bytes, filename: str) -> str:
        self.calls.append((audio, filename))
        if self.error is not None:
            raise self.error
        return self.transcript


class FakeExtractor:
    """Returns canned candidates, standing in for the language model."""

    def __init__(self, candidates: list[CandidateTask] | None = None) -> None:
        self.candidates = candidates or []
        self.error: Exception | None = None
        self.calls: list[str] = []

    def extract(self, transcript: str) -> list[CandidateTask]:
        self.calls.append(transcript)
        if self.error is not None:
            raise self.error
        return list(self.candidates)


@pytest.fixture()
def fake_transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture()
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol

from .asr_client import BailianASRClient, WhisperTranscriber
from .audio import normalize_media, split_audio
from .errors import MalformedRequest, NoSpeechDetected
from .extractor import TaskExtractor
from .models import CandidateTask, Task, validate_candidate
from .store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_TRANSCRIPTION_CHUNK_BYTES = 25 * 1024 * 1024


class Transcriber(Protocol):
    def transcribe(self, audio: bytes, filename: str) -> str: ...


class Extractor(Protocol):
    def extract(self, transcript: str) -> list[CandidateTask]: ...


@dataclass(frozen=True)
class PipelineResult:
    tasks: list[Task]
    transcript: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.tasks)

    @property
    def message(self) -> str:
        suffix = " from audio" if self.transcript is not None else ""
        return f"Successfully extracted {self.count} tasks{suffix}"

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if self.transcript is not None:
            body["transcript"] = self.transcript
        body["message"] = self.message
        body["tasks"] = [task.to_dict() for task in self.tasks]
        return body


def process_transcript(
    transcript: str,
    *,
    store: TaskStore,
    extractor: Optional[Extractor] = None,
    extractor_options: Optional[dict[str, Any]] = None,
) -> PipelineResult:
    """Extract tasks from a typed transcript and store the valid ones."""

    if not isinstance(transcript, str) or not transcript.strip():
        raise MalformedRequest("Transcript cannot be empty")

    llm = extractor if extractor is not None else TaskExtractor(**(extractor_options or {}))
    return PipelineResult(tasks=_extract_and_store(transcript, llm, store))


def process_media(
    data: bytes,
    filename: str,
    *,
    store: TaskStore,
    mimetype: str | None = None,
    transcriber: Optional[Transcriber] = None,
    transcription_backend: str = "openai",
    transcriber_options: Optional[dict[str, Any]] = None,
    extractor: Optional[Extractor] = None,
    extractor_options: Optional[dict[str, Any]] = None,
    max_chunk_bytes: int = DEFAULT_TRANSCRIPTION_CHUNK_BYTES,
) -> PipelineResult:
    """Run an uploaded audio or video file through transcription and extraction."""

    audio = normalize_media(data, filename, mimetype=mimetype)

    if transcriber is not None:
        asr = transcriber
    else:
        backend = transcription_backend.lower()
        options = transcriber_options or {}
        if backend == "openai":
            asr = WhisperTranscriber(**options)
        elif backend == "bailian":
            asr = BailianASRClient(**options)
        else:
            raise ValueError(f"Unsupported transcription backend: {transcription_backend}")

    chunks = split_audio(audio, max_bytes=max_chunk_bytes)
    parts: list[str] = []
    for chunk in chunks:
        logger.info("Transcribing %s (%d bytes)", chunk.filename, len(chunk.data))
        parts.append(asr.transcribe(chunk.data, chunk.filename))

    transcript = "\n\n".join(part.strip() for part in parts if part.strip())
    if not transcript:
        raise NoSpeechDetected("No speech detected in audio file")

    llm = extractor if extractor is not None else TaskExtractor(**(extractor_options or {}))
    return PipelineResult(tasks=_extract_and_store(transcript, llm, store), transcript=transcript)


def _extract_and_store(transcript: str, extractor: Extractor, store: TaskStore) -> list[Task]:
    candidates = extractor.extract(transcript)
    saved = [store.insert(new_task) for new_task in _valid_tasks(candidates)]
    logger.info("Stored %d of %d extracted tasks", len(saved), len(candidates))
    return saved


def _valid_tasks(candidates: Iterable[CandidateTask]):
    for candidate in candidates:
        new_task = validate_candidate(candidate)
        if new_task is None:
            logger.debug("Dropping incomplete candidate %r", candidate)
            continue
        yield new_task

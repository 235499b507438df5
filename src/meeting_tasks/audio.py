from __future__ import annotations

import io
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path, PurePath
from tempfile import TemporaryDirectory
from typing import List, Optional, Tuple

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError
from pydub.silence import detect_silence

from .errors import ConversionFailed, MediaStorageError, UnsupportedMediaType

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".m4a"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".avi", ".mov", ".webm"})
AUDIO_MIME_TYPES = frozenset({"audio/mp3", "audio/mpeg", "audio/wav", "audio/m4a"})
VIDEO_MIME_TYPES = frozenset({"video/mp4", "video/avi", "video/mov", "video/quicktime", "video/webm"})

ALLOWED_TYPES_MESSAGE = "Only audio files (MP3, WAV, M4A) and video files (MP4, AVI, MOV, WEBM) are allowed"


@dataclass(frozen=True)
class NormalizedAudio:
    """Audio bytes ready for transcription, with the filename they should carry."""

    data: bytes
    filename: str


def classify_media(filename: str | None, mimetype: str | None = None) -> Optional[str]:
    """Return ``"audio"``, ``"video"`` or ``None`` for an upload.

    Either a recognized extension or a recognized MIME type qualifies the file.
    A recognized extension decides the kind; the MIME type is only consulted
    when the extension is unknown.
    """

    suffix = PurePath(filename or "").suffix.lower()
    if suffix in AUDIO_EXTENSIONS:
        return "audio"
    if suffix in VIDEO_EXTENSIONS:
        return "video"

    mime = (mimetype or "").split(";")[0].strip().lower()
    if mime in AUDIO_MIME_TYPES:
        return "audio"
    if mime in VIDEO_MIME_TYPES:
        return "video"
    return None


def extract_audio(
    input_video: Path | str,
    output_path: Path | str | None = None,
    *,
    sample_rate: int = 44100,
    audio_format: str = "mp3",
    audio_bitrate: str | None = "128k",
    channels: int | None = None,
) -> Path:
    """Extract the audio track of ``input_video`` with ffmpeg.

    Args:
        input_video: Path to the source video file.
        output_path: Optional target path for the extracted audio. Defaults to the
            same stem as ``input_video`` with the ``audio_format`` suffix.
        sample_rate: Audio sampling rate in Hz.
        audio_format: ``mp3`` (default), ``wav`` or any codec name ffmpeg knows.
        audio_bitrate: Bitrate for lossy codecs.
        channels: Force a channel count; ``None`` keeps the source layout.

    Returns:
        Path to the extracted audio file.

    Raises:
        ConversionFailed: ffmpeg could not be started, exited with an error, or
            did not produce an output file.
    """

    input_path = Path(input_video)
    normalized_format = audio_format.lower()

    if output_path is None:
        target = input_path.with_suffix(f".{normalized_format}")
    else:
        target = Path(output_path)

    command = [
        "ffmpeg",
        "-y",
        "-i",
        str(input_path),
        "-vn",
    ]

    if normalized_format == "wav":
        command.extend(["-acodec", "pcm_s16le"])
    elif normalized_format in {"mp3", "mpeg"}:
        command.extend(["-acodec", "libmp3lame"])
        if audio_bitrate:
            command.extend(["-b:a", audio_bitrate])
    else:
        command.extend(["-acodec", normalized_format])
        if audio_bitrate:
            command.extend(["-b:a", audio_bitrate])

    command.extend(["-ar", str(sample_rate)])
    if channels:
        command.extend(["-ac", str(channels)])
    command.append(str(target))

    try:
        subprocess.run(command, check=True, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.decode("utf-8", errors="replace").strip() if exc.stderr else ""
        raise ConversionFailed(
            f"ffmpeg failed with code {exc.returncode}" + (f": {stderr[-500:]}" if stderr else "")
        ) from exc
    except OSError as exc:
        raise ConversionFailed(f"ffmpeg could not be started: {exc}") from exc

    if not target.exists():
        raise ConversionFailed("Audio file was not created by ffmpeg")

    return target


def normalize_media(
    data: bytes,
    filename: str,
    *,
    mimetype: str | None = None,
    sample_rate: int = 44100,
    audio_bitrate: str | None = "128k",
) -> NormalizedAudio:
    """Produce transcribable audio from an uploaded audio or video file.

    Audio uploads are returned untouched. Video uploads are written to a
    scratch directory, their audio track is re-encoded to mp3 and the scratch
    directory is removed again whatever the outcome.
    """

    kind = classify_media(filename, mimetype)
    if kind is None:
        raise UnsupportedMediaType(ALLOWED_TYPES_MESSAGE)
    if kind == "audio":
        return NormalizedAudio(data=data, filename=filename)

    source_name = PurePath(filename)
    suffix = source_name.suffix.lower() or ".mp4"
    output_name = f"{source_name.stem or 'audio'}.mp3"

    logger.info("Extracting audio from video %s (%d bytes)", filename, len(data))
    with TemporaryDirectory(prefix="meeting-tasks-") as tmpdir:
        video_path = Path(tmpdir) / f"input{suffix}"
        audio_path = Path(tmpdir) / "output.mp3"
        try:
            video_path.write_bytes(data)
        except OSError as exc:
            raise MediaStorageError("Failed to write video file to disk") from exc

        extract_audio(
            video_path,
            audio_path,
            sample_rate=sample_rate,
            audio_format="mp3",
            audio_bitrate=audio_bitrate,
        )

        try:
            audio_bytes = audio_path.read_bytes()
        except OSError as exc:
            raise MediaStorageError("Failed to read extracted audio file") from exc

    logger.info("Extracted %d bytes of audio from %s", len(audio_bytes), filename)
    return NormalizedAudio(data=audio_bytes, filename=output_name)


def split_audio(
    audio: NormalizedAudio,
    *,
    max_bytes: int = 25 * 1024 * 1024,
    min_silence_len_ms: int = 600,
    silence_threshold_db: int = -40,
    seek_step_ms: int = 10,
    export_bitrate: str = "128k",
) -> list[NormalizedAudio]:
    """Split ``audio`` into chunks that each fit under ``max_bytes``.

    The duration budget of a chunk is derived from the byte rate of the whole
    file. Chunks prefer to end in the middle of a detected silence so words
    are not cut; without a usable silence the chunk is cut at the budget.
    Audio that already fits is returned as the only chunk.
    """

    if max_bytes <= 0:
        raise ValueError("max_bytes must be positive")
    if len(audio.data) <= max_bytes:
        return [audio]

    source = PurePath(audio.filename)
    source_format = source.suffix.lstrip(".").lower() or "mp3"
    try:
        segment = AudioSegment.from_file(io.BytesIO(audio.data), format=source_format)
    except CouldntDecodeError as exc:
        raise ConversionFailed(f"Could not decode {audio.filename} for splitting") from exc

    total_ms = len(segment)
    if total_ms <= 0:
        return [audio]

    # wav chunks stay wav, everything else is re-encoded to mp3
    export_format = "wav" if source_format == "wav" else "mp3"
    max_chunk_ms = int(total_ms * max_bytes / len(audio.data) * 0.95)
    if max_chunk_ms <= 0:
        raise ValueError("max_bytes is too small to hold any audio")

    silences: List[Tuple[int, int]] = detect_silence(
        segment,
        min_silence_len=min_silence_len_ms,
        silence_thresh=silence_threshold_db,
        seek_step=seek_step_ms,
    )
    silences.sort(key=lambda pair: pair[0])
    min_chunk_ms = min(max_chunk_ms, max(500, max_chunk_ms // 4))

    chunks: list[NormalizedAudio] = []
    start = 0
    index = 1
    while start < total_ms:
        limit = min(start + max_chunk_ms, total_ms)
        end = limit
        if limit < total_ms:
            for silence_start, silence_end in silences:
                middle = (silence_start + silence_end) // 2
                if middle <= start + min_chunk_ms:
                    continue
                if middle > limit:
                    break
                end = middle

        buffer = io.BytesIO()
        kwargs = {} if export_format == "wav" else {"bitrate": export_bitrate}
        segment[start:end].export(buffer, format=export_format, **kwargs)
        chunks.append(
            NormalizedAudio(
                data=buffer.getvalue(),
                filename=f"{source.stem or 'audio'}_part{index:03d}.{export_format}",
            )
        )
        index += 1
        start = end

    logger.info("Split %s into %d chunks for transcription", audio.filename, len(chunks))
    return chunks

from __future__ import annotations


class MeetingTasksError(RuntimeError):
    """Base class for errors raised while turning meetings into tasks."""


class MalformedRequest(MeetingTasksError):
    """Raised when a request payload cannot be used as given."""


class NotFound(MeetingTasksError):
    """Raised when a task id does not exist in the store."""


class UnsupportedMediaType(MeetingTasksError):
    """Raised for uploads that are neither recognized audio nor video."""


class ConversionFailed(MeetingTasksError):
    """Raised when ffmpeg cannot produce an audio track from a video."""


class MediaStorageError(MeetingTasksError):
    """Raised when scratch files for a conversion cannot be written or read."""


class NoSpeechDetected(MeetingTasksError):
    """Raised when a media upload transcribes to an empty transcript."""


class UpstreamError(MeetingTasksError):
    """Failure reported by (or while reaching) an upstream AI service.

    ``upstream_unavailable`` is set for network, authentication, quota and
    server-side failures; it stays ``False`` when the service answered but
    rejected the input or returned something unusable.
    """

    def __init__(self, message: str, *, upstream_unavailable: bool = False) -> None:
        super().__init__(message)
        self.upstream_unavailable = upstream_unavailable


class TranscriptionFailed(UpstreamError):
    """Raised when the speech-to-text service cannot transcribe the audio."""


class ExtractionFailed(UpstreamError):
    """Raised when the language model call or its payload parsing fails."""


_UNAVAILABLE_STATUS = {401, 403, 408, 429}


def is_unavailable_status(status_code: int | None) -> bool:
    """Return ``True`` when an HTTP status means the service is unusable right now."""

    if status_code is None:
        return True
    return status_code in _UNAVAILABLE_STATUS or status_code >= 500

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePath
from tempfile import TemporaryDirectory
from typing import Any, Iterable

import requests
from dashscope import MultiModalConversation

from .errors import TranscriptionFailed, is_unavailable_status

logger = logging.getLogger(__name__)

_CONTENT_TYPES = {
    ".mp3": "audio/mp3",
    ".wav": "audio/wav",
    ".m4a": "audio/m4a",
}
DEFAULT_CONTENT_TYPE = "audio/mpeg"


def content_type_for(filename: str) -> str:
    """Guess the upload content type from ``filename``'s extension."""

    return _CONTENT_TYPES.get(PurePath(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)


def _error_detail(response: requests.Response | None) -> str:
    if response is None:
        return ""
    try:
        payload = response.json()
    except ValueError:
        return (response.text or "").strip()[:300]
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return str(payload)[:300]


class WhisperTranscriber:
    """Client for an OpenAI-compatible ``/audio/transcriptions`` endpoint."""

    def __init__(
        self,
        *,
        api_token: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        model: str = "whisper-1",
        timeout: int = 300,
    ) -> None:
        self.api_token = api_token or os.getenv("OPENAI_API_KEY")
        if not self.api_token:
            raise TranscriptionFailed("OPENAI_API_KEY is not set", upstream_unavailable=True)

        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    def transcribe(self, audio: bytes, filename: str) -> str:
        headers = {"Authorization": f"Bearer {self.api_token}"}
        files = {"file": (filename, audio, content_type_for(filename))}
        data = {"model": self.model}

        try:
            response = requests.post(
                f"{self.base_url}/audio/transcriptions",
                headers=headers,
                files=files,
                data=data,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            detail = _error_detail(exc.response)
            raise TranscriptionFailed(
                f"Failed to transcribe audio: API returned {status}" + (f": {detail}" if detail else ""),
                upstream_unavailable=is_unavailable_status(status),
            ) from exc
        except requests.RequestException as exc:
            raise TranscriptionFailed(
                f"Failed to transcribe audio: API request failed: {exc}",
                upstream_unavailable=True,
            ) from exc

        try:
            payload = response.json()
            text = payload["text"]
        except (ValueError, KeyError, TypeError) as exc:
            raise TranscriptionFailed("Failed to transcribe audio: unexpected response payload") from exc

        if not isinstance(text, str):
            raise TranscriptionFailed("Failed to transcribe audio: response text is not a string")

        logger.debug("Transcribed %s into %d characters", filename, len(text))
        return text


class BailianASRClient:
    """Client for the Alibaba Bailian ASR service using MultiModalConversation."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "qwen3-asr-flash",
        timeout: int = 300,
        system_prompt: str = "",
        language: str | None = None,
        default_asr_options: dict[str, Any] | None = None,
    ) -> None:
        resolved_api_key = api_key or os.getenv("BAILIAN_API_KEY")
        if not resolved_api_key:
            raise TranscriptionFailed("BAILIAN_API_KEY is not set", upstream_unavailable=True)
        self.api_key: str = str(resolved_api_key)

        self.model = model
        self.timeout = timeout
        self.system_prompt = system_prompt
        self.language = language
        self.default_asr_options = default_asr_options or {
            "enable_lid": True,
            "enable_itn": False,
        }

    def transcribe(self, audio: bytes, filename: str) -> str:
        suffix = PurePath(filename).suffix.lower() or ".mp3"

        asr_options: dict[str, Any] = {**self.default_asr_options}
        if self.language:
            asr_options["language"] = self.language

        # the SDK only accepts local file paths
        with TemporaryDirectory(prefix="meeting-tasks-asr-") as tmpdir:
            path = Path(tmpdir) / f"audio{suffix}"
            path.write_bytes(audio)

            messages = [
                {"role": "system", "content": [{"text": self.system_prompt}]},
                {"role": "user", "content": [{"audio": str(path)}]},
            ]

            try:
                response = MultiModalConversation.call(
                    model=self.model,
                    api_key=self.api_key,
                    messages=messages,
                    result_format="message",
                    asr_options=asr_options,
                    timeout=self.timeout,
                )
            except Exception as exc:  # noqa: BLE001 - the SDK raises plain exceptions for transport errors
                raise TranscriptionFailed(
                    f"Failed to transcribe audio: Bailian ASR request failed: {exc}",
                    upstream_unavailable=True,
                ) from exc

        error_code = self._get_attr_or_key(response, "code")
        if isinstance(error_code, str) and error_code.strip():
            error_message = self._get_attr_or_key(response, "message") or ""
            status = self._get_attr_or_key(response, "status_code")
            raise TranscriptionFailed(
                f"Failed to transcribe audio: Bailian ASR error: {error_code}: {error_message}",
                upstream_unavailable=is_unavailable_status(status if isinstance(status, int) else None),
            )

        transcript = self._extract_transcript(response)
        if transcript is None:
            raise TranscriptionFailed("Failed to transcribe audio: unexpected Bailian ASR response payload")

        return transcript

    @staticmethod
    def _get_attr_or_key(obj: Any, key: str) -> Any:
        if obj is None:
            return None
        if isinstance(obj, dict):
            return obj.get(key)
        return getattr(obj, key, None)

    @staticmethod
    def _extract_transcript(response: Any) -> str | None:
        output = BailianASRClient._get_attr_or_key(response, "output")
        if output is None:
            return None

        choices = BailianASRClient._get_attr_or_key(output, "choices")
        if not choices:
            return None

        message = BailianASRClient._get_attr_or_key(choices[0], "message")
        if not message:
            return None

        content = BailianASRClient._get_attr_or_key(message, "content")
        if isinstance(content, str):
            return content
        if isinstance(content, Iterable):
            for element in content:
                text_value = BailianASRClient._get_attr_or_key(element, "text")
                if isinstance(text_value, str):
                    return text_value
        return None

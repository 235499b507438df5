from __future__ import annotations

import json
import logging
import os
import re
from typing import Any

import json_repair
import requests

from .errors import ExtractionFailed, is_unavailable_status
from .models import NO_DEADLINE, CandidateTask

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert at parsing meeting transcripts and extracting actionable tasks. "
    "Always respond with valid JSON."
)

EXTRACTION_INSTRUCTIONS = (
    "Analyze the following meeting transcript and extract all actionable tasks. "
    "Pay special attention to deadlines and time references.\n\n"
    "Look for patterns like:\n"
    '- "John, you handle the... by Friday"\n'
    '- "Sarah will take care of... tomorrow"\n'
    '- "Mike please finish... by 5pm"\n'
    '- "Complete this by next week"\n'
    '- "Due by end of day"\n'
    '- "Before the meeting on Tuesday"\n\n'
    "Time references to look for:\n"
    '- Specific times: "by 5pm", "before 10am", "at 3:30"\n'
    '- Days: "today", "tomorrow", "Monday", "Friday", "next Tuesday"\n'
    '- Relative time: "this week", "next week", "end of month", "by EOD"\n'
    '- Dates: "by January 15th", "before the 20th"\n\n'
    'Return the results as a JSON object with a "tasks" array:\n'
    "{\n"
    '  "tasks": [\n'
    "    {\n"
    '      "description": "brief task description",\n'
    '      "assignee": "person assigned to the task",\n'
    '      "deadline": "exact deadline mentioned (preserve original phrasing)",\n'
    '      "priority": "P3"\n'
    "    }\n"
    "  ]\n"
    "}\n\n"
    "IMPORTANT: Capture the exact deadline phrasing from the transcript. "
    f'If no specific deadline is mentioned, write "{NO_DEADLINE}". '
    "Always default priority to P3 unless P1 or P2 is explicitly mentioned.\n\n"
    "Meeting transcript:\n"
)


class TaskExtractor:
    """Extract candidate tasks from a transcript with an OpenAI-compatible chat model."""

    def __init__(
        self,
        *,
        api_token: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o",
        temperature: float = 0.1,
        timeout: int = 120,
    ) -> None:
        self.api_token = api_token or os.getenv("OPENAI_API_KEY")
        if not self.api_token:
            raise ExtractionFailed("OPENAI_API_KEY is not set", upstream_unavailable=True)

        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    def extract(self, transcript: str) -> list[CandidateTask]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": EXTRACTION_INSTRUCTIONS + transcript},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise ExtractionFailed(
                f"Failed to process transcript with AI: API returned {status}",
                upstream_unavailable=is_unavailable_status(status),
            ) from exc
        except requests.RequestException as exc:
            raise ExtractionFailed(
                f"Failed to process transcript with AI: API request failed: {exc}",
                upstream_unavailable=True,
            ) from exc

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ExtractionFailed("Failed to process transcript with AI: unexpected response payload") from exc

        logger.debug("Extraction response: %s", content)
        items = self.parse_items(content)
        candidates = [CandidateTask.from_payload(item) for item in items]
        logger.info("Model returned %d candidate tasks", len(candidates))
        return candidates

    @staticmethod
    def parse_items(content: Any) -> list[Any]:
        """Return the raw task list from the model's message content.

        Accepts either ``{"tasks": [...]}`` or a bare ``[...]``; an empty
        message counts as no tasks.
        """

        if content is None:
            return []
        if not isinstance(content, str):
            raise ExtractionFailed("Failed to parse AI response: content is not text")

        text = content.strip()
        if not text:
            return []
        fenced = re.search(r"```(?:json)?\s*(.*?)```", text, flags=re.DOTALL)
        if fenced:
            text = fenced.group(1).strip()

        parsed = TaskExtractor._load(text)
        if isinstance(parsed, list):
            return parsed
        if isinstance(parsed, dict):
            tasks = parsed.get("tasks", [])
            if tasks is None:
                return []
            if isinstance(tasks, list):
                return tasks
            raise ExtractionFailed("Failed to parse AI response: 'tasks' is not a list")
        raise ExtractionFailed("Failed to parse AI response: expected a JSON object or array")

    @staticmethod
    def _load(text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass
        try:
            repaired = json_repair.loads(text)
        except Exception as exc:  # noqa: BLE001 - json_repair raises assorted errors on garbage
            raise ExtractionFailed("Failed to parse AI response: invalid JSON") from exc
        # json_repair turns unparseable text into "" rather than raising
        if repaired in ("", None):
            raise ExtractionFailed("Failed to parse AI response: invalid JSON")
        return repaired

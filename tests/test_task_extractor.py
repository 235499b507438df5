from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests

AMAN_RAJIV = "Aman, take the landing page by 10pm tomorrow. Rajiv, take care of client follow-up by Wednesday."


def _setup_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "token")


def _completion(content: object) -> MagicMock:
    mock_response = MagicMock()
    mock_response.json.return_value = {"choices": [{"message": {"content": content}}]}
    mock_response.raise_for_status.return_value = None
    return mock_response


def test_extract_posts_json_mode_request(monkeypatch: pytest.MonkeyPatch) -> None:
    from meeting_tasks.extractor import TaskExtractor
    from meeting_tasks.models import CandidateTask

    _setup_env(monkeypatch)

    content = json.dumps(
        {
            "tasks": [
                {"description": "Build the landing page", "assignee": "Aman", "deadline": "by 10pm tomorrow", "priority": "P3"},
                {"description": "Client follow-up", "assignee": "Rajiv", "deadline": "by Wednesday"},
            ]
        }
    )
    captured_payload: dict = {}

    def fake_post(url: str, headers: dict, json: dict, timeout: int) -> MagicMock:  # type: ignore[override]
        captured_payload.update(url=url, headers=headers, json=json, timeout=timeout)
        return _completion(content)

    monkeypatch.setattr("meeting_tasks.extractor.requests.post", fake_post)

    candidates = TaskExtractor().extract(AMAN_RAJIV)

    assert candidates == [
        CandidateTask("Build the landing page", "Aman", "by 10pm tomorrow", "P3"),
        CandidateTask("Client follow-up", "Rajiv", "by Wednesday", "P3"),
    ]
    assert captured_payload["url"] == "https://api.openai.com/v1/chat/completions"
    assert captured_payload["headers"]["Authorization"] == "Bearer token"
    assert captured_payload["timeout"] == 120
    payload = captured_payload["json"]
    assert payload["model"] == "gpt-4o"
    assert payload["temperature"] == 0.1
    assert payload["response_format"] == {"type": "json_object"}
    user_prompt = payload["messages"][1]["content"]
    assert user_prompt.endswith(AMAN_RAJIV)
    assert "No deadline specified" in user_prompt
    assert "default priority to P3" in user_prompt


def test_extract_accepts_bare_list(monkeypatch: pytest.MonkeyPatch) -> None:
    from meeting_tasks.extractor import TaskExtractor

    _setup_env(monkeypatch)
    content = json.dumps([{"description": "Ship", "assignee": "Ana", "deadline": "Friday", "priority": "P1"}])
    monkeypatch.setattr("meeting_tasks.extractor.requests.post", lambda *args, **kwargs: _completion(content))

    [candidate] = TaskExtractor().extract("Ana ships Friday, P1.")

    assert candidate.assignee == "Ana"
    assert candidate.priority == "P1"


def test_extract_coerces_missing_and_non_text_fields(monkeypatch: pytest.MonkeyPatch) -> None:
    from meeting_tasks.extractor import TaskExtractor
    from meeting_tasks.models import CandidateTask

    _setup_env(monkeypatch)
    content = json.dumps({"tasks": [{"description": "Call vendor", "deadline": 5}, "not-an-object"]})
    monkeypatch.setattr("meeting_tasks.extractor.requests.post", lambda *args, **kwargs: _completion(content))

    candidates = TaskExtractor().extract("something")

    assert candidates == [
        CandidateTask(description="Call vendor", assignee="", deadline="5", priority="P3"),
        CandidateTask(),
    ]


def test_extract_treats_missing_tasks_key_as_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    from meeting_tasks.extractor import TaskExtractor

    _setup_env(monkeypatch)
    monkeypatch.setattr("meeting_tasks.extractor.requests.post", lambda *args, **kwargs: _completion("{}"))

    assert TaskExtractor().extract("small talk only") == []


@pytest.mark.parametrize(
    "content",
    [
        '```json\n{"tasks": [{"description": "A", "assignee": "B", "deadline": "C"}]}\n```',
        '{"tasks": [{"description": "A", "assignee": "B", "deadline": "C",}]}',
    ],
)
def test_extract_recovers_fenced_or_sloppy_json(monkeypatch: pytest.MonkeyPatch, content: str) -> None:
    from meeting_tasks.extractor import TaskExtractor

    _setup_env(monkeypatch)
    monkeypatch.setattr("meeting_tasks.extractor.requests.post", lambda *args, **kwargs: _completion(content))

    [candidate] = TaskExtractor().extract("x")
    assert (candidate.description, candidate.assignee, candidate.deadline) == ("A", "B", "C")


@pytest.mark.parametrize("content", ['"just a sentence"', "42", '{"tasks": "none"}'])
def test_extract_rejects_unexpected_shapes(monkeypatch: pytest.MonkeyPatch, content: str) -> None:
    from meeting_tasks.errors import ExtractionFailed
    from meeting_tasks.extractor import TaskExtractor

    _setup_env(monkeypatch)
    monkeypatch.setattr("meeting_tasks.extractor.requests.post", lambda *args, **kwargs: _completion(content))

    with pytest.raises(ExtractionFailed) as excinfo:
        TaskExtractor().extract("x")
    assert excinfo.value.upstream_unavailable is False


def test_extract_rejects_payload_without_choices(monkeypatch: pytest.MonkeyPatch) -> None:
    from meeting_tasks.errors import ExtractionFailed
    from meeting_tasks.extractor import TaskExtractor

    _setup_env(monkeypatch)
    mock_response = MagicMock()
    mock_response.json.return_value = {"choices": []}
    monkeypatch.setattr("meeting_tasks.extractor.requests.post", lambda *args, **kwargs: mock_response)

    with pytest.raises(ExtractionFailed, match="unexpected response payload"):
        TaskExtractor().extract("x")


def test_extract_marks_connection_errors_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    from meeting_tasks.errors import ExtractionFailed
    from meeting_tasks.extractor import TaskExtractor

    _setup_env(monkeypatch)

    def boom(*_args, **_kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr("meeting_tasks.extractor.requests.post", boom)

    with pytest.raises(ExtractionFailed, match="connection refused") as excinfo:
        TaskExtractor().extract("x")
    assert excinfo.value.upstream_unavailable is True


def test_extract_marks_rate_limit_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    from meeting_tasks.errors import ExtractionFailed
    from meeting_tasks.extractor import TaskExtractor

    _setup_env(monkeypatch)
    response = requests.Response()
    response.status_code = 429
    mock_response = MagicMock()
    mock_response.raise_for_status.side_effect = requests.HTTPError("429", response=response)
    monkeypatch.setattr("meeting_tasks.extractor.requests.post", lambda *args, **kwargs: mock_response)

    with pytest.raises(ExtractionFailed, match="429") as excinfo:
        TaskExtractor().extract("x")
    assert excinfo.value.upstream_unavailable is True


def test_extractor_without_api_key_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    from meeting_tasks.errors import ExtractionFailed
    from meeting_tasks.extractor import TaskExtractor

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ExtractionFailed, match="OPENAI_API_KEY") as excinfo:
        TaskExtractor()

    assert excinfo.value.upstream_unavailable

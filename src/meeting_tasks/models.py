from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from .errors import MalformedRequest

PRIORITIES = ("P1", "P2", "P3")
DEFAULT_PRIORITY = "P3"
NO_DEADLINE = "No deadline specified"

EDITABLE_FIELDS = ("description", "assignee", "deadline", "priority")
_TEXT_FIELDS = ("description", "assignee", "deadline")


def normalize_priority(value: Any) -> str:
    """Map ``value`` onto one of ``P1``/``P2``/``P3``, defaulting to ``P3``."""

    if value is None:
        return DEFAULT_PRIORITY
    candidate = str(value).strip().upper()
    return candidate if candidate in PRIORITIES else DEFAULT_PRIORITY


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True)
class CandidateTask:
    """Task-shaped item returned by the language model, not yet validated."""

    description: str = ""
    assignee: str = ""
    deadline: str = ""
    priority: str = DEFAULT_PRIORITY

    @classmethod
    def from_payload(cls, item: Any) -> "CandidateTask":
        if not isinstance(item, Mapping):
            return cls()
        priority = item.get("priority")
        return cls(
            description=_as_text(item.get("description")),
            assignee=_as_text(item.get("assignee")),
            deadline=_as_text(item.get("deadline")),
            priority=DEFAULT_PRIORITY if priority in (None, "") else _as_text(priority),
        )


@dataclass(frozen=True)
class NewTask:
    description: str
    assignee: str
    deadline: str
    priority: str = DEFAULT_PRIORITY


@dataclass(frozen=True)
class Task:
    id: int
    description: str
    assignee: str
    deadline: str
    priority: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "assignee": self.assignee,
            "deadline": self.deadline,
            "priority": self.priority,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class User:
    id: int
    username: str
    password: str


def validate_candidate(candidate: CandidateTask) -> NewTask | None:
    """Turn ``candidate`` into a storable task, or ``None`` if a field is missing."""

    description = candidate.description.strip()
    assignee = candidate.assignee.strip()
    deadline = candidate.deadline.strip()
    if not (description and assignee and deadline):
        return None
    return NewTask(
        description=description,
        assignee=assignee,
        deadline=deadline,
        priority=normalize_priority(candidate.priority),
    )


def parse_task_updates(payload: Any) -> dict[str, str]:
    """Pick the editable fields out of a PUT body.

    Unknown keys are ignored so that clients may send back a full task record
    (``id`` and ``createdAt`` included) without changing either.
    """

    if not isinstance(payload, Mapping):
        raise MalformedRequest("Task update must be a JSON object")

    updates: dict[str, str] = {}
    for field in EDITABLE_FIELDS:
        if field not in payload:
            continue
        value = payload[field]
        if not isinstance(value, str):
            raise MalformedRequest(f"Field '{field}' must be a string")
        if field in _TEXT_FIELDS:
            value = value.strip()
            if not value:
                raise MalformedRequest(f"Field '{field}' cannot be empty")
        else:
            value = value.strip().upper()
            if value not in PRIORITIES:
                raise MalformedRequest("Priority must be one of P1, P2, P3")
        updates[field] = value
    return updates

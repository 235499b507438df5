from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Mapping

from .models import DEFAULT_PRIORITY, EDITABLE_FIELDS, NewTask, Task, User

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStore:
    """In-process repository of tasks (and the unused user accounts).

    Everything lives in memory and is lost when the process exits. Each
    operation holds the store lock for its whole duration, so concurrent
    requests never observe a half-applied change.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._tasks: dict[int, Task] = {}
        self._users: dict[int, User] = {}
        self._next_task_id = 1
        self._next_user_id = 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def insert(self, new_task: NewTask) -> Task:
        with self._lock:
            task = Task(
                id=self._next_task_id,
                description=new_task.description,
                assignee=new_task.assignee,
                deadline=new_task.deadline,
                priority=new_task.priority or DEFAULT_PRIORITY,
                created_at=self._clock(),
            )
            self._next_task_id += 1
            self._tasks[task.id] = task
        logger.debug("Stored task %d for %s", task.id, task.assignee)
        return task

    def get_all(self) -> list[Task]:
        with self._lock:
            tasks = list(self._tasks.values())
        return sorted(tasks, key=lambda task: (task.created_at, task.id), reverse=True)

    def get(self, task_id: int) -> Task | None:
        with self._lock:
            return self._tasks.get(task_id)

    def update(self, task_id: int, fields: Mapping[str, str]) -> Task | None:
        changes = {key: value for key, value in fields.items() if key in EDITABLE_FIELDS}
        with self._lock:
            existing = self._tasks.get(task_id)
            if existing is None:
                return None
            updated = replace(existing, **changes)
            self._tasks[task_id] = updated
        return updated

    def delete(self, task_id: int) -> bool:
        with self._lock:
            return self._tasks.pop(task_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            removed = len(self._tasks)
            self._tasks.clear()
        logger.info("Cleared %d tasks", removed)

    # User accounts are kept for parity with the task API; nothing in the
    # extraction pipeline reads them.

    def create_user(self, username: str, password: str) -> User:
        with self._lock:
            user = User(id=self._next_user_id, username=username, password=password)
            self._next_user_id += 1
            self._users[user.id] = user
        return user

    def get_user(self, user_id: int) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def get_user_by_username(self, username: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return user
        return None

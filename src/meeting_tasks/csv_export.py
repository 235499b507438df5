from __future__ import annotations

import csv
import io
from datetime import date
from typing import Iterable

from .models import Task

CSV_HEADER = ("Task", "Assigned To", "Due Date/Time", "Priority")


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def export_tasks_csv(tasks: Iterable[Task]) -> str:
    """Render ``tasks`` as CSV with the text columns always quoted."""

    lines = [",".join(CSV_HEADER)]
    for task in tasks:
        lines.append(
            ",".join(
                [
                    _quote(task.description),
                    _quote(task.assignee),
                    _quote(task.deadline),
                    task.priority,
                ]
            )
        )
    return "\n".join(lines)


def parse_tasks_csv(text: str) -> list[dict[str, str]]:
    """Read back a file written by :func:`export_tasks_csv`."""

    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if header is None:
        return []
    if tuple(header) != CSV_HEADER:
        raise ValueError(f"Unexpected CSV header: {header}")

    rows: list[dict[str, str]] = []
    for record in reader:
        if not record:
            continue
        description, assignee, deadline, priority = record
        rows.append(
            {
                "description": description,
                "assignee": assignee,
                "deadline": deadline,
                "priority": priority,
            }
        )
    return rows


def export_filename(day: date | None = None) -> str:
    return f"tasks-{(day or date.today()).isoformat()}.csv"

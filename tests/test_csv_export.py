from __future__ import annotations

from datetime import date, datetime, timezone

from meeting_tasks.csv_export import export_filename, export_tasks_csv, parse_tasks_csv
from meeting_tasks.models import Task

_NOW = datetime(2024, 5, 13, tzinfo=timezone.utc)


def test_export_quotes_text_columns_only() -> None:
    tasks = [Task(1, "Build landing page", "Aman", "by 10pm tomorrow", "P3", _NOW)]

    assert export_tasks_csv(tasks) == (
        "Task,Assigned To,Due Date/Time,Priority\n"
        '"Build landing page","Aman","by 10pm tomorrow",P3'
    )


def test_export_of_no_tasks_is_header_only() -> None:
    assert export_tasks_csv([]) == "Task,Assigned To,Due Date/Time,Priority"


def test_round_trip_preserves_commas_and_quotes() -> None:
    tasks = [
        Task(1, 'Review "Q3, final" deck', "Lee, Jordan", 'before "launch", Friday', "P1", _NOW),
        Task(2, "Line one\nline two", 'O"Brien', "No deadline specified", "P3", _NOW),
    ]

    rows = parse_tasks_csv(export_tasks_csv(tasks))

    assert rows == [
        {"description": task.description, "assignee": task.assignee, "deadline": task.deadline, "priority": task.priority}
        for task in tasks
    ]


def test_export_filename_uses_iso_date() -> None:
    assert export_filename(date(2024, 5, 13)) == "tasks-2024-05-13.csv"

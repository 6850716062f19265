"""
Presentation helpers for task lists.

Small pure functions that turn task records and scores into the values
the dashboard, task cards and calendar view show. Like the scorer, every
function that depends on the current day takes ``now`` explicitly.
"""

from collections import OrderedDict
from datetime import date
from typing import Dict, Iterable, List

from .records import DueDate, Task
from .scoring import calendar_day, days_until_due


def format_priority_score(score: float) -> str:
    """Format a priority score with two decimal places."""
    return f"{score:.2f}"


def priority_class(weight: int) -> str:
    """CSS class used to color a task card by weight."""
    return f"priority-{weight}"


def due_label(due_date: DueDate, now: DueDate) -> str:
    """
    Human-readable due status, e.g. "Due today" or "Overdue by 3 days".
    """
    days = days_until_due(due_date, now)
    if days == 0:
        return "Due today"
    if days == 1:
        return "Due tomorrow"
    if days < 0:
        overdue = abs(days)
        return f"Overdue by {overdue} day{'s' if overdue != 1 else ''}"
    return f"Due in {days} days"


def group_by_due_date(
    flat_tasks: Iterable[Task],
    now: DueDate,
    include_completed: bool = False
) -> Dict[date, List[Task]]:
    """
    Group tasks by the calendar day they are due, for the calendar view.

    Days are computed in ``now``'s timezone and returned in ascending
    order; tasks within a day keep input order.
    """
    grouped: Dict[date, List[Task]] = {}
    for task in flat_tasks:
        if task.completed and not include_completed:
            continue
        day = calendar_day(task.due_date, now)
        grouped.setdefault(day, []).append(task)
    return OrderedDict(sorted(grouped.items()))


def due_soon_counts(flat_tasks: Iterable[Task], now: DueDate) -> Dict[str, int]:
    """Count open tasks that are overdue, due today and due tomorrow."""
    counts = {'overdue': 0, 'due_today': 0, 'due_tomorrow': 0}
    for task in flat_tasks:
        if task.completed:
            continue
        days = days_until_due(task.due_date, now)
        if days < 0:
            counts['overdue'] += 1
        elif days == 0:
            counts['due_today'] += 1
        elif days == 1:
            counts['due_tomorrow'] += 1
    return counts

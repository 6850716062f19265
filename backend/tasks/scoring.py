"""
Priority Scoring Algorithm for the Task Planner.

Each task gets an urgency score derived from its importance weight and
how many calendar days remain until it is due.

Scoring Formula:
---------------
days = calendar days from today to the due day (both truncated to midnight)

days >= 0 (pending):   score = weight / (days + 1)
days <  0 (overdue):   score = weight / (|days| + 0.5)

A weight-5 task due today scores exactly 5.0; due in 6 days it scores 5/7.
The overdue branch uses a smaller offset, so one day overdue (5/1.5)
scores higher than two days away and overdue urgency keeps growing the
longer a task stays open. There is no upper clamp.

The score is never stored. It depends on "now", which callers always pass
explicitly.
"""

from datetime import date, datetime
from typing import Iterable, List, Optional

from .errors import InvalidWeight
from .hierarchy import map_forest
from .records import DueDate, ScoredTask, Task, TaskNode, parse_due_date


# ==================== Constants ====================

MIN_WEIGHT = 1
MAX_WEIGHT = 5

PENDING_OFFSET = 1      # denominator offset for tasks due today or later
OVERDUE_OFFSET = 0.5    # denominator offset for overdue tasks


# ==================== Validation ====================

def validate_weight(weight: object, task_id: Optional[str] = None) -> int:
    """
    Return ``weight`` unchanged if it is an int in [1, 5].

    Raises:
        InvalidWeight: for any other value, including bools and floats.
    """
    if isinstance(weight, bool) or not isinstance(weight, int):
        raise InvalidWeight(
            f"Weight must be an integer between {MIN_WEIGHT} and {MAX_WEIGHT}, got {weight!r}",
            task_id=task_id
        )
    if weight < MIN_WEIGHT or weight > MAX_WEIGHT:
        raise InvalidWeight(
            f"Weight must be between {MIN_WEIGHT} and {MAX_WEIGHT}, got {weight}",
            task_id=task_id
        )
    return weight


# ==================== Day arithmetic ====================

def calendar_day(value: DueDate, now: DueDate) -> date:
    """Truncate a date or datetime to its calendar day in ``now``'s timezone."""
    if isinstance(value, datetime):
        if (
            value.tzinfo is not None
            and isinstance(now, datetime)
            and now.tzinfo is not None
        ):
            value = value.astimezone(now.tzinfo)
        return value.date()
    return value


def days_until_due(due_date: DueDate, now: DueDate) -> int:
    """
    Whole calendar days from ``now`` to ``due_date``.

    Both values are truncated to midnight before subtracting, so a due time
    later today still yields 0. Negative results mean overdue.
    """
    due_day = calendar_day(due_date, now)
    today = calendar_day(now, now)
    return (due_day - today).days


# ==================== Scoring ====================

def calculate_priority_score(
    weight: int,
    due_date: object,
    now: DueDate,
    task_id: Optional[str] = None
) -> float:
    """
    Calculate the urgency score of a single task.

    Args:
        weight: Importance from 1 to 5
        due_date: Date, datetime or ISO-8601 string
        now: Reference moment, usually ``django.utils.timezone.now()``
        task_id: Only used to enrich error reports

    Returns:
        A score > 0. Higher means more urgent.

    Raises:
        InvalidWeight: weight outside [1, 5]
        InvalidDueDate: missing or unparseable due date
    """
    weight = validate_weight(weight, task_id=task_id)
    due = parse_due_date(due_date, task_id=task_id)
    days = days_until_due(due, now)

    if days < 0:
        return weight / (abs(days) + OVERDUE_OFFSET)
    return weight / (days + PENDING_OFFSET)


def score_task(task: Task, now: DueDate) -> float:
    """Score a task record."""
    return calculate_priority_score(task.weight, task.due_date, now, task_id=task.id)


def score_tree(forest: Iterable[TaskNode], now: DueDate) -> List[ScoredTask]:
    """
    Score every node of a forest, at every depth.

    Each node's score is computed from its own weight and due date only;
    a subtask's urgency is independent of its parent's. Returns new
    ``ScoredTask`` trees with the same shape and order.
    """
    def score_node(node: TaskNode, children: List[ScoredTask]) -> ScoredTask:
        return ScoredTask(
            task=node.task,
            priority_score=score_task(node.task, now),
            children=tuple(children)
        )

    return map_forest(list(forest), score_node)

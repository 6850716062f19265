"""
Task records and the derived tree nodes built from them.

A ``Task`` is the flat record supplied by the persistence collaborator.
``TaskNode`` and ``ScoredTask`` are derived, non-persisted views produced
by the hierarchy builder and the priority scorer. All three are frozen:
operations return new objects rather than mutating their input.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from django.utils.dateparse import parse_date, parse_datetime

from .errors import InvalidDueDate, InvalidTaskField


DueDate = Union[date, datetime]


@dataclass(frozen=True)
class Task:
    """
    A flat task record as stored.

    Attributes:
        id: Opaque unique identifier, immutable once assigned
        title: Non-empty display string
        due_date: Date, optionally with a time of day
        weight: Importance from 1 (low) to 5 (high)
        parent_id: Id of the owning task, or None for a root task
        description: Optional free text
        completed: Completed tasks are kept for history but never urgent
        created_at: Set by the persistence collaborator
        updated_at: Set by the persistence collaborator
        calendar_event_id: External calendar reference, carried through as-is
    """
    id: str
    title: str
    due_date: DueDate
    weight: int
    parent_id: Optional[str] = None
    description: str = ''
    completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    calendar_event_id: Optional[str] = None


@dataclass(frozen=True)
class TaskNode:
    """A task together with its direct subtasks."""
    task: Task
    children: Tuple['TaskNode', ...] = field(default_factory=tuple)

    @property
    def id(self) -> str:
        return self.task.id


@dataclass(frozen=True)
class ScoredTask:
    """A task annotated with its priority score, plus its scored subtasks."""
    task: Task
    priority_score: float
    children: Tuple['ScoredTask', ...] = field(default_factory=tuple)

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def parent_id(self) -> Optional[str]:
        return self.task.parent_id

    @property
    def title(self) -> str:
        return self.task.title

    @property
    def weight(self) -> int:
        return self.task.weight

    @property
    def due_date(self) -> DueDate:
        return self.task.due_date

    @property
    def completed(self) -> bool:
        return self.task.completed


def parse_due_date(value: Any, task_id: Optional[str] = None) -> DueDate:
    """
    Normalize a due date to a ``date`` or ``datetime``.

    Accepts date/datetime objects and ISO-8601 strings, either date-only
    ("2025-06-01") or with a time of day ("2025-06-01T17:30:00Z").

    Raises:
        InvalidDueDate: if the value is missing, of another type, or a
            string that is not a valid ISO date.
    """
    if value is None or value == '':
        raise InvalidDueDate("Due date is required", task_id=task_id)

    if isinstance(value, (datetime, date)):
        return value

    if not isinstance(value, str):
        raise InvalidDueDate(
            f"Due date must be a date or an ISO-8601 string, got {type(value).__name__}",
            task_id=task_id
        )

    text = value.strip()
    try:
        # parse_date first: date-only strings stay plain dates
        parsed = parse_date(text) or parse_datetime(text)
    except ValueError:
        parsed = None

    if parsed is None:
        raise InvalidDueDate(f"Unparseable due date: {value!r}", task_id=task_id)
    return parsed


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_datetime(str(value))
    except ValueError:
        return None


def task_from_dict(data: Mapping[str, Any]) -> Task:
    """
    Build a ``Task`` from a mapping.

    Both snake_case keys and the camelCase keys used by the web client
    (``parentId``, ``dueDate``, ``createdAt``...) are understood. The
    due date is parsed eagerly so a bad record fails at ingestion.
    """
    def pick(snake: str, camel: str, default: Any = None) -> Any:
        if snake in data:
            return data[snake]
        return data.get(camel, default)

    task_id = str(data['id'])
    parent_id = pick('parent_id', 'parentId')
    completed = data.get('completed', False)
    if not isinstance(completed, bool):
        raise InvalidTaskField(
            f"completed must be a boolean, got {completed!r}",
            task_id=task_id, field='completed'
        )

    return Task(
        id=task_id,
        title=data.get('title', ''),
        due_date=parse_due_date(pick('due_date', 'dueDate'), task_id=task_id),
        weight=data.get('weight'),
        parent_id=str(parent_id) if parent_id is not None else None,
        description=data.get('description') or '',
        completed=completed,
        created_at=_parse_timestamp(pick('created_at', 'createdAt')),
        updated_at=_parse_timestamp(pick('updated_at', 'updatedAt')),
        calendar_event_id=pick('calendar_event_id', 'calendarEventId'),
    )


def task_to_dict(task: Task) -> Dict[str, Any]:
    """Convert a Task to a dictionary for JSON serialization."""
    return {
        'id': task.id,
        'parent_id': task.parent_id,
        'title': task.title,
        'description': task.description,
        'due_date': task.due_date.isoformat(),
        'weight': task.weight,
        'completed': task.completed,
        'created_at': task.created_at.isoformat() if task.created_at else None,
        'updated_at': task.updated_at.isoformat() if task.updated_at else None,
        'calendar_event_id': task.calendar_event_id,
    }


def scored_task_to_dict(node: ScoredTask, include_children: bool = True) -> Dict[str, Any]:
    """
    Convert a ScoredTask to a dictionary.

    With ``include_children`` the whole subtree is serialized under
    ``children``; flat lists such as the top-K ranking pass False.
    """
    if not include_children:
        result = task_to_dict(node.task)
        result['priority_score'] = node.priority_score
        return result

    # Pre-order walk, then fill dicts bottom-up so deep chains never recurse
    order = []
    stack = [node]
    while stack:
        current = stack.pop()
        order.append(current)
        stack.extend(reversed(current.children))

    built: Dict[int, Dict[str, Any]] = {}
    for current in reversed(order):
        result = task_to_dict(current.task)
        result['priority_score'] = current.priority_score
        result['children'] = [built[id(child)] for child in current.children]
        built[id(current)] = result
    return built[id(node)]

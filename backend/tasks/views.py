"""
API Views for the Task Planner.

Stateless REST endpoints over the priority engine. Each request posts a
flat task snapshot; the response is the derived hierarchy, ranking or
calendar view. Contract violations raised by the core are translated into
HTTP 400 responses carrying an error code.
"""

import logging
from collections import deque
from typing import List

from django.conf import settings
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, throttle_classes
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from .display import (
    due_label,
    due_soon_counts,
    format_priority_score,
    group_by_due_date,
    priority_class,
)
from .errors import ErrorCode, TaskContractError
from .hierarchy import build_hierarchy, flatten_forest, map_forest
from .records import ScoredTask, Task, scored_task_to_dict, task_from_dict, task_to_dict
from .scoring import score_tree
from .selection import top_k, urgent_tasks
from .serializers import (
    CalendarInputSerializer,
    TaskSnapshotSerializer,
    TopTasksInputSerializer,
)

logger = logging.getLogger(__name__)


# ============================================
# RATE LIMITING CLASSES
# ============================================

class PlannerRateThrottle(AnonRateThrottle):
    """Rate limit for the task endpoints; the rate comes from the 'planner' scope."""
    scope = 'planner'


# ============================================
# HELPERS
# ============================================

SNAPSHOT_EXAMPLE = OpenApiExample(
    'Task snapshot',
    value={
        'now': '2025-06-02T09:00:00Z',
        'tasks': [
            {'id': 'task-1', 'title': 'Launch campaign', 'dueDate': '2025-06-05', 'weight': 5},
            {'id': 'task-2', 'parentId': 'task-1', 'title': 'Write copy',
             'dueDate': '2025-06-03', 'weight': 4},
        ]
    },
    request_only=True
)


FIELD_ERROR_CODES = {
    'weight': ErrorCode.ERR_INVALID_WEIGHT,
    'due_date': ErrorCode.ERR_INVALID_DUE_DATE,
    'count': ErrorCode.ERR_INVALID_TOP_K_COUNT,
    'completed': ErrorCode.ERR_INVALID_FIELD,
}


def _only_missing(details) -> bool:
    return isinstance(details, list) and all(
        getattr(detail, 'code', None) == 'required' for detail in details
    )


def _error_code_for(errors) -> ErrorCode:
    """
    Pick the taxonomy code for serializer errors.

    Walks the nested per-task errors breadth first and returns the code of
    the first field that was present but rejected. Absent fields and
    anything unmapped fall back to ERR_MISSING_FIELD.
    """
    pending = deque([errors])
    while pending:
        current = pending.popleft()
        if isinstance(current, dict):
            for key, details in current.items():
                if key in FIELD_ERROR_CODES and not _only_missing(details):
                    return FIELD_ERROR_CODES[key]
                pending.append(details)
        elif isinstance(current, list):
            pending.extend(current)
    return ErrorCode.ERR_MISSING_FIELD


def _invalid_input(serializer) -> Response:
    logger.info("Rejected task snapshot: %s", serializer.errors)
    tasks = serializer.initial_data.get('tasks') if hasattr(serializer.initial_data, 'get') else None
    if isinstance(tasks, list) and not tasks:
        code, message = ErrorCode.ERR_EMPTY_TASKS, 'No tasks provided. Please submit at least one task.'
    else:
        code, message = _error_code_for(serializer.errors), 'Invalid input data. Please check your tasks format.'
    return Response(
        {
            'success': False,
            'error_code': code.value,
            'errors': serializer.errors,
            'message': message
        },
        status=status.HTTP_400_BAD_REQUEST
    )


def _contract_violation(exc: TaskContractError) -> Response:
    logger.info("Task contract violation: %s", exc.message)
    body = {'success': False}
    body.update(exc.to_dict())
    return Response(body, status=status.HTTP_400_BAD_REQUEST)


def _snapshot(validated_data) -> List[Task]:
    return [task_from_dict(item) for item in validated_data['tasks']]


def _reference_now(validated_data):
    return validated_data.get('now') or timezone.localtime()


def _present(node: ScoredTask, now, include_children: bool = True) -> dict:
    """Serialize a scored task with its display hints."""
    def describe(current: ScoredTask, children: List[dict]) -> dict:
        result = scored_task_to_dict(current, include_children=False)
        result['formatted_score'] = format_priority_score(current.priority_score)
        result['priority_class'] = priority_class(current.weight)
        result['due_label'] = due_label(current.due_date, now)
        if include_children:
            result['children'] = children
        return result

    if not include_children:
        return describe(node, [])
    return map_forest([node], describe)[0]


# ============================================
# ENDPOINTS
# ============================================

@extend_schema(
    summary="Build the scored task hierarchy",
    description="""
    Turn a flat task list into a forest of root tasks with nested subtasks.
    Every node carries its own priority score. Tasks whose parent is unknown
    become roots; parent cycles are broken so the result is always a forest.
    """,
    request=TaskSnapshotSerializer,
    responses={200: OpenApiTypes.OBJECT},
    examples=[SNAPSHOT_EXAMPLE],
    tags=['Hierarchy']
)
@api_view(['POST'])
@throttle_classes([PlannerRateThrottle])
def task_hierarchy(request: Request) -> Response:
    """
    Return the scored forest for a task snapshot.

    POST /api/tasks/hierarchy/

    Request Body:
    {
        "tasks": [...],
        "now": "2025-06-02T09:00:00Z"      // Optional, defaults to server time
    }
    """
    serializer = TaskSnapshotSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_input(serializer)

    now = _reference_now(serializer.validated_data)
    try:
        forest = score_tree(build_hierarchy(_snapshot(serializer.validated_data)), now)
    except TaskContractError as exc:
        return _contract_violation(exc)

    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'now': now.isoformat(),
        'count': len(flatten_forest(forest)),
        'root_count': len(forest),
        'tasks': [_present(node, now) for node in forest]
    })


@extend_schema(
    summary="Get the most urgent tasks",
    description="""
    Rank every task in the snapshot, at any nesting depth, by descending
    priority score and return the top ones. Completed tasks are excluded
    unless include_completed is true.
    """,
    request=TopTasksInputSerializer,
    responses={200: OpenApiTypes.OBJECT},
    examples=[SNAPSHOT_EXAMPLE],
    tags=['Ranking']
)
@api_view(['POST'])
@throttle_classes([PlannerRateThrottle])
def top_tasks(request: Request) -> Response:
    """
    Return the top-K most urgent tasks.

    POST /api/tasks/top/

    Request Body:
    {
        "tasks": [...],
        "count": 5,                        // Optional, default TOP_TASK_COUNT
        "include_completed": false,        // Optional
        "now": "2025-06-02T09:00:00Z"      // Optional
    }
    """
    serializer = TopTasksInputSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_input(serializer)

    data = serializer.validated_data
    now = _reference_now(data)
    count = data['count']
    try:
        forest = score_tree(build_hierarchy(_snapshot(data)), now)
        if data['include_completed']:
            ranked = top_k(forest, count)
        else:
            ranked = urgent_tasks(forest, count)
    except TaskContractError as exc:
        return _contract_violation(exc)

    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'now': now.isoformat(),
        'count': len(ranked),
        'requested_count': count,
        'tasks': [_present(node, now, include_children=False) for node in ranked]
    })


@extend_schema(
    summary="Group tasks by due day",
    description="Return tasks grouped by the calendar day they are due, in ascending order.",
    request=CalendarInputSerializer,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Calendar']
)
@api_view(['POST'])
@throttle_classes([PlannerRateThrottle])
def task_calendar(request: Request) -> Response:
    """
    Return tasks grouped by due date.

    POST /api/tasks/calendar/
    """
    serializer = CalendarInputSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_input(serializer)

    data = serializer.validated_data
    now = _reference_now(data)
    grouped = group_by_due_date(_snapshot(data), now, include_completed=data['include_completed'])

    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'now': now.isoformat(),
        'days': [
            {
                'date': day.isoformat(),
                'count': len(tasks),
                'tasks': [task_to_dict(task) for task in tasks]
            }
            for day, tasks in grouped.items()
        ]
    })


@extend_schema(
    summary="Summarize a task snapshot",
    description="Totals plus counts of open tasks that are overdue, due today and due tomorrow.",
    request=TaskSnapshotSerializer,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Summary']
)
@api_view(['POST'])
@throttle_classes([PlannerRateThrottle])
def task_summary(request: Request) -> Response:
    """
    Return dashboard counters for a task snapshot.

    POST /api/tasks/summary/
    """
    serializer = TaskSnapshotSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_input(serializer)

    now = _reference_now(serializer.validated_data)
    tasks = _snapshot(serializer.validated_data)
    completed_count = sum(1 for task in tasks if task.completed)

    summary = {
        'total_tasks': len(tasks),
        'completed_count': completed_count,
        'open_count': len(tasks) - completed_count,
        'root_count': len(build_hierarchy(tasks)),
    }
    summary.update(due_soon_counts(tasks, now))

    return Response({
        'success': True,
        'error_code': ErrorCode.SUCCESS.value,
        'now': now.isoformat(),
        'summary': summary
    })


@extend_schema(
    summary="API information",
    description="Get API information and available endpoints.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Info']
)
@api_view(['GET'])
def api_info(request: Request) -> Response:
    """
    Return API information and available endpoints.

    GET /api/
    """
    return Response({
        'name': 'Task Planner API',
        'version': '1.0.0',
        'documentation': '/api/docs/',
        'features': [
            'Subtask hierarchy from flat task lists',
            'Deadline-aware priority scoring',
            'Top-K urgent tasks across all nesting levels',
            'Calendar grouping by due day',
            'OpenAPI/Swagger documentation'
        ],
        'endpoints': {
            'POST /api/tasks/hierarchy/': 'Scored task forest',
            'POST /api/tasks/top/': 'Most urgent tasks',
            'POST /api/tasks/calendar/': 'Tasks grouped by due day',
            'POST /api/tasks/summary/': 'Dashboard counters',
            'GET /api/docs/': 'Interactive API documentation',
            'GET /api/schema/': 'OpenAPI schema',
            'GET /api/': 'This info endpoint'
        },
        'defaults': {
            'top_task_count': settings.TASK_PLANNER['TOP_TASK_COUNT'],
            'max_top_task_count': settings.TASK_PLANNER['MAX_TOP_TASK_COUNT']
        },
        'error_codes': {
            code.value: code.name for code in ErrorCode
        }
    })

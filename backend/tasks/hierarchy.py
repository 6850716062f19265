"""
Hierarchy Builder for the Task Planner.

Turns a flat list of task records into a forest of ``TaskNode`` trees
using each task's ``parent_id``.

Structural guarantees:
- Every input task appears exactly once in the forest.
- A task whose parent is unknown, or is the task itself, becomes a root.
- Parent chains that loop (A -> B -> A) are broken at build time by
  promoting the cycle member that comes first in the input to a root,
  so recursive consumers always terminate.
- Roots and children keep input order. Sorting is left to the caller.

Malformed parent references are never errors.
"""

import logging
from collections import deque
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from .records import ScoredTask, Task, TaskNode

logger = logging.getLogger(__name__)

Node = Union[TaskNode, ScoredTask]


def _index_tasks(flat_tasks: Iterable[Task]) -> Dict[str, Task]:
    """Map id -> task, keeping the first occurrence of a duplicated id."""
    lookup: Dict[str, Task] = {}
    for task in flat_tasks:
        if task.id in lookup:
            logger.warning("Skipping duplicate task id %r", task.id)
            continue
        lookup[task.id] = task
    return lookup


def _resolve_parents(lookup: Dict[str, Task]) -> Dict[str, Optional[str]]:
    """
    Resolve each task's effective parent id.

    Unknown and self parents resolve to None. Cycles are detected by
    walking parent chains; each cycle is broken at its earliest member
    in input order.
    """
    parent_of: Dict[str, Optional[str]] = {}
    for task_id, task in lookup.items():
        parent_id = task.parent_id
        if parent_id is None:
            parent_of[task_id] = None
        elif parent_id == task_id or parent_id not in lookup:
            logger.debug("Task %r has unresolved parent %r; treating as root", task_id, parent_id)
            parent_of[task_id] = None
        else:
            parent_of[task_id] = parent_id

    position = {task_id: i for i, task_id in enumerate(lookup)}
    settled: Set[str] = set()

    for start in lookup:
        path: List[str] = []
        on_path: Set[str] = set()
        node = start

        while node is not None and node not in settled:
            if node in on_path:
                cycle = path[path.index(node):]
                breaker = min(cycle, key=position.__getitem__)
                logger.warning(
                    "Parent cycle detected among tasks %s; promoting %r to root",
                    cycle, breaker
                )
                parent_of[breaker] = None
                break
            on_path.add(node)
            path.append(node)
            node = parent_of[node]

        settled.update(path)

    return parent_of


def build_hierarchy(flat_tasks: Iterable[Task]) -> List[TaskNode]:
    """
    Build a forest from flat task records.

    Args:
        flat_tasks: Task records in display order

    Returns:
        Root nodes in input order, each with its subtasks nested under
        ``children`` recursively.
    """
    lookup = _index_tasks(flat_tasks)
    parent_of = _resolve_parents(lookup)

    children_ids: Dict[str, List[str]] = {task_id: [] for task_id in lookup}
    root_ids: List[str] = []
    for task_id in lookup:
        parent_id = parent_of[task_id]
        if parent_id is None:
            root_ids.append(task_id)
        else:
            children_ids[parent_id].append(task_id)

    # Pre-order ids, then build in reverse so children exist before parents
    order: List[str] = []
    stack = list(reversed(root_ids))
    while stack:
        task_id = stack.pop()
        order.append(task_id)
        stack.extend(reversed(children_ids[task_id]))

    nodes: Dict[str, TaskNode] = {}
    for task_id in reversed(order):
        nodes[task_id] = TaskNode(
            task=lookup[task_id],
            children=tuple(nodes[child_id] for child_id in children_ids[task_id])
        )

    return [nodes[task_id] for task_id in root_ids]


def flatten_forest(forest: Sequence[Node]) -> List[Node]:
    """
    Flatten a forest in pre-order: each node followed by its descendants.
    """
    flat: List[Node] = []
    stack = list(reversed(forest))
    while stack:
        node = stack.pop()
        flat.append(node)
        stack.extend(reversed(node.children))
    return flat


def map_forest(forest: Sequence[Node], transform: Callable[[Node, List[Any]], Any]) -> List[Any]:
    """
    Rebuild a forest bottom-up without recursion.

    ``transform(node, children)`` receives a node and the already
    transformed results of its children. Nodes are tracked by identity,
    since hashing a frozen node would recurse through its subtree.
    """
    built: Dict[int, Any] = {}
    for node in reversed(flatten_forest(forest)):
        built[id(node)] = transform(node, [built[id(child)] for child in node.children])
    return [built[id(node)] for node in forest]


def root_tasks(forest: Sequence[Node]) -> List[Node]:
    """Return the top-level nodes whose task has no declared parent."""
    return [node for node in forest if node.task.parent_id is None]


def children_of(forest: Sequence[Node], task_id: str) -> List[Node]:
    """Return the direct subtasks of ``task_id``, or [] if it is unknown."""
    for node in flatten_forest(forest):
        if node.task.id == task_id:
            return list(node.children)
    return []


def collect_descendant_ids(flat_tasks: Iterable[Task], task_id: str) -> List[str]:
    """
    Collect the ids of every transitive subtask of ``task_id``.

    This is the set a caller removes together with the task itself when
    deleting it. The task's own id is not included. Safe on cyclic input.
    """
    by_parent: Dict[str, List[str]] = {}
    for task in flat_tasks:
        if task.parent_id is not None and task.parent_id != task.id:
            by_parent.setdefault(task.parent_id, []).append(task.id)

    found: List[str] = []
    seen: Set[str] = {task_id}
    pending = deque(by_parent.get(task_id, []))
    while pending:
        current = pending.popleft()
        if current in seen:
            continue
        seen.add(current)
        found.append(current)
        pending.extend(by_parent.get(current, []))
    return found

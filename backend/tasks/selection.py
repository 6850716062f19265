"""
Top-K selection over a scored forest.

The selector flattens the forest in pre-order and ranks every node by
descending priority score, so nesting depth never affects the ranking.
Equal scores keep their flattening order.

``top_k`` knows nothing about completion. ``urgent_tasks`` applies the
usual caller policy of dropping completed tasks first.
"""

from typing import Iterable, List, Sequence

from .errors import InvalidTopKCount
from .hierarchy import flatten_forest
from .records import ScoredTask


DEFAULT_TOP_COUNT = 5


def validate_count(k: object) -> int:
    """Return ``k`` if it is a positive int, else raise InvalidTopKCount."""
    if isinstance(k, bool) or not isinstance(k, int):
        raise InvalidTopKCount(f"Top-K count must be a positive integer, got {k!r}")
    if k <= 0:
        raise InvalidTopKCount(f"Top-K count must be positive, got {k}")
    return k


def rank_tasks(candidates: Iterable[ScoredTask], k: int) -> List[ScoredTask]:
    """
    Return the ``k`` highest scoring candidates, highest first.

    ``k`` must already be validated. ``sorted`` is stable, so ties keep
    the candidates' order.
    """
    ranked = sorted(candidates, key=lambda node: node.priority_score, reverse=True)
    return ranked[:k]


def top_k(scored_forest: Sequence[ScoredTask], k: int) -> List[ScoredTask]:
    """
    Select the ``k`` most urgent tasks across the whole forest.

    Returns ``min(k, total task count)`` tasks. A ``k`` larger than the
    population is not an error.

    Raises:
        InvalidTopKCount: if ``k`` is not a positive integer
    """
    k = validate_count(k)
    return rank_tasks(flatten_forest(scored_forest), k)


def urgent_tasks(
    scored_forest: Sequence[ScoredTask],
    k: int = DEFAULT_TOP_COUNT
) -> List[ScoredTask]:
    """Like ``top_k``, but completed tasks are never candidates."""
    k = validate_count(k)
    open_tasks = [node for node in flatten_forest(scored_forest) if not node.completed]
    return rank_tasks(open_tasks, k)

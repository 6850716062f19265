"""
Error taxonomy for the Task Planner core.

Every error here is a caller contract violation. The core raises them
immediately and never substitutes a default, because a silently coerced
value would produce a misleading ranking. The API layer translates them
into HTTP 400 responses using ``to_dict()``.

Malformed parent references are not errors: the hierarchy builder turns
orphans into roots.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes shared by the core and the API responses."""
    SUCCESS = "SUCCESS"
    ERR_MISSING_FIELD = "ERR_MISSING_FIELD"
    ERR_EMPTY_TASKS = "ERR_EMPTY_TASKS"
    ERR_INVALID_WEIGHT = "ERR_INVALID_WEIGHT"
    ERR_INVALID_DUE_DATE = "ERR_INVALID_DUE_DATE"
    ERR_INVALID_TOP_K_COUNT = "ERR_INVALID_TOP_K_COUNT"
    ERR_INVALID_FIELD = "ERR_INVALID_FIELD"


class TaskContractError(ValueError):
    """Base class for contract violations raised by the core."""

    code: ErrorCode = ErrorCode.ERR_MISSING_FIELD
    field: Optional[str] = None

    def __init__(self, message: str, task_id: Optional[str] = None,
                 field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.task_id = task_id
        if field is not None:
            self.field = field

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'error_code': self.code.value,
            'message': self.message
        }
        if self.field:
            result['field'] = self.field
        if self.task_id is not None:
            result['task_id'] = self.task_id
        return result


class InvalidWeight(TaskContractError):
    """Weight is not an integer in the closed range [1, 5]."""
    code = ErrorCode.ERR_INVALID_WEIGHT
    field = 'weight'


class InvalidDueDate(TaskContractError):
    """Due date is missing, of the wrong type, or cannot be parsed."""
    code = ErrorCode.ERR_INVALID_DUE_DATE
    field = 'due_date'


class InvalidTopKCount(TaskContractError):
    """Top-K count is not a positive integer."""
    code = ErrorCode.ERR_INVALID_TOP_K_COUNT
    field = 'count'


class InvalidTaskField(TaskContractError):
    """A task field other than weight or due date has the wrong type."""
    code = ErrorCode.ERR_INVALID_FIELD


"""Shared domain building blocks.

- Result type for expected failures
- Error taxonomy and structured violation records
- Base domain event

Example usage:
    >>> from tasktree.domain.shared import Ok, Err, is_ok
    >>> from tasktree.domain.shared import Violation, ViolationKind
    >>> Violation(ViolationKind.CEILING_EXCEEDED, "Login form", 5, 3).message
    "Subtask 'Login form' has 5 story points, but maximum allowed is 3"
"""

from tasktree.domain.shared.errors import (
    CorruptHierarchyError,
    CrossProjectParentError,
    DerivedStatusError,
    FibonacciViolation,
    InvalidReparentError,
    InvalidSizeError,
    PriorityConstraintViolation,
    StaleValidationError,
    StoryPointCeilingViolation,
    TaskNotFoundError,
    TaskTreeError,
    TaskValidationError,
    Violation,
    ViolationKind,
    format_violation,
    violation_error,
)
from tasktree.domain.shared.events import DomainEvent
from tasktree.domain.shared.result import (
    Err,
    Ok,
    Result,
    flat_map,
    is_err,
    is_ok,
    map_result,
    unwrap_or,
)

__all__ = [
    # Result
    "Ok",
    "Err",
    "Result",
    "is_ok",
    "is_err",
    "map_result",
    "flat_map",
    "unwrap_or",
    # Violations
    "Violation",
    "ViolationKind",
    "format_violation",
    "violation_error",
    # Errors
    "TaskTreeError",
    "TaskNotFoundError",
    "InvalidSizeError",
    "DerivedStatusError",
    "InvalidReparentError",
    "TaskValidationError",
    "PriorityConstraintViolation",
    "FibonacciViolation",
    "StoryPointCeilingViolation",
    "CrossProjectParentError",
    "CorruptHierarchyError",
    "StaleValidationError",
    # Events
    "DomainEvent",
]

"""Error taxonomy for the task hierarchy engine.

Two families of failure exist:

- Validation failures (``TaskValidationError`` and subclasses) are
  recoverable. Each carries a structured ``Violation`` record; the
  human-readable message is produced by ``format_violation`` so the exact
  wording consumers pattern-match on lives in one place.
- Integrity failures (``CrossProjectParentError``, ``CorruptHierarchyError``)
  mean a caller bug or a prior invariant breach. They abort the operation.

``StaleValidationError`` sits apart: it is retryable, raised when a batch
validated against one version of the anchor parent is committed against
another.
"""

from dataclasses import dataclass
from enum import Enum

UNTITLED = "Untitled Task"


class ViolationKind(str, Enum):
    """Kinds of constraint violation reported by the validators."""

    PRIORITY_BELOW_PARENT = "priority_below_parent"
    PRIORITY_ABOVE_CHILDREN = "priority_above_children"
    NOT_FIBONACCI = "not_fibonacci"
    CEILING_EXCEEDED = "ceiling_exceeded"
    SIZE_ON_SUBTASK = "size_on_subtask"
    NOT_BREAKABLE = "not_breakable"


@dataclass(frozen=True)
class Violation:
    """A single constraint violation.

    Attributes:
        kind: Which constraint was broken.
        task_title: Title of the offending task (or proposed task).
        actual: The offending value (points, priority name, ...).
        maximum: The bound that was crossed, when there is one.
        allowed: Permitted values, for set-membership constraints.
    """

    kind: ViolationKind
    task_title: str = UNTITLED
    actual: int | str | None = None
    maximum: int | str | None = None
    allowed: tuple[int, ...] = ()

    @property
    def message(self) -> str:
        return format_violation(self)


def format_violation(violation: Violation) -> str:
    """Render a violation as the user-facing message string."""
    title = violation.task_title or UNTITLED
    kind = violation.kind

    if kind is ViolationKind.PRIORITY_BELOW_PARENT:
        return (
            f"Subtask '{title}' cannot have lower priority than its parent "
            f"(minimum allowed: {violation.maximum})"
        )
    if kind is ViolationKind.PRIORITY_ABOVE_CHILDREN:
        return (
            f"Task '{title}' cannot have higher priority than its subtasks "
            f"(maximum allowed: {violation.maximum})"
        )
    if kind is ViolationKind.NOT_FIBONACCI:
        allowed = ", ".join(str(p) for p in violation.allowed)
        return (
            f"Subtask '{title}' has {violation.actual} story points, "
            f"but story points must be a Fibonacci number ({allowed})"
        )
    if kind is ViolationKind.CEILING_EXCEEDED:
        return (
            f"Subtask '{title}' has {violation.actual} story points, "
            f"but maximum allowed is {violation.maximum}"
        )
    if kind is ViolationKind.SIZE_ON_SUBTASK:
        return (
            f"Subtask '{title}' must not have a size; "
            "subtasks are estimated with story points"
        )
    if kind is ViolationKind.NOT_BREAKABLE:
        return (
            "Tasks with 1 story point cannot be broken down further. "
            "They are already at the smallest meaningful size."
        )
    raise ValueError(f"Unknown violation kind: {kind}")


# =============================================================================
# Exceptions
# =============================================================================


class TaskTreeError(Exception):
    """Base class for every error raised by the engine."""


class TaskNotFoundError(TaskTreeError):
    """A task id does not exist in the project's tree."""

    def __init__(self, task_id: int, project_id: str | None = None) -> None:
        self.task_id = task_id
        self.project_id = project_id
        where = f" in project '{project_id}'" if project_id else ""
        super().__init__(f"Task {task_id} not found{where}")


class InvalidSizeError(TaskTreeError, ValueError):
    """A task size is not part of the size table, or the table is malformed."""


class DerivedStatusError(TaskTreeError):
    """Attempt to write the status of a task whose status is derived."""


class InvalidReparentError(TaskTreeError):
    """A reparent request would make a task its own ancestor."""


class TaskValidationError(TaskTreeError):
    """Recoverable constraint violation carrying a ``Violation`` record."""

    def __init__(self, violation: Violation) -> None:
        self.violation = violation
        super().__init__(violation.message)


class PriorityConstraintViolation(TaskValidationError):
    """A child would have lower priority than its parent."""


class FibonacciViolation(TaskValidationError):
    """Story points are not a member of the Fibonacci sequence."""


class StoryPointCeilingViolation(TaskValidationError):
    """Story points exceed the ceiling set by the nearest sized ancestor."""


class CrossProjectParentError(TaskTreeError):
    """Parent and child belong to different projects."""


class CorruptHierarchyError(TaskTreeError):
    """A cycle or a dangling ancestor reference was detected."""


class StaleValidationError(TaskTreeError):
    """The anchor parent changed between validation and commit. Retry."""

    def __init__(self, parent_id: int, changed: list[str]) -> None:
        self.parent_id = parent_id
        self.changed = changed
        super().__init__(
            f"Parent task {parent_id} changed since validation "
            f"({', '.join(changed)}); validate again"
        )


_EXCEPTION_BY_KIND: dict[ViolationKind, type[TaskValidationError]] = {
    ViolationKind.PRIORITY_BELOW_PARENT: PriorityConstraintViolation,
    ViolationKind.PRIORITY_ABOVE_CHILDREN: PriorityConstraintViolation,
    ViolationKind.NOT_FIBONACCI: FibonacciViolation,
    ViolationKind.CEILING_EXCEEDED: StoryPointCeilingViolation,
}


def violation_error(violation: Violation) -> TaskValidationError:
    """Build the exception matching a violation's kind."""
    return _EXCEPTION_BY_KIND.get(violation.kind, TaskValidationError)(violation)

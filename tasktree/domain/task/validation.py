"""Priority and story-point constraint validation.

Validators come in two flavours:

- ``validate_*`` functions never raise on a bad value. They return a
  ``ValidationResult`` (or one per item for batches) so a caller can report
  every problem in one round trip.
- ``ensure_*`` functions raise the matching ``TaskValidationError`` for the
  first problem; single-task mutations use these.

All functions are pure - no I/O, no side effects.
"""

from collections.abc import Sequence

from pydantic import BaseModel, Field

from tasktree.domain.shared.errors import (
    UNTITLED,
    Violation,
    ViolationKind,
    violation_error,
)
from tasktree.domain.task.models import Priority, ProposedTask, TaskNode, TaskSize, TaskTree
from tasktree.domain.task.sizing import SizePolicy
from tasktree.domain.task.traversal import nearest_sized_ancestor

BREAKDOWN_POINTS_ERROR = "AI response violates story point constraints"
BREAKDOWN_GENERIC_ERROR = "Proposed subtasks violate task constraints"

_POINT_KINDS = (ViolationKind.NOT_FIBONACCI, ViolationKind.CEILING_EXCEEDED)


class ValidationResult(BaseModel):
    """Outcome of validating one value.

    ``parent_priority``, ``attempted_priority`` and
    ``minimum_allowed_priority`` are filled by priority validation so forms
    can show the allowed range.
    """

    valid: bool = True
    violations: list[Violation] = Field(default_factory=list)
    parent_priority: Priority | None = None
    attempted_priority: Priority | None = None
    minimum_allowed_priority: Priority | None = None

    @property
    def messages(self) -> list[str]:
        return [v.message for v in self.violations]

    @property
    def error(self) -> str | None:
        """First violation message, or None when valid."""
        return self.violations[0].message if self.violations else None

    def raise_for_violation(self) -> None:
        """Raise the exception matching the first violation, if any."""
        if self.violations:
            raise violation_error(self.violations[0])


class BatchValidationResult(BaseModel):
    """All-or-nothing verdict on a batch of proposed subtasks.

    ``violations`` holds the rendered messages in input order and is what
    callers surface verbatim; ``details`` holds the structured records.
    """

    accepted: bool
    violations: list[str] = Field(default_factory=list)
    details: list[Violation] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_violations(cls, details: list[Violation]) -> "BatchValidationResult":
        if not details:
            return cls(accepted=True)
        if any(v.kind in _POINT_KINDS for v in details):
            error = BREAKDOWN_POINTS_ERROR
        else:
            error = BREAKDOWN_GENERIC_ERROR
        return cls(
            accepted=False,
            violations=[v.message for v in details],
            details=details,
            error=error,
        )


# =============================================================================
# Priority
# =============================================================================


def validate_priority(
    candidate: Priority,
    parent: TaskNode | None,
    title: str = UNTITLED,
) -> ValidationResult:
    """Check that a task under ``parent`` may have priority ``candidate``.

    A task without a parent (or whose parent reference did not resolve) is
    unconstrained.
    """
    if parent is None:
        return ValidationResult(attempted_priority=candidate)

    result = ValidationResult(
        parent_priority=parent.priority,
        attempted_priority=candidate,
        minimum_allowed_priority=parent.priority,
    )
    if candidate.level < parent.priority.level:
        result.valid = False
        result.violations.append(
            Violation(
                kind=ViolationKind.PRIORITY_BELOW_PARENT,
                task_title=title,
                actual=candidate.value,
                maximum=parent.priority.value,
            )
        )
    return result


def validate_priority_batch(
    candidates: Sequence[ProposedTask],
    anchor_parent: TaskNode | None,
) -> list[ValidationResult]:
    """Validate each candidate against the same parent, one result per item.

    A candidate without a priority takes the parent's, which is always valid.
    """
    results = []
    for candidate in candidates:
        priority = candidate.priority or (anchor_parent.priority if anchor_parent else Priority.MEDIUM)
        results.append(validate_priority(priority, anchor_parent, candidate.title))
    return results


def ensure_priority(candidate: Priority, parent: TaskNode | None, title: str = UNTITLED) -> None:
    """Raise PriorityConstraintViolation if ``candidate`` is below the parent's."""
    validate_priority(candidate, parent, title).raise_for_violation()


def validate_priority_against_children(
    tree: TaskTree,
    node: TaskNode,
    candidate: Priority,
) -> ValidationResult:
    """Check that raising ``node`` to ``candidate`` keeps every child at or above it."""
    children = tree.children_of(node.id)
    if not children:
        return ValidationResult(attempted_priority=candidate)
    lowest = min((c.priority for c in children), key=lambda p: p.level)
    result = ValidationResult(attempted_priority=candidate)
    if candidate.level > lowest.level:
        result.valid = False
        result.violations.append(
            Violation(
                kind=ViolationKind.PRIORITY_ABOVE_CHILDREN,
                task_title=node.title,
                actual=candidate.value,
                maximum=lowest.value,
            )
        )
    return result


# =============================================================================
# Story Points
# =============================================================================


def validate_story_points(
    points: int | None,
    ceiling_size: TaskSize | None,
    title: str = UNTITLED,
    policy: SizePolicy | None = None,
) -> ValidationResult:
    """Check ``points`` against the Fibonacci scale and the size ceiling.

    Both checks run, so a value like 4 under a size-s parent reports two
    violations. ``None`` points are always valid; a ``None`` size imposes
    no ceiling.
    """
    policy = policy or SizePolicy()
    result = ValidationResult()
    if points is None:
        return result

    if not policy.is_fibonacci(points):
        result.violations.append(
            Violation(
                kind=ViolationKind.NOT_FIBONACCI,
                task_title=title,
                actual=points,
                allowed=policy.fibonacci,
            )
        )
    if ceiling_size is not None:
        maximum = policy.max_points(ceiling_size)
        if points > maximum:
            result.violations.append(
                Violation(
                    kind=ViolationKind.CEILING_EXCEEDED,
                    task_title=title,
                    actual=points,
                    maximum=maximum,
                )
            )
    result.valid = not result.violations
    return result


def ceiling_size_for(tree: TaskTree | None, parent: TaskNode | None) -> TaskSize | None:
    """Size bounding the story points of a task placed under ``parent``."""
    if parent is None:
        return None
    if tree is None:
        return parent.size
    sized = nearest_sized_ancestor(tree, parent)
    return sized.size if sized else None


def ensure_story_points(
    points: int | None,
    tree: TaskTree,
    parent: TaskNode | None,
    title: str = UNTITLED,
    policy: SizePolicy | None = None,
) -> None:
    """Raise FibonacciViolation / StoryPointCeilingViolation for bad points."""
    validate_story_points(points, ceiling_size_for(tree, parent), title, policy).raise_for_violation()


def validate_breakdown_batch(
    proposed: Sequence[ProposedTask],
    parent: TaskNode,
    tree: TaskTree | None = None,
    policy: SizePolicy | None = None,
) -> BatchValidationResult:
    """Validate the story points of a proposed breakdown of ``parent``.

    The ceiling comes from ``parent.size`` or, when ``tree`` is given and
    the parent has no size, from the nearest sized ancestor. Every
    violation is collected in input order; the batch is accepted only when
    there are none.
    """
    ceiling = ceiling_size_for(tree, parent)
    details: list[Violation] = []
    for item in proposed:
        details.extend(validate_story_points(item.story_points, ceiling, item.title, policy).violations)
    return BatchValidationResult.from_violations(details)


# =============================================================================
# Full Breakdown Check
# =============================================================================


def validate_breakdown(
    proposed: Sequence[ProposedTask],
    parent: TaskNode,
    tree: TaskTree,
    policy: SizePolicy | None = None,
) -> BatchValidationResult:
    """Run every first-pass check on a proposed breakdown of ``parent``.

    Checks, in order: the parent can still be broken down (more than one
    story point), then per item: no size on a subtask, priority not below
    the parent, story points valid under the ceiling.
    """
    details: list[Violation] = []
    if parent.current_story_points == 1:
        details.append(Violation(kind=ViolationKind.NOT_BREAKABLE, task_title=parent.title))

    ceiling = ceiling_size_for(tree, parent)
    priority_results = validate_priority_batch(proposed, parent)
    for item, priority_result in zip(proposed, priority_results, strict=True):
        if item.size:
            details.append(Violation(kind=ViolationKind.SIZE_ON_SUBTASK, task_title=item.title))
        details.extend(priority_result.violations)
        details.extend(validate_story_points(item.story_points, ceiling, item.title, policy).violations)

    return BatchValidationResult.from_violations(details)

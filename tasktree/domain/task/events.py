"""Task domain events.

Domain events represent committed changes to a project's task tree. They
are immutable records emitted by the application service after the new tree
version has been persisted, used for audit logging or for triggering side
effects in collaborators (iteration bookkeeping, notifications).

All events are pure data structures - no I/O, no side effects.
"""

from tasktree.domain.shared.events import DomainEvent
from tasktree.domain.task.models import Priority, TaskId, TaskStatus


class TaskCreated(DomainEvent):
    """Event raised when a task is inserted into the tree."""

    task_id: TaskId
    parent_id: TaskId | None = None
    title: str


class TaskDeleted(DomainEvent):
    """Event raised when a task and its subtree are removed.

    ``removed_ids`` lists the deleted task first, then its descendants.
    """

    task_id: TaskId
    parent_id: TaskId | None = None
    removed_ids: list[TaskId]


class TaskReparented(DomainEvent):
    """Event raised when a task moves under a different parent."""

    task_id: TaskId
    old_parent_id: TaskId | None = None
    new_parent_id: TaskId | None = None


class TaskReordered(DomainEvent):
    """Event raised when a task changes position among its siblings."""

    task_id: TaskId
    old_position: int
    new_position: int
    priority_changed_to: Priority | None = None


class TaskStatusChanged(DomainEvent):
    """Event raised when a task's status changes, directly or by rollup."""

    task_id: TaskId
    old_status: TaskStatus
    new_status: TaskStatus
    derived: bool = False


class StoryPointsChanged(DomainEvent):
    """Event raised when a task's current story points change."""

    task_id: TaskId
    old_points: int | None = None
    new_points: int | None = None
    change_count: int


class BreakdownCommitted(DomainEvent):
    """Event raised when a validated breakdown batch is inserted."""

    parent_id: TaskId
    created_ids: list[TaskId]

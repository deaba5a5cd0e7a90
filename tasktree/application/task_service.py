"""Task application service.

Orchestrates task hierarchy operations by combining domain functions with
persistence, per-project locking and event delivery.

Every mutation follows the same path: take the project lock, deep-copy the
published tree, apply domain functions to the copy, bump ``version``,
persist, then publish the copy. Readers only ever see published trees, so
a half-applied change is never observable and a rejected change leaves no
trace.

Recoverable failures come back as ``Err(message)``. Integrity errors
(``CrossProjectParentError``, ``CorruptHierarchyError``) and
``StaleValidationError`` propagate as exceptions.
"""

import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel, Field, ValidationError

from tasktree.application.locking import ProjectLockRegistry
from tasktree.config import EngineConfig
from tasktree.domain.shared.errors import (
    CorruptHierarchyError,
    DerivedStatusError,
    InvalidReparentError,
    InvalidSizeError,
    StaleValidationError,
    TaskNotFoundError,
    TaskValidationError,
)
from tasktree.domain.shared.events import DomainEvent
from tasktree.domain.shared.result import Err, Ok, Result, flat_map, map_result
from tasktree.domain.task import (
    BatchValidationResult,
    BreakdownCommitted,
    Priority,
    ProposedTask,
    ReorderConfirmation,
    ReorderResult,
    StoryPointsChanged,
    TaskCreated,
    TaskDeleted,
    TaskFilter,
    TaskId,
    TaskNode,
    TaskReordered,
    TaskReparented,
    TaskSize,
    TaskStatus,
    TaskStatusChanged,
    TaskTree,
    apply_due_dates,
    check_invariants,
    check_reorder_confirmation,
    count_by_status,
    delete_task,
    filter_tasks,
    has_status,
    in_iteration,
    insert_proposed,
    insert_task,
    leaves,
    reorder_to,
    reparent_task,
    set_status,
    update_details,
    update_priority,
    update_size,
    update_story_points,
    validate_breakdown,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RECOVERABLE_ERRORS = (
    TaskValidationError,
    TaskNotFoundError,
    DerivedStatusError,
    InvalidReparentError,
    InvalidSizeError,
)

EventListener = Callable[[DomainEvent], None]


class TaskTreeStore(Protocol):
    """What the service needs from a repository."""

    def load(self, project_id: str) -> Result[TaskTree, str]: ...

    def save(self, tree: TaskTree) -> Result[None, str]: ...

    def exists(self, project_id: str) -> bool: ...

    def create(self, project_id: str) -> Result[TaskTree, str]: ...

    def list_projects(self) -> Result[list[str], str]: ...


# =============================================================================
# View Models
# =============================================================================


class TaskView(BaseModel):
    """Read model of a task for presentation layers."""

    id: TaskId
    title: str
    description: str
    status: TaskStatus
    priority: Priority
    size: TaskSize | None
    depth: int
    sort_order: int
    is_leaf: bool
    is_top_level: bool
    has_children: bool
    parent_id: TaskId | None
    completion_percentage: float
    current_story_points: int | None
    initial_story_points: int | None
    story_points_change_count: int
    due_date: date | None
    iteration_id: str | None

    @classmethod
    def from_node(cls, node: TaskNode) -> "TaskView":
        return cls(
            id=node.id,
            title=node.title,
            description=node.description,
            status=node.status,
            priority=node.priority,
            size=node.size,
            depth=node.depth,
            sort_order=node.sort_order,
            is_leaf=node.is_leaf(),
            is_top_level=node.is_top_level(),
            has_children=node.has_children(),
            parent_id=node.parent_id,
            completion_percentage=round(node.completion_percentage, 2),
            current_story_points=node.current_story_points,
            initial_story_points=node.initial_story_points,
            story_points_change_count=node.story_points_change_count,
            due_date=node.due_date,
            iteration_id=node.iteration_id,
        )


class TreeStats(BaseModel):
    """Statistics about a task tree.

    Counts leaf tasks only, the actual work items, for progress tracking
    and dashboard display.
    """

    total: int
    completed: int
    pending: int
    in_progress: int
    total_points: int = 0
    completed_points: int = 0

    @property
    def progress_percent(self) -> float:
        """Calculate the share of completed leaf tasks."""
        if self.total == 0:
            return 0.0
        return round(self.completed / self.total * 100, 1)


class BreakdownValidation(BaseModel):
    """A validated breakdown batch, ready to commit when accepted.

    ``tasks`` holds the proposed records with their default due dates. The
    commit resolves due dates again against the parent as it stands then.
    ``fingerprint`` captures the anchor parent's constraint-bearing fields
    at validation time; the commit refuses to proceed if they changed.
    """

    project_id: str
    parent_id: TaskId
    accepted: bool
    violations: list[str] = Field(default_factory=list)
    error: str | None = None
    tasks: list[ProposedTask] = Field(default_factory=list)
    fingerprint: dict[str, Any] = Field(default_factory=dict)
    tree_version: int = 0


def _fingerprint(parent: TaskNode) -> dict[str, Any]:
    return {
        "size": parent.size.value if parent.size else None,
        "priority": parent.priority.value,
        "current_story_points": parent.current_story_points,
    }


@dataclass
class _Outcome(Generic[T]):
    value: T
    events: list[DomainEvent] = field(default_factory=list)
    commit: bool = True


# =============================================================================
# Service
# =============================================================================


class TaskService:
    """Entry point for every operation on project task trees.

    Example:
        service = TaskService(InMemoryTaskTreeRepository())
        service.create_project("acme")
        epic = service.create_task("acme", "Checkout", size="m").value
        service.create_task("acme", "Cart page", parent_id=epic.id, story_points=3)
    """

    def __init__(
        self,
        repository: TaskTreeStore,
        config: EngineConfig | None = None,
        locks: ProjectLockRegistry | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._repository = repository
        self._config = config or EngineConfig()
        self._policy = self._config.size_policy()
        self._fractions = self._config.fractions()
        self._locks = locks or ProjectLockRegistry()
        self._today = today
        self._published: dict[str, TaskTree] = {}
        self._published_guard = threading.Lock()
        self._listeners: list[EventListener] = []

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def subscribe(self, listener: EventListener) -> None:
        """Register a callback receiving every committed domain event."""
        self._listeners.append(listener)

    def _emit(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            for listener in self._listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception(f"Event listener failed on {type(event).__name__}")

    def _published_tree(self, project_id: str) -> Result[TaskTree, str]:
        """The last committed tree of a project, loading it on first use."""
        with self._published_guard:
            tree = self._published.get(project_id)
        if tree is not None:
            return Ok(tree)

        with self._locks.hold(project_id):
            with self._published_guard:
                tree = self._published.get(project_id)
            if tree is not None:
                return Ok(tree)
            loaded = self._repository.load(project_id)
            if isinstance(loaded, Err):
                return loaded
            with self._published_guard:
                self._published[project_id] = loaded.value
            return loaded

    def _publish(self, tree: TaskTree) -> None:
        with self._published_guard:
            self._published[tree.project_id] = tree

    def _mutate(
        self,
        project_id: str,
        operation: str,
        apply: Callable[[TaskTree], _Outcome[T]],
    ) -> Result[T, str]:
        """Run ``apply`` on a working copy under the project lock and commit it."""
        with self._locks.hold(project_id):
            current = self._published_tree(project_id)
            if isinstance(current, Err):
                return current
            before = current.value
            working = before.model_copy(deep=True)

            try:
                outcome = apply(working)
            except RECOVERABLE_ERRORS as e:
                logger.info(f"Rejected {operation} on project {project_id}: {e}")
                return Err(str(e))
            except CorruptHierarchyError:
                logger.exception(f"Corrupt hierarchy during {operation} on project {project_id}")
                raise

            if not outcome.commit:
                return Ok(outcome.value)

            working.version = before.version + 1
            saved = self._repository.save(working)
            if isinstance(saved, Err):
                logger.error(f"Failed to persist {operation} on project {project_id}: {saved.error}")
                return saved
            self._publish(working)
            events = outcome.events + _status_changes(project_id, before, working)

        self._emit(events)
        return Ok(outcome.value)

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    def create_project(self, project_id: str) -> Result[TaskTree, str]:
        """Initialize an empty project."""
        with self._locks.hold(project_id):
            created = self._repository.create(project_id)
            if isinstance(created, Err):
                return created
            self._publish(created.value)
        logger.info(f"Created project {project_id}")
        return Ok(created.value.model_copy(deep=True))

    def list_projects(self) -> Result[list[str], str]:
        return self._repository.list_projects()

    def project_exists(self, project_id: str) -> bool:
        return self._repository.exists(project_id)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create_task(
        self,
        project_id: str,
        title: str,
        parent_id: TaskId | None = None,
        **fields: Any,
    ) -> Result[TaskNode, str]:
        """Create a task under ``parent_id`` (top-level when None).

        Keyword fields are those of ``insert_task``: description, status,
        priority, size, story_points, due_date, iteration_id.
        """

        def apply(tree: TaskTree) -> _Outcome[TaskNode]:
            node = insert_task(tree, title, parent_id, policy=self._policy, **fields)
            event = TaskCreated(project_id=project_id, task_id=node.id, parent_id=parent_id, title=node.title)
            return _Outcome(node.model_copy(deep=True), [event])

        return self._mutate(project_id, "create", apply)

    def set_status(
        self,
        project_id: str,
        task_id: TaskId,
        status: TaskStatus,
    ) -> Result[TaskNode, str]:
        """Set a leaf task's status; ancestors are recomputed in the same commit."""

        def apply(tree: TaskTree) -> _Outcome[TaskNode]:
            set_status(tree, task_id, status)
            return _Outcome(tree.get(task_id).model_copy(deep=True))

        return self._mutate(project_id, "status change", apply)

    def update_story_points(
        self,
        project_id: str,
        task_id: TaskId,
        points: int | None,
    ) -> Result[TaskNode, str]:
        def apply(tree: TaskTree) -> _Outcome[TaskNode]:
            node = tree.get(task_id)
            old_points = node.current_story_points
            changed = update_story_points(tree, task_id, points, self._policy)
            events: list[DomainEvent] = []
            if changed:
                events.append(
                    StoryPointsChanged(
                        project_id=project_id,
                        task_id=task_id,
                        old_points=old_points,
                        new_points=node.current_story_points,
                        change_count=node.story_points_change_count,
                    )
                )
            return _Outcome(node.model_copy(deep=True), events, commit=changed)

        return self._mutate(project_id, "story point update", apply)

    def update_priority(
        self,
        project_id: str,
        task_id: TaskId,
        priority: Priority,
    ) -> Result[TaskNode, str]:
        def apply(tree: TaskTree) -> _Outcome[TaskNode]:
            changed = update_priority(tree, task_id, priority)
            return _Outcome(tree.get(task_id).model_copy(deep=True), commit=changed)

        return self._mutate(project_id, "priority update", apply)

    def update_size(
        self,
        project_id: str,
        task_id: TaskId,
        size: "TaskSize | str | None",
    ) -> Result[TaskNode, str]:
        def apply(tree: TaskTree) -> _Outcome[TaskNode]:
            changed = update_size(tree, task_id, size, self._policy)
            return _Outcome(tree.get(task_id).model_copy(deep=True), commit=changed)

        return self._mutate(project_id, "size update", apply)

    def update_details(
        self,
        project_id: str,
        task_id: TaskId,
        **changes: Any,
    ) -> Result[TaskNode, str]:
        """Update title, description, due_date or iteration_id."""

        def apply(tree: TaskTree) -> _Outcome[TaskNode]:
            node = update_details(tree, task_id, **changes)
            return _Outcome(node.model_copy(deep=True))

        return self._mutate(project_id, "details update", apply)

    def reparent(
        self,
        project_id: str,
        task_id: TaskId,
        new_parent_id: TaskId | None,
    ) -> Result[TaskNode, str]:
        """Move a task and its subtree under another parent (None for top level)."""

        def apply(tree: TaskTree) -> _Outcome[TaskNode]:
            old_parent_id = tree.get(task_id).parent_id
            node = reparent_task(tree, task_id, new_parent_id, self._policy)
            if old_parent_id == new_parent_id:
                return _Outcome(node.model_copy(deep=True), commit=False)
            event = TaskReparented(
                project_id=project_id,
                task_id=task_id,
                old_parent_id=old_parent_id,
                new_parent_id=new_parent_id,
            )
            return _Outcome(node.model_copy(deep=True), [event])

        return self._mutate(project_id, "reparent", apply)

    def delete(self, project_id: str, task_id: TaskId) -> Result[list[TaskId], str]:
        """Delete a task and its whole subtree; returns every removed id."""

        def apply(tree: TaskTree) -> _Outcome[list[TaskId]]:
            parent_id = tree.get(task_id).parent_id
            removed = delete_task(tree, task_id)
            event = TaskDeleted(project_id=project_id, task_id=task_id, parent_id=parent_id, removed_ids=removed)
            return _Outcome(removed, [event])

        return self._mutate(project_id, "delete", apply)

    def reorder(
        self,
        project_id: str,
        task_id: TaskId,
        new_position: int,
        confirmed: bool = False,
    ) -> Result[ReorderResult, str]:
        """Move a task to a 1-based display position within its sibling block.

        A rejected move is ``Ok`` with ``success`` False; only a missing task
        is an ``Err``.
        """

        def apply(tree: TaskTree) -> _Outcome[ReorderResult]:
            before = tree.get(task_id).move_count
            result = reorder_to(tree, task_id, new_position, confirmed, datetime.now(UTC))
            if result.notice is not None:
                logger.warning(
                    f"Reorder of task {task_id} in project {project_id}: "
                    f"{result.notice.type} (neighbors {[p.value for p in result.notice.neighbor_priorities]})"
                )
            moved = result.success and result.move_count != before
            if not moved:
                return _Outcome(result, commit=False)
            event = TaskReordered(
                project_id=project_id,
                task_id=task_id,
                old_position=result.old_position,
                new_position=result.new_position,
                priority_changed_to=result.new_priority,
            )
            return _Outcome(result, [event])

        return self._mutate(project_id, "reorder", apply)

    # -------------------------------------------------------------------------
    # Breakdown
    # -------------------------------------------------------------------------

    def validate_breakdown(
        self,
        project_id: str,
        parent_id: TaskId,
        proposed: Sequence["ProposedTask | Mapping[str, Any]"],
    ) -> Result[BreakdownValidation, str]:
        """Validate a proposed batch of subtasks for ``parent_id``.

        Runs without the project lock against the published tree. The
        returned validation lists every violation; pass an accepted one to
        ``commit_breakdown``.
        """
        loaded = self._published_tree(project_id)
        if isinstance(loaded, Err):
            return loaded
        tree = loaded.value
        parent = tree.find(parent_id)
        if parent is None:
            return Err(str(TaskNotFoundError(parent_id, project_id)))

        try:
            records = [
                item if isinstance(item, ProposedTask) else ProposedTask.model_validate(item)
                for item in proposed
            ]
        except ValidationError as e:
            return Err(f"Malformed proposed subtask: {e}")
        if not records:
            return Err("No subtasks proposed")

        verdict: BatchValidationResult = validate_breakdown(records, parent, tree, self._policy)
        if not verdict.accepted:
            logger.warning(
                f"Rejected breakdown of task {parent_id} in project {project_id}: "
                f"{len(verdict.violations)} violation(s)"
            )

        records = [
            r if r.priority else r.model_copy(update={"priority": parent.priority})
            for r in records
        ]
        dated = apply_due_dates(records, parent, self._today(), fractions=self._fractions)
        return Ok(
            BreakdownValidation(
                project_id=project_id,
                parent_id=parent_id,
                accepted=verdict.accepted,
                violations=verdict.violations,
                error=verdict.error,
                tasks=dated,
                fingerprint=_fingerprint(parent),
                tree_version=tree.version,
            )
        )

    def commit_breakdown(self, validation: BreakdownValidation) -> Result[list[TaskNode], str]:
        """Insert an accepted breakdown under its parent, all or nothing.

        Raises:
            StaleValidationError: If the parent's size, priority or story
                points changed since validation. Validate again and retry.
        """
        if not validation.accepted:
            details = "; ".join(validation.violations)
            return Err(f"{validation.error}: {details}" if details else str(validation.error))

        project_id = validation.project_id
        parent_id = validation.parent_id

        def apply(tree: TaskTree) -> _Outcome[list[TaskNode]]:
            parent = tree.get(parent_id)
            current = _fingerprint(parent)
            changed = [key for key, value in current.items() if validation.fingerprint.get(key) != value]
            if changed:
                logger.warning(
                    f"Stale breakdown for task {parent_id} in project {project_id}: {', '.join(changed)} changed"
                )
                raise StaleValidationError(parent_id, changed)

            verdict = validate_breakdown(validation.tasks, parent, tree, self._policy)
            if not verdict.accepted:
                raise StaleValidationError(parent_id, ["constraints"])

            dated = apply_due_dates(validation.tasks, parent, self._today(), fractions=self._fractions)
            created = [insert_proposed(tree, item, parent_id, self._policy) for item in dated]
            event = BreakdownCommitted(
                project_id=project_id,
                parent_id=parent_id,
                created_ids=[n.id for n in created],
            )
            logger.info(f"Committed breakdown of task {parent_id} into {len(created)} subtask(s)")
            return _Outcome([n.model_copy(deep=True) for n in created], [event])

        return self._mutate(project_id, "breakdown commit", apply)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def snapshot(self, project_id: str) -> Result[TaskTree, str]:
        """A private copy of the project's current tree."""
        return _copy(self._published_tree(project_id))

    def get_task(self, project_id: str, task_id: TaskId) -> Result[TaskNode, str]:
        def find(tree: TaskTree) -> Result[TaskNode, str]:
            node = tree.find(task_id)
            if node is None:
                return Err(str(TaskNotFoundError(task_id, project_id)))
            return Ok(node.model_copy(deep=True))

        return flat_map(self._published_tree(project_id), find)

    def task_view(self, project_id: str, task_id: TaskId) -> Result[TaskView, str]:
        return map_result(self.get_task(project_id, task_id), TaskView.from_node)

    def list_tasks(self, project_id: str, mode: TaskFilter = "all") -> Result[list[TaskView], str]:
        """Task views in display order, optionally only top-level or leaf tasks."""
        return map_result(
            self._published_tree(project_id),
            lambda tree: [TaskView.from_node(n) for n in filter_tasks(tree, mode)],
        )

    def leaf_tasks(
        self,
        project_id: str,
        iteration_id: str | None = None,
        status: TaskStatus | None = None,
    ) -> Result[list[TaskView], str]:
        """Leaf tasks only, optionally restricted to an iteration and a status."""
        loaded = self._published_tree(project_id)
        if isinstance(loaded, Err):
            return loaded
        nodes = leaves(loaded.value)
        if iteration_id is not None:
            nodes = [n for n in nodes if in_iteration(iteration_id)(n)]
        if status is not None:
            nodes = [n for n in nodes if has_status(status)(n)]
        return Ok([TaskView.from_node(n) for n in nodes])

    def check_reorder(
        self,
        project_id: str,
        task_id: TaskId,
        new_position: int,
    ) -> Result[ReorderConfirmation | None, str]:
        """Preview the priority advisory a reorder would produce."""
        loaded = self._published_tree(project_id)
        if isinstance(loaded, Err):
            return loaded
        try:
            return Ok(check_reorder_confirmation(loaded.value, task_id, new_position))
        except TaskNotFoundError as e:
            return Err(str(e))

    def tree_stats(self, project_id: str) -> Result[TreeStats, str]:
        """Leaf counts by status and leaf story-point totals."""
        loaded = self._published_tree(project_id)
        if isinstance(loaded, Err):
            return loaded
        tree = loaded.value
        counts = count_by_status(tree)
        leaf_nodes = leaves(tree)
        return Ok(
            TreeStats(
                total=sum(counts.values()),
                completed=counts[TaskStatus.COMPLETED],
                pending=counts[TaskStatus.PENDING],
                in_progress=counts[TaskStatus.IN_PROGRESS],
                total_points=sum(n.current_story_points or 0 for n in leaf_nodes),
                completed_points=sum(
                    n.current_story_points or 0
                    for n in leaf_nodes
                    if n.status == TaskStatus.COMPLETED
                ),
            )
        )

    def audit(self, project_id: str) -> Result[list[str], str]:
        """Invariant breaches in the project's tree (empty when sound)."""
        return map_result(
            self._published_tree(project_id),
            lambda tree: check_invariants(tree, self._policy),
        )


def _copy(result: Result[TaskTree, str]) -> Result[TaskTree, str]:
    return map_result(result, lambda tree: tree.model_copy(deep=True))


def _status_changes(project_id: str, before: TaskTree, after: TaskTree) -> list[DomainEvent]:
    """Status change events for tasks present in both versions."""
    events: list[DomainEvent] = []
    for task_id, node in after.nodes.items():
        old = before.nodes.get(task_id)
        if old is not None and old.status != node.status:
            events.append(
                TaskStatusChanged(
                    project_id=project_id,
                    task_id=task_id,
                    old_status=old.status,
                    new_status=node.status,
                    derived=node.has_children(),
                )
            )
    return events

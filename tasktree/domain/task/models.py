"""Task domain models.

The tree is an arena: every ``TaskNode`` of a project lives in
``TaskTree.nodes`` keyed by id, and hierarchy pointers are ids
(``parent_id``, ``child_ids``) rather than nested objects. Uses Pydantic so
a tree serializes to JSON as-is.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from tasktree.domain.shared.errors import UNTITLED, CorruptHierarchyError, TaskNotFoundError

TaskId = int


class TaskStatus(str, Enum):
    """Status of a task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Priority(str, Enum):
    """Task priority, totally ordered low < medium < high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def level(self) -> int:
        """Numeric priority level (1, 2, 3)."""
        return _PRIORITY_LEVELS[self]

    @classmethod
    def from_level(cls, level: int) -> "Priority":
        for priority, value in _PRIORITY_LEVELS.items():
            if value == level:
                return priority
        raise ValueError(f"Unknown priority level: {level}")


_PRIORITY_LEVELS = {Priority.LOW: 1, Priority.MEDIUM: 2, Priority.HIGH: 3}


class TaskSize(str, Enum):
    """Ordinal T-shirt size of a task meant to be broken down."""

    XS = "xs"
    S = "s"
    M = "m"
    L = "l"
    XL = "xl"

    @property
    def rank(self) -> int:
        return list(TaskSize).index(self)


class TaskNode(BaseModel):
    """A task in a project's hierarchy.

    Leaf nodes carry an authoritative status. The status and
    completion percentage of a node with children are derived by the
    aggregator and must not be written by callers.
    """

    id: TaskId
    project_id: str
    title: str
    description: str = ""
    parent_id: TaskId | None = None
    child_ids: list[TaskId] = Field(default_factory=list)
    path: list[TaskId] = Field(default_factory=list)
    depth: int = 0
    sort_order: int = 1
    status: TaskStatus = TaskStatus.PENDING
    priority: Priority = Priority.MEDIUM
    size: TaskSize | None = None
    initial_story_points: int | None = None
    current_story_points: int | None = None
    story_points_change_count: int = 0
    due_date: date | None = None
    iteration_id: str | None = None
    completion_percentage: float = 0.0

    # Order tracking
    initial_order_index: int | None = None
    current_order_index: int | None = None
    move_count: int = 0
    last_moved_at: datetime | None = None

    def is_leaf(self) -> bool:
        return len(self.child_ids) == 0

    def is_top_level(self) -> bool:
        return self.parent_id is None

    def has_children(self) -> bool:
        return not self.is_leaf()

    @property
    def priority_level(self) -> int:
        return self.priority.level

    def attach_child(self, child_id: TaskId, position: int | None = None) -> None:
        """Insert ``child_id`` into the ordered children (appends by default)."""
        if child_id in self.child_ids:
            return
        if position is None:
            self.child_ids.append(child_id)
        else:
            self.child_ids.insert(position, child_id)

    def detach_child(self, child_id: TaskId) -> bool:
        """Remove ``child_id`` from the children. Returns False if absent."""
        if child_id not in self.child_ids:
            return False
        self.child_ids.remove(child_id)
        return True

    def set_story_points(self, points: int | None) -> bool:
        """Record a story-point estimate.

        The first estimate sets both initial and current points. Later
        changes only move ``current_story_points`` and bump the change
        counter.

        Returns:
            True if the current value changed.
        """
        if points == self.current_story_points:
            return False
        if self.initial_story_points is None and self.current_story_points is None:
            self.initial_story_points = points
            self.current_story_points = points
            return True
        self.current_story_points = points
        self.story_points_change_count += 1
        return True


class TaskTree(BaseModel):
    """All tasks of one project.

    ``root_ids`` holds the top-level tasks in display order; each node's
    ``child_ids`` holds its children in display order.
    """

    project_id: str
    nodes: dict[TaskId, TaskNode] = Field(default_factory=dict)
    root_ids: list[TaskId] = Field(default_factory=list)
    next_id: TaskId = 1
    version: int = 0

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.nodes

    def get(self, task_id: TaskId) -> TaskNode:
        """Return the node with ``task_id`` or raise TaskNotFoundError."""
        node = self.nodes.get(task_id)
        if node is None:
            raise TaskNotFoundError(task_id, self.project_id)
        return node

    def find(self, task_id: TaskId | None) -> TaskNode | None:
        if task_id is None:
            return None
        return self.nodes.get(task_id)

    def allocate_id(self) -> TaskId:
        task_id = self.next_id
        self.next_id += 1
        return task_id

    def group_ids(self, parent_id: TaskId | None) -> list[TaskId]:
        """The ordered id list of the sibling group under ``parent_id``.

        The returned list is the live one; mutating it reorders the group.
        """
        if parent_id is None:
            return self.root_ids
        return self.get(parent_id).child_ids

    def children_of(self, parent_id: TaskId | None) -> list[TaskNode]:
        """Nodes of the sibling group under ``parent_id``, in display order."""
        children = []
        for child_id in self.group_ids(parent_id):
            child = self.nodes.get(child_id)
            if child is None:
                raise CorruptHierarchyError(
                    f"Task {parent_id} references missing child {child_id}"
                )
            children.append(child)
        return children

    def renumber(self, parent_id: TaskId | None) -> None:
        """Rewrite ``sort_order`` of a sibling group to 1..n in list order."""
        for index, child in enumerate(self.children_of(parent_id), start=1):
            child.sort_order = index


class ProposedTask(BaseModel):
    """A candidate subtask from an external source (AI or form).

    Unknown fields are ignored. Unknown statuses fall back to pending.
    Story points are accepted as ``story_points`` or
    ``current_story_points``.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str = UNTITLED
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: Priority | None = None
    story_points: int | None = Field(
        default=None,
        validation_alias=AliasChoices("story_points", "current_story_points"),
    )
    due_date: date | None = None
    size: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if value not in {s.value for s in TaskStatus}:
                return TaskStatus.PENDING
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _lower_priority(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return UNTITLED
        return value

"""Structural maintenance of a project's task tree.

Insertion, cascading deletion and reparenting, plus the single-field
updates whose constraints depend on the hierarchy (priority, size, story
points, leaf status). Every function mutates the ``TaskTree`` it is given
and leaves it satisfying the tree invariants, or raises before touching it.
Callers run these on a working copy inside the project lock.
"""

import logging
from datetime import date

from tasktree.domain.shared.errors import (
    UNTITLED,
    CorruptHierarchyError,
    CrossProjectParentError,
    DerivedStatusError,
    InvalidReparentError,
)
from tasktree.domain.task.aggregation import (
    propagate_upward,
    recompute_completion_percentage,
    recompute_status,
)
from tasktree.domain.task.models import (
    Priority,
    ProposedTask,
    TaskId,
    TaskNode,
    TaskSize,
    TaskStatus,
    TaskTree,
)
from tasktree.domain.task.sizing import SizePolicy, parse_size
from tasktree.domain.task.traversal import (
    ancestors,
    compute_path,
    flatten,
    iter_subtree,
    next_child_sort_order,
)
from tasktree.domain.task.validation import (
    ceiling_size_for,
    ensure_priority,
    ensure_story_points,
    validate_priority_against_children,
    validate_story_points,
)

logger = logging.getLogger(__name__)

_UNSET = object()


# =============================================================================
# Insert / Delete
# =============================================================================


def insert_task(
    tree: TaskTree,
    title: str,
    parent_id: TaskId | None = None,
    *,
    project_id: str | None = None,
    description: str = "",
    status: TaskStatus = TaskStatus.PENDING,
    priority: Priority | None = None,
    size: "TaskSize | str | None" = None,
    story_points: int | None = None,
    due_date: date | None = None,
    iteration_id: str | None = None,
    policy: SizePolicy | None = None,
) -> TaskNode:
    """Create a task and attach it as the last child of ``parent_id``.

    Priority defaults to the parent's (medium for top-level tasks).

    Raises:
        TaskNotFoundError: If ``parent_id`` does not exist.
        CrossProjectParentError: If the parent belongs to another project.
        PriorityConstraintViolation: If priority is below the parent's.
        FibonacciViolation: If story points are off the Fibonacci scale.
        StoryPointCeilingViolation: If story points exceed the ceiling of the
            nearest sized ancestor.
        InvalidSizeError: If ``size`` is not a known size.
    """
    project_id = project_id or tree.project_id
    parent = tree.get(parent_id) if parent_id is not None else None
    if parent is not None and parent.project_id != project_id:
        logger.error(
            f"Refusing to attach a task of project '{project_id}' under task "
            f"{parent.id} of project '{parent.project_id}'"
        )
        raise CrossProjectParentError(
            f"Task {parent.id} belongs to project '{parent.project_id}', "
            f"not '{project_id}'"
        )
    if project_id != tree.project_id:
        raise CrossProjectParentError(
            f"Cannot add a task of project '{project_id}' to project '{tree.project_id}'"
        )

    title = title.strip() or UNTITLED
    priority = priority or (parent.priority if parent else Priority.MEDIUM)
    ensure_priority(priority, parent, title)
    ensure_story_points(story_points, tree, parent, title, policy)

    sort_order = next_child_sort_order(tree, parent_id)
    node = TaskNode(
        id=tree.allocate_id(),
        project_id=project_id,
        title=title,
        description=description,
        parent_id=parent_id,
        path=[*parent.path, parent.id] if parent else [],
        depth=parent.depth + 1 if parent else 0,
        sort_order=sort_order,
        status=status,
        priority=priority,
        size=parse_size(size) if size is not None else None,
        due_date=due_date,
        iteration_id=iteration_id,
        initial_order_index=sort_order,
        current_order_index=sort_order,
    )
    node.set_story_points(story_points)

    tree.nodes[node.id] = node
    if parent is None:
        tree.root_ids.append(node.id)
    else:
        parent.attach_child(node.id)
    propagate_upward(tree, node)

    logger.info(f"Inserted task {node.id} '{title}' under {parent_id or 'project root'}")
    return node


def insert_proposed(
    tree: TaskTree,
    proposed: ProposedTask,
    parent_id: TaskId,
    policy: SizePolicy | None = None,
    iteration_id: str | None = None,
) -> TaskNode:
    """Insert a proposed subtask record under ``parent_id``.

    The record's ``size`` is ignored; subtasks are estimated in points.
    """
    return insert_task(
        tree,
        proposed.title,
        parent_id,
        description=proposed.description,
        status=proposed.status,
        priority=proposed.priority,
        story_points=proposed.story_points,
        due_date=proposed.due_date,
        iteration_id=iteration_id,
        policy=policy,
    )


def delete_task(tree: TaskTree, node_id: TaskId) -> list[TaskId]:
    """Delete a task and its entire subtree.

    Siblings after it close the gap, and the former parent's derived status
    is recomputed (it may now be a leaf).

    Returns:
        Ids of every removed task, the deleted task first.
    """
    node = tree.get(node_id)
    removed = [n.id for n in iter_subtree(tree, node)]

    tree.group_ids(node.parent_id).remove(node.id)
    for task_id in removed:
        del tree.nodes[task_id]
    tree.renumber(node.parent_id)
    propagate_upward(tree, tree.find(node.parent_id))

    logger.info(f"Deleted task {node_id} '{node.title}' and {len(removed) - 1} descendant(s)")
    return removed


# =============================================================================
# Reparent
# =============================================================================


def _ensure_subtree_points(
    tree: TaskTree,
    root: TaskNode,
    outer_ceiling: TaskSize | None,
    policy: SizePolicy | None,
    include_root: bool = True,
) -> None:
    """Re-check story points of ``root``'s subtree under a new ceiling context.

    ``outer_ceiling`` bounds ``root`` itself; below it, the nearest sized
    node inside the subtree takes over.
    """
    stack: list[tuple[TaskNode, TaskSize | None]] = []
    if include_root:
        stack.append((root, outer_ceiling))
    else:
        inner = root.size or outer_ceiling
        stack.extend((child, inner) for child in tree.children_of(root.id))
    while stack:
        node, ceiling = stack.pop()
        validate_story_points(node.current_story_points, ceiling, node.title, policy).raise_for_violation()
        inner = node.size or ceiling
        stack.extend((child, inner) for child in tree.children_of(node.id))


def reparent_task(
    tree: TaskTree,
    node_id: TaskId,
    new_parent_id: TaskId | None,
    policy: SizePolicy | None = None,
) -> TaskNode:
    """Move a task (with its subtree) under ``new_parent_id``.

    The task is appended as the new parent's last child; its old sibling
    group closes the gap. ``path`` and ``depth`` are rewritten for the task
    and every descendant. Both the old and the new ancestor chains get their
    derived status refreshed.

    Raises:
        InvalidReparentError: If the new parent is the task or a descendant.
        CrossProjectParentError: If the new parent is in another project.
        PriorityConstraintViolation: If the task's priority is below the new
            parent's.
        StoryPointCeilingViolation: If any task in the subtree would exceed
            the ceiling of its new nearest sized ancestor.
    """
    node = tree.get(node_id)
    new_parent = tree.get(new_parent_id) if new_parent_id is not None else None

    if new_parent is not None:
        if new_parent.project_id != node.project_id:
            logger.error(f"Refusing cross-project reparent of task {node.id} under task {new_parent.id}")
            raise CrossProjectParentError(
                f"Task {new_parent.id} belongs to project '{new_parent.project_id}', "
                f"not '{node.project_id}'"
            )
        if new_parent.id == node.id or node.id in {a.id for a in ancestors(tree, new_parent)}:
            raise InvalidReparentError(
                f"Task {node.id} cannot be moved under itself or one of its subtasks"
            )
    if new_parent_id == node.parent_id:
        return node

    ensure_priority(node.priority, new_parent, node.title)
    _ensure_subtree_points(tree, node, ceiling_size_for(tree, new_parent), policy)

    old_parent_id = node.parent_id
    old_path = list(node.path)
    new_path = [*new_parent.path, new_parent.id] if new_parent else []
    depth_delta = len(new_path) - len(old_path)

    tree.group_ids(old_parent_id).remove(node.id)
    tree.renumber(old_parent_id)
    tree.group_ids(new_parent_id).append(node.id)
    node.parent_id = new_parent_id
    node.sort_order = len(tree.group_ids(new_parent_id))
    node.current_order_index = node.sort_order

    for current in iter_subtree(tree, node):
        current.path = new_path + current.path[len(old_path):]
        current.depth += depth_delta

    propagate_upward(tree, tree.find(old_parent_id))
    propagate_upward(tree, node)

    logger.info(
        f"Reparented task {node.id} from {old_parent_id or 'project root'} "
        f"to {new_parent_id or 'project root'}"
    )
    return node


# =============================================================================
# Field Updates
# =============================================================================


def update_priority(tree: TaskTree, node_id: TaskId, priority: Priority) -> bool:
    """Change a task's priority, keeping it between its parent's and its children's.

    Returns:
        True if the priority changed.
    """
    node = tree.get(node_id)
    if priority == node.priority:
        return False
    ensure_priority(priority, tree.find(node.parent_id), node.title)
    validate_priority_against_children(tree, node, priority).raise_for_violation()
    node.priority = priority
    return True


def update_size(
    tree: TaskTree,
    node_id: TaskId,
    size: "TaskSize | str | None",
    policy: SizePolicy | None = None,
) -> bool:
    """Change a task's size after re-validating the points of its descendants.

    Returns:
        True if the size changed.
    """
    node = tree.get(node_id)
    new_size = parse_size(size) if size is not None else None
    if new_size == node.size:
        return False
    outer = ceiling_size_for(tree, tree.find(node.parent_id))
    trial = node.model_copy(update={"size": new_size})
    _ensure_subtree_points(tree, trial, outer, policy, include_root=False)
    node.size = new_size
    return True


def update_story_points(
    tree: TaskTree,
    node_id: TaskId,
    points: int | None,
    policy: SizePolicy | None = None,
) -> bool:
    """Set a task's current story points.

    Returns:
        True if the current value changed.
    """
    node = tree.get(node_id)
    ensure_story_points(points, tree, tree.find(node.parent_id), node.title, policy)
    return node.set_story_points(points)


def set_status(tree: TaskTree, node_id: TaskId, status: TaskStatus) -> list[TaskNode]:
    """Set the status of a leaf task and propagate to its ancestors.

    Returns:
        The refreshed nodes, starting with the task itself.

    Raises:
        DerivedStatusError: If the task has children.
    """
    node = tree.get(node_id)
    if node.has_children():
        raise DerivedStatusError(
            f"Task {node.id} '{node.title}' has subtasks; its status is derived from them"
        )
    node.status = status
    return propagate_upward(tree, node)


def update_details(
    tree: TaskTree,
    node_id: TaskId,
    *,
    title: str | None = None,
    description: str | None = None,
    due_date: "date | None | object" = _UNSET,
    iteration_id: "str | None | object" = _UNSET,
) -> TaskNode:
    """Update unconstrained fields. Pass ``due_date=None`` to clear it."""
    node = tree.get(node_id)
    if title is not None:
        node.title = title.strip() or UNTITLED
    if description is not None:
        node.description = description
    if due_date is not _UNSET:
        node.due_date = due_date
    if iteration_id is not _UNSET:
        node.iteration_id = iteration_id
    return node


# =============================================================================
# Invariant Audit
# =============================================================================


def check_invariants(tree: TaskTree, policy: SizePolicy | None = None) -> list[str]:
    """List every invariant breach in ``tree``; empty when the tree is sound."""
    policy = policy or SizePolicy()
    try:
        ordered = flatten(tree)
    except CorruptHierarchyError as exc:
        return [str(exc)]

    problems: list[str] = []
    if len(ordered) != len(tree.nodes):
        unreachable = sorted(set(tree.nodes) - {n.id for n in ordered})
        problems.append(f"Tasks not reachable from the project root: {unreachable}")

    groups = [None, *(n.id for n in ordered if n.has_children())]
    for parent_id in groups:
        orders = [n.sort_order for n in tree.children_of(parent_id)]
        if orders != list(range(1, len(orders) + 1)):
            problems.append(f"Sort orders under {parent_id or 'project root'} are {orders}")

    for node in ordered:
        parent = tree.find(node.parent_id)
        if node.project_id != tree.project_id:
            problems.append(f"Task {node.id} belongs to project '{node.project_id}'")
        if node.parent_id is not None and parent is None:
            problems.append(f"Task {node.id} has dangling parent {node.parent_id}")
            continue
        expected_path = compute_path(tree, node)
        if node.path != expected_path or node.depth != len(expected_path):
            problems.append(
                f"Task {node.id} has path {node.path} / depth {node.depth}, "
                f"expected {expected_path} / {len(expected_path)}"
            )
        if parent is not None and node.priority.level < parent.priority.level:
            problems.append(
                f"Task {node.id} priority {node.priority.value} is below "
                f"parent priority {parent.priority.value}"
            )
        points = validate_story_points(
            node.current_story_points, ceiling_size_for(tree, parent), node.title, policy
        )
        problems.extend(f"Task {node.id}: {message}" for message in points.messages)
        if node.has_children():
            if node.status != recompute_status(tree, node):
                problems.append(f"Task {node.id} has stale derived status {node.status.value}")
            expected = recompute_completion_percentage(tree, node)
            if abs(node.completion_percentage - expected) > 1e-6:
                problems.append(
                    f"Task {node.id} completion {node.completion_percentage} != {expected}"
                )
    return problems

"""Status and completion rollups.

A parent's status and completion percentage are derived from its children
and persisted on the parent (write-through). ``propagate_upward`` keeps the
persisted values current after a change below; it mutates the tree it is
given, so callers run it on their working copy inside the project lock.
"""

import logging

from tasktree.domain.shared.errors import CorruptHierarchyError
from tasktree.domain.task.models import TaskNode, TaskStatus, TaskTree
from tasktree.domain.task.traversal import ancestors, flatten, iter_subtree

logger = logging.getLogger(__name__)


def derive_status(child_statuses: list[TaskStatus]) -> TaskStatus:
    """Combine child statuses: all completed, all pending, otherwise in progress."""
    if all(s == TaskStatus.COMPLETED for s in child_statuses):
        return TaskStatus.COMPLETED
    if all(s == TaskStatus.PENDING for s in child_statuses):
        return TaskStatus.PENDING
    return TaskStatus.IN_PROGRESS


def recompute_status(tree: TaskTree, node: TaskNode) -> TaskStatus:
    """Status ``node`` should have given its children's current statuses.

    A leaf's status is authoritative and returned unchanged.
    """
    if node.is_leaf():
        return node.status
    return derive_status([child.status for child in tree.children_of(node.id)])


def recompute_completion_percentage(tree: TaskTree, node: TaskNode) -> float:
    """Completion percentage of ``node``, recomputed from scratch.

    A leaf is 100.0 when completed, else 0.0. A parent is the mean of its
    children's percentages, each computed the same way, so deeper levels
    are weighted by their position rather than by leaf count.
    """
    # Post-order over the subtree; iter_subtree raises on cycles.
    order = list(iter_subtree(tree, node))
    percentages: dict[int, float] = {}
    for current in reversed(order):
        if current.is_leaf():
            percentages[current.id] = 100.0 if current.status == TaskStatus.COMPLETED else 0.0
        else:
            values = [percentages[child_id] for child_id in current.child_ids]
            percentages[current.id] = sum(values) / len(values)
    return percentages[node.id]


def _refresh_node(tree: TaskTree, node: TaskNode) -> None:
    """Recompute ``node`` from its children's persisted values."""
    if node.is_leaf():
        node.completion_percentage = 100.0 if node.status == TaskStatus.COMPLETED else 0.0
        return
    children = tree.children_of(node.id)
    node.status = derive_status([c.status for c in children])
    node.completion_percentage = sum(c.completion_percentage for c in children) / len(children)


def propagate_upward(tree: TaskTree, node: TaskNode | None) -> list[TaskNode]:
    """Refresh ``node`` and every ancestor up to the root.

    Children are already current when a node is refreshed because the walk
    goes bottom-up.

    Returns:
        The nodes touched, starting with ``node``.

    Raises:
        CorruptHierarchyError: If the ancestor chain has a cycle or a gap.
    """
    if node is None:
        return []
    try:
        chain = [node, *ancestors(tree, node)]
    except CorruptHierarchyError:
        logger.error(f"Cannot propagate status from task {node.id}: corrupt hierarchy")
        raise
    for current in chain:
        _refresh_node(tree, current)
    return chain


def refresh_all(tree: TaskTree) -> None:
    """Recompute every derived status and percentage, bottom-up.

    Used after loading a stored tree whose derived fields may be stale.
    """
    # Reverse display order visits every child before its parent.
    for node in reversed(flatten(tree)):
        _refresh_node(tree, node)

"""Pure tree traversal combinators over a ``TaskTree`` arena.

All functions in this module are pure - no I/O, no side effects.
Every walk carries a visited set, so a malformed tree (a cycle or a
dangling reference) raises ``CorruptHierarchyError`` instead of looping.
"""

from collections import deque
from collections.abc import Callable, Iterator
from typing import Literal, TypeVar

from tasktree.domain.shared.errors import CorruptHierarchyError
from tasktree.domain.task.models import TaskId, TaskNode, TaskStatus, TaskTree

T = TypeVar("T")

TaskFilter = Literal["all", "top-level", "leaf"]


# =============================================================================
# Fundamental Operations
# =============================================================================


def iter_display_order(tree: TaskTree) -> Iterator[TaskNode]:
    """Yield every node depth-first, siblings by ``sort_order``.

    This is the project's flattened display order: each top-level task
    followed by its subtree, then the next top-level task.
    """
    visited: set[TaskId] = set()
    stack: list[TaskId] = list(reversed(tree.root_ids))
    while stack:
        task_id = stack.pop()
        if task_id in visited:
            raise CorruptHierarchyError(f"Task {task_id} is reachable twice (cycle?)")
        visited.add(task_id)
        node = tree.nodes.get(task_id)
        if node is None:
            raise CorruptHierarchyError(f"Dangling reference to task {task_id}")
        yield node
        stack.extend(reversed(node.child_ids))


def flatten(tree: TaskTree) -> list[TaskNode]:
    """Return all nodes in display order."""
    return list(iter_display_order(tree))


def fold_tree(
    tree: TaskTree,
    initial: T,
    f: Callable[[T, TaskNode], T],
) -> T:
    """Fold over all nodes in display order.

    Args:
        tree: The tree to fold over
        initial: Starting accumulator value
        f: Function (accumulator, node) -> new_accumulator

    Returns:
        Final accumulated value after visiting all nodes
    """
    acc = initial
    for node in iter_display_order(tree):
        acc = f(acc, node)
    return acc


def filter_nodes(
    tree: TaskTree,
    predicate: Callable[[TaskNode], bool],
) -> list[TaskNode]:
    """Nodes matching ``predicate``, in display order."""

    def collect(acc: list[TaskNode], node: TaskNode) -> list[TaskNode]:
        if predicate(node):
            acc.append(node)
        return acc

    return fold_tree(tree, [], collect)


def find_first(
    tree: TaskTree,
    predicate: Callable[[TaskNode], bool],
) -> TaskNode | None:
    """First node in display order matching ``predicate``, or None."""
    for node in iter_display_order(tree):
        if predicate(node):
            return node
    return None


def iter_subtree(tree: TaskTree, root: TaskNode) -> Iterator[TaskNode]:
    """Yield ``root`` and all its descendants, breadth-first."""
    visited: set[TaskId] = set()
    queue: deque[TaskNode] = deque([root])
    while queue:
        node = queue.popleft()
        if node.id in visited:
            raise CorruptHierarchyError(f"Cycle detected below task {root.id} at task {node.id}")
        visited.add(node.id)
        yield node
        queue.extend(tree.children_of(node.id))


def descendants(tree: TaskTree, node: TaskNode) -> list[TaskNode]:
    """All descendants of ``node`` (excluding itself), breadth-first."""
    return list(iter_subtree(tree, node))[1:]


def ancestors(tree: TaskTree, node: TaskNode) -> list[TaskNode]:
    """Ancestors of ``node``, nearest first, following ``parent_id`` links.

    Raises:
        CorruptHierarchyError: On a cycle or a parent id that does not resolve.
    """
    chain: list[TaskNode] = []
    seen: set[TaskId] = {node.id}
    parent_id = node.parent_id
    while parent_id is not None:
        if parent_id in seen:
            raise CorruptHierarchyError(f"Cycle detected in ancestry of task {node.id}")
        parent = tree.nodes.get(parent_id)
        if parent is None:
            raise CorruptHierarchyError(
                f"Task {node.id} has dangling ancestor reference {parent_id}"
            )
        seen.add(parent_id)
        chain.append(parent)
        parent_id = parent.parent_id
    return chain


def compute_path(tree: TaskTree, node: TaskNode) -> list[TaskId]:
    """Materialized ancestor chain of ``node``, root first."""
    return [a.id for a in reversed(ancestors(tree, node))]


# =============================================================================
# Predicate Functions
# =============================================================================


def is_leaf(node: TaskNode) -> bool:
    return node.is_leaf()


def is_top_level(node: TaskNode) -> bool:
    return node.is_top_level()


def has_status(status: TaskStatus) -> Callable[[TaskNode], bool]:
    """Return a predicate that checks for a specific status."""

    def predicate(node: TaskNode) -> bool:
        return node.status == status

    return predicate


def in_iteration(iteration_id: str) -> Callable[[TaskNode], bool]:
    """Return a predicate matching tasks assigned to ``iteration_id``."""

    def predicate(node: TaskNode) -> bool:
        return node.iteration_id == iteration_id

    return predicate


# =============================================================================
# High-Level Operations
# =============================================================================


def get_parent(tree: TaskTree, node: TaskNode) -> TaskNode | None:
    """The parent of ``node``; None for top-level tasks and unresolved ids."""
    return tree.find(node.parent_id)


def get_root(tree: TaskTree, node: TaskNode) -> TaskNode:
    """The top-level ancestor of ``node`` (``node`` itself if top-level)."""
    chain = ancestors(tree, node)
    return chain[-1] if chain else node


def siblings(tree: TaskTree, node: TaskNode) -> list[TaskNode]:
    """Other members of ``node``'s sibling group, in display order."""
    return [n for n in tree.children_of(node.parent_id) if n.id != node.id]


def next_child_sort_order(tree: TaskTree, parent_id: TaskId | None) -> int:
    """The ``sort_order`` a task appended under ``parent_id`` would get."""
    group = tree.children_of(parent_id)
    return max((n.sort_order for n in group), default=0) + 1


def nearest_sized_ancestor(tree: TaskTree, start: TaskNode | None) -> TaskNode | None:
    """First node with a size, checking ``start`` and then its ancestors.

    Pass the parent of a task to find the node whose size bounds the
    task's story points.
    """
    if start is None:
        return None
    for candidate in [start, *ancestors(tree, start)]:
        if candidate.size is not None:
            return candidate
    return None


def has_incomplete_descendants(tree: TaskTree, node: TaskNode) -> bool:
    return any(d.status != TaskStatus.COMPLETED for d in descendants(tree, node))


def leaves(tree: TaskTree, root: TaskNode | None = None) -> list[TaskNode]:
    """Leaf tasks of the whole tree, or of the subtree under ``root``."""
    if root is None:
        return filter_nodes(tree, is_leaf)
    return [n for n in iter_subtree(tree, root) if n.is_leaf()]


def filter_tasks(tree: TaskTree, mode: TaskFilter = "all") -> list[TaskNode]:
    """Tasks for a list view: everything, top-level only, or leaves only."""
    if mode == "all":
        return flatten(tree)
    if mode == "top-level":
        return filter_nodes(tree, is_top_level)
    if mode == "leaf":
        return filter_nodes(tree, is_leaf)
    raise ValueError(f"Unknown task filter: {mode}")


def count_by_status(tree: TaskTree) -> dict[TaskStatus, int]:
    """Count leaf tasks by status.

    Only counts leaf nodes (actual work items), not parent tasks.
    """
    counts: dict[TaskStatus, int] = {status: 0 for status in TaskStatus}

    def count(acc: dict[TaskStatus, int], node: TaskNode) -> dict[TaskStatus, int]:
        if node.is_leaf():
            acc[node.status] += 1
        return acc

    return fold_tree(tree, counts, count)

"""Sibling-scoped reordering.

Positions are 1-based indexes into the project's flattened display order
(see ``traversal.flatten``). A task with a parent can only move inside the
block of display positions its sibling group occupies; top-level tasks can
move anywhere. A target position inside the block maps to the sibling whose
subtree contains it, and the mover takes that sibling's rank.

``reorder_to`` mutates the tree it is given. Callers run it on a working
copy inside the project lock.
"""

import logging
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from tasktree.domain.task.models import Priority, TaskId, TaskNode, TaskTree
from tasktree.domain.task.traversal import flatten, iter_subtree

logger = logging.getLogger(__name__)

OUTSIDE_PARENT_CONTEXT_MESSAGE = (
    "Subtasks cannot be moved outside their parent task context. "
    "Use the edit form to change the parent."
)
INVALID_POSITION_MESSAGE = "Invalid position."


class ReorderConfirmation(BaseModel):
    """Advisory raised when a task lands among siblings of another priority."""

    type: Literal["moving_to_higher_priority", "moving_to_lower_priority"]
    task_priority: Priority
    neighbor_priorities: list[Priority]
    suggested_priority: Priority


class ReorderResult(BaseModel):
    """Outcome of a reorder request."""

    success: bool
    message: str
    old_position: int | None = None
    new_position: int | None = None
    sort_order: int | None = None
    move_count: int = 0
    priority_changed: bool = False
    old_priority: Priority | None = None
    new_priority: Priority | None = None
    notice: ReorderConfirmation | None = None


# =============================================================================
# Position Arithmetic
# =============================================================================


def display_positions(tree: TaskTree) -> dict[TaskId, int]:
    """Map every task id to its 1-based display position."""
    return {node.id: index for index, node in enumerate(flatten(tree), start=1)}


def _subtree_size(tree: TaskTree, node: TaskNode) -> int:
    return sum(1 for _ in iter_subtree(tree, node))


def _sibling_spans(
    tree: TaskTree,
    parent_id: TaskId | None,
    positions: dict[TaskId, int],
) -> list[tuple[int, int]]:
    """Inclusive display span of each sibling's subtree, in sibling order."""
    spans = []
    for sibling in tree.children_of(parent_id):
        start = positions[sibling.id]
        spans.append((start, start + _subtree_size(tree, sibling) - 1))
    return spans


def sibling_block_range(tree: TaskTree, node: TaskNode) -> tuple[int, int]:
    """Inclusive range of display positions ``node`` may be moved to.

    For a subtask this is the contiguous block covering its sibling group and
    their subtrees. For a top-level task it is the whole list.
    """
    if node.is_top_level():
        return 1, len(tree)
    spans = _sibling_spans(tree, node.parent_id, display_positions(tree))
    return spans[0][0], spans[-1][1]


def _target_rank(spans: list[tuple[int, int]], position: int) -> int:
    for rank, (start, end) in enumerate(spans):
        if start <= position <= end:
            return rank
    raise ValueError(f"Position {position} is outside the sibling block")


def _neighbors(tree: TaskTree, node: TaskNode, target_rank: int) -> list[TaskNode]:
    """Siblings adjacent to the slot ``node`` would occupy at ``target_rank``."""
    others = [n for n in tree.children_of(node.parent_id) if n.id != node.id]
    neighbors = []
    if target_rank > 0:
        neighbors.append(others[target_rank - 1])
    if target_rank < len(others):
        neighbors.append(others[target_rank])
    return neighbors


def _priority_bounds(tree: TaskTree, node: TaskNode) -> tuple[int, int]:
    """Lowest and highest priority level ``node`` may take without breaking
    monotonicity with its parent or its children."""
    parent = tree.find(node.parent_id)
    low = parent.priority.level if parent else Priority.LOW.level
    children = tree.children_of(node.id)
    high = min((c.priority.level for c in children), default=Priority.HIGH.level)
    return low, high


# =============================================================================
# Advisory
# =============================================================================


def _confirmation_for(
    tree: TaskTree,
    node: TaskNode,
    target_rank: int,
) -> ReorderConfirmation | None:
    neighbors = _neighbors(tree, node, target_rank)
    if not neighbors:
        return None
    strongest = max((n.priority for n in neighbors), key=lambda p: p.level)
    if strongest == node.priority:
        return None
    direction = (
        "moving_to_higher_priority"
        if strongest.level > node.priority.level
        else "moving_to_lower_priority"
    )
    return ReorderConfirmation(
        type=direction,
        task_priority=node.priority,
        neighbor_priorities=[n.priority for n in neighbors],
        suggested_priority=strongest,
    )


def check_reorder_confirmation(
    tree: TaskTree,
    node_id: TaskId,
    new_position: int,
) -> ReorderConfirmation | None:
    """Describe the priority context a move would land the task in.

    Returns None when the position is not a valid target or the neighbors
    around the target slot share the task's priority.
    """
    node = tree.get(node_id)
    start, end = sibling_block_range(tree, node)
    if not start <= new_position <= end:
        return None
    spans = _sibling_spans(tree, node.parent_id, display_positions(tree))
    return _confirmation_for(tree, node, _target_rank(spans, new_position))


# =============================================================================
# Reorder
# =============================================================================


def reorder_to(
    tree: TaskTree,
    node_id: TaskId,
    new_position: int,
    confirmed: bool = False,
    now: datetime | None = None,
) -> ReorderResult:
    """Move a task to ``new_position`` within its sibling block.

    Out-of-block moves of subtasks always fail and leave the tree untouched.
    With ``confirmed`` set and a priority advisory present, the task adopts
    the neighbors' priority, clamped so it stays at or above its parent and
    at or below its children.

    Args:
        tree: Working copy of the project's tree (mutated).
        node_id: Task to move.
        new_position: 1-based target index in the flattened display order.
        confirmed: Apply the suggested priority adjustment.
        now: Timestamp recorded as ``last_moved_at``.

    Returns:
        ReorderResult with ``success`` False and a message on rejection.
    """
    node = tree.get(node_id)
    positions = display_positions(tree)
    old_position = positions[node.id]

    if node.is_top_level() and not 1 <= new_position <= len(tree):
        return ReorderResult(success=False, message=INVALID_POSITION_MESSAGE, old_position=old_position)

    start, end = sibling_block_range(tree, node)
    if not start <= new_position <= end:
        logger.info(
            f"Rejected move of task {node.id} to position {new_position}: "
            f"outside sibling block {start}-{end}"
        )
        return ReorderResult(
            success=False,
            message=OUTSIDE_PARENT_CONTEXT_MESSAGE,
            old_position=old_position,
            sort_order=node.sort_order,
        )

    spans = _sibling_spans(tree, node.parent_id, positions)
    group = tree.group_ids(node.parent_id)
    old_rank = group.index(node.id)
    target_rank = _target_rank(spans, new_position)
    notice = _confirmation_for(tree, node, target_rank)

    if target_rank == old_rank:
        return ReorderResult(
            success=True,
            message="Task is already at that position.",
            old_position=old_position,
            new_position=old_position,
            sort_order=node.sort_order,
            move_count=node.move_count,
            notice=notice,
        )

    group.pop(old_rank)
    group.insert(target_rank, node.id)
    tree.renumber(node.parent_id)

    node.move_count += 1
    node.current_order_index = node.sort_order
    node.last_moved_at = now or datetime.now(UTC)

    result = ReorderResult(
        success=True,
        message="Task reordered successfully.",
        old_position=old_position,
        new_position=display_positions(tree)[node.id],
        sort_order=node.sort_order,
        move_count=node.move_count,
        notice=notice,
    )

    if notice is not None and not confirmed:
        logger.warning(
            f"Task {node.id} moved next to {notice.type.removeprefix('moving_to_')} "
            f"tasks without confirmation; priority left at {node.priority.value}"
        )
    elif notice is not None:
        low, high = _priority_bounds(tree, node)
        level = min(max(notice.suggested_priority.level, low), high)
        adjusted = Priority.from_level(level)
        if adjusted != node.priority:
            result.priority_changed = True
            result.old_priority = node.priority
            result.new_priority = adjusted
            result.message += f" Priority changed from {node.priority.value} to {adjusted.value}."
            node.priority = adjusted

    logger.info(
        f"Moved task {node.id} from position {old_position} to {result.new_position} "
        f"(sort_order {node.sort_order})"
    )
    return result

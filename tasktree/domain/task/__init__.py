"""Task domain - hierarchy, constraints and rollups.

This module provides the domain layer for the task hierarchy engine. All
exports are pure apart from the hierarchy and ordering mutators, which
change the ``TaskTree`` passed to them and nothing else.

Key Types:
    TaskStatus - Task state enumeration
    Priority - Ordered task priority
    TaskSize - Ordinal T-shirt size
    TaskNode - A task in the arena
    TaskTree - Arena of a project's tasks
    ProposedTask - Candidate subtask from an external source
    SizePolicy - Size to story-point ceiling table

Traversal Functions:
    flatten - Display order
    fold_tree - Fundamental fold operation
    ancestors - Ancestor chain, nearest first
    leaves - Leaf tasks
    filter_tasks - List view filter

Validation Functions:
    validate_priority - Priority against parent
    validate_story_points - Points against scale and ceiling
    validate_breakdown_batch - All-or-nothing batch check

Hierarchy Functions:
    insert_task, delete_task, reparent_task - Shape changes
    reorder_to - Sibling-scoped moves
    propagate_upward - Status rollup
"""

from .aggregation import (
    derive_status,
    propagate_upward,
    recompute_completion_percentage,
    recompute_status,
    refresh_all,
)
from .due_dates import DEFAULT_DUE_DATE_FRACTIONS, apply_due_dates, compute_due_date
from .events import (
    BreakdownCommitted,
    StoryPointsChanged,
    TaskCreated,
    TaskDeleted,
    TaskReordered,
    TaskReparented,
    TaskStatusChanged,
)
from .hierarchy import (
    check_invariants,
    delete_task,
    insert_proposed,
    insert_task,
    reparent_task,
    set_status,
    update_details,
    update_priority,
    update_size,
    update_story_points,
)
from .models import (
    Priority,
    ProposedTask,
    TaskId,
    TaskNode,
    TaskSize,
    TaskStatus,
    TaskTree,
)
from .ordering import (
    INVALID_POSITION_MESSAGE,
    OUTSIDE_PARENT_CONTEXT_MESSAGE,
    ReorderConfirmation,
    ReorderResult,
    check_reorder_confirmation,
    display_positions,
    reorder_to,
    sibling_block_range,
)
from .sizing import (
    FIBONACCI_POINTS,
    SIZE_TO_MAX_STORY_POINTS,
    SizePolicy,
    is_fibonacci,
    parse_size,
)
from .traversal import (
    TaskFilter,
    ancestors,
    compute_path,
    count_by_status,
    descendants,
    filter_nodes,
    filter_tasks,
    find_first,
    flatten,
    fold_tree,
    get_parent,
    get_root,
    has_incomplete_descendants,
    has_status,
    in_iteration,
    is_leaf,
    is_top_level,
    iter_display_order,
    iter_subtree,
    leaves,
    nearest_sized_ancestor,
    next_child_sort_order,
    siblings,
)
from .validation import (
    BREAKDOWN_GENERIC_ERROR,
    BREAKDOWN_POINTS_ERROR,
    BatchValidationResult,
    ValidationResult,
    ceiling_size_for,
    ensure_priority,
    ensure_story_points,
    validate_breakdown,
    validate_breakdown_batch,
    validate_priority,
    validate_priority_against_children,
    validate_priority_batch,
    validate_story_points,
)

__all__ = [
    # Models
    "TaskId",
    "TaskStatus",
    "Priority",
    "TaskSize",
    "TaskNode",
    "TaskTree",
    "ProposedTask",
    # Sizing
    "FIBONACCI_POINTS",
    "SIZE_TO_MAX_STORY_POINTS",
    "SizePolicy",
    "is_fibonacci",
    "parse_size",
    # Traversal - fundamental
    "iter_display_order",
    "flatten",
    "fold_tree",
    "filter_nodes",
    "find_first",
    "iter_subtree",
    "descendants",
    "ancestors",
    "compute_path",
    # Traversal - predicates
    "is_leaf",
    "is_top_level",
    "has_status",
    "in_iteration",
    # Traversal - high-level
    "TaskFilter",
    "get_parent",
    "get_root",
    "siblings",
    "next_child_sort_order",
    "nearest_sized_ancestor",
    "has_incomplete_descendants",
    "leaves",
    "filter_tasks",
    "count_by_status",
    # Aggregation
    "derive_status",
    "recompute_status",
    "recompute_completion_percentage",
    "propagate_upward",
    "refresh_all",
    # Validation
    "BREAKDOWN_POINTS_ERROR",
    "BREAKDOWN_GENERIC_ERROR",
    "ValidationResult",
    "BatchValidationResult",
    "validate_priority",
    "validate_priority_batch",
    "validate_priority_against_children",
    "ensure_priority",
    "validate_story_points",
    "ensure_story_points",
    "ceiling_size_for",
    "validate_breakdown_batch",
    "validate_breakdown",
    # Hierarchy
    "insert_task",
    "insert_proposed",
    "delete_task",
    "reparent_task",
    "update_priority",
    "update_size",
    "update_story_points",
    "set_status",
    "update_details",
    "check_invariants",
    # Ordering
    "OUTSIDE_PARENT_CONTEXT_MESSAGE",
    "INVALID_POSITION_MESSAGE",
    "ReorderConfirmation",
    "ReorderResult",
    "display_positions",
    "sibling_block_range",
    "check_reorder_confirmation",
    "reorder_to",
    # Due dates
    "DEFAULT_DUE_DATE_FRACTIONS",
    "compute_due_date",
    "apply_due_dates",
    # Events
    "TaskCreated",
    "TaskDeleted",
    "TaskReparented",
    "TaskReordered",
    "TaskStatusChanged",
    "StoryPointsChanged",
    "BreakdownCommitted",
]

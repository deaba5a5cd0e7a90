"""Tests for sibling-scoped reordering."""

from datetime import UTC, datetime

import pytest

from tasktree.domain.task import (
    INVALID_POSITION_MESSAGE,
    OUTSIDE_PARENT_CONTEXT_MESSAGE,
    Priority,
    TaskTree,
    check_invariants,
    check_reorder_confirmation,
    display_positions,
    flatten,
    insert_task,
    reorder_to,
    sibling_block_range,
)

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def top_level(*priorities):
    """A tree of top-level tasks T1..Tn with the given priorities."""
    tree = TaskTree(project_id="acme")
    for index, priority in enumerate(priorities, start=1):
        insert_task(tree, f"T{index}", priority=priority)
    return tree


# =============================================================================
# Block ranges
# =============================================================================


class TestSiblingBlockRange:
    """Display range a task may be moved within."""

    def test_subtask_block_covers_sibling_group(self, sample_tree):
        assert sibling_block_range(sample_tree, sample_tree.get(4)) == (4, 5)

    def test_block_includes_last_sibling_subtree(self, sample_tree):
        """Design's block ends after Build's subtree."""
        assert sibling_block_range(sample_tree, sample_tree.get(2)) == (2, 5)

    def test_top_level_block_is_whole_list(self, sample_tree):
        assert sibling_block_range(sample_tree, sample_tree.get(1)) == (1, 6)

    def test_display_positions(self, sample_tree):
        assert display_positions(sample_tree) == {1: 1, 2: 2, 3: 3, 4: 4, 5: 5, 6: 6}


# =============================================================================
# Reorder
# =============================================================================


class TestReorderRejections:
    """Moves that must not change anything."""

    def test_subtask_outside_parent_context(self, sample_tree):
        """Moving API above its sibling block fails with the fixed message."""
        api = sample_tree.get(4)
        result = reorder_to(sample_tree, api.id, 2, now=NOW)
        assert result.success is False
        assert result.message == OUTSIDE_PARENT_CONTEXT_MESSAGE
        assert api.sort_order == 1
        assert api.move_count == 0

    def test_confirmation_does_not_bypass_scope(self, sample_tree):
        result = reorder_to(sample_tree, 4, 6, confirmed=True, now=NOW)
        assert result.success is False
        assert result.message == OUTSIDE_PARENT_CONTEXT_MESSAGE

    @pytest.mark.parametrize("position", [0, -1, 7])
    def test_invalid_position(self, sample_tree, position):
        result = reorder_to(sample_tree, 1, position, now=NOW)
        assert result.success is False
        assert result.message == INVALID_POSITION_MESSAGE

    @pytest.mark.parametrize("position", [0, 7])
    def test_subtask_beyond_tree_keeps_context_message(self, sample_tree, position):
        result = reorder_to(sample_tree, 2, position, now=NOW)
        assert result.success is False
        assert result.message == OUTSIDE_PARENT_CONTEXT_MESSAGE
        assert sample_tree.get(2).move_count == 0

    def test_same_position_is_not_a_move(self, sample_tree):
        result = reorder_to(sample_tree, 4, 4, now=NOW)
        assert result.success is True
        assert sample_tree.get(4).move_count == 0
        assert sample_tree.get(4).last_moved_at is None


class TestReorderMoves:
    """Moves inside the sibling block."""

    def test_swap_subtasks(self, sample_tree):
        result = reorder_to(sample_tree, 4, 5, now=NOW)
        api, ui = sample_tree.get(4), sample_tree.get(5)
        assert result.success
        assert (api.sort_order, ui.sort_order) == (2, 1)
        assert result.old_position == 4
        assert result.new_position == 5
        assert api.move_count == 1
        assert api.current_order_index == 2
        assert api.initial_order_index == 1
        assert api.last_moved_at == NOW
        assert check_invariants(sample_tree) == []

    def test_target_inside_sibling_subtree(self, sample_tree):
        """Position 4 lies in Build's subtree, so Design takes Build's slot."""
        result = reorder_to(sample_tree, 2, 4, now=NOW)
        assert result.success
        assert sample_tree.get(2).sort_order == 2
        assert sample_tree.get(3).sort_order == 1
        assert [n.id for n in flatten(sample_tree)] == [1, 3, 4, 5, 2, 6]
        assert result.new_position == 5

    def test_top_level_anywhere(self, sample_tree):
        result = reorder_to(sample_tree, 6, 1, now=NOW)
        assert result.success
        assert sample_tree.root_ids == [6, 1]
        assert sample_tree.get(6).sort_order == 1
        assert sample_tree.get(1).sort_order == 2

    def test_sort_orders_stay_contiguous(self):
        tree = top_level(*[Priority.MEDIUM] * 5)
        reorder_to(tree, 5, 1, now=NOW)
        reorder_to(tree, 2, 4, now=NOW)
        orders = sorted(tree.get(i).sort_order for i in tree.root_ids)
        assert orders == [1, 2, 3, 4, 5]
        assert check_invariants(tree) == []


# =============================================================================
# Priority advisory
# =============================================================================


class TestReorderConfirmation:
    """Priority context of a move."""

    def test_low_task_moved_next_to_high(self):
        tree = top_level(Priority.HIGH, Priority.LOW)
        confirmation = check_reorder_confirmation(tree, 2, 1)
        assert confirmation.type == "moving_to_higher_priority"
        assert confirmation.task_priority is Priority.LOW
        assert Priority.HIGH in confirmation.neighbor_priorities

    def test_same_priority_neighbors(self):
        tree = top_level(Priority.MEDIUM, Priority.MEDIUM, Priority.MEDIUM)
        assert check_reorder_confirmation(tree, 1, 3) is None

    def test_outside_block_has_no_advisory(self, sample_tree):
        assert check_reorder_confirmation(sample_tree, 4, 1) is None

    def test_unconfirmed_move_succeeds_without_priority_change(self):
        tree = top_level(Priority.LOW, Priority.HIGH)
        result = reorder_to(tree, 1, 2, confirmed=False, now=NOW)
        assert result.success
        assert result.priority_changed is False
        assert result.notice.type == "moving_to_higher_priority"
        assert tree.get(1).priority is Priority.LOW

    def test_confirmed_promotion(self):
        tree = top_level(Priority.LOW, Priority.HIGH, Priority.HIGH)
        result = reorder_to(tree, 1, 3, confirmed=True, now=NOW)
        assert result.success
        assert result.priority_changed
        assert result.old_priority is Priority.LOW
        assert result.new_priority is Priority.HIGH
        assert "Priority changed from low to high" in result.message
        assert tree.get(1).priority is Priority.HIGH
        assert tree.get(1).sort_order == 3

    def test_confirmed_demotion(self):
        tree = top_level(Priority.HIGH, Priority.LOW, Priority.LOW)
        result = reorder_to(tree, 1, 3, confirmed=True, now=NOW)
        assert result.new_priority is Priority.LOW
        assert tree.get(1).priority is Priority.LOW

    def test_confirmed_without_advisory_keeps_priority(self):
        tree = top_level(Priority.MEDIUM, Priority.MEDIUM, Priority.MEDIUM)
        result = reorder_to(tree, 1, 3, confirmed=True, now=NOW)
        assert result.success
        assert result.priority_changed is False
        assert result.old_priority is None

    def test_adjustment_clamped_by_children(self):
        """A parent cannot be raised above its own subtasks."""
        tree = TaskTree(project_id="acme")
        parent = insert_task(tree, "Parent", priority=Priority.LOW)
        insert_task(tree, "Child", parent.id, priority=Priority.MEDIUM)
        insert_task(tree, "Urgent", priority=Priority.HIGH)
        result = reorder_to(tree, parent.id, 3, confirmed=True, now=NOW)
        assert result.new_priority is Priority.MEDIUM
        assert check_invariants(tree) == []

    def test_subtask_adopts_sibling_priority(self):
        """A confirmed subtask move lands at the sibling priority, still within its parent bound."""
        tree = TaskTree(project_id="acme")
        parent = insert_task(tree, "Parent", priority=Priority.MEDIUM)
        insert_task(tree, "First", parent.id, priority=Priority.HIGH)
        insert_task(tree, "Second", parent.id, priority=Priority.MEDIUM)
        result = reorder_to(tree, 2, 3, confirmed=True, now=NOW)
        assert result.success
        assert tree.get(2).priority is Priority.MEDIUM
        assert check_invariants(tree) == []

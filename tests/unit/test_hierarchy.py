"""Tests for structural tree maintenance."""

from datetime import date

import pytest

from tasktree.domain.shared import (
    CrossProjectParentError,
    DerivedStatusError,
    FibonacciViolation,
    InvalidReparentError,
    PriorityConstraintViolation,
    StoryPointCeilingViolation,
    TaskNotFoundError,
)
from tasktree.domain.task import (
    Priority,
    ProposedTask,
    TaskSize,
    TaskStatus,
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


# =============================================================================
# Insert
# =============================================================================


class TestInsertTask:
    """Creation of tasks under a parent or at the project root."""

    def test_materialized_path_and_depth(self, sample_tree):
        api = sample_tree.get(4)
        assert api.path == [1, 3]
        assert api.depth == 2
        assert sample_tree.get(1).path == []
        assert sample_tree.get(1).depth == 0

    def test_appended_as_last_child(self, sample_tree):
        node = insert_task(sample_tree, "Tests", 3)
        assert sample_tree.get(3).child_ids[-1] == node.id
        assert node.sort_order == 3
        assert node.initial_order_index == 3

    def test_priority_defaults_to_parent(self, sample_tree):
        assert insert_task(sample_tree, "Note", 6).priority is Priority.LOW
        assert insert_task(sample_tree, "Loose").priority is Priority.MEDIUM

    def test_blank_title(self, sample_tree):
        assert insert_task(sample_tree, "   ").title == "Untitled Task"

    def test_unknown_parent(self, sample_tree):
        with pytest.raises(TaskNotFoundError):
            insert_task(sample_tree, "Orphan", 99)

    def test_cross_project_rejected(self, sample_tree):
        with pytest.raises(CrossProjectParentError):
            insert_task(sample_tree, "Elsewhere", 1, project_id="other")
        assert len(sample_tree) == 6

    def test_priority_below_parent_rejected(self, sample_tree):
        with pytest.raises(PriorityConstraintViolation):
            insert_task(sample_tree, "Low", 1, priority=Priority.LOW)
        assert sample_tree.get(1).child_ids == [2, 3]

    def test_points_over_inherited_ceiling(self, sample_tree):
        """Build is unsized, so Epic's m caps new subtasks at 5."""
        with pytest.raises(StoryPointCeilingViolation, match="maximum allowed is 5"):
            insert_task(sample_tree, "Huge", 3, story_points=8)

    def test_non_fibonacci_points(self, sample_tree):
        with pytest.raises(FibonacciViolation):
            insert_task(sample_tree, "Odd", story_points=4)

    def test_parent_status_updates(self, sample_tree):
        """Adding a pending leaf under a completed parent reopens it."""
        set_status(sample_tree, 6, TaskStatus.COMPLETED)
        insert_task(sample_tree, "More docs", 6)
        assert sample_tree.get(6).status is TaskStatus.PENDING

    def test_insert_proposed_ignores_size(self, sample_tree):
        proposed = ProposedTask(title="Outline", size="xl", story_points=2)
        node = insert_proposed(sample_tree, proposed, 3)
        assert node.size is None
        assert node.current_story_points == 2
        assert node.priority is Priority.HIGH


# =============================================================================
# Delete
# =============================================================================


class TestDeleteTask:
    """Cascading deletion."""

    def test_removes_whole_subtree(self, sample_tree):
        removed = delete_task(sample_tree, 1)
        assert removed == [1, 2, 3, 4, 5]
        assert sorted(sample_tree.nodes) == [6]
        assert sample_tree.root_ids == [6]
        assert sample_tree.get(6).sort_order == 1
        for task_id in removed:
            with pytest.raises(TaskNotFoundError):
                sample_tree.get(task_id)

    def test_siblings_close_gap(self, sample_tree):
        delete_task(sample_tree, 4)
        assert sample_tree.get(3).child_ids == [5]
        assert sample_tree.get(5).sort_order == 1
        assert check_invariants(sample_tree) == []

    def test_parent_status_recomputed(self, sample_tree):
        """Deleting the only pending child leaves the parent completed."""
        set_status(sample_tree, 4, TaskStatus.COMPLETED)
        delete_task(sample_tree, 5)
        assert sample_tree.get(3).status is TaskStatus.COMPLETED

    def test_ids_not_reused(self, sample_tree):
        delete_task(sample_tree, 6)
        assert insert_task(sample_tree, "New").id == 7


# =============================================================================
# Reparent
# =============================================================================


class TestReparentTask:
    """Moving a subtree under a new parent."""

    def test_rewrites_paths_of_subtree(self, sample_tree):
        reparent_task(sample_tree, 3, 6)
        build, api = sample_tree.get(3), sample_tree.get(4)
        assert build.parent_id == 6
        assert build.path == [6]
        assert build.depth == 1
        assert api.path == [6, 3]
        assert api.depth == 2
        assert sample_tree.get(1).child_ids == [2]
        assert sample_tree.get(6).child_ids == [3]
        assert check_invariants(sample_tree) == []

    def test_both_chains_refreshed(self, sample_tree):
        set_status(sample_tree, 2, TaskStatus.COMPLETED)
        assert sample_tree.get(1).status is TaskStatus.IN_PROGRESS
        reparent_task(sample_tree, 3, 6)
        assert sample_tree.get(1).status is TaskStatus.COMPLETED
        assert sample_tree.get(6).status is TaskStatus.PENDING

    def test_under_own_descendant(self, sample_tree):
        with pytest.raises(InvalidReparentError):
            reparent_task(sample_tree, 1, 4)

    def test_under_itself(self, sample_tree):
        with pytest.raises(InvalidReparentError):
            reparent_task(sample_tree, 3, 3)

    def test_priority_failure_leaves_tree_unchanged(self, sample_tree):
        before = sample_tree.model_dump()
        with pytest.raises(PriorityConstraintViolation):
            reparent_task(sample_tree, 6, 1)
        assert sample_tree.model_dump() == before

    def test_ceiling_failure(self, sample_tree):
        """UI has 5 points; an xs parent allows only 2."""
        tiny = insert_task(sample_tree, "Tiny", size=TaskSize.XS, priority=Priority.HIGH)
        with pytest.raises(StoryPointCeilingViolation):
            reparent_task(sample_tree, 5, tiny.id)
        assert sample_tree.get(5).parent_id == 3

    def test_to_top_level(self, sample_tree):
        reparent_task(sample_tree, 4, None)
        api = sample_tree.get(4)
        assert api.parent_id is None
        assert api.path == []
        assert api.depth == 0
        assert sample_tree.root_ids == [1, 6, 4]
        assert api.sort_order == 3
        assert check_invariants(sample_tree) == []

    def test_same_parent_is_noop(self, sample_tree):
        before = sample_tree.model_dump()
        reparent_task(sample_tree, 4, 3)
        assert sample_tree.model_dump() == before


# =============================================================================
# Field Updates
# =============================================================================


class TestFieldUpdates:
    """Constrained single-field updates."""

    def test_story_point_history(self, sample_tree):
        docs = sample_tree.get(6)
        assert update_story_points(sample_tree, 6, 3)
        assert (docs.initial_story_points, docs.current_story_points) == (3, 3)
        assert docs.story_points_change_count == 0
        assert update_story_points(sample_tree, 6, 5)
        assert (docs.initial_story_points, docs.current_story_points) == (3, 5)
        assert docs.story_points_change_count == 1

    def test_unchanged_points_not_counted(self, sample_tree):
        assert update_story_points(sample_tree, 4, 2) is False
        assert sample_tree.get(4).story_points_change_count == 0

    def test_story_points_validated(self, sample_tree):
        with pytest.raises(FibonacciViolation):
            update_story_points(sample_tree, 6, 4)
        with pytest.raises(StoryPointCeilingViolation):
            update_story_points(sample_tree, 4, 8)

    def test_priority_below_parent(self, sample_tree):
        with pytest.raises(PriorityConstraintViolation):
            update_priority(sample_tree, 4, Priority.MEDIUM)

    def test_priority_above_children(self, sample_tree):
        insert_task(sample_tree, "Note", 6)
        with pytest.raises(PriorityConstraintViolation, match="higher priority than its subtasks"):
            update_priority(sample_tree, 6, Priority.HIGH)

    def test_lowering_a_parent_is_allowed(self, sample_tree):
        assert update_priority(sample_tree, 1, Priority.MEDIUM)
        assert check_invariants(sample_tree) == []

    def test_shrinking_size_revalidates_descendants(self, sample_tree):
        """Design (3) and UI (5) do not fit under xs."""
        with pytest.raises(StoryPointCeilingViolation):
            update_size(sample_tree, 1, TaskSize.XS)
        assert sample_tree.get(1).size is TaskSize.M

    def test_growing_size(self, sample_tree):
        assert update_size(sample_tree, 1, "l")
        assert sample_tree.get(1).size is TaskSize.L
        assert update_size(sample_tree, 1, "l") is False

    def test_status_of_parent_is_derived(self, sample_tree):
        with pytest.raises(DerivedStatusError):
            set_status(sample_tree, 3, TaskStatus.COMPLETED)

    def test_set_status_propagates(self, sample_tree):
        touched = set_status(sample_tree, 4, TaskStatus.COMPLETED)
        assert [n.id for n in touched] == [4, 3, 1]
        assert sample_tree.get(3).status is TaskStatus.IN_PROGRESS
        assert sample_tree.get(1).completion_percentage == 25.0

    def test_update_details(self, sample_tree):
        update_details(sample_tree, 6, title="Manual", due_date=date(2025, 2, 1), iteration_id="sprint-1")
        docs = sample_tree.get(6)
        assert (docs.title, docs.due_date, docs.iteration_id) == ("Manual", date(2025, 2, 1), "sprint-1")
        update_details(sample_tree, 6, due_date=None)
        assert docs.due_date is None
        assert docs.iteration_id == "sprint-1"


# =============================================================================
# Audit
# =============================================================================


class TestCheckInvariants:
    """Whole-tree audit."""

    def test_sound_tree(self, sample_tree):
        assert check_invariants(sample_tree) == []

    def test_reports_priority_breach(self, sample_tree):
        sample_tree.get(4).priority = Priority.LOW
        problems = check_invariants(sample_tree)
        assert len(problems) == 1
        assert "below parent priority high" in problems[0]

    def test_reports_sort_order_gap(self, sample_tree):
        sample_tree.get(5).sort_order = 7
        assert any("Sort orders under 3" in p for p in check_invariants(sample_tree))

    def test_reports_cycle(self, sample_tree):
        sample_tree.get(5).child_ids.append(1)
        assert len(check_invariants(sample_tree)) == 1

"""Default due dates for new subtasks.

Only the immediate parent's due date is ever consulted. The remaining
window between today and the parent's due date is sliced by priority:
higher priority lands earlier. The result never exceeds the parent's due
date and is never in the past.
"""

from collections.abc import Mapping, Sequence
from datetime import date, timedelta

from tasktree.domain.task.models import Priority, ProposedTask, TaskNode

DEFAULT_DUE_DATE_FRACTIONS: dict[Priority, float] = {
    Priority.HIGH: 0.4,
    Priority.MEDIUM: 0.6,
    Priority.LOW: 0.8,
}


def compute_due_date(
    proposed: ProposedTask,
    parent: TaskNode,
    today: date | None = None,
    fractions: Mapping[Priority, float] | None = None,
) -> date | None:
    """Default due date for ``proposed`` placed under ``parent``.

    Returns None when the parent has no due date or its due date is past.
    Otherwise returns ``today + max(1, round(window * fraction))`` clamped
    to the parent's due date, where the fraction depends on the proposed
    priority (the parent's priority when none is given).
    """
    if parent.due_date is None:
        return None
    today = today or date.today()
    if parent.due_date < today:
        return None

    fractions = fractions or DEFAULT_DUE_DATE_FRACTIONS
    priority = proposed.priority or parent.priority
    window = (parent.due_date - today).days
    offset = max(1, round(window * fractions[priority]))
    return min(today + timedelta(days=offset), parent.due_date)


def _upstream_date_fits(value: date | None, parent: TaskNode, today: date) -> bool:
    return (
        value is not None
        and parent.due_date is not None
        and today <= value <= parent.due_date
    )


def apply_due_dates(
    proposed: Sequence[ProposedTask],
    parent: TaskNode,
    today: date | None = None,
    preserve_upstream: bool = True,
    fractions: Mapping[Priority, float] | None = None,
) -> list[ProposedTask]:
    """Return copies of ``proposed`` with authoritative due dates.

    An upstream due date survives only when ``preserve_upstream`` is set
    and it already lies between today and the parent's due date.
    """
    today = today or date.today()
    resolved = []
    for item in proposed:
        if preserve_upstream and _upstream_date_fits(item.due_date, parent, today):
            resolved.append(item.model_copy())
            continue
        due = compute_due_date(item, parent, today, fractions)
        resolved.append(item.model_copy(update={"due_date": due}))
    return resolved

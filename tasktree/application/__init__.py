"""Application service layer for tasktree.

This package contains the service that orchestrates domain operations with
persistence and per-project locking.

Services:
    task_service - Task hierarchy operations, breakdown validation and queries
    locking - Per-project mutual exclusion

Example usage:
    >>> from tasktree.application import TaskService
    >>> from tasktree.infrastructure import InMemoryTaskTreeRepository
    >>> from tasktree.domain.shared import is_ok
    >>>
    >>> service = TaskService(InMemoryTaskTreeRepository())
    >>> result = service.create_task("acme", "Checkout", size="m")
    >>> if is_ok(result):
    ...     print(f"Created task {result.value.id}")
"""

from tasktree.application.locking import ProjectLockRegistry
from tasktree.application.task_service import (
    BreakdownValidation,
    TaskService,
    TaskView,
    TreeStats,
)

__all__ = [
    "TaskService",
    "TaskView",
    "TreeStats",
    "BreakdownValidation",
    "ProjectLockRegistry",
]

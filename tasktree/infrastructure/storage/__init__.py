"""Storage infrastructure for tasktree.

Provides persistence for project task trees, using Result monads for
explicit error handling.
"""

from tasktree.infrastructure.storage.json_storage import JsonStorage
from tasktree.infrastructure.storage.repositories import (
    TREE_FILE,
    InMemoryTaskTreeRepository,
    TaskTreeRepository,
    validate_project_id,
)

__all__ = [
    "JsonStorage",
    "TREE_FILE",
    "TaskTreeRepository",
    "InMemoryTaskTreeRepository",
    "validate_project_id",
]

"""Infrastructure layer for tasktree.

This module provides clean interfaces for I/O operations, wrapping file
storage with Result monads for explicit error handling.

Exports:
    Storage:
        - JsonStorage: Low-level JSON file I/O
        - TaskTreeRepository: Task tree persistence on disk
        - InMemoryTaskTreeRepository: Task tree persistence in memory
"""

from tasktree.infrastructure.storage import (
    InMemoryTaskTreeRepository,
    JsonStorage,
    TaskTreeRepository,
)

__all__ = [
    "JsonStorage",
    "TaskTreeRepository",
    "InMemoryTaskTreeRepository",
]

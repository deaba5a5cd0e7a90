"""Shared pytest fixtures for tasktree tests.

The sample tree used throughout (display positions in brackets):

    [1] #1 Epic     high, size m
    [2]   #2 Design high, 3 pts
    [3]   #3 Build  high
    [4]     #4 API  high, 2 pts
    [5]     #5 UI   high, 5 pts
    [6] #6 Docs     low
"""

from datetime import date

import pytest

from tasktree.application import TaskService
from tasktree.domain.task import Priority, TaskTree, insert_task
from tasktree.infrastructure.storage import InMemoryTaskTreeRepository

PROJECT = "acme"
TODAY = date(2025, 1, 1)


def build_sample_tree() -> TaskTree:
    tree = TaskTree(project_id=PROJECT)
    epic = insert_task(tree, "Epic", size="m", priority=Priority.HIGH)
    insert_task(tree, "Design", epic.id, story_points=3)
    build = insert_task(tree, "Build", epic.id)
    insert_task(tree, "API", build.id, story_points=2)
    insert_task(tree, "UI", build.id, story_points=5)
    insert_task(tree, "Docs", priority=Priority.LOW)
    return tree


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def empty_tree() -> TaskTree:
    """A project tree without tasks."""
    return TaskTree(project_id=PROJECT)


@pytest.fixture
def sample_tree() -> TaskTree:
    """The three-level sample tree described in the module docstring."""
    return build_sample_tree()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def repository() -> InMemoryTaskTreeRepository:
    return InMemoryTaskTreeRepository()


@pytest.fixture
def service(repository) -> TaskService:
    """A service over an in-memory repository with a fixed 'today'."""
    svc = TaskService(repository, today=lambda: TODAY)
    svc.create_project(PROJECT)
    return svc


@pytest.fixture
def sample_service(repository) -> TaskService:
    """A service whose project already holds the sample tree."""
    repository.save(build_sample_tree())
    return TaskService(repository, today=lambda: TODAY)

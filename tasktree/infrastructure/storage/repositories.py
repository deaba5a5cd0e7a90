"""Repository implementations for project task trees.

Each project's tree lives in ``<data_dir>/<project_id>/tasks.json``. A
project directory without a tree file loads as an empty tree. Loaded trees
have their derived statuses recomputed, so a hand-edited or stale file
never exposes a parent status that disagrees with its children.
"""

import logging
import re
import shutil
from pathlib import Path

from pydantic import ValidationError

from tasktree.domain.shared.errors import CorruptHierarchyError
from tasktree.domain.shared.result import Err, Ok, Result, map_result, unwrap_or
from tasktree.domain.task.aggregation import refresh_all
from tasktree.domain.task.models import TaskTree
from tasktree.infrastructure.storage.json_storage import JsonStorage

logger = logging.getLogger(__name__)

TREE_FILE = "tasks.json"

_PROJECT_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def validate_project_id(project_id: str) -> Result[str, str]:
    """Project ids become directory names; allow only safe slugs."""
    if not _PROJECT_ID.match(project_id or ""):
        return Err(
            f"Invalid project id '{project_id}': use letters, digits, '-', '_' or '.'"
        )
    return Ok(project_id)


class TaskTreeRepository:
    """Repository for task tree persistence.

    Wraps tasks.json file operations with Result-based error handling.
    """

    def __init__(self, data_dir: Path, storage: JsonStorage | None = None) -> None:
        """Initialize the repository.

        Args:
            data_dir: Directory holding one sub-directory per project.
            storage: JsonStorage instance to use. Creates new one if not provided.
        """
        self._data_dir = Path(data_dir)
        self._storage = storage or JsonStorage()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _project_dir(self, project_id: str) -> Path:
        return self._data_dir / project_id

    def _tree_file(self, project_id: str) -> Path:
        return self._project_dir(project_id) / TREE_FILE

    def load(self, project_id: str) -> Result[TaskTree, str]:
        """Load the task tree for a project.

        Args:
            project_id: ID of the project to load the tree for.

        Returns:
            Ok(TaskTree) if successful (an empty tree if none is stored yet),
            Err(str) with error message if the file is unreadable or invalid.
        """
        checked = validate_project_id(project_id)
        if isinstance(checked, Err):
            return checked

        tree_file = self._tree_file(project_id)
        if not tree_file.exists():
            return Ok(TaskTree(project_id=project_id))

        result = self._storage.load_json(tree_file)
        if isinstance(result, Err):
            return result

        try:
            tree = TaskTree.model_validate(result.value)
        except ValidationError as e:
            return Err(f"Invalid tree data for project {project_id}: {e}")
        if tree.project_id != project_id:
            return Err(
                f"Tree file of project {project_id} belongs to project '{tree.project_id}'"
            )

        try:
            refresh_all(tree)
        except CorruptHierarchyError as e:
            logger.exception(f"Stored tree of project {project_id} is corrupt")
            return Err(f"Corrupt task hierarchy in project {project_id}: {e}")
        return Ok(tree)

    def save(self, tree: TaskTree) -> Result[None, str]:
        """Save a project's task tree.

        Args:
            tree: TaskTree instance to persist.

        Returns:
            Ok(None) if successful, Err(str) with error message if failed.
        """
        checked = validate_project_id(tree.project_id)
        if isinstance(checked, Err):
            return checked
        return self._storage.save_json(
            self._tree_file(tree.project_id), tree.model_dump(mode="json")
        )

    def exists(self, project_id: str) -> bool:
        """Check if a project directory exists.

        Args:
            project_id: ID of the project to check.

        Returns:
            True if the project has been initialized, False otherwise.
        """
        project_dir = map_result(validate_project_id(project_id), self._project_dir)
        return unwrap_or(map_result(project_dir, Path.is_dir), False)

    def create(self, project_id: str) -> Result[TaskTree, str]:
        """Initialize an empty project.

        Returns:
            Ok(TaskTree) with the new empty tree, Err(str) if the id is
            invalid, the project already exists or the write failed.
        """
        checked = validate_project_id(project_id)
        if isinstance(checked, Err):
            return checked
        if self.exists(project_id):
            return Err(f"Project already exists: {project_id}")

        tree = TaskTree(project_id=project_id)
        saved = self.save(tree)
        if isinstance(saved, Err):
            return saved
        return Ok(tree)

    def list_projects(self) -> Result[list[str], str]:
        """List all project ids, sorted.

        Returns:
            Ok(list[str]), Err(str) if the data directory cannot be read.
        """
        if not self._data_dir.exists():
            return Ok([])
        try:
            return Ok(sorted(p.name for p in self._data_dir.iterdir() if p.is_dir()))
        except PermissionError:
            return Err(f"Permission denied accessing {self._data_dir}")
        except OSError as e:
            return Err(f"Error listing projects: {e}")

    def delete(self, project_id: str) -> Result[None, str]:
        """Delete a project and all its data.

        Args:
            project_id: ID of the project to delete.

        Returns:
            Ok(None) if successful, Err(str) if failed.
        """
        checked = validate_project_id(project_id)
        if isinstance(checked, Err):
            return checked

        project_dir = self._project_dir(project_id)
        if not project_dir.exists():
            return Err(f"Project not found: {project_id}")

        try:
            shutil.rmtree(project_dir)
            return Ok(None)
        except PermissionError:
            return Err(f"Permission denied deleting {project_id}")
        except OSError as e:
            return Err(f"Error deleting project {project_id}: {e}")


class InMemoryTaskTreeRepository:
    """Repository keeping trees in memory, for embedding and tests.

    Stores serialized copies so callers never share mutable state with it.
    """

    def __init__(self) -> None:
        self._trees: dict[str, dict] = {}

    def load(self, project_id: str) -> Result[TaskTree, str]:
        data = self._trees.get(project_id)
        if data is None:
            return Ok(TaskTree(project_id=project_id))
        return Ok(TaskTree.model_validate(data))

    def save(self, tree: TaskTree) -> Result[None, str]:
        self._trees[tree.project_id] = tree.model_dump(mode="json")
        return Ok(None)

    def exists(self, project_id: str) -> bool:
        return project_id in self._trees

    def create(self, project_id: str) -> Result[TaskTree, str]:
        if project_id in self._trees:
            return Err(f"Project already exists: {project_id}")
        tree = TaskTree(project_id=project_id)
        self.save(tree)
        return Ok(tree)

    def list_projects(self) -> Result[list[str], str]:
        return Ok(sorted(self._trees))

    def delete(self, project_id: str) -> Result[None, str]:
        if self._trees.pop(project_id, None) is None:
            return Err(f"Project not found: {project_id}")
        return Ok(None)

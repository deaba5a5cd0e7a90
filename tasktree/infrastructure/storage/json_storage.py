"""File I/O for project tree documents.

A project's tree is one JSON object on disk. Reads and writes report
failures as ``Err`` messages so the repository can hand them straight to
the service.
"""

import json
import os
from pathlib import Path
from typing import Any

from tasktree.domain.shared.result import Err, Ok, Result


class JsonStorage:
    """Reads and writes the JSON document behind a project's task tree.

    Knows nothing about tasks: the repository validates the document into a
    ``TaskTree``. A write lands in a hidden sibling file that then replaces
    the tree file, so a concurrent reader sees the old tree or the new one.

    Example:
        storage = JsonStorage()
        loaded = storage.load_json(data_dir / "acme" / "tasks.json")
    """

    def load_json(self, path: Path) -> Result[dict[str, Any], str]:
        """Read a tree document.

        Returns:
            Ok(dict) with the parsed object, or Err(str) when the file is
            missing, unreadable, not JSON, or holds something other than an
            object.
        """
        try:
            if not path.exists():
                return Err(f"File not found: {path}")
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            return Err(f"Invalid JSON in {path}: {e}")
        except PermissionError:
            return Err(f"Permission denied reading {path}")
        except OSError as e:
            return Err(f"Error reading {path}: {e}")

        if not isinstance(data, dict):
            return Err(f"Expected a JSON object in {path}")
        return Ok(data)

    def save_json(
        self,
        path: Path,
        data: dict[str, Any],
        indent: int = 2,
    ) -> Result[None, str]:
        """Write a tree document, creating the project directory if needed."""
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            content = json.dumps(data, indent=indent)
        except TypeError as e:
            return Err(f"Data not JSON serializable: {e}")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, path)
        except PermissionError:
            return Err(f"Permission denied writing {path}")
        except OSError as e:
            return Err(f"Error writing {path}: {e}")
        return Ok(None)

"""Global configuration storage for tasktree.

Stores engine settings (size ceilings, due-date slicing, data directory) in
~/.tasktree/config.json. Set TASKTREE_HOME to use another directory.
"""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from tasktree.domain.shared.errors import InvalidSizeError
from tasktree.domain.task.due_dates import DEFAULT_DUE_DATE_FRACTIONS
from tasktree.domain.task.models import Priority, TaskSize
from tasktree.domain.task.sizing import SIZE_TO_MAX_STORY_POINTS, SizePolicy

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.json"
HOME_ENV_VAR = "TASKTREE_HOME"


def get_config_dir() -> Path:
    """Get the tasktree config directory."""
    override = os.environ.get(HOME_ENV_VAR)
    config_dir = Path(override) if override else Path.home() / ".tasktree"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


class EngineConfig(BaseModel):
    """Engine settings.

    Attributes:
        size_ceilings: Largest story-point value allowed under each size.
        due_date_fractions: Share of the parent's remaining window after
            which a new subtask falls due, by priority.
        data_dir: Where project trees are stored. Defaults to
            ``<config dir>/projects``.
    """

    size_ceilings: dict[TaskSize, int] = Field(
        default_factory=lambda: dict(SIZE_TO_MAX_STORY_POINTS)
    )
    due_date_fractions: dict[Priority, float] = Field(
        default_factory=lambda: dict(DEFAULT_DUE_DATE_FRACTIONS)
    )
    data_dir: Path | None = None

    def size_policy(self) -> SizePolicy:
        """Build the SizePolicy for this configuration.

        Raises:
            InvalidSizeError: If ceilings decrease with size or are not
                Fibonacci numbers.
        """
        return SizePolicy(ceilings=dict(self.size_ceilings))

    def fractions(self) -> dict[Priority, float]:
        """Due-date fractions, falling back to defaults for missing priorities."""
        return {**DEFAULT_DUE_DATE_FRACTIONS, **self.due_date_fractions}

    def resolved_data_dir(self) -> Path:
        return self.data_dir or get_config_dir() / "projects"


def load_config() -> EngineConfig:
    """Load the engine configuration, falling back to defaults."""
    config_file = get_config_dir() / CONFIG_FILE
    if config_file.exists():
        try:
            data = json.loads(config_file.read_text(encoding="utf-8"))
            config = EngineConfig(**data)
            config.size_policy()
            return config
        except (json.JSONDecodeError, ValidationError, InvalidSizeError, TypeError) as e:
            logger.warning(f"Ignoring invalid config file {config_file}: {e}")
    return EngineConfig()


def save_config(config: EngineConfig) -> None:
    """Save the engine configuration."""
    config_file = get_config_dir() / CONFIG_FILE
    config_file.write_text(
        json.dumps(config.model_dump(mode="json"), indent=2),
        encoding="utf-8",
    )

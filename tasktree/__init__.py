"""tasktree - task hierarchy and breakdown governance engine."""

__version__ = "0.1.0"

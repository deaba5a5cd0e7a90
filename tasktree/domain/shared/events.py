"""Base domain event.

Domain events are immutable records of a committed change to a project's
task tree. The service emits them after a mutation is persisted; listeners
(audit log, notifications, iteration bookkeeping) subscribe through
``TaskService.subscribe``.
"""

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field


class DomainEvent(BaseModel):
    """Base class for all domain events.

    Attributes:
        event_id: Unique identifier for this event instance.
        occurred_at: UTC timestamp of the commit.
        project_id: Project whose tree changed.
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    project_id: str

    model_config = {"frozen": True}

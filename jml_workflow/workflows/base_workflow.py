"""
Base Event Builder for the JML Workflow Engine.

Event builders turn a lifecycle event's metadata into the ordered list of
tasks the executor runs. Each event type (joiner, mover, leaver) has its own
builder; this module provides the shared foundation.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..engine.policy_mapper import RoleTemplateResolver
from ..engine.state_manager import IdentityStore
from ..models import EventType, LifecycleEvent, LifecycleTask, TaskStatus, TaskType, User

logger = logging.getLogger(__name__)


class BaseEventBuilder(ABC):
    """
    Abstract base class for lifecycle event builders.

    Subclasses declare which event type they build, the notification emitted
    when such an event completes, and the tasks derived from its metadata.
    """

    event_type: EventType
    notification_name: str

    def __init__(self, store: IdentityStore, resolver: RoleTemplateResolver,
                 tenant_id: str, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the builder.

        Args:
            store: Identity store for live state lookups
            resolver: Role template resolver
            tenant_id: Tenant the builder works for
            config: Engine configuration dictionary
        """
        self.store = store
        self.resolver = resolver
        self.tenant_id = tenant_id
        self.config = config or {}

    @abstractmethod
    def build_tasks(self, user: User, metadata: Any) -> List[LifecycleTask]:
        """
        Derive the ordered task list for an event.

        Args:
            user: Subject of the event
            metadata: Metadata variant matching this builder's event type

        Returns:
            Tasks in execution order
        """

    @abstractmethod
    def effective_date(self, metadata: Any) -> datetime:
        """Date the change takes (or took) effect."""

    @abstractmethod
    def completion_payload(self, event: LifecycleEvent) -> Dict[str, Any]:
        """Summary counts carried by the completion notification."""

    def should_execute(self, metadata: Any, now: datetime) -> bool:
        """Whether the tasks may run now. Builders without gating always run."""
        return True

    def _new_task(self, task_type: TaskType, description: str,
                  target_id: Optional[str] = None) -> LifecycleTask:
        return LifecycleTask(type=task_type, description=description, target_id=target_id)

    def _base_payload(self, event: LifecycleEvent) -> Dict[str, Any]:
        return {
            "tenant_id": event.tenant_id,
            "user_id": event.user_id,
            "user_name": event.user_name,
        }

    @staticmethod
    def _count_tasks(event: LifecycleEvent, task_type: TaskType,
                     status: Optional[TaskStatus] = None) -> int:
        return len([
            task for task in event.tasks
            if task.type == task_type.value and (status is None or task.status == status)
        ])

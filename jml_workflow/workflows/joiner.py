"""
Joiner Event Builder for the JML Workflow Engine.

Handles onboarding of new employees: access to every application the role
needs, a welcome email and a note to the manager.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

from ..models import EventType, JoinerMetadata, LifecycleEvent, LifecycleTask, TaskType, User
from ..notifications import JOINER_COMPLETED
from .base_workflow import BaseEventBuilder

logger = logging.getLogger(__name__)


class JoinerBuilder(BaseEventBuilder):
    """
    Builds the task list for a joiner event.

    A resolvable role template replaces the explicit application list
    outright; the two are never merged.
    """

    event_type = EventType.JOINER
    notification_name = JOINER_COMPLETED

    def build_tasks(self, user: User, metadata: JoinerMetadata) -> List[LifecycleTask]:
        tasks = [
            self._new_task(TaskType.PROVISION_ACCESS, f"Provision access to {app_id}", target_id=app_id)
            for app_id in self.apps_to_provision(metadata)
        ]

        tasks.append(self._new_task(
            TaskType.SEND_WELCOME_EMAIL,
            "Send welcome email with access information",
            target_id=user.email,
        ))
        tasks.append(self._new_task(
            TaskType.NOTIFY_MANAGER,
            f"Notify {metadata.manager} of new team member",
            target_id=metadata.manager,
        ))

        logger.debug(f"Built {len(tasks)} joiner tasks for {user.id}")
        return tasks

    def apps_to_provision(self, metadata: JoinerMetadata) -> List[str]:
        """
        Applications the joiner receives.

        Args:
            metadata: Joiner metadata

        Returns:
            Required apps of the role template if it resolves, otherwise
            the explicit apps_to_provision list
        """
        if metadata.role_template:
            template = self.resolver.resolve(metadata.role_template)
            if template:
                return template.required_app_ids()
            logger.warning(
                f"Role template {metadata.role_template} not found, using explicit application list"
            )

        return list(metadata.apps_to_provision)

    def effective_date(self, metadata: JoinerMetadata) -> datetime:
        return metadata.start_date

    def completion_payload(self, event: LifecycleEvent) -> Dict[str, Any]:
        payload = self._base_payload(event)
        payload.update({
            "department": event.metadata.department,
            "apps_provisioned": self._count_tasks(event, TaskType.PROVISION_ACCESS),
        })
        return payload

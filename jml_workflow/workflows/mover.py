"""
Mover Event Builder for the JML Workflow Engine.

Handles department and role changes: grants access the new role needs,
revokes access only the old role needed, informs both managers when the
reporting line changes and schedules a follow-up access review.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Tuple

from ..models import EventType, LifecycleEvent, LifecycleTask, MoverMetadata, TaskType, User
from ..notifications import MOVER_COMPLETED
from .base_workflow import BaseEventBuilder
from .helpers import diff_required_apps

logger = logging.getLogger(__name__)


class MoverBuilder(BaseEventBuilder):
    """
    Builds the task list for a mover event.

    When both role templates resolve, the access changes are the set
    difference of their required applications and the explicit
    add/remove lists are ignored.
    """

    event_type = EventType.MOVER
    notification_name = MOVER_COMPLETED

    def build_tasks(self, user: User, metadata: MoverMetadata) -> List[LifecycleTask]:
        apps_to_add, apps_to_remove = self.access_changes(metadata)

        tasks = [
            self._new_task(TaskType.PROVISION_ACCESS, f"Provision access to {app_id}", target_id=app_id)
            for app_id in apps_to_add
        ]
        tasks.extend(
            self._new_task(TaskType.REVOKE_ACCESS, f"Revoke access to {app_id}", target_id=app_id)
            for app_id in apps_to_remove
        )

        if metadata.previous_manager != metadata.new_manager:
            tasks.append(self._new_task(
                TaskType.NOTIFY_PREVIOUS_MANAGER,
                f"Notify {metadata.previous_manager} of team member departure",
                target_id=metadata.previous_manager,
            ))
            tasks.append(self._new_task(
                TaskType.NOTIFY_NEW_MANAGER,
                f"Notify {metadata.new_manager} of new team member",
                target_id=metadata.new_manager,
            ))

        review_days = self.config.get("access_review_days", 30)
        tasks.append(self._new_task(
            TaskType.SCHEDULE_ACCESS_REVIEW,
            f"Schedule {review_days}-day access review for role transition",
            target_id=user.id,
        ))

        logger.debug(f"Built {len(tasks)} mover tasks for {user.id}")
        return tasks

    def access_changes(self, metadata: MoverMetadata) -> Tuple[List[str], List[str]]:
        """
        Calculate which applications to add and remove.

        Args:
            metadata: Mover metadata

        Returns:
            Tuple of (apps_to_add, apps_to_remove)
        """
        apps_to_add = list(metadata.apps_to_add)
        apps_to_remove = list(metadata.apps_to_remove)

        if metadata.previous_role_template and metadata.new_role_template:
            new_template = self.resolver.resolve(metadata.new_role_template)
            old_template = self.resolver.resolve(metadata.previous_role_template)

            if new_template and old_template:
                apps_to_add, apps_to_remove = diff_required_apps(old_template, new_template)
            else:
                logger.warning(
                    f"Role templates {metadata.previous_role_template} -> {metadata.new_role_template} "
                    f"did not both resolve, using explicit application lists"
                )

        return apps_to_add, apps_to_remove

    def effective_date(self, metadata: MoverMetadata) -> datetime:
        return metadata.effective_date

    def completion_payload(self, event: LifecycleEvent) -> Dict[str, Any]:
        payload = self._base_payload(event)
        payload.update({
            "from_department": event.metadata.previous_department,
            "to_department": event.metadata.new_department,
            "apps_added": self._count_tasks(event, TaskType.PROVISION_ACCESS),
            "apps_removed": self._count_tasks(event, TaskType.REVOKE_ACCESS),
        })
        return payload

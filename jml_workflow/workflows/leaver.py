"""
Leaver Event Builder for the JML Workflow Engine.

Handles employee offboarding: ownership transfer, SSO and OAuth revocation,
removal of every application grant the user currently holds, license
reclamation and an audit report.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

from ..models import (
    EventType,
    LeaverMetadata,
    LifecycleEvent,
    LifecycleTask,
    TaskType,
    User,
    as_utc,
)
from ..notifications import LEAVER_COMPLETED
from .base_workflow import BaseEventBuilder

logger = logging.getLogger(__name__)


class LeaverBuilder(BaseEventBuilder):
    """
    Builds the task list for a leaver event.

    Application revocations come from the live access list at build time
    rather than from the metadata.
    """

    event_type = EventType.LEAVER
    notification_name = LEAVER_COMPLETED

    def build_tasks(self, user: User, metadata: LeaverMetadata) -> List[LifecycleTask]:
        tasks = []

        if metadata.transfer_to:
            tasks.append(self._new_task(
                TaskType.TRANSFER_OWNERSHIP,
                f"Transfer ownership to {metadata.transfer_to}",
                target_id=metadata.transfer_to,
            ))

        tasks.append(self._new_task(TaskType.REVOKE_SSO, "Revoke SSO access"))
        tasks.append(self._new_task(TaskType.REVOKE_OAUTH, "Revoke all OAuth tokens"))

        for access in self.store.get_user_app_access_list(user.id, self.tenant_id):
            tasks.append(self._new_task(
                TaskType.REVOKE_APP_ACCESS,
                f"Revoke access to {access.app_name or access.app_id}",
                target_id=access.app_id,
            ))

        tasks.append(self._new_task(TaskType.RECLAIM_LICENSES, "Reclaim all licenses"))
        tasks.append(self._new_task(TaskType.GENERATE_AUDIT_REPORT, "Generate offboarding audit report"))

        logger.debug(f"Built {len(tasks)} leaver tasks for {user.id}")
        return tasks

    def should_execute(self, metadata: LeaverMetadata, now: datetime) -> bool:
        """Run now if revocation is immediate or the last working day has arrived."""
        return metadata.immediate_revocation or as_utc(now) >= as_utc(metadata.last_working_day)

    def effective_date(self, metadata: LeaverMetadata) -> datetime:
        return metadata.last_working_day

    def completion_payload(self, event: LifecycleEvent) -> Dict[str, Any]:
        payload = self._base_payload(event)
        payload.update({
            "department": event.metadata.department,
            "termination_type": event.metadata.termination_type.value,
            "apps_revoked": self._count_tasks(event, TaskType.REVOKE_APP_ACCESS),
        })
        return payload

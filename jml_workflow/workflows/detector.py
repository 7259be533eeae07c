"""
Event Detector for the JML Workflow Engine.

Scans the user population for likely joiners and leavers and feeds them
to the orchestrator. Detection is heuristic and best-effort; mover
detection is not implemented.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..engine.state_manager import IdentityStore
from ..models import (
    DetectedJoiner,
    DetectedLeaver,
    DetectionResult,
    EmployeeType,
    EventStatus,
    JoinerMetadata,
    LeaverMetadata,
    ProcessingSummary,
    TerminationType,
    as_utc,
    utc_now,
)
from .orchestrator import WorkflowOrchestrator

logger = logging.getLogger(__name__)


class EventDetector:
    """
    Proposes candidate lifecycle events from the current user population.

    Joiners: users created within the lookback window that hold no
    application access. Leavers: users flagged inactive, with their last
    update time standing in for the last working day.
    """

    def __init__(self, store: IdentityStore, tenant_id: str = "default",
                 config: Optional[Dict[str, Any]] = None):
        self.store = store
        self.tenant_id = tenant_id
        self.config = config or {}

    def detect_events(self, now: Optional[datetime] = None) -> DetectionResult:
        """
        Detect candidate joiner and leaver events.

        Args:
            now: Reference time, defaults to the current time

        Returns:
            DetectionResult with joiners and leavers; movers is always empty
        """
        now = as_utc(now) if now else utc_now()
        lookback = now - timedelta(days=self.config.get("joiner_lookback_days", 7))
        result = DetectionResult()

        logger.info(f"Detecting lifecycle events for tenant {self.tenant_id}")

        for user in self.store.get_users(self.tenant_id):
            if user.created_at and as_utc(user.created_at) >= lookback:
                if not self.store.get_user_app_access_list(user.id, self.tenant_id):
                    result.joiners.append(DetectedJoiner(user_id=user.id, start_date=user.created_at))

            if user.is_active is False:
                result.leavers.append(DetectedLeaver(user_id=user.id, last_day=user.updated_at or now))

        logger.info(f"Detected {len(result.joiners)} joiners and {len(result.leavers)} leavers")
        return result

    def process_detected_events(self, orchestrator: WorkflowOrchestrator,
                                now: Optional[datetime] = None) -> ProcessingSummary:
        """
        Run every detected event through the orchestrator.

        Failures are logged per user and do not stop the batch. An event
        counts as processed unless it ended in status failed; deferred
        leavers count as processed.

        Args:
            orchestrator: Orchestrator for the same tenant
            now: Reference time for detection

        Returns:
            ProcessingSummary with per-type counts
        """
        detected = self.detect_events(now)
        summary = ProcessingSummary()
        actor = self.config.get("automation_actor", "jml_automation")

        for joiner in detected.joiners:
            try:
                user = self.store.get_user(joiner.user_id)
                if not user:
                    continue
                event = orchestrator.process_joiner(joiner.user_id, JoinerMetadata(
                    department=user.department or "Unassigned",
                    job_title=user.job_title or "Employee",
                    manager=user.manager or "Unknown",
                    apps_to_provision=[],
                    start_date=joiner.start_date,
                    employee_type=EmployeeType.FULL_TIME,
                ), actor)
                if event.status != EventStatus.FAILED:
                    summary.processed_joiners += 1
                else:
                    logger.error(f"Detected joiner {joiner.user_id} failed: {event.error}")
            except Exception as e:
                logger.error(f"Error processing joiner {joiner.user_id}: {e}")

        for leaver in detected.leavers:
            try:
                user = self.store.get_user(leaver.user_id)
                if not user:
                    continue
                event = orchestrator.process_leaver(leaver.user_id, LeaverMetadata(
                    department=user.department or "Unknown",
                    last_working_day=leaver.last_day,
                    termination_type=TerminationType.VOLUNTARY,
                    apps_to_revoke=[],
                    immediate_revocation=False,
                ), actor)
                if event.status != EventStatus.FAILED:
                    summary.processed_leavers += 1
                else:
                    logger.error(f"Detected leaver {leaver.user_id} failed: {event.error}")
            except Exception as e:
                logger.error(f"Error processing leaver {leaver.user_id}: {e}")

        logger.info(
            f"Processed {summary.processed_joiners} joiners and {summary.processed_leavers} leavers"
        )
        return summary

"""
Task Executor for the JML Workflow Engine.

Performs the side effect of a single lifecycle task and records its outcome
on the task. Dispatch is by task type; unknown types are skipped.
"""

import logging
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

from ..audit import AuditLogger, EvidenceStore
from ..engine.state_manager import IdentityStore
from ..exceptions import TaskExecutionError
from ..models import (
    AppAccessRecord,
    LifecycleEvent,
    LifecycleTask,
    SaasApp,
    TaskStatus,
    TaskType,
    generate_id,
    utc_now,
)
from .helpers import build_offboarding_report

logger = logging.getLogger(__name__)

TaskHandler = Callable[[LifecycleTask, LifecycleEvent], Dict[str, Any]]


class TaskExecutor:
    """
    Executes lifecycle tasks one at a time.

    A handler returns the task's result payload or raises; a raised error
    marks the task failed and is re-raised to the caller.
    """

    def __init__(self, store: IdentityStore, tenant_id: str,
                 config: Optional[Dict[str, Any]] = None,
                 audit_logger: Optional[AuditLogger] = None,
                 evidence_store: Optional[EvidenceStore] = None):
        """
        Initialize the executor.

        Args:
            store: Identity store receiving access grants and revocations
            tenant_id: Tenant the executor works for
            config: Engine configuration dictionary
            audit_logger: Receives one record per finished task, if set
            evidence_store: Stores offboarding reports, if set
        """
        self.store = store
        self.tenant_id = tenant_id
        self.config = config or {}
        self.audit_logger = audit_logger
        self.evidence_store = evidence_store

        self.handlers: Dict[str, TaskHandler] = {
            TaskType.PROVISION_ACCESS.value: self._provision_access,
            TaskType.REVOKE_ACCESS.value: self._revoke_access,
            TaskType.REVOKE_APP_ACCESS.value: self._revoke_access,
            TaskType.SEND_WELCOME_EMAIL.value: self._send_welcome_email,
            TaskType.NOTIFY_MANAGER.value: self._notify_manager,
            TaskType.NOTIFY_PREVIOUS_MANAGER.value: self._notify_manager,
            TaskType.NOTIFY_NEW_MANAGER.value: self._notify_manager,
            TaskType.SCHEDULE_ACCESS_REVIEW.value: self._schedule_access_review,
            TaskType.TRANSFER_OWNERSHIP.value: self._transfer_ownership,
            TaskType.REVOKE_SSO.value: self._revoke_sso,
            TaskType.REVOKE_OAUTH.value: self._revoke_oauth,
            TaskType.RECLAIM_LICENSES.value: self._reclaim_licenses,
            TaskType.GENERATE_AUDIT_REPORT.value: self._generate_audit_report,
        }

    def register_handler(self, task_type: str, handler: TaskHandler):
        """Add or replace the handler for a task type."""
        key = task_type.value if isinstance(task_type, TaskType) else task_type
        self.handlers[key] = handler

    def execute(self, task: LifecycleTask, event: LifecycleEvent):
        """
        Execute a task in place.

        Args:
            task: Pending task belonging to the event
            event: Owning event, read for user and metadata

        Raises:
            Exception: Whatever the handler raised, after the task is marked failed
        """
        task.mark_started()

        handler = self.handlers.get(task.type)
        if handler is None:
            logger.warning(f"No handler for task type {task.type}, skipping task {task.id}")
            task.mark_skipped()
            self._audit(event, task)
            return

        try:
            result = handler(task, event)
        except Exception as e:
            task.mark_failed(str(e))
            logger.error(f"Task {task.type} failed for {event.user_id}: {e}")
            self._audit(event, task)
            raise

        task.mark_completed(result)
        logger.info(f"Task completed: {task.description}")
        self._audit(event, task)

    def _audit(self, event: LifecycleEvent, task: LifecycleTask):
        """Record a terminal task outcome. Audit failures never change the outcome."""
        if self.audit_logger is None:
            return

        try:
            self.audit_logger.log_task(event, task)
        except Exception as e:
            logger.error(f"Failed to audit task {task.id} ({task.type}) for {event.user_id}: {e}")

    def _require_target(self, task: LifecycleTask) -> str:
        if not task.target_id:
            raise TaskExecutionError(task.type, f"Task {task.type} has no target")
        return task.target_id

    def _find_app(self, app_id: str) -> Optional[SaasApp]:
        try:
            return self.store.get_saas_app(app_id, self.tenant_id)
        except Exception as e:
            logger.warning(f"App lookup failed for {app_id}: {e}")
            return None

    # Handlers

    def _provision_access(self, task: LifecycleTask, event: LifecycleEvent) -> Dict[str, Any]:
        app_id = self._require_target(task)
        logger.info(f"Provisioning access: user={event.user_id}, app={app_id}")

        app = self._find_app(app_id)
        if not app:
            logger.warning(f"App {app_id} not found, skipping provisioning")
            return {"app_id": app_id, "provisioned": False}

        self.store.create_user_app_access(AppAccessRecord(
            tenant_id=self.tenant_id,
            user_id=event.user_id,
            app_id=app_id,
            app_name=app.name,
            access_type="user",
            status="active",
            granted_by=self.config.get("system_actor", "jml_system"),
        ))
        return {"app_id": app_id, "provisioned": True}

    def _revoke_access(self, task: LifecycleTask, event: LifecycleEvent) -> Dict[str, Any]:
        app_id = self._require_target(task)
        logger.info(f"Revoking access: user={event.user_id}, app={app_id}")
        self.store.delete_user_app_access(event.user_id, app_id, self.tenant_id)
        return {"app_id": app_id, "revoked": True}

    def _send_welcome_email(self, task: LifecycleTask, event: LifecycleEvent) -> Dict[str, Any]:
        recipient = task.target_id or event.user_email
        logger.info(f"Sending welcome email to {recipient}")
        return {"email_sent": True, "recipient": recipient}

    def _notify_manager(self, task: LifecycleTask, event: LifecycleEvent) -> Dict[str, Any]:
        manager = self._require_target(task)
        logger.info(f"{task.description} ({event.user_name or event.user_id})")
        return {"notified": True, "manager": manager}

    def _schedule_access_review(self, task: LifecycleTask, event: LifecycleEvent) -> Dict[str, Any]:
        review_date = utc_now() + timedelta(days=self.config.get("access_review_days", 30))
        logger.info(f"Scheduling access review for {event.user_id} on {review_date.date()}")
        return {"review_scheduled": True, "review_date": review_date.isoformat()}

    def _transfer_ownership(self, task: LifecycleTask, event: LifecycleEvent) -> Dict[str, Any]:
        transfer_to = self._require_target(task)
        logger.info(f"Transferring ownership from {event.user_id} to {transfer_to}")
        return {"transferred_to": transfer_to}

    def _revoke_sso(self, task: LifecycleTask, event: LifecycleEvent) -> Dict[str, Any]:
        logger.info(f"Revoking SSO for {event.user_id}")
        return {"sso_revoked": True}

    def _revoke_oauth(self, task: LifecycleTask, event: LifecycleEvent) -> Dict[str, Any]:
        logger.info(f"Revoking OAuth tokens for {event.user_id}")
        removed = self.store.delete_user_oauth_tokens(event.user_id, self.tenant_id)
        return {"oauth_revoked": True, "tokens_removed": removed}

    def _reclaim_licenses(self, task: LifecycleTask, event: LifecycleEvent) -> Dict[str, Any]:
        reclaimed = len([
            t for t in event.tasks
            if t.type == TaskType.REVOKE_APP_ACCESS.value and t.status == TaskStatus.COMPLETED
        ])
        remaining = self.store.get_user_app_access_list(event.user_id, self.tenant_id)
        if remaining:
            logger.warning(f"{len(remaining)} access records remain for {event.user_id} after revocation")
        return {"licenses_reclaimed": reclaimed, "licenses_remaining": len(remaining)}

    def _generate_audit_report(self, task: LifecycleTask, event: LifecycleEvent) -> Dict[str, Any]:
        report_id = generate_id("audit")
        report = build_offboarding_report(event)
        report["report_id"] = report_id

        evidence_path = None
        if self.evidence_store is not None:
            evidence_path = self.evidence_store.store_evidence(report, event.user_id, report_id)

        return {"report_generated": True, "report_id": report_id, "evidence_path": evidence_path}

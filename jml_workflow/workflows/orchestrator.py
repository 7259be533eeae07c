"""
Workflow Orchestrator for the JML Workflow Engine.

Owns the lifecycle of a single joiner, mover or leaver event: construct the
event, build its tasks, run them in order, record the outcome and emit a
completion notification. Failures are recorded on the returned event; the
orchestrator never raises for them.
"""

import logging
from typing import Any, Dict, Optional, Union

from ..audit import AuditLogger, EvidenceStore
from ..engine.policy_mapper import RoleTemplateResolver
from ..engine.state_manager import IdentityStore
from ..exceptions import UserNotFoundError
from ..models import (
    EventStatus,
    EventType,
    JoinerMetadata,
    LeaverMetadata,
    LifecycleEvent,
    MoverMetadata,
    User,
    utc_now,
)
from ..notifications import NotificationEmitter
from .base_workflow import BaseEventBuilder
from .executor import TaskExecutor
from .joiner import JoinerBuilder
from .leaver import LeaverBuilder
from .mover import MoverBuilder

logger = logging.getLogger(__name__)

AnyMetadata = Union[JoinerMetadata, MoverMetadata, LeaverMetadata]


class WorkflowOrchestrator:
    """
    Runs lifecycle events for one tenant.

    Tasks of an event run strictly in order and the first failing task
    stops the event. Events for different users are independent; no
    locking is done across concurrent calls for the same user.
    """

    def __init__(
        self,
        store: IdentityStore,
        tenant_id: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        notifier: Optional[NotificationEmitter] = None,
        audit_logger: Optional[AuditLogger] = None,
        evidence_store: Optional[EvidenceStore] = None,
        resolver: Optional[RoleTemplateResolver] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Identity store collaborator
            tenant_id: Tenant to work for; defaults to config["tenant_id"]
            config: Configuration dictionary (see README for keys)
            notifier: Receives completion notifications
            audit_logger: Audit sink; built from config["audit_dir"] when omitted
            evidence_store: Report store; built from config["evidence_dir"] when omitted
            resolver: Role template resolver; built from the store when omitted
        """
        self.config = config or {}
        self.tenant_id = tenant_id or self.config.get("tenant_id", "default")
        self.store = store
        self.notifier = notifier or NotificationEmitter()

        if audit_logger is None and self.config.get("audit_dir"):
            audit_logger = AuditLogger(self.config["audit_dir"])
        if evidence_store is None and self.config.get("evidence_dir"):
            evidence_store = EvidenceStore(self.config["evidence_dir"])
        self.audit_logger = audit_logger
        self.evidence_store = evidence_store

        self.resolver = resolver or RoleTemplateResolver(
            store, self.tenant_id, self.config.get("role_templates_file")
        )
        self.executor = TaskExecutor(store, self.tenant_id, self.config, audit_logger, evidence_store)
        self.builders: Dict[EventType, BaseEventBuilder] = {
            EventType.JOINER: JoinerBuilder(store, self.resolver, self.tenant_id, self.config),
            EventType.MOVER: MoverBuilder(store, self.resolver, self.tenant_id, self.config),
            EventType.LEAVER: LeaverBuilder(store, self.resolver, self.tenant_id, self.config),
        }

        logger.info(f"Initialized WorkflowOrchestrator for tenant {self.tenant_id}")

    def process_joiner(self, user_id: str, metadata: JoinerMetadata, triggered_by: str) -> LifecycleEvent:
        """
        Onboard a new joiner.

        Per-event failures come back on the returned event. Passing metadata
        of another event type is a caller error and raises ValueError.
        """
        return self.process_event(EventType.JOINER, user_id, metadata, triggered_by)

    def process_mover(self, user_id: str, metadata: MoverMetadata, triggered_by: str) -> LifecycleEvent:
        """
        Adjust access for a department or role change.

        Raises:
            ValueError: If metadata is not MoverMetadata
        """
        return self.process_event(EventType.MOVER, user_id, metadata, triggered_by)

    def process_leaver(self, user_id: str, metadata: LeaverMetadata, triggered_by: str) -> LifecycleEvent:
        """
        Offboard a leaver, or return a pending event if the last working day is ahead.

        Raises:
            ValueError: If metadata is not LeaverMetadata
        """
        return self.process_event(EventType.LEAVER, user_id, metadata, triggered_by)

    def process_event(
        self,
        event_type: Union[EventType, str],
        user_id: str,
        metadata: AnyMetadata,
        triggered_by: str,
    ) -> LifecycleEvent:
        """
        Process a lifecycle event end to end.

        Args:
            event_type: joiner, mover or leaver
            user_id: Subject of the event
            metadata: Metadata variant matching event_type
            triggered_by: Actor that initiated the event

        Returns:
            The event in status completed, failed or (deferred leavers) pending

        Raises:
            ValueError: If event_type is unknown or the metadata variant does not
                match it. These are caller errors; every other failure is
                recorded on the returned event.
        """
        event_type = EventType(event_type)
        if getattr(metadata, "event_type", None) != event_type.value:
            raise ValueError(f"{type(metadata).__name__} cannot be used for a {event_type.value} event")

        logger.info(f"Processing {event_type.value}: {user_id}")
        builder = self.builders[event_type]

        try:
            user = self._load_user(user_id)
        except Exception as e:
            logger.error(f"{event_type.value.capitalize()} processing failed for {user_id}: {e}")
            return LifecycleEvent(
                tenant_id=self.tenant_id,
                event_type=event_type,
                user_id=user_id,
                triggered_by=triggered_by,
                effective_date=builder.effective_date(metadata),
                status=EventStatus.FAILED,
                metadata=metadata,
                error=str(e),
            )

        event = LifecycleEvent(
            tenant_id=self.tenant_id,
            event_type=event_type,
            user_id=user_id,
            user_name=user.full_name,
            user_email=user.email,
            triggered_by=triggered_by,
            effective_date=builder.effective_date(metadata),
            status=EventStatus.IN_PROGRESS,
            metadata=metadata,
        )

        try:
            event.tasks.extend(builder.build_tasks(user, metadata))

            if not builder.should_execute(metadata, utc_now()):
                event.status = EventStatus.PENDING
                logger.info(
                    f"{event_type.value.capitalize()} processing for {user_id} scheduled for {event.effective_date}"
                )
                return event

            for task in event.tasks:
                self.executor.execute(task, event)

            self._apply_user_changes(event)
            event.mark_completed()

        except Exception as e:
            event.mark_failed(str(e))
            logger.error(f"{event_type.value.capitalize()} processing failed for {user_id}: {e}")
            return event

        self.notifier.emit(builder.notification_name, builder.completion_payload(event))
        logger.info(
            f"{event_type.value.capitalize()} processing completed for {user_id}: {len(event.tasks)} tasks"
        )
        return event

    def cancel(self, event: LifecycleEvent) -> LifecycleEvent:
        """
        Cancel an event whose tasks have not started.

        Raises:
            InvalidTransitionError: If the event is not pending
        """
        event.mark_cancelled()
        logger.info(f"Cancelled {event.event_type.value} event {event.id} for {event.user_id}")
        return event

    def _load_user(self, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if not user:
            raise UserNotFoundError(user_id)
        return user

    def _apply_user_changes(self, event: LifecycleEvent):
        """Write the user record changes that follow a successful event."""
        metadata = event.metadata
        if isinstance(metadata, JoinerMetadata):
            return
        elif isinstance(metadata, MoverMetadata):
            logger.info(f"Updating user details: {event.user_id}")
            self.store.update_user(event.user_id, {
                "department": metadata.new_department,
                "job_title": metadata.new_job_title,
                "manager": metadata.new_manager,
            })
        elif isinstance(metadata, LeaverMetadata):
            logger.info(f"Deactivating user: {event.user_id}")
            self.store.update_user(event.user_id, {"is_active": False})
        else:
            raise TypeError(f"Unsupported metadata type: {type(metadata).__name__}")

"""
Audit Logging Module.

Appends one audit record per lifecycle task outcome to daily JSONL files
and reads them back for audit trails.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from ..models import AuditRecord, LifecycleEvent, LifecycleTask

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Append-only logger for task outcomes.

    Records are written to audit_<YYYY-MM-DD>.jsonl under the audit directory.
    """

    def __init__(self, audit_dir: Union[str, Path] = "audit_logs"):
        """
        Initialize the audit logger.

        Args:
            audit_dir: Directory to store audit logs
        """
        self.audit_dir = Path(audit_dir)
        self.audit_dir.mkdir(parents=True, exist_ok=True)

    def log_event(self, record: AuditRecord) -> str:
        """
        Append an audit record.

        Args:
            record: The audit record to log

        Returns:
            The record ID
        """
        date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        log_file = self.audit_dir / f"audit_{date_str}.jsonl"

        with open(log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(record.model_dump(mode="json")) + "\n")

        logger.debug(f"Logged audit record {record.id} for task {record.task_id}")
        return record.id

    def log_task(self, event: LifecycleEvent, task: LifecycleTask) -> str:
        """Write the terminal outcome of a task."""
        record = AuditRecord(
            tenant_id=event.tenant_id,
            event_id=event.id,
            event_type=event.event_type,
            user_id=event.user_id,
            user_email=event.user_email,
            task_id=task.id,
            task_type=task.type,
            target=task.target_id,
            status=task.status,
            success=task.error is None,
            error_message=task.error,
            details=task.result or {},
        )
        return self.log_event(record)

    def get_events(
        self,
        user_id: Optional[str] = None,
        event_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditRecord]:
        """
        Retrieve audit records, most recent first.

        Args:
            user_id: Filter by user ID
            event_id: Filter by lifecycle event ID
            limit: Maximum number of records to return

        Returns:
            List of matching AuditRecords
        """
        results = []

        for log_file in sorted(self.audit_dir.glob("audit_*.jsonl"), reverse=True):
            if len(results) >= limit:
                break

            with open(log_file, encoding="utf-8") as f:
                lines = f.readlines()

            for line in reversed(lines):
                if len(results) >= limit:
                    break

                try:
                    record = AuditRecord.model_validate_json(line)
                except ValidationError as e:
                    logger.warning(f"Skipping unreadable audit record in {log_file}: {e}")
                    continue

                if user_id and record.user_id != user_id:
                    continue
                if event_id and record.event_id != event_id:
                    continue

                results.append(record)

        return results

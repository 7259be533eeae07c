"""
Notification Emitter for the JML Workflow Engine.

Publishes completion notifications (jml.joiner_completed, jml.mover_completed,
jml.leaver_completed) to in-process subscribers such as policy automations.
Delivery is fire-and-forget: a failing subscriber never affects the workflow
that emitted the notification.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

JOINER_COMPLETED = "jml.joiner_completed"
MOVER_COMPLETED = "jml.mover_completed"
LEAVER_COMPLETED = "jml.leaver_completed"

Handler = Callable[[Dict[str, Any]], None]


class NotificationEmitter:
    """Synchronous publish/subscribe hub keyed by notification name."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._counts: Dict[str, int] = defaultdict(int)

    def subscribe(self, name: str, handler: Handler):
        """Register a handler for a notification name."""
        self._handlers[name].append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> bool:
        """Remove a handler. Returns False if it was not registered."""
        try:
            self._handlers[name].remove(handler)
        except ValueError:
            return False
        return True

    def emit(self, name: str, payload: Dict[str, Any]):
        """
        Deliver a notification to every subscriber.

        Args:
            name: Notification name
            payload: Data carried by the notification; always includes tenant_id
        """
        logger.info(f"Emitting {name} for tenant {payload.get('tenant_id')}")
        self._counts[name] += 1

        for handler in list(self._handlers.get(name, [])):
            try:
                handler(payload)
            except Exception as e:
                logger.error(f"Notification handler for {name} failed: {e}")

    def get_event_counts(self) -> Dict[str, int]:
        """Number of times each notification has been emitted."""
        return dict(self._counts)

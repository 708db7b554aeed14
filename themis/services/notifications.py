"""Transition notifications and audit sink.

Once the approval service has flushed a transition it hands a
``TransitionEvent`` to the notifier. The event fires inside the caller's
transaction, before the request commits. The notifier writes an audit log line
and fans the event out to registered listeners (email, chat, dashboards).
A failing listener is logged and skipped; it never affects the transition
or the other listeners.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("themis.audit")


@dataclass(frozen=True)
class TransitionEvent:
    """An applied approval transition."""
    project_id: str
    actor_id: Optional[str]
    actor_role: Optional[str]
    action: str
    from_state: str
    to_state: str
    comment: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role,
            "action": self.action,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "comment": self.comment,
            "timestamp": self.timestamp.isoformat(),
        }


Listener = Callable[[TransitionEvent], None]


class TransitionNotifier:
    """Fans approval transitions out to the audit log and listeners."""

    def __init__(self, listeners: Optional[List[Listener]] = None):
        self._listeners: List[Listener] = list(listeners or [])

    def subscribe(self, listener: Listener) -> None:
        """Register a listener called with every transition event."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify(self, event: TransitionEvent) -> int:
        """
        Record and dispatch a transition event.

        Returns:
            Number of listeners that handled the event without error
        """
        audit_logger.info(
            f"project={event.project_id} actor={event.actor_id} role={event.actor_role} "
            f"action={event.action} {event.from_state} -> {event.to_state}"
        )

        delivered = 0
        for listener in list(self._listeners):
            try:
                listener(event)
                delivered += 1
            except Exception:
                logger.exception(
                    f"Listener {getattr(listener, '__name__', listener)!r} failed "
                    f"for project {event.project_id}"
                )
        return delivered

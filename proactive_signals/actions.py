"""
Action dispatch for notification follow-ups.

Notifications carry NotificationAction descriptors. The host registers one
handler per ActionKind (e.g. "open the editor for this life item") and the
delivery surface calls dispatch() when the user invokes the action.
"""

import logging
from typing import Callable, Dict

from proactive_signals.models import ActionKind, NotificationAction

logger = logging.getLogger("proactive.actions")


class ActionDispatcher:
    """Routes action descriptors to host handlers."""

    def __init__(self):
        self._handlers: Dict[ActionKind, Callable[[str], None]] = {}

    def register(self, kind: ActionKind, handler: Callable[[str], None]):
        self._handlers[ActionKind(kind)] = handler

    def can_dispatch(self, action: NotificationAction) -> bool:
        return action.kind in self._handlers

    def dispatch(self, action: NotificationAction) -> bool:
        """Invoke the handler for action. Returns False if none is registered."""
        handler = self._handlers.get(action.kind)
        if handler is None:
            logger.warning(f"No handler registered for action {action.kind.value}")
            return False
        logger.info(f"Dispatching {action.kind.value} for {action.entity_id}")
        handler(action.entity_id)
        return True

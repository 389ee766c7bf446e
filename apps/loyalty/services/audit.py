"""
Audit events emitted after each committed ledger mutation.

The ledger engine builds a LedgerEvent and hands it to an audit sink.
The default sink stores it as an ActivityLog row; any callable taking
a LedgerEvent can be injected instead.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from apps.loyalty.models import ActivityLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEvent:
    action_type: str
    target_type: str
    target_id: str
    before: Optional[Dict[str, Any]]
    after: Optional[Dict[str, Any]]
    restaurant_id: Any
    performed_by_id: Any = None
    details: Dict[str, Any] = field(default_factory=dict)


def record_activity(event):
    """Persist ``event`` as an ActivityLog row."""
    log = ActivityLog.objects.create(
        restaurant_id=event.restaurant_id,
        performed_by_id=event.performed_by_id,
        action_type=event.action_type,
        target_type=event.target_type,
        target_id=event.target_id,
        details={
            'before': event.before,
            'after': event.after,
            **event.details,
        },
    )
    logger.info(
        "%s %s:%s by %s before=%s after=%s",
        event.action_type, event.target_type, event.target_id,
        event.performed_by_id, event.before, event.after,
    )
    return log

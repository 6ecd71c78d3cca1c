"""
Event Recording - Kubernetes-style events for reconciliation passes.

The EventRecorder logs every event and optionally forwards it to a sink
callable, which the CLI uses to print events as JSON lines.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Severity of an event."""

    NORMAL = "Normal"
    WARNING = "Warning"


class EventReason(Enum):
    """Why an event was recorded."""

    CREATED_EXTERNAL_RESOURCE = "CreatedExternalResource"
    UPDATED_EXTERNAL_RESOURCE = "UpdatedExternalResource"
    DELETED_EXTERNAL_RESOURCE = "DeletedExternalResource"
    CANNOT_CONNECT = "CannotConnectToProvider"
    CANNOT_OBSERVE = "CannotObserveExternalResource"
    CANNOT_CREATE = "CannotCreateExternalResource"
    CANNOT_UPDATE = "CannotUpdateExternalResource"
    CANNOT_DELETE = "CannotDeleteExternalResource"
    RECONCILE_TIMEOUT = "ReconcileTimeout"


@dataclass
class ReconcileEvent:
    """Event recorded against a managed resource."""

    event_type: EventType
    reason: EventReason
    resource_kind: str
    resource_name: str
    message: str
    timestamp: str

    def to_json(self) -> str:
        return json.dumps(
            {
                "type": self.event_type.value,
                "reason": self.reason.value,
                "involvedObject": {
                    "kind": self.resource_kind,
                    "name": self.resource_name,
                },
                "message": self.message,
                "timestamp": self.timestamp,
            }
        )

    @classmethod
    def normal(
        cls, reason: EventReason, kind: str, name: str, message: str
    ) -> "ReconcileEvent":
        return cls(EventType.NORMAL, reason, kind, name, message, _timestamp())

    @classmethod
    def warning(
        cls, reason: EventReason, kind: str, name: str, err: BaseException
    ) -> "ReconcileEvent":
        return cls(EventType.WARNING, reason, kind, name, str(err), _timestamp())


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class EventRecorder:
    """
    Records events for managed resources.

    Every event is logged. When a sink is given, it is also handed each event
    after logging, e.g. to stream events to the terminal.
    """

    def __init__(self, sink: Optional[Callable[[ReconcileEvent], None]] = None):
        self.sink = sink

    async def record(self, event: ReconcileEvent) -> None:
        message = (
            f"{event.resource_kind}/{event.resource_name} "
            f"{event.reason.value}: {event.message}"
        )
        if event.event_type == EventType.WARNING:
            logger.warning(message)
        else:
            logger.info(message)

        if self.sink is not None:
            self.sink(event)

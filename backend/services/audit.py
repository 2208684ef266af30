"""
Caelex Compliance Core - Audit Sink

Fire-and-forget audit records for state transitions. The caller never waits
on the insert and never sees a write failure; failures are logged only.

Feature Flag: AUDIT_LOG_ENABLED (see services.app_config)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    user_id: str
    action: str
    entity_type: str
    entity_id: str
    previous_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    description: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AuditLogger:
    """Schedules audit_logs inserts on the running event loop."""

    def __init__(self, db, enabled: bool = True):
        self.db = db
        self.enabled = enabled
        self._pending: Set[asyncio.Task] = set()

    def log_event(
        self,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        previous_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        description: str = "",
    ) -> AuditEvent:
        event = AuditEvent(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            previous_value=previous_value,
            new_value=new_value,
            description=description,
        )
        logger.info("Audit: %s %s/%s by %s", action, entity_type, entity_id, user_id)

        if self.enabled:
            task = asyncio.create_task(self._write(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return event

    async def _write(self, event: AuditEvent) -> None:
        try:
            await self.db.audit_logs.insert_one(event.to_dict())
        except Exception as e:
            logger.warning("Audit write failed for %s/%s: %s", event.entity_type, event.entity_id, e)

    async def drain(self) -> None:
        """Wait for in-flight writes (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

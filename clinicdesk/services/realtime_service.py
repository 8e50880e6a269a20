"""
In-process change notifications for clinic-scoped tables.

Events tell subscribers that something changed so they can refetch; they are
not a source of truth and may be dropped when a subscriber falls behind.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Set

from clinicdesk.core.config import settings
from clinicdesk.core.logging import get_logger

logger = get_logger(__name__)


class ChangeNotifier:
    """Publish/subscribe hub keyed by clinic id."""
    
    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self.subscribers: Dict[str, Set[asyncio.Queue]] = {}
    
    @asynccontextmanager
    async def subscribe(self, clinic_id: uuid.UUID) -> AsyncIterator[asyncio.Queue]:
        """Register a queue for a clinic's events for the duration of the block."""
        clinic_key = str(clinic_id)
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self.subscribers.setdefault(clinic_key, set()).add(queue)
        logger.info("Change subscriber added", clinic_id=clinic_key)
        try:
            yield queue
        finally:
            queues = self.subscribers.get(clinic_key)
            if queues is not None:
                queues.discard(queue)
                if not queues:
                    del self.subscribers[clinic_key]
            logger.info("Change subscriber removed", clinic_id=clinic_key)
    
    def publish(self, clinic_id: uuid.UUID, table: str, event: str, record_id: uuid.UUID) -> int:
        """Fan an event out to every subscriber of the clinic; returns deliveries."""
        message: Dict[str, Any] = {
            "table": table,
            "event": event,
            "id": str(record_id),
            "clinic_id": str(clinic_id),
            "timestamp": datetime.utcnow().isoformat(),
        }
        delivered = 0
        for queue in list(self.subscribers.get(str(clinic_id), ())):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping change event for slow subscriber", clinic_id=str(clinic_id), table=table)
        return delivered
    
    def subscriber_count(self, clinic_id: uuid.UUID) -> int:
        return len(self.subscribers.get(str(clinic_id), ()))


# Global change notifier
change_notifier = ChangeNotifier(queue_size=settings.realtime_queue_size)

"""Deduplication of inbound platform events."""

from __future__ import annotations

import logging
from typing import Optional

from .constants import EVENT_TTL_SECONDS
from .contracts import ProcessedEvent, utcnow
from .persistence import ProcessedEventStore

logger = logging.getLogger(__name__)


class EventDeduplicator:
    """Decides whether an inbound event id has been seen before.

    Slack redelivers events when acknowledgement is slow and may emit both
    ``app_mention`` and ``message`` for one user action. The first caller to
    record an id wins; the record lives for ``ttl`` seconds, which must
    exceed the platform's retry window.
    """

    def __init__(self, store: ProcessedEventStore, ttl: int = EVENT_TTL_SECONDS) -> None:
        self._store = store
        self.ttl = ttl

    async def is_new(
        self,
        event_id: Optional[str],
        event_type: Optional[str] = None,
        tenant: Optional[str] = None,
    ) -> bool:
        """Return ``True`` if the event should be processed.

        Missing ids and storage failures are treated as new: reprocessing a
        duplicate is preferable to dropping a real event.
        """
        if not event_id or not event_id.strip():
            logger.warning("Received event without an id, processing it anyway")
            return True

        record = ProcessedEvent(event_id=event_id, event_type=event_type, tenant=tenant)
        try:
            inserted = await self._store.add_if_absent(record, self.ttl)
        except Exception as e:
            logger.error(f"Error checking event deduplication for {event_id}: {e}")
            return True

        if inserted:
            logger.debug(f"New event: {event_id}")
            return True

        await self._log_duplicate(event_id)
        return False

    async def _log_duplicate(self, event_id: str) -> None:
        try:
            existing = await self._store.get_event(event_id)
        except Exception as e:
            logger.debug(f"Could not load record for duplicate {event_id}: {e}")
            existing = None
        if existing is None:
            logger.info(f"Duplicate event detected: {event_id}")
            return
        age = (utcnow() - existing.first_seen).total_seconds()
        logger.info(f"Duplicate event detected: {event_id} (first seen {age:.1f}s ago)")

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import NotificationQueue
from ..models import NotificationEvent, NotificationStatus

logger = logging.getLogger(__name__)


class SqlAlchemyNotificationQueue(NotificationQueue):
    """Writes PENDING rows to `notification_events`; a separate sender delivers them."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _existing_id(self, dedupe_key: str) -> Optional[int]:
        return await self.session.scalar(
            select(NotificationEvent.id).where(NotificationEvent.dedupe_key == dedupe_key)
        )

    async def enqueue(
        self,
        *,
        type: str,
        dedupe_key: str,
        to_email: str,
        payload: dict[str, Any],
        user_id: Optional[int] = None,
        venue_id: Optional[int] = None,
        booking_id: Optional[int] = None,
    ) -> tuple[bool, int]:
        existing = await self._existing_id(dedupe_key)
        if existing is not None:
            return False, existing

        event = NotificationEvent(
            type=type,
            dedupe_key=dedupe_key,
            to_email=to_email,
            user_id=user_id,
            venue_id=venue_id,
            booking_id=booking_id,
            payload=payload,
            status=NotificationStatus.PENDING,
            created_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )
        try:
            # savepoint: a duplicate key must not roll back the booking
            async with self.session.begin_nested():
                self.session.add(event)
                await self.session.flush()
        except IntegrityError:
            existing = await self._existing_id(dedupe_key)
            if existing is None:
                raise
            logger.info("notification %s already queued by a concurrent request", dedupe_key)
            return False, existing
        return True, event.id

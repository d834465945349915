"""Persisted notification queue with claim-then-send-then-confirm delivery.

A row is claimed by a conditional update that only succeeds while
``sent_at`` is NULL, so two workers can never both send the same row.
A failed send releases the claim and the row is picked up again on the
next run.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pocket_pause import metrics
from pocket_pause.db.models import QueuedNotification, utcnow

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_SENDING = "sending"
STATUS_SENT = "sent"


def _naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


class NotificationQueue:
    """Queue operations, each in its own short transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def enqueue(
        self,
        user_id: str,
        title: str,
        body: str,
        scheduled_for: datetime,
        item_id: Optional[str] = None,
        notification_type: str = "item_ready",
        data: Optional[dict[str, Any]] = None,
    ) -> QueuedNotification:
        """Add a notification to be sent at ``scheduled_for``."""
        row = QueuedNotification(
            user_id=user_id,
            item_id=item_id,
            notification_type=notification_type,
            title=title,
            body=body,
            data=data or {},
            scheduled_for=_naive_utc(scheduled_for),
            status=STATUS_PENDING,
            attempts=0,
        )
        async with self.session_factory() as db:
            db.add(row)
            await db.commit()
            await db.refresh(row)

        logger.info(
            f"Queued {notification_type} notification {row.id} for user {user_id} "
            f"at {row.scheduled_for.isoformat()}"
        )
        return row

    async def cancel(self, user_id: str, item_id: str) -> int:
        """Delete unsent rows for an item. Returns the number removed."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(QueuedNotification).where(
                    QueuedNotification.user_id == user_id,
                    QueuedNotification.item_id == item_id,
                    QueuedNotification.sent_at.is_(None),
                )
            )
            rows = result.scalars().all()
            for row in rows:
                await db.delete(row)
            await db.commit()

        if rows:
            logger.info(f"Cancelled {len(rows)} queued notification(s) for item {item_id}")
        return len(rows)

    async def fetch_pending(
        self,
        now: Optional[datetime] = None,
        limit: int = 500,
    ) -> list[QueuedNotification]:
        """Unsent rows whose scheduled time has passed, oldest first."""
        now = _naive_utc(now) if now else utcnow()
        async with self.session_factory() as db:
            result = await db.execute(
                select(QueuedNotification)
                .where(
                    QueuedNotification.sent_at.is_(None),
                    QueuedNotification.scheduled_for <= now,
                )
                .order_by(QueuedNotification.scheduled_for, QueuedNotification.id)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def claim(self, notification_id: int) -> Optional[str]:
        """
        Mark a row as being sent.

        Returns:
            A claim token, or None if another worker already claimed the row
        """
        token = uuid.uuid4().hex
        async with self.session_factory() as db:
            result = await db.execute(
                update(QueuedNotification)
                .where(
                    QueuedNotification.id == notification_id,
                    QueuedNotification.sent_at.is_(None),
                )
                .values(sent_at=utcnow(), claim_token=token, status=STATUS_SENDING)
            )
            await db.commit()

        if result.rowcount != 1:
            metrics.record_claim_conflict()
            logger.debug(f"Notification {notification_id} already claimed")
            return None
        return token

    async def confirm(self, notification_id: int, token: str) -> bool:
        """Mark a claimed row as delivered."""
        async with self.session_factory() as db:
            result = await db.execute(
                update(QueuedNotification)
                .where(
                    QueuedNotification.id == notification_id,
                    QueuedNotification.claim_token == token,
                )
                .values(status=STATUS_SENT, attempts=QueuedNotification.attempts + 1)
            )
            await db.commit()
        return result.rowcount == 1

    async def release_claim(
        self,
        notification_id: int,
        token: str,
        error: Optional[str] = None,
    ) -> bool:
        """Undo a claim after a failed send so the row is retried."""
        async with self.session_factory() as db:
            result = await db.execute(
                update(QueuedNotification)
                .where(
                    QueuedNotification.id == notification_id,
                    QueuedNotification.claim_token == token,
                    QueuedNotification.status == STATUS_SENDING,
                )
                .values(
                    sent_at=None,
                    claim_token=None,
                    status=STATUS_PENDING,
                    attempts=QueuedNotification.attempts + 1,
                    last_error=error,
                )
            )
            await db.commit()

        released = result.rowcount == 1
        if released:
            logger.warning(f"Released claim on notification {notification_id}: {error}")
        return released

    async def recover_stale_claims(self, older_than: timedelta, now: Optional[datetime] = None) -> int:
        """
        Return rows stuck in "sending" to the queue.

        A worker that dies between claim and confirm leaves ``sent_at`` set;
        such rows are released once their claim is older than ``older_than``.
        """
        cutoff = (_naive_utc(now) if now else utcnow()) - older_than
        async with self.session_factory() as db:
            result = await db.execute(
                update(QueuedNotification)
                .where(
                    QueuedNotification.status == STATUS_SENDING,
                    QueuedNotification.sent_at < cutoff,
                )
                .values(
                    sent_at=None,
                    claim_token=None,
                    status=STATUS_PENDING,
                    last_error="Claim expired before delivery was confirmed",
                )
            )
            await db.commit()

        if result.rowcount:
            logger.warning(f"Recovered {result.rowcount} stale notification claim(s)")
        return result.rowcount

    async def get(self, notification_id: int) -> Optional[QueuedNotification]:
        async with self.session_factory() as db:
            return await db.get(QueuedNotification, notification_id)

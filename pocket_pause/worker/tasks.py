"""Background tasks for notification delivery."""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from pocket_pause.config import settings
from pocket_pause.db.models import QueuedNotification
from pocket_pause.logging_config import get_logger
from pocket_pause.notify.push import PushSender
from pocket_pause.notify.queue import NotificationQueue
from pocket_pause.notify.scheduling import ReadyItem, create_batched_notification

logger = logging.getLogger(__name__)


class TaskRunner:
    """
    Runner for background tasks.

    Drains the notification queue: due rows are grouped per user, claimed,
    folded into one push per user and confirmed or released depending on
    the gateway's answer.
    """

    def __init__(
        self,
        queue: NotificationQueue | None = None,
        push_sender: PushSender | None = None,
    ):
        self.queue = queue
        self.push_sender = push_sender

    async def initialize(self):
        """Initialize task runner."""
        if self.queue is None:
            from pocket_pause.db.session import AsyncSessionLocal

            self.queue = NotificationQueue(AsyncSessionLocal)
        if self.push_sender is None:
            self.push_sender = PushSender()
        logger.info("Task runner initialized")

    async def close(self):
        """Clean up resources."""
        if self.push_sender:
            await self.push_sender.close()

    async def process_notification_queue(self, now: Optional[datetime] = None) -> dict[str, int]:
        """
        Send every due notification.

        Returns:
            Counts of ``sent``, ``failed`` and ``skipped`` rows
        """
        if self.queue is None or self.push_sender is None:
            await self.initialize()

        stats = {"sent": 0, "failed": 0, "skipped": 0}
        await self.queue.recover_stale_claims(timedelta(seconds=settings.notification_claim_timeout_seconds))
        due = await self.queue.fetch_pending(now, limit=settings.notification_queue_batch_limit)
        if not due:
            logger.debug("No due notifications")
            return stats

        by_user: dict[str, list[QueuedNotification]] = defaultdict(list)
        for row in due:
            by_user[row.user_id].append(row)

        for user_id, rows in by_user.items():
            claimed: list[tuple[QueuedNotification, str]] = []
            try:
                for row in rows:
                    token = await self.queue.claim(row.id)
                    if token is None:
                        stats["skipped"] += 1
                        continue
                    claimed.append((row, token))

                if claimed:
                    await self._deliver(user_id, claimed, stats)
            except Exception as e:
                # Rows confirmed before the failure stay sent
                log = get_logger(__name__, user_id=user_id, notification_ids=[row.id for row, _ in claimed])
                log.exception(f"Notification batch for user {user_id} aborted: {e}")
                await self._release_all(claimed, f"Delivery aborted: {e}", stats)

        logger.info(
            f"Notification queue run: {stats['sent']} sent, {stats['failed']} failed, "
            f"{stats['skipped']} already claimed"
        )
        return stats

    async def _deliver(
        self,
        user_id: str,
        claimed: list[tuple[QueuedNotification, str]],
        stats: dict[str, int],
    ):
        items = [
            ReadyItem(
                item_id=row.item_id or str(row.id),
                title=row.title,
                body=row.body,
                data=dict(row.data or {}),
            )
            for row, _ in claimed
        ]
        notification = create_batched_notification(items)
        kind = notification.data.get("type", "item_ready")

        error: Optional[str] = None
        try:
            ok = await self.push_sender.send(
                [user_id],
                notification.title,
                notification.body,
                notification.data,
                kind=kind,
            )
            if not ok:
                error = "Push gateway did not accept the notification"
        except Exception as e:
            error = str(e) or type(e).__name__

        if error is None:
            for row, token in claimed:
                if await self.queue.confirm(row.id, token):
                    stats["sent"] += 1
            return

        log = get_logger(__name__, user_id=user_id, notification_ids=[row.id for row, _ in claimed])
        log.error(f"Failed to notify user {user_id} about {len(claimed)} item(s): {error}")
        await self._release_all(claimed, error, stats)

    async def _release_all(
        self,
        claimed: list[tuple[QueuedNotification, str]],
        error: str,
        stats: dict[str, int],
    ):
        """Release claims for retry. Rows that cannot be released are left to stale-claim recovery."""
        for row, token in claimed:
            try:
                if not await self.queue.release_claim(row.id, token, error):
                    continue  # already confirmed
            except Exception as e:
                logger.error(f"Could not release notification {row.id}: {e}")
            stats["failed"] += 1


# Global task runner instance
task_runner = TaskRunner()

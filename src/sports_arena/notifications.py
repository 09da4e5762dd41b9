import json
import logging
from typing import Dict, Any, List, Optional, Iterable
from sqlalchemy import select, update, func, and_
from sports_arena.errors import NotFoundError
from sports_arena.models.base import is_valid_id
from sports_arena.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationManager:
    """
    User notification delivery backed by the database and Redis pub/sub.

    Notifications are persisted for later retrieval and, when a Redis client
    is configured, published for real-time consumers. Sending is
    fire-and-forget: a failure is logged and never propagates to the
    operation that triggered it.
    """

    def __init__(self, database, redis_client=None):
        """
        Initialize the notification manager.

        Args:
            database: Database used to persist notifications (own sessions)
            redis_client: Optional async Redis client for pub/sub fan-out
        """
        self.database = database
        self.redis_client = redis_client
        self.channels = {
            'user_notifications': 'user:{user_id}:notifications',
            'competition_events': 'competition_events',
            'general': 'notifications'
        }

    async def send_user_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """
        Send a notification to a single user.

        Returns:
            Notification ID, or None when delivery failed
        """
        ids = await self._deliver([user_id], notification_type, title, message, data)
        return ids[0] if ids else None

    async def send_competition_event(
        self,
        competition_id: str,
        event_type: str,
        title: str,
        message: str,
        recipients: Iterable[str],
        data: Optional[Dict[str, Any]] = None
    ) -> List[str]:
        """
        Send a competition event to every recipient and the competition channel.

        Args:
            competition_id: ID of the competition
            event_type: Notification type, e.g. COMPETITION_UPDATE
            title: Event title
            message: Event message
            recipients: User IDs to notify
            data: Additional event data

        Returns:
            IDs of the stored notifications
        """
        payload = dict(data or {})
        payload['competition_id'] = competition_id
        payload['event_type'] = event_type

        notification_ids = await self._deliver(list(recipients), event_type, title, message, payload)

        try:
            await self._publish(self.channels['competition_events'], {
                'type': event_type,
                'competition_id': competition_id,
                'title': title,
                'message': message,
                'data': payload,
            })
        except Exception as e:
            logger.error(f"Failed to publish competition event for {competition_id}: {e}")

        return notification_ids

    async def _deliver(self, user_ids: List[str], notification_type: str, title: str,
                       message: str, data: Optional[Dict[str, Any]]) -> List[str]:
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return []

        try:
            async with self.database.get_session() as session:
                notifications = [
                    Notification(
                        user_id=user_id,
                        type=notification_type,
                        title=title,
                        message=message,
                        data=data or {},
                    )
                    for user_id in user_ids
                ]
                session.add_all(notifications)
                records = [n.to_dict() for n in notifications]

            for user_id, record in zip(user_ids, records):
                try:
                    await self._publish(self.channels['user_notifications'].format(user_id=user_id), record)
                except Exception as e:
                    logger.warning(f"Stored notification for {user_id} but could not publish it: {e}")

            logger.info(f"{notification_type} notification sent to {len(user_ids)} user(s)")
            return [record['id'] for record in records]

        except Exception as e:
            logger.error(f"Failed to deliver {notification_type} notification: {e}")
            return []

    async def _publish(self, channel: str, message_data: Dict[str, Any]):
        """Publish to a channel and to the general notifications channel."""
        if self.redis_client is None:
            return

        encoded = json.dumps(message_data, default=str)
        await self.redis_client.publish(channel, encoded)
        await self.redis_client.publish(self.channels['general'], encoded)

    async def get_user_notifications(self, user_id: str, limit: int = 20, skip: int = 0,
                                     unread_only: bool = False) -> List[Dict[str, Any]]:
        """
        Get recent notifications for a user, newest first.

        Args:
            user_id: User ID
            limit: Maximum number of notifications to return
            skip: Number of notifications to skip
            unread_only: Return only unread notifications
        """
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).offset(skip).limit(limit)

        async with self.database.get_session() as session:
            result = await session.execute(query)
            return [notification.to_dict() for notification in result.scalars().all()]

    async def get_unread_count(self, user_id: str) -> int:
        try:
            async with self.database.get_session() as session:
                count = await session.scalar(
                    select(func.count(Notification.id)).where(and_(
                        Notification.user_id == user_id,
                        Notification.is_read.is_(False),
                    ))
                )
                return count or 0
        except Exception as e:
            logger.error(f"Error getting unread count for user {user_id}: {e}")
            return 0

    async def mark_notification_read(self, user_id: str, notification_id: str):
        """Mark one of the user's notifications as read."""
        async with self.database.get_session() as session:
            notification = await session.get(Notification, notification_id) if is_valid_id(notification_id) else None
            # Someone else's notification is reported as missing
            if not notification or notification.user_id != user_id:
                raise NotFoundError("Notification not found")
            notification.is_read = True

        logger.debug(f"Marked notification {notification_id} as read for user {user_id}")

    async def mark_all_read(self, user_id: str) -> int:
        async with self.database.get_session() as session:
            result = await session.execute(
                update(Notification)
                .where(and_(Notification.user_id == user_id, Notification.is_read.is_(False)))
                .values(is_read=True)
            )
            updated = result.rowcount or 0

        logger.info(f"Marked {updated} notifications as read for user {user_id}")
        return updated

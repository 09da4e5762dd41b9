from fastapi import APIRouter, Depends, Query
from typing import Any, Dict
from sports_arena.api.deps import get_current_actor, get_notifier
from sports_arena.identity import Actor
from sports_arena.notifications import NotificationManager

router = APIRouter()


@router.get("")
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
    unread_only: bool = False,
    actor: Actor = Depends(get_current_actor),
    notifier: NotificationManager = Depends(get_notifier)
) -> Dict[str, Any]:
    """Recent notifications of the caller with the unread count"""
    notifications = await notifier.get_user_notifications(
        actor.user_id, limit=limit, skip=skip, unread_only=unread_only
    )
    return {
        "notifications": notifications,
        "unread_count": await notifier.get_unread_count(actor.user_id),
    }


@router.post("/read-all")
async def mark_all_read(
    actor: Actor = Depends(get_current_actor),
    notifier: NotificationManager = Depends(get_notifier)
) -> Dict[str, int]:
    return {"updated": await notifier.mark_all_read(actor.user_id)}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    actor: Actor = Depends(get_current_actor),
    notifier: NotificationManager = Depends(get_notifier)
) -> Dict[str, bool]:
    await notifier.mark_notification_read(actor.user_id, notification_id)
    return {"success": True}

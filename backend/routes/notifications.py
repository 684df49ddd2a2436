"""
Notification endpoints — create (fanout) and the read side.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from deps import Pagination, get_db, pagination_params
from domain.responses import paginated_response, success_response
from models import NotificationCreateRequest
from services import notification_service
from services.notification_service import serialize_notification

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_notification(
    body: NotificationCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    notification = await notification_service.create_notification(
        db,
        recipient_role=body.recipient_role.value,
        title=body.title,
        message=body.message,
        type=body.type.value,
        user_id=body.user_id,
        metadata=body.metadata,
        email=body.email,
    )
    return success_response(serialize_notification(notification))


@router.get("/admin")
async def list_admin_notifications(
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    items, total = await notification_service.get_admin_notifications(db, page["limit"], page["offset"])
    return paginated_response(
        [serialize_notification(n) for n in items],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@router.get("/user/{user_id}")
async def list_user_notifications(
    user_id: str,
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    items, total = await notification_service.get_user_notifications(
        db, user_id, page["limit"], page["offset"]
    )
    return paginated_response(
        [serialize_notification(n) for n in items],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@router.get("/user/{user_id}/unread-count")
async def unread_count(user_id: str, db: AsyncSession = Depends(get_db)):
    count = await notification_service.get_unread_count(db, user_id)
    return success_response({"userId": user_id, "unreadCount": count})


@router.patch("/user/{user_id}/read-all")
async def mark_all_read(user_id: str, db: AsyncSession = Depends(get_db)):
    updated = await notification_service.mark_all_as_read(db, user_id)
    return success_response({"userId": user_id, "updated": updated})


@router.get("/{notification_id}")
async def get_notification(notification_id: int, db: AsyncSession = Depends(get_db)):
    notification = await notification_service.get_notification(db, notification_id)
    return success_response(serialize_notification(notification))


@router.patch("/{notification_id}/read")
async def mark_read(notification_id: int, db: AsyncSession = Depends(get_db)):
    notification = await notification_service.mark_as_read(db, notification_id)
    return success_response(serialize_notification(notification))


@router.delete("/{notification_id}")
async def delete_notification(notification_id: int, db: AsyncSession = Depends(get_db)):
    await notification_service.delete_notification(db, notification_id)
    return success_response({"id": notification_id, "deleted": True})

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from arena.core.security import CurrentUser, get_current_user
from arena.db.session import get_db
from arena.schemas.common import ApiResponse
from arena.services import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class NotificationResponse(BaseModel):
    id: int
    type: str
    subject: str
    message: str
    link: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


@router.get("/", response_model=ApiResponse[list[NotificationResponse]])
async def list_notifications(
    unread_only: bool = Query(default=False),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notifications = await notification_service.list_for_user(db, user.id, unread_only)
    return ApiResponse(data=[NotificationResponse.model_validate(n) for n in notifications])

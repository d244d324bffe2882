from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.models.notification import NotificationType
from app.schemas.common import RequestModel


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    notification_type: NotificationType
    title: str
    message: str
    document_id: UUID | None = None
    is_read: bool
    read_at: datetime | None = None
    is_active: bool
    created_at: datetime


class MarkReadRequest(RequestModel):
    notification_ids: list[UUID]


class MarkAllReadRequest(RequestModel):
    user_id: UUID


class UnreadCountResponse(BaseModel):
    count: int

from datetime import datetime

from pydantic import BaseModel

from app.models.notification import DeliveryStatus, NotificationType


class NotificationOut(BaseModel):
    id: str
    sender_id: str | None = None
    user_id: str
    title: str
    message: str
    notification_type: NotificationType
    subject_id: str | None = None
    is_read: bool
    delivery_status: DeliveryStatus
    created_at: datetime

    model_config = {"from_attributes": True}

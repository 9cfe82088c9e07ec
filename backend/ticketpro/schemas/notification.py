from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    booking_id: Optional[int]
    type: str
    title: str
    message: str
    scheduled_for: datetime
    sent_at: Optional[datetime]
    is_read: bool

    model_config = {"from_attributes": True}

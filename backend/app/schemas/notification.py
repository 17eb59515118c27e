from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: str
    title: str
    description: str
    type: str
    sub_type: str | None
    job_id: str | None
    read: bool
    created_at: str


class MarkReadRequest(BaseModel):
    notification_ids: list[str] = []


class UnreadCountResponse(BaseModel):
    count: int

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.notification import MarkReadRequest, NotificationResponse, UnreadCountResponse
from app.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [
        NotificationResponse(
            id=n.id,
            title=n.title,
            description=n.description,
            type=n.type,
            sub_type=n.sub_type,
            job_id=n.job_id,
            read=read,
            created_at=n.created_at,
        )
        for n, read in notification_service.list_for_user(db, user.id)
    ]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return UnreadCountResponse(count=notification_service.unread_count(db, user.id))


@router.put("/read")
async def mark_read(req: MarkReadRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    updated = notification_service.mark_read(db, user.id, req.notification_ids)
    return {"updated": updated}

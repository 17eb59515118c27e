import uuid
from typing import Iterable

from sqlalchemy.orm import Session

from app.models.notification import Notification, NotificationRecipient
from app.models.user import User
from app.services.permissions import is_admin_role, role_allows
from app.utils.dates import utc_now


def admin_ids(db: Session) -> list[str]:
    users = db.query(User).all()
    return [u.id for u in users if u.role is not None and is_admin_role(u.role.name)]


def ids_with_permission(db: Session, path: str) -> list[str]:
    users = db.query(User).all()
    return [u.id for u in users if role_allows(u.role, path)]


def notify(
    db: Session,
    *,
    title: str,
    description: str,
    recipients: Iterable[str],
    type: str = "job",
    sub_type: str | None = None,
    job_id: str | None = None,
) -> Notification | None:
    """Queue a notification on the session. The caller commits."""
    user_ids = list(dict.fromkeys(r for r in recipients if r))
    if not user_ids:
        return None
    notification = Notification(
        id=str(uuid.uuid4()),
        title=title,
        description=description,
        type=type,
        sub_type=sub_type,
        job_id=job_id,
        created_at=utc_now(),
    )
    notification.recipients = [
        NotificationRecipient(user_id=user_id, read=False) for user_id in user_ids
    ]
    db.add(notification)
    return notification


def list_for_user(db: Session, user_id: str) -> list[tuple[Notification, bool]]:
    rows = (
        db.query(Notification, NotificationRecipient.read)
        .join(NotificationRecipient, NotificationRecipient.notification_id == Notification.id)
        .filter(NotificationRecipient.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .all()
    )
    return [(n, bool(read)) for n, read in rows]


def unread_count(db: Session, user_id: str) -> int:
    return (
        db.query(NotificationRecipient)
        .filter(NotificationRecipient.user_id == user_id, NotificationRecipient.read.is_(False))
        .count()
    )


def mark_read(db: Session, user_id: str, notification_ids: list[str]) -> int:
    """Mark the given notifications read for ``user_id``; an empty list marks all."""
    query = db.query(NotificationRecipient).filter(
        NotificationRecipient.user_id == user_id,
        NotificationRecipient.read.is_(False),
    )
    if notification_ids:
        query = query.filter(NotificationRecipient.notification_id.in_(notification_ids))
    updated = 0
    for recipient in query.all():
        recipient.read = True
        updated += 1
    db.commit()
    return updated

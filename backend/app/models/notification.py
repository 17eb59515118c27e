from sqlalchemy import Boolean, Column, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Text, primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(Text, nullable=False)
    sub_type = Column(Text)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="SET NULL"))
    created_at = Column(Text, nullable=False)

    recipients = relationship(
        "NotificationRecipient", back_populates="notification", cascade="all, delete-orphan"
    )
    job = relationship("Job")


class NotificationRecipient(Base):
    __tablename__ = "notification_recipients"

    notification_id = Column(
        Text, ForeignKey("notifications.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    read = Column(Boolean, nullable=False, default=False)

    notification = relationship("Notification", back_populates="recipients")

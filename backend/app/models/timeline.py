from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from app.database import Base


class TimelineEntry(Base):
    __tablename__ = "timeline_entries"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    status = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    updated_by = Column(Text, ForeignKey("users.id", ondelete="SET NULL"))
    timestamp = Column(Text, nullable=False)

    job = relationship("Job", back_populates="timeline")
    author = relationship("User")

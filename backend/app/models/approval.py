from sqlalchemy import JSON, Column, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.database import Base


class ApprovalProcess(Base):
    """A three-stage sign-off (KYC or BRA) run on a completed job.

    Each ``*_approval`` column holds the stage record: ``approved``,
    ``approved_by``, ``approved_at``, ``notes`` and the supporting ``document``.
    """

    __tablename__ = "approval_processes"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    kind = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="in_progress")
    current_stage = Column(Text, nullable=False, default="lmro")
    lmro_approval = Column(JSON, nullable=False)
    dlmro_approval = Column(JSON, nullable=False)
    ceo_approval = Column(JSON, nullable=False)
    rejection_reason = Column(Text)
    rejected_by = Column(Text, ForeignKey("users.id", ondelete="SET NULL"))
    rejected_at = Column(Text)
    completed_at = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    job = relationship("Job")
    rejecter = relationship("User")
